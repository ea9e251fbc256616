"""
Reservation state machine.

Primary track::

    NEW ──approve──▶ JANITORIAL_APPROVED ──approve(admin)──▶ FULLY_APPROVED
    NEW ──approve (nothing else pending)──▶ FULLY_APPROVED
    NEW / JANITORIAL_APPROVED ──reject──▶ CANCELLED
    NEW / JANITORIAL_APPROVED / FULLY_APPROVED ──cancel──▶ CANCELLED
    JANITORIAL_APPROVED / FULLY_APPROVED ──complete──▶ COMPLETED

The modification-proposal track runs alongside without touching ``status``.

Each ``plan_*`` function validates the actor and the current state and returns
a ``Transition`` describing the column changes. Nothing here writes to the
database; ``ReservationRepository.apply_transition`` applies a plan with a
conditional update so a stale plan can never land.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

from ... import config
from ...models import Reservation
from ...shared.enums import ApprovalStep, ModificationStatus, ReservationStatus
from ...shared.errors import InvalidStateTransition, PermissionDenied, PolicyViolation, ValidationError
from ..memberships.schemas import Actor
from .conflicts import TimeWindow
from .fees import FeeQuote

# Position on the forward-only track; CANCELLED is terminal and sits off it
STATUS_RANK = {
    ReservationStatus.NEW: 0,
    ReservationStatus.JANITORIAL_APPROVED: 1,
    ReservationStatus.FULLY_APPROVED: 2,
    ReservationStatus.COMPLETED: 3,
}

APPROVABLE = (ReservationStatus.NEW, ReservationStatus.JANITORIAL_APPROVED)
REJECTABLE = (ReservationStatus.NEW, ReservationStatus.JANITORIAL_APPROVED)
CANCELLABLE = (
    ReservationStatus.NEW,
    ReservationStatus.JANITORIAL_APPROVED,
    ReservationStatus.FULLY_APPROVED,
)
COMPLETABLE = (ReservationStatus.JANITORIAL_APPROVED, ReservationStatus.FULLY_APPROVED)
MODIFIABLE = CANCELLABLE


@dataclass
class Transition:
    """A validated change to one reservation, applied atomically or not at all"""

    from_status: ReservationStatus
    to_status: ReservationStatus
    event: str
    values: dict = field(default_factory=dict)
    reason: Optional[str] = None
    fee: Optional[FeeQuote] = None

    @property
    def changes_status(self) -> bool:
        return self.from_status != self.to_status


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise PermissionDenied(message)


def _require_state(reservation: Reservation, allowed, action: str) -> None:
    if reservation.status not in allowed:
        raise InvalidStateTransition(
            f"Cannot {action} reservation with status: {reservation.status.value}"
        )


def is_owner(reservation: Reservation, actor: Actor) -> bool:
    return reservation.user_id == actor.user_id


def check_expected_status(reservation: Reservation, expected: Optional[ReservationStatus]) -> None:
    """Reject a request made against a status the reservation has already left"""
    if expected is not None and reservation.status != expected:
        raise InvalidStateTransition(
            f"Reservation is not in expected state {expected.value} "
            f"(current status: {reservation.status.value})"
        )


# ---------------------------------------------------------------------------
# Approval routing
# ---------------------------------------------------------------------------


def recorded_approvals(reservation: Reservation) -> set[ApprovalStep]:
    steps = set()
    if reservation.janitorial_approved_at is not None:
        steps.add(ApprovalStep.JANITORIAL)
    if reservation.admin_approved_at is not None:
        steps.add(ApprovalStep.ADMIN)
    return steps


def pending_approvals(
    reservation: Reservation, sequence: tuple[ApprovalStep, ...]
) -> list[ApprovalStep]:
    """Steps of the current policy's sequence this reservation has not yet recorded"""
    done = recorded_approvals(reservation)
    return [step for step in sequence if step not in done]


def status_for_pending(pending: list[ApprovalStep]) -> ReservationStatus:
    if not pending:
        return ReservationStatus.FULLY_APPROVED
    if ApprovalStep.JANITORIAL in pending:
        return ReservationStatus.NEW
    return ReservationStatus.JANITORIAL_APPROVED


def validate_cleaning_window(reservation: Reservation, window: TimeWindow) -> None:
    if window.start < reservation.party_time_end:
        raise ValidationError("Cleaning time must start after the party ends")
    minimum = timedelta(hours=config.CLEANING_MIN_HOURS)
    if window.end - window.start < minimum:
        raise ValidationError(f"Cleaning time must be at least {config.CLEANING_MIN_HOURS:g} hours")


def plan_approval(
    reservation: Reservation,
    actor: Actor,
    sequence: tuple[ApprovalStep, ...],
    now: datetime,
    cleaning_window: Optional[TimeWindow] = None,
) -> Transition:
    """
    Perform the next pending approval step.

    Janitorial steps may be taken by janitorial staff or admins (admins act on
    behalf of janitorial); the admin step only by admins. With nothing pending,
    a single admin action confirms the reservation.
    """
    _require_state(reservation, APPROVABLE, "approve")
    _require(actor.is_staff, "Janitorial or admin access required")

    pending = pending_approvals(reservation, sequence)
    step = pending[0] if pending else ApprovalStep.ADMIN
    if step == ApprovalStep.ADMIN:
        _require(actor.is_admin, "Admin approval is required for this reservation")

    values = {}
    if step == ApprovalStep.JANITORIAL:
        values["janitorial_approved_by"] = actor.user_id
        values["janitorial_approved_at"] = now
    else:
        values["admin_approved_by"] = actor.user_id
        values["admin_approved_at"] = now

    if cleaning_window is not None:
        validate_cleaning_window(reservation, cleaning_window)
        values["cleaning_time_start"] = cleaning_window.start
        values["cleaning_time_end"] = cleaning_window.end

    remaining = [s for s in pending if s != step]
    to_status = status_for_pending(remaining)
    if STATUS_RANK[to_status] < STATUS_RANK[reservation.status]:
        to_status = reservation.status

    event = (
        "reservation.fully_approved"
        if to_status == ReservationStatus.FULLY_APPROVED
        else "reservation.janitorial_approved"
    )
    return Transition(reservation.status, to_status, event, values)


def plan_policy_adjustment(
    reservation: Reservation,
    sequence: tuple[ApprovalStep, ...],
    relaxed: bool,
    tightened: bool,
) -> Optional[Transition]:
    """
    Side effect of an amenity policy edit.

    Relaxing a requirement advances reservations that were only waiting on the
    dropped step. Tightening one rolls FULLY_APPROVED reservations that never
    went through the now-required step back to JANITORIAL_APPROVED for review;
    this is the only backwards move the machine allows.
    """
    pending = pending_approvals(reservation, sequence)
    status = reservation.status

    if relaxed and status in APPROVABLE:
        target = status_for_pending(pending)
        if STATUS_RANK[target] > STATUS_RANK[status]:
            return Transition(
                status, target, "reservation.auto_approved",
                reason="Approval requirement removed from amenity",
            )

    if tightened and status == ReservationStatus.FULLY_APPROVED and pending:
        return Transition(
            status,
            ReservationStatus.JANITORIAL_APPROVED,
            "reservation.unconfirmed",
            reason="Amenity now requires " + " and ".join(s.value for s in pending) + " approval",
        )
    return None


# ---------------------------------------------------------------------------
# Rejection, cancellation, completion
# ---------------------------------------------------------------------------


def plan_rejection(
    reservation: Reservation, actor: Actor, now: datetime, reason: Optional[str] = None
) -> Transition:
    _require_state(reservation, REJECTABLE, "reject")
    _require(actor.is_staff, "Janitorial or admin access required")
    reason = reason.strip() if reason else None
    return Transition(
        reservation.status,
        ReservationStatus.CANCELLED,
        "reservation.rejected",
        {"rejection_reason": reason, "cancelled_by": actor.user_id, "cancelled_at": now},
        reason=reason,
    )


def plan_cancellation(
    reservation: Reservation, actor: Actor, fee: FeeQuote, now: datetime
) -> Transition:
    _require_state(reservation, CANCELLABLE, "cancel")
    _require(
        is_owner(reservation, actor) or actor.is_admin,
        "Only the resident who made the reservation or an admin can cancel it",
    )
    return Transition(
        reservation.status,
        ReservationStatus.CANCELLED,
        "reservation.cancelled",
        {
            "cancellation_fee": fee.amount,
            "cancellation_fee_reason": fee.reason,
            "cancelled_by": actor.user_id,
            "cancelled_at": now,
        },
        reason=fee.reason,
        fee=fee,
    )


def plan_completion(
    reservation: Reservation, actor: Actor, damages_found: bool, today: date, now: datetime
) -> Transition:
    _require_state(reservation, COMPLETABLE, "complete")
    _require(actor.is_staff, "Janitorial or admin access required")
    if reservation.date > today:
        raise PolicyViolation(
            f"Reservation cannot be completed before its event date ({reservation.date.isoformat()})"
        )
    return Transition(
        reservation.status,
        ReservationStatus.COMPLETED,
        "reservation.completed",
        {
            "completed_by": actor.user_id,
            "completed_at": now,
            "damage_assessed": False,
            "damage_assessment_pending": bool(damages_found),
            "damage_assessment_status": None,
        },
        reason="Damages reported" if damages_found else "No damages reported",
    )


# ---------------------------------------------------------------------------
# Modification proposals (staff) and direct modifications (owner)
# ---------------------------------------------------------------------------


def plan_modification_proposal(
    reservation: Reservation,
    actor: Actor,
    proposed_date: date,
    proposed_party: TimeWindow,
    reason: Optional[str],
    now: datetime,
) -> Transition:
    _require(actor.is_staff, "Janitorial or admin access required")
    if reservation.status != ReservationStatus.NEW:
        raise InvalidStateTransition(
            "Modifications can only be proposed for reservations awaiting approval "
            f"(current status: {reservation.status.value})"
        )
    if reservation.modification_status == ModificationStatus.PENDING:
        raise InvalidStateTransition("A modification proposal is already pending for this reservation")
    if not reason or not reason.strip():
        raise ValidationError("A reason is required when proposing a modification")
    if proposed_party.start.date() != proposed_date:
        raise ValidationError("Proposed party start must fall on the proposed date")

    return Transition(
        reservation.status,
        reservation.status,
        "reservation.modification_proposed",
        {
            "modification_status": ModificationStatus.PENDING,
            "proposed_date": proposed_date,
            "proposed_party_time_start": proposed_party.start,
            "proposed_party_time_end": proposed_party.end,
            "modification_reason": reason.strip(),
            "modification_proposed_by": actor.user_id,
            "modification_proposed_at": now,
        },
        reason=reason.strip(),
    )


_CLEARED_PROPOSAL = {
    "proposed_date": None,
    "proposed_party_time_start": None,
    "proposed_party_time_end": None,
}


def _require_pending_proposal(reservation: Reservation) -> None:
    if reservation.modification_status != ModificationStatus.PENDING:
        raise InvalidStateTransition("There is no pending modification proposal for this reservation")
    if reservation.status not in MODIFIABLE:
        raise InvalidStateTransition(
            f"Cannot modify reservation with status: {reservation.status.value}"
        )


def proposed_schedule(reservation: Reservation) -> dict:
    """Live schedule fields after applying the pending proposal; setup and cleaning move with the party"""
    start_delta = reservation.proposed_party_time_start - reservation.party_time_start
    end_delta = reservation.proposed_party_time_end - reservation.party_time_end
    values = {
        "date": reservation.proposed_date,
        "party_time_start": reservation.proposed_party_time_start,
        "party_time_end": reservation.proposed_party_time_end,
        "setup_time_start": reservation.setup_time_start + start_delta,
        "setup_time_end": reservation.setup_time_end + start_delta,
    }
    if reservation.cleaning_time_start and reservation.cleaning_time_end:
        values["cleaning_time_start"] = reservation.cleaning_time_start + end_delta
        values["cleaning_time_end"] = reservation.cleaning_time_end + end_delta
    return values


def plan_modification_response(reservation: Reservation, actor: Actor, accept: bool) -> Transition:
    _require(
        is_owner(reservation, actor) or actor.is_admin,
        "Only the resident who made the reservation can respond to this proposal",
    )
    _require_pending_proposal(reservation)

    if not accept:
        return Transition(
            reservation.status,
            reservation.status,
            "reservation.modification_rejected",
            {"modification_status": ModificationStatus.REJECTED, **_CLEARED_PROPOSAL},
            reason=reservation.modification_reason,
        )

    values = proposed_schedule(reservation)
    values.update(_CLEARED_PROPOSAL)
    values["modification_status"] = ModificationStatus.ACCEPTED
    values["modification_count"] = reservation.modification_count + 1
    return Transition(
        reservation.status,
        reservation.status,
        "reservation.modification_accepted",
        values,
        reason=reservation.modification_reason,
    )


def plan_modification_cancel(reservation: Reservation, actor: Actor) -> Transition:
    _require(
        is_owner(reservation, actor) or actor.is_staff,
        "Only the resident or community staff can withdraw this proposal",
    )
    _require_pending_proposal(reservation)
    return Transition(
        reservation.status,
        reservation.status,
        "reservation.modification_cancelled",
        {"modification_status": ModificationStatus.NONE, **_CLEARED_PROPOSAL},
    )


def plan_modification(
    reservation: Reservation, actor: Actor, changes: dict, fee: FeeQuote, now: datetime
) -> Transition:
    """Direct edit by the owner before the event; always counted and priced"""
    _require(is_owner(reservation, actor), "Only the resident who made the reservation can modify it")
    _require_state(reservation, MODIFIABLE, "modify")
    if reservation.party_time_start <= now:
        raise PolicyViolation("Reservations cannot be modified once the event has started")
    if not changes:
        raise ValidationError("No changes were provided")

    values = dict(changes)
    values["modification_count"] = reservation.modification_count + 1
    values["modification_fees_total"] = (reservation.modification_fees_total or 0) + fee.amount
    values["last_modification_fee"] = fee.amount
    values["last_modification_fee_reason"] = fee.reason
    return Transition(
        reservation.status, reservation.status, "reservation.modified", values, reason=fee.reason, fee=fee
    )
