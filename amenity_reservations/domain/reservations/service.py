"""
Scheduling engine - the single entry point for every reservation transition.

Each mutating operation follows the same shape:

1. re-read the reservation and its amenity policy (never trust a cached copy)
2. resolve the caller's role in the reservation's community
3. ask the state machine / damage workflow for a ``Transition``
4. run conflict checks for anything that moves or extends the booked span,
   holding the amenity row lock so check + write are atomic
5. apply with a conditional update on (id, status, version) and commit
6. emit exactly one notification event, after commit

Fee previews call the same pure fee functions the transitions use.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from functools import wraps
from typing import Callable, Optional

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from ... import config
from ...models import Amenity, Reservation, User
from ...services.notification_service import emit_event
from ...shared.clock import local_now
from ...shared.enums import DamageReviewAction, ModificationStatus, ReservationStatus
from ...shared.errors import (
    ConflictError,
    InvalidStateTransition,
    NotFoundError,
    PermissionDenied,
    ReservationError,
    ValidationError,
)
from ..amenities.policy import (
    check_bookable,
    check_capacity,
    check_operating_hours,
    is_open_on,
    opening_window,
    required_approvals,
)
from ..memberships.schemas import Actor
from ..memberships.service import MembershipService
from .conflicts import TimeSlot, TimeWindow, check_conflict, find_blocking, reservation_span, span_of, time_slots
from .damage import plan_damage_assessment, plan_damage_review
from .fees import (
    DEFAULT_SCHEDULE,
    FeeQuote,
    FeeSchedule,
    calculate_cancellation_fee,
    calculate_modification_fee,
    days_until_event,
)
from .repository import ReservationRepository
from .schemas import ReservationCreate, ReservationUpdate
from .state_machine import (
    Transition,
    check_expected_status,
    is_owner,
    plan_approval,
    plan_cancellation,
    plan_completion,
    plan_modification,
    plan_modification_cancel,
    plan_modification_proposal,
    plan_modification_response,
    plan_rejection,
    proposed_schedule,
)

logger = logging.getLogger(__name__)


@dataclass
class ReservationOutcome:
    """Updated reservation plus any fee computed along the way"""

    reservation: Reservation
    fee: Optional[FeeQuote] = None
    message: str = ""


@dataclass
class DaySchedule:
    """One amenity's slot grid for a day plus the reservations that block it"""

    day: date
    amenity: Amenity
    slots: list[TimeSlot]
    blocking: list[Reservation]


def transactional(method):
    """Roll back (releasing any amenity lock) when an operation is refused"""

    @wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except ReservationError as e:
            self.db.rollback()
            logger.warning(f"⚠️ {method.__name__} refused ({e.kind}): {e.message}")
            raise

    return wrapper


def validate_schedule(event_date: date, setup: TimeWindow, party: TimeWindow, now: datetime) -> None:
    if party.start.date() != event_date:
        raise ValidationError(
            f"Party start ({party.start.isoformat()}) must fall on the reservation date ({event_date.isoformat()})"
        )
    if setup.start > party.start:
        raise ValidationError("Setup time must start no later than the party starts")
    if party.start <= now:
        raise ValidationError("Reservations can only be made for a future time")


class SchedulingEngine:
    """Service layer for the reservation lifecycle"""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = local_now,
        schedule: FeeSchedule = DEFAULT_SCHEDULE,
        background_tasks: Optional[BackgroundTasks] = None,
    ):
        self.db = db
        self.background_tasks = background_tasks
        self.clock = clock
        self.schedule = schedule
        self.repo = ReservationRepository()
        self.memberships = MembershipService(db)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self, reservation_id: int) -> Reservation:
        reservation = self.repo.get_reservation(self.db, reservation_id)
        if not reservation:
            raise NotFoundError("Reservation not found", reservationId=reservation_id)
        return reservation

    def _amenity(self, amenity_id: int, lock: bool = False) -> Amenity:
        if lock:
            amenity = self.repo.lock_amenity(self.db, amenity_id)
        else:
            amenity = self.repo.get_amenity(self.db, amenity_id)
        if not amenity:
            raise NotFoundError("Amenity not found", amenityId=amenity_id)
        return amenity

    def _actor(self, user: User, reservation: Reservation) -> Actor:
        return self.memberships.resolve_actor(user, reservation.community_id)

    def _ensure_available(
        self, amenity_id: int, window: TimeWindow, exclude_reservation_id: Optional[int] = None
    ) -> None:
        result = check_conflict(self.db, amenity_id, window, exclude_reservation_id)
        if result.conflict:
            raise ConflictError(
                "Time conflict: another reservation exists during this time period",
                conflicting_reservation_id=result.conflicting_reservation_id,
            )

    def _days_until(self, reservation: Reservation) -> float:
        return days_until_event(reservation.party_time_start, self.clock())

    def _commit(self, reservation: Reservation, transition: Transition, actor: Actor) -> Reservation:
        """Apply a planned transition; a lost race surfaces as InvalidStateTransition"""
        if not self.repo.apply_transition(self.db, reservation, transition):
            raise InvalidStateTransition(
                f"Reservation is not in expected state {transition.from_status.value}; "
                "it was changed by another request",
                reservationId=reservation.id,
            )
        self.db.commit()
        self.db.refresh(reservation)

        if transition.changes_status:
            logger.info(
                f"✅ Reservation {reservation.id} {transition.event}: "
                f"{transition.from_status.value} → {transition.to_status.value}"
            )
        else:
            logger.info(f"✅ Reservation {reservation.id} {transition.event}")

        emit_event(
            transition.event,
            reservation,
            actor.user_id,
            reason=transition.reason,
            fee=transition.fee.amount if transition.fee else None,
            background_tasks=self.background_tasks,
        )
        return reservation

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_reservation(self, reservation_id: int, user: User) -> Reservation:
        """Residents see their own reservations; staff see every reservation in the community"""
        reservation = self._load(reservation_id)
        actor = self._actor(user, reservation)
        if not (is_owner(reservation, actor) or actor.is_staff):
            raise NotFoundError("Reservation not found", reservationId=reservation_id)
        return reservation

    def list_reservations(
        self,
        user: User,
        community_id: int,
        status: Optional[ReservationStatus] = None,
        amenity_id: Optional[int] = None,
    ) -> list[Reservation]:
        actor = self.memberships.resolve_actor(user, community_id)
        owner_id = None if actor.is_staff else actor.user_id
        return self.repo.list_reservations(self.db, community_id, owner_id, status, amenity_id)

    def list_pending_damage_reviews(self, user: User, community_id: int) -> list[Reservation]:
        actor = self.memberships.resolve_actor(user, community_id)
        if not actor.is_admin:
            raise PermissionDenied("Admin access required")
        return self.repo.get_pending_damage_reviews(self.db, community_id)

    def get_availability(
        self,
        user: User,
        community_id: int,
        start_date: date,
        end_date: date,
        amenity_id: Optional[int] = None,
    ) -> list[Reservation]:
        """
        Reservations blocking any amenity of the community between two dates (inclusive).

        A booking counts when its full span reaches into the range, so a cleaning
        window running past midnight shows up on the following day too.
        """
        self.memberships.resolve_actor(user, community_id)
        if end_date < start_date:
            raise ValidationError("End date must not be before start date")
        if (end_date - start_date).days + 1 > config.AVAILABILITY_MAX_DAYS:
            raise ValidationError(f"Date range cannot exceed {config.AVAILABILITY_MAX_DAYS} days")

        window = TimeWindow(
            datetime.combine(start_date, time.min),
            datetime.combine(end_date + timedelta(days=1), time.min),
        )
        blocking = find_blocking(self.db, window, amenity_id=amenity_id, community_id=community_id)
        logger.debug(f"🔍 {len(blocking)} blocking reservations in community {community_id} {start_date} → {end_date}")
        return blocking

    def get_time_slots(self, user: User, amenity_id: int, day: date, slot_minutes: int = 30) -> DaySchedule:
        """Slot grid over the amenity's opening hours; closed days have no free slot"""
        amenity = self._amenity(amenity_id)
        self.memberships.resolve_actor(user, amenity.community_id)

        opens, closes = opening_window(amenity, day)
        if closes <= opens:
            return DaySchedule(day, amenity, [], [])

        blocking = find_blocking(self.db, TimeWindow(opens, closes), amenity_id=amenity.id)
        slots = time_slots(
            opens,
            closes,
            [reservation_span(r) for r in blocking],
            slot_minutes=slot_minutes,
            bookable=is_open_on(amenity, day),
        )
        return DaySchedule(day, amenity, slots, blocking)

    # ------------------------------------------------------------------
    # Fee previews (pure, no side effects)
    # ------------------------------------------------------------------

    def calculate_cancellation_fee(self, reservation_id: int, user: User) -> FeeQuote:
        reservation = self.get_reservation(reservation_id, user)
        amenity = self._amenity(reservation.amenity_id)
        return calculate_cancellation_fee(
            self._days_until(reservation),
            reservation.total_fee,
            reservation.total_deposit,
            enabled=amenity.cancellation_fee_enabled,
            schedule=self.schedule,
        )

    def calculate_modification_fee(self, reservation_id: int, user: User) -> FeeQuote:
        reservation = self.get_reservation(reservation_id, user)
        amenity = self._amenity(reservation.amenity_id)
        return calculate_modification_fee(
            self._days_until(reservation),
            reservation.modification_count,
            enabled=amenity.modification_fee_enabled,
            schedule=self.schedule,
        )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @transactional
    def create(self, data: ReservationCreate, user: User) -> ReservationOutcome:
        """Book an amenity. Conflict check and insert share one transaction under the amenity lock."""
        logger.info(f"📥 Creating reservation for user {user.id} on amenity {data.amenityId}")

        amenity = self._amenity(data.amenityId, lock=True)
        actor = self.memberships.resolve_actor(user, amenity.community_id)

        check_bookable(amenity)
        check_capacity(amenity, data.guestCount)

        setup = TimeWindow(data.setupTimeStart, data.setupTimeEnd)
        party = TimeWindow(data.partyTimeStart, data.partyTimeEnd)
        validate_schedule(data.date, setup, party, self.clock())

        booked = span_of(setup, party)
        check_operating_hours(amenity, booked.start, booked.end)
        self._ensure_available(amenity.id, booked)

        reservation = Reservation(
            user_id=actor.user_id,
            amenity_id=amenity.id,
            community_id=amenity.community_id,
            date=data.date,
            setup_time_start=setup.start,
            setup_time_end=setup.end,
            party_time_start=party.start,
            party_time_end=party.end,
            guest_count=data.guestCount,
            event_name=data.eventName,
            is_private=data.isPrivate,
            special_requirements=data.specialRequirements,
            status=ReservationStatus.NEW,
            version=1,
            modification_status=ModificationStatus.NONE,
            modification_count=0,
            modification_fees_total=0,
            total_fee=amenity.reservation_fee or 0,
            total_deposit=amenity.deposit or 0,
        )
        self.repo.add_reservation(self.db, reservation)
        self.db.commit()
        self.db.refresh(reservation)

        logger.info(f"✅ Reservation {reservation.id} created for amenity {amenity.id} on {data.date.isoformat()}")
        emit_event("reservation.created", reservation, actor.user_id, background_tasks=self.background_tasks)
        return ReservationOutcome(reservation, message="Reservation created successfully")

    # ------------------------------------------------------------------
    # Approval track
    # ------------------------------------------------------------------

    @transactional
    def approve(
        self,
        reservation_id: int,
        user: User,
        cleaning_time_start: Optional[datetime] = None,
        cleaning_time_end: Optional[datetime] = None,
        expected_status: Optional[ReservationStatus] = None,
    ) -> ReservationOutcome:
        reservation = self._load(reservation_id)
        actor = self._actor(user, reservation)
        check_expected_status(reservation, expected_status)

        cleaning = None
        if cleaning_time_start is not None or cleaning_time_end is not None:
            if cleaning_time_start is None or cleaning_time_end is None:
                raise ValidationError("Both cleaning start and end times are required")
            cleaning = TimeWindow(cleaning_time_start, cleaning_time_end)

        amenity = self._amenity(reservation.amenity_id, lock=cleaning is not None)
        transition = plan_approval(reservation, actor, required_approvals(amenity), self.clock(), cleaning)

        if cleaning is not None:
            span = span_of(
                TimeWindow(reservation.setup_time_start, reservation.setup_time_end),
                TimeWindow(reservation.party_time_start, reservation.party_time_end),
                cleaning,
            )
            self._ensure_available(amenity.id, span, exclude_reservation_id=reservation.id)

        self._commit(reservation, transition, actor)
        return ReservationOutcome(reservation, message=f"Reservation {reservation.status.value.replace('_', ' ').lower()}")

    @transactional
    def reject(
        self,
        reservation_id: int,
        user: User,
        reason: Optional[str] = None,
        expected_status: Optional[ReservationStatus] = None,
    ) -> ReservationOutcome:
        reservation = self._load(reservation_id)
        actor = self._actor(user, reservation)
        check_expected_status(reservation, expected_status)
        transition = plan_rejection(reservation, actor, self.clock(), reason)
        self._commit(reservation, transition, actor)
        return ReservationOutcome(reservation, message="Reservation rejected")

    # ------------------------------------------------------------------
    # Cancellation and completion
    # ------------------------------------------------------------------

    @transactional
    def cancel(
        self, reservation_id: int, user: User, expected_status: Optional[ReservationStatus] = None
    ) -> ReservationOutcome:
        reservation = self._load(reservation_id)
        actor = self._actor(user, reservation)
        check_expected_status(reservation, expected_status)
        amenity = self._amenity(reservation.amenity_id)

        now = self.clock()
        fee = calculate_cancellation_fee(
            days_until_event(reservation.party_time_start, now),
            reservation.total_fee,
            reservation.total_deposit,
            enabled=amenity.cancellation_fee_enabled,
            schedule=self.schedule,
        )
        transition = plan_cancellation(reservation, actor, fee, now)
        self._commit(reservation, transition, actor)
        return ReservationOutcome(reservation, fee, message="Reservation cancelled successfully")

    @transactional
    def complete(
        self,
        reservation_id: int,
        user: User,
        damages_found: bool = False,
        expected_status: Optional[ReservationStatus] = None,
    ) -> ReservationOutcome:
        reservation = self._load(reservation_id)
        actor = self._actor(user, reservation)
        check_expected_status(reservation, expected_status)
        now = self.clock()
        transition = plan_completion(reservation, actor, damages_found, now.date(), now)
        self._commit(reservation, transition, actor)
        message = "Reservation completed; damage assessment pending" if damages_found else "Reservation completed"
        return ReservationOutcome(reservation, message=message)

    # ------------------------------------------------------------------
    # Modifications
    # ------------------------------------------------------------------

    def _modification_changes(self, reservation: Reservation, data: ReservationUpdate) -> dict:
        """Column changes requested by the update, keeping only values that differ"""
        requested = {
            "date": data.date,
            "setup_time_start": data.setupTimeStart,
            "setup_time_end": data.setupTimeEnd,
            "party_time_start": data.partyTimeStart,
            "party_time_end": data.partyTimeEnd,
            "guest_count": data.guestCount,
            "event_name": data.eventName,
            "is_private": data.isPrivate,
            "special_requirements": data.specialRequirements,
        }
        return {
            column: value
            for column, value in requested.items()
            if value is not None and getattr(reservation, column) != value
        }

    @transactional
    def modify(self, reservation_id: int, data: ReservationUpdate, user: User) -> ReservationOutcome:
        """Resident's direct edit; priced by the modification fee schedule and re-validated in full"""
        reservation = self._load(reservation_id)
        actor = self._actor(user, reservation)
        check_expected_status(reservation, data.expectedStatus)

        changes = self._modification_changes(reservation, data)
        schedule_changed = bool(
            changes.keys() & {"date", "setup_time_start", "setup_time_end", "party_time_start", "party_time_end"}
        )
        amenity = self._amenity(reservation.amenity_id, lock=schedule_changed)

        now = self.clock()
        fee = calculate_modification_fee(
            days_until_event(reservation.party_time_start, now),
            reservation.modification_count,
            enabled=amenity.modification_fee_enabled,
            schedule=self.schedule,
        )
        transition = plan_modification(reservation, actor, changes, fee, now)

        if "guest_count" in changes:
            check_capacity(amenity, changes["guest_count"])

        if schedule_changed:
            setup = TimeWindow(
                changes.get("setup_time_start", reservation.setup_time_start),
                changes.get("setup_time_end", reservation.setup_time_end),
            )
            party = TimeWindow(
                changes.get("party_time_start", reservation.party_time_start),
                changes.get("party_time_end", reservation.party_time_end),
            )
            validate_schedule(changes.get("date", reservation.date), setup, party, now)
            booked = span_of(setup, party)
            check_operating_hours(amenity, booked.start, booked.end)

            cleaning = None
            if reservation.cleaning_time_start and reservation.cleaning_time_end:
                cleaning = TimeWindow(reservation.cleaning_time_start, reservation.cleaning_time_end).shifted(
                    party.end - reservation.party_time_end
                )
                transition.values["cleaning_time_start"] = cleaning.start
                transition.values["cleaning_time_end"] = cleaning.end

            self._ensure_available(amenity.id, span_of(setup, party, cleaning), exclude_reservation_id=reservation.id)

        self._commit(reservation, transition, actor)
        return ReservationOutcome(reservation, fee, message="Reservation updated successfully")

    @transactional
    def propose_modification(
        self,
        reservation_id: int,
        user: User,
        proposed_date: date,
        proposed_party_time_start: datetime,
        proposed_party_time_end: datetime,
        reason: Optional[str],
    ) -> ReservationOutcome:
        """Staff suggest a different date/time; live fields stay as they are until the resident accepts"""
        reservation = self._load(reservation_id)
        actor = self._actor(user, reservation)
        proposed_party = TimeWindow(proposed_party_time_start, proposed_party_time_end)
        transition = plan_modification_proposal(
            reservation, actor, proposed_date, proposed_party, reason, self.clock()
        )

        # Advisory check so staff do not propose a slot that is already taken
        amenity = self._amenity(reservation.amenity_id)
        delta = proposed_party.start - reservation.party_time_start
        setup = TimeWindow(reservation.setup_time_start, reservation.setup_time_end).shifted(delta)
        booked = span_of(setup, proposed_party)
        check_operating_hours(amenity, booked.start, booked.end)
        self._ensure_available(amenity.id, booked, exclude_reservation_id=reservation.id)

        self._commit(reservation, transition, actor)
        return ReservationOutcome(reservation, message="Modification proposed; awaiting resident response")

    @transactional
    def respond_to_modification(self, reservation_id: int, user: User, accept: bool) -> ReservationOutcome:
        reservation = self._load(reservation_id)
        actor = self._actor(user, reservation)
        transition = plan_modification_response(reservation, actor, accept)

        if accept:
            amenity = self._amenity(reservation.amenity_id, lock=True)
            moved = proposed_schedule(reservation)
            cleaning = None
            if "cleaning_time_start" in moved:
                cleaning = TimeWindow(moved["cleaning_time_start"], moved["cleaning_time_end"])
            span = span_of(
                TimeWindow(moved["setup_time_start"], moved["setup_time_end"]),
                TimeWindow(moved["party_time_start"], moved["party_time_end"]),
                cleaning,
            )
            self._ensure_available(amenity.id, span, exclude_reservation_id=reservation.id)

        self._commit(reservation, transition, actor)
        message = "Modification accepted" if accept else "Modification rejected"
        return ReservationOutcome(reservation, message=message)

    @transactional
    def cancel_modification(self, reservation_id: int, user: User) -> ReservationOutcome:
        reservation = self._load(reservation_id)
        actor = self._actor(user, reservation)
        transition = plan_modification_cancel(reservation, actor)
        self._commit(reservation, transition, actor)
        return ReservationOutcome(reservation, message="Modification proposal withdrawn")

    # ------------------------------------------------------------------
    # Damage assessment
    # ------------------------------------------------------------------

    @transactional
    def assess_damages(
        self,
        reservation_id: int,
        user: User,
        amount: Optional[float],
        description: Optional[str],
        notes: Optional[str] = None,
    ) -> ReservationOutcome:
        reservation = self._load(reservation_id)
        actor = self._actor(user, reservation)
        amenity = self._amenity(reservation.amenity_id)
        transition = plan_damage_assessment(reservation, amenity, actor, amount, description, notes, self.clock())
        self._commit(reservation, transition, actor)
        return ReservationOutcome(reservation, message="Damage assessment submitted for admin review")

    @transactional
    def review_damage_assessment(
        self,
        reservation_id: int,
        user: User,
        action: DamageReviewAction,
        amount: Optional[float] = None,
        admin_notes: Optional[str] = None,
    ) -> ReservationOutcome:
        reservation = self._load(reservation_id)
        actor = self._actor(user, reservation)
        amenity = self._amenity(reservation.amenity_id)
        transition = plan_damage_review(reservation, amenity, actor, action, amount, admin_notes, self.clock())
        self._commit(reservation, transition, actor)
        return ReservationOutcome(
            reservation, message=f"Damage assessment {reservation.damage_assessment_status.value.lower()}"
        )
