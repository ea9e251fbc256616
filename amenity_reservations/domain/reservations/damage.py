"""
Damage assessment sub-workflow, scoped to COMPLETED reservations.

    None ──submit(janitorial/admin)──▶ PENDING ──review(admin)──▶ APPROVED | ADJUSTED | DENIED

Charges are bounded by the amenity deposit. A denial never charges.
"""

from datetime import datetime
from typing import Optional

from ...models import Amenity, Reservation
from ...shared.enums import DamageAssessmentStatus, DamageReviewAction, ReservationStatus
from ...shared.errors import InvalidStateTransition, PermissionDenied, ValidationError
from ...shared.validators import clean_optional_text
from ..memberships.schemas import Actor
from .state_machine import Transition


def damage_ceiling(reservation: Reservation, amenity: Optional[Amenity]) -> float:
    """Current amenity deposit, or the deposit captured at booking when the amenity has none"""
    if amenity is not None and amenity.deposit:
        return float(amenity.deposit)
    return float(reservation.total_deposit or 0)


def validate_damage_amount(amount: Optional[float], ceiling: float, label: str = "Damage amount") -> float:
    if amount is None or amount <= 0:
        raise ValidationError(f"{label} must be greater than 0")
    if amount > ceiling:
        raise ValidationError(f"{label} cannot exceed potential damage fee of ${ceiling:,.2f}")
    return round(float(amount), 2)


def plan_damage_assessment(
    reservation: Reservation,
    amenity: Optional[Amenity],
    actor: Actor,
    amount: Optional[float],
    description: Optional[str],
    notes: Optional[str],
    now: datetime,
) -> Transition:
    if not actor.is_staff:
        raise PermissionDenied("Janitorial access required")
    if reservation.status != ReservationStatus.COMPLETED:
        raise InvalidStateTransition("Reservation must be completed before assessing damages")
    if not reservation.damage_assessment_pending:
        raise InvalidStateTransition("No damages were reported when this reservation was completed")
    if reservation.damage_assessment_status is not None:
        raise InvalidStateTransition(
            f"Damage assessment already submitted (status: {reservation.damage_assessment_status.value})"
        )

    charge = validate_damage_amount(amount, damage_ceiling(reservation, amenity))
    description = clean_optional_text(description)
    if not description:
        raise ValidationError("Damage description is required")

    return Transition(
        reservation.status,
        reservation.status,
        "reservation.damage_assessed",
        {
            "damage_assessed": True,
            "damage_assessment_status": DamageAssessmentStatus.PENDING,
            "damage_charge_amount": charge,
            "damage_description": description,
            "damage_notes": clean_optional_text(notes),
            "damage_assessed_by": actor.user_id,
            "damage_assessed_at": now,
        },
        reason=description,
    )


def plan_damage_review(
    reservation: Reservation,
    amenity: Optional[Amenity],
    actor: Actor,
    action: DamageReviewAction,
    amount: Optional[float],
    admin_notes: Optional[str],
    now: datetime,
) -> Transition:
    if not actor.is_admin:
        raise PermissionDenied("Admin access required")
    if (
        reservation.damage_assessment_status != DamageAssessmentStatus.PENDING
        or not reservation.damage_assessment_pending
    ):
        raise InvalidStateTransition("No pending damage assessment found for this reservation")

    values = {
        "damage_reviewed_by": actor.user_id,
        "damage_reviewed_at": now,
        "damage_assessment_pending": False,
        "admin_damage_notes": clean_optional_text(admin_notes),
    }

    if action == DamageReviewAction.APPROVE:
        values["damage_assessment_status"] = DamageAssessmentStatus.APPROVED
        values["damage_charge"] = reservation.damage_charge_amount
    elif action == DamageReviewAction.ADJUST:
        adjusted = validate_damage_amount(
            amount, damage_ceiling(reservation, amenity), label="Adjusted amount"
        )
        values["damage_assessment_status"] = DamageAssessmentStatus.ADJUSTED
        values["damage_charge_adjusted"] = adjusted
        values["damage_charge"] = adjusted
    else:
        values["damage_assessment_status"] = DamageAssessmentStatus.DENIED
        values["damage_charge"] = None

    return Transition(
        reservation.status,
        reservation.status,
        "reservation.damage_reviewed",
        values,
        reason=f"Damage assessment {values['damage_assessment_status'].value.lower()}",
    )
