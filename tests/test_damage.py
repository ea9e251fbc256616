from datetime import datetime

import pytest

from amenity_reservations.domain.memberships.schemas import Actor
from amenity_reservations.domain.reservations.damage import (
    damage_ceiling,
    plan_damage_assessment,
    plan_damage_review,
)
from amenity_reservations.models import Amenity, Reservation
from amenity_reservations.shared.enums import (
    DamageAssessmentStatus,
    DamageReviewAction,
    MemberRole,
    ReservationStatus,
)
from amenity_reservations.shared.errors import InvalidStateTransition, PermissionDenied, ValidationError

NOW = datetime(2025, 6, 21, 10, 0)
RESIDENT = Actor(user_id=1, community_id=1, role=MemberRole.RESIDENT)
JANITOR = Actor(user_id=3, community_id=1, role=MemberRole.JANITORIAL)
ADMIN = Actor(user_id=4, community_id=1, role=MemberRole.ADMIN)
AMENITY = Amenity(id=1, deposit=200.0)


def completed(**overrides) -> Reservation:
    values = {
        "id": 1,
        "user_id": RESIDENT.user_id,
        "status": ReservationStatus.COMPLETED,
        "total_deposit": 200.0,
        "damage_assessment_pending": True,
        "damage_assessed": False,
        "damage_assessment_status": None,
        "damage_charge_amount": None,
    }
    values.update(overrides)
    return Reservation(**values)


def assessed(amount: float = 150.0) -> Reservation:
    return completed(
        damage_assessed=True,
        damage_assessment_status=DamageAssessmentStatus.PENDING,
        damage_charge_amount=amount,
    )


def test_submission_records_pending_charge():
    transition = plan_damage_assessment(completed(), AMENITY, JANITOR, 150, " broken chair ", None, NOW)
    assert transition.event == "reservation.damage_assessed"
    assert transition.to_status == ReservationStatus.COMPLETED
    assert transition.values["damage_assessment_status"] == DamageAssessmentStatus.PENDING
    assert transition.values["damage_charge_amount"] == 150
    assert transition.values["damage_description"] == "broken chair"
    assert transition.values["damage_assessed"] is True


@pytest.mark.parametrize("amount", [0, -5, 200.01, None])
def test_submission_amount_bounded_by_deposit(amount):
    with pytest.raises(ValidationError):
        plan_damage_assessment(completed(), AMENITY, JANITOR, amount, "broken chair", None, NOW)


def test_full_deposit_is_allowed():
    transition = plan_damage_assessment(completed(), AMENITY, ADMIN, 200, "broken table", None, NOW)
    assert transition.values["damage_charge_amount"] == 200


def test_submission_preconditions():
    with pytest.raises(PermissionDenied):
        plan_damage_assessment(completed(), AMENITY, RESIDENT, 100, "broken chair", None, NOW)
    with pytest.raises(InvalidStateTransition):
        plan_damage_assessment(
            completed(status=ReservationStatus.FULLY_APPROVED), AMENITY, JANITOR, 100, "broken chair", None, NOW
        )
    with pytest.raises(InvalidStateTransition):
        plan_damage_assessment(
            completed(damage_assessment_pending=False), AMENITY, JANITOR, 100, "broken chair", None, NOW
        )
    with pytest.raises(InvalidStateTransition):
        plan_damage_assessment(assessed(), AMENITY, JANITOR, 100, "broken chair", None, NOW)
    with pytest.raises(ValidationError):
        plan_damage_assessment(completed(), AMENITY, JANITOR, 100, "   ", None, NOW)


def test_review_approve_uses_submitted_amount():
    transition = plan_damage_review(assessed(), AMENITY, ADMIN, DamageReviewAction.APPROVE, None, "ok", NOW)
    assert transition.values["damage_assessment_status"] == DamageAssessmentStatus.APPROVED
    assert transition.values["damage_charge"] == 150
    assert transition.values["damage_assessment_pending"] is False
    assert transition.values["admin_damage_notes"] == "ok"


def test_review_adjust_sets_new_amount():
    transition = plan_damage_review(assessed(), AMENITY, ADMIN, DamageReviewAction.ADJUST, 100, None, NOW)
    assert transition.values["damage_assessment_status"] == DamageAssessmentStatus.ADJUSTED
    assert transition.values["damage_charge_adjusted"] == 100
    assert transition.values["damage_charge"] == 100

    with pytest.raises(ValidationError):
        plan_damage_review(assessed(), AMENITY, ADMIN, DamageReviewAction.ADJUST, None, None, NOW)
    with pytest.raises(ValidationError):
        plan_damage_review(assessed(), AMENITY, ADMIN, DamageReviewAction.ADJUST, 250, None, NOW)


def test_review_deny_never_charges():
    transition = plan_damage_review(assessed(), AMENITY, ADMIN, DamageReviewAction.DENY, 100, None, NOW)
    assert transition.values["damage_assessment_status"] == DamageAssessmentStatus.DENIED
    assert transition.values["damage_charge"] is None


def test_review_requires_admin_and_pending_assessment():
    with pytest.raises(PermissionDenied):
        plan_damage_review(assessed(), AMENITY, JANITOR, DamageReviewAction.APPROVE, None, None, NOW)
    with pytest.raises(InvalidStateTransition):
        plan_damage_review(completed(), AMENITY, ADMIN, DamageReviewAction.APPROVE, None, None, NOW)

    reviewed = completed(
        damage_assessment_pending=False,
        damage_assessment_status=DamageAssessmentStatus.APPROVED,
        damage_charge_amount=150,
    )
    with pytest.raises(InvalidStateTransition):
        plan_damage_review(reviewed, AMENITY, ADMIN, DamageReviewAction.DENY, None, None, NOW)


def test_ceiling_falls_back_to_booking_deposit():
    assert damage_ceiling(completed(), AMENITY) == 200
    assert damage_ceiling(completed(total_deposit=120.0), Amenity(id=2, deposit=0)) == 120
    assert damage_ceiling(completed(total_deposit=120.0), None) == 120
