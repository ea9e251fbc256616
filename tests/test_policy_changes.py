from datetime import timedelta

import pytest
from conftest import NOW, party_start

from amenity_reservations.domain.amenities.schemas import AmenityPolicyUpdate, OperatingHours
from amenity_reservations.domain.amenities.service import AmenityPolicyService
from amenity_reservations.shared.enums import ReservationStatus
from amenity_reservations.shared.errors import NotFoundError, PermissionDenied


def janitorial_approved(factory, world, days_ahead, janitor):
    start = party_start(days_ahead)
    return factory.reservation(
        world.amenity,
        world.resident,
        start,
        start + timedelta(hours=3),
        status=ReservationStatus.JANITORIAL_APPROVED,
        version=2,
        janitorial_approved_by=janitor.id,
        janitorial_approved_at=NOW,
    )


def test_dropping_admin_approval_auto_approves_waiting_reservations(db, factory, world, events):
    waiting = [janitorial_approved(factory, world, days, world.janitor) for days in (10, 11, 12)]
    untouched = factory.reservation(world.amenity, world.resident, party_start(13), party_start(13, hour=17))

    summary = AmenityPolicyService(db).update_policy(
        world.amenity.id, AmenityPolicyUpdate(approvalRequired=False), world.admin
    )

    assert summary.auto_approved_count == 3
    assert summary.auto_approved_ids == [r.id for r in waiting]
    assert summary.unconfirmed_count == 0
    assert summary.amenity.approval_required is False

    for reservation in waiting:
        db.refresh(reservation)
        assert reservation.status == ReservationStatus.FULLY_APPROVED
        assert reservation.version == 3
    db.refresh(untouched)
    assert untouched.status == ReservationStatus.NEW

    assert [e.type for e in events] == ["reservation.auto_approved"] * 3
    assert events[0].payload["reason"] == "Approval requirement removed from amenity"


def test_dropping_every_requirement_advances_new_reservations(db, factory, world):
    pending = factory.reservation(world.amenity, world.resident, party_start(10), party_start(10, hour=17))
    summary = AmenityPolicyService(db).update_policy(
        world.amenity.id,
        AmenityPolicyUpdate(janitorialRequired=False, approvalRequired=False),
        world.admin,
    )
    assert summary.auto_approved_ids == [pending.id]
    db.refresh(pending)
    assert pending.status == ReservationStatus.FULLY_APPROVED


def test_requiring_janitorial_sends_confirmed_reservations_back(db, factory, world, events):
    amenity = factory.amenity(world.community, janitorial_required=False)
    start = party_start(20)
    confirmed = factory.reservation(
        amenity,
        world.resident,
        start,
        start + timedelta(hours=3),
        status=ReservationStatus.FULLY_APPROVED,
        admin_approved_by=world.admin.id,
        admin_approved_at=NOW,
    )

    summary = AmenityPolicyService(db).update_policy(
        amenity.id, AmenityPolicyUpdate(janitorialRequired=True), world.admin
    )

    assert summary.unconfirmed_ids == [confirmed.id]
    assert summary.auto_approved_count == 0
    db.refresh(confirmed)
    assert confirmed.status == ReservationStatus.JANITORIAL_APPROVED
    assert events[-1].type == "reservation.unconfirmed"
    assert "janitorial" in events[-1].payload["reason"]


def test_janitor_can_reconfirm_after_tightening(db, factory, world, engine):
    amenity = factory.amenity(world.community, janitorial_required=False)
    start = party_start(20)
    confirmed = factory.reservation(
        amenity,
        world.resident,
        start,
        start + timedelta(hours=3),
        status=ReservationStatus.FULLY_APPROVED,
        admin_approved_by=world.admin.id,
        admin_approved_at=NOW,
    )
    AmenityPolicyService(db).update_policy(amenity.id, AmenityPolicyUpdate(janitorialRequired=True), world.admin)

    outcome = engine.approve(confirmed.id, world.janitor)
    assert outcome.reservation.status == ReservationStatus.FULLY_APPROVED
    assert outcome.reservation.janitorial_approved_by == world.janitor.id


def test_other_policy_fields_do_not_touch_reservations(db, factory, world, events):
    janitorial_approved(factory, world, 10, world.janitor)
    summary = AmenityPolicyService(db).update_policy(
        world.amenity.id,
        AmenityPolicyUpdate(
            capacity=80,
            daysOfOperation=["Saturday", "sunday"],
            hoursOfOperation=OperatingHours(open="08:00", close="23:00"),
        ),
        world.admin,
    )
    assert summary.auto_approved_count == 0
    assert summary.unconfirmed_count == 0
    assert summary.amenity.capacity == 80
    assert summary.amenity.days_of_operation == ["saturday", "sunday"]
    assert summary.amenity.hours_of_operation == {"open": "08:00", "close": "23:00", "open24Hours": False}
    assert events == []


def test_only_admins_edit_policy(db, world):
    service = AmenityPolicyService(db)
    for user in (world.janitor, world.resident):
        with pytest.raises(PermissionDenied):
            service.update_policy(world.amenity.id, AmenityPolicyUpdate(approvalRequired=False), user)
    db.refresh(world.amenity)
    assert world.amenity.approval_required is True

    with pytest.raises(NotFoundError):
        service.update_policy(9999, AmenityPolicyUpdate(approvalRequired=False), world.admin)


def test_residents_only_list_active_amenities(db, factory, world):
    factory.amenity(world.community, name="Old Gym", is_active=False)
    service = AmenityPolicyService(db)
    assert len(service.list_amenities(world.community.id, world.resident)) == 1
    assert len(service.list_amenities(world.community.id, world.admin)) == 2
