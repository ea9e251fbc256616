import random
from datetime import datetime, timedelta

import pytest

from amenity_reservations.domain.reservations.conflicts import (
    TimeWindow,
    candidate_query,
    check_conflict,
    find_blocking,
    reservation_span,
    span_of,
    time_slots,
    windows_overlap,
)
from amenity_reservations.shared.enums import ReservationStatus
from amenity_reservations.shared.errors import ValidationError

BASE = datetime(2025, 7, 4, 0, 0)


def at(minutes: int) -> datetime:
    return BASE + timedelta(minutes=minutes)


def window(start: int, end: int) -> TimeWindow:
    return TimeWindow(at(start), at(end))


def test_window_must_end_after_start():
    with pytest.raises(ValidationError):
        window(60, 60)
    with pytest.raises(ValidationError):
        window(60, 30)


def test_touching_windows_do_not_overlap():
    assert not windows_overlap(window(0, 60), window(60, 120))
    assert not windows_overlap(window(60, 120), window(0, 60))


def test_contained_and_partial_windows_overlap():
    assert windows_overlap(window(0, 120), window(30, 60))
    assert windows_overlap(window(0, 60), window(59, 120))


def test_span_of_skips_missing_windows():
    span = span_of(window(60, 120), None, window(300, 360))
    assert span == window(60, 360)
    with pytest.raises(ValidationError):
        span_of(None)


def _occupied(span: TimeWindow) -> set:
    minutes = int((span.end - span.start).total_seconds() // 60)
    return {span.start + timedelta(minutes=m) for m in range(minutes)}


def _random_booking(rng: random.Random):
    """(setup, party, cleaning-or-None) windows as minute offsets across two days"""
    setup_start = rng.randrange(0, 2 * 24 * 60, 15)
    setup_len = rng.choice([15, 30, 60])
    party_len = rng.choice([60, 120, 180])
    setup = window(setup_start, setup_start + setup_len)
    party_start = setup.end + timedelta(minutes=rng.choice([0, 0, 15]))
    party = TimeWindow(party_start, party_start + timedelta(minutes=party_len))
    cleaning = None
    if rng.random() < 0.5:
        gap = timedelta(minutes=rng.choice([0, 30, 60]))
        cleaning = TimeWindow(party.end + gap, party.end + gap + timedelta(hours=2))
    return setup, party, cleaning


def test_overlap_matches_brute_force_oracle():
    rng = random.Random(20250704)
    for _ in range(500):
        a = span_of(*_random_booking(rng))
        b = span_of(*_random_booking(rng))
        expected = bool(_occupied(a) & _occupied(b))
        assert windows_overlap(a, b) == expected
        assert windows_overlap(b, a) == expected


def test_check_conflict_matches_oracle_against_stored_reservations(db, factory, world):
    rng = random.Random(7)
    for _ in range(60):
        amenity = factory.amenity(world.community)
        setup, party, cleaning = _random_booking(rng)
        existing = factory.reservation(
            amenity,
            world.resident,
            party.start,
            party.end,
            setup_start=setup.start,
            cleaning=(cleaning.start, cleaning.end) if cleaning else None,
        )
        # Setup in storage always ends at party start
        stored_span = reservation_span(existing)

        candidate = span_of(*_random_booking(rng))
        expected = bool(_occupied(stored_span) & _occupied(candidate))

        result = check_conflict(db, amenity.id, candidate)
        assert result.conflict == expected
        assert result.conflicting_reservation_id == (existing.id if expected else None)


def test_cleaning_window_blocks_past_midnight(db, factory, world):
    existing = factory.reservation(
        world.amenity,
        world.resident,
        at(20 * 60),
        at(23 * 60),
        cleaning=(at(23 * 60), at(25 * 60)),
    )
    early_next_day = window(24 * 60 + 30, 26 * 60)
    result = check_conflict(db, world.amenity.id, early_next_day)
    assert result.conflict
    assert result.conflicting_reservation_id == existing.id

    after_cleaning = window(25 * 60, 27 * 60)
    assert not check_conflict(db, world.amenity.id, after_cleaning).conflict


def test_cancelled_reservations_do_not_block(db, factory, world):
    factory.reservation(world.amenity, world.resident, at(600), at(780), status=ReservationStatus.CANCELLED)
    assert not check_conflict(db, world.amenity.id, window(600, 700)).conflict


def test_completed_reservations_still_block(db, factory, world):
    factory.reservation(world.amenity, world.resident, at(600), at(780), status=ReservationStatus.COMPLETED)
    assert check_conflict(db, world.amenity.id, window(600, 700)).conflict


def test_excluded_reservation_and_other_amenities_are_ignored(db, factory, world):
    existing = factory.reservation(world.amenity, world.resident, at(600), at(780))
    assert not check_conflict(db, world.amenity.id, window(600, 700), exclude_reservation_id=existing.id).conflict

    pool = factory.amenity(world.community, name="Pool")
    assert not check_conflict(db, pool.id, window(600, 700)).conflict


def test_candidates_exclude_finished_and_cancelled_bookings(db, factory, world):
    factory.reservation(world.amenity, world.resident, at(60), at(180))
    factory.reservation(world.amenity, world.resident, at(600), at(780), status=ReservationStatus.CANCELLED)
    cleaning_late = factory.reservation(
        world.amenity, world.resident, at(300), at(480), cleaning=(at(480), at(720))
    )
    upcoming = factory.reservation(world.amenity, world.resident, at(900), at(1000))

    candidates = candidate_query(db, window(600, 700), amenity_id=world.amenity.id).all()
    assert [r.id for r in candidates] == [cleaning_late.id]

    # Setup for the upcoming booking starts at minute 840
    assert [r.id for r in find_blocking(db, window(600, 840), amenity_id=world.amenity.id)] == [cleaning_late.id]
    assert [r.id for r in find_blocking(db, window(600, 841), amenity_id=world.amenity.id)] == [
        cleaning_late.id,
        upcoming.id,
    ]


def test_time_slots_flag_blocked_half_hours():
    slots = time_slots(at(540), at(720), [window(600, 660)])
    assert [(s.time, s.available) for s in slots] == [
        ("09:00", True),
        ("09:30", True),
        ("10:00", False),
        ("10:30", False),
        ("11:00", True),
        ("11:30", True),
    ]
    assert slots[-1].end == at(720)


def test_time_slots_stop_before_a_partial_slot_and_honour_closed_days():
    slots = time_slots(at(540), at(640), [], slot_minutes=45)
    assert [s.time for s in slots] == ["09:00", "09:45"]
    assert not any(s.available for s in time_slots(at(540), at(720), [], bookable=False))
    with pytest.raises(ValidationError):
        time_slots(at(540), at(720), [], slot_minutes=0)
