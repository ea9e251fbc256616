"""
Conflict detection and availability for amenity bookings.

A reservation blocks its amenity for the whole span from the earliest of its
setup/party/cleaning windows to the latest of them. Spans are half-open
``[start, end)``, so back-to-back bookings that merely touch are allowed.
Comparisons always use full timestamps because cleaning may run past midnight.
The same blocking rule drives the availability calendar and the day's time slots.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session, joinedload

from ...models import Reservation
from ...shared.enums import ACTIVE_STATUSES
from ...shared.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end <= self.start:
            raise ValidationError(
                f"Window end ({self.end.isoformat()}) must be after its start ({self.start.isoformat()})"
            )

    def overlaps(self, other: "TimeWindow") -> bool:
        return windows_overlap(self, other)

    def shifted(self, delta) -> "TimeWindow":
        return TimeWindow(self.start + delta, self.end + delta)


@dataclass(frozen=True)
class ConflictResult:
    conflict: bool
    conflicting_reservation_id: Optional[int] = None


@dataclass(frozen=True)
class TimeSlot:
    time: str
    start: datetime
    end: datetime
    available: bool


def windows_overlap(a: TimeWindow, b: TimeWindow) -> bool:
    """Half-open interval test: touching endpoints do not overlap"""
    return a.start < b.end and b.start < a.end


def span_of(*windows: Optional[TimeWindow]) -> TimeWindow:
    """Union span of the given windows (missing ones are skipped)"""
    present = [w for w in windows if w is not None]
    if not present:
        raise ValidationError("At least one time window is required")
    return TimeWindow(min(w.start for w in present), max(w.end for w in present))


def reservation_span(reservation: Reservation) -> TimeWindow:
    """Full unavailability span of a stored reservation, cleaning included"""
    cleaning = None
    if reservation.cleaning_time_start and reservation.cleaning_time_end:
        cleaning = TimeWindow(reservation.cleaning_time_start, reservation.cleaning_time_end)
    return span_of(
        TimeWindow(reservation.setup_time_start, reservation.setup_time_end),
        TimeWindow(reservation.party_time_start, reservation.party_time_end),
        cleaning,
    )


def candidate_query(
    db: Session,
    window: TimeWindow,
    amenity_id: Optional[int] = None,
    community_id: Optional[int] = None,
    exclude_reservation_id: Optional[int] = None,
) -> Query:
    """
    Active reservations whose raw timestamps can reach into ``window``.

    Starts are bounded by the setup start (always the earliest window); ends by
    whichever of setup/party/cleaning finishes last, so past bookings are never
    loaded. Callers still decide on the union span.
    """
    query = db.query(Reservation).filter(
        Reservation.status.in_(ACTIVE_STATUSES),
        Reservation.setup_time_start < window.end,
        or_(
            Reservation.party_time_end > window.start,
            Reservation.setup_time_end > window.start,
            Reservation.cleaning_time_end > window.start,
        ),
    )
    if amenity_id is not None:
        query = query.filter(Reservation.amenity_id == amenity_id)
    if community_id is not None:
        query = query.filter(Reservation.community_id == community_id)
    if exclude_reservation_id is not None:
        query = query.filter(Reservation.id != exclude_reservation_id)
    return query


def find_blocking(
    db: Session,
    window: TimeWindow,
    amenity_id: Optional[int] = None,
    community_id: Optional[int] = None,
    exclude_reservation_id: Optional[int] = None,
) -> list[Reservation]:
    """Reservations whose full span (cleaning included) overlaps ``window``, earliest first"""
    candidates = (
        candidate_query(db, window, amenity_id, community_id, exclude_reservation_id)
        .options(joinedload(Reservation.amenity))
        .order_by(Reservation.setup_time_start.asc(), Reservation.id.asc())
        .all()
    )
    return [r for r in candidates if windows_overlap(window, reservation_span(r))]


def check_conflict(
    db: Session,
    amenity_id: int,
    window: TimeWindow,
    exclude_reservation_id: Optional[int] = None,
) -> ConflictResult:
    """
    Check a proposed span against every active reservation on the amenity.

    Must run inside the same transaction that inserts or moves the booking.
    """
    blocking = find_blocking(db, window, amenity_id=amenity_id, exclude_reservation_id=exclude_reservation_id)
    if not blocking:
        return ConflictResult(conflict=False)

    existing = blocking[0]
    logger.info(
        f"⚠️ Conflict on amenity {amenity_id}: {window.start.isoformat()} - "
        f"{window.end.isoformat()} overlaps reservation {existing.id}"
    )
    return ConflictResult(conflict=True, conflicting_reservation_id=existing.id)


def time_slots(
    day_start: datetime,
    day_end: datetime,
    blocked: list[TimeWindow],
    slot_minutes: int = 30,
    bookable: bool = True,
) -> list[TimeSlot]:
    """Fixed-length slots from ``day_start`` up to ``day_end``, each flagged free or blocked"""
    if slot_minutes <= 0:
        raise ValidationError("Slot length must be a positive number of minutes")

    step = timedelta(minutes=slot_minutes)
    slots = []
    cursor = day_start
    while cursor + step <= day_end:
        slot = TimeWindow(cursor, cursor + step)
        available = bookable and not any(windows_overlap(slot, b) for b in blocked)
        slots.append(TimeSlot(time=cursor.strftime("%H:%M"), start=slot.start, end=slot.end, available=available))
        cursor += step
    return slots
