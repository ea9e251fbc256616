"""Amenity policy rules consumed by the scheduling engine"""

from datetime import date, datetime, time, timedelta
from typing import Optional

from ...models import Amenity
from ...shared.enums import ApprovalStep
from ...shared.errors import PolicyViolation

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# Day used for time slots when an amenity publishes no opening hours
DEFAULT_DAY_OPENS = time(6, 0)
DEFAULT_DAY_CLOSES = time(23, 0)


def required_approvals(amenity: Amenity) -> tuple[ApprovalStep, ...]:
    """
    Ordered approval sequence demanded by the amenity's current policy.

    Evaluated at the time of each transition, never cached on the reservation.
    """
    steps = []
    if amenity.janitorial_required:
        steps.append(ApprovalStep.JANITORIAL)
    if amenity.approval_required:
        steps.append(ApprovalStep.ADMIN)
    return tuple(steps)


def check_bookable(amenity: Amenity) -> None:
    if not amenity.is_active:
        raise PolicyViolation(f"{amenity.name} is not currently accepting reservations")


def check_capacity(amenity: Amenity, guest_count: int) -> None:
    if guest_count > amenity.capacity:
        raise PolicyViolation(
            f"Guest count ({guest_count}) exceeds amenity capacity ({amenity.capacity})"
        )


def _parse_clock(value: str) -> time:
    hours, minutes = value.split(":")[:2]
    return time(int(hours), int(minutes))


def check_operating_hours(amenity: Amenity, start: datetime, end: datetime) -> None:
    """
    Booked time (setup through party end) must fall on an operating day and
    inside the opening hours. Cleaning time is staff time and is not checked.
    """
    days: Optional[list] = amenity.days_of_operation
    if days:
        allowed = {d.lower() for d in days}
        weekday = WEEKDAYS[start.weekday()]
        if weekday not in allowed:
            raise PolicyViolation(f"{amenity.name} is not open on {weekday.capitalize()}s")

    hours: Optional[dict] = amenity.hours_of_operation
    if not hours or hours.get("open24Hours"):
        return

    opens = _parse_clock(hours["open"])
    closes = _parse_clock(hours["close"])
    if start.date() != end.date() and not (end.time() == time(0, 0) and closes == time(0, 0)):
        raise PolicyViolation(f"{amenity.name} bookings cannot run past closing time")
    if start.time() < opens:
        raise PolicyViolation(
            f"{amenity.name} opens at {opens.strftime('%H:%M')}; booking starts at {start.strftime('%H:%M')}"
        )
    if closes != time(0, 0) and end.time() > closes:
        raise PolicyViolation(
            f"{amenity.name} closes at {closes.strftime('%H:%M')}; booking ends at {end.strftime('%H:%M')}"
        )


def is_open_on(amenity: Amenity, day: date) -> bool:
    if not amenity.is_active:
        return False
    days: Optional[list] = amenity.days_of_operation
    return not days or WEEKDAYS[day.weekday()] in {d.lower() for d in days}


def opening_window(amenity: Amenity, day: date) -> tuple[datetime, datetime]:
    """Opening and closing timestamps for ``day``; a 00:00 close means midnight after"""
    hours: Optional[dict] = amenity.hours_of_operation
    if hours and hours.get("open24Hours"):
        opens, closes = time(0, 0), time(0, 0)
    elif hours and hours.get("open") and hours.get("close"):
        opens, closes = _parse_clock(hours["open"]), _parse_clock(hours["close"])
    else:
        opens, closes = DEFAULT_DAY_OPENS, DEFAULT_DAY_CLOSES

    start = datetime.combine(day, opens)
    end = datetime.combine(day, closes)
    if closes == time(0, 0):
        end += timedelta(days=1)
    return start, end
