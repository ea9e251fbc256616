"""
Cancellation and modification fee schedules.

Everything here is pure: the current time is always passed in, and the same
inputs always yield the same ``FeeQuote``. The ``reason`` string is shown to the
resident before they confirm, so it must be stable.
"""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from ... import config

SECONDS_PER_DAY = 86400


class FeeQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: float
    reason: str


@dataclass(frozen=True)
class FeeSchedule:
    cancellation_admin_fee: float = config.CANCELLATION_ADMIN_FEE
    full_refund_days: int = config.CANCELLATION_FULL_REFUND_DAYS
    admin_fee_min_days: int = config.CANCELLATION_ADMIN_FEE_MIN_DAYS
    modification_fee: float = config.MODIFICATION_FEE
    free_modification_window_days: int = config.MODIFICATION_FREE_WINDOW_DAYS


DEFAULT_SCHEDULE = FeeSchedule()


def days_until_event(event_start: datetime, now: datetime) -> float:
    """Fractional days from ``now`` until the event starts (negative once it has started)"""
    return (event_start - now).total_seconds() / SECONDS_PER_DAY


def _money(amount: float) -> str:
    return f"${amount:,.2f}"


def calculate_cancellation_fee(
    days_until: float,
    reservation_fee: float,
    deposit: float,
    enabled: bool = True,
    schedule: FeeSchedule = DEFAULT_SCHEDULE,
) -> FeeQuote:
    """
    Tiered cancellation fee:

    - more than ``full_refund_days`` out: full refund
    - ``admin_fee_min_days`` to ``full_refund_days`` inclusive: flat admin fee
    - under ``admin_fee_min_days``: reservation fee and deposit forfeited
    - event already started (no-show): reservation fee forfeited
    """
    if not enabled:
        return FeeQuote(amount=0.0, reason="Cancellation fees are not enabled for this amenity")

    reservation_fee = float(reservation_fee or 0)
    deposit = float(deposit or 0)

    if days_until <= 0:
        return FeeQuote(
            amount=round(reservation_fee, 2),
            reason=f"Reservation date has passed: reservation fee of {_money(reservation_fee)} is forfeited",
        )
    if days_until > schedule.full_refund_days:
        return FeeQuote(
            amount=0.0,
            reason=f"Cancelled more than {schedule.full_refund_days} days before the event: full refund",
        )
    if days_until >= schedule.admin_fee_min_days:
        return FeeQuote(
            amount=round(schedule.cancellation_admin_fee, 2),
            reason=(
                f"Cancelled {schedule.admin_fee_min_days}-{schedule.full_refund_days} days before the event: "
                f"{_money(schedule.cancellation_admin_fee)} administrative fee"
            ),
        )
    forfeited = reservation_fee + deposit
    return FeeQuote(
        amount=round(forfeited, 2),
        reason=(
            f"Cancelled less than {schedule.admin_fee_min_days} days before the event: "
            f"reservation fee and deposit ({_money(forfeited)}) are forfeited"
        ),
    )


def calculate_modification_fee(
    days_until: float,
    modification_count: int,
    enabled: bool = True,
    schedule: FeeSchedule = DEFAULT_SCHEDULE,
) -> FeeQuote:
    """First change made well ahead of the event is free; every other change costs the flat fee"""
    if not enabled:
        return FeeQuote(amount=0.0, reason="Modification fees are not enabled for this amenity")

    fee = round(schedule.modification_fee, 2)
    window = schedule.free_modification_window_days

    if modification_count >= 1:
        return FeeQuote(
            amount=fee,
            reason=(
                f"Modification #{modification_count + 1}: {_money(fee)} fee applies to every change "
                "after the first"
            ),
        )
    if days_until <= window:
        return FeeQuote(
            amount=fee,
            reason=f"Modification made {window} days or less before the event: {_money(fee)} fee",
        )
    return FeeQuote(
        amount=0.0,
        reason=f"First modification more than {window} days before the event: no fee",
    )
