"""
Reservation Notification Service
Emits one event per committed reservation transition to the notification collaborators
(email/SMS fan-out lives outside this service). Delivery is fire-and-forget: a failing
handler is logged and never undoes or blocks the transition that triggered it.
"""

import asyncio
import logging
from datetime import date, datetime
from enum import Enum
from typing import Callable, Optional

import httpx
from fastapi import BackgroundTasks

from .. import config
from ..models import Reservation

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, dict], None]

_handlers: list[EventHandler] = []

# Strong references to webhook deliveries scheduled outside a request
_pending_deliveries: set = set()

SNAPSHOT_FIELDS = (
    "id",
    "user_id",
    "amenity_id",
    "community_id",
    "date",
    "setup_time_start",
    "setup_time_end",
    "party_time_start",
    "party_time_end",
    "cleaning_time_start",
    "cleaning_time_end",
    "guest_count",
    "event_name",
    "status",
    "modification_status",
    "modification_count",
    "proposed_date",
    "proposed_party_time_start",
    "proposed_party_time_end",
    "total_fee",
    "total_deposit",
    "cancellation_fee",
    "damage_assessment_status",
    "damage_charge_amount",
    "damage_charge",
)


def subscribe(handler: EventHandler) -> None:
    """Register a handler called with (event_type, payload) for every event"""
    if handler not in _handlers:
        _handlers.append(handler)


def unsubscribe(handler: EventHandler) -> None:
    if handler in _handlers:
        _handlers.remove(handler)


def _jsonable(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def reservation_snapshot(reservation: Reservation) -> dict:
    return {name: _jsonable(getattr(reservation, name, None)) for name in SNAPSHOT_FIELDS}


def build_payload(
    reservation: Reservation,
    actor_id: Optional[int],
    reason: Optional[str] = None,
    fee: Optional[float] = None,
) -> dict:
    payload = {"reservation": reservation_snapshot(reservation), "actorId": actor_id}
    if reason:
        payload["reason"] = reason
    if fee is not None:
        payload["fee"] = fee
    return payload


def emit_event(
    event_type: str,
    reservation: Reservation,
    actor_id: Optional[int],
    reason: Optional[str] = None,
    fee: Optional[float] = None,
    background_tasks: Optional[BackgroundTasks] = None,
) -> None:
    """
    Dispatch an event to every subscribed handler, then queue the webhook.

    In-process handlers run inline. Inside a request the webhook POST is attached
    to the response's background tasks; under a running loop it becomes a task.
    """
    payload = build_payload(reservation, actor_id, reason, fee)
    logger.info(f"📣 {event_type} reservation={reservation.id} actor={actor_id}")

    for handler in list(_handlers):
        try:
            handler(event_type, payload)
        except Exception as e:
            logger.error(f"❌ Notification handler {getattr(handler, '__name__', handler)} failed for {event_type}: {e}")

    if config.NOTIFICATION_WEBHOOK_URL:
        dispatch_webhook(event_type, payload, background_tasks)


def dispatch_webhook(event_type: str, payload: dict, background_tasks: Optional[BackgroundTasks] = None) -> None:
    if background_tasks is not None:
        background_tasks.add_task(deliver_webhook, event_type, payload)
        logger.debug(f"📤 Webhook for {event_type} queued after response")
        return

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        # No loop (CLI scripts, sync callers outside a request)
        asyncio.run(deliver_webhook(event_type, payload))
        return

    task = loop.create_task(deliver_webhook(event_type, payload))
    _pending_deliveries.add(task)
    task.add_done_callback(_pending_deliveries.discard)


async def deliver_webhook(event_type: str, payload: dict) -> None:
    """POST the event to the notification collaborator's webhook"""
    url = config.NOTIFICATION_WEBHOOK_URL
    if not url:
        return
    try:
        async with httpx.AsyncClient(timeout=config.NOTIFICATION_WEBHOOK_TIMEOUT) as client:
            response = await client.post(url, json={"type": event_type, "payload": payload})
    except httpx.HTTPError as e:
        logger.error(f"❌ Notification webhook failed for {event_type}: {e}")
        return

    if response.status_code >= 400:
        logger.warning(f"⚠️ Notification webhook returned HTTP {response.status_code} for {event_type}")
    else:
        logger.debug(f"✅ Notification webhook accepted {event_type}")


if config.NOTIFICATION_WEBHOOK_URL:
    logger.info(f"📡 Notification webhook enabled: {config.NOTIFICATION_WEBHOOK_URL}")
