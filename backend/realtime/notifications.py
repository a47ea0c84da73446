"""
Notification helpers for sending WebSocket messages to connected clients.

This module provides functions to:
- Send booking events to passengers (group ``user_<id>``) and drivers
  (group ``driver_<driver_id>``)
- Alert TODA operators (group ``operators``)
- Broadcast the driver queue to terminal displays (group ``driver_queue``)

Every helper is best effort: a missing or failing channel layer is logged
and reported as False, never raised.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils import timezone

logger = logging.getLogger(__name__)

OPERATORS_GROUP = "operators"
DRIVER_QUEUE_GROUP = "driver_queue"


def user_group(user_id) -> str:
    return f"user_{user_id}"


def driver_group(driver_id) -> str:
    # Group names only allow ASCII alphanumerics, hyphens, underscores and periods
    safe = "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in str(driver_id))
    return f"driver_{safe}"


def _group_send(group: str, payload: Dict[str, Any]) -> bool:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.debug("No channel layer configured; dropping %s for %s", payload.get("event"), group)
        return False
    try:
        async_to_sync(channel_layer.group_send)(group, payload)
    except Exception:
        logger.exception("Failed to send %s to %s", payload.get("event"), group)
        return False
    logger.debug("WS -> %s: %s", group, payload.get("event"))
    return True


def _booking_payload(event_type: str, booking, message: str, extra: Dict[str, Any] | None) -> Dict[str, Any]:
    from bookings.serializers import BookingSerializer

    payload = {
        "type": "booking.event",
        "event": event_type,
        "booking_id": booking.pk,
        "status": booking.status,
        "booking": dict(BookingSerializer(booking).data),
        **(extra or {}),
    }
    if message:
        payload["message"] = message
    return payload


# ---------------------- Booking Event Notifications ----------------------

def notify_user(user_id, event_type: str, booking, message: str = "", extra: Dict[str, Any] = None) -> bool:
    """
    Send a booking event to the passenger through: user_<user_id>

    Args:
        user_id: Passenger's user ID
        event_type: Event name forwarded to the client (booking_accepted, driver_arrived, ...)
        booking: Booking instance
        message: Optional human-readable message
        extra: Additional payload data

    Returns:
        True if sent, False otherwise
    """
    if not user_id:
        return False
    return _group_send(user_group(user_id), _booking_payload(event_type, booking, message, extra))


def notify_driver(driver_id, event_type: str, booking, message: str = "", extra: Dict[str, Any] = None) -> bool:
    """Send a booking event to a driver through: driver_<driver_id>"""
    if not driver_id:
        return False
    payload = _booking_payload(event_type, booking, message, extra)
    payload["driver_id"] = driver_id
    payload["booking"].pop("verification_code", None)
    return _group_send(driver_group(driver_id), payload)


def notify_operators(event_type: str, payload: Dict[str, Any]) -> bool:
    """Alert connected TODA operators, e.g. when a claimed driver was lost."""
    return _group_send(OPERATORS_GROUP, {
        "type": "operator.alert",
        "event": event_type,
        "payload": payload,
        "timestamp": timezone.now().isoformat(),
    })


# ---------------------- Driver Queue ----------------------

def broadcast_queue(entries: Iterable) -> bool:
    """Push the ordered driver queue to everyone watching it."""
    from queueing.serializers import QueueEntrySerializer

    data = [dict(item) for item in QueueEntrySerializer(list(entries), many=True).data]
    return _group_send(DRIVER_QUEUE_GROUP, {
        "type": "queue.update",
        "event": "queue_updated",
        "queue": data,
        "size": len(data),
    })
