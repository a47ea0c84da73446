"""WebSocket consumers for booking events and the driver queue display."""

import logging

from channels.db import database_sync_to_async

from realtime.notifications import (
    DRIVER_QUEUE_GROUP,
    OPERATORS_GROUP,
    driver_group,
    user_group,
)
from .base import BaseConsumer

logger = logging.getLogger(__name__)


class BookingConsumer(BaseConsumer):
    """
    Booking events for the connected user.

    Passengers receive events for their own bookings, drivers additionally
    receive assignment events on their driver group, and TODA admins receive
    operator alerts.
    """

    def get_groups(self):
        groups = [user_group(self.user_id)]
        driver_id = getattr(self.user, "driver_id", "")
        if self.role == "driver" and driver_id:
            groups.append(driver_group(driver_id))
        if self.role == "admin":
            groups.append(OPERATORS_GROUP)
        return groups

    async def booking_event(self, event):
        """Sent by server-side code through notify_user / notify_driver."""
        await self.send_json({
            "type": event["event"],
            "booking_id": event.get("booking_id"),
            "status": event.get("status"),
            "booking": event.get("booking", {}),
            "message": event.get("message", ""),
        })

    async def operator_alert(self, event):
        await self.send_json({
            "type": event["event"],
            "payload": event.get("payload", {}),
            "timestamp": event.get("timestamp"),
        })


class QueueConsumer(BaseConsumer):
    """Live driver queue for terminal displays and driver apps."""

    def get_groups(self):
        return [DRIVER_QUEUE_GROUP]

    async def on_connect(self):
        await self.send_json({"type": "queue_updated", **await self._snapshot()})

    async def queue_update(self, event):
        await self.send_json({
            "type": event["event"],
            "queue": event.get("queue", []),
            "size": event.get("size", 0),
        })

    @database_sync_to_async
    def _snapshot(self):
        from queueing.serializers import QueueEntrySerializer
        from services.registry import get_queue_store

        entries = get_queue_store().list_entries()
        data = [dict(item) for item in QueueEntrySerializer(entries, many=True).data]
        return {"queue": data, "size": len(data)}
