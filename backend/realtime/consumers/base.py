"""Base WebSocket consumer with shared group handling for all consumers."""

import logging
from typing import Any, Dict, Set

from channels.generic.websocket import AsyncJsonWebsocketConsumer

logger = logging.getLogger(__name__)


class BaseConsumer(AsyncJsonWebsocketConsumer):
    """
    Authenticated consumer that joins the groups returned by get_groups().

    Subclasses override:
        - get_groups(): groups to join on connect
        - on_connect(): anything sent right after the handshake
    """

    async def connect(self):
        self.user = self.scope.get("user")
        if self.user is None or self.user.is_anonymous:
            await self.close()
            return

        self.user_id = getattr(self.user, "id", None)
        self.role = getattr(self.user, "role", None)
        self.joined_groups: Set[str] = set()

        for group in self.get_groups():
            await self.channel_layer.group_add(group, self.channel_name)
            self.joined_groups.add(group)

        await self.accept()
        await self.on_connect()

    def get_groups(self):
        return []

    async def on_connect(self):
        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "role": self.role,
        })

    async def disconnect(self, close_code):
        """Leave all joined groups on disconnect."""
        try:
            for group in list(getattr(self, "joined_groups", ())):
                await self.channel_layer.group_discard(group, self.channel_name)
                self.joined_groups.discard(group)
        except Exception:
            logger.exception("Error during disconnect for user %s", getattr(self, "user_id", "unknown"))

    async def receive_json(self, data: Dict[str, Any]):
        msg_type = data.get("type")
        if msg_type == "ping":
            await self.send_json({"type": "pong"})
        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    async def send_error(self, message: str):
        await self.send_json({"type": "error", "message": message})
