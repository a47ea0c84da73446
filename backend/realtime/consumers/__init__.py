"""Realtime consumers for WebSocket communication."""

from .base import BaseConsumer
from .booking_consumer import BookingConsumer, QueueConsumer

__all__ = [
    "BaseConsumer",
    "BookingConsumer",
    "QueueConsumer",
]
