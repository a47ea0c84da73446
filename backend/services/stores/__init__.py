"""
Store adapters for bookings and the driver queue.

This module handles:
    - The adapter contracts (compare-and-set bookings, compare-and-remove queue)
    - Django ORM implementations
    - In-process implementations
"""

from .base import BookingStore, QueueStore
from .memory import InMemoryBookingStore, InMemoryQueueStore
from .orm import OrmBookingStore, OrmQueueStore

__all__ = [
    "BookingStore",
    "QueueStore",
    "InMemoryBookingStore",
    "InMemoryQueueStore",
    "OrmBookingStore",
    "OrmQueueStore",
]
