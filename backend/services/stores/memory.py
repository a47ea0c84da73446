"""
In-process store adapters.

Both stores hold model instances that are never saved; every read returns a
copy so callers cannot mutate shared state outside the lock. Used by tests
and single-process setups (for example a terminal kiosk without a database).
"""

import copy
import itertools
import threading

from django.utils import timezone

from bookings.models import ACTIVE_STATUSES
from services.exceptions import BookingNotFoundError
from .base import BookingStore, QueueStore


class InMemoryBookingStore(BookingStore):

    def __init__(self):
        self._lock = threading.Lock()
        self._bookings = {}
        self._ids = itertools.count(1)

    def create(self, booking):
        with self._lock:
            if booking.pk is None:
                booking.pk = next(self._ids)
            if booking.created_at is None:
                booking.created_at = timezone.now()
            self._bookings[booking.pk] = copy.deepcopy(booking)
            return copy.deepcopy(booking)

    def get(self, booking_id):
        with self._lock:
            return copy.deepcopy(self._get(booking_id))

    def compare_and_set(self, booking_id, expected_status, changes, unset_fields=()):
        with self._lock:
            stored = self._get(booking_id)
            if stored.status != expected_status:
                return None
            if any(getattr(stored, name) is not None for name in unset_fields):
                return None
            for field_name, value in changes.items():
                setattr(stored, field_name, value)
            return copy.deepcopy(stored)

    def find_active_for_customer(self, customer_id):
        with self._lock:
            matches = [
                booking for booking in self._bookings.values()
                if booking.customer_id == customer_id and booking.status in ACTIVE_STATUSES
            ]
            if not matches:
                return None
            return copy.deepcopy(max(matches, key=lambda booking: booking.created_at))

    def list_by_status(self, status):
        with self._lock:
            matches = [booking for booking in self._bookings.values() if booking.status == status]
            return [copy.deepcopy(booking) for booking in sorted(matches, key=lambda b: b.created_at)]

    def _get(self, booking_id):
        try:
            return self._bookings[int(booking_id)]
        except (KeyError, TypeError, ValueError):
            raise BookingNotFoundError(f"Booking {booking_id} not found")


class InMemoryQueueStore(QueueStore):

    def __init__(self):
        self._lock = threading.Lock()
        self._entries = []
        self._seq = itertools.count(1)

    def peek_first(self):
        with self._lock:
            return copy.deepcopy(self._entries[0]) if self._entries else None

    def remove(self, driver_id):
        with self._lock:
            for index, entry in enumerate(self._entries):
                if entry.driver_id == driver_id:
                    del self._entries[index]
                    return True
            return False

    def append(self, entry):
        with self._lock:
            if self._find(entry.driver_id) is not None:
                return False
            entry = copy.deepcopy(entry)
            if entry.pk is None:
                entry.pk = next(self._seq)
            self._entries.append(entry)
            self._sort()
            return True

    def restore(self, entry):
        with self._lock:
            existing = self._find(entry.driver_id)
            if existing is None:
                entry = copy.deepcopy(entry)
                if entry.pk is None:
                    entry.pk = next(self._seq)
                self._entries.append(entry)
            elif existing.enqueued_at > entry.enqueued_at:
                existing.enqueued_at = entry.enqueued_at
            self._sort()

    def contains(self, driver_id):
        with self._lock:
            return self._find(driver_id) is not None

    def list_entries(self):
        with self._lock:
            return [copy.deepcopy(entry) for entry in self._entries]

    def _find(self, driver_id):
        for entry in self._entries:
            if entry.driver_id == driver_id:
                return entry
        return None

    def _sort(self):
        self._entries.sort(key=lambda entry: (entry.enqueued_at, entry.pk))
