"""
Store adapter contracts.

The booking and queue stores are the only state shared between concurrent
matching attempts. Neither store offers an atomic "claim"; the engine builds
on two narrower primitives instead:

    - QueueStore.remove(driver_id) is compare-and-remove: exactly one caller
      gets True for a given queued driver.
    - BookingStore.compare_and_set(...) writes only if the stored status is
      still the status the caller observed.
"""

import abc
import threading
from typing import Any, Dict, Iterator, List, Optional


class BookingStore(abc.ABC):
    """Create/read/update booking records keyed by id."""

    @abc.abstractmethod
    def create(self, booking):
        """Persist a new booking and return it with its id assigned."""

    @abc.abstractmethod
    def get(self, booking_id):
        """Return the current booking. Raises BookingNotFoundError."""

    @abc.abstractmethod
    def compare_and_set(self, booking_id, expected_status: str, changes: Dict[str, Any], unset_fields=()):
        """
        Apply ``changes`` only if the stored status equals ``expected_status``
        and every field named in ``unset_fields`` is still null.

        Returns the updated booking, or None when the stored status differs.
        Raises BookingNotFoundError when the booking does not exist.
        """

    @abc.abstractmethod
    def find_active_for_customer(self, customer_id) -> Optional[Any]:
        """Return the customer's non-terminal booking, if any."""

    @abc.abstractmethod
    def list_by_status(self, status: str) -> List[Any]:
        """Return bookings currently in ``status``."""


class QueueStore(abc.ABC):
    """Ordered collection of drivers waiting for a booking."""

    @abc.abstractmethod
    def peek_first(self):
        """Return the head entry without removing it, or None if empty."""

    @abc.abstractmethod
    def remove(self, driver_id: str) -> bool:
        """Remove ``driver_id`` if present. False when it was already gone."""

    @abc.abstractmethod
    def append(self, entry) -> bool:
        """Append an entry at the tail. False when the driver is already queued."""

    @abc.abstractmethod
    def restore(self, entry) -> None:
        """Put a previously claimed entry back at its original position."""

    @abc.abstractmethod
    def contains(self, driver_id: str) -> bool:
        """Return True when ``driver_id`` is queued."""

    @abc.abstractmethod
    def list_entries(self) -> List[Any]:
        """Return the queue in order, head first."""

    def observe(self, poll_interval: float = 1.0, stop_event=None) -> Iterator[List[Any]]:
        """
        Yield the ordered queue now and again whenever it changes.

        The stream ends when ``stop_event`` is set.
        """
        stop_event = stop_event or threading.Event()
        last_seen = None
        while True:
            entries = self.list_entries()
            snapshot = [(entry.driver_id, entry.enqueued_at) for entry in entries]
            if snapshot != last_seen:
                last_seen = snapshot
                yield entries
            if stop_event.wait(poll_interval):
                return