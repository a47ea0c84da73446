"""
Queue-head matching.

A pending booking is matched by claiming the driver at the head of the queue
(compare-and-remove) and then moving the booking to ACCEPTED with that driver.
If the booking changed in between, the claimed driver goes back to the front
of the queue; losing a claimed driver silently would shrink the pool.
"""

import logging

from bookings.models import BookingStatus
from services.booking_management.state_machine import ActorContext
from services.exceptions import BookingNotFoundError, CompensationError, StoreIOError

logger = logging.getLogger(__name__)


class MatchingEngine:
    """
    Args:
        booking_store: BookingStore
        queue_store: QueueStore
        state_machine: BookingStateMachine writing through ``booking_store``
        claim_attempts: peek/remove rounds per call when a head is lost to a
            concurrent claim
    """

    def __init__(self, booking_store, queue_store, state_machine, claim_attempts: int = 2):
        self.booking_store = booking_store
        self.queue_store = queue_store
        self.state_machine = state_machine
        self.claim_attempts = max(1, claim_attempts)

    def try_match_first_available(self, booking_id) -> bool:
        """
        Try to assign the first queued driver to a pending booking.

        Returns:
            True if the booking was matched, False if it is no longer pending
            or no driver could be claimed right now.

        Raises:
            StoreIOError: a store read/write failed (retryable)
            CompensationError: a claimed driver could not be re-queued
        """
        booking = self.booking_store.get(booking_id)
        if booking.status != BookingStatus.PENDING:
            logger.debug("Booking %s is %s; skipping match", booking_id, booking.status)
            return False

        entry = self._claim_head(booking_id)
        if entry is None:
            return False

        try:
            result = self.state_machine.transition(
                booking, BookingStatus.ACCEPTED, ActorContext.for_queue_entry(entry)
            )
        except Exception:
            if self._assignment_landed(booking_id, entry):
                return True
            self._compensate(entry, booking_id)
            raise

        if result.success:
            logger.info("Matched booking %s to driver %s", booking_id, entry.driver_id)
            return True

        logger.info(
            "Booking %s resolved elsewhere (%s) after claiming driver %s; re-queueing",
            booking_id, result.booking.status, entry.driver_id,
        )
        self._compensate(entry, booking_id)
        return False

    def _claim_head(self, booking_id):
        for attempt in range(1, self.claim_attempts + 1):
            entry = self.queue_store.peek_first()
            if entry is None:
                logger.debug("No drivers in queue for booking %s", booking_id)
                return None
            if self.queue_store.remove(entry.driver_id):
                return entry
            logger.debug(
                "Driver %s was claimed concurrently (booking %s, attempt %s)",
                entry.driver_id, booking_id, attempt,
            )
        return None

    def _assignment_landed(self, booking_id, entry) -> bool:
        """True when the failed transition had already assigned ``entry``'s driver."""
        try:
            current = self.booking_store.get(booking_id)
        except (StoreIOError, BookingNotFoundError) as exc:
            logger.warning("Could not re-read booking %s after a failed assignment: %s", booking_id, exc)
            return False
        if current.status == BookingStatus.ACCEPTED and current.assigned_driver_id == entry.driver_id:
            logger.warning(
                "Booking %s was assigned driver %s before the error; not re-queueing",
                booking_id, entry.driver_id,
            )
            return True
        return False

    def _compensate(self, entry, booking_id):
        try:
            self.queue_store.restore(entry)
        except Exception as exc:
            logger.critical(
                "Driver %s claimed for booking %s could not be returned to the queue: %s",
                entry.driver_id, booking_id, exc,
            )
            _alert_operators(entry, booking_id, exc)
            raise CompensationError(entry.driver_id, booking_id, exc) from exc


def _alert_operators(entry, booking_id, exc):
    try:
        from realtime.notifications import notify_operators
        notify_operators(
            "queue_compensation_failed",
            {
                "driver_id": entry.driver_id,
                "driver_name": entry.driver_name,
                "booking_id": booking_id,
                "error": str(exc),
            },
        )
    except Exception:
        logger.exception("Failed to alert operators about lost driver %s", entry.driver_id)

