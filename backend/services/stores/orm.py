"""Store adapters backed by the Django ORM."""

import logging
from contextlib import contextmanager

from django.db import DatabaseError, IntegrityError, transaction

from bookings.models import ACTIVE_STATUSES, Booking
from queueing.models import QueueEntry
from services.exceptions import BookingNotFoundError, StoreIOError
from .base import BookingStore, QueueStore

logger = logging.getLogger(__name__)


@contextmanager
def _store_io(action: str):
    try:
        yield
    except DatabaseError as exc:
        logger.warning("Store I/O failed during %s: %s", action, exc)
        raise StoreIOError(f"{action} failed: {exc}") from exc


class OrmBookingStore(BookingStore):

    def create(self, booking):
        with _store_io("booking create"):
            booking.save(force_insert=True)
        return booking

    def get(self, booking_id):
        with _store_io("booking read"):
            try:
                return Booking.objects.get(pk=booking_id)
            except Booking.DoesNotExist:
                raise BookingNotFoundError(f"Booking {booking_id} not found")

    def compare_and_set(self, booking_id, expected_status, changes, unset_fields=()):
        conditions = {f"{name}__isnull": True for name in unset_fields}
        with _store_io("booking update"), transaction.atomic():
            # Update and read-back commit or roll back together
            updated = (
                Booking.objects
                .filter(pk=booking_id, status=expected_status, **conditions)
                .update(**changes)
            )
            if updated:
                return Booking.objects.get(pk=booking_id)
            if not Booking.objects.filter(pk=booking_id).exists():
                raise BookingNotFoundError(f"Booking {booking_id} not found")
        return None

    def find_active_for_customer(self, customer_id):
        with _store_io("active booking lookup"):
            return (
                Booking.objects
                .filter(customer_id=customer_id, status__in=ACTIVE_STATUSES)
                .order_by('-created_at')
                .first()
            )

    def list_by_status(self, status):
        with _store_io("booking list"):
            return list(Booking.objects.filter(status=status).order_by('created_at'))


class OrmQueueStore(QueueStore):

    def peek_first(self):
        with _store_io("queue peek"):
            return QueueEntry.objects.order_by('enqueued_at', 'id').first()

    def remove(self, driver_id):
        # The deleted row count decides which concurrent caller won the claim
        with _store_io("queue remove"):
            deleted, _ = QueueEntry.objects.filter(driver_id=driver_id).delete()
        if deleted:
            self._changed()
        return deleted > 0

    def append(self, entry):
        try:
            with transaction.atomic():
                entry.save(force_insert=True)
        except IntegrityError:
            logger.info("Driver %s is already queued", entry.driver_id)
            return False
        except DatabaseError as exc:
            raise StoreIOError(f"queue append failed: {exc}") from exc
        self._changed()
        return True

    def restore(self, entry):
        with _store_io("queue restore"):
            with transaction.atomic():
                existing = (
                    QueueEntry.objects
                    .select_for_update()
                    .filter(driver_id=entry.driver_id)
                    .first()
                )
                if existing is None:
                    QueueEntry(
                        pk=entry.pk,
                        driver_id=entry.driver_id,
                        driver_name=entry.driver_name,
                        toda_number=entry.toda_number,
                        source=entry.source,
                        enqueued_at=entry.enqueued_at,
                    ).save(force_insert=True)
                elif existing.enqueued_at > entry.enqueued_at:
                    # Driver re-joined meanwhile; keep the earlier place
                    existing.enqueued_at = entry.enqueued_at
                    existing.save(update_fields=['enqueued_at'])
        self._changed()

    def contains(self, driver_id):
        with _store_io("queue lookup"):
            return QueueEntry.objects.filter(driver_id=driver_id).exists()

    def list_entries(self):
        with _store_io("queue list"):
            return list(QueueEntry.objects.order_by('enqueued_at', 'id'))

    def _changed(self):
        try:
            from realtime.notifications import broadcast_queue
            broadcast_queue(self.list_entries())
        except Exception:
            logger.exception("Failed to broadcast queue update")
