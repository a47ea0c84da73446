"""Builders and fakes shared by the dispatch service tests."""

from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

from bookings.models import Booking, BookingStatus
from queueing.models import QueueEntry

T0 = datetime(2024, 3, 1, 8, 0, 0, tzinfo=dt_timezone.utc)


def make_booking(**overrides):
	fields = dict(
		customer_id=1,
		customer_name="Juan Dela Cruz",
		phone_number="09171234567",
		pickup_latitude=Decimal("14.599500"),
		pickup_longitude=Decimal("120.984200"),
		dropoff_latitude=Decimal("14.609500"),
		dropoff_longitude=Decimal("120.994200"),
		estimated_fare=Decimal("27.00"),
		status=BookingStatus.PENDING,
		verification_code="123456",
	)
	fields.update(overrides)
	return Booking(**fields)


def make_entry(driver_id, enqueued_at=None, **overrides):
	fields = dict(
		driver_id=driver_id,
		driver_name=f"Driver {driver_id}",
		toda_number=f"T-{driver_id}",
		source="hardware",
		enqueued_at=enqueued_at or T0,
	)
	fields.update(overrides)
	return QueueEntry(**fields)


class FixedClock:
	def __init__(self, now=T0):
		self.now = now

	def __call__(self):
		return self.now

	def advance(self, seconds):
		self.now = self.now + timedelta(seconds=seconds)
		return self.now


class RecordingNotifier:
	def __init__(self, fail=False):
		self.fail = fail
		self.sent = []

	def notify_user(self, user_id, event_type, booking, message=""):
		self._record("user", user_id, event_type)

	def notify_driver(self, driver_id, event_type, booking, message=""):
		self._record("driver", driver_id, event_type)

	def events(self, target=None):
		return [event for kind, _, event in self.sent if target is None or kind == target]

	def _record(self, kind, recipient, event_type):
		if self.fail:
			raise RuntimeError("channel layer down")
		self.sent.append((kind, recipient, event_type))
