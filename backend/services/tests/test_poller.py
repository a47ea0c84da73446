import threading
from unittest.mock import Mock

from django.test import SimpleTestCase

from bookings.models import BookingStatus
from services.booking_management.state_machine import ActorContext, BookingStateMachine
from services.exceptions import CompensationError, StoreIOError
from services.matching import (
	BookingPoller,
	FAILED,
	MatchingEngine,
	NO_DRIVERS_AVAILABLE,
	SEARCHING,
	STOPPED,
)
from services.stores import InMemoryBookingStore, InMemoryQueueStore
from .factories import RecordingNotifier, make_booking, make_entry

FAST = 0.01


class BookingPollerTests(SimpleTestCase):
	def setUp(self):
		self.bookings = InMemoryBookingStore()
		self.queue = InMemoryQueueStore()
		self.machine = BookingStateMachine(self.bookings, notifier=RecordingNotifier(), on_completed=Mock())
		self.booking = self.bookings.create(make_booking())

	def make_poller(self, engine, **kwargs):
		kwargs.setdefault("interval_seconds", FAST)
		kwargs.setdefault("max_attempts", 3)
		poller = BookingPoller(self.bookings, engine, max_workers=4, **kwargs)
		self.addCleanup(poller.shutdown, True)
		return poller

	def fake_engine(self, **kwargs):
		engine = Mock(spec=MatchingEngine)
		engine.try_match_first_available.configure_mock(**kwargs)
		return engine

	def test_matches_when_driver_is_queued(self):
		self.queue.append(make_entry("A"))
		poller = self.make_poller(MatchingEngine(self.bookings, self.queue, self.machine))

		self.assertTrue(poller.start_polling(self.booking.pk))
		self.assertTrue(poller.wait(self.booking.pk, timeout=5))

		booking = self.bookings.get(self.booking.pk)
		self.assertEqual(booking.status, BookingStatus.ACCEPTED)
		self.assertEqual(booking.assigned_driver_id, "A")
		self.assertFalse(poller.is_polling(self.booking.pk))

	def test_driver_joining_later_is_picked_up(self):
		engine = MatchingEngine(self.bookings, self.queue, self.machine)
		calls = []

		def match(booking_id):
			calls.append(booking_id)
			if len(calls) == 2:
				self.queue.append(make_entry("LATE"))
			return engine.try_match_first_available(booking_id)

		poller = self.make_poller(self.fake_engine(side_effect=match), max_attempts=5)

		poller.start_polling(self.booking.pk)
		self.assertTrue(poller.wait(self.booking.pk, timeout=5))

		self.assertEqual(self.bookings.get(self.booking.pk).assigned_driver_id, "LATE")
		self.assertEqual(len(calls), 2)

	def test_gives_up_after_max_attempts(self):
		engine = self.fake_engine(return_value=False)
		poller = self.make_poller(engine, max_attempts=3)

		poller.start_polling(self.booking.pk)
		self.assertTrue(poller.wait(self.booking.pk, timeout=5))

		self.assertEqual(engine.try_match_first_available.call_count, 3)
		self.assertEqual(poller.outcome(self.booking.pk), NO_DRIVERS_AVAILABLE)
		self.assertEqual(self.bookings.get(self.booking.pk).status, BookingStatus.PENDING)

	def test_per_call_attempt_budget(self):
		engine = self.fake_engine(return_value=False)
		poller = self.make_poller(engine, max_attempts=10)

		poller.start_polling(self.booking.pk, interval=FAST, max_attempts=2)
		poller.wait(self.booking.pk, timeout=5)

		self.assertEqual(engine.try_match_first_available.call_count, 2)

	def test_retry_after_giving_up(self):
		engine = self.fake_engine(return_value=False)
		poller = self.make_poller(engine, max_attempts=1)
		poller.start_polling(self.booking.pk)
		poller.wait(self.booking.pk, timeout=5)

		self.assertTrue(poller.start_polling(self.booking.pk))
		poller.wait(self.booking.pk, timeout=5)

		self.assertEqual(engine.try_match_first_available.call_count, 2)

	def test_start_is_idempotent(self):
		engine = self.fake_engine(return_value=False)
		poller = self.make_poller(engine, interval_seconds=30, max_attempts=12)

		self.assertTrue(poller.start_polling(self.booking.pk))
		self.assertFalse(poller.start_polling(self.booking.pk))
		self.assertTrue(poller.is_polling(self.booking.pk))
		self.assertEqual(poller.outcome(self.booking.pk), SEARCHING)

		self.assertTrue(poller.stop_polling(self.booking.pk))

	def test_stop_cancels_promptly_without_further_attempts(self):
		first_attempt = threading.Event()

		def no_driver(booking_id):
			first_attempt.set()
			return False

		engine = self.fake_engine(side_effect=no_driver)
		poller = self.make_poller(engine, interval_seconds=30, max_attempts=12)

		poller.start_polling(self.booking.pk)
		self.assertTrue(first_attempt.wait(5))
		self.assertTrue(poller.stop_polling(self.booking.pk))

		self.assertTrue(poller.wait(self.booking.pk, timeout=5))
		self.assertEqual(engine.try_match_first_available.call_count, 1)
		self.assertEqual(poller.outcome(self.booking.pk), STOPPED)
		self.assertFalse(poller.is_polling(self.booking.pk))

	def test_stop_unknown_booking(self):
		poller = self.make_poller(self.fake_engine(return_value=False))
		self.assertFalse(poller.stop_polling(999))

	def test_resolved_booking_stops_without_matching(self):
		self.machine.transition(self.booking, BookingStatus.CANCELLED, ActorContext.system())
		engine = self.fake_engine(return_value=False)
		poller = self.make_poller(engine)

		poller.start_polling(self.booking.pk)
		self.assertTrue(poller.wait(self.booking.pk, timeout=5))

		engine.try_match_first_available.assert_not_called()
		self.assertIsNone(poller.outcome(self.booking.pk))

	def test_store_errors_spend_attempts(self):
		engine = self.fake_engine(side_effect=[StoreIOError("down"), StoreIOError("down"), True])
		poller = self.make_poller(engine, max_attempts=3)

		poller.start_polling(self.booking.pk)
		poller.wait(self.booking.pk, timeout=5)

		self.assertEqual(engine.try_match_first_available.call_count, 3)
		self.assertIsNone(poller.outcome(self.booking.pk))

	def test_store_errors_can_exhaust_budget(self):
		engine = self.fake_engine(side_effect=StoreIOError("down"))
		poller = self.make_poller(engine, max_attempts=2)

		poller.start_polling(self.booking.pk)
		poller.wait(self.booking.pk, timeout=5)

		self.assertEqual(engine.try_match_first_available.call_count, 2)
		self.assertEqual(poller.outcome(self.booking.pk), NO_DRIVERS_AVAILABLE)

	def test_compensation_failure_stops_polling(self):
		engine = self.fake_engine(side_effect=CompensationError("A", self.booking.pk, "down"))
		poller = self.make_poller(engine, max_attempts=5)

		poller.start_polling(self.booking.pk)
		poller.wait(self.booking.pk, timeout=5)

		self.assertEqual(engine.try_match_first_available.call_count, 1)
		self.assertEqual(poller.outcome(self.booking.pk), FAILED)

	def test_more_bookings_than_workers_are_polled_side_by_side(self):
		second = self.bookings.create(make_booking(customer_id=2))
		calls = []
		engine = self.fake_engine(side_effect=lambda booking_id: calls.append(booking_id) or False)
		poller = BookingPoller(self.bookings, engine, interval_seconds=0.05, max_attempts=3, max_workers=1)
		self.addCleanup(poller.shutdown, True)

		poller.start_polling(self.booking.pk)
		poller.start_polling(second.pk)
		self.assertTrue(poller.wait(self.booking.pk, timeout=5))
		self.assertTrue(poller.wait(second.pk, timeout=5))

		self.assertEqual(calls.count(self.booking.pk), 3)
		self.assertEqual(calls.count(second.pk), 3)
		# The second booking is tried before the first one runs out of attempts
		last_first = len(calls) - 1 - calls[::-1].index(self.booking.pk)
		self.assertLess(calls.index(second.pk), last_first)
		self.assertEqual(poller.outcome(second.pk), NO_DRIVERS_AVAILABLE)

	def test_shutdown_ends_waiting_tasks(self):
		engine = self.fake_engine(return_value=False)
		poller = BookingPoller(self.bookings, engine, interval_seconds=30, max_attempts=12, max_workers=2)
		poller.start_polling(self.booking.pk)

		poller.shutdown(wait=True)

		self.assertTrue(poller.wait(self.booking.pk, timeout=1))
		self.assertLessEqual(engine.try_match_first_available.call_count, 1)

	def test_bookings_are_polled_independently(self):
		other = self.bookings.create(make_booking(customer_id=2))
		self.queue.append(make_entry("A"))
		self.queue.append(make_entry("B"))
		poller = self.make_poller(MatchingEngine(self.bookings, self.queue, self.machine))

		poller.start_polling(self.booking.pk)
		poller.start_polling(other.pk)
		poller.wait(self.booking.pk, timeout=5)
		poller.wait(other.pk, timeout=5)

		assigned = {self.bookings.get(pk).assigned_driver_id for pk in (self.booking.pk, other.pk)}
		self.assertEqual(assigned, {"A", "B"})
		self.assertEqual(self.queue.list_entries(), [])
