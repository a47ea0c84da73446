from datetime import timedelta
from decimal import Decimal
from unittest.mock import Mock

from django.test import SimpleTestCase

from bookings.models import BookingStatus
from services.booking_management.state_machine import (
	ActorContext,
	BookingStateMachine,
	STALE_STATE,
	can_transition,
	parse_status,
)
from services.exceptions import InvalidTransitionError
from services.stores import InMemoryBookingStore
from .factories import FixedClock, RecordingNotifier, make_booking, make_entry

DRIVER = ActorContext(actor_id="7", role="driver", driver_id="RFID-7", tricycle_id="T-7", driver_name="Pedro")


class StatusParsingTests(SimpleTestCase):
	def test_canonical_and_legacy_names(self):
		self.assertEqual(parse_status("PENDING"), BookingStatus.PENDING)
		self.assertEqual(parse_status("in_progress"), BookingStatus.IN_PROGRESS)
		self.assertEqual(parse_status("CANCELED"), BookingStatus.CANCELLED)
		self.assertEqual(parse_status("InProgress"), BookingStatus.IN_PROGRESS)
		self.assertEqual(parse_status("at-pickup"), BookingStatus.AT_PICKUP)
		self.assertEqual(parse_status("NOSHOW"), BookingStatus.NO_SHOW)

	def test_unknown_status_raises(self):
		with self.assertRaises(ValueError):
			parse_status("LOST")

	def test_transition_table(self):
		self.assertTrue(can_transition("PENDING", "ACCEPTED"))
		self.assertTrue(can_transition("ACCEPTED", "IN_PROGRESS"))
		self.assertTrue(can_transition("AT_PICKUP", "IN_PROGRESS"))
		self.assertFalse(can_transition("PENDING", "IN_PROGRESS"))
		self.assertFalse(can_transition("ACCEPTED", "REJECTED"))
		self.assertFalse(can_transition("AT_PICKUP", "CANCELLED"))
		for terminal in ("COMPLETED", "CANCELLED", "REJECTED", "NO_SHOW"):
			for target in BookingStatus:
				self.assertFalse(can_transition(terminal, target))


class BookingStateMachineTests(SimpleTestCase):
	def setUp(self):
		self.store = InMemoryBookingStore()
		self.notifier = RecordingNotifier()
		self.on_completed = Mock()
		self.clock = FixedClock()
		self.machine = BookingStateMachine(
			self.store,
			notifier=self.notifier,
			on_completed=self.on_completed,
			no_show_grace_seconds=300,
			clock=self.clock,
		)
		self.booking = self.store.create(make_booking())

	def accept(self):
		result = self.machine.transition(self.booking, BookingStatus.ACCEPTED, DRIVER)
		self.assertTrue(result.success)
		return result.booking

	def test_accept_assigns_driver(self):
		booking = self.accept()

		self.assertEqual(booking.status, BookingStatus.ACCEPTED)
		self.assertEqual(booking.assigned_driver_id, "RFID-7")
		self.assertEqual(booking.assigned_tricycle_id, "T-7")
		self.assertEqual(booking.driver_name, "Pedro")
		self.assertEqual(booking.accepted_at, self.clock.now)
		self.assertEqual(self.store.get(booking.pk).status, BookingStatus.ACCEPTED)
		self.assertIn("booking_accepted", self.notifier.events("user"))
		self.assertIn("booking_assigned", self.notifier.events("driver"))

	def test_accept_requires_driver(self):
		with self.assertRaises(ValueError):
			self.machine.transition(self.booking, BookingStatus.ACCEPTED, ActorContext.system())
		self.assertEqual(self.store.get(self.booking.pk).status, BookingStatus.PENDING)

	def test_accept_from_queue_entry(self):
		actor = ActorContext.for_queue_entry(make_entry("RFID-9"))
		booking = self.machine.transition(self.booking, BookingStatus.ACCEPTED, actor).booking
		self.assertEqual(booking.assigned_driver_id, "RFID-9")
		self.assertEqual(booking.assigned_tricycle_id, "T-RFID-9")

	def test_illegal_edge_raises(self):
		with self.assertRaises(InvalidTransitionError):
			self.machine.transition(self.booking, BookingStatus.COMPLETED)
		self.assertEqual(self.store.get(self.booking.pk).status, BookingStatus.PENDING)

	def test_stale_observation_returns_result(self):
		self.machine.transition(self.booking, BookingStatus.CANCELLED, ActorContext.system("changed mind"))

		# self.booking still says PENDING
		result = self.machine.transition(self.booking, BookingStatus.ACCEPTED, DRIVER)

		self.assertFalse(result.success)
		self.assertTrue(result.is_stale)
		self.assertEqual(result.error_code, STALE_STATE)
		self.assertEqual(result.booking.status, BookingStatus.CANCELLED)
		self.assertEqual(result.booking.assigned_driver_id, "")

	def test_cancel_records_reason(self):
		booking = self.accept()
		actor = ActorContext(actor_id="1", role="passenger", reason="Too far")

		result = self.machine.transition(booking, BookingStatus.CANCELLED, actor)

		self.assertEqual(result.booking.cancelled_by, "1")
		self.assertEqual(result.booking.cancellation_reason, "Too far")
		self.assertEqual(result.booking.cancelled_at, self.clock.now)
		self.assertIn("booking_cancelled", self.notifier.events("driver"))

	def test_at_pickup_stamps_arrival_once(self):
		booking = self.accept()
		self.machine.mark_arrived(booking)
		arrived_at = self.clock.now
		self.clock.advance(60)

		result = self.machine.transition(self.store.get(booking.pk), BookingStatus.AT_PICKUP, DRIVER)

		self.assertTrue(result.success)
		self.assertEqual(result.booking.arrived_at_pickup_time, arrived_at)

	def test_full_trip_completes_with_estimated_fare(self):
		booking = self.accept()
		booking = self.machine.transition(booking, BookingStatus.AT_PICKUP, DRIVER).booking
		self.assertTrue(booking.arrived_at_pickup)
		booking = self.machine.transition(booking, BookingStatus.IN_PROGRESS, DRIVER).booking
		self.clock.advance(600)
		result = self.machine.transition(booking, BookingStatus.COMPLETED, DRIVER)

		self.assertTrue(result.success)
		self.assertEqual(result.booking.actual_fare, Decimal("27.00"))
		self.assertEqual(result.booking.completed_at, self.clock.now)
		self.on_completed.assert_called_once()
		self.assertIn("trip_completed", self.notifier.events("user"))

	def test_complete_with_explicit_fare(self):
		booking = self.accept()
		booking = self.machine.transition(booking, BookingStatus.IN_PROGRESS, DRIVER).booking
		actor = ActorContext(actor_id="7", role="driver", driver_id="RFID-7", fare=Decimal("40.00"))

		result = self.machine.transition(booking, BookingStatus.COMPLETED, actor)

		self.assertEqual(result.booking.actual_fare, Decimal("40.00"))

	def test_completion_hook_failure_does_not_undo_transition(self):
		self.on_completed.side_effect = RuntimeError("broker down")
		booking = self.accept()
		booking = self.machine.transition(booking, BookingStatus.IN_PROGRESS, DRIVER).booking

		with self.assertLogs("services.booking_management.state_machine", level="ERROR"):
			result = self.machine.transition(booking, BookingStatus.COMPLETED, DRIVER)

		self.assertTrue(result.success)
		self.assertEqual(self.store.get(booking.pk).status, BookingStatus.COMPLETED)

	def test_notification_failure_does_not_undo_transition(self):
		self.machine.notifier = RecordingNotifier(fail=True)

		with self.assertLogs("services.booking_management.state_machine", level="ERROR"):
			booking = self.accept()

		self.assertEqual(self.store.get(booking.pk).status, BookingStatus.ACCEPTED)


class NoShowTests(SimpleTestCase):
	def setUp(self):
		self.store = InMemoryBookingStore()
		self.notifier = RecordingNotifier()
		self.clock = FixedClock()
		self.machine = BookingStateMachine(
			self.store,
			notifier=self.notifier,
			on_completed=Mock(),
			no_show_grace_seconds=300,
			clock=self.clock,
		)
		booking = self.store.create(make_booking())
		self.booking = self.machine.transition(booking, BookingStatus.ACCEPTED, DRIVER).booking

	def test_mark_arrived_keeps_status(self):
		result = self.machine.mark_arrived(self.booking)

		self.assertTrue(result.success)
		self.assertEqual(result.booking.status, BookingStatus.ACCEPTED)
		self.assertTrue(result.booking.arrived_at_pickup)
		self.assertEqual(result.booking.arrived_at_pickup_time, self.clock.now)
		self.assertIn("driver_arrived", self.notifier.events("user"))

	def test_mark_arrived_twice_keeps_first_stamp(self):
		first = self.machine.mark_arrived(self.booking).booking
		self.clock.advance(30)

		second = self.machine.mark_arrived(first)

		self.assertTrue(second.success)
		self.assertEqual(self.store.get(self.booking.pk).arrived_at_pickup_time, first.arrived_at_pickup_time)

	def test_mark_arrived_on_pending_booking_raises(self):
		pending = self.store.create(make_booking(customer_id=2))
		with self.assertRaises(InvalidTransitionError):
			self.machine.mark_arrived(pending)

	def test_no_show_before_grace_raises(self):
		booking = self.machine.mark_arrived(self.booking).booking
		self.clock.advance(299)

		with self.assertRaises(InvalidTransitionError):
			self.machine.transition(booking, BookingStatus.NO_SHOW, DRIVER)
		self.assertEqual(self.store.get(booking.pk).status, BookingStatus.ACCEPTED)

	def test_no_show_without_arrival_raises(self):
		self.clock.advance(3600)
		with self.assertRaises(InvalidTransitionError):
			self.machine.transition(self.booking, BookingStatus.NO_SHOW, DRIVER)

	def test_no_show_after_grace(self):
		booking = self.machine.mark_arrived(self.booking).booking
		self.clock.advance(300)

		result = self.machine.transition(booking, BookingStatus.NO_SHOW, DRIVER)

		self.assertTrue(result.success)
		self.assertTrue(result.booking.is_no_show)
		self.assertEqual(result.booking.no_show_reported_time, self.clock.now)
		self.assertIn("booking_no_show", self.notifier.events("user"))

	def test_check_no_show_is_lazy(self):
		booking = self.machine.mark_arrived(self.booking).booking

		self.clock.advance(120)
		self.assertEqual(self.machine.check_no_show(booking).status, BookingStatus.ACCEPTED)

		self.clock.advance(300)
		self.assertEqual(self.machine.check_no_show(booking).status, BookingStatus.NO_SHOW)

	def test_check_no_show_with_explicit_time(self):
		booking = self.machine.mark_arrived(self.booking).booking
		later = self.clock.now + timedelta(minutes=10)

		self.assertEqual(self.machine.check_no_show(booking, now=later).status, BookingStatus.NO_SHOW)

	def test_trip_start_stops_no_show_clock(self):
		booking = self.machine.mark_arrived(self.booking).booking
		booking = self.machine.transition(booking, BookingStatus.IN_PROGRESS, DRIVER).booking
		self.clock.advance(3600)

		self.assertEqual(self.machine.check_no_show(booking).status, BookingStatus.IN_PROGRESS)
