import threading
from datetime import timedelta
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.db import OperationalError
from django.test import SimpleTestCase, TestCase

from bookings.models import Booking, BookingStatus
from queueing.models import QueueEntry
from services.exceptions import BookingNotFoundError, StoreIOError
from services.stores import (
	InMemoryBookingStore,
	InMemoryQueueStore,
	OrmBookingStore,
	OrmQueueStore,
)
from .factories import T0, make_booking, make_entry


class InMemoryQueueStoreTests(SimpleTestCase):
	def setUp(self):
		self.queue = InMemoryQueueStore()

	def test_entries_are_ordered_by_enqueue_time(self):
		self.queue.append(make_entry("B", T0 + timedelta(seconds=5)))
		self.queue.append(make_entry("A", T0))
		self.queue.append(make_entry("C", T0 + timedelta(seconds=10)))

		self.assertEqual([e.driver_id for e in self.queue.list_entries()], ["A", "B", "C"])
		self.assertEqual(self.queue.peek_first().driver_id, "A")

	def test_ties_keep_arrival_order(self):
		for driver_id in ("X", "Y", "Z"):
			self.queue.append(make_entry(driver_id, T0))
		self.assertEqual([e.driver_id for e in self.queue.list_entries()], ["X", "Y", "Z"])

	def test_duplicate_append_is_rejected(self):
		self.assertTrue(self.queue.append(make_entry("A")))
		self.assertFalse(self.queue.append(make_entry("A", T0 + timedelta(minutes=1))))
		self.assertEqual(len(self.queue.list_entries()), 1)

	def test_remove_reports_whether_it_removed(self):
		self.queue.append(make_entry("A"))
		self.assertTrue(self.queue.remove("A"))
		self.assertFalse(self.queue.remove("A"))
		self.assertFalse(self.queue.contains("A"))

	def test_restore_puts_driver_back_in_place(self):
		self.queue.append(make_entry("A", T0))
		self.queue.append(make_entry("B", T0 + timedelta(seconds=1)))
		head = self.queue.peek_first()
		self.queue.remove("A")
		self.queue.append(make_entry("C", T0 + timedelta(seconds=2)))

		self.queue.restore(head)

		self.assertEqual([e.driver_id for e in self.queue.list_entries()], ["A", "B", "C"])

	def test_restore_keeps_earlier_place_of_rejoined_driver(self):
		self.queue.append(make_entry("B", T0 + timedelta(seconds=1)))
		self.queue.append(make_entry("A", T0 + timedelta(seconds=30)))

		self.queue.restore(make_entry("A", T0))

		entries = self.queue.list_entries()
		self.assertEqual([e.driver_id for e in entries], ["A", "B"])
		self.assertEqual(entries[0].enqueued_at, T0)

	def test_reads_are_copies(self):
		self.queue.append(make_entry("A"))
		self.queue.peek_first().driver_id = "tampered"
		self.assertTrue(self.queue.contains("A"))

	def test_observe_yields_only_changes(self):
		stop = threading.Event()
		stream = self.queue.observe(poll_interval=0, stop_event=stop)

		self.assertEqual(next(stream), [])
		self.queue.append(make_entry("A"))
		self.assertEqual([e.driver_id for e in next(stream)], ["A"])
		stop.set()
		self.assertEqual(list(stream), [])


class InMemoryBookingStoreTests(SimpleTestCase):
	def setUp(self):
		self.store = InMemoryBookingStore()
		self.booking = self.store.create(make_booking())

	def test_compare_and_set_requires_expected_status(self):
		self.assertIsNone(self.store.compare_and_set(
			self.booking.pk, BookingStatus.ACCEPTED, {"status": BookingStatus.CANCELLED}
		))
		updated = self.store.compare_and_set(
			self.booking.pk, BookingStatus.PENDING, {"status": BookingStatus.CANCELLED}
		)
		self.assertEqual(updated.status, BookingStatus.CANCELLED)

	def test_unset_fields_guard(self):
		changes = {"arrived_at_pickup_time": T0, "arrived_at_pickup": True}
		self.assertIsNotNone(self.store.compare_and_set(
			self.booking.pk, BookingStatus.PENDING, changes, unset_fields=["arrived_at_pickup_time"]
		))
		self.assertIsNone(self.store.compare_and_set(
			self.booking.pk, BookingStatus.PENDING, changes, unset_fields=["arrived_at_pickup_time"]
		))

	def test_unknown_booking(self):
		with self.assertRaises(BookingNotFoundError):
			self.store.get(404)
		with self.assertRaises(BookingNotFoundError):
			self.store.compare_and_set(404, BookingStatus.PENDING, {})

	def test_active_booking_lookup_ignores_terminal_bookings(self):
		self.store.compare_and_set(self.booking.pk, BookingStatus.PENDING, {"status": BookingStatus.COMPLETED})
		self.assertIsNone(self.store.find_active_for_customer(1))

		newer = self.store.create(make_booking())
		self.assertEqual(self.store.find_active_for_customer(1).pk, newer.pk)


class OrmBookingStoreTests(TestCase):
	def setUp(self):
		self.customer = get_user_model().objects.create_user(username="juan", password="pass12345")
		self.store = OrmBookingStore()
		self.booking = self.store.create(make_booking(customer_id=self.customer.pk))

	def test_compare_and_set_updates_only_from_expected_status(self):
		updated = self.store.compare_and_set(
			self.booking.pk,
			BookingStatus.PENDING,
			{"status": BookingStatus.ACCEPTED, "assigned_driver_id": "A"},
		)
		self.assertEqual(updated.status, BookingStatus.ACCEPTED)
		self.assertEqual(updated.assigned_driver_id, "A")

		self.assertIsNone(self.store.compare_and_set(
			self.booking.pk, BookingStatus.PENDING, {"assigned_driver_id": "B"}
		))
		self.assertEqual(Booking.objects.get(pk=self.booking.pk).assigned_driver_id, "A")

	def test_unset_fields_guard(self):
		changes = {"arrived_at_pickup_time": T0, "arrived_at_pickup": True}
		self.assertIsNotNone(self.store.compare_and_set(
			self.booking.pk, BookingStatus.PENDING, changes, unset_fields=["arrived_at_pickup_time"]
		))
		self.assertIsNone(self.store.compare_and_set(
			self.booking.pk, BookingStatus.PENDING, changes, unset_fields=["arrived_at_pickup_time"]
		))

	def test_missing_booking_raises(self):
		with self.assertRaises(BookingNotFoundError):
			self.store.compare_and_set(self.booking.pk + 100, BookingStatus.PENDING, {})
		with self.assertRaises(BookingNotFoundError):
			self.store.get(self.booking.pk + 100)

	def test_database_errors_become_store_errors(self):
		with patch.object(Booking.objects, "get", side_effect=OperationalError("database is locked")):
			with self.assertRaises(StoreIOError):
				self.store.get(self.booking.pk)

	def test_failed_read_back_rolls_back_the_update(self):
		with patch.object(Booking.objects, "get", side_effect=OperationalError("connection lost")):
			with self.assertRaises(StoreIOError):
				self.store.compare_and_set(
					self.booking.pk,
					BookingStatus.PENDING,
					{"status": BookingStatus.ACCEPTED, "assigned_driver_id": "A"},
				)

		stored = Booking.objects.filter(pk=self.booking.pk).values("status", "assigned_driver_id").get()
		self.assertEqual(stored, {"status": BookingStatus.PENDING, "assigned_driver_id": ""})

	def test_list_by_status(self):
		self.store.create(make_booking(customer_id=self.customer.pk, status=BookingStatus.ACCEPTED))
		self.assertEqual([b.pk for b in self.store.list_by_status(BookingStatus.PENDING)], [self.booking.pk])
		self.assertIsNotNone(self.store.find_active_for_customer(self.customer.pk))


@patch("realtime.notifications.broadcast_queue")
class OrmQueueStoreTests(TestCase):
	def setUp(self):
		self.queue = OrmQueueStore()

	def test_compare_and_remove(self, broadcast):
		self.queue.append(make_entry("A"))
		self.assertTrue(self.queue.remove("A"))
		self.assertFalse(self.queue.remove("A"))
		self.assertFalse(QueueEntry.objects.exists())

	def test_duplicate_append(self, broadcast):
		self.assertTrue(self.queue.append(make_entry("A")))
		self.assertFalse(self.queue.append(make_entry("A")))
		self.assertEqual(QueueEntry.objects.count(), 1)

	def test_fifo_order(self, broadcast):
		self.queue.append(make_entry("B", T0 + timedelta(seconds=3)))
		self.queue.append(make_entry("A", T0))
		self.assertEqual(self.queue.peek_first().driver_id, "A")
		self.assertEqual([e.driver_id for e in self.queue.list_entries()], ["A", "B"])

	def test_restore_keeps_original_place(self, broadcast):
		self.queue.append(make_entry("A", T0))
		self.queue.append(make_entry("B", T0 + timedelta(seconds=1)))
		head = self.queue.peek_first()
		self.queue.remove("A")

		self.queue.restore(head)

		restored = QueueEntry.objects.get(driver_id="A")
		self.assertEqual(restored.pk, head.pk)
		self.assertEqual(restored.enqueued_at, T0)
		self.assertEqual(self.queue.peek_first().driver_id, "A")

	def test_changes_are_broadcast(self, broadcast):
		self.queue.append(make_entry("A"))
		self.queue.remove("A")
		self.queue.remove("A")

		self.assertEqual(broadcast.call_count, 2)
		self.assertEqual(broadcast.call_args[0][0], [])
