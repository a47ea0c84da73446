from datetime import timedelta
from decimal import Decimal

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from services import registry
from services.booking_management import join_queue
from .models import Booking, BookingStatus, Rating
from .tasks import create_rating_placeholder_task
from .views import (
	BookingArriveView,
	BookingCancelView,
	BookingCompleteView,
	BookingCreateView,
	BookingDetailView,
	BookingNoShowView,
	BookingPickupView,
	BookingRejectView,
	BookingRetryView,
	BookingStartView,
	CurrentBookingView,
	FareEstimateView,
)

TRIP = {
	'pickup_latitude': 14.5995,
	'pickup_longitude': 120.9842,
	'dropoff_latitude': 14.6095,
	'dropoff_longitude': 120.9942,
	'pickup_location': 'Quiapo Church',
	'destination': 'UST Espana',
}


class BookingApiTestCase(TestCase):
	def setUp(self):
		registry.reset_services()
		self.factory = APIRequestFactory()
		self.passenger = User.objects.create_user(
			username='passenger',
			password='pass1234',
			role='passenger',
			first_name='Juan',
			last_name='Dela Cruz',
			phone_number='09170000000'
		)
		self.driver = User.objects.create_user(
			username='driver_one',
			password='driver1234',
			role='driver',
			driver_id='RFID-0001',
			tricycle_id='TRI-17',
			phone_number='09170000001'
		)

	def tearDown(self):
		registry.reset_services(poller_wait=True)

	def call(self, view, user, path, data=None, method='post', **kwargs):
		request = getattr(self.factory, method)(path, data or {}, format='json')
		force_authenticate(request, user=user)
		return view.as_view()(request, **kwargs)

	def create_booking(self, user=None, trip=TRIP):
		return self.call(BookingCreateView, user or self.passenger, '/api/bookings/', trip)

	def wait_for_search(self, booking_id):
		self.assertTrue(registry.get_booking_poller().wait(booking_id, timeout=5))


class PassengerBookingTests(BookingApiTestCase):
	def test_create_booking_returns_fare_and_code(self):
		response = self.create_booking()

		self.assertEqual(response.status_code, 201)
		self.assertTrue(response.data['success'])
		booking = response.data['booking']
		self.assertEqual(booking['status'], BookingStatus.PENDING)
		self.assertEqual(len(booking['verification_code']), 6)
		self.assertEqual(booking['customer_name'], 'Juan Dela Cruz')
		self.assertEqual(booking['estimated_fare'], response.data['fare']['total_fare'])

	def test_second_active_booking_is_rejected(self):
		self.create_booking()
		response = self.create_booking()

		self.assertEqual(response.status_code, 409)

	def test_blocked_passenger_cannot_book(self):
		self.passenger.is_blocked = True
		self.passenger.save()

		response = self.create_booking()

		self.assertEqual(response.status_code, 403)

	def test_low_trust_score_cannot_book(self):
		self.passenger.trust_score = 10
		self.passenger.save()

		self.assertEqual(self.create_booking().status_code, 403)

	def test_trip_that_is_too_short_is_rejected(self):
		trip = dict(TRIP, dropoff_latitude=TRIP['pickup_latitude'], dropoff_longitude=TRIP['pickup_longitude'])

		response = self.create_booking(trip=trip)

		self.assertEqual(response.status_code, 400)

	def test_drivers_cannot_create_bookings(self):
		self.assertEqual(self.create_booking(user=self.driver).status_code, 403)

	def test_fare_estimate_applies_discount(self):
		self.passenger.discount_type = 'SENIOR_CITIZEN'
		self.passenger.discount_verified = True
		self.passenger.save()

		response = self.call(FareEstimateView, self.passenger, '/api/bookings/estimate/', TRIP)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['discount_type'], 'Senior Citizen')
		self.assertGreater(Decimal(response.data['discount_amount']), 0)

	def test_current_booking_reports_exhausted_search(self):
		booking_id = self.create_booking().data['booking']['id']
		self.wait_for_search(booking_id)

		response = self.call(CurrentBookingView, self.passenger, '/api/bookings/current/', method='get')

		self.assertTrue(response.data['has_active_booking'])
		self.assertEqual(response.data['search_status'], 'no_drivers_available')

	def test_no_current_booking(self):
		response = self.call(CurrentBookingView, self.passenger, '/api/bookings/current/', method='get')

		self.assertFalse(response.data['has_active_booking'])

	def test_retry_restarts_search(self):
		booking_id = self.create_booking().data['booking']['id']
		self.wait_for_search(booking_id)
		join_queue('RFID-0001', 'driver_one', 'TRI-17')

		response = self.call(BookingRetryView, self.passenger, '/retry/', booking_id=booking_id)
		self.assertEqual(response.status_code, 200)
		self.wait_for_search(booking_id)

		detail = self.call(BookingDetailView, self.passenger, '/', method='get', booking_id=booking_id)
		self.assertEqual(detail.data['status'], BookingStatus.ACCEPTED)
		self.assertEqual(detail.data['assigned_driver_id'], 'RFID-0001')

	def test_cancel_booking(self):
		booking_id = self.create_booking().data['booking']['id']

		response = self.call(BookingCancelView, self.passenger, '/cancel/', {'reason': 'Changed plans'}, booking_id=booking_id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['booking']['status'], BookingStatus.CANCELLED)
		self.assertEqual(response.data['booking']['cancellation_reason'], 'Changed plans')
		self.assertFalse(registry.get_booking_poller().is_polling(booking_id))

		again = self.call(BookingCancelView, self.passenger, '/cancel/', booking_id=booking_id)
		self.assertEqual(again.status_code, 409)

	def test_driver_declines_pending_booking(self):
		booking_id = self.create_booking().data['booking']['id']

		response = self.call(BookingRejectView, self.driver, '/reject/', booking_id=booking_id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['booking']['status'], BookingStatus.REJECTED)
		self.assertEqual(response.data['booking']['rejected_by'], str(self.driver.pk))
		self.assertNotIn('verification_code', response.data['booking'])
		self.assertFalse(registry.get_booking_poller().is_polling(booking_id))

	def test_passenger_cannot_decline(self):
		booking_id = self.create_booking().data['booking']['id']

		response = self.call(BookingRejectView, self.passenger, '/reject/', booking_id=booking_id)

		self.assertEqual(response.status_code, 403)

	def test_other_users_cannot_see_booking(self):
		booking_id = self.create_booking().data['booking']['id']
		stranger = User.objects.create_user(username='stranger', password='pass1234', role='passenger')

		response = self.call(BookingDetailView, stranger, '/', method='get', booking_id=booking_id)

		self.assertEqual(response.status_code, 404)


class DriverTripFlowTests(BookingApiTestCase):
	def setUp(self):
		super().setUp()
		join_queue('RFID-0001', 'driver_one', 'TRI-17', source='hardware')
		created = self.create_booking()
		self.booking_id = created.data['booking']['id']
		self.code = created.data['booking']['verification_code']
		self.wait_for_search(self.booking_id)

	def driver_post(self, view, data=None):
		return self.call(view, self.driver, '/', data, booking_id=self.booking_id)

	def test_head_of_queue_is_assigned(self):
		response = self.call(BookingDetailView, self.driver, '/', method='get', booking_id=self.booking_id)

		self.assertEqual(response.data['status'], BookingStatus.ACCEPTED)
		self.assertEqual(response.data['assigned_driver_id'], 'RFID-0001')
		self.assertNotIn('verification_code', response.data)
		self.assertEqual(registry.get_queue_store().list_entries(), [])

	def test_full_trip(self):
		self.assertEqual(self.driver_post(BookingArriveView).status_code, 200)

		wrong = self.driver_post(BookingPickupView, {'verification_code': '000000' if self.code != '000000' else '111111'})
		self.assertEqual(wrong.status_code, 400)
		self.assertEqual(wrong.data['error'], 'invalid_code')

		pickup = self.driver_post(BookingPickupView, {'verification_code': self.code})
		self.assertEqual(pickup.status_code, 200)
		self.assertEqual(pickup.data['booking']['status'], BookingStatus.AT_PICKUP)

		self.assertEqual(self.driver_post(BookingStartView).status_code, 200)

		done = self.driver_post(BookingCompleteView, {'fare': '30.00'})
		self.assertEqual(done.status_code, 200)
		self.assertEqual(done.data['booking']['status'], BookingStatus.COMPLETED)
		self.assertEqual(done.data['booking']['actual_fare'], '30.00')

	def test_complete_before_start_is_rejected(self):
		self.assertEqual(self.driver_post(BookingCompleteView).status_code, 409)

	def test_assigned_booking_cannot_be_declined(self):
		self.assertEqual(self.driver_post(BookingRejectView).status_code, 409)

	def test_other_driver_cannot_see_assigned_booking_to_decline(self):
		other = User.objects.create_user(username='driver_three', password='driver1234', role='driver', driver_id='RFID-0003')

		response = self.call(BookingRejectView, other, '/reject/', booking_id=self.booking_id)

		self.assertEqual(response.status_code, 404)

	def test_admin_can_record_arrival(self):
		admin = User.objects.create_user(username='toda_admin', password='admin1234', role='admin')

		response = self.call(BookingArriveView, admin, '/arrive/', booking_id=self.booking_id)

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['booking']['arrived_at_pickup'])

	def test_no_show_before_grace_period(self):
		self.driver_post(BookingArriveView)

		response = self.driver_post(BookingNoShowView)

		self.assertEqual(response.status_code, 409)

	def test_other_driver_cannot_act(self):
		other = User.objects.create_user(username='driver_two', password='driver1234', role='driver', driver_id='RFID-0002')

		response = self.call(BookingArriveView, other, '/', booking_id=self.booking_id)

		self.assertEqual(response.status_code, 404)

	def test_assigned_driver_can_cancel(self):
		response = self.driver_post(BookingCancelView, {'reason': 'Flat tire'})

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['booking']['cancelled_by'], str(self.driver.pk))


class NoShowSweepTests(BookingApiTestCase):
	def test_command_closes_overdue_bookings(self):
		store = registry.get_booking_store()
		now = timezone.now()
		overdue = store.create(Booking(
			customer_id=self.passenger.pk,
			pickup_latitude=Decimal('14.599500'),
			pickup_longitude=Decimal('120.984200'),
			dropoff_latitude=Decimal('14.609500'),
			dropoff_longitude=Decimal('120.994200'),
			status=BookingStatus.ACCEPTED,
			assigned_driver_id='RFID-0001',
			arrived_at_pickup=True,
			arrived_at_pickup_time=now - timedelta(minutes=30),
		))
		fresh = store.create(Booking(
			customer_id=self.driver.pk,
			pickup_latitude=Decimal('14.599500'),
			pickup_longitude=Decimal('120.984200'),
			dropoff_latitude=Decimal('14.609500'),
			dropoff_longitude=Decimal('120.994200'),
			status=BookingStatus.ACCEPTED,
			assigned_driver_id='RFID-0002',
			arrived_at_pickup=True,
			arrived_at_pickup_time=now,
		))

		call_command('process_no_shows', verbosity=0)

		self.assertEqual(store.get(overdue.pk).status, BookingStatus.NO_SHOW)
		self.assertTrue(store.get(overdue.pk).is_no_show)
		self.assertEqual(store.get(fresh.pk).status, BookingStatus.ACCEPTED)


class RatingPlaceholderTaskTests(TestCase):
	def setUp(self):
		self.passenger = User.objects.create_user(username='passenger', password='pass1234')
		self.booking = Booking.objects.create(
			customer=self.passenger,
			customer_name='Juan Dela Cruz',
			pickup_latitude=Decimal('14.599500'),
			pickup_longitude=Decimal('120.984200'),
			dropoff_latitude=Decimal('14.609500'),
			dropoff_longitude=Decimal('120.994200'),
			status=BookingStatus.COMPLETED,
			assigned_driver_id='RFID-0001',
			driver_name='driver_one'
		)

	def test_placeholder_is_created_once(self):
		first = create_rating_placeholder_task(self.booking.id)
		second = create_rating_placeholder_task(self.booking.id)

		self.assertEqual(first, second)
		self.assertEqual(Rating.objects.filter(booking=self.booking).count(), 1)
		self.assertEqual(Rating.objects.get().driver_id, 'RFID-0001')

	def test_unfinished_booking_is_skipped(self):
		Booking.objects.filter(pk=self.booking.pk).update(status=BookingStatus.IN_PROGRESS)

		self.assertIsNone(create_rating_placeholder_task(self.booking.id))
		self.assertFalse(Rating.objects.exists())

	def test_missing_booking_is_skipped(self):
		self.assertIsNone(create_rating_placeholder_task(self.booking.id + 1))
