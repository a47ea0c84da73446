from unittest.mock import Mock, patch

from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.test import SimpleTestCase

from accounts.models import User
from bookings.models import Booking, BookingStatus
from services import registry
from . import notifications
from .consumers import BookingConsumer


def make_booking():
	return Booking(
		id=7,
		customer_id=5,
		pickup_latitude='14.599500',
		pickup_longitude='120.984200',
		dropoff_latitude='14.609500',
		dropoff_longitude='120.994200',
		status=BookingStatus.ACCEPTED,
		verification_code='123456',
		assigned_driver_id='RFID 0001'
	)


class NotificationTests(SimpleTestCase):
	def test_driver_group_names_are_sanitized(self):
		self.assertEqual(notifications.driver_group('RFID 0001/a'), 'driver_RFID_0001_a')

	@patch('realtime.notifications.get_channel_layer')
	def test_driver_payload_hides_verification_code(self, get_layer):
		layer = Mock()
		get_layer.return_value = layer
		with patch('realtime.notifications.async_to_sync', lambda fn: fn):
			sent = notifications.notify_driver('RFID 0001', 'booking_assigned', make_booking())

		self.assertTrue(sent)
		group, payload = layer.group_send.call_args[0]
		self.assertEqual(group, 'driver_RFID_0001')
		self.assertEqual(payload['type'], 'booking.event')
		self.assertNotIn('verification_code', payload['booking'])

	@patch('realtime.notifications.get_channel_layer', return_value=None)
	def test_missing_channel_layer_is_not_an_error(self, get_layer):
		self.assertFalse(notifications.notify_user(5, 'booking_accepted', make_booking()))

	def test_notify_user_without_recipient(self):
		self.assertFalse(notifications.notify_user(None, 'booking_accepted', make_booking()))


class BookingConsumerTests(SimpleTestCase):
	def tearDown(self):
		registry.reset_services()

	async def test_passenger_receives_booking_events(self):
		communicator = WebsocketCommunicator(BookingConsumer.as_asgi(), '/ws/bookings/')
		communicator.scope['user'] = User(id=5, username='juan', role='passenger')
		connected, _ = await communicator.connect()
		self.assertTrue(connected)
		hello = await communicator.receive_json_from()
		self.assertEqual(hello['type'], 'connection_established')

		await get_channel_layer().group_send(notifications.user_group(5), {
			'type': 'booking.event',
			'event': 'booking_accepted',
			'booking_id': 7,
			'status': 'ACCEPTED',
			'booking': {'id': 7},
		})
		event = await communicator.receive_json_from()

		self.assertEqual(event['type'], 'booking_accepted')
		self.assertEqual(event['booking_id'], 7)
		await communicator.disconnect()

	async def test_anonymous_connection_is_refused(self):
		communicator = WebsocketCommunicator(BookingConsumer.as_asgi(), '/ws/bookings/')
		connected, _ = await communicator.connect()

		self.assertFalse(connected)
