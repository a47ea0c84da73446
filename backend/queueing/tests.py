from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from services import registry
from .views import QueueJoinView, QueueLeaveView, QueueListView


class DriverQueueApiTests(TestCase):
	def setUp(self):
		registry.reset_services()
		self.factory = APIRequestFactory()
		self.driver = User.objects.create_user(
			username='driver_one',
			password='driver1234',
			role='driver',
			first_name='Pedro',
			driver_id='RFID-0001',
			tricycle_id='TRI-17'
		)
		self.admin = User.objects.create_user(
			username='toda_admin',
			password='admin1234',
			role='admin'
		)
		self.passenger = User.objects.create_user(
			username='passenger',
			password='pass1234',
			role='passenger'
		)

	def tearDown(self):
		registry.reset_services(poller_wait=True)

	def post(self, view, user, data=None):
		request = self.factory.post('/api/queue/', data or {}, format='json')
		force_authenticate(request, user=user)
		return view.as_view()(request)

	def get_queue(self, user):
		request = self.factory.get('/api/queue/')
		force_authenticate(request, user=user)
		return QueueListView.as_view()(request)

	def test_driver_joins_with_own_profile(self):
		response = self.post(QueueJoinView, self.driver)

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['size'], 1)
		entry = response.data['queue'][0]
		self.assertEqual(entry['driver_id'], 'RFID-0001')
		self.assertEqual(entry['driver_name'], 'Pedro')
		self.assertEqual(entry['toda_number'], 'TRI-17')
		self.assertEqual(entry['source'], 'mobile')

	def test_duplicate_join_is_a_conflict(self):
		self.post(QueueJoinView, self.driver)

		response = self.post(QueueJoinView, self.driver)

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['size'], 1)

	def test_admin_enqueues_from_terminal(self):
		response = self.post(QueueJoinView, self.admin, {'driver_id': 'RFID-0042', 'driver_name': 'Mario'})

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['queue'][0]['source'], 'hardware')

	def test_admin_must_name_driver(self):
		self.assertEqual(self.post(QueueJoinView, self.admin).status_code, 400)
		self.assertEqual(self.post(QueueLeaveView, self.admin).status_code, 400)

	def test_driver_without_id_cannot_join(self):
		self.driver.driver_id = ''
		self.driver.save()

		self.assertEqual(self.post(QueueJoinView, self.driver).status_code, 403)

	def test_passengers_cannot_join(self):
		self.assertEqual(self.post(QueueJoinView, self.passenger).status_code, 403)

	def test_queue_order_is_first_come_first_served(self):
		self.post(QueueJoinView, self.admin, {'driver_id': 'RFID-0042'})
		self.post(QueueJoinView, self.driver)

		response = self.get_queue(self.passenger)

		self.assertEqual(response.status_code, 200)
		self.assertEqual([e['driver_id'] for e in response.data['queue']], ['RFID-0042', 'RFID-0001'])

	def test_leave_queue(self):
		self.post(QueueJoinView, self.driver)

		response = self.post(QueueLeaveView, self.driver)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['size'], 0)
		self.assertEqual(self.post(QueueLeaveView, self.driver).status_code, 404)
