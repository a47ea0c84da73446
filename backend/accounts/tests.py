from django.test import TestCase
from rest_framework.test import APIRequestFactory

from services.exceptions import BookingNotAllowedError
from services.fare import DiscountType
from .models import User
from .services import get_user_profile
from .views import LoginView, RegisterView


class UserProfileTests(TestCase):
	def test_profile_decodes_legacy_discount_object(self):
		user = User.objects.create_user(
			username='lola',
			password='pass1234',
			first_name='Lourdes',
			discount_type={'displayName': 'Senior Citizen', 'discountPercent': 20.0},
			discount_verified=True,
			trust_score=80
		)

		profile = get_user_profile(user.pk)

		self.assertEqual(profile.name, 'Lourdes')
		self.assertEqual(profile.discount.discount_type, DiscountType.SENIOR_CITIZEN)
		self.assertTrue(profile.discount.eligible)
		self.assertEqual(profile.trust_score, 80)

	def test_unknown_discount_is_ignored(self):
		user = User.objects.create_user(username='kid', password='pass1234', discount_type='VIP')

		self.assertIsNone(get_user_profile(user.pk).discount.discount_type)

	def test_unknown_user(self):
		with self.assertRaises(BookingNotAllowedError):
			get_user_profile(9999)


class AuthApiTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()

	def register(self, **data):
		request = self.factory.post('/api/auth/register/', data, format='json')
		return RegisterView.as_view()(request)

	def test_register_passenger_with_discount(self):
		response = self.register(username='juan', password='pass1234', role='passenger', discount_type='Student')

		self.assertEqual(response.status_code, 201)
		self.assertIn('access', response.data['tokens'])
		self.assertEqual(response.data['user']['discount']['type'], 'STUDENT')
		self.assertFalse(response.data['user']['discount_verified'])
		self.assertEqual(User.objects.get(username='juan').discount_type, 'STUDENT')

	def test_driver_needs_driver_id(self):
		response = self.register(username='pedro', password='pass1234', role='driver')

		self.assertEqual(response.status_code, 400)
		self.assertIn('driver_id', response.data)

	def test_admins_cannot_self_register(self):
		self.assertEqual(self.register(username='boss', password='pass1234', role='admin').status_code, 400)

	def test_login_returns_tokens(self):
		User.objects.create_user(username='pedro', password='pass1234', role='driver', driver_id='RFID-0001')

		request = self.factory.post('/api/auth/login/', {'username': 'pedro', 'password': 'pass1234'}, format='json')
		response = LoginView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['user']['driver_id'], 'RFID-0001')
		self.assertIn('refresh', response.data['tokens'])

	def test_login_with_wrong_password(self):
		User.objects.create_user(username='pedro', password='pass1234')

		request = self.factory.post('/api/auth/login/', {'username': 'pedro', 'password': 'nope'}, format='json')

		self.assertEqual(LoginView.as_view()(request).status_code, 400)
