from decimal import Decimal

from django.test import SimpleTestCase, override_settings

from services.exceptions import InvalidTripError
from services.fare import (
	DiscountProfile,
	DiscountType,
	FareRules,
	compute_fare,
	driver_travel_fee,
	parse_discount_type,
	trip_base_fare,
	validate_trip_endpoints,
)

PICKUP = (14.0, 121.0)
DROPOFF_5KM = (14.044966, 121.0)
DROPOFF_1KM = (14.01, 121.0)
DRIVER_2KM_AWAY = (13.982013, 121.0)


class TariffTests(SimpleTestCase):
	def test_base_fare_is_flat_up_to_base_distance(self):
		self.assertEqual(trip_base_fare(0.5), Decimal("25.00"))
		self.assertEqual(trip_base_fare(2.0), Decimal("25.00"))

	def test_base_fare_adds_per_km_beyond_base_distance(self):
		self.assertEqual(trip_base_fare(5.0), Decimal("55.00"))
		self.assertEqual(trip_base_fare(2.25), Decimal("27.50"))

	def test_driver_travel_fee_is_free_within_radius(self):
		self.assertEqual(driver_travel_fee(0.0), Decimal("0.00"))
		self.assertEqual(driver_travel_fee(1.0), Decimal("0.00"))
		self.assertEqual(driver_travel_fee(3.0), Decimal("10.00"))

	def test_convenience_fee_policy(self):
		rules = FareRules()
		self.assertEqual(rules.convenience_fee(DiscountProfile()), Decimal("2.00"))
		self.assertEqual(rules.convenience_fee(DiscountProfile(DiscountType.PWD, True)), Decimal("0.00"))
		self.assertEqual(rules.convenience_fee(DiscountProfile(DiscountType.SENIOR_CITIZEN, True)), Decimal("0.00"))
		self.assertEqual(rules.convenience_fee(DiscountProfile(DiscountType.STUDENT, True)), Decimal("1.00"))
		# Unverified holders pay the regular fee
		self.assertEqual(rules.convenience_fee(DiscountProfile(DiscountType.STUDENT, False)), Decimal("2.00"))

	@override_settings(DISPATCH={"FARE_RULES": {"base_fare": "30.00", "per_km_rate": 12}})
	def test_rules_from_settings(self):
		rules = FareRules.from_settings()
		self.assertEqual(rules.base_fare, Decimal("30.00"))
		self.assertEqual(trip_base_fare(1.0, rules), Decimal("30.00"))
		self.assertEqual(trip_base_fare(3.0, rules), Decimal("42.00"))


class ComputeFareTests(SimpleTestCase):
	def assertTotalsConsistent(self, fare):
		self.assertEqual(fare.total_fare, fare.base_fare + fare.driver_travel_fee - fare.discount_amount)
		self.assertEqual(fare.subtotal, fare.base_fare + fare.driver_travel_fee)

	def test_short_trip_without_driver(self):
		fare = compute_fare(PICKUP, DROPOFF_1KM)

		self.assertAlmostEqual(fare.passenger_distance_km, 1.112, places=3)
		self.assertEqual(fare.base_fare, Decimal("27.00"))
		self.assertEqual(fare.driver_travel_fee, Decimal("0.00"))
		self.assertEqual(fare.total_fare, Decimal("27.00"))
		self.assertIsNone(fare.discount_type)
		self.assertTotalsConsistent(fare)

	def test_regular_passenger_with_driver_travel(self):
		fare = compute_fare(PICKUP, DROPOFF_5KM, DRIVER_2KM_AWAY)

		self.assertEqual(fare.base_fare, Decimal("57.00"))
		self.assertEqual(fare.driver_travel_fee, Decimal("5.00"))
		self.assertEqual(fare.discount_amount, Decimal("0.00"))
		self.assertEqual(fare.total_fare, Decimal("62.00"))
		self.assertTotalsConsistent(fare)

	def test_verified_student_discount_excludes_convenience_fee(self):
		profile = DiscountProfile(DiscountType.STUDENT, verified=True)
		fare = compute_fare(PICKUP, DROPOFF_5KM, DRIVER_2KM_AWAY, profile)

		self.assertEqual(fare.base_fare, Decimal("56.00"))
		self.assertEqual(fare.discount_type, "Student")
		self.assertEqual(fare.discount_percent, Decimal("10"))
		self.assertEqual(fare.discount_amount, Decimal("6.00"))
		self.assertEqual(fare.total_fare, Decimal("55.00"))
		self.assertTotalsConsistent(fare)

	def test_verified_pwd_discount(self):
		profile = DiscountProfile(DiscountType.PWD, verified=True)
		fare = compute_fare(PICKUP, DROPOFF_5KM, DRIVER_2KM_AWAY, profile)

		self.assertEqual(fare.base_fare, Decimal("55.00"))
		self.assertEqual(fare.discount_type, "Person with Disability")
		self.assertEqual(fare.discount_amount, Decimal("12.00"))
		self.assertEqual(fare.total_fare, Decimal("48.00"))
		self.assertTotalsConsistent(fare)

	def test_unverified_discount_is_ignored(self):
		profile = DiscountProfile(DiscountType.SENIOR_CITIZEN, verified=False)
		fare = compute_fare(PICKUP, DROPOFF_5KM, DRIVER_2KM_AWAY, profile)

		self.assertIsNone(fare.discount_type)
		self.assertEqual(fare.total_fare, Decimal("62.00"))

	def test_compute_fare_is_deterministic(self):
		profile = DiscountProfile(DiscountType.STUDENT, verified=True)
		self.assertEqual(
			compute_fare(PICKUP, DROPOFF_5KM, DRIVER_2KM_AWAY, profile),
			compute_fare(PICKUP, DROPOFF_5KM, DRIVER_2KM_AWAY, profile),
		)


class TripValidationTests(SimpleTestCase):
	def test_rejects_identical_endpoints(self):
		with self.assertRaises(InvalidTripError):
			validate_trip_endpoints(PICKUP, PICKUP)

	def test_rejects_trips_over_the_cap(self):
		with self.assertRaises(InvalidTripError):
			validate_trip_endpoints(PICKUP, (14.225, 121.0))

	def test_returns_distance_for_valid_trip(self):
		self.assertAlmostEqual(validate_trip_endpoints(PICKUP, DROPOFF_5KM), 5.0, places=2)


class DiscountDecodingTests(SimpleTestCase):
	def test_enum_instance(self):
		self.assertIs(parse_discount_type(DiscountType.STUDENT), DiscountType.STUDENT)

	def test_enum_name_before_display_name(self):
		self.assertIs(parse_discount_type("SENIOR_CITIZEN"), DiscountType.SENIOR_CITIZEN)
		self.assertIs(parse_discount_type("senior citizen"), DiscountType.SENIOR_CITIZEN)
		self.assertIs(parse_discount_type("Person with Disability"), DiscountType.PWD)

	def test_mapping_with_name_or_type(self):
		self.assertIs(parse_discount_type({"name": "PWD"}), DiscountType.PWD)
		self.assertIs(parse_discount_type({"type": "student"}), DiscountType.STUDENT)

	def test_mapping_falls_back_to_display_name(self):
		legacy = {"displayName": "Student", "discountPercent": 10.0}
		self.assertIs(parse_discount_type(legacy), DiscountType.STUDENT)
		self.assertIs(parse_discount_type({"type": "bogus", "displayName": "Senior Citizen"}), DiscountType.SENIOR_CITIZEN)

	def test_unknown_values_mean_no_discount(self):
		self.assertIsNone(parse_discount_type(None))
		self.assertIsNone(parse_discount_type(""))
		with self.assertLogs("services.fare.discounts", level="WARNING"):
			self.assertIsNone(parse_discount_type("VETERAN"))
		with self.assertLogs("services.fare.discounts", level="WARNING"):
			self.assertIsNone(parse_discount_type(42))

	def test_profile_from_raw(self):
		profile = DiscountProfile.from_raw({"displayName": "Student"}, 1)
		self.assertTrue(profile.eligible)
		self.assertFalse(DiscountProfile.from_raw("STUDENT", False).eligible)
