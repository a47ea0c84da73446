"""
Fare estimation for tricycle trips.

Fares are built from three parts:
    - a base fare for the passenger trip (flat up to the base distance,
      per-km beyond it) with the convenience fee folded in
    - a driver travel fee for the distance the driver covers to the pickup
      point beyond a free radius
    - a discount for verified PWD, senior citizen and student passengers,
      taken from the subtotal before the convenience fee
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional, Tuple

from django.conf import settings

from common.utils import calculate_distance_km
from services.exceptions import InvalidTripError
from .discounts import DiscountProfile

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

LatLon = Tuple[float, float]


def _money(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def _decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _default_convenience_fees() -> Dict[str, Decimal]:
    return {
        "PWD": Decimal("0.00"),
        "SENIOR_CITIZEN": Decimal("0.00"),
        "STUDENT": Decimal("1.00"),
    }


@dataclass(frozen=True)
class FareRules:
    """Tariff table. Amounts in PHP, distances in km."""
    base_fare: Decimal = Decimal("25.00")
    base_distance_km: float = 2.0
    per_km_rate: Decimal = Decimal("10.00")
    free_driver_travel_km: float = 1.0
    driver_travel_rate: Decimal = Decimal("5.00")
    default_convenience_fee: Decimal = Decimal("2.00")
    # Convenience fee for verified discount holders, keyed by DiscountType name
    convenience_fees: Dict[str, Decimal] = field(default_factory=_default_convenience_fees)
    min_trip_km: float = 0.01
    max_trip_km: float = 20.0

    @classmethod
    def from_settings(cls) -> "FareRules":
        overrides = dict(getattr(settings, "DISPATCH", {}).get("FARE_RULES", {}))
        money_fields = ("base_fare", "per_km_rate", "driver_travel_rate", "default_convenience_fee")
        for name in money_fields:
            if name in overrides:
                overrides[name] = _decimal(overrides[name])
        if "convenience_fees" in overrides:
            overrides["convenience_fees"] = {
                key: _decimal(value) for key, value in overrides["convenience_fees"].items()
            }
        return cls(**overrides)

    def convenience_fee(self, discount: DiscountProfile) -> Decimal:
        if discount.eligible:
            return self.convenience_fees.get(discount.discount_type.name, self.default_convenience_fee)
        return self.default_convenience_fee


DEFAULT_FARE_RULES = FareRules()


@dataclass(frozen=True)
class FareBreakdown:
    passenger_distance_km: float
    driver_to_pickup_km: float
    base_fare: Decimal
    driver_travel_fee: Decimal
    subtotal: Decimal
    discount_type: Optional[str]
    discount_percent: Decimal
    discount_amount: Decimal
    total_fare: Decimal


def trip_base_fare(distance_km: float, rules: FareRules = DEFAULT_FARE_RULES) -> Decimal:
    """Base fare for the passenger trip, before the convenience fee."""
    if distance_km <= rules.base_distance_km:
        return _money(rules.base_fare)
    excess = _decimal(distance_km - rules.base_distance_km)
    return _money(rules.base_fare + excess * rules.per_km_rate)


def driver_travel_fee(distance_km: float, rules: FareRules = DEFAULT_FARE_RULES) -> Decimal:
    """Fee for the driver's approach beyond the free radius."""
    if distance_km <= rules.free_driver_travel_km:
        return _money(0)
    excess = _decimal(distance_km - rules.free_driver_travel_km)
    return _money(excess * rules.driver_travel_rate)


def compute_fare(
    pickup: LatLon,
    dropoff: LatLon,
    driver_location: Optional[LatLon] = None,
    discount_profile: Optional[DiscountProfile] = None,
    rules: Optional[FareRules] = None,
) -> FareBreakdown:
    """
    Compute the fare breakdown for a trip.

    Args:
        pickup: (lat, lon) of the pickup point
        dropoff: (lat, lon) of the dropoff point
        driver_location: (lat, lon) of the driver, or None before assignment
        discount_profile: passenger discount eligibility
        rules: tariff table (defaults to the built-in tariff)

    Returns:
        FareBreakdown with total_fare == base_fare + driver_travel_fee - discount_amount
    """
    rules = rules or DEFAULT_FARE_RULES
    discount = discount_profile or DiscountProfile()

    passenger_km = calculate_distance_km(pickup, dropoff)
    driver_km = calculate_distance_km(driver_location, pickup) if driver_location else 0.0

    base_core = trip_base_fare(passenger_km, rules)
    travel_fee = driver_travel_fee(driver_km, rules)
    base_fare = base_core + _money(rules.convenience_fee(discount))

    discount_type = None
    discount_percent = Decimal("0")
    discount_amount = _money(0)
    if discount.eligible:
        discount_type = discount.discount_type.display_name
        discount_percent = discount.discount_type.percent
        discount_amount = _money((base_core + travel_fee) * discount_percent / Decimal("100"))

    return FareBreakdown(
        passenger_distance_km=passenger_km,
        driver_to_pickup_km=driver_km,
        base_fare=base_fare,
        driver_travel_fee=travel_fee,
        subtotal=base_fare + travel_fee,
        discount_type=discount_type,
        discount_percent=discount_percent,
        discount_amount=discount_amount,
        total_fare=base_fare + travel_fee - discount_amount,
    )


def validate_trip_endpoints(pickup: LatLon, dropoff: LatLon, rules: Optional[FareRules] = None) -> float:
    """Reject trips that are too short or too long. Returns the distance in km."""
    rules = rules or DEFAULT_FARE_RULES
    distance_km = calculate_distance_km(pickup, dropoff)
    if distance_km < rules.min_trip_km:
        raise InvalidTripError("Pickup and dropoff locations are too close")
    if distance_km > rules.max_trip_km:
        raise InvalidTripError("Trip distance exceeds maximum allowed distance")
    return distance_km
