"""
Fare estimation service.

This module handles:
    - Base fare, driver travel fee and convenience fee rules
    - Discount normalisation and application
"""

from .calculator import (
    DEFAULT_FARE_RULES,
    FareBreakdown,
    FareRules,
    compute_fare,
    driver_travel_fee,
    trip_base_fare,
    validate_trip_endpoints,
)
from .discounts import DiscountProfile, DiscountType, parse_discount_type

__all__ = [
    "DEFAULT_FARE_RULES",
    "FareBreakdown",
    "FareRules",
    "compute_fare",
    "driver_travel_fee",
    "trip_base_fare",
    "validate_trip_endpoints",
    "DiscountProfile",
    "DiscountType",
    "parse_discount_type",
]
