"""
Great-circle distances for fares and trip validation.

Points are ``(latitude, longitude)`` pairs in degrees; Decimal values coming
from the models are accepted.
"""

from math import asin, cos, radians, sin, sqrt

EARTH_RADIUS_KM = 6371.0


def calculate_distance_km(point_a, point_b) -> float:
    """Haversine distance in kilometers between two (lat, lon) pairs."""
    lat_a, lon_a = (radians(float(v)) for v in point_a)
    lat_b, lon_b = (radians(float(v)) for v in point_b)
    h = sin((lat_b - lat_a) / 2) ** 2 + cos(lat_a) * cos(lat_b) * sin((lon_b - lon_a) / 2) ** 2
    return 2 * EARTH_RADIUS_KM * asin(sqrt(h))


def calculate_distance(lat1, lon1, lat2, lon2) -> float:
    """Haversine distance in meters."""
    return calculate_distance_km((lat1, lon1), (lat2, lon2)) * 1000.0
