"""
Driver matching service.

This module handles:
    - Claiming the head of the driver queue for a pending booking
    - Re-queueing a claimed driver when the booking changed meanwhile
    - Retrying the match in the background until a driver is found
"""

from .engine import MatchingEngine
from .poller import (
    BookingPoller,
    FAILED,
    MATCHED,
    NO_DRIVERS_AVAILABLE,
    RESOLVED,
    SEARCHING,
    STOPPED,
)

__all__ = [
    "MatchingEngine",
    "BookingPoller",
    # Poll outcomes
    "SEARCHING",
    "MATCHED",
    "RESOLVED",
    "NO_DRIVERS_AVAILABLE",
    "STOPPED",
    "FAILED",
]
