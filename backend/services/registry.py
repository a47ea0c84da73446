"""
Process-wide service instances.

Stores are selected by dotted path in ``settings.DISPATCH`` so a deployment
(or a test) can swap the ORM adapters for the in-process ones without touching
callers. Everything is built lazily on first use.
"""

import logging
import threading
from typing import Any, Dict

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

DISPATCH_DEFAULTS: Dict[str, Any] = {
    "BOOKING_STORE": "services.stores.OrmBookingStore",
    "QUEUE_STORE": "services.stores.OrmQueueStore",
    "POLL_INTERVAL_SECONDS": 10,
    "POLL_MAX_ATTEMPTS": 12,
    "POLLER_WORKERS": 32,
    "CLAIM_ATTEMPTS": 2,
    "NO_SHOW_GRACE_SECONDS": 300,
    "MIN_TRUST_SCORE": 50.0,
    "FARE_RULES": {},
}

_lock = threading.RLock()
_booking_store = None
_queue_store = None
_state_machine = None
_matching_engine = None
_booking_poller = None


def dispatch_setting(name: str):
    """Read one DISPATCH setting, falling back to the built-in default."""
    return getattr(settings, "DISPATCH", {}).get(name, DISPATCH_DEFAULTS[name])


def get_booking_store():
    global _booking_store
    with _lock:
        if _booking_store is None:
            _booking_store = import_string(dispatch_setting("BOOKING_STORE"))()
        return _booking_store


def get_queue_store():
    global _queue_store
    with _lock:
        if _queue_store is None:
            _queue_store = import_string(dispatch_setting("QUEUE_STORE"))()
        return _queue_store


def get_state_machine():
    global _state_machine
    from services.booking_management.state_machine import BookingStateMachine

    with _lock:
        if _state_machine is None:
            _state_machine = BookingStateMachine(
                get_booking_store(),
                no_show_grace_seconds=dispatch_setting("NO_SHOW_GRACE_SECONDS"),
            )
        return _state_machine


def get_matching_engine():
    global _matching_engine
    from services.matching import MatchingEngine

    with _lock:
        if _matching_engine is None:
            _matching_engine = MatchingEngine(
                get_booking_store(),
                get_queue_store(),
                get_state_machine(),
                claim_attempts=dispatch_setting("CLAIM_ATTEMPTS"),
            )
        return _matching_engine


def get_booking_poller():
    global _booking_poller
    from services.matching import BookingPoller

    with _lock:
        if _booking_poller is None:
            _booking_poller = BookingPoller(
                get_booking_store(),
                get_matching_engine(),
                interval_seconds=dispatch_setting("POLL_INTERVAL_SECONDS"),
                max_attempts=dispatch_setting("POLL_MAX_ATTEMPTS"),
                max_workers=dispatch_setting("POLLER_WORKERS"),
            )
            logger.info("Booking poller started")
        return _booking_poller


def reset_services(poller_wait: bool = False) -> None:
    """
    Drop every cached instance, stopping the poller first. Used by tests and
    after settings changes.
    """
    global _booking_store, _queue_store, _state_machine, _matching_engine, _booking_poller
    with _lock:
        poller = _booking_poller
        _booking_store = _queue_store = _state_machine = _matching_engine = _booking_poller = None
    if poller is not None:
        poller.shutdown(wait=poller_wait)
