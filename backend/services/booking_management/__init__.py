"""
Booking management service - Booking lifecycle operations.

This module handles:
    - Status transitions and their side effects (state_machine)
    - Creating, cancelling and progressing bookings (operations)
    - Joining and leaving the driver queue
"""

from .state_machine import (
    ActorContext,
    BookingResult,
    BookingStateMachine,
    EXTERNAL_STATUS_MAP,
    STALE_STATE,
    TRANSITIONS,
    can_transition,
    parse_status,
)
from .operations import (
    cancel_booking,
    complete_trip,
    confirm_pickup,
    create_booking,
    estimate_fare,
    get_active_booking,
    get_booking,
    join_queue,
    leave_queue,
    list_queue,
    mark_arrived,
    reject_booking,
    report_no_show,
    retry_matching,
    start_trip,
    sweep_no_shows,
)

__all__ = [
    # State machine
    "ActorContext",
    "BookingResult",
    "BookingStateMachine",
    "EXTERNAL_STATUS_MAP",
    "STALE_STATE",
    "TRANSITIONS",
    "can_transition",
    "parse_status",
    # Operations
    "cancel_booking",
    "complete_trip",
    "confirm_pickup",
    "create_booking",
    "estimate_fare",
    "get_active_booking",
    "get_booking",
    "join_queue",
    "leave_queue",
    "list_queue",
    "mark_arrived",
    "reject_booking",
    "report_no_show",
    "retry_matching",
    "start_trip",
    "sweep_no_shows",
]
