"""
Passenger and driver booking operations.

This module contains the business logic behind the booking and queue
endpoints, kept free of HTTP concerns for testability and reuse. Every status
change goes through the state machine; expected outcomes come back as a
BookingResult and only programming or eligibility errors are raised.
"""

import logging
import secrets
from decimal import Decimal
from typing import List, Optional

from accounts.services import get_user_profile
from bookings.models import Booking, BookingStatus
from queueing.models import QueueEntry
from services import registry
from services.exceptions import (
    ActiveBookingExistsError,
    BookingNotAllowedError,
    BookingNotFoundError,
)
from services.fare import (
    DiscountProfile,
    FareBreakdown,
    FareRules,
    compute_fare,
    validate_trip_endpoints,
)
from .state_machine import ActorContext, BookingResult

logger = logging.getLogger(__name__)

COORDINATE = Decimal("0.000001")


def _coordinate(value) -> Decimal:
    return Decimal(str(value)).quantize(COORDINATE)


def generate_verification_code() -> str:
    """Six-digit code the passenger reads out to the driver at pickup."""
    return f"{secrets.randbelow(10 ** 6):06d}"


# ===================== Fares =====================

def estimate_fare(
    pickup,
    dropoff,
    discount_profile: Optional[DiscountProfile] = None,
    driver_location=None,
) -> FareBreakdown:
    """
    Validate the trip and return its fare breakdown.

    Raises:
        InvalidTripError: endpoints too close together or trip too long
    """
    rules = FareRules.from_settings()
    validate_trip_endpoints(pickup, dropoff, rules)
    return compute_fare(pickup, dropoff, driver_location, discount_profile, rules)


# ===================== Passenger Operations =====================

def get_active_booking(customer_id) -> Optional[Booking]:
    """Return the customer's current booking, applying the no-show rule first."""
    booking = registry.get_booking_store().find_active_for_customer(customer_id)
    if booking is None:
        return None
    booking = registry.get_state_machine().check_no_show(booking)
    return None if booking.is_terminal else booking


def create_booking(
    customer_id,
    pickup_latitude: float,
    pickup_longitude: float,
    dropoff_latitude: float,
    dropoff_longitude: float,
    pickup_location: str = "",
    destination: str = "",
) -> BookingResult:
    """
    Create a PENDING booking and start looking for a driver.

    Returns:
        BookingResult with the created booking and the fare breakdown in
        ``extra["fare"]``

    Raises:
        BookingNotAllowedError: blocked account or trust score too low
        ActiveBookingExistsError: the customer already has an active booking
        InvalidTripError: endpoints rejected by validate_trip_endpoints
    """
    profile = get_user_profile(customer_id)
    if profile.is_blocked:
        raise BookingNotAllowedError("Your account is blocked from booking")
    min_trust = registry.dispatch_setting("MIN_TRUST_SCORE")
    if profile.trust_score < min_trust:
        raise BookingNotAllowedError(
            f"Trust score {profile.trust_score:.0f} is below the minimum of {min_trust:.0f}"
        )
    if get_active_booking(customer_id) is not None:
        raise ActiveBookingExistsError("You already have an active booking")

    pickup = (float(pickup_latitude), float(pickup_longitude))
    dropoff = (float(dropoff_latitude), float(dropoff_longitude))
    fare = estimate_fare(pickup, dropoff, profile.discount)

    booking = registry.get_booking_store().create(Booking(
        customer_id=profile.user_id,
        customer_name=profile.name,
        phone_number=profile.phone_number,
        pickup_latitude=_coordinate(pickup_latitude),
        pickup_longitude=_coordinate(pickup_longitude),
        pickup_location=pickup_location,
        dropoff_latitude=_coordinate(dropoff_latitude),
        dropoff_longitude=_coordinate(dropoff_longitude),
        destination=destination,
        estimated_fare=fare.total_fare,
        status=BookingStatus.PENDING,
        verification_code=generate_verification_code(),
    ))
    logger.info("Booking %s created for customer %s (fare %s)", booking.pk, customer_id, fare.total_fare)

    registry.get_booking_poller().start_polling(booking.pk)

    return BookingResult(
        success=True,
        booking=booking,
        message="Looking for an available driver...",
        extra={"fare": fare},
    )


def retry_matching(booking_id, user) -> BookingResult:
    """Restart the driver search for a PENDING booking after the poller gave up."""
    booking = get_booking(booking_id, user)
    if booking.status != BookingStatus.PENDING:
        return BookingResult(
            success=False,
            booking=booking,
            message=f"Booking is {booking.status}; nothing to retry",
            error_code="not_pending",
        )

    started = registry.get_booking_poller().start_polling(booking.pk)
    return BookingResult(
        success=True,
        booking=booking,
        message="Looking for an available driver..." if started else "Still looking for a driver",
        extra={"restarted": started},
    )


def cancel_booking(booking_id, user, reason: str = "") -> BookingResult:
    """Cancel a booking as its passenger or assigned driver."""
    booking = get_booking(booking_id, user)

    poller = registry.get_booking_poller()
    poller.stop_polling(booking.pk)

    actor = ActorContext.for_user(user, reason=reason)
    result = registry.get_state_machine().transition(booking, BookingStatus.CANCELLED, actor)
    if result.success:
        poller.forget(booking.pk)
    return result


# ===================== Driver Operations =====================

def reject_booking(booking_id, user) -> BookingResult:
    """
    Decline a booking that has not been assigned yet. Any driver may see a
    PENDING booking offered to the queue; after assignment only the assigned
    driver (or an admin) can reach it, and the state machine refuses the edge.
    """
    role = getattr(user, "role", None)
    if role not in ("driver", "admin"):
        raise BookingNotAllowedError("Only drivers can decline a booking")
    booking = get_booking(booking_id)
    if booking.status != BookingStatus.PENDING and not _can_view(booking, user):
        raise BookingNotFoundError(f"Booking {booking_id} not found")

    poller = registry.get_booking_poller()
    poller.stop_polling(booking.pk)
    result = registry.get_state_machine().transition(
        booking, BookingStatus.REJECTED, ActorContext.for_user(user)
    )
    if result.success:
        poller.forget(booking.pk)
    return result


def mark_arrived(booking_id, user) -> BookingResult:
    """Record that the assigned driver reached the pickup point."""
    booking = _get_for_assigned_driver(booking_id, user)
    return registry.get_state_machine().mark_arrived(booking, ActorContext.for_user(user))


def confirm_pickup(booking_id, user, verification_code: Optional[str] = None) -> BookingResult:
    """
    Move an ACCEPTED booking to AT_PICKUP. When a code is given it must match
    the one shown to the passenger.
    """
    booking = _get_for_assigned_driver(booking_id, user)
    if verification_code is not None and str(verification_code).strip() != booking.verification_code:
        return BookingResult(
            success=False,
            booking=booking,
            message="Verification code does not match",
            error_code="invalid_code",
        )
    return registry.get_state_machine().transition(
        booking, BookingStatus.AT_PICKUP, ActorContext.for_user(user)
    )


def start_trip(booking_id, user) -> BookingResult:
    booking = _get_for_assigned_driver(booking_id, user)
    return registry.get_state_machine().transition(
        booking, BookingStatus.IN_PROGRESS, ActorContext.for_user(user)
    )


def complete_trip(booking_id, user, fare=None) -> BookingResult:
    """Complete an IN_PROGRESS trip. Either party may confirm completion."""
    booking = get_booking(booking_id, user)
    actual_fare = Decimal(str(fare)) if fare is not None else None
    return registry.get_state_machine().transition(
        booking, BookingStatus.COMPLETED, ActorContext.for_user(user, fare=actual_fare)
    )


def report_no_show(booking_id, user) -> BookingResult:
    """
    Close the booking as a no-show. Raises InvalidTransitionError until the
    grace period after arrival has elapsed.
    """
    booking = _get_for_assigned_driver(booking_id, user, apply_no_show=False)
    return registry.get_state_machine().transition(
        booking,
        BookingStatus.NO_SHOW,
        ActorContext.for_user(user, reason="Reported by driver"),
    )


def sweep_no_shows(now=None) -> int:
    """Apply the no-show rule to every ACCEPTED booking. Returns how many closed."""
    state_machine = registry.get_state_machine()
    closed = 0
    for booking in registry.get_booking_store().list_by_status(BookingStatus.ACCEPTED):
        if state_machine.no_show_due(booking, now):
            updated = state_machine.check_no_show(booking, now)
            if updated.status == BookingStatus.NO_SHOW:
                closed += 1
    if closed:
        logger.info("Closed %s bookings as no-shows", closed)
    return closed


# ===================== Queries =====================

def get_booking(booking_id, user=None, apply_no_show: bool = True) -> Booking:
    """
    Load a booking visible to ``user`` (its passenger, its assigned driver or a
    TODA admin). ``user=None`` skips the visibility check.

    Raises:
        BookingNotFoundError: unknown id or not visible to ``user``
    """
    booking = registry.get_booking_store().get(booking_id)
    if user is not None and not _can_view(booking, user):
        raise BookingNotFoundError(f"Booking {booking_id} not found")
    if apply_no_show:
        booking = registry.get_state_machine().check_no_show(booking)
    return booking


def _can_view(booking, user) -> bool:
    if getattr(user, "role", None) == "admin":
        return True
    if booking.customer_id == user.pk:
        return True
    driver_id = getattr(user, "driver_id", "")
    return bool(driver_id) and booking.assigned_driver_id == driver_id


def _get_for_assigned_driver(booking_id, user, apply_no_show: bool = True) -> Booking:
    booking = get_booking(booking_id, user, apply_no_show=apply_no_show)
    if getattr(user, "role", None) == "admin":
        return booking
    driver_id = getattr(user, "driver_id", "")
    if not driver_id or booking.assigned_driver_id != driver_id:
        raise BookingNotAllowedError("Only the assigned driver can do this")
    return booking


# ===================== Driver Queue =====================

def join_queue(driver_id: str, driver_name: str = "", toda_number: str = "", source: str = "mobile") -> bool:
    """Append a driver to the queue. False when the driver is already queued."""
    if not driver_id:
        raise BookingNotAllowedError("A driver id is required to join the queue")
    joined = registry.get_queue_store().append(QueueEntry(
        driver_id=driver_id,
        driver_name=driver_name,
        toda_number=toda_number,
        source=source,
    ))
    if joined:
        logger.info("Driver %s joined the queue via %s", driver_id, source)
    return joined


def leave_queue(driver_id: str) -> bool:
    """Remove a driver from the queue. False when the driver was not queued."""
    left = registry.get_queue_store().remove(driver_id)
    if left:
        logger.info("Driver %s left the queue", driver_id)
    return left


def list_queue() -> List[QueueEntry]:
    return registry.get_queue_store().list_entries()
