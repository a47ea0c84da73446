"""Celery tasks for booking-related background processing."""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def create_rating_placeholder_task(booking_id: int):
    """
    Create the empty rating record for a completed booking.

    Scheduled fire-and-forget when a trip completes; running it twice for the
    same booking is harmless.
    """
    from bookings.models import Booking, BookingStatus, Rating

    try:
        booking = Booking.objects.get(id=booking_id)
    except Booking.DoesNotExist:
        logger.warning("Booking %s not found for rating placeholder", booking_id)
        return None

    if booking.status != BookingStatus.COMPLETED:
        logger.info("Booking %s is %s; no rating placeholder needed", booking_id, booking.status)
        return None

    rating, created = Rating.objects.get_or_create(
        booking=booking,
        defaults={
            "customer_id": str(booking.customer_id),
            "customer_name": booking.customer_name,
            "driver_id": booking.assigned_driver_id,
            "driver_name": booking.driver_name,
        },
    )
    if created:
        logger.info("Created rating placeholder %s for booking %s", rating.id, booking_id)
    return rating.id


@shared_task
def sweep_no_shows_task():
    """Close ACCEPTED bookings whose no-show grace period has elapsed."""
    from services.booking_management import sweep_no_shows

    return sweep_no_shows()
