from django.db import models
from django.conf import settings


class BookingStatus(models.TextChoices):
    """Booking status. Values are the strings persisted in the booking store."""
    PENDING = 'PENDING', 'Pending'
    ACCEPTED = 'ACCEPTED', 'Accepted'
    AT_PICKUP = 'AT_PICKUP', 'At Pickup'
    IN_PROGRESS = 'IN_PROGRESS', 'In Progress'
    COMPLETED = 'COMPLETED', 'Completed'
    CANCELLED = 'CANCELLED', 'Cancelled'
    REJECTED = 'REJECTED', 'Rejected'
    NO_SHOW = 'NO_SHOW', 'No Show'


TERMINAL_STATUSES = frozenset({
    BookingStatus.COMPLETED,
    BookingStatus.CANCELLED,
    BookingStatus.REJECTED,
    BookingStatus.NO_SHOW,
})

ACTIVE_STATUSES = frozenset(set(BookingStatus) - TERMINAL_STATUSES)


class Booking(models.Model):
    """A passenger's tricycle booking and its dispatch lifecycle"""

    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='bookings'
    )
    customer_name = models.CharField(max_length=150, blank=True)
    phone_number = models.CharField(max_length=15, blank=True)

    # Pickup / dropoff
    pickup_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_location = models.TextField(blank=True)
    dropoff_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    dropoff_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    destination = models.TextField(blank=True)

    # Fares
    estimated_fare = models.DecimalField(max_digits=8, decimal_places=2, default=0)
    actual_fare = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)

    status = models.CharField(max_length=20, choices=BookingStatus.choices, default=BookingStatus.PENDING)
    verification_code = models.CharField(max_length=6, blank=True)

    # Driver assignment, empty while pending
    assigned_driver_id = models.CharField(max_length=64, blank=True)
    assigned_tricycle_id = models.CharField(max_length=64, blank=True)
    driver_name = models.CharField(max_length=150, blank=True)

    # Pickup arrival and no-show tracking
    arrived_at_pickup = models.BooleanField(default=False)
    arrived_at_pickup_time = models.DateTimeField(null=True, blank=True)
    is_no_show = models.BooleanField(default=False)
    no_show_reported_time = models.DateTimeField(null=True, blank=True)

    # Cancellation / rejection markers
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.CharField(max_length=64, blank=True)
    cancellation_reason = models.TextField(blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    rejected_by = models.CharField(max_length=64, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'bookings'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'created_at'], name='bookings_status_created_idx'),
        ]

    def __str__(self):
        return f"Booking #{self.id} - {self.customer_name or self.customer_id} - {self.status}"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class Rating(models.Model):
    """Rating placeholder created when a trip completes; filled in later by the app."""

    booking = models.OneToOneField(Booking, on_delete=models.CASCADE, related_name='rating')
    customer_id = models.CharField(max_length=64)
    customer_name = models.CharField(max_length=150, blank=True)
    driver_id = models.CharField(max_length=64)
    driver_name = models.CharField(max_length=150, blank=True)
    stars = models.PositiveSmallIntegerField(default=0)
    feedback = models.TextField(blank=True)
    rated_by = models.CharField(max_length=16, default='DRIVER')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ratings'

    def __str__(self):
        return f"Rating for booking #{self.booking_id} ({self.stars}*)"
