from django.db import models
from django.utils import timezone


class QueueEntry(models.Model):
    """A driver waiting in the TODA terminal queue. Order is FIFO by enqueue time."""
    SOURCE_CHOICES = [
        ('hardware', 'RFID Terminal'),
        ('mobile', 'Mobile App'),
    ]

    driver_id = models.CharField(max_length=64, unique=True)
    driver_name = models.CharField(max_length=150, blank=True)
    toda_number = models.CharField(max_length=32, blank=True)
    source = models.CharField(max_length=10, choices=SOURCE_CHOICES, default='mobile')
    enqueued_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'driver_queue'
        # id breaks ties between entries enqueued at the same instant
        ordering = ['enqueued_at', 'id']

    def __str__(self):
        return f"{self.driver_name or self.driver_id} ({self.source}) @ {self.enqueued_at:%H:%M:%S}"
