from django.db import models
from django.contrib.auth.models import AbstractUser


class User(AbstractUser):
    """Extended user model with role selection and discount eligibility"""
    ROLE_CHOICES = [
        ('passenger', 'Passenger'),
        ('driver', 'Tricycle Driver'),
        ('admin', 'TODA Admin'),
    ]

    # Role & basic info
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default='passenger')
    phone_number = models.CharField(max_length=15, blank=True)

    # Driver identity as seen by the queue (RFID card or mobile id)
    driver_id = models.CharField(max_length=64, blank=True, db_index=True)
    tricycle_id = models.CharField(max_length=64, blank=True)

    # Legacy profiles hold either the enum name or a {displayName, discountPercent} object
    discount_type = models.JSONField(null=True, blank=True)
    discount_verified = models.BooleanField(default=False)
    discount_id_number = models.CharField(max_length=64, blank=True)

    trust_score = models.FloatField(default=100.0)
    is_blocked = models.BooleanField(default=False)

    class Meta:
        db_table = 'users'

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"
