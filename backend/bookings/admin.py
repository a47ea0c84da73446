"""Tells what to show in the Django admin interface for bookings app"""

from django.contrib import admin
from .models import Booking, Rating


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """Booking admin"""
    list_display = ['id', 'customer_name', 'assigned_driver_id', 'status', 'estimated_fare', 'created_at', 'completed_at']
    list_filter = ['status', 'is_no_show', 'created_at']
    search_fields = ['customer_name', 'phone_number', 'assigned_driver_id', 'pickup_location', 'destination']
    readonly_fields = ['created_at', 'accepted_at', 'started_at', 'completed_at', 'cancelled_at', 'rejected_at']
    date_hierarchy = 'created_at'


@admin.register(Rating)
class RatingAdmin(admin.ModelAdmin):
    list_display = ("booking", "driver_id", "customer_name", "stars", "rated_by", "created_at")
    list_filter = ("stars", "rated_by")
    search_fields = ("booking__id", "driver_id", "customer_name")
