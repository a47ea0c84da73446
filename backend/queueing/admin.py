from django.contrib import admin
from .models import QueueEntry


@admin.register(QueueEntry)
class QueueEntryAdmin(admin.ModelAdmin):
    """Driver queue, head first"""
    list_display = ("driver_id", "driver_name", "toda_number", "source", "enqueued_at")
    list_filter = ("source",)
    search_fields = ("driver_id", "driver_name", "toda_number")
    ordering = ("enqueued_at", "id")
