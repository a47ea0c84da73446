from rest_framework import serializers

from .models import QueueEntry


class QueueEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = QueueEntry
        fields = ['driver_id', 'driver_name', 'toda_number', 'source', 'enqueued_at']
        read_only_fields = fields


class QueueJoinSerializer(serializers.Serializer):
    """Admin/terminal fields; drivers joining from the app use their own profile"""
    driver_id = serializers.CharField(required=False, max_length=64)
    driver_name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    toda_number = serializers.CharField(required=False, allow_blank=True, max_length=32)
    source = serializers.ChoiceField(choices=QueueEntry.SOURCE_CHOICES, required=False)


class QueueLeaveSerializer(serializers.Serializer):
    driver_id = serializers.CharField(required=False, max_length=64)
