from rest_framework import serializers

from .models import Booking, Rating


class BookingSerializer(serializers.ModelSerializer):
    """Serializer for bookings"""

    class Meta:
        model = Booking
        fields = ['id', 'customer', 'customer_name', 'phone_number',
                  'pickup_latitude', 'pickup_longitude', 'pickup_location',
                  'dropoff_latitude', 'dropoff_longitude', 'destination',
                  'estimated_fare', 'actual_fare', 'status', 'verification_code',
                  'assigned_driver_id', 'assigned_tricycle_id', 'driver_name',
                  'arrived_at_pickup', 'arrived_at_pickup_time',
                  'is_no_show', 'no_show_reported_time',
                  'created_at', 'accepted_at', 'started_at', 'completed_at',
                  'cancelled_at', 'cancelled_by', 'cancellation_reason',
                  'rejected_at', 'rejected_by']
        read_only_fields = fields


class BookingCreateSerializer(serializers.Serializer):
    """Serializer for creating bookings"""
    pickup_latitude = serializers.FloatField(min_value=-90, max_value=90)
    pickup_longitude = serializers.FloatField(min_value=-180, max_value=180)
    dropoff_latitude = serializers.FloatField(min_value=-90, max_value=90)
    dropoff_longitude = serializers.FloatField(min_value=-180, max_value=180)
    pickup_location = serializers.CharField(required=False, allow_blank=True, default="")
    destination = serializers.CharField(required=False, allow_blank=True, default="")


class FareEstimateSerializer(BookingCreateSerializer):
    """Trip plus an optional driver position for the travel fee"""
    driver_latitude = serializers.FloatField(required=False, min_value=-90, max_value=90)
    driver_longitude = serializers.FloatField(required=False, min_value=-180, max_value=180)

    def validate(self, data):
        if ("driver_latitude" in data) != ("driver_longitude" in data):
            raise serializers.ValidationError("driver_latitude and driver_longitude go together")
        return data


class FareBreakdownSerializer(serializers.Serializer):
    passenger_distance_km = serializers.FloatField()
    driver_to_pickup_km = serializers.FloatField()
    base_fare = serializers.DecimalField(max_digits=8, decimal_places=2)
    driver_travel_fee = serializers.DecimalField(max_digits=8, decimal_places=2)
    subtotal = serializers.DecimalField(max_digits=8, decimal_places=2)
    discount_type = serializers.CharField(allow_null=True)
    discount_percent = serializers.DecimalField(max_digits=5, decimal_places=2)
    discount_amount = serializers.DecimalField(max_digits=8, decimal_places=2)
    total_fare = serializers.DecimalField(max_digits=8, decimal_places=2)


class BookingCancelSerializer(serializers.Serializer):
    """Serializer for booking cancellation"""
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class PickupSerializer(serializers.Serializer):
    verification_code = serializers.CharField(required=False, max_length=6)


class CompleteTripSerializer(serializers.Serializer):
    fare = serializers.DecimalField(required=False, max_digits=8, decimal_places=2, min_value=0)


class RatingSerializer(serializers.ModelSerializer):
    class Meta:
        model = Rating
        fields = ['id', 'booking', 'customer_id', 'customer_name', 'driver_id',
                  'driver_name', 'stars', 'feedback', 'rated_by', 'created_at']
        read_only_fields = fields
