from django.contrib.auth import authenticate
from rest_framework import serializers

from services.fare import parse_discount_type
from .models import User


class UserSerializer(serializers.ModelSerializer):
    discount = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "role",
            "phone_number",
            "driver_id",
            "tricycle_id",
            "discount",
            "discount_verified",
            "trust_score",
            "is_blocked",
        ]
        read_only_fields = fields

    def get_discount(self, obj):
        """Normalised discount type, whatever shape the profile stored it in."""
        discount_type = parse_discount_type(obj.discount_type)
        if discount_type is None:
            return None
        return {
            "type": discount_type.name,
            "display_name": discount_type.display_name,
            "percent": str(discount_type.percent),
        }


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, data):
        user = authenticate(username=data["username"], password=data["password"])
        if not user:
            raise serializers.ValidationError("Invalid username or password")
        return user


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True)
    role = serializers.ChoiceField(choices=[("passenger", "Passenger"), ("driver", "Tricycle Driver")])

    class Meta:
        model = User
        fields = ['username', 'password', 'email', 'first_name', 'last_name', 'role',
                  'phone_number', 'driver_id', 'tricycle_id', 'discount_type', 'discount_id_number']

    def validate_email(self, value):
        if value and User.objects.filter(email=value).exists():
            raise serializers.ValidationError("Email already exists")
        return value

    def validate_discount_type(self, value):
        if value in (None, ""):
            return None
        discount_type = parse_discount_type(value)
        if discount_type is None:
            raise serializers.ValidationError("Unknown discount type")
        return discount_type.name

    def validate(self, data):
        # Drivers are identified in the queue by their driver id
        if data['role'] == 'driver' and not data.get('driver_id'):
            raise serializers.ValidationError({
                'driver_id': 'Driver id is required for drivers'
            })
        return data

    def create(self, validated_data):
        password = validated_data.pop('password')
        # Discounts stay unverified until a TODA admin checks the ID
        return User.objects.create_user(password=password, **validated_data)
