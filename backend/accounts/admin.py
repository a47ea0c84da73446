from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from accounts.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin panel for custom User model"""

    list_display = [
        "username",
        "role",
        "phone_number",
        "driver_id",
        "discount_verified",
        "trust_score",
        "is_blocked",
    ]

    list_filter = [
        "role",
        "discount_verified",
        "is_blocked",
        "is_active",
    ]

    search_fields = [
        "username",
        "phone_number",
        "driver_id",
        "tricycle_id",
    ]

    ordering = ("username",)

    # Extend default Django UserAdmin fieldsets
    fieldsets = BaseUserAdmin.fieldsets + (
        (
            "TODA Profile",
            {
                "fields": (
                    "role",
                    "phone_number",
                    "driver_id",
                    "tricycle_id",
                )
            },
        ),
        (
            "Discount & Standing",
            {
                "fields": (
                    "discount_type",
                    "discount_verified",
                    "discount_id_number",
                    "trust_score",
                    "is_blocked",
                )
            },
        ),
    )

    # For create user page in admin
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        (
            "TODA Profile",
            {
                "fields": (
                    "role",
                    "phone_number",
                    "driver_id",
                )
            },
        ),
    )
