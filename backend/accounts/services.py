"""
Identity and profile lookups used by the booking services.

Profiles are read-only here; the booking flow only needs the passenger's
name, phone, discount eligibility and standing.
"""

import logging
from dataclasses import dataclass, field

from django.contrib.auth import get_user_model

from services.exceptions import BookingNotAllowedError
from services.fare import DiscountProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserProfile:
    user_id: int
    name: str
    phone_number: str = ""
    discount: DiscountProfile = field(default_factory=DiscountProfile)
    trust_score: float = 100.0
    is_blocked: bool = False


def profile_from_user(user) -> UserProfile:
    return UserProfile(
        user_id=user.pk,
        name=user.get_full_name() or user.username,
        phone_number=user.phone_number or "",
        discount=DiscountProfile.from_raw(user.discount_type, user.discount_verified),
        trust_score=user.trust_score,
        is_blocked=user.is_blocked,
    )


def get_user_profile(user_id) -> UserProfile:
    """
    Return the profile for ``user_id``.

    Raises:
        BookingNotAllowedError: no such user
    """
    User = get_user_model()
    try:
        user = User.objects.get(pk=user_id)
    except User.DoesNotExist:
        logger.warning("Profile lookup for unknown user %s", user_id)
        raise BookingNotAllowedError("User profile not found")
    return profile_from_user(user)
