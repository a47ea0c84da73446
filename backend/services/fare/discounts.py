"""
Discount eligibility types and normalisation of stored discount data.

Profile records written by older app versions store ``discountType`` either as
the enum name (``"STUDENT"``), as the display name, or as a nested object such
as ``{"displayName": "Student", "discountPercent": 10.0}``. Everything past
this module only ever sees a :class:`DiscountProfile`.
"""

import enum
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

logger = logging.getLogger(__name__)


class DiscountType(enum.Enum):
    PWD = ("Person with Disability", Decimal("20"))
    SENIOR_CITIZEN = ("Senior Citizen", Decimal("20"))
    STUDENT = ("Student", Decimal("10"))

    def __init__(self, display_name, percent):
        self.display_name = display_name
        self.percent = percent


@dataclass(frozen=True)
class DiscountProfile:
    """Normalised discount eligibility of one passenger."""
    discount_type: Optional[DiscountType] = None
    verified: bool = False

    @property
    def eligible(self) -> bool:
        return self.discount_type is not None and self.verified

    @classmethod
    def from_raw(cls, raw_type: Any, verified: Any = False) -> "DiscountProfile":
        return cls(discount_type=parse_discount_type(raw_type), verified=bool(verified))


def _by_display_name(value: str) -> Optional[DiscountType]:
    wanted = value.strip().casefold()
    for discount_type in DiscountType:
        if discount_type.display_name.casefold() == wanted:
            return discount_type
    return None


def _from_string(value: str) -> Optional[DiscountType]:
    key = value.strip().upper().replace("-", "_").replace(" ", "_")
    if key in DiscountType.__members__:
        return DiscountType[key]
    return _by_display_name(value)


def parse_discount_type(raw: Any) -> Optional[DiscountType]:
    """
    Decode a stored discount type.

    Decode order:
        1. ``None`` / empty string -> no discount
        2. a ``DiscountType`` instance
        3. a string: enum name first, then display name
        4. a mapping: ``name`` or ``type`` key, then ``displayName``
    Anything else is logged and treated as no discount.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, DiscountType):
        return raw

    parsed = None
    if isinstance(raw, str):
        parsed = _from_string(raw)
    elif isinstance(raw, Mapping):
        for key in ("name", "type"):
            value = raw.get(key)
            if isinstance(value, str):
                parsed = _from_string(value)
                if parsed:
                    break
        if parsed is None:
            display_name = raw.get("displayName") or raw.get("display_name")
            if isinstance(display_name, str):
                parsed = _by_display_name(display_name)

    if parsed is None:
        logger.warning("Unrecognised discount type value: %r", raw)
    return parsed
