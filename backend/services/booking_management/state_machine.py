"""
Booking status transitions.

Every status change goes through BookingStateMachine.transition(), which
checks the edge against TRANSITIONS and writes through the booking store's
compare-and-set using the status the caller last observed. A write that loses
to a concurrent change comes back as a stale-state result, never an exception.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, Optional

from django.utils import timezone

from bookings.models import BookingStatus
from services.exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)

STALE_STATE = "stale_state"

TRANSITIONS = {
    BookingStatus.PENDING: frozenset({
        BookingStatus.ACCEPTED,
        BookingStatus.CANCELLED,
        BookingStatus.REJECTED,
    }),
    BookingStatus.ACCEPTED: frozenset({
        BookingStatus.AT_PICKUP,
        BookingStatus.NO_SHOW,
        BookingStatus.CANCELLED,
        BookingStatus.IN_PROGRESS,
    }),
    BookingStatus.AT_PICKUP: frozenset({BookingStatus.IN_PROGRESS}),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED}),
}

# External/legacy status strings -> BookingStatus
EXTERNAL_STATUS_MAP = {
    **{status.value: status for status in BookingStatus},
    "CANCELED": BookingStatus.CANCELLED,
    "INPROGRESS": BookingStatus.IN_PROGRESS,
    "ATPICKUP": BookingStatus.AT_PICKUP,
    "NOSHOW": BookingStatus.NO_SHOW,
}


def parse_status(raw) -> BookingStatus:
    """Decode an external status string. Raises ValueError for unknown values."""
    if isinstance(raw, BookingStatus):
        return raw
    key = str(raw).strip().upper().replace("-", "_").replace(" ", "_")
    try:
        return EXTERNAL_STATUS_MAP[key]
    except KeyError:
        raise ValueError(f"Unknown booking status: {raw!r}")


def can_transition(current, target) -> bool:
    return parse_status(target) in TRANSITIONS.get(parse_status(current), frozenset())


@dataclass
class ActorContext:
    """Who is asking for a transition, and what they bring with them."""
    actor_id: str = "system"
    role: str = "system"
    driver_id: str = ""
    tricycle_id: str = ""
    driver_name: str = ""
    reason: str = ""
    fare: Any = None

    @classmethod
    def system(cls, reason: str = "") -> "ActorContext":
        return cls(reason=reason)

    @classmethod
    def for_queue_entry(cls, entry) -> "ActorContext":
        return cls(
            actor_id="matching_engine",
            role="system",
            driver_id=entry.driver_id,
            driver_name=entry.driver_name,
            tricycle_id=getattr(entry, "toda_number", ""),
        )

    @classmethod
    def for_user(cls, user, reason: str = "", fare=None) -> "ActorContext":
        return cls(
            actor_id=str(user.pk),
            role=getattr(user, "role", "passenger"),
            driver_id=getattr(user, "driver_id", "") or "",
            tricycle_id=getattr(user, "tricycle_id", "") or "",
            driver_name=user.get_full_name() or user.username,
            reason=reason,
            fare=fare,
        )


@dataclass
class BookingResult:
    """Result object for booking operations."""
    success: bool
    booking: Optional[Any] = None
    message: str = ""
    error_code: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_stale(self) -> bool:
        return self.error_code == STALE_STATE


class BookingStateMachine:
    """
    Validates and applies booking status transitions.

    Args:
        store: BookingStore used for reads and compare-and-set writes
        notifier: object exposing notify_user/notify_driver; defaults to
            realtime.notifications
        on_completed: callable invoked with the completed booking; defaults to
            scheduling the rating placeholder task
        no_show_grace_seconds: time after arrival before a no-show may be recorded
        clock: returns the current aware datetime
    """

    def __init__(
        self,
        store,
        notifier=None,
        on_completed: Optional[Callable] = None,
        no_show_grace_seconds: int = 300,
        clock: Callable = timezone.now,
    ):
        self.store = store
        self.notifier = notifier
        self.on_completed = on_completed or _schedule_rating_placeholder
        self.no_show_grace = timedelta(seconds=no_show_grace_seconds)
        self.clock = clock

    # ------------------------------------------------------------------ core

    def transition(self, booking, target, actor: Optional[ActorContext] = None, now=None) -> BookingResult:
        target = parse_status(target)
        current = parse_status(booking.status)
        actor = actor or ActorContext.system()

        if target not in TRANSITIONS.get(current, frozenset()):
            raise InvalidTransitionError(current, target)

        now = now or self.clock()
        changes, unset_fields = self._changes_for(booking, target, actor, now)
        changes["status"] = target

        updated = self.store.compare_and_set(booking.pk, current, changes, unset_fields=unset_fields)
        if updated is None:
            latest = self.store.get(booking.pk)
            logger.info(
                "Stale transition for booking %s: observed %s, stored %s, wanted %s",
                booking.pk, current, latest.status, target,
            )
            return BookingResult(
                success=False,
                booking=latest,
                message=f"Booking is now {latest.status}; refresh and try again",
                error_code=STALE_STATE,
            )

        logger.info("Booking %s: %s -> %s (by %s)", booking.pk, current, target, actor.actor_id)
        self._after_transition(updated, target, actor)
        return BookingResult(success=True, booking=updated, message=f"Booking is now {target}")

    def mark_arrived(self, booking, actor: Optional[ActorContext] = None) -> BookingResult:
        """
        Stamp the driver's arrival on an ACCEPTED booking without changing its
        status. This starts the no-show grace period.
        """
        if parse_status(booking.status) != BookingStatus.ACCEPTED:
            raise InvalidTransitionError(booking.status, "ARRIVED", "driver can only arrive on an accepted booking")
        if booking.arrived_at_pickup_time is not None:
            return BookingResult(success=True, booking=booking, message="Arrival already recorded")

        changes = {"arrived_at_pickup": True, "arrived_at_pickup_time": self.clock()}
        updated = self.store.compare_and_set(
            booking.pk, BookingStatus.ACCEPTED, changes, unset_fields=("arrived_at_pickup_time",)
        )
        if updated is None:
            latest = self.store.get(booking.pk)
            return BookingResult(
                success=False,
                booking=latest,
                message="Booking changed while recording arrival",
                error_code=STALE_STATE,
            )

        logger.info("Booking %s: driver arrived at pickup", booking.pk)
        self._notify_user(updated, "driver_arrived", "Your driver has arrived at the pickup point.")
        return BookingResult(success=True, booking=updated, message="Arrival recorded")

    def check_no_show(self, booking, now=None):
        """
        Apply the no-show rule lazily. Returns the booking as it now stands.
        """
        if not self.no_show_due(booking, now):
            return booking
        result = self.transition(
            booking,
            BookingStatus.NO_SHOW,
            ActorContext.system(reason="No-show grace period elapsed"),
            now=now,
        )
        return result.booking

    def no_show_due(self, booking, now=None) -> bool:
        if parse_status(booking.status) != BookingStatus.ACCEPTED:
            return False
        if booking.arrived_at_pickup_time is None:
            return False
        now = now or self.clock()
        return now - booking.arrived_at_pickup_time >= self.no_show_grace

    # ------------------------------------------------------------- internals

    def _changes_for(self, booking, target, actor, now):
        changes = {}
        unset_fields = []

        if target == BookingStatus.ACCEPTED:
            if not actor.driver_id:
                raise ValueError("Accepting a booking requires a driver id")
            changes.update(
                assigned_driver_id=actor.driver_id,
                assigned_tricycle_id=actor.tricycle_id,
                driver_name=actor.driver_name,
                accepted_at=now,
            )
        elif target == BookingStatus.AT_PICKUP:
            if booking.arrived_at_pickup_time is None:
                changes.update(arrived_at_pickup=True, arrived_at_pickup_time=now)
                unset_fields.append("arrived_at_pickup_time")
        elif target == BookingStatus.NO_SHOW:
            if not self.no_show_due(booking, now):
                raise InvalidTransitionError(
                    booking.status, target, "driver has not waited out the grace period at pickup"
                )
            if booking.no_show_reported_time is None:
                changes.update(is_no_show=True, no_show_reported_time=now)
                unset_fields.append("no_show_reported_time")
        elif target == BookingStatus.CANCELLED:
            changes.update(
                cancelled_at=now,
                cancelled_by=actor.actor_id,
                cancellation_reason=actor.reason or "No reason provided",
            )
        elif target == BookingStatus.REJECTED:
            changes.update(rejected_at=now, rejected_by=actor.actor_id)
        elif target == BookingStatus.IN_PROGRESS:
            changes.update(started_at=now)
        elif target == BookingStatus.COMPLETED:
            fare = actor.fare if actor.fare is not None else (booking.actual_fare or booking.estimated_fare)
            changes.update(completed_at=now, actual_fare=fare)

        return changes, unset_fields

    def _after_transition(self, booking, target, actor):
        if target == BookingStatus.ACCEPTED:
            self._notify_user(booking, "booking_accepted", "A driver has been assigned and is on the way.")
            self._notify_driver(booking, "booking_assigned", "You have a new passenger.")
        elif target == BookingStatus.AT_PICKUP:
            self._notify_user(booking, "driver_arrived", "Your driver has arrived at the pickup point.")
        elif target == BookingStatus.NO_SHOW:
            self._notify_user(booking, "booking_no_show", "The booking was closed because you did not show up.")
            self._notify_driver(booking, "booking_no_show", "Passenger no-show recorded.")
        elif target == BookingStatus.CANCELLED:
            if actor.role == "driver":
                self._notify_user(booking, "booking_cancelled", "Driver cancelled the booking. Please book again.")
            else:
                self._notify_driver(booking, "booking_cancelled", "Passenger cancelled this booking.")
        elif target == BookingStatus.REJECTED:
            self._notify_user(booking, "booking_rejected", "The booking was declined.")
        elif target == BookingStatus.IN_PROGRESS:
            self._notify_user(booking, "trip_started", "Your trip has started.")
        elif target == BookingStatus.COMPLETED:
            self._notify_user(booking, "trip_completed", "Trip completed. Thank you for riding with us!")
            try:
                self.on_completed(booking)
            except Exception:
                logger.exception("Failed to schedule rating placeholder for booking %s", booking.pk)

    def _get_notifier(self):
        if self.notifier is None:
            from realtime import notifications
            return notifications
        return self.notifier

    def _notify_user(self, booking, event_type, message):
        try:
            self._get_notifier().notify_user(booking.customer_id, event_type, booking, message)
        except Exception:
            logger.exception("Failed to notify customer of %s for booking %s", event_type, booking.pk)

    def _notify_driver(self, booking, event_type, message):
        if not booking.assigned_driver_id:
            return
        try:
            self._get_notifier().notify_driver(booking.assigned_driver_id, event_type, booking, message)
        except Exception:
            logger.exception("Failed to notify driver of %s for booking %s", event_type, booking.pk)


def _schedule_rating_placeholder(booking):
    from bookings.tasks import create_rating_placeholder_task
    create_rating_placeholder_task.delay(booking.pk)
