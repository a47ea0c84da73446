"""Exception taxonomy for the dispatch services."""


class DispatchError(Exception):
    """Base class for dispatch service errors."""
    pass


class InvalidTransitionError(DispatchError):
    """Raised when a booking status change is not a legal edge."""

    def __init__(self, current, target, detail=""):
        self.current = current
        self.target = target
        message = f"Cannot move booking from {current} to {target}"
        super().__init__(f"{message}: {detail}" if detail else message)


class StoreIOError(DispatchError):
    """Raised when a store adapter fails to read or write. Retryable."""
    pass


class CompensationError(DispatchError):
    """Raised when a claimed driver could not be returned to the queue."""

    def __init__(self, driver_id, booking_id, cause=None):
        self.driver_id = driver_id
        self.booking_id = booking_id
        self.cause = cause
        super().__init__(
            f"Driver {driver_id} was claimed for booking {booking_id} "
            f"but could not be re-queued: {cause}"
        )


class BookingNotFoundError(DispatchError):
    """Raised when a booking cannot be found."""
    pass


class BookingNotAllowedError(DispatchError):
    """Raised when a customer is not eligible to book."""
    pass


class ActiveBookingExistsError(DispatchError):
    """Raised when customer already has an active booking."""
    pass


class InvalidTripError(DispatchError):
    """Raised when pickup and dropoff do not describe a bookable trip."""
    pass
