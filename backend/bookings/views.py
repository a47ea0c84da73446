# bookings/views.py

import logging

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsDriverOrTodaAdmin, IsPassenger
from accounts.services import profile_from_user
from services import registry
from services.booking_management import operations
from services.exceptions import (
    ActiveBookingExistsError,
    BookingNotAllowedError,
    BookingNotFoundError,
    CompensationError,
    InvalidTransitionError,
    InvalidTripError,
    StoreIOError,
)
from services.matching import NO_DRIVERS_AVAILABLE, FAILED
from .models import BookingStatus
from .serializers import (
    BookingCancelSerializer,
    BookingCreateSerializer,
    BookingSerializer,
    CompleteTripSerializer,
    FareBreakdownSerializer,
    FareEstimateSerializer,
    PickupSerializer,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = [
    (BookingNotFoundError, status.HTTP_404_NOT_FOUND),
    (BookingNotAllowedError, status.HTTP_403_FORBIDDEN),
    (ActiveBookingExistsError, status.HTTP_409_CONFLICT),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (InvalidTripError, status.HTTP_400_BAD_REQUEST),
    (StoreIOError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (CompensationError, status.HTTP_503_SERVICE_UNAVAILABLE),
]

RESULT_STATUS = {
    "stale_state": status.HTTP_409_CONFLICT,
    "not_pending": status.HTTP_409_CONFLICT,
    "invalid_code": status.HTTP_400_BAD_REQUEST,
}


def booking_data(booking, user):
    """Serialized booking; the verification code is only shown to its passenger."""
    data = dict(BookingSerializer(booking).data)
    if booking.customer_id != getattr(user, "pk", None):
        data.pop("verification_code", None)
    return data


class BookingAPIView(APIView):
    """Maps dispatch service errors onto JSON error responses."""
    permission_classes = [IsAuthenticated]

    def handle_exception(self, exc):
        for error_class, status_code in ERROR_STATUS:
            if isinstance(exc, error_class):
                if status_code >= 500:
                    logger.error("Booking request failed: %s", exc)
                return Response({"error": str(exc)}, status=status_code)
        return super().handle_exception(exc)

    def result_response(self, result, success_status=status.HTTP_200_OK):
        body = {"success": result.success, "message": result.message}
        if result.booking is not None:
            body["booking"] = booking_data(result.booking, self.request.user)
        if result.success:
            return Response(body, status=success_status)
        body["error"] = result.error_code
        return Response(body, status=RESULT_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST))


# ==================== Passenger Booking APIs ====================

class BookingCreateView(BookingAPIView):
    """
    POST: Passenger books a tricycle. The driver search runs in the background.
    """
    permission_classes = [IsAuthenticated, IsPassenger]

    def post(self, request):
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = operations.create_booking(request.user.pk, **serializer.validated_data)
        response = self.result_response(result, success_status=status.HTTP_201_CREATED)
        response.data["fare"] = FareBreakdownSerializer(result.extra["fare"]).data
        return response


class FareEstimateView(BookingAPIView):
    """
    POST: Fare breakdown for a trip using the caller's discount profile.
    """

    def post(self, request):
        serializer = FareEstimateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        driver_location = None
        if "driver_latitude" in data:
            driver_location = (data["driver_latitude"], data["driver_longitude"])

        fare = operations.estimate_fare(
            (data["pickup_latitude"], data["pickup_longitude"]),
            (data["dropoff_latitude"], data["dropoff_longitude"]),
            discount_profile=profile_from_user(request.user).discount,
            driver_location=driver_location,
        )
        return Response(FareBreakdownSerializer(fare).data)


class CurrentBookingView(BookingAPIView):
    """
    GET: Passenger polling endpoint to get the current booking.
    """
    permission_classes = [IsAuthenticated, IsPassenger]

    def get(self, request):
        booking = operations.get_active_booking(request.user.pk)
        if booking is None:
            return Response({
                "has_active_booking": False,
                "message": "No active booking found",
            })

        resp = {
            "has_active_booking": True,
            "booking": booking_data(booking, request.user),
            "status": booking.status,
            "driver_assigned": bool(booking.assigned_driver_id),
        }

        if booking.status == BookingStatus.PENDING:
            search = registry.get_booking_poller().outcome(booking.pk)
            resp["search_status"] = search
            if search in (NO_DRIVERS_AVAILABLE, FAILED):
                resp["message"] = "No drivers available currently. Retry or cancel the booking."
            else:
                resp["message"] = "Searching for an available driver..."
        elif booking.status == BookingStatus.ACCEPTED:
            resp["message"] = "Driver is on the way!"
        elif booking.status == BookingStatus.AT_PICKUP:
            resp["message"] = "Driver is at the pickup point."
        else:
            resp["message"] = "Trip in progress."

        return Response(resp)


class BookingDetailView(BookingAPIView):
    """
    GET: A booking visible to the caller.
    """

    def get(self, request, booking_id: int):
        booking = operations.get_booking(booking_id, request.user)
        return Response(booking_data(booking, request.user))


class BookingCancelView(BookingAPIView):
    """
    POST: Passenger or assigned driver cancels a booking.
    """

    def post(self, request, booking_id: int):
        serializer = BookingCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = operations.cancel_booking(booking_id, request.user, serializer.validated_data["reason"])
        return self.result_response(result)


class BookingRetryView(BookingAPIView):
    """
    POST: Passenger restarts the driver search after "no drivers available".
    """
    permission_classes = [IsAuthenticated, IsPassenger]

    def post(self, request, booking_id: int):
        return self.result_response(operations.retry_matching(booking_id, request.user))


class BookingCompleteView(BookingAPIView):
    """
    POST: Passenger or driver confirms the trip is over.
    """

    def post(self, request, booking_id: int):
        serializer = CompleteTripSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = operations.complete_trip(booking_id, request.user, serializer.validated_data.get("fare"))
        return self.result_response(result)


# ==================== Driver Booking APIs ====================

class BookingRejectView(BookingAPIView):
    permission_classes = [IsAuthenticated, IsDriverOrTodaAdmin]

    def post(self, request, booking_id: int):
        return self.result_response(operations.reject_booking(booking_id, request.user))


class BookingArriveView(BookingAPIView):
    permission_classes = [IsAuthenticated, IsDriverOrTodaAdmin]

    def post(self, request, booking_id: int):
        return self.result_response(operations.mark_arrived(booking_id, request.user))


class BookingPickupView(BookingAPIView):
    permission_classes = [IsAuthenticated, IsDriverOrTodaAdmin]

    def post(self, request, booking_id: int):
        serializer = PickupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = operations.confirm_pickup(
            booking_id, request.user, serializer.validated_data.get("verification_code")
        )
        return self.result_response(result)


class BookingStartView(BookingAPIView):
    permission_classes = [IsAuthenticated, IsDriverOrTodaAdmin]

    def post(self, request, booking_id: int):
        return self.result_response(operations.start_trip(booking_id, request.user))


class BookingNoShowView(BookingAPIView):
    permission_classes = [IsAuthenticated, IsDriverOrTodaAdmin]

    def post(self, request, booking_id: int):
        return self.result_response(operations.report_no_show(booking_id, request.user))
