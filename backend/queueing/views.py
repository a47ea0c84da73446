# queueing/views.py

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsDriverOrTodaAdmin
from bookings.views import BookingAPIView
from services.booking_management import operations
from .serializers import QueueEntrySerializer, QueueJoinSerializer, QueueLeaveSerializer


def _queue_response(**extra):
    entries = operations.list_queue()
    return {
        **extra,
        "queue": QueueEntrySerializer(entries, many=True).data,
        "size": len(entries),
    }


class QueueListView(APIView):
    """
    GET: The driver queue, head first.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(_queue_response())


class QueueJoinView(BookingAPIView):
    """
    POST: Driver joins the queue. TODA admins (and the RFID terminal account)
    may enqueue any driver by id.
    """
    permission_classes = [IsAuthenticated, IsDriverOrTodaAdmin]

    def post(self, request):
        serializer = QueueJoinSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        user = request.user

        if user.role == "admin":
            if not data.get("driver_id"):
                return Response({"error": "driver_id is required"}, status=status.HTTP_400_BAD_REQUEST)
            driver_id = data["driver_id"]
            driver_name = data.get("driver_name", "")
            toda_number = data.get("toda_number", "")
            source = data.get("source", "hardware")
        else:
            driver_id = user.driver_id
            driver_name = user.get_full_name() or user.username
            toda_number = user.tricycle_id
            source = data.get("source", "mobile")

        joined = operations.join_queue(driver_id, driver_name, toda_number, source)
        if not joined:
            return Response(
                _queue_response(error="Driver is already in the queue"),
                status=status.HTTP_409_CONFLICT,
            )
        return Response(_queue_response(message="Joined the queue"), status=status.HTTP_201_CREATED)


class QueueLeaveView(BookingAPIView):
    """
    POST: Driver leaves the queue (admins may remove any driver).
    """
    permission_classes = [IsAuthenticated, IsDriverOrTodaAdmin]

    def post(self, request):
        serializer = QueueLeaveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        if request.user.role == "admin":
            driver_id = serializer.validated_data.get("driver_id")
            if not driver_id:
                return Response({"error": "driver_id is required"}, status=status.HTTP_400_BAD_REQUEST)
        else:
            driver_id = request.user.driver_id

        if not operations.leave_queue(driver_id):
            return Response({"error": "Driver is not in the queue"}, status=status.HTTP_404_NOT_FOUND)
        return Response(_queue_response(message="Left the queue"))
