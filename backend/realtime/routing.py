"""WebSocket URL routing for the realtime app."""

from django.urls import re_path

from .consumers import BookingConsumer, QueueConsumer

websocket_urlpatterns = [
    # Booking events for the connected passenger, driver or admin
    # URL: ws://localhost:8000/ws/bookings/
    re_path(r"ws/bookings/$", BookingConsumer.as_asgi(), name="bookings-ws"),

    # Driver queue display
    # URL: ws://localhost:8000/ws/queue/
    re_path(r"ws/queue/$", QueueConsumer.as_asgi(), name="queue-ws"),
]
