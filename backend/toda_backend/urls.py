from django.contrib import admin
from django.urls import path, include

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check),  # Health check endpoint

    # Authentication endpoints (at /api/auth/)
    path('api/auth/', include('accounts.urls')),

    # Booking lifecycle (passenger and driver actions)
    path('api/bookings/', include('bookings.urls')),

    # Driver queue at the TODA terminal
    path('api/queue/', include('queueing.urls')),
]
