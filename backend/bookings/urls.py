from django.urls import path

from . import views

app_name = 'bookings'

urlpatterns = [
    # Passenger APIs
    path('', views.BookingCreateView.as_view(), name='create-booking'),
    path('estimate/', views.FareEstimateView.as_view(), name='estimate-fare'),
    path('current/', views.CurrentBookingView.as_view(), name='current-booking'),
    path('<int:booking_id>/', views.BookingDetailView.as_view(), name='booking-detail'),
    path('<int:booking_id>/cancel/', views.BookingCancelView.as_view(), name='cancel-booking'),
    path('<int:booking_id>/retry/', views.BookingRetryView.as_view(), name='retry-booking'),
    path('<int:booking_id>/complete/', views.BookingCompleteView.as_view(), name='complete-booking'),

    # Driver Booking Actions
    path('<int:booking_id>/reject/', views.BookingRejectView.as_view(), name='reject-booking'),
    path('<int:booking_id>/arrive/', views.BookingArriveView.as_view(), name='arrive-booking'),
    path('<int:booking_id>/pickup/', views.BookingPickupView.as_view(), name='pickup-booking'),
    path('<int:booking_id>/start/', views.BookingStartView.as_view(), name='start-booking'),
    path('<int:booking_id>/no-show/', views.BookingNoShowView.as_view(), name='no-show-booking'),
]
