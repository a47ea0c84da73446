from django.urls import path

from . import views

app_name = 'queueing'

urlpatterns = [
    path('', views.QueueListView.as_view(), name='queue-list'),
    path('join/', views.QueueJoinView.as_view(), name='queue-join'),
    path('leave/', views.QueueLeaveView.as_view(), name='queue-leave'),
]
