"""
Realtime app for WebSocket communication.

Key Components:
    - notifications.py: booking, operator and queue notifications over channel groups
    - consumers/: WebSocket consumers (bookings, driver queue)
    - middleware.py: JWT/Cookie authentication for WebSocket connections
"""
