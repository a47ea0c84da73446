"""
Services package - Business logic layer.

This package contains the dispatch services that operate on Django models
but are decoupled from the HTTP/WebSocket layer.

Modules:
    - fare: Fare estimation and discount handling
    - stores: Booking and driver queue store adapters
    - booking_management: Booking state machine and lifecycle operations
    - matching: Queue-head matching and background polling
    - registry: Process-wide service instances built from settings
"""
