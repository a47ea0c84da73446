from .base import *  # noqa: F401,F403

DEBUG = False
SECRET_KEY = "test-secret-key"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels.layers.InMemoryChannelLayer",
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

DISPATCH = {
    **DISPATCH,  # noqa: F405
    "BOOKING_STORE": "services.stores.InMemoryBookingStore",
    "QUEUE_STORE": "services.stores.InMemoryQueueStore",
    "POLL_INTERVAL_SECONDS": 0.01,
    "POLL_MAX_ATTEMPTS": 3,
    "POLLER_WORKERS": 4,
    "MIN_TRUST_SCORE": 50.0,
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {"null": {"class": "logging.NullHandler"}},
    "root": {"handlers": ["null"], "level": "CRITICAL"},
}
