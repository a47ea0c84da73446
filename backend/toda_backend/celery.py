"""Celery application for background booking tasks."""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "toda_backend.settings.prod")

app = Celery("toda_backend")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
