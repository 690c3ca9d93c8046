"""
Celery configuration for the Django application.

Background work for the banking app:
- Fulfillment events recorded off the request thread
- Payout batches submitted to external rails
- Periodic integrity checks and payout status polling (django-celery-beat)

Usage:
    from banking.tasks import verify_platform_integrity
    verify_platform_integrity.delay()
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
