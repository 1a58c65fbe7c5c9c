"""
Celery application for the funds custody service.

Background work handled here:
- Processing stored webhook events off the request path
- Periodic retry of failed webhook events (see CELERY_BEAT_SCHEDULE)
- Converging local state after money moved at the processor
- Retrying donation compensation

Redis is both the message broker and the result backend. Tasks are
auto-discovered from the tasks.py module of every installed app.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
