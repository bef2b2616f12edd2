"""
Celery configuration for the Django application.

Celery runs the payment background work:
- Processing recorded gateway callbacks
- Delivering merchant webhook events
- Periodic sweeps (payment expiration, webhook redelivery)

Redis is both the message broker and result backend. Periodic schedules
are stored in the database (django-celery-beat DatabaseScheduler) and are
created by the payments migrations.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import logging
import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

logger = logging.getLogger(__name__)

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Looks for a tasks.py module in each installed app
app.autodiscover_tasks()


@app.task(bind=True, ignore_result=True)
def debug_task(self):
    """
    Log the task request to verify worker connectivity.

    Usage:
        from config.celery import debug_task
        debug_task.delay()
    """
    logger.info("Celery debug task", extra={"task_id": self.request.id})
