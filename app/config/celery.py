"""
Celery configuration for the payment service.

Celery runs the background side of the payment flow:
- Webhook reprocessing (retry_failed_webhooks, process_webhook_event)
- Outbox delivery and cleanup (dispatch_outbox_events, cleanup_processed_outbox_events)
- Capture and line-item refunds triggered by order events

Periodic schedules live in the database (django-celery-beat DatabaseScheduler)
and are seeded by a payments data migration. Tasks are auto-discovered from
all installed Django apps.

Usage:
    from payments.tasks import capture_order_payment

    capture_order_payment.delay(str(order.id))

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Celery looks for a tasks.py module in each installed app
app.autodiscover_tasks()
