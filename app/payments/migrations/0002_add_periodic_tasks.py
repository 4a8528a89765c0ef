"""
Add celery-beat schedules for the payment background tasks.

- Dispatch pending outbox events every 10 seconds
- Retry failed webhook events every 5 minutes
- Delete delivered outbox events past retention once a day
"""

from django.db import migrations

PERIODIC_TASKS = [
    (
        "Dispatch Outbox Events",
        "payments.tasks.dispatch_outbox_events",
        (10, "seconds"),
        "Publishes due outbox events to subscribers with retry and dead-lettering.",
    ),
    (
        "Retry Failed Webhooks",
        "payments.tasks.retry_failed_webhooks",
        (5, "minutes"),
        "Re-queues FAILED webhook events that have retries left.",
    ),
    (
        "Cleanup Processed Outbox Events",
        "payments.tasks.cleanup_processed_outbox_events",
        (1, "days"),
        "Deletes delivered outbox events older than OUTBOX_RETENTION_DAYS.",
    ),
]


def create_periodic_tasks(apps, schema_editor):
    """Create the periodic tasks for payment background work."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for name, task, (every, period), description in PERIODIC_TASKS:
        schedule, _ = IntervalSchedule.objects.get_or_create(every=every, period=period)
        PeriodicTask.objects.get_or_create(
            name=name,
            defaults={
                "task": task,
                "interval": schedule,
                "enabled": True,
                "description": description,
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name__in=[name for name, *_ in PERIODIC_TASKS]).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
