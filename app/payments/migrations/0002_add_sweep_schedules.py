"""
Add celery-beat schedules for the payment sweeps.

- Expire stale payments (PAYMENT_EXPIRATION_SWEEP_INTERVAL_SECONDS)
- Redeliver failed merchant webhooks (WEBHOOK_REDELIVERY_SWEEP_INTERVAL_SECONDS)
"""

from django.conf import settings
from django.db import migrations

SCHEDULES = [
    {
        "name": "Expire Stale Payments",
        "task": "payments.workers.expiration_sweeper.expire_stale_payments",
        "setting": "PAYMENT_EXPIRATION_SWEEP_INTERVAL_SECONDS",
        "description": "Expires payments past expires_at and orders left without an open payment.",
    },
    {
        "name": "Redeliver Failed Merchant Webhooks",
        "task": "payments.workers.webhook_redelivery.redeliver_failed_webhooks",
        "setting": "WEBHOOK_REDELIVERY_SWEEP_INTERVAL_SECONDS",
        "description": "Retries merchant webhook deliveries whose next_retry_at has passed.",
    },
]


def create_periodic_tasks(apps, schema_editor):
    """Create the periodic tasks for the sweeps."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for entry in SCHEDULES:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=getattr(settings, entry["setting"]),
            period="seconds",
        )
        PeriodicTask.objects.get_or_create(
            name=entry["name"],
            defaults={
                "task": entry["task"],
                "interval": schedule,
                "enabled": True,
                "description": entry["description"],
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name__in=[entry["name"] for entry in SCHEDULES]).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
