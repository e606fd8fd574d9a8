"""
Add celery-beat schedules for the escrow jobs and webhook upkeep.

Intervals for the three escrow jobs come from settings at migration time;
afterwards they are edited in the django-celery-beat admin.
"""

from django.conf import settings
from django.db import migrations

SCHEDULES = [
    (
        "Check Shipment Deliveries",
        "payments.workers.delivery_reconciliation.check_deliveries",
        "DELIVERY_CHECK_INTERVAL_MINUTES",
        30,
        "Polls carriers for SHIPPED transactions and starts the escrow hold on delivery.",
    ),
    (
        "Release Escrowed Funds",
        "payments.workers.escrow_release.release_funds",
        "ESCROW_RELEASE_INTERVAL_MINUTES",
        60,
        "Completes DELIVERED transactions whose hold has passed with no dispute.",
    ),
    (
        "Audit Orphan Authorizations",
        "payments.workers.authorization_audit.audit_orphan_authorizations",
        "AUTHORIZATION_AUDIT_INTERVAL_MINUTES",
        60,
        "Reports checkout PaymentIntents that have no local Transaction.",
    ),
    (
        "Retry Failed Webhooks",
        "payments.tasks.retry_failed_webhooks",
        None,
        15,
        "Re-queues FAILED webhook events still under the retry limit.",
    ),
    (
        "Cleanup Stuck Webhooks",
        "payments.tasks.cleanup_stuck_webhooks",
        None,
        30,
        "Marks webhook events stuck in PROCESSING as FAILED.",
    ),
]


def create_periodic_tasks(apps, schema_editor):
    """Create the periodic tasks for the escrow jobs."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for name, task, setting_name, default_minutes, description in SCHEDULES:
        minutes = getattr(settings, setting_name, default_minutes) if setting_name else default_minutes
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=minutes,
            period="minutes",
        )
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

    PeriodicTask.objects.filter(name__in=[entry[0] for entry in SCHEDULES]).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
