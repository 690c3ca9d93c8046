"""
Add celery-beat schedules for banking maintenance tasks.

This migration creates the periodic task schedules for:
- verify_platform_integrity: hourly reconciliation of payouts against the ledger
- sync_processing_payouts: every 15 minutes, polls rails for processing payouts
"""

from django.db import migrations

SCHEDULES = [
    {
        "name": "Verify Platform Integrity",
        "task": "banking.tasks.verify_platform_integrity",
        "every": 1,
        "period": "hours",
        "description": (
            "Reconciles completed vendor payouts against payout_withdrawal ledger "
            "entries and logs a warning when drift or missing withdrawals are found."
        ),
    },
    {
        "name": "Sync Processing Payouts",
        "task": "banking.tasks.sync_processing_payouts",
        "every": 15,
        "period": "minutes",
        "description": (
            "Polls payment rails for payouts still processing. Completes paid "
            "payouts and flags failed ones for review."
        ),
    },
]


def create_periodic_tasks(apps, schema_editor):
    """Create the periodic tasks for banking maintenance."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for entry in SCHEDULES:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=entry["every"],
            period=entry["period"],
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

    PeriodicTask.objects.filter(
        name__in=[entry["name"] for entry in SCHEDULES],
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("banking", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
