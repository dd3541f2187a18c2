"""
Add celery-beat schedule for replaying unresolved webhook events.

This migration creates the periodic task schedule for the
replay_unresolved_webhook_events task, which runs every 10 minutes and
re-applies events whose membership or charge could not be found when
they first arrived.
"""

from django.db import migrations


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for replaying unresolved events."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=10,
        period="minutes",
    )

    PeriodicTask.objects.get_or_create(
        name="Replay Unresolved Billing Webhooks",
        defaults={
            "task": "billing.tasks.replay_unresolved_webhook_events",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Re-applies webhook events flagged as unresolved linkage "
                "once the missing membership or charge has been recorded."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(name="Replay Unresolved Billing Webhooks").delete()


class Migration(migrations.Migration):

    dependencies = [
        ("billing", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
