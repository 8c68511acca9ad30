"""
Add Celery Beat schedules for upload maintenance tasks.

This migration creates periodic task schedules for:
- Stale upload cleanup (abandoned stream and chunked uploads)
- Reconciliation of completed uploads whose rename never happened
- Orphaned chunk session directories
"""

from django.db import migrations


def create_periodic_tasks(apps, schema_editor):
    """Create periodic tasks for upload maintenance."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    # Every 1 hour
    schedule_1hour, _ = IntervalSchedule.objects.get_or_create(
        every=1,
        period="hours",
    )

    # Every 6 hours
    schedule_6hours, _ = IntervalSchedule.objects.get_or_create(
        every=6,
        period="hours",
    )

    PeriodicTask.objects.get_or_create(
        name="Uploads: Cleanup Stale Uploads",
        defaults={
            "task": "uploads.tasks.cleanup_stale_uploads",
            "interval": schedule_1hour,
            "enabled": True,
            "description": (
                "Terminates stream uploads and cancels chunked uploads that "
                "have not progressed within UPLOADS_STALE_AFTER_HOURS."
            ),
        },
    )

    PeriodicTask.objects.get_or_create(
        name="Uploads: Reconcile Completed Uploads",
        defaults={
            "task": "uploads.tasks.reconcile_completed_uploads",
            "interval": schedule_1hour,
            "enabled": True,
            "description": (
                "Moves files of completed uploads whose final rename failed "
                "and re-queues their pipeline jobs."
            ),
        },
    )

    PeriodicTask.objects.get_or_create(
        name="Uploads: Cleanup Orphaned Chunk Sessions",
        defaults={
            "task": "uploads.tasks.cleanup_orphaned_chunk_sessions",
            "interval": schedule_6hours,
            "enabled": True,
            "description": (
                "Safety net cleanup for chunk session directories without a "
                "matching upload. Handles app crashes and edge cases."
            ),
        },
    )


def remove_periodic_tasks(apps, schema_editor):
    """Remove all upload periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    task_names = [
        "Uploads: Cleanup Stale Uploads",
        "Uploads: Reconcile Completed Uploads",
        "Uploads: Cleanup Orphaned Chunk Sessions",
    ]

    PeriodicTask.objects.filter(name__in=task_names).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("uploads", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
