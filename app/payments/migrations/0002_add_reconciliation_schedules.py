"""
Add celery-beat schedules for payment reconciliation.

- Flag stuck withdrawals every 2 hours
- Poll providers for unconfirmed payments every 5 minutes
- Clean up old webhook events daily
"""

from django.db import migrations

SCHEDULES = [
    {
        "name": "Reconcile Stuck Withdrawals",
        "task": "payments.tasks.reconcile_stuck_withdrawals",
        "every": 2,
        "period": "hours",
        "description": "Flags withdrawals left in PROCESSING without a provider result.",
    },
    {
        "name": "Reconcile Pending Payments",
        "task": "payments.tasks.reconcile_pending_payments",
        "every": 5,
        "period": "minutes",
        "description": "Polls providers for payments that never received a webhook.",
    },
    {
        "name": "Cleanup Webhook Events",
        "task": "payments.tasks.cleanup_webhook_events",
        "every": 1,
        "period": "days",
        "description": "Deletes processed webhook events past the retention window.",
    },
]


def create_periodic_tasks(apps, schema_editor):
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
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(
        name__in=[entry["name"] for entry in SCHEDULES],
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
