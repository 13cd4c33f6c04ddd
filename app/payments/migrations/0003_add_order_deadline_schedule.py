"""
Add the celery-beat schedule for order deadline cancellations.

- Cancel orders past their drop-off or pickup deadline every 30 minutes
"""

from django.db import migrations

SCHEDULE = {
    "name": "Cancel Expired Orders",
    "task": "payments.tasks.cancel_expired_orders",
    "every": 30,
    "period": "minutes",
    "description": "Cancels and refunds orders whose seller drop-off or buyer pickup deadline lapsed.",
}


def create_periodic_task(apps, schema_editor):
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=SCHEDULE["every"],
        period=SCHEDULE["period"],
    )
    PeriodicTask.objects.get_or_create(
        name=SCHEDULE["name"],
        defaults={
            "task": SCHEDULE["task"],
            "interval": schedule,
            "enabled": True,
            "description": SCHEDULE["description"],
        },
    )


def remove_periodic_task(apps, schema_editor):
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name=SCHEDULE["name"]).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0002_add_reconciliation_schedules"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
