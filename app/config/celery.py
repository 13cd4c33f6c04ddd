"""
Celery application.

Redis is the broker and result backend. Tasks are discovered from each
installed app's tasks.py; periodic schedules are PeriodicTask rows managed
by django-celery-beat (see payments/migrations/0002).

    celery -A config worker -l info
    celery -A config beat -l info --scheduler django_celery_beat.schedulers:DatabaseScheduler
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("marketplace")

# Settings prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
