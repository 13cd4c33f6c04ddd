# Load the Celery app with Django so shared_task binds to it and
# autodiscovery picks up each app's tasks.py.
from config.celery import app as celery_app

__all__ = ("celery_app",)
