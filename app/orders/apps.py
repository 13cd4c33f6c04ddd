"""
Orders app configuration.

Order lifecycle: the financial state machine, its role policy and the
append-only status history.
"""

from django.apps import AppConfig


class OrdersConfig(AppConfig):
    """Configuration for the orders application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "orders"
    verbose_name = "Orders"
