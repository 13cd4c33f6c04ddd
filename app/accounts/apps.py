"""
Accounts app configuration.

Balance holders of the marketplace: sellers, organizers, their events and
buyers. Balances are only mutated through payments.ledger.
"""

from django.apps import AppConfig


class AccountsConfig(AppConfig):
    """Configuration for the accounts application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "accounts"
    verbose_name = "Accounts"
