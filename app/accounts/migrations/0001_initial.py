from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def money(help_text):
    return models.DecimalField(
        decimal_places=2,
        default=Decimal("0.00"),
        help_text=help_text,
        max_digits=14,
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Seller",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("balance", money("Funds available for withdrawal")),
                ("full_name", models.CharField(help_text="Seller's display name", max_length=150)),
                ("shop_name", models.CharField(blank=True, help_text="Public shop name", max_length=150)),
                (
                    "physical_address",
                    models.CharField(
                        blank=True,
                        help_text="Pickup location; empty when the seller only delivers",
                        max_length=255,
                    ),
                ),
                ("whatsapp_number", models.CharField(blank=True, help_text="Number used for order notifications", max_length=20)),
                ("total_sales", money("Gross value of completed orders")),
                ("net_revenue", money("Value of completed orders after platform fees")),
                (
                    "user",
                    models.OneToOneField(
                        help_text="User operating this seller account",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="seller_profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(balance__gte=0), name="seller_balance_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Organizer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("balance", money("Funds available for withdrawal")),
                ("full_name", models.CharField(help_text="Organizer's display name", max_length=150)),
                ("whatsapp_number", models.CharField(blank=True, help_text="Number used for payout notifications", max_length=20)),
                (
                    "user",
                    models.OneToOneField(
                        help_text="User operating this organizer account",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="organizer_profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(balance__gte=0), name="organizer_balance_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("balance", money("Funds available for withdrawal")),
                ("name", models.CharField(help_text="Event name", max_length=200)),
                ("starts_at", models.DateTimeField(blank=True, help_text="When the event starts", null=True)),
                (
                    "organizer",
                    models.ForeignKey(
                        help_text="Organizer that owns this event",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="events",
                        to="accounts.organizer",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(balance__gte=0), name="event_balance_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Buyer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("full_name", models.CharField(help_text="Buyer's display name", max_length=150)),
                ("whatsapp_number", models.CharField(blank=True, help_text="Number used for order notifications", max_length=20)),
                ("refunds", money("Refund credit available to the buyer")),
                (
                    "user",
                    models.OneToOneField(
                        help_text="User placing orders",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="buyer_profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(refunds__gte=0), name="buyer_refunds_non_negative"),
                ],
            },
        ),
    ]
