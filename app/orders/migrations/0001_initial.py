import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models

import orders.models

ORDER_STATUS_CHOICES = [
    ("PENDING", "Pending"),
    ("PROCESSING", "Processing"),
    ("DELIVERY_PENDING", "Delivery pending"),
    ("COLLECTION_PENDING", "Collection pending"),
    ("SERVICE_PENDING", "Service pending"),
    ("DELIVERY_COMPLETE", "Delivery complete"),
    ("COMPLETED", "Completed"),
    ("CANCELLED", "Cancelled"),
]

PAYMENT_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("processing", "Processing"),
    ("completed", "Completed"),
    ("failed", "Failed"),
    ("cancelled", "Cancelled"),
    ("refunded", "Refunded"),
]

PROVIDER_CHOICES = [
    ("payd", "Payd"),
    ("pesapal", "Pesapal"),
    ("intasend", "IntaSend"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("version", models.PositiveIntegerField(default=1, help_text="Incremented on every update")),
                ("metadata", models.JSONField(blank=True, default=dict, help_text="Flexible key-value metadata storage")),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "order_number",
                    models.CharField(
                        default=orders.models.generate_order_number,
                        editable=False,
                        help_text="Human and provider friendly reference",
                        max_length=32,
                        unique=True,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=ORDER_STATUS_CHOICES,
                        db_index=True,
                        default="PENDING",
                        help_text="Fulfilment status (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=PAYMENT_STATUS_CHOICES,
                        db_index=True,
                        default="pending",
                        help_text="Canonical payment status",
                        max_length=20,
                    ),
                ),
                ("total_amount", models.DecimalField(decimal_places=2, help_text="Amount charged to the buyer", max_digits=14)),
                (
                    "platform_fee_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Platform fee, set once when the order completes",
                        max_digits=14,
                        null=True,
                    ),
                ),
                (
                    "seller_payout_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Amount credited to the seller or event, set once on completion",
                        max_digits=14,
                        null=True,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(blank=True, help_text="Payment method chosen at checkout (e.g. mpesa, card)", max_length=30),
                ),
                (
                    "provider",
                    models.CharField(blank=True, choices=PROVIDER_CHOICES, help_text="Payment provider used for checkout", max_length=20),
                ),
                (
                    "provider_reference",
                    models.CharField(blank=True, db_index=True, help_text="Provider-issued transaction reference", max_length=255),
                ),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "buyer",
                    models.ForeignKey(
                        help_text="Buyer who placed the order",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="accounts.buyer",
                    ),
                ),
                (
                    "event",
                    models.ForeignKey(
                        blank=True,
                        help_text="Event the tickets belong to (ticket orders)",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="accounts.event",
                    ),
                ),
                (
                    "seller",
                    models.ForeignKey(
                        blank=True,
                        help_text="Seller fulfilling the order (product/service orders)",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="accounts.seller",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["buyer", "status"], name="orders_orde_buyer_i_5c1d2e_idx"),
                    models.Index(fields=["seller", "status"], name="orders_orde_seller__8a7f3b_idx"),
                    models.Index(fields=["payment_status", "created_at"], name="orders_orde_payment_1e9c4a_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(total_amount__gt=0), name="order_total_positive"),
                    models.CheckConstraint(
                        condition=(
                            models.Q(seller__isnull=False, event__isnull=True)
                            | models.Q(seller__isnull=True, event__isnull=False)
                        ),
                        name="order_single_payee",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderStatusHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("status", models.CharField(choices=ORDER_STATUS_CHOICES, help_text="Status entered", max_length=30)),
                (
                    "previous_status",
                    models.CharField(blank=True, choices=ORDER_STATUS_CHOICES, help_text="Status left", max_length=30),
                ),
                ("notes", models.TextField(blank=True)),
                (
                    "created_by_type",
                    models.CharField(
                        choices=[
                            ("system", "System"),
                            ("provider", "Payment provider"),
                            ("buyer", "Buyer"),
                            ("seller", "Seller"),
                            ("admin", "Admin"),
                        ],
                        help_text="Kind of actor that caused the change",
                        max_length=20,
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="User that caused the change, if any",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="status_history",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "Order status history",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["order", "created_at"], name="orders_orde_order_i_7b2e91_idx"),
                ],
            },
        ),
    ]
