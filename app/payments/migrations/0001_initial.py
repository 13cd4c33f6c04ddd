import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models

import payments.models.withdrawal_request

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


def timestamps():
    return [
        ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
        ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
    ]


def uuid_pk():
    return (
        "id",
        models.UUIDField(
            default=uuid.uuid4,
            editable=False,
            help_text="Unique identifier for this record",
            primary_key=True,
            serialize=False,
        ),
    )


def metadata():
    return ("metadata", models.JSONField(blank=True, default=dict, help_text="Flexible key-value metadata storage"))


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        ("orders", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="BalanceEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *timestamps(),
                ("holder_type", models.CharField(help_text="seller, organizer, event or buyer", max_length=20)),
                ("holder_id", models.CharField(help_text="Primary key of the holder row", max_length=64)),
                ("field", models.CharField(default="balance", help_text="Balance column that changed", max_length=30)),
                ("entry_type", models.CharField(choices=[("credit", "Credit"), ("debit", "Debit")], max_length=10)),
                ("amount", models.DecimalField(decimal_places=2, help_text="Amount moved (always positive)", max_digits=14)),
                (
                    "balance_after",
                    models.DecimalField(decimal_places=2, help_text="Holder balance once this entry was applied", max_digits=14),
                ),
                (
                    "reason",
                    models.CharField(help_text="Why the balance changed (escrow_release, withdrawal, ...)", max_length=50),
                ),
                ("reference_type", models.CharField(blank=True, help_text="Kind of entity that caused the change", max_length=50)),
                ("reference_id", models.CharField(blank=True, help_text="Identifier of the entity that caused the change", max_length=64)),
                (
                    "idempotency_key",
                    models.CharField(
                        blank=True,
                        help_text="Replaying an operation with the same key is a no-op",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "Balance entries",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["holder_type", "holder_id"], name="payments_ba_holder__4e6c13_idx"),
                    models.Index(fields=["reference_type", "reference_id"], name="payments_ba_referen_8f0b5d_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(amount__gt=0), name="balance_entry_amount_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                *timestamps(),
                metadata(),
                uuid_pk(),
                ("provider", models.CharField(choices=PROVIDER_CHOICES, max_length=20)),
                ("invoice_id", models.CharField(blank=True, db_index=True, max_length=255)),
                ("provider_reference", models.CharField(blank=True, db_index=True, max_length=255)),
                ("api_ref", models.CharField(blank=True, db_index=True, max_length=255)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                (
                    "status",
                    models.CharField(choices=PAYMENT_STATUS_CHOICES, db_index=True, default="pending", max_length=20),
                ),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="payments_pa_status_3f8a21_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                *timestamps(),
                uuid_pk(),
                ("provider", models.CharField(choices=PROVIDER_CHOICES, max_length=20)),
                ("event_key", models.CharField(help_text="SHA-256 of the raw body", max_length=64)),
                ("payload", models.JSONField(default=dict)),
                ("headers", models.JSONField(blank=True, default=dict)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processed", "Processed"),
                            ("ignored", "Ignored"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("outcome", models.CharField(blank=True, max_length=30)),
                ("error_message", models.TextField(blank=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="payments_we_status_9c4d7e_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("provider", "event_key"), name="webhook_event_unique_per_provider"),
                ],
            },
        ),
        migrations.CreateModel(
            name="WithdrawalRequest",
            fields=[
                *timestamps(),
                metadata(),
                uuid_pk(),
                (
                    "entity_type",
                    models.CharField(
                        choices=[("seller", "Seller"), ("organizer", "Organizer"), ("event", "Event")],
                        help_text="Kind of balance the money is drawn from",
                        max_length=20,
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=2, help_text="Net amount paid out", max_digits=14)),
                ("payout_number", models.CharField(help_text="Normalised mobile number (0XXXXXXXXX)", max_length=20)),
                ("payout_name", models.CharField(max_length=150)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("rejected", "Rejected"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "reference",
                    models.CharField(
                        default=payments.models.withdrawal_request.generate_withdrawal_reference,
                        editable=False,
                        help_text="Internal idempotent reference sent to the payout provider",
                        max_length=40,
                        unique=True,
                    ),
                ),
                (
                    "provider_reference",
                    models.CharField(blank=True, db_index=True, help_text="Provider correlator / transaction id", max_length=255),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "event",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="withdrawals",
                        to="accounts.event",
                    ),
                ),
                (
                    "organizer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="withdrawals",
                        to="accounts.organizer",
                    ),
                ),
                (
                    "seller",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="withdrawals",
                        to="accounts.seller",
                    ),
                ),
                (
                    "requested_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="withdrawal_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "processed_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="Admin who resolved the request manually",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="payments_wi_status_6b1f02_idx"),
                    models.Index(fields=["entity_type", "status"], name="payments_wi_entity__d27a95_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(amount__gt=0), name="withdrawal_amount_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="RefundRequest",
            fields=[
                *timestamps(),
                uuid_pk(),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("payout_number", models.CharField(max_length=20)),
                ("payout_name", models.CharField(max_length=150)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[("pending", "Pending"), ("completed", "Completed"), ("rejected", "Rejected")],
                        db_index=True,
                        default="pending",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("admin_notes", models.TextField(blank=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "buyer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="refund_requests",
                        to="accounts.buyer",
                    ),
                ),
                (
                    "processed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(amount__gt=0), name="refund_request_amount_positive"),
                    models.UniqueConstraint(
                        condition=models.Q(status="pending"),
                        fields=("buyer",),
                        name="one_pending_refund_request_per_buyer",
                    ),
                ],
            },
        ),
    ]
