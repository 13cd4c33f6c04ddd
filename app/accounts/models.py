"""
Balance holder models.

Sellers, organizers and events own a withdrawable ``balance``; buyers own a
``refunds`` balance accrued from cancelled paid orders. Both columns are
guarded by CHECK constraints so they can never go negative, and every
mutation goes through payments.ledger under a row lock.

Models:
    Seller: Product/service seller (3% platform fee)
    Organizer: Event organizer
    Event: Ticketed event owned by an organizer (6% platform fee)
    Buyer: Customer placing orders
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from core.models import BaseModel


class EntityType(models.TextChoices):
    """Kinds of balance holder a withdrawal can be drawn against."""

    SELLER = "seller", "Seller"
    ORGANIZER = "organizer", "Organizer"
    EVENT = "event", "Event"


class BalanceHolder(BaseModel):
    """
    Abstract base for rows that own a ledger-managed balance.

    Attributes:
        entity_type: EntityType value used in ledger entries
        balance_field: Name of the balance column on the concrete model
    """

    entity_type: str = ""
    balance_field: str = "balance"

    class Meta:
        abstract = True

    def get_balance(self) -> Decimal:
        return getattr(self, self.balance_field)

    def owned_by(self, user) -> bool:
        """Whether the given user controls this balance."""
        raise NotImplementedError


class WithdrawableBalanceHolder(BalanceHolder):
    """Balance holder whose funds can be withdrawn to mobile money."""

    balance = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Funds available for withdrawal",
    )

    class Meta:
        abstract = True


# =============================================================================
# Sellers
# =============================================================================


class Seller(WithdrawableBalanceHolder):
    """
    Seller of products or services.

    A seller with a physical_address offers pickup; physical orders then
    wait for collection instead of delivery.
    """

    entity_type = EntityType.SELLER

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="seller_profile",
        help_text="User operating this seller account",
    )
    full_name = models.CharField(
        max_length=150,
        help_text="Seller's display name",
    )
    shop_name = models.CharField(
        max_length=150,
        blank=True,
        help_text="Public shop name",
    )
    physical_address = models.CharField(
        max_length=255,
        blank=True,
        help_text="Pickup location; empty when the seller only delivers",
    )
    whatsapp_number = models.CharField(
        max_length=20,
        blank=True,
        help_text="Number used for order notifications",
    )
    total_sales = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Gross value of completed orders",
    )
    net_revenue = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Value of completed orders after platform fees",
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(balance__gte=0),
                name="seller_balance_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Seller({self.pk}, {self.shop_name or self.full_name})"

    @property
    def has_shop(self) -> bool:
        return bool(self.physical_address.strip())

    def owned_by(self, user) -> bool:
        return user is not None and self.user_id == user.pk


# =============================================================================
# Organizers and events
# =============================================================================


class Organizer(WithdrawableBalanceHolder):
    """Event organizer."""

    entity_type = EntityType.ORGANIZER

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="organizer_profile",
        help_text="User operating this organizer account",
    )
    full_name = models.CharField(
        max_length=150,
        help_text="Organizer's display name",
    )
    whatsapp_number = models.CharField(
        max_length=20,
        blank=True,
        help_text="Number used for payout notifications",
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(balance__gte=0),
                name="organizer_balance_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Organizer({self.pk}, {self.full_name})"

    def owned_by(self, user) -> bool:
        return user is not None and self.user_id == user.pk


class Event(WithdrawableBalanceHolder):
    """
    Ticketed event.

    Ticket sales are credited to the event's own balance, net of the event
    platform fee.
    """

    entity_type = EntityType.EVENT

    organizer = models.ForeignKey(
        Organizer,
        on_delete=models.PROTECT,
        related_name="events",
        help_text="Organizer that owns this event",
    )
    name = models.CharField(
        max_length=200,
        help_text="Event name",
    )
    starts_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the event starts",
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(balance__gte=0),
                name="event_balance_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Event({self.pk}, {self.name})"

    def owned_by(self, user) -> bool:
        return user is not None and self.organizer.user_id == user.pk


# =============================================================================
# Buyers
# =============================================================================


class Buyer(BalanceHolder):
    """
    Customer placing orders.

    Holds a refunds balance credited when a paid order is cancelled and
    debited when an admin confirms a refund request.
    """

    entity_type = "buyer"
    balance_field = "refunds"

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="buyer_profile",
        help_text="User placing orders",
    )
    full_name = models.CharField(
        max_length=150,
        help_text="Buyer's display name",
    )
    whatsapp_number = models.CharField(
        max_length=20,
        blank=True,
        help_text="Number used for order notifications",
    )
    refunds = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Refund credit available to the buyer",
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(refunds__gte=0),
                name="buyer_refunds_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Buyer({self.pk}, {self.full_name})"

    def owned_by(self, user) -> bool:
        return user is not None and self.user_id == user.pk
