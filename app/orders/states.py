"""
Order lifecycle states.

State Flow:
    PENDING → PROCESSING → {DELIVERY_PENDING|COLLECTION_PENDING|SERVICE_PENDING}
    {DELIVERY_PENDING|COLLECTION_PENDING|SERVICE_PENDING} → DELIVERY_COMPLETE
    DELIVERY_COMPLETE → COMPLETED (buyer confirmation, releases escrow)
    any non-terminal → CANCELLED

Terminal states: COMPLETED, CANCELLED
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    PROCESSING = "PROCESSING", "Processing"
    DELIVERY_PENDING = "DELIVERY_PENDING", "Delivery pending"
    COLLECTION_PENDING = "COLLECTION_PENDING", "Collection pending"
    SERVICE_PENDING = "SERVICE_PENDING", "Service pending"
    DELIVERY_COMPLETE = "DELIVERY_COMPLETE", "Delivery complete"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"


TERMINAL_ORDER_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

NON_TERMINAL_ORDER_STATUSES = [
    status for status in OrderStatus.values if status not in TERMINAL_ORDER_STATUSES
]


class ActorType(models.TextChoices):
    """Who caused a status change; recorded on every history row."""

    SYSTEM = "system", "System"
    PROVIDER = "provider", "Payment provider"
    BUYER = "buyer", "Buyer"
    SELLER = "seller", "Seller"
    ADMIN = "admin", "Admin"


class ProductType(models.TextChoices):
    """Item kinds carried in Order.metadata["items"]."""

    PHYSICAL = "physical", "Physical"
    SERVICE = "service", "Service"
    DIGITAL = "digital", "Digital"
    TICKET = "ticket", "Ticket"
