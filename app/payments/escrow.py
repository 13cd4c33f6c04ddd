"""
Escrow release.

Buyer money sits with the platform until the order completes. On the
transition into COMPLETED the platform fee is taken and the remainder is
credited to the seller's or the event's balance.

    platform_fee = round2(total * fee_rate)
    net_payout   = total - platform_fee

Seller orders use SELLER_PLATFORM_FEE_RATE, event ticket orders use
EVENT_PLATFORM_FEE_RATE.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db.models import F

from accounts.models import EntityType, Seller
from core.exceptions import ConflictError
from payments.ledger import ledger
from payments.money import event_fee_rate, platform_fee, round2, seller_fee_rate
from payments.state_machines import PaymentStatus

if TYPE_CHECKING:
    from orders.models import Order

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EscrowRelease:
    order_id: str
    holder_type: str
    holder_id: str
    total: Decimal
    platform_fee: Decimal
    net_payout: Decimal
    balance_after: Decimal


def escrow_key(order: Order) -> str:
    return f"escrow:{order.pk}"


def split_amount(order: Order) -> tuple[Decimal, Decimal]:
    """Return (platform_fee, net_payout) for the order total."""
    rate = event_fee_rate() if order.is_event_order else seller_fee_rate()
    total = round2(order.total_amount)
    fee = platform_fee(total, rate)
    return fee, total - fee


def release_funds(order: Order, source: str = "system") -> EscrowRelease:
    """
    Settle a completing order.

    Must be called inside the transaction that holds the Order row lock and
    moves it into COMPLETED; the payee balance is locked here, after the
    Order. Writes the fee fields onto the order without saving it.

    Raises:
        ConflictError: Order not paid, or fee fields already set (funds
            already released)
    """
    if order.payment_status != PaymentStatus.COMPLETED:
        raise ConflictError(
            f"Order {order.order_number} is not paid; escrow holds nothing to release",
            error_code="ESCROW_NOT_FUNDED",
            details={"order_id": str(order.pk), "payment_status": order.payment_status},
        )
    if order.fees_settled:
        raise ConflictError(
            f"Escrow already released for order {order.order_number}",
            error_code="ESCROW_ALREADY_RELEASED",
            details={"order_id": str(order.pk)},
        )

    fee, net = split_amount(order)
    if order.is_event_order:
        entity_type, entity_id = EntityType.EVENT, order.event_id
    else:
        entity_type, entity_id = EntityType.SELLER, order.seller_id

    holder = ledger.lock_holder(entity_type, entity_id)
    if net > 0:
        balance_after = ledger.credit(
            holder,
            net,
            reason="escrow_release",
            reference_type="order",
            reference_id=str(order.pk),
            idempotency_key=escrow_key(order),
        )
    else:
        balance_after = holder.get_balance()

    if entity_type == EntityType.SELLER:
        Seller.objects.filter(pk=entity_id).update(
            total_sales=F("total_sales") + round2(order.total_amount),
            net_revenue=F("net_revenue") + net,
        )

    order.platform_fee_amount = fee
    order.seller_payout_amount = net
    order.merge_meta(payout_processed=True)

    logger.info(
        f"Escrow released for order {order.order_number}: fee={fee} net={net}",
        extra={
            "order_id": str(order.pk),
            "holder_type": entity_type,
            "holder_id": str(entity_id),
            "platform_fee": str(fee),
            "net_payout": str(net),
            "source": source,
        },
    )

    return EscrowRelease(
        order_id=str(order.pk),
        holder_type=entity_type,
        holder_id=str(entity_id),
        total=round2(order.total_amount),
        platform_fee=fee,
        net_payout=net,
        balance_after=balance_after,
    )
