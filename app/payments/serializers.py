"""
DRF serializers for payments app.

This module provides serializers for:
- Withdrawal requests and admin overrides
- Buyer refund requests and admin decisions

Request serializers only check shape; amounts, phone numbers and
ownership are validated by the services so every entry point gets the
same rules.

Usage:
    serializer = WithdrawalCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
"""

from __future__ import annotations

from rest_framework import serializers

from accounts.models import EntityType
from payments.models import RefundRequest, WithdrawalRequest
from payments.services.withdrawal_service import OVERRIDE_STATUSES


# =============================================================================
# Withdrawals
# =============================================================================


class WithdrawalCreateSerializer(serializers.Serializer):
    """
    Request body for a new withdrawal.

    Fields:
        amount: Net amount to receive (KES)
        payout_number: Mobile money number, any common Kenyan format
        payout_name: Name registered to the number
        entity_type: seller, organizer or event
        entity_id: Event id; optional check for seller/organizer
    """

    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    payout_number = serializers.CharField(max_length=20)
    payout_name = serializers.CharField(max_length=150)
    entity_type = serializers.ChoiceField(choices=EntityType.choices)
    entity_id = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class WithdrawalSerializer(serializers.ModelSerializer):
    class Meta:
        model = WithdrawalRequest
        fields = [
            "id",
            "reference",
            "entity_type",
            "amount",
            "status",
            "provider_reference",
            "payout_number",
            "payout_name",
            "created_at",
            "processed_at",
        ]
        read_only_fields = fields


class WithdrawalOverrideSerializer(serializers.Serializer):
    """Admin override of a stuck withdrawal."""

    status = serializers.ChoiceField(choices=[str(status) for status in OVERRIDE_STATUSES])
    reason = serializers.CharField(required=False, allow_blank=True, default="")


# =============================================================================
# Refund requests
# =============================================================================


class RefundRequestCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    payout_number = serializers.CharField(max_length=20)
    payout_name = serializers.CharField(max_length=150)


class RefundRequestSerializer(serializers.ModelSerializer):
    class Meta:
        model = RefundRequest
        fields = [
            "id",
            "amount",
            "payout_number",
            "payout_name",
            "status",
            "admin_notes",
            "created_at",
            "processed_at",
        ]
        read_only_fields = fields


class RefundDecisionSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")
