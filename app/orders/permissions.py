"""
Permission classes for the orders API.

Role checks on transitions live in orders.policies; these classes only
decide who may see an order at all.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView

    from orders.models import Order


class IsOrderParticipant(permissions.BasePermission):
    """
    Allows access to the buyer, the payee (seller or event organizer) and admins.
    """

    message = "You are not a party to this order."

    def has_object_permission(self, request: Request, view: APIView, obj: Order) -> bool:
        user = request.user
        if not user.is_authenticated:
            return False
        if getattr(user, "is_admin", False):
            return True
        return obj.involves_user(user)
