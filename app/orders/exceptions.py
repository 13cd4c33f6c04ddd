"""
Order-specific exceptions.

Exception Hierarchy:
    ConflictError (core)
    ├── OrderTerminalError - Order already COMPLETED or CANCELLED
    └── InvalidStatusTransitionError - Target not reachable from current status
    PermissionDeniedError (core)
    └── ForbiddenTransitionError - Caller's role may not apply the transition
"""

from __future__ import annotations

from core.exceptions import ConflictError, NotFoundError, PermissionDeniedError


class OrderNotFoundError(NotFoundError):
    default_error_code = "ORDER_NOT_FOUND"


class OrderTerminalError(ConflictError):
    default_error_code = "ORDER_TERMINAL"

    def __init__(self, order_id, status: str):
        super().__init__(
            f"Order is already {status}",
            details={"order_id": str(order_id), "current_status": status},
        )


class InvalidStatusTransitionError(ConflictError):
    default_error_code = "INVALID_STATUS_TRANSITION"

    def __init__(self, order_id, current: str, target: str):
        super().__init__(
            f"Invalid status transition from {current} to {target}",
            details={
                "order_id": str(order_id),
                "current_status": current,
                "target_status": target,
            },
        )


class ForbiddenTransitionError(PermissionDeniedError):
    default_error_code = "FORBIDDEN_TRANSITION"

    def __init__(self, order_id, actor: str, target: str):
        super().__init__(
            f"A {actor} may not move an order to {target}",
            details={"order_id": str(order_id), "actor": actor, "target_status": target},
        )


__all__ = [
    "ForbiddenTransitionError",
    "InvalidStatusTransitionError",
    "OrderNotFoundError",
    "OrderTerminalError",
]
