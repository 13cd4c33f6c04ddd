"""
Domain-agnostic helper functions.

Usage:
    from core.helpers import get_client_ip, hash_bytes, parse_uuid

    ip = get_client_ip(request)
    key = hash_bytes(request.body)
"""

from __future__ import annotations

import hashlib
import uuid
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from django.http import HttpRequest


def hash_bytes(value: bytes, algorithm: str = "sha256") -> str:
    """
    Hex digest of raw bytes.

    Example:
        hash_bytes(b'{"state": "COMPLETE"}')
    """
    hasher = hashlib.new(algorithm)
    hasher.update(value or b"")
    return hasher.hexdigest()


def parse_uuid(value) -> uuid.UUID | None:
    """
    Parse a UUID, returning None for anything that is not one.

    Example:
        parse_uuid("550e8400-e29b-41d4-a716-446655440000")  # UUID(...)
        parse_uuid("ORD-12")                                # None
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None


def get_client_ip(request: HttpRequest, trust_forwarded: bool = True) -> str:
    """
    Extract client IP from request, handling proxies.

    With trust_forwarded the first address in X-Forwarded-For wins; this
    is only correct behind a proxy that overwrites the header.
    """
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if trust_forwarded and x_forwarded_for:
        # First IP in the chain is the original client
        return x_forwarded_for.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR", "")
