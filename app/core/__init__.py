"""
Core Application - Infrastructure & Base Classes

Shared building blocks used by the marketplace apps. Nothing here knows
about orders, balances or payment providers.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - VersionedMixin: Row version counter bumped in SQL on every update
    - MetadataMixin: Flexible JSON metadata storage
    - AppendOnlyMixin: Rows that may be inserted but never updated

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError, NotFoundError, PermissionDeniedError
    - ConflictError, RateLimitError, ExternalServiceError, InternalError

Circuit breaker (import from core.circuit_breaker):
    - CircuitBreaker: Cache-backed failure counter guarding outbound calls

Helpers (import from core.helpers):
    - hash_bytes, parse_uuid, get_client_ip

Validators (import from core.validators):
    - normalize_payout_number: Canonical 0XXXXXXXXX mobile number
    - validate_not_blank

Note:
    Models and model mixins are NOT imported here to avoid AppRegistryNotReady
    errors. Import them directly from their modules.
"""

# Services (no Django model dependencies)
from .services import BaseService, ServiceResult

# Exceptions (no Django dependencies)
from .exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    InternalError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ValidationError,
)

# Helpers (no Django model dependencies)
from .helpers import get_client_ip, hash_bytes, parse_uuid

# Validators
from .validators import normalize_payout_number, validate_not_blank

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "PermissionDeniedError",
    "ConflictError",
    "RateLimitError",
    "ExternalServiceError",
    "InternalError",
    # Helpers
    "hash_bytes",
    "parse_uuid",
    "get_client_ip",
    # Validators
    "normalize_payout_number",
    "validate_not_blank",
]
