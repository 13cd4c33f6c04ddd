"""
Model mixins providing reusable functionality for Django models.

This module contains abstract mixin classes that can be combined with
BaseModel to add specific functionality.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key
    VersionedMixin: Version counter bumped on every update
    MetadataMixin: Flexible JSON metadata storage
    AppendOnlyMixin: Rows may be inserted but never updated or deleted

Usage:
    from core.models import BaseModel
    from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin

    class Order(UUIDPrimaryKeyMixin, MetadataMixin, VersionedMixin, BaseModel):
        order_number = models.CharField(max_length=32, unique=True)

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import models
from django.db.models import F

if TYPE_CHECKING:
    from typing import Any


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Fields:
        id: UUIDField as primary key (auto-generated)
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class VersionedMixin(models.Model):
    """
    Version counter incremented on every update.

    The increment is done in SQL so concurrent writers never lose a bump;
    the in-memory value is refreshed after the save.
    """

    version = models.PositiveIntegerField(
        default=1,
        help_text="Incremented on every update",
    )

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        is_update = self.pk and not self._state.adding and not kwargs.get("force_insert", False)
        update_fields = kwargs.get("update_fields")
        if is_update:
            self.version = F("version") + 1
            if update_fields is not None:
                kwargs["update_fields"] = set(update_fields) | {"version"}
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])


class MetadataMixin(models.Model):
    """
    Flexible JSON metadata storage.

    Holds provider identifiers, raw provider responses and reconciliation
    flags that do not deserve their own column.
    """

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Flexible key-value metadata storage",
    )

    class Meta:
        abstract = True

    def get_meta(self, key: str, default: Any = None) -> Any:
        return (self.metadata or {}).get(key, default)

    def merge_meta(self, **values: Any) -> dict:
        """
        Merge values into metadata without saving.

        None values are skipped so callers can pass optional identifiers
        straight through.
        """
        merged = dict(self.metadata or {})
        merged.update({key: value for key, value in values.items() if value is not None})
        self.metadata = merged
        return merged

    def has_meta(self, key: str) -> bool:
        return key in (self.metadata or {})


class AppendOnlyMixin(models.Model):
    """
    Audit rows: insert once, never update, never delete.
    """

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError(f"{self.__class__.__name__} rows are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError(f"{self.__class__.__name__} rows are append-only")
