"""
Model mixins combined with BaseModel by the domain apps.

Available Mixins:
    UUIDPrimaryKeyMixin: UUID primary key
    MetadataMixin: Opaque JSON key/value storage

Usage:
    from core.models import BaseModel
    from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin

    class Payout(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
        ...

Note:
    Mixins are abstract and must be listed before BaseModel.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import models

if TYPE_CHECKING:
    from typing import Any


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use a UUID primary key instead of an auto-increment integer.

    Local ids are handed to clients (hold ids, payout ids) and embedded in
    processor metadata, so they must not reveal record counts.

    Fields:
        id: UUIDField primary key, generated on instantiation
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier (UUID4)",
    )

    class Meta:
        abstract = True


class MetadataMixin(models.Model):
    """
    Opaque key/value metadata stored as JSON.

    Fields:
        metadata: JSONField, defaults to an empty dict

    Usage:
        hold.get_meta("request_category", default="")
    """

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Opaque key/value metadata",
    )

    class Meta:
        abstract = True

    def get_meta(self, key: str, default: Any = None) -> Any:
        """Return a metadata value, or default when the key is absent."""
        return (self.metadata or {}).get(key, default)
