"""
Abstract model mixins combined with core.models.BaseModel.

Available Mixins:
    UUIDPrimaryKeyMixin: UUID primary key generated client-side
    MetadataMixin: JSON metadata column with small accessors

Usage:
    class Payment(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
        ...
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use a UUID as primary key.

    Payment and order ids travel to the gateway as external references and
    to merchants inside webhook payloads, so they must not be guessable or
    reveal row counts.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class MetadataMixin(models.Model):
    """
    Free-form JSON metadata.

    Used for context that is useful for support and reconciliation but has
    no behaviour attached (checkout source, gateway extras, and so on).
    """

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary key-value context",
    )

    class Meta:
        abstract = True
