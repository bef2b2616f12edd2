"""
Shared abstract model for every persisted record in the project.

BaseModel contributes creation and modification timestamps. Identity
(UUID primary keys) and free-form metadata come from core.model_mixins.

Usage:
    from core.model_mixins import UUIDPrimaryKeyMixin
    from core.models import BaseModel

    class Merchant(UUIDPrimaryKeyMixin, BaseModel):
        name = models.CharField(max_length=200)

Note:
    List mixins before BaseModel so their fields come first in migrations.
"""

from __future__ import annotations

from django.db import models


class BaseModel(models.Model):
    """
    Abstract base with created_at/updated_at.

    Rows are ordered newest first unless the concrete model overrides it.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="When this record was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When this record was last written",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id={self.pk})"
