"""
Core base model shared by every persisted record in the project.

Base Classes:
    BaseModel: Abstract model stamping created_at / updated_at

The upload ledgers rely on updated_at moving on every state-changing save:
the stale-upload sweeper selects abandoned sessions by it. Because of that,
callers that use ``save(update_fields=...)`` must go through ``save_fields()``
so the timestamp is never left out of the column list.

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class Upload(UUIDPrimaryKeyMixin, BaseModel):
        filename = models.CharField(max_length=255)

    upload.status = "completed"
    upload.save_fields("status")
"""

from __future__ import annotations

from django.db import models


class BaseModel(models.Model):
    """
    Abstract base model providing creation and modification timestamps.

    Fields:
        created_at: Set once when the row is inserted
        updated_at: Refreshed on every save
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this record was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        db_index=True,
        help_text="Timestamp when this record was last modified",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id={self.pk})"

    def save_fields(self, *fields: str) -> None:
        """
        Save only the given columns, always including updated_at.

        Args:
            *fields: Names of the model fields that changed
        """
        self.save(update_fields=[*fields, "updated_at"])
