"""
Model mixins combined with BaseModel.

Available Mixins:
    UUIDPrimaryKeyMixin: UUID primary key generated application-side

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class ChunkedUpload(UUIDPrimaryKeyMixin, BaseModel):
        filename = models.CharField(max_length=255)

Note:
    Always list mixins before BaseModel in the bases.
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use a random UUID as primary key.

    The id is available before the first save, which lets services derive
    on-disk paths (session directories, temp files) from it up front.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True
