"""
Base service layer patterns for business logic encapsulation.

Services encapsulate business logic separate from views and models.
Views handle HTTP concerns, models handle data, services handle logic.
Expected failures are raised as core.exceptions errors and rendered by
the API exception handler.

Usage:
    from core.services import BaseService

    class ChunkedUploadService(BaseService):
        def commit(self, upload_id, owner):
            with self.atomic():
                upload = lock_upload(ChunkedUpload, upload_id, owner)
                ...
            self.get_logger().info("Committed upload %s", upload.id)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator


class BaseService:
    """
    Base class for service layer classes.

    Provides a logger named after the concrete service and an explicit
    transaction boundary helper.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for easy
        filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Thin wrapper around Django's transaction.atomic() that makes
        transaction boundaries explicit in service code. Nested use
        creates a savepoint.
        """
        with transaction.atomic():
            yield
