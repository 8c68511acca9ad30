"""
Core views providing infrastructure endpoints.

Contains views that are not part of the upload domain but are needed to
run the service, such as health checks.
"""

import logging
import os

from django.conf import settings
from django.db import connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    Returns:
        JsonResponse with status and component health:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "disconnected"
        - storage: "writable" or "unwritable"

    HTTP Status Codes:
        200: All systems operational
        503: One or more systems unhealthy
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "storage": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        logger.exception("Health check: database unreachable")
        health_status["database"] = "disconnected"
        is_healthy = False

    # Uploads cannot proceed if either storage root is read-only
    storage_ok = all(
        os.access(path, os.W_OK)
        for path in (settings.UPLOADS_TEMP_DIR, settings.UPLOADS_FINAL_DIR)
        if os.path.isdir(path)
    )
    health_status["storage"] = "writable" if storage_ok else "unwritable"
    if not storage_ok:
        is_healthy = False

    if not is_healthy:
        health_status["status"] = "unhealthy"

    return JsonResponse(health_status, status=200 if is_healthy else 503)
