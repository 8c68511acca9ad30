"""
Celery-backed TaskQueue used for post-finalize hand-off.

Each logical queue name maps to one Celery task in uploads.tasks and is
routed to a Celery queue of the same name. Delivery problems are logged and
swallowed: the upload is already finalized when these jobs are pushed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings

if TYPE_CHECKING:
    from typing import Any

    from celery import Task

logger = logging.getLogger(__name__)


def _task_registry() -> dict[str, Task]:
    from uploads import tasks

    queues = settings.UPLOADS_PIPELINE_QUEUES
    return {
        queues["transcode"]: tasks.transcode_video,
        queues["thumbnail"]: tasks.generate_thumbnail,
        queues["metadata"]: tasks.extract_metadata,
        queues["remote_sync"]: tasks.sync_to_remote,
    }


class CeleryTaskQueue:
    """
    TaskQueue implementation that dispatches to Celery.

    Usage:
        queue = CeleryTaskQueue()
        queue.push("thumbnail-queue", {"asset_id": str(asset.id)})
    """

    def push(self, queue_name: str, payload: dict[str, Any]) -> None:
        task = _task_registry().get(queue_name)
        if task is None:
            logger.error(
                f"No task registered for queue {queue_name}",
                extra={"event_type": "pipeline_push_failed", "queue": queue_name},
            )
            return

        try:
            task.apply_async(args=[payload], queue=queue_name)
        except Exception:
            logger.exception(
                f"Failed to enqueue {task.name}",
                extra={
                    "event_type": "pipeline_push_failed",
                    "queue": queue_name,
                    "asset_id": payload.get("asset_id"),
                },
            )
            return

        logger.debug(
            f"Queued {task.name}",
            extra={"event_type": "pipeline_pushed", "queue": queue_name, "asset_id": payload.get("asset_id")},
        )
