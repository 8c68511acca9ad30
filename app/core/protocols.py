"""
Protocol definitions for infrastructure collaborators.

Protocols define contracts that services depend on, so the concrete
implementation (Celery, an in-memory recorder in tests) can be swapped
without touching business logic.

Available Protocols:
    TaskQueue: Fire-and-forget push of a payload onto a named queue

Usage:
    from core.protocols import TaskQueue

    class RecordingQueue:
        def __init__(self):
            self.pushed = []

        def push(self, queue_name, payload):
            self.pushed.append((queue_name, payload))

    # RecordingQueue is a valid TaskQueue even without inheritance
    queue: TaskQueue = RecordingQueue()
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from typing import Any


@runtime_checkable
class TaskQueue(Protocol):
    """
    Protocol for downstream work queues.

    Implementations must not raise on delivery problems: a finalized upload
    stays finalized whether or not its follow-up jobs were accepted.
    """

    def push(self, queue_name: str, payload: dict[str, Any]) -> None:
        """
        Enqueue a payload on the given queue.

        Args:
            queue_name: Logical queue name (e.g. "thumbnail-queue")
            payload: JSON-serializable job payload
        """
        ...
