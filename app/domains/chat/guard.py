"""Process-wide registry of threads with a generation in flight."""

import logging

from app.exceptions.chat import GenerationInProgressError

logger = logging.getLogger(__name__)


class GenerationRegistry:
    """At most one in-flight generation per thread within this process.

    The event loop is single-threaded and ``acquire`` never awaits, so a
    plain set is enough.
    """

    def __init__(self):
        self._active: set[str] = set()

    def acquire(self, thread_id: str) -> None:
        """Mark ``thread_id`` busy.

        Raises:
            GenerationInProgressError: The thread is already generating.
        """
        if thread_id in self._active:
            logger.warning(f"Rejected concurrent generation for thread {thread_id}")
            raise GenerationInProgressError(thread_id)
        self._active.add(thread_id)

    def release(self, thread_id: str) -> None:
        self._active.discard(thread_id)

    def is_active(self, thread_id: str) -> bool:
        return thread_id in self._active


generation_registry = GenerationRegistry()
