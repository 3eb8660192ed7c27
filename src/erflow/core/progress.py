"""Fire-and-forget progress stream between a running workflow and its observers."""

import logging
import queue

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class ProgressEvent(BaseModel):
    """A status message with an optional completion fraction."""

    model_config = ConfigDict(frozen=True)

    message: str
    fraction: float | None = Field(default=None, ge=0.0, le=1.0)


class ProgressChannel:
    """Unbounded queue of ProgressEvents.

    The worker publishes without blocking; observers drain at their own pace
    from any thread.

    Example:
        >>> channel = ProgressChannel()
        >>> manager = WorkflowManager(progress=channel)
        >>> future = manager.submit(spec)
        >>> while not future.done():
        ...     for event in channel.drain():
        ...         print(event.message)
    """

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[ProgressEvent] = queue.SimpleQueue()

    def publish(self, message: str, fraction: float | None = None) -> None:
        logger.debug("Progress: %s", message)
        self._queue.put(ProgressEvent(message=message, fraction=fraction))

    def get(self, timeout: float | None = None) -> ProgressEvent:
        """Block until the next event arrives.

        Raises:
            queue.Empty: If no event arrives within timeout
        """
        return self._queue.get(timeout=timeout)

    def drain(self) -> list[ProgressEvent]:
        """Return every pending event without blocking."""
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events
