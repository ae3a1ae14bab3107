"""Chunking and inter-chunk pacing for batch label updates."""

from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable, Generator, Sequence

from gmail_labeler.core.exceptions import BatchCancelledError, BatchTimeoutError
from gmail_labeler.core.models import Chunk

logger = logging.getLogger(__name__)

# users.messages.batchModify documents a limit of 1000 IDs; 100 keeps each
# call well inside per-request quota.
DEFAULT_CHUNK_SIZE = 100
DEFAULT_INTER_CHUNK_DELAY = 1.0


def iter_chunks(
    message_ids: Sequence[str], chunk_size: int = DEFAULT_CHUNK_SIZE
) -> Generator[Chunk, None, None]:
    """Split message IDs into ordered, contiguous chunks of at most ``chunk_size``."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    for index, start in enumerate(range(0, len(message_ids), chunk_size)):
        yield Chunk(index=index, message_ids=tuple(message_ids[start:start + chunk_size]))


def count_chunks(total: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    return math.ceil(total / chunk_size) if total else 0


class ChunkScheduler:
    """Yields chunks one at a time, pacing between them.

    Pacing happens before every chunk except the first. Cancellation and the
    whole-request deadline are checked before each chunk is handed out and
    while pacing; a chunk that has already been yielded always runs to
    completion.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        inter_chunk_delay_seconds: float = DEFAULT_INTER_CHUNK_DELAY,
        *,
        cancel_event: threading.Event | None = None,
        timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._chunk_size = chunk_size
        self._delay = inter_chunk_delay_seconds
        self._cancel_event = cancel_event
        self._timeout = timeout_seconds
        self._clock = clock
        self._deadline: float | None = None

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def schedule(self, message_ids: Sequence[str]) -> Generator[Chunk, None, None]:
        """Yield the chunks of ``message_ids`` in order.

        Raises:
            BatchCancelledError: If the cancel event is set.
            BatchTimeoutError: If the deadline passes before the next chunk.
        """
        if self._timeout is not None:
            self._deadline = self._clock() + self._timeout

        first_chunk = True
        for chunk in iter_chunks(message_ids, self._chunk_size):
            if not first_chunk:
                self._pace()
            first_chunk = False
            self._check_abort()

            logger.debug(
                "Dispatching chunk %d (%d messages)", chunk.index + 1, len(chunk.message_ids)
            )
            yield chunk

    def _remaining(self) -> float | None:
        if self._deadline is None:
            return None
        return self._deadline - self._clock()

    def _pace(self) -> None:
        if self._delay <= 0:
            return
        wait = self._delay
        remaining = self._remaining()
        if remaining is not None:
            wait = max(0.0, min(wait, remaining))

        if self._cancel_event is not None:
            self._cancel_event.wait(wait)
        else:
            time.sleep(wait)

    def _check_abort(self) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise BatchCancelledError("Batch update cancelled by caller")
        remaining = self._remaining()
        if remaining is not None and remaining <= 0:
            raise BatchTimeoutError(
                f"Batch update exceeded its {self._timeout:.1f}s deadline"
            )
