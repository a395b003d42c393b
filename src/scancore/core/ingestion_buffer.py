"""
Ingestion buffer for streamed scan results.

Coalesces high-frequency file batches from the scan provider into fewer,
larger appends so the result pipeline is not recomputed for every batch.
"""

import logging
import time
from collections.abc import Callable, Iterable

from scancore.core.models import EXCLUDED_KINDS, ScannedFile

logger = logging.getLogger(__name__)


def drop_excluded(files: Iterable[ScannedFile]) -> list[ScannedFile]:
    """Remove files whose kind never enters accumulated state."""
    return [f for f in files if f.kind not in EXCLUDED_KINDS]


class IngestionBuffer:
    """
    Time-based staging buffer.

    Incoming batches are filtered and appended to a staging list. Once
    ``flush_interval_ms`` has passed since the previous flush, the staged
    files are handed over in one list and the stage is cleared. Order is
    preserved and nothing is dropped except excluded kinds.

    Attributes:
        flush_interval_ms: Minimum time between two flushes
    """

    def __init__(
        self,
        flush_interval_ms: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the buffer.

        Args:
            flush_interval_ms: Minimum time between two flushes (default: 500)
            clock: Monotonic clock returning seconds
        """
        self._flush_interval_ms = flush_interval_ms
        self._clock = clock
        self._staged: list[ScannedFile] = []
        self._last_flush = clock()

    @property
    def flush_interval_ms(self) -> int:
        return self._flush_interval_ms

    def reset(self) -> None:
        """Clear the stage and restart the flush interval (scan start)."""
        self._staged = []
        self._last_flush = self._clock()

    def add(self, files: Iterable[ScannedFile]) -> list[ScannedFile]:
        """
        Stage a batch and flush if the interval has elapsed.

        Returns:
            The flushed files, or an empty list if nothing was flushed
        """
        accepted = drop_excluded(files)
        self._staged.extend(accepted)
        return self.tick()

    def tick(self) -> list[ScannedFile]:
        """Flush if the interval has elapsed since the last flush."""
        elapsed_ms = (self._clock() - self._last_flush) * 1000.0
        # A flush is due once the full interval has passed, boundary included
        if elapsed_ms < self._flush_interval_ms:
            return []
        return self.flush()

    def flush(self) -> list[ScannedFile]:
        """Hand over all staged files immediately."""
        flushed = self._staged
        self._staged = []
        self._last_flush = self._clock()
        if flushed:
            logger.debug("Flushed %d staged files", len(flushed))
        return flushed

    def discard(self) -> int:
        """
        Drop staged files without flushing.

        Used when an authoritative final file list supersedes the stage.

        Returns:
            Number of files discarded
        """
        count = len(self._staged)
        self._staged = []
        return count

    def pending_count(self) -> int:
        return len(self._staged)
