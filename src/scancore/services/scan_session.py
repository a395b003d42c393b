"""
Scan Session service.

Owns the lifecycle of one scan at a time: issues the request to the scan
provider, applies provider events in delivery order through an asyncio queue,
coalesces streamed batches through the ingestion buffer and tracks progress
and elapsed time.
"""

import asyncio
import logging
import math
import time
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from typing import Optional

from scancore.core.folder_tree import build_folder_tree
from scancore.core.ingestion_buffer import IngestionBuffer, drop_excluded
from scancore.core.models import (
    FolderNode,
    ScanProgress,
    ScanScope,
    ScanStatus,
    ScannedFile,
    local_now,
)
from scancore.core.scan_events import ScanEvent, ScanEventType, ScanResult
from scancore.core.time_window import (
    ResolvedWindow,
    ScanRecord,
    TimeRangeSelector,
    resolve_window,
)
from scancore.infrastructure.scan_provider import (
    CancelHandle,
    ScanCallbacks,
    ScanProviderInterface,
    ScanRequest,
)

logger = logging.getLogger(__name__)

PROVIDER_UNAVAILABLE_MESSAGE = "Scan provider not available"

SessionListener = Callable[["ScanSession"], None]


class ScanSessionError(Exception):
    """Base exception for scan session errors."""

    pass


def format_duration(seconds: float) -> str:
    """Format a duration as "42s" or "3m 5s"."""
    total = max(0, int(seconds))
    if total < 60:
        return f"{total}s"
    minutes, rest = divmod(total, 60)
    return f"{minutes}m {rest}s"


class ScanSession:
    """
    Explicit owned scan session.

    Provider callbacks only post events; a single consumer task applies them,
    so every transition happens on the event loop in delivery order. Each scan
    gets a generation number and events carrying an older generation are
    dropped, which makes superseding a running scan safe.

    Progress snapshots are immutable and replaced wholesale at every transition.
    """

    def __init__(
        self,
        provider: Optional[ScanProviderInterface],
        flush_interval_ms: int = 500,
        elapsed_tick_seconds: float = 1.0,
        clock: Callable[[], datetime] = local_now,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the scan session.

        Args:
            provider: Scan provider, or None when the host offers no scanning
            flush_interval_ms: Minimum time between two batch flushes
            elapsed_tick_seconds: Period of the live elapsed-time ticker
            clock: Wall clock used for timestamps and window resolution
            monotonic: Monotonic clock driving the ingestion buffer
        """
        if elapsed_tick_seconds <= 0:
            raise ValueError("elapsed_tick_seconds must be positive")
        self._provider = provider
        self._elapsed_tick_seconds = elapsed_tick_seconds
        self._clock = clock
        self._buffer = IngestionBuffer(flush_interval_ms=flush_interval_ms, clock=monotonic)

        self._progress = ScanProgress()
        self._files: list[ScannedFile] = []
        self._files_version = 0
        self._provider_tree: Optional[list[FolderNode]] = None
        self._record: Optional[ScanRecord] = None
        self._scope: Optional[ScanScope] = None
        self._selector: Optional[TimeRangeSelector] = None
        self._window: Optional[ResolvedWindow] = None

        self._generation = 0
        self._cancel_handle: Optional[CancelHandle] = None
        self._locally_cancelled = False
        self._final_received = False
        self._elapsed_seconds = 0

        self._listeners: list[SessionListener] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue[ScanEvent]] = None
        self._consumer_task: Optional[asyncio.Task] = None
        self._ticker_task: Optional[asyncio.Task] = None
        self._closed = False
        self._done = asyncio.Event()
        self._done.set()

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def progress(self) -> ScanProgress:
        return self._progress

    @property
    def status(self) -> ScanStatus:
        return self._progress.status

    @property
    def is_busy(self) -> bool:
        return self._progress.status.is_busy

    @property
    def files(self) -> list[ScannedFile]:
        """Accumulated files of the current (or last) scan."""
        return self._files

    @property
    def files_version(self) -> int:
        """Incremented whenever ``files`` changes."""
        return self._files_version

    @property
    def record(self) -> Optional[ScanRecord]:
        """Selector, window and files of the last finished scan."""
        return self._record

    @property
    def scope(self) -> Optional[ScanScope]:
        return self._scope

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def elapsed_seconds(self) -> int:
        """Live while busy (refreshed by the ticker), frozen once terminal."""
        return self._elapsed_seconds

    def scan_duration_text(self) -> str:
        return format_duration(self._elapsed_seconds)

    def pending_count(self) -> int:
        """Files staged in the ingestion buffer but not yet flushed."""
        return self._buffer.pending_count()

    def folder_tree(self) -> list[FolderNode]:
        """Provider tree when one was delivered, otherwise derived from the files."""
        if self._provider_tree is not None:
            return self._provider_tree
        roots = self._scope.directory_paths() if self._scope else []
        return build_folder_tree(self._files, roots)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register a listener called after every applied transition.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start_scan(self, scope: ScanScope, selector: TimeRangeSelector) -> bool:
        """
        Start a new scan, superseding any scan still running.

        Accumulated files and progress are cleared first. An empty directory
        scope is a silent no-op.

        Returns:
            True if a scan was started (even if it failed immediately)

        Raises:
            ScanSessionError: If the session has been closed
        """
        if self._closed:
            raise ScanSessionError("Scan session is closed")
        if not scope.directories:
            logger.debug("Ignoring scan request with empty directory scope")
            return False

        self._ensure_consumer()

        if self.is_busy:
            logger.info(
                "Superseding running scan",
                extra={"generation": self._generation},
            )
            self._invoke_cancel_handle()

        now = self._clock()
        self._generation += 1
        generation = self._generation
        self._scope = scope
        self._selector = selector
        self._window = resolve_window(selector, now)
        self._files = []
        self._files_version += 1
        self._provider_tree = None
        self._buffer.reset()
        self._cancel_handle = None
        self._locally_cancelled = False
        self._final_received = False
        self._elapsed_seconds = 0
        self._done.clear()
        self._progress = ScanProgress(status=ScanStatus.SCANNING, started_at=now)
        self._start_ticker()

        logger.info(
            "Scan started",
            extra={
                "generation": generation,
                "directories": scope.directory_paths(),
                "time_range": str(selector),
            },
        )
        self._notify()

        if self._provider is None:
            self._fail(PROVIDER_UNAVAILABLE_MESSAGE)
            return True

        request = ScanRequest.build(scope, selector, now)
        try:
            handle = await self._provider.scan(request, self._callbacks_for(generation))
        except Exception as e:
            if generation == self._generation and not self._progress.status.is_terminal:
                self._fail(str(e) or e.__class__.__name__)
            return True

        if generation != self._generation or self._locally_cancelled:
            # Superseded or cancelled while the request was in flight
            self._call_safely(handle, "scan cancellation handle")
        else:
            self._cancel_handle = handle
        return True

    def cancel_scan(self) -> bool:
        """
        Cancel the running scan.

        Local status flips to CANCELLED immediately; the provider is then asked
        to stop through the scan's handle and its global cancel. Idempotent.

        Returns:
            True if a running scan was cancelled
        """
        if not self.is_busy:
            return False

        self._locally_cancelled = True
        self._absorb(self._buffer.flush())
        self._finish(ScanStatus.CANCELLED, capture_record=True)
        logger.info(
            "Scan cancelled",
            extra={"generation": self._generation, "files": len(self._files)},
        )
        self._notify()

        self._invoke_cancel_handle()
        if self._provider is not None:
            self._call_safely(self._provider.cancel, "provider cancel")
        return True

    async def wait_until_done(self, timeout: Optional[float] = None) -> ScanStatus:
        """Wait until the session reaches a terminal (or idle) state."""
        if timeout is None:
            await self._done.wait()
        else:
            await asyncio.wait_for(self._done.wait(), timeout)
        return self._progress.status

    async def drain(self) -> None:
        """Wait until every posted event has been applied."""
        if self._queue is not None:
            # Let puts scheduled with call_soon_threadsafe land first
            await asyncio.sleep(0)
            await self._queue.join()

    def tick(self) -> None:
        """Refresh elapsed time and flush the buffer if its interval elapsed."""
        if not self.is_busy:
            return
        self._elapsed_seconds = self._live_elapsed()
        flushed = self._buffer.tick()
        if flushed:
            self._absorb(flushed)
        self._notify()

    async def close(self) -> None:
        """Cancel the running scan, if any, and stop background tasks."""
        self._closed = True
        self.cancel_scan()
        for task in (self._ticker_task, self._consumer_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._ticker_task = None
        self._consumer_task = None
        self._queue = None

    # ------------------------------------------------------------------
    # Event channel
    # ------------------------------------------------------------------

    def _ensure_consumer(self) -> None:
        loop = asyncio.get_running_loop()
        if self._consumer_task is not None and not self._consumer_task.done() and self._loop is loop:
            return
        self._loop = loop
        self._queue = asyncio.Queue()
        self._consumer_task = loop.create_task(self._consume())

    def _callbacks_for(self, generation: int) -> ScanCallbacks:
        def post(event_type: ScanEventType, payload) -> None:
            self._post(ScanEvent(event_type=event_type, generation=generation, payload=payload))

        return ScanCallbacks(
            on_progress=lambda progress: post(ScanEventType.PROGRESS, progress),
            on_files=lambda files: post(ScanEventType.BATCH, list(files)),
            on_complete=lambda result: post(ScanEventType.COMPLETE, result),
            on_error=lambda message: post(ScanEventType.ERROR, str(message)),
        )

    def _post(self, event: ScanEvent) -> None:
        """Thread-safe hand-off of a provider event to the consumer."""
        loop, queue = self._loop, self._queue
        if loop is None or queue is None or loop.is_closed():
            logger.debug("Dropping %s, session closed", event.describe())
            return
        loop.call_soon_threadsafe(queue.put_nowait, event)

    async def _consume(self) -> None:
        queue = self._queue
        while True:
            event = await queue.get()
            try:
                self._apply(event)
            except Exception:
                logger.error(
                    "Failed to apply scan event",
                    exc_info=True,
                    extra={"event": event.describe(), "generation": event.generation},
                )
            finally:
                queue.task_done()

    def _apply(self, event: ScanEvent) -> None:
        if event.generation != self._generation:
            logger.debug(
                "Ignoring %s from superseded scan",
                event.describe(),
                extra={"event_generation": event.generation, "generation": self._generation},
            )
            return

        if event.event_type == ScanEventType.PROGRESS:
            self._apply_progress(event.payload)
        elif event.event_type == ScanEventType.BATCH:
            self._apply_batch(event.payload)
        elif event.event_type == ScanEventType.COMPLETE:
            self._apply_complete(event.payload)
        else:
            self._apply_error(event.payload)

    def _apply_progress(self, incoming: ScanProgress) -> None:
        if not self.is_busy:
            logger.debug("Ignoring progress after %s", self.status.value)
            return
        current = self._progress
        status = incoming.status if incoming.status.is_busy else current.status
        self._progress = replace(
            current,
            status=status,
            scanned_count=max(current.scanned_count, incoming.scanned_count),
            matched_count=max(current.matched_count, incoming.matched_count),
            skipped_count=max(current.skipped_count, incoming.skipped_count),
            current_path=incoming.current_path or current.current_path,
            stage=incoming.stage or current.stage,
        )
        self._notify()

    def _apply_batch(self, files: list[ScannedFile]) -> None:
        if not self.is_busy:
            logger.debug("Ignoring batch of %d files after %s", len(files), self.status.value)
            return
        flushed = self._buffer.add(files)
        if flushed:
            self._absorb(flushed)
            self._notify()

    def _apply_complete(self, result: ScanResult) -> None:
        if self._final_received or (self._progress.status.is_terminal and not self._locally_cancelled):
            logger.debug("Ignoring duplicate completion")
            return
        self._final_received = True

        discarded = self._buffer.discard()
        self._files = drop_excluded(result.files)
        self._files_version += 1
        self._provider_tree = result.folder_tree

        if self._locally_cancelled:
            # Authoritative files replace the local ones, status stays cancelled
            self._record = self._make_record()
            logger.info(
                "Partial results received after cancel",
                extra={"generation": self._generation, "files": len(self._files)},
            )
        else:
            status = ScanStatus.CANCELLED if result.partial else ScanStatus.COMPLETED
            self._finish(status, capture_record=True)
            logger.info(
                "Scan completed" if status == ScanStatus.COMPLETED else "Scan ended early",
                extra={
                    "generation": self._generation,
                    "status": status.value,
                    "files": len(self._files),
                    "discarded_staged": discarded,
                    "elapsed": self.scan_duration_text(),
                },
            )
        self._notify()

    def _apply_error(self, message: str) -> None:
        if self._locally_cancelled or self._progress.status.is_terminal:
            logger.debug("Ignoring error after %s: %s", self.status.value, message)
            return
        self._absorb(self._buffer.flush())
        self._fail(message)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fail(self, message: str) -> None:
        self._finish(ScanStatus.ERROR, capture_record=False, error=message)
        logger.warning(
            f"Scan failed: {message}",
            extra={"generation": self._generation},
        )
        self._notify()

    def _finish(
        self, status: ScanStatus, capture_record: bool, error: Optional[str] = None
    ) -> None:
        now = self._clock()
        self._progress = replace(
            self._progress,
            status=status,
            completed_at=now,
            current_path=None,
            error=error,
        )
        started = self._progress.started_at
        self._elapsed_seconds = (
            math.floor(max(0.0, (now - started).total_seconds())) if started else 0
        )
        self._stop_ticker()
        if capture_record:
            self._record = self._make_record()
        self._done.set()

    def _make_record(self) -> ScanRecord:
        return ScanRecord(
            selector=self._selector,
            window=self._window,
            files=tuple(self._files),
            completed_at=self._progress.completed_at or self._clock(),
        )

    def _absorb(self, files: list[ScannedFile]) -> None:
        if not files:
            return
        self._files = self._files + files
        self._files_version += 1

    def _live_elapsed(self) -> int:
        started = self._progress.started_at
        if started is None:
            return 0
        return math.floor(max(0.0, (self._clock() - started).total_seconds()))

    def _start_ticker(self) -> None:
        self._stop_ticker()
        self._ticker_task = asyncio.get_running_loop().create_task(self._run_ticker())

    def _stop_ticker(self) -> None:
        if self._ticker_task is not None and not self._ticker_task.done():
            if self._ticker_task is not asyncio.current_task():
                self._ticker_task.cancel()
        self._ticker_task = None

    async def _run_ticker(self) -> None:
        while self.is_busy:
            await asyncio.sleep(self._elapsed_tick_seconds)
            self.tick()

    def _invoke_cancel_handle(self) -> None:
        handle, self._cancel_handle = self._cancel_handle, None
        if handle is not None:
            self._call_safely(handle, "scan cancellation handle")

    def _call_safely(self, func: Callable[[], None], what: str) -> None:
        try:
            func()
        except Exception as e:
            logger.warning(f"Failed to invoke {what}: {e}")

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.warning("Scan session listener failed", exc_info=True)
