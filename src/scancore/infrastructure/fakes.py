"""
Fake implementations for testing.

Provides in-memory implementations of infrastructure interfaces
for use in unit and integration tests without external dependencies.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Optional

from scancore.core.models import IndexedFile, IndexedFilePage, ScannedFile, ScanProgress
from scancore.core.scan_events import ScanResult
from scancore.infrastructure.index_backend import (
    BackendUnavailableError,
    IndexBackendError,
    IndexBackendInterface,
)
from scancore.infrastructure.scan_provider import (
    CancelHandle,
    ScanCallbacks,
    ScanProviderInterface,
    ScanRequest,
)


@dataclass
class _FakeScan:
    request: ScanRequest
    callbacks: ScanCallbacks
    cancelled: bool = False


class FakeScanProvider(ScanProviderInterface):
    """
    Fake scan provider for testing.

    Records every request and lets tests drive the callbacks of any scan by
    hand. Emission helpers target the most recent scan unless ``index`` is given.
    """

    def __init__(self, fail_with: Optional[Exception] = None):
        """
        Initialize the fake provider.

        Args:
            fail_with: Exception raised from ``scan`` instead of starting a scan
        """
        self._fail_with = fail_with
        self.scans: list[_FakeScan] = []
        self.global_cancel_count = 0

    async def scan(self, request: ScanRequest, callbacks: ScanCallbacks) -> CancelHandle:
        if self._fail_with is not None:
            raise self._fail_with
        record = _FakeScan(request=request, callbacks=callbacks)
        self.scans.append(record)

        def cancel_handle() -> None:
            record.cancelled = True

        return cancel_handle

    def cancel(self) -> None:
        self.global_cancel_count += 1

    @property
    def requests(self) -> list[ScanRequest]:
        return [s.request for s in self.scans]

    def handle_cancelled(self, index: int = -1) -> bool:
        return self.scans[index].cancelled

    def emit_progress(self, progress: ScanProgress, index: int = -1) -> None:
        self.scans[index].callbacks.on_progress(progress)

    def emit_files(self, files: Iterable[ScannedFile], index: int = -1) -> None:
        self.scans[index].callbacks.on_files(list(files))

    def emit_complete(
        self, files: Iterable[ScannedFile], partial: bool = False, index: int = -1
    ) -> None:
        self.scans[index].callbacks.on_complete(ScanResult(files=list(files), partial=partial))

    def emit_error(self, message: str, index: int = -1) -> None:
        self.scans[index].callbacks.on_error(message)


@dataclass
class BackendCall:
    """One recorded call to the in-memory backend."""

    method: str
    kwargs: dict[str, Any] = field(default_factory=dict)


class InMemoryIndexBackend(IndexBackendInterface):
    """
    In-memory index backend for testing.

    Implements IndexBackendInterface without an HTTP server. Indexing runs
    create records immediately; failures can be injected per method or per
    registered directory.
    """

    def __init__(self, records: Optional[Iterable[IndexedFile]] = None):
        self._records: dict[str, IndexedFile] = {}
        for record in records or []:
            self._records[record.key] = record
        self._folders: dict[str, dict[str, Any]] = {}
        self.calls: list[BackendCall] = []
        self.failing_methods: set[str] = set()
        self.failing_directories: set[str] = set()

    def _record_call(self, method: str, **kwargs: Any) -> None:
        self.calls.append(BackendCall(method=method, kwargs=kwargs))
        if method in self.failing_methods:
            raise BackendUnavailableError(f"{method} failed")

    def calls_to(self, method: str) -> list[BackendCall]:
        return [c for c in self.calls if c.method == method]

    def add_record(self, record: IndexedFile) -> None:
        self._records[record.key] = record

    @property
    def folders(self) -> dict[str, dict[str, Any]]:
        return dict(self._folders)

    async def list_indexed_files(self, limit: int, offset: int) -> IndexedFilePage:
        self._record_call("list_indexed_files", limit=limit, offset=offset)
        ordered = sorted(self._records.values(), key=lambda r: r.key)
        return IndexedFilePage(files=ordered[offset : offset + limit], total=len(ordered))

    async def register_directory(
        self, path: str, label: Optional[str] = None, scan_mode: str = "full"
    ) -> dict[str, Any]:
        self._record_call("register_directory", path=path, label=label, scan_mode=scan_mode)
        if path in self.failing_directories:
            raise IndexBackendError(f"Folder already exists: {path}")
        folder = self._folders.setdefault(
            path,
            {"id": str(len(self._folders) + 1), "path": path, "label": label, "scan_mode": scan_mode},
        )
        return dict(folder)

    async def run_staged_index(
        self, folders: list[str], files: list[str], mode: Optional[str] = None
    ) -> dict[str, Any]:
        self._record_call("run_staged_index", folders=list(folders), files=list(files), mode=mode)
        self._index(files, {"chunk_strategy": "text_fast"})
        return {"status": "completed", "processed": len(files)}

    async def run_index(
        self,
        mode: str,
        scope: str,
        folders: list[str],
        files: list[str],
        indexing_mode: Optional[str] = None,
    ) -> dict[str, Any]:
        self._record_call(
            "run_index",
            mode=mode,
            scope=scope,
            folders=list(folders),
            files=list(files),
            indexing_mode=indexing_mode,
        )
        strategy = "text_fine" if indexing_mode == "deep" else "text_fast"
        self._index(files, {"chunk_strategy": strategy})
        return {"status": "completed", "processed": len(files)}

    def _index(self, files: Iterable[str], metadata: dict[str, Any]) -> None:
        for path in files:
            self._records[path] = IndexedFile(
                id=str(len(self._records) + 1),
                path=path,
                full_path=path,
                name=PurePosixPath(path).name,
                metadata=metadata,
            )
