"""
Selection and batch indexing coordinator.

Tracks which scanned files are selected and which are currently submitted for
indexing, and drives the index backend with one registration per parent
directory and one indexing call per request.
"""

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Optional

from scancore.infrastructure.index_backend import IndexBackendError, IndexBackendInterface
from scancore.services.indexed_cache import IndexedFileCache

logger = logging.getLogger(__name__)

MANUAL_SCAN_MODE = "manual"


class IndexMode(Enum):
    """Indexing modes offered for scanned files."""

    FAST = "fast"
    DEEP = "deep"

    @classmethod
    def parse(cls, value: "str | IndexMode") -> "IndexMode":
        if isinstance(value, IndexMode):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown index mode: {value!r} (expected 'fast' or 'deep')") from None


def parent_directory(path: str) -> str:
    """Parent directory of a file path, with separators normalized to '/'."""
    return str(PurePosixPath(path.replace("\\", "/")).parent)


def group_by_parent(paths: Iterable[str]) -> dict[str, list[str]]:
    """Group paths by parent directory, keeping first-seen order."""
    groups: dict[str, list[str]] = {}
    for path in paths:
        groups.setdefault(parent_directory(path), []).append(path)
    return groups


@dataclass
class IndexOutcome:
    """
    Result of one indexing request.

    Attributes:
        mode: Requested mode
        files: Paths submitted
        folders: Distinct parent directories
        failed_registrations: Directories whose registration failed
        success: Whether the indexing call succeeded
        error: Error message of a failed indexing call
        duration_ms: Wall time of the whole request
    """

    mode: IndexMode
    files: list[str] = field(default_factory=list)
    folders: list[str] = field(default_factory=list)
    failed_registrations: list[str] = field(default_factory=list)
    success: bool = False
    error: Optional[str] = None
    duration_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "files": list(self.files),
            "folders": list(self.folders),
            "failed_registrations": list(self.failed_registrations),
            "success": self.success,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }


class SelectionCoordinator:
    """
    Selection set, in-flight set and bulk indexing.

    The in-flight set is owned here; a path stays in it from submission until
    the indexing call returns, whether it succeeded or not.
    """

    def __init__(
        self,
        backend: IndexBackendInterface,
        cache: Optional[IndexedFileCache] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            backend: Index backend receiving registrations and indexing calls
            cache: Cache refreshed after every indexing request
        """
        self._backend = backend
        self._cache = cache
        self._selected: set[str] = set()
        self._in_flight: set[str] = set()
        self._version = 0

    @property
    def selected(self) -> frozenset[str]:
        return frozenset(self._selected)

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    @property
    def version(self) -> int:
        """Incremented whenever the in-flight set changes."""
        return self._version

    def is_selected(self, path: str) -> bool:
        return path in self._selected

    def toggle(self, path: str) -> bool:
        """Flip selection of ``path``; returns the new state."""
        if path in self._selected:
            self._selected.discard(path)
            return False
        self._selected.add(path)
        return True

    def select(self, paths: Iterable[str]) -> None:
        self._selected.update(paths)

    def clear(self) -> None:
        self._selected.clear()

    def toggle_select_all(self, filtered_paths: Iterable[str]) -> bool:
        """
        Select every filtered file, or clear the selection if all are selected.

        Operates on the whole filtered set, not only the displayed page.

        Returns:
            True if everything is now selected
        """
        paths = set(filtered_paths)
        if paths and paths <= self._selected:
            self._selected.clear()
            return False
        self._selected = paths
        return bool(paths)

    async def index_files(
        self, paths: Iterable[str], mode: "IndexMode | str", single: bool = False
    ) -> IndexOutcome:
        """
        Index files in one request.

        Every distinct parent directory is registered with the manual scan
        policy first; a failed registration is logged and indexing continues.
        Fast mode issues one staged indexing call, deep mode one full indexing
        call with deep processing. Failures are logged, never raised.

        Args:
            paths: Files to index
            mode: Fast or deep
            single: Single-file request; deep runs reindex instead of rescan

        Returns:
            IndexOutcome describing what was submitted
        """
        mode = IndexMode.parse(mode)
        files = list(dict.fromkeys(paths))
        groups = group_by_parent(files)
        outcome = IndexOutcome(mode=mode, files=files, folders=list(groups))
        if not files:
            return outcome

        start_time = time.time()
        self._in_flight.update(files)
        self._version += 1

        logger.info(
            "Submitting %d files for %s indexing",
            len(files),
            mode.value,
            extra={"file_count": len(files), "folder_count": len(groups), "mode": mode.value},
        )

        try:
            for folder in groups:
                try:
                    await self._backend.register_directory(
                        folder, label=None, scan_mode=MANUAL_SCAN_MODE
                    )
                except IndexBackendError as e:
                    # Usually the directory is already registered
                    outcome.failed_registrations.append(folder)
                    logger.warning(
                        f"Directory registration failed, continuing: {e}",
                        extra={"folder": folder},
                    )

            try:
                await self._submit(mode, outcome.folders, files, single)
                outcome.success = True
            except IndexBackendError as e:
                outcome.error = str(e)
                logger.error(
                    f"Indexing request failed: {e}",
                    exc_info=True,
                    extra={"mode": mode.value, "file_count": len(files)},
                )
        finally:
            self._in_flight.difference_update(files)
            self._version += 1

        if self._cache is not None:
            await self._cache.refresh()

        outcome.duration_ms = (time.time() - start_time) * 1000
        if outcome.success:
            logger.info(
                "Indexing request completed in %.2fms",
                outcome.duration_ms,
                extra=outcome.to_dict(),
            )
        return outcome

    async def index_file(self, path: str, mode: "IndexMode | str") -> IndexOutcome:
        """Index a single file."""
        return await self.index_files([path], mode, single=True)

    async def index_selected(self, mode: "IndexMode | str") -> IndexOutcome:
        """Index the current selection and clear it if the request succeeded."""
        outcome = await self.index_files(sorted(self._selected), mode)
        if outcome.success:
            self._selected.clear()
        return outcome

    async def _submit(
        self, mode: IndexMode, folders: list[str], files: list[str], single: bool
    ) -> None:
        if mode == IndexMode.FAST:
            await self._backend.run_staged_index(folders=folders, files=files, mode="reindex")
            return
        await self._backend.run_index(
            mode="reindex" if single else "rescan",
            scope="folder",
            folders=folders,
            files=files,
            indexing_mode="deep",
        )
