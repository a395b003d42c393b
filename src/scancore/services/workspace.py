"""
Scan workspace facade.

Wires the scan session, indexed-file cache, selection coordinator and result
view together the way an interactive front end consumes them.
"""

import asyncio
import logging
from typing import Optional

from scancore.core.folder_tree import build_folder_tree
from scancore.core.index_status import derive_index_status
from scancore.core.models import FileKind, FolderNode, IndexStatus, ScanScope, ScanStatus
from scancore.core.result_pipeline import (
    ResultPage,
    ResultView,
    category_counts,
    category_sizes,
)
from scancore.core.time_window import TimeRangeSelector, exceeds_scanned
from scancore.services.indexed_cache import IndexedFileCache
from scancore.services.scan_session import ScanSession
from scancore.services.selection import IndexMode, IndexOutcome, SelectionCoordinator

logger = logging.getLogger(__name__)


class ScanWorkspace:
    """
    Everything a scan screen needs behind one object.

    The indexed-file cache is refreshed after every completed scan so index
    statuses of freshly scanned files are current.
    """

    def __init__(
        self,
        session: ScanSession,
        cache: IndexedFileCache,
        coordinator: SelectionCoordinator,
        view: ResultView,
        scope: Optional[ScanScope] = None,
    ):
        self._session = session
        self._cache = cache
        self._coordinator = coordinator
        self._view = view
        self._scope = scope or ScanScope()
        self._refreshed_generation = 0
        self._refresh_task: Optional[asyncio.Task] = None
        self._unsubscribe = session.subscribe(self._on_session_change)

    @property
    def session(self) -> ScanSession:
        return self._session

    @property
    def cache(self) -> IndexedFileCache:
        return self._cache

    @property
    def coordinator(self) -> SelectionCoordinator:
        return self._coordinator

    @property
    def view(self) -> ResultView:
        return self._view

    @property
    def scope(self) -> ScanScope:
        return self._scope

    def set_scope(self, scope: ScanScope) -> None:
        self._scope = scope

    def set_time_range(self, selector: TimeRangeSelector) -> None:
        self._view.set_selector(selector)

    def set_category(self, category: Optional[FileKind]) -> None:
        self._view.set_category(category)

    async def start_scan(self) -> bool:
        """Scan the current scope with the currently selected time range."""
        return await self._session.start_scan(self._scope, self._view.selector)

    def cancel_scan(self) -> bool:
        return self._session.cancel_scan()

    async def wait_for_refresh(self) -> None:
        """Wait for a pending post-scan cache refresh, if any."""
        if self._refresh_task is not None:
            await self._refresh_task

    def status_of(self, path: str) -> IndexStatus:
        return derive_index_status(path, self._cache.snapshot, self._coordinator.in_flight)

    def results(self) -> ResultPage:
        """Current filtered, sorted and paginated view."""
        return self._view.evaluate(
            self._session.files,
            self.status_of,
            self._session.record,
            files_version=self._session.files_version,
            status_version=(self._cache.version, self._coordinator.version),
        )

    def load_more(self) -> bool:
        return self._view.load_more(self.results().total)

    @property
    def stale_range_warning(self) -> bool:
        """True when the selected range reaches beyond what the last scan covered."""
        if not self._session.files:
            return False
        return exceeds_scanned(self._view.selector, self._session.record)

    def category_counts(self) -> dict[str, int]:
        return category_counts(self._session.files)

    def category_sizes(self) -> dict[str, int]:
        return category_sizes(self._session.files)

    def folder_tree(self) -> list[FolderNode]:
        """Folder tree of the scanned files, limited to the selected category."""
        if self._view.category is None:
            return self._session.folder_tree()
        roots = self._session.scope.directory_paths() if self._session.scope else []
        return build_folder_tree(self._session.files, roots, self._view.category)

    def toggle_select_all(self) -> bool:
        return self._coordinator.toggle_select_all(f.path for f in self.results().filtered)

    async def index_selected(self, mode: IndexMode | str) -> IndexOutcome:
        return await self._coordinator.index_selected(mode)

    async def index_file(self, path: str, mode: IndexMode | str) -> IndexOutcome:
        return await self._coordinator.index_file(path, mode)

    async def refresh_indexed(self) -> bool:
        return await self._cache.refresh()

    async def close(self) -> None:
        self._unsubscribe()
        await self._session.close()
        if self._refresh_task is not None and not self._refresh_task.done():
            await self._refresh_task

    def _on_session_change(self, session: ScanSession) -> None:
        if session.status != ScanStatus.COMPLETED:
            return
        if session.generation == self._refreshed_generation:
            return
        self._refreshed_generation = session.generation
        logger.debug(
            "Refreshing indexed files after completed scan",
            extra={"generation": session.generation},
        )
        self._refresh_task = asyncio.get_running_loop().create_task(self._cache.refresh())
