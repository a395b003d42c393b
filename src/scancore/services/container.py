"""
Centralized services container module for scancore.

Builds the shared service instances from configuration so the CLI and any
embedding host wire things up the same way.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from scancore.core.config import ScanCoreConfig, load_config
from scancore.core.result_pipeline import ResultView, SortField, SortOrder
from scancore.core.time_window import TimeRangeSelector
from scancore.infrastructure import (
    IndexBackendInterface,
    ScanProviderInterface,
    create_index_backend,
)
from scancore.services.indexed_cache import IndexedFileCache
from scancore.services.scan_session import ScanSession
from scancore.services.selection import SelectionCoordinator
from scancore.services.workspace import ScanWorkspace


@dataclass
class ServicesContainer:
    """
    Container holding all shared service instances.

    Attributes:
        config: Application configuration
        backend: Client for the external index backend
        cache: Snapshot of indexed files
        coordinator: Selection and batch indexing
    """

    config: ScanCoreConfig
    backend: IndexBackendInterface
    cache: IndexedFileCache
    coordinator: SelectionCoordinator

    def create_view(self) -> ResultView:
        """Result view configured from the view section."""
        return ResultView(
            selector=TimeRangeSelector.parse(self.config.scan.default_time_range),
            page_size=self.config.view.page_size,
            sort_field=SortField(self.config.view.sort_field),
            sort_order=SortOrder(self.config.view.sort_order),
        )

    def create_workspace(self, provider: Optional[ScanProviderInterface]) -> ScanWorkspace:
        """
        Build a workspace around a scan provider.

        Args:
            provider: Scan provider of the host, or None if it offers none
        """
        session = ScanSession(
            provider,
            flush_interval_ms=self.config.scan.flush_interval_ms,
            elapsed_tick_seconds=self.config.scan.elapsed_tick_seconds,
        )
        return ScanWorkspace(
            session=session,
            cache=self.cache,
            coordinator=self.coordinator,
            view=self.create_view(),
            scope=self.config.scope,
        )

    async def close(self) -> None:
        await self.backend.close()


def create_services(
    config: Optional[ScanCoreConfig] = None,
    config_path: Optional[Path] = None,
    backend: Optional[IndexBackendInterface] = None,
) -> ServicesContainer:
    """
    Create and initialize all services.

    Args:
        config: Ready configuration; loaded from ``config_path`` and the
                environment when None.
        config_path: Optional path to configuration file.
        backend: Backend override, e.g. an in-memory fake.

    Returns:
        ServicesContainer with all initialized services.
    """
    if config is None:
        config = load_config(config_path)

    if backend is None:
        backend = create_index_backend(
            base_url=config.backend.base_url,
            api_key=config.backend.api_key,
            timeout=config.backend.timeout,
            request_source=config.backend.request_source,
        )

    cache = IndexedFileCache(backend, page_size=config.index.list_page_size)
    coordinator = SelectionCoordinator(backend, cache)

    return ServicesContainer(
        config=config,
        backend=backend,
        cache=cache,
        coordinator=coordinator,
    )
