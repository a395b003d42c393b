"""
Indexed-file cache.

Read-only snapshot of every record the index backend knows about, keyed by
absolute path. The snapshot is rebuilt wholesale by a full paginated re-fetch
and never patched in place.
"""

import asyncio
import logging
import time
from collections.abc import Mapping
from types import MappingProxyType
from typing import Optional

from scancore.core.models import IndexedFile
from scancore.infrastructure.index_backend import IndexBackendError, IndexBackendInterface

logger = logging.getLogger(__name__)

DEFAULT_LIST_PAGE_SIZE = 500


class IndexedFileCache:
    """
    Snapshot of the backend's indexed files.

    Refreshes are serialized by a lock so two refreshes never interleave their
    pages. A failed refresh keeps the previous snapshot.

    Attributes:
        version: Incremented on every successful rebuild
    """

    def __init__(
        self,
        backend: IndexBackendInterface,
        page_size: int = DEFAULT_LIST_PAGE_SIZE,
    ):
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self._backend = backend
        self._page_size = page_size
        self._records: dict[str, IndexedFile] = {}
        self._version = 0
        self._last_error: Optional[str] = None
        self._lock = asyncio.Lock()

    @property
    def snapshot(self) -> Mapping[str, IndexedFile]:
        return MappingProxyType(self._records)

    @property
    def version(self) -> int:
        return self._version

    @property
    def last_error(self) -> Optional[str]:
        """Message of the most recent failed refresh, cleared on success."""
        return self._last_error

    def get(self, path: str) -> Optional[IndexedFile]:
        return self._records.get(path)

    def __len__(self) -> int:
        return len(self._records)

    async def refresh(self) -> bool:
        """
        Re-fetch every page and replace the snapshot.

        Returns:
            True if the snapshot was rebuilt, False if the fetch failed
        """
        async with self._lock:
            start_time = time.time()
            try:
                records = await self._fetch_all()
            except IndexBackendError as e:
                self._last_error = str(e)
                logger.warning(
                    f"Indexed file refresh failed, keeping previous snapshot: {e}",
                    extra={"cached_records": len(self._records)},
                )
                return False

            self._records = {record.key: record for record in records}
            self._version += 1
            self._last_error = None
            logger.debug(
                "Indexed file cache refreshed",
                extra={
                    "records": len(self._records),
                    "version": self._version,
                    "duration_ms": (time.time() - start_time) * 1000,
                },
            )
            return True

    async def _fetch_all(self) -> list[IndexedFile]:
        """Page through the listing until a short page or the reported total."""
        records: list[IndexedFile] = []
        offset = 0
        while True:
            page = await self._backend.list_indexed_files(limit=self._page_size, offset=offset)
            records.extend(page.files)
            offset += len(page.files)
            if len(page.files) < self._page_size or offset >= page.total:
                return records
