"""Abstract interface for index backends."""

from abc import ABC, abstractmethod
from typing import Any, Optional

from scancore.core.models import IndexedFilePage


class IndexBackendInterface(ABC):
    """Abstract interface for the external indexing subsystem."""

    @abstractmethod
    async def list_indexed_files(self, limit: int, offset: int) -> IndexedFilePage:
        """
        Fetch one page of indexed-file records.

        Args:
            limit: Maximum records to return
            offset: Number of records to skip

        Returns:
            The page and the total number of records
        """
        pass

    @abstractmethod
    async def register_directory(
        self, path: str, label: Optional[str] = None, scan_mode: str = "full"
    ) -> dict[str, Any]:
        """
        Register a directory with the backend.

        Registering an already known directory is not an error. A ``manual``
        scan mode keeps the directory out of automatic rescans.
        """
        pass

    @abstractmethod
    async def run_staged_index(
        self, folders: list[str], files: list[str], mode: Optional[str] = None
    ) -> dict[str, Any]:
        """Run the lightweight staged indexing pipeline over ``files``."""
        pass

    @abstractmethod
    async def run_index(
        self,
        mode: str,
        scope: str,
        folders: list[str],
        files: list[str],
        indexing_mode: Optional[str] = None,
    ) -> dict[str, Any]:
        """Run the full indexing pipeline over ``files``."""
        pass

    async def close(self) -> None:
        """Release any held resources."""
        return None
