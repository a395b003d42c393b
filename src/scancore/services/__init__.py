"""
Service Layer - ScanSession, IndexedFileCache, SelectionCoordinator, ScanWorkspace and ServicesContainer.
"""

from scancore.services.container import ServicesContainer, create_services
from scancore.services.indexed_cache import IndexedFileCache
from scancore.services.scan_session import (
    PROVIDER_UNAVAILABLE_MESSAGE,
    ScanSession,
    ScanSessionError,
    format_duration,
)
from scancore.services.selection import (
    IndexMode,
    IndexOutcome,
    SelectionCoordinator,
    group_by_parent,
)
from scancore.services.workspace import ScanWorkspace

__all__ = [
    # Container and factory
    "ServicesContainer",
    "create_services",
    # Scan session
    "ScanSession",
    "ScanSessionError",
    "PROVIDER_UNAVAILABLE_MESSAGE",
    "format_duration",
    # Indexing
    "IndexedFileCache",
    "IndexMode",
    "IndexOutcome",
    "SelectionCoordinator",
    "group_by_parent",
    # Facade
    "ScanWorkspace",
]
