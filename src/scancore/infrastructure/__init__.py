"""
Infrastructure Layer - Scan provider boundary and index backend client.
"""

from scancore.infrastructure.fakes import (
    FakeScanProvider,
    InMemoryIndexBackend,
)
from scancore.infrastructure.index_backend import (
    BackendResponseError,
    BackendUnavailableError,
    HttpIndexBackend,
    IndexBackendError,
    IndexBackendInterface,
    create_index_backend,
)
from scancore.infrastructure.scan_provider import (
    CancelHandle,
    ScanCallbacks,
    ScanProviderInterface,
    ScanRequest,
)

__all__ = [
    # Scan provider
    "CancelHandle",
    "ScanCallbacks",
    "ScanProviderInterface",
    "ScanRequest",
    # Index backend
    "IndexBackendInterface",
    "HttpIndexBackend",
    "create_index_backend",
    "IndexBackendError",
    "BackendUnavailableError",
    "BackendResponseError",
    # Fakes
    "FakeScanProvider",
    "InMemoryIndexBackend",
]
