"""
Index backend module for scancore.

Provides the async HTTP client for the external indexing subsystem:
indexed-file listing, directory registration and indexing runs.
"""

from .client import HttpIndexBackend, create_index_backend
from .errors import (
    BackendResponseError,
    BackendUnavailableError,
    IndexBackendError,
)
from .interface import IndexBackendInterface

__all__ = [
    "IndexBackendInterface",
    "HttpIndexBackend",
    "create_index_backend",
    "IndexBackendError",
    "BackendUnavailableError",
    "BackendResponseError",
]
