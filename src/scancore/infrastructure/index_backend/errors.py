"""Exception types for the index backend client."""

from typing import Optional


class IndexBackendError(Exception):
    """Base exception for index backend errors."""

    pass


class BackendUnavailableError(IndexBackendError):
    """The backend could not be reached (connection refused, timeout)."""

    pass


class BackendResponseError(IndexBackendError):
    """The backend answered with a non-success status code."""

    def __init__(self, message: str, status_code: int, response_text: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text
