"""HTTP index backend client."""

import logging
from typing import Any, Optional

import httpx

from scancore.core.models import IndexedFile, IndexedFilePage

from .errors import BackendResponseError, BackendUnavailableError
from .interface import IndexBackendInterface

logger = logging.getLogger(__name__)


class HttpIndexBackend(IndexBackendInterface):
    """
    Index backend reached over its local HTTP API.

    Uses connection pooling so the paginated cache refresh and the bursts of
    directory registrations reuse connections.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        request_source: str = "local_ui",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the backend client.

        Args:
            base_url: Base URL of the backend API
            api_key: API key; auth headers are only sent when set
            timeout: Request timeout in seconds
            request_source: Value of the X-Request-Source header
            transport: Optional transport override (tests use httpx.MockTransport)
        """
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._request_source = request_source
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client with connection pooling."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release connections."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["X-API-Key"] = self._api_key
            headers["X-Request-Source"] = self._request_source
        else:
            logger.debug("No API key configured, sending unauthenticated request")
        return headers

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        Send a request and decode the JSON body.

        Raises:
            BackendUnavailableError: If the backend cannot be reached
            BackendResponseError: If the backend returns a non-2xx status or a non-JSON body
        """
        client = await self._get_client()
        try:
            response = await client.request(
                method, endpoint, params=params, json=json, headers=self._headers()
            )
        except httpx.TimeoutException as e:
            raise BackendUnavailableError(f"Request timeout: {e}") from e
        except httpx.ConnectError as e:
            raise BackendUnavailableError(f"Connection error: {e}") from e
        except httpx.RequestError as e:
            raise BackendUnavailableError(f"Request error: {e}") from e

        if not response.is_success:
            text = response.text
            raise BackendResponseError(
                f"Backend responded with {response.status_code}" + (f": {text}" if text else ""),
                status_code=response.status_code,
                response_text=text,
            )

        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise BackendResponseError(
                f"Backend returned a non-JSON body: {e}",
                status_code=response.status_code,
                response_text=response.text,
            ) from e

    async def list_indexed_files(self, limit: int, offset: int) -> IndexedFilePage:
        data = await self._request("GET", "/files", params={"limit": limit, "offset": offset})
        try:
            return _parse_file_page(data)
        except (KeyError, TypeError, ValueError) as e:
            raise BackendResponseError(
                f"Malformed indexed file listing: {e}", status_code=200
            ) from e

    async def register_directory(
        self, path: str, label: Optional[str] = None, scan_mode: str = "full"
    ) -> dict[str, Any]:
        payload = {"path": path, "label": label, "scan_mode": scan_mode or "full"}
        return await self._request("POST", "/folders", json=payload)

    async def run_staged_index(
        self, folders: list[str], files: list[str], mode: Optional[str] = None
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"folders": folders, "files": files}
        if mode:
            payload["mode"] = mode
        return await self._request("POST", "/index/run-staged", json=payload)

    async def run_index(
        self,
        mode: str,
        scope: str,
        folders: list[str],
        files: list[str],
        indexing_mode: Optional[str] = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "mode": mode,
            "scope": scope,
            "folders": folders,
            "files": files,
        }
        # Omitted so the backend falls back to its configured default
        if indexing_mode:
            payload["indexing_mode"] = indexing_mode
        return await self._request("POST", "/index/run", json=payload)


def create_index_backend(
    base_url: str,
    api_key: str = "",
    timeout: float = 30.0,
    request_source: str = "local_ui",
) -> IndexBackendInterface:
    """
    Factory function to create an index backend client.

    Args:
        base_url: Base URL of the backend API
        api_key: API key for authentication
        timeout: Request timeout in seconds
        request_source: Value of the X-Request-Source header

    Returns:
        Configured IndexBackendInterface instance
    """
    return HttpIndexBackend(
        base_url=base_url,
        api_key=api_key,
        timeout=timeout,
        request_source=request_source,
    )


def _parse_file_page(data: Any) -> IndexedFilePage:
    """
    Decode a ``GET /files`` body.

    Raises:
        KeyError: If a record has no path
        TypeError: If the body or a record has the wrong shape
        ValueError: If the total is not a number
    """
    if not isinstance(data, dict):
        raise TypeError(f"expected an object, got {type(data).__name__}")
    raw_files = data.get("files") or []
    if not isinstance(raw_files, list):
        raise TypeError(f"'files' must be a list, got {type(raw_files).__name__}")

    files = []
    for raw in raw_files:
        if not isinstance(raw, dict):
            raise TypeError(f"file record must be an object, got {type(raw).__name__}")
        if not raw.get("path"):
            raise KeyError("path")
        files.append(IndexedFile.from_dict(raw))

    total = data.get("total")
    return IndexedFilePage(files=files, total=int(total if total is not None else len(files)))
