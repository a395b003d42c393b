import asyncio
import json

import httpx
import pytest

from scancore.infrastructure.index_backend import (
    BackendResponseError,
    BackendUnavailableError,
    HttpIndexBackend,
)
from scancore.services.indexed_cache import IndexedFileCache
from scancore.services.selection import SelectionCoordinator


class Recorder:
    """Mock transport handler that records requests and replies from a table."""

    def __init__(self, replies=None):
        self.requests: list[httpx.Request] = []
        self.replies = replies or {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.replies.get((request.method, request.url.path))
        if callable(reply):
            return reply(request)
        if reply is None:
            return httpx.Response(200, json={})
        return reply

    def body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


def html_page(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text="<html>proxy ok</html>")


def make_backend(recorder: Recorder, api_key: str = "secret") -> HttpIndexBackend:
    return HttpIndexBackend(
        "http://backend.test/",
        api_key=api_key,
        transport=httpx.MockTransport(recorder),
    )


def run(backend: HttpIndexBackend, coro):
    async def scenario():
        try:
            return await coro
        finally:
            await backend.close()

    return asyncio.run(scenario())


def test_list_indexed_files_sends_paging_params_and_auth_headers() -> None:
    recorder = Recorder(
        {
            ("GET", "/files"): httpx.Response(
                200,
                json={
                    "files": [
                        {
                            "id": "1",
                            "path": "a.pdf",
                            "fullPath": "/d/a.pdf",
                            "metadata": {"chunk_strategy": "text_fine"},
                        }
                    ],
                    "total": 42,
                },
            )
        }
    )
    backend = make_backend(recorder)

    page = run(backend, backend.list_indexed_files(limit=500, offset=1000))

    request = recorder.requests[0]
    assert request.url.params["limit"] == "500"
    assert request.url.params["offset"] == "1000"
    assert request.headers["X-API-Key"] == "secret"
    assert request.headers["X-Request-Source"] == "local_ui"
    assert page.total == 42
    assert page.files[0].key == "/d/a.pdf"
    assert page.files[0].metadata["chunk_strategy"] == "text_fine"


def test_missing_total_defaults_to_page_length() -> None:
    recorder = Recorder(
        {("GET", "/files"): httpx.Response(200, json={"files": [{"id": "1", "path": "/a"}]})}
    )
    backend = make_backend(recorder)

    page = run(backend, backend.list_indexed_files(limit=10, offset=0))

    assert page.total == 1


def test_no_api_key_sends_no_auth_headers() -> None:
    recorder = Recorder()
    backend = make_backend(recorder, api_key="")

    run(backend, backend.register_directory("/d"))

    assert "X-API-Key" not in recorder.requests[0].headers
    assert "X-Request-Source" not in recorder.requests[0].headers


def test_register_directory_body() -> None:
    recorder = Recorder()
    backend = make_backend(recorder)

    run(backend, backend.register_directory("/home/u/Documents", scan_mode="manual"))

    assert recorder.requests[0].url.path == "/folders"
    assert recorder.body() == {"path": "/home/u/Documents", "label": None, "scan_mode": "manual"}


def test_staged_index_omits_mode_when_unset() -> None:
    recorder = Recorder()
    backend = make_backend(recorder)

    async def scenario():
        await backend.run_staged_index(["/d"], ["/d/a.pdf"])
        await backend.run_staged_index(["/d"], ["/d/a.pdf"], mode="reindex")

    run(backend, scenario())

    assert recorder.body(0) == {"folders": ["/d"], "files": ["/d/a.pdf"]}
    assert recorder.body(1)["mode"] == "reindex"


def test_run_index_body_with_and_without_indexing_mode() -> None:
    recorder = Recorder()
    backend = make_backend(recorder)

    async def scenario():
        await backend.run_index("rescan", "folder", ["/d"], ["/d/a.pdf"], indexing_mode="deep")
        await backend.run_index("reindex", "folder", ["/d"], ["/d/a.pdf"])

    run(backend, scenario())

    assert recorder.requests[0].url.path == "/index/run"
    assert recorder.body(0) == {
        "mode": "rescan",
        "scope": "folder",
        "folders": ["/d"],
        "files": ["/d/a.pdf"],
        "indexing_mode": "deep",
    }
    assert "indexing_mode" not in recorder.body(1)


def test_error_status_raises_response_error() -> None:
    recorder = Recorder({("POST", "/index/run-staged"): httpx.Response(500, text="boom")})
    backend = make_backend(recorder)

    with pytest.raises(BackendResponseError) as exc_info:
        run(backend, backend.run_staged_index(["/d"], ["/d/a.pdf"]))

    assert exc_info.value.status_code == 500
    assert exc_info.value.response_text == "boom"
    assert "500" in str(exc_info.value)


def test_connection_failure_raises_unavailable() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    recorder = Recorder({("GET", "/files"): refuse})
    backend = make_backend(recorder)

    with pytest.raises(BackendUnavailableError):
        run(backend, backend.list_indexed_files(limit=10, offset=0))


def test_empty_body_decodes_to_empty_dict() -> None:
    recorder = Recorder({("POST", "/folders"): httpx.Response(204)})
    backend = make_backend(recorder)

    assert run(backend, backend.register_directory("/d")) == {}


def test_non_json_success_body_raises_response_error() -> None:
    recorder = Recorder({("POST", "/index/run-staged"): html_page})
    backend = make_backend(recorder)

    with pytest.raises(BackendResponseError) as exc_info:
        run(backend, backend.run_staged_index(["/d"], ["/d/a.pdf"]))

    assert exc_info.value.status_code == 200
    assert "proxy ok" in exc_info.value.response_text


@pytest.mark.parametrize(
    "body",
    [
        {"files": [42], "total": 1},
        {"files": [{"id": "1"}], "total": 1},
        {"files": {"path": "/d/a.pdf"}},
        {"files": [], "total": "many"},
        [{"path": "/d/a.pdf"}],
    ],
)
def test_malformed_listing_raises_response_error(body) -> None:
    recorder = Recorder({("GET", "/files"): httpx.Response(200, json=body)})
    backend = make_backend(recorder)

    with pytest.raises(BackendResponseError):
        run(backend, backend.list_indexed_files(limit=10, offset=0))


def test_cache_refresh_recovers_from_non_json_body() -> None:
    recorder = Recorder({("GET", "/files"): html_page})
    backend = make_backend(recorder)
    cache = IndexedFileCache(backend)

    assert run(backend, cache.refresh()) is False
    assert cache.version == 0
    assert "non-JSON" in cache.last_error


def test_indexing_recovers_from_non_json_body() -> None:
    recorder = Recorder(
        {("POST", "/index/run-staged"): html_page, ("GET", "/files"): html_page}
    )
    backend = make_backend(recorder)
    cache = IndexedFileCache(backend)
    coordinator = SelectionCoordinator(backend, cache)

    outcome = run(backend, coordinator.index_files(["/d/a.txt"], "fast"))

    assert outcome.success is False
    assert "non-JSON" in outcome.error
    assert coordinator.in_flight == frozenset()
    assert cache.last_error is not None
