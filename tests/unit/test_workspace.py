"""
Tests for the scan workspace wiring session, cache, selection and view.
"""

from datetime import datetime, timedelta, timezone

from scancore.core.config import ScanCoreConfig
from scancore.core.models import (
    FileKind,
    IndexedFile,
    IndexStatus,
    ScanDirectory,
    ScanScope,
    ScanStatus,
    local_now,
)
from scancore.core.time_window import TimeRangeSelector
from scancore.infrastructure.fakes import FakeScanProvider, InMemoryIndexBackend
from scancore.services import create_services
from tests.support.scan_test_utils import make_file, run_async

ROOT = "/home/u/Documents"
SCOPE = ScanScope(directories=[ScanDirectory(path=ROOT)])


def make_workspace(records=None):
    backend = InMemoryIndexBackend(records)
    container = create_services(config=ScanCoreConfig(), backend=backend)
    provider = FakeScanProvider()
    workspace = container.create_workspace(provider)
    workspace.set_scope(SCOPE)
    return backend, provider, workspace


def test_completed_scan_refreshes_index_statuses():
    recent = local_now() - timedelta(hours=1)
    known = make_file(f"{ROOT}/known.pdf", modified_at=recent)
    fresh = make_file(f"{ROOT}/fresh.pdf", modified_at=recent - timedelta(minutes=1))
    record = IndexedFile(id="1", path=known.path, metadata={"chunk_strategy": "text_fine"})

    async def scenario():
        backend, provider, workspace = make_workspace([record])
        assert await workspace.start_scan() is True
        provider.emit_complete([known, fresh])
        await workspace.session.drain()
        await workspace.wait_for_refresh()
        statuses = {f.name: workspace.status_of(f.path) for f in workspace.results().displayed}
        await workspace.close()
        return backend, statuses

    backend, statuses = run_async(scenario())

    assert statuses == {"known.pdf": IndexStatus.DEEP, "fresh.pdf": IndexStatus.NOT_INDEXED}
    assert len(backend.calls_to("list_indexed_files")) == 1


def test_scan_uses_selected_time_range():
    async def scenario():
        _, provider, workspace = make_workspace()
        workspace.set_time_range(TimeRangeSelector.fixed_year(2025))
        await workspace.start_scan()
        await workspace.close()
        return provider.requests[0]

    request = run_async(scenario())

    assert request.directories == [ROOT]
    assert request.days_back is None
    assert request.date_from is not None and request.date_from.startswith("2025-01-01")


def test_stale_range_warning_after_widening_selection():
    files = [
        make_file(f"{ROOT}/a.pdf", modified_at=datetime(2025, 5, 1, tzinfo=timezone.utc)),
        make_file(f"{ROOT}/b.pdf", modified_at=datetime(2025, 8, 1, tzinfo=timezone.utc)),
    ]

    async def scenario():
        _, provider, workspace = make_workspace()
        workspace.set_time_range(TimeRangeSelector.fixed_year(2025))
        await workspace.start_scan()
        provider.emit_complete(files)
        await workspace.session.drain()
        await workspace.wait_for_refresh()

        before = workspace.stale_range_warning
        workspace.set_time_range(TimeRangeSelector.all_time())
        after = workspace.stale_range_warning
        page = workspace.results()
        await workspace.close()
        return before, after, page

    before, after, page = run_async(scenario())

    assert before is False
    assert after is True
    assert page.exceeds_scanned_range is True
    assert page.total == 2


def test_toggle_select_all_covers_every_filtered_file():
    recent = local_now() - timedelta(hours=2)
    files = [make_file(f"{ROOT}/f{i:03d}.pdf", modified_at=recent) for i in range(150)]
    files.append(make_file(f"{ROOT}/pic.jpg", kind=FileKind.IMAGE, modified_at=recent))

    async def scenario():
        _, provider, workspace = make_workspace()
        await workspace.start_scan()
        provider.emit_complete(files)
        await workspace.session.drain()
        await workspace.wait_for_refresh()

        workspace.set_category(FileKind.DOCUMENT)
        shown = len(workspace.results().displayed)
        selected_all = workspace.toggle_select_all()
        selected = workspace.coordinator.selected
        counts = workspace.category_counts()
        await workspace.close()
        return shown, selected_all, selected, counts

    shown, selected_all, selected, counts = run_async(scenario())

    assert shown == 100
    assert selected_all is True
    assert len(selected) == 150
    assert f"{ROOT}/pic.jpg" not in selected
    assert counts["all"] == 151 and counts["image"] == 1


def test_index_selected_marks_files_indexed():
    recent = local_now() - timedelta(hours=1)
    doc = make_file(f"{ROOT}/a.pdf", modified_at=recent)

    async def scenario():
        backend, provider, workspace = make_workspace()
        await workspace.start_scan()
        provider.emit_complete([doc])
        await workspace.session.drain()
        await workspace.wait_for_refresh()

        workspace.coordinator.select([doc.path])
        outcome = await workspace.index_selected("fast")
        status = workspace.status_of(doc.path)
        await workspace.close()
        return backend, outcome, status

    backend, outcome, status = run_async(scenario())

    assert outcome.success is True
    assert status == IndexStatus.FAST
    assert backend.folders[ROOT]["scan_mode"] == "manual"


def test_cancelled_scan_does_not_refresh_cache():
    async def scenario():
        backend, provider, workspace = make_workspace()
        await workspace.start_scan()
        workspace.cancel_scan()
        await workspace.wait_for_refresh()
        status = workspace.session.status
        await workspace.close()
        return backend, status

    backend, status = run_async(scenario())

    assert status == ScanStatus.CANCELLED
    assert backend.calls_to("list_indexed_files") == []
