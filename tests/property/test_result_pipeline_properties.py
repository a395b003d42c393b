"""
Property-based tests for the result pipeline and ingestion filtering.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from scancore.core.ingestion_buffer import IngestionBuffer
from scancore.core.models import BROWSABLE_KINDS, FileKind, IndexStatus, ScannedFile
from scancore.core.result_pipeline import (
    ResultView,
    SortField,
    SortOrder,
    filter_by_category,
    sort_files,
)
from scancore.core.time_window import TimeRangeSelector
from tests.support.scan_test_utils import NOW, FakeClock, unique_files_strategy


def not_indexed(path: str) -> IndexStatus:
    return IndexStatus.NOT_INDEXED


@given(files=unique_files_strategy(), category=st.sampled_from(BROWSABLE_KINDS))
@settings(max_examples=100)
def test_category_filter_is_idempotent(files: list[ScannedFile], category: FileKind):
    """
    **Property: category filtering is idempotent**

    Filtering by a category twice yields the same files as filtering once.
    """
    once = filter_by_category(files, category)
    assert filter_by_category(once, category) == once
    assert all(f.kind == category for f in once)


@given(
    files=unique_files_strategy(max_size=120),
    page_size=st.integers(min_value=1, max_value=40),
    loads=st.integers(min_value=0, max_value=6),
)
@settings(max_examples=100)
def test_displayed_files_are_a_prefix_of_filtered(
    files: list[ScannedFile], page_size: int, loads: int
):
    """
    **Property: pagination exposes a prefix**

    The displayed files are always the first min(display_limit, total)
    filtered files, and load_more grows the limit by exactly one page unless
    everything is already shown.
    """
    view = ResultView(TimeRangeSelector.all_time(), page_size=page_size, clock=lambda: NOW)
    page = view.evaluate(files, not_indexed)

    for _ in range(loads):
        before = view.display_limit
        grew = view.load_more()
        if before < page.total:
            assert grew is True
            assert view.display_limit == before + page_size
        else:
            assert grew is False
            assert view.display_limit == before
        page = view.evaluate(files, not_indexed)

    expected_len = min(view.display_limit, len(page.filtered))
    assert len(page.displayed) == expected_len
    assert page.displayed == page.filtered[:expected_len]


@given(files=unique_files_strategy(), field=st.sampled_from(list(SortField)))
@settings(max_examples=100)
def test_sort_directions_are_reverses_for_distinct_keys(
    files: list[ScannedFile], field: SortField
):
    """
    **Property: sort order**

    Ascending and descending sorts order the sort keys in opposite directions.
    """
    ascending = sort_files(files, field, SortOrder.ASC)
    descending = sort_files(files, field, SortOrder.DESC)
    assert sorted(ascending, key=lambda f: f.path) == sorted(files, key=lambda f: f.path)
    if field == SortField.SIZE:
        sizes = [f.size for f in ascending]
        assert sizes == sorted(sizes)
        assert [f.size for f in descending] == sorted(sizes, reverse=True)
    elif field == SortField.MODIFIED_AT:
        times = [f.modified_at for f in ascending]
        assert times == sorted(times)
        assert [f.modified_at for f in descending] == sorted(times, reverse=True)


@given(
    batches=st.lists(unique_files_strategy(max_size=20), min_size=1, max_size=8),
    gaps=st.lists(st.floats(min_value=0.0, max_value=1.0), min_size=8, max_size=8),
)
@settings(max_examples=100)
def test_ingestion_never_admits_code_and_keeps_order(
    batches: list[list[ScannedFile]], gaps: list[float]
):
    """
    **Property: ingestion drops only code files**

    Whatever the provider emits and however batches are spaced in time, the
    flushed stream never contains a code file and equals the non-code input
    in order.
    """
    clock = FakeClock()
    buffer = IngestionBuffer(flush_interval_ms=500, clock=clock)
    delivered: list[ScannedFile] = []

    for batch, gap in zip(batches, gaps):
        clock.advance(gap)
        delivered.extend(buffer.add(batch))
    delivered.extend(buffer.flush())

    expected = [f for batch in batches for f in batch if f.kind != FileKind.CODE]
    assert delivered == expected
    assert all(f.kind != FileKind.CODE for f in delivered)
