"""
Result pipeline over accumulated scan results.

Filters, sorts and paginates scanned files. Every stage is a plain function;
ResultView holds the user-facing filter state and memoizes the last result so
repeated reads between dependency changes cost nothing.
"""

import locale
import logging
from collections.abc import Callable, Hashable, Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from scancore.core.ingestion_buffer import drop_excluded
from scancore.core.models import (
    BROWSABLE_KINDS,
    EXCLUDED_KINDS,
    FileKind,
    IndexStatus,
    ScannedFile,
    local_now,
)
from scancore.core.time_window import (
    ScanRecord,
    TimeRangeSelector,
    exceeds_scanned,
    resolve_window,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100

ALL_CATEGORY = "all"

StatusLookup = Callable[[str], IndexStatus]


class StatusFilter(Enum):
    ALL = "all"
    NOT_INDEXED = "not_indexed"
    INDEXED = "indexed"


_STATUS_GROUPS: dict[StatusFilter, frozenset[IndexStatus]] = {
    StatusFilter.NOT_INDEXED: frozenset([IndexStatus.NOT_INDEXED, IndexStatus.ERROR]),
    StatusFilter.INDEXED: frozenset([IndexStatus.FAST, IndexStatus.DEEP, IndexStatus.PENDING]),
}


class SortField(Enum):
    MODIFIED_AT = "modified_at"
    SIZE = "size"
    NAME = "name"


class SortOrder(Enum):
    ASC = "asc"
    DESC = "desc"


def filter_by_category(
    files: Iterable[ScannedFile], category: Optional[FileKind]
) -> list[ScannedFile]:
    """Keep files of ``category``; None passes everything through."""
    if category is None:
        return list(files)
    return [f for f in files if f.kind == category]


def filter_by_status(
    files: Iterable[ScannedFile], status_filter: StatusFilter, status_of: StatusLookup
) -> list[ScannedFile]:
    if status_filter == StatusFilter.ALL:
        return list(files)
    allowed = _STATUS_GROUPS[status_filter]
    return [f for f in files if status_of(f.path) in allowed]


def filter_by_query(files: Iterable[ScannedFile], query: str) -> list[ScannedFile]:
    """Case-insensitive substring match on name or full path."""
    needle = query.strip().lower()
    if not needle:
        return list(files)
    return [f for f in files if needle in f.name.lower() or needle in f.path.lower()]


def filter_by_time_range(
    files: Iterable[ScannedFile],
    selected: TimeRangeSelector,
    scanned: Optional[ScanRecord],
    now: Optional[datetime] = None,
) -> list[ScannedFile]:
    """
    Apply the selected window to ``modified_at``.

    Skipped entirely when the selection exceeds the scanned range, since the
    accumulated files cannot represent the wider window. A custom range
    without a start date applies no date filter. Relative windows end at
    ``now``, so a file modified in the future is outside them.
    """
    now = now or local_now()
    if exceeds_scanned(selected, scanned, now):
        return list(files)
    if not selected.is_resolved:
        return list(files)

    window = resolve_window(selected, now)
    if window.start is None and window.end is None:
        return list(files)
    return [f for f in files if window.contains(f.modified_at)]


def _name_key(f: ScannedFile) -> str:
    return locale.strxfrm(f.name.casefold())


_SORT_KEYS: dict[SortField, Callable[[ScannedFile], object]] = {
    SortField.MODIFIED_AT: lambda f: f.modified_at,
    SortField.SIZE: lambda f: f.size,
    SortField.NAME: _name_key,
}


def sort_files(
    files: Iterable[ScannedFile], sort_field: SortField, sort_order: SortOrder
) -> list[ScannedFile]:
    """Sort by a single field; ties keep their incoming order."""
    return sorted(
        files,
        key=_SORT_KEYS[sort_field],
        reverse=sort_order == SortOrder.DESC,
    )


def paginate(files: Sequence[ScannedFile], limit: int) -> list[ScannedFile]:
    return list(files[: max(0, limit)])


@dataclass(frozen=True)
class PipelineOptions:
    """All filter and sort inputs of the pipeline."""

    selector: TimeRangeSelector
    category: Optional[FileKind] = None
    status_filter: StatusFilter = StatusFilter.ALL
    query: str = ""
    sort_field: SortField = SortField.MODIFIED_AT
    sort_order: SortOrder = SortOrder.DESC


def run_pipeline(
    files: Iterable[ScannedFile],
    options: PipelineOptions,
    status_of: StatusLookup,
    scanned: Optional[ScanRecord] = None,
    now: Optional[datetime] = None,
) -> list[ScannedFile]:
    """Run every filter stage in order, then sort."""
    result = drop_excluded(files)
    result = filter_by_category(result, options.category)
    result = filter_by_status(result, options.status_filter, status_of)
    result = filter_by_query(result, options.query)
    result = filter_by_time_range(result, options.selector, scanned, now)
    return sort_files(result, options.sort_field, options.sort_order)


def category_counts(files: Iterable[ScannedFile]) -> dict[str, int]:
    """Count files per browsable kind plus an "all" total."""
    counts = {ALL_CATEGORY: 0, **{kind.value: 0 for kind in BROWSABLE_KINDS}}
    for f in files:
        if f.kind in EXCLUDED_KINDS:
            continue
        counts[ALL_CATEGORY] += 1
        counts[f.kind.value] += 1
    return counts


def category_sizes(files: Iterable[ScannedFile]) -> dict[str, int]:
    """Sum file sizes per browsable kind plus an "all" total."""
    sizes = {ALL_CATEGORY: 0, **{kind.value: 0 for kind in BROWSABLE_KINDS}}
    for f in files:
        if f.kind in EXCLUDED_KINDS:
            continue
        sizes[ALL_CATEGORY] += f.size
        sizes[f.kind.value] += f.size
    return sizes


@dataclass
class ResultPage:
    """Output of one pipeline evaluation."""

    filtered: list[ScannedFile] = field(default_factory=list)
    displayed: list[ScannedFile] = field(default_factory=list)
    display_limit: int = DEFAULT_PAGE_SIZE
    exceeds_scanned_range: bool = False

    @property
    def total(self) -> int:
        return len(self.filtered)

    @property
    def has_more(self) -> bool:
        return len(self.filtered) > self.display_limit


class ResultView:
    """
    Filter, sort and pagination state over the accumulated scan results.

    Changing the category resets the display limit to one page; other filter
    changes keep it.
    """

    def __init__(
        self,
        selector: TimeRangeSelector,
        page_size: int = DEFAULT_PAGE_SIZE,
        sort_field: SortField = SortField.MODIFIED_AT,
        sort_order: SortOrder = SortOrder.DESC,
        clock: Callable[[], datetime] = local_now,
    ):
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self._page_size = page_size
        self._clock = clock
        self._options = PipelineOptions(
            selector=selector, sort_field=sort_field, sort_order=sort_order
        )
        self._display_limit = page_size
        self._memo_key: Optional[tuple] = None
        self._memo_filtered: list[ScannedFile] = []
        self._memo_exceeds = False

    @property
    def options(self) -> PipelineOptions:
        return self._options

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def display_limit(self) -> int:
        return self._display_limit

    @property
    def category(self) -> Optional[FileKind]:
        return self._options.category

    @property
    def selector(self) -> TimeRangeSelector:
        return self._options.selector

    def _update(self, **changes) -> None:
        self._options = replace(self._options, **changes)

    def set_category(self, category: Optional[FileKind]) -> None:
        if category in EXCLUDED_KINDS:
            raise ValueError(f"{category.value} files are not browsable")
        if category != self._options.category:
            self._update(category=category)
            self._display_limit = self._page_size

    def set_status_filter(self, status_filter: StatusFilter) -> None:
        self._update(status_filter=status_filter)

    def set_query(self, query: str) -> None:
        self._update(query=query)

    def set_selector(self, selector: TimeRangeSelector) -> None:
        self._update(selector=selector)

    def set_sort(self, sort_field: SortField, sort_order: Optional[SortOrder] = None) -> None:
        self._update(sort_field=sort_field, sort_order=sort_order or self._options.sort_order)

    def toggle_sort_order(self) -> None:
        flipped = SortOrder.ASC if self._options.sort_order == SortOrder.DESC else SortOrder.DESC
        self._update(sort_order=flipped)

    def load_more(self, total: Optional[int] = None) -> bool:
        """
        Reveal one more page.

        Args:
            total: Size of the filtered set; defaults to the last evaluation

        Returns:
            True if the display limit grew
        """
        available = len(self._memo_filtered) if total is None else total
        if available <= self._display_limit:
            return False
        self._display_limit += self._page_size
        return True

    def evaluate(
        self,
        files: Sequence[ScannedFile],
        status_of: StatusLookup,
        scanned: Optional[ScanRecord] = None,
        files_version: int = 0,
        status_version: Hashable = 0,
    ) -> ResultPage:
        """
        Evaluate the pipeline, reusing the previous result when no input changed.

        Args:
            files: Accumulated scan results
            status_of: Index status lookup by path
            scanned: Record of the last finished scan
            files_version: Changes whenever ``files`` changes
            status_version: Changes whenever index statuses may have changed
        """
        key = (id(files), len(files), files_version, status_version, id(scanned), self._options)
        if key != self._memo_key:
            now = self._clock()
            self._memo_filtered = run_pipeline(files, self._options, status_of, scanned, now)
            self._memo_exceeds = exceeds_scanned(self._options.selector, scanned, now)
            self._memo_key = key
            logger.debug(
                "Recomputed result view",
                extra={
                    "input_count": len(files),
                    "filtered_count": len(self._memo_filtered),
                    "exceeds_scanned_range": self._memo_exceeds,
                },
            )

        return ResultPage(
            filtered=self._memo_filtered,
            displayed=paginate(self._memo_filtered, self._display_limit),
            display_limit=self._display_limit,
            exceeds_scanned_range=self._memo_exceeds,
        )
