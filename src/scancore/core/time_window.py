"""
Time window resolution and scanned-range comparison.

Translates symbolic time-range selectors into concrete intervals and decides
whether a newly selected range can be served from the data of the last scan
or needs a rescan.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Optional, Union

from scancore.core.models import ScannedFile, local_now

DAY = timedelta(days=1)

# Inclusive end of a calendar day, matching the resolution used for year bounds
_END_OF_DAY = time(23, 59, 59)


class InvalidTimeRangeError(ValueError):
    """Raised when a time range selector cannot be parsed or is inconsistent."""

    pass


class TimeRange(Enum):
    """Fixed set of time range options."""

    LAST_24H = "24h"
    LAST_WEEK = "1w"
    LAST_MONTH = "1m"
    LAST_3_MONTHS = "3m"
    LAST_6_MONTHS = "6m"
    FIXED_YEAR = "year"
    ALL_TIME = "all"
    CUSTOM = "custom"


RELATIVE_DAYS: dict[TimeRange, int] = {
    TimeRange.LAST_24H: 1,
    TimeRange.LAST_WEEK: 7,
    TimeRange.LAST_MONTH: 30,
    TimeRange.LAST_3_MONTHS: 90,
    TimeRange.LAST_6_MONTHS: 180,
}

_LABELS: dict[TimeRange, str] = {
    TimeRange.LAST_24H: "Last 24h",
    TimeRange.LAST_WEEK: "Last Week",
    TimeRange.LAST_MONTH: "Last Month",
    TimeRange.LAST_3_MONTHS: "Last 3 Months",
    TimeRange.LAST_6_MONTHS: "Last 6 Months",
    TimeRange.ALL_TIME: "All Time",
    TimeRange.CUSTOM: "Custom",
}

_ALIASES: dict[str, TimeRange] = {
    "last-24h": TimeRange.LAST_24H,
    "last-week": TimeRange.LAST_WEEK,
    "last-month": TimeRange.LAST_MONTH,
    "last-3-months": TimeRange.LAST_3_MONTHS,
    "last-6-months": TimeRange.LAST_6_MONTHS,
    "all-time": TimeRange.ALL_TIME,
}

_YEAR_TOKEN = re.compile(r"^(?:year|fixed-year)[-_ ]?\(?(\d{4})\)?$")


@dataclass(frozen=True)
class TimeRangeSelector:
    """
    A symbolic time range.

    Attributes:
        range: Which option is selected
        year: Calendar year for FIXED_YEAR selectors
        custom_from: Optional first day of a CUSTOM range
        custom_to: Optional last day of a CUSTOM range
    """

    range: TimeRange
    year: Optional[int] = None
    custom_from: Optional[date] = None
    custom_to: Optional[date] = None

    def __post_init__(self) -> None:
        if self.range == TimeRange.FIXED_YEAR:
            if self.year is None:
                raise InvalidTimeRangeError("A fixed-year range requires a year")
        elif self.year is not None:
            raise InvalidTimeRangeError(f"{self.range.value} range does not take a year")

        if self.range != TimeRange.CUSTOM and (self.custom_from or self.custom_to):
            raise InvalidTimeRangeError("Only custom ranges carry explicit dates")

        if self.custom_from and self.custom_to and self.custom_to < self.custom_from:
            raise InvalidTimeRangeError(
                f"Custom range ends before it starts: {self.custom_from} > {self.custom_to}"
            )

    @classmethod
    def relative(cls, time_range: TimeRange) -> "TimeRangeSelector":
        if time_range not in RELATIVE_DAYS:
            raise InvalidTimeRangeError(f"{time_range.value} is not a relative range")
        return cls(time_range)

    @classmethod
    def fixed_year(cls, year: int) -> "TimeRangeSelector":
        return cls(TimeRange.FIXED_YEAR, year=year)

    @classmethod
    def all_time(cls) -> "TimeRangeSelector":
        return cls(TimeRange.ALL_TIME)

    @classmethod
    def custom(
        cls, custom_from: Optional[date] = None, custom_to: Optional[date] = None
    ) -> "TimeRangeSelector":
        return cls(TimeRange.CUSTOM, custom_from=custom_from, custom_to=custom_to)

    @classmethod
    def parse(
        cls,
        token: str,
        custom_from: Optional[Union[date, str]] = None,
        custom_to: Optional[Union[date, str]] = None,
    ) -> "TimeRangeSelector":
        """
        Parse a selector token such as "1w", "last-month", "year2025", "all" or "custom".

        Raises:
            InvalidTimeRangeError: If the token or dates are invalid
        """
        text = token.strip().lower()
        year_match = _YEAR_TOKEN.match(text)
        if year_match:
            return cls.fixed_year(int(year_match.group(1)))

        time_range = _ALIASES.get(text)
        if time_range is None:
            try:
                time_range = TimeRange(text)
            except ValueError:
                raise InvalidTimeRangeError(f"Unknown time range: {token!r}") from None

        if time_range == TimeRange.FIXED_YEAR:
            raise InvalidTimeRangeError("A fixed-year range requires a year, e.g. 'year2025'")
        if time_range == TimeRange.CUSTOM:
            return cls.custom(_parse_date(custom_from), _parse_date(custom_to))
        return cls(time_range)

    @property
    def days(self) -> Optional[int]:
        """Day count of a relative selector, None otherwise."""
        return RELATIVE_DAYS.get(self.range)

    @property
    def is_relative(self) -> bool:
        return self.range in RELATIVE_DAYS

    @property
    def is_resolved(self) -> bool:
        """A custom range without a start date has no concrete window."""
        return self.range != TimeRange.CUSTOM or self.custom_from is not None

    @property
    def token(self) -> str:
        if self.range == TimeRange.FIXED_YEAR:
            return f"year{self.year}"
        return self.range.value

    @property
    def label(self) -> str:
        if self.range == TimeRange.FIXED_YEAR:
            return f"Year {self.year}"
        return _LABELS[self.range]

    def __str__(self) -> str:
        if self.range == TimeRange.CUSTOM:
            return f"custom({self.custom_from or '-'}..{self.custom_to or '-'})"
        return self.token


def _parse_date(value: Optional[Union[date, str]]) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        raise InvalidTimeRangeError(f"Invalid date: {value!r}") from None


@dataclass(frozen=True)
class ResolvedWindow:
    """
    Concrete interval with inclusive bounds.

    A ``None`` bound is unbounded; the all-time window is unbounded on both sides.
    """

    start: Optional[datetime]
    end: Optional[datetime]

    @property
    def is_unbounded(self) -> bool:
        return self.start is None

    def contains(self, instant: datetime) -> bool:
        if self.start is not None and instant < self.start:
            return False
        if self.end is not None and instant > self.end:
            return False
        return True

    def covers(self, other: "ResolvedWindow") -> bool:
        """Return True if ``other`` lies entirely inside this window."""
        if self.start is not None and (other.start is None or other.start < self.start):
            return False
        if self.end is not None and (other.end is None or other.end > self.end):
            return False
        return True


UNBOUNDED_WINDOW = ResolvedWindow(start=None, end=None)


@dataclass(frozen=True)
class ScanRecord:
    """
    Outcome of the most recent finished scan.

    Captures the selector and resolved window the scan actually used, which
    may differ from whatever selector is currently chosen for filtering.
    """

    selector: TimeRangeSelector
    window: ResolvedWindow
    files: tuple[ScannedFile, ...] = ()
    completed_at: datetime = field(default_factory=local_now)


def _start_of_day(day: date, now: datetime) -> datetime:
    return datetime.combine(day, time.min, tzinfo=now.tzinfo)


def _end_of_day(day: date, now: datetime) -> datetime:
    return datetime.combine(day, _END_OF_DAY, tzinfo=now.tzinfo)


def year_bounds(year: int, now: Optional[datetime] = None) -> ResolvedWindow:
    """Return Jan 1 00:00:00 through Dec 31 23:59:59 of ``year`` in local time."""
    now = now or local_now()
    return ResolvedWindow(
        start=datetime(year, 1, 1, tzinfo=now.tzinfo),
        end=datetime(year, 12, 31, 23, 59, 59, tzinfo=now.tzinfo),
    )


def resolve_window(
    selector: TimeRangeSelector, now: Optional[datetime] = None
) -> ResolvedWindow:
    """
    Resolve a selector into a concrete window.

    Relative selectors end at ``now``; custom bounds cover whole local
    calendar days and fall back to ``now`` when unset.
    """
    now = now or local_now()

    if selector.is_relative:
        return ResolvedWindow(start=now - selector.days * DAY, end=now)
    if selector.range == TimeRange.FIXED_YEAR:
        return year_bounds(selector.year, now)
    if selector.range == TimeRange.ALL_TIME:
        return UNBOUNDED_WINDOW

    start = _start_of_day(selector.custom_from, now) if selector.custom_from else now
    end = _end_of_day(selector.custom_to, now) if selector.custom_to else now
    return ResolvedWindow(start=start, end=end)


def selector_days(
    selector: TimeRangeSelector, now: Optional[datetime] = None
) -> Optional[float]:
    """
    Day-count proxy used to compare two ranges.

    Returns:
        ``math.inf`` for all-time, 365 for a fixed year, the ceiling of the
        window length for a custom range with a start date, the day count of
        a relative range, or None when no proxy exists.
    """
    if selector.range == TimeRange.ALL_TIME:
        return math.inf
    if selector.range == TimeRange.FIXED_YEAR:
        return 365
    if selector.range == TimeRange.CUSTOM:
        if selector.custom_from is None:
            return None
        window = resolve_window(selector, now)
        return math.ceil((window.end - window.start) / DAY)
    return selector.days


def exceeds_scanned(
    selected: TimeRangeSelector,
    scanned: Union[ScanRecord, TimeRangeSelector, None],
    now: Optional[datetime] = None,
) -> bool:
    """
    Decide whether files matching ``selected`` may lie outside what was scanned.

    When True, the accumulated results cannot be trusted to be complete for
    the selected range and a rescan is needed.

    Year-constrained scans use a cheap approximation for relative selections:
    only the start of the relative window is checked against Jan 1 of the
    scanned year. A relative window that ends after Dec 31 of that year (for
    example "last week" selected in the following January, after a scan of
    the previous year) is not reported as exceeding.
    """
    if scanned is None:
        return False

    now = now or local_now()
    if isinstance(scanned, ScanRecord):
        scanned_selector = scanned.selector
        scanned_window = scanned.window
    else:
        scanned_selector = scanned
        scanned_window = resolve_window(scanned, now)

    if selected.range == scanned_selector.range and selected.year == scanned_selector.year:
        if selected.range != TimeRange.CUSTOM:
            return False
        selected_window = resolve_window(selected, now)
        if selected_window == scanned_window:
            return False
        return (
            selected_window.start < scanned_window.start
            or selected_window.end > scanned_window.end
        )

    if scanned_selector.range == TimeRange.FIXED_YEAR:
        year = scanned_selector.year
        if selected.range == TimeRange.ALL_TIME:
            return True
        if selected.range == TimeRange.FIXED_YEAR:
            return selected.year != year
        if selected.range == TimeRange.CUSTOM:
            start = selected.custom_from or now.date()
            end = selected.custom_to or now.date()
            return start.year < year or end.year > year
        cutoff = now - selected.days * DAY
        return cutoff < year_bounds(year, now).start

    if scanned_selector.range == TimeRange.ALL_TIME:
        return False

    selected_days = selector_days(selected, now)
    scanned_days = _recorded_days(scanned_selector, scanned_window)
    if selected_days is None or scanned_days is None:
        return True
    return selected_days > scanned_days


def _recorded_days(
    selector: TimeRangeSelector, window: ResolvedWindow
) -> Optional[float]:
    """Day proxy of a scanned range, measured on the window it was resolved to."""
    if selector.range == TimeRange.CUSTOM:
        if selector.custom_from is None:
            return None
        return math.ceil((window.end - window.start) / DAY)
    return selector_days(selector)
