"""
Property-based tests for time window resolution and scanned-range comparison.
"""

from datetime import date, timedelta

from hypothesis import assume, given, settings
from hypothesis import strategies as st

from scancore.core.time_window import (
    RELATIVE_DAYS,
    UNBOUNDED_WINDOW,
    ScanRecord,
    TimeRange,
    TimeRangeSelector,
    exceeds_scanned,
    resolve_window,
)
from tests.support.scan_test_utils import NOW

relative_selectors = st.sampled_from(
    [TimeRangeSelector.relative(r) for r in RELATIVE_DAYS]
)
year_selectors = st.integers(min_value=2000, max_value=2030).map(TimeRangeSelector.fixed_year)
all_time_selectors = st.just(TimeRangeSelector.all_time())


@st.composite
def custom_selector_strategy(draw):
    """Generate custom selectors, optionally without bounds."""
    start = draw(st.one_of(st.none(), st.dates(date(2020, 1, 1), date(2026, 3, 15))))
    if start is None:
        return TimeRangeSelector.custom(None, None)
    length = draw(st.integers(min_value=0, max_value=400))
    end = draw(st.one_of(st.none(), st.just(start + timedelta(days=length))))
    return TimeRangeSelector.custom(start, end)


non_custom_selectors = st.one_of(relative_selectors, year_selectors, all_time_selectors)
any_selector = st.one_of(non_custom_selectors, custom_selector_strategy())


@given(selector=non_custom_selectors)
@settings(max_examples=100)
def test_resolved_window_is_ordered(selector: TimeRangeSelector):
    """
    **Property: resolved windows are ordered**

    Every non-custom selector resolves to start <= end, or to an unbounded start.
    """
    window = resolve_window(selector, NOW)
    if window.start is None:
        assert selector.range == TimeRange.ALL_TIME
    else:
        assert window.start <= window.end


@given(selector=any_selector)
@settings(max_examples=100)
def test_all_time_window_contains_every_window(selector: TimeRangeSelector):
    """
    **Property: all-time contains everything**

    The all-time window covers the resolved window of any other selector.
    """
    all_time = resolve_window(TimeRangeSelector.all_time(), NOW)
    assert all_time == UNBOUNDED_WINDOW
    assert all_time.covers(resolve_window(selector, NOW))


@given(selector=non_custom_selectors)
@settings(max_examples=100)
def test_selection_never_exceeds_itself(selector: TimeRangeSelector):
    """
    **Property: a scan satisfies its own range**

    exceeds_scanned(x, x) is False for every non-custom selector.
    """
    assert exceeds_scanned(selector, selector, NOW) is False


@given(selector=custom_selector_strategy())
@settings(max_examples=100)
def test_custom_with_equal_window_does_not_exceed(selector: TimeRangeSelector):
    """
    **Property: equal custom windows**

    A custom selection with the same resolved window as the scanned custom
    range does not exceed it.
    """
    record = ScanRecord(selector=selector, window=resolve_window(selector, NOW))
    assert exceeds_scanned(selector, record, NOW) is False


@given(selector=any_selector)
@settings(max_examples=100)
def test_nothing_exceeds_an_all_time_scan(selector: TimeRangeSelector):
    """
    **Property: all-time scans are a superset**

    exceeds_scanned(anything, all-time) is always False.
    """
    assert exceeds_scanned(selector, TimeRangeSelector.all_time(), NOW) is False


@given(year=st.integers(min_value=1990, max_value=2100))
@settings(max_examples=50)
def test_all_time_always_exceeds_a_year_scan(year: int):
    """
    **Property: year scans cannot serve all-time**

    exceeds_scanned(all-time, fixed-year(Y)) is always True.
    """
    scanned = TimeRangeSelector.fixed_year(year)
    assert exceeds_scanned(TimeRangeSelector.all_time(), scanned, NOW) is True


@given(selector=any_selector)
@settings(max_examples=50)
def test_nothing_exceeds_when_no_scan_recorded(selector: TimeRangeSelector):
    """
    **Property: no prior scan**

    Without a recorded scan there is nothing to exceed.
    """
    assert exceeds_scanned(selector, None, NOW) is False


@given(selected=relative_selectors, scanned=relative_selectors)
@settings(max_examples=50)
def test_relative_ranges_compare_by_length(
    selected: TimeRangeSelector, scanned: TimeRangeSelector
):
    """
    **Property: relative ranges compare by day count**

    A relative selection exceeds a relative scan exactly when it spans more days.
    """
    assume(selected != scanned)
    expected = selected.days > scanned.days
    assert exceeds_scanned(selected, scanned, NOW) is expected


@given(token=st.sampled_from(["24h", "1w", "1m", "3m", "6m", "all", "year2025"]))
@settings(max_examples=20)
def test_token_round_trips_through_parse(token: str):
    """
    **Property: selector tokens parse back to themselves**
    """
    assert TimeRangeSelector.parse(token).token == token
