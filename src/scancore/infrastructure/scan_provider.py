"""
Scan provider boundary.

The provider walks the file system outside this package and streams its
findings back through ScanCallbacks. Callbacks may be invoked from any thread.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from scancore.core.models import ScannedFile, ScanProgress, ScanScope, local_now
from scancore.core.scan_events import ScanResult
from scancore.core.time_window import TimeRange, TimeRangeSelector, resolve_window

CancelHandle = Callable[[], None]


@dataclass
class ScanCallbacks:
    """Callbacks a provider reports through for one scan."""

    on_progress: Callable[[ScanProgress], None]
    on_files: Callable[[list[ScannedFile]], None]
    on_complete: Callable[[ScanResult], None]
    on_error: Callable[[str], None]


@dataclass
class ScanRequest:
    """
    Parameters of one scan.

    Relative ranges travel as ``days_back``; fixed years and custom ranges as
    ISO bounds. All-time leaves every bound unset.
    """

    directories: list[str] = field(default_factory=list)
    days_back: Optional[int] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    use_recommended_exclusions: bool = True
    custom_exclusions: list[str] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        scope: ScanScope,
        selector: TimeRangeSelector,
        now: Optional[datetime] = None,
    ) -> "ScanRequest":
        request = cls(
            directories=scope.directory_paths(),
            use_recommended_exclusions=scope.use_recommended_exclusions,
            custom_exclusions=list(scope.custom_exclusions),
        )
        if selector.is_relative:
            request.days_back = selector.days
        elif selector.range != TimeRange.ALL_TIME:
            window = resolve_window(selector, now or local_now())
            request.date_from = window.start.isoformat()
            request.date_to = window.end.isoformat()
        return request

    def to_dict(self) -> dict[str, Any]:
        """Wire form sent to the provider."""
        data: dict[str, Any] = {
            "directories": list(self.directories),
            "useRecommendedExclusions": self.use_recommended_exclusions,
            "customExclusions": list(self.custom_exclusions),
        }
        if self.days_back is not None:
            data["daysBack"] = self.days_back
        if self.date_from is not None:
            data["dateFrom"] = self.date_from
        if self.date_to is not None:
            data["dateTo"] = self.date_to
        return data


class ScanProviderInterface(ABC):
    """Abstract interface for scan providers."""

    @abstractmethod
    async def scan(self, request: ScanRequest, callbacks: ScanCallbacks) -> CancelHandle:
        """
        Start a scan and return immediately.

        Args:
            request: Directories, time bounds and exclusions
            callbacks: Where progress, batches and the terminal event go

        Returns:
            Handle that asks this particular scan to stop
        """
        pass

    @abstractmethod
    def cancel(self) -> None:
        """Best-effort abort of whatever the provider is running."""
        pass
