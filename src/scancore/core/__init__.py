"""
Core Layer - Time windows, ingestion buffering, result pipeline and index status derivation.
"""

from scancore.core.config import (
    BackendConfig,
    IndexConfig,
    LoggingConfig,
    ScanConfig,
    ScanCoreConfig,
    ViewConfig,
    configure_logging,
    load_config,
)
from scancore.core.folder_tree import build_folder_tree
from scancore.core.index_status import derive_index_status
from scancore.core.ingestion_buffer import IngestionBuffer, drop_excluded
from scancore.core.models import (
    BROWSABLE_KINDS,
    EXCLUDED_KINDS,
    FileKind,
    FileOrigin,
    FolderNode,
    IndexedFile,
    IndexedFilePage,
    IndexStatus,
    ScanDirectory,
    ScannedFile,
    ScanProgress,
    ScanScope,
    ScanStatus,
)
from scancore.core.result_pipeline import (
    PipelineOptions,
    ResultPage,
    ResultView,
    SortField,
    SortOrder,
    StatusFilter,
    category_counts,
    category_sizes,
    run_pipeline,
)
from scancore.core.scan_events import ScanEvent, ScanEventType, ScanResult
from scancore.core.time_window import (
    InvalidTimeRangeError,
    ResolvedWindow,
    ScanRecord,
    TimeRange,
    TimeRangeSelector,
    exceeds_scanned,
    resolve_window,
)

__all__ = [
    # Config
    "ScanCoreConfig",
    "ScanConfig",
    "ViewConfig",
    "IndexConfig",
    "BackendConfig",
    "LoggingConfig",
    "load_config",
    "configure_logging",
    # Models
    "FileKind",
    "FileOrigin",
    "ScanStatus",
    "IndexStatus",
    "EXCLUDED_KINDS",
    "BROWSABLE_KINDS",
    "ScanDirectory",
    "ScanScope",
    "ScannedFile",
    "ScanProgress",
    "IndexedFile",
    "IndexedFilePage",
    "FolderNode",
    # Time windows
    "TimeRange",
    "TimeRangeSelector",
    "ResolvedWindow",
    "ScanRecord",
    "InvalidTimeRangeError",
    "resolve_window",
    "exceeds_scanned",
    # Scan events
    "ScanEvent",
    "ScanEventType",
    "ScanResult",
    # Pipeline
    "IngestionBuffer",
    "drop_excluded",
    "PipelineOptions",
    "ResultPage",
    "ResultView",
    "SortField",
    "SortOrder",
    "StatusFilter",
    "run_pipeline",
    "category_counts",
    "category_sizes",
    "build_folder_tree",
    "derive_index_status",
]
