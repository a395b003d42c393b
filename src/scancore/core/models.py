"""
Data models for the scan session core.

Contains the scan scope configuration, scanned file records, progress
snapshots and the indexed-file records mirrored from the index backend.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePath
from typing import Any, Mapping


class FileKind(Enum):
    """Broad file categories reported by the scan provider."""

    DOCUMENT = "document"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    ARCHIVE = "archive"
    BOOK = "book"
    OTHER = "other"
    CODE = "code"

    @classmethod
    def parse(cls, value: Any) -> "FileKind":
        """Map a raw kind string to a FileKind, falling back to OTHER."""
        if isinstance(value, FileKind):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.OTHER


# Kinds that never reach accumulated scan state
EXCLUDED_KINDS: frozenset[FileKind] = frozenset([FileKind.CODE])

# Kinds offered as browse categories, in display order
BROWSABLE_KINDS: tuple[FileKind, ...] = tuple(
    kind for kind in FileKind if kind not in EXCLUDED_KINDS
)


class FileOrigin(Enum):
    """Where a scanned file came from."""

    DOWNLOADED = "downloaded"
    SYNCED = "synced"
    CREATED_HERE = "created_here"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "FileOrigin":
        if isinstance(value, FileOrigin):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.UNKNOWN


class ScanStatus(Enum):
    """Lifecycle states of a scan session."""

    IDLE = "idle"
    PLANNING = "planning"
    SCANNING = "scanning"
    BUILDING = "building"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"

    @property
    def is_busy(self) -> bool:
        """Planning and building are display aliases of scanning."""
        return self in (ScanStatus.PLANNING, ScanStatus.SCANNING, ScanStatus.BUILDING)

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.COMPLETED, ScanStatus.CANCELLED, ScanStatus.ERROR)


class IndexStatus(Enum):
    """Per-file index status shown next to scan results."""

    NOT_INDEXED = "not_indexed"
    FAST = "fast"
    DEEP = "deep"
    PENDING = "pending"
    ERROR = "error"


def local_now() -> datetime:
    """Return the current time as a timezone-aware local datetime."""
    return datetime.now(timezone.utc).astimezone()


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a timestamp into a timezone-aware datetime.

    Accepts datetimes, ISO-8601 strings (including a trailing 'Z') and
    Unix epoch seconds. Naive values are interpreted as local time.

    Raises:
        ValueError: If the value cannot be interpreted as a timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc).astimezone()
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Unsupported timestamp value: {value!r}")

    if parsed.tzinfo is None:
        return parsed.astimezone()
    return parsed


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key, tolerating snake_case and camelCase payloads."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass
class ScanDirectory:
    """A directory included in the scan scope."""

    path: str
    label: str = ""
    is_cloud_sync: bool = False

    def __post_init__(self) -> None:
        if not self.label:
            self.label = PurePath(self.path).name or self.path

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | str) -> "ScanDirectory":
        if isinstance(data, str):
            return cls(path=data)
        return cls(
            path=str(data["path"]),
            label=str(_pick(data, "label", default="")),
            is_cloud_sync=bool(_pick(data, "is_cloud_sync", "isCloudSync", default=False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "label": self.label, "is_cloud_sync": self.is_cloud_sync}


@dataclass
class ScanScope:
    """
    Caller-owned scan configuration.

    Attributes:
        directories: Ordered directories to scan (duplicates by path are dropped)
        use_recommended_exclusions: Whether the provider applies its built-in exclusions
        custom_exclusions: Additional glob patterns excluded from the scan
    """

    directories: list[ScanDirectory] = field(default_factory=list)
    use_recommended_exclusions: bool = True
    custom_exclusions: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        seen: set[str] = set()
        unique: list[ScanDirectory] = []
        for directory in self.directories:
            if isinstance(directory, (str, dict)):
                directory = ScanDirectory.from_dict(directory)
            if directory.path in seen:
                continue
            seen.add(directory.path)
            unique.append(directory)
        self.directories = unique

    def directory_paths(self) -> list[str]:
        return [d.path for d in self.directories]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScanScope":
        return cls(
            directories=[ScanDirectory.from_dict(d) for d in data.get("directories", [])],
            use_recommended_exclusions=bool(
                _pick(data, "use_recommended_exclusions", "useRecommendedExclusions", default=True)
            ),
            custom_exclusions=[
                str(p) for p in _pick(data, "custom_exclusions", "customExclusions", default=[])
            ],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "directories": [d.to_dict() for d in self.directories],
            "use_recommended_exclusions": self.use_recommended_exclusions,
            "custom_exclusions": list(self.custom_exclusions),
        }


@dataclass(frozen=True)
class ScannedFile:
    """
    A file discovered by the scan provider. Immutable once produced.

    Attributes:
        path: Absolute path, unique key of the file
        name: File name
        parent_path: Containing directory
        kind: Broad file category
        size: Size in bytes
        modified_at: Last modification time (timezone-aware)
        origin: Where the file came from
    """

    path: str
    name: str
    parent_path: str
    kind: FileKind
    size: int
    modified_at: datetime
    origin: FileOrigin = FileOrigin.UNKNOWN

    def __post_init__(self) -> None:
        # Naive timestamps (e.g. from os.stat) are taken as local time
        if self.modified_at.tzinfo is None:
            object.__setattr__(self, "modified_at", self.modified_at.astimezone())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScannedFile":
        """Decode a provider payload (camelCase or snake_case)."""
        path = str(data["path"])
        pure = PurePath(path.replace("\\", "/"))
        return cls(
            path=path,
            name=str(_pick(data, "name", default=pure.name)),
            parent_path=str(_pick(data, "parent_path", "parentPath", default=str(pure.parent))),
            kind=FileKind.parse(_pick(data, "kind", default="other")),
            size=max(0, int(_pick(data, "size", default=0))),
            modified_at=parse_timestamp(_pick(data, "modified_at", "modifiedAt")),
            origin=FileOrigin.parse(_pick(data, "origin", default="unknown")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "name": self.name,
            "parent_path": self.parent_path,
            "kind": self.kind.value,
            "size": self.size,
            "modified_at": self.modified_at.isoformat(),
            "origin": self.origin.value,
        }


@dataclass(frozen=True)
class ScanProgress:
    """
    Snapshot of scan progress. Replaced wholesale at every transition.

    Counters never decrease while a scan is active. ``error`` is set
    only when ``status`` is ERROR.
    """

    status: ScanStatus = ScanStatus.IDLE
    scanned_count: int = 0
    matched_count: int = 0
    skipped_count: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    current_path: str | None = None
    stage: str | None = None
    error: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScanProgress":
        """Decode a provider progress payload."""
        started = _pick(data, "started_at", "startedAt")
        completed = _pick(data, "completed_at", "completedAt")
        try:
            status = ScanStatus(_pick(data, "status", default="scanning"))
        except ValueError:
            status = ScanStatus.SCANNING
        return cls(
            status=status,
            scanned_count=int(_pick(data, "scanned_count", "scannedCount", default=0)),
            matched_count=int(_pick(data, "matched_count", "matchedCount", default=0)),
            skipped_count=int(_pick(data, "skipped_count", "skippedCount", default=0)),
            started_at=parse_timestamp(started) if started else None,
            completed_at=parse_timestamp(completed) if completed else None,
            current_path=_pick(data, "current_path", "currentPath"),
            stage=_pick(data, "stage"),
            error=_pick(data, "error"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "scanned_count": self.scanned_count,
            "matched_count": self.matched_count,
            "skipped_count": self.skipped_count,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "current_path": self.current_path,
            "stage": self.stage,
            "error": self.error,
        }


@dataclass(frozen=True)
class IndexedFile:
    """
    Read-only record of a file known to the index backend.

    Attributes:
        id: Backend identifier
        path: Path as reported by the backend
        full_path: Absolute path, when the backend reports one separately
        name: File name
        index_status: Backend-defined status string ("indexed", "pending", "error")
        metadata: Free-form backend metadata used to infer fast/deep mode
        kind: Backend file kind string
    """

    id: str
    path: str
    full_path: str = ""
    name: str = ""
    index_status: str = "indexed"
    metadata: Mapping[str, Any] = field(default_factory=dict)
    kind: str = "other"

    @property
    def key(self) -> str:
        """Absolute path used to match scanned files."""
        return self.full_path or self.path

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IndexedFile":
        path = str(_pick(data, "path", default=""))
        metadata = _pick(data, "metadata", default={})
        return cls(
            id=str(_pick(data, "id", default="")),
            path=path,
            full_path=str(_pick(data, "full_path", "fullPath", default=path)),
            name=str(_pick(data, "name", "filename", default=PurePath(path).name)),
            index_status=str(_pick(data, "index_status", "indexStatus", default="indexed")),
            metadata=metadata if isinstance(metadata, Mapping) else {},
            kind=str(_pick(data, "kind", default="other")),
        )


@dataclass
class IndexedFilePage:
    """One page of the backend's indexed-file listing."""

    files: list[IndexedFile] = field(default_factory=list)
    total: int = 0


@dataclass
class FolderNode:
    """
    Folder in the derived result tree.

    Attributes:
        path: Folder path
        name: Display name
        file_count: Matching files directly in this folder
        total_file_count: Matching files in the whole subtree
        total_size: Total size of matching files in the subtree
        latest_modified: Newest modification time in the subtree
        children: Sub-folders with at least one matching file
        files: Matching files directly in this folder
    """

    path: str
    name: str
    file_count: int = 0
    total_file_count: int = 0
    total_size: int = 0
    latest_modified: datetime | None = None
    children: list["FolderNode"] = field(default_factory=list)
    files: list[ScannedFile] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "name": self.name,
            "file_count": self.file_count,
            "total_file_count": self.total_file_count,
            "total_size": self.total_size,
            "latest_modified": (
                self.latest_modified.isoformat() if self.latest_modified else None
            ),
            "children": [child.to_dict() for child in self.children],
            "files": [f.to_dict() for f in self.files],
        }
