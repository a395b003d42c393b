"""
Scan event models for the scan session channel.

The scan provider reports through callbacks; each callback becomes one
ScanEvent posted to the session's ordered queue and applied in delivery order.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Union

from scancore.core.models import FolderNode, ScannedFile, ScanProgress


class ScanEventType(Enum):
    """Types of events delivered by a scan provider."""

    PROGRESS = "progress"
    BATCH = "batch"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanEventType.COMPLETE, ScanEventType.ERROR)


@dataclass
class ScanResult:
    """
    Final payload of a scan.

    Attributes:
        files: Authoritative list of matched files
        folder_tree: Folder hierarchy computed by the provider, if any
        partial: True when the provider stopped early after a cancel
    """

    files: list[ScannedFile] = field(default_factory=list)
    folder_tree: Optional[list[FolderNode]] = None
    partial: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScanResult":
        """Decode a provider completion payload; the folder tree is recomputed locally."""
        return cls(
            files=[ScannedFile.from_dict(f) for f in data.get("files") or []],
            partial=bool(data.get("partial", False)),
        )


ScanPayload = Union[ScanProgress, list[ScannedFile], ScanResult, str]


@dataclass
class ScanEvent:
    """
    A single provider event tagged with the scan it belongs to.

    Attributes:
        event_type: Kind of event
        generation: Scan generation the event was produced for
        payload: ScanProgress, list of ScannedFile, ScanResult or error message
        timestamp: Unix timestamp when the event was posted
    """

    event_type: ScanEventType
    generation: int
    payload: ScanPayload
    timestamp: float = field(default_factory=time.time)

    def describe(self) -> str:
        """Short description for debug logging."""
        if self.event_type == ScanEventType.BATCH:
            return f"batch({len(self.payload)} files)"
        if self.event_type == ScanEventType.COMPLETE:
            suffix = ", partial" if self.payload.partial else ""
            return f"complete({len(self.payload.files)} files{suffix})"
        if self.event_type == ScanEventType.ERROR:
            return f"error({self.payload})"
        return f"progress({self.payload.status.value}, scanned={self.payload.scanned_count})"
