"""
Shared dataclasses used across the import, enrichment and scan pipelines.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal


def now_millis() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(slots=True)
class ChannelRecord:
    """One catalogued live stream. ``id`` is None until the store assigns one."""
    name: str
    url: str
    logo_url: str | None = None
    group: str = "Uncategorized"
    tvg_id: str = ""
    is_favorite: bool = False
    last_updated: int = field(default_factory=now_millis)
    playback_position: int = 0
    id: int | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "logo_url": self.logo_url,
            "group": self.group,
            "tvg_id": self.tvg_id,
            "is_favorite": self.is_favorite,
            "last_updated": self.last_updated,
            "playback_position": self.playback_position,
        }


@dataclass(frozen=True, slots=True)
class ScanProgress:
    """Position of an in-flight liveness scan."""
    current: int
    total: int
    message: str | None = None


@dataclass(slots=True)
class ScanResult:
    status: Literal["success", "cancelled", "skipped"]
    started_at: datetime
    completed_at: datetime
    total: int = 0
    checked: int = 0
    deleted: int = 0

    @property
    def duration_seconds(self) -> float:
        return max(0.0, (self.completed_at - self.started_at).total_seconds())

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "total": self.total,
            "checked": self.checked,
            "deleted": self.deleted,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_seconds": self.duration_seconds,
        }


@dataclass(slots=True)
class ImportResult:
    status: Literal["success", "skipped"]
    source: str
    started_at: datetime
    completed_at: datetime
    channels_parsed: int = 0
    channels_inserted: int = 0
    logos_updated: int = 0

    @property
    def duplicates_skipped(self) -> int:
        return max(0, self.channels_parsed - self.channels_inserted)

    @property
    def duration_seconds(self) -> float:
        return max(0.0, (self.completed_at - self.started_at).total_seconds())

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "source": self.source,
            "channels_parsed": self.channels_parsed,
            "channels_inserted": self.channels_inserted,
            "duplicates_skipped": self.duplicates_skipped,
            "logos_updated": self.logos_updated,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_seconds": self.duration_seconds,
        }


__all__ = ["ChannelRecord", "ScanProgress", "ScanResult", "ImportResult", "now_millis"]
