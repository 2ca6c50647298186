from pydantic import BaseModel, Field, field_validator

from iptv_catalog.services.catalog_types import ChannelRecord, ScanProgress


class ImportUrlRequest(BaseModel):
    """Remote playlist import request"""
    url: str = Field(..., description="HTTP/HTTPS URL of an extended M3U playlist")

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate the playlist URL scheme"""
        v = v.strip()
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError(f"Invalid playlist URL: {v}. Must start with http:// or https://")
        return v


class ChannelResponse(BaseModel):
    """Channel data model"""
    id: int = Field(..., description="Store-assigned channel ID")
    name: str = Field(..., description="Display name of the channel")
    url: str = Field(..., description="Playback URL")
    logo_url: str | None = Field(None, description="URL to channel logo")
    group: str = Field(..., description="Group/category label")
    tvg_id: str = Field("", description="Broadcaster identifier used for logo lookup")
    is_favorite: bool = False
    last_updated: int = Field(0, description="Last interaction, epoch milliseconds")

    @classmethod
    def from_record(cls, record: ChannelRecord) -> "ChannelResponse":
        return cls(
            id=record.id,
            name=record.name,
            url=record.url,
            logo_url=record.logo_url,
            group=record.group,
            tvg_id=record.tvg_id,
            is_favorite=record.is_favorite,
            last_updated=record.last_updated,
        )


class ImportResponse(BaseModel):
    """Playlist import summary"""
    status: str
    source: str
    channels_parsed: int
    channels_inserted: int
    duplicates_skipped: int
    logos_updated: int
    duration_seconds: float


class ProgressResponse(BaseModel):
    current: int
    total: int
    message: str | None = None

    @classmethod
    def from_progress(cls, progress: ScanProgress | None) -> "ProgressResponse | None":
        if progress is None:
            return None
        return cls(current=progress.current, total=progress.total, message=progress.message)


class StatusResponse(BaseModel):
    """Background work status"""
    is_loading: bool
    is_scanning: bool
    scan_progress: ProgressResponse | None = None
    saved_playlist_url: str | None = None


class CountResponse(BaseModel):
    affected: int
