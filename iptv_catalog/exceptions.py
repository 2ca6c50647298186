"""
Catalog exceptions

Errors surfaced to callers of the catalog service. Malformed playlist input,
enrichment failures and liveness probe failures are never raised; they degrade
to defaults, are logged, or are mapped to "dead" respectively.
"""


class CatalogError(Exception):
    """Base class for catalog errors"""
    pass


class PlaylistImportError(CatalogError):
    """Raised when a playlist cannot be read or downloaded"""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Failed to import playlist from {source}: {reason}")


class ChannelNotFoundError(CatalogError):
    """Raised when a user action targets a channel that does not exist"""

    def __init__(self, channel_id: int):
        self.channel_id = channel_id
        super().__init__(f"Channel {channel_id} not found")
