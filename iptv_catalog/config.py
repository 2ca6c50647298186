from pathlib import Path
import logging

from croniter import croniter
import httpx
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


class CustomSettings(BaseSettings):
    """Application settings loaded from environment variables.

    Validates configuration at startup to catch misconfiguration early.
    """

    database_path: str = "./data/catalog.db"
    logo_mapping_url: str = "https://iptv-org.github.io/api/logos.json"

    default_group: str = "General"
    unknown_channel_name: str = "Unknown Channel"

    playlist_fetch_timeout_sec: float = 60.0
    logo_fetch_timeout_sec: float = 30.0
    logo_fetch_max_retries: int = 3

    probe_timeout_sec: float = 3.0
    probe_user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64)"
    scan_max_concurrency: int = 4
    scan_progress_interval: int = 5

    recents_limit: int = 50
    import_chunk_size: int = 500

    cleanup_cron: str | None = None  # e.g. "0 4 * * 0" for weekly; unset disables
    cleanup_misfire_grace_sec: int = 3600
    reload_playlist_on_startup: bool = True

    sqlite_journal_mode: str = "WAL"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("logo_mapping_url")
    @classmethod
    def validate_logo_mapping_url(cls, value: str) -> str:
        """Validate the logo mapping endpoint is HTTP/HTTPS."""
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError(f"Logo mapping URL must be HTTP/HTTPS: {value}")
        try:
            httpx.URL(value)
        except httpx.InvalidURL as exc:
            raise ValueError(f"Invalid logo mapping URL '{value}': {exc}") from exc
        return value

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, value: str) -> str:
        """Validate database path is accessible."""
        if value == ":memory:":
            return value
        path = Path(value)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            return value
        except (OSError, PermissionError) as exc:
            raise ValueError(f"Cannot access database path '{value}': {exc}") from exc

    @field_validator("default_group", "unknown_channel_name")
    @classmethod
    def validate_labels(cls, value: str, info) -> str:
        """Default labels must be non-blank."""
        if not value.strip():
            raise ValueError(f"{info.field_name} must not be blank")
        return value.strip()

    @field_validator(
        "playlist_fetch_timeout_sec",
        "logo_fetch_timeout_sec",
        "probe_timeout_sec",
    )
    @classmethod
    def validate_timeouts(cls, value: float, info) -> float:
        """Ensure network timeouts are positive."""
        if value <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return value

    @field_validator(
        "logo_fetch_max_retries",
        "scan_max_concurrency",
        "scan_progress_interval",
        "recents_limit",
        "import_chunk_size",
    )
    @classmethod
    def validate_positive_ints(cls, value: int, info) -> int:
        """Ensure integer settings are positive."""
        if value <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return value

    @field_validator("cleanup_misfire_grace_sec")
    @classmethod
    def validate_misfire_grace(cls, value: int) -> int:
        """Validate scheduler misfire grace period (seconds)."""
        if value < 0:
            raise ValueError("cleanup_misfire_grace_sec must be >= 0")
        return value

    @field_validator("sqlite_journal_mode")
    @classmethod
    def validate_journal_mode(cls, value: str) -> str:
        """Validate SQLite journal mode."""
        normalized = value.upper()
        allowed = {"DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF"}
        if normalized not in allowed:
            raise ValueError(f"sqlite_journal_mode must be one of {sorted(allowed)}")
        return normalized

    @field_validator("cleanup_cron")
    @classmethod
    def validate_cron_expression(cls, value: str | None) -> str | None:
        """Validate cron expression is valid; blank disables scheduled cleanup."""
        if value is None or not value.strip():
            return None
        try:
            croniter(value)
            return value
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Invalid cron expression '{value}': {exc}") from exc

    @model_validator(mode="after")
    def validate_scan_configuration(self):
        """Validate cross-field configuration."""
        if not self.cleanup_cron:
            logger.info("No cleanup schedule configured - liveness scans run on demand only")

        if self.probe_timeout_sec > 30:
            logger.warning(
                f"probe_timeout_sec={self.probe_timeout_sec} is unusually long; "
                "a dead catalog will take a long time to scan"
            )

        return self

    def __init__(self, **data):
        """Initialize settings and log configuration."""
        super().__init__(**data)

        logger.info("Configuration loaded:")
        logger.info(f"  Database: {self.database_path}")
        logger.info(f"  Logo Mapping URL: {self.logo_mapping_url}")
        logger.info(f"  Default Group: {self.default_group}")
        logger.info(f"  Playlist Fetch Timeout: {self.playlist_fetch_timeout_sec}s")
        logger.info(f"  Logo Fetch: timeout={self.logo_fetch_timeout_sec}s retries={self.logo_fetch_max_retries}")
        logger.info(f"  Probe Timeout: {self.probe_timeout_sec}s")
        logger.info(f"  Scan Concurrency: {self.scan_max_concurrency}")
        logger.info(f"  Scan Progress Interval: {self.scan_progress_interval}")
        logger.info(f"  Recents Limit: {self.recents_limit}")
        logger.info(f"  Import Chunk Size: {self.import_chunk_size}")
        logger.info(f"  Cleanup Schedule: {self.cleanup_cron or 'disabled'}")
        logger.info(f"  Cleanup Misfire Grace: {self.cleanup_misfire_grace_sec}s")
        logger.info(f"  Reload Playlist On Startup: {self.reload_playlist_on_startup}")
        logger.info(f"  SQLite Journal Mode: {self.sqlite_journal_mode}")


settings = CustomSettings()


def setup_logging() -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
