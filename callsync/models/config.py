"""Configuration models for the call-log sync pipeline."""

from pathlib import Path

from pydantic import BaseModel, Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageConfig(BaseModel):
    """Configuration for snapshot storage."""

    data_dir: Path = Field(default=Path("./data"), description="Directory holding snapshots")
    source_path: Path = Field(
        default=Path("./data/calllog_export.json"),
        description="Call-log export read at each capture",
    )
    snapshot_name: str = Field(
        default="calllog.json", min_length=1, description="File name of the reference snapshot"
    )
    mirror_path: Path | None = Field(
        default=None,
        description="Mirror copy of the snapshot. Defaults to <data_dir>/mirror/<snapshot_name>",
    )

    @property
    def primary_path(self) -> Path:
        return self.data_dir / self.snapshot_name

    @property
    def resolved_mirror_path(self) -> Path:
        if self.mirror_path is not None:
            return self.mirror_path
        return self.data_dir / "mirror" / self.snapshot_name


class WebhookConfig(BaseModel):
    """Configuration for the remote webhook target."""

    url: HttpUrl | None = Field(
        default=None, description="Webhook URL. Uploads are skipped when unset"
    )
    username: str = Field(default="callsync", description="Display name used for posted messages")
    timeout_seconds: float = Field(default=10.0, gt=0, le=120, description="HTTP timeout")
    max_retries: int = Field(default=3, ge=0, le=10, description="Retries on transient errors")
    base_delay_seconds: float = Field(default=1.0, ge=0, description="Initial retry delay")
    max_message_length: int = Field(
        default=2000, ge=100, le=4000, description="Maximum characters per posted message"
    )


class LifecycleConfig(BaseModel):
    """Configuration for pipeline branching."""

    sync_without_remote: bool = Field(
        default=False,
        description="Reconcile local copies after new entries even without a remote target",
    )


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        description="If True, output JSON logs. If False, use console format.",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional path to log file. If None, logs only to stdout.",
    )


class AppConfig(BaseSettings):
    """Main application configuration.

    This class uses pydantic-settings to load configuration from environment
    variables with the CALLSYNC_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="CALLSYNC_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    storage: StorageConfig = Field(default_factory=StorageConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def has_remote_target(self) -> bool:
        """Whether diff upload should be attempted."""
        return self.webhook.url is not None
