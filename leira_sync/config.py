"""Configuration system for leira-sync."""

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

ClearPolicy = Literal["all_or_nothing", "per_type"]


class Settings(BaseSettings):
    """Sync subsystem configuration."""

    # Storage
    data_path: Path = Field(
        default=Path("./.leira-sync"),
        description="Directory holding the persisted queues and session records",
    )
    filelock_enabled: bool = Field(
        default=True,
        description="Guard queue files with a cross-process file lock",
    )
    filelock_timeout: float = Field(
        default=10.0,
        gt=0.0,
        description="Seconds to wait for the queue file lock",
    )

    # Remote
    remote_base_url: str = Field(
        default="http://localhost:9999",
        description="Base URL of the host serving the sync functions",
    )
    endpoint_prefix: str = Field(
        default="/.netlify/functions",
        description="Path prefix prepended to every sync function name",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Timeout for each remote submission",
    )

    # Connectivity
    connectivity_host: str | None = Field(
        default=None,
        description="Host probed for reachability (defaults to the remote host)",
    )
    connectivity_port: int | None = Field(
        default=None,
        ge=1,
        le=65535,
        description="Port probed for reachability (defaults to the remote port)",
    )
    connectivity_timeout_seconds: float = Field(
        default=3.0,
        gt=0.0,
        description="Timeout for the reachability probe",
    )

    # Sync policy
    sync_interval_seconds: float = Field(
        default=60.0,
        gt=0.0,
        description="Seconds between periodic sync passes",
    )
    sync_on_start: bool = Field(
        default=True,
        description="Run a pass as soon as the periodic trigger starts",
    )
    auto_flush_on_enqueue: bool = Field(
        default=True,
        description="Run a pass right after enqueueing when online",
    )
    clear_policy: ClearPolicy = Field(
        default="all_or_nothing",
        description=(
            "all_or_nothing: remove queued entries only when every type succeeds; "
            "per_type: remove the entries of each type that succeeded"
        ),
    )

    # Bounded queue
    bounded_queue_capacity: int = Field(
        default=100,
        ge=1,
        description="Maximum entries in the bounded queue (oldest evicted first)",
    )
    bounded_max_item_bytes: int = Field(
        default=50 * 1024,
        ge=1,
        description="Maximum serialized size of one bounded-queue entry",
    )
    bounded_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Failed drain attempts before an entry is dropped",
    )
    bounded_batch_size: int = Field(
        default=10,
        ge=1,
        description="Entries per drain batch",
    )
    bounded_batch_delay_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Pause between drain batches",
    )
    bounded_persist_per_batch: bool = Field(
        default=False,
        description="Persist the bounded queue after every batch instead of once per drain",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_json: bool = Field(
        default=False,
        description="Emit JSON log lines",
    )

    model_config = {
        "env_prefix": "LEIRA_SYNC_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @field_validator("remote_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("remote_base_url must start with http:// or https://")
        return value.rstrip("/")

    @field_validator("endpoint_prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if value and not value.startswith("/"):
            value = "/" + value
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the settings instance (lazy-loaded singleton).

    Returns:
        The Settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def override_settings(new_settings: Settings) -> None:
    """Override the settings instance (for testing).

    Args:
        new_settings: The new Settings instance to use.

    Example:
        from leira_sync.config import override_settings, Settings
        override_settings(Settings(data_path="/tmp/test"))
    """
    global _settings
    _settings = new_settings


def reset_settings() -> None:
    """Reset settings to None (forces reload on next get_settings call)."""
    global _settings
    _settings = None


class _SettingsProxy:
    """Proxy object resolving attributes against the current settings."""

    def __getattr__(self, name: str) -> Any:
        return getattr(get_settings(), name)

    def __repr__(self) -> str:
        return repr(get_settings())


settings = _SettingsProxy()
