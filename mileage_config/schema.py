"""
Configuration Schema (``mileage_config.schema``).

Frozen dataclasses describing one configuration set.  Every value the
runtime reads lives here; nothing else reads files or the environment.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800
    sqlite_busy_timeout: float = 15.0


@dataclass(frozen=True)
class SmtpConfig:
    """Outbound mail relay."""

    host: str
    port: int = 587
    username: str | None = None
    password: str | None = None
    use_tls: bool = True
    sender: str = "Mileage Tracker <noreply@example.com>"


@dataclass(frozen=True)
class NotificationConfig:
    """Notification dispatch settings."""

    app_url: str
    timeout_seconds: float = 5.0
    max_workers: int = 4
    enabled: bool = True


@dataclass(frozen=True)
class MileageConfig:
    """A complete, validated configuration set."""

    config_id: str
    database: DatabaseConfig
    notifications: NotificationConfig
    smtp: SmtpConfig | None = None
    log_level: str = "INFO"
    extra: dict = field(default_factory=dict)
