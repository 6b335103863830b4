"""
Configuration Loader (``mileage_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen dataclasses
of ``mileage_config.schema``.  Runtime callers go through
``mileage_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from mileage_config.schema import (
    DatabaseConfig,
    MileageConfig,
    NotificationConfig,
    SmtpConfig,
)

# Environment variables that override keys of the loaded set.
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "MILEAGE_DATABASE_URL": ("database", "url"),
    "MILEAGE_APP_URL": ("notifications", "app_url"),
    "MILEAGE_SMTP_HOST": ("smtp", "host"),
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def apply_env_overrides(
    data: dict[str, Any],
    environ: Mapping[str, str],
) -> dict[str, Any]:
    """Return a copy of ``data`` with any ``MILEAGE_*`` overrides applied."""
    merged = {k: dict(v) if isinstance(v, dict) else v for k, v in data.items()}
    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            merged.setdefault(section, {})
            if merged[section] is None:
                merged[section] = {}
            merged[section][key] = value
    return merged


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    """Parse a DatabaseConfig from a dict."""
    return DatabaseConfig(
        url=data["url"],
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
        pool_timeout=int(data.get("pool_timeout", 30)),
        pool_recycle=int(data.get("pool_recycle", 1800)),
        sqlite_busy_timeout=float(data.get("sqlite_busy_timeout", 15.0)),
    )


def parse_notifications(data: dict[str, Any]) -> NotificationConfig:
    """Parse a NotificationConfig from a dict."""
    timeout = float(data.get("timeout_seconds", 5.0))
    if timeout <= 0:
        raise ValueError(f"notifications.timeout_seconds must be positive, got {timeout}")
    return NotificationConfig(
        app_url=str(data["app_url"]).rstrip("/"),
        timeout_seconds=timeout,
        max_workers=int(data.get("max_workers", 4)),
        enabled=bool(data.get("enabled", True)),
    )


def parse_smtp(data: dict[str, Any] | None) -> SmtpConfig | None:
    """Parse an SmtpConfig; a missing section or host disables SMTP."""
    if not data or not data.get("host"):
        return None
    kwargs: dict[str, Any] = {"host": data["host"]}
    if "port" in data:
        kwargs["port"] = int(data["port"])
    if "use_tls" in data:
        kwargs["use_tls"] = bool(data["use_tls"])
    for key in ("username", "password", "sender"):
        if data.get(key) is not None:
            kwargs[key] = str(data[key])
    return SmtpConfig(**kwargs)


def parse_config(data: dict[str, Any]) -> MileageConfig:
    """Parse a full configuration set from its root dict."""
    known = {"config_id", "database", "notifications", "smtp", "log_level"}
    return MileageConfig(
        config_id=data["config_id"],
        database=parse_database(data["database"]),
        notifications=parse_notifications(data["notifications"]),
        smtp=parse_smtp(data.get("smtp")),
        log_level=str(data.get("log_level", "INFO")).upper(),
        extra={k: v for k, v in data.items() if k not in known},
    )


def load_config_file(
    path: Path,
    environ: Mapping[str, str] | None = None,
) -> MileageConfig:
    """Load, override and parse one configuration file."""
    data = load_yaml_file(path)
    if environ is not None:
        data = apply_env_overrides(data, environ)
    return parse_config(data)
