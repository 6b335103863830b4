"""
mileage_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration.  Sits beside ``mileage_kernel``; the kernel never
    imports from ``mileage_config``.  Callers translate the returned
    ``MileageConfig`` into kernel constructor arguments.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file is missing.
    - ``KeyError`` / ``ValueError`` -- required keys absent or invalid.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from mileage_config.loader import load_config_file
from mileage_config.schema import (
    DatabaseConfig,
    MileageConfig,
    NotificationConfig,
    SmtpConfig,
)

_logger = logging.getLogger("mileage_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
_DEFAULT_CONFIG_FILE = _DEFAULT_CONFIG_DIR / "default.yaml"


def get_active_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> MileageConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Configuration file to load.  Defaults to
            ``mileage_config/sets/default.yaml``.
        environ: Environment used for ``MILEAGE_*`` overrides.  Defaults
            to ``os.environ``.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        KeyError: If a required key is missing.
        ValueError: If a value is out of range.
    """
    config_path = Path(path) if path is not None else _DEFAULT_CONFIG_FILE
    config = load_config_file(
        config_path,
        environ=os.environ if environ is None else environ,
    )

    _logger.info(
        "MILEAGE_CONFIG_TRACE",
        extra={
            "config_id": config.config_id,
            "config_path": str(config_path),
            "smtp_enabled": config.smtp is not None,
            "notification_timeout_seconds": config.notifications.timeout_seconds,
        },
    )
    return config


__all__ = [
    "DatabaseConfig",
    "MileageConfig",
    "NotificationConfig",
    "SmtpConfig",
    "get_active_config",
]
