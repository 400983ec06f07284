"""
Runtime settings for hydra-keys.

Settings come from environment variables with sensible defaults. The
persisted application state (providers, storage backend, defaults) lives in
the config document managed by hydra_keys.config_store; this module only
decides where that document is and how the process behaves.

Usage:
    from hydra_keys.config import get_config
    cfg = get_config()
    print(cfg.config_path)    # ~/.hydra-keys/config.json or $HYDRA_KEYS_HOME/config.json
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_FILENAME = "config.json"
DEFAULT_SERVICE_NAME = "hydra-keys"


@dataclass(frozen=True)
class Settings:
    """Process-level settings for the broker."""

    home: Path = field(default_factory=lambda: Path.home() / ".hydra-keys")
    service_name: str = DEFAULT_SERVICE_NAME

    # Remote calls
    http_timeout: float = 30.0
    validate_timeout: float = 5.0

    log_level: str = "WARNING"

    @property
    def config_path(self) -> Path:
        return self.home / CONFIG_FILENAME


# Singleton
_config: Settings | None = None


def get_config() -> Settings:
    """Get or create the singleton settings from environment variables."""
    global _config
    if _config is not None:
        return _config
    _config = _load_from_env()
    return _config


def _load_from_env() -> Settings:
    """Load settings from environment variables."""
    return Settings(
        home=Path(os.environ.get("HYDRA_KEYS_HOME", Path.home() / ".hydra-keys")),
        service_name=os.environ.get("HYDRA_KEYS_SERVICE_NAME", DEFAULT_SERVICE_NAME),
        http_timeout=float(os.environ.get("HYDRA_KEYS_HTTP_TIMEOUT", "30")),
        validate_timeout=float(os.environ.get("HYDRA_KEYS_VALIDATE_TIMEOUT", "5")),
        log_level=os.environ.get("HYDRA_KEYS_LOG_LEVEL", "WARNING").upper(),
    )


def reset_config() -> None:
    """Reset the singleton settings (for testing)."""
    global _config
    _config = None
