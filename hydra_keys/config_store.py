"""
Config Store — load, validate, and atomically persist the config document.

The document lives at {home}/.hydra-keys/config.json. Every save is a full
replacement written to a temp file and renamed over the target, so a crash
mid-write never corrupts the only copy. There is no locking: two CLI
invocations racing on save resolve as last-writer-wins.

Usage:
    from hydra_keys.config_store import ConfigStore

    store = ConfigStore.default()
    cfg = store.load()
    cfg.plugins.append("hydra_keys_anthropic")
    store.save(cfg)
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from types import UnionType
from typing import Any, Union, get_args, get_origin

from pydantic import BaseModel, ValidationError

from hydra_keys.errors import NotInitializedError, SchemaViolationError
from hydra_keys.schema import AppConfig

logger = logging.getLogger(__name__)


class _Missing:
    """Sentinel for dot-path lookups that hit an absent segment."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


class ConfigStore:
    """Owns the config document on disk."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @classmethod
    def default(cls) -> ConfigStore:
        from hydra_keys.config import get_config

        return cls(get_config().config_path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def load(self) -> AppConfig:
        """Read and validate the document.

        Raises:
            NotInitializedError: the document does not exist.
            SchemaViolationError: the document is not valid JSON or fails the schema.
        """
        if not self.exists():
            raise NotInitializedError(str(self._path))

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise SchemaViolationError(f"Config at {self._path} is not valid JSON: {e}") from e

        return validate_document(raw)

    def save(self, config: AppConfig) -> None:
        """Write the full document atomically (temp file + rename)."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(config.to_document(), indent=2) + "\n"

        fd, tmp = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=".config-",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self._path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        logger.debug("Saved config to %s", self._path)


def validate_document(raw: Any) -> AppConfig:
    """Validate a decoded document, mapping pydantic errors to SchemaViolationError."""
    if not isinstance(raw, dict):
        raise SchemaViolationError("Config document must be a JSON object")
    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise SchemaViolationError(f"Invalid config: {problems}") from e


# ----------------------------------------------------------------------
# Dot-path access
# ----------------------------------------------------------------------


def get_value(config: AppConfig, key: str) -> Any:
    """Look up `a.b.c` in the document. Returns MISSING if any segment is absent."""
    current: Any = config.to_document()
    for segment in key.split("."):
        if not isinstance(current, dict) or segment not in current:
            return MISSING
        current = current[segment]
    return current


def set_value(config: AppConfig, key: str, value: Any) -> AppConfig:
    """Return a new config with `a.b.c` set, creating intermediate mappings.

    The edited document is re-validated; nothing is written to disk here.
    """
    doc = config.to_document()
    *parents, leaf = key.split(".")
    target: Any = doc
    for segment in parents:
        if segment not in target:
            target[segment] = {}
        target = target[segment]
        if not isinstance(target, dict):
            raise SchemaViolationError(f"Cannot set {key}: {segment} is not a mapping")
    # extra="ignore" would drop unknown fields silently; report them instead
    if field_type(key) is MISSING:
        raise SchemaViolationError(f"Unknown config key: {key}")
    target[leaf] = value
    return validate_document(doc)


def field_type(key: str) -> Any:
    """The schema type a dot path points at, or MISSING if the schema has no such key.

    Paths are matched against document (camelCase) names. Below a free-form
    mapping such as a provider's `config`, every key is accepted.
    """
    current: Any = AppConfig
    for segment in key.split("."):
        current = _unwrap_optional(current)
        if get_origin(current) is dict:
            current = get_args(current)[1]
        elif isinstance(current, type) and issubclass(current, BaseModel):
            for name, info in current.model_fields.items():
                if (info.alias or name) == segment:
                    current = info.annotation
                    break
            else:
                return MISSING
        elif current is Any:
            return Any
        else:
            return MISSING
    return _unwrap_optional(current)


def _unwrap_optional(tp: Any) -> Any:
    if get_origin(tp) in (Union, UnionType):
        args = [a for a in get_args(tp) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return tp


def parse_value(text: str, key: str | None = None) -> Any:
    """Coerce a command-line string: booleans, numbers, JSON, else the raw string.

    When `key` names a string field, numbers and booleans stay as typed.
    """
    value = _coerce(text)
    if key is not None and isinstance(value, (bool, int, float)) and field_type(key) is str:
        return text
    return value


def _coerce(text: str) -> Any:
    if text == "true":
        return True
    if text == "false":
        return False
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        pass
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text
