"""Configuration loading from environment variables and folio.toml."""

from __future__ import annotations

import os
import sys
import tempfile
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

from folio.errors import ConfigurationError

_CONFIG_FILENAME = "folio.toml"
_ROOT_MARKERS = (".folio", ".git", _CONFIG_FILENAME)
_EPHEMERAL_DIR = "folio-dev"


@dataclass(frozen=True)
class StoreConfig:
    """How a store root is opened. Immutable once built."""

    root: Path = Path(".")
    auto_init: bool = False
    must_exist: bool = False
    versioning: bool | None = None  # None: use git when it is available
    force_ephemeral: bool = False
    strict: bool = False
    lock_timeout: float | None = None
    stale_after: float = 60.0


@dataclass
class FolioConfig:
    """Top-level folio configuration."""

    store: StoreConfig = field(default_factory=StoreConfig)
    log_level: str = "INFO"


def load_config(config_path: Path | None = None) -> FolioConfig:
    """Load configuration from environment variables and optional folio.toml.

    Priority: environment variables > folio.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = _read_toml(config_path)
    else:
        # Search current dir and ~/.folio/
        for candidate in [Path.cwd() / _CONFIG_FILENAME, Path.home() / ".folio" / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = _read_toml(candidate)
                break

    store_data = file_data.get("store", {})
    lock_timeout = os.getenv("FOLIO_LOCK_TIMEOUT", store_data.get("lock_timeout"))

    store = StoreConfig(
        root=Path(os.getenv("FOLIO_ROOT", store_data.get("root", "."))).expanduser(),
        auto_init=_env_bool("FOLIO_AUTO_INIT", store_data.get("auto_init", False)),
        must_exist=_env_bool("FOLIO_MUST_EXIST", store_data.get("must_exist", False)),
        versioning=_env_bool("FOLIO_VERSIONING", store_data.get("versioning")),
        force_ephemeral=_env_bool("FOLIO_EPHEMERAL", store_data.get("ephemeral", False)),
        strict=_env_bool("FOLIO_STRICT", store_data.get("strict", False)),
        lock_timeout=_seconds("lock_timeout", lock_timeout),
        stale_after=_seconds("stale_after", store_data.get("stale_after", 60.0)),
    )
    return FolioConfig(
        store=store,
        log_level=os.getenv("FOLIO_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )


def _read_toml(path: Path) -> dict:
    try:
        return tomllib.loads(path.read_text())
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"invalid config file {path}: {e}") from e


def _seconds(name: str, value: object) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number of seconds, got {value!r}") from None


def _env_bool(name: str, default: bool | None) -> bool | None:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def resolve_root(path: Path, force_ephemeral: bool = False) -> Path:
    """Where the store actually lives.

    With ``force_ephemeral`` the store is re-rooted under the system temp
    directory (``<tmp>/folio-dev/<name>``) unless it is already there, so
    experiments never touch a real workspace.
    """
    if not force_ephemeral:
        return path

    temp_root = Path(tempfile.gettempdir()).resolve()
    candidate = path.expanduser().resolve()
    if candidate.is_relative_to(temp_root):
        return candidate

    name = path.name
    if name in ("", ".", ".."):
        name = "default"
    return temp_root / _EPHEMERAL_DIR / name


def find_root(start: Path) -> Path:
    """Walk upward from ``start`` to the nearest directory that looks like a store."""
    current = start.resolve()
    for directory in (current, *current.parents):
        if any((directory / marker).exists() for marker in _ROOT_MARKERS):
            return directory
    raise ConfigurationError(f"no store found at or above {start} (looked for .folio, .git, folio.toml)")
