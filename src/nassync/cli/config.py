"""Configuration utilities for nassync CLI.

Settings are merged from three layers, later ones winning:

1. JSON config file (~/.nassync/config.json), lowercase keys
2. .env file (KEY=VALUE lines), uppercase keys
3. Process environment, uppercase keys

Source folders come from a "sources" list in JSON, or from SOURCE_1,
SOURCE_2, ... variables taken in numeric order. A layer defining any source
replaces the sources of the layers below it.
"""

from __future__ import annotations

import json
import os
import re
import shlex
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from nassync.core.config import ConfigurationError, SyncSettings

SOURCE_KEY_RE = re.compile(r"^SOURCE_(\d+)$")

# Environment variable -> SyncSettings field
ENV_KEYS: dict[str, str] = {
    "NAS_HOST": "nas_host",
    "DESTINATION": "destination",
    "MAX_ATTEMPTS": "max_attempts",
    "BASE_DELAY": "base_delay",
    "USE_CHECKSUM": "use_checksum",
    "EXHAUSTIVE_CHECKSUM": "exhaustive_checksum",
    "PER_FILE": "per_file",
    "PARALLEL_JOBS": "parallel_jobs",
    "COMPRESS": "compress",
    "CHECKSUM_CACHE": "cache_file",
    "LOG_FILE": "log_file",
    "ERROR_LOG": "error_log_file",
    "EXCLUDE": "exclude",
    "RSYNC_EXTRA_OPTS": "rsync_extra_opts",
}

BOOL_FIELDS = {"use_checksum", "exhaustive_checksum", "per_file", "compress"}
INT_FIELDS = {"max_attempts", "parallel_jobs"}
FLOAT_FIELDS = {"base_delay"}
PATH_FIELDS = {"cache_file", "log_file", "error_log_file"}

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off", ""}


def get_config_dir() -> Path:
    """Get the configuration directory for nassync.

    Returns:
        Path to ~/.nassync.
    """
    return Path.home() / ".nassync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_default_cache_file() -> Path:
    """Get the default checksum cache location."""
    return get_config_dir() / "checksums.cache"


def load_config(config_file: Path | None = None) -> dict[str, Any]:
    """Load configuration from the JSON config file."""
    config_file = config_file or get_config_file()
    if config_file.exists():
        try:
            return dict(json.loads(config_file.read_text()))
        except ValueError as e:
            raise ConfigurationError(f"Invalid config file {config_file}: {e}") from e
    return {}


def save_config(config: dict[str, Any], config_file: Path | None = None) -> None:
    """Save configuration to the JSON config file."""
    config_file = config_file or get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file.

    Blank lines and lines starting with # are skipped; an optional leading
    "export " is accepted; surrounding quotes are removed from values.

    Args:
        path: .env file location.

    Returns:
        Mapping of variable names to raw values.
    """
    env_vars: dict[str, str] = {}
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("export "):
                line = line[len("export "):]
            if "=" in line:
                key, value = line.split("=", 1)
                value = value.strip()
                if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                    value = value[1:-1]
                env_vars[key.strip()] = value
    return env_vars


def sources_from_env(env: Mapping[str, str]) -> list[str]:
    """Collect SOURCE_<n> values in numeric order, skipping empty ones."""
    numbered: list[tuple[int, str]] = []
    for key, value in env.items():
        match = SOURCE_KEY_RE.match(key)
        if match and value.strip():
            numbered.append((int(match.group(1)), value.strip()))
    return [value for _, value in sorted(numbered)]


def values_from_env(env: Mapping[str, str]) -> dict[str, Any]:
    """Translate uppercase variables into settings field values (raw strings)."""
    values: dict[str, Any] = {
        field_name: env[key] for key, field_name in ENV_KEYS.items() if key in env
    }
    sources = sources_from_env(env)
    if sources:
        values["sources"] = sources
    return values


def _coerce(field_name: str, value: Any) -> Any:
    """Convert a raw config value to the type of its settings field."""
    if value is None:
        return None
    try:
        if field_name in BOOL_FIELDS:
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in TRUE_VALUES:
                return True
            if text in FALSE_VALUES:
                return False
            raise ValueError(f"not a boolean: {value!r}")
        if field_name in INT_FIELDS:
            return int(value)
        if field_name in FLOAT_FIELDS:
            return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid value for {field_name}: {value!r}") from e

    if field_name in PATH_FIELDS:
        return Path(str(value)).expanduser() if str(value).strip() else None
    if field_name == "exclude" and isinstance(value, str):
        return [p.strip() for p in value.split(",") if p.strip()]
    if field_name == "rsync_extra_opts" and isinstance(value, str):
        return shlex.split(value)
    return value


def build_settings(values: Mapping[str, Any]) -> SyncSettings:
    """Create SyncSettings from merged raw values.

    Args:
        values: Field name -> raw value.

    Returns:
        SyncSettings (not yet validated).

    Raises:
        ConfigurationError: If a value cannot be converted.
    """
    kwargs: dict[str, Any] = {}
    for field_name, value in values.items():
        if field_name in ("nas_host", "destination", "sources"):
            continue
        if field_name in ENV_KEYS.values():
            coerced = _coerce(field_name, value)
            # An empty CHECKSUM_CACHE disables persistence
            if coerced is not None or field_name == "cache_file":
                kwargs[field_name] = coerced

    if "cache_file" not in kwargs:
        kwargs["cache_file"] = get_default_cache_file()

    return SyncSettings(
        nas_host=str(values.get("nas_host") or ""),
        destination=str(values.get("destination") or ""),
        sources=[Path(s) for s in values.get("sources") or []],
        **kwargs,
    )


def load_settings(
    config_file: Path | None = None,
    env_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> SyncSettings:
    """Load and merge every configuration layer.

    Args:
        config_file: JSON config file (default ~/.nassync/config.json).
        env_file: .env file (default ./.env when present).
        environ: Process environment (default os.environ).

    Returns:
        Merged SyncSettings.
    """
    values: dict[str, Any] = dict(load_config(config_file))

    if env_file is None and Path(".env").is_file():
        env_file = Path(".env")
    if env_file is not None:
        if not env_file.is_file():
            raise ConfigurationError(f"The .env file {env_file} does not exist")
        values.update(values_from_env(parse_env_file(env_file)))

    values.update(values_from_env(os.environ if environ is None else environ))
    return build_settings(values)
