# === NAVMAP v1 ===
# {
#   "module": "ImportKit.ResourceDownload.config.loader",
#   "purpose": "Configuration Loading with File/Env/CLI Precedence.",
#   "sections": [
#     {
#       "id": "read-file",
#       "name": "_read_file",
#       "anchor": "function-read-file",
#       "kind": "function"
#     },
#     {
#       "id": "assign-nested",
#       "name": "_assign_nested",
#       "anchor": "function-assign-nested",
#       "kind": "function"
#     },
#     {
#       "id": "coerce-env-value",
#       "name": "_coerce_env_value",
#       "anchor": "function-coerce-env-value",
#       "kind": "function"
#     },
#     {
#       "id": "merge-env-overrides",
#       "name": "_merge_env_overrides",
#       "anchor": "function-merge-env-overrides",
#       "kind": "function"
#     },
#     {
#       "id": "merge-cli-overrides",
#       "name": "_merge_cli_overrides",
#       "anchor": "function-merge-cli-overrides",
#       "kind": "function"
#     },
#     {
#       "id": "load-config",
#       "name": "load_config",
#       "anchor": "function-load-config",
#       "kind": "function"
#     },
#     {
#       "id": "validate-config-file",
#       "name": "validate_config_file",
#       "anchor": "function-validate-config-file",
#       "kind": "function"
#     },
#     {
#       "id": "export-config-schema",
#       "name": "export_config_schema",
#       "anchor": "function-export-config-schema",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Configuration Loading with File/Env/CLI Precedence

Implements three-level config composition:
1. **File level** (YAML/JSON): base configuration
2. **Environment level**: IMPORTKIT_* prefixed variables override file
3. **CLI level**: programmatic overrides win

Environment variables use double-underscore notation:
  IMPORTKIT_HTTP__TIMEOUT_CONNECT_S=3  →  http.timeout_connect_s=3
  IMPORTKIT_LIST_FIELDS='["gallery"]'  →  list_fields=["gallery"]
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from .models import ResourceDownloadConfig

_LOGGER = logging.getLogger(__name__)

DEFAULT_ENV_PREFIX = "IMPORTKIT_"
# names the config file itself (CLI ``--config`` envvar), not a setting
RESERVED_ENV_KEYS = frozenset({"config"})


def _read_file(path: str) -> dict[str, Any]:
    """
    Read YAML or JSON config file.

    Raises:
        ValueError: If file cannot be read, parsed, or has an unknown suffix
    """
    p = Path(path)
    if not p.exists():
        raise ValueError(f"Config file not found: {path}")

    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ValueError(f"Cannot read config file {path}: {e}") from e

    suffix = p.suffix.lower()

    if suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e
    elif suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e
    else:
        raise ValueError(f"Unsupported file format: {suffix}. Use .yaml or .json")

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return data


def _assign_nested(data: dict[str, Any], dotted_key: str, value: Any) -> None:
    """Assign value to nested dict using dot notation (``http.user_agent``)."""
    keys = dotted_key.split(".")
    current = data

    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]

    current[keys[-1]] = value


def _coerce_env_value(value: str) -> Any:
    """JSON-decode an environment value, falling back to the raw string."""
    try:
        return json.loads(value)
    except (json.JSONDecodeError, ValueError):
        pass

    if value.lower() in ("true", "false"):
        return value.lower() == "true"

    return value


def _merge_env_overrides(data: dict[str, Any], env_prefix: str = DEFAULT_ENV_PREFIX) -> dict[str, Any]:
    """Overlay ``<prefix>*`` environment variables onto the config dict."""
    for env_key, env_value in os.environ.items():
        if not env_key.startswith(env_prefix):
            continue

        relative_key = env_key[len(env_prefix) :].lower()
        if relative_key in RESERVED_ENV_KEYS:
            continue
        dotted_key = relative_key.replace("__", ".")
        coerced_value = _coerce_env_value(env_value)

        _assign_nested(data, dotted_key, coerced_value)
        _LOGGER.debug(f"Environment override: {env_key} → {dotted_key} = {coerced_value!r}")

    return data


def _merge_cli_overrides(
    data: dict[str, Any], cli_overrides: Mapping[str, Any] | None
) -> dict[str, Any]:
    """Recursively merge CLI overrides into base config dict; later values win."""
    if not cli_overrides:
        return data

    for key, value in cli_overrides.items():
        if isinstance(value, Mapping) and isinstance(data.get(key), dict):
            data[key] = _merge_cli_overrides(data[key], value)
        else:
            data[key] = dict(value) if isinstance(value, Mapping) else value
        _LOGGER.debug(f"CLI override: {key} = {value!r}")

    return data


def load_config(
    path: str | None = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    cli_overrides: Mapping[str, Any] | None = None,
) -> ResourceDownloadConfig:
    """
    Load ResourceDownloadConfig from file, environment, and CLI with proper precedence.

    **Precedence:** file < environment < CLI

    Args:
        path: Path to YAML/JSON config file (optional)
        env_prefix: Environment variable prefix (default: IMPORTKIT_)
        cli_overrides: CLI override dict (optional)

    Returns:
        Validated ResourceDownloadConfig instance

    Raises:
        ValueError: If config is invalid or file cannot be read
    """
    data: dict[str, Any] = {}

    if path:
        try:
            data = _read_file(path)
            _LOGGER.info(f"Loaded config from {path}")
        except ValueError as e:
            _LOGGER.error(f"Failed to load config: {e}")
            raise

    data = _merge_env_overrides(data, env_prefix)
    data = _merge_cli_overrides(data, cli_overrides)

    config = ResourceDownloadConfig.model_validate(data)
    _LOGGER.info(f"Configuration validated. Config hash: {config.config_hash()[:8]}...")
    return config


def validate_config_file(path: str) -> bool:
    """
    Validate a config file; used by the ``validate-config`` CLI command.

    Raises:
        ValueError: If invalid (pydantic ValidationError is a ValueError)
    """
    load_config(path=path)
    return True


def export_config_schema() -> dict[str, Any]:
    """Export JSON Schema for ResourceDownloadConfig."""
    return ResourceDownloadConfig.model_json_schema()
