from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

from .defaults import DEFAULT_CONFIG
from .schema import AppConfig, EnvOverrides

_SECTION_KEYS: set[str] = {
    "indexer",
    "debrid",
    "gateway",
    "overseerr",
    "scanner",
    "services",
    "logging",
}

# Flat key (env/CLI) -> path inside the sectioned config.
_FLAT_MAP: dict[str, tuple[str, ...]] = {
    "log_level": ("logging", "level"),
    "log_format": ("logging", "format"),
    "indexer_provider": ("indexer", "provider"),
    "providers": ("debrid", "providers"),
    "torbox_api_key": ("debrid", "torbox_api_key"),
    "torbox_base_url": ("debrid", "torbox_base_url"),
    "rd_access_token": ("debrid", "rd_access_token"),
    "rd_api_base": ("debrid", "rd_api_base"),
    "overseerr_url": ("overseerr", "url"),
    "overseerr_api_key": ("overseerr", "api_key"),
    "overseerr_auth": ("overseerr", "webhook_auth"),
    "poll_interval_seconds": ("overseerr", "poll_interval_seconds"),
    "dead_scan_interval_seconds": ("scanner", "interval_seconds"),
    "run_webhook": ("services", "run_webhook"),
    "run_poller": ("services", "run_poller"),
    "run_dead_scanner": ("services", "run_dead_scanner"),
    "run_dead_scanner_watch": ("services", "run_dead_scanner_watch"),
}

for _backend in ("jackett", "prowlarr"):
    for _key in (
        "url",
        "api_key",
        "categories",
        "indexer_ids",
        "search_limit",
        "timeout_seconds",
        "redirect_max_hops",
    ):
        _FLAT_MAP[f"{_backend}_{_key}"] = ("indexer", _backend, _key)


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """
    Recursively merge `override` into `base` and return `base`.

    Rules:
    - dict + dict => deep merge
    - otherwise => override wins
    """
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, Mapping):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _set_path(target: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    node = target
    for part in path[:-1]:
        node = node.setdefault(part, {})
    node[path[-1]] = value


def _normalize_layer(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Normalize a layer (defaults/YAML/ENV/CLI) into the canonical *sectioned* shape.

    Canonical top-level keys:
    - app_name, environment, http_user_agent
    - indexer.provider, indexer.{jackett,prowlarr}.*
    - debrid.*, gateway.*, overseerr.*, scanner.*, services.*
    - logging.level, logging.format
    """
    out: dict[str, Any] = {}

    # Pass through already sectioned blocks
    for section in _SECTION_KEYS:
        if section in data and isinstance(data[section], Mapping):
            out[section] = deepcopy(dict(data[section]))

    for key in ("app_name", "environment", "http_user_agent"):
        if key in data:
            out[key] = data[key]

    for flat_key, path in _FLAT_MAP.items():
        if flat_key in data:
            _set_path(out, path, data[flat_key])

    return out


def _read_yaml_config(config_path: Path) -> dict[str, Any]:
    raw = config_path.read_text(encoding="utf-8")
    parsed = yaml.safe_load(raw)
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError(f"Config YAML must be a mapping, got: {type(parsed)!r}")
    return parsed


def load_config(
    *,
    config_path: Path | None = None,
    dotenv_path: Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> AppConfig:
    """
    Load configuration with strict precedence:
    defaults < YAML file < env vars < cli overrides

    This function MUST NOT create files or directories (no filesystem side-effects).
    """
    cli_overrides = cli_overrides or {}

    # Load .env first so it participates as "env vars" layer.
    if dotenv_path is not None:
        if not dotenv_path.exists():
            raise FileNotFoundError(dotenv_path)
        load_dotenv(dotenv_path, override=False)

    base = _normalize_layer(deepcopy(DEFAULT_CONFIG))

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(config_path)
        _deep_merge(base, _normalize_layer(_read_yaml_config(config_path)))

    env_layer = _normalize_layer(EnvOverrides().to_update_dict())
    _deep_merge(base, env_layer)

    _deep_merge(base, _normalize_layer(cli_overrides))

    # Validate final merged config (single source of truth).
    return AppConfig.model_validate(base)
