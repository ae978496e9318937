"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from suburbs.common.constants import (
    CACHE_KEY_PRECISION,
    CACHE_TTL_SECONDS,
    DEFAULT_REGION,
    MIN_REQUEST_INTERVAL_SECONDS,
    OVERPASS_ENDPOINTS,
    POINT_TOLERANCE_DEGREES,
    QUERY_TIMEOUT_SECONDS,
)
from suburbs.common.errors import ConfigError
from suburbs.common.fs import read_yaml
from suburbs.common.schema import validate_boundaries_config

CONFIG_FILENAME = "boundaries.yml"


@dataclass(frozen=True)
class ResolverSettings:
    endpoints: tuple[str, ...] = OVERPASS_ENDPOINTS
    query_timeout_seconds: int = QUERY_TIMEOUT_SECONDS
    connect_timeout_seconds: float = 10.0
    read_timeout_seconds: float = 40.0
    retry_attempts_per_endpoint: int = 1
    cache_ttl_seconds: float = CACHE_TTL_SECONDS
    cache_key_precision: int = CACHE_KEY_PRECISION
    min_request_interval_seconds: float = MIN_REQUEST_INTERVAL_SECONDS
    tolerance_degrees: float = POINT_TOLERANCE_DEGREES
    default_region: str = DEFAULT_REGION


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    return _deep_merge(base, overlay)


def settings_from_config(cfg: dict) -> ResolverSettings:
    return ResolverSettings(
        endpoints=tuple(cfg["overpass"]["endpoints"]),
        query_timeout_seconds=int(cfg["overpass"]["query_timeout_seconds"]),
        connect_timeout_seconds=float(cfg["http"]["connect_timeout_seconds"]),
        read_timeout_seconds=float(cfg["http"]["read_timeout_seconds"]),
        retry_attempts_per_endpoint=int(cfg["http"]["retry_attempts_per_endpoint"]),
        cache_ttl_seconds=float(cfg["cache"]["ttl_seconds"]),
        cache_key_precision=int(cfg["cache"]["key_precision"]),
        min_request_interval_seconds=float(cfg["rate_limit"]["min_interval_seconds"]),
        tolerance_degrees=float(cfg["assembly"]["tolerance_degrees"]),
        default_region=str(cfg["defaults"]["region"]),
    )


def load_settings(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ResolverSettings:
    overlay_path = overlay_config_dir / CONFIG_FILENAME if overlay_config_dir is not None else None
    cfg = _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path)
    return settings_from_config(validate_boundaries_config(cfg, allow_unknown=allow_unknown))
