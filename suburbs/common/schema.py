"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from suburbs.common.errors import ConfigError

SECTION_KEYS = {
    "overpass": {"endpoints", "query_timeout_seconds"},
    "http": {"connect_timeout_seconds", "read_timeout_seconds", "retry_attempts_per_endpoint"},
    "cache": {"ttl_seconds", "key_precision"},
    "rate_limit": {"min_interval_seconds"},
    "assembly": {"tolerance_degrees"},
    "defaults": {"region"},
}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive_number(value: object, ctx: str, *, allow_zero: bool = False) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{ctx} must be a number")
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigError(f"{ctx} must be {'non-negative' if allow_zero else 'positive'}")


def validate_boundaries_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    if not isinstance(cfg, dict):
        raise ConfigError("boundaries config must be a mapping")

    _assert_required_keys(cfg, set(SECTION_KEYS), "boundaries config")
    _assert_no_unknown_keys(cfg, set(SECTION_KEYS), "boundaries config", allow_unknown)
    for section, keys in SECTION_KEYS.items():
        if not isinstance(cfg[section], dict):
            raise ConfigError(f"{section} must be a mapping")
        _assert_required_keys(cfg[section], keys, section)
        _assert_no_unknown_keys(cfg[section], keys, section, allow_unknown)

    endpoints = cfg["overpass"]["endpoints"]
    if not isinstance(endpoints, list) or not endpoints:
        raise ConfigError("overpass.endpoints must be a non-empty list")
    for idx, endpoint in enumerate(endpoints):
        if not isinstance(endpoint, str) or not endpoint.startswith(("http://", "https://")):
            raise ConfigError(f"overpass.endpoints[{idx}] must be an http(s) URL")
    if len(set(endpoints)) != len(endpoints):
        raise ConfigError("overpass.endpoints must not contain duplicates")

    _assert_positive_number(cfg["overpass"]["query_timeout_seconds"], "overpass.query_timeout_seconds")
    _assert_positive_number(cfg["http"]["connect_timeout_seconds"], "http.connect_timeout_seconds")
    _assert_positive_number(cfg["http"]["read_timeout_seconds"], "http.read_timeout_seconds")
    attempts = cfg["http"]["retry_attempts_per_endpoint"]
    if isinstance(attempts, bool) or not isinstance(attempts, int) or attempts < 1:
        raise ConfigError("http.retry_attempts_per_endpoint must be an integer >= 1")
    _assert_positive_number(cfg["cache"]["ttl_seconds"], "cache.ttl_seconds", allow_zero=True)
    precision = cfg["cache"]["key_precision"]
    if isinstance(precision, bool) or not isinstance(precision, int) or precision < 0:
        raise ConfigError("cache.key_precision must be a non-negative integer")
    _assert_positive_number(cfg["rate_limit"]["min_interval_seconds"], "rate_limit.min_interval_seconds", allow_zero=True)
    _assert_positive_number(cfg["assembly"]["tolerance_degrees"], "assembly.tolerance_degrees")
    if not isinstance(cfg["defaults"]["region"], str) or not cfg["defaults"]["region"].strip():
        raise ConfigError("defaults.region must be a non-empty string")

    return cfg
