"""Overpass QL builders for suburb boundary lookups."""

from __future__ import annotations

from typing import Callable, Iterable

from suburbs.common.constants import QUERY_TIMEOUT_SECONDS, REGION_ADMIN_LEVEL, SUBURB_ADMIN_LEVELS

NameQueryBuilder = Callable[..., str]


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _level_pattern(levels: Iterable[str]) -> str:
    return "|".join(str(level) for level in levels)


def _suburb_relation_filters(clause: str, levels: Iterable[str], name_filter: str = "") -> str:
    return (
        f'  relation{name_filter}["boundary"="administrative"]["admin_level"~"{_level_pattern(levels)}"]({clause});\n'
        f'  relation{name_filter}["boundary"="suburb"]({clause});\n'
        f'  relation{name_filter}["place"="suburb"]({clause});\n'
    )


def build_area_query(
    min_lat: float,
    min_lng: float,
    max_lat: float,
    max_lng: float,
    *,
    timeout_seconds: int = QUERY_TIMEOUT_SECONDS,
    admin_levels: Iterable[str] = SUBURB_ADMIN_LEVELS,
) -> str:
    bbox = f"{min_lat},{min_lng},{max_lat},{max_lng}"
    return (
        f"[out:json][timeout:{int(timeout_seconds)}];\n"
        "(\n"
        f"{_suburb_relation_filters(bbox, admin_levels)}"
        ");\n"
        "out geom;"
    )


def build_name_query(
    suburb_name: str,
    region_name: str,
    *,
    timeout_seconds: int = QUERY_TIMEOUT_SECONDS,
    admin_levels: Iterable[str] = SUBURB_ADMIN_LEVELS,
    region_admin_level: str = REGION_ADMIN_LEVEL,
) -> str:
    name_filter = f'["name"={_quote(suburb_name)}]'
    return (
        f"[out:json][timeout:{int(timeout_seconds)}];\n"
        f'area["name"={_quote(region_name)}]["admin_level"="{region_admin_level}"]->.region;\n'
        "(\n"
        f"{_suburb_relation_filters('area.region', admin_levels, name_filter=name_filter)}"
        ");\n"
        "out geom;"
    )


def build_locality_name_query(
    suburb_name: str,
    region_name: str,
    *,
    timeout_seconds: int = QUERY_TIMEOUT_SECONDS,
    region_admin_level: str = REGION_ADMIN_LEVEL,
) -> str:
    """Looser phrasing for regions that tag suburbs as localities or at admin level 8."""
    name_filter = f'["name"={_quote(suburb_name)}]'
    return (
        f"[out:json][timeout:{int(timeout_seconds)}];\n"
        f'area["name"={_quote(region_name)}]["admin_level"="{region_admin_level}"]->.region;\n'
        "(\n"
        f'  relation{name_filter}["boundary"="administrative"]["admin_level"~"8|9|10"](area.region);\n'
        f'  relation{name_filter}["place"~"suburb|locality"](area.region);\n'
        ");\n"
        "out geom;"
    )


# Tried in order; resolution stops at the first strategy that yields a boundary.
NAME_QUERY_STRATEGIES: tuple[tuple[str, NameQueryBuilder], ...] = (
    ("suburb", build_name_query),
    ("locality", build_locality_name_query),
)
