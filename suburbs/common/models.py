"""Data models shared by the query, assembly and resolver layers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from suburbs.common.constants import CACHE_KEY_PRECISION

Point = tuple[float, float]


@dataclass(frozen=True)
class SuburbBoundary:
    name: str
    coordinates: tuple[Point, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "coordinates": [{"latitude": lat, "longitude": lon} for lat, lon in self.coordinates],
        }

    def to_geojson_feature(self) -> dict[str, Any]:
        ring = [[lon, lat] for lat, lon in self.coordinates]
        if ring and ring[0] != ring[-1]:
            ring.append(list(ring[0]))
        return {
            "type": "Feature",
            "properties": {"name": self.name},
            "geometry": {"type": "Polygon", "coordinates": [ring]},
        }


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float

    def cache_key(self, precision: int = CACHE_KEY_PRECISION) -> str:
        return ",".join(
            f"{value:.{precision}f}" for value in (self.min_lat, self.min_lng, self.max_lat, self.max_lng)
        )

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.min_lat, self.min_lng, self.max_lat, self.max_lng)
