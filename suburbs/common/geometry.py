"""Geometry helpers."""

from __future__ import annotations

from dataclasses import dataclass

from suburbs.common.models import BoundingBox


@dataclass(frozen=True)
class MapRegion:
    latitude: float
    longitude: float
    latitude_delta: float
    longitude_delta: float

    def to_bbox(self) -> BoundingBox:
        half_lat = abs(self.latitude_delta) / 2
        half_lng = abs(self.longitude_delta) / 2
        return BoundingBox(
            min_lat=self.latitude - half_lat,
            min_lng=self.longitude - half_lng,
            max_lat=self.latitude + half_lat,
            max_lng=self.longitude + half_lng,
        )
