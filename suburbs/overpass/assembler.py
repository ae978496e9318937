"""Assemble Overpass relation members into suburb boundary rings.

A boundary relation arrives as a bag of ``outer`` way members, each an open
polyline with no guaranteed order or direction relative to the others. The
assembler chains them greedily: starting from the first way, it repeatedly
looks for the first unused way whose start or end touches the current chain
end, appending it forwards or reversed. When nothing connects, whatever has
been chained so far is returned as a partial ring.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from suburbs.common.constants import POINT_TOLERANCE_DEGREES
from suburbs.common.models import Point, SuburbBoundary

Segment = list[Point]


def points_match(a: Point, b: Point, tolerance: float = POINT_TOLERANCE_DEGREES) -> bool:
    return abs(a[0] - b[0]) < tolerance and abs(a[1] - b[1]) < tolerance


def join_segments(segments: Sequence[Sequence[Point]], tolerance: float = POINT_TOLERANCE_DEGREES) -> list[Point]:
    if not segments:
        return []
    if len(segments) == 1:
        return list(segments[0])

    result: list[Point] = list(segments[0])
    used = {0}

    while result and len(used) < len(segments):
        last_point = result[-1]
        found = False

        for idx, segment in enumerate(segments):
            if idx in used or not segment:
                continue

            if points_match(last_point, segment[0], tolerance):
                result.extend(segment[1:])
            elif points_match(last_point, segment[-1], tolerance):
                result.extend(reversed(segment[:-1]))
            else:
                continue

            used.add(idx)
            found = True
            break

        if not found:
            break

    return result


def _member_points(geometry: Iterable[dict[str, Any]]) -> Segment:
    return [(float(point["lat"]), float(point["lon"])) for point in geometry]


def outer_segments(relation: dict[str, Any]) -> list[Segment]:
    segments: list[Segment] = []
    for member in relation.get("members") or []:
        if member.get("type") != "way" or member.get("role") != "outer":
            continue
        geometry = member.get("geometry")
        if not geometry:
            continue
        segments.append(_member_points(geometry))
    return segments


def parse_relations(payload: dict[str, Any], tolerance: float = POINT_TOLERANCE_DEGREES) -> list[SuburbBoundary]:
    boundaries: list[SuburbBoundary] = []
    for element in payload.get("elements") or []:
        if element.get("type") != "relation":
            continue
        name = (element.get("tags") or {}).get("name")
        if not name:
            continue

        segments = outer_segments(element)
        if not segments:
            continue

        ring = join_segments(segments, tolerance)
        if ring:
            boundaries.append(SuburbBoundary(name=str(name), coordinates=tuple(ring)))
    return boundaries
