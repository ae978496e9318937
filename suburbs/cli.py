"""CLI entrypoint for suburb boundary lookups."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from suburbs.common.config_loader import ResolverSettings, load_settings
from suburbs.common.constants import EXIT_EMPTY, EXIT_HARD_FAIL, EXIT_SUCCESS
from suburbs.common.errors import BoundaryError
from suburbs.common.fs import write_json
from suburbs.common.geometry import MapRegion
from suburbs.common.logging import build_logger, log_event
from suburbs.common.models import SuburbBoundary
from suburbs.overpass.resolver import BoundaryResolver


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--log-file", default=None)
    parser.add_argument("--format", default="json", choices=["json", "geojson"])
    parser.add_argument("--out", default=None)

    commands = parser.add_subparsers(dest="command", required=True)

    area = commands.add_parser("area", help="suburbs intersecting a bounding box")
    area.add_argument("min_lat", type=float)
    area.add_argument("min_lng", type=float)
    area.add_argument("max_lat", type=float)
    area.add_argument("max_lng", type=float)

    region = commands.add_parser("region", help="suburbs visible in a map region")
    region.add_argument("latitude", type=float)
    region.add_argument("longitude", type=float)
    region.add_argument("latitude_delta", type=float)
    region.add_argument("longitude_delta", type=float)

    name = commands.add_parser("name", help="a single suburb by name")
    name.add_argument("name")
    name.add_argument("--region", default=None)

    return parser.parse_args(argv)


def build_resolver(settings: ResolverSettings) -> BoundaryResolver:
    return BoundaryResolver(settings)


def _render(boundaries: list[SuburbBoundary], output_format: str) -> dict | list:
    if output_format == "geojson":
        return {
            "type": "FeatureCollection",
            "features": [boundary.to_geojson_feature() for boundary in boundaries],
        }
    return [boundary.to_dict() for boundary in boundaries]


def resolve_command(args: argparse.Namespace, resolver: BoundaryResolver) -> list[SuburbBoundary]:
    if args.command == "area":
        return resolver.resolve_area(args.min_lat, args.min_lng, args.max_lat, args.max_lng)
    if args.command == "region":
        region = MapRegion(
            latitude=args.latitude,
            longitude=args.longitude,
            latitude_delta=args.latitude_delta,
            longitude_delta=args.longitude_delta,
        )
        return resolver.resolve_region(region)
    if args.command == "name":
        boundary = resolver.resolve_by_name(args.name, args.region)
        return [boundary] if boundary is not None else []
    raise ValueError(f"Unknown command: {args.command}")


def run_command(args: argparse.Namespace) -> int:
    logger = build_logger(level=args.log_level, log_path=Path(args.log_file) if args.log_file else None)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    settings = load_settings(Path(args.config_dir), overlay_config_dir=overlay_config_dir)

    with build_resolver(settings) as resolver:
        boundaries = resolve_command(args, resolver)

    rendered = _render(boundaries, args.format)
    if args.out:
        write_json(Path(args.out), rendered)
    else:
        sys.stdout.write(json.dumps(rendered, ensure_ascii=False) + "\n")

    log_event(
        logger,
        f"{args.command} lookup finished",
        event="COMMAND_END",
        status="ok" if boundaries else "empty",
        result_count=len(boundaries),
    )
    return EXIT_SUCCESS if boundaries else EXIT_EMPTY


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except BoundaryError as exc:
        sys.stderr.write(f"{exc.error_code}: {exc}\n")
        return EXIT_HARD_FAIL
    except Exception as exc:
        sys.stderr.write(f"UNEXPECTED_ERROR: {exc!r}\n")
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
