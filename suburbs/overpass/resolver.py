"""Suburb boundary resolution against a rotating pool of Overpass endpoints.

Both lookups (by map area and by suburb name) follow the same path:

1. a fresh cache entry is returned without touching the network;
2. otherwise the process-wide minimum interval is checked, and a caller that
   arrives too early gets the stale entry (or nothing) instead of waiting;
3. otherwise each endpoint is tried once, starting at the rotation cursor,
   and the cursor moves on every rate-limit response, HTTP failure, or
   exception;
4. the first successful parse is cached and returned. If every endpoint
   fails, the stale entry (or nothing) is returned.

Expected failures never raise. Callers see an empty list or ``None`` and
skip drawing the overlay.
"""

from __future__ import annotations

import logging
import threading
import time
from types import TracebackType
from typing import Collection

from suburbs.common.cache import TimedCache
from suburbs.common.config_loader import ResolverSettings
from suburbs.common.constants import AREA_RATE_LIMIT_STATUSES, CACHE_MAX_ENTRIES, NAME_RATE_LIMIT_STATUSES
from suburbs.common.geometry import MapRegion
from suburbs.common.http import RETRYABLE_STATUS_CODES, HttpClient, HttpRequestError, RetryConfig, TimeoutConfig
from suburbs.common.logging import LOGGER_NAME, log_event
from suburbs.common.models import BoundingBox, SuburbBoundary
from suburbs.common.throttle import EndpointRotator, MinIntervalRateLimiter
from suburbs.overpass.assembler import parse_relations
from suburbs.overpass.query import NAME_QUERY_STRATEGIES, NameQueryBuilder, build_area_query


def _name_cache_key(lookup: tuple[str, str]) -> str:
    name, region = lookup
    return f"{name.lower()}-{region}"


class BoundaryResolver:
    def __init__(
        self,
        settings: ResolverSettings | None = None,
        *,
        http_client: HttpClient | None = None,
        clock=time.monotonic,
        logger: logging.Logger | None = None,
        name_strategies: tuple[tuple[str, NameQueryBuilder], ...] = NAME_QUERY_STRATEGIES,
    ) -> None:
        self.settings = settings or ResolverSettings()
        self.logger = logger or logging.getLogger(f"{LOGGER_NAME}.overpass")
        self.name_strategies = name_strategies
        self.timeout = TimeoutConfig(
            connect=self.settings.connect_timeout_seconds,
            read=self.settings.read_timeout_seconds,
        )

        self.owns_client = http_client is None
        # Statuses that rotate to the next endpoint are never retried on the same host.
        self.http_client = http_client or HttpClient(
            timeout=self.timeout,
            retry=RetryConfig(max_attempts=self.settings.retry_attempts_per_endpoint),
            retryable_statuses=RETRYABLE_STATUS_CODES - NAME_RATE_LIMIT_STATUSES - AREA_RATE_LIMIT_STATUSES,
        )

        precision = self.settings.cache_key_precision
        self.rotator = EndpointRotator(self.settings.endpoints)
        self.rate_limiter = MinIntervalRateLimiter(self.settings.min_request_interval_seconds, clock=clock)
        self.area_cache: TimedCache[BoundingBox, list[SuburbBoundary]] = TimedCache(
            self.settings.cache_ttl_seconds,
            lambda bbox: bbox.cache_key(precision),
            clock=clock,
            max_entries=CACHE_MAX_ENTRIES,
        )
        self.name_cache: TimedCache[tuple[str, str], SuburbBoundary | None] = TimedCache(
            self.settings.cache_ttl_seconds,
            _name_cache_key,
            clock=clock,
            max_entries=CACHE_MAX_ENTRIES,
        )

    def close(self) -> None:
        if self.owns_client:
            self.http_client.close()

    def __enter__(self) -> "BoundaryResolver":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _fetch(
        self,
        query: str,
        *,
        query_kind: str,
        rate_limit_statuses: Collection[int],
    ) -> list[SuburbBoundary] | None:
        """Run one query across the endpoint pool; ``None`` means every endpoint failed."""
        for attempt, endpoint in enumerate(self.rotator.attempt_order()):
            started = time.monotonic()
            try:
                payload = self.http_client.post_form_json(
                    endpoint,
                    data={"data": query},
                    timeout=self.timeout,
                )
                boundaries = parse_relations(payload, self.settings.tolerance_degrees)
            except HttpRequestError as exc:
                self.rotator.advance()
                rate_limited = exc.status_code in rate_limit_statuses
                log_event(
                    self.logger,
                    f"{'rate limited by' if rate_limited else 'request failed against'} {endpoint}: {exc}",
                    level=logging.WARNING,
                    event="ENDPOINT_RATE_LIMITED" if rate_limited else "ENDPOINT_FAILED",
                    status="retry",
                    endpoint=endpoint,
                    attempt=attempt,
                    query_kind=query_kind,
                    duration_ms=int((time.monotonic() - started) * 1000),
                    error_code=exc.error_code,
                )
                continue
            except Exception as exc:
                self.rotator.advance()
                log_event(
                    self.logger,
                    f"unexpected failure against {endpoint}: {exc!r}",
                    level=logging.WARNING,
                    event="ENDPOINT_FAILED",
                    status="retry",
                    endpoint=endpoint,
                    attempt=attempt,
                    query_kind=query_kind,
                    duration_ms=int((time.monotonic() - started) * 1000),
                    error_code=getattr(exc, "error_code", "UNEXPECTED_ERROR"),
                )
                continue

            log_event(
                self.logger,
                f"fetched {len(boundaries)} boundaries from {endpoint}",
                event="FETCH_OK",
                status="ok",
                endpoint=endpoint,
                attempt=attempt,
                query_kind=query_kind,
                duration_ms=int((time.monotonic() - started) * 1000),
                result_count=len(boundaries),
            )
            return boundaries
        return None

    def resolve_area(self, min_lat: float, min_lng: float, max_lat: float, max_lng: float) -> list[SuburbBoundary]:
        bbox = BoundingBox(min_lat=min_lat, min_lng=min_lng, max_lat=max_lat, max_lng=max_lng)
        key = self.area_cache.key_for(bbox)
        cached = self.area_cache.get(key)
        if cached is not None and self.area_cache.is_fresh(cached):
            log_event(
                self.logger,
                "area cache hit",
                level=logging.DEBUG,
                event="CACHE_HIT",
                cache="area",
                cache_key=key,
                result_count=len(cached.data),
            )
            return list(cached.data)

        if not self.rate_limiter.try_acquire():
            log_event(
                self.logger,
                "area lookup throttled; serving cached data",
                event="RATE_LIMITED_LOCAL",
                status="degraded",
                cache="area",
                cache_key=key,
            )
            return list(cached.data) if cached is not None else []

        query = build_area_query(
            min_lat,
            min_lng,
            max_lat,
            max_lng,
            timeout_seconds=self.settings.query_timeout_seconds,
        )
        boundaries = self._fetch(query, query_kind="area", rate_limit_statuses=AREA_RATE_LIMIT_STATUSES)
        if boundaries is None:
            log_event(
                self.logger,
                "all endpoints failed for area lookup",
                level=logging.ERROR,
                event="ALL_ENDPOINTS_FAILED",
                status="degraded",
                cache="area",
                cache_key=key,
            )
            return list(cached.data) if cached is not None else []

        self.area_cache.put(key, boundaries)
        return list(boundaries)

    def resolve_region(self, region: MapRegion) -> list[SuburbBoundary]:
        return self.resolve_area(*region.to_bbox().as_tuple())

    def resolve_by_name(self, name: str, region: str | None = None) -> SuburbBoundary | None:
        region = region or self.settings.default_region
        key = self.name_cache.key_for((name, region))
        cached = self.name_cache.get(key)
        if cached is not None and self.name_cache.is_fresh(cached):
            log_event(
                self.logger,
                f"name cache hit for {name}",
                level=logging.DEBUG,
                event="CACHE_HIT",
                cache="name",
                cache_key=key,
            )
            return cached.data

        if not self.rate_limiter.try_acquire():
            log_event(
                self.logger,
                f"lookup for {name} throttled; serving cached data",
                event="RATE_LIMITED_LOCAL",
                status="degraded",
                cache="name",
                cache_key=key,
            )
            return cached.data if cached is not None else None

        answered = False
        for kind, builder in self.name_strategies:
            query = builder(name, region, timeout_seconds=self.settings.query_timeout_seconds)
            boundaries = self._fetch(
                query,
                query_kind=f"name:{kind}",
                rate_limit_statuses=NAME_RATE_LIMIT_STATUSES,
            )
            if boundaries is None:
                # The whole pool just failed; another phrasing would hit the same endpoints.
                break
            answered = True
            if boundaries:
                self.name_cache.put(key, boundaries[0])
                return boundaries[0]

        if answered:
            # A definite miss is cached like a hit so repeat lookups stay offline.
            self.name_cache.put(key, None)
            return None

        log_event(
            self.logger,
            f"all endpoints failed for suburb {name}",
            level=logging.ERROR,
            event="ALL_ENDPOINTS_FAILED",
            status="degraded",
            cache="name",
            cache_key=key,
        )
        return cached.data if cached is not None else None


_DEFAULT_RESOLVER: BoundaryResolver | None = None
_DEFAULT_RESOLVER_LOCK = threading.Lock()


def get_default_resolver() -> BoundaryResolver:
    global _DEFAULT_RESOLVER
    with _DEFAULT_RESOLVER_LOCK:
        if _DEFAULT_RESOLVER is None:
            _DEFAULT_RESOLVER = BoundaryResolver()
        return _DEFAULT_RESOLVER


def set_default_resolver(resolver: BoundaryResolver | None) -> None:
    global _DEFAULT_RESOLVER
    with _DEFAULT_RESOLVER_LOCK:
        _DEFAULT_RESOLVER = resolver


def resolve_suburbs_in_region(min_lat: float, min_lng: float, max_lat: float, max_lng: float) -> list[SuburbBoundary]:
    return get_default_resolver().resolve_area(min_lat, min_lng, max_lat, max_lng)


def resolve_suburb_by_name(name: str, region: str | None = None) -> SuburbBoundary | None:
    return get_default_resolver().resolve_by_name(name, region)
