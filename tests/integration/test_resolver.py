from __future__ import annotations

import json
from pathlib import Path

import pytest
import requests

from suburbs.common.config_loader import ResolverSettings
from suburbs.common.http import HttpRequestError, RetryableHttpError
from suburbs.overpass import resolver as resolver_module
from suburbs.overpass.resolver import BoundaryResolver
from suburbs.overpass.query import build_name_query

FIXTURES = Path(__file__).resolve().parents[1] / "fixtures" / "overpass"
ENDPOINTS = (
    "https://one.example/api/interpreter",
    "https://two.example/api/interpreter",
    "https://three.example/api/interpreter",
)


def _payload() -> dict:
    return json.loads((FIXTURES / "suburb_relations.json").read_text(encoding="utf-8"))


class FakeClock:
    def __init__(self, now: float = 10_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeHttpClient:
    """Answers per endpoint: a dict payload, or an exception instance to raise."""

    def __init__(self, answers: dict):
        self.answers = answers
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    def post_form_json(self, url: str, *, data: dict, **_kwargs):
        self.calls.append((url, data["data"]))
        answer = self.answers[url]
        if isinstance(answer, BaseException):
            raise answer
        return answer

    def close(self):
        self.closed = True


def _resolver(answers: dict, clock: FakeClock | None = None, **kwargs) -> tuple[BoundaryResolver, FakeHttpClient, FakeClock]:
    client = FakeHttpClient(answers)
    clock = clock or FakeClock()
    resolver = BoundaryResolver(ResolverSettings(endpoints=ENDPOINTS), http_client=client, clock=clock, **kwargs)
    return resolver, client, clock


def _all_ok(payload: dict) -> dict:
    return {endpoint: payload for endpoint in ENDPOINTS}


@pytest.mark.integration
def test_resolve_area_returns_parsed_boundaries():
    resolver, client, _clock = _resolver(_all_ok(_payload()))

    boundaries = resolver.resolve_area(-33.9, 150.85, -33.85, 150.95)

    assert [b.name for b in boundaries] == ["Greenfield Park"]
    assert len(client.calls) == 1
    url, query = client.calls[0]
    assert url == ENDPOINTS[0]
    assert "(-33.9,150.85,-33.85,150.95)" in query


@pytest.mark.integration
def test_resolve_area_cache_hit_for_boxes_rounding_to_same_key():
    resolver, client, clock = _resolver(_all_ok(_payload()))

    first = resolver.resolve_area(-33.9, 150.85, -33.85, 150.95)
    clock.now += 60
    second = resolver.resolve_area(-33.90001, 150.85002, -33.84999, 150.94998)

    assert first == second
    assert len(client.calls) == 1


@pytest.mark.integration
def test_resolve_area_refetches_after_ttl():
    resolver, client, clock = _resolver(_all_ok(_payload()))

    resolver.resolve_area(-33.9, 150.85, -33.85, 150.95)
    clock.now += 301
    resolver.resolve_area(-33.9, 150.85, -33.85, 150.95)

    assert len(client.calls) == 2


@pytest.mark.integration
def test_rate_limit_degrades_to_empty_without_network():
    resolver, client, clock = _resolver(_all_ok(_payload()))

    assert resolver.resolve_area(-33.9, 150.85, -33.85, 150.95)
    clock.now += 1
    assert resolver.resolve_area(10.0, 10.0, 11.0, 11.0) == []
    assert resolver.resolve_by_name("Greenfield Park") is None

    assert len(client.calls) == 1


@pytest.mark.integration
def test_rate_limit_serves_stale_entry_when_throttled():
    resolver, client, clock = _resolver(_all_ok(_payload()))

    first = resolver.resolve_area(-33.9, 150.85, -33.85, 150.95)
    clock.now += 400
    resolver.resolve_by_name("Greenfield Park")
    clock.now += 1
    again = resolver.resolve_area(-33.9, 150.85, -33.85, 150.95)

    assert again == first
    assert len(client.calls) == 2


@pytest.mark.integration
def test_resolve_by_name_rotates_past_rate_limited_endpoint():
    answers = _all_ok(_payload())
    answers[ENDPOINTS[0]] = RetryableHttpError("Retryable HTTP status: 429", status_code=429)
    resolver, client, _clock = _resolver(answers)

    boundary = resolver.resolve_by_name("Greenfield Park", "New South Wales")

    assert boundary is not None and boundary.name == "Greenfield Park"
    assert [url for url, _query in client.calls] == [ENDPOINTS[0], ENDPOINTS[1]]
    assert resolver.rotator.index == 1
    assert client.calls[0][1] == build_name_query("Greenfield Park", "New South Wales")


@pytest.mark.integration
def test_gateway_timeout_and_transport_errors_rotate():
    answers = _all_ok(_payload())
    answers[ENDPOINTS[0]] = RetryableHttpError("Retryable HTTP status: 504", status_code=504)
    answers[ENDPOINTS[1]] = requests.ConnectTimeout("timed out")
    resolver, client, _clock = _resolver(answers)

    boundaries = resolver.resolve_area(-33.9, 150.85, -33.85, 150.95)

    assert [b.name for b in boundaries] == ["Greenfield Park"]
    assert [url for url, _query in client.calls] == list(ENDPOINTS)
    assert resolver.rotator.index == 2


@pytest.mark.integration
def test_unparseable_payload_counts_as_endpoint_failure():
    answers = _all_ok(_payload())
    answers[ENDPOINTS[0]] = {"elements": [{"type": "relation", "tags": {"name": "Broken"}, "members": [{"type": "way", "role": "outer", "geometry": [{"lat": "x"}]}]}]}
    resolver, _client, _clock = _resolver(answers)

    boundaries = resolver.resolve_area(-33.9, 150.85, -33.85, 150.95)

    assert [b.name for b in boundaries] == ["Greenfield Park"]
    assert resolver.rotator.index == 1


@pytest.mark.integration
def test_next_call_starts_from_advanced_cursor():
    answers = _all_ok(_payload())
    answers[ENDPOINTS[0]] = HttpRequestError("HTTP status: 500", status_code=500)
    resolver, client, clock = _resolver(answers)

    resolver.resolve_area(-33.9, 150.85, -33.85, 150.95)
    clock.now += 5
    resolver.resolve_area(-34.9, 150.85, -34.85, 150.95)

    assert [url for url, _query in client.calls] == [ENDPOINTS[0], ENDPOINTS[1], ENDPOINTS[1]]


@pytest.mark.integration
def test_exhaustion_returns_stale_entry():
    answers = _all_ok(_payload())
    resolver, client, clock = _resolver(answers)
    first = resolver.resolve_area(-33.9, 150.85, -33.85, 150.95)

    failure = RetryableHttpError("Retryable HTTP status: 503", status_code=503)
    client.answers = {endpoint: failure for endpoint in ENDPOINTS}
    clock.now += 301

    assert resolver.resolve_area(-33.9, 150.85, -33.85, 150.95) == first
    assert len(client.calls) == 1 + len(ENDPOINTS)


@pytest.mark.integration
def test_exhaustion_without_cache_returns_empty_and_none():
    failure = requests.ConnectionError("down")
    resolver, client, clock = _resolver({endpoint: failure for endpoint in ENDPOINTS})

    assert resolver.resolve_area(-33.9, 150.85, -33.85, 150.95) == []
    clock.now += 5
    assert resolver.resolve_by_name("Greenfield Park") is None
    # One pass over the pool per public call; a failed pool ends the name strategies.
    assert len(client.calls) == len(ENDPOINTS) * 2
    assert [url for url, _query in client.calls[len(ENDPOINTS):]] == [ENDPOINTS[0], ENDPOINTS[1], ENDPOINTS[2]]


@pytest.mark.integration
def test_resolve_by_name_tries_next_strategy_when_first_is_empty():
    resolver, client, _clock = _resolver(_all_ok(_payload()))

    def answer_second(url, *, data, **_kwargs):
        client.calls.append((url, data["data"]))
        return _payload() if "locality" in data["data"] else {"elements": []}

    client.post_form_json = answer_second

    boundary = resolver.resolve_by_name("Greenfield Park")

    assert boundary is not None and boundary.name == "Greenfield Park"
    assert len(client.calls) == 2
    assert resolver.rotator.index == 0


@pytest.mark.integration
def test_resolve_by_name_caches_definite_miss():
    resolver, client, clock = _resolver(_all_ok({"elements": []}))

    assert resolver.resolve_by_name("Nowhere") is None
    clock.now += 10
    assert resolver.resolve_by_name("NOWHERE") is None

    assert len(client.calls) == 2
    entry = resolver.name_cache.get("nowhere-New South Wales")
    assert entry is not None and entry.data is None


@pytest.mark.integration
def test_resolve_region_uses_map_viewport():
    from suburbs.common.geometry import MapRegion

    resolver, client, _clock = _resolver(_all_ok(_payload()))

    boundaries = resolver.resolve_region(MapRegion(-33.88, 150.9, 0.04, 0.04))

    assert [b.name for b in boundaries] == ["Greenfield Park"]
    assert len(client.calls) == 1


@pytest.mark.integration
def test_resolver_closes_only_owned_client():
    resolver, client, _clock = _resolver(_all_ok(_payload()))
    with resolver:
        pass
    assert client.closed is False


@pytest.mark.integration
def test_module_level_api_uses_default_resolver():
    resolver, _client, _clock = _resolver(_all_ok(_payload()))
    resolver_module.set_default_resolver(resolver)
    try:
        assert resolver_module.resolve_suburbs_in_region(-33.9, 150.85, -33.85, 150.95)[0].name == "Greenfield Park"
        assert resolver_module.get_default_resolver() is resolver
        # Same instant as the area lookup, so the shared limiter refuses it.
        assert resolver_module.resolve_suburb_by_name("Greenfield Park") is None
    finally:
        resolver_module.set_default_resolver(None)


@pytest.mark.integration
def test_resolve_by_name_pool_failure_stops_after_one_pass():
    failure = requests.ConnectTimeout("timed out")
    resolver, client, _clock = _resolver({endpoint: failure for endpoint in ENDPOINTS})

    assert resolver.resolve_by_name("Wakeley") is None

    assert [url for url, _query in client.calls] == list(ENDPOINTS)
    assert all("locality" not in query for _url, query in client.calls)
    assert resolver.name_cache.get("wakeley-New South Wales") is None


@pytest.mark.integration
def test_resolve_by_name_throttled_serves_stale_boundary():
    resolver, client, clock = _resolver(_all_ok(_payload()))

    first = resolver.resolve_by_name("Greenfield Park")
    clock.now += 400
    resolver.resolve_area(-33.9, 150.85, -33.85, 150.95)
    clock.now += 1
    again = resolver.resolve_by_name("Greenfield Park")

    assert first is not None
    assert again == first
    assert len(client.calls) == 2


@pytest.mark.integration
def test_resolve_by_name_exhaustion_serves_stale_boundary():
    resolver, client, clock = _resolver(_all_ok(_payload()))
    first = resolver.resolve_by_name("Greenfield Park")

    failure = RetryableHttpError("Retryable HTTP status: 503", status_code=503)
    client.answers = {endpoint: failure for endpoint in ENDPOINTS}
    clock.now += 301

    assert first is not None
    assert resolver.resolve_by_name("Greenfield Park") == first
    assert len(client.calls) == 1 + len(ENDPOINTS)


@pytest.mark.integration
def test_resolve_by_name_rotates_past_gateway_timeout():
    answers = _all_ok(_payload())
    answers[ENDPOINTS[0]] = RetryableHttpError("Retryable HTTP status: 504", status_code=504)
    resolver, client, _clock = _resolver(answers)

    boundary = resolver.resolve_by_name("Greenfield Park")

    assert boundary is not None and boundary.name == "Greenfield Park"
    assert [url for url, _query in client.calls] == [ENDPOINTS[0], ENDPOINTS[1]]
    assert resolver.rotator.index == 1


@pytest.mark.integration
def test_resolve_by_name_stale_cached_miss_stays_none():
    resolver, client, clock = _resolver(_all_ok({"elements": []}))
    assert resolver.resolve_by_name("Nowhere") is None

    failure = requests.ConnectionError("down")
    client.answers = {endpoint: failure for endpoint in ENDPOINTS}
    clock.now += 301
    assert resolver.resolve_by_name("Nowhere") is None

    clock.now += 1
    assert resolver.resolve_by_name("Nowhere") is None
    # Two strategies, then one failed pass, then a throttled call with no I/O.
    assert len(client.calls) == 2 + len(ENDPOINTS)


@pytest.mark.integration
def test_owned_client_leaves_rotating_statuses_to_the_resolver():
    resolver = BoundaryResolver(ResolverSettings(endpoints=ENDPOINTS, retry_attempts_per_endpoint=3))
    try:
        assert 429 not in resolver.http_client.retryable_statuses
        assert 504 not in resolver.http_client.retryable_statuses
        assert 503 in resolver.http_client.retryable_statuses
        assert resolver.area_cache.max_entries == resolver.name_cache.max_entries
    finally:
        resolver.close()
