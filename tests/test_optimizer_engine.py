import threading
from datetime import datetime, timezone

import httpx
import pytest

from transit_optimizer.models.domain import (
    AccessibleStop,
    CoverageGapPolicy,
    DataQuality,
    RouteCandidate,
    ScoredRoute,
    Severity,
    Side,
)
from transit_optimizer.services.cache import CacheFacade, MemoryCache
from transit_optimizer.services.optimizer.engine import OptimizerConfig, RouteOptimizer, rank_routes
from transit_optimizer.services.optimizer.errors import NoTransitCoverageError, ProviderUnavailableError
from transit_optimizer.services.providers import PointRouter, TomTomClient

from fakes import DESTINATION, ORIGIN, DummyRouter, DummyStops, DummyZones, default_stops, make_stop

FIXED_NOW = datetime(2026, 1, 15, 8, 30, tzinfo=timezone.utc)


def _optimizer(stops: DummyStops, **config) -> RouteOptimizer:
    return RouteOptimizer(
        OptimizerConfig(**config),
        stop_discovery=stops,
        router=DummyRouter(),
        zone_source=DummyZones(),
        clock=lambda: FIXED_NOW,
    )


def test_optimize_returns_ranked_direct_routes():
    result = _optimizer(DummyStops(default_stops())).optimize(ORIGIN, DESTINATION, origin_label="Home")

    assert result.routes
    scores = [route.score for route in result.routes]
    assert scores == sorted(scores, reverse=True)
    assert {route.candidate.route_id for route in result.routes} <= {"5", "12"}
    assert all(route.candidate.transfer_count == 0 for route in result.routes)
    assert result.anomalies == ()
    assert result.origin.label == "Home"
    assert result.origin.zone.zone_type == "urban"
    assert result.metadata["stages"] == [
        "discover_stops",
        "filter_accessibility",
        "enrich_zones",
        "generate_candidates",
        "score_and_rank",
        "done",
    ]
    assert result.metadata["timestamp"] == FIXED_NOW.isoformat()


def test_total_duration_is_sum_of_components():
    result = _optimizer(DummyStops(default_stops())).optimize(ORIGIN, DESTINATION)

    for route in result.routes:
        candidate = route.candidate
        assert candidate.total_duration_seconds == pytest.approx(
            candidate.origin_stop.walking_duration_seconds
            + candidate.transit_duration_seconds
            + candidate.dest_stop.walking_duration_seconds
            + candidate.transfer_count * candidate.transfer_penalty_seconds
            + candidate.traffic_delay_seconds
        )
        assert 0 <= route.score <= 100


def test_results_are_truncated_and_deterministic():
    optimizer = _optimizer(DummyStops(default_stops()), max_results_returned=2)

    first = optimizer.optimize(ORIGIN, DESTINATION)
    second = optimizer.optimize(ORIGIN, DESTINATION)

    assert len(first.routes) == 2
    assert first == second


def test_fail_fast_raises_when_destination_has_no_stops():
    stops = DummyStops({ORIGIN: default_stops()[ORIGIN]})

    with pytest.raises(NoTransitCoverageError) as excinfo:
        _optimizer(stops).optimize(ORIGIN, DESTINATION)

    assert excinfo.value.side == "destination"
    assert excinfo.value.radii == (1000, 2000)
    assert [radius for coord, radius in stops.calls if coord == DESTINATION] == [1000, 2000]


def test_synthetic_fallback_flags_anomaly_and_degrades_routes():
    stops = DummyStops({ORIGIN: default_stops()[ORIGIN]})

    result = _optimizer(stops, coverage_gap_policy=CoverageGapPolicy.SYNTHETIC_FALLBACK).optimize(
        ORIGIN, DESTINATION
    )

    anomaly = result.anomalies[0]
    assert anomaly.code == "NO_TRANSIT_COVERAGE"
    assert anomaly.severity is Severity.ERROR
    assert result.destination.synthetic_stops
    assert len(result.routes) == 1
    assert result.routes[0].candidate.route_id == "transfer"
    assert result.routes[0].candidate.data_quality is DataQuality.DEGRADED
    assert result.metadata["fallback_candidate_used"] is True


def test_radius_is_widened_before_giving_up():
    stops = DummyStops(default_stops(), from_radius=2000)

    result = _optimizer(stops).optimize(ORIGIN, DESTINATION)

    assert result.origin.search_radius_meters == 2000
    assert "SEARCH_RADIUS_WIDENED" in [w.code for w in result.warnings]
    assert result.routes


def test_discovery_failure_at_first_radius_is_a_warning():
    stops = DummyStops(default_stops(), failing_radii={1000})

    result = _optimizer(stops).optimize(ORIGIN, DESTINATION)

    codes = [w.code for w in result.warnings]
    assert codes.count("STOP_DISCOVERY_FAILED") == 2
    assert result.routes


def test_config_requires_a_radius():
    with pytest.raises(ValueError):
        OptimizerConfig(radius_escalation_steps=())


def test_discovery_outage_at_every_radius_is_a_provider_error():
    stops = DummyStops(default_stops(), failing_radii={1000, 2000})

    with pytest.raises(ProviderUnavailableError) as excinfo:
        _optimizer(stops).optimize(ORIGIN, DESTINATION)

    assert excinfo.value.provider == "stop-discovery"


def test_relaxed_stops_are_reported_in_result_warnings():
    result = _optimizer(DummyStops(default_stops()), max_walking_distance_meters=100).optimize(ORIGIN, DESTINATION)

    codes = [w.code for w in result.warnings]
    assert "NO_ACCESSIBLE_STOPS_ORIGIN" in codes
    assert "NO_ACCESSIBLE_STOPS_DEST" in codes
    assert result.routes
    for route in result.routes:
        assert not route.candidate.origin_stop.within_budget
        assert not route.candidate.dest_stop.within_budget


def _scored(route_id: str, score: float, transit_seconds: float) -> ScoredRoute:
    stop = make_stop("S" + route_id, ORIGIN, 0.001, {route_id})
    walk = AccessibleStop(stop=stop, walking_distance_meters=100, walking_duration_seconds=60, walking_polyline=(), within_budget=True)
    candidate = RouteCandidate(
        origin_stop=walk,
        dest_stop=walk,
        route_id=route_id,
        transit_distance_meters=1000,
        transit_duration_seconds=transit_seconds,
    )
    return ScoredRoute(candidate=candidate, score=score)


def test_equal_scores_are_ordered_by_shorter_duration():
    slow = _scored("1", 80.0, 900)
    fast = _scored("2", 80.0, 600)
    best = _scored("3", 81.0, 1200)

    ranked = rank_routes([slow, fast, best], limit=5)

    assert [route.candidate.route_id for route in ranked] == ["3", "2", "1"]
    assert rank_routes([slow, fast, best], limit=1) == (best,)


def _tomtom_route(meters: float, seconds: float) -> dict:
    return {"routes": [{"summary": {"lengthInMeters": meters, "travelTimeInSeconds": seconds}, "legs": []}]}


def test_transport_error_on_one_walking_leg_only_degrades_that_stop():
    lock = threading.Lock()
    walking_calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["travelMode"] == "pedestrian":
            with lock:
                walking_calls.append(request)
                first = len(walking_calls) == 1
            if first:
                raise httpx.RemoteProtocolError("server disconnected", request=request)
            return httpx.Response(200, json=_tomtom_route(300, 215))
        return httpx.Response(200, json=_tomtom_route(4000, 700))

    client = TomTomClient(
        api_key="test-key",
        base_url="https://tomtom.test",
        max_retries=0,
        backoff_seconds=0,
        transport=httpx.MockTransport(handler),
    )
    optimizer = RouteOptimizer(
        OptimizerConfig(),
        stop_discovery=DummyStops(default_stops()),
        router=PointRouter(client, CacheFacade(MemoryCache())),
        zone_source=DummyZones(),
        clock=lambda: FIXED_NOW,
    )

    result = optimizer.optimize(ORIGIN, DESTINATION)

    unavailable = [w for w in result.warnings if w.code == "WALKING_LEG_UNAVAILABLE"]
    assert len(unavailable) == 1
    assert unavailable[0].side in (Side.ORIGIN, Side.DESTINATION)
    assert result.routes
