import json

import httpx
import pytest

from transit_optimizer.models.domain import Coordinate, TravelProfile
from transit_optimizer.services.cache import CacheFacade, MemoryCache
from transit_optimizer.services.optimizer.errors import ProviderUnavailableError
from transit_optimizer.services.providers import (
    AddressResolver,
    PointRouter,
    StopDiscovery,
    TomTomClient,
    ZoneSignalProvider,
)
from transit_optimizer.services.providers.stops import extract_routes

POINT = Coordinate(33.5731, -7.5898)
OTHER = Coordinate(33.6031, -7.6198)


def _client(handler) -> TomTomClient:
    return TomTomClient(
        api_key="test-key",
        base_url="https://tomtom.test",
        max_retries=1,
        backoff_seconds=0,
        transport=httpx.MockTransport(handler),
    )


def test_geocode_parses_first_result_and_caches():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        assert request.url.params["key"] == "test-key"
        assert request.url.params["countrySet"] == "MA"
        return httpx.Response(
            200,
            json={
                "results": [
                    {
                        "position": {"lat": 33.5731, "lon": -7.5898},
                        "address": {"freeformAddress": "Casablanca, Morocco", "country": "Morocco", "municipality": "Casablanca"},
                    }
                ]
            },
        )

    resolver = AddressResolver(_client(handler), CacheFacade(MemoryCache()), country_set="MA", ttl_seconds=60)

    first = resolver.resolve("  Casablanca ")
    second = resolver.resolve("casablanca")

    assert first.coordinate == POINT
    assert first.display_name == "Casablanca, Morocco"
    assert first.city == "Casablanca"
    assert second == first
    assert len(calls) == 1


def test_geocode_without_results_returns_none():
    resolver = AddressResolver(
        _client(lambda request: httpx.Response(200, json={"results": []})),
        CacheFacade(MemoryCache()),
    )

    assert resolver.resolve("Nowhere at all") is None


def test_route_parses_summary_and_points():
    def handler(request: httpx.Request) -> httpx.Response:
        assert "/routing/1/calculateRoute/" in request.url.path
        assert request.url.params["travelMode"] == "pedestrian"
        return httpx.Response(
            200,
            json={
                "routes": [
                    {
                        "summary": {"lengthInMeters": 420, "travelTimeInSeconds": 300, "trafficDelayInSeconds": 0},
                        "legs": [{"points": [{"latitude": 33.5731, "longitude": -7.5898}, {"latitude": 33.575, "longitude": -7.59}]}],
                    }
                ]
            },
        )

    leg = PointRouter(_client(handler), CacheFacade(MemoryCache())).route_between(POINT, OTHER, TravelProfile.WALKING)

    assert leg.distance_meters == 420
    assert leg.duration_seconds == 300
    assert leg.polyline == ((33.5731, -7.5898), (33.575, -7.59))


def test_route_without_routes_raises():
    router = PointRouter(_client(lambda request: httpx.Response(200, json={"routes": []})), CacheFacade(MemoryCache()))

    with pytest.raises(ProviderUnavailableError):
        router.route_between(POINT, OTHER, TravelProfile.BUS)


def test_stop_discovery_extracts_routes_and_dedupes():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["categorySet"] == "9361,9362,9363,9364"
        assert request.url.params["radius"] == "1000"
        result = {
            "id": "poi-1",
            "position": {"lat": 33.574, "lon": -7.59},
            "poi": {"name": "Bus 12 / L5", "brands": [{"name": "Alsa"}], "categories": ["bus stop"]},
            "address": {"freeformAddress": "Bd Zerktouni"},
        }
        return httpx.Response(200, json={"results": [result, result, {"id": "no-position"}]})

    stops = StopDiscovery(
        _client(handler), CacheFacade(MemoryCache()), category_set="9361,9362,9363,9364"
    ).discover_stops(POINT, 1000)

    assert len(stops) == 1
    assert stops[0].id == "poi-1"
    assert stops[0].served_routes == frozenset({"12", "L5"})
    assert stops[0].operator == "Alsa"


def test_extract_routes():
    assert extract_routes("Ligne 7 - Arret 33A") == frozenset({"7", "33A"})
    assert extract_routes("Gare Centrale") == frozenset()
    assert extract_routes(None) == frozenset()


def test_traffic_flow_and_poi_count():
    def handler(request: httpx.Request) -> httpx.Response:
        if "flowSegmentData" in request.url.path:
            return httpx.Response(
                200,
                json={"flowSegmentData": {"currentSpeed": 30, "freeFlowSpeed": 50, "confidence": 0.8}},
            )
        return httpx.Response(200, json={"results": [{"id": str(i)} for i in range(12)]})

    provider = ZoneSignalProvider(_client(handler), CacheFacade(MemoryCache()))

    flow = provider.traffic_flow(POINT)
    assert flow.ratio == pytest.approx(0.6)
    assert flow.confidence == 0.8
    assert provider.poi_count(POINT, 500) == 12


def test_client_retries_server_errors():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) == 1:
            return httpx.Response(503)
        return httpx.Response(200, json={"ok": True})

    assert _client(handler).get_json("/ping") == {"ok": True}
    assert len(attempts) == 2


def test_client_does_not_retry_client_errors():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(403, content=json.dumps({"error": "forbidden"}))

    with pytest.raises(ProviderUnavailableError) as excinfo:
        _client(handler).get_json("/ping", provider="geocoding")

    assert excinfo.value.provider == "geocoding"
    assert len(attempts) == 1


def test_client_requires_api_key(monkeypatch):
    from transit_optimizer.services.providers import tomtom_client

    monkeypatch.setattr(tomtom_client.settings, "tomtom_api_key", None)

    with pytest.raises(ValueError):
        TomTomClient(api_key=None)


def test_client_wraps_protocol_errors_after_retries():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.RemoteProtocolError("server disconnected without sending a response", request=request)

    with pytest.raises(ProviderUnavailableError) as excinfo:
        _client(handler).get_json("/ping", provider="routing")

    assert excinfo.value.provider == "routing"
    assert "RemoteProtocolError" in str(excinfo.value)
    assert len(attempts) == 2


def test_client_rejects_non_object_json():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[1, 2, 3])

    with pytest.raises(ProviderUnavailableError):
        _client(handler).get_json("/ping")


def test_route_with_null_summary_fields_raises_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"routes": [{"summary": {"lengthInMeters": None, "travelTimeInSeconds": 100}, "legs": []}]},
        )

    router = PointRouter(_client(handler), CacheFacade(MemoryCache()))

    with pytest.raises(ProviderUnavailableError):
        router.route_between(POINT, OTHER, TravelProfile.WALKING)


def test_geocode_with_null_position_raises_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": [{"position": {"lat": None, "lon": -7.5}, "address": {}}]})

    resolver = AddressResolver(_client(handler), CacheFacade(MemoryCache()))

    with pytest.raises(ProviderUnavailableError):
        resolver.resolve("Casablanca")


def test_stop_discovery_skips_results_without_position():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "results": [
                    {"id": "bad", "position": {"lat": None, "lon": -7.5}, "poi": {"name": "Ligne 5"}},
                    {"id": "good", "position": {"lat": 33.574, "lon": -7.59}, "poi": {"name": "Ligne 7"}},
                ]
            },
        )

    stops = StopDiscovery(_client(handler), CacheFacade(MemoryCache())).discover_stops(POINT, 1000)

    assert [stop.id for stop in stops] == ["good"]
