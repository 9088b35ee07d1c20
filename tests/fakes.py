"""Provider doubles shared by the engine, service and API tests."""

from transit_optimizer.models.domain import Coordinate, RouteLeg, Stop, TravelProfile
from transit_optimizer.services.cache import CacheFacade, MemoryCache
from transit_optimizer.services.geospatial import distance_meters
from transit_optimizer.services.optimizer.engine import OptimizerConfig, RouteOptimizer
from transit_optimizer.services.optimizer.errors import ProviderUnavailableError
from transit_optimizer.services.optimizer.service import OptimizationService
from transit_optimizer.services.providers.geocoding import ResolvedAddress
from transit_optimizer.services.providers.zones import TrafficFlow

ORIGIN = Coordinate(33.5731, -7.5898)
DESTINATION = Coordinate(33.6031, -7.6198)


def make_stop(stop_id: str, near: Coordinate, lat_offset: float, routes: set[str]) -> Stop:
    return Stop(
        id=stop_id,
        coordinate=Coordinate(near.latitude + lat_offset, near.longitude),
        name=f"Stop {stop_id}",
        served_routes=frozenset(routes),
    )


def default_stops() -> dict:
    return {
        ORIGIN: [
            make_stop("O1", ORIGIN, 0.001, {"5", "12"}),
            make_stop("O2", ORIGIN, 0.003, {"5"}),
            make_stop("O3", ORIGIN, 0.0015, {"7"}),
        ],
        DESTINATION: [
            make_stop("D1", DESTINATION, -0.001, {"5"}),
            make_stop("D2", DESTINATION, 0.002, {"12"}),
        ],
    }


class DummyStops:
    """Stops keyed by endpoint; ``from_radius`` hides them below a given radius."""

    def __init__(self, by_endpoint: dict, from_radius: int = 0, failing_radii=()):
        self.by_endpoint = by_endpoint
        self.from_radius = from_radius
        self.failing_radii = set(failing_radii)
        self.calls = []

    def discover_stops(self, coordinate, radius_meters):
        self.calls.append((coordinate, radius_meters))
        if radius_meters in self.failing_radii:
            raise ProviderUnavailableError("stop-discovery", "timeout")
        if radius_meters < self.from_radius:
            return []
        return list(self.by_endpoint.get(coordinate, []))


class DummyRouter:
    """Legs proportional to straight-line distance."""

    def route_between(self, start, end, profile):
        meters = distance_meters(start, end) * 1.2
        speed = 1.4 if profile is TravelProfile.WALKING else 6.0
        return RouteLeg(
            distance_meters=meters,
            duration_seconds=meters / speed,
            delay_seconds=0 if profile is TravelProfile.WALKING else 30,
            polyline=(start.as_tuple(), end.as_tuple()),
        )


class DummyZones:
    def poi_count(self, coordinate, radius_meters):
        return 80

    def traffic_flow(self, coordinate):
        return TrafficFlow(current_speed=20, free_flow_speed=40, confidence=0.9)


class DummyResolver:
    def __init__(self, known: dict):
        self.known = known
        self.queries = []

    def resolve(self, address):
        self.queries.append(address)
        coordinate = self.known.get(address)
        if coordinate is None:
            return None
        return ResolvedAddress(coordinate=coordinate, display_name=f"{address}, Morocco")


def make_service(resolver) -> OptimizationService:
    optimizer = RouteOptimizer(
        OptimizerConfig(),
        stop_discovery=DummyStops(default_stops()),
        router=DummyRouter(),
        zone_source=DummyZones(),
    )
    return OptimizationService(resolver=resolver, optimizer=optimizer, cache=CacheFacade(MemoryCache()))
