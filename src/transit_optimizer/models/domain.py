"""Domain models for stops, itinerary candidates and optimization results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

Polyline = tuple[tuple[float, float], ...]


class TravelProfile(str, Enum):
    """Routing profiles understood by the point router."""

    WALKING = "pedestrian"
    BUS = "bus"
    CAR = "car"
    TAXI = "taxi"
    VAN = "van"


class DataQuality(str, Enum):
    REAL = "real"
    DEGRADED = "degraded"


class CoverageGapPolicy(str, Enum):
    """What to do when no stop can be discovered near an endpoint."""

    FAIL_FAST = "fail_fast"
    SYNTHETIC_FALLBACK = "synthetic_fallback"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class Side(str, Enum):
    ORIGIN = "origin"
    DESTINATION = "destination"


@dataclass(frozen=True, slots=True)
class Coordinate:
    latitude: float
    longitude: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class Stop:
    """A transit boarding point reported by stop discovery."""

    id: str
    coordinate: Coordinate
    name: str
    served_routes: frozenset[str] = frozenset()
    operator: Optional[str] = None
    address: Optional[str] = None
    category: Optional[str] = None
    synthetic: bool = False


@dataclass(frozen=True, slots=True)
class AccessibleStop:
    """A stop together with the real walking leg that reaches it."""

    stop: Stop
    walking_distance_meters: float
    walking_duration_seconds: float
    walking_polyline: Polyline
    within_budget: bool

    @property
    def id(self) -> str:
        return self.stop.id


@dataclass(frozen=True, slots=True)
class RouteLeg:
    """Point router answer for a single origin/destination pair."""

    distance_meters: float
    duration_seconds: float
    delay_seconds: float = 0.0
    polyline: Polyline = ()


@dataclass(frozen=True, slots=True)
class RouteCandidate:
    origin_stop: AccessibleStop
    dest_stop: AccessibleStop
    route_id: str
    transit_distance_meters: float
    transit_duration_seconds: float
    transit_polyline: Polyline = ()
    traffic_delay_seconds: float = 0.0
    transfer_count: int = 0
    transfer_penalty_seconds: float = 0.0
    data_quality: DataQuality = DataQuality.REAL

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.origin_stop.id, self.dest_stop.id, self.route_id)

    @property
    def total_duration_seconds(self) -> float:
        return (
            self.transit_duration_seconds
            + self.origin_stop.walking_duration_seconds
            + self.dest_stop.walking_duration_seconds
            + self.transfer_count * self.transfer_penalty_seconds
            + self.traffic_delay_seconds
        )

    @property
    def total_walking_distance_meters(self) -> float:
        return self.origin_stop.walking_distance_meters + self.dest_stop.walking_distance_meters

    @property
    def polyline(self) -> Polyline:
        return (
            self.origin_stop.walking_polyline
            + self.transit_polyline
            + self.dest_stop.walking_polyline
        )


@dataclass(frozen=True, slots=True)
class ScoredRoute:
    candidate: RouteCandidate
    score: float


@dataclass(frozen=True, slots=True)
class ZoneSignal:
    """Density/traffic characterization of the area around a coordinate."""

    density_score: Optional[float] = None
    traffic_ratio: Optional[float] = None
    zone_type: str = "unknown"
    poi_count: Optional[int] = None
    confidence: Optional[float] = None
    road_closure: bool = False
    degraded: bool = False


@dataclass(frozen=True, slots=True)
class Issue:
    """An anomaly or warning recorded while optimizing."""

    code: str
    message: str
    severity: Severity = Severity.WARNING
    side: Optional[Side] = None
    details: dict = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class EndpointSummary:
    coordinate: Coordinate
    label: Optional[str]
    zone: ZoneSignal
    nearby_stop_count: int
    accessible_stop_count: int
    search_radius_meters: Optional[int]
    synthetic_stops: bool = False


@dataclass(frozen=True, slots=True)
class OptimizationResult:
    routes: tuple[ScoredRoute, ...]
    origin: EndpointSummary
    destination: EndpointSummary
    anomalies: tuple[Issue, ...]
    warnings: tuple[Issue, ...]
    metadata: dict
