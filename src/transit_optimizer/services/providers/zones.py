"""Zone signal sources: POI density and live traffic flow."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ...config import settings
from ...models.domain import Coordinate
from ..cache import CacheFacade, cache_key
from ..optimizer.errors import ProviderUnavailableError
from .tomtom_client import TomTomClient

logger = logging.getLogger(__name__)

POI_LIMIT = 100


@dataclass(frozen=True, slots=True)
class TrafficFlow:
    current_speed: float
    free_flow_speed: float
    confidence: float
    road_closure: bool = False

    @property
    def ratio(self) -> float | None:
        """Current over free-flow speed, clamped to [0, 1]; None without a free-flow speed."""
        if self.free_flow_speed <= 0:
            return None
        return max(0.0, min(1.0, self.current_speed / self.free_flow_speed))


class ZoneSignalProvider:
    def __init__(
        self,
        client: TomTomClient,
        cache: CacheFacade,
        *,
        density_ttl_seconds: int | None = None,
        traffic_ttl_seconds: int | None = None,
        traffic_timeout_seconds: float | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.density_ttl_seconds = (
            density_ttl_seconds if density_ttl_seconds is not None else settings.density_cache_ttl_seconds
        )
        self.traffic_ttl_seconds = (
            traffic_ttl_seconds if traffic_ttl_seconds is not None else settings.traffic_cache_ttl_seconds
        )
        self.traffic_timeout_seconds = traffic_timeout_seconds or settings.traffic_timeout_seconds

    def poi_count(self, coordinate: Coordinate, radius_meters: int) -> int:
        key = cache_key("density:poi", coordinate, radius_meters)
        cached = self.cache.get(key)
        if cached is not None:
            return int(cached["count"])

        data = self.client.get_json(
            "/search/2/nearbySearch/.json",
            {
                "lat": coordinate.latitude,
                "lon": coordinate.longitude,
                "radius": radius_meters,
                "limit": POI_LIMIT,
            },
            provider="density",
        )
        count = len(data.get("results") or [])
        self.cache.set(key, {"count": count}, self.density_ttl_seconds)
        return count

    def traffic_flow(self, coordinate: Coordinate) -> TrafficFlow:
        key = cache_key("tomtom:traffic", coordinate)
        cached = self.cache.get(key)
        if cached:
            return TrafficFlow(**cached)

        data = self.client.get_json(
            "/traffic/services/4/flowSegmentData/absolute/10/json",
            {"point": f"{coordinate.latitude},{coordinate.longitude}"},
            provider="traffic",
            timeout=self.traffic_timeout_seconds,
        )
        segment = data.get("flowSegmentData")
        if not segment:
            raise ProviderUnavailableError("traffic", "response missing flowSegmentData")

        try:
            document = {
                "current_speed": float(segment.get("currentSpeed") or 0),
                "free_flow_speed": float(segment.get("freeFlowSpeed") or 0),
                "confidence": float(segment.get("confidence") or 0),
                "road_closure": bool(segment.get("roadClosure") or False),
            }
        except (TypeError, ValueError) as e:
            raise ProviderUnavailableError("traffic", f"malformed flow segment: {e}") from e
        self.cache.set(key, document, self.traffic_ttl_seconds)
        return TrafficFlow(**document)
