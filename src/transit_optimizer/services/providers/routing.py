"""Point-to-point routing backed by the TomTom routing API."""

from __future__ import annotations

import logging

from ...config import settings
from ...models.domain import Coordinate, RouteLeg, TravelProfile
from ..cache import CacheFacade, cache_key
from ..optimizer.errors import ProviderUnavailableError
from .tomtom_client import TomTomClient

logger = logging.getLogger(__name__)


class PointRouter:
    def __init__(self, client: TomTomClient, cache: CacheFacade, *, ttl_seconds: int | None = None) -> None:
        self.client = client
        self.cache = cache
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.route_cache_ttl_seconds

    def route_between(self, start: Coordinate, end: Coordinate, profile: TravelProfile) -> RouteLeg:
        """Return distance, duration, traffic delay and geometry between two points.

        Raises ``ProviderUnavailableError`` when no route can be obtained.
        """
        key = cache_key("tomtom:route", start, end, profile)
        cached = self.cache.get(key)
        if cached:
            return leg_from_document(cached)

        locations = f"{start.latitude},{start.longitude}:{end.latitude},{end.longitude}"
        data = self.client.get_json(
            f"/routing/1/calculateRoute/{locations}/json",
            {
                "travelMode": profile.value,
                "traffic": "true",
                "routeType": "fastest",
            },
            provider="routing",
        )

        routes = data.get("routes") or []
        if not routes:
            raise ProviderUnavailableError("routing", "no route found")
        route = routes[0]
        summary = route.get("summary") or {}
        if "lengthInMeters" not in summary or "travelTimeInSeconds" not in summary:
            raise ProviderUnavailableError("routing", "route summary missing length or travel time")

        try:
            points: list[list[float]] = []
            for leg in route.get("legs") or []:
                points.extend(
                    [float(p["latitude"]), float(p["longitude"])] for p in leg.get("points") or []
                )
            document = {
                "distance": float(summary["lengthInMeters"]),
                "duration": float(summary["travelTimeInSeconds"]),
                "traffic_delay": float(summary.get("trafficDelayInSeconds") or 0),
                "coordinates": points,
            }
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderUnavailableError("routing", f"malformed route summary: {e}") from e
        self.cache.set(key, document, self.ttl_seconds)
        return leg_from_document(document)


def leg_from_document(document: dict) -> RouteLeg:
    return RouteLeg(
        distance_meters=document["distance"],
        duration_seconds=document["duration"],
        delay_seconds=max(0.0, document.get("traffic_delay", 0.0)),
        polyline=tuple((lat, lon) for lat, lon in document.get("coordinates", [])),
    )
