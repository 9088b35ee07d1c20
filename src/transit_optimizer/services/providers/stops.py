"""Transit stop discovery backed by TomTom nearby search."""

from __future__ import annotations

import logging
import re

from ...config import settings
from ...models.domain import Coordinate, Stop
from ..cache import CacheFacade, cache_key
from .tomtom_client import TomTomClient

logger = logging.getLogger(__name__)

ROUTE_PATTERN = re.compile(r"\b[A-Z]?\d+[A-Z]?\b")
MAX_RESULTS = 100


def extract_routes(name: str | None) -> frozenset[str]:
    """Route identifiers embedded in a stop name, e.g. ``"Bus 12 / L5"`` -> {"12", "L5"}."""
    if not name:
        return frozenset()
    return frozenset(ROUTE_PATTERN.findall(name))


class StopDiscovery:
    def __init__(
        self,
        client: TomTomClient,
        cache: CacheFacade,
        *,
        category_set: str | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.category_set = category_set or settings.stop_category_set
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.stops_cache_ttl_seconds

    def discover_stops(self, coordinate: Coordinate, radius_meters: int) -> list[Stop]:
        """Stops within ``radius_meters``; an empty list is a valid answer."""
        key = cache_key("tomtom:transit", coordinate, radius_meters)
        cached = self.cache.get(key)
        if cached is not None:
            return [_stop_from_document(doc) for doc in cached]

        data = self.client.get_json(
            "/search/2/nearbySearch/.json",
            {
                "lat": coordinate.latitude,
                "lon": coordinate.longitude,
                "radius": radius_meters,
                "categorySet": self.category_set,
                "limit": MAX_RESULTS,
            },
            provider="stop-discovery",
        )

        documents: list[dict] = []
        seen: set[str] = set()
        for idx, result in enumerate(data.get("results") or []):
            position = result.get("position") or {}
            try:
                lat, lon = float(position["lat"]), float(position["lon"])
            except (KeyError, TypeError, ValueError):
                logger.debug(f"Skipping nearby result {result.get('id')} without a usable position")
                continue
            stop_id = str(result.get("id") or f"tomtom_{idx}")
            if stop_id in seen:
                continue
            seen.add(stop_id)
            poi = result.get("poi") or {}
            address = (result.get("address") or {}).get("freeformAddress")
            name = poi.get("name") or address or f"Stop {idx + 1}"
            brands = poi.get("brands") or []
            categories = poi.get("categories") or []
            documents.append(
                {
                    "id": stop_id,
                    "lat": lat,
                    "lon": lon,
                    "name": name,
                    "routes": sorted(extract_routes(poi.get("name"))),
                    "operator": brands[0].get("name") if brands else None,
                    "address": address,
                    "category": categories[0] if categories else "transit_stop",
                }
            )

        logger.info(
            f"Found {len(documents)} transit stops near ({coordinate.latitude}, {coordinate.longitude}) "
            f"within {radius_meters}m"
        )
        self.cache.set(key, documents, self.ttl_seconds)
        return [_stop_from_document(doc) for doc in documents]


def _stop_from_document(document: dict) -> Stop:
    return Stop(
        id=document["id"],
        coordinate=Coordinate(latitude=document["lat"], longitude=document["lon"]),
        name=document["name"],
        served_routes=frozenset(document.get("routes") or ()),
        operator=document.get("operator"),
        address=document.get("address"),
        category=document.get("category"),
    )
