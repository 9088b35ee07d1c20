"""Itinerary optimization orchestration service."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from ...config import Settings, settings
from ...models.domain import Coordinate, Side
from ...schemas.itinerary import EndpointInput, OptimizeRequest, OptimizeResponse
from ..cache import CacheFacade, build_cache
from ..outputs.formatter import result_to_response
from ..providers import AddressResolver, PointRouter, StopDiscovery, TomTomClient, ZoneSignalProvider
from .engine import OptimizerConfig, RouteOptimizer
from .errors import AddressNotFoundError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OptimizationService:
    resolver: AddressResolver
    optimizer: RouteOptimizer
    cache: CacheFacade


def build_service(source: Settings | None = None, cache: CacheFacade | None = None) -> OptimizationService:
    """Wire the TomTom adapters, the cache and the engine from settings."""
    source = source or settings
    cache = cache or build_cache()
    client = TomTomClient(
        api_key=source.tomtom_api_key,
        base_url=source.tomtom_base_url,
        timeout=source.request_timeout_seconds,
        max_retries=source.provider_max_retries,
        backoff_seconds=source.provider_backoff_seconds,
    )
    resolver = AddressResolver(
        client,
        cache,
        country_set=source.geocode_country_set,
        ttl_seconds=source.geocode_cache_ttl_seconds,
    )
    optimizer = RouteOptimizer(
        OptimizerConfig.from_settings(source),
        stop_discovery=StopDiscovery(
            client,
            cache,
            category_set=source.stop_category_set,
            ttl_seconds=source.stops_cache_ttl_seconds,
        ),
        router=PointRouter(client, cache, ttl_seconds=source.route_cache_ttl_seconds),
        zone_source=ZoneSignalProvider(
            client,
            cache,
            density_ttl_seconds=source.density_cache_ttl_seconds,
            traffic_ttl_seconds=source.traffic_cache_ttl_seconds,
            traffic_timeout_seconds=source.traffic_timeout_seconds,
        ),
    )
    return OptimizationService(resolver=resolver, optimizer=optimizer, cache=cache)


@lru_cache
def get_service() -> OptimizationService:
    return build_service()


def _resolve_endpoint(
    resolver: AddressResolver, endpoint: EndpointInput
) -> tuple[Optional[Coordinate], Optional[str]]:
    if endpoint.has_coordinate:
        return Coordinate(latitude=endpoint.latitude, longitude=endpoint.longitude), endpoint.address
    resolved = resolver.resolve(endpoint.address or "")
    if resolved is None:
        return None, endpoint.address
    return resolved.coordinate, resolved.display_name or endpoint.address


def optimize_itinerary(
    payload: OptimizeRequest, service: OptimizationService | None = None
) -> OptimizeResponse:
    service = service or get_service()

    with ThreadPoolExecutor(max_workers=2) as executor:
        origin_future = executor.submit(_resolve_endpoint, service.resolver, payload.origin)
        dest_future = executor.submit(_resolve_endpoint, service.resolver, payload.destination)
        origin, origin_label = origin_future.result()
        destination, destination_label = dest_future.result()

    missing = [
        side.value
        for side, coordinate in ((Side.ORIGIN, origin), (Side.DESTINATION, destination))
        if coordinate is None
    ]
    if missing:
        raise AddressNotFoundError(missing)

    logger.info(f"Optimizing itinerary {origin_label or origin} -> {destination_label or destination}")
    result = service.optimizer.optimize(
        origin,
        destination,
        origin_label=origin_label,
        destination_label=destination_label,
    )
    return result_to_response(result)
