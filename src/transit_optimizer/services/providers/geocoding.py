"""Address resolution backed by TomTom geocoding."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from ...config import settings
from ...models.domain import Coordinate
from ..cache import CacheFacade, cache_key
from ..optimizer.errors import ProviderUnavailableError
from .tomtom_client import TomTomClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResolvedAddress:
    coordinate: Coordinate
    display_name: Optional[str]
    country: Optional[str] = None
    city: Optional[str] = None


def _normalize_address(address: str) -> str:
    return " ".join(address.split()).strip()


class AddressResolver:
    def __init__(
        self,
        client: TomTomClient,
        cache: CacheFacade,
        *,
        country_set: str | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.country_set = country_set if country_set is not None else settings.geocode_country_set
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.geocode_cache_ttl_seconds

    def resolve(self, address: str) -> ResolvedAddress | None:
        """Geocode ``address``; ``None`` means the provider knows no such place.

        Transport failures propagate as ``ProviderUnavailableError``.
        """
        normalized = _normalize_address(address)
        if not normalized:
            return None

        key = cache_key("geocode:tomtom", normalized.lower(), self.country_set or "")
        cached = self.cache.get(key)
        if cached:
            logger.info("Cache hit for geocoding")
            return _from_document(cached)

        logger.info(f"Geocoding: {normalized}")
        params: dict = {"limit": 1}
        if self.country_set:
            params["countrySet"] = self.country_set
        data = self.client.get_json(
            f"/search/2/geocode/{quote(normalized, safe='')}.json", params, provider="geocoding"
        )

        results = data.get("results") or []
        if not results:
            logger.warning(f"No geocoding result for: {normalized}")
            return None

        result = results[0]
        position = result.get("position") or {}
        if "lat" not in position or "lon" not in position:
            logger.warning(f"Geocoding result without position for: {normalized}")
            return None
        address_info = result.get("address") or {}
        try:
            lat, lon = float(position["lat"]), float(position["lon"])
        except (TypeError, ValueError) as e:
            raise ProviderUnavailableError("geocoding", f"malformed position for {normalized}") from e
        document = {
            "lat": lat,
            "lon": lon,
            "display_name": address_info.get("freeformAddress"),
            "country": address_info.get("country"),
            "city": address_info.get("municipality") or address_info.get("localName"),
        }
        logger.info(f"Geocoded '{normalized}' to {document['display_name']}")
        self.cache.set(key, document, self.ttl_seconds)
        return _from_document(document)


def _from_document(document: dict) -> ResolvedAddress:
    return ResolvedAddress(
        coordinate=Coordinate(latitude=document["lat"], longitude=document["lon"]),
        display_name=document.get("display_name"),
        country=document.get("country"),
        city=document.get("city"),
    )
