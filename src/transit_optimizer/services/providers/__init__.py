"""Typed adapters over the external geodata providers."""

from .geocoding import AddressResolver, ResolvedAddress
from .routing import PointRouter
from .stops import StopDiscovery
from .tomtom_client import TomTomClient
from .zones import TrafficFlow, ZoneSignalProvider

__all__ = [
    "AddressResolver",
    "ResolvedAddress",
    "PointRouter",
    "StopDiscovery",
    "TomTomClient",
    "TrafficFlow",
    "ZoneSignalProvider",
]
