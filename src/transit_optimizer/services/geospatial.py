"""Geospatial helper functions."""

from __future__ import annotations

import math

from ..models.domain import Coordinate

EARTH_RADIUS_KM = 6371.0
EARTH_RADIUS_M = EARTH_RADIUS_KM * 1000.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude) * 1000.0


def bearing_degrees(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the initial bearing from (lat1, lon1) to (lat2, lon2)."""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)
    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    bearing = math.degrees(math.atan2(y, x))
    return (bearing + 360) % 360


def offset_coordinate(origin: Coordinate, bearing_deg: float, distance_m: float) -> Coordinate:
    """Destination point reached from ``origin`` along a great circle."""

    angular = distance_m / EARTH_RADIUS_M
    theta = math.radians(bearing_deg)
    phi1 = math.radians(origin.latitude)
    lambda1 = math.radians(origin.longitude)

    phi2 = math.asin(
        math.sin(phi1) * math.cos(angular) + math.cos(phi1) * math.sin(angular) * math.cos(theta)
    )
    lambda2 = lambda1 + math.atan2(
        math.sin(theta) * math.sin(angular) * math.cos(phi1),
        math.cos(angular) - math.sin(phi1) * math.sin(phi2),
    )
    lon = (math.degrees(lambda2) + 540) % 360 - 180
    return Coordinate(latitude=math.degrees(phi2), longitude=lon)


def round_coordinate(coordinate: Coordinate, precision: int) -> tuple[float, float]:
    return (round(coordinate.latitude, precision), round(coordinate.longitude, precision))
