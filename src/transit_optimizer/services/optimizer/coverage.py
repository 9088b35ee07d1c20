"""Synthetic stops for endpoints without transit coverage."""

from __future__ import annotations

from ...models.domain import Coordinate, Side, Stop
from ..geospatial import bearing_degrees, offset_coordinate

# bearings relative to the direction of travel
SYNTHETIC_BEARING_OFFSETS = (0.0, -60.0, 60.0)


def synthetic_stops(
    endpoint: Coordinate,
    toward: Coordinate,
    side: Side,
    offset_meters: float = 250.0,
) -> list[Stop]:
    """Placeholder stops around ``endpoint``, fanned out toward the other endpoint.

    Pure and deterministic: identical inputs always give identical stops.
    """
    if endpoint == toward:
        heading = 0.0
    else:
        heading = bearing_degrees(endpoint.latitude, endpoint.longitude, toward.latitude, toward.longitude)

    stops: list[Stop] = []
    for index, delta in enumerate(SYNTHETIC_BEARING_OFFSETS, start=1):
        coordinate = offset_coordinate(endpoint, (heading + delta) % 360, offset_meters)
        stops.append(
            Stop(
                id=f"synthetic_{side.value}_{index}",
                coordinate=coordinate,
                name=f"Estimated {side.value} stop {index}",
                served_routes=frozenset(),
                category="synthetic",
                synthetic=True,
            )
        )
    return stops
