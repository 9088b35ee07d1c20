"""Walking accessibility filter for discovered stops."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Protocol, Sequence

from ...models.domain import (
    AccessibleStop,
    Coordinate,
    Issue,
    RouteLeg,
    Severity,
    Side,
    Stop,
    TravelProfile,
)
from .errors import ProviderUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_RELAXED_STOP_COUNT = 3


class Router(Protocol):
    def route_between(self, start: Coordinate, end: Coordinate, profile: TravelProfile) -> RouteLeg: ...


@dataclass(slots=True)
class AccessibilityOutcome:
    stops: list[AccessibleStop]
    warnings: list[Issue] = field(default_factory=list)
    relaxed: bool = False


def _walk_to(router: Router, origin: Coordinate, stop: Stop) -> tuple[Stop, RouteLeg | None, str | None]:
    try:
        return stop, router.route_between(origin, stop.coordinate, TravelProfile.WALKING), None
    except (ProviderUnavailableError, ValueError, KeyError) as e:
        return stop, None, str(e)


def filter_accessible(
    origin: Coordinate,
    stops: Sequence[Stop],
    budget_meters: float,
    router: Router,
    *,
    side: Side = Side.ORIGIN,
    relaxed_stop_count: int = DEFAULT_RELAXED_STOP_COUNT,
    max_workers: int = 8,
) -> AccessibilityOutcome:
    """Stops reachable on foot from ``origin``, nearest first.

    Each stop gets a real walking leg from the router. Failed legs drop the
    stop with a warning. When no stop fits ``budget_meters`` the nearest
    ``relaxed_stop_count`` stops are returned flagged ``within_budget=False``.
    """
    if not stops:
        return AccessibilityOutcome(stops=[])

    warnings: list[Issue] = []
    legs: dict[int, RouteLeg] = {}
    failed: list[str] = []

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(stops)))) as executor:
        future_to_index = {
            executor.submit(_walk_to, router, origin, stop): index for index, stop in enumerate(stops)
        }
        for future in as_completed(future_to_index):
            index = future_to_index[future]
            stop, leg, error = future.result()
            if leg is None:
                logger.warning(f"Could not calculate walk to stop {stop.id}: {error}")
                failed.append(stop.id)
                continue
            legs[index] = leg

    if failed:
        warnings.append(
            Issue(
                code="WALKING_LEG_UNAVAILABLE",
                message=f"Walking route unavailable for {len(failed)} {side.value} stop(s); they were skipped.",
                severity=Severity.WARNING,
                side=side,
                details={"stop_ids": sorted(failed)},
            )
        )

    # input order keeps ties deterministic regardless of completion order
    measured = sorted(
        ((index, stops[index], leg) for index, leg in legs.items()),
        key=lambda item: (item[2].distance_meters, item[0]),
    )

    accessible = [
        _accessible(stop, leg, within_budget=True)
        for _, stop, leg in measured
        if leg.distance_meters <= budget_meters
    ]
    if accessible or not measured:
        return AccessibilityOutcome(stops=accessible, warnings=warnings)

    relaxed = [_accessible(stop, leg, within_budget=False) for _, stop, leg in measured[:relaxed_stop_count]]
    warnings.append(
        Issue(
            code="NO_ACCESSIBLE_STOPS_" + ("ORIGIN" if side is Side.ORIGIN else "DEST"),
            message=(
                f"All {side.value} stops exceed the maximum walking distance ({budget_meters:.0f}m); "
                f"using the {len(relaxed)} nearest anyway."
            ),
            severity=Severity.WARNING,
            side=side,
            details={"relaxed_stop_ids": [item.id for item in relaxed]},
        )
    )
    logger.warning(f"Relaxed walking budget on {side.value} side for stops {[item.id for item in relaxed]}")
    return AccessibilityOutcome(stops=relaxed, warnings=warnings, relaxed=True)


def _accessible(stop: Stop, leg: RouteLeg, *, within_budget: bool) -> AccessibleStop:
    return AccessibleStop(
        stop=stop,
        walking_distance_meters=leg.distance_meters,
        walking_duration_seconds=leg.duration_seconds,
        walking_polyline=leg.polyline,
        within_budget=within_budget,
    )
