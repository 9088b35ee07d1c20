"""Candidate itinerary generation over a bounded cross-join of stops."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Sequence

from ...models.domain import (
    AccessibleStop,
    DataQuality,
    Issue,
    RouteCandidate,
    RouteLeg,
    Severity,
    TravelProfile,
)
from ..geospatial import distance_meters
from .accessibility import Router
from .errors import ProviderUnavailableError

logger = logging.getLogger(__name__)

FALLBACK_ROUTE_PLACEHOLDER = "transfer"
# Straight-line transit estimate used only when the router cannot serve the fallback pair
AVERAGE_TRANSIT_SPEED_KMH = 20.0


@dataclass(slots=True)
class CandidateOutcome:
    candidates: list[RouteCandidate]
    warnings: list[Issue] = field(default_factory=list)
    pairs_evaluated: int = 0
    fallback_used: bool = False


def _transit_leg(
    router: Router, origin: AccessibleStop, dest: AccessibleStop, profile: TravelProfile
) -> tuple[RouteLeg | None, str | None]:
    try:
        return router.route_between(origin.stop.coordinate, dest.stop.coordinate, profile), None
    except (ProviderUnavailableError, ValueError, KeyError) as e:
        return None, str(e)


def fallback_route_id(origin: AccessibleStop, dest: AccessibleStop) -> str:
    if not origin.stop.served_routes or not dest.stop.served_routes:
        return FALLBACK_ROUTE_PLACEHOLDER
    return f"{min(origin.stop.served_routes)}-{min(dest.stop.served_routes)}"


def estimate_transit_leg(origin: AccessibleStop, dest: AccessibleStop) -> RouteLeg:
    meters = distance_meters(origin.stop.coordinate, dest.stop.coordinate)
    seconds = (meters / 1000.0) / AVERAGE_TRANSIT_SPEED_KMH * 3600.0
    return RouteLeg(
        distance_meters=meters,
        duration_seconds=seconds,
        polyline=(origin.stop.coordinate.as_tuple(), dest.stop.coordinate.as_tuple()),
    )


def deduplicate(candidates: Sequence[RouteCandidate]) -> list[RouteCandidate]:
    seen: set[tuple[str, str, str]] = set()
    unique: list[RouteCandidate] = []
    for candidate in candidates:
        if candidate.key in seen:
            continue
        seen.add(candidate.key)
        unique.append(candidate)
    return unique


def generate_candidates(
    origin_stops: Sequence[AccessibleStop],
    dest_stops: Sequence[AccessibleStop],
    router: Router,
    *,
    max_per_side: int = 5,
    transit_profile: TravelProfile = TravelProfile.BUS,
    transfer_penalty_seconds: float = 180.0,
    degraded: bool = False,
    max_workers: int = 8,
) -> CandidateOutcome:
    """Join accessible origin and destination stops into itinerary candidates.

    Only the ``max_per_side`` nearest stops of each side are considered. Pairs
    sharing at least one served route yield one direct candidate per shared
    route. When no pair shares a route, a single transfer candidate is built
    from the nearest pair so that accessible stops on both sides never produce
    an empty answer.
    """
    origins = list(origin_stops[:max_per_side])
    dests = list(dest_stops[:max_per_side])
    quality = DataQuality.DEGRADED if degraded else DataQuality.REAL
    warnings: list[Issue] = []

    joinable: list[tuple[int, int, list[str]]] = []
    for i, origin in enumerate(origins):
        for j, dest in enumerate(dests):
            if origin.id == dest.id:
                continue
            shared = origin.stop.served_routes & dest.stop.served_routes
            if shared:
                joinable.append((i, j, sorted(shared)))

    legs: dict[tuple[int, int], RouteLeg] = {}
    failed_pairs: list[str] = []
    if joinable:
        with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(joinable)))) as executor:
            future_to_pair = {
                executor.submit(_transit_leg, router, origins[i], dests[j], transit_profile): (i, j)
                for i, j, _ in joinable
            }
            for future in as_completed(future_to_pair):
                i, j = future_to_pair[future]
                leg, error = future.result()
                if leg is None:
                    logger.warning(f"Route calculation failed for {origins[i].id} -> {dests[j].id}: {error}")
                    failed_pairs.append(f"{origins[i].id}->{dests[j].id}")
                    continue
                legs[(i, j)] = leg

    if failed_pairs:
        warnings.append(
            Issue(
                code="TRANSIT_LEG_UNAVAILABLE",
                message=f"Transit routing failed for {len(failed_pairs)} stop pair(s); they were skipped.",
                severity=Severity.WARNING,
                details={"pairs": sorted(failed_pairs)},
            )
        )

    candidates: list[RouteCandidate] = []
    for i, j, shared in joinable:
        leg = legs.get((i, j))
        if leg is None:
            continue
        for route_id in shared:
            candidates.append(
                RouteCandidate(
                    origin_stop=origins[i],
                    dest_stop=dests[j],
                    route_id=route_id,
                    transit_distance_meters=leg.distance_meters,
                    transit_duration_seconds=leg.duration_seconds,
                    transit_polyline=leg.polyline,
                    traffic_delay_seconds=leg.delay_seconds,
                    transfer_count=0,
                    transfer_penalty_seconds=transfer_penalty_seconds,
                    data_quality=quality,
                )
            )

    if candidates:
        return CandidateOutcome(
            candidates=deduplicate(candidates), warnings=warnings, pairs_evaluated=len(joinable)
        )

    fallback = _fallback_candidate(
        list(origin_stops), list(dest_stops), router, transit_profile, transfer_penalty_seconds, warnings
    )
    if fallback is None:
        return CandidateOutcome(candidates=[], warnings=warnings, pairs_evaluated=len(joinable))
    return CandidateOutcome(
        candidates=[fallback],
        warnings=warnings,
        pairs_evaluated=len(joinable),
        fallback_used=True,
    )


def _fallback_candidate(
    origins: Sequence[AccessibleStop],
    dests: Sequence[AccessibleStop],
    router: Router,
    transit_profile: TravelProfile,
    transfer_penalty_seconds: float,
    warnings: list[Issue],
) -> RouteCandidate | None:
    pairs = sorted(
        (origin.id == dest.id, origin.walking_distance_meters + dest.walking_distance_meters, i, j)
        for i, origin in enumerate(origins)
        for j, dest in enumerate(dests)
    )
    if not pairs:
        return None

    same_stop, _, i, j = pairs[0]
    origin, dest = origins[i], dests[j]
    route_id = fallback_route_id(origin, dest)

    if same_stop:
        # both endpoints walk to the one shared stop; there is no transit leg
        leg, error = RouteLeg(distance_meters=0.0, duration_seconds=0.0), None
        warnings.append(
            Issue(
                code="SAME_STOP_BOTH_ENDS",
                message="The only accessible stop is shared by origin and destination.",
                severity=Severity.WARNING,
                details={"stop_id": origin.id},
            )
        )
    else:
        leg, error = _transit_leg(router, origin, dest, transit_profile)
    if leg is None:
        logger.warning(f"Transfer routing failed for {origin.id} -> {dest.id}, using straight-line estimate: {error}")
        leg = estimate_transit_leg(origin, dest)
        warnings.append(
            Issue(
                code="TRANSFER_LEG_ESTIMATED",
                message="Transit leg of the transfer itinerary is a straight-line estimate.",
                severity=Severity.WARNING,
                details={"origin_stop": origin.id, "dest_stop": dest.id},
            )
        )

    warnings.append(
        Issue(
            code="NO_DIRECT_ROUTE",
            message="No stop pair shares a route; proposing the nearest pair with one transfer.",
            severity=Severity.WARNING,
            details={"origin_stop": origin.id, "dest_stop": dest.id, "route_id": route_id},
        )
    )
    logger.info(f"No shared routes, built transfer candidate {origin.id} -> {dest.id} ({route_id})")
    return RouteCandidate(
        origin_stop=origin,
        dest_stop=dest,
        route_id=route_id,
        transit_distance_meters=leg.distance_meters,
        transit_duration_seconds=leg.duration_seconds,
        transit_polyline=leg.polyline,
        traffic_delay_seconds=leg.delay_seconds,
        transfer_count=1,
        transfer_penalty_seconds=transfer_penalty_seconds,
        data_quality=DataQuality.DEGRADED,
    )
