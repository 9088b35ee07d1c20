"""Route optimization engine: stop discovery through ranked itineraries."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Protocol

from ...config import Settings, settings
from ...models.domain import (
    AccessibleStop,
    Coordinate,
    CoverageGapPolicy,
    EndpointSummary,
    Issue,
    OptimizationResult,
    ScoredRoute,
    Severity,
    Side,
    Stop,
    TravelProfile,
    ZoneSignal,
)
from ..geospatial import distance_meters
from .accessibility import AccessibilityOutcome, Router, filter_accessible
from .candidates import generate_candidates
from .coverage import synthetic_stops
from .errors import NoTransitCoverageError, ProviderUnavailableError
from .scoring import score_candidate
from .zones import ZoneEnricher, ZoneSource

logger = logging.getLogger(__name__)


class OptimizationStage(str, Enum):
    DISCOVER_STOPS = "discover_stops"
    FILTER_ACCESSIBILITY = "filter_accessibility"
    ENRICH_ZONES = "enrich_zones"
    GENERATE_CANDIDATES = "generate_candidates"
    SCORE_AND_RANK = "score_and_rank"
    DONE = "done"
    FAILED = "failed"


class StopSource(Protocol):
    def discover_stops(self, coordinate: Coordinate, radius_meters: int) -> list[Stop]: ...


@dataclass(frozen=True, slots=True)
class OptimizerConfig:
    max_walking_distance_meters: float = 800.0
    transfer_penalty_seconds: float = 180.0
    max_candidates_per_side: int = 5
    max_results_returned: int = 5
    radius_escalation_steps: tuple[int, ...] = (1000, 2000)
    max_stops_per_side: int = 10
    relaxed_stop_count: int = 3
    coverage_gap_policy: CoverageGapPolicy = CoverageGapPolicy.FAIL_FAST
    zone_radius_meters: int = 500
    transit_profile: TravelProfile = TravelProfile.BUS
    max_parallel_requests: int = 8
    synthetic_stop_offset_meters: float = 250.0

    def __post_init__(self) -> None:
        if not self.radius_escalation_steps:
            raise ValueError("At least one discovery radius is required.")

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "OptimizerConfig":
        source = source or settings
        return cls(
            max_walking_distance_meters=source.max_walking_distance_meters,
            transfer_penalty_seconds=source.transfer_penalty_seconds,
            max_candidates_per_side=source.max_candidates_per_side,
            max_results_returned=source.max_results_returned,
            radius_escalation_steps=tuple(source.radius_escalation_steps),
            max_stops_per_side=source.max_stops_per_side,
            relaxed_stop_count=source.relaxed_stop_count,
            coverage_gap_policy=CoverageGapPolicy(source.coverage_gap_policy),
            zone_radius_meters=source.zone_radius_meters,
            transit_profile=TravelProfile(source.transit_profile),
            max_parallel_requests=source.max_parallel_requests,
            synthetic_stop_offset_meters=source.synthetic_stop_offset_meters,
        )


@dataclass(slots=True)
class _Discovery:
    stops: list[Stop]
    nearby_count: int
    radius_meters: Optional[int]
    warnings: list[Issue] = field(default_factory=list)
    synthetic: bool = False


@dataclass(slots=True)
class _RunLog:
    anomalies: list[Issue] = field(default_factory=list)
    warnings: list[Issue] = field(default_factory=list)
    stages: list[OptimizationStage] = field(default_factory=list)

    def enter(self, stage: OptimizationStage) -> None:
        self.stages.append(stage)


class RouteOptimizer:
    """Sequences discovery, accessibility, zones, candidates and scoring for one request."""

    def __init__(
        self,
        config: OptimizerConfig,
        *,
        stop_discovery: StopSource,
        router: Router,
        zone_source: ZoneSource,
        provider_name: str = "tomtom",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self.stop_discovery = stop_discovery
        self.router = router
        self.zone_enricher = ZoneEnricher(zone_source, radius_meters=config.zone_radius_meters)
        self.provider_name = provider_name
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def optimize(
        self,
        origin: Coordinate,
        destination: Coordinate,
        *,
        origin_label: str | None = None,
        destination_label: str | None = None,
    ) -> OptimizationResult:
        run = _RunLog()

        # Zone lookups only need the endpoints, so they run alongside discovery.
        executor = ThreadPoolExecutor(max_workers=6)
        try:
            return self._run(executor, run, origin, destination, origin_label, destination_label)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _run(
        self,
        executor: ThreadPoolExecutor,
        run: _RunLog,
        origin: Coordinate,
        destination: Coordinate,
        origin_label: str | None,
        destination_label: str | None,
    ) -> OptimizationResult:
        config = self.config
        origin_zone_future = executor.submit(self.zone_enricher.enrich, origin, Side.ORIGIN)
        dest_zone_future = executor.submit(self.zone_enricher.enrich, destination, Side.DESTINATION)

        run.enter(OptimizationStage.DISCOVER_STOPS)
        origin_future = executor.submit(self._discover, origin, destination, Side.ORIGIN)
        dest_future = executor.submit(self._discover, destination, origin, Side.DESTINATION)
        origin_discovery = origin_future.result()
        dest_discovery = dest_future.result()

        for side, discovery, endpoint, other in (
            (Side.ORIGIN, origin_discovery, origin, destination),
            (Side.DESTINATION, dest_discovery, destination, origin),
        ):
            run.warnings.extend(discovery.warnings)
            if discovery.stops:
                continue
            if config.coverage_gap_policy is CoverageGapPolicy.FAIL_FAST:
                run.enter(OptimizationStage.FAILED)
                logger.error(f"No transit stop near the {side.value} after radii {config.radius_escalation_steps}")
                raise NoTransitCoverageError(side.value, config.radius_escalation_steps)
            discovery.stops = synthetic_stops(
                endpoint, other, side, offset_meters=config.synthetic_stop_offset_meters
            )
            discovery.synthetic = True
            run.anomalies.append(
                Issue(
                    code="NO_TRANSIT_COVERAGE",
                    message=f"No transit stop found near the {side.value}; estimated stops are used instead.",
                    severity=Severity.ERROR,
                    side=side,
                    details={"radii_meters": list(config.radius_escalation_steps)},
                )
            )
            logger.warning(f"Coverage gap at {side.value}, using {len(discovery.stops)} synthetic stops")

        run.enter(OptimizationStage.FILTER_ACCESSIBILITY)
        logger.info("Calculating accessible stops...")
        origin_access_future = executor.submit(self._accessible, origin, origin_discovery, Side.ORIGIN)
        dest_access_future = executor.submit(self._accessible, destination, dest_discovery, Side.DESTINATION)
        origin_access = origin_access_future.result()
        dest_access = dest_access_future.result()

        run.enter(OptimizationStage.ENRICH_ZONES)
        origin_zone = origin_zone_future.result()
        dest_zone = dest_zone_future.result()

        run.warnings.extend(origin_access.warnings)
        run.warnings.extend(dest_access.warnings)
        run.warnings.extend(origin_zone.warnings)
        run.warnings.extend(dest_zone.warnings)

        for side, access in ((Side.ORIGIN, origin_access), (Side.DESTINATION, dest_access)):
            if not access.stops:
                run.anomalies.append(
                    Issue(
                        code="NO_WALKABLE_STOPS",
                        message=f"No walking route could be computed to any {side.value} stop.",
                        severity=Severity.ERROR,
                        side=side,
                    )
                )

        run.enter(OptimizationStage.GENERATE_CANDIDATES)
        candidates_outcome = generate_candidates(
            origin_access.stops,
            dest_access.stops,
            self.router,
            max_per_side=config.max_candidates_per_side,
            transit_profile=config.transit_profile,
            transfer_penalty_seconds=config.transfer_penalty_seconds,
            degraded=origin_discovery.synthetic or dest_discovery.synthetic,
            max_workers=config.max_parallel_requests,
        )
        run.warnings.extend(candidates_outcome.warnings)
        candidates = candidates_outcome.candidates
        if not candidates and origin_access.stops and dest_access.stops:
            run.anomalies.append(
                Issue(
                    code="NO_ROUTE_CANDIDATES",
                    message="No itinerary could be built between the accessible stops.",
                    severity=Severity.ERROR,
                )
            )

        run.enter(OptimizationStage.SCORE_AND_RANK)
        scored = [
            ScoredRoute(candidate=candidate, score=score_candidate(candidate, origin_zone.signal, dest_zone.signal))
            for candidate in candidates
        ]
        ranked = rank_routes(scored, config.max_results_returned)

        run.enter(OptimizationStage.DONE)
        logger.info(f"Optimization complete: {len(ranked)} routes from {len(candidates)} candidates")

        return OptimizationResult(
            routes=ranked,
            origin=_summary(origin, origin_label, origin_zone.signal, origin_discovery, origin_access.stops),
            destination=_summary(
                destination, destination_label, dest_zone.signal, dest_discovery, dest_access.stops
            ),
            anomalies=tuple(run.anomalies),
            warnings=tuple(run.warnings),
            metadata={
                "total_stops_found": origin_discovery.nearby_count + dest_discovery.nearby_count,
                "accessible_origin_stops": len(origin_access.stops),
                "accessible_dest_stops": len(dest_access.stops),
                "pairs_evaluated": candidates_outcome.pairs_evaluated,
                "routes_calculated": len(candidates),
                "routes_returned": len(ranked),
                "fallback_candidate_used": candidates_outcome.fallback_used,
                "coverage_gap_policy": config.coverage_gap_policy.value,
                "origin_zone_type": origin_zone.signal.zone_type,
                "dest_zone_type": dest_zone.signal.zone_type,
                "stages": [stage.value for stage in run.stages],
                "data_source": self.provider_name,
                "timestamp": self.clock().isoformat(),
            },
        )

    def _discover(self, endpoint: Coordinate, other: Coordinate, side: Side) -> _Discovery:
        warnings: list[Issue] = []
        steps = self.config.radius_escalation_steps
        last_error: Exception | None = None
        for radius in steps:
            try:
                stops = self.stop_discovery.discover_stops(endpoint, radius)
            except (ProviderUnavailableError, ValueError, KeyError) as e:
                last_error = e
                logger.error(f"Transit search error near {side.value} at {radius}m: {e}")
                warnings.append(
                    Issue(
                        code="STOP_DISCOVERY_FAILED",
                        message=f"Stop search near the {side.value} failed at {radius}m.",
                        severity=Severity.WARNING,
                        side=side,
                        details={"radius_meters": radius},
                    )
                )
                continue
            if not stops:
                logger.info(f"No stops within {radius}m of the {side.value}, widening search")
                continue
            if radius != steps[0]:
                warnings.append(
                    Issue(
                        code="SEARCH_RADIUS_WIDENED",
                        message=f"Stops near the {side.value} were only found within {radius}m.",
                        severity=Severity.INFO,
                        side=side,
                        details={"radius_meters": radius},
                    )
                )
            unique = list({stop.id: stop for stop in stops}.values())
            unique.sort(key=lambda stop: (distance_meters(endpoint, stop.coordinate), stop.id))
            return _Discovery(
                stops=unique[: self.config.max_stops_per_side],
                nearby_count=len(unique),
                radius_meters=radius,
                warnings=warnings,
            )
        if last_error is not None and len(warnings) == len(steps):
            # every radius failed, so an empty answer would misreport an outage as a coverage gap
            raise ProviderUnavailableError(
                "stop-discovery", f"stop search near the {side.value} failed at every radius: {last_error}"
            ) from last_error
        return _Discovery(stops=[], nearby_count=0, radius_meters=None, warnings=warnings)

    def _accessible(self, endpoint: Coordinate, discovery: _Discovery, side: Side) -> AccessibilityOutcome:
        return filter_accessible(
            endpoint,
            discovery.stops,
            self.config.max_walking_distance_meters,
            self.router,
            side=side,
            relaxed_stop_count=self.config.relaxed_stop_count,
            max_workers=self.config.max_parallel_requests,
        )


def rank_routes(scored: list[ScoredRoute], limit: int) -> tuple[ScoredRoute, ...]:
    """Best score first; ties go to the shorter trip, then to the stop/route key."""
    ordered = sorted(
        scored, key=lambda route: (-route.score, route.candidate.total_duration_seconds, route.candidate.key)
    )
    return tuple(ordered[:limit])


def _summary(
    coordinate: Coordinate,
    label: str | None,
    zone: ZoneSignal,
    discovery: _Discovery,
    accessible: list[AccessibleStop],
) -> EndpointSummary:
    return EndpointSummary(
        coordinate=coordinate,
        label=label,
        zone=zone,
        nearby_stop_count=discovery.nearby_count,
        accessible_stop_count=len(accessible),
        search_radius_meters=discovery.radius_meters,
        synthetic_stops=discovery.synthetic,
    )
