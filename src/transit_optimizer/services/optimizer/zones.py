"""Zone enrichment: density and traffic characterization of an endpoint."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Protocol

from ...models.domain import Coordinate, Issue, Severity, Side, ZoneSignal
from ..providers.zones import TrafficFlow
from .errors import ProviderUnavailableError

logger = logging.getLogger(__name__)

NEUTRAL_DENSITY_SCORE = 50.0
NEUTRAL_CONFIDENCE = 0.5
URBAN_THRESHOLD = 70
SUBURBAN_THRESHOLD = 40


class ZoneSource(Protocol):
    def poi_count(self, coordinate: Coordinate, radius_meters: int) -> int: ...

    def traffic_flow(self, coordinate: Coordinate) -> TrafficFlow: ...


@dataclass(slots=True)
class ZoneOutcome:
    signal: ZoneSignal
    warnings: list[Issue] = field(default_factory=list)


def traffic_density(flow: TrafficFlow | None) -> int:
    """Congestion on a 0-100 scale: 0 at free flow, 100 at standstill."""
    if flow is None or flow.ratio is None:
        return 0
    return round((1 - flow.ratio) * 100)


def density_score(poi_count: int, flow: TrafficFlow | None) -> float:
    # POIs contribute up to 50 points, congestion up to 30, data confidence up to 20
    poi_score = min(50, poi_count)
    confidence = flow.confidence if flow is not None and flow.confidence else NEUTRAL_CONFIDENCE
    score = round(poi_score + traffic_density(flow) * 0.3 + confidence * 20)
    return float(max(0, min(100, score)))


def classify_zone(score: float) -> str:
    if score >= URBAN_THRESHOLD:
        return "urban"
    if score >= SUBURBAN_THRESHOLD:
        return "suburban"
    return "rural"


class ZoneEnricher:
    def __init__(self, source: ZoneSource, *, radius_meters: int = 500) -> None:
        self.source = source
        self.radius_meters = radius_meters

    def enrich(self, coordinate: Coordinate, side: Side = Side.ORIGIN) -> ZoneOutcome:
        """Fetch density and traffic concurrently; either failing falls back to neutral values."""
        warnings: list[Issue] = []
        with ThreadPoolExecutor(max_workers=2) as executor:
            poi_future = executor.submit(self.source.poi_count, coordinate, self.radius_meters)
            traffic_future = executor.submit(self.source.traffic_flow, coordinate)

            poi_count: int | None
            try:
                poi_count = poi_future.result()
            except (ProviderUnavailableError, ValueError, KeyError) as e:
                logger.error(f"Density analysis error for {side.value}: {e}")
                poi_count = None
                warnings.append(
                    Issue(
                        code="DENSITY_UNAVAILABLE",
                        message=f"Density signal unavailable for the {side.value}; neutral score used.",
                        severity=Severity.INFO,
                        side=side,
                    )
                )

            flow: TrafficFlow | None
            try:
                flow = traffic_future.result()
            except (ProviderUnavailableError, ValueError, KeyError) as e:
                logger.error(f"Traffic info error for {side.value}: {e}")
                flow = None
                warnings.append(
                    Issue(
                        code="TRAFFIC_UNAVAILABLE",
                        message=f"Traffic signal unavailable for the {side.value}.",
                        severity=Severity.INFO,
                        side=side,
                    )
                )

        if poi_count is None:
            signal = ZoneSignal(
                density_score=NEUTRAL_DENSITY_SCORE,
                traffic_ratio=flow.ratio if flow else None,
                zone_type="unknown",
                confidence=flow.confidence if flow else None,
                road_closure=flow.road_closure if flow else False,
                degraded=True,
            )
        else:
            score = density_score(poi_count, flow)
            signal = ZoneSignal(
                density_score=score,
                traffic_ratio=flow.ratio if flow else None,
                zone_type=classify_zone(score),
                poi_count=poi_count,
                confidence=flow.confidence if flow else None,
                road_closure=flow.road_closure if flow else False,
                degraded=flow is None,
            )
            logger.info(f"Zone {side.value}: {signal.zone_type} (score: {signal.density_score})")
        return ZoneOutcome(signal=signal, warnings=warnings)
