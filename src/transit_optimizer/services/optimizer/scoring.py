"""Linear itinerary scoring heuristic."""

from __future__ import annotations

from ...models.domain import RouteCandidate, ZoneSignal

BASE_SCORE = 100.0
DURATION_WEIGHT = 0.5  # per minute door to door
WALKING_WEIGHT = 1.5  # per 100 m walked
TRANSFER_WEIGHT = 10.0  # per transfer
TRAFFIC_DELAY_WEIGHT = 2.0  # per minute of traffic delay
DENSITY_BONUS = 5.0
DENSITY_BONUS_THRESHOLD = 70.0
NEUTRAL_DENSITY = 50.0


def density_bonus(origin_zone: ZoneSignal | None, dest_zone: ZoneSignal | None) -> float:
    densities = [
        zone.density_score if zone is not None and zone.density_score is not None else NEUTRAL_DENSITY
        for zone in (origin_zone, dest_zone)
    ]
    return DENSITY_BONUS if sum(densities) / 2 > DENSITY_BONUS_THRESHOLD else 0.0


def score_candidate(
    candidate: RouteCandidate,
    origin_zone: ZoneSignal | None = None,
    dest_zone: ZoneSignal | None = None,
) -> float:
    """Score in [0, 100], rounded to one decimal; higher is better."""
    score = (
        BASE_SCORE
        - DURATION_WEIGHT * (candidate.total_duration_seconds / 60)
        - WALKING_WEIGHT * (candidate.total_walking_distance_meters / 100)
        - TRANSFER_WEIGHT * candidate.transfer_count
        - TRAFFIC_DELAY_WEIGHT * (candidate.traffic_delay_seconds / 60)
        + density_bonus(origin_zone, dest_zone)
    )
    return round(max(0.0, min(100.0, score)), 1)
