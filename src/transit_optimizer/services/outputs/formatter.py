"""Serializers for optimization results."""

from __future__ import annotations

from ...models.domain import (
    AccessibleStop,
    EndpointSummary,
    Issue,
    OptimizationResult,
    ScoredRoute,
)
from ...schemas.itinerary import OptimizeResponse


def _stop_to_json(accessible: AccessibleStop) -> dict:
    stop = accessible.stop
    return {
        "stop_id": stop.id,
        "name": stop.name,
        "latitude": stop.coordinate.latitude,
        "longitude": stop.coordinate.longitude,
        "routes": sorted(stop.served_routes),
        "operator": stop.operator,
        "synthetic": stop.synthetic,
        "walking_distance_m": round(accessible.walking_distance_meters),
        "walking_duration_min": round(accessible.walking_duration_seconds / 60, 1),
        "within_walking_budget": accessible.within_budget,
    }


def _route_to_json(rank: int, scored: ScoredRoute) -> dict:
    candidate = scored.candidate
    return {
        "rank": rank,
        "route_id": candidate.route_id,
        "score": scored.score,
        "origin_stop": _stop_to_json(candidate.origin_stop),
        "destination_stop": _stop_to_json(candidate.dest_stop),
        "total_duration_min": round(candidate.total_duration_seconds / 60, 1),
        "transit_distance_km": round(candidate.transit_distance_meters / 1000, 2),
        "transit_duration_min": round(candidate.transit_duration_seconds / 60, 1),
        "walking_distance_m": round(candidate.total_walking_distance_meters),
        "traffic_delay_min": round(candidate.traffic_delay_seconds / 60, 1),
        "transfers": candidate.transfer_count,
        "data_quality": candidate.data_quality.value,
        "polyline": [list(point) for point in candidate.polyline],
    }


def _endpoint_to_json(summary: EndpointSummary) -> dict:
    zone = summary.zone
    return {
        "label": summary.label,
        "coordinate": {
            "latitude": summary.coordinate.latitude,
            "longitude": summary.coordinate.longitude,
        },
        "zone": {
            "zone_type": zone.zone_type,
            "density_score": zone.density_score,
            "traffic_ratio": zone.traffic_ratio,
            "poi_count": zone.poi_count,
            "road_closure": zone.road_closure,
            "degraded": zone.degraded,
        },
        "nearby_stops": summary.nearby_stop_count,
        "accessible_stops": summary.accessible_stop_count,
        "search_radius_m": summary.search_radius_meters,
        "synthetic_stops": summary.synthetic_stops,
    }


def _issue_to_json(issue: Issue) -> dict:
    return {
        "code": issue.code,
        "message": issue.message,
        "severity": issue.severity.value,
        "side": issue.side.value if issue.side else None,
        "details": dict(issue.details),
    }


def result_to_json(result: OptimizationResult) -> dict:
    return {
        "success": bool(result.routes),
        "routes": [_route_to_json(rank, route) for rank, route in enumerate(result.routes, start=1)],
        "origin": _endpoint_to_json(result.origin),
        "destination": _endpoint_to_json(result.destination),
        "anomalies": [_issue_to_json(issue) for issue in result.anomalies],
        "warnings": [_issue_to_json(issue) for issue in result.warnings],
        "metadata": dict(result.metadata),
    }


def result_to_response(result: OptimizationResult) -> OptimizeResponse:
    return OptimizeResponse.model_validate(result_to_json(result))
