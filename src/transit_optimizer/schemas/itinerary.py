"""Itinerary optimization request/response schemas."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator


class EndpointInput(BaseModel):
    """Either a free-form address or an explicit coordinate."""

    address: Optional[str] = Field(default=None, description="Address to geocode.")
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)

    @model_validator(mode="after")
    def _require_address_or_coordinate(self) -> "EndpointInput":
        has_coordinate = self.latitude is not None and self.longitude is not None
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be provided together.")
        if not has_coordinate and not (self.address and self.address.strip()):
            raise ValueError("Provide an address or a latitude/longitude pair.")
        return self

    @property
    def has_coordinate(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class OptimizeRequest(BaseModel):
    origin: EndpointInput
    destination: EndpointInput


class CoordinateModel(BaseModel):
    latitude: float
    longitude: float


class StopModel(BaseModel):
    stop_id: str
    name: str
    latitude: float
    longitude: float
    routes: List[str]
    operator: Optional[str] = None
    synthetic: bool = False
    walking_distance_m: float
    walking_duration_min: float
    within_walking_budget: bool


class ItineraryModel(BaseModel):
    rank: int
    route_id: str
    score: float
    origin_stop: StopModel
    destination_stop: StopModel
    total_duration_min: float
    transit_distance_km: float
    transit_duration_min: float
    walking_distance_m: float
    traffic_delay_min: float
    transfers: int
    data_quality: str
    polyline: List[Tuple[float, float]]


class ZoneModel(BaseModel):
    zone_type: str
    density_score: Optional[float] = None
    traffic_ratio: Optional[float] = None
    poi_count: Optional[int] = None
    road_closure: bool = False
    degraded: bool = False


class EndpointModel(BaseModel):
    label: Optional[str] = None
    coordinate: CoordinateModel
    zone: ZoneModel
    nearby_stops: int
    accessible_stops: int
    search_radius_m: Optional[int] = None
    synthetic_stops: bool = False


class IssueModel(BaseModel):
    code: str
    message: str
    severity: str
    side: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class OptimizeResponse(BaseModel):
    success: bool
    routes: List[ItineraryModel]
    origin: EndpointModel
    destination: EndpointModel
    anomalies: List[IssueModel]
    warnings: List[IssueModel]
    metadata: Dict[str, Any]
