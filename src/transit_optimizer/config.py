"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="TRANSIT_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Transit Itinerary Optimizer API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root logging level.")
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=("*",),
        description="Permitted web origins for browser clients (CORS).",
    )

    # TomTom provider configuration
    tomtom_api_key: Optional[str] = Field(
        default=None,
        description="API key for the TomTom search, routing and traffic services.",
    )
    tomtom_base_url: str = Field(default="https://api.tomtom.com")
    geocode_country_set: Optional[str] = Field(
        default="MA",
        description="ISO country filter applied to geocoding requests.",
    )
    stop_category_set: str = Field(
        default="9361,9362,9363,9364",
        description="POI categories treated as transit stops by nearby search.",
    )
    request_timeout_seconds: float = Field(default=20.0, gt=0.0)
    traffic_timeout_seconds: float = Field(default=10.0, gt=0.0)
    provider_max_retries: int = Field(default=2, ge=0)
    provider_backoff_seconds: float = Field(default=0.5, ge=0.0)
    max_parallel_requests: int = Field(default=8, ge=1)

    # Cache configuration
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL; the in-process cache is used when unset.",
    )
    cache_coordinate_precision: int = Field(default=5, ge=0, le=8)
    geocode_cache_ttl_seconds: int = Field(default=3600, ge=0)
    route_cache_ttl_seconds: int = Field(default=1800, ge=0)
    stops_cache_ttl_seconds: int = Field(default=3600, ge=0)
    density_cache_ttl_seconds: int = Field(default=1800, ge=0)
    traffic_cache_ttl_seconds: int = Field(default=300, ge=0)

    # Route optimization engine
    max_walking_distance_meters: float = Field(default=800.0, gt=0.0)
    transfer_penalty_seconds: float = Field(default=180.0, ge=0.0)
    max_candidates_per_side: int = Field(default=5, ge=1)
    max_results_returned: int = Field(default=5, ge=1)
    max_stops_per_side: int = Field(default=10, ge=1)
    relaxed_stop_count: int = Field(default=3, ge=1)
    radius_escalation_steps: tuple[int, ...] = Field(
        default=(1000, 2000),
        description="Ordered discovery radii (meters) tried before declaring a coverage gap.",
    )
    coverage_gap_policy: Literal["fail_fast", "synthetic_fallback"] = Field(
        default="fail_fast",
        description="Behaviour when no stops exist near an endpoint after radius escalation.",
    )
    zone_radius_meters: int = Field(default=500, ge=1)
    transit_profile: Literal["bus", "car", "taxi", "van"] = Field(
        default="bus",
        description="Routing profile approximating the transit vehicle between two stops.",
    )
    synthetic_stop_offset_meters: float = Field(default=250.0, gt=0.0)

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("radius_escalation_steps", mode="before")
    @classmethod
    def _parse_int_tuple_from_env(cls, value: Any) -> tuple[int, ...]:
        """Parse integer tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(int(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(int(item) for item in parsed)
            except (json.JSONDecodeError, TypeError, ValueError):
                pass
            if "," in value:
                return tuple(int(item.strip()) for item in value.split(",") if item.strip())
            if value.strip():
                try:
                    return (int(value.strip()),)
                except ValueError:
                    return tuple()
        return tuple()

    @field_validator("radius_escalation_steps")
    @classmethod
    def _require_radius_steps(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if not value:
            raise ValueError("At least one discovery radius is required.")
        if any(step <= 0 for step in value):
            raise ValueError("Discovery radii must be positive.")
        return value


settings = Settings()
