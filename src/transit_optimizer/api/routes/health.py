"""Health endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, status

from ...config import settings

router = APIRouter(tags=["health"])


def _get_cache():
    """Lazy import to avoid startup failures."""
    from ...services.cache import build_cache

    return build_cache()


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Report provider configuration and cache reachability."""
    tomtom_configured = bool(settings.tomtom_api_key)
    cache = _get_cache()
    return {
        "status": "ok",
        "service": settings.app_name,
        "tomtom_configured": tomtom_configured,
        "cache_available": cache.available(),
        "cache_backend": cache.backend_name,
        "features": {
            "geocoding": tomtom_configured,
            "stop_discovery": tomtom_configured,
            "traffic": tomtom_configured,
            "density_analysis": tomtom_configured,
            "coverage_gap_policy": settings.coverage_gap_policy,
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/tomtom", status_code=status.HTTP_200_OK)
def health_tomtom() -> dict:
    """Check TomTom service health."""
    from ...services.providers.tomtom_client import check_health

    if not settings.tomtom_api_key:
        return {"service": "tomtom", "healthy": False, "error": "TRANSIT_TOMTOM_API_KEY is not set"}
    return {"service": "tomtom", "healthy": check_health()}
