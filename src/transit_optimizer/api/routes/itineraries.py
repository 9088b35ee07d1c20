"""Itinerary optimization endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from ...schemas.itinerary import OptimizeRequest, OptimizeResponse
from ...services.optimizer.errors import (
    AddressNotFoundError,
    NoTransitCoverageError,
    ProviderNotConfiguredError,
    ProviderUnavailableError,
)
from ...services.optimizer.service import optimize_itinerary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/routes", tags=["routes"])


@router.post("/optimize", response_model=OptimizeResponse, status_code=status.HTTP_200_OK)
def optimize(payload: OptimizeRequest) -> OptimizeResponse:
    try:
        return optimize_itinerary(payload)
    except AddressNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "ADDRESS_NOT_FOUND", "message": str(exc), "sides": list(exc.sides)},
        ) from exc
    except NoTransitCoverageError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "error": "NO_TRANSIT_COVERAGE",
                "message": str(exc),
                "side": exc.side,
                "radii_meters": list(exc.radii),
            },
        ) from exc
    except ProviderUnavailableError as exc:
        logger.error(f"Provider failure while optimizing itinerary: {exc}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "PROVIDER_UNAVAILABLE", "message": str(exc), "provider": exc.provider},
        ) from exc
    except ProviderNotConfiguredError as exc:
        logger.error(f"Optimizer is not configured: {exc}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "PROVIDER_NOT_CONFIGURED", "message": str(exc), "provider": exc.provider},
        ) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error optimizing itinerary: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to optimize itinerary: {str(exc)}",
        ) from exc
