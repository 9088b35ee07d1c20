"""Exceptions raised by the optimization engine and its providers."""

from __future__ import annotations

from typing import Sequence


class OptimizationError(Exception):
    """Base class for failures that abort an optimization request."""


class AddressNotFoundError(OptimizationError, LookupError):
    def __init__(self, sides: Sequence[str]) -> None:
        self.sides = tuple(sides)
        super().__init__(f"Address could not be resolved for: {', '.join(self.sides)}")


class NoTransitCoverageError(OptimizationError):
    def __init__(self, side: str, radii: Sequence[int]) -> None:
        self.side = side
        self.radii = tuple(radii)
        super().__init__(
            f"No transit stop found near the {side} within {max(self.radii, default=0)} m."
        )


class ProviderUnavailableError(ConnectionError):
    """A provider call failed after retries or returned an unusable payload."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class ProviderNotConfiguredError(OptimizationError, ValueError):
    """A provider cannot be used because its credentials are missing."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"{provider}: {message}")
