"""
Error taxonomy for route risk analysis.

- InputError: fatal to an analysis call, surfaced to the caller.
- ProviderError: one external lookup failed; absorbed as "no data".
- GeometryDegenerate: one window has no trustworthy geometry; window skipped.
- FindingValidationError: one candidate finding failed validation; dropped.
"""
from dataclasses import dataclass
from typing import Any, Optional


class RouteRiskError(Exception):
    """Base class for all route risk errors."""


class InputError(RouteRiskError, ValueError):
    """Route is missing or has too few points to analyze."""

    def __init__(self, message: str, route_id: Optional[str] = None):
        super().__init__(message)
        self.route_id = route_id


@dataclass
class ProviderError(RouteRiskError):
    provider: str
    reason_code: str
    message: str
    details: Optional[dict[str, Any]] = None

    def __str__(self) -> str:
        return f"{self.provider}: {self.message}"


class GeometryDegenerate(RouteRiskError):
    """Circle fit near-singular, or radius/angle outside plausible bounds."""


class FindingValidationError(RouteRiskError, ValueError):
    """A computed finding field is non-finite or outside its domain."""

    def __init__(self, message: str, candidate: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.candidate = candidate
