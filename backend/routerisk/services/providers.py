"""
Narrow interfaces to the external collaborators the analysis core consumes.

Providers are synchronous (they wrap blocking HTTP clients); the provider
gateway moves their calls onto worker threads. Every provider signals an
unusable lookup by raising ProviderError, never by returning fabricated data.
"""
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from routerisk.schemas.blind_spot import BlindSpotFinding
from routerisk.schemas.risk import RouteRiskAssessment
from routerisk.schemas.route import Route, RoutePoint


@dataclass(frozen=True)
class NearbyFeature:
    """
    A discrete structure near the route.

    Attributes:
        name: Human-readable name, "" when unnamed
        feature_type: Building/structure category (e.g. "commercial", "house")
        distance_m: Distance from the queried route point
        height_m: Height above road level
        location: (latitude, longitude) of the feature, if known
        height_estimated: True when height_m is a per-type estimate, not measured
    """

    name: str
    feature_type: str
    distance_m: float
    height_m: float
    location: Optional[Tuple[float, float]] = None
    height_estimated: bool = False


@dataclass(frozen=True)
class RoadAttributes:
    """Supplementary road attributes near a point."""

    max_speed_kmh: Optional[float] = None
    lanes: Optional[int] = None
    highway: Optional[str] = None


@runtime_checkable
class ElevationProvider(Protocol):
    def get_elevations(self, points: Sequence[RoutePoint]) -> List[Optional[float]]:
        """Elevations aligned 1:1 with points; None where unknown."""
        ...


@runtime_checkable
class NearbyFeatureProvider(Protocol):
    def get_nearby_features(
        self, latitude: float, longitude: float, radius_m: float
    ) -> List[NearbyFeature]:
        ...


@runtime_checkable
class RoadGeometryProvider(Protocol):
    def get_road_attributes(
        self, latitude: float, longitude: float
    ) -> Optional[RoadAttributes]:
        ...


@runtime_checkable
class RouteStore(Protocol):
    """
    Transactional storage boundary.

    replace_blind_spots must swap the route's whole finding set in one
    step: either the new set is fully visible afterwards or the old one is.
    """

    def load_route(self, route_id: str) -> Optional[Route]:
        ...

    def replace_blind_spots(
        self, route_id: str, findings: Sequence[BlindSpotFinding]
    ) -> None:
        ...

    def load_blind_spots(self, route_id: str) -> List[BlindSpotFinding]:
        ...

    def save_risk_assessment(
        self, route_id: str, assessment: RouteRiskAssessment
    ) -> None:
        ...
