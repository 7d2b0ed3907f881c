"""
Pydantic schemas for routes and their GPS points.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RoutePoint(BaseModel):
    """
    One ordered GPS sample of a planned route.

    Elevation is optional and is NOT validated for finiteness here: garbled
    samples are expected from upstream sources and are filtered by the
    elevation analyzer before any windowing.
    """

    latitude: float = Field(..., ge=-90.0, le=90.0, allow_inf_nan=False, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180.0, le=180.0, allow_inf_nan=False, description="Longitude in degrees")
    order: int = Field(..., ge=0, description="Position of the point along the route")
    elevation: Optional[float] = Field(
        default=None,
        description="Elevation in meters above sea level, if known",
    )
    distance_from_start: Optional[float] = Field(
        default=None,
        ge=0.0,
        allow_inf_nan=False,
        description="Distance along the route from the first point, in km",
    )

    model_config = ConfigDict(frozen=True)


class Route(BaseModel):
    """
    A planned route: an immutable ordered sequence of points.

    Example:
        {
            "route_id": "r-1001",
            "name": "Depot to Terminal",
            "points": [{"latitude": 28.61, "longitude": 77.20, "order": 0}, ...]
        }
    """

    route_id: str = Field(..., min_length=1)
    name: Optional[str] = None
    points: List[RoutePoint] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def ordered_points(self) -> List[RoutePoint]:
        """Points sorted by their order field."""
        return sorted(self.points, key=lambda p: p.order)
