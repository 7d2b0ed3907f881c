"""
Road Geometry Service - OSM road attributes as a RoadGeometryProvider

Reads `maxspeed`, `lanes` and `highway` from the nearest OSM way to refine
the local speed estimate used by the curve analyzer.
"""
import logging
import re
from typing import Any, Optional

from routerisk.services.overpass_client import OverpassClient, element_location
from routerisk.services.providers import RoadAttributes
from routerisk.utils.geo_utils import haversine_distance

logger = logging.getLogger(__name__)

MPH_TO_KMH = 1.60934
ROAD_SEARCH_RADIUS_M = 30


def parse_maxspeed(maxspeed: Any) -> Optional[float]:
    """
    Parse an OSM maxspeed tag to km/h.

    Example:
        >>> parse_maxspeed("50")
        50.0
        >>> parse_maxspeed("30 mph")
        48.0
        >>> parse_maxspeed("none") is None
        True
    """
    if not maxspeed or maxspeed == "none":
        return None

    # Handle "50 mph", "80 km/h", etc.
    match = re.search(r"(\d+)", str(maxspeed))
    if not match:
        return None

    speed = int(match.group(1))
    if "mph" in str(maxspeed).lower():
        speed = int(speed * MPH_TO_KMH)
    return float(speed)


def parse_lanes(value: Any) -> Optional[int]:
    """Lane count; ranges like "2-3" take the lower value."""
    try:
        if isinstance(value, str) and "-" in value:
            return int(value.split("-")[0])
        return int(value)
    except (ValueError, TypeError):
        return None


class OverpassRoadGeometryProvider:
    name = "overpass-roads"

    def __init__(self, client: Optional[OverpassClient] = None):
        self.client = client or OverpassClient()

    def get_road_attributes(
        self, latitude: float, longitude: float
    ) -> Optional[RoadAttributes]:
        """
        Attributes of the closest highway way, or None if no road is mapped.

        Raises:
            ProviderError: Overpass unavailable or malformed response
        """
        body = f'way["highway"](around:{ROAD_SEARCH_RADIUS_M},{latitude},{longitude});'
        elements = self.client.query(body, provider=self.name)

        closest = None
        closest_distance = float("inf")
        for element in elements:
            location = element_location(element)
            if location is None:
                continue
            distance = haversine_distance(latitude, longitude, *location)
            if distance < closest_distance:
                closest, closest_distance = element, distance

        if closest is None:
            return None

        tags = closest.get("tags")
        if not isinstance(tags, dict):
            tags = {}
        return RoadAttributes(
            max_speed_kmh=parse_maxspeed(tags.get("maxspeed")),
            lanes=parse_lanes(tags.get("lanes")),
            highway=tags.get("highway"),
        )
