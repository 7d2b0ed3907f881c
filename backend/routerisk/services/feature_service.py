"""
Feature Service - OpenStreetMap buildings as a NearbyFeatureProvider

Building heights in OSM are sparse. Height is taken from, in order:
1. the `height` tag (meters, "12 m" / "12.5" accepted)
2. `building:levels` × METERS_PER_BUILDING_LEVEL
3. a fixed per-type estimate from ESTIMATED_FEATURE_HEIGHTS_M

Estimated heights are flagged (height_estimated=True) so the obstruction
analyzer can lower its confidence. Estimates are deterministic: the same
tags always produce the same height.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from routerisk.services.algorithm_config import (
    ESTIMATED_FEATURE_HEIGHTS_M,
    METERS_PER_BUILDING_LEVEL,
)
from routerisk.services.overpass_client import OverpassClient, element_location
from routerisk.services.providers import NearbyFeature
from routerisk.utils.geo_utils import haversine_distance

logger = logging.getLogger(__name__)

_NUMBER = re.compile(r"(\d+(?:\.\d+)?)")


def _parse_number(value: Any) -> Optional[float]:
    """First number in a tag value, or None."""
    if value is None:
        return None
    match = _NUMBER.search(str(value))
    return float(match.group(1)) if match else None


def estimate_feature_height(tags: Dict[str, Any]) -> Tuple[float, bool]:
    """
    Height of a building from its OSM tags.

    Returns:
        (height_m, is_estimated)

    Example:
        >>> estimate_feature_height({"building": "yes", "height": "21 m"})
        (21.0, False)
        >>> estimate_feature_height({"building": "apartments", "building:levels": "4"})
        (12.0, True)
        >>> estimate_feature_height({"building": "commercial"})
        (25.0, True)
    """
    height = _parse_number(tags.get("height"))
    if height is not None and height > 0:
        return height, False

    levels = _parse_number(tags.get("building:levels"))
    if levels is not None and levels > 0:
        return levels * METERS_PER_BUILDING_LEVEL, True

    building_type = str(tags.get("building", "default"))
    return ESTIMATED_FEATURE_HEIGHTS_M.get(
        building_type, ESTIMATED_FEATURE_HEIGHTS_M["default"]
    ), True


class OverpassFeatureProvider:
    """Buildings (and man-made towers) around a route point via Overpass."""

    name = "overpass-features"

    def __init__(self, client: Optional[OverpassClient] = None):
        self.client = client or OverpassClient()

    def get_nearby_features(
        self, latitude: float, longitude: float, radius_m: float
    ) -> List[NearbyFeature]:
        """
        Raises:
            ProviderError: Overpass unavailable or malformed response
        """
        around = f"(around:{radius_m:.0f},{latitude},{longitude})"
        body = f'way["building"]{around};\n  node["man_made"="tower"]{around};'
        elements = self.client.query(body, provider=self.name)

        features = []
        for element in elements:
            location = element_location(element)
            if location is None:
                continue

            tags = element.get("tags")
            if not isinstance(tags, dict):
                tags = {}
            height, estimated = estimate_feature_height(
                tags if "building" in tags else {**tags, "building": "tower"}
            )
            distance = haversine_distance(latitude, longitude, *location)
            if distance > radius_m:
                continue

            features.append(NearbyFeature(
                name=str(tags.get("name", "")),
                feature_type=str(tags.get("building") or tags.get("man_made") or "structure"),
                distance_m=distance,
                height_m=height,
                location=location,
                height_estimated=estimated,
            ))

        features.sort(key=lambda f: f.distance_m)
        logger.debug(f"{len(features)} features within {radius_m:.0f} m of ({latitude:.5f}, {longitude:.5f})")
        return features
