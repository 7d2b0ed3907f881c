"""
Obstruction Shadow Analyzer - blind spots cast by nearby structures

A structure of height H at distance d from the driver (eye height h) hides
everything in its geometric shadow. By similar triangles the shadow extends

    shadow = d · (H - h) / H

past the structure, so the driver's clear view along that side ends at
d + shadow (floored at MIN_VISIBILITY_FLOOR_M). A feature is a finding when
it is tall and close enough, its shadow is significant, and the resulting
visibility is short.
"""
import logging
from typing import List, Sequence

from routerisk.schemas.blind_spot import AnalysisMethod, SpotType
from routerisk.services.algorithm_config import (
    DEFAULT_THRESHOLDS,
    DRIVER_EYE_HEIGHT_M,
    ESTIMATED_HEIGHT_CONFIDENCE_FACTOR,
    MIN_VISIBILITY_FLOOR_M,
    OBSTRUCTION_FAR_CONFIDENCE,
    OBSTRUCTION_NEAR_CONFIDENCE,
    OBSTRUCTION_NEAR_DISTANCE_M,
    AnalysisThresholds,
)
from routerisk.services.candidate import BlindSpotCandidate
from routerisk.services.providers import NearbyFeature
from routerisk.services.recommendations import finding_recommendations
from routerisk.utils.geo_utils import calculate_bearing, shadow_length

logger = logging.getLogger(__name__)


def calculate_obstruction_risk(distance_m: float, height_m: float, shadow_m: float) -> float:
    """
    Obstruction risk score in [1, 10].

    Example:
        >>> calculate_obstruction_risk(20.0, 30.0, 19.2)
        6.0
    """
    score = 1.0

    if distance_m < 20:
        score += 4
    elif distance_m < 40:
        score += 3
    elif distance_m < 60:
        score += 2
    elif distance_m < 80:
        score += 1

    if height_m > 30:
        score += 3
    elif height_m > 20:
        score += 2
    elif height_m > 10:
        score += 1

    if shadow_m > 50:
        score += 2
    elif shadow_m > 25:
        score += 1

    return max(1.0, min(10.0, score))


def obstruction_confidence(distance_m: float, height_estimated: bool) -> float:
    confidence = (
        OBSTRUCTION_NEAR_CONFIDENCE
        if distance_m < OBSTRUCTION_NEAR_DISTANCE_M
        else OBSTRUCTION_FAR_CONFIDENCE
    )
    if height_estimated:
        confidence *= ESTIMATED_HEIGHT_CONFIDENCE_FACTOR
    return confidence


def analyze_point_obstructions(
    latitude: float,
    longitude: float,
    distance_from_start_km: float,
    features: Sequence[NearbyFeature],
    thresholds: AnalysisThresholds = DEFAULT_THRESHOLDS,
    point_index: int = 0,
) -> List[BlindSpotCandidate]:
    """
    Evaluate the features around one sampled route point.

    Args:
        latitude: Route point latitude
        longitude: Route point longitude
        distance_from_start_km: Route point position along the route
        features: Nearby features from a NearbyFeatureProvider
        thresholds: Analysis thresholds
        point_index: Index of the route point (recorded in details)

    Returns:
        Obstruction candidates (unfiltered by minimum risk score)
    """
    candidates = []

    for feature in features:
        if feature.height_m < thresholds.obstruction_min_height_m:
            continue
        if feature.distance_m > thresholds.obstruction_max_distance_m:
            continue

        shadow = shadow_length(DRIVER_EYE_HEIGHT_M, feature.height_m, feature.distance_m)
        visibility = max(MIN_VISIBILITY_FLOOR_M, feature.distance_m + shadow)

        if shadow <= thresholds.obstruction_min_shadow_m:
            continue
        if visibility >= thresholds.obstruction_max_visibility_m:
            continue

        risk_score = calculate_obstruction_risk(feature.distance_m, feature.height_m, shadow)

        details = {
            "point_index": point_index,
            "feature_name": feature.name,
            "feature_type": feature.feature_type,
            "feature_distance_m": round(feature.distance_m, 1),
            "height_source": "estimated" if feature.height_estimated else "measured",
            "shadow_length_m": round(shadow, 1),
        }
        if feature.location is not None:
            details["feature_location"] = list(feature.location)
            details["bearing_to_feature_deg"] = round(
                calculate_bearing(latitude, longitude, *feature.location), 1
            )

        candidates.append(BlindSpotCandidate(
            latitude=latitude,
            longitude=longitude,
            distance_from_start_km=distance_from_start_km,
            spot_type=SpotType.OBSTRUCTION,
            visibility_distance_m=visibility,
            obstruction_height_m=feature.height_m,
            risk_score=risk_score,
            analysis_method=AnalysisMethod.GEOMETRIC_SHADOW_ANALYSIS,
            confidence=obstruction_confidence(feature.distance_m, feature.height_estimated),
            details=details,
            recommendations=finding_recommendations(SpotType.OBSTRUCTION, risk_score, visibility),
        ))

    return candidates
