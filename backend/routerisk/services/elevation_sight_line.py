"""
Elevation Sight-Line Analyzer - hill crest blind spots

For each observer position along the route the driver's eye sits
DRIVER_EYE_HEIGHT_M above the road. A horizontal sight line is traced
forward over the elevation profile, dropping with earth curvature:

    sight_line(d) = observer_elevation - d² / (2·R_earth)

A forward sample blocks the view when the top of a critical object standing
on it (CRITICAL_OBJECT_HEIGHT_M) rises above the sight line. The first such
sample is the obstruction (closer obstructions dominate); its distance is the
visibility distance and its excess height over the sight line the elevation
difference. A crest is reported when the elevation difference is large
(>= elevation_min_change_m) AND the visibility is short
(<= elevation_max_visibility_m).

Samples without a finite elevation are dropped BEFORE windowing; distances
along the route are measured over the full point sequence, so dropping a
sample never shortens the road.
"""
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from routerisk.schemas.blind_spot import AnalysisMethod, SpotType
from routerisk.schemas.route import RoutePoint
from routerisk.services.algorithm_config import (
    CRITICAL_OBJECT_HEIGHT_M,
    DEFAULT_THRESHOLDS,
    DRIVER_EYE_HEIGHT_M,
    EARTH_RADIUS_M,
    ELEVATION_FULL_WINDOW_CONFIDENCE,
    ELEVATION_PARTIAL_WINDOW_CONFIDENCE,
    ELEVATION_START_MARGIN,
    MIN_VISIBILITY_FLOOR_M,
    AnalysisThresholds,
)
from routerisk.services.candidate import BlindSpotCandidate
from routerisk.services.recommendations import finding_recommendations
from routerisk.services.speed_estimation import estimate_speed_kmh
from routerisk.utils.geo_utils import cumulative_distances

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProfileSample:
    """One route point with a usable elevation."""

    point_index: int
    latitude: float
    longitude: float
    elevation: float
    distance_m: float


@dataclass(frozen=True)
class SightLineResult:
    visibility_distance_m: float
    elevation_difference_m: float
    blocking_sample: ProfileSample


def build_profile(
    points: Sequence[RoutePoint],
    elevations: Sequence[Optional[float]],
) -> List[ProfileSample]:
    """
    Align elevations with points and drop unusable samples.

    Args:
        points: Ordered route points
        elevations: Elevation per point (None / NaN / inf where unknown)

    Returns:
        Samples with finite elevations, in route order
    """
    if len(points) != len(elevations):
        raise ValueError(
            f"Elevation profile has {len(elevations)} samples for {len(points)} points"
        )

    distances = cumulative_distances([(p.latitude, p.longitude) for p in points])

    profile = []
    for index, (point, elevation) in enumerate(zip(points, elevations)):
        if elevation is None or not math.isfinite(elevation):
            continue
        profile.append(ProfileSample(
            point_index=index,
            latitude=point.latitude,
            longitude=point.longitude,
            elevation=float(elevation),
            distance_m=distances[index],
        ))

    dropped = len(points) - len(profile)
    if dropped:
        logger.debug(f"Dropped {dropped}/{len(points)} samples without a finite elevation")
    return profile


def trace_sight_line(
    observer: ProfileSample,
    forward: Sequence[ProfileSample],
    eye_height_m: float = DRIVER_EYE_HEIGHT_M,
    object_height_m: float = CRITICAL_OBJECT_HEIGHT_M,
) -> Optional[SightLineResult]:
    """
    Trace the driver's sight line over the forward samples.

    Returns:
        The first obstruction, or None if the whole window is visible
    """
    observer_height = observer.elevation + eye_height_m

    for sample in forward:
        distance = sample.distance_m - observer.distance_m
        if distance <= 0:
            continue

        sight_line_height = observer_height - distance ** 2 / (2 * EARTH_RADIUS_M)
        target_height = sample.elevation + object_height_m

        if target_height > sight_line_height:
            return SightLineResult(
                visibility_distance_m=max(MIN_VISIBILITY_FLOOR_M, distance),
                elevation_difference_m=target_height - sight_line_height,
                blocking_sample=sample,
            )

    return None


def calculate_crest_risk(
    visibility_m: float,
    elevation_difference_m: float,
    grade_percent: float,
    speed_kmh: float,
) -> float:
    """
    Crest risk score in [1, 10].

    Shorter visibility, a larger blocking height, a steeper approach and a
    higher approach speed each add points to a base of 1.

    Example:
        >>> calculate_crest_risk(50.0, 8.1, 16.7, 50.0)
        6.0
    """
    score = 1.0

    if visibility_m < 50:
        score += 4
    elif visibility_m < 100:
        score += 3
    elif visibility_m < 150:
        score += 2
    elif visibility_m < 200:
        score += 1

    if elevation_difference_m > 15:
        score += 2
    elif elevation_difference_m > 10:
        score += 1

    if grade_percent >= 10:
        score += 2
    elif grade_percent >= 6:
        score += 1

    if speed_kmh > 70:
        score += 2
    elif speed_kmh > 50:
        score += 1

    return max(1.0, min(10.0, score))


def analyze_elevation_profile(
    points: Sequence[RoutePoint],
    elevations: Sequence[Optional[float]],
    thresholds: AnalysisThresholds = DEFAULT_THRESHOLDS,
) -> List[BlindSpotCandidate]:
    """
    Find hill-crest blind spots along a route.

    Args:
        points: Ordered route points
        elevations: Elevation per point, None/non-finite where unknown
        thresholds: Analysis thresholds

    Returns:
        Crest candidates (unfiltered by minimum risk score)
    """
    profile = build_profile(points, elevations)
    if len(profile) < thresholds.elevation_min_profile_samples:
        logger.info(
            f"Elevation profile too short ({len(profile)} valid samples), skipping crest analysis"
        )
        return []

    candidates = []
    skipped_windows = 0
    lookahead = thresholds.elevation_lookahead_points

    for i in range(ELEVATION_START_MARGIN, len(profile) - 1):
        observer = profile[i]
        forward = profile[i + 1:i + 1 + lookahead]

        if len(forward) + 1 < thresholds.elevation_min_profile_samples:
            skipped_windows += 1
            continue

        result = trace_sight_line(observer, forward)
        if result is None:
            continue
        if result.elevation_difference_m < thresholds.elevation_min_change_m:
            continue
        if result.visibility_distance_m > thresholds.elevation_max_visibility_m:
            continue

        blocking = result.blocking_sample
        run = blocking.distance_m - observer.distance_m
        grade_percent = abs(blocking.elevation - observer.elevation) / run * 100
        speed_kmh = estimate_speed_kmh(grade_percent=grade_percent)

        window_elevations = [observer.elevation] + [s.elevation for s in forward]
        risk_score = calculate_crest_risk(
            result.visibility_distance_m,
            result.elevation_difference_m,
            grade_percent,
            speed_kmh,
        )

        candidates.append(BlindSpotCandidate(
            latitude=observer.latitude,
            longitude=observer.longitude,
            distance_from_start_km=observer.distance_m / 1000,
            spot_type=SpotType.CREST,
            visibility_distance_m=result.visibility_distance_m,
            obstruction_height_m=result.elevation_difference_m,
            risk_score=risk_score,
            analysis_method=AnalysisMethod.ELEVATION_RAY_TRACING,
            confidence=(
                ELEVATION_FULL_WINDOW_CONFIDENCE
                if len(forward) == lookahead
                else ELEVATION_PARTIAL_WINDOW_CONFIDENCE
            ),
            details={
                "point_index": observer.point_index,
                "blocking_point_index": blocking.point_index,
                "elevation_change_m": round(max(window_elevations) - min(window_elevations), 2),
                "elevation_difference_m": round(result.elevation_difference_m, 2),
                "grade_percent": round(grade_percent, 1),
                "driver_eye_height_m": DRIVER_EYE_HEIGHT_M,
                "estimated_speed_kmh": speed_kmh,
            },
            recommendations=finding_recommendations(
                SpotType.CREST, risk_score, result.visibility_distance_m
            ),
        ))

    if skipped_windows:
        logger.debug(f"Skipped {skipped_windows} short elevation windows at route end")
    logger.info(f"Crest analysis: {len(candidates)} candidates from {len(profile)} samples")
    return candidates
