"""
Curve Geometry Analyzer - horizontal curve blind spots

Two phases:
1. find_curve_windows(): slide a window of CURVE_WINDOW_POINTS across the
   route, measure the turn angle between the first-half and second-half
   chord bearings, and fit a circle to estimate the radius. Windows that are
   not sharp enough, whose fit is degenerate, or whose radius is outside the
   plausible road-curve range are skipped.
2. evaluate_curve(): compare the sight distance available around the curve
   (middle ordinate of a representative chord) with the AASHTO stopping
   sight distance at the estimated local speed.

Phase 2 needs a speed estimate, which the aggregator may refine with road
attributes for exactly the windows phase 1 returned.
"""
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from routerisk.exceptions import GeometryDegenerate
from routerisk.schemas.blind_spot import AnalysisMethod, SpotType
from routerisk.schemas.route import RoutePoint
from routerisk.services.algorithm_config import (
    CURVE_STRAIGHT_BEARING_DEG,
    DEFAULT_THRESHOLDS,
    MIN_VISIBILITY_FLOOR_M,
    REPRESENTATIVE_CHORD_M,
    AnalysisThresholds,
)
from routerisk.services.candidate import BlindSpotCandidate
from routerisk.services.recommendations import finding_recommendations
from routerisk.services.speed_estimation import (
    estimate_speed_kmh,
    required_superelevation,
    safe_curve_speed,
    stopping_sight_distance,
)
from routerisk.utils.geo_utils import (
    calculate_bearing,
    bearing_difference,
    cumulative_distances,
    fit_circle,
    middle_ordinate,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurveWindow:
    """Geometry of one window that qualifies as a sharp curve."""

    center_index: int
    latitude: float
    longitude: float
    distance_from_start_m: float
    radius_m: float
    turn_angle_deg: float
    direction: str
    fit_confidence: float


def turn_direction(entry_bearing: float, exit_bearing: float) -> str:
    """'right', 'left' or 'straight' from entry to exit bearing."""
    signed = (exit_bearing - entry_bearing + 540) % 360 - 180
    if abs(signed) < CURVE_STRAIGHT_BEARING_DEG:
        return "straight"
    return "right" if signed > 0 else "left"


def available_sight_distance(
    radius_m: float, chord_m: float = REPRESENTATIVE_CHORD_M
) -> float:
    """
    Sight distance around a horizontal curve: 2·√(R·M).

    M is the middle ordinate of a representative chord.

    Example:
        >>> round(available_sight_distance(120.0), 1)
        72.4
    """
    return 2 * math.sqrt(radius_m * middle_ordinate(radius_m, chord_m))


def _fit_window(coords, thresholds: AnalysisThresholds):
    fit = fit_circle(coords)
    if not fit.is_valid:
        raise GeometryDegenerate("near-collinear points or implausible radius")
    if fit.confidence < thresholds.curve_min_fit_confidence:
        raise GeometryDegenerate(f"fit confidence {fit.confidence:.2f} too low")
    if not thresholds.curve_min_radius_m <= fit.radius <= thresholds.curve_max_radius_m:
        raise GeometryDegenerate(f"radius {fit.radius:.1f} m outside road-curve range")
    return fit


def find_curve_windows(
    points: Sequence[RoutePoint],
    thresholds: AnalysisThresholds = DEFAULT_THRESHOLDS,
) -> List[CurveWindow]:
    """
    Locate sharp curves along the route.

    Args:
        points: Ordered route points
        thresholds: Analysis thresholds

    Returns:
        One CurveWindow per qualifying window center, in route order
    """
    half = thresholds.curve_window_points // 2
    if len(points) < 2 * half + 1:
        return []

    coords = [(p.latitude, p.longitude) for p in points]
    distances = cumulative_distances(coords)
    windows = []
    degenerate = 0

    for i in range(half, len(points) - half):
        window = coords[i - half:i + half + 1]

        entry_bearing = calculate_bearing(*window[0], *window[half])
        exit_bearing = calculate_bearing(*window[half], *window[-1])
        turn_angle = bearing_difference(entry_bearing, exit_bearing)

        if turn_angle < thresholds.curve_min_turn_angle_deg:
            continue

        try:
            fit = _fit_window(window, thresholds)
        except GeometryDegenerate as e:
            degenerate += 1
            logger.debug(f"Skipping curve window at point {i}: {e}")
            continue

        windows.append(CurveWindow(
            center_index=i,
            latitude=coords[i][0],
            longitude=coords[i][1],
            distance_from_start_m=distances[i],
            radius_m=fit.radius,
            turn_angle_deg=turn_angle,
            direction=turn_direction(entry_bearing, exit_bearing),
            fit_confidence=fit.confidence,
        ))

    if degenerate:
        logger.info(f"Skipped {degenerate} degenerate curve windows")
    return windows


def calculate_curve_risk(radius_m: float, sight_ratio: float, turn_angle_deg: float) -> float:
    """
    Curve risk score in [1, 10].

    Tighter radius, a lower available/required ratio and a larger turn
    angle each add points to a base of 1.
    """
    score = 1.0

    if radius_m < 50:
        score += 4
    elif radius_m < 100:
        score += 3
    elif radius_m < 200:
        score += 2
    elif radius_m < 300:
        score += 1

    if sight_ratio < 0.6:
        score += 3
    elif sight_ratio < 0.8:
        score += 2
    elif sight_ratio < 1.0:
        score += 1

    if turn_angle_deg > 90:
        score += 2
    elif turn_angle_deg > 60:
        score += 1

    return max(1.0, min(10.0, score))


def evaluate_curve(
    window: CurveWindow,
    speed_kmh: float,
    thresholds: AnalysisThresholds = DEFAULT_THRESHOLDS,
) -> Optional[BlindSpotCandidate]:
    """
    Turn a curve window into a candidate if its sight distance is inadequate.

    Returns:
        Candidate when available < required × margin, else None
    """
    required = stopping_sight_distance(speed_kmh)
    available = available_sight_distance(window.radius_m)

    if available >= required * thresholds.curve_sight_distance_margin:
        return None

    sight_ratio = available / required
    risk_score = calculate_curve_risk(window.radius_m, sight_ratio, window.turn_angle_deg)
    visibility = max(MIN_VISIBILITY_FLOOR_M, available)
    superelevation = required_superelevation(speed_kmh, window.radius_m)

    return BlindSpotCandidate(
        latitude=window.latitude,
        longitude=window.longitude,
        distance_from_start_km=window.distance_from_start_m / 1000,
        spot_type=SpotType.CURVE,
        visibility_distance_m=visibility,
        obstruction_height_m=0.0,
        risk_score=risk_score,
        analysis_method=AnalysisMethod.GEOMETRIC_SIGHT_DISTANCE,
        confidence=window.fit_confidence,
        details={
            "point_index": window.center_index,
            "radius_m": round(window.radius_m, 1),
            "turn_angle_deg": round(window.turn_angle_deg, 1),
            "direction": window.direction,
            "estimated_speed_kmh": speed_kmh,
            "required_sight_distance_m": round(required, 1),
            "available_sight_distance_m": round(available, 1),
            "sight_distance_ratio": round(sight_ratio, 3),
            "middle_ordinate_m": round(middle_ordinate(window.radius_m, REPRESENTATIVE_CHORD_M), 2),
            "superelevation": round(superelevation, 3),
            "safe_speed_kmh": round(safe_curve_speed(window.radius_m, superelevation), 1),
        },
        recommendations=finding_recommendations(SpotType.CURVE, risk_score, visibility),
    )


def analyze_curves(
    points: Sequence[RoutePoint],
    speeds_kmh: Optional[Sequence[float]] = None,
    thresholds: AnalysisThresholds = DEFAULT_THRESHOLDS,
) -> List[BlindSpotCandidate]:
    """
    Full curve analysis with a fixed speed per window.

    Args:
        points: Ordered route points
        speeds_kmh: Speed per curve window (aligned with find_curve_windows
            output); the rural default is used when omitted
        thresholds: Analysis thresholds

    Returns:
        Curve candidates (unfiltered by minimum risk score)
    """
    windows = find_curve_windows(points, thresholds)
    if speeds_kmh is None:
        speeds_kmh = [estimate_speed_kmh() for _ in windows]

    candidates = []
    for window, speed in zip(windows, speeds_kmh):
        candidate = evaluate_curve(window, speed, thresholds)
        if candidate is not None:
            candidates.append(candidate)

    logger.info(f"Curve analysis: {len(windows)} sharp windows, {len(candidates)} candidates")
    return candidates
