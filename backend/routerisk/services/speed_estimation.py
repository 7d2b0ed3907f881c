"""
Local speed heuristic and AASHTO sight/speed formulas.

Speeds are estimates for sight-distance purposes, not measured speeds.
"""
import math
from typing import Optional

from routerisk.services.algorithm_config import (
    DEFAULT_RURAL_SPEED_KMH,
    HIGHWAY_MIN_LANES,
    HIGHWAY_SPEED_KMH,
    MAX_SUPERELEVATION,
    REACTION_TIME_S,
    SIDE_FRICTION_FACTOR,
    STEEP_GRADE_PERCENT,
    URBAN_SPEED_KMH,
    WET_FRICTION_COEFFICIENT,
)
from routerisk.services.providers import RoadAttributes

# OSM highway classes that imply built-up, low-speed surroundings
URBAN_HIGHWAY_TYPES = frozenset({
    "residential",
    "living_street",
    "service",
    "unclassified",
})
HIGHWAY_TYPES = frozenset({"motorway", "trunk", "motorway_link", "trunk_link"})


def estimate_speed_kmh(
    road: Optional[RoadAttributes] = None,
    grade_percent: Optional[float] = None,
) -> float:
    """
    Estimate the local travel speed.

    Priority: posted speed limit > road class / lane count > rural default.
    Steep grades cap the estimate at urban speed.

    Args:
        road: Road attributes near the point, if a provider supplied any
        grade_percent: Absolute local grade, if known

    Returns:
        Speed in km/h
    """
    speed = DEFAULT_RURAL_SPEED_KMH

    if road is not None:
        if road.max_speed_kmh is not None and road.max_speed_kmh > 0:
            speed = road.max_speed_kmh
        elif road.highway in HIGHWAY_TYPES or (road.lanes or 0) >= HIGHWAY_MIN_LANES:
            speed = HIGHWAY_SPEED_KMH
        elif road.highway in URBAN_HIGHWAY_TYPES:
            speed = URBAN_SPEED_KMH

    if grade_percent is not None and abs(grade_percent) > STEEP_GRADE_PERCENT:
        speed = min(speed, URBAN_SPEED_KMH)

    return speed


def stopping_sight_distance(
    speed_kmh: float,
    reaction_time_s: float = REACTION_TIME_S,
    friction: float = WET_FRICTION_COEFFICIENT,
) -> float:
    """
    AASHTO stopping sight distance.

    SSD = 0.278·v·t + v² / (254·f)

    Example:
        >>> round(stopping_sight_distance(60.0), 1)
        82.2
    """
    reaction_distance = 0.278 * speed_kmh * reaction_time_s
    braking_distance = speed_kmh ** 2 / (254 * friction)
    return reaction_distance + braking_distance


def required_superelevation(speed_kmh: float, radius_m: float) -> float:
    """e = v²/(127·R) − f_side, clamped to [0, MAX_SUPERELEVATION]."""
    e = speed_kmh ** 2 / (127 * radius_m) - SIDE_FRICTION_FACTOR
    return max(0.0, min(MAX_SUPERELEVATION, e))


def safe_curve_speed(radius_m: float, superelevation: float = MAX_SUPERELEVATION) -> float:
    """Maximum comfortable speed on a curve: √(127·R·(e + f_side)), km/h."""
    return math.sqrt(127 * radius_m * (superelevation + SIDE_FRICTION_FACTOR))
