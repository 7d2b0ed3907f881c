"""
Geographic and geometric utility functions for route risk analysis.

Provides distance, bearing and destination calculations on a spherical earth,
a local tangent-plane projection, least-squares circle fitting, and the
similar-triangles shadow projection used by the obstruction analyzer.

All distances are in meters.
"""
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from routerisk.services.algorithm_config import (
    EARTH_RADIUS_M,
    CIRCLE_FIT_SINGULAR_EPSILON,
    CIRCLE_FIT_MIN_RADIUS_M,
    CIRCLE_FIT_MAX_RADIUS_M,
)

LatLon = Tuple[float, float]


@dataclass(frozen=True)
class CircleFit:
    """
    Result of a least-squares circle fit.

    Attributes:
        is_valid: False when the system was near-singular or the radius implausible
        radius: Fitted radius in meters (0.0 when the fit failed outright)
        center: (x, y) of the center in local meters relative to the first point
        confidence: 1 - mean radial residual / radius, clamped to [0, 1]
    """

    is_valid: bool
    radius: float = 0.0
    center: Optional[Tuple[float, float]] = None
    confidence: float = 0.0


def haversine_distance(
    lat1: float, lon1: float, lat2: float, lon2: float
) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Args:
        lat1: Latitude of first point (degrees)
        lon1: Longitude of first point (degrees)
        lat2: Latitude of second point (degrees)
        lon2: Longitude of second point (degrees)

    Returns:
        Distance in meters

    Example:
        >>> distance = haversine_distance(40.0, -105.0, 40.1, -105.1)
        >>> print(f"{distance:.0f} m")
        13935 m
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2 - lon1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def calculate_bearing(
    lat1: float, lon1: float, lat2: float, lon2: float
) -> float:
    """
    Calculate the initial bearing (forward azimuth) from point 1 to point 2.

    Returns the bearing in degrees [0, 360), where:
    - 0° = North
    - 90° = East
    - 180° = South
    - 270° = West

    Example:
        >>> bearing = calculate_bearing(40.0, -105.0, 40.1, -105.0)
        >>> print(f"{bearing:.1f}°")
        0.0°  # North
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlon_rad = math.radians(lon2 - lon1)

    x = math.sin(dlon_rad) * math.cos(lat2_rad)
    y = math.cos(lat1_rad) * math.sin(lat2_rad) - (
        math.sin(lat1_rad) * math.cos(lat2_rad) * math.cos(dlon_rad)
    )

    bearing_degrees = (math.degrees(math.atan2(x, y)) + 360) % 360

    # (-tiny + 360) % 360 can round to exactly 360.0
    return 0.0 if bearing_degrees >= 360.0 else bearing_degrees


def bearing_difference(bearing1: float, bearing2: float) -> float:
    """Smallest absolute angle between two bearings, in [0, 180]."""
    diff = abs(bearing2 - bearing1) % 360
    return 360 - diff if diff > 180 else diff


def destination_point(
    lat: float, lon: float, bearing_deg: float, distance_m: float
) -> LatLon:
    """
    Point reached by travelling distance_m from (lat, lon) on a fixed bearing.

    Returns:
        (latitude, longitude) in degrees
    """
    angular = distance_m / EARTH_RADIUS_M
    lat1 = math.radians(lat)
    lon1 = math.radians(lon)
    brng = math.radians(bearing_deg)

    lat2 = math.asin(
        math.sin(lat1) * math.cos(angular)
        + math.cos(lat1) * math.sin(angular) * math.cos(brng)
    )
    lon2 = lon1 + math.atan2(
        math.sin(brng) * math.sin(angular) * math.cos(lat1),
        math.cos(angular) - math.sin(lat1) * math.sin(lat2),
    )

    return math.degrees(lat2), (math.degrees(lon2) + 540) % 360 - 180


def to_local_cartesian(lat: float, lon: float, origin: LatLon) -> Tuple[float, float]:
    """
    Project (lat, lon) onto a tangent plane centered at origin.

    Equirectangular projection - accurate to well under a meter across the
    few hundred meters a curve window spans.

    Returns:
        (x, y) in meters, x pointing east and y north
    """
    origin_lat, origin_lon = origin
    x = EARTH_RADIUS_M * math.radians(lon - origin_lon) * math.cos(math.radians(origin_lat))
    y = EARTH_RADIUS_M * math.radians(lat - origin_lat)
    return x, y


def from_local_cartesian(x: float, y: float, origin: LatLon) -> LatLon:
    """Inverse of to_local_cartesian."""
    origin_lat, origin_lon = origin
    lat = origin_lat + math.degrees(y / EARTH_RADIUS_M)
    lon = origin_lon + math.degrees(x / (EARTH_RADIUS_M * math.cos(math.radians(origin_lat))))
    return lat, lon


def fit_circle(points: Sequence[LatLon]) -> CircleFit:
    """
    Fit a circle through GPS points by linear least squares.

    Points are first converted to local Cartesian meters relative to the first
    point; fitting directly in degrees is numerically unstable. The normal
    equations of the algebraic (Kasa) fit are solved for the center, then the
    radius is the mean distance from the center to the points.

    Args:
        points: Sequence of (latitude, longitude) tuples, at least 3

    Returns:
        CircleFit; is_valid is False for near-collinear points or a radius
        outside [10 m, 10 km]
    """
    if len(points) < 3:
        return CircleFit(is_valid=False)

    origin = points[0]
    xy = np.array([to_local_cartesian(lat, lon, origin) for lat, lon in points])
    x = xy[:, 0]
    y = xy[:, 1]
    n = len(points)

    sum_x, sum_y = x.sum(), y.sum()
    sum_x2, sum_y2, sum_xy = (x * x).sum(), (y * y).sum(), (x * y).sum()

    a = n * sum_x2 - sum_x ** 2
    b = n * sum_xy - sum_x * sum_y
    c = n * sum_y2 - sum_y ** 2
    d = 0.5 * (n * (x * y * y).sum() - sum_x * sum_y2 + n * (x ** 3).sum() - sum_x * sum_x2)
    e = 0.5 * (n * (x * x * y).sum() - sum_y * sum_x2 + n * (y ** 3).sum() - sum_y * sum_y2)

    denominator = a * c - b * b
    # Scale-free singularity test: the determinant grows with (n * spread^2)^2
    scale = max(a * c, b * b, 1.0)
    if abs(denominator) / scale < CIRCLE_FIT_SINGULAR_EPSILON:
        return CircleFit(is_valid=False)

    center_x = (d * c - b * e) / denominator
    center_y = (a * e - b * d) / denominator

    distances = np.hypot(x - center_x, y - center_y)
    radius = float(distances.mean())
    if not math.isfinite(radius) or radius <= 0:
        return CircleFit(is_valid=False)

    mean_error = float(np.abs(distances - radius).mean())
    confidence = max(0.0, min(1.0, 1.0 - mean_error / radius))

    return CircleFit(
        is_valid=CIRCLE_FIT_MIN_RADIUS_M <= radius <= CIRCLE_FIT_MAX_RADIUS_M,
        radius=radius,
        center=(float(center_x), float(center_y)),
        confidence=confidence,
    )


def shadow_length(
    observer_height: float, obstruction_height: float, distance: float
) -> float:
    """
    Length of the sight shadow an obstruction casts past itself.

    Similar triangles: shadow / (H - h) = distance / H, where h is the
    observer eye height and H the obstruction height.

    Returns:
        Shadow length in meters (0.0 if the obstruction is not taller than the eye)

    Example:
        >>> shadow_length(1.2, 30.0, 20.0)
        19.2
    """
    if obstruction_height <= observer_height:
        return 0.0
    return distance * (obstruction_height - observer_height) / obstruction_height


def middle_ordinate(radius: float, chord_length: float) -> float:
    """
    Middle ordinate of a circular arc: M = R - sqrt(R² - (L/2)²).

    The half chord is capped at the radius, so a chord longer than the
    diameter yields M = R.
    """
    half_chord = min(chord_length / 2, radius)
    return radius - math.sqrt(radius * radius - half_chord * half_chord)


def cumulative_distances(points: Sequence[LatLon]) -> list[float]:
    """
    Distance along the path from the first point to each point.

    Returns:
        List of cumulative distances in meters, first element 0.0
    """
    distances = [0.0]
    for (lat1, lon1), (lat2, lon2) in zip(points, points[1:]):
        distances.append(distances[-1] + haversine_distance(lat1, lon1, lat2, lon2))
    return distances
