"""
RouteRisk Utility Functions

Geographic and geometric calculations for blind-spot analysis:
- Distances, bearings and destination points on a spherical earth
- Local tangent-plane projection and least-squares circle fitting
- Shadow length and middle ordinate
"""

# Geographic utilities
from .geo_utils import (
    CircleFit,
    haversine_distance,
    calculate_bearing,
    bearing_difference,
    destination_point,
    to_local_cartesian,
    from_local_cartesian,
    cumulative_distances,
)

# Geometric utilities
from .geo_utils import (
    fit_circle,
    shadow_length,
    middle_ordinate,
)

__all__ = [
    # Geographic
    "CircleFit",
    "haversine_distance",
    "calculate_bearing",
    "bearing_difference",
    "destination_point",
    "to_local_cartesian",
    "from_local_cartesian",
    "cumulative_distances",
    # Geometric
    "fit_circle",
    "shadow_length",
    "middle_ordinate",
]
