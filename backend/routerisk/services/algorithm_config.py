"""
Route Risk Algorithm - Configuration

This module contains all tunable parameters for blind-spot detection and the
multi-criteria route risk grade. Analyzers and aggregators never hard-code a
threshold; they read it from here (module constants) or from an injected
AnalysisThresholds instance built from these constants.

Engineering constants follow AASHTO conventions (driver eye height 1.2 m,
object height 1.0 m, wet-pavement friction 0.35, 2.5 s perception-reaction).
"""
from dataclasses import dataclass
from types import MappingProxyType


# =============================================================================
# EARTH / GEOMETRY CONSTANTS
# =============================================================================

# Earth radius used by every distance and curvature calculation (meters).
# All downstream geometry assumes this exact value.
EARTH_RADIUS_M = 6_371_000.0

# Least-squares circle fit: determinant below this is treated as singular
CIRCLE_FIT_SINGULAR_EPSILON = 1e-10

# Plausible fitted radius range (meters) - outside is not a circle we trust
CIRCLE_FIT_MIN_RADIUS_M = 10.0
CIRCLE_FIT_MAX_RADIUS_M = 10_000.0


# =============================================================================
# VISIBILITY CONSTANTS (AASHTO)
# =============================================================================

DRIVER_EYE_HEIGHT_M = 1.2        # Driver eye above road surface
CRITICAL_OBJECT_HEIGHT_M = 1.0   # Pedestrian / obstacle height

# Floor applied to every reported visibility distance (meters)
MIN_VISIBILITY_FLOOR_M = 10.0


# =============================================================================
# STOPPING SIGHT DISTANCE PARAMETERS
# =============================================================================

REACTION_TIME_S = 2.5            # Perception-reaction time
WET_FRICTION_COEFFICIENT = 0.35  # Longitudinal friction, wet pavement
SIDE_FRICTION_FACTOR = 0.15      # Lateral friction used for curve speed
MAX_SUPERELEVATION = 0.08        # Maximum road banking (e)

# Representative chord for the middle-ordinate sight distance (meters)
REPRESENTATIVE_CHORD_M = 100.0

# Local speed heuristic (km/h) - used when no road attributes are known
DEFAULT_RURAL_SPEED_KMH = 60.0
URBAN_SPEED_KMH = 50.0
HIGHWAY_SPEED_KMH = 80.0
HIGHWAY_MIN_LANES = 4            # Lanes at which a road is treated as highway
STEEP_GRADE_PERCENT = 8.0        # Above this grade speed is capped to urban speed


# =============================================================================
# ELEVATION (CREST) ANALYZER PARAMETERS
# =============================================================================

ELEVATION_LOOKAHEAD_POINTS = 5       # Forward samples traced from each observer
ELEVATION_MIN_PROFILE_SAMPLES = 4    # Observer + forward samples needed to analyze
ELEVATION_START_MARGIN = 2           # Observer indices start here (gradient needs history)
ELEVATION_MIN_CHANGE_M = 8.0         # Sight-line excess needed for a crest (8-15 m)
ELEVATION_MAX_VISIBILITY_M = 150.0   # Crest only if visibility <= this (75-150 m)
ELEVATION_FULL_WINDOW_CONFIDENCE = 0.9
ELEVATION_PARTIAL_WINDOW_CONFIDENCE = 0.6


# =============================================================================
# CURVE ANALYZER PARAMETERS
# =============================================================================

CURVE_WINDOW_POINTS = 7              # Window centered on the analyzed point
CURVE_MIN_TURN_ANGLE_DEG = 45.0      # Turn angle needed for a critical curve
CURVE_MIN_RADIUS_M = 30.0            # Below: GPS noise, not a road curve
CURVE_MAX_RADIUS_M = 300.0           # Above: effectively straight
CURVE_MIN_FIT_CONFIDENCE = 0.5       # Circle fit quality required
CURVE_SIGHT_DISTANCE_MARGIN = 1.0    # Finding if available < required x margin
CURVE_STRAIGHT_BEARING_DEG = 10.0    # Bearing change below this is "straight"


# =============================================================================
# OBSTRUCTION (SHADOW) ANALYZER PARAMETERS
# =============================================================================

OBSTRUCTION_SAMPLE_STRIDE = 5        # Query features at every Nth route point
OBSTRUCTION_SEARCH_RADIUS_M = 100.0  # Nearby-feature query radius
OBSTRUCTION_MIN_HEIGHT_M = 6.0       # Shorter features do not block sight
OBSTRUCTION_MAX_DISTANCE_M = 50.0    # Farther features do not matter
OBSTRUCTION_MIN_SHADOW_M = 5.0       # Shadow must be longer than this
OBSTRUCTION_MAX_VISIBILITY_M = 150.0 # Finding only if visibility below this
OBSTRUCTION_NEAR_DISTANCE_M = 30.0   # Closer than this => higher confidence
OBSTRUCTION_NEAR_CONFIDENCE = 0.9
OBSTRUCTION_FAR_CONFIDENCE = 0.6
ESTIMATED_HEIGHT_CONFIDENCE_FACTOR = 0.85  # Penalty when height is an estimate

# Meters per storey when height is derived from building:levels
METERS_PER_BUILDING_LEVEL = 3.0

# Deterministic height estimates by feature type (meters)
ESTIMATED_FEATURE_HEIGHTS_M = MappingProxyType({
    "tower": 60.0,
    "hospital": 30.0,
    "university": 30.0,
    "commercial": 25.0,
    "retail": 15.0,
    "industrial": 12.0,
    "school": 12.0,
    "apartments": 18.0,
    "house": 7.0,
    "garage": 3.0,
    "shed": 3.0,
    "default": 10.0,
})


# =============================================================================
# AGGREGATOR PARAMETERS
# =============================================================================

MIN_ROUTE_POINTS = 5            # Fewer points => InputError
MIN_RISK_SCORE = 5.0            # Candidates below this never reach storage
DEDUP_DISTANCE_M = 100.0        # Same-type findings closer than this collapse

# Severity bands (lower bound of risk score, inclusive)
SEVERITY_BANDS = (
    ("critical", 8.0),
    ("significant", 6.0),
    ("moderate", 4.0),
    ("minor", 1.0),
)

# Weight of a finding in the blind_spots criterion mean, by severity
SEVERITY_CRITERION_WEIGHTS = MappingProxyType({
    "critical": 2.0,
    "significant": 1.5,
    "moderate": 1.0,
    "minor": 1.0,
})

# blind_spots criterion when a route has no findings.
# "No findings" is not "zero risk": unseen hazards remain possible.
BLIND_SPOT_BASELINE_SCORE = 3.0

# Confidence reported for a route with no findings
NO_FINDINGS_CONFIDENCE = 0.5


# =============================================================================
# MULTI-CRITERIA RISK PARAMETERS
# =============================================================================

# Criterion weights (percent) - must sum to 100
RISK_WEIGHTS = MappingProxyType({
    "road_conditions": 15,
    "accident_prone": 15,
    "sharp_turns": 10,
    "blind_spots": 10,
    "two_way_traffic": 10,
    "traffic_density": 10,
    "weather_conditions": 10,
    "emergency_services": 5,
    "network_coverage": 5,
    "amenities": 5,
    "security_issues": 5,
})

# Score used when a criterion is not supplied by its subsystem
DEFAULT_CRITERION_SCORES = MappingProxyType({
    "road_conditions": 5.0,
    "accident_prone": 3.0,
    "sharp_turns": 3.0,
    "blind_spots": BLIND_SPOT_BASELINE_SCORE,
    "two_way_traffic": 5.0,
    "traffic_density": 5.0,
    "weather_conditions": 5.0,
    "emergency_services": 5.0,
    "network_coverage": 5.0,
    "amenities": 5.0,
    "security_issues": 5.0,
})

MIN_CRITERION_SCORE = 1.0
MAX_CRITERION_SCORE = 10.0

# Grade bands in ascending score order: (grade, min, max, level)
GRADE_THRESHOLDS = (
    ("A", 0.0, 2.0, "Very Low Risk"),
    ("B", 2.1, 4.0, "Low Risk"),
    ("C", 4.1, 6.0, "Medium Risk"),
    ("D", 6.1, 8.0, "High Risk"),
    ("F", 8.1, 10.0, "Critical Risk"),
)
FALLBACK_GRADE = "F"

TOP_RISK_FACTORS_LIMIT = 5
FACTOR_RECOMMENDATION_THRESHOLD = 7.0   # Criteria above this get specific advice
CRITICAL_TOTAL_SCORE = 8.0


@dataclass(frozen=True)
class AnalysisThresholds:
    """
    Immutable bundle of the thresholds one analysis pass runs with.

    Defaults mirror the module constants; build a new instance to tune
    strictness without touching analysis code.
    """

    min_risk_score: float = MIN_RISK_SCORE
    min_route_points: int = MIN_ROUTE_POINTS
    dedup_distance_m: float = DEDUP_DISTANCE_M

    elevation_lookahead_points: int = ELEVATION_LOOKAHEAD_POINTS
    elevation_min_profile_samples: int = ELEVATION_MIN_PROFILE_SAMPLES
    elevation_min_change_m: float = ELEVATION_MIN_CHANGE_M
    elevation_max_visibility_m: float = ELEVATION_MAX_VISIBILITY_M

    curve_window_points: int = CURVE_WINDOW_POINTS
    curve_min_turn_angle_deg: float = CURVE_MIN_TURN_ANGLE_DEG
    curve_min_radius_m: float = CURVE_MIN_RADIUS_M
    curve_max_radius_m: float = CURVE_MAX_RADIUS_M
    curve_min_fit_confidence: float = CURVE_MIN_FIT_CONFIDENCE
    curve_sight_distance_margin: float = CURVE_SIGHT_DISTANCE_MARGIN

    obstruction_sample_stride: int = OBSTRUCTION_SAMPLE_STRIDE
    obstruction_search_radius_m: float = OBSTRUCTION_SEARCH_RADIUS_M
    obstruction_min_height_m: float = OBSTRUCTION_MIN_HEIGHT_M
    obstruction_max_distance_m: float = OBSTRUCTION_MAX_DISTANCE_M
    obstruction_min_shadow_m: float = OBSTRUCTION_MIN_SHADOW_M
    obstruction_max_visibility_m: float = OBSTRUCTION_MAX_VISIBILITY_M


DEFAULT_THRESHOLDS = AnalysisThresholds()
