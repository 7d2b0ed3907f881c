"""
Tests for the Curve Geometry Analyzer

Validates turn-angle measurement, circle-fit gating and the AASHTO
stopping sight distance comparison.
"""
import pytest

from routerisk.schemas.blind_spot import AnalysisMethod, SpotType
from routerisk.services.curve_geometry import (
    CurveWindow,
    analyze_curves,
    available_sight_distance,
    calculate_curve_risk,
    evaluate_curve,
    find_curve_windows,
    turn_direction,
)
from routerisk.services.providers import RoadAttributes
from routerisk.services.speed_estimation import (
    estimate_speed_kmh,
    required_superelevation,
    safe_curve_speed,
    stopping_sight_distance,
)
from factories import make_arc_points, make_straight_points

# AASHTO Green Book stopping sight distance at 60 km/h (design value)
AASHTO_SSD_60_KMH = 85.0


def _window(radius_m, turn_angle_deg=80.0):
    return CurveWindow(
        center_index=3,
        latitude=28.6,
        longitude=77.2,
        distance_from_start_m=360.0,
        radius_m=radius_m,
        turn_angle_deg=turn_angle_deg,
        direction="left",
        fit_confidence=0.98,
    )


class TestSightDistanceFormulas:
    def test_stopping_sight_distance_matches_aashto(self):
        ssd = stopping_sight_distance(60.0)
        assert ssd == pytest.approx(AASHTO_SSD_60_KMH, rel=0.05)

    def test_ssd_grows_with_speed(self):
        assert stopping_sight_distance(80.0) > stopping_sight_distance(60.0) > stopping_sight_distance(40.0)

    def test_available_sight_distance_120m(self):
        assert available_sight_distance(120.0) == pytest.approx(72.4, abs=0.1)

    def test_superelevation_clamped(self):
        assert required_superelevation(30.0, 500.0) == 0.0
        assert required_superelevation(100.0, 50.0) == pytest.approx(0.08)

    def test_safe_curve_speed(self):
        assert safe_curve_speed(120.0, 0.08) == pytest.approx((127 * 120.0 * 0.23) ** 0.5)


class TestSpeedEstimation:
    def test_default_rural(self):
        assert estimate_speed_kmh() == 60.0

    def test_posted_limit_wins(self):
        assert estimate_speed_kmh(RoadAttributes(max_speed_kmh=40.0, lanes=6)) == 40.0

    def test_highway_by_lanes(self):
        assert estimate_speed_kmh(RoadAttributes(lanes=4)) == 80.0

    def test_urban_road_class(self):
        assert estimate_speed_kmh(RoadAttributes(highway="residential")) == 50.0

    def test_steep_grade_caps_speed(self):
        assert estimate_speed_kmh(RoadAttributes(lanes=4), grade_percent=12.0) == 50.0


class TestFindCurveWindows:
    def test_sharp_arc_detected(self):
        """7 points, 80° turn, radius ~120 m"""
        windows = find_curve_windows(make_arc_points(radius_m=120.0, arc_deg=160.0))

        assert len(windows) == 1
        window = windows[0]
        assert window.center_index == 3
        assert window.turn_angle_deg == pytest.approx(80.0, abs=0.5)
        assert window.radius_m == pytest.approx(120.0, rel=0.01)
        assert window.direction == "left"

    def test_straight_road_has_no_curves(self):
        assert find_curve_windows(make_straight_points(20, 50.0)) == []

    def test_gentle_turn_ignored(self):
        """A 30° turn is below the minimum turn angle"""
        assert find_curve_windows(make_arc_points(radius_m=120.0, arc_deg=60.0)) == []

    def test_radius_above_range_ignored(self):
        """A 600 m radius curve is effectively straight for sight distance"""
        assert find_curve_windows(make_arc_points(radius_m=600.0, arc_deg=160.0)) == []

    def test_too_few_points(self):
        assert find_curve_windows(make_arc_points(count=5)) == []

    def test_turn_direction(self):
        assert turn_direction(0.0, 90.0) == "right"
        assert turn_direction(90.0, 0.0) == "left"
        assert turn_direction(359.0, 3.0) == "straight"


class TestEvaluateCurve:
    def test_inadequate_sight_distance_emits_finding(self):
        candidate = evaluate_curve(_window(120.0), speed_kmh=60.0)

        assert candidate is not None
        assert candidate.spot_type == SpotType.CURVE
        assert candidate.analysis_method == AnalysisMethod.GEOMETRIC_SIGHT_DISTANCE
        assert candidate.visibility_distance_m == pytest.approx(72.4, abs=0.1)
        assert candidate.details["required_sight_distance_m"] == pytest.approx(82.2, abs=0.1)
        assert candidate.details["sight_distance_ratio"] < 1.0
        assert candidate.risk_score == 5.0
        assert candidate.confidence == pytest.approx(0.98)

    def test_adequate_sight_distance_no_finding(self):
        """At 40 km/h the 72 m available exceeds the ~46 m required"""
        assert evaluate_curve(_window(120.0), speed_kmh=40.0) is None

    def test_finding_iff_available_below_required(self):
        for radius in (35.0, 60.0, 120.0, 250.0, 300.0):
            for speed in (40.0, 60.0, 80.0):
                candidate = evaluate_curve(_window(radius), speed)
                emitted = available_sight_distance(radius) < stopping_sight_distance(speed)
                assert (candidate is not None) == emitted

    def test_curve_risk_increases_with_tighter_radius(self):
        scores = [calculate_curve_risk(r, 0.9, 80.0) for r in (40, 80, 150, 250, 400)]
        assert scores == sorted(scores, reverse=True)

    def test_curve_risk_increases_with_lower_ratio(self):
        assert calculate_curve_risk(120, 0.5, 80) > calculate_curve_risk(120, 0.7, 80) > calculate_curve_risk(120, 0.9, 80)


class TestAnalyzeCurves:
    def test_sharp_curve_scenario(self):
        candidates = analyze_curves(make_arc_points(radius_m=120.0, arc_deg=160.0))

        assert len(candidates) == 1
        assert candidates[0].details["estimated_speed_kmh"] == 60.0
        assert candidates[0].details["direction"] == "left"

    def test_deterministic(self):
        points = make_arc_points()
        assert analyze_curves(points) == analyze_curves(points)
