"""
Tests for the Multi-Criteria Risk Aggregator

Validates:
- Weight closure (weights sum to 100, all-5s => 5.0)
- Clamping and documented defaults
- Grade thresholds and monotonicity
- Explanation, top factors and recommendations
- RouteRiskService deriving blind_spots from persisted findings
"""
import pytest

from routerisk.schemas.risk import RiskCriterion
from routerisk.services.algorithm_config import (
    BLIND_SPOT_BASELINE_SCORE,
    DEFAULT_CRITERION_SCORES,
    RISK_WEIGHTS,
)
from routerisk.services.blind_spot_aggregator import derive_blind_spots_score
from routerisk.services.risk_aggregator import (
    RouteRiskService,
    build_risk_assessment,
    calculate_weighted_score,
    determine_risk_grade,
    determine_risk_level,
    identify_top_risk_factors,
    resolve_criterion_scores,
)
from factories import make_finding

GRADE_ORDER = ["A", "B", "C", "D", "F"]


@pytest.fixture
def weighted_grade_scores():
    """roadConditions 8, accidentProne 8, everything else 2"""
    scores = {criterion: 2.0 for criterion in RiskCriterion}
    scores[RiskCriterion.ROAD_CONDITIONS] = 8.0
    scores[RiskCriterion.ACCIDENT_PRONE] = 8.0
    return scores


# ============================================================================
# Weighted score
# ============================================================================


class TestWeightedScore:
    def test_weights_sum_to_100(self):
        assert sum(RISK_WEIGHTS.values()) == 100
        assert set(RISK_WEIGHTS) == {c.value for c in RiskCriterion}

    def test_all_fives_is_exactly_five(self):
        assert calculate_weighted_score({c: 5.0 for c in RiskCriterion}) == 5.0

    def test_weighted_grade_scenario(self, weighted_grade_scores):
        total = calculate_weighted_score(weighted_grade_scores)
        assert total == pytest.approx(3.8)
        assert determine_risk_grade(total) == "B"

    def test_string_keys_accepted(self):
        scores = {c.value: 5.0 for c in RiskCriterion}
        assert calculate_weighted_score(scores) == 5.0

    def test_scores_clamped_before_weighting(self):
        high = {c: 15.0 for c in RiskCriterion}
        low = {c: -3.0 for c in RiskCriterion}
        assert calculate_weighted_score(high) == 10.0
        assert calculate_weighted_score(low) == 1.0

    def test_missing_criteria_take_defaults(self):
        resolved = resolve_criterion_scores({RiskCriterion.ROAD_CONDITIONS: 7.0})

        assert len(resolved) == 11
        assert resolved[RiskCriterion.ROAD_CONDITIONS].score == 7.0
        assert not resolved[RiskCriterion.ROAD_CONDITIONS].is_default
        for criterion in RiskCriterion:
            if criterion != RiskCriterion.ROAD_CONDITIONS:
                assert resolved[criterion].is_default
                assert resolved[criterion].score == DEFAULT_CRITERION_SCORES[criterion.value]

    def test_non_finite_score_takes_default(self):
        resolved = resolve_criterion_scores({RiskCriterion.SHARP_TURNS: float("nan")})
        assert resolved[RiskCriterion.SHARP_TURNS].is_default
        assert resolved[RiskCriterion.SHARP_TURNS].score == DEFAULT_CRITERION_SCORES["sharp_turns"]

    def test_empty_input_never_crashes(self):
        total = calculate_weighted_score({})
        assert 1.0 <= total <= 10.0


# ============================================================================
# Grades
# ============================================================================


class TestRiskGrade:
    @pytest.mark.parametrize("score,grade", [
        (0.0, "A"),
        (2.0, "A"),
        (2.05, "B"),
        (2.1, "B"),
        (4.0, "B"),
        (4.1, "C"),
        (6.0, "C"),
        (6.1, "D"),
        (8.0, "D"),
        (8.1, "F"),
        (10.0, "F"),
    ])
    def test_thresholds(self, score, grade):
        assert determine_risk_grade(score) == grade

    @pytest.mark.parametrize("score", [-0.5, 10.5, float("nan")])
    def test_out_of_range_is_f(self, score):
        assert determine_risk_grade(score) == "F"

    def test_grade_monotonic(self):
        """Increasing score never lowers grade severity"""
        previous = 0
        for step in range(0, 1001):
            rank = GRADE_ORDER.index(determine_risk_grade(step / 100))
            assert rank >= previous
            previous = rank

    def test_risk_level_text(self):
        assert determine_risk_level(1.0) == "Very Low Risk"
        assert determine_risk_level(3.8) == "Low Risk"
        assert determine_risk_level(9.0) == "Critical Risk"


# ============================================================================
# Assessment details
# ============================================================================


class TestBuildRiskAssessment:
    def test_complete_assessment(self, weighted_grade_scores):
        assessment = build_risk_assessment("r-1", weighted_grade_scores)

        assert assessment.total_weighted_score == pytest.approx(3.8)
        assert assessment.risk_grade == "B"
        assert assessment.risk_level == "Low Risk"
        assert len(assessment.criterion_scores) == 11
        assert assessment.data_completeness == 1.0
        assert "Grade B" in assessment.risk_explanation
        assert "low risk" in assessment.risk_explanation

    def test_top_factors_ranked(self, weighted_grade_scores):
        resolved = resolve_criterion_scores(weighted_grade_scores)
        factors = identify_top_risk_factors(resolved)

        assert len(factors) == 5
        assert {f.factor for f in factors[:2]} == {
            RiskCriterion.ROAD_CONDITIONS,
            RiskCriterion.ACCIDENT_PRONE,
        }
        assert factors[0].weighted_contribution == pytest.approx(1.2)

    def test_critical_route_recommendations(self):
        assessment = build_risk_assessment("r-1", {c: 9.0 for c in RiskCriterion})

        assert assessment.risk_grade == "F"
        priorities = [r.priority for r in assessment.safety_recommendations]
        assert priorities[0] == "critical"
        texts = [r.recommendation for r in assessment.safety_recommendations]
        assert "Reduce speed to 25-35 km/h in blind spot areas" in texts

    def test_low_route_only_general_recommendations(self):
        assessment = build_risk_assessment("r-1", {c: 2.0 for c in RiskCriterion})
        assert [r.category for r in assessment.safety_recommendations] == ["communication", "preparation"]

    def test_grade_matches_stored_score(self):
        """A total of 4.0045 is stored as 4.0 and must grade as 4.0 does"""
        scores = {c: 4.0 for c in RiskCriterion}
        scores[RiskCriterion.ROAD_CONDITIONS] = 4.03

        assessment = build_risk_assessment("r-1", scores)

        assert assessment.total_weighted_score == 4.0
        assert assessment.risk_grade == determine_risk_grade(assessment.total_weighted_score) == "B"
        assert assessment.risk_level == determine_risk_level(assessment.total_weighted_score)
        assert "Grade B" in assessment.risk_explanation

    def test_data_completeness(self):
        assessment = build_risk_assessment("r-1", {RiskCriterion.AMENITIES: 4.0})
        assert assessment.data_completeness == pytest.approx(1 / 11)


# ============================================================================
# Blind-spot criterion and service
# ============================================================================


class TestBlindSpotsCriterion:
    def test_no_findings_is_baseline(self):
        assert derive_blind_spots_score([]) == BLIND_SPOT_BASELINE_SCORE == 3.0

    def test_severity_weighted_mean(self):
        """critical 8 (x2) and moderate 5 (x1) => (16 + 5) / 3"""
        assert derive_blind_spots_score([make_finding(8.0), make_finding(5.0)]) == pytest.approx(7.0)


class TestRouteRiskService:
    def test_route_without_findings_uses_baseline(self, store):
        assessment = RouteRiskService(store).assess("r-1", {c: 5.0 for c in RiskCriterion})

        blind_spots = assessment.criterion_scores[RiskCriterion.BLIND_SPOTS]
        assert blind_spots.score == 3.0
        assert blind_spots.is_default
        assert blind_spots.breakdown["method"] == "baseline"
        assert store.load_risk_assessment("r-1") == assessment

    def test_findings_drive_blind_spots(self, store):
        store.replace_blind_spots("r-1", [make_finding(8.0), make_finding(5.0, distance_km=2.0)])
        external = {c: 5.0 for c in RiskCriterion}
        external[RiskCriterion.BLIND_SPOTS] = 1.0  # ignored

        assessment = RouteRiskService(store).assess("r-1", external)

        blind_spots = assessment.criterion_scores[RiskCriterion.BLIND_SPOTS]
        assert blind_spots.score == pytest.approx(7.0)
        assert not blind_spots.is_default
        assert blind_spots.breakdown["finding_count"] == 2
        assert assessment.total_weighted_score == pytest.approx(5.2)
