"""
Multi-Criteria Risk Aggregator

Combines eleven per-criterion scores (each in [1, 10]) into one weighted
route score and a letter grade:

    total = Σ(score_i · weight_i) / 100        weights sum to exactly 100

Scores are clamped to [1, 10] BEFORE weighting. A criterion that was not
supplied falls back to its documented default from DEFAULT_CRITERION_SCORES
and is marked is_default; a missing criterion never raises.

Grades are looked up by upper bound in ascending order, so the gaps between
the published closed intervals (e.g. 2.05) belong to the next band and the
grade is monotone in the score. Scores outside [0, 10] grade F.
"""
import logging
import math
from typing import Dict, List, Mapping, Optional, Union

from routerisk.schemas.blind_spot import BlindSpotFinding
from routerisk.schemas.risk import (
    RiskCriterion,
    RiskCriterionScore,
    RiskFactor,
    RouteRiskAssessment,
    SafetyRecommendation,
)
from routerisk.services.algorithm_config import (
    CRITICAL_TOTAL_SCORE,
    DEFAULT_CRITERION_SCORES,
    FACTOR_RECOMMENDATION_THRESHOLD,
    FALLBACK_GRADE,
    GRADE_THRESHOLDS,
    MAX_CRITERION_SCORE,
    MIN_CRITERION_SCORE,
    RISK_WEIGHTS,
    TOP_RISK_FACTORS_LIMIT,
)
from routerisk.services.blind_spot_aggregator import derive_blind_spots_score
from routerisk.services.providers import RouteStore

logger = logging.getLogger(__name__)

CriterionKey = Union[RiskCriterion, str]

FACTOR_RECOMMENDATIONS: Dict[RiskCriterion, List[SafetyRecommendation]] = {
    RiskCriterion.ROAD_CONDITIONS: [
        SafetyRecommendation(priority="high", category="vehicle",
                             recommendation="Inspect vehicle thoroughly, especially brakes and suspension"),
        SafetyRecommendation(priority="high", category="driving",
                             recommendation="Reduce speed and increase following distance"),
    ],
    RiskCriterion.ACCIDENT_PRONE: [
        SafetyRecommendation(priority="critical", category="route",
                             recommendation="Exercise extreme caution in identified accident zones"),
        SafetyRecommendation(priority="high", category="convoy",
                             recommendation="Consider convoy travel through high-risk areas"),
    ],
    RiskCriterion.SHARP_TURNS: [
        SafetyRecommendation(priority="high", category="driving",
                             recommendation="Reduce speed significantly before sharp turns"),
        SafetyRecommendation(priority="high", category="safety",
                             recommendation="Use horn signals when approaching blind curves"),
    ],
    RiskCriterion.BLIND_SPOTS: [
        SafetyRecommendation(priority="critical", category="visibility",
                             recommendation="Exercise extreme caution in areas with limited visibility"),
        SafetyRecommendation(priority="high", category="speed",
                             recommendation="Reduce speed to 25-35 km/h in blind spot areas"),
    ],
    RiskCriterion.TRAFFIC_DENSITY: [
        SafetyRecommendation(priority="medium", category="timing",
                             recommendation="Avoid peak traffic hours if possible"),
    ],
    RiskCriterion.WEATHER_CONDITIONS: [
        SafetyRecommendation(priority="high", category="weather",
                             recommendation="Monitor weather conditions continuously"),
        SafetyRecommendation(priority="high", category="timing",
                             recommendation="Delay travel during severe weather warnings"),
    ],
    RiskCriterion.EMERGENCY_SERVICES: [
        SafetyRecommendation(priority="medium", category="emergency",
                             recommendation="Carry additional emergency supplies due to limited services"),
    ],
}

GENERAL_RECOMMENDATIONS = [
    SafetyRecommendation(priority="high", category="communication",
                         recommendation="Maintain constant communication with control room"),
    SafetyRecommendation(priority="medium", category="preparation",
                         recommendation="Carry comprehensive emergency kit"),
]


def clamp_score(score: float) -> float:
    return max(MIN_CRITERION_SCORE, min(MAX_CRITERION_SCORE, score))


def resolve_criterion_scores(
    scores: Mapping[CriterionKey, Optional[float]],
    breakdowns: Optional[Mapping[CriterionKey, dict]] = None,
) -> Dict[RiskCriterion, RiskCriterionScore]:
    """
    Build all eleven criterion scores from whatever was supplied.

    Supplied scores are clamped to [1, 10]; missing, None or non-finite
    scores take the criterion default and are marked is_default.

    Args:
        scores: Criterion -> raw score (RiskCriterion or its string value)
        breakdowns: Optional structured detail per criterion

    Returns:
        Dict with exactly one entry per RiskCriterion
    """
    supplied = {RiskCriterion(key): value for key, value in scores.items()}
    details = {RiskCriterion(key): value for key, value in (breakdowns or {}).items()}

    resolved = {}
    for criterion in RiskCriterion:
        raw = supplied.get(criterion)
        is_default = raw is None or not math.isfinite(raw)
        if is_default:
            if raw is not None:
                logger.warning(f"Criterion {criterion.value} has unusable score {raw!r}, using default")
            value = DEFAULT_CRITERION_SCORES[criterion.value]
        else:
            value = clamp_score(raw)

        resolved[criterion] = RiskCriterionScore(
            criterion=criterion,
            score=value,
            weight=RISK_WEIGHTS[criterion.value],
            is_default=is_default,
            breakdown=details.get(criterion),
        )
    return resolved


def calculate_weighted_score(scores: Mapping[CriterionKey, Optional[float]]) -> float:
    """
    Weighted total in [1, 10] (0 is unreachable once scores are clamped).

    Products are summed first and divided by 100 once, so all-5s yields
    exactly 5.0.

    Example:
        >>> calculate_weighted_score({c: 5.0 for c in RiskCriterion})
        5.0
        >>> calculate_weighted_score({"road_conditions": 8, "accident_prone": 8,
        ...                           **{c: 2 for c in ["sharp_turns", "blind_spots",
        ...                              "two_way_traffic", "traffic_density",
        ...                              "weather_conditions", "emergency_services",
        ...                              "network_coverage", "amenities", "security_issues"]}})
        3.8
    """
    resolved = resolve_criterion_scores(scores)
    total = sum(entry.score * entry.weight for entry in resolved.values())
    return total / 100


def determine_risk_grade(total_score: float) -> str:
    """
    Letter grade for a weighted score.

    Example:
        >>> determine_risk_grade(3.8)
        'B'
        >>> determine_risk_grade(2.05)
        'B'
    """
    if not (0.0 <= total_score <= 10.0):
        return FALLBACK_GRADE
    for grade, _, upper, _ in GRADE_THRESHOLDS:
        if total_score <= upper:
            return grade
    return FALLBACK_GRADE


def determine_risk_level(total_score: float) -> str:
    grade = determine_risk_grade(total_score)
    for band_grade, _, _, level in GRADE_THRESHOLDS:
        if band_grade == grade:
            return level
    return "Critical Risk"


def identify_top_risk_factors(
    criterion_scores: Mapping[RiskCriterion, RiskCriterionScore],
    limit: int = TOP_RISK_FACTORS_LIMIT,
) -> List[RiskFactor]:
    """Highest-scoring criteria first; ties broken by weight, then name."""
    ranked = sorted(
        criterion_scores.values(),
        key=lambda entry: (-entry.score, -entry.weight, entry.criterion.value),
    )
    return [
        RiskFactor(
            factor=entry.criterion,
            score=entry.score,
            weight=entry.weight,
            weighted_contribution=round(entry.score * entry.weight / 100, 3),
        )
        for entry in ranked[:limit]
    ]


def generate_risk_explanation(
    total_score: float, grade: str, level: str, top_factors: List[RiskFactor]
) -> str:
    explanation = (
        f"Route risk assessment: Grade {grade} ({level}) with a total weighted "
        f"score of {total_score:.2f}. "
    )

    if top_factors:
        primary = ", ".join(
            f"{factor.factor.value} (score: {factor.score:g})" for factor in top_factors[:3]
        )
        explanation += f"Primary risk factors include: {primary}. "

    if total_score >= CRITICAL_TOTAL_SCORE:
        explanation += "This route presents critical safety concerns and alternative options should be strongly considered."
    elif total_score >= 6:
        explanation += "This route requires enhanced safety measures and careful monitoring."
    elif total_score >= 4:
        explanation += "This route has moderate risk factors that should be addressed with standard safety protocols."
    else:
        explanation += "This route presents low risk with standard safety measures recommended."

    return explanation


def generate_safety_recommendations(
    criterion_scores: Mapping[RiskCriterion, RiskCriterionScore], total_score: float
) -> List[SafetyRecommendation]:
    recommendations = []

    if total_score >= CRITICAL_TOTAL_SCORE:
        recommendations.append(SafetyRecommendation(
            priority="critical",
            category="general",
            recommendation="CRITICAL RISK: Consider postponing journey or using alternative route",
        ))

    for criterion in RiskCriterion:
        entry = criterion_scores[criterion]
        if entry.score > FACTOR_RECOMMENDATION_THRESHOLD:
            recommendations.extend(FACTOR_RECOMMENDATIONS.get(criterion, []))

    recommendations.extend(GENERAL_RECOMMENDATIONS)
    return recommendations


def build_risk_assessment(
    route_id: str,
    scores: Mapping[CriterionKey, Optional[float]],
    breakdowns: Optional[Mapping[CriterionKey, dict]] = None,
) -> RouteRiskAssessment:
    """
    Build a complete assessment from per-criterion scores.

    Args:
        route_id: Route the assessment belongs to
        scores: Supplied criterion scores; missing ones take defaults
        breakdowns: Optional structured detail per criterion

    Returns:
        RouteRiskAssessment with all eleven criteria
    """
    criterion_scores = resolve_criterion_scores(scores, breakdowns)
    total = round(sum(entry.score * entry.weight for entry in criterion_scores.values()) / 100, 2)
    grade = determine_risk_grade(total)
    level = determine_risk_level(total)
    top_factors = identify_top_risk_factors(criterion_scores)
    supplied = sum(1 for entry in criterion_scores.values() if not entry.is_default)

    return RouteRiskAssessment(
        route_id=route_id,
        criterion_scores=criterion_scores,
        total_weighted_score=total,
        risk_grade=grade,
        risk_level=level,
        risk_explanation=generate_risk_explanation(total, grade, level, top_factors),
        top_risk_factors=top_factors,
        safety_recommendations=generate_safety_recommendations(criterion_scores, total),
        data_completeness=supplied / len(criterion_scores),
    )


class RouteRiskService:
    """
    Recomputes and saves a route's risk assessment.

    The blind_spots criterion always comes from the route's persisted
    findings, never from the caller.
    """

    def __init__(self, store: RouteStore):
        self.store = store

    def blind_spots_criterion(self, route_id: str) -> RiskCriterionScore:
        findings: List[BlindSpotFinding] = self.store.load_blind_spots(route_id)
        score = derive_blind_spots_score(findings)
        return RiskCriterionScore(
            criterion=RiskCriterion.BLIND_SPOTS,
            score=score,
            weight=RISK_WEIGHTS[RiskCriterion.BLIND_SPOTS.value],
            is_default=not findings,
            breakdown={
                "finding_count": len(findings),
                "method": "severity_weighted_mean" if findings else "baseline",
            },
        )

    def assess(
        self, route_id: str, external_scores: Mapping[CriterionKey, Optional[float]]
    ) -> RouteRiskAssessment:
        """
        Assess a route from the ten externally supplied criteria plus its findings.

        A blind_spots entry in external_scores is ignored.
        """
        blind_spots = self.blind_spots_criterion(route_id)

        scores = {
            RiskCriterion(key): value
            for key, value in external_scores.items()
            if RiskCriterion(key) != RiskCriterion.BLIND_SPOTS
        }
        # No findings: leave the criterion unsupplied so it takes the baseline default
        scores[RiskCriterion.BLIND_SPOTS] = None if blind_spots.is_default else blind_spots.score

        assessment = build_risk_assessment(
            route_id, scores, {RiskCriterion.BLIND_SPOTS: blind_spots.breakdown}
        )
        self.store.save_risk_assessment(route_id, assessment)
        logger.info(
            f"Route {route_id} risk: {assessment.total_weighted_score} "
            f"grade {assessment.risk_grade} ({assessment.risk_level})"
        )
        return assessment
