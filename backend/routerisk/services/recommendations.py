"""
Recommendation and summary text for blind-spot findings.

Per-finding recommendations travel with each finding; route-level groups and
the risk summary are part of a completed analysis result.
"""
from typing import List, Sequence

from routerisk.schemas.blind_spot import (
    BlindSpotFinding,
    RiskDistribution,
    RiskSummary,
    RouteRecommendation,
    SeverityLevel,
    SpotType,
    severity_for_score,
)

CONVOY_VISIBILITY_M = 100.0

SPOT_TYPE_ACTIONS = {
    SpotType.CREST: [
        "Reduce speed before cresting hill",
        "Stay in your lane and be prepared to stop",
    ],
    SpotType.CURVE: [
        "Reduce speed before entering curve",
        "Position vehicle for maximum visibility",
    ],
    SpotType.OBSTRUCTION: [
        "Proceed with extreme caution",
        "Watch for pedestrians and cross traffic",
    ],
    SpotType.INTERSECTION: [
        "Slow down and check cross traffic before entering",
    ],
}


def finding_recommendations(
    spot_type: SpotType, risk_score: float, visibility_distance_m: float
) -> List[str]:
    """
    Driver advice for one finding.

    Example:
        >>> finding_recommendations(SpotType.CURVE, 5.0, 72.4)
        ['Reduce speed before entering curve', 'Position vehicle for maximum visibility',
         'Consider convoy travel through this section']
    """
    recommendations = []

    if severity_for_score(risk_score) == SeverityLevel.CRITICAL:
        recommendations.append("CRITICAL: Reduce speed significantly when approaching this area")
        recommendations.append("Use horn/signal when approaching blind spot")

    recommendations.extend(SPOT_TYPE_ACTIONS.get(spot_type, []))

    if visibility_distance_m < CONVOY_VISIBILITY_M:
        recommendations.append("Consider convoy travel through this section")

    return recommendations


def summarize_risk(findings: Sequence[BlindSpotFinding]) -> RiskSummary:
    """
    Route-level roll-up: LOW / MEDIUM / HIGH / CRITICAL.

    CRITICAL if more than two critical findings or any score >= 9,
    HIGH if any critical finding or average >= 6, MEDIUM if average >= 4.
    """
    if not findings:
        return RiskSummary()

    scores = [f.risk_score for f in findings]
    average = sum(scores) / len(scores)
    max_score = max(scores)

    distribution = RiskDistribution(
        critical=sum(1 for f in findings if f.severity_level == SeverityLevel.CRITICAL),
        significant=sum(1 for f in findings if f.severity_level == SeverityLevel.SIGNIFICANT),
        moderate=sum(1 for f in findings if f.severity_level == SeverityLevel.MODERATE),
        minor=sum(1 for f in findings if f.severity_level == SeverityLevel.MINOR),
    )
    critical_count = distribution.critical

    level = "LOW"
    if critical_count > 2 or max_score >= 9:
        level = "CRITICAL"
    elif critical_count > 0 or average >= 6:
        level = "HIGH"
    elif average >= 4:
        level = "MEDIUM"

    return RiskSummary(
        level=level,
        average_score=round(average, 1),
        max_score=max_score,
        critical_count=critical_count,
        distribution=distribution,
    )


def route_recommendations(findings: Sequence[BlindSpotFinding]) -> List[RouteRecommendation]:
    """Grouped route-level actions; the general group is always present."""
    recommendations = []

    critical = [f for f in findings if f.severity_level == SeverityLevel.CRITICAL]
    crests = [f for f in findings if f.spot_type == SpotType.CREST]
    curves = [f for f in findings if f.spot_type == SpotType.CURVE]
    obstructions = [f for f in findings if f.spot_type == SpotType.OBSTRUCTION]

    if critical:
        recommendations.append(RouteRecommendation(
            priority="CRITICAL",
            category="immediate_action",
            title=f"{len(critical)} Critical Blind Spots Detected",
            actions=[
                "Reduce speed to 30-40 km/h in identified areas",
                "Use convoy travel with lead vehicle communication",
                "Consider alternative route planning",
            ],
        ))

    if len(crests) > 2:
        recommendations.append(RouteRecommendation(
            priority="HIGH",
            category="elevation_hazards",
            title=f"Multiple Hill Crest Blind Spots ({len(crests)})",
            actions=[
                "Reduce speed before cresting hills",
                "Stay in lane center and be prepared to stop",
                "Maintain extra following distance",
            ],
        ))

    if len(curves) > 3:
        recommendations.append(RouteRecommendation(
            priority="HIGH",
            category="curve_hazards",
            title=f"Sharp Curve Blind Spots ({len(curves)})",
            actions=[
                "Reduce speed before entering curves",
                "Use horn to alert oncoming traffic",
                "Avoid overtaking in curved sections",
            ],
        ))

    if obstructions:
        recommendations.append(RouteRecommendation(
            priority="MEDIUM",
            category="obstruction_hazards",
            title=f"Structural Obstructions ({len(obstructions)})",
            actions=[
                "Proceed with extreme caution near buildings",
                "Watch for pedestrians and cross traffic",
                "Maintain escape path awareness",
            ],
        ))

    recommendations.append(RouteRecommendation(
        priority="STANDARD",
        category="general_safety",
        title="General Blind Spot Safety Measures",
        actions=[
            "Review route blind spot report before travel",
            "Ensure vehicle lights and signals are functional",
            "Brief drivers on identified hazard locations",
            "Consider weather impact on visibility conditions",
        ],
    ))

    return recommendations
