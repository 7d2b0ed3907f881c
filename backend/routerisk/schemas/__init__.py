"""
Pydantic schemas export.
"""
from routerisk.schemas.route import (
    RoutePoint,
    Route,
)
from routerisk.schemas.blind_spot import (
    SpotType,
    SeverityLevel,
    AnalysisMethod,
    AnalysisState,
    AnalyzerStatus,
    BlindSpotFinding,
    AnalyzerReport,
    RiskDistribution,
    RiskSummary,
    RouteRecommendation,
    BlindSpotAnalysisResult,
    severity_for_score,
)
from routerisk.schemas.risk import (
    RiskCriterion,
    RiskCriterionScore,
    RiskFactor,
    SafetyRecommendation,
    RouteRiskAssessment,
)

__all__ = [
    # Routes
    "RoutePoint",
    "Route",
    # Blind spots
    "SpotType",
    "SeverityLevel",
    "AnalysisMethod",
    "AnalysisState",
    "AnalyzerStatus",
    "BlindSpotFinding",
    "AnalyzerReport",
    "RiskDistribution",
    "RiskSummary",
    "RouteRecommendation",
    "BlindSpotAnalysisResult",
    "severity_for_score",
    # Risk assessment
    "RiskCriterion",
    "RiskCriterionScore",
    "RiskFactor",
    "SafetyRecommendation",
    "RouteRiskAssessment",
]
