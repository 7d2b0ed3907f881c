"""
Pydantic schemas for the multi-criteria route risk assessment.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RiskCriterion(str, Enum):
    ROAD_CONDITIONS = "road_conditions"
    ACCIDENT_PRONE = "accident_prone"
    SHARP_TURNS = "sharp_turns"
    BLIND_SPOTS = "blind_spots"
    TWO_WAY_TRAFFIC = "two_way_traffic"
    TRAFFIC_DENSITY = "traffic_density"
    WEATHER_CONDITIONS = "weather_conditions"
    EMERGENCY_SERVICES = "emergency_services"
    NETWORK_COVERAGE = "network_coverage"
    AMENITIES = "amenities"
    SECURITY_ISSUES = "security_issues"


class RiskCriterionScore(BaseModel):
    """
    Score of one criterion, already clamped to [1, 10].

    is_default marks scores that were not supplied and fell back to the
    documented per-criterion default.
    """

    criterion: RiskCriterion
    score: float = Field(..., ge=1.0, le=10.0)
    weight: int = Field(..., ge=0, le=100)
    is_default: bool = False
    breakdown: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)


class RiskFactor(BaseModel):
    factor: RiskCriterion
    score: float
    weight: int
    weighted_contribution: float


class SafetyRecommendation(BaseModel):
    priority: str
    category: str
    recommendation: str


class RouteRiskAssessment(BaseModel):
    """
    Current risk assessment of a route, recomputed wholesale on any change.

    Example:
        {
            "route_id": "r-1001",
            "total_weighted_score": 3.8,
            "risk_grade": "B",
            "risk_level": "Low Risk",
            ...
        }
    """

    route_id: str
    criterion_scores: Dict[RiskCriterion, RiskCriterionScore]
    total_weighted_score: float = Field(..., ge=0.0, le=10.0)
    risk_grade: str = Field(..., pattern="^[ABCDF]$")
    risk_level: str
    risk_explanation: str = ""
    top_risk_factors: List[RiskFactor] = Field(default_factory=list)
    safety_recommendations: List[SafetyRecommendation] = Field(default_factory=list)
    data_completeness: float = Field(default=1.0, ge=0.0, le=1.0)
    calculated_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)
