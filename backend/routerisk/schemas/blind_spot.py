"""
Pydantic schemas for blind-spot findings and analysis results.

BlindSpotFinding is the persisted shape. It is frozen and strictly
validated: a non-finite or out-of-range field raises instead of being
clamped, so a corrupt candidate can never be saved.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from routerisk.services.algorithm_config import (
    MIN_VISIBILITY_FLOOR_M,
    SEVERITY_BANDS,
)


class SpotType(str, Enum):
    CREST = "crest"
    CURVE = "curve"
    OBSTRUCTION = "obstruction"
    INTERSECTION = "intersection"


class SeverityLevel(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    SIGNIFICANT = "significant"
    CRITICAL = "critical"


class AnalysisMethod(str, Enum):
    ELEVATION_RAY_TRACING = "elevation_ray_tracing"
    GEOMETRIC_SIGHT_DISTANCE = "geometric_sight_distance"
    GEOMETRIC_SHADOW_ANALYSIS = "geometric_shadow_analysis"


class AnalysisState(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


class AnalyzerStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


def severity_for_score(risk_score: float) -> SeverityLevel:
    """
    Map a risk score to its severity band.

    Example:
        >>> severity_for_score(8.0)
        <SeverityLevel.CRITICAL: 'critical'>
        >>> severity_for_score(5.5)
        <SeverityLevel.MODERATE: 'moderate'>
    """
    for level, lower_bound in SEVERITY_BANDS:
        if risk_score >= lower_bound:
            return SeverityLevel(level)
    return SeverityLevel.MINOR


class BlindSpotFinding(BaseModel):
    """One detected sight-line hazard on a route."""

    route_id: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    distance_from_start_km: float = Field(..., ge=0.0)
    spot_type: SpotType
    visibility_distance_meters: float = Field(..., ge=MIN_VISIBILITY_FLOOR_M)
    obstruction_height_meters: float = Field(default=0.0, ge=0.0)
    risk_score: float = Field(..., ge=1.0, le=10.0)
    severity_level: SeverityLevel
    analysis_method: AnalysisMethod
    confidence: float = Field(..., ge=0.0, le=1.0)
    details: Dict[str, Any] = Field(default_factory=dict)
    recommendations: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    @model_validator(mode="before")
    @classmethod
    def derive_severity(cls, data: Any) -> Any:
        """Fill severity_level from risk_score when not given."""
        if isinstance(data, dict) and data.get("severity_level") is None:
            risk_score = data.get("risk_score")
            if isinstance(risk_score, (int, float)):
                data = {**data, "severity_level": severity_for_score(risk_score)}
        return data

    @model_validator(mode="after")
    def check_severity_matches_score(self) -> "BlindSpotFinding":
        expected = severity_for_score(self.risk_score)
        if self.severity_level != expected:
            raise ValueError(
                f"severity_level {self.severity_level.value} does not match "
                f"risk_score {self.risk_score} (expected {expected.value})"
            )
        return self


class AnalyzerReport(BaseModel):
    """Outcome of one analyzer within an analysis pass."""

    name: str
    status: AnalyzerStatus
    candidates: int = 0
    coverage: float = Field(default=0.0, ge=0.0, le=1.0)
    error: Optional[str] = None


class RiskDistribution(BaseModel):
    critical: int = 0
    significant: int = 0
    moderate: int = 0
    minor: int = 0


class RiskSummary(BaseModel):
    """Route-level roll-up of the persisted findings."""

    level: str = "LOW"
    average_score: float = 0.0
    max_score: float = 0.0
    critical_count: int = 0
    distribution: RiskDistribution = Field(default_factory=RiskDistribution)


class RouteRecommendation(BaseModel):
    priority: str
    category: str
    title: str
    actions: List[str] = Field(default_factory=list)


class BlindSpotAnalysisResult(BaseModel):
    """Terminal Completed state of a blind-spot analysis pass."""

    route_id: str
    state: AnalysisState = AnalysisState.COMPLETED
    total_findings: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)
    findings: List[BlindSpotFinding] = Field(default_factory=list)
    risk_summary: RiskSummary = Field(default_factory=RiskSummary)
    recommendations: List[RouteRecommendation] = Field(default_factory=list)
    analyzers: Dict[str, AnalyzerReport] = Field(default_factory=dict)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    blind_spots_score: float = Field(..., ge=1.0, le=10.0)
    discarded_candidates: int = 0
    analyzed_at: datetime = Field(default_factory=datetime.utcnow)
