"""
Candidate findings produced by the analyzers.

A candidate is the analyzer's raw result; it becomes a persisted
BlindSpotFinding only after validation and the minimum-risk filter.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List

from pydantic import ValidationError

from routerisk.exceptions import FindingValidationError
from routerisk.schemas.blind_spot import AnalysisMethod, BlindSpotFinding, SpotType


@dataclass
class BlindSpotCandidate:
    latitude: float
    longitude: float
    distance_from_start_km: float
    spot_type: SpotType
    visibility_distance_m: float
    obstruction_height_m: float
    risk_score: float
    analysis_method: AnalysisMethod
    confidence: float
    details: Dict[str, Any] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)

    def to_finding(self, route_id: str) -> BlindSpotFinding:
        """
        Validate and freeze this candidate.

        Raises:
            FindingValidationError: a field is non-finite or out of its domain
        """
        data = {
            "route_id": route_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "distance_from_start_km": self.distance_from_start_km,
            "spot_type": self.spot_type,
            "visibility_distance_meters": self.visibility_distance_m,
            "obstruction_height_meters": self.obstruction_height_m,
            "risk_score": self.risk_score,
            "analysis_method": self.analysis_method,
            "confidence": self.confidence,
            "details": self.details,
            "recommendations": self.recommendations,
        }
        try:
            return BlindSpotFinding(**data)
        except ValidationError as e:
            raise FindingValidationError(
                f"Invalid {self.spot_type.value} candidate at "
                f"{self.distance_from_start_km:.3f} km: {e.error_count()} error(s)",
                candidate=data,
            ) from e
