"""
Blind-Spot Aggregator - runs the analyzers over one route

State machine per route:  IDLE -> ANALYZING -> COMPLETED | FAILED

Pipeline:
1. Load the route; missing route or too few points => FAILED + InputError
2. Run the crest, curve and obstruction analyzers CONCURRENTLY. Each one
   is isolated: an exception inside one is logged and reported as
   status=failed without touching the other two. An analyzer whose
   provider is absent is reported as status=skipped with coverage 0.
3. Merge sequentially: validate every candidate (invalid => dropped),
   discard candidates below the minimum risk score, collapse same-type
   candidates closer than dedup_distance_m, order deterministically.
4. Replace the route's finding set in ONE store call.

The whole pass is cancellable (caller deadline or task cancellation). On
cancellation nothing is written, the previous finding set survives, the
state returns to IDLE and the cancellation propagates.
"""
import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from routerisk.config import settings
from routerisk.exceptions import FindingValidationError, InputError
from routerisk.schemas.blind_spot import (
    AnalysisState,
    AnalyzerReport,
    AnalyzerStatus,
    BlindSpotAnalysisResult,
    BlindSpotFinding,
)
from routerisk.schemas.route import RoutePoint
from routerisk.services.algorithm_config import (
    BLIND_SPOT_BASELINE_SCORE,
    MAX_CRITERION_SCORE,
    MIN_CRITERION_SCORE,
    NO_FINDINGS_CONFIDENCE,
    SEVERITY_CRITERION_WEIGHTS,
    AnalysisThresholds,
)
from routerisk.services.candidate import BlindSpotCandidate
from routerisk.services.curve_geometry import evaluate_curve, find_curve_windows
from routerisk.services.elevation_sight_line import analyze_elevation_profile
from routerisk.services.obstruction_shadow import analyze_point_obstructions
from routerisk.services.provider_gateway import ProviderGateway
from routerisk.services.providers import (
    ElevationProvider,
    NearbyFeatureProvider,
    RoadGeometryProvider,
    RouteStore,
)
from routerisk.services.recommendations import route_recommendations, summarize_risk
from routerisk.services.speed_estimation import estimate_speed_kmh
from routerisk.utils.geo_utils import cumulative_distances

logger = logging.getLogger(__name__)

ELEVATION_ANALYZER = "elevation"
CURVE_ANALYZER = "curve"
OBSTRUCTION_ANALYZER = "obstruction"


@dataclass
class AnalyzerOutcome:
    """What one analyzer produced during a pass."""

    name: str
    status: AnalyzerStatus
    candidates: List[BlindSpotCandidate] = field(default_factory=list)
    coverage: float = 0.0
    error: Optional[str] = None

    def to_report(self) -> AnalyzerReport:
        return AnalyzerReport(
            name=self.name,
            status=self.status,
            candidates=len(self.candidates),
            coverage=self.coverage,
            error=self.error,
        )


def thresholds_from_settings() -> AnalysisThresholds:
    """Default thresholds with the overrides exposed through Settings."""
    return AnalysisThresholds(
        min_risk_score=settings.MIN_RISK_SCORE,
        obstruction_search_radius_m=settings.OBSTRUCTION_SEARCH_RADIUS_M,
    )


def derive_blind_spots_score(findings: Sequence[BlindSpotFinding]) -> float:
    """
    blind_spots risk criterion from a route's persisted findings.

    Severity-weighted mean of the finding risk scores (critical x2,
    significant x1.5, others x1), clamped to [1, 10]. A route with no
    findings scores BLIND_SPOT_BASELINE_SCORE (3.0): the absence of detected
    blind spots is not evidence of zero risk.

    Example:
        >>> derive_blind_spots_score([])
        3.0
    """
    if not findings:
        return BLIND_SPOT_BASELINE_SCORE

    weighted_sum = 0.0
    weight_total = 0.0
    for finding in findings:
        weight = SEVERITY_CRITERION_WEIGHTS[finding.severity_level.value]
        weighted_sum += finding.risk_score * weight
        weight_total += weight

    score = weighted_sum / weight_total
    return max(MIN_CRITERION_SCORE, min(MAX_CRITERION_SCORE, score))


def deduplicate_findings(
    findings: Sequence[BlindSpotFinding], dedup_distance_m: float
) -> List[BlindSpotFinding]:
    """
    Collapse same-type findings closer than dedup_distance_m along the route.

    Highest risk wins; ties go to the earliest position.
    """
    ranked = sorted(findings, key=lambda f: (-f.risk_score, f.distance_from_start_km))
    kept: List[BlindSpotFinding] = []

    for finding in ranked:
        is_duplicate = any(
            other.spot_type == finding.spot_type
            and abs(other.distance_from_start_km - finding.distance_from_start_km) * 1000 < dedup_distance_m
            for other in kept
        )
        if not is_duplicate:
            kept.append(finding)

    return kept


def _finding_sort_key(finding: BlindSpotFinding):
    return (
        finding.distance_from_start_km,
        finding.spot_type.value,
        -finding.risk_score,
        finding.latitude,
        finding.longitude,
    )


class BlindSpotAggregator:
    """
    Runs blind-spot analysis for routes held in a RouteStore.

    Providers are optional; an absent provider skips the analyzer that
    needs it instead of substituting stand-in data.
    """

    def __init__(
        self,
        store: RouteStore,
        elevation_provider: Optional[ElevationProvider] = None,
        feature_provider: Optional[NearbyFeatureProvider] = None,
        road_provider: Optional[RoadGeometryProvider] = None,
        thresholds: Optional[AnalysisThresholds] = None,
        gateway: Optional[ProviderGateway] = None,
    ):
        self.store = store
        self.elevation_provider = elevation_provider
        self.feature_provider = feature_provider
        self.road_provider = road_provider
        self.thresholds = thresholds or thresholds_from_settings()
        self.gateway = gateway or ProviderGateway()
        self._states: Dict[str, AnalysisState] = {}

    def get_state(self, route_id: str) -> AnalysisState:
        return self._states.get(route_id, AnalysisState.IDLE)

    async def analyze(
        self, route_id: str, timeout: Optional[float] = None
    ) -> BlindSpotAnalysisResult:
        """
        Analyze a route and replace its blind-spot findings.

        Args:
            route_id: Route to analyze
            timeout: Deadline in seconds for the whole pass
                (defaults to settings.ANALYSIS_TIMEOUT_SECONDS)

        Returns:
            Completed analysis result

        Raises:
            InputError: Route missing or has too few points
            asyncio.TimeoutError: Deadline exceeded; nothing was persisted
        """
        self._states[route_id] = AnalysisState.ANALYZING
        if timeout is None:
            timeout = settings.ANALYSIS_TIMEOUT_SECONDS

        try:
            result = await self._run_pass(route_id, timeout)
        except InputError:
            self._states[route_id] = AnalysisState.FAILED
            raise
        except (asyncio.TimeoutError, asyncio.CancelledError):
            logger.warning(f"Analysis of route {route_id} cancelled, previous findings kept")
            self._states[route_id] = AnalysisState.IDLE
            raise
        except Exception as e:
            logger.error(f"Analysis of route {route_id} aborted, previous findings kept: {e}")
            self._states[route_id] = AnalysisState.IDLE
            raise

        self._states[route_id] = AnalysisState.COMPLETED
        return result

    async def _run_pass(self, route_id: str, timeout: float) -> BlindSpotAnalysisResult:
        start_time = time.time()
        points = self._load_points(route_id)
        logger.info(f"Analyzing route {route_id}: {len(points)} points")

        outcomes = await asyncio.wait_for(self._run_analyzers(points), timeout)

        findings, discarded = self._merge(route_id, outcomes)
        self.store.replace_blind_spots(route_id, findings)

        result = BlindSpotAnalysisResult(
            route_id=route_id,
            state=AnalysisState.COMPLETED,
            total_findings=len(findings),
            by_type=self._count_by_type(findings),
            findings=findings,
            risk_summary=summarize_risk(findings),
            recommendations=route_recommendations(findings),
            analyzers={o.name: o.to_report() for o in outcomes},
            confidence=self._overall_confidence(findings),
            blind_spots_score=derive_blind_spots_score(findings),
            discarded_candidates=discarded,
        )

        elapsed = time.time() - start_time
        logger.info(
            f"Route {route_id}: {len(findings)} blind spots persisted "
            f"({discarded} candidates discarded) in {elapsed:.2f}s"
        )
        return result

    def _load_points(self, route_id: str) -> List[RoutePoint]:
        route = self.store.load_route(route_id)
        if route is None:
            raise InputError(f"Route {route_id} not found", route_id=route_id)

        points = route.ordered_points()
        if len(points) < self.thresholds.min_route_points:
            raise InputError(
                f"Insufficient route data: {len(points)} points, "
                f"at least {self.thresholds.min_route_points} required",
                route_id=route_id,
            )
        return points

    # =========================================================================
    # ANALYZER RUNNERS
    # =========================================================================

    async def _run_analyzers(self, points: List[RoutePoint]) -> List[AnalyzerOutcome]:
        return list(await asyncio.gather(
            self._isolated(ELEVATION_ANALYZER, self._run_elevation(points)),
            self._isolated(CURVE_ANALYZER, self._run_curve(points)),
            self._isolated(OBSTRUCTION_ANALYZER, self._run_obstruction(points)),
        ))

    async def _isolated(self, name: str, runner) -> AnalyzerOutcome:
        try:
            outcome = await runner
        except Exception as e:
            logger.exception(f"{name} analyzer failed: {e}")
            return AnalyzerOutcome(name=name, status=AnalyzerStatus.FAILED, error=str(e))

        logger.info(
            f"{name} analyzer {outcome.status.value}: "
            f"{len(outcome.candidates)} candidates, coverage {outcome.coverage:.0%}"
        )
        return outcome

    async def _run_elevation(self, points: List[RoutePoint]) -> AnalyzerOutcome:
        elevations = [
            p.elevation if p.elevation is not None and math.isfinite(p.elevation) else None
            for p in points
        ]
        missing = [i for i, e in enumerate(elevations) if e is None]

        if missing and self.elevation_provider is not None:
            fetched = await self.gateway.fetch_elevations(
                self.elevation_provider, [points[i] for i in missing]
            )
            for index, elevation in zip(missing, fetched):
                elevations[index] = elevation

        valid = sum(1 for e in elevations if e is not None)
        if valid == 0:
            reason = "no elevation provider" if self.elevation_provider is None else "no elevation data"
            return AnalyzerOutcome(
                name=ELEVATION_ANALYZER, status=AnalyzerStatus.SKIPPED, error=reason
            )

        candidates = analyze_elevation_profile(points, elevations, self.thresholds)
        return AnalyzerOutcome(
            name=ELEVATION_ANALYZER,
            status=AnalyzerStatus.SUCCEEDED,
            candidates=candidates,
            coverage=valid / len(points),
        )

    async def _run_curve(self, points: List[RoutePoint]) -> AnalyzerOutcome:
        windows = find_curve_windows(points, self.thresholds)

        roads = [None] * len(windows)
        if windows and self.road_provider is not None:
            roads = await self.gateway.fetch_road_attributes(
                self.road_provider, [(w.latitude, w.longitude) for w in windows]
            )

        candidates = []
        for window, road in zip(windows, roads):
            candidate = evaluate_curve(window, estimate_speed_kmh(road), self.thresholds)
            if candidate is not None:
                candidates.append(candidate)

        return AnalyzerOutcome(
            name=CURVE_ANALYZER,
            status=AnalyzerStatus.SUCCEEDED,
            candidates=candidates,
            coverage=1.0,
        )

    async def _run_obstruction(self, points: List[RoutePoint]) -> AnalyzerOutcome:
        if self.feature_provider is None:
            return AnalyzerOutcome(
                name=OBSTRUCTION_ANALYZER,
                status=AnalyzerStatus.SKIPPED,
                error="no nearby-feature provider",
            )

        distances = cumulative_distances([(p.latitude, p.longitude) for p in points])
        sample_indices = list(range(0, len(points), self.thresholds.obstruction_sample_stride))

        feature_sets = await self.gateway.fetch_nearby_features(
            self.feature_provider,
            [(points[i].latitude, points[i].longitude) for i in sample_indices],
            self.thresholds.obstruction_search_radius_m,
        )

        candidates = []
        answered = 0
        for index, features in zip(sample_indices, feature_sets):
            if features is None:
                continue
            answered += 1
            candidates.extend(analyze_point_obstructions(
                points[index].latitude,
                points[index].longitude,
                distances[index] / 1000,
                features,
                self.thresholds,
                point_index=index,
            ))

        return AnalyzerOutcome(
            name=OBSTRUCTION_ANALYZER,
            status=AnalyzerStatus.SUCCEEDED,
            candidates=candidates,
            coverage=answered / len(sample_indices),
        )

    # =========================================================================
    # MERGE
    # =========================================================================

    def _merge(
        self, route_id: str, outcomes: Sequence[AnalyzerOutcome]
    ) -> tuple[List[BlindSpotFinding], int]:
        findings = []
        total = 0

        for outcome in outcomes:
            for candidate in outcome.candidates:
                total += 1
                try:
                    finding = candidate.to_finding(route_id)
                except FindingValidationError as e:
                    logger.warning(f"Dropping invalid {outcome.name} candidate: {e}")
                    continue
                if finding.risk_score < self.thresholds.min_risk_score:
                    continue
                findings.append(finding)

        findings = deduplicate_findings(findings, self.thresholds.dedup_distance_m)
        findings.sort(key=_finding_sort_key)
        return findings, total - len(findings)

    @staticmethod
    def _count_by_type(findings: Sequence[BlindSpotFinding]) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for finding in findings:
            counts[finding.spot_type.value] = counts.get(finding.spot_type.value, 0) + 1
        return counts

    @staticmethod
    def _overall_confidence(findings: Sequence[BlindSpotFinding]) -> float:
        if not findings:
            return NO_FINDINGS_CONFIDENCE
        return round(sum(f.confidence for f in findings) / len(findings), 2)
