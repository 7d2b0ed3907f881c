"""
Tests for the Blind-Spot Aggregator

Covers the analysis state machine end to end against the in-memory store:
- Scenarios: flat road, hill crest, sharp curve, close tall building
- Threshold and value ranges of persisted findings
- Analyzer isolation, skipped analyzers and provider failures
- Replace-not-merge, determinism and cancellation
"""
import asyncio
from unittest.mock import MagicMock

import pytest

from routerisk.exceptions import InputError, ProviderError
from routerisk.schemas.blind_spot import (
    AnalysisMethod,
    AnalysisState,
    AnalyzerStatus,
    SpotType,
)
from routerisk.schemas.route import Route
from routerisk.services import blind_spot_aggregator as aggregator_module
from routerisk.services.algorithm_config import AnalysisThresholds
from routerisk.services.blind_spot_aggregator import (
    BlindSpotAggregator,
    deduplicate_findings,
)
from routerisk.services.candidate import BlindSpotCandidate
from routerisk.services.feature_service import OverpassFeatureProvider
from routerisk.store import InMemoryRouteStore
from factories import (
    FailingElevationProvider,
    FixedFeatureProvider,
    FlakyFeatureProvider,
    RecordingElevationProvider,
    SlowFeatureProvider,
    SyntheticFeatureProvider,
    crest_elevations,
    make_finding,
    make_straight_points,
)


def _assert_finding_ranges(findings, min_risk_score=5.0):
    for finding in findings:
        assert finding.risk_score >= min_risk_score
        assert 1.0 <= finding.risk_score <= 10.0
        assert 0.0 <= finding.confidence <= 1.0
        assert finding.visibility_distance_meters >= 10.0


# ============================================================================
# Scenarios
# ============================================================================


class TestScenarios:
    @pytest.mark.asyncio
    async def test_flat_straight_road(self, store, flat_route, fast_gateway):
        """20 colinear points, uniform elevation, no nearby features"""
        store.save_route(flat_route)
        aggregator = BlindSpotAggregator(
            store, feature_provider=FixedFeatureProvider([]), gateway=fast_gateway
        )

        result = await aggregator.analyze("flat")

        assert result.state == AnalysisState.COMPLETED
        assert result.total_findings == 0
        assert result.findings == []
        assert result.blind_spots_score == 3.0
        assert result.confidence == 0.5
        assert result.risk_summary.level == "LOW"
        assert store.load_blind_spots("flat") == []
        assert aggregator.get_state("flat") == AnalysisState.COMPLETED

    @pytest.mark.asyncio
    async def test_hill_crest(self, store, crest_route, fast_gateway):
        store.save_route(crest_route)
        result = await BlindSpotAggregator(store, gateway=fast_gateway).analyze("crest")

        crests = [f for f in result.findings if f.spot_type == SpotType.CREST]
        assert crests
        assert all(f.visibility_distance_meters < 250.0 for f in crests)
        assert result.by_type["crest"] == len(crests)
        assert result.analyzers["elevation"].status == AnalyzerStatus.SUCCEEDED
        assert result.analyzers["elevation"].coverage == 1.0
        _assert_finding_ranges(result.findings)

    @pytest.mark.asyncio
    async def test_sharp_curve(self, store, curve_route, fast_gateway):
        store.save_route(curve_route)
        result = await BlindSpotAggregator(store, gateway=fast_gateway).analyze("curve")

        assert result.total_findings == 1
        curve = result.findings[0]
        assert curve.spot_type == SpotType.CURVE
        assert curve.analysis_method == AnalysisMethod.GEOMETRIC_SIGHT_DISTANCE
        assert curve.details["required_sight_distance_m"] == pytest.approx(85.0, rel=0.05)
        assert curve.details["available_sight_distance_m"] < curve.details["required_sight_distance_m"]

    @pytest.mark.asyncio
    async def test_close_tall_building(self, store, flat_route, tall_building, fast_gateway):
        store.save_route(flat_route)
        provider = FixedFeatureProvider([tall_building])
        aggregator = BlindSpotAggregator(store, feature_provider=provider, gateway=fast_gateway)

        result = await aggregator.analyze("flat")

        # Sampled at every 5th point: 0, 5, 10, 15 -> 250 m apart, no dedup
        assert len(provider.queries) == 4
        assert result.by_type == {"obstruction": 4}
        assert all(f.visibility_distance_meters < 150.0 for f in result.findings)
        assert result.analyzers["obstruction"].coverage == 1.0
        assert result.recommendations[0].category == "obstruction_hazards"
        assert result.recommendations[-1].category == "general_safety"
        _assert_finding_ranges(result.findings)


# ============================================================================
# Input validation and state machine
# ============================================================================


class TestStateMachine:
    @pytest.mark.asyncio
    async def test_missing_route_fails(self, store):
        aggregator = BlindSpotAggregator(store)

        with pytest.raises(InputError):
            await aggregator.analyze("nope")
        assert aggregator.get_state("nope") == AnalysisState.FAILED

    @pytest.mark.asyncio
    async def test_too_few_points_fails(self, store):
        store.save_route(Route(route_id="short", points=make_straight_points(4, 50.0)))
        aggregator = BlindSpotAggregator(store)

        with pytest.raises(InputError) as exc_info:
            await aggregator.analyze("short")
        assert "Insufficient route data" in str(exc_info.value)
        assert aggregator.get_state("short") == AnalysisState.FAILED

    def test_initial_state_idle(self, store):
        assert BlindSpotAggregator(store).get_state("any") == AnalysisState.IDLE


# ============================================================================
# Analyzer isolation and providers
# ============================================================================


class TestAnalyzerIsolation:
    @pytest.mark.asyncio
    async def test_missing_providers_skip_analyzers(self, store, curve_route, fast_gateway):
        store.save_route(curve_route)
        result = await BlindSpotAggregator(store, gateway=fast_gateway).analyze("curve")

        assert result.analyzers["elevation"].status == AnalyzerStatus.SKIPPED
        assert result.analyzers["elevation"].coverage == 0.0
        assert result.analyzers["obstruction"].status == AnalyzerStatus.SKIPPED
        assert result.analyzers["curve"].status == AnalyzerStatus.SUCCEEDED

    @pytest.mark.asyncio
    async def test_crashing_analyzer_does_not_abort_others(self, store, curve_route, fast_gateway):
        store.save_route(curve_route)
        provider = FailingElevationProvider(RuntimeError("boom"))
        aggregator = BlindSpotAggregator(store, elevation_provider=provider, gateway=fast_gateway)

        result = await aggregator.analyze("curve")

        assert result.analyzers["elevation"].status == AnalyzerStatus.FAILED
        assert "boom" in result.analyzers["elevation"].error
        assert result.by_type == {"curve": 1}
        assert aggregator.get_state("curve") == AnalysisState.COMPLETED

    @pytest.mark.asyncio
    async def test_provider_error_means_no_data(self, store, curve_route, fast_gateway):
        store.save_route(curve_route)
        provider = FailingElevationProvider(
            ProviderError(provider="test", reason_code="unavailable", message="down")
        )
        result = await BlindSpotAggregator(
            store, elevation_provider=provider, gateway=fast_gateway
        ).analyze("curve")

        assert provider.calls == 1
        assert result.analyzers["elevation"].status == AnalyzerStatus.SKIPPED
        assert result.analyzers["elevation"].error == "no elevation data"

    @pytest.mark.asyncio
    async def test_elevations_fetched_only_for_missing_points(self, store, fast_gateway):
        elevations = crest_elevations()
        partial = [e if i % 2 == 0 else None for i, e in enumerate(elevations)]
        store.save_route(Route(route_id="c", points=make_straight_points(15, 50.0, partial)))
        provider = RecordingElevationProvider({i: e for i, e in enumerate(elevations)})

        result = await BlindSpotAggregator(
            store, elevation_provider=provider, gateway=fast_gateway
        ).analyze("c")

        assert provider.batch_sizes == [7]
        assert result.analyzers["elevation"].coverage == 1.0
        assert result.by_type.get("crest", 0) >= 1

    @pytest.mark.asyncio
    async def test_partial_feature_coverage(self, store, flat_route, tall_building, fast_gateway):
        store.save_route(flat_route)
        aggregator = BlindSpotAggregator(
            store, feature_provider=FlakyFeatureProvider([tall_building]), gateway=fast_gateway
        )

        result = await aggregator.analyze("flat")

        report = result.analyzers["obstruction"]
        assert report.status == AnalyzerStatus.SUCCEEDED
        assert report.coverage == 0.5
        assert result.by_type == {"obstruction": 2}


# ============================================================================
# Filtering, validation and dedup
# ============================================================================


class TestMerge:
    @pytest.mark.asyncio
    async def test_min_risk_threshold(self, store, flat_route, tall_building, fast_gateway):
        """Obstruction risk 6 never reaches storage with a threshold of 7"""
        store.save_route(flat_route)
        aggregator = BlindSpotAggregator(
            store,
            feature_provider=FixedFeatureProvider([tall_building]),
            thresholds=AnalysisThresholds(min_risk_score=7.0),
            gateway=fast_gateway,
        )

        result = await aggregator.analyze("flat")

        assert result.total_findings == 0
        assert result.discarded_candidates == 4
        assert store.load_blind_spots("flat") == []

    @pytest.mark.asyncio
    async def test_invalid_candidate_dropped(self, store, flat_route, fast_gateway, monkeypatch):
        def fake_obstructions(lat, lon, distance_km, features, thresholds, point_index=0):
            good = BlindSpotCandidate(
                latitude=lat, longitude=lon, distance_from_start_km=distance_km,
                spot_type=SpotType.OBSTRUCTION, visibility_distance_m=40.0,
                obstruction_height_m=30.0, risk_score=6.0,
                analysis_method=AnalysisMethod.GEOMETRIC_SHADOW_ANALYSIS, confidence=0.9,
            )
            corrupt = BlindSpotCandidate(
                latitude=lat, longitude=lon, distance_from_start_km=distance_km,
                spot_type=SpotType.INTERSECTION, visibility_distance_m=float("nan"),
                obstruction_height_m=0.0, risk_score=9.0,
                analysis_method=AnalysisMethod.GEOMETRIC_SHADOW_ANALYSIS, confidence=0.9,
            )
            return [good, corrupt]

        monkeypatch.setattr(aggregator_module, "analyze_point_obstructions", fake_obstructions)
        store.save_route(flat_route)
        aggregator = BlindSpotAggregator(
            store, feature_provider=FixedFeatureProvider([]), gateway=fast_gateway
        )

        result = await aggregator.analyze("flat")

        assert result.by_type == {"obstruction": 4}
        assert result.discarded_candidates == 4

    def test_dedup_keeps_highest_risk(self):
        findings = [make_finding(5.0, 1.00), make_finding(7.0, 1.05), make_finding(6.0, 1.30)]
        kept = deduplicate_findings(findings, 100.0)

        assert sorted(f.risk_score for f in kept) == [6.0, 7.0]


# ============================================================================
# Replace semantics, determinism, cancellation
# ============================================================================


class TestReplaceAndCancel:
    @pytest.mark.asyncio
    async def test_replace_not_merge(self, store, flat_route, tall_building, fast_gateway):
        store.save_route(flat_route)
        aggregator = BlindSpotAggregator(
            store, feature_provider=FixedFeatureProvider([tall_building]), gateway=fast_gateway
        )
        first = await aggregator.analyze("flat")
        assert first.total_findings == 4

        # Building demolished: nothing from the first pass survives
        aggregator.feature_provider = FixedFeatureProvider([])
        second = await aggregator.analyze("flat")

        assert second.total_findings == 0
        assert store.load_blind_spots("flat") == []

    @pytest.mark.asyncio
    async def test_deterministic(self, store, fast_gateway):
        elevations = crest_elevations() + [100.0] * 25
        store.save_route(Route(route_id="d", points=make_straight_points(40, 50.0, elevations)))
        aggregator = BlindSpotAggregator(
            store, feature_provider=SyntheticFeatureProvider(seed=7), gateway=fast_gateway
        )

        first = await aggregator.analyze("d")
        second = await aggregator.analyze("d")

        assert first.findings == second.findings
        assert [f.risk_score for f in first.findings] == [f.risk_score for f in second.findings]
        _assert_finding_ranges(first.findings)

    @pytest.mark.asyncio
    async def test_timeout_keeps_previous_findings(self, store, flat_route, tall_building, fast_gateway):
        store.save_route(flat_route)
        aggregator = BlindSpotAggregator(
            store, feature_provider=FixedFeatureProvider([tall_building]), gateway=fast_gateway
        )
        await aggregator.analyze("flat")
        previous = store.load_blind_spots("flat")

        aggregator.feature_provider = SlowFeatureProvider(delay_s=0.5)
        with pytest.raises(asyncio.TimeoutError):
            await aggregator.analyze("flat", timeout=0.05)

        assert store.load_blind_spots("flat") == previous
        assert aggregator.get_state("flat") == AnalysisState.IDLE


# ============================================================================
# Unexpected failures outside the analyzers
# ============================================================================


class BrokenStore(InMemoryRouteStore):
    def __init__(self, fail_on):
        super().__init__()
        self.fail_on = fail_on

    def load_route(self, route_id):
        if self.fail_on == "load":
            raise ConnectionError("store unreachable")
        return super().load_route(route_id)

    def replace_blind_spots(self, route_id, findings):
        if self.fail_on == "replace":
            raise ConnectionError("write rejected")
        super().replace_blind_spots(route_id, findings)


class TestUnexpectedFailures:
    @pytest.mark.asyncio
    async def test_store_load_failure_returns_to_idle(self):
        aggregator = BlindSpotAggregator(BrokenStore("load"))

        with pytest.raises(ConnectionError):
            await aggregator.analyze("flat")
        assert aggregator.get_state("flat") == AnalysisState.IDLE

    @pytest.mark.asyncio
    async def test_store_write_failure_keeps_previous_findings(self, flat_route, tall_building, fast_gateway):
        store = BrokenStore(None)
        store.save_route(flat_route)
        aggregator = BlindSpotAggregator(
            store, feature_provider=FixedFeatureProvider([tall_building]), gateway=fast_gateway
        )
        await aggregator.analyze("flat")
        previous = store.load_blind_spots("flat")

        store.fail_on = "replace"
        with pytest.raises(ConnectionError):
            await aggregator.analyze("flat")

        assert store.load_blind_spots("flat") == previous
        assert aggregator.get_state("flat") == AnalysisState.IDLE

    @pytest.mark.asyncio
    async def test_garbled_overpass_element_is_missing_data(self, store, flat_route, fast_gateway):
        client = MagicMock()
        client.query.return_value = [
            {"type": "way", "id": 7, "center": {"lat": "garbled", "lon": 77.2}, "tags": {"building": "yes"}},
        ]
        store.save_route(flat_route)
        aggregator = BlindSpotAggregator(
            store, feature_provider=OverpassFeatureProvider(client=client), gateway=fast_gateway
        )

        result = await aggregator.analyze("flat")

        report = result.analyzers["obstruction"]
        assert report.status == AnalyzerStatus.SUCCEEDED
        assert report.coverage == 1.0
        assert result.total_findings == 0
