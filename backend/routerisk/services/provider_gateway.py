"""
Provider Gateway - batched, rate-limited, failure-absorbing provider calls

External lookups are the only I/O (and the only suspension points) of an
analysis. This gateway:
- BATCHES elevation lookups (ELEVATION_BATCH_SIZE points per provider call)
- RATE-LIMITS with an explicit delay between consecutive batches
- CAPS in-flight calls per provider with an asyncio.Semaphore
- ABSORBS ProviderError: the failure is logged and becomes "no data"
  (None elevations, no feature list, no road attributes)

Blocking provider calls run in the default thread pool via asyncio.to_thread(),
so cancelling the surrounding analysis abandons them at the next await.
Exceptions other than ProviderError are programming errors and propagate to
the analyzer, which is isolated by the aggregator.
"""
import asyncio
import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

from routerisk.config import settings
from routerisk.exceptions import ProviderError
from routerisk.schemas.route import RoutePoint
from routerisk.services.providers import (
    ElevationProvider,
    NearbyFeature,
    NearbyFeatureProvider,
    RoadAttributes,
    RoadGeometryProvider,
)

logger = logging.getLogger(__name__)


def _is_finite_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class ProviderGateway:
    """One gateway per analysis pass; semaphores are per provider kind."""

    def __init__(
        self,
        concurrency: Optional[int] = None,
        batch_size: Optional[int] = None,
        batch_delay_seconds: Optional[float] = None,
    ):
        self.concurrency = concurrency or settings.PROVIDER_CONCURRENCY
        self.batch_size = batch_size or settings.ELEVATION_BATCH_SIZE
        self.batch_delay_seconds = (
            settings.PROVIDER_BATCH_DELAY_SECONDS
            if batch_delay_seconds is None
            else batch_delay_seconds
        )
        self._semaphores: Dict[str, asyncio.Semaphore] = {}

    def _semaphore(self, kind: str) -> asyncio.Semaphore:
        if kind not in self._semaphores:
            self._semaphores[kind] = asyncio.Semaphore(self.concurrency)
        return self._semaphores[kind]

    # =========================================================================
    # ELEVATION
    # =========================================================================

    async def fetch_elevations(
        self, provider: ElevationProvider, points: Sequence[RoutePoint]
    ) -> List[Optional[float]]:
        """
        Fetch elevations for points in sequential, rate-limited batches.

        Returns:
            List aligned with points; None for every sample whose batch failed
            or whose value was missing or non-finite
        """
        elevations: List[Optional[float]] = []
        failed_batches = 0

        for batch_start in range(0, len(points), self.batch_size):
            if batch_start > 0 and self.batch_delay_seconds > 0:
                await asyncio.sleep(self.batch_delay_seconds)

            batch = list(points[batch_start:batch_start + self.batch_size])
            batch_result = await self._fetch_elevation_batch(provider, batch)
            if batch_result is None:
                failed_batches += 1
                batch_result = [None] * len(batch)
            elevations.extend(batch_result)

        if failed_batches:
            logger.warning(
                f"Elevation lookup: {failed_batches} batch(es) failed, "
                f"{sum(1 for e in elevations if e is None)}/{len(points)} samples missing"
            )
        return elevations

    async def _fetch_elevation_batch(
        self, provider: ElevationProvider, batch: List[RoutePoint]
    ) -> Optional[List[Optional[float]]]:
        async with self._semaphore("elevation"):
            try:
                raw = await asyncio.to_thread(provider.get_elevations, batch)
                if raw is None or len(raw) != len(batch):
                    raise ProviderError(
                        provider=type(provider).__name__,
                        reason_code="malformed_response",
                        message=f"expected {len(batch)} elevations, got {None if raw is None else len(raw)}",
                    )
            except ProviderError as e:
                logger.warning(f"Elevation batch of {len(batch)} failed: {e}")
                return None

        return [float(value) if _is_finite_number(value) else None for value in raw]

    # =========================================================================
    # NEARBY FEATURES
    # =========================================================================

    async def fetch_nearby_features(
        self,
        provider: NearbyFeatureProvider,
        queries: Sequence[Tuple[float, float]],
        radius_m: float,
    ) -> List[Optional[List[NearbyFeature]]]:
        """
        Query nearby features for each (lat, lon), at most `concurrency` at once.

        Queries are issued in groups of `concurrency` with the batch delay
        between groups.

        Returns:
            List aligned with queries; None where the lookup failed
        """
        results: List[Optional[List[NearbyFeature]]] = []

        for group_start in range(0, len(queries), self.concurrency):
            if group_start > 0 and self.batch_delay_seconds > 0:
                await asyncio.sleep(self.batch_delay_seconds)

            group = queries[group_start:group_start + self.concurrency]
            results.extend(await asyncio.gather(
                *[self._fetch_features(provider, lat, lon, radius_m) for lat, lon in group]
            ))

        failed = sum(1 for r in results if r is None)
        if failed:
            logger.warning(f"Feature lookup failed for {failed}/{len(queries)} sample points")
        return results

    async def _fetch_features(
        self,
        provider: NearbyFeatureProvider,
        latitude: float,
        longitude: float,
        radius_m: float,
    ) -> Optional[List[NearbyFeature]]:
        async with self._semaphore("features"):
            try:
                features = await asyncio.to_thread(
                    provider.get_nearby_features, latitude, longitude, radius_m
                )
            except ProviderError as e:
                logger.warning(f"Feature lookup failed at ({latitude:.5f}, {longitude:.5f}): {e}")
                return None

        valid = []
        for feature in features or []:
            if _is_finite_number(feature.height_m) and _is_finite_number(feature.distance_m):
                valid.append(feature)
            else:
                logger.warning(f"Dropping malformed feature '{feature.name}' at ({latitude:.5f}, {longitude:.5f})")
        return valid

    # =========================================================================
    # ROAD ATTRIBUTES
    # =========================================================================

    async def fetch_road_attributes(
        self,
        provider: RoadGeometryProvider,
        queries: Sequence[Tuple[float, float]],
    ) -> List[Optional[RoadAttributes]]:
        """Road attributes per (lat, lon); None where unknown or failed."""
        results: List[Optional[RoadAttributes]] = []

        for group_start in range(0, len(queries), self.concurrency):
            if group_start > 0 and self.batch_delay_seconds > 0:
                await asyncio.sleep(self.batch_delay_seconds)

            group = queries[group_start:group_start + self.concurrency]
            results.extend(await asyncio.gather(
                *[self._fetch_road(provider, lat, lon) for lat, lon in group]
            ))
        return results

    async def _fetch_road(
        self, provider: RoadGeometryProvider, latitude: float, longitude: float
    ) -> Optional[RoadAttributes]:
        async with self._semaphore("road"):
            try:
                return await asyncio.to_thread(
                    provider.get_road_attributes, latitude, longitude
                )
            except ProviderError as e:
                logger.warning(f"Road attribute lookup failed at ({latitude:.5f}, {longitude:.5f}): {e}")
                return None
