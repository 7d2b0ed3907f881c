"""
Elevation Service - Open-Elevation backed ElevationProvider

Uses Open-Elevation API (free, no API key required) to get elevation data
for route points.

API: https://open-elevation.com/
- Batch lookups of up to 100 locations per POST
- Returns elevation in meters above sea level

Failures raise ProviderError; the provider gateway turns them into missing
samples. Nothing here ever invents an elevation.

**OPTIMIZATION**: In-memory cache reduces API calls when routes overlap or
are re-analyzed.
"""
import logging
import math
import threading
import time
from typing import Dict, List, Optional, Sequence, Tuple

import requests

from routerisk.config import settings
from routerisk.exceptions import ProviderError
from routerisk.schemas.route import RoutePoint

logger = logging.getLogger(__name__)

OPEN_ELEVATION_MAX_BATCH = 100
ELEVATION_CACHE_TTL = 3600  # 1 hour
ELEVATION_COORD_PRECISION = 3  # Decimal places for coordinate rounding (~111m)


class OpenElevationProvider:
    """
    ElevationProvider for an Open-Elevation compatible lookup endpoint.

    Results (including "no elevation") are cached for ELEVATION_CACHE_TTL,
    keyed by coordinates rounded to 3 decimal places. Transport failures
    are NOT cached so a later pass can retry.
    """

    name = "open-elevation"

    def __init__(
        self,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url or settings.ELEVATION_API_URL
        self.timeout = timeout or settings.PROVIDER_TIMEOUT_SECONDS
        self.session = session
        self._cache: Dict[Tuple[float, float], Tuple[Optional[float], float]] = {}
        self._cache_lock = threading.Lock()

    @staticmethod
    def _cache_key(latitude: float, longitude: float) -> Tuple[float, float]:
        return (
            round(latitude, ELEVATION_COORD_PRECISION),
            round(longitude, ELEVATION_COORD_PRECISION),
        )

    def _cached(self, key: Tuple[float, float], now: float) -> Tuple[bool, Optional[float]]:
        with self._cache_lock:
            entry = self._cache.get(key)
        if entry is not None and (now - entry[1]) < ELEVATION_CACHE_TTL:
            return True, entry[0]
        return False, None

    def get_elevations(self, points: Sequence[RoutePoint]) -> List[Optional[float]]:
        """
        Fetch elevations for up to 100 points in one API call.

        Args:
            points: Route points (at most OPEN_ELEVATION_MAX_BATCH)

        Returns:
            Elevations aligned with points, None where the API had no value

        Raises:
            ProviderError: request failed, non-OK status or malformed payload
        """
        if not points:
            return []
        if len(points) > OPEN_ELEVATION_MAX_BATCH:
            raise ProviderError(
                provider=self.name,
                reason_code="batch_too_large",
                message=f"{len(points)} locations exceeds API limit of {OPEN_ELEVATION_MAX_BATCH}",
            )

        now = time.time()
        elevations: List[Optional[float]] = [None] * len(points)
        to_fetch: List[int] = []
        for i, point in enumerate(points):
            hit, value = self._cached(self._cache_key(point.latitude, point.longitude), now)
            if hit:
                elevations[i] = value
            else:
                to_fetch.append(i)

        if not to_fetch:
            return elevations

        fetched = self._post_locations([points[i] for i in to_fetch])

        with self._cache_lock:
            for i, value in zip(to_fetch, fetched):
                elevations[i] = value
                self._cache[self._cache_key(points[i].latitude, points[i].longitude)] = (value, now)

        logger.info(f"Fetched {len(fetched)} elevations in batch request ({len(points) - len(to_fetch)} cached)")
        return elevations

    def _post_locations(self, points: Sequence[RoutePoint]) -> List[Optional[float]]:
        payload = {
            "locations": [
                {"latitude": p.latitude, "longitude": p.longitude}
                for p in points
            ]
        }

        try:
            post = self.session.post if self.session is not None else requests.post
            response = post(self.api_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise ProviderError(
                provider=self.name,
                reason_code="request_failed",
                message=f"Batch elevation fetch failed: {e}",
            ) from e
        except ValueError as e:
            raise ProviderError(
                provider=self.name,
                reason_code="malformed_response",
                message=f"Response is not JSON: {e}",
            ) from e

        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list) or len(results) != len(points):
            raise ProviderError(
                provider=self.name,
                reason_code="malformed_response",
                message=f"Expected {len(points)} results",
                details={"received": len(results) if isinstance(results, list) else None},
            )

        elevations = []
        for i, result in enumerate(results):
            elevation = result.get("elevation") if isinstance(result, dict) else None
            try:
                elevation = float(elevation) if elevation is not None else None
            except (TypeError, ValueError):
                elevation = None
            if elevation is None or not math.isfinite(elevation):
                logger.warning(f"No elevation for coordinate {i}: ({points[i].latitude}, {points[i].longitude})")
                elevation = None
            elevations.append(elevation)

        return elevations
