"""
In-memory RouteStore.

Finding sets are stored as immutable tuples and swapped in under a lock, so
readers always see either the previous complete set or the new one.
"""
import logging
import threading
from typing import Dict, List, Optional, Sequence, Tuple

from routerisk.schemas.blind_spot import BlindSpotFinding
from routerisk.schemas.risk import RouteRiskAssessment
from routerisk.schemas.route import Route

logger = logging.getLogger(__name__)


class InMemoryRouteStore:
    def __init__(self, routes: Optional[Sequence[Route]] = None):
        self._lock = threading.Lock()
        self._routes: Dict[str, Route] = {}
        self._blind_spots: Dict[str, Tuple[BlindSpotFinding, ...]] = {}
        self._assessments: Dict[str, RouteRiskAssessment] = {}
        for route in routes or []:
            self.save_route(route)

    def save_route(self, route: Route) -> None:
        """Create or replace a route; its findings are kept until re-analysis."""
        with self._lock:
            self._routes[route.route_id] = route

    def load_route(self, route_id: str) -> Optional[Route]:
        with self._lock:
            return self._routes.get(route_id)

    def replace_blind_spots(
        self, route_id: str, findings: Sequence[BlindSpotFinding]
    ) -> None:
        new_set = tuple(findings)
        for finding in new_set:
            if finding.route_id != route_id:
                raise ValueError(
                    f"Finding for route {finding.route_id} cannot be stored under {route_id}"
                )

        with self._lock:
            previous = len(self._blind_spots.get(route_id, ()))
            self._blind_spots[route_id] = new_set

        logger.debug(f"Route {route_id}: replaced {previous} blind spots with {len(new_set)}")

    def load_blind_spots(self, route_id: str) -> List[BlindSpotFinding]:
        with self._lock:
            return list(self._blind_spots.get(route_id, ()))

    def save_risk_assessment(
        self, route_id: str, assessment: RouteRiskAssessment
    ) -> None:
        with self._lock:
            self._assessments[route_id] = assessment

    def load_risk_assessment(self, route_id: str) -> Optional[RouteRiskAssessment]:
        with self._lock:
            return self._assessments.get(route_id)
