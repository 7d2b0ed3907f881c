"""
Pytest configuration and shared fixtures for RouteRisk tests.

Route builders and fake providers live in factories.py.
"""
import pytest

from routerisk.schemas.route import Route
from routerisk.services.provider_gateway import ProviderGateway
from routerisk.services.providers import NearbyFeature
from routerisk.store import InMemoryRouteStore

from factories import crest_elevations, make_arc_points, make_straight_points


# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def tall_building():
    """Building 20 m from the road, 30 m tall."""
    return NearbyFeature(
        name="Grain Silo",
        feature_type="industrial",
        distance_m=20.0,
        height_m=30.0,
        location=None,
        height_estimated=False,
    )


@pytest.fixture
def fast_gateway():
    return ProviderGateway(concurrency=4, batch_size=100, batch_delay_seconds=0)


@pytest.fixture
def store():
    return InMemoryRouteStore()


@pytest.fixture
def flat_route():
    return Route(
        route_id="flat",
        points=make_straight_points(20, 50.0, elevations=[100.0] * 20),
    )


@pytest.fixture
def crest_route():
    return Route(
        route_id="crest",
        points=make_straight_points(15, 50.0, elevations=crest_elevations()),
    )


@pytest.fixture
def curve_route():
    return Route(route_id="curve", points=make_arc_points())
