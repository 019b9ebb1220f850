"""Shared fixtures: a small synthetic jeepney network around Manila (~14.6°N, 121.0°E).

    Route 1 "EW-1": west -> east along lat 14.600, lon 121.000 -> 121.020
    Route 2 "NS-2": south -> north along lon 121.010, lat 14.590 -> 14.610
                    (crosses route 1 at 14.600, 121.010)
    Route 3 "LP-3": west -> east along lat 14.650, far from the others
"""

import pytest

from planner.core.planner import JourneyPlanner
from planner.core.store import MemoryGeometryStore

CROSSING = (14.600, 121.010)


def straight_line(lat0: float, lon0: float, lat1: float, lon1: float, n: int = 5) -> list[list[float]]:
    """n + 1 evenly spaced [lat, lon] vertices from (lat0, lon0) to (lat1, lon1)."""
    return [
        [lat0 + (lat1 - lat0) * i / n, lon0 + (lon1 - lon0) * i / n]
        for i in range(n + 1)
    ]


def build_network() -> MemoryGeometryStore:
    store = MemoryGeometryStore()
    store.load_route(1, "EW-1", straight_line(14.600, 121.000, 14.600, 121.020), "Cubao", "Marikina")
    store.load_route(2, "NS-2", straight_line(14.590, 121.010, 14.610, 121.010), "Pasig", "Fairview")
    store.load_route(3, "LP-3", straight_line(14.650, 121.000, 14.650, 121.020), "Novaliches", "Quiapo")
    return store


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store() -> MemoryGeometryStore:
    return build_network()


@pytest.fixture
def journey_planner(store) -> JourneyPlanner:
    return JourneyPlanner(store)
