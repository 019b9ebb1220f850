"""Tests for the resolver chain, ranking and the planner entry points."""

import pytest

from planner.core.fares import SteppedIncrementFare
from planner.core.geometry import Coordinate
from planner.core.itinerary import (
    CASE_LOOP_AROUND,
    CASE_NORMAL_FORWARD,
    CASE_OPPOSITE_SIDE,
    DirectItinerary,
    RouteSegment,
    TransferItinerary,
    TransferPoint,
)
from planner.core.planner import JourneyPlanner, default_strategies
from planner.core.ranking import rank_itineraries
from planner.core.resolvers.transfer import TransferResolver
from planner.core.store import MemoryGeometryStore, RouteInfo
from planner.exceptions import NoRouteFound, PlanningCancelled, ValidationError

from conftest import straight_line

ORIGIN = Coordinate(14.6003, 121.002)
# Near EW-1 (33m) and NS-2 (161m), just north of the crossing
DEST_NEAR_BOTH = Coordinate(14.6003, 121.0115)
DEST_ON_NS = Coordinate(14.608, 121.0103)


class SpyTransferResolver(TransferResolver):
    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    async def resolve(self, ctx):
        self.calls += 1
        return await super().resolve(ctx)


def spy_planner(store) -> tuple[JourneyPlanner, SpyTransferResolver]:
    spy = SpyTransferResolver()
    return JourneyPlanner(store, strategies=default_strategies(spy)), spy


@pytest.mark.anyio
async def test_forward_short_circuits_transfer(store):
    """A direct ride exists: the transfer search never runs."""
    planner, spy = spy_planner(store)
    [itinerary] = await planner.plan(ORIGIN, DEST_NEAR_BOTH)

    assert isinstance(itinerary, DirectItinerary)
    assert itinerary.case == CASE_NORMAL_FORWARD
    assert spy.calls == 0


@pytest.mark.anyio
async def test_include_transfers_runs_after_direct(store):
    planner, spy = spy_planner(store)
    results = await planner.plan(ORIGIN, DEST_NEAR_BOTH, include_transfers=True)

    assert spy.calls == 1
    assert [it.is_transfer for it in results] == [False, True]
    # Direct first even though the transfer rides less
    assert results[1].total_distance_m < results[0].total_distance_m


@pytest.mark.anyio
async def test_loop_around(journey_planner):
    [itinerary] = await journey_planner.plan(Coordinate(14.6503, 121.015), Coordinate(14.6503, 121.005))
    assert itinerary.case == CASE_LOOP_AROUND
    assert itinerary.segment.requires_loop


@pytest.mark.anyio
async def test_opposite_side_before_loop():
    """Out-and-back route: boarding across the road beats riding the loop."""
    store = MemoryGeometryStore()
    store.load_route(
        7, "OB-1",
        straight_line(14.6000, 121.000, 14.6000, 121.020) + straight_line(14.6003, 121.020, 14.6003, 121.000),
    )
    [itinerary] = await JourneyPlanner(store).plan(Coordinate(14.5999, 121.015), Coordinate(14.5999, 121.012))
    assert itinerary.case == CASE_OPPOSITE_SIDE
    assert not itinerary.segment.requires_loop
    assert itinerary.segment.distance_m < 1500


@pytest.mark.anyio
async def test_transfer_when_no_direct(store):
    planner, spy = spy_planner(store)
    [itinerary] = await planner.plan(ORIGIN, DEST_ON_NS)
    assert spy.calls == 1
    assert isinstance(itinerary, TransferItinerary)


@pytest.mark.anyio
async def test_no_route_near_origin(journey_planner):
    with pytest.raises(NoRouteFound):
        await journey_planner.plan(Coordinate(10.0, 120.0), DEST_ON_NS)


@pytest.mark.anyio
async def test_backward_only_is_no_route(journey_planner):
    with pytest.raises(NoRouteFound):
        await journey_planner.plan(ORIGIN, Coordinate(14.592, 121.0103))


@pytest.mark.anyio
async def test_same_point_is_no_route(journey_planner):
    point = Coordinate(14.6003, 121.005)
    with pytest.raises(NoRouteFound):
        await journey_planner.plan(point, point)


@pytest.mark.anyio
async def test_missing_coordinate(journey_planner):
    with pytest.raises(ValidationError):
        await journey_planner.plan(None, DEST_ON_NS)
    with pytest.raises(ValidationError):
        await journey_planner.plan(ORIGIN, Coordinate(14.6, 200.0))


@pytest.mark.anyio
async def test_cancellation(journey_planner):
    async def gone() -> bool:
        return True

    with pytest.raises(PlanningCancelled):
        await journey_planner.plan(ORIGIN, DEST_ON_NS, is_cancelled=gone)


@pytest.mark.anyio
async def test_plan_transfers_skips_direct(journey_planner):
    [itinerary] = await journey_planner.plan_transfers(ORIGIN, DEST_NEAR_BOTH)
    assert itinerary.is_transfer
    assert itinerary.second.route.route_code == "NS-2"


@pytest.mark.anyio
async def test_plan_direct_uses_direct_fare(store):
    planner = JourneyPlanner(store, direct_fare_policy=SteppedIncrementFare(base_fare=20.0))
    [direct] = await planner.plan_direct(ORIGIN, DEST_NEAR_BOTH)
    [planned] = await planner.plan(ORIGIN, DEST_NEAR_BOTH)
    assert direct.total_fare == 20.0
    assert planned.total_fare == 13.0


@pytest.mark.anyio
async def test_plan_direct_never_transfers(journey_planner):
    with pytest.raises(NoRouteFound):
        await journey_planner.plan_direct(ORIGIN, DEST_ON_NS)


@pytest.mark.anyio
async def test_result_cap():
    """Seven parallel northbound routes all reachable by transfer: five returned."""
    store = MemoryGeometryStore()
    store.load_route(1, "EW-1", straight_line(14.600, 121.000, 14.600, 121.020))
    for i in range(7):
        lon = 121.0100 + i * 0.0003
        store.load_route(10 + i, f"NS-{10 + i}", straight_line(14.590, lon, 14.610, lon))
    planner = JourneyPlanner(store)

    results = await planner.plan(ORIGIN, Coordinate(14.608, 121.0110))
    assert len(results) == 5
    assert all(it.is_transfer for it in results)
    distances = [it.total_distance_m for it in results]
    assert distances == sorted(distances)


def _segment(route_id: int, distance_m: float) -> RouteSegment:
    return RouteSegment(
        route=RouteInfo(route_id, f"R-{route_id}", "A - B"),
        start_position=0.1,
        end_position=0.9,
        coordinates=[Coordinate(14.6, 121.0), Coordinate(14.6, 121.01)],
        distance_m=distance_m,
        fare=13.0,
    )


def _direct(route_id: int, distance_m: float) -> DirectItinerary:
    return DirectItinerary(_segment(route_id, distance_m), boarding_distance_m=10, alighting_distance_m=10)


def _transfer(a: int, b: int, first_m: float, second_m: float) -> TransferItinerary:
    point = TransferPoint(Coordinate(14.6, 121.01), Coordinate(14.6, 121.01), 0.0, 0.5, 0.5)
    return TransferItinerary(_segment(a, first_m), _segment(b, second_m), point, 10, 10)


def test_rank_direct_before_transfer():
    direct = [_direct(1, 9000)]
    transfers = [_transfer(2, 3, 500, 500)]
    ranked = rank_itineraries(direct, transfers)
    assert ranked[0] is direct[0]


def test_rank_transfers_by_total_distance():
    transfers = [_transfer(2, 3, 1500, 500), _transfer(4, 5, 400, 400), _transfer(6, 7, 900, 900)]
    ranked = rank_itineraries([], transfers)
    assert [it.total_distance_m for it in ranked] == [800, 1800, 2000]


def test_rank_caps_results():
    direct = [_direct(i, 1000 + i) for i in range(3)]
    transfers = [_transfer(10 + i, 20 + i, 500, 500) for i in range(4)]
    ranked = rank_itineraries(direct, transfers, limit=5)
    assert len(ranked) == 5
    assert ranked[:3] == direct
