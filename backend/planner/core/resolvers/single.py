"""Single-route resolvers: ride one jeepney from origin to destination.

All strategies only consider routes that pass near both endpoints. The
forward case rides straight from the origin position to the destination
position. The opposite-side case looks for boarding and alighting points
within walking distance that allow a forward ride, for routes that come back
along the same street. The loop-around case rides to the end terminal, loops
back to the start and continues to the destination.
"""

import asyncio
import logging
from abc import abstractmethod

from planner.core.geometry import haversine_m
from planner.core.itinerary import (
    CASE_LOOP_AROUND,
    CASE_NORMAL_FORWARD,
    CASE_OPPOSITE_SIDE,
    DirectItinerary,
    RouteSegment,
)
from planner.core.resolvers.base import KIND_DIRECT, ResolveContext, ResolverStrategy
from planner.core.store import RoutePosition, RouteProximityMatch
from planner.exceptions import DegenerateGeometryError, UnknownRouteError

logger = logging.getLogger(__name__)

# Max walk (meters) to an alternative boarding or alighting point
WALK_WINDOW_M = 100.0
# Fraction of the route between candidate boarding/alighting points
WINDOW_STEP = 0.001


def direct_sort_key(itinerary: DirectItinerary) -> tuple[float, float, int]:
    """Least walking first, then shortest ride, then route id."""
    return (
        itinerary.walking_distance_m,
        itinerary.total_distance_m,
        itinerary.segment.route.route_id,
    )


class _SingleRouteResolver(ResolverStrategy):
    kind = KIND_DIRECT
    case = ""

    @abstractmethod
    def _qualifies(self, origin: RouteProximityMatch, destination: RouteProximityMatch) -> bool: ...

    @abstractmethod
    async def _build(
        self, ctx: ResolveContext, origin: RouteProximityMatch, destination: RouteProximityMatch,
    ) -> DirectItinerary | None:
        """Unpriced itinerary on this route, or None when the route cannot serve it."""

    def _candidates(self, ctx: ResolveContext) -> list[tuple[RouteProximityMatch, RouteProximityMatch]]:
        return [(o, d) for o, d in ctx.coincident_routes() if self._qualifies(o, d)]

    def _itinerary(
        self, segment: RouteSegment, boarding_distance_m: float, alighting_distance_m: float,
    ) -> DirectItinerary:
        return DirectItinerary(
            segment=segment,
            boarding_distance_m=boarding_distance_m,
            alighting_distance_m=alighting_distance_m,
            case=self.case,
        )

    def can_handle(self, ctx: ResolveContext) -> bool:
        return bool(self._candidates(ctx))

    async def resolve(self, ctx: ResolveContext) -> list[DirectItinerary]:
        itineraries = []
        for origin, destination in self._candidates(ctx):
            try:
                itinerary = await self._build(ctx, origin, destination)
            except (DegenerateGeometryError, UnknownRouteError) as e:
                logger.warning("%s: skipping route %s: %s", self.name, origin.route.route_code, e)
                continue
            if itinerary is None:
                continue
            segment = itinerary.segment
            segment.fare = ctx.fare_policy.fare(segment.distance_m)
            itineraries.append(itinerary)
            logger.debug(
                "%s: route %s %.1f%% -> %.1f%%, %.2fkm",
                self.name, origin.route.route_code,
                segment.start_position * 100, segment.end_position * 100,
                segment.distance_m / 1000,
            )
        itineraries.sort(key=direct_sort_key)
        return itineraries


class NormalForwardResolver(_SingleRouteResolver):
    """Destination lies ahead of the origin on the route."""

    name = "normal_forward"
    case = CASE_NORMAL_FORWARD

    def _qualifies(self, origin, destination) -> bool:
        return destination.position > origin.position

    async def _build(self, ctx, origin, destination) -> DirectItinerary:
        route_id = origin.route.route_id
        subline = await ctx.store.extract_subline(route_id, origin.position, destination.position)
        segment = RouteSegment(
            route=origin.route,
            start_position=origin.position,
            end_position=destination.position,
            coordinates=subline.coordinates,
            distance_m=subline.distance_m,
        )
        return self._itinerary(segment, origin.distance_m, destination.distance_m)


class OppositeSideResolver(_SingleRouteResolver):
    """Destination behind the nearest origin position: board across the road.

    The nearest point on an out-and-back route can sit on the wrong pass.
    Boarding and alighting points are searched within a walking window of
    each endpoint; the pair with least walking that rides forward wins,
    ties to the shorter ride.
    """

    name = "opposite_side"
    case = CASE_OPPOSITE_SIDE

    def __init__(self, window_m: float = WALK_WINDOW_M, step: float = WINDOW_STEP) -> None:
        if not 0 < step <= 1:
            raise ValueError("step must be in (0, 1]")
        self.window_m = window_m
        self.step = step

    def _qualifies(self, origin, destination) -> bool:
        return destination.position <= origin.position

    async def _build(self, ctx, origin, destination) -> DirectItinerary | None:
        route_id = origin.route.route_id
        boarding, alighting = await asyncio.gather(
            ctx.store.positions_within(route_id, ctx.origin, self.window_m, self.step),
            ctx.store.positions_within(route_id, ctx.destination, self.window_m, self.step),
        )
        # A boarding point belongs to the origin, an alighting point to the destination
        boarding = [p for p in boarding if p.distance_m < haversine_m(p.coordinate, ctx.destination)]
        alighting = [p for p in alighting if p.distance_m < haversine_m(p.coordinate, ctx.origin)]

        best = self._pick(boarding, alighting)
        if best is None:
            logger.debug("%s: route %s has no forward pair in reach", self.name, origin.route.route_code)
            return None
        board, alight = best
        subline = await ctx.store.extract_subline(route_id, board.position, alight.position)
        segment = RouteSegment(
            route=origin.route,
            start_position=board.position,
            end_position=alight.position,
            coordinates=subline.coordinates,
            distance_m=subline.distance_m,
        )
        return self._itinerary(segment, board.distance_m, alight.distance_m)

    @staticmethod
    def _pick(
        boarding: list[RoutePosition], alighting: list[RoutePosition],
    ) -> tuple[RoutePosition, RoutePosition] | None:
        best = None
        best_key = None
        for alight in alighting:
            for board in boarding:
                # boarding is ordered by position
                if board.position >= alight.position:
                    break
                key = (board.distance_m + alight.distance_m, alight.position - board.position)
                if best_key is None or key < best_key:
                    best_key = key
                    best = (board, alight)
        return best


class LoopAroundResolver(_SingleRouteResolver):
    """Destination lies behind the origin: ride to the end, loop, ride on.

    The two rides (origin -> end, start -> destination) are one itinerary on
    one route, not a transfer.
    """

    name = "loop_around"
    case = CASE_LOOP_AROUND

    def _qualifies(self, origin, destination) -> bool:
        return destination.position < origin.position

    async def _build(self, ctx, origin, destination) -> DirectItinerary:
        route_id = origin.route.route_id
        coordinates = []
        distance_m = 0.0
        # A part with zero length (boarding at the end terminal, alighting at
        # the start terminal) contributes nothing.
        for start, end in ((origin.position, 1.0), (0.0, destination.position)):
            if end <= start:
                continue
            subline = await ctx.store.extract_subline(route_id, start, end)
            coordinates = coordinates + subline.coordinates
            distance_m += subline.distance_m
        if len(coordinates) < 2:
            raise DegenerateGeometryError(route_id, "loop-around ride has no length")
        segment = RouteSegment(
            route=origin.route,
            start_position=origin.position,
            end_position=destination.position,
            coordinates=coordinates,
            distance_m=distance_m,
            requires_loop=True,
        )
        return self._itinerary(segment, origin.distance_m, destination.distance_m)
