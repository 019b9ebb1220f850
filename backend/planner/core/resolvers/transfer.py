"""Two-jeepney itineraries: board A near the origin, transfer to B, alight near the destination.

For each ordered pair (A, B) the resolver walks A forward from the boarding
position in fixed fractional steps, asks the store for the closest point on B
at every sample, and keeps samples that are within the transfer tolerance and
lie upstream of the destination on B. The cheapest sample becomes the transfer
point.
"""

import asyncio
import logging

from planner.core.itinerary import RouteSegment, TransferItinerary, TransferPoint
from planner.core.resolvers.base import KIND_TRANSFER, ResolveContext, ResolverStrategy
from planner.core.store import ClosestPoint, RouteProximityMatch
from planner.exceptions import DegenerateGeometryError, PlanningCancelled, UnknownRouteError

logger = logging.getLogger(__name__)

# Fraction of route A advanced per sample
SAMPLE_STEP = 0.005
# Max walk (meters) between the two routes at a transfer point
TRANSFER_TOLERANCE_M = 100.0
# Route pairs evaluated concurrently against the store
PAIR_CONCURRENCY = 4
# Tie band (meters): sample costs this close count as equal. Near a crossing
# every metre ridden less on A is walked instead, so costs there differ only by
# geodesic rounding and the band lets the shortest walk win.
COST_TIE_M = 1.0


def sample_fractions(start: float, step: float) -> list[float]:
    """Positions strictly after start up to the end of the route (1.0 included)."""
    fractions = []
    k = 1
    while True:
        f = start + k * step
        if f >= 1.0:
            fractions.append(1.0)
            return fractions
        fractions.append(f)
        k += 1


def transfer_sort_key(itinerary: TransferItinerary) -> tuple:
    return (
        itinerary.total_distance_m,
        itinerary.total_fare,
        itinerary.first.route.route_id,
        itinerary.second.route.route_id,
    )


class TransferResolver(ResolverStrategy):
    """Find a feasible transfer between two distinct routes."""

    name = "transfer"
    kind = KIND_TRANSFER

    def __init__(
        self,
        sample_step: float = SAMPLE_STEP,
        tolerance_m: float = TRANSFER_TOLERANCE_M,
        concurrency: int = PAIR_CONCURRENCY,
    ) -> None:
        if not 0 < sample_step <= 1:
            raise ValueError("sample_step must be in (0, 1]")
        self.sample_step = sample_step
        self.tolerance_m = tolerance_m
        self.concurrency = max(1, concurrency)

    def _pairs(self, ctx: ResolveContext) -> list[tuple[RouteProximityMatch, RouteProximityMatch]]:
        pairs = []
        for origin in ctx.origin_matches:
            # Boarding at the end terminal leaves nothing to ride
            if origin.position >= 1.0:
                continue
            for destination in ctx.destination_matches:
                if origin.route.route_id == destination.route.route_id:
                    continue
                # Alighting at the start terminal leaves nowhere upstream to transfer
                if destination.position <= 0.0:
                    continue
                pairs.append((origin, destination))
        return pairs

    def can_handle(self, ctx: ResolveContext) -> bool:
        return bool(self._pairs(ctx))

    async def resolve(self, ctx: ResolveContext) -> list[TransferItinerary]:
        pairs = self._pairs(ctx)
        if not pairs:
            return []
        logger.debug("Transfer search over %d route pair(s)", len(pairs))

        semaphore = asyncio.Semaphore(self.concurrency)
        tasks = [
            asyncio.create_task(self._resolve_pair(ctx, origin, destination, semaphore))
            for origin, destination in pairs
        ]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            # Retrieve sibling failures so none is reported as unhandled
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        # Pair enumeration order is kept, so ties resolve the same way every time
        itineraries = [it for it in results if it is not None]
        itineraries.sort(key=transfer_sort_key)
        return itineraries

    async def _resolve_pair(
        self,
        ctx: ResolveContext,
        origin: RouteProximityMatch,
        destination: RouteProximityMatch,
        semaphore: asyncio.Semaphore,
    ) -> TransferItinerary | None:
        async with semaphore:
            if await ctx.is_cancelled():
                raise PlanningCancelled("client disconnected during transfer search")
            try:
                return await self._search_pair(ctx, origin, destination)
            except (DegenerateGeometryError, UnknownRouteError) as e:
                logger.warning(
                    "Transfer %s -> %s skipped: %s",
                    origin.route.route_code, destination.route.route_code, e,
                )
                return None

    async def _search_pair(
        self, ctx: ResolveContext, origin: RouteProximityMatch, destination: RouteProximityMatch,
    ) -> TransferItinerary | None:
        route_a = origin.route
        route_b = destination.route
        store = ctx.store

        fractions = sample_fractions(origin.position, self.sample_step)
        samples = await store.sample_closest_points(route_a.route_id, fractions, route_b.route_id)
        length_a = await store.route_length(route_a.route_id)
        length_b = await store.route_length(route_b.route_id)

        best = self._pick_transfer(
            fractions, samples, origin.position, destination.position, length_a, length_b,
        )
        if best is None:
            logger.debug("Transfer %s -> %s: routes never meet upstream", route_a.route_code, route_b.route_code)
            return None
        fraction_a, closest = best

        first = await store.extract_subline(route_a.route_id, origin.position, fraction_a)
        second = await store.extract_subline(route_b.route_id, closest.fraction_on_b, destination.position)

        first_segment = RouteSegment(
            route=route_a,
            start_position=origin.position,
            end_position=fraction_a,
            coordinates=first.coordinates,
            distance_m=first.distance_m,
            fare=ctx.fare_policy.fare(first.distance_m),
        )
        second_segment = RouteSegment(
            route=route_b,
            start_position=closest.fraction_on_b,
            end_position=destination.position,
            coordinates=second.coordinates,
            distance_m=second.distance_m,
            fare=ctx.fare_policy.fare(second.distance_m),
        )
        logger.debug(
            "Transfer %s -> %s at %.1f%%/%.1f%%, walk %.0fm, %.2fkm + %.2fkm",
            route_a.route_code, route_b.route_code,
            fraction_a * 100, closest.fraction_on_b * 100, closest.distance_m,
            first.distance_m / 1000, second.distance_m / 1000,
        )
        return TransferItinerary(
            first=first_segment,
            second=second_segment,
            transfer_point=TransferPoint(
                coordinate=closest.point_on_a,
                boarding_coordinate=closest.point_on_b,
                distance_m=closest.distance_m,
                position_on_first=fraction_a,
                position_on_second=closest.fraction_on_b,
            ),
            boarding_distance_m=origin.distance_m,
            alighting_distance_m=destination.distance_m,
        )

    def _pick_transfer(
        self,
        fractions: list[float],
        samples: list[ClosestPoint],
        origin_position: float,
        destination_position: float,
        length_a: float,
        length_b: float,
    ) -> tuple[float, ClosestPoint] | None:
        """Cheapest qualifying sample as (fraction on A, closest point on B).

        Cost is ride on A + remaining ride on B + the walk between them. Costs
        within COST_TIE_M of the minimum are ties and go to the shortest walk,
        then the earliest sample.
        """
        qualifying = []
        for fraction_a, closest in zip(fractions, samples):
            if closest.distance_m > self.tolerance_m:
                continue
            # No backward transfers: the boarding point on B must precede the destination
            if closest.fraction_on_b >= destination_position:
                continue
            cost = (
                (fraction_a - origin_position) * length_a
                + (destination_position - closest.fraction_on_b) * length_b
                + closest.distance_m
            )
            qualifying.append((cost, fraction_a, closest))
        if not qualifying:
            return None

        best_cost = min(cost for cost, _, _ in qualifying)
        ties = [q for q in qualifying if q[0] - best_cost <= COST_TIE_M]
        _, fraction_a, closest = min(ties, key=lambda q: (q[2].distance_m, q[1]))
        return fraction_a, closest
