"""Journey planner: proximity search, resolver chain, fares and ranking."""

import logging
import time
from collections.abc import Awaitable, Callable

from planner.config import settings
from planner.core.fares import FarePolicy, LinearPerKmFare, linear_fare_from_settings, stepped_fare_from_settings
from planner.core.geometry import Coordinate
from planner.core.itinerary import DirectItinerary, Itinerary, TransferItinerary
from planner.core.proximity import PROXIMITY_THRESHOLD_M, ProximitySearch, validate_coordinate
from planner.core.ranking import MAX_RESULTS, rank_itineraries
from planner.core.resolvers.base import KIND_TRANSFER, ResolveContext, ResolverStrategy
from planner.core.resolvers.single import LoopAroundResolver, NormalForwardResolver, OppositeSideResolver
from planner.core.resolvers.transfer import TransferResolver
from planner.core.store import GeometryStore
from planner.exceptions import NoRouteFound

logger = logging.getLogger(__name__)


def default_strategies(
    transfer_resolver: TransferResolver | None = None,
    opposite_side_resolver: OppositeSideResolver | None = None,
) -> list[ResolverStrategy]:
    """Resolvers in priority order: forward, opposite-side, loop-around, transfer."""
    return [
        NormalForwardResolver(),
        opposite_side_resolver or OppositeSideResolver(),
        LoopAroundResolver(),
        transfer_resolver or TransferResolver(),
    ]


class JourneyPlanner:
    """Turns an origin/destination pair into a ranked list of itineraries."""

    def __init__(
        self,
        store: GeometryStore,
        fare_policy: FarePolicy | None = None,
        direct_fare_policy: FarePolicy | None = None,
        strategies: list[ResolverStrategy] | None = None,
        proximity_threshold_m: float = PROXIMITY_THRESHOLD_M,
        max_results: int = MAX_RESULTS,
    ) -> None:
        self.store = store
        self.fare_policy = fare_policy or LinearPerKmFare()
        # Direct quotes use their own policy; see /api/journeys/direct
        self.direct_fare_policy = direct_fare_policy or self.fare_policy
        self.strategies = strategies if strategies is not None else default_strategies()
        self.proximity = ProximitySearch(store, proximity_threshold_m)
        self.max_results = max_results

    @classmethod
    def from_settings(cls, store: GeometryStore) -> "JourneyPlanner":
        transfer = TransferResolver(
            sample_step=settings.sample_step,
            tolerance_m=settings.transfer_tolerance_m,
            concurrency=settings.pair_concurrency,
        )
        opposite_side = OppositeSideResolver(window_m=settings.walk_window_m, step=settings.window_step)
        return cls(
            store,
            fare_policy=linear_fare_from_settings(),
            direct_fare_policy=stepped_fare_from_settings(),
            strategies=default_strategies(transfer, opposite_side),
            proximity_threshold_m=settings.proximity_threshold_m,
            max_results=settings.max_results,
        )

    async def plan(
        self,
        origin: Coordinate | None,
        destination: Coordinate | None,
        include_transfers: bool = False,
        is_cancelled: Callable[[], Awaitable[bool]] | None = None,
    ) -> list[Itinerary]:
        """Full chain. Transfers run only when no direct ride exists, unless requested.

        Raises NoRouteFound when nothing serves the journey.
        """
        return await self._run(
            origin, destination, self.strategies, self.fare_policy,
            include_transfers=include_transfers, is_cancelled=is_cancelled,
        )

    async def plan_transfers(
        self,
        origin: Coordinate | None,
        destination: Coordinate | None,
        is_cancelled: Callable[[], Awaitable[bool]] | None = None,
    ) -> list[Itinerary]:
        """Two-jeepney itineraries only."""
        strategies = [s for s in self.strategies if s.kind == KIND_TRANSFER]
        return await self._run(
            origin, destination, strategies, self.fare_policy,
            include_transfers=True, is_cancelled=is_cancelled,
        )

    async def plan_direct(
        self, origin: Coordinate | None, destination: Coordinate | None,
    ) -> list[Itinerary]:
        """Single-route itineraries only, priced with the direct fare policy."""
        strategies = [s for s in self.strategies if s.kind != KIND_TRANSFER]
        return await self._run(origin, destination, strategies, self.direct_fare_policy)

    async def _run(
        self,
        origin: Coordinate | None,
        destination: Coordinate | None,
        strategies: list[ResolverStrategy],
        fare_policy: FarePolicy,
        include_transfers: bool = False,
        is_cancelled: Callable[[], Awaitable[bool]] | None = None,
    ) -> list[Itinerary]:
        origin = validate_coordinate(origin, "origin")
        destination = validate_coordinate(destination, "destination")
        started = time.monotonic()

        origin_matches, destination_matches = await self.proximity.search_endpoints(origin, destination)
        logger.info(
            "Found %d route(s) near origin, %d near destination",
            len(origin_matches), len(destination_matches),
        )
        if not origin_matches or not destination_matches:
            raise NoRouteFound("No routes available near the origin or destination")

        ctx = ResolveContext(
            origin=origin,
            destination=destination,
            origin_matches=origin_matches,
            destination_matches=destination_matches,
            store=self.store,
            fare_policy=fare_policy,
        )
        if is_cancelled is not None:
            ctx.is_cancelled = is_cancelled

        direct: list[DirectItinerary] = []
        transfers: list[TransferItinerary] = []
        for strategy in strategies:
            # First strategy with results wins; transfers may be asked for explicitly
            found = bool(direct or transfers)
            if found and not (include_transfers and strategy.kind == KIND_TRANSFER):
                continue
            if not strategy.can_handle(ctx):
                continue
            results = await strategy.resolve(ctx)
            logger.debug("%s produced %d itinerary(ies)", strategy.name, len(results))
            if strategy.kind == KIND_TRANSFER:
                transfers.extend(results)
            else:
                direct.extend(results)

        ranked = rank_itineraries(direct, transfers, self.max_results)
        elapsed_ms = (time.monotonic() - started) * 1000
        if not ranked:
            logger.info("No itinerary found (%.0fms)", elapsed_ms)
            raise NoRouteFound("No route available for this journey")
        logger.info(
            "Planned %d itinerary(ies): %d direct, %d transfer (%.0fms)",
            len(ranked), len(direct), len(transfers), elapsed_ms,
        )
        return ranked
