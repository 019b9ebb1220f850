"""Shared capability for resolver strategies."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from planner.core.fares import FarePolicy
from planner.core.geometry import Coordinate
from planner.core.itinerary import Itinerary
from planner.core.store import GeometryStore, RouteProximityMatch

KIND_DIRECT = "direct"
KIND_TRANSFER = "transfer"


async def _never_cancelled() -> bool:
    return False


@dataclass
class ResolveContext:
    origin: Coordinate
    destination: Coordinate
    origin_matches: list[RouteProximityMatch]
    destination_matches: list[RouteProximityMatch]
    store: GeometryStore
    fare_policy: FarePolicy
    is_cancelled: Callable[[], Awaitable[bool]] = _never_cancelled

    def coincident_routes(self) -> list[tuple[RouteProximityMatch, RouteProximityMatch]]:
        """(origin match, destination match) pairs for routes near both endpoints."""
        by_id = {m.route.route_id: m for m in self.destination_matches}
        return [
            (om, by_id[om.route.route_id])
            for om in self.origin_matches
            if om.route.route_id in by_id
        ]


class ResolverStrategy(ABC):
    """One way of serving a journey; strategies are tried in priority order."""

    name: str = ""
    kind: str = KIND_DIRECT

    @abstractmethod
    def can_handle(self, ctx: ResolveContext) -> bool: ...

    @abstractmethod
    async def resolve(self, ctx: ResolveContext) -> list[Itinerary]:
        """Candidate itineraries, best first. Empty when nothing qualifies."""
