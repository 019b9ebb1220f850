"""Per-request results produced by the resolvers."""

from dataclasses import dataclass, field

from planner.core.geometry import Coordinate
from planner.core.store import RouteInfo

CASE_NORMAL_FORWARD = "normal_forward"
CASE_OPPOSITE_SIDE = "opposite_side"
CASE_LOOP_AROUND = "loop_around"
CASE_TRANSFER = "transfer"


@dataclass
class RouteSegment:
    route: RouteInfo
    start_position: float
    end_position: float
    coordinates: list[Coordinate]
    distance_m: float
    fare: float = 0.0
    requires_loop: bool = False


@dataclass(frozen=True)
class TransferPoint:
    coordinate: Coordinate  # alighting point on the first route
    boarding_coordinate: Coordinate  # closest point on the second route
    distance_m: float  # walk between the two routes
    position_on_first: float
    position_on_second: float


@dataclass
class DirectItinerary:
    segment: RouteSegment
    boarding_distance_m: float
    alighting_distance_m: float
    case: str = CASE_NORMAL_FORWARD
    is_transfer: bool = field(default=False, init=False)

    @property
    def total_distance_m(self) -> float:
        return self.segment.distance_m

    @property
    def total_fare(self) -> float:
        return self.segment.fare

    @property
    def walking_distance_m(self) -> float:
        return self.boarding_distance_m + self.alighting_distance_m


@dataclass
class TransferItinerary:
    first: RouteSegment
    second: RouteSegment
    transfer_point: TransferPoint
    boarding_distance_m: float
    alighting_distance_m: float
    case: str = field(default=CASE_TRANSFER, init=False)
    is_transfer: bool = field(default=True, init=False)

    @property
    def total_distance_m(self) -> float:
        return self.first.distance_m + self.second.distance_m

    @property
    def total_fare(self) -> float:
        # Legs are priced independently, never on the combined distance
        return self.first.fare + self.second.fare


Itinerary = DirectItinerary | TransferItinerary
