from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from planner.core.geometry import Coordinate


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CoordinateIn(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

    def to_coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


class JourneyQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    origin: CoordinateIn = Field(alias="from")
    destination: CoordinateIn = Field(alias="to")
    include_transfers: bool = Field(default=False, alias="includeTransfers")


class CoordinateOut(BaseModel):
    latitude: float
    longitude: float

    @classmethod
    def of(cls, c: Coordinate) -> "CoordinateOut":
        return cls(latitude=c.latitude, longitude=c.longitude)


class LegOut(CamelModel):
    route_id: int
    route_code: str
    route_name: str
    coordinates: list[CoordinateOut]
    distance: float  # meters
    fare: float


class DirectItineraryOut(CamelModel):
    is_transfer: bool = False
    route_id: int
    route_code: str
    route_name: str
    coordinates: list[CoordinateOut]
    distance_meters: float
    fare: float
    requires_loop: bool = False
    case: str
    boarding_distance: float
    alighting_distance: float


class TransferItineraryOut(CamelModel):
    is_transfer: bool = True
    route_id: str  # "A->B" route codes
    route_name: str
    first_route: LegOut
    second_route: LegOut
    transfer_point: CoordinateOut
    total_fare: float
    transfer_distance: float
    distance_meters: float
    boarding_distance: float
    alighting_distance: float


class ErrorOut(BaseModel):
    error: str
    kind: str
    retryable: bool = False
