from planner.schemas.journey import CamelModel


class RouteInfo(CamelModel):
    id: int
    code: str
    name: str


class RouteDetail(CamelModel):
    id: int
    code: str
    name: str
    geometry: list[list[float]] = []  # [[lat, lon], ...] in traversal order
    length_meters: float


class NearbyRoute(CamelModel):
    id: int
    code: str
    name: str
    distance_meters: float
    position: float  # 0.0–1.0 along the route
