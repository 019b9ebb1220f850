"""Geometry store contract and the in-memory Shapely implementation.

The planner never holds route geometry itself; every positional question goes
through a GeometryStore. Positions are fractions in [0, 1] measured from the
route's first vertex, distances are geodesic meters.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from planner.core.geometry import Coordinate, RouteLine, haversine_m, path_length_m
from planner.exceptions import DegenerateGeometryError, UnknownRouteError, ValidationError

logger = logging.getLogger(__name__)


def sample_count(step: float) -> int:
    """Number of whole steps covering [0, 1]."""
    if not 0 < step <= 1:
        raise ValidationError("step must be in (0, 1]")
    return max(1, round(1 / step))


@dataclass(frozen=True)
class RouteInfo:
    route_id: int
    route_code: str
    route_name: str


@dataclass(frozen=True)
class RouteProximityMatch:
    route: RouteInfo
    distance_m: float  # query point -> nearest point on the route
    position: float  # 0.0–1.0 along the route


@dataclass(frozen=True)
class Subline:
    coordinates: list[Coordinate]
    distance_m: float


@dataclass(frozen=True)
class ClosestPoint:
    point_on_a: Coordinate
    point_on_b: Coordinate
    fraction_on_b: float
    distance_m: float


@dataclass(frozen=True)
class RoutePosition:
    position: float
    coordinate: Coordinate  # the point on the route at position
    distance_m: float  # to the query point


class GeometryStore(ABC):
    """Read-only spatial queries over the route catalogue."""

    @abstractmethod
    async def list_routes(self) -> list[RouteInfo]: ...

    @abstractmethod
    async def get_route(self, route_id: int) -> RouteInfo: ...

    @abstractmethod
    async def get_route_coordinates(self, route_id: int) -> list[Coordinate]: ...

    @abstractmethod
    async def find_routes_near(self, point: Coordinate, threshold_m: float) -> list[RouteProximityMatch]:
        """Routes within threshold_m of point, nearest first."""

    @abstractmethod
    async def project_point(self, route_id: int, point: Coordinate) -> float: ...

    @abstractmethod
    async def extract_subline(self, route_id: int, start: float, end: float) -> Subline:
        """Portion of the route between two fractions.

        Raises DegenerateGeometryError when the result has fewer than two vertices.
        """

    @abstractmethod
    async def closest_point_between(
        self, route_a_id: int, fraction_on_a: float, route_b_id: int,
    ) -> ClosestPoint:
        """Closest point on route B to the point at fraction_on_a along route A."""

    @abstractmethod
    async def route_length(self, route_id: int) -> float: ...

    @abstractmethod
    async def positions_within(
        self, route_id: int, point: Coordinate, radius_m: float, step: float,
    ) -> list[RoutePosition]:
        """Positions k * step along the route whose point lies within radius_m of point.

        Ordered by position. A route can pass the same point more than once,
        so the result may hold several disjoint runs.
        """

    async def sample_closest_points(
        self, route_a_id: int, fractions: list[float], route_b_id: int,
    ) -> list[ClosestPoint]:
        """Batch form of closest_point_between, one result per fraction."""
        return [
            await self.closest_point_between(route_a_id, f, route_b_id)
            for f in fractions
        ]


class MemoryGeometryStore(GeometryStore):
    """GeometryStore over in-memory route lines.

    Same semantics as the PostGIS store; used for tests and fixture data.
    """

    def __init__(self) -> None:
        # route_id -> (RouteInfo, RouteLine)
        self._routes: dict[int, tuple[RouteInfo, RouteLine]] = {}

    def load_route(
        self,
        route_id: int,
        route_code: str,
        coords: list[list[float]],
        start_point_name: str = "",
        end_point_name: str = "",
    ) -> None:
        """Load a route geometry. coords = [[lat, lon], ...] in traversal order."""
        points = [Coordinate(latitude=c[0], longitude=c[1]) for c in coords]
        try:
            line = RouteLine(points)
        except ValueError as e:
            logger.warning("Route %s (%s): skipping unusable geometry: %s", route_id, route_code, e)
            return
        info = RouteInfo(
            route_id=route_id,
            route_code=route_code,
            route_name=f"{start_point_name} - {end_point_name}",
        )
        self._routes[route_id] = (info, line)

    def _line(self, route_id: int) -> RouteLine:
        if route_id not in self._routes:
            raise UnknownRouteError(route_id)
        return self._routes[route_id][1]

    async def list_routes(self) -> list[RouteInfo]:
        infos = [info for info, _ in self._routes.values()]
        return sorted(infos, key=lambda r: r.route_code)

    async def get_route(self, route_id: int) -> RouteInfo:
        if route_id not in self._routes:
            raise UnknownRouteError(route_id)
        return self._routes[route_id][0]

    async def get_route_coordinates(self, route_id: int) -> list[Coordinate]:
        return list(self._line(route_id).coords)

    async def find_routes_near(self, point: Coordinate, threshold_m: float) -> list[RouteProximityMatch]:
        if threshold_m <= 0:
            raise ValidationError("threshold must be positive")
        matches = []
        for info, line in self._routes.values():
            dist = line.distance_m(point)
            if dist <= threshold_m:
                matches.append(RouteProximityMatch(
                    route=info, distance_m=dist, position=line.project(point),
                ))
        matches.sort(key=lambda m: (m.distance_m, m.route.route_id))
        return matches

    async def project_point(self, route_id: int, point: Coordinate) -> float:
        return self._line(route_id).project(point)

    async def extract_subline(self, route_id: int, start: float, end: float) -> Subline:
        coords = self._line(route_id).subline(start, end)
        if len(coords) < 2:
            raise DegenerateGeometryError(
                route_id, f"empty sub-line between {start:.4f} and {end:.4f}",
            )
        return Subline(coordinates=coords, distance_m=path_length_m(coords))

    async def closest_point_between(
        self, route_a_id: int, fraction_on_a: float, route_b_id: int,
    ) -> ClosestPoint:
        line_a = self._line(route_a_id)
        line_b = self._line(route_b_id)
        sample = line_a.interpolate(fraction_on_a)
        on_b = line_b.closest_point(sample)
        return ClosestPoint(
            point_on_a=sample,
            point_on_b=on_b,
            fraction_on_b=line_b.project(sample),
            distance_m=line_b.distance_m(sample),
        )

    async def route_length(self, route_id: int) -> float:
        return self._line(route_id).length_m

    async def positions_within(
        self, route_id: int, point: Coordinate, radius_m: float, step: float,
    ) -> list[RoutePosition]:
        line = self._line(route_id)
        steps = sample_count(step)
        positions = []
        for i in range(steps + 1):
            position = i / steps
            on_route = line.interpolate(position)
            dist = haversine_m(on_route, point)
            if dist <= radius_m:
                positions.append(RoutePosition(position=position, coordinate=on_route, distance_m=dist))
        return positions
