"""Coordinates and geodesic helpers shared by the stores and resolvers.

Shapely works in planar coordinates, so linear referencing is done on a
locally scaled lon/lat plane (longitude shrunk by cos(latitude) of the route's
mean latitude) and every distance reported in metres is geodesic (haversine).
"""

import math
from dataclasses import dataclass

import orjson
from shapely.geometry import LineString, Point
from shapely.ops import nearest_points, substring

EARTH_RADIUS_M = 6_371_000


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def as_lon_lat(self) -> tuple[float, float]:
        return (self.longitude, self.latitude)

    @classmethod
    def from_lon_lat(cls, lon: float, lat: float) -> "Coordinate":
        return cls(latitude=lat, longitude=lon)


def haversine_m(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in meters between two coordinates."""
    dlat = math.radians(b.latitude - a.latitude)
    dlon = math.radians(b.longitude - a.longitude)
    h = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(a.latitude)) * math.cos(math.radians(b.latitude)) *
         math.sin(dlon / 2) ** 2)
    return EARTH_RADIUS_M * 2 * math.asin(min(1.0, math.sqrt(h)))


def path_length_m(coords: list[Coordinate]) -> float:
    """Geodesic length of a polyline."""
    total = 0.0
    for i in range(1, len(coords)):
        total += haversine_m(coords[i - 1], coords[i])
    return total


def parse_geojson_linestring(raw: str | bytes | dict) -> list[Coordinate]:
    """Parse a GeoJSON LineString (as produced by ST_AsGeoJSON) into coordinates.

    Returns an empty list for anything that is not a LineString with vertices;
    a degenerate ST_LineSubstring result comes back as a Point.
    """
    data = orjson.loads(raw) if isinstance(raw, (str, bytes)) else raw
    if not isinstance(data, dict) or data.get("type") != "LineString":
        return []
    return [Coordinate.from_lon_lat(c[0], c[1]) for c in data.get("coordinates") or []]


class RouteLine:
    """A route polyline with linear referencing on a locally scaled plane."""

    def __init__(self, coords: list[Coordinate]) -> None:
        if len(coords) < 2:
            raise ValueError("a route line needs at least two vertices")
        self.coords = list(coords)
        mean_lat = sum(c.latitude for c in coords) / len(coords)
        self._kx = math.cos(math.radians(mean_lat))
        self.line = LineString([self._to_xy(c) for c in coords])
        if self.line.length == 0:
            raise ValueError("a route line needs two distinct vertices")
        self.length_m = path_length_m(self.coords)

    def _to_xy(self, c: Coordinate) -> tuple[float, float]:
        return (c.longitude * self._kx, c.latitude)

    def _from_xy(self, x: float, y: float) -> Coordinate:
        return Coordinate(latitude=y, longitude=x / self._kx)

    def project(self, point: Coordinate) -> float:
        """Fractional position (0.0-1.0) of the closest point on the line."""
        return self.line.project(Point(self._to_xy(point)), normalized=True)

    def interpolate(self, fraction: float) -> Coordinate:
        pt = self.line.interpolate(max(0.0, min(1.0, fraction)), normalized=True)
        return self._from_xy(pt.x, pt.y)

    def closest_point(self, point: Coordinate) -> Coordinate:
        _, on_line = nearest_points(Point(self._to_xy(point)), self.line)
        return self._from_xy(on_line.x, on_line.y)

    def distance_m(self, point: Coordinate) -> float:
        """Geodesic distance from a point to its closest point on the line."""
        return haversine_m(point, self.closest_point(point))

    def subline(self, start: float, end: float) -> list[Coordinate]:
        """Vertices between two fractional positions, in traversal order.

        Returns an empty list when the span has zero length.
        """
        start = max(0.0, min(1.0, start))
        end = max(0.0, min(1.0, end))
        if end <= start:
            return []
        part = substring(self.line, start, end, normalized=True)
        if part.geom_type != "LineString" or part.length == 0:
            return []
        return [self._from_xy(x, y) for x, y in part.coords]
