"""GeometryStore backed by PostGIS.

Each call opens its own session so independent queries (origin and destination
proximity searches, transfer pairs) can run concurrently. Distances use the
geography type; fractions use ST_LineLocatePoint on the forward geometry.
"""

import logging

import orjson
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from planner.core.geometry import Coordinate, parse_geojson_linestring
from planner.core.store import (
    ClosestPoint,
    GeometryStore,
    RouteInfo,
    RoutePosition,
    RouteProximityMatch,
    Subline,
    sample_count,
)
from planner.exceptions import DegenerateGeometryError, StoreQueryFailure, UnknownRouteError, ValidationError

logger = logging.getLogger(__name__)

_ROUTE_COLUMNS = "r.id, r.route_code, r.start_point_name, r.end_point_name"

_FIND_NEAR_SQL = text(f"""
    SELECT {_ROUTE_COLUMNS},
           ST_Distance(r.geom_forward::geography, p.pt::geography) AS distance_m,
           ST_LineLocatePoint(r.geom_forward, p.pt) AS position
    FROM jeepney_routes r,
         (SELECT ST_SetSRID(ST_MakePoint(:lon, :lat), 4326) AS pt) p
    WHERE ST_DWithin(r.geom_forward::geography, p.pt::geography, :threshold)
    ORDER BY distance_m, r.id
""")

_PROJECT_SQL = text("""
    SELECT ST_LineLocatePoint(geom_forward, ST_SetSRID(ST_MakePoint(:lon, :lat), 4326)) AS position
    FROM jeepney_routes
    WHERE id = :route_id
""")

_SUBLINE_SQL = text("""
    SELECT ST_AsGeoJSON(s.geom) AS geojson,
           ST_Length(s.geom::geography) AS distance_m
    FROM (
        SELECT ST_LineSubstring(geom_forward, :start, :end) AS geom
        FROM jeepney_routes
        WHERE id = :route_id
    ) s
""")

_CLOSEST_SQL = text("""
    WITH samples AS (
        SELECT s.idx, ST_LineInterpolatePoint(a.geom_forward, s.fraction) AS pt
        FROM jeepney_routes a,
             unnest(CAST(:fractions AS double precision[])) WITH ORDINALITY AS s(fraction, idx)
        WHERE a.id = :route_a_id
    ),
    b AS (
        SELECT geom_forward AS geom FROM jeepney_routes WHERE id = :route_b_id
    )
    SELECT samples.idx,
           ST_X(samples.pt) AS a_lon,
           ST_Y(samples.pt) AS a_lat,
           ST_X(ST_ClosestPoint(b.geom, samples.pt)) AS b_lon,
           ST_Y(ST_ClosestPoint(b.geom, samples.pt)) AS b_lat,
           ST_LineLocatePoint(b.geom, samples.pt) AS fraction_on_b,
           ST_Distance(samples.pt::geography, b.geom::geography) AS distance_m
    FROM samples, b
    ORDER BY samples.idx
""")

_LENGTH_SQL = text("""
    SELECT ST_Length(geom_forward::geography) AS length_m FROM jeepney_routes WHERE id = :route_id
""")

_WITHIN_SQL = text("""
    WITH r AS (
        SELECT geom_forward AS geom FROM jeepney_routes WHERE id = :route_id
    ),
    samples AS (
        SELECT g.i::double precision / :steps AS fraction,
               ST_LineInterpolatePoint(r.geom, g.i::double precision / :steps) AS pt
        FROM r, generate_series(0, :steps) AS g(i)
    ),
    q AS (
        SELECT ST_SetSRID(ST_MakePoint(:lon, :lat), 4326) AS pt
    )
    SELECT samples.fraction,
           ST_X(samples.pt) AS lon,
           ST_Y(samples.pt) AS lat,
           ST_Distance(samples.pt::geography, q.pt::geography) AS distance_m
    FROM samples, q
    WHERE ST_DWithin(samples.pt::geography, q.pt::geography, :radius)
    ORDER BY samples.fraction
""")

_LIST_SQL = text(f"SELECT {_ROUTE_COLUMNS} FROM jeepney_routes r ORDER BY r.route_code, r.id")

_GET_SQL = text(f"SELECT {_ROUTE_COLUMNS} FROM jeepney_routes r WHERE r.id = :route_id")

_GEOMETRY_SQL = text("SELECT ST_AsGeoJSON(geom_forward) AS geojson FROM jeepney_routes WHERE id = :route_id")


def _route_info(row) -> RouteInfo:
    return RouteInfo(
        route_id=row["id"],
        route_code=row["route_code"],
        route_name=f"{row['start_point_name']} - {row['end_point_name']}",
    )


class PostgisGeometryStore(GeometryStore):
    """Spatial queries against the jeepney_routes table."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    async def _fetch(self, statement, params: dict) -> list:
        try:
            async with self.session_factory() as session:
                result = await session.execute(statement, params)
                return result.mappings().all()
        except (SQLAlchemyError, OSError) as e:
            raise StoreQueryFailure(f"Geometry query failed: {e}") from e

    async def _fetch_one(self, route_id: int, statement, params: dict):
        rows = await self._fetch(statement, {**params, "route_id": route_id})
        if not rows:
            raise UnknownRouteError(route_id)
        return rows[0]

    async def list_routes(self) -> list[RouteInfo]:
        return [_route_info(row) for row in await self._fetch(_LIST_SQL, {})]

    async def get_route(self, route_id: int) -> RouteInfo:
        return _route_info(await self._fetch_one(route_id, _GET_SQL, {}))

    async def get_route_coordinates(self, route_id: int) -> list[Coordinate]:
        row = await self._fetch_one(route_id, _GEOMETRY_SQL, {})
        try:
            coords = parse_geojson_linestring(row["geojson"] or "null")
        except orjson.JSONDecodeError as e:
            raise DegenerateGeometryError(route_id, f"unparseable geometry: {e}") from e
        if len(coords) < 2:
            raise DegenerateGeometryError(route_id, "forward geometry has fewer than two vertices")
        return coords

    async def find_routes_near(self, point: Coordinate, threshold_m: float) -> list[RouteProximityMatch]:
        if threshold_m <= 0:
            raise ValidationError("threshold must be positive")
        rows = await self._fetch(_FIND_NEAR_SQL, {
            "lon": point.longitude, "lat": point.latitude, "threshold": threshold_m,
        })
        return [
            RouteProximityMatch(
                route=_route_info(row),
                distance_m=float(row["distance_m"]),
                position=float(row["position"]),
            )
            for row in rows
        ]

    async def project_point(self, route_id: int, point: Coordinate) -> float:
        row = await self._fetch_one(route_id, _PROJECT_SQL, {
            "lon": point.longitude, "lat": point.latitude,
        })
        return float(row["position"])

    async def extract_subline(self, route_id: int, start: float, end: float) -> Subline:
        start = max(0.0, min(1.0, start))
        end = max(0.0, min(1.0, end))
        if end <= start:
            raise DegenerateGeometryError(
                route_id, f"empty sub-line between {start:.4f} and {end:.4f}",
            )
        row = await self._fetch_one(route_id, _SUBLINE_SQL, {"start": start, "end": end})
        try:
            coords = parse_geojson_linestring(row["geojson"] or "null")
        except orjson.JSONDecodeError as e:
            raise DegenerateGeometryError(route_id, f"unparseable sub-line: {e}") from e
        if len(coords) < 2:
            raise DegenerateGeometryError(
                route_id, f"empty sub-line between {start:.4f} and {end:.4f}",
            )
        return Subline(coordinates=coords, distance_m=float(row["distance_m"] or 0.0))

    async def closest_point_between(
        self, route_a_id: int, fraction_on_a: float, route_b_id: int,
    ) -> ClosestPoint:
        results = await self.sample_closest_points(route_a_id, [fraction_on_a], route_b_id)
        return results[0]

    async def sample_closest_points(
        self, route_a_id: int, fractions: list[float], route_b_id: int,
    ) -> list[ClosestPoint]:
        if not fractions:
            return []
        rows = await self._fetch(_CLOSEST_SQL, {
            "route_a_id": route_a_id,
            "route_b_id": route_b_id,
            "fractions": [max(0.0, min(1.0, f)) for f in fractions],
        })
        if not rows:
            # Either side may be missing; report the first that is
            await self.get_route(route_a_id)
            raise UnknownRouteError(route_b_id)
        return [
            ClosestPoint(
                point_on_a=Coordinate.from_lon_lat(row["a_lon"], row["a_lat"]),
                point_on_b=Coordinate.from_lon_lat(row["b_lon"], row["b_lat"]),
                fraction_on_b=float(row["fraction_on_b"]),
                distance_m=float(row["distance_m"]),
            )
            for row in rows
        ]

    async def route_length(self, route_id: int) -> float:
        row = await self._fetch_one(route_id, _LENGTH_SQL, {})
        return float(row["length_m"] or 0.0)

    async def positions_within(
        self, route_id: int, point: Coordinate, radius_m: float, step: float,
    ) -> list[RoutePosition]:
        rows = await self._fetch(_WITHIN_SQL, {
            "route_id": route_id,
            "steps": sample_count(step),
            "lon": point.longitude,
            "lat": point.latitude,
            "radius": radius_m,
        })
        if not rows:
            # Nothing in range, unless the route itself is missing
            await self.get_route(route_id)
        return [
            RoutePosition(
                position=float(row["fraction"]),
                coordinate=Coordinate.from_lon_lat(row["lon"], row["lat"]),
                distance_m=float(row["distance_m"]),
            )
            for row in rows
        ]
