"""Route REST API endpoints."""

from fastapi import APIRouter, HTTPException, Query

from planner.core.geometry import Coordinate, path_length_m
from planner.core.proximity import PROXIMITY_THRESHOLD_M, validate_coordinate
from planner.schemas.route import NearbyRoute, RouteDetail, RouteInfo

router = APIRouter(prefix="/api/routes", tags=["routes"])

# Will be set by main.py
store = None


def _require_store():
    if store is None:
        raise HTTPException(status_code=503, detail="Geometry store not initialized")
    return store


@router.get("", response_model=list[RouteInfo])
async def list_routes():
    """Get all jeepney routes."""
    routes = await _require_store().list_routes()
    return [RouteInfo(id=r.route_id, code=r.route_code, name=r.route_name) for r in routes]


@router.get("/nearby", response_model=list[NearbyRoute])
async def nearby_routes(
    lat: float = Query(ge=-90, le=90),
    lon: float = Query(ge=-180, le=180),
    radius_m: float = Query(default=PROXIMITY_THRESHOLD_M, gt=0, le=5000),
):
    """Routes passing within radius_m of a point, nearest first."""
    point = validate_coordinate(Coordinate(latitude=lat, longitude=lon), "query")
    matches = await _require_store().find_routes_near(point, radius_m)
    return [
        NearbyRoute(
            id=m.route.route_id,
            code=m.route.route_code,
            name=m.route.route_name,
            distance_meters=m.distance_m,
            position=m.position,
        )
        for m in matches
    ]


@router.get("/{route_id}", response_model=RouteDetail)
async def get_route(route_id: int):
    """Get route detail with its forward geometry."""
    s = _require_store()
    route = await s.get_route(route_id)
    coords = await s.get_route_coordinates(route_id)
    return RouteDetail(
        id=route.route_id,
        code=route.route_code,
        name=route.route_name,
        geometry=[[c.latitude, c.longitude] for c in coords],
        length_meters=path_length_m(coords),
    )
