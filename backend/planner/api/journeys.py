"""Journey planning REST API endpoints."""

from fastapi import APIRouter, HTTPException, Request

from planner.core.itinerary import DirectItinerary, Itinerary, RouteSegment
from planner.schemas.journey import (
    CoordinateOut,
    DirectItineraryOut,
    ErrorOut,
    JourneyQuery,
    LegOut,
    TransferItineraryOut,
)

router = APIRouter(prefix="/api/journeys", tags=["journeys"])

# Will be set by main.py
planner = None

_ERROR_RESPONSES = {
    400: {"model": ErrorOut, "description": "Missing or malformed coordinates"},
    404: {"model": ErrorOut, "description": "No route available for this journey"},
    500: {"model": ErrorOut, "description": "Geometry store failure, retryable"},
}


def _leg(segment: RouteSegment) -> LegOut:
    return LegOut(
        route_id=segment.route.route_id,
        route_code=segment.route.route_code,
        route_name=segment.route.route_name,
        coordinates=[CoordinateOut.of(c) for c in segment.coordinates],
        distance=segment.distance_m,
        fare=segment.fare,
    )


def itinerary_out(itinerary: Itinerary) -> DirectItineraryOut | TransferItineraryOut:
    if isinstance(itinerary, DirectItinerary):
        seg = itinerary.segment
        return DirectItineraryOut(
            route_id=seg.route.route_id,
            route_code=seg.route.route_code,
            route_name=seg.route.route_name,
            coordinates=[CoordinateOut.of(c) for c in seg.coordinates],
            distance_meters=seg.distance_m,
            fare=seg.fare,
            requires_loop=seg.requires_loop,
            case=itinerary.case,
            boarding_distance=itinerary.boarding_distance_m,
            alighting_distance=itinerary.alighting_distance_m,
        )
    first, second = itinerary.first, itinerary.second
    return TransferItineraryOut(
        route_id=f"{first.route.route_code}->{second.route.route_code}",
        route_name=f"{first.route.route_name} → {second.route.route_name}",
        first_route=_leg(first),
        second_route=_leg(second),
        transfer_point=CoordinateOut.of(itinerary.transfer_point.coordinate),
        total_fare=itinerary.total_fare,
        transfer_distance=itinerary.transfer_point.distance_m,
        distance_meters=itinerary.total_distance_m,
        boarding_distance=itinerary.boarding_distance_m,
        alighting_distance=itinerary.alighting_distance_m,
    )


def _require_planner():
    if planner is None:
        raise HTTPException(status_code=503, detail="Planner not initialized")
    return planner


@router.post(
    "/plan",
    response_model=list[DirectItineraryOut | TransferItineraryOut],
    responses=_ERROR_RESPONSES,
)
async def plan_journey(query: JourneyQuery, request: Request):
    """Ranked itineraries: direct rides first, then two-jeepney transfers."""
    itineraries = await _require_planner().plan(
        query.origin.to_coordinate(),
        query.destination.to_coordinate(),
        include_transfers=query.include_transfers,
        is_cancelled=request.is_disconnected,
    )
    return [itinerary_out(it) for it in itineraries]


@router.post(
    "/transfers",
    response_model=list[TransferItineraryOut],
    responses=_ERROR_RESPONSES,
)
async def plan_transfers(query: JourneyQuery, request: Request):
    """Two-jeepney itineraries only, shortest total distance first."""
    itineraries = await _require_planner().plan_transfers(
        query.origin.to_coordinate(),
        query.destination.to_coordinate(),
        is_cancelled=request.is_disconnected,
    )
    return [itinerary_out(it) for it in itineraries]


@router.post(
    "/direct",
    response_model=list[DirectItineraryOut],
    responses=_ERROR_RESPONSES,
)
async def plan_direct(query: JourneyQuery):
    """Single-jeepney rides only, quoted with the stepped fare."""
    itineraries = await _require_planner().plan_direct(
        query.origin.to_coordinate(),
        query.destination.to_coordinate(),
    )
    return [itinerary_out(it) for it in itineraries]
