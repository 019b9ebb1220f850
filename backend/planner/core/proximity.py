"""Find routes passing near a coordinate."""

import asyncio
import logging
import math

from planner.core.geometry import Coordinate
from planner.core.store import GeometryStore, RouteProximityMatch
from planner.exceptions import ValidationError

logger = logging.getLogger(__name__)

# Max distance (meters) between a rider and a route they can board or leave
PROXIMITY_THRESHOLD_M = 200.0


def validate_coordinate(point: Coordinate | None, label: str) -> Coordinate:
    if point is None:
        raise ValidationError(f"Missing {label} coordinate")
    lat, lon = point.latitude, point.longitude
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise ValidationError(f"{label} coordinate is not a number")
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        raise ValidationError(f"{label} coordinate out of range: ({lat}, {lon})")
    return point


class ProximitySearch:
    """Wraps the store's nearest-route query with ordering and logging."""

    def __init__(self, store: GeometryStore, threshold_m: float = PROXIMITY_THRESHOLD_M) -> None:
        if threshold_m <= 0:
            raise ValidationError("proximity threshold must be positive")
        self.store = store
        self.threshold_m = threshold_m

    async def find_routes_near(
        self, point: Coordinate, threshold_m: float | None = None,
    ) -> list[RouteProximityMatch]:
        """Routes within the threshold of point, nearest first.

        An empty list means no route serves the point; it is not an error.
        """
        threshold = self.threshold_m if threshold_m is None else threshold_m
        matches = await self.store.find_routes_near(point, threshold)
        matches = sorted(matches, key=lambda m: (m.distance_m, m.route.route_id))
        logger.debug(
            "%d route(s) within %.0fm of (%.6f, %.6f)",
            len(matches), threshold, point.latitude, point.longitude,
        )
        return matches

    async def search_endpoints(
        self, origin: Coordinate, destination: Coordinate, threshold_m: float | None = None,
    ) -> tuple[list[RouteProximityMatch], list[RouteProximityMatch]]:
        """Run the origin and destination searches concurrently."""
        origin_matches, destination_matches = await asyncio.gather(
            self.find_routes_near(origin, threshold_m),
            self.find_routes_near(destination, threshold_m),
        )
        return origin_matches, destination_matches
