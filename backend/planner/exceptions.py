"""Planner error taxonomy.

Request-level errors (validation, store failures) propagate to the API layer.
Candidate-level errors (a single bad route or route pair) are caught by the
resolvers, logged and skipped.
"""


class PlannerError(Exception):
    """Base class for all planner errors."""


class ValidationError(PlannerError):
    """Origin/destination or a query parameter is missing or malformed."""


class NoRouteFound(PlannerError):
    """No itinerary serves the requested journey. Not a system fault."""


class StoreQueryFailure(PlannerError):
    """The geometry store query failed (timeout, connectivity, bad SQL).

    Retryable from the caller's point of view.
    """

    retryable = True


class DegenerateGeometryError(PlannerError):
    """A route geometry could not be parsed or an extraction came back empty."""

    def __init__(self, route_id: int, reason: str) -> None:
        super().__init__(f"Route {route_id}: {reason}")
        self.route_id = route_id
        self.reason = reason


class UnknownRouteError(PlannerError):
    """The geometry store has no route with this id."""

    def __init__(self, route_id: int) -> None:
        super().__init__(f"Route {route_id} not found")
        self.route_id = route_id


class PlanningCancelled(PlannerError):
    """The caller went away while the transfer search was running."""
