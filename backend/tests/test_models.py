"""Tests for the jeepney_routes table mapping."""

from planner.models.tables import JeepneyRoute


def test_route_name_joins_terminals():
    route = JeepneyRoute(route_code="01C", start_point_name="Antipolo", end_point_name="Cubao")
    assert route.route_name == "Antipolo - Cubao"


def test_geometry_columns():
    columns = JeepneyRoute.__table__.columns
    assert not columns["geom_forward"].nullable
    assert columns["geom_reverse"].nullable
    assert columns["geom_forward"].type.srid == 4326
