"""Create jeepney_routes with PostGIS geometries.

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from geoalchemy2 import Geometry

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS postgis")
    op.create_table(
        "jeepney_routes",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("route_code", sa.String(32), nullable=False),
        sa.Column("start_point_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("end_point_name", sa.String(255), nullable=False, server_default=""),
        sa.Column(
            "geom_forward",
            Geometry("LINESTRING", srid=4326, spatial_index=False),
            nullable=False,
        ),
        sa.Column(
            "geom_reverse",
            Geometry("LINESTRING", srid=4326, spatial_index=False),
            nullable=True,
        ),
        sa.Column("horizontal_or_vertical_road", sa.Boolean, nullable=True),
    )
    # Proximity searches cast to geography, so index that expression
    op.execute(
        "CREATE INDEX ix_jeepney_routes_geom_forward_geog "
        "ON jeepney_routes USING GIST ((geom_forward::geography))"
    )
    op.create_index("ix_jeepney_routes_route_code", "jeepney_routes", ["route_code"])


def downgrade() -> None:
    op.drop_index("ix_jeepney_routes_route_code", table_name="jeepney_routes")
    op.execute("DROP INDEX IF EXISTS ix_jeepney_routes_geom_forward_geog")
    op.drop_table("jeepney_routes")
