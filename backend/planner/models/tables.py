from geoalchemy2 import Geometry
from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from planner.models.base import Base


class JeepneyRoute(Base):
    __tablename__ = "jeepney_routes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    route_code: Mapped[str] = mapped_column(String(32), nullable=False)
    start_point_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    end_point_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    # Vertices in (lon, lat) traversal order
    geom_forward = mapped_column(Geometry("LINESTRING", srid=4326), nullable=False)
    geom_reverse = mapped_column(Geometry("LINESTRING", srid=4326), nullable=True)
    horizontal_or_vertical_road: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    @property
    def route_name(self) -> str:
        return f"{self.start_point_name} - {self.end_point_name}"
