"""Distance-based jeepney fare policies.

Two policies coexist and are used at different call sites; they give
different numbers for the same distance and are kept separate on purpose.
"""

import math
from dataclasses import dataclass
from typing import Protocol

from planner.config import settings
from planner.exceptions import ValidationError

# Linear per-km fare with a floor (journey planner)
MINIMUM_FARE = 13.0
FARE_PER_KM = 2.20

# Stepped fare: base covers the first few km, then a flat increment per whole km
BASE_FARE = 13.0
FARE_INCREMENT = 1.8
INCREMENT_TRIGGER_KM = 3.0


class FarePolicy(Protocol):
    def fare(self, distance_m: float) -> float: ...


def _check_distance(distance_m: float) -> float:
    if distance_m < 0 or math.isnan(distance_m):
        raise ValidationError(f"distance must be non-negative, got {distance_m}")
    return distance_m / 1000


@dataclass(frozen=True)
class LinearPerKmFare:
    minimum_fare: float = MINIMUM_FARE
    per_km_rate: float = FARE_PER_KM

    def fare(self, distance_m: float) -> float:
        distance_km = _check_distance(distance_m)
        return float(max(self.minimum_fare, math.ceil(distance_km * self.per_km_rate)))


@dataclass(frozen=True)
class SteppedIncrementFare:
    base_fare: float = BASE_FARE
    increment_rate: float = FARE_INCREMENT
    increment_trigger_km: float = INCREMENT_TRIGGER_KM

    def fare(self, distance_m: float) -> float:
        distance_km = _check_distance(distance_m)
        extra_km = math.floor(max(0.0, distance_km - self.increment_trigger_km))
        return self.base_fare + extra_km * self.increment_rate


def linear_fare_from_settings() -> LinearPerKmFare:
    return LinearPerKmFare(minimum_fare=settings.minimum_fare, per_km_rate=settings.fare_per_km)


def stepped_fare_from_settings() -> SteppedIncrementFare:
    return SteppedIncrementFare(
        base_fare=settings.base_fare,
        increment_rate=settings.fare_increment,
        increment_trigger_km=settings.fare_increment_trigger_km,
    )
