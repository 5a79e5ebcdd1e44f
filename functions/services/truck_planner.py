"""Truck capacity planning for MovSense."""

import math
from typing import Optional

from config.errors import ValidationError
from config.settings import settings
from models.quote import TruckPlan
from utils.numbers import finite_number


def trucks_for(total_cubic_feet: float, capacity: float) -> int:
    """``ceil(total / capacity)``; zero volume needs zero trucks."""
    if total_cubic_feet <= 0:
        return 0
    return math.ceil(total_cubic_feet / capacity)


def plan_trucks(total_cubic_feet: float, capacity: Optional[float] = None) -> TruckPlan:
    """Advisory truck plan for a total volume.

    Raises:
        ValidationError: If the volume is negative or not a number.
    """
    capacity = capacity or settings.truck_capacity_cubic_feet
    volume = finite_number(total_cubic_feet)
    if volume is None or volume < 0:
        raise ValidationError(
            "totalCubicFeet must be a non-negative number",
            field="totalCubicFeet",
        )

    return TruckPlan(
        total_cubic_feet=round(volume, 1),
        capacity_per_truck=capacity,
        trucks_needed=trucks_for(volume, capacity),
        exceeds_single_truck=volume > capacity,
    )
