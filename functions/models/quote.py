"""Quote Pydantic models for MovSense.

Upsells, resolved volume, truck plan and the assembled quote result.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from models.estimate import Estimate, MoveTimeEstimate
from models.inventory import Detection, ValueSource


INSURANCE_PREFIX = "insurance-"


# =============================================================================
# UPSELLS
# =============================================================================


class Upsell(BaseModel):
    """One optional add-on offered with a quote."""

    id: str = Field(..., min_length=1)
    name: str
    description: str = ""
    price: float = Field(default=0, ge=0, description="Total price for this add-on")
    recommended: bool = False
    selected: bool = False

    @property
    def is_insurance(self) -> bool:
        return self.id.startswith(INSURANCE_PREFIX)


class CustomUpsell(BaseModel):
    """Tenant-defined upsell stored with the company configuration."""

    id: str = Field(..., min_length=1)
    name: str
    description: str = ""
    price: float = Field(default=0, ge=0)
    recommended: bool = False
    selected: bool = False

    def to_upsell(self) -> Upsell:
        return Upsell(**self.model_dump())


# =============================================================================
# VOLUME / TRUCKS
# =============================================================================


class ResolvedItem(BaseModel):
    """A detection with per-unit volume and weight resolved, plus provenance."""

    detection: Detection
    cubic_feet: float = Field(default=0, ge=0, alias="cubicFeet")
    weight: float = Field(default=0, ge=0)
    cubic_feet_source: ValueSource = Field(alias="cubicFeetSource")
    weight_source: ValueSource = Field(alias="weightSource")

    class Config:
        populate_by_name = True
        use_enum_values = True

    @property
    def qty(self) -> int:
        return self.detection.qty

    @property
    def total_cubic_feet(self) -> float:
        return self.cubic_feet * self.qty

    @property
    def total_weight(self) -> float:
        return self.weight * self.qty

    def to_response(self) -> Dict[str, Any]:
        return {
            "label": self.detection.label,
            "qty": self.qty,
            "room": self.detection.room,
            "cubicFeet": self.cubic_feet,
            "weight": self.weight,
            "cubicFeetSource": self.cubic_feet_source,
            "weightSource": self.weight_source,
        }


class VolumeTotals(BaseModel):
    """Aggregated inventory volume. Single source of truth for every stage."""

    items: List[ResolvedItem] = Field(default_factory=list)
    total_cubic_feet: float = Field(default=0, ge=0, alias="totalCubicFeet")
    total_weight: float = Field(default=0, ge=0, alias="totalWeight")
    warnings: List[str] = Field(default_factory=list)
    exact_cubic_feet: Optional[float] = Field(
        default=None, ge=0, exclude=True, alias="exactCubicFeet",
        description="Unrounded volume sum used for truck counts"
    )

    class Config:
        populate_by_name = True

    @property
    def item_count(self) -> int:
        return sum(item.qty for item in self.items)

    @property
    def planning_cubic_feet(self) -> float:
        if self.exact_cubic_feet is None:
            return self.total_cubic_feet
        return self.exact_cubic_feet

    def to_response(self) -> Dict[str, Any]:
        return {
            "items": [item.to_response() for item in self.items],
            "totalCubicFeet": self.total_cubic_feet,
            "totalWeight": self.total_weight,
            "warnings": list(self.warnings),
        }


class TruckPlan(BaseModel):
    """Truck count for a given total volume."""

    total_cubic_feet: float = Field(..., ge=0, alias="totalCubicFeet")
    capacity_per_truck: float = Field(default=1700, gt=0, alias="capacityPerTruck")
    trucks_needed: int = Field(..., ge=0, alias="trucksNeeded")
    exceeds_single_truck: bool = Field(default=False, alias="exceedsSingleTruck")

    class Config:
        populate_by_name = True

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# QUOTE
# =============================================================================


class QuoteResult(BaseModel):
    """Everything the quote endpoint returns."""

    estimate: Estimate
    move_time: MoveTimeEstimate
    volume: VolumeTotals
    truck_plan: TruckPlan
    upsells: List[Upsell] = Field(default_factory=list)
    upsells_total: float = Field(default=0, ge=0)
    degraded: bool = False
    company_id: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        return {
            "estimate": self.estimate.to_response(),
            "moveTime": self.move_time.to_response(),
            "volume": self.volume.to_response(),
            "truckPlan": self.truck_plan.to_response(),
            "upsells": [u.model_dump() for u in self.upsells],
            "upsellsTotal": self.upsells_total,
            "degraded": self.degraded,
        }
