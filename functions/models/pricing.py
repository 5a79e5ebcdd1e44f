"""Pricing policy model for MovSense.

Every business number the estimator and upsell engine use lives here so the
values can be overridden per tenant without code changes. Defaults fix the
published ranges (e.g. "upright piano $150-$300") to point values.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


CREW_SIZES = (2, 3, 4, 5, 6)


class SpecialtyRate(BaseModel):
    """Surcharge and extra handling time for one specialty variant."""

    surcharge: float = Field(..., ge=0, description="Dollars per unit")
    extra_minutes: float = Field(..., ge=0, alias="extraMinutes", description="Minutes per unit")

    class Config:
        populate_by_name = True


class InsuranceTier(BaseModel):
    """One insurance tier, always offered."""

    id: str
    name: str
    description: str
    price: float = Field(..., ge=0)
    coverage_limit: Optional[float] = Field(default=None, ge=0, alias="coverageLimit")
    recommend_above_total: Optional[float] = Field(
        default=None, ge=0, alias="recommendAboveTotal",
        description="Recommend this tier when the estimate total reaches this amount"
    )

    class Config:
        populate_by_name = True

    @field_validator("id")
    @classmethod
    def _insurance_prefix(cls, v: str) -> str:
        if not v.startswith("insurance-"):
            raise ValueError("insurance tier ids must start with 'insurance-'")
        return v


def _default_specialty_rates() -> Dict[str, SpecialtyRate]:
    return {
        "piano_upright": SpecialtyRate(surcharge=225, extra_minutes=75),
        "piano_grand": SpecialtyRate(surcharge=400, extra_minutes=105),
        "safe_small": SpecialtyRate(surcharge=100, extra_minutes=30),
        "safe_large": SpecialtyRate(surcharge=250, extra_minutes=60),
        "pool_table": SpecialtyRate(surcharge=300, extra_minutes=105),
        "gym": SpecialtyRate(surcharge=125, extra_minutes=45),
        "tv_large": SpecialtyRate(surcharge=40, extra_minutes=0),
        "appliance": SpecialtyRate(surcharge=75, extra_minutes=30),
        "hoisting": SpecialtyRate(surcharge=100, extra_minutes=45),
    }


def _default_insurance_tiers() -> List[InsuranceTier]:
    return [
        InsuranceTier(
            id="insurance-basic",
            name="Basic Coverage",
            description="Included released-value protection at $0.60 per lb per item",
            price=0,
        ),
        InsuranceTier(
            id="insurance-premium",
            name="Premium Coverage",
            description="Full replacement coverage up to $2,000",
            price=100,
            coverage_limit=2000,
            recommend_above_total=1000,
        ),
        InsuranceTier(
            id="insurance-deluxe",
            name="Deluxe Coverage",
            description="Full replacement coverage up to $5,000",
            price=200,
            coverage_limit=5000,
            recommend_above_total=2500,
        ),
    ]


class PricingPolicy(BaseModel):
    """Deterministic business policies for move estimates and upsells."""

    # Crew
    crew_rates: Dict[int, float] = Field(
        default_factory=lambda: {2: 150, 3: 230, 4: 250, 5: 360, 6: 400},
        alias="crewRates",
        description="Single-truck crew hourly rate ($/hr for the whole crew)"
    )
    multi_truck_crew_rates: Dict[int, float] = Field(
        default_factory=lambda: {4: 330, 5: 360, 6: 400},
        alias="multiTruckCrewRates",
        description="Two-truck crew hourly rates as listed in the quoting prompt"
    )
    use_multi_truck_rates: bool = Field(
        default=False, alias="useMultiTruckRates",
        description="Bill multi-truck moves from the two-truck table instead of the flat map"
    )
    efficiency_factors: Dict[int, float] = Field(
        default_factory=lambda: {2: 0.65, 3: 1.0, 4: 1.3, 5: 1.5, 6: 1.5},
        alias="efficiencyFactors"
    )
    cubic_feet_per_hour: float = Field(
        default=100, gt=0, alias="cubicFeetPerHour",
        description="Throughput of a 3-mover crew"
    )
    efficiency_as_speedup: bool = Field(
        default=False, alias="efficiencyAsSpeedup",
        description="Divide handling time by the efficiency factor instead of multiplying"
    )

    # Hours
    minimum_hours: float = Field(default=3, ge=0, alias="minimumHours")
    standard_buffer_pct: float = Field(default=0.10, ge=0, alias="standardBufferPct")
    conservative_buffer_pct: float = Field(default=0.20, ge=0, alias="conservativeBufferPct")
    setup_minutes_per_truck: float = Field(default=15, ge=0, alias="setupMinutesPerTruck")
    extra_truck_setup_minutes: float = Field(
        default=20, ge=0, alias="extraTruckSetupMinutes",
        description="Coordination minutes per truck beyond the first"
    )
    truck_capacity_cubic_feet: float = Field(default=1700, gt=0, alias="truckCapacityCubicFeet")

    # Complexity (additive fractions of base handling time)
    stairs_pct_per_floor: float = Field(default=0.25, ge=0, alias="stairsPctPerFloor")
    stairs_pct_cap: float = Field(default=1.0, ge=0, alias="stairsPctCap")
    elevator_pct: float = Field(default=0.15, ge=0, alias="elevatorPct")
    difficult_parking_pct: float = Field(default=0.20, ge=0, alias="difficultParkingPct")
    floor_difference_pct: float = Field(default=0.10, ge=0, alias="floorDifferencePct")

    # Specialty items
    specialty_rates: Dict[str, SpecialtyRate] = Field(
        default_factory=_default_specialty_rates,
        alias="specialtyRates"
    )
    tv_large_min_inches: int = Field(default=60, ge=0, alias="tvLargeMinInches")
    safe_large_min_weight: float = Field(default=300, ge=0, alias="safeLargeMinWeight")

    # Tax
    tax_rate: float = Field(default=0.13, ge=0, le=1, alias="taxRate")

    # Upsells
    insurance_tiers: List[InsuranceTier] = Field(
        default_factory=_default_insurance_tiers,
        alias="insuranceTiers"
    )
    packing_price_per_item: float = Field(default=25, ge=0, alias="packingPricePerItem")
    packing_recommend_min_items: int = Field(default=10, ge=0, alias="packingRecommendMinItems")
    unpacking_price_per_item: float = Field(default=15, ge=0, alias="unpackingPricePerItem")
    boxes_price_per_item: float = Field(default=5, ge=0, alias="boxesPricePerItem")
    tv_box_price: float = Field(default=35, ge=0, alias="tvBoxPrice")
    tv_disassembly_price: float = Field(default=75, ge=0, alias="tvDisassemblyPrice")
    fragile_packing_price: float = Field(default=20, ge=0, alias="fragilePackingPrice")
    piano_handling_price: float = Field(default=300, ge=0, alias="pianoHandlingPrice")
    pool_table_handling_price: float = Field(default=400, ge=0, alias="poolTableHandlingPrice")
    safe_handling_price: float = Field(default=250, ge=0, alias="safeHandlingPrice")
    gym_handling_price: float = Field(default=150, ge=0, alias="gymHandlingPrice")

    class Config:
        populate_by_name = True

    @model_validator(mode="after")
    def _check_crew_tables(self) -> "PricingPolicy":
        for table_name in ("crew_rates", "efficiency_factors"):
            table = getattr(self, table_name)
            missing = [size for size in CREW_SIZES if size not in table]
            if missing:
                raise ValueError(f"{table_name} missing crew sizes {missing}")
            if any(value < 0 for value in table.values()):
                raise ValueError(f"{table_name} values must be non-negative")
        if self.conservative_buffer_pct < self.standard_buffer_pct:
            raise ValueError("conservative buffer must be >= standard buffer")
        return self

    def crew_rate(self, crew: int) -> float:
        return float(self.crew_rates[crew])

    def efficiency(self, crew: int) -> float:
        return float(self.efficiency_factors[crew])

    def specialty_rate(self, variant: str) -> SpecialtyRate:
        return self.specialty_rates.get(variant) or _default_specialty_rates()[variant]

    def with_overrides(self, overrides: Optional[Dict[str, Any]]) -> "PricingPolicy":
        """Return a copy with tenant overrides applied (camelCase or snake_case keys)."""
        if not overrides:
            return self
        data = self.model_dump(by_alias=True)
        for key, value in overrides.items():
            field = type(self).model_fields.get(key)
            alias = field.alias if field and field.alias else key
            current = data.get(alias)
            if isinstance(current, dict) and isinstance(value, dict):
                # Partial tables update the defaults key by key
                merged = {str(k): v for k, v in current.items()}
                merged.update({str(k): v for k, v in value.items()})
                value = merged
            data[alias] = value
        return PricingPolicy.model_validate(data)
