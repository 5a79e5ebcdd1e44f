"""Move estimate Pydantic models for MovSense.

Request and response shapes for the move-time estimator, plus the compact
billable ``Estimate`` shown on a quote.
"""

import hashlib
import json
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from models.inventory import Detection
from models.pricing import CREW_SIZES


MINIMUM_BILLABLE_HOURS = 3.0


# =============================================================================
# ENUMS
# =============================================================================


class BuildingType(str, Enum):
    """Building type at either end of the move."""

    HOUSE = "house"
    APARTMENT = "apartment"
    CONDO = "condo"
    BUSINESS = "business"


class ParkingType(str, Enum):
    """Truck parking situation at either end of the move."""

    DRIVEWAY = "driveway"
    STREET = "street"
    PARKING_LOT = "parking_lot"
    DIFFICULT = "difficult"


class SpecialtyCategory(str, Enum):
    """Fixed set of specialty-item categories that carry surcharges."""

    PIANO = "piano"
    SAFE = "safe"
    POOL_TABLE = "pool_table"
    GYM = "gym"
    TV_LARGE = "tv_large"
    APPLIANCE = "appliance"
    HOISTING = "hoisting"


class EstimateSource(str, Enum):
    """Which path produced an estimate."""

    MODEL = "model"        # AI-assisted primary path
    FALLBACK = "fallback"  # Deterministic reduced-fidelity path


# =============================================================================
# REQUEST
# =============================================================================


class MoveTimeRequest(BaseModel):
    """Inventory plus trip metadata for one move."""

    detections: List[Detection] = Field(default_factory=list)
    distance: Optional[float] = Field(
        default=None, ge=0, allow_inf_nan=False,
        description="Trip distance in miles"
    )
    travel_time: Optional[float] = Field(
        default=None, ge=0, allow_inf_nan=False, alias="travelTime",
        description="One-way drive time in minutes"
    )
    origin_type: BuildingType = Field(default=BuildingType.HOUSE, alias="originType")
    destination_type: BuildingType = Field(default=BuildingType.HOUSE, alias="destinationType")
    stairs_origin: bool = Field(default=False, alias="stairsOrigin")
    stairs_destination: bool = Field(default=False, alias="stairsDestination")
    elevator_origin: bool = Field(default=False, alias="elevatorOrigin")
    elevator_destination: bool = Field(default=False, alias="elevatorDestination")
    floor_origin: Optional[int] = Field(default=None, ge=0, alias="floorOrigin")
    floor_destination: Optional[int] = Field(default=None, ge=0, alias="floorDestination")
    parking_origin: ParkingType = Field(default=ParkingType.DRIVEWAY, alias="parkingOrigin")
    parking_destination: ParkingType = Field(default=ParkingType.DRIVEWAY, alias="parkingDestination")

    # Optional context for collaborators
    company_id: Optional[str] = Field(default=None, alias="companyId")
    origin_address: Optional[str] = Field(default=None, alias="originAddress")
    destination_address: Optional[str] = Field(default=None, alias="destinationAddress")

    class Config:
        populate_by_name = True

    @property
    def has_trip(self) -> bool:
        return self.distance is not None and self.travel_time is not None

    @property
    def travel_minutes(self) -> float:
        return float(self.travel_time or 0)

    @property
    def any_stairs(self) -> bool:
        return self.stairs_origin or self.stairs_destination

    @property
    def any_elevator(self) -> bool:
        return self.elevator_origin or self.elevator_destination

    def fingerprint(self) -> str:
        """Stable SHA-256 of the estimate-relevant request content.

        Independent of key order, so a retried request maps to the same value.
        """
        payload = self.model_dump(
            mode="json",
            by_alias=True,
            exclude={"company_id", "origin_address", "destination_address"},
        )
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# =============================================================================
# RESPONSE PARTS
# =============================================================================


class SpecialtyItem(BaseModel):
    """An item needing surcharge and extra handling time."""

    item: str
    category: SpecialtyCategory
    surcharge: float = Field(default=0, ge=0)
    extra_time: float = Field(default=0, ge=0, alias="extraTime", description="Extra minutes")
    detected: bool = True
    quantity: int = Field(default=1, ge=1)

    class Config:
        populate_by_name = True
        use_enum_values = True


class HoursBreakdown(BaseModel):
    """Where the standard estimate's hours go."""

    loading_hours: float = Field(default=0, ge=0, alias="loadingHours")
    travel_hours: float = Field(default=0, ge=0, alias="travelHours")
    unloading_hours: float = Field(default=0, ge=0, alias="unloadingHours")
    setup_hours: float = Field(default=0, ge=0, alias="setupHours")
    buffer_hours: float = Field(default=0, ge=0, alias="bufferHours")

    class Config:
        populate_by_name = True

    @property
    def total(self) -> float:
        return (
            self.loading_hours + self.travel_hours + self.unloading_hours
            + self.setup_hours + self.buffer_hours
        )


class DetectedUpsell(BaseModel):
    """Upsell candidate proposed by the estimator."""

    id: str = Field(..., min_length=1)
    name: str
    price: float = Field(default=0, ge=0)
    reason: str = ""
    required: bool = False


# =============================================================================
# ESTIMATOR OUTPUT
# =============================================================================


class MoveTimeEstimate(BaseModel):
    """Priced move-time estimate.

    ``degraded`` is True when the deterministic fallback produced the result;
    callers must not present it as equivalent to a full estimate.
    """

    hours_standard: float = Field(..., ge=0, alias="hoursStandard")
    hours_conservative: float = Field(..., ge=0, alias="hoursConservative")
    recommended_crew: int = Field(..., alias="recommendedCrew")
    crew_rate: float = Field(..., ge=0, alias="crewRate")
    trucks_needed: int = Field(default=1, ge=0, alias="trucksNeeded")
    total_cubic_feet: float = Field(default=0, ge=0, alias="totalCubicFeet")
    total_weight: float = Field(default=0, ge=0, alias="totalWeight")
    specialty_items: List[SpecialtyItem] = Field(default_factory=list, alias="specialtyItems")
    base_total: float = Field(default=0, ge=0, alias="baseTotal")
    surcharges_total: float = Field(default=0, ge=0, alias="surchargesTotal")
    total_before_tax: float = Field(default=0, ge=0, alias="totalBeforeTax")
    tax: float = Field(default=0, ge=0)
    total_after_tax: float = Field(default=0, ge=0, alias="totalAfterTax")
    reasoning: str = ""
    breakdown: HoursBreakdown = Field(default_factory=HoursBreakdown)
    detected_upsells: List[DetectedUpsell] = Field(default_factory=list, alias="detectedUpsells")
    degraded: bool = False
    source: EstimateSource = EstimateSource.MODEL
    warnings: List[str] = Field(default_factory=list)
    request_fingerprint: Optional[str] = Field(default=None, alias="requestFingerprint")

    class Config:
        populate_by_name = True
        use_enum_values = True

    @field_validator("recommended_crew")
    @classmethod
    def _valid_crew(cls, v: int) -> int:
        if v not in CREW_SIZES:
            raise ValueError(f"crew must be one of {CREW_SIZES}")
        return v

    @model_validator(mode="after")
    def _enforce_hours_invariants(self) -> "MoveTimeEstimate":
        # Minimum billable duration holds whatever produced the numbers
        self.hours_standard = max(MINIMUM_BILLABLE_HOURS, self.hours_standard)
        self.hours_conservative = max(
            MINIMUM_BILLABLE_HOURS, self.hours_conservative, self.hours_standard
        )
        return self

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Estimate(BaseModel):
    """Compact billable estimate shown on a quote."""

    crew: int
    rate: float = Field(..., ge=0, description="Hourly rate per mover")
    travel_mins: float = Field(default=0, ge=0, alias="travelMins")
    hours: float = Field(..., ge=0)
    total: float = Field(..., ge=0, description="Labour total before surcharges and upsells")
    stairs: bool = False
    elevator: bool = False
    safety_pct: float = Field(default=10, ge=0, alias="safetyPct")

    class Config:
        populate_by_name = True

    @field_validator("crew")
    @classmethod
    def _valid_crew(cls, v: int) -> int:
        if v not in CREW_SIZES:
            raise ValueError(f"crew must be one of {CREW_SIZES}")
        return v

    @field_validator("hours")
    @classmethod
    def _minimum_hours(cls, v: float) -> float:
        return max(MINIMUM_BILLABLE_HOURS, v)

    @classmethod
    def from_move_time(
        cls,
        move_time: MoveTimeEstimate,
        request: MoveTimeRequest,
        safety_pct: float
    ) -> "Estimate":
        return cls(
            crew=move_time.recommended_crew,
            rate=round(move_time.crew_rate / move_time.recommended_crew, 2),
            travel_mins=request.travel_minutes,
            hours=move_time.hours_standard,
            total=move_time.base_total,
            stairs=request.any_stairs,
            elevator=request.any_elevator,
            safety_pct=safety_pct,
        )

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
