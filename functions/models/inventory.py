"""Inventory Pydantic models for MovSense.

Property context, per-item detections, room classification and the
advisory validation result produced by the detection pipeline.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from utils.numbers import non_negative, positive, to_quantity


UNCLASSIFIED_ROOM = "Unclassified"


# =============================================================================
# ENUMS
# =============================================================================


class PropertyType(str, Enum):
    """Listing property type."""

    SINGLE_FAMILY = "SINGLE_FAMILY"
    CONDO = "CONDO"
    TOWNHOUSE = "TOWNHOUSE"
    APARTMENT = "APARTMENT"
    MULTI_FAMILY = "MULTI_FAMILY"
    OTHER = "OTHER"


class ValueSource(str, Enum):
    """Where a resolved numeric field came from."""

    VISION = "vision"              # Reported by the vision model
    HEURISTIC = "heuristic"        # Derived (weight = cubic feet x 7)
    LOOKUP_TABLE = "lookup_table"  # Label-keyed cube sheet
    DEFAULT = "default"            # Nothing known, zero used


# =============================================================================
# PROPERTY CONTEXT
# =============================================================================


class PropertyContext(BaseModel):
    """Immutable property attributes supplied once per request."""

    bedrooms: Optional[int] = Field(default=None, ge=0)
    bathrooms: Optional[float] = Field(default=None, ge=0)
    sqft: Optional[int] = Field(default=None, ge=0)
    property_type: PropertyType = Field(
        default=PropertyType.SINGLE_FAMILY,
        alias="propertyType"
    )

    class Config:
        populate_by_name = True
        frozen = True

    @field_validator("bedrooms", "sqft", mode="before")
    @classmethod
    def _falsy_int_to_none(cls, v: Any) -> Optional[int]:
        # Listing feeds report unknown values as 0 or ""
        number = positive(v)
        return int(number) if number is not None else None

    @field_validator("bathrooms", mode="before")
    @classmethod
    def _falsy_float_to_none(cls, v: Any) -> Optional[float]:
        return positive(v)

    @field_validator("property_type", mode="before")
    @classmethod
    def _coerce_property_type(cls, v: Any) -> PropertyType:
        if v is None or v == "":
            return PropertyType.SINGLE_FAMILY
        if isinstance(v, PropertyType):
            return v
        key = str(v).strip().upper().replace("-", "_").replace(" ", "_")
        try:
            return PropertyType(key)
        except ValueError:
            return PropertyType.OTHER

    @classmethod
    def from_request(cls, data: Optional[Dict[str, Any]]) -> "PropertyContext":
        """Build from an optional request ``propertyContext`` object."""
        if not isinstance(data, dict):
            return cls()
        return cls.model_validate({
            "bedrooms": data.get("bedrooms"),
            "bathrooms": data.get("bathrooms"),
            "sqft": data.get("sqft"),
            "propertyType": data.get("propertyType", data.get("property_type")),
        })

    def describe(self) -> List[str]:
        """Prompt-ready lines for the known attributes."""
        lines = []
        if self.bedrooms:
            lines.append(f"- Total Bedrooms: {self.bedrooms}")
        if self.bathrooms:
            lines.append(f"- Total Bathrooms: {self.bathrooms:g}")
        if self.sqft:
            lines.append(f"- Square Footage: {self.sqft:,} sq ft")
        lines.append(f"- Property Type: {self.property_type.value}")
        return lines

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# DETECTION
# =============================================================================


class Detection(BaseModel):
    """One inferred furniture/item entry with quantity and optional physical attributes."""

    label: str = Field(..., min_length=1, description="Item description")
    qty: int = Field(default=1, ge=0, description="Number of identical items")
    cubic_feet: Optional[float] = Field(
        default=None, ge=0, allow_inf_nan=False, alias="cubicFeet",
        description="Per-unit volume in cubic feet"
    )
    weight: Optional[float] = Field(
        default=None, ge=0, allow_inf_nan=False,
        description="Per-unit weight in pounds"
    )
    size: Optional[str] = Field(default=None, description="Size descriptor, e.g. 'King', '65 inch'")
    room: Optional[str] = Field(default=None, description="Room the item was detected in")
    notes: Optional[str] = Field(default=None)
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0, allow_inf_nan=False)
    tags: List[str] = Field(
        default_factory=list,
        description="Item categories from the central item classifier"
    )
    cubic_feet_source: Optional[ValueSource] = Field(default=None, alias="cubicFeetSource")
    weight_source: Optional[ValueSource] = Field(default=None, alias="weightSource")

    class Config:
        populate_by_name = True
        use_enum_values = True

    @classmethod
    def from_model_output(
        cls,
        raw: Dict[str, Any],
        default_room: Optional[str] = None
    ) -> Optional["Detection"]:
        """Build a detection from one untrusted model-output entry.

        Returns None when the entry has no usable label. Numeric fields that
        are not finite and > 0 are treated as absent.
        """
        if not isinstance(raw, dict):
            return None
        label = raw.get("label") or raw.get("name") or raw.get("item")
        if not isinstance(label, str) or not label.strip():
            return None

        cubic_feet = positive(raw.get("cubicFeet", raw.get("cubic_feet")))
        weight = positive(raw.get("weight"))
        confidence = non_negative(raw.get("confidence"))
        if confidence is not None and confidence > 1:
            confidence = None

        def _text(key: str) -> Optional[str]:
            value = raw.get(key)
            if value is None:
                return None
            value = str(value).strip()
            return value or None

        return cls(
            label=label.strip(),
            qty=to_quantity(raw.get("qty", raw.get("quantity"))),
            cubic_feet=cubic_feet,
            weight=weight,
            size=_text("size"),
            room=_text("room") or default_room,
            notes=_text("notes"),
            confidence=confidence,
            cubic_feet_source=ValueSource.VISION if cubic_feet is not None else None,
            weight_source=ValueSource.VISION if weight is not None else None,
        )

    def search_text(self, include_context: bool = False) -> str:
        """Lower-cased text used for keyword matching."""
        parts = [self.label]
        if include_context:
            parts.extend(p for p in (self.notes, self.room) if p)
        return " ".join(parts).lower()

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# ROOM CLASSIFICATION
# =============================================================================


class RoomClassification(BaseModel):
    """Ordered mapping of room name to the photo references shown in it.

    Insertion order is the order rooms were produced by the classifier and
    is the order rooms are traversed by detection.
    """

    rooms: Dict[str, List[str]] = Field(default_factory=dict)

    @property
    def room_names(self) -> List[str]:
        return list(self.rooms.keys())

    @property
    def photo_count(self) -> int:
        return sum(len(photos) for photos in self.rooms.values())

    def items(self):
        return self.rooms.items()

    def __len__(self) -> int:
        return len(self.rooms)


# =============================================================================
# VALIDATION / RESULT
# =============================================================================


class ValidationResult(BaseModel):
    """Advisory output of inventory validation. Never removes or blocks detections."""

    anomalies: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    stats: Dict[str, Any] = Field(default_factory=dict)

    @property
    def has_anomalies(self) -> bool:
        return bool(self.anomalies)


class DetectionResult(BaseModel):
    """Full output of the three-phase detection pipeline."""

    detections: List[Detection] = Field(default_factory=list)
    validation: ValidationResult = Field(default_factory=ValidationResult)
    classification: RoomClassification = Field(default_factory=RoomClassification)
    property_context: PropertyContext = Field(default_factory=PropertyContext)
    total_photos: int = 0
    duration_ms: int = 0

    def to_response(self) -> Dict[str, Any]:
        """Response body for the detection endpoint."""
        return {
            "detections": [d.to_response() for d in self.detections],
            "validation": self.validation.model_dump(),
            "metadata": {
                "totalRooms": len(self.classification),
                "totalPhotos": self.total_photos,
                "propertyContext": self.property_context.to_response(),
                "rooms": self.classification.room_names,
                "durationMs": self.duration_ms,
            },
        }
