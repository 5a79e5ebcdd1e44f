"""Unit tests for MovSense Pydantic models."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from models.estimate import (
    BuildingType,
    Estimate,
    MoveTimeEstimate,
    MoveTimeRequest,
    ParkingType,
)
from models.inventory import (
    Detection,
    DetectionResult,
    PropertyContext,
    PropertyType,
    RoomClassification,
    ValueSource,
)
from models.pricing import PricingPolicy


class TestPropertyContext:
    """Tests for PropertyContext."""

    def test_zero_and_empty_values_mean_unknown(self):
        context = PropertyContext.from_request({"bedrooms": 0, "sqft": "", "bathrooms": None})

        assert context.bedrooms is None
        assert context.sqft is None
        assert context.bathrooms is None
        assert context.property_type == PropertyType.SINGLE_FAMILY

    def test_property_type_coercion(self):
        assert PropertyContext.from_request({"propertyType": "condo"}).property_type == PropertyType.CONDO
        assert PropertyContext.from_request({"propertyType": "multi-family"}).property_type == PropertyType.MULTI_FAMILY
        assert PropertyContext.from_request({"propertyType": "castle"}).property_type == PropertyType.OTHER

    def test_missing_context_uses_defaults(self):
        assert PropertyContext.from_request(None) == PropertyContext()

    def test_describe_lists_known_attributes(self):
        lines = PropertyContext(bedrooms=3, bathrooms=2.5, sqft=1800).describe()

        assert "- Total Bedrooms: 3" in lines
        assert "- Total Bathrooms: 2.5" in lines
        assert "- Square Footage: 1,800 sq ft" in lines

    def test_is_immutable(self):
        context = PropertyContext(bedrooms=2)
        with pytest.raises(PydanticValidationError):
            context.bedrooms = 3


class TestDetection:
    """Tests for Detection.from_model_output."""

    def test_valid_entry(self):
        detection = Detection.from_model_output(
            {"label": " King Bed ", "qty": 1, "cubicFeet": 70, "confidence": 0.9},
            default_room="bedroom_1"
        )

        assert detection.label == "King Bed"
        assert detection.room == "bedroom_1"
        assert detection.cubic_feet == 70
        assert detection.cubic_feet_source == ValueSource.VISION.value
        assert detection.weight is None

    def test_missing_label_is_rejected(self):
        assert Detection.from_model_output({"qty": 2}) is None
        assert Detection.from_model_output({"label": "   "}) is None
        assert Detection.from_model_output("sofa") is None

    def test_bad_numbers_are_treated_as_absent(self):
        detection = Detection.from_model_output({
            "label": "Chair",
            "cubicFeet": "NaN",
            "weight": -5,
            "confidence": 7,
            "qty": "abc",
        })

        assert detection.cubic_feet is None
        assert detection.weight is None
        assert detection.confidence is None
        assert detection.qty == 1

    def test_zero_quantity_is_kept(self):
        detection = Detection.from_model_output({"label": "Lamp", "qty": 0})
        assert detection.qty == 0

    def test_response_uses_camel_case(self):
        detection = Detection(label="Desk", cubic_feet=20)
        assert detection.to_response() == {"label": "Desk", "qty": 1, "cubicFeet": 20, "tags": []}


class TestMoveTimeRequest:
    """Tests for MoveTimeRequest."""

    def test_defaults(self):
        request = MoveTimeRequest()

        assert request.origin_type == BuildingType.HOUSE
        assert request.parking_destination == ParkingType.DRIVEWAY
        assert request.travel_minutes == 0
        assert not request.has_trip

    def test_fingerprint_stable_under_key_reordering(self):
        first = MoveTimeRequest.model_validate({
            "detections": [{"label": "Sofa", "qty": 1, "cubicFeet": 35}],
            "distance": 10,
            "travelTime": 25,
            "stairsOrigin": True,
        })
        second = MoveTimeRequest.model_validate({
            "stairsOrigin": True,
            "travelTime": 25,
            "distance": 10,
            "detections": [{"cubicFeet": 35, "qty": 1, "label": "Sofa"}],
        })

        assert first.fingerprint() == second.fingerprint()

    def test_fingerprint_changes_with_content(self):
        base = MoveTimeRequest(distance=10, travel_time=25)
        other = MoveTimeRequest(distance=10, travel_time=26)
        assert base.fingerprint() != other.fingerprint()

    def test_fingerprint_ignores_company(self):
        a = MoveTimeRequest(distance=10, company_id="a")
        b = MoveTimeRequest(distance=10, company_id="b")
        assert a.fingerprint() == b.fingerprint()

    def test_rejects_unknown_building_type(self):
        with pytest.raises(PydanticValidationError):
            MoveTimeRequest.model_validate({"originType": "castle"})


class TestMoveTimeEstimate:
    """Tests for MoveTimeEstimate invariants."""

    def _estimate(self, **overrides):
        data = dict(hours_standard=4, hours_conservative=5, recommended_crew=3, crew_rate=230)
        data.update(overrides)
        return MoveTimeEstimate(**data)

    def test_minimum_hours_enforced(self):
        estimate = self._estimate(hours_standard=1.2, hours_conservative=2)

        assert estimate.hours_standard == 3
        assert estimate.hours_conservative == 3

    def test_conservative_never_below_standard(self):
        estimate = self._estimate(hours_standard=6, hours_conservative=4)
        assert estimate.hours_conservative == 6

    def test_invalid_crew_rejected(self):
        with pytest.raises(PydanticValidationError):
            self._estimate(recommended_crew=7)

    def test_response_aliases(self):
        response = self._estimate().to_response()

        assert response["hoursStandard"] == 4
        assert response["recommendedCrew"] == 3
        assert response["source"] == "model"
        assert response["degraded"] is False


class TestEstimate:
    """Tests for the compact Estimate."""

    def test_from_move_time(self):
        move_time = MoveTimeEstimate(
            hours_standard=2, hours_conservative=4, recommended_crew=4,
            crew_rate=250, base_total=750
        )
        request = MoveTimeRequest(travel_time=40, stairs_destination=True)

        estimate = Estimate.from_move_time(move_time, request, safety_pct=10)

        assert estimate.crew == 4
        assert estimate.hours == 3
        assert estimate.travel_mins == 40
        assert estimate.stairs is True
        assert estimate.elevator is False
        assert estimate.to_response()["safetyPct"] == 10

    def test_rate_is_per_mover(self):
        move_time = MoveTimeEstimate(
            hours_standard=5, hours_conservative=6, recommended_crew=4,
            crew_rate=250, base_total=1250
        )

        estimate = Estimate.from_move_time(move_time, MoveTimeRequest(), safety_pct=10)

        assert estimate.rate == 62.5
        assert estimate.total == estimate.hours * estimate.rate * estimate.crew


class TestPricingPolicy:
    """Tests for PricingPolicy overrides."""

    def test_overrides_accept_camel_and_snake_case(self):
        policy = PricingPolicy().with_overrides({"taxRate": 0.05, "piano_handling_price": 350})

        assert policy.tax_rate == 0.05
        assert policy.piano_handling_price == 350

    def test_partial_crew_rates_merge_with_defaults(self):
        policy = PricingPolicy().with_overrides({"crewRates": {"4": 275}})

        assert policy.crew_rate(4) == 275
        assert policy.crew_rate(2) == 150
        assert policy.crew_rate(6) == 400
        assert sorted(policy.crew_rates) == [2, 3, 4, 5, 6]

    def test_missing_crew_size_rejected(self):
        with pytest.raises(PydanticValidationError):
            PricingPolicy(crew_rates={2: 150, 3: 230})

    def test_conservative_buffer_below_standard_rejected(self):
        with pytest.raises(PydanticValidationError):
            PricingPolicy(standard_buffer_pct=0.3, conservative_buffer_pct=0.2)


class TestDetectionResult:
    """Tests for the detection response shape."""

    def test_to_response(self):
        result = DetectionResult(
            detections=[Detection(label="Sofa", room="living_room")],
            classification=RoomClassification(rooms={"living_room": ["a.jpg", "b.jpg"]}),
            property_context=PropertyContext(bedrooms=2),
            total_photos=2,
        )

        response = result.to_response()

        assert response["metadata"]["totalRooms"] == 1
        assert response["metadata"]["totalPhotos"] == 2
        assert response["metadata"]["rooms"] == ["living_room"]
        assert response["metadata"]["propertyContext"]["bedrooms"] == 2
        assert response["validation"] == {"anomalies": [], "warnings": [], "stats": {}}
