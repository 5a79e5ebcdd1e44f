"""Unit tests for RoomDetectorAgent."""

import asyncio

import pytest
from unittest.mock import AsyncMock

from agents.room_detector import BATHROOM_RULES, BEDROOM_RULES, RoomDetectorAgent
from config.errors import ErrorCode, ModelCallError, Stage
from models.inventory import PropertyContext, RoomClassification
from services import item_classifier as items
from tests.fixtures.mock_detection_data import (
    BEDROOM_OUTPUT,
    KITCHEN_OUTPUT,
    LIVING_ROOM_OUTPUT,
)


ROOM_OUTPUTS = {
    "living.jpg": LIVING_ROOM_OUTPUT,
    "kitchen.jpg": KITCHEN_OUTPUT,
    "bedroom.jpg": BEDROOM_OUTPUT,
}

# Earlier rooms take longest, so completion order is the reverse of input order
ROOM_DELAYS = {"living.jpg": 0.05, "kitchen.jpg": 0.02, "bedroom.jpg": 0.0}


@pytest.fixture
def classification():
    return RoomClassification(rooms={
        "living_room": ["living.jpg"],
        "kitchen": ["kitchen.jpg"],
        "bedroom_1": ["bedroom.jpg"],
    })


@pytest.fixture
def detector(fake_llm):
    return RoomDetectorAgent(llm_service=fake_llm, concurrency=3)


def _delayed_outputs(failing=None):
    """Side effect returning each room's canned output after its delay."""
    started = []

    async def _side_effect(system_prompt, prompt, image_urls, detail="auto"):
        photo = image_urls[0]
        started.append(photo)
        await asyncio.sleep(ROOM_DELAYS.get(photo, 0))
        if photo == failing:
            raise ModelCallError("LLM generation failed: vision error")
        return {"content": ROOM_OUTPUTS[photo], "tokens_used": 10}

    return _side_effect, started


class TestDetectRoom:
    """Tests for detect_room."""

    @pytest.mark.asyncio
    async def test_detections_tagged_and_roomed(self, detector, fake_llm, llm_result_factory):
        fake_llm.generate_vision_json = AsyncMock(return_value=llm_result_factory(LIVING_ROOM_OUTPUT))

        detections = await detector.detect_room("living_room", ["living.jpg"])

        assert [d.label for d in detections] == [
            "Large L-Shaped Sectional Sofa", "65 inch TV", "Coffee Table"
        ]
        assert all(d.room == "living_room" for d in detections)
        assert items.TV_WALL_MOUNTED in detections[1].tags
        assert items.TV_LARGE in detections[1].tags

    @pytest.mark.asyncio
    async def test_items_wrapper_accepted(self, detector, fake_llm, llm_result_factory):
        fake_llm.generate_vision_json = AsyncMock(return_value=llm_result_factory(KITCHEN_OUTPUT))

        detections = await detector.detect_room("kitchen", ["kitchen.jpg"])

        assert [d.qty for d in detections] == [1, 6]
        assert items.APPLIANCE in detections[0].tags

    @pytest.mark.asyncio
    async def test_entries_without_label_skipped(self, detector, fake_llm, llm_result_factory):
        fake_llm.generate_vision_json = AsyncMock(return_value=llm_result_factory(BEDROOM_OUTPUT))

        detections = await detector.detect_room("bedroom_1", ["bedroom.jpg"])

        assert [d.label for d in detections] == ["Queen Size Platform Bed", "Dresser"]

    @pytest.mark.asyncio
    async def test_unusable_output_is_invalid(self, detector, fake_llm, llm_result_factory):
        fake_llm.generate_vision_json = AsyncMock(return_value=llm_result_factory({"sofa": 1}))

        with pytest.raises(ModelCallError) as exc_info:
            await detector.detect_room("den", ["den.jpg"])

        assert exc_info.value.code == ErrorCode.MODEL_INVALID_OUTPUT
        assert exc_info.value.stage == Stage.ROOM_DETECTION
        assert exc_info.value.details["room"] == "den"

    @pytest.mark.asyncio
    async def test_no_photos_no_call(self, detector, fake_llm):
        assert await detector.detect_room("den", []) == []
        fake_llm.generate_vision_json.assert_not_called()

    def test_room_rules_in_prompt(self, detector):
        context = PropertyContext(bedrooms=2)

        assert BEDROOM_RULES in detector.build_prompt("bedroom_2", 3, context)
        assert BATHROOM_RULES in detector.build_prompt("bathroom_1", 1, context)
        prompt = detector.build_prompt("living_room", 2, context)
        assert "ROOM: LIVING ROOM" in prompt
        assert "- Total Bedrooms: 2" in prompt


class TestDetectAll:
    """Tests for detect_all."""

    @pytest.mark.asyncio
    async def test_results_follow_classification_order(self, detector, fake_llm, classification):
        side_effect, _ = _delayed_outputs()
        fake_llm.generate_vision_json = AsyncMock(side_effect=side_effect)

        detections = await detector.detect_all(classification)

        rooms = [d.room for d in detections]
        assert rooms == ["living_room"] * 3 + ["kitchen"] * 2 + ["bedroom_1"] * 2
        assert detector.tokens_used == 30

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self, fake_llm, classification):
        detector = RoomDetectorAgent(llm_service=fake_llm, concurrency=1)
        side_effect, started = _delayed_outputs()
        fake_llm.generate_vision_json = AsyncMock(side_effect=side_effect)

        detections = await detector.detect_all(classification)

        assert started == ["living.jpg", "kitchen.jpg", "bedroom.jpg"]
        assert len(detections) == 7

    @pytest.mark.asyncio
    async def test_failure_propagates_and_cancels(self, fake_llm, classification):
        detector = RoomDetectorAgent(llm_service=fake_llm, concurrency=3)
        side_effect, _ = _delayed_outputs(failing="bedroom.jpg")
        fake_llm.generate_vision_json = AsyncMock(side_effect=side_effect)

        with pytest.raises(ModelCallError) as exc_info:
            await detector.detect_all(classification)

        assert exc_info.value.stage == Stage.ROOM_DETECTION
        # No task from the failed run is left pending
        pending = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
        assert pending == []

    @pytest.mark.asyncio
    async def test_empty_classification(self, detector):
        assert await detector.detect_all(RoomClassification()) == []
