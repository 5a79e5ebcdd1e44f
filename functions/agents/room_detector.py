"""Room Detector Agent for MovSense.

Detects movable inventory in the photos of one room. ``detect_all`` runs rooms
concurrently and concatenates the results in classification order.
"""

import asyncio
from typing import Any, List, Optional, Sequence
import structlog

from agents.base_agent import BaseAgent
from config.errors import Stage
from config.settings import settings
from models.inventory import Detection, PropertyContext, RoomClassification
from services.item_classifier import tag_detections
from services.llm_service import LLMService

logger = structlog.get_logger()


ROOM_DETECTOR_SYSTEM_PROMPT = "You are a professional MOVING COMPANY inventory specialist analyzing a specific room."

BEDROOM_RULES = """

BEDROOM RULES:
1. ONE BED PER BEDROOM unless you clearly see bunk beds or multiple separate beds
2. If you see the same bed from different angles, COUNT IT ONLY ONCE
3. If you are uncertain about bed size (King vs Queen vs Twin), choose the most confident size
4. Do not list "King Bed" in one photo and "Queen Bed" in another; they are likely the same bed
"""

BATHROOM_RULES = """

BATHROOM RULES:
1. Do not count built-in vanities, medicine cabinets or built-in shelving
2. Do not count toilets, sinks, bathtubs or showers
3. Only count movable items like hampers, storage carts and freestanding shelves
"""

ROOM_DETECTOR_PROMPT = """PROPERTY CONTEXT:
{context}

ROOM: {room_title}
PHOTOS: {photo_count} photo(s) showing this room from different angles

These photos show THE SAME ROOM from different camera angles.
DO NOT COUNT THE SAME ITEM MULTIPLE TIMES just because it appears in multiple photos.{room_rules}

DETECT ONLY MOVABLE FURNITURE & ITEMS:
- SEATING: Sofas, Chairs, Ottomans, Benches, Recliners
- TABLES: Dining Tables, Coffee Tables, End Tables, Desks, Console Tables
- BEDS: Beds, Mattresses, Box Springs
- STORAGE: Dressers, Nightstands, Bookshelves, Wardrobes, Chests
- APPLIANCES: Refrigerators, Stoves, Microwaves, Washers, Dryers (freestanding only)
- ELECTRONICS: TVs (note in "notes" if wall-mounted), Computers, Sound Systems
- SPECIALTY: Pianos, Safes, Pool Tables, Exercise Equipment
- DECOR: Floor Lamps, Table Lamps, Area Rugs, Plants, Mirrors, Framed Art

DO NOT DETECT (FIXED/BUILT-IN):
- Built-in cabinets, shelving, appliances, countertops and islands
- Chandeliers, ceiling fans, ceiling lights
- Toilets, sinks, bathtubs, showers

REQUIREMENTS:
1. COUNT EACH UNIQUE ITEM ONLY ONCE
2. BE SPECIFIC: "Large L-Shaped Sectional Sofa", "Queen Size Platform Bed"
3. INCLUDE SIZE: "60 inch TV", "8-foot Dining Table", "Queen"
4. ESTIMATE CUBIC FEET per unit for moving trucks

Return ONLY a JSON array:
[
  {{
    "label": "Queen Size Platform Bed",
    "qty": 1,
    "confidence": 0.92,
    "notes": "Modern platform bed with headboard",
    "room": "{room}",
    "size": "Queen (60x80 inches)",
    "cubicFeet": 50
  }}
]"""


class RoomDetectorAgent(BaseAgent):
    """Per-room inventory detection with bounded concurrency."""

    stage = Stage.ROOM_DETECTION

    def __init__(
        self,
        llm_service: Optional[LLMService] = None,
        concurrency: Optional[int] = None
    ):
        super().__init__(
            name="room_detector",
            llm_service=llm_service or LLMService(model=settings.vision_model)
        )
        self.concurrency = concurrency or settings.room_detection_concurrency

    def build_prompt(self, room: str, photo_count: int, context: PropertyContext) -> str:
        lowered = room.lower()
        room_rules = ""
        if "bedroom" in lowered:
            room_rules = BEDROOM_RULES
        elif "bathroom" in lowered:
            room_rules = BATHROOM_RULES

        return ROOM_DETECTOR_PROMPT.format(
            context="\n".join(context.describe()),
            room_title=room.replace("_", " ").upper(),
            photo_count=photo_count,
            room_rules=room_rules,
            room=room,
        )

    async def detect_room(
        self,
        room: str,
        photos: Sequence[str],
        context: Optional[PropertyContext] = None
    ) -> List[Detection]:
        """Detections for one room, in model output order.

        Raises:
            ModelCallError: If the call fails or the output is not a list of items.
        """
        context = context or PropertyContext()
        if not photos:
            return []

        raw = await self.call_vision_json(
            ROOM_DETECTOR_SYSTEM_PROMPT,
            self.build_prompt(room, len(photos), context),
            list(photos),
            detail="high",
            details={"room": room}
        )
        entries = self._entries(raw, room)

        detections = []
        skipped = 0
        for entry in entries:
            detection = Detection.from_model_output(entry, default_room=room)
            if detection is None:
                skipped += 1
                continue
            detections.append(detection)

        if skipped:
            logger.warning("detections_skipped", room=room, skipped=skipped)

        detections = tag_detections(detections)
        logger.info("room_detected", room=room, photos=len(photos), items=len(detections))
        return detections

    def _entries(self, raw: Any, room: str) -> List[Any]:
        if isinstance(raw, list):
            return raw
        if isinstance(raw, dict):
            for key in ("items", "detections"):
                if isinstance(raw.get(key), list):
                    return raw[key]
        raise self.invalid_output(
            "Room detection must be a JSON array of items",
            details={"room": room, "output_type": type(raw).__name__}
        )

    async def detect_all(
        self,
        classification: RoomClassification,
        context: Optional[PropertyContext] = None
    ) -> List[Detection]:
        """Detect every room concurrently; results follow classification order.

        The first room failure cancels the rooms still running and propagates.
        """
        context = context or PropertyContext()
        self.start_run()
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _bounded(room: str, photos: List[str]) -> List[Detection]:
            async with semaphore:
                return await self.detect_room(room, photos, context)

        tasks = [
            asyncio.ensure_future(_bounded(room, photos))
            for room, photos in classification.items()
        ]
        try:
            per_room = await asyncio.gather(*tasks)
        except Exception:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        detections: List[Detection] = []
        for room_detections in per_room:
            detections.extend(room_detections)

        logger.info(
            "all_rooms_detected",
            rooms=len(classification),
            items=len(detections),
            duration_ms=self.duration_ms
        )
        return detections
