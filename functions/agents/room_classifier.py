"""Room Classifier Agent for MovSense.

Groups listing photos into named rooms before per-room detection. Every input
photo ends up in exactly one room; photos the model did not place go to the
``Unclassified`` bucket, which is always last.
"""

from typing import Any, Dict, List, Optional, Sequence
import structlog

from agents.base_agent import BaseAgent
from config.errors import Stage, ValidationError
from config.settings import settings
from models.inventory import PropertyContext, RoomClassification, UNCLASSIFIED_ROOM
from services.llm_service import LLMService

logger = structlog.get_logger()


ROOM_CLASSIFIER_SYSTEM_PROMPT = "You are a real estate photo classifier."

ROOM_CLASSIFIER_PROMPT = """Analyze these {count} property photos and classify each by room type.

PROPERTY CONTEXT:
{context}{known_rooms}

INSTRUCTIONS:
1. Look at each photo and determine which room it shows
2. Use these room categories:
   - living_room, family_room, dining_room, kitchen
   - bedroom_1, bedroom_2, bedroom_3, etc. (based on property bedrooms)
   - bathroom_1, bathroom_2, etc. (based on property bathrooms)
   - office, laundry, garage, outdoor, entryway, hallway, other
3. If multiple photos show the same room from different angles, group them together
4. Number bedrooms and bathrooms sequentially
5. If you see {bedrooms} bedrooms, create exactly {bedrooms_target} bedroom categories
6. Every photo index must appear exactly once

Return ONLY a JSON object mapping room names to arrays of photo indices (0-{last_index} for this batch):
{{
  "living_room": [0, 3],
  "kitchen": [1],
  "bedroom_1": [2, 4]
}}"""


class RoomClassifierAgent(BaseAgent):
    """Classifies photos by room in fixed-size batches.

    Room names seen in earlier batches are passed to later ones so the same
    room keeps the same name across batches.
    """

    stage = Stage.ROOM_CLASSIFICATION

    def __init__(
        self,
        llm_service: Optional[LLMService] = None,
        batch_size: Optional[int] = None
    ):
        super().__init__(
            name="room_classifier",
            llm_service=llm_service or LLMService(model=settings.vision_model)
        )
        self.batch_size = batch_size or settings.classification_batch_size

    async def classify(
        self,
        photo_urls: Sequence[str],
        context: Optional[PropertyContext] = None
    ) -> RoomClassification:
        """Group ``photo_urls`` into rooms.

        Raises:
            ValidationError: If ``photo_urls`` is empty.
            ModelCallError: If any batch call fails or returns unusable output.
        """
        if not photo_urls:
            raise ValidationError("photoUrls array is required", field="photoUrls")
        context = context or PropertyContext()
        self.start_run()

        photos = list(photo_urls)
        assignments: Dict[str, List[int]] = {}
        assigned = set()

        for offset in range(0, len(photos), self.batch_size):
            batch = photos[offset:offset + self.batch_size]
            raw = await self._classify_batch(batch, context, list(assignments.keys()))

            for room, local_indices in raw.items():
                for local in local_indices:
                    index = offset + local
                    if index in assigned:
                        continue
                    assignments.setdefault(room, []).append(index)
                    assigned.add(index)

        rooms: Dict[str, List[str]] = {
            room: [photos[i] for i in indices]
            for room, indices in assignments.items()
            if indices
        }

        leftover = [photos[i] for i in range(len(photos)) if i not in assigned]
        if leftover:
            logger.warning("photos_unclassified", count=len(leftover))
            rooms.pop(UNCLASSIFIED_ROOM, None)
            unclassified_indices = assignments.get(UNCLASSIFIED_ROOM, [])
            rooms[UNCLASSIFIED_ROOM] = [photos[i] for i in unclassified_indices] + leftover
        elif UNCLASSIFIED_ROOM in rooms:
            # Keep the bucket last
            rooms[UNCLASSIFIED_ROOM] = rooms.pop(UNCLASSIFIED_ROOM)

        classification = RoomClassification(rooms=rooms)
        logger.info(
            "rooms_classified",
            rooms=classification.room_names,
            photos=classification.photo_count,
            duration_ms=self.duration_ms
        )
        return classification

    async def _classify_batch(
        self,
        batch: List[str],
        context: PropertyContext,
        known_rooms: List[str]
    ) -> Any:
        known_rooms_text = ""
        if known_rooms:
            known_rooms_text = (
                "\n\nKNOWN ROOMS FROM PREVIOUS PHOTOS:\n"
                f"{', '.join(known_rooms)}\n"
                "If any photos in this batch show the same rooms as above, USE THE SAME ROOM NAMES."
            )

        prompt = ROOM_CLASSIFIER_PROMPT.format(
            count=len(batch),
            context="\n".join(context.describe()),
            known_rooms=known_rooms_text,
            bedrooms=context.bedrooms or "multiple",
            bedrooms_target=context.bedrooms or "that many",
            last_index=len(batch) - 1,
        )

        logger.debug("room_batch_classifying", photos=len(batch), known_rooms=len(known_rooms))
        raw = await self.call_vision_json(
            ROOM_CLASSIFIER_SYSTEM_PROMPT,
            prompt,
            batch,
            detail="low",
            details={"batch_size": len(batch)}
        )

        if not isinstance(raw, dict):
            raise self.invalid_output(
                "Room classification must be a JSON object of room -> photo indices",
                details={"output_type": type(raw).__name__}
            )
        return self._valid_indices(raw, len(batch))

    @staticmethod
    def _valid_indices(raw: Dict[str, Any], batch_len: int) -> Dict[str, List[int]]:
        """Keep only integer indices inside the batch."""
        cleaned: Dict[str, List[int]] = {}
        for room, indices in raw.items():
            name = str(room).strip()
            if not name or not isinstance(indices, list):
                continue
            valid = [
                i for i in indices
                if isinstance(i, int) and not isinstance(i, bool) and 0 <= i < batch_len
            ]
            if len(valid) != len(indices):
                logger.warning("room_indices_ignored", room=name, ignored=len(indices) - len(valid))
            cleaned.setdefault(name, []).extend(valid)
        return cleaned
