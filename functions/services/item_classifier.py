"""Item category classifier for MovSense.

One rule table maps detection text to category tags. Detection-time tagging,
upsell derivation and specialty surcharge pricing all read from it, so a
keyword change applies everywhere at once.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Set, Tuple

from models.inventory import Detection
from services.cube_sheet import parse_inches


# Tags
TV = "tv"
TV_WALL_MOUNTED = "tv_wall_mounted"
TV_LARGE = "tv_large"
FRAGILE = "fragile"
PIANO = "piano"
PIANO_GRAND = "piano_grand"
POOL_TABLE = "pool_table"
SAFE = "safe"
SAFE_LARGE = "safe_large"
GYM = "gym"
APPLIANCE = "appliance"


@dataclass(frozen=True)
class CategoryRule:
    """Case-insensitive substring rule for one tag."""
    tag: str
    keywords: Tuple[str, ...]
    exclude: Tuple[str, ...] = ()
    include_context: bool = False  # also search notes and room

    def matches(self, text: str) -> bool:
        if not any(k in text for k in self.keywords):
            return False
        return not any(x in text for x in self.exclude)


CATEGORY_RULES: List[CategoryRule] = [
    CategoryRule(TV, ("tv", "television", "flat screen", "flat-screen"),
                 exclude=("tv stand", "tv console", "tv cabinet", "tv unit")),
    CategoryRule(FRAGILE, ("art", "picture", "painting", "mirror", "glass"),
                 exclude=("cart", "party", "smart")),
    CategoryRule(PIANO, ("piano",)),
    CategoryRule(POOL_TABLE, ("pool table", "billiard")),
    CategoryRule(SAFE, ("safe",), exclude=("safety",)),
    CategoryRule(GYM, ("treadmill", "exercise", "gym", "elliptical", "weight bench")),
    CategoryRule(APPLIANCE, ("refrigerator", "fridge", "freezer", "washer", "washing machine",
                             "dryer", "dishwasher", "stove", "oven")),
]

WALL_MOUNT_INDICATORS = ("wall mount", "wall-mount", "wall mounted", "wall-mounted", "mounted")

GRAND_PIANO_INDICATORS = ("grand",)
LARGE_SAFE_INDICATORS = ("large", "gun safe", "300", "600")


def classify(
    detection: Detection,
    tv_large_min_inches: int = 60,
    safe_large_min_weight: float = 300,
) -> Set[str]:
    """Category tags for one detection."""
    label_text = detection.search_text()
    context_text = detection.search_text(include_context=True)

    tags = {
        rule.tag for rule in CATEGORY_RULES
        if rule.matches(context_text if rule.include_context else label_text)
    }

    if TV in tags:
        if any(marker in context_text for marker in WALL_MOUNT_INDICATORS):
            tags.add(TV_WALL_MOUNTED)
        inches = parse_inches(detection.size, detection.label, detection.notes)
        if inches is not None and inches >= tv_large_min_inches:
            tags.add(TV_LARGE)

    if PIANO in tags and any(marker in label_text for marker in GRAND_PIANO_INDICATORS):
        tags.add(PIANO_GRAND)

    if SAFE in tags and _is_large_safe(detection, safe_large_min_weight):
        tags.add(SAFE_LARGE)

    return tags


def _is_large_safe(detection: Detection, min_weight: float) -> bool:
    if detection.weight is not None:
        return detection.weight >= min_weight
    text = " ".join(p for p in (detection.label, detection.size) if p).lower()
    return any(marker in text for marker in LARGE_SAFE_INDICATORS)


def tag_detection(detection: Detection, **thresholds) -> Detection:
    """Copy of ``detection`` with its tags set from the rule table."""
    tags = sorted(classify(detection, **thresholds))
    return detection.model_copy(update={"tags": tags})


def tag_detections(detections: Iterable[Detection], **thresholds) -> List[Detection]:
    return [tag_detection(d, **thresholds) for d in detections]


def has_tag(detection: Detection, tag: str) -> bool:
    # Untagged detections (e.g. from a request body) are classified on demand
    tags = detection.tags or classify(detection)
    return tag in tags


def count_with_tag(detections: Iterable[Detection], tag: str) -> int:
    """Total quantity of detections carrying ``tag``."""
    return sum(d.qty for d in detections if has_tag(d, tag))


def specialty_variant(
    category: str,
    text: str = "",
    weight: Optional[float] = None,
    safe_large_min_weight: float = 300,
) -> str:
    """Policy key for a specialty category, e.g. ``piano`` -> ``piano_grand``."""
    lowered = (text or "").lower()
    if category == PIANO:
        if any(marker in lowered for marker in GRAND_PIANO_INDICATORS):
            return "piano_grand"
        return "piano_upright"
    if category == SAFE:
        if weight is not None:
            return "safe_large" if weight >= safe_large_min_weight else "safe_small"
        if any(marker in lowered for marker in LARGE_SAFE_INDICATORS):
            return "safe_large"
        return "safe_small"
    return category
