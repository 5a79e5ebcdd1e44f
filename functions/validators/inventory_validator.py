"""Inventory sanity checks for MovSense.

Applies a closed set of rules to a detection list and reports anomalies and
warnings. Advisory only: detections are never modified, removed or reordered.
"""

from collections import Counter, defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from models.inventory import Detection, PropertyContext, ValidationResult
from models.quote import VolumeTotals
from services.volume_aggregator import aggregate_volume

logger = structlog.get_logger(__name__)


BED_EXCLUDE = ("sofa", "couch", "bedside", "bedding", "nightstand", "bedspread")

# Expected furnished volume as a fraction of square footage
VOLUME_MIN_PER_SQFT = 0.15
VOLUME_MAX_PER_SQFT = 0.50
VOLUME_TOLERANCE = 1.5

MAX_PER_ROOM = {
    "refrigerators": (("refrigerator", "fridge"), 2),
    "stoves": (("stove", "oven", "range"), 2),
}


def _is_bed(label: str) -> bool:
    lowered = label.lower()
    return "bed" in lowered and not any(x in lowered for x in BED_EXCLUDE)


def _room_of(detection: Detection) -> str:
    return detection.room or "unknown"


def _check_beds(
    detections: Sequence[Detection],
    context: PropertyContext,
    result: ValidationResult
) -> None:
    beds = sum(d.qty for d in detections if _is_bed(d.label))
    result.stats["bedsDetected"] = beds
    result.stats["expectedBedrooms"] = context.bedrooms

    if not context.bedrooms:
        return
    if beds > context.bedrooms + 1:
        result.anomalies.append(
            f"Detected {beds} beds, but property has {context.bedrooms} bedrooms. This seems high."
        )
    elif beds < context.bedrooms - 1:
        result.warnings.append(
            f"Detected {beds} beds, but property has {context.bedrooms} bedrooms. "
            "Some bedrooms may be unfurnished."
        )


def _check_volume(
    volume: VolumeTotals,
    context: PropertyContext,
    result: ValidationResult
) -> None:
    total = volume.total_cubic_feet
    result.stats["totalCubicFeet"] = total
    if not context.sqft:
        return

    expected_min = context.sqft * VOLUME_MIN_PER_SQFT
    expected_max = context.sqft * VOLUME_MAX_PER_SQFT
    result.stats["expectedVolumeRange"] = f"{round(expected_min)}-{round(expected_max)} cu ft"

    if total > expected_max * VOLUME_TOLERANCE:
        result.anomalies.append(
            f"Total volume ({round(total)} cu ft) seems very high for a "
            f"{context.sqft} sq ft property. Please review counts."
        )


def _check_room_duplicates(detections: Sequence[Detection], result: ValidationResult) -> None:
    counts: Dict[str, Counter] = defaultdict(Counter)
    for detection in detections:
        label = detection.label.lower()
        for kind, (keywords, _) in MAX_PER_ROOM.items():
            if any(k in label for k in keywords):
                counts[_room_of(detection)][kind] += detection.qty

    for room, kinds in counts.items():
        for kind, count in kinds.items():
            limit = MAX_PER_ROOM[kind][1]
            if count > limit:
                result.anomalies.append(f"{count} {kind} detected in {room} - possible duplicate")


def _check_contradictions(detections: Sequence[Detection], result: ValidationResult) -> None:
    sizes: Dict[Tuple[str, str], List[Optional[str]]] = defaultdict(list)
    entries: Counter = Counter()

    for detection in detections:
        key = (_room_of(detection), detection.label.strip().lower())
        sizes[key].append((detection.size or "").strip().lower() or None)
        entries[(key, detection.qty, detection.size, detection.notes)] += 1

    for (room, label), listed in sizes.items():
        distinct = {s for s in listed if s}
        if len(listed) > 1 and len(distinct) > 1:
            result.anomalies.append(
                f"'{label}' in {room} is listed with different sizes ({', '.join(sorted(distinct))}) - "
                "possibly the same item seen from different angles"
            )

    for ((room, label), _, _, _), count in entries.items():
        if count > 1:
            result.anomalies.append(
                f"'{label}' in {room} is listed {count} times with identical details - possible double count"
            )


def _check_zero_quantities(detections: Sequence[Detection], result: ValidationResult) -> None:
    for detection in detections:
        if detection.qty == 0:
            result.warnings.append(
                f"'{detection.label}' in {_room_of(detection)} has quantity 0 and adds nothing to the move"
            )


def validate_inventory(
    detections: Sequence[Detection],
    context: Optional[PropertyContext] = None,
    volume: Optional[VolumeTotals] = None
) -> ValidationResult:
    """Run every inventory rule and return the advisory result.

    Args:
        detections: Full flat detection list (read only).
        context: Property attributes the inventory is checked against.
        volume: Aggregated totals; computed from ``detections`` when omitted.

    Returns:
        ValidationResult with anomalies, warnings and stats
    """
    context = context or PropertyContext()
    # Rules only read from this copy
    items = [d.model_copy(deep=True) for d in detections]
    volume = volume or aggregate_volume(items)

    result = ValidationResult()
    _check_beds(items, context, result)
    _check_volume(volume, context, result)
    _check_room_duplicates(items, result)
    _check_contradictions(items, result)
    _check_zero_quantities(items, result)
    result.stats["totalItems"] = sum(d.qty for d in items)

    if result.anomalies:
        logger.warning("inventory_anomalies", count=len(result.anomalies), anomalies=result.anomalies)
    else:
        logger.info("inventory_validated", items=len(items), warnings=len(result.warnings))
    return result
