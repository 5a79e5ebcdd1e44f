"""Volume aggregation for MovSense.

Resolves per-unit cubic feet and weight for every detection and sums the
totals. The returned ``VolumeTotals`` is the single source of truth for the
validator, estimator, upsell engine and truck planner.

Precedence, applied per item and per field:

cubic feet
    1. detected value > 0 (``vision``)
    2. cube sheet lookup by label (``lookup_table``)
    3. 0 with a warning (``default``)

weight
    1. detected value > 0 (``vision``)
    2. resolved cubic feet x 7 lb (``heuristic``)
    3. 0 with a warning (``default``)
"""

from typing import Iterable

import structlog

from models.inventory import Detection, ValueSource
from models.quote import ResolvedItem, VolumeTotals
from services.cube_sheet import lookup_cubic_feet
from utils.numbers import positive

logger = structlog.get_logger()


POUNDS_PER_CUBIC_FOOT = 7


def resolve_item(detection: Detection) -> ResolvedItem:
    """Resolve one detection's per-unit volume and weight."""
    cubic_feet = positive(detection.cubic_feet)
    if cubic_feet is not None:
        cf_source = ValueSource.VISION
    else:
        cubic_feet = lookup_cubic_feet(detection.label, detection.size)
        cf_source = ValueSource.LOOKUP_TABLE if cubic_feet else ValueSource.DEFAULT
        cubic_feet = cubic_feet or 0.0

    weight = positive(detection.weight)
    if weight is not None:
        weight_source = ValueSource.VISION
    elif cubic_feet > 0:
        weight = round(cubic_feet * POUNDS_PER_CUBIC_FOOT, 1)
        weight_source = ValueSource.HEURISTIC
    else:
        weight = 0.0
        weight_source = ValueSource.DEFAULT

    return ResolvedItem(
        detection=detection,
        cubic_feet=cubic_feet,
        weight=weight,
        cubic_feet_source=cf_source,
        weight_source=weight_source,
    )


def aggregate_volume(detections: Iterable[Detection]) -> VolumeTotals:
    """Resolve every detection and sum ``value x qty`` for both fields."""
    items = []
    warnings = []
    total_cubic_feet = 0.0
    total_weight = 0.0

    for detection in detections:
        item = resolve_item(detection)
        items.append(item)

        if item.cubic_feet_source == ValueSource.DEFAULT.value:
            warnings.append(
                f"No volume known for '{detection.label}' (qty {detection.qty}); counted as 0 cu ft"
            )
        if item.weight_source == ValueSource.DEFAULT.value:
            warnings.append(
                f"No weight known for '{detection.label}' (qty {detection.qty}); counted as 0 lb"
            )

        total_cubic_feet += item.total_cubic_feet
        total_weight += item.total_weight

    if warnings:
        logger.warning("volume_fallback_used", count=len(warnings))

    totals = VolumeTotals(
        items=items,
        total_cubic_feet=round(total_cubic_feet, 1),
        total_weight=round(total_weight, 1),
        warnings=warnings,
        exact_cubic_feet=total_cubic_feet,
    )
    logger.debug(
        "volume_aggregated",
        items=len(items),
        total_cubic_feet=totals.total_cubic_feet,
        total_weight=totals.total_weight,
    )
    return totals
