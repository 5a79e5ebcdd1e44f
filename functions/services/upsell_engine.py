"""Upsell engine for MovSense.

Builds the upsell list for a quote in four steps: base catalog, detected item
categories, tenant custom upsells, then the estimator's own proposals and
specialty surcharges. At most one ``insurance-*`` upsell is ever selected.
"""

from typing import Iterable, List, Optional, Sequence

import structlog

from models.estimate import MoveTimeEstimate
from models.inventory import Detection
from models.pricing import PricingPolicy
from models.quote import CustomUpsell, Upsell
from services import item_classifier as items

logger = structlog.get_logger()


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'s' if count != 1 else ''}"


# =============================================================================
# STEP 1 - BASE CATALOG
# =============================================================================


def base_catalog(
    detections: Sequence[Detection],
    estimate_total: float,
    policy: PricingPolicy
) -> List[Upsell]:
    """Insurance tiers plus per-item packing services."""
    upsells = []
    for index, tier in enumerate(policy.insurance_tiers):
        threshold = tier.recommend_above_total
        upsells.append(Upsell(
            id=tier.id,
            name=tier.name,
            description=tier.description,
            price=tier.price,
            recommended=threshold is not None and estimate_total >= threshold,
            selected=index == 0,
        ))

    item_count = sum(d.qty for d in detections)
    upsells.extend([
        Upsell(
            id="packing",
            name="Packing Service",
            description="Professional packing of your items",
            price=item_count * policy.packing_price_per_item,
            recommended=len(detections) > policy.packing_recommend_min_items,
        ),
        Upsell(
            id="unpacking",
            name="Unpacking Service",
            description="We unpack and organize at your new location",
            price=item_count * policy.unpacking_price_per_item,
        ),
        Upsell(
            id="boxes",
            name="Boxes & Packing Materials",
            description="Moving boxes, tape and wrapping delivered before your move",
            price=item_count * policy.boxes_price_per_item,
        ),
    ])
    return upsells


# =============================================================================
# STEP 2 - CATEGORY UPSELLS
# =============================================================================


def category_upsells(detections: Sequence[Detection], policy: PricingPolicy) -> List[Upsell]:
    """Upsells derived from detected item categories."""
    upsells = []

    tv_count = items.count_with_tag(detections, items.TV)
    if tv_count:
        upsells.append(Upsell(
            id="tv-boxes",
            name=f"TV Boxes ({_plural(tv_count, 'TV')})",
            description="Specialty boxes and protective wrapping required for safe transport",
            price=tv_count * policy.tv_box_price,
            recommended=True,
            selected=True,
        ))

    mounted_count = items.count_with_tag(detections, items.TV_WALL_MOUNTED)
    if mounted_count:
        upsells.append(Upsell(
            id="tv-disassembly",
            name=f"TV Wall-Mount Removal ({_plural(mounted_count, 'TV')})",
            description="Remove wall-mounted TVs and brackets before loading",
            price=mounted_count * policy.tv_disassembly_price,
            recommended=True,
            selected=False,
        ))

    fragile_count = items.count_with_tag(detections, items.FRAGILE)
    if fragile_count:
        upsells.append(Upsell(
            id="fragile-packing",
            name=f"Fragile Item Packing ({_plural(fragile_count, 'item')})",
            description="Special wrapping and cushioning for art, mirrors and glass",
            price=fragile_count * policy.fragile_packing_price,
            recommended=True,
        ))

    piano_count = items.count_with_tag(detections, items.PIANO)
    if piano_count:
        upsells.append(Upsell(
            id="piano-handling",
            name=f"Piano Handling ({_plural(piano_count, 'piano')})",
            description="Piano board, padding and an extra-trained crew",
            price=piano_count * policy.piano_handling_price,
            recommended=True,
            selected=True,
        ))

    pool_count = items.count_with_tag(detections, items.POOL_TABLE)
    if pool_count:
        upsells.append(Upsell(
            id="pool-table-handling",
            name=f"Pool Table Handling ({_plural(pool_count, 'table')})",
            description="Disassembly, slate crating and reassembly",
            price=pool_count * policy.pool_table_handling_price,
            recommended=True,
        ))

    safe_count = items.count_with_tag(detections, items.SAFE)
    if safe_count:
        upsells.append(Upsell(
            id="safe-handling",
            name=f"Safe Handling ({_plural(safe_count, 'safe')})",
            description="Heavy-duty dolly and extra movers for safes",
            price=safe_count * policy.safe_handling_price,
            recommended=True,
        ))

    gym_count = items.count_with_tag(detections, items.GYM)
    if gym_count:
        upsells.append(Upsell(
            id="gym-equipment-handling",
            name=f"Gym Equipment Handling ({_plural(gym_count, 'item')})",
            description="Disassembly and reassembly of exercise equipment",
            price=gym_count * policy.gym_handling_price,
            recommended=True,
        ))

    return upsells


# =============================================================================
# STEPS 3-4 - MERGES
# =============================================================================


def merge_custom(upsells: List[Upsell], custom: Optional[Iterable[CustomUpsell]]) -> List[Upsell]:
    """Append tenant custom upsells; ids already present are skipped."""
    merged = list(upsells)
    seen = {u.id for u in merged}
    for entry in custom or []:
        if entry.id in seen:
            logger.info("custom_upsell_skipped", upsell_id=entry.id, reason="duplicate_id")
            continue
        merged.append(entry.to_upsell())
        seen.add(entry.id)
    return merged


def merge_estimate(upsells: List[Upsell], move_time: Optional[MoveTimeEstimate]) -> List[Upsell]:
    """Fold in estimator upsells and specialty surcharges."""
    if move_time is None:
        return list(upsells)

    merged = list(upsells)
    index = {u.id: i for i, u in enumerate(merged)}

    for proposal in move_time.detected_upsells:
        if proposal.id in index:
            position = index[proposal.id]
            existing = merged[position]
            merged[position] = existing.model_copy(update={
                "price": proposal.price,
                "description": proposal.reason or existing.description,
                "recommended": True,
                "selected": existing.selected or proposal.required,
            })
        else:
            index[proposal.id] = len(merged)
            merged.append(Upsell(
                id=proposal.id,
                name=proposal.name,
                description=proposal.reason,
                price=proposal.price,
                recommended=True,
                selected=proposal.required,
            ))

    for specialty in move_time.specialty_items:
        upsell_id = f"specialty-{specialty.category}"
        if upsell_id in index:
            continue
        index[upsell_id] = len(merged)
        merged.append(Upsell(
            id=upsell_id,
            name=f"Specialty: {specialty.item}",
            description=f"Specialty handling surcharge (+{specialty.extra_time:g} min)",
            price=specialty.surcharge,
            recommended=True,
            selected=True,
        ))

    return enforce_single_insurance(merged)


# =============================================================================
# SELECTION
# =============================================================================


def enforce_single_insurance(upsells: List[Upsell]) -> List[Upsell]:
    """Keep only the first selected insurance tier selected."""
    result = []
    kept = False
    for upsell in upsells:
        if upsell.is_insurance and upsell.selected:
            if kept:
                upsell = upsell.model_copy(update={"selected": False})
            kept = True
        result.append(upsell)
    return result


def toggle(upsells: Sequence[Upsell], upsell_id: str) -> List[Upsell]:
    """Flip one upsell's selection and return a new list.

    Selecting an insurance tier deselects every other tier. Other ids only
    change themselves. Unknown ids leave the list unchanged.
    """
    target = next((u for u in upsells if u.id == upsell_id), None)
    if target is None:
        logger.warning("upsell_toggle_unknown_id", upsell_id=upsell_id)
        return list(upsells)

    now_selected = not target.selected
    result = []
    for upsell in upsells:
        if upsell.id == upsell_id:
            upsell = upsell.model_copy(update={"selected": now_selected})
        elif now_selected and target.is_insurance and upsell.is_insurance and upsell.selected:
            upsell = upsell.model_copy(update={"selected": False})
        result.append(upsell)
    return result


def selected_total(upsells: Iterable[Upsell]) -> float:
    return round(sum(u.price for u in upsells if u.selected), 2)


def build_upsells(
    detections: Sequence[Detection],
    policy: PricingPolicy,
    move_time: Optional[MoveTimeEstimate] = None,
    custom: Optional[Iterable[CustomUpsell]] = None,
    estimate_total: Optional[float] = None
) -> List[Upsell]:
    """Run all four steps and return the final upsell list."""
    if estimate_total is None:
        estimate_total = move_time.total_before_tax if move_time else 0.0

    upsells = base_catalog(detections, estimate_total, policy)
    upsells.extend(category_upsells(detections, policy))
    upsells = merge_custom(upsells, custom)
    upsells = merge_estimate(upsells, move_time)
    upsells = enforce_single_insurance(upsells)

    logger.info(
        "upsells_built",
        count=len(upsells),
        selected=[u.id for u in upsells if u.selected],
    )
    return upsells
