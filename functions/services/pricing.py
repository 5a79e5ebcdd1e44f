"""Deterministic move pricing for MovSense.

The AI estimator only supplies soft judgments (crew size, specialty items,
elevator waits). Hours, surcharges, totals and tax are computed here from the
``PricingPolicy`` so a given request and judgment always price the same.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import structlog

from config.settings import settings
from models.estimate import (
    DetectedUpsell,
    EstimateSource,
    HoursBreakdown,
    MoveTimeEstimate,
    MoveTimeRequest,
    ParkingType,
    SpecialtyCategory,
    SpecialtyItem,
)
from models.pricing import CREW_SIZES, PricingPolicy
from models.quote import VolumeTotals
from services.item_classifier import specialty_variant
from services.truck_planner import trucks_for

logger = structlog.get_logger()


def default_policy() -> PricingPolicy:
    """Policy defaults with deployment settings applied."""
    return PricingPolicy(
        tax_rate=settings.tax_rate,
        truck_capacity_cubic_feet=settings.truck_capacity_cubic_feet,
    )


@dataclass
class JudgedSpecialty:
    """A specialty item as judged by the model, before pricing."""
    item: str
    category: SpecialtyCategory
    quantity: int = 1
    weight: Optional[float] = None


@dataclass
class EstimateJudgment:
    """Soft judgments accepted from the model."""
    recommended_crew: Optional[int] = None
    specialty_items: List[JudgedSpecialty] = field(default_factory=list)
    elevator_wait_expected: bool = True
    reasoning: str = ""
    detected_upsells: List[DetectedUpsell] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


# =============================================================================
# CREW
# =============================================================================


def heuristic_crew(total_cubic_feet: float, request: MoveTimeRequest) -> int:
    """Crew size from volume and access difficulty."""
    if total_cubic_feet > 1000:
        crew = 4
    elif total_cubic_feet > 500:
        crew = 3
    else:
        crew = 2
    if request.any_stairs:
        crew += 1
    if request.any_elevator:
        crew += 1
    return min(crew, max(CREW_SIZES))


def resolve_crew_rate(
    crew: int,
    trucks: int,
    policy: PricingPolicy
) -> Tuple[float, Optional[str]]:
    """Hourly crew rate and an ambiguity warning, if any.

    The flat rate map is canonical. The multi-truck table is only billed when
    the policy opts in; otherwise a disagreement is reported, not resolved.
    """
    rate = policy.crew_rate(crew)
    if trucks <= 1:
        return rate, None

    multi_rate = policy.multi_truck_crew_rates.get(crew)
    if multi_rate is None or float(multi_rate) == rate:
        return rate, None
    if policy.use_multi_truck_rates:
        return float(multi_rate), None

    warning = (
        f"rate_table_ambiguity: {crew} movers with {trucks} trucks is ${rate:g}/hr in the "
        f"flat rate map but ${float(multi_rate):g}/hr in the multi-truck table; "
        "flat rate used pending business confirmation"
    )
    return rate, warning


# =============================================================================
# HOURS
# =============================================================================


def _floors_above_ground(floor: Optional[int]) -> int:
    return max((floor or 1) - 1, 1)


def end_complexity(
    stairs: bool,
    elevator: bool,
    floor: Optional[int],
    parking: str,
    elevator_wait_expected: bool,
    policy: PricingPolicy
) -> float:
    """Additive complexity fraction for one end of the move."""
    pct = 0.0
    if stairs:
        pct += min(policy.stairs_pct_per_floor * _floors_above_ground(floor), policy.stairs_pct_cap)
    if elevator and elevator_wait_expected:
        pct += policy.elevator_pct
    if parking == ParkingType.DIFFICULT:
        pct += policy.difficult_parking_pct
    return pct


def floor_mismatch(request: MoveTimeRequest, policy: PricingPolicy) -> float:
    if request.floor_origin is None or request.floor_destination is None:
        return 0.0
    return policy.floor_difference_pct * abs(request.floor_origin - request.floor_destination)


def base_handling_hours(total_cubic_feet: float, crew: int, policy: PricingPolicy) -> float:
    """(cubic feet / throughput) x efficiency factor of the crew."""
    hours = total_cubic_feet / policy.cubic_feet_per_hour
    if policy.efficiency_as_speedup:
        return hours / policy.efficiency(crew)
    return hours * policy.efficiency(crew)


def compute_hours(
    total_cubic_feet: float,
    crew: int,
    trucks: int,
    request: MoveTimeRequest,
    policy: PricingPolicy,
    specialty_minutes: float = 0,
    elevator_wait_expected: bool = True
) -> Tuple[float, float, HoursBreakdown]:
    """Standard hours, conservative hours and the standard breakdown."""
    handling = base_handling_hours(total_cubic_feet, crew, policy)
    mismatch = floor_mismatch(request, policy)

    origin_pct = end_complexity(
        request.stairs_origin, request.elevator_origin, request.floor_origin,
        request.parking_origin, elevator_wait_expected, policy
    ) + mismatch
    destination_pct = end_complexity(
        request.stairs_destination, request.elevator_destination, request.floor_destination,
        request.parking_destination, elevator_wait_expected, policy
    ) + mismatch

    loading = handling / 2 * (1 + origin_pct) + specialty_minutes / 60
    unloading = handling / 2 * (1 + destination_pct)
    setup_minutes = policy.setup_minutes_per_truck * max(trucks, 1)
    setup_minutes += policy.extra_truck_setup_minutes * max(trucks - 1, 0)
    setup = setup_minutes / 60
    travel = request.travel_minutes / 60 * 2

    subtotal = loading + unloading + setup + travel
    standard = max(policy.minimum_hours, round(subtotal * (1 + policy.standard_buffer_pct), 2))
    conservative = max(policy.minimum_hours, round(subtotal * (1 + policy.conservative_buffer_pct), 2))
    conservative = max(conservative, standard)

    breakdown = HoursBreakdown(
        loading_hours=round(loading, 2),
        travel_hours=round(travel, 2),
        unloading_hours=round(unloading, 2),
        setup_hours=round(setup, 2),
        buffer_hours=round(max(standard - subtotal, 0), 2),
    )
    return standard, conservative, breakdown


# =============================================================================
# SURCHARGES / TOTALS
# =============================================================================


def price_specialty_items(
    judged: List[JudgedSpecialty],
    request: MoveTimeRequest,
    policy: PricingPolicy
) -> List[SpecialtyItem]:
    """Surcharge and extra minutes for each judged specialty item."""
    priced = []
    for entry in judged:
        category = SpecialtyCategory(entry.category)
        variant = specialty_variant(
            category.value, entry.item, entry.weight, policy.safe_large_min_weight
        )
        rate = policy.specialty_rate(variant)

        units = max(entry.quantity, 1)
        if category == SpecialtyCategory.HOISTING:
            # Per floor above the first at the higher end
            highest = max(request.floor_origin or 1, request.floor_destination or 1)
            units = _floors_above_ground(highest)

        priced.append(SpecialtyItem(
            item=entry.item,
            category=category,
            surcharge=round(rate.surcharge * units, 2),
            extra_time=rate.extra_minutes * units,
            detected=True,
            quantity=units,
        ))
    return priced


def estimate_from_judgment(
    request: MoveTimeRequest,
    volume: VolumeTotals,
    judgment: EstimateJudgment,
    policy: PricingPolicy,
    fingerprint: Optional[str] = None
) -> MoveTimeEstimate:
    """Price a move from model judgments and the aggregated volume."""
    warnings = list(judgment.warnings)
    total_cf = volume.total_cubic_feet
    trucks = max(trucks_for(volume.planning_cubic_feet, policy.truck_capacity_cubic_feet), 1)

    crew = judgment.recommended_crew
    if crew not in CREW_SIZES:
        crew = heuristic_crew(total_cf, request)
        warnings.append(f"Model crew recommendation unusable; volume heuristic chose {crew} movers")

    rate, ambiguity = resolve_crew_rate(crew, trucks, policy)
    if ambiguity:
        warnings.append(ambiguity)
        logger.warning("rate_table_ambiguity", crew=crew, trucks=trucks)

    specialty = price_specialty_items(judgment.specialty_items, request, policy)
    specialty_minutes = sum(item.extra_time for item in specialty)

    standard, conservative, breakdown = compute_hours(
        total_cf, crew, trucks, request, policy,
        specialty_minutes=specialty_minutes,
        elevator_wait_expected=judgment.elevator_wait_expected,
    )

    base_total = round(standard * rate, 2)
    surcharges = round(sum(item.surcharge for item in specialty), 2)
    before_tax = round(base_total + surcharges, 2)
    tax = round(before_tax * policy.tax_rate, 2)

    return MoveTimeEstimate(
        hours_standard=standard,
        hours_conservative=conservative,
        recommended_crew=crew,
        crew_rate=rate,
        trucks_needed=trucks,
        total_cubic_feet=total_cf,
        total_weight=volume.total_weight,
        specialty_items=specialty,
        base_total=base_total,
        surcharges_total=surcharges,
        total_before_tax=before_tax,
        tax=tax,
        total_after_tax=round(before_tax + tax, 2),
        reasoning=judgment.reasoning,
        breakdown=breakdown,
        detected_upsells=judgment.detected_upsells,
        degraded=False,
        source=EstimateSource.MODEL,
        warnings=warnings,
        request_fingerprint=fingerprint,
    )


# =============================================================================
# FALLBACK
# =============================================================================


def fallback_estimate(
    request: MoveTimeRequest,
    volume: VolumeTotals,
    reason: str,
    policy: PricingPolicy,
    crew: Optional[int] = None,
    safety_pct: Optional[float] = None,
    fingerprint: Optional[str] = None
) -> MoveTimeEstimate:
    """Reduced-fidelity estimate from travel time and volume only.

    No crew optimisation and no specialty detection. The result is flagged
    ``degraded`` and carries ``reason`` in its warnings.
    """
    crew = crew or settings.fallback_crew_size
    safety_pct = settings.fallback_safety_pct if safety_pct is None else safety_pct
    total_cf = volume.total_cubic_feet
    trucks = max(trucks_for(volume.planning_cubic_feet, policy.truck_capacity_cubic_feet), 1)

    handling_minutes = total_cf / policy.cubic_feet_per_hour * 60
    minutes = handling_minutes + request.travel_minutes
    if request.any_stairs:
        minutes *= 1.3
    if request.any_elevator:
        minutes *= 1.1
    subtotal = minutes / 60

    standard = max(policy.minimum_hours, round(subtotal * (1 + safety_pct / 100), 2))
    conservative = max(
        standard,
        policy.minimum_hours,
        round(subtotal * (1 + policy.conservative_buffer_pct), 2),
    )

    rate = policy.crew_rate(crew)
    base_total = round(standard * rate, 2)
    tax = round(base_total * policy.tax_rate, 2)

    logger.warning("estimate_fallback_used", reason=reason, hours=standard, crew=crew)

    return MoveTimeEstimate(
        hours_standard=standard,
        hours_conservative=conservative,
        recommended_crew=crew,
        crew_rate=rate,
        trucks_needed=trucks,
        total_cubic_feet=total_cf,
        total_weight=volume.total_weight,
        specialty_items=[],
        base_total=base_total,
        surcharges_total=0,
        total_before_tax=base_total,
        tax=tax,
        total_after_tax=round(base_total + tax, 2),
        reasoning="Reduced-fidelity estimate from travel time and inventory volume.",
        breakdown=HoursBreakdown(
            loading_hours=round(handling_minutes / 120, 2),
            travel_hours=round(request.travel_minutes / 60, 2),
            unloading_hours=round(handling_minutes / 120, 2),
            buffer_hours=round(max(standard - subtotal, 0), 2),
        ),
        detected_upsells=[],
        degraded=True,
        source=EstimateSource.FALLBACK,
        warnings=[reason],
        request_fingerprint=fingerprint,
    )
