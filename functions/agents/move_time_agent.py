"""Move Time Agent for MovSense.

Asks the model for soft judgments about a move (crew size, specialty items,
elevator waits, upsell proposals) and prices the move locally from the
pricing policy. Any failure of the model path yields the deterministic
fallback estimate instead of an error.
"""

import hashlib
import time
from typing import Any, Dict, List, Optional, Tuple

import structlog

from agents.base_agent import BaseAgent
from config.errors import EstimationFallbackError, ModelCallError, Stage
from config.settings import settings
from models.estimate import (
    BuildingType,
    DetectedUpsell,
    MoveTimeEstimate,
    MoveTimeRequest,
    ParkingType,
    SpecialtyCategory,
)
from models.pricing import CREW_SIZES, PricingPolicy
from models.quote import VolumeTotals
from services.llm_service import LLMService
from services.pricing import (
    EstimateJudgment,
    JudgedSpecialty,
    default_policy,
    estimate_from_judgment,
    fallback_estimate,
)
from services.truck_planner import trucks_for
from services.volume_aggregator import aggregate_volume
from utils.numbers import finite_number, non_negative, positive, to_quantity

logger = structlog.get_logger()


MOVE_TIME_SYSTEM_PROMPT = """You are the quoting assistant for a professional moving company. Judge a move from its detected inventory.

CRITICAL RULES:
1. Always respect the {minimum_hours:g}-hour minimum booking rule
2. Time starts when crew leaves office and ends when they return
3. Use the resolved cubic feet and weight given in the inventory (don't recalculate)
4. Travel time is a separate component: (travel minutes / 60) x 2 for the round trip
5. TRUCK CAPACITY: one 26ft truck = ~{truck_capacity:,.0f} cubic feet. Above that, multiple trucks are required
   - Setup/breakdown: {setup_minutes:g} min per truck, plus {extra_truck_minutes:g} min coordination per additional truck

CREW RATES:
{crew_rates}

EFFICIENCY:
- {cubic_feet_per_hour:g} cu ft per hour for 3 movers (standard)
{efficiency}

COMPLEXITY MULTIPLIERS:
- Stairs: +{stairs_pct:.0%} per floor, max +{stairs_cap:.0%}
- Elevator: +{elevator_pct:.0%} if slow/wait times expected
- Difficult parking: +{parking_pct:.0%} per location
- Multiple floors: +{floor_pct:.0%} per floor difference

SPECIALTY ITEMS (surcharge + extra time):
{specialty_rates}

INSURANCE (ALWAYS OFFERED):
{insurance_tiers}

BUFFERS: Standard = {standard_buffer:.0%}, Conservative = {conservative_buffer:.0%}

Hours, surcharges and totals are computed from these policies by the quoting system.
Your job is judgment only:
1. Recommend a crew size (one of {crew_sizes}) based on volume and complexity
2. Identify specialty items in the inventory and their category
   (one of: {categories}). Use "hoisting" only when items must go up or down outside stairs/elevator.
3. Say whether elevator waits are expected
4. Propose upsells the customer should be offered (TV boxes for large TVs, fragile packing,
   appliance disconnect); mark "required" only when the move cannot be done safely without it

Return ONLY valid JSON with this exact structure:
{{
  "recommendedCrew": 2|3|4|5|6,
  "specialtyItems": [{{"item": "string", "category": "string", "quantity": number, "weight": number|null}}],
  "elevatorWaitExpected": boolean,
  "reasoning": "string",
  "detectedUpsells": [{{"id": "string", "name": "string", "price": number, "reason": "string", "required": boolean}}]
}}"""

MOVE_TIME_PROMPT = """Judge this move:

INVENTORY (resolved cubic feet and weight per line):
{inventory}

TOTALS:
- Total Cubic Feet: {total_cubic_feet:.1f}{capacity_note}
- Total Weight: {total_weight:.0f} lbs
- Distance: {distance}
- Travel Time: {travel_time}
- Estimated Trucks Needed: {trucks}

LOCATIONS:
- Origin: {origin}
- Destination: {destination}

Provide a professional, accurate judgment."""


def _format_policy(policy: PricingPolicy) -> Dict[str, Any]:
    crew_rates = [
        f"- {crew} movers, 1 truck: ${policy.crew_rate(crew):g}/hr"
        for crew in CREW_SIZES
    ]
    crew_rates.extend(
        f"- {crew} movers, 2 trucks: ${float(rate):g}/hr"
        for crew, rate in sorted(policy.multi_truck_crew_rates.items())
    )
    efficiency = [
        f"- {crew} movers = {policy.efficiency(crew):g}x"
        for crew in CREW_SIZES if crew != 3
    ]
    specialty = [
        f"- {variant.replace('_', ' ').title()}: ${rate.surcharge:g} surcharge + {rate.extra_minutes:g} min extra"
        for variant, rate in policy.specialty_rates.items()
    ]
    insurance = [
        f"- {tier.name}: ${tier.price:g} ({tier.description})"
        for tier in policy.insurance_tiers
    ]
    return {
        "minimum_hours": policy.minimum_hours,
        "truck_capacity": policy.truck_capacity_cubic_feet,
        "setup_minutes": policy.setup_minutes_per_truck,
        "extra_truck_minutes": policy.extra_truck_setup_minutes,
        "crew_rates": "\n".join(crew_rates),
        "cubic_feet_per_hour": policy.cubic_feet_per_hour,
        "efficiency": "\n".join(efficiency),
        "stairs_pct": policy.stairs_pct_per_floor,
        "stairs_cap": policy.stairs_pct_cap,
        "elevator_pct": policy.elevator_pct,
        "parking_pct": policy.difficult_parking_pct,
        "floor_pct": policy.floor_difference_pct,
        "specialty_rates": "\n".join(specialty),
        "insurance_tiers": "\n".join(insurance),
        "standard_buffer": policy.standard_buffer_pct,
        "conservative_buffer": policy.conservative_buffer_pct,
        "crew_sizes": ", ".join(str(c) for c in CREW_SIZES),
        "categories": ", ".join(c.value for c in SpecialtyCategory),
    }


def build_system_prompt(policy: PricingPolicy) -> str:
    return MOVE_TIME_SYSTEM_PROMPT.format(**_format_policy(policy))


def _describe_end(
    building: BuildingType,
    stairs: bool,
    elevator: bool,
    floor: Optional[int],
    parking: ParkingType
) -> str:
    parts = [building.value]
    if stairs:
        parts.append("HAS STAIRS")
    if elevator:
        parts.append("HAS ELEVATOR")
    if floor:
        parts.append(f"Floor {floor}")
    return ", ".join(parts) + f", Parking: {parking.value}"


def build_user_prompt(request: MoveTimeRequest, volume: VolumeTotals, policy: PricingPolicy) -> str:
    lines = []
    for item in volume.items:
        detection = item.detection
        size = f" ({detection.size})" if detection.size else ""
        room = f" [{detection.room}]" if detection.room else ""
        lines.append(
            f"- {item.qty}x {detection.label}{size}{room} -> "
            f"{item.total_cubic_feet:.1f} cu ft, {item.total_weight:.0f} lbs"
        )

    capacity = policy.truck_capacity_cubic_feet
    total_cf = volume.total_cubic_feet
    capacity_note = ""
    if volume.planning_cubic_feet > capacity:
        capacity_note = " (EXCEEDS SINGLE TRUCK CAPACITY - multiple trucks required)"

    return MOVE_TIME_PROMPT.format(
        inventory="\n".join(lines) or "- (no items detected)",
        total_cubic_feet=total_cf,
        capacity_note=capacity_note,
        total_weight=volume.total_weight,
        distance=f"{request.distance:.1f} miles" if request.distance is not None else "unknown",
        travel_time=f"{request.travel_minutes:g} minutes" if request.travel_time is not None else "unknown",
        trucks=max(trucks_for(volume.planning_cubic_feet, capacity), 1),
        origin=_describe_end(
            request.origin_type, request.stairs_origin, request.elevator_origin,
            request.floor_origin, request.parking_origin
        ),
        destination=_describe_end(
            request.destination_type, request.stairs_destination, request.elevator_destination,
            request.floor_destination, request.parking_destination
        ),
    )


def parse_judgment(raw: Dict[str, Any]) -> EstimateJudgment:
    """Soft judgments from untrusted model output.

    Unusable entries are dropped and reported in ``warnings``; numbers the
    model returns for hours or totals are ignored.
    """
    warnings: List[str] = []

    crew = finite_number(raw.get("recommendedCrew"))
    recommended_crew = None
    if crew is not None and crew.is_integer() and int(crew) in CREW_SIZES:
        recommended_crew = int(crew)

    specialty: List[JudgedSpecialty] = []
    for entry in raw.get("specialtyItems") or []:
        if not isinstance(entry, dict):
            continue
        item = str(entry.get("item") or "").strip()
        try:
            category = SpecialtyCategory(str(entry.get("category") or "").strip().lower())
        except ValueError:
            warnings.append(f"Ignored specialty item '{item}' with unknown category {entry.get('category')!r}")
            continue
        if not item:
            continue
        specialty.append(JudgedSpecialty(
            item=item,
            category=category,
            quantity=max(to_quantity(entry.get("quantity")), 1),
            weight=positive(entry.get("weight")),
        ))

    upsells: List[DetectedUpsell] = []
    for entry in raw.get("detectedUpsells") or []:
        if not isinstance(entry, dict):
            continue
        price = non_negative(entry.get("price"))
        upsell_id = str(entry.get("id") or "").strip()
        if price is None or not upsell_id:
            warnings.append(f"Dropped invalid upsell proposal {upsell_id or entry.get('name')!r}")
            continue
        upsells.append(DetectedUpsell(
            id=upsell_id,
            name=str(entry.get("name") or upsell_id),
            price=price,
            reason=str(entry.get("reason") or ""),
            required=entry.get("required") is True,
        ))

    elevator_wait = raw.get("elevatorWaitExpected")
    reasoning = raw.get("reasoning")

    return EstimateJudgment(
        recommended_crew=recommended_crew,
        specialty_items=specialty,
        elevator_wait_expected=elevator_wait if isinstance(elevator_wait, bool) else True,
        reasoning=reasoning.strip() if isinstance(reasoning, str) else "",
        detected_upsells=upsells,
        warnings=warnings,
    )


class MoveTimeAgent(BaseAgent):
    """AI-assisted move estimator with a deterministic fallback.

    Estimates are cached per request fingerprint and pricing policy, so a
    retried request gets the same hours and surcharges back.
    """

    stage = Stage.ESTIMATION

    def __init__(
        self,
        llm_service: Optional[LLMService] = None,
        policy: Optional[PricingPolicy] = None,
        cache_ttl: Optional[int] = None
    ):
        super().__init__(
            name="move_time",
            llm_service=llm_service or LLMService(
                model=settings.llm_model,
                temperature=settings.pricing_temperature
            )
        )
        self.policy = policy

        # In-memory idempotency cache
        self._cache: Dict[str, Tuple[MoveTimeEstimate, float]] = {}
        self._cache_ttl = settings.estimate_cache_ttl_seconds if cache_ttl is None else cache_ttl

    def _get_cached(self, cache_key: str) -> Optional[MoveTimeEstimate]:
        """Get cached estimate if still valid."""
        if cache_key in self._cache:
            result, timestamp = self._cache[cache_key]
            if time.time() - timestamp < self._cache_ttl:
                return result
            else:
                del self._cache[cache_key]
        return None

    def _set_cached(self, cache_key: str, result: MoveTimeEstimate) -> None:
        self._cache[cache_key] = (result, time.time())

    @staticmethod
    def _cache_key(fingerprint: str, policy: PricingPolicy) -> str:
        policy_digest = hashlib.sha256(policy.model_dump_json().encode("utf-8")).hexdigest()
        return f"{fingerprint}:{policy_digest[:16]}"

    async def estimate(
        self,
        request: MoveTimeRequest,
        volume: Optional[VolumeTotals] = None,
        policy: Optional[PricingPolicy] = None
    ) -> MoveTimeEstimate:
        """Priced estimate for ``request``; never raises for model failures.

        Args:
            request: Inventory and trip metadata.
            volume: Aggregated totals; computed from the request when omitted.
            policy: Pricing policy; the agent's or the default when omitted.

        Returns:
            MoveTimeEstimate, ``degraded`` when the fallback was used
        """
        policy = policy or self.policy or default_policy()
        volume = volume or aggregate_volume(request.detections)
        fingerprint = request.fingerprint()
        cache_key = self._cache_key(fingerprint, policy)

        cached = self._get_cached(cache_key)
        if cached is not None:
            logger.info("move_time_cache_hit", fingerprint=fingerprint[:12])
            return cached

        self.start_run()
        try:
            judgment = await self._judge(request, volume, policy)
        except EstimationFallbackError as e:
            logger.warning("move_time_fallback", reason=e.message, fingerprint=fingerprint[:12])
            return fallback_estimate(
                request, volume, reason=e.message, policy=policy, fingerprint=fingerprint
            )

        estimate = estimate_from_judgment(request, volume, judgment, policy, fingerprint=fingerprint)
        self._set_cached(cache_key, estimate)

        logger.info(
            "move_time_estimated",
            hours_standard=estimate.hours_standard,
            crew=estimate.recommended_crew,
            trucks=estimate.trucks_needed,
            specialty_items=len(estimate.specialty_items),
            total_after_tax=estimate.total_after_tax,
            tokens_used=self.tokens_used,
            duration_ms=self.duration_ms,
        )
        return estimate

    async def _judge(
        self,
        request: MoveTimeRequest,
        volume: VolumeTotals,
        policy: PricingPolicy
    ) -> EstimateJudgment:
        """Model judgments, or ``EstimationFallbackError`` when unusable."""
        try:
            raw = await self.call_json(
                build_system_prompt(policy),
                build_user_prompt(request, volume, policy),
                details={"total_cubic_feet": volume.total_cubic_feet},
            )
        except ModelCallError as e:
            raise EstimationFallbackError(
                f"Move time estimation failed: {e.message}", cause=e
            ) from e

        if not isinstance(raw, dict):
            raise EstimationFallbackError(
                "Move time estimation returned malformed output",
                details={"output_type": type(raw).__name__},
            )
        return parse_judgment(raw)
