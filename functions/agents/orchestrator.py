"""Pipeline Orchestrators for MovSense.

``DetectionOrchestrator`` runs photo classification, per-room detection and
inventory validation. ``QuoteOrchestrator`` turns an inventory and trip into
a priced quote: volume, estimate, upsells and truck plan, all reading the same
aggregated volume.
"""

import time
from typing import Iterable, List, Optional, Sequence

import structlog

from agents.move_time_agent import MoveTimeAgent
from agents.room_classifier import RoomClassifierAgent
from agents.room_detector import RoomDetectorAgent
from config.errors import ErrorCode, ModelCallError, MoveQuoteError, Stage
from config.settings import settings
from models.estimate import Estimate, MoveTimeRequest
from models.inventory import DetectionResult, PropertyContext
from models.quote import CustomUpsell, QuoteResult
from services.distance_service import DistanceService
from services.pricing import default_policy
from services.tenant_config_service import TenantConfigService
from services.truck_planner import plan_trucks
from services.upsell_engine import build_upsells, selected_total
from services.volume_aggregator import aggregate_volume
from utils.pipeline_logger import (
    log_estimate_summary,
    log_phase_complete,
    log_phase_start,
    log_pipeline_complete,
    log_pipeline_failed,
    log_pipeline_start,
)
from validators.inventory_validator import validate_inventory

logger = structlog.get_logger()


def _stage_error(error: Exception, stage: str) -> MoveQuoteError:
    """``error`` as a client-facing error attributed to ``stage``."""
    if isinstance(error, ModelCallError):
        return error if error.stage else error.with_stage(stage)
    if isinstance(error, MoveQuoteError):
        return error
    return ModelCallError(
        message=f"{stage} failed: {error}",
        stage=stage,
        code=ErrorCode.DETECTION_FAILED,
        details={"original_error": repr(error)},
    )


class DetectionOrchestrator:
    """Three-phase detection pipeline.

    Flow:
    1. Classify photos into rooms
    2. Detect items per room (concurrently, classification order kept)
    3. Validate the combined inventory (advisory only)
    """

    PIPELINE = "detection"
    PHASES = (Stage.ROOM_CLASSIFICATION, Stage.ROOM_DETECTION, Stage.VALIDATION)

    def __init__(
        self,
        classifier: Optional[RoomClassifierAgent] = None,
        detector: Optional[RoomDetectorAgent] = None
    ):
        self.classifier = classifier or RoomClassifierAgent()
        self.detector = detector or RoomDetectorAgent()
        self._start_time: Optional[float] = None

    @property
    def elapsed_ms(self) -> int:
        """Get elapsed time in milliseconds."""
        if self._start_time is None:
            return 0
        return int((time.time() - self._start_time) * 1000)

    async def run(
        self,
        photo_urls: Sequence[str],
        context: Optional[PropertyContext] = None
    ) -> DetectionResult:
        """Run the full detection pipeline.

        Raises:
            ValidationError: If ``photo_urls`` is empty.
            ModelCallError: If classification or detection fails, with ``stage`` set.
        """
        context = context or PropertyContext()
        self._start_time = time.time()
        completed: List[str] = []
        current = self.PHASES[0]

        log_pipeline_start(self.PIPELINE, {"Photos": len(photo_urls), "Bedrooms": context.bedrooms})

        try:
            phase_start = time.time()
            log_phase_start(self.PIPELINE, current, 1, len(self.PHASES))
            classification = await self.classifier.classify(photo_urls, context)
            log_phase_complete(self.PIPELINE, current, int((time.time() - phase_start) * 1000), {
                "rooms": len(classification),
                "photos": classification.photo_count,
            })
            completed.append(current)

            current = self.PHASES[1]
            phase_start = time.time()
            log_phase_start(self.PIPELINE, current, 2, len(self.PHASES))
            detections = await self.detector.detect_all(classification, context)
            log_phase_complete(self.PIPELINE, current, int((time.time() - phase_start) * 1000), {
                "items": len(detections),
            })
            completed.append(current)

            current = self.PHASES[2]
            phase_start = time.time()
            log_phase_start(self.PIPELINE, current, 3, len(self.PHASES))
            validation = validate_inventory(detections, context)
            log_phase_complete(self.PIPELINE, current, int((time.time() - phase_start) * 1000), {
                "anomalies": len(validation.anomalies),
                "warnings": len(validation.warnings),
            })
            completed.append(current)
        except Exception as e:
            staged = _stage_error(e, current)
            log_pipeline_failed(self.PIPELINE, current, staged.message, completed)
            if staged is e:
                raise
            raise staged from e

        duration_ms = self.elapsed_ms
        log_pipeline_complete(self.PIPELINE, duration_ms, completed)

        return DetectionResult(
            detections=detections,
            validation=validation,
            classification=classification,
            property_context=context,
            total_photos=len(photo_urls),
            duration_ms=duration_ms,
        )


class QuoteOrchestrator:
    """Quote pipeline: volume, estimate, upsells and truck plan."""

    PIPELINE = "quote"

    def __init__(
        self,
        move_time_agent: Optional[MoveTimeAgent] = None,
        tenant_service: Optional[TenantConfigService] = None,
        distance_service: Optional[DistanceService] = None
    ):
        self.move_time = move_time_agent or MoveTimeAgent()
        self.tenant = tenant_service or TenantConfigService()
        self._distance = distance_service

    @property
    def distance(self) -> DistanceService:
        """Get distance service (lazy initialization)."""
        if self._distance is None:
            self._distance = DistanceService()
        return self._distance

    async def resolve_trip(self, request: MoveTimeRequest) -> MoveTimeRequest:
        """Fill distance and travel time from the addresses when absent.

        Raises:
            ExternalServiceError: If the distance lookup fails.
        """
        if request.has_trip:
            return request
        if not (request.origin_address and request.destination_address):
            logger.warning(
                "trip_metadata_missing",
                distance=request.distance,
                travel_time=request.travel_time,
            )
            return request

        result = await self.distance.get_distance(
            request.origin_address, request.destination_address
        )
        return request.model_copy(update={
            "distance": request.distance if request.distance is not None else result.distance,
            "travel_time": request.travel_time if request.travel_time is not None else result.duration,
        })

    async def run(
        self,
        request: MoveTimeRequest,
        custom_upsells: Optional[Iterable[CustomUpsell]] = None
    ) -> QuoteResult:
        """Price ``request`` into a full quote.

        Model failures never surface here: the estimate degrades to the
        fallback instead.

        Raises:
            ExternalServiceError: If the distance lookup or tenant config read fails.
        """
        start = time.time()
        log_pipeline_start(self.PIPELINE, {
            "Items": len(request.detections),
            "Company": request.company_id or "default",
        })

        request = await self.resolve_trip(request)
        tenant = await self.tenant.get_config(request.company_id)
        policy = tenant.apply_to(self.move_time.policy or default_policy())

        volume = aggregate_volume(request.detections)
        move_time = await self.move_time.estimate(request, volume=volume, policy=policy)

        custom = list(tenant.custom_upsells) + list(custom_upsells or [])
        upsells = build_upsells(request.detections, policy, move_time=move_time, custom=custom)
        truck_plan = plan_trucks(volume.planning_cubic_feet, policy.truck_capacity_cubic_feet)

        safety_pct = (
            settings.fallback_safety_pct if move_time.degraded
            else round(policy.standard_buffer_pct * 100, 2)
        )
        estimate = Estimate.from_move_time(move_time, request, safety_pct=safety_pct)

        log_estimate_summary(
            move_time.hours_standard,
            move_time.hours_conservative,
            move_time.recommended_crew,
            move_time.trucks_needed,
            move_time.total_after_tax,
            move_time.degraded,
            move_time.warnings + volume.warnings,
        )
        log_pipeline_complete(
            self.PIPELINE,
            int((time.time() - start) * 1000),
            ["volume", "estimation", "upsells", "trucks"],
        )

        return QuoteResult(
            estimate=estimate,
            move_time=move_time,
            volume=volume,
            truck_plan=truck_plan,
            upsells=upsells,
            upsells_total=selected_total(upsells),
            degraded=move_time.degraded,
            company_id=request.company_id,
        )


# =============================================================================
# Module-level instances
# =============================================================================

_default_quote_orchestrator: Optional[QuoteOrchestrator] = None


def get_quote_orchestrator() -> QuoteOrchestrator:
    """Get the shared QuoteOrchestrator.

    Reused across requests so the estimate cache outlives a single call.
    """
    global _default_quote_orchestrator
    if _default_quote_orchestrator is None:
        _default_quote_orchestrator = QuoteOrchestrator()
    return _default_quote_orchestrator
