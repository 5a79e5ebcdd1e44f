# MovSense Python Cloud Functions

"""Cloud Function entry points for the MovSense quoting pipeline.

Provides HTTP endpoints for:
- Detecting furniture in listing photos
- Calculating move time, price, upsells and trucks
- Planning trucks for a volume
"""

import asyncio
import json
from typing import Any, Dict, Optional, Tuple

import structlog
from firebase_functions import https_fn, options
from firebase_admin import initialize_app

from agents.orchestrator import DetectionOrchestrator, QuoteOrchestrator, get_quote_orchestrator
from config.errors import ErrorCode, ModelCallError, MoveQuoteError, ValidationError
from config.settings import settings
from services.truck_planner import plan_trucks as plan_truck_capacity
from utils.pipeline_logger import configure_logging
from validators.request_validator import (
    parse_custom_upsells,
    parse_detection_request,
    parse_move_time_request,
    parse_truck_request,
)

# Initialize Firebase Admin SDK
try:
    initialize_app()
except ValueError:
    # Already initialized
    pass

configure_logging(settings.log_level, settings.log_json)
logger = structlog.get_logger()

HandlerResult = Tuple[Dict[str, Any], int]

# ============================================================================
# Helper Functions
# ============================================================================


def error_body(
    error: str,
    exc: Optional[MoveQuoteError] = None,
    message: Optional[str] = None
) -> Dict[str, Any]:
    """Build error response body."""
    body: Dict[str, Any] = {"error": error}
    if exc is not None:
        body["message"] = exc.message
        body["code"] = exc.code
        if isinstance(exc, ModelCallError) and exc.stage:
            body["stage"] = exc.stage
        if isinstance(exc, ValidationError) and exc.field:
            body["field"] = exc.field
    elif message:
        body["message"] = message
    return body


def get_request_json(req: https_fn.Request) -> Any:
    """Extract JSON from request body.

    Raises:
        ValidationError: If JSON is invalid.
    """
    try:
        return req.get_json(force=True, silent=False)
    except Exception as e:
        raise ValidationError(
            message=f"Invalid JSON in request body: {str(e)}",
            field="body"
        )


# ============================================================================
# Handlers (framework independent)
# ============================================================================


async def handle_detect_furniture(
    data: Any,
    orchestrator: Optional[DetectionOrchestrator] = None
) -> HandlerResult:
    """Detection pipeline for ``{photoUrls, propertyContext?}``."""
    try:
        photo_urls, context = parse_detection_request(data)
    except ValidationError as e:
        logger.warning("detect_request_invalid", error=e.message, field=e.field)
        return error_body(e.message, e), 400

    logger.info("detect_request_received", photos=len(photo_urls), bedrooms=context.bedrooms)

    try:
        orchestrator = orchestrator or DetectionOrchestrator()
        result = await orchestrator.run(photo_urls, context)
    except ValidationError as e:
        return error_body(e.message, e), 400
    except MoveQuoteError as e:
        logger.error("detect_failed", error=e.message, code=e.code, stage=getattr(e, "stage", None))
        return error_body("Detection failed", e), 500
    except Exception as e:
        logger.exception("detect_exception", error=str(e))
        return error_body("Detection failed", message=str(e)), 500

    return result.to_response(), 200


async def handle_calculate_move_time(
    data: Any,
    orchestrator: Optional[QuoteOrchestrator] = None
) -> HandlerResult:
    """Quote pipeline for a move-time request."""
    try:
        request = parse_move_time_request(data)
        custom_upsells = parse_custom_upsells(data)
    except ValidationError as e:
        logger.warning("move_time_request_invalid", error=e.message, field=e.field)
        return error_body(e.message, e), 400

    logger.info(
        "move_time_request_received",
        items=len(request.detections),
        company_id=request.company_id,
        has_trip=request.has_trip
    )

    try:
        orchestrator = orchestrator or get_quote_orchestrator()
        result = await orchestrator.run(request, custom_upsells=custom_upsells)
    except ValidationError as e:
        return error_body(e.message, e), 400
    except MoveQuoteError as e:
        logger.error("move_time_failed", error=e.message, code=e.code)
        return error_body("Move time calculation failed", e), 500
    except Exception as e:
        logger.exception("move_time_exception", error=str(e))
        return error_body("Move time calculation failed", message=str(e)), 500

    return result.to_response(), 200


def handle_plan_trucks(data: Any) -> HandlerResult:
    """Truck plan for ``{totalCubicFeet}``."""
    try:
        total = parse_truck_request(data)
        plan = plan_truck_capacity(total)
    except ValidationError as e:
        return error_body(e.message, e), 400
    return plan.to_response(), 200


# ============================================================================
# HTTP Entry Points
# ============================================================================

ENDPOINT_CONFIG = {
    "timeout_sec": 300,
    "memory": options.MemoryOption.GB_1,
    "region": "us-central1"
}


def _method_not_allowed() -> https_fn.Response:
    return _json_response(
        {"error": "Method not allowed", "code": ErrorCode.METHOD_NOT_ALLOWED},
        status=405
    )


@https_fn.on_request(**ENDPOINT_CONFIG)
def detect_furniture(req: https_fn.Request) -> https_fn.Response:
    """Detect furniture in listing photos.

    Request body:
    {
        "photoUrls": ["https://...", ...],
        "propertyContext": {"bedrooms": 3, "bathrooms": 2, "sqft": 1800, "propertyType": "SINGLE_FAMILY"}
    }

    Response:
    {
        "detections": [...],
        "validation": {"anomalies": [...], "warnings": [...], "stats": {...}},
        "metadata": {"totalRooms": 5, "totalPhotos": 12, "propertyContext": {...}, "rooms": [...]}
    }
    """
    if req.method == "OPTIONS":
        return _cors_response()
    if req.method != "POST":
        return _method_not_allowed()

    try:
        data = get_request_json(req)
    except ValidationError as e:
        return _json_response(error_body(e.message, e), status=400)

    body, status = asyncio.run(handle_detect_furniture(data))
    return _json_response(body, status=status)


@https_fn.on_request(**ENDPOINT_CONFIG)
def calculate_move_time(req: https_fn.Request) -> https_fn.Response:
    """Price a move from its inventory and trip metadata.

    Response:
    {
        "estimate": {...},
        "moveTime": {...},
        "volume": {...},
        "truckPlan": {...},
        "upsells": [...],
        "upsellsTotal": 70.0,
        "degraded": false
    }
    """
    if req.method == "OPTIONS":
        return _cors_response()
    if req.method != "POST":
        return _method_not_allowed()

    try:
        data = get_request_json(req)
    except ValidationError as e:
        return _json_response(error_body(e.message, e), status=400)

    body, status = asyncio.run(handle_calculate_move_time(data))
    return _json_response(body, status=status)


@https_fn.on_request(region="us-central1")
def plan_trucks(req: https_fn.Request) -> https_fn.Response:
    """Trucks needed for ``{"totalCubicFeet": 2500}``."""
    if req.method == "OPTIONS":
        return _cors_response()
    if req.method != "POST":
        return _method_not_allowed()

    try:
        data = get_request_json(req)
    except ValidationError as e:
        return _json_response(error_body(e.message, e), status=400)

    body, status = handle_plan_trucks(data)
    return _json_response(body, status=status)


CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Max-Age": "3600"
}


def _cors_response() -> https_fn.Response:
    """Return CORS preflight response."""
    return https_fn.Response(
        "",
        status=204,
        headers=CORS_HEADERS
    )


def _json_response(data: dict, status: int = 200) -> https_fn.Response:
    """Return JSON response with CORS headers."""
    return https_fn.Response(
        json.dumps(data, default=str),
        status=status,
        mimetype="application/json",
        headers=CORS_HEADERS
    )
