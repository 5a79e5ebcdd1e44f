"""HTTP request body parsing for the MovSense endpoints.

Turns raw JSON bodies into typed inputs, raising ``ValidationError`` with the
offending field so handlers can answer 400.
"""

from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError
import structlog

from config.errors import ValidationError
from models.estimate import MoveTimeRequest
from models.inventory import PropertyContext
from models.quote import CustomUpsell
from utils.numbers import finite_number

logger = structlog.get_logger(__name__)


PHOTO_URLS_REQUIRED = "photoUrls array is required"


def _body(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", field="body")
    return data


def _first_error_field(error: PydanticValidationError) -> Optional[str]:
    errors = error.errors(include_url=False)
    if not errors:
        return None
    return ".".join(str(part) for part in errors[0].get("loc", ())) or None


def parse_detection_request(data: Any) -> Tuple[List[str], PropertyContext]:
    """Photo URLs and property context from a detect-furniture body.

    Raises:
        ValidationError: If ``photoUrls`` is missing, empty, not a list, or
            holds anything other than non-empty strings.
    """
    body = _body(data)
    photo_urls = body.get("photoUrls")
    if not isinstance(photo_urls, list) or not photo_urls:
        raise ValidationError(PHOTO_URLS_REQUIRED, field="photoUrls")
    if not all(isinstance(url, str) and url.strip() for url in photo_urls):
        raise ValidationError(PHOTO_URLS_REQUIRED, field="photoUrls")

    try:
        context = PropertyContext.from_request(body.get("propertyContext"))
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid propertyContext",
            field=f"propertyContext.{_first_error_field(e)}",
            details={"errors": e.errors(include_url=False)},
        ) from e

    return [url.strip() for url in photo_urls], context


def parse_move_time_request(data: Any) -> MoveTimeRequest:
    """Typed move-time request from a calculate-move-time body.

    Raises:
        ValidationError: If the body does not match the request schema.
    """
    body = _body(data)
    if "detections" in body and not isinstance(body["detections"], list):
        raise ValidationError("detections must be an array", field="detections")

    try:
        request = MoveTimeRequest.model_validate(body)
    except PydanticValidationError as e:
        field = _first_error_field(e)
        logger.warning("move_time_request_invalid", field=field, errors=e.error_count())
        raise ValidationError(
            f"Invalid move time request: {field or 'body'}",
            field=field,
            details={"errors": e.errors(include_url=False)},
        ) from e
    return request


def parse_custom_upsells(data: Any) -> List[CustomUpsell]:
    """Request-scoped custom upsells; absent means none."""
    raw = _body(data).get("customUpsells")
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("customUpsells must be an array", field="customUpsells")
    try:
        return [CustomUpsell.model_validate(entry) for entry in raw]
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid custom upsell",
            field=f"customUpsells.{_first_error_field(e)}",
            details={"errors": e.errors(include_url=False)},
        ) from e


def parse_truck_request(data: Any) -> float:
    """Total cubic feet from a plan-trucks body.

    Raises:
        ValidationError: If ``totalCubicFeet`` is missing or not a finite number.
    """
    total = finite_number(_body(data).get("totalCubicFeet"))
    if total is None:
        raise ValidationError("totalCubicFeet must be a number", field="totalCubicFeet")
    return total
