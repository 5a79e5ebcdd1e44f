"""Distance lookup for MovSense.

Google Maps Distance Matrix client returning driving distance in miles and
duration in minutes between two addresses.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)
import structlog

from config.errors import ErrorCode, ExternalServiceError
from config.settings import settings

logger = structlog.get_logger()


DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"
METERS_PER_MILE = 1609.34


@dataclass
class DistanceResult:
    """Driving distance and time between two addresses."""
    distance: float        # miles
    duration: int          # minutes, rounded up
    distance_text: str
    duration_text: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "distance": self.distance,
            "duration": self.duration,
            "distanceText": self.distance_text,
            "durationText": self.duration_text,
        }


def _lookup_error(message: str, **details) -> ExternalServiceError:
    return ExternalServiceError(
        code=ErrorCode.DISTANCE_LOOKUP_FAILED,
        message=message,
        service="google_distance_matrix",
        details=details,
    )


def parse_distance_response(data: Dict[str, Any]) -> DistanceResult:
    """Extract the single origin/destination element from a matrix response.

    Raises:
        ExternalServiceError: If the API or the element reports a failure.
    """
    status = data.get("status")
    if status == "REQUEST_DENIED":
        raise _lookup_error(
            f"Distance lookup denied: {data.get('error_message') or 'API key invalid or missing'}",
            status=status,
        )
    if status != "OK":
        raise _lookup_error(f"Distance lookup failed: {status}", status=status)

    rows = data.get("rows") or [{}]
    elements = rows[0].get("elements") or [{}]
    element = elements[0]
    if element.get("status") != "OK":
        raise _lookup_error(
            f"Could not calculate distance: {element.get('status') or 'Unknown error'}",
            status=element.get("status"),
        )

    return DistanceResult(
        distance=element["distance"]["value"] / METERS_PER_MILE,
        duration=math.ceil(element["duration"]["value"] / 60),
        distance_text=element["distance"].get("text", ""),
        duration_text=element["duration"].get("text", ""),
    )


class DistanceService:
    """Driving distance between two addresses."""

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None):
        self.api_key = api_key or settings.google_maps_api_key
        self.timeout = timeout or settings.distance_timeout_seconds

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.HTTPError, httpx.TimeoutException)),
        reraise=True,
    )
    async def _fetch(self, origin: str, destination: str) -> Dict[str, Any]:
        """Call the Distance Matrix API with retry logic.

        Raises:
            httpx.HTTPError: On HTTP errors after retries
        """
        params = {
            "origins": origin,
            "destinations": destination,
            "units": "imperial",
            "key": self.api_key,
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(DISTANCE_MATRIX_URL, params=params)
            response.raise_for_status()
            return response.json()

    async def get_distance(self, origin: str, destination: str) -> DistanceResult:
        """Distance in miles and duration in minutes.

        Raises:
            ExternalServiceError: If the key is missing or the lookup fails.
        """
        if not self.api_key:
            raise _lookup_error("Google Maps API key not configured")
        if not origin or not destination:
            raise _lookup_error("Origin and destination addresses are required")

        try:
            data = await self._fetch(origin, destination)
        except httpx.HTTPError as e:
            logger.error("distance_lookup_http_error", error=str(e))
            raise _lookup_error(f"Distance lookup failed: {e}") from e

        result = parse_distance_response(data)
        logger.info(
            "distance_lookup_complete",
            miles=round(result.distance, 1),
            minutes=result.duration,
        )
        return result
