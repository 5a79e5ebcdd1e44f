"""MovSense error handling.

Custom exceptions and error codes for the detection and estimation pipeline.
"""

from typing import Optional, Dict, Any


class ErrorCode:
    """Error code constants."""

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"

    # Model Call Errors
    MODEL_CALL_FAILED = "MODEL_CALL_FAILED"
    MODEL_TIMEOUT = "MODEL_TIMEOUT"
    MODEL_INVALID_OUTPUT = "MODEL_INVALID_OUTPUT"
    LLM_RATE_LIMIT = "LLM_RATE_LIMIT"
    LLM_CONTEXT_TOO_LONG = "LLM_CONTEXT_TOO_LONG"

    # Estimation Errors
    ESTIMATION_FALLBACK = "ESTIMATION_FALLBACK"

    # Pipeline Errors
    DETECTION_FAILED = "DETECTION_FAILED"
    ESTIMATE_FAILED = "ESTIMATE_FAILED"

    # External Service Errors
    DISTANCE_LOOKUP_FAILED = "DISTANCE_LOOKUP_FAILED"
    TENANT_CONFIG_ERROR = "TENANT_CONFIG_ERROR"


class Stage:
    """Pipeline stage names attached to model-call errors."""

    ROOM_CLASSIFICATION = "room_classification"
    ROOM_DETECTION = "room_detection"
    VALIDATION = "validation"
    ESTIMATION = "estimation"


class MoveQuoteError(Exception):
    """Base exception for MovSense errors.

    Provides structured error information for API responses.

    Attributes:
        code: Error code from ErrorCode constants
        message: Human-readable error message
        details: Additional error context
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API response.

        Returns:
            Dictionary with code, message, and details.
        """
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(MoveQuoteError):
    """Malformed or missing request fields (client-facing 400, never retried)."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict] = None):
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            details={**(details or {}), "field": field} if field else details
        )
        self.field = field


class ModelCallError(MoveQuoteError):
    """An AI call failed or returned output that could not be parsed."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        code: str = ErrorCode.MODEL_CALL_FAILED,
        details: Optional[Dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            details={**(details or {}), "stage": stage}
        )
        self.stage = stage

    def with_stage(self, stage: str) -> "ModelCallError":
        """Return a copy of this error attributed to a pipeline stage."""
        return ModelCallError(
            message=self.message,
            stage=stage,
            code=self.code,
            details={k: v for k, v in self.details.items() if k != "stage"}
        )


class EstimationFallbackError(MoveQuoteError):
    """The AI estimate is unusable; the deterministic fallback must be used."""

    def __init__(self, message: str, cause: Optional[Exception] = None, details: Optional[Dict] = None):
        super().__init__(
            code=ErrorCode.ESTIMATION_FALLBACK,
            message=message,
            details={**(details or {}), "cause": repr(cause) if cause else None}
        )
        self.cause = cause


class ExternalServiceError(MoveQuoteError):
    """A non-AI collaborator (distance lookup, tenant config) failed."""

    def __init__(self, code: str, message: str, service: str, details: Optional[Dict] = None):
        super().__init__(
            code=code,
            message=message,
            details={**(details or {}), "service": service}
        )
        self.service = service
