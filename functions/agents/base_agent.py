"""Base agent for MovSense.

Abstract base class for the AI-backed pipeline agents.
"""

from abc import ABC
from typing import Dict, Any, Optional, List, Sequence, Union
import time
import structlog

from services.llm_service import LLMService
from config.errors import ModelCallError, ErrorCode

logger = structlog.get_logger()


class BaseAgent(ABC):
    """Abstract base class for pipeline agents.

    Provides:
    - LLM service integration
    - Token and duration tracking
    - Stage attribution of model-call failures
    """

    # Pipeline stage reported on ModelCallError
    stage: str = ""

    def __init__(
        self,
        name: str,
        llm_service: Optional[LLMService] = None
    ):
        """Initialize BaseAgent.

        Args:
            name: Agent name (e.g., "room_classifier", "move_time").
            llm_service: Optional LLM service instance.
        """
        self.name = name
        self.llm = llm_service or LLMService()

        # Tracking
        self._tokens_used = 0
        self._start_time: Optional[float] = None

    @property
    def tokens_used(self) -> int:
        """Get tokens used since the last ``start_run``."""
        return self._tokens_used

    @property
    def duration_ms(self) -> int:
        """Get duration of current run in milliseconds."""
        if self._start_time is None:
            return 0
        return int((time.time() - self._start_time) * 1000)

    def start_run(self) -> None:
        self._start_time = time.time()
        self._tokens_used = 0

    async def call_json(
        self,
        system_prompt: str,
        user_message: Union[str, List[Dict[str, Any]]],
        details: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Text JSON call; failures are re-raised with this agent's stage."""
        try:
            result = await self.llm.generate_json(system_prompt, user_message)
        except ModelCallError as e:
            raise self._staged(e, details) from e
        self._tokens_used += result.get("tokens_used", 0) or 0
        return result["content"]

    async def call_vision_json(
        self,
        system_prompt: str,
        prompt: str,
        image_urls: Sequence[str],
        detail: str = "auto",
        details: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Vision JSON call; failures are re-raised with this agent's stage."""
        try:
            result = await self.llm.generate_vision_json(
                system_prompt, prompt, image_urls, detail=detail
            )
        except ModelCallError as e:
            raise self._staged(e, details) from e
        self._tokens_used += result.get("tokens_used", 0) or 0
        return result["content"]

    def _staged(self, error: ModelCallError, details: Optional[Dict[str, Any]]) -> ModelCallError:
        staged = error.with_stage(self.stage)
        if details:
            staged.details.update(details)
        logger.error(
            "agent_model_call_failed",
            agent=self.name,
            stage=self.stage,
            error_code=error.code,
            error=error.message
        )
        return staged

    def invalid_output(self, message: str, details: Optional[Dict[str, Any]] = None) -> ModelCallError:
        """Error for model output that parsed as JSON but has the wrong shape."""
        return ModelCallError(
            message=message,
            stage=self.stage,
            code=ErrorCode.MODEL_INVALID_OUTPUT,
            details=details
        )
