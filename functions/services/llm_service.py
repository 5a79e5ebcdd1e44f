"""LLM service for MovSense.

Provides LangChain/OpenAI integration for the vision and pricing agents.
"""

import asyncio
import json
import re
from typing import Dict, Any, Optional, List, Sequence, Union

import structlog
from langchain_openai import ChatOpenAI
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config.settings import settings
from config.errors import ModelCallError, ErrorCode

logger = structlog.get_logger()


JSON_INSTRUCTION = "IMPORTANT: You MUST respond with valid JSON only. No markdown, no explanation, just JSON."

_TRANSIENT_MARKERS = (
    "rate_limit", "rate limit", "timeout", "timed out", "connection",
    "temporarily", "overloaded", "502", "503", "504",
)


class TransientLLMError(Exception):
    """A failure worth retrying (rate limit, timeout, 5xx, dropped connection)."""


def _is_transient(error_msg: str) -> bool:
    lowered = error_msg.lower()
    return any(marker in lowered for marker in _TRANSIENT_MARKERS)


def parse_json_content(content: str) -> Union[Dict[str, Any], List[Any]]:
    """Parse model text as JSON, tolerating code fences and surrounding prose.

    Raises:
        ValueError: If no JSON object or array can be recovered.
    """
    text = (content or "").strip()

    # Handle markdown code blocks
    fenced = re.search(r"```(?:json)?\s*(.*?)```", text, re.DOTALL)
    if fenced:
        text = fenced.group(1).strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Fall back to the outermost object or array in the text
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if starts:
        start = min(starts)
        closer = "}" if text[start] == "{" else "]"
        end = text.rfind(closer)
        if end > start:
            try:
                return json.loads(text[start:end + 1])
            except json.JSONDecodeError:
                pass

    raise ValueError("no JSON object or array found in model output")


def image_content(
    prompt: str,
    image_urls: Sequence[str],
    detail: str = "auto"
) -> List[Dict[str, Any]]:
    """Multimodal message content: the prompt followed by each image."""
    parts: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
    for url in image_urls:
        parts.append({"type": "image_url", "image_url": {"url": url, "detail": detail}})
    return parts


class LLMService:
    """Service for LLM operations using LangChain.

    Provides a wrapper around ChatOpenAI with token tracking, an explicit
    timeout, bounded retry with exponential backoff on transient failures,
    and error mapping to ``ModelCallError``.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        retry_wait=None
    ):
        """Initialize LLMService.

        Args:
            model: Model name (default from settings).
            temperature: Temperature (default from settings).
            api_key: OpenAI API key (default from settings).
            timeout: Seconds allowed per attempt (default from settings).
            max_attempts: Attempts including the first (default from settings).
            retry_wait: tenacity wait strategy between attempts.
        """
        self.model = model or settings.llm_model
        self.temperature = temperature if temperature is not None else settings.llm_temperature
        self.api_key = api_key or settings.openai_api_key
        self.timeout = timeout or settings.llm_timeout_seconds
        self.max_attempts = max_attempts or settings.llm_max_attempts
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=2, max=10)

        self._client: Optional[ChatOpenAI] = None
        self._total_tokens_used = 0

    @property
    def client(self) -> ChatOpenAI:
        """Get LangChain ChatOpenAI client (lazy initialization)."""
        if self._client is None:
            self._client = ChatOpenAI(
                model=self.model,
                temperature=self.temperature,
                api_key=self.api_key
            )
        return self._client

    @property
    def total_tokens_used(self) -> int:
        """Get total tokens used across all calls."""
        return self._total_tokens_used

    async def _invoke_once(self, messages: List[BaseMessage], **kwargs):
        try:
            return await asyncio.wait_for(
                self.client.ainvoke(messages, **kwargs),
                timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise TransientLLMError(f"LLM call timed out after {self.timeout}s") from e
        except Exception as e:
            if _is_transient(str(e)):
                raise TransientLLMError(str(e)) from e
            raise

    async def generate(
        self,
        messages: List[BaseMessage],
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """Generate a response from the LLM.

        Args:
            messages: List of LangChain messages.
            max_tokens: Optional max tokens for response.

        Returns:
            Dict with content and token usage.

        Raises:
            ModelCallError: If the LLM call fails after retries.
        """
        kwargs = {}
        if max_tokens:
            kwargs["max_tokens"] = max_tokens

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=self.retry_wait,
                retry=retry_if_exception_type(TransientLLMError),
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            "llm_retry",
                            model=self.model,
                            attempt=attempt.retry_state.attempt_number
                        )
                    response = await self._invoke_once(messages, **kwargs)
        except Exception as e:
            error_msg = str(e)

            # Detect specific error types
            if "context_length" in error_msg.lower() or "maximum context" in error_msg.lower():
                code, message = ErrorCode.LLM_CONTEXT_TOO_LONG, "Input too long for model context"
            elif "rate_limit" in error_msg.lower() or "rate limit" in error_msg.lower():
                code, message = ErrorCode.LLM_RATE_LIMIT, "OpenAI rate limit exceeded"
            elif "timed out" in error_msg.lower():
                code, message = ErrorCode.MODEL_TIMEOUT, error_msg
            else:
                code, message = ErrorCode.MODEL_CALL_FAILED, f"LLM generation failed: {error_msg}"

            raise ModelCallError(
                message=message,
                code=code,
                details={"original_error": error_msg}
            ) from e

        # Track token usage if available
        tokens_used = 0
        if hasattr(response, "response_metadata"):
            usage = (response.response_metadata or {}).get("token_usage", {}) or {}
            tokens_used = usage.get("total_tokens", 0) or 0
            self._total_tokens_used += tokens_used

        content = response.content if isinstance(response.content, str) else str(response.content)

        logger.info(
            "llm_generated",
            model=self.model,
            tokens_used=tokens_used,
            content_length=len(content)
        )

        return {
            "content": content,
            "tokens_used": tokens_used
        }

    async def generate_with_system_prompt(
        self,
        system_prompt: str,
        user_message: Union[str, List[Dict[str, Any]]],
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """Generate a response with system prompt.

        ``user_message`` may be plain text or multimodal content parts.
        """
        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_message)
        ]
        return await self.generate(messages, max_tokens)

    async def generate_json(
        self,
        system_prompt: str,
        user_message: Union[str, List[Dict[str, Any]]],
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """Generate a JSON response (object or array).

        Raises:
            ModelCallError: If the call fails or the response is not valid JSON.
        """
        json_prompt = f"{system_prompt}\n\n{JSON_INSTRUCTION}"

        result = await self.generate_with_system_prompt(
            json_prompt,
            user_message,
            max_tokens
        )

        try:
            parsed = parse_json_content(result["content"])
        except ValueError as e:
            raise ModelCallError(
                message="LLM did not return valid JSON",
                code=ErrorCode.MODEL_INVALID_OUTPUT,
                details={
                    "parse_error": str(e),
                    "raw_content": result["content"][:500]
                }
            ) from e

        return {
            "content": parsed,
            "tokens_used": result["tokens_used"]
        }

    async def generate_vision_json(
        self,
        system_prompt: str,
        prompt: str,
        image_urls: Sequence[str],
        detail: str = "auto",
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """JSON response for a prompt plus a set of images."""
        return await self.generate_json(
            system_prompt,
            image_content(prompt, image_urls, detail),
            max_tokens
        )
