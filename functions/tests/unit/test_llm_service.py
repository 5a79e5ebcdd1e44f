"""Unit tests for LLM service."""

import asyncio

import pytest
from unittest.mock import MagicMock, patch

from config.errors import ErrorCode, ModelCallError


def _response(content, tokens=50):
    return MagicMock(content=content, response_metadata={"token_usage": {"total_tokens": tokens}})


class TestLLMService:
    """Tests for LLMService."""

    def test_initialization(self):
        """Test LLMService initialization."""
        with patch('services.llm_service.ChatOpenAI'):
            from services.llm_service import LLMService

            service = LLMService(
                model="gpt-4o-mini",
                temperature=0.2,
                api_key="test-key",
                timeout=15,
                max_attempts=2
            )

            assert service.model == "gpt-4o-mini"
            assert service.temperature == 0.2
            assert service.api_key == "test-key"
            assert service.timeout == 15
            assert service.max_attempts == 2

    def test_default_initialization(self, mock_settings):
        """Test LLMService uses settings defaults."""
        with patch('services.llm_service.ChatOpenAI'):
            from services.llm_service import LLMService

            service = LLMService()

            assert service.model == "gpt-4o"
            assert service.api_key == "test-api-key"

    @pytest.mark.asyncio
    async def test_generate(self, mock_llm_service):
        """Test generate method."""
        from langchain_core.messages import HumanMessage

        result = await mock_llm_service.generate([HumanMessage(content="Hello")])

        assert result["content"] == '{"result": "ok"}'
        assert result["tokens_used"] == 100
        assert mock_llm_service.total_tokens_used == 100

    @pytest.mark.asyncio
    async def test_generate_with_system_prompt(self, mock_llm_service):
        """Test generate_with_system_prompt sends system then human message."""
        await mock_llm_service.generate_with_system_prompt(
            system_prompt="You are a moving estimator.",
            user_message="How long?",
            max_tokens=200
        )

        messages = mock_llm_service._client.ainvoke.call_args.args[0]
        assert messages[0].content == "You are a moving estimator."
        assert messages[1].content == "How long?"
        assert mock_llm_service._client.ainvoke.call_args.kwargs["max_tokens"] == 200

    @pytest.mark.asyncio
    async def test_generate_json(self, mock_llm_service):
        """Test generate_json method."""
        mock_llm_service._client.ainvoke.return_value = _response('{"result": "success", "value": 42}')

        result = await mock_llm_service.generate_json(
            system_prompt="Return JSON.",
            user_message="Give me a number."
        )

        assert result["content"] == {"result": "success", "value": 42}
        assert result["tokens_used"] == 50

    @pytest.mark.asyncio
    async def test_generate_json_handles_markdown(self, mock_llm_service):
        """Test generate_json handles markdown code blocks."""
        mock_llm_service._client.ainvoke.return_value = _response('```json\n[{"label": "Sofa"}]\n```')

        result = await mock_llm_service.generate_json("Return JSON.", "List items.")

        assert result["content"] == [{"label": "Sofa"}]

    @pytest.mark.asyncio
    async def test_generate_json_invalid_output(self, mock_llm_service):
        """Test unparseable output raises MODEL_INVALID_OUTPUT."""
        mock_llm_service._client.ainvoke.return_value = _response("I could not see any furniture.")

        with pytest.raises(ModelCallError) as exc_info:
            await mock_llm_service.generate_json("Return JSON.", "List items.")

        assert exc_info.value.code == ErrorCode.MODEL_INVALID_OUTPUT
        assert "raw_content" in exc_info.value.details

    @pytest.mark.asyncio
    async def test_generate_vision_json(self, mock_llm_service):
        """Test images are sent as multimodal content parts."""
        mock_llm_service._client.ainvoke.return_value = _response('{"living_room": [0]}')

        await mock_llm_service.generate_vision_json(
            "Classify rooms.", "Group these photos.", ["https://a/1.jpg"], detail="low"
        )

        human = mock_llm_service._client.ainvoke.call_args.args[0][1]
        assert human.content[0] == {"type": "text", "text": "Group these photos."}
        assert human.content[1] == {
            "type": "image_url",
            "image_url": {"url": "https://a/1.jpg", "detail": "low"}
        }


class TestRetry:
    """Tests for bounded retry and error mapping."""

    @pytest.mark.asyncio
    async def test_transient_error_retried(self, mock_llm_service):
        mock_llm_service._client.ainvoke.side_effect = [
            Exception("503 Service Unavailable"),
            _response('{"ok": true}'),
        ]

        result = await mock_llm_service.generate_json("Return JSON.", "Go.")

        assert result["content"] == {"ok": True}
        assert mock_llm_service._client.ainvoke.call_count == 2

    @pytest.mark.asyncio
    async def test_rate_limit_exhausts_attempts(self, mock_llm_service):
        mock_llm_service._client.ainvoke.side_effect = Exception("rate_limit_exceeded")

        with pytest.raises(ModelCallError) as exc_info:
            await mock_llm_service.generate_json("Return JSON.", "Go.")

        assert exc_info.value.code == ErrorCode.LLM_RATE_LIMIT
        assert mock_llm_service._client.ainvoke.call_count == 3

    @pytest.mark.asyncio
    async def test_timeout_mapped(self, mock_llm_service):
        mock_llm_service._client.ainvoke.side_effect = asyncio.TimeoutError()

        with pytest.raises(ModelCallError) as exc_info:
            await mock_llm_service.generate_json("Return JSON.", "Go.")

        assert exc_info.value.code == ErrorCode.MODEL_TIMEOUT
        assert mock_llm_service._client.ainvoke.call_count == 3

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self, mock_llm_service):
        mock_llm_service._client.ainvoke.side_effect = Exception("invalid api key")

        with pytest.raises(ModelCallError) as exc_info:
            await mock_llm_service.generate_json("Return JSON.", "Go.")

        assert exc_info.value.code == ErrorCode.MODEL_CALL_FAILED
        assert mock_llm_service._client.ainvoke.call_count == 1

    @pytest.mark.asyncio
    async def test_context_length_mapped(self, mock_llm_service):
        mock_llm_service._client.ainvoke.side_effect = Exception("maximum context length is 128000 tokens")

        with pytest.raises(ModelCallError) as exc_info:
            await mock_llm_service.generate_json("Return JSON.", "Go.")

        assert exc_info.value.code == ErrorCode.LLM_CONTEXT_TOO_LONG


class TestParseJsonContent:
    """Tests for parse_json_content."""

    def test_prose_around_object(self):
        from services.llm_service import parse_json_content

        assert parse_json_content('Here you go: {"a": 1} Hope that helps') == {"a": 1}

    def test_no_json(self):
        from services.llm_service import parse_json_content

        with pytest.raises(ValueError):
            parse_json_content("nothing here")
