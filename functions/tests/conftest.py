"""Pytest configuration and shared fixtures for MovSense tests."""

import os
import sys
import pytest
from unittest.mock import AsyncMock, MagicMock, patch


# ============================================================================
# Ensure local imports work (agents/, models/, services/, config/)
# ============================================================================
#
# Our codebase uses absolute imports like `from models...` / `from agents...`.
# This guarantees that `functions/` is importable as the top-level module root.
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# Secrets come from the environment, never from Secret Manager
os.environ.setdefault("FUNCTIONS_EMULATOR", "true")
os.environ.setdefault("OPENAI_API_KEY", "test-api-key")
os.environ.setdefault("GOOGLE_MAPS_API_KEY", "test-maps-key")


# ============================================================================
# Firebase Mocks
# ============================================================================

@pytest.fixture
def mock_firestore_client():
    """Mock Firestore client with a ``companies/{id}`` document."""
    client = MagicMock()

    collection_mock = MagicMock()
    document_mock = MagicMock()

    # Set up chain: client.collection().document()
    client.collection.return_value = collection_mock
    collection_mock.document.return_value = document_mock

    document_mock.get = AsyncMock(return_value=MagicMock(
        exists=True,
        id="company-1",
        to_dict=lambda: {}
    ))
    return client


# ============================================================================
# LLM Mocks
# ============================================================================

@pytest.fixture
def mock_chat_openai():
    """Mock ChatOpenAI client."""
    mock = AsyncMock()
    mock.ainvoke.return_value = MagicMock(
        content='{"result": "ok"}',
        response_metadata={"token_usage": {"total_tokens": 100}}
    )
    return mock


@pytest.fixture
def mock_llm_service(mock_chat_openai):
    """LLMService backed by the mock client, retrying without waits."""
    from tenacity import wait_none
    from services.llm_service import LLMService

    with patch('services.llm_service.ChatOpenAI', return_value=mock_chat_openai):
        service = LLMService(api_key="test-api-key", max_attempts=3, retry_wait=wait_none())
        service._client = mock_chat_openai
        return service


@pytest.fixture
def fake_llm():
    """LLMService stand-in whose JSON methods are AsyncMocks.

    Set ``fake_llm.generate_json.return_value`` or
    ``fake_llm.generate_vision_json.side_effect`` per test.
    """
    mock = MagicMock()
    mock.generate_json = AsyncMock(return_value={"content": {}, "tokens_used": 10})
    mock.generate_vision_json = AsyncMock(return_value={"content": [], "tokens_used": 10})
    return mock


def llm_result(content, tokens_used: int = 10):
    """Shape returned by the LLMService JSON methods."""
    return {"content": content, "tokens_used": tokens_used}


@pytest.fixture
def llm_result_factory():
    return llm_result


# ============================================================================
# Sample Data Fixtures
# ============================================================================

@pytest.fixture
def property_context():
    from models.inventory import PropertyContext

    return PropertyContext(bedrooms=3, bathrooms=2, sqft=1800)


@pytest.fixture
def sample_detections():
    from models.inventory import Detection
    from tests.fixtures.mock_detection_data import SAMPLE_DETECTIONS

    return [Detection.model_validate(d) for d in SAMPLE_DETECTIONS]


@pytest.fixture
def policy():
    from models.pricing import PricingPolicy

    return PricingPolicy()


# ============================================================================
# Environment Setup
# ============================================================================

@pytest.fixture(autouse=True)
def mock_settings():
    """Pin settings that tests depend on."""
    from config.settings import settings

    with patch.object(settings, "_openai_api_key", "test-api-key"), \
            patch.object(settings, "_google_maps_api_key", "test-maps-key"), \
            patch.object(settings, "use_firebase_emulators", True), \
            patch.object(settings, "llm_model", "gpt-4o"), \
            patch.object(settings, "vision_model", "gpt-4o"), \
            patch.object(settings, "tax_rate", 0.13), \
            patch.object(settings, "truck_capacity_cubic_feet", 1700), \
            patch.object(settings, "fallback_crew_size", 3), \
            patch.object(settings, "fallback_safety_pct", 10), \
            patch.object(settings, "classification_batch_size", 5), \
            patch.object(settings, "room_detection_concurrency", 4):
        yield settings
