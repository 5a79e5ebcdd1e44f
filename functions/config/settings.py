"""MovSense configuration settings.

Loads configuration from environment variables with sensible defaults.
Secrets are loaded via Firebase Secrets Manager (production) or environment variables (emulator).
"""

import os
from typing import Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load .env file for non-secret configuration (emulator hosts, feature flags, etc.)
# Secrets should come from Firebase Secrets Manager or environment variables
load_dotenv()


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Note: Secrets (OPENAI_API_KEY, GOOGLE_MAPS_API_KEY) should be accessed via
    the config.secrets module. The key properties below delegate to it.
    """

    # LLM Configuration (non-secrets)
    llm_model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", "gpt-4o"))
    vision_model: str = field(default_factory=lambda: os.getenv("VISION_MODEL", "gpt-4o"))
    llm_temperature: float = field(default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.1")))
    pricing_temperature: float = field(default_factory=lambda: float(os.getenv("PRICING_TEMPERATURE", "0.2")))
    llm_timeout_seconds: float = field(default_factory=lambda: float(os.getenv("LLM_TIMEOUT_SECONDS", "60")))
    llm_max_attempts: int = field(default_factory=lambda: int(os.getenv("LLM_MAX_ATTEMPTS", "3")))

    # Detection pipeline
    classification_batch_size: int = field(default_factory=lambda: int(os.getenv("CLASSIFICATION_BATCH_SIZE", "5")))
    room_detection_concurrency: int = field(default_factory=lambda: int(os.getenv("ROOM_DETECTION_CONCURRENCY", "4")))

    # Estimation
    tax_rate: float = field(default_factory=lambda: float(os.getenv("TAX_RATE", "0.13")))
    truck_capacity_cubic_feet: float = field(default_factory=lambda: float(os.getenv("TRUCK_CAPACITY_CUBIC_FEET", "1700")))
    fallback_crew_size: int = field(default_factory=lambda: int(os.getenv("FALLBACK_CREW_SIZE", "3")))
    fallback_safety_pct: float = field(default_factory=lambda: float(os.getenv("FALLBACK_SAFETY_PCT", "10")))
    estimate_cache_ttl_seconds: int = field(default_factory=lambda: int(os.getenv("ESTIMATE_CACHE_TTL_SECONDS", "900")))

    # Distance lookup
    distance_timeout_seconds: float = field(default_factory=lambda: float(os.getenv("DISTANCE_TIMEOUT_SECONDS", "10")))

    # Firebase Configuration
    firebase_project_id: Optional[str] = field(default_factory=lambda: os.getenv("FIREBASE_PROJECT_ID"))
    use_firebase_emulators: bool = field(default_factory=lambda: os.getenv("USE_FIREBASE_EMULATORS", "false").lower() == "true")
    firestore_emulator_host: str = field(default_factory=lambda: os.getenv("FIRESTORE_EMULATOR_HOST", "localhost:8081"))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_json: bool = field(default_factory=lambda: os.getenv("LOG_JSON", "false").lower() == "true")

    # Internal: cached secret values (use the properties instead)
    _openai_api_key: Optional[str] = field(default=None, repr=False)
    _google_maps_api_key: Optional[str] = field(default=None, repr=False)

    @property
    def openai_api_key(self) -> Optional[str]:
        """Get OpenAI API key from Firebase Secrets Manager or environment."""
        if self._openai_api_key is None:
            from config.secrets import get_openai_api_key
            self._openai_api_key = get_openai_api_key()
        return self._openai_api_key

    @property
    def google_maps_api_key(self) -> Optional[str]:
        """Get Google Maps API key from Firebase Secrets Manager or environment."""
        if self._google_maps_api_key is None:
            from config.secrets import get_google_maps_api_key
            self._google_maps_api_key = get_google_maps_api_key()
        return self._google_maps_api_key

    def validate(self) -> None:
        """Validate required settings are present.

        Raises:
            ValueError: If required settings are missing or out of range.
        """
        if not self.openai_api_key and not self.use_firebase_emulators:
            raise ValueError("OPENAI_API_KEY is required in production")
        if self.classification_batch_size < 1:
            raise ValueError("CLASSIFICATION_BATCH_SIZE must be at least 1")
        if self.room_detection_concurrency < 1:
            raise ValueError("ROOM_DETECTION_CONCURRENCY must be at least 1")
        if self.fallback_crew_size not in (2, 3, 4, 5, 6):
            raise ValueError("FALLBACK_CREW_SIZE must be one of 2, 3, 4, 5, 6")

    @property
    def is_emulator_mode(self) -> bool:
        """Check if running in emulator mode."""
        return self.use_firebase_emulators


# Singleton settings instance
settings = Settings()
