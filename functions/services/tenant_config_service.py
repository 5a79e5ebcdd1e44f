"""Tenant configuration service for MovSense.

Reads a moving company's custom upsells and pricing-policy overrides from
Firestore (``companies/{companyId}``). Missing documents or fields fall back
to defaults.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional
import inspect

import structlog
from firebase_admin import firestore
from pydantic import ValidationError as PydanticValidationError

from config.errors import ErrorCode, ExternalServiceError
from models.pricing import PricingPolicy
from models.quote import CustomUpsell

logger = structlog.get_logger()


@dataclass
class TenantConfig:
    """Per-company configuration consumed by the quote pipeline."""
    company_id: Optional[str] = None
    custom_upsells: List[CustomUpsell] = field(default_factory=list)
    pricing_overrides: Dict[str, Any] = field(default_factory=dict)

    def apply_to(self, policy: PricingPolicy) -> PricingPolicy:
        """``policy`` with this tenant's overrides applied."""
        if not self.pricing_overrides:
            return policy
        try:
            return policy.with_overrides(self.pricing_overrides)
        except PydanticValidationError as e:
            raise ExternalServiceError(
                code=ErrorCode.TENANT_CONFIG_ERROR,
                message=f"Invalid pricing overrides for company {self.company_id}",
                service="tenant_config",
                details={"errors": e.errors(include_url=False)},
            ) from e


class TenantConfigService:
    """Service for tenant configuration reads.

    Note: Firebase Admin SDK for Python is synchronous. Methods are
    marked async for interface compatibility but operations are sync.
    """

    COLLECTION_COMPANIES = "companies"
    FIELD_CUSTOM_UPSELLS = "customUpsells"
    FIELD_PRICING = "pricingPolicy"

    def __init__(self, db=None):
        """Initialize TenantConfigService.

        Args:
            db: Optional Firestore client. If not provided, uses default.
        """
        self._db = db

    @property
    def db(self):
        """Get Firestore client (lazy initialization)."""
        if self._db is None:
            self._db = firestore.client()
        return self._db

    async def _maybe_await(self, result: Any) -> Any:
        """Await result if it is awaitable (supports AsyncMock in unit tests)."""
        if inspect.isawaitable(result):
            return await result
        return result

    async def get_config(self, company_id: Optional[str]) -> TenantConfig:
        """Fetch configuration for a company; defaults when none is stored.

        Raises:
            ExternalServiceError: If the Firestore read fails.
        """
        if not company_id:
            return TenantConfig()

        try:
            doc_ref = self.db.collection(self.COLLECTION_COMPANIES).document(company_id)
            doc = await self._maybe_await(doc_ref.get())
        except Exception as e:
            logger.error("tenant_config_read_failed", company_id=company_id, error=str(e))
            raise ExternalServiceError(
                code=ErrorCode.TENANT_CONFIG_ERROR,
                message=f"Failed to read tenant configuration: {str(e)}",
                service="tenant_config",
                details={"company_id": company_id},
            ) from e

        if not doc.exists:
            logger.info("tenant_config_missing", company_id=company_id)
            return TenantConfig(company_id=company_id)

        data = doc.to_dict() or {}
        config = TenantConfig(
            company_id=company_id,
            custom_upsells=self._parse_upsells(company_id, data.get(self.FIELD_CUSTOM_UPSELLS)),
            pricing_overrides=dict(data.get(self.FIELD_PRICING) or {}),
        )
        logger.info(
            "tenant_config_loaded",
            company_id=company_id,
            custom_upsells=len(config.custom_upsells),
            overrides=sorted(config.pricing_overrides),
        )
        return config

    @staticmethod
    def _parse_upsells(company_id: str, raw: Any) -> List[CustomUpsell]:
        upsells = []
        for entry in raw or []:
            try:
                upsells.append(CustomUpsell.model_validate(entry))
            except PydanticValidationError as e:
                logger.warning(
                    "custom_upsell_invalid",
                    company_id=company_id,
                    entry=entry,
                    error=str(e),
                )
        return upsells
