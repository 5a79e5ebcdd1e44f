"""Unit tests for TenantConfigService."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from config.errors import ErrorCode, ExternalServiceError
from services.tenant_config_service import TenantConfig, TenantConfigService


def _document(mock_firestore_client, data, exists=True):
    document = mock_firestore_client.collection.return_value.document.return_value
    document.get = AsyncMock(return_value=MagicMock(exists=exists, to_dict=lambda: data))


class TestTenantConfigService:
    """Tests for get_config."""

    @pytest.mark.asyncio
    async def test_no_company_uses_defaults(self, mock_firestore_client):
        service = TenantConfigService(db=mock_firestore_client)

        config = await service.get_config(None)

        assert config == TenantConfig()
        mock_firestore_client.collection.assert_not_called()

    @pytest.mark.asyncio
    async def test_loads_upsells_and_overrides(self, mock_firestore_client):
        _document(mock_firestore_client, {
            "customUpsells": [
                {"id": "storage", "name": "Storage", "price": 99},
                {"id": "", "name": "Broken"},
            ],
            "pricingPolicy": {"taxRate": 0.05},
        })
        service = TenantConfigService(db=mock_firestore_client)

        config = await service.get_config("acme")

        mock_firestore_client.collection.assert_called_with("companies")
        mock_firestore_client.collection.return_value.document.assert_called_with("acme")
        assert [u.id for u in config.custom_upsells] == ["storage"]
        assert config.pricing_overrides == {"taxRate": 0.05}

    @pytest.mark.asyncio
    async def test_missing_document(self, mock_firestore_client):
        _document(mock_firestore_client, None, exists=False)
        service = TenantConfigService(db=mock_firestore_client)

        config = await service.get_config("acme")

        assert config.company_id == "acme"
        assert config.custom_upsells == []

    @pytest.mark.asyncio
    async def test_read_failure(self, mock_firestore_client):
        document = mock_firestore_client.collection.return_value.document.return_value
        document.get = AsyncMock(side_effect=Exception("unavailable"))
        service = TenantConfigService(db=mock_firestore_client)

        with pytest.raises(ExternalServiceError) as exc_info:
            await service.get_config("acme")

        assert exc_info.value.code == ErrorCode.TENANT_CONFIG_ERROR


class TestTenantConfig:
    """Tests for TenantConfig.apply_to."""

    def test_apply_overrides(self, policy):
        config = TenantConfig(company_id="acme", pricing_overrides={"tvBoxPrice": 40})
        assert config.apply_to(policy).tv_box_price == 40

    def test_no_overrides_returns_policy(self, policy):
        assert TenantConfig().apply_to(policy) is policy

    def test_invalid_overrides(self, policy):
        config = TenantConfig(company_id="acme", pricing_overrides={"taxRate": 2})

        with pytest.raises(ExternalServiceError) as exc_info:
            config.apply_to(policy)

        assert exc_info.value.code == ErrorCode.TENANT_CONFIG_ERROR
