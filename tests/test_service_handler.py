"""Tests for podmeta/service/handler.py — item, batch and key validation flows."""

from unittest.mock import AsyncMock, patch

import pytest

import podmeta.credentials.factory as factory_mod
import podmeta.providers.registry as registry_mod
from podmeta.credentials.models import ProviderStatus
from podmeta.credentials.pool import CredentialPool
from podmeta.metadata.models import Marketplace
from podmeta.providers.errors import ErrorKind, ProviderError
from podmeta.service.handler import (
    BatchItem,
    process_batch,
    process_item,
    validate_provider_keys,
)


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch, override_settings, tmp_path):
    """Fresh pool/state store/registry per test, with only Mistral keyed."""
    override_settings(
        KEY_POOL_PATH=str(tmp_path / "missing.json"),
        MISTRAL_API_KEY="",
        GROQ_API_KEY="",
        PROVIDER_PRIORITY="mistral,groq",
        MAX_RETRIES="0",
    )
    pool = CredentialPool(keys={"mistral": ["mistral-key-aaaa-1111", "mistral-key-bbbb-2222"]})
    monkeypatch.setattr(factory_mod, "_pool", pool)
    monkeypatch.setattr(factory_mod, "_state_store", None)
    monkeypatch.setattr(registry_mod, "_providers", {})
    yield


@pytest.fixture
def mock_provider():
    provider = AsyncMock()
    provider.analyze.return_value = {"title": "Retro Sun", "description": "Sunset", "tags": ["sun"]}
    with patch("podmeta.orchestration.orchestrator.get_provider", return_value=provider):
        yield provider


class TestProcessItem:

    async def test_success_reports_active(self, png_base64, mock_provider):
        result = await process_item(png_base64, "image/png", Marketplace.SPREADSHIRT)
        assert result.title == "Retro Sun"
        assert len(result.tags) == 25
        store = factory_mod.get_state_store()
        assert store.config_for("mistral").status is ProviderStatus.ACTIVE

    async def test_rate_limit_recorded_in_store(self, png_base64, mock_provider):
        mock_provider.analyze.side_effect = ProviderError(
            ErrorKind.RATE_LIMITED, "[Mistral] Too Many Requests", provider="mistral", status_code=429,
        )
        with pytest.raises(ProviderError) as exc_info:
            await process_item(png_base64, "image/png", Marketplace.SPREADSHIRT)
        assert exc_info.value.kind is ErrorKind.RATE_LIMITED
        assert factory_mod.get_state_store().config_for("mistral").status is ProviderStatus.RATE_LIMITED

    async def test_rate_limited_provider_skipped_next_time(self, png_base64, mock_provider):
        factory_mod.get_state_store().report_status("mistral", ProviderStatus.RATE_LIMITED)
        with pytest.raises(ProviderError) as exc_info:
            await process_item(png_base64, "image/png", Marketplace.SPREADSHIRT)
        assert exc_info.value.kind is ErrorKind.NO_PROVIDER_AVAILABLE
        mock_provider.analyze.assert_not_awaited()

    async def test_pool_keys_rotate_across_items(self, png_base64, mock_provider):
        await process_item(png_base64, "image/png", Marketplace.ZAZZLE)
        await process_item(png_base64, "image/png", Marketplace.ZAZZLE)
        keys = [c.args[2].api_key for c in mock_provider.analyze.await_args_list]
        assert keys == ["mistral-key-aaaa-1111", "mistral-key-bbbb-2222"]


class TestProcessBatch:

    async def test_sequential_results_in_order(self, png_base64, mock_provider):
        mock_provider.analyze.side_effect = [
            {"title": "First", "tags": ["a"]},
            ProviderError(ErrorKind.MALFORMED_RESPONSE, "[Mistral] analysis failed", provider="mistral"),
        ]
        items = [
            BatchItem(id="1", image_base64=png_base64, mime_type="image/png"),
            BatchItem(id="2", image_base64=png_base64, mime_type="application/pdf"),
            BatchItem(id="3", image_base64=png_base64, mime_type="image/jpeg"),
        ]
        results = await process_batch(items, Marketplace.SPREADSHIRT)

        assert [r.id for r in results] == ["1", "2", "3"]
        assert results[0].status == "completed"
        assert results[0].metadata.title == "First"
        assert results[1].status == "error"
        assert results[1].error_kind == "invalid_image"
        assert results[2].status == "error"
        assert results[2].error_kind == "malformed_response"
        assert mock_provider.analyze.await_count == 2

    async def test_unreadable_pool_file_falls_back_per_item(
        self, png_base64, mock_provider, monkeypatch, tmp_path,
    ):
        path = tmp_path / "pool.json"
        path.write_text('{"mistral": ["k1",', encoding="utf-8")
        monkeypatch.setattr(factory_mod, "_pool", CredentialPool(path=str(path)))

        items = [BatchItem(id="1", image_base64=png_base64, mime_type="image/png")]
        results = await process_batch(items, Marketplace.SPREADSHIRT)

        assert len(results) == 1
        assert results[0].status == "error"
        assert results[0].error_kind == "no_provider_available"
        mock_provider.analyze.assert_not_awaited()

    async def test_empty_batch(self, mock_provider):
        assert await process_batch([], Marketplace.TEEPUBLIC) == []


class TestValidateProviderKeys:

    async def test_each_pool_key_checked(self):
        provider = AsyncMock()
        provider.validate_key.side_effect = [True, False]
        with patch("podmeta.service.handler.get_provider", return_value=provider):
            results = await validate_provider_keys("mistral")

        assert [r.valid for r in results] == [True, False]
        assert results[0].key == "mistra...1111"
        assert provider.validate_key.await_args_list[1].args == ("mistral-key-bbbb-2222",)

    async def test_fallback_key_checked_when_pool_empty(self, override_settings):
        override_settings(GROQ_API_KEY="gsk-single-key-9999")
        provider = AsyncMock()
        provider.validate_key.return_value = True
        with patch("podmeta.service.handler.get_provider", return_value=provider):
            results = await validate_provider_keys("groq")
        assert len(results) == 1
        provider.validate_key.assert_awaited_once_with("gsk-single-key-9999")

    async def test_provider_error_reported_inline(self):
        provider = AsyncMock()
        provider.validate_key.side_effect = ProviderError(
            ErrorKind.SERVER_OVERLOADED, "[Mistral] Bad Gateway", provider="mistral", status_code=502,
        )
        with patch("podmeta.service.handler.get_provider", return_value=provider):
            results = await validate_provider_keys("mistral")
        assert all(not r.valid for r in results)
        assert results[0].error == "[Mistral] Bad Gateway"

    async def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            await validate_provider_keys("gemini")
