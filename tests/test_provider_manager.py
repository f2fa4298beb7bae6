"""
Tests for provider selection and cooldown bookkeeping.
"""

import pytest

from conftest import make_settings
from polyscope.tools.provider_manager import NoProviderAvailable, ProviderManager


@pytest.fixture(autouse=True)
def _reset_cooldowns():
    ProviderManager.reset_cooldowns()
    yield
    ProviderManager.reset_cooldowns()


class TestProviderSelection:
    def test_no_provider_configured(self):
        manager = ProviderManager(make_settings())
        assert not manager.has_configured_provider()
        with pytest.raises(NoProviderAvailable):
            manager.get_model()

    def test_ollama_only(self):
        manager = ProviderManager(make_settings(use_ollama=True))
        assert manager.get_provider_names() == ["Ollama"]

    def test_openrouter_then_ollama(self):
        manager = ProviderManager(make_settings(openrouter_api_key="sk-test", use_ollama=True))
        assert manager.get_provider_names() == ["OpenRouter", "Ollama"]

    def test_disabled_provider_skipped(self):
        manager = ProviderManager(make_settings(use_ollama=True), disabled_providers=["Ollama"])
        assert manager.get_provider_names() == []


class TestCooldowns:
    def test_rate_limit_cools_provider_down(self):
        manager = ProviderManager(make_settings(openrouter_api_key="sk-test", use_ollama=True))
        manager.record_failure("OpenRouter", Exception("429 Too Many Requests"))
        assert manager.get_provider_names() == ["Ollama"]

    def test_cooldown_shared_across_instances(self):
        settings = make_settings(use_ollama=True)
        ProviderManager(settings).record_failure("Ollama", Exception("401 Unauthorized"))
        assert ProviderManager(settings).get_provider_names() == []

    def test_transient_error_has_no_cooldown(self):
        manager = ProviderManager(make_settings(use_ollama=True))
        manager.record_failure("Ollama", Exception("connection reset"))
        assert manager.get_provider_names() == ["Ollama"]

    def test_infer_provider_from_error_text(self):
        manager = ProviderManager(make_settings())
        assert manager._infer_provider_from_error(Exception("POST https://openrouter.ai/api/v1: 429")) == "OpenRouter"
        assert manager._infer_provider_from_error(Exception("http://localhost:11434/v1 timed out")) == "Ollama"
        assert manager._infer_provider_from_error(Exception("???")) == "unknown"


class TestProviderStatus:
    @pytest.mark.asyncio
    async def test_keys_reported_without_network(self):
        status = await ProviderManager(make_settings(gemini_api_key="g-key")).get_provider_status()
        assert status == {"gemini": True, "openrouter": False, "ollama": False, "any_available": True}

    @pytest.mark.asyncio
    async def test_unreachable_ollama(self, monkeypatch):
        manager = ProviderManager(make_settings(use_ollama=True))

        async def down():
            return False

        monkeypatch.setattr(manager, "check_ollama_health", down)
        assert (await manager.get_provider_status())["any_available"] is False
