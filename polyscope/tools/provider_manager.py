"""
LLM Provider Manager with cooldown-aware failover.

Builds pydantic-ai model instances for the ranking provider and tracks
provider health. Class-level cooldown state is shared across all instances,
so a rate-limited provider is skipped by every ranker for the cooldown.

Priority: Gemini (direct) → OpenRouter → Ollama (local)
"""

import logging
import threading
import time
from typing import Dict, List, Optional, Tuple

import httpx
from pydantic_ai.models import Model
from pydantic_ai.models.fallback import FallbackModel
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.providers.openai import OpenAIProvider

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)


class NoProviderAvailable(RuntimeError):
    """Every configured provider is missing or cooling down."""


class ProviderManager:
    """Builds the ranking model chain and applies cooldowns on hard failures."""

    _failed_providers: Dict[str, float] = {}   # name → cooldown expiry (epoch seconds)
    _failure_counts: Dict[str, int] = {}
    _RATELIMIT_COOLDOWN = 30.0  # 30s, 60s, 120s ... capped at _MAX_COOLDOWN
    _MAX_COOLDOWN = 300.0
    _AUTH_COOLDOWN = 3600.0
    _lock = threading.Lock()

    def __init__(self, settings: Optional[Settings] = None, disabled_providers: Optional[List[str]] = None):
        self.settings = settings or get_settings()
        self.disabled_providers = set(disabled_providers or [])
        self._provider_order: List[str] = []

    def get_model(self) -> Model:
        """Current model chain. Raises NoProviderAvailable when nothing is usable."""
        available = self._get_available_providers()
        if not available:
            raise NoProviderAvailable("No LLM providers available (all in cooldown or unconfigured)")
        if len(available) == 1:
            return available[0][1]
        models = [m for _, m in available]
        return FallbackModel(models[0], *models[1:], fallback_on=self._should_fallback)

    def get_provider_names(self) -> List[str]:
        self._get_available_providers()
        return list(self._provider_order)

    def has_configured_provider(self) -> bool:
        s = self.settings
        return bool(s.gemini_api_key or s.openrouter_api_key or s.use_ollama)

    def _is_provider_available(self, name: str, now: float) -> bool:
        if name in self.disabled_providers:
            return False
        return not self._is_cooling_down(name, now)

    def _get_available_providers(self) -> List[Tuple[str, Model]]:
        providers: List[Tuple[str, Model]] = []
        now = time.time()

        if self.settings.gemini_api_key and self._is_provider_available("Gemini", now):
            providers.append(("Gemini", self._build_gemini_model()))

        if self.settings.openrouter_api_key and self._is_provider_available("OpenRouter", now):
            providers.append(("OpenRouter", self._build_openrouter_model()))

        if self.settings.use_ollama and self._is_provider_available("Ollama", now):
            providers.append(("Ollama", self._build_ollama_model()))

        self._provider_order = [name for name, _ in providers]
        return providers

    def _should_fallback(self, exc: Exception) -> bool:
        """Always try the next provider; put hard failures into cooldown first."""
        error_str = str(exc)
        lowered = error_str.lower()
        is_hard_failure = (
            "429" in error_str or "RESOURCE_EXHAUSTED" in error_str
            or "401" in error_str or "403" in error_str
            or "timeout" in lowered or "timed out" in lowered
        )
        if is_hard_failure:
            provider_name = self._infer_provider_from_error(exc)
            if provider_name != "unknown":
                self.record_failure(provider_name, exc)
            else:
                logger.warning(f"Hard failure (unknown provider): {error_str[:200]}")
        return True

    def _infer_provider_from_error(self, exc: Exception) -> str:
        """Map an exception back to a provider via the model name or URL it carries."""
        model_name = str(getattr(exc, "model_name", "") or "")
        text = f"{model_name} {exc}".lower()
        if "openrouter" in text or model_name == self.settings.openrouter_model:
            return "OpenRouter"
        if model_name == self.settings.gemini_model or "generativelanguage" in text:
            return "Gemini"
        if model_name == self.settings.ollama_model or "11434" in text:
            return "Ollama"
        return "unknown"

    def record_failure(self, provider_name: str, error: Exception) -> None:
        error_str = str(error)
        with self._lock:
            now = time.time()
            if "401" in error_str or "403" in error_str:
                cooldown = self._AUTH_COOLDOWN
                logger.warning(f"{provider_name}: auth failed — disabled for {int(cooldown)}s")
            elif "429" in error_str or "RESOURCE_EXHAUSTED" in error_str:
                count = self._failure_counts.get(provider_name, 0) + 1
                self._failure_counts[provider_name] = count
                cooldown = min(self._RATELIMIT_COOLDOWN * (2 ** (count - 1)), self._MAX_COOLDOWN)
                logger.info(f"{provider_name}: rate limited — {int(cooldown)}s cooldown (#{count})")
            else:
                # Timeouts: switch instantly, no cooldown
                logger.info(f"{provider_name}: transient error (no cooldown): {error_str[:200]}")
                return
            self._failed_providers[provider_name] = now + cooldown

    def _is_cooling_down(self, provider_name: str, now: float) -> bool:
        with self._lock:
            expiry = self._failed_providers.get(provider_name)
            if expiry is None:
                return False
            if now < expiry:
                return True
            del self._failed_providers[provider_name]
            self._failure_counts.pop(provider_name, None)
            logger.info(f"{provider_name} cooldown expired, re-enabling")
        return False

    @classmethod
    def reset_cooldowns(cls) -> None:
        with cls._lock:
            cls._failed_providers.clear()
            cls._failure_counts.clear()

    # --- Model builders ---

    def _build_gemini_model(self) -> Model:
        """Gemini via Google AI Studio API key."""
        return GoogleModel(
            model_name=self.settings.gemini_model,
            provider=GoogleProvider(api_key=self.settings.gemini_api_key),
        )

    def _build_openrouter_model(self) -> Model:
        """OpenRouter via OpenAI-compatible endpoint."""
        return OpenAIChatModel(
            model_name=self.settings.openrouter_model,
            provider=OpenAIProvider(
                base_url="https://openrouter.ai/api/v1",
                api_key=self.settings.openrouter_api_key,
            ),
        )

    def _build_ollama_model(self) -> Model:
        """Ollama via OpenAI-compatible endpoint."""
        return OpenAIChatModel(
            model_name=self.settings.ollama_model,
            provider=OpenAIProvider(base_url=f"{self.settings.ollama_base_url}/v1", api_key="ollama"),
        )

    # --- Health checks ---

    async def check_ollama_health(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self.settings.ollama_base_url}/api/tags")
                return response.status_code == 200
        except httpx.HTTPError:
            return False

    async def get_provider_status(self) -> Dict[str, bool]:
        ollama_ok = await self.check_ollama_health() if self.settings.use_ollama else False
        gemini_ok = bool(self.settings.gemini_api_key)
        openrouter_ok = bool(self.settings.openrouter_api_key)
        return {
            "gemini": gemini_ok,
            "openrouter": openrouter_ok,
            "ollama": ollama_ok,
            "any_available": gemini_ok or openrouter_ok or ollama_ok,
        }
