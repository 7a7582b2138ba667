"""
Prediction providers.
Each provider turns a plain-text prompt into plain-text output; the fan-out
treats them uniformly and never depends on provider request shapes.
"""
from __future__ import annotations

import abc
from typing import Any, Optional

from shared.config import Settings, get_settings
from shared.models.enums import ProviderName
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a sports match analyst. You comment on who wins, over/under 2.5 goals, "
    "whether both teams score and the likely score. Reply with JSON only."
)


class PredictionProvider(abc.ABC):
    """Contract: ``complete(prompt) -> text``."""

    def __init__(self, name: ProviderName) -> None:
        self._name = name

    @property
    def name(self) -> ProviderName:
        return self._name

    async def start(self) -> None:
        return None

    async def close(self) -> None:
        return None

    @abc.abstractmethod
    async def complete(self, prompt: str) -> str:
        """Return the provider's raw text answer to ``prompt``."""


class HTTPPredictionProvider(PredictionProvider):
    """Provider backed by a JSON-over-HTTP completion endpoint."""

    def __init__(self, name: ProviderName, http_client: ProviderHTTPClient, model: str) -> None:
        super().__init__(name)
        self._http = http_client
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    async def start(self) -> None:
        await self._http.start()

    async def close(self) -> None:
        await self._http.close()

    async def complete(self, prompt: str) -> str:
        path, payload, params = self._build_request(prompt)
        resp = await self._http.post(path, json=payload, params=params)
        return self._extract_text(resp.json())

    @abc.abstractmethod
    def _build_request(self, prompt: str) -> tuple[str, dict[str, Any], Optional[dict[str, Any]]]:
        """(path, JSON body, query params) for one completion."""

    @abc.abstractmethod
    def _extract_text(self, body: dict[str, Any]) -> str:
        ...


class GeminiProvider(HTTPPredictionProvider):
    def __init__(self, http_client: ProviderHTTPClient, model: str, api_key: str) -> None:
        super().__init__(ProviderName.GEMINI, http_client, model)
        self._api_key = api_key

    def _build_request(self, prompt):
        body = {
            "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }
        return f"/v1beta/models/{self._model}:generateContent", body, {"key": self._api_key}

    def _extract_text(self, body):
        parts = body["candidates"][0]["content"]["parts"]
        return "".join(p.get("text", "") for p in parts)


class OpenAICompatibleProvider(HTTPPredictionProvider):
    """Chat-completions shape shared by OpenAI and Mistral."""

    def _build_request(self, prompt):
        body = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        }
        return "/v1/chat/completions", body, None

    def _extract_text(self, body):
        return body["choices"][0]["message"]["content"] or ""


class AnthropicProvider(HTTPPredictionProvider):
    def __init__(self, http_client: ProviderHTTPClient, model: str) -> None:
        super().__init__(ProviderName.ANTHROPIC, http_client, model)

    def _build_request(self, prompt):
        body = {
            "model": self._model,
            "max_tokens": 1024,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": prompt}],
        }
        return "/v1/messages", body, None

    def _extract_text(self, body):
        return "".join(block.get("text", "") for block in body["content"] if block.get("type") == "text")


class CohereProvider(HTTPPredictionProvider):
    def __init__(self, http_client: ProviderHTTPClient, model: str) -> None:
        super().__init__(ProviderName.COHERE, http_client, model)

    def _build_request(self, prompt):
        body = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        }
        return "/v2/chat", body, None

    def _extract_text(self, body):
        return "".join(part.get("text", "") for part in body["message"]["content"])


def _bearer(api_key: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}


def build_providers(settings: Optional[Settings] = None) -> list[PredictionProvider]:
    """Enabled providers with an API key, in configured fan-out order."""
    settings = settings or get_settings()
    timeout = settings.prediction_timeout_s

    def client(name: str, base_url: str, headers: Optional[dict[str, str]] = None) -> ProviderHTTPClient:
        return ProviderHTTPClient(name, base_url, headers=headers, timeout_s=timeout, max_retries=1)

    factories = {
        ProviderName.GEMINI: lambda: GeminiProvider(
            client("gemini", "https://generativelanguage.googleapis.com"),
            settings.gemini_model,
            settings.gemini_api_key,
        ),
        ProviderName.OPENAI: lambda: OpenAICompatibleProvider(
            ProviderName.OPENAI,
            client("openai", "https://api.openai.com", _bearer(settings.openai_api_key)),
            settings.openai_model,
        ),
        ProviderName.ANTHROPIC: lambda: AnthropicProvider(
            client(
                "anthropic",
                "https://api.anthropic.com",
                {"x-api-key": settings.anthropic_api_key, "anthropic-version": "2023-06-01"},
            ),
            settings.anthropic_model,
        ),
        ProviderName.COHERE: lambda: CohereProvider(
            client("cohere", "https://api.cohere.com", _bearer(settings.cohere_api_key)),
            settings.cohere_model,
        ),
        ProviderName.MISTRAL: lambda: OpenAICompatibleProvider(
            ProviderName.MISTRAL,
            client("mistral", "https://api.mistral.ai", _bearer(settings.mistral_api_key)),
            settings.mistral_model,
        ),
    }
    keys = {
        ProviderName.GEMINI: settings.gemini_api_key,
        ProviderName.OPENAI: settings.openai_api_key,
        ProviderName.ANTHROPIC: settings.anthropic_api_key,
        ProviderName.COHERE: settings.cohere_api_key,
        ProviderName.MISTRAL: settings.mistral_api_key,
    }

    providers: list[PredictionProvider] = []
    for raw in settings.provider_order:
        try:
            name = ProviderName(raw)
        except ValueError:
            logger.warning("unknown_prediction_provider", provider=raw)
            continue
        if not keys[name]:
            logger.info("prediction_provider_disabled", provider=name.value, reason="missing_api_key")
            continue
        providers.append(factories[name]())
    logger.info("prediction_providers_ready", providers=[p.name.value for p in providers])
    return providers
