"""Gemini chat provider using google-genai SDK with native async."""

import asyncio
import logging
import os
import time

from google import genai
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from fishtank.models import ChatResponse
from fishtank.providers.base import ChatProvider, Message, ProviderError, split_system

logger = logging.getLogger(__name__)


def _to_contents(messages: list[Message]) -> list[genai_types.Content]:
    # Gemini calls the assistant role "model"
    return [
        genai_types.Content(
            role="model" if m["role"] == "assistant" else "user",
            parts=[genai_types.Part(text=m["content"])],
        )
        for m in messages
    ]


class GeminiProvider(ChatProvider):
    """Google Gemini provider via google-genai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = genai.Client(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def complete(
        self,
        messages: list[Message],
        *,
        json_mode: bool = False,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> ChatResponse:
        system, turns = split_system(messages)
        gen_config = genai_types.GenerateContentConfig(
            max_output_tokens=max_tokens or self._config.max_tokens,
            temperature=self._config.temperature if temperature is None else temperature,
            system_instruction=system,
            response_mime_type="application/json" if json_mode else None,
        )

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self._config.model,
                    contents=_to_contents(turns),
                    config=gen_config,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        if not response.text:
            raise ProviderError(self._config.name, "Empty response text")

        token_count: int | None = None
        if response.usage_metadata:
            token_count = response.usage_metadata.total_token_count

        logger.info("Gemini completion: %.2fs, %s tokens", latency, token_count)

        return ChatResponse(
            provider=self._config.name,
            model=self._config.model,
            content=response.text.strip(),
            latency_sec=latency,
            token_count=token_count,
        )
