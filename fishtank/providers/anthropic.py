"""Anthropic Claude chat provider using anthropic SDK with native async."""

import asyncio
import logging
import os
import time

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from fishtank.models import ChatResponse
from fishtank.providers.base import ChatProvider, Message, ProviderError, split_system

logger = logging.getLogger(__name__)

# Claude has no JSON response mode; the instruction rides on the system prompt
_JSON_SUFFIX = "Respond with a single JSON object and nothing else."


class AnthropicProvider(ChatProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key)

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
        if json_mode:
            system = f"{system}\n\n{_JSON_SUFFIX}" if system else _JSON_SUFFIX

        kwargs = {}
        if system:
            kwargs["system"] = system

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=self._config.model,
                    max_tokens=max_tokens or self._config.max_tokens,
                    temperature=self._config.temperature if temperature is None else temperature,
                    messages=turns,
                    **kwargs,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        if not response.content:
            raise ProviderError(self._config.name, "Empty response content")

        text_blocks = [b.text for b in response.content if b.type == "text"]
        if not text_blocks:
            raise ProviderError(self._config.name, "No text blocks in response")

        content = "\n".join(text_blocks)

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.input_tokens + response.usage.output_tokens

        logger.info("Anthropic completion: %.2fs, %s tokens", latency, token_count)

        return ChatResponse(
            provider=self._config.name,
            model=self._config.model,
            content=content.strip(),
            latency_sec=latency,
            token_count=token_count,
        )
