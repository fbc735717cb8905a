"""OpenAI providers using openai SDK with native async.

Also serves OpenAI-compatible APIs (xAI Grok, DeepSeek) via base_url.
"""

import asyncio
import logging
import os
import time

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from fishtank.models import ChatResponse, Transcript, Word
from fishtank.providers.base import ChatProvider, Message, ProviderError, Transcriber

logger = logging.getLogger(__name__)


def _build_client(config: ModelConfig) -> AsyncOpenAI:
    api_key = os.environ.get(config.api_key_env, "").strip()
    if not api_key:
        raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
    if config.base_url:
        return AsyncOpenAI(api_key=api_key, base_url=config.base_url)
    return AsyncOpenAI(api_key=api_key)


class OpenAIProvider(ChatProvider):
    """OpenAI chat provider via openai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        self._client = _build_client(config)

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
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._config.model,
                    messages=messages,
                    max_tokens=max_tokens or self._config.max_tokens,
                    temperature=self._config.temperature if temperature is None else temperature,
                    **kwargs,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self._config.name, "Empty response content")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        logger.info("OpenAI completion: %.2fs, %s tokens", latency, token_count)

        return ChatResponse(
            provider=self._config.name,
            model=self._config.model,
            content=choice.message.content.strip(),
            latency_sec=latency,
            token_count=token_count,
        )


class OpenAITranscriber(Transcriber):
    """Whisper speech-to-text with word-level timestamps."""

    def __init__(self, config: ModelConfig, model: str = "whisper-1", language: str = "en") -> None:
        self._config = config
        self._model = model
        self._language = language
        self._client = _build_client(config)

    def name(self) -> str:
        return f"{self._config.name}:{self._model}"

    async def transcribe(self, audio: bytes, filename: str) -> Transcript:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.audio.transcriptions.create(
                    model=self._model,
                    file=(filename, audio),
                    language=self._language,
                    response_format="verbose_json",
                    timestamp_granularities=["word"],
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self.name(), f"Transcription timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self.name(), f"Transcription failed: {exc}") from exc

        words = [
            Word(text=w.word, start=w.start, end=w.end)
            for w in (getattr(response, "words", None) or [])
        ]
        logger.info(
            "Transcribed %s in %.2fs: %d words",
            filename,
            time.monotonic() - start,
            len(words),
        )
        return Transcript(
            text=(response.text or "").strip(),
            words=words,
            language_code=getattr(response, "language", None),
        )
