"""Unit tests for the provider adapters with the SDK clients mocked out."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from fishtank.providers.base import ProviderError, split_system
from fishtank.providers.openai_provider import OpenAIProvider, OpenAITranscriber


@pytest.fixture
def openai_config(sample_model_config, monkeypatch):
    monkeypatch.setenv(sample_model_config.api_key_env, "sk-test")
    return sample_model_config


def _completion(content, total_tokens=12):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=total_tokens),
    )


def test_split_system():
    system, rest = split_system([
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "hi"},
    ])
    assert system == "be brief"
    assert rest == [{"role": "user", "content": "hi"}]


def test_split_system_without_system_message():
    messages = [{"role": "user", "content": "hi"}]
    assert split_system(messages) == (None, messages)


def test_missing_api_key_raises(sample_model_config, monkeypatch):
    monkeypatch.delenv(sample_model_config.api_key_env, raising=False)
    with pytest.raises(ProviderError, match="Missing API key"):
        OpenAIProvider(sample_model_config)


async def test_openai_complete(openai_config):
    provider = OpenAIProvider(openai_config)
    create = AsyncMock(return_value=_completion("  7  "))
    provider._client.chat.completions.create = create

    response = await provider.complete([{"role": "user", "content": "score"}], max_tokens=10, temperature=0.3)

    assert response.content == "7"
    assert response.token_count == 12
    kwargs = create.await_args.kwargs
    assert kwargs["max_tokens"] == 10
    assert kwargs["temperature"] == 0.3
    assert "response_format" not in kwargs


async def test_openai_json_mode(openai_config):
    provider = OpenAIProvider(openai_config)
    create = AsyncMock(return_value=_completion('{"offer": null}'))
    provider._client.chat.completions.create = create

    await provider.complete([{"role": "user", "content": "extract"}], json_mode=True)

    kwargs = create.await_args.kwargs
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["max_tokens"] == openai_config.max_tokens


async def test_openai_empty_content_raises(openai_config):
    provider = OpenAIProvider(openai_config)
    provider._client.chat.completions.create = AsyncMock(return_value=_completion(""))
    with pytest.raises(ProviderError, match="Empty response"):
        await provider.complete([{"role": "user", "content": "hi"}])


async def test_openai_api_failure_wrapped(openai_config):
    provider = OpenAIProvider(openai_config)
    provider._client.chat.completions.create = AsyncMock(side_effect=RuntimeError("502"))
    with pytest.raises(ProviderError, match="502"):
        await provider.complete([{"role": "user", "content": "hi"}])


async def test_transcriber_maps_words(openai_config):
    transcriber = OpenAITranscriber(openai_config)
    transcriber._client.audio.transcriptions.create = AsyncMock(
        return_value=SimpleNamespace(
            text=" We sell dog food ",
            language="english",
            words=[
                SimpleNamespace(word="We", start=0.0, end=0.2),
                SimpleNamespace(word="sell", start=0.3, end=0.6),
            ],
        )
    )

    transcript = await transcriber.transcribe(b"audio", "pitch.webm")

    assert transcript.text == "We sell dog food"
    assert [w.text for w in transcript.words] == ["We", "sell"]
    assert transcript.words[1].start == 0.3
    assert transcript.language_code == "english"


async def test_transcriber_failure_raises(openai_config):
    transcriber = OpenAITranscriber(openai_config)
    transcriber._client.audio.transcriptions.create = AsyncMock(side_effect=RuntimeError("quota"))
    with pytest.raises(ProviderError, match="Transcription failed"):
        await transcriber.transcribe(b"audio", "pitch.webm")


async def test_anthropic_json_mode_moves_system_prompt(openai_config):
    from fishtank.providers.anthropic import AnthropicProvider

    provider = AnthropicProvider(openai_config)
    create = AsyncMock(
        return_value=SimpleNamespace(
            content=[SimpleNamespace(type="text", text='{"issues": []}')],
            usage=SimpleNamespace(input_tokens=20, output_tokens=5),
        )
    )
    provider._client.messages.create = create

    response = await provider.complete(
        [{"role": "system", "content": "You are a coach."}, {"role": "user", "content": "check"}],
        json_mode=True,
    )

    assert response.content == '{"issues": []}'
    assert response.token_count == 25
    kwargs = create.await_args.kwargs
    assert kwargs["system"].startswith("You are a coach.")
    assert "JSON" in kwargs["system"]
    assert kwargs["messages"] == [{"role": "user", "content": "check"}]


def test_gemini_contents_use_model_role():
    from fishtank.providers.gemini import _to_contents

    contents = _to_contents([
        {"role": "user", "content": "pitch"},
        {"role": "assistant", "content": "tell me more"},
    ])
    assert [c.role for c in contents] == ["user", "model"]
    assert contents[1].parts[0].text == "tell me more"
