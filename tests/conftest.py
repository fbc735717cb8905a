"""Shared pytest fixtures."""

import asyncio
import random
from pathlib import Path

import pytest

from config.config_loader import (
    AppConfig,
    DefaultsConfig,
    GameConfig,
    JudgeConfig,
    ModelConfig,
    PromptsConfig,
    ServerConfig,
    SessionsConfig,
)
from fishtank.analysis import NegotiationAnalyst
from fishtank.engine import NegotiationEngine
from fishtank.judges import JudgeRegistry
from fishtank.models import ChatResponse, Judge, Session, Transcript, Word
from fishtank.providers.base import ChatProvider, Message, ProviderError, Transcriber
from fishtank.store import InMemorySessionStore


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="openai",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=150,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    # Each template starts with a tag so ScriptedChat can tell the calls apart
    return PromptsConfig(
        system="You are a judge.",
        scoring="SCORE|{persona}|{focus}|{history}|{message}",
        offer_extraction="OFFER|{reply}",
        judge_reply="REPLY|{name}|{persona}|{prompt}|{conviction}|{history}|{message}|{context}|{stage_instructions}",
        second_judge_context="CONTEXT {previous_name} said: {previous_reply}",
        offer_instruction="YOU MUST MAKE AN OFFER",
        intent="INTENT|{stage}|{history}|{message}",
        player_system="You are an entrepreneur.",
        player="PLAYER|{stage}|{history}",
        grammar="GRAMMAR|{text}",
    )


@pytest.fixture
def sample_game_config() -> GameConfig:
    return GameConfig()


@pytest.fixture
def sample_judge_configs() -> list[JudgeConfig]:
    return [
        JudgeConfig("judge1", "Namita", "v1", "pharma", "Focus on pharma.", 40),
        JudgeConfig("judge2", "Aman", "v2", "brand", "Focus on brand.", 50),
        JudgeConfig("judge3", "Ashneer", "v3", "finance", "Focus on valuation.", 35),
    ]


@pytest.fixture
def sample_app_config(
    tmp_path: Path,
    sample_prompts_config: PromptsConfig,
    sample_game_config: GameConfig,
    sample_judge_configs: list[JudgeConfig],
    sample_model_config: ModelConfig,
) -> AppConfig:
    return AppConfig(
        defaults=DefaultsConfig(
            chat_provider="test_model",
            transcriber="test_model",
            output_dir=tmp_path / "output",
            cache_dir=tmp_path / "cache",
        ),
        game=sample_game_config,
        sessions=SessionsConfig(ttl_sec=3600, max_sessions=10),
        server=ServerConfig(allowed_audio_types=["audio/webm", "audio/wav"]),
        models={"test_model": sample_model_config},
        prompts=sample_prompts_config,
        judges=sample_judge_configs,
        available_providers={"test_model"},
    )


class ScriptedChat(ChatProvider):
    """Test double ChatProvider. Answers by prompt tag; records every call."""

    def __init__(self) -> None:
        self.scores: dict[str, str] = {}        # judge persona -> raw score text
        self.default_score = "5"
        self.replies: dict[str, str] = {}       # judge name -> reply text
        self.intent = '{"isAcceptance": false, "isCounterOffer": false}'
        self.offer = '{"offer": null}'
        self.player = "We have 10,000 paying customers and 40% margins."
        self.grammar = '{"issues": []}'
        self.failing: set[str] = set()          # tags that raise ProviderError
        self.delay = 0.0
        self.calls: list[tuple[str, str]] = []

    def name(self) -> str:
        return "scripted"

    def model_string(self) -> str:
        return "scripted-1"

    def calls_of(self, tag: str) -> list[str]:
        return [prompt for kind, prompt in self.calls if kind == tag]

    async def complete(
        self,
        messages: list[Message],
        *,
        json_mode: bool = False,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> ChatResponse:
        prompt = messages[-1]["content"]
        tag, _, rest = prompt.partition("|")
        self.calls.append((tag, prompt))
        if self.delay:
            await asyncio.sleep(self.delay)
        if tag in self.failing:
            raise ProviderError("scripted", f"{tag} failed")

        first_field = rest.split("|")[0]
        if tag == "SCORE":
            content = self.scores.get(first_field, self.default_score)
        elif tag == "REPLY":
            content = self.replies.get(first_field, f"{first_field} wants to know more.")
        elif tag == "OFFER":
            content = self.offer
        elif tag == "INTENT":
            content = self.intent
        elif tag == "PLAYER":
            content = self.player
        elif tag == "GRAMMAR":
            content = self.grammar
        else:
            content = "OK"
        return ChatResponse(
            provider="scripted",
            model="scripted-1",
            content=content,
            latency_sec=0.01,
            token_count=10,
        )


class FakeTranscriber(Transcriber):
    """Test double Transcriber returning a fixed transcript."""

    def __init__(self, transcript: Transcript | None = None, error: Exception | None = None) -> None:
        self.transcript = transcript or Transcript(
            text="We sell organic dog food",
            words=[
                Word("We", 0.0, 0.3),
                Word(" ", 0.3, 0.4, type="spacing"),
                Word("sell", 0.4, 0.8),
                Word("organic", 0.9, 1.5),
                Word("dog", 1.6, 1.9),
                Word("food", 2.0, 2.6),
            ],
            language_code="en",
        )
        self.error = error
        self.calls = 0

    def name(self) -> str:
        return "fake"

    async def transcribe(self, audio: bytes, filename: str) -> Transcript:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.transcript


@pytest.fixture
def chat() -> ScriptedChat:
    return ScriptedChat()


@pytest.fixture
def analyst(chat, sample_prompts_config, sample_game_config) -> NegotiationAnalyst:
    return NegotiationAnalyst(chat, sample_prompts_config, sample_game_config)


@pytest.fixture
def registry(sample_judge_configs) -> JudgeRegistry:
    return JudgeRegistry(sample_judge_configs)


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore(ttl_sec=3600, max_sessions=10)


@pytest.fixture
def engine(store, registry, analyst, sample_game_config) -> NegotiationEngine:
    return NegotiationEngine(store, registry, analyst, sample_game_config, rng=random.Random(7))


@pytest.fixture
def session(registry) -> Session:
    return Session(id="s1", judges=registry.clone())


def make_judge(judge_id: str, conviction: int, name: str | None = None) -> Judge:
    return Judge(
        id=judge_id,
        name=name or judge_id.title(),
        voice_id="",
        persona=f"{judge_id} persona",
        prompt=f"{judge_id} prompt",
        conviction=conviction,
    )
