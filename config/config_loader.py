"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    temperature: float = 0.7
    base_url: str | None = None


@dataclass
class PromptsConfig:
    system: str
    scoring: str
    offer_extraction: str
    judge_reply: str
    second_judge_context: str
    offer_instruction: str
    intent: str
    player_system: str
    player: str
    grammar: str


@dataclass
class JudgeConfig:
    id: str
    name: str
    voice_id: str
    persona: str
    prompt: str
    conviction: int


@dataclass
class GameConfig:
    max_evaluation_responses: int = 3
    max_negotiation_rounds: int = 3
    offer_threshold: int = 50
    reply_threshold: int = 20
    max_responders: int = 2
    history_window: int = 5
    fallback_reply: str = "I need to think about this more."


@dataclass
class SessionsConfig:
    ttl_sec: int = 6 * 60 * 60
    max_sessions: int = 1000


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 3001
    max_upload_mb: int = 10
    allowed_audio_types: list[str] = field(default_factory=list)


@dataclass
class DefaultsConfig:
    chat_provider: str
    transcriber: str
    output_dir: Path
    cache_dir: Path


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    game: GameConfig
    sessions: SessionsConfig
    server: ServerConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    judges: list[JudgeConfig] = field(default_factory=list)
    available_providers: set[str] = field(default_factory=set)


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError if the
    judges section is empty. Logs warnings for missing API keys but does
    not raise; callers check available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        chat_provider=str(defaults_raw["chat_provider"]),
        transcriber=str(defaults_raw["transcriber"]),
        output_dir=Path(defaults_raw["output_dir"]),
        cache_dir=Path(defaults_raw["cache_dir"]),
    )

    # game/sessions/server sections are optional; dataclass defaults apply
    game = GameConfig(**raw.get("game", {}))
    sessions = SessionsConfig(**raw.get("sessions", {}))
    server_raw = raw.get("server", {})
    server = ServerConfig(
        host=str(server_raw.get("host", "127.0.0.1")),
        port=int(server_raw.get("port", 3001)),
        max_upload_mb=int(server_raw.get("max_upload_mb", 10)),
        allowed_audio_types=list(server_raw.get("allowed_audio_types", [])),
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(**{k: str(v) for k, v in prompts_raw.items()})

    judges = [
        JudgeConfig(
            id=str(j["id"]),
            name=str(j["name"]),
            voice_id=str(j.get("voice_id", "")),
            persona=str(j["persona"]),
            prompt=str(j["prompt"]),
            conviction=int(j["conviction"]),
        )
        for j in raw.get("judges", [])
    ]
    if not judges:
        raise ValueError(f"No judges defined in {settings_path}")

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            temperature=float(model_raw.get("temperature", 0.7)),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s (set %s in .env)",
                provider_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        game=game,
        sessions=sessions,
        server=server,
        models=models,
        prompts=prompts,
        judges=judges,
        available_providers=available_providers,
    )
