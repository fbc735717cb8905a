"""Click CLI: serve, play and coach commands."""

import asyncio
import logging
import sys
from pathlib import Path

import click
import uvicorn
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from fishtank.analysis import NegotiationAnalyst
from fishtank.cache import TranscriptCache
from fishtank.coach import VoiceCoach
from fishtank.engine import NegotiationEngine
from fishtank.healthcheck import run_health_checks
from fishtank.judges import JudgeRegistry
from fishtank.models import Stage
from fishtank.output import print_coach_report, print_judges, print_replies, save_to_file
from fishtank.providers.anthropic import AnthropicProvider
from fishtank.providers.base import ChatProvider, ProviderError, Transcriber
from fishtank.providers.gemini import GeminiProvider
from fishtank.providers.openai_provider import OpenAIProvider, OpenAITranscriber
from fishtank.server import create_app
from fishtank.store import InMemorySessionStore

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

PROVIDER_CLASSES: dict[str, type[ChatProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
}

TRANSCRIBER_CLASSES: dict[str, type[Transcriber]] = {
    "openai": OpenAITranscriber,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _load(verbose: bool) -> AppConfig:
    # Reconfigure stdout/stderr to UTF-8 on Windows so model replies containing
    # Unicode chars don't crash the ANSI render path.
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)
    try:
        return load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)


def _build_chat_provider(config: AppConfig, name: str) -> ChatProvider:
    """Instantiate the named chat provider. Exits when it is unusable."""
    if name not in config.models:
        console.print(f"[bold red]Error:[/bold red] Unknown provider '{name}'. Known: {', '.join(config.models)}")
        sys.exit(1)
    if name not in config.available_providers:
        console.print(
            f"[bold red]Error:[/bold red] Provider '{name}' has no API key. "
            f"Set {config.models[name].api_key_env} in .env."
        )
        sys.exit(1)
    model_cfg = config.models[name]
    provider_cls = PROVIDER_CLASSES.get(model_cfg.sdk)
    if provider_cls is None:
        console.print(f"[bold red]Error:[/bold red] Unsupported sdk '{model_cfg.sdk}' for provider '{name}'")
        sys.exit(1)
    try:
        return provider_cls(model_cfg)
    except ProviderError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)


def _build_transcriber(config: AppConfig) -> Transcriber | None:
    """The configured transcriber, or None when it is unavailable."""
    name = config.defaults.transcriber
    model_cfg = config.models.get(name)
    if model_cfg is None or name not in config.available_providers:
        logger.warning("Transcriber '%s' unavailable; audio endpoints are disabled", name)
        return None
    transcriber_cls = TRANSCRIBER_CLASSES.get(model_cfg.sdk)
    if transcriber_cls is None:
        logger.warning("No transcriber for sdk '%s'; audio endpoints are disabled", model_cfg.sdk)
        return None
    try:
        return transcriber_cls(model_cfg)
    except ProviderError as exc:
        logger.warning("Failed to instantiate transcriber: %s", exc)
        return None


def _check_provider(provider: ChatProvider) -> None:
    console.print("\n[bold]Checking provider...[/bold]")
    status = asyncio.run(run_health_checks([provider]))[provider.name()]
    if status.ok:
        console.print(f"  [green]OK  [/green] {status.name} ({status.model}, {status.latency_sec:.1f}s)\n")
        return
    console.print(f"  [red]FAIL[/red] {status.name}: {status.error.splitlines()[0][:120]}")
    if not click.confirm("Continue anyway?", default=False):
        sys.exit(1)


def build_engine(config: AppConfig, chat: ChatProvider) -> NegotiationEngine:
    analyst = NegotiationAnalyst(chat, config.prompts, config.game)
    store = InMemorySessionStore(
        ttl_sec=config.sessions.ttl_sec,
        max_sessions=config.sessions.max_sessions,
    )
    return NegotiationEngine(store, JudgeRegistry(config.judges), analyst, config.game)


@click.group()
def main() -> None:
    """Fish Tank -- pitch-negotiation simulator and voice coach.

    \b
    Examples:
      python -m fishtank.cli serve --port 3001
      python -m fishtank.cli play --provider claude
      python -m fishtank.cli play --auto
      python -m fishtank.cli coach answer.webm
    """


@main.command()
@click.option("--host", default=None, help="Bind address (default: from config)")
@click.option("--port", default=None, type=int, help="Port (default: from config)")
@click.option("--provider", default=None, help="Chat provider (default: from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def serve(host: str | None, port: int | None, provider: str | None, verbose: bool, skip_health_check: bool) -> None:
    """Run the HTTP API."""
    config = _load(verbose)
    chat = _build_chat_provider(config, provider or config.defaults.chat_provider)
    if not skip_health_check:
        _check_provider(chat)

    engine = build_engine(config, chat)
    transcriber = _build_transcriber(config)
    coach = None
    if transcriber is not None:
        coach = VoiceCoach(transcriber, engine.analyst, TranscriptCache(config.defaults.cache_dir))

    app = create_app(engine, coach=coach, server=config.server)
    uvicorn.run(
        app,
        host=host or config.server.host,
        port=port or config.server.port,
        log_level="debug" if verbose else "info",
    )


async def _play(engine: NegotiationEngine, auto: bool, max_turns: int) -> str:
    session, greeting = engine.start_session()
    console.print(f"\n[bold cyan]Fish Tank[/bold cyan] session {session.id[:8]}")
    greeter = next(j for j in session.judges if j.id == greeting.judge_id)
    console.print(f"[bold]{greeter.name}:[/bold] {greeting.text}\n")
    print_judges(session, engine.game.reply_threshold)

    for _ in range(max_turns):
        if auto:
            try:
                message = await engine.analyst.generate_player_reply(session)
            except ProviderError as exc:
                console.print(f"[bold red]AI entrepreneur failed:[/bold red] {exc}")
                break
            console.print(f"\n[bold green]Entrepreneur (AI):[/bold green] {message}")
            speaker = "ai_entrepreneur"
        else:
            message = click.prompt("\nYou", default="", show_default=False).strip()
            if message.lower() in {"quit", "exit"}:
                break
            if not message:
                continue
            speaker = "player"

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Judges are conferring...", total=None)
            result = await engine.process_turn(session.id, message, speaker=speaker)

        print_replies(result.replies)
        print_judges(result.session, engine.game.reply_threshold)
        if result.session.stage is Stage.CLOSURE and (auto or result.session.accepted_offer):
            break

    return session.id


@main.command()
@click.option("--provider", default=None, help="Chat provider (default: from config)")
@click.option("--auto", is_flag=True, help="Let the AI entrepreneur answer the judges")
@click.option("--max-turns", default=12, type=int, help="Stop after this many turns")
@click.option("--output", "output_path", default=None, help="Transcript directory (default: from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def play(provider: str | None, auto: bool, max_turns: int, output_path: str | None, verbose: bool) -> None:
    """Pitch to the judges in the terminal. Type 'quit' to stop."""
    config = _load(verbose)
    chat = _build_chat_provider(config, provider or config.defaults.chat_provider)
    engine = build_engine(config, chat)

    session_id = asyncio.run(_play(engine, auto, max_turns))

    output_dir = Path(output_path) if output_path else config.defaults.output_dir
    saved_path = save_to_file(engine.get_session(session_id), output_dir)
    console.print(f"\n[dim]Saved to: {saved_path}[/dim]")


@main.command()
@click.argument("audio_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--provider", default=None, help="Chat provider for grammar feedback (default: from config)")
@click.option("--no-cache", is_flag=True, help="Always call the transcriber")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def coach(audio_file: str, provider: str | None, no_cache: bool, verbose: bool) -> None:
    """Pacing and grammar feedback for a recorded answer."""
    config = _load(verbose)
    chat = _build_chat_provider(config, provider or config.defaults.chat_provider)
    transcriber = _build_transcriber(config)
    if transcriber is None:
        console.print("[bold red]Error:[/bold red] No transcriber available. Check API keys in .env.")
        sys.exit(1)

    analyst = NegotiationAnalyst(chat, config.prompts, config.game)
    cache = None if no_cache else TranscriptCache(config.defaults.cache_dir)
    voice_coach = VoiceCoach(transcriber, analyst, cache)

    path = Path(audio_file)
    try:
        report = asyncio.run(voice_coach.analyze(path.read_bytes(), path.name))
    except ProviderError as exc:
        console.print(f"[bold red]Transcription failed:[/bold red] {exc}")
        sys.exit(1)
    print_coach_report(report)


if __name__ == "__main__":
    main()
