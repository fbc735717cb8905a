"""
Fish Tank HTTP API
==================

FastAPI surface for the negotiation game and the voice coach.

API Endpoints:
- GET  /api/fishtank/judges: Judge roster
- POST /api/fishtank/start: Begin a new negotiation session
- POST /api/fishtank/reply: Submit a text message for the current turn
- POST /api/fishtank/audio-reply: Submit a recorded message for the current turn
- POST /api/fishtank/ai-player-reply: Suggest an entrepreneur reply
- GET  /api/fishtank/session/{session_id}: Full session snapshot
- POST /api/analyze-voice: Pacing and grammar feedback for a recording

Errors are returned as {"error": "..."} with no internal detail.
"""

import logging
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config.config_loader import ServerConfig
from fishtank.coach import VoiceCoach
from fishtank.engine import NegotiationEngine, format_judge
from fishtank.models import CoachReport, TurnResult
from fishtank.providers.base import ProviderError
from fishtank.store import SessionNotFound

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/fishtank", tags=["fishtank"])
coach_router = APIRouter(prefix="/api", tags=["coach"])


class ReplyRequest(BaseModel):
    sessionId: str | None = None
    message: str | None = None


class SessionRequest(BaseModel):
    sessionId: str | None = None


class ApiError(Exception):
    """An error whose message is safe to show the client."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(message)


def get_engine(request: Request) -> NegotiationEngine:
    return request.app.state.engine


def get_coach(request: Request) -> VoiceCoach:
    coach = request.app.state.coach
    if coach is None:
        raise ApiError(503, "Transcription is not configured")
    return coach


def _format_turn(engine: NegotiationEngine, result: TurnResult) -> dict[str, Any]:
    return {
        "replies": [
            {
                "text": r.text,
                "audioUrl": r.audio_url,
                "judge": format_judge(r.judge, engine.game),
            }
            for r in result.replies
        ],
        "stage": result.session.stage.value,
        "allJudges": [format_judge(j, engine.game) for j in result.session.judges],
    }


def format_report(report: CoachReport) -> dict[str, Any]:
    return {
        "transcription": {
            "text": report.transcript.text,
            "language_code": report.transcript.language_code,
            "words": [asdict(w) for w in report.transcript.words],
        },
        "pacing": {
            "dataPoints": [asdict(p) for p in report.pacing],
            "averageWPM": report.average_wpm,
        },
        "grammar": [asdict(i) for i in report.grammar],
        "cached": report.cached,
    }


async def _read_audio(request: Request, audio: UploadFile | None) -> bytes:
    if audio is None:
        raise ApiError(400, "No audio file uploaded")
    server: ServerConfig = request.app.state.server
    if server.allowed_audio_types and audio.content_type not in server.allowed_audio_types:
        raise ApiError(400, "Invalid file type. Only audio files are allowed.")
    limit = server.max_upload_mb * 1024 * 1024
    too_large = ApiError(413, f"Audio file exceeds {server.max_upload_mb}MB")
    if audio.size is not None and audio.size > limit:
        raise too_large
    # one byte past the limit is enough to reject; never buffer more
    data = await audio.read(limit + 1)
    if len(data) > limit:
        raise too_large
    if not data:
        raise ApiError(400, "Uploaded audio file is empty")
    return data


# ============================================================================
# FISH TANK ENDPOINTS
# ============================================================================

@router.get("/judges")
async def judges(engine: NegotiationEngine = Depends(get_engine)):
    return engine.judge_profiles()


@router.post("/start")
async def start(engine: NegotiationEngine = Depends(get_engine)):
    session, greeting = engine.start_session()
    greeter = next(j for j in session.judges if j.id == greeting.judge_id)
    return {
        "sessionId": session.id,
        "judges": [format_judge(j, engine.game) for j in session.judges],
        "initialGreeting": {
            "text": greeting.text,
            "judge": format_judge(greeter, engine.game),
        },
    }


@router.post("/reply")
async def reply(req: ReplyRequest, engine: NegotiationEngine = Depends(get_engine)):
    """Process one player message: score, advance the stage, collect judge replies."""
    engine.get_session(req.sessionId or "")
    if not req.message or not req.message.strip():
        raise ApiError(400, "Message is required")
    result = await engine.process_turn(req.sessionId, req.message)
    return _format_turn(engine, result)


@router.post("/audio-reply")
async def audio_reply(
    request: Request,
    sessionId: str | None = Form(default=None),
    audio: UploadFile | None = File(default=None),
    engine: NegotiationEngine = Depends(get_engine),
):
    """Transcribe a recorded message, then process it like /reply."""
    engine.get_session(sessionId or "")
    coach = get_coach(request)
    data = await _read_audio(request, audio)
    try:
        transcript, _ = await coach.transcribe(data, audio.filename or "audio")
    except ProviderError as exc:
        logger.error("Transcription failed for session %s: %s", sessionId, exc)
        raise ApiError(500, "Failed to transcribe audio") from exc
    if not transcript.text.strip():
        raise ApiError(400, "No speech detected in audio")

    result = await engine.process_turn(sessionId, transcript.text)
    payload = _format_turn(engine, result)
    payload["transcription"] = transcript.text
    return payload


@router.post("/ai-player-reply")
async def ai_player_reply(req: SessionRequest, engine: NegotiationEngine = Depends(get_engine)):
    session = engine.get_session(req.sessionId or "")
    try:
        text = await engine.analyst.generate_player_reply(session)
    except ProviderError as exc:
        logger.error("AI player reply failed for session %s: %s", session.id, exc)
        raise ApiError(500, "Failed to generate AI reply") from exc
    return {"reply": text}


@router.get("/session/{session_id}")
async def get_session(session_id: str, engine: NegotiationEngine = Depends(get_engine)):
    return engine.snapshot(session_id)


# ============================================================================
# VOICE COACH
# ============================================================================

@coach_router.post("/analyze-voice")
async def analyze_voice(request: Request, audio: UploadFile | None = File(default=None)):
    coach = get_coach(request)
    data = await _read_audio(request, audio)
    try:
        report = await coach.analyze(data, audio.filename or "audio")
    except ProviderError as exc:
        logger.error("Voice analysis failed: %s", exc)
        raise ApiError(500, "Error processing audio file") from exc
    return format_report(report)


# ============================================================================
# APP FACTORY
# ============================================================================

def create_app(
    engine: NegotiationEngine,
    coach: VoiceCoach | None = None,
    server: ServerConfig | None = None,
) -> FastAPI:
    app = FastAPI(title="Fish Tank API")
    app.state.engine = engine
    app.state.coach = coach
    app.state.server = server or ServerConfig()
    app.include_router(router)
    app.include_router(coach_router)

    @app.get("/info")
    def info():
        return {
            "status": "ok",
            "chatProvider": engine.analyst.provider_name,
            "transcriber": coach is not None,
        }

    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(SessionNotFound)
    async def _not_found(request: Request, exc: SessionNotFound):
        return JSONResponse(status_code=404, content={"error": "Session not found"})

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid request"})

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return app
