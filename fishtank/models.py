"""Pure dataclasses for the Fish Tank negotiation and voice coach. No logic, no deps."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class Stage(str, Enum):
    EVALUATION = "evaluation"
    INITIAL_OFFERS = "initial_offers"
    NEGOTIATION = "negotiation"
    CLOSURE = "closure"

    @property
    def order(self) -> int:
        return list(Stage).index(self)


@dataclass
class Offer:
    amount: int
    equity: float
    is_final: bool = False


@dataclass
class Judge:
    id: str
    name: str
    voice_id: str
    persona: str
    prompt: str
    conviction: int          # 0-100
    questions_asked: int = 0
    current_offer: Offer | None = None


@dataclass
class DialogueEntry:
    speaker: str             # "judge", "player" or "ai_entrepreneur"
    text: str
    audio_url: str | None = None
    judge_id: str | None = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Session:
    id: str
    judges: list[Judge]      # registry order
    history: list[DialogueEntry] = field(default_factory=list)
    stage: Stage = Stage.EVALUATION
    stage_progress: int = 0
    player_response_count: int = 0
    negotiation_round: int = 0
    judge_offers: dict[str, Offer] = field(default_factory=dict)
    accepted_offer: str | None = None   # judge id
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)


@dataclass
class ChatResponse:
    provider: str            # "openai", "claude", "gemini", "grok"
    model: str               # actual model string used
    content: str
    latency_sec: float
    token_count: int | None


@dataclass
class PlayerIntent:
    is_acceptance: bool = False
    is_counter_offer: bool = False
    counter_offer_amount: int | None = None
    counter_offer_equity: float | None = None


@dataclass
class JudgeReply:
    judge: Judge
    text: str
    audio_url: str | None = None


@dataclass
class TurnResult:
    session: Session
    replies: list[JudgeReply] = field(default_factory=list)


@dataclass
class Word:
    text: str
    start: float | None
    end: float | None
    type: str = "word"       # "word" or "spacing"


@dataclass
class Transcript:
    text: str
    words: list[Word] = field(default_factory=list)
    language_code: str | None = None


@dataclass
class PacingPoint:
    time: float
    wpm: float


@dataclass
class GrammarIssue:
    original: str
    suggestion: str
    explanation: str = ""


@dataclass
class CoachReport:
    transcript: Transcript
    pacing: list[PacingPoint]
    average_wpm: float
    grammar: list[GrammarIssue] = field(default_factory=list)
    cached: bool = False
