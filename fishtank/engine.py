"""Negotiation engine: session lifecycle and turn processing.

Turns for the same session are serialized with a per-session asyncio.Lock;
turns for different sessions run concurrently.
"""

import asyncio
import logging
import random
import uuid
import weakref
from datetime import datetime, timezone
from typing import Any

from config.config_loader import GameConfig
from fishtank.analysis import NegotiationAnalyst
from fishtank.judges import JudgeRegistry
from fishtank.models import DialogueEntry, Judge, JudgeReply, Offer, Session, TurnResult
from fishtank.scoring import is_out
from fishtank.selector import select_responders
from fishtank.stages import advance_stage
from fishtank.store import SessionStore

logger = logging.getLogger(__name__)

_GREETING = (
    "Welcome to the tank! I'm {name}. You have 60 seconds to tell us about "
    "your business and what you're looking for today."
)


def format_judge(judge: Judge, game: GameConfig) -> dict[str, Any]:
    return {
        "id": judge.id,
        "name": judge.name,
        "persona": judge.persona,
        "convictionLevel": judge.conviction,
        "inNegotiation": False,
        "isOut": is_out(judge, game.reply_threshold),
        "talkTimeSeconds": 0,
    }


def format_offer(offer: Offer) -> dict[str, Any]:
    return {"amount": offer.amount, "equity": offer.equity, "isFinal": offer.is_final}


def format_entry(entry: DialogueEntry, session: Session, game: GameConfig) -> dict[str, Any]:
    payload: dict[str, Any] = {"speaker": entry.speaker, "text": entry.text}
    if entry.audio_url:
        payload["audioUrl"] = entry.audio_url
    judge = next((j for j in session.judges if j.id == entry.judge_id), None)
    if judge is not None:
        payload["judge"] = format_judge(judge, game)
    return payload


class NegotiationEngine:
    """Owns the session store and drives each turn through the stage machine."""

    def __init__(
        self,
        store: SessionStore,
        registry: JudgeRegistry,
        analyst: NegotiationAnalyst,
        game: GameConfig,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._analyst = analyst
        self._game = game
        self._rng = rng or random.Random()
        # a lock lives only while a turn holds or waits on it
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    @property
    def game(self) -> GameConfig:
        return self._game

    @property
    def analyst(self) -> NegotiationAnalyst:
        return self._analyst

    def judge_profiles(self) -> list[dict[str, str]]:
        return self._registry.profiles()

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    def get_session(self, session_id: str) -> Session:
        """Raises SessionNotFound for unknown or expired ids."""
        return self._store.require(session_id)

    def start_session(self) -> tuple[Session, DialogueEntry]:
        session = Session(id=uuid.uuid4().hex, judges=self._registry.clone())
        greeter = self._rng.choice(session.judges)
        greeting = DialogueEntry(
            speaker="judge",
            text=_GREETING.format(name=greeter.name),
            judge_id=greeter.id,
        )
        session.history.append(greeting)
        self._store.put(session)
        logger.info("Session %s started, greeted by %s", session.id, greeter.name)
        return session, greeting

    async def process_turn(self, session_id: str, message: str, speaker: str = "player") -> TurnResult:
        """Apply one player message and collect the judges' replies.

        Raises:
            SessionNotFound: Unknown or expired session id.
            ValueError: Empty message.
        """
        if not message or not message.strip():
            raise ValueError("Message is required")
        self.get_session(session_id)

        async with self._lock_for(session_id):
            # re-read under the lock; the session may have expired while waiting
            session = self.get_session(session_id)
            logger.info(
                "Session %s turn: stage=%s progress=%d responses=%d",
                session.id,
                session.stage.value,
                session.stage_progress,
                session.player_response_count,
            )
            session.history.append(DialogueEntry(speaker=speaker, text=message))

            await self._score_judges(session, message)
            await advance_stage(session, message, self._analyst.classify_intent, self._game)

            replies = await self._collect_replies(session, message)

            session.updated_at = datetime.now(timezone.utc)
            self._store.put(session)
            logger.info(
                "Session %s after turn: stage=%s replies=%s",
                session.id,
                session.stage.value,
                [r.judge.name for r in replies],
            )
            return TurnResult(session=session, replies=replies)

    async def _score_judges(self, session: Session, message: str) -> None:
        """Fan out conviction scoring to every judge still in; one failure never fails the join."""
        active = [j for j in session.judges if not is_out(j, self._game.reply_threshold)]
        results = await asyncio.gather(
            *(self._analyst.update_conviction(session, j, message) for j in active),
            return_exceptions=True,
        )
        for judge, result in zip(active, results):
            if isinstance(result, Exception):
                logger.warning("Scoring %s failed unexpectedly: %s", judge.name, result)

    async def _collect_replies(self, session: Session, message: str) -> list[JudgeReply]:
        responders = select_responders(session, self._game)
        if not responders:
            logger.info("Session %s: no judge qualifies to reply", session.id)
            return []

        replies: list[JudgeReply] = []
        context: str | None = None
        for judge in responders:
            text = await self._analyst.respond(session, judge, message, context)
            session.history.append(DialogueEntry(speaker="judge", text=text, judge_id=judge.id))
            replies.append(JudgeReply(judge=judge, text=text))
            if context is None:
                # later judges comment on the lead judge without opening new topics
                context = self._analyst.second_judge_context(judge, text)
        return replies

    def snapshot(self, session_id: str) -> dict[str, Any]:
        session = self.get_session(session_id)
        return {
            "id": session.id,
            "conversationHistory": [format_entry(e, session, self._game) for e in session.history],
            "stage": session.stage.value,
            "stageProgress": session.stage_progress,
            "playerResponseCount": session.player_response_count,
            "negotiationRound": session.negotiation_round,
            "judgeOffers": {jid: format_offer(o) for jid, o in session.judge_offers.items()},
            "acceptedOffer": session.accepted_offer,
            "createdAt": session.created_at.isoformat(),
            "lastUpdatedAt": session.updated_at.isoformat(),
            "judges": [format_judge(j, self._game) for j in session.judges],
        }
