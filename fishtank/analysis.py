"""Prompt construction and response parsing for every model call the game makes.

Judge-facing operations never raise: provider failures and unparseable
output are logged and replaced with a safe default for that turn.
"""

import logging

from config.config_loader import GameConfig, PromptsConfig
from fishtank.decode import Err, GrammarPayload, IntentPayload, decode_model, decode_offer, decode_score
from fishtank.models import DialogueEntry, GrammarIssue, Judge, Offer, PlayerIntent, Session, Stage
from fishtank.providers.base import ChatProvider, ProviderError
from fishtank.scoring import is_out_reply, round_half_up, smooth_conviction

logger = logging.getLogger(__name__)

_SCORE_MAX_TOKENS = 10
_JSON_MAX_TOKENS = 150
_GRAMMAR_MAX_TOKENS = 800
_ANALYTIC_TEMPERATURE = 0.3


def _speaker_label(entry: DialogueEntry, judges: dict[str, Judge], player_label: str) -> str:
    if entry.speaker == "judge" and entry.judge_id in judges:
        return judges[entry.judge_id].name
    if entry.speaker == "judge":
        return "judge"
    return player_label


def format_history(session: Session, window: int, player_label: str = "player") -> str:
    """Render the last `window` dialogue entries as `speaker: text` lines."""
    by_id = {j.id: j for j in session.judges}
    recent = session.history[-window:] if window > 0 else []
    return "\n".join(
        f"{_speaker_label(e, by_id, player_label)}: {e.text}" for e in recent
    )


class NegotiationAnalyst:
    """Adapter between session state and the chat-completion provider."""

    def __init__(self, chat: ChatProvider, prompts: PromptsConfig, game: GameConfig) -> None:
        self._chat = chat
        self._prompts = prompts
        self._game = game

    @property
    def provider_name(self) -> str:
        return self._chat.name()

    def _history(self, session: Session, player_label: str = "player") -> str:
        return format_history(session, self._game.history_window, player_label)

    async def score_conviction(self, session: Session, judge: Judge, message: str) -> int | None:
        """Return the judge's 0-10 score for this message, or None if unusable."""
        prompt = self._prompts.scoring.format(
            persona=judge.persona,
            focus=judge.prompt,
            history=self._history(session),
            message=message,
        )
        try:
            response = await self._chat.complete(
                [
                    {"role": "system", "content": self._prompts.system},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=_SCORE_MAX_TOKENS,
                temperature=_ANALYTIC_TEMPERATURE,
            )
        except ProviderError as exc:
            logger.warning("Conviction scoring failed for %s: %s", judge.name, exc)
            return None

        result = decode_score(response.content)
        if isinstance(result, Err):
            logger.warning("Discarding score for %s: %s", judge.name, result.reason)
            return None
        return result.value

    async def update_conviction(self, session: Session, judge: Judge, message: str) -> None:
        """Score the message and fold it into the judge's conviction in place."""
        score = await self.score_conviction(session, judge, message)
        if score is None:
            return
        before = judge.conviction
        judge.conviction = smooth_conviction(before, score)
        logger.debug("%s conviction %d -> %d (score %d)", judge.name, before, judge.conviction, score)

    async def extract_offer(self, reply: str) -> Offer | None:
        prompt = self._prompts.offer_extraction.format(reply=reply)
        try:
            response = await self._chat.complete(
                [
                    {"role": "system", "content": "You are extracting investment offer details from a Shark Tank judge's response."},
                    {"role": "user", "content": prompt},
                ],
                json_mode=True,
                max_tokens=_JSON_MAX_TOKENS,
                temperature=_ANALYTIC_TEMPERATURE,
            )
        except ProviderError as exc:
            logger.warning("Offer extraction failed: %s", exc)
            return None

        result = decode_offer(response.content)
        if isinstance(result, Err):
            logger.warning("Discarding extracted offer: %s", result.reason)
            return None
        if result.value is None:
            return None
        return Offer(amount=round_half_up(result.value.amount), equity=result.value.equity)

    async def generate_reply(
        self,
        session: Session,
        judge: Judge,
        message: str,
        context: str | None = None,
    ) -> str:
        stage_instructions = (
            self._prompts.offer_instruction if session.stage is Stage.INITIAL_OFFERS else ""
        )
        prompt = self._prompts.judge_reply.format(
            name=judge.name,
            persona=judge.persona,
            prompt=judge.prompt,
            conviction=judge.conviction,
            history=self._history(session),
            message=message,
            context=context or "",
            stage_instructions=stage_instructions,
        )
        try:
            response = await self._chat.complete(
                [
                    {"role": "system", "content": self._prompts.system},
                    {"role": "user", "content": prompt},
                ],
            )
        except ProviderError as exc:
            logger.warning("Reply generation failed for %s: %s", judge.name, exc)
            return self._game.fallback_reply
        return response.content or self._game.fallback_reply

    async def respond(
        self,
        session: Session,
        judge: Judge,
        message: str,
        context: str | None = None,
    ) -> str:
        """Generate a judge reply and apply its side effects to the session.

        An "I'm out" reply zeroes conviction. During initial_offers any offer
        stated in the reply is recorded on the judge and the session.
        """
        reply = await self.generate_reply(session, judge, message, context)

        if is_out_reply(reply):
            logger.info("%s is out", judge.name)
            judge.conviction = 0
        elif session.stage is Stage.INITIAL_OFFERS:
            offer = await self.extract_offer(reply)
            if offer is not None:
                judge.current_offer = offer
                session.judge_offers[judge.id] = offer
                logger.info("%s offers $%d for %s%%", judge.name, offer.amount, offer.equity)

        judge.questions_asked += 1
        return reply

    def second_judge_context(self, previous: Judge, previous_reply: str) -> str:
        return self._prompts.second_judge_context.format(
            previous_name=previous.name,
            previous_reply=previous_reply,
        )

    async def classify_intent(self, session: Session, message: str) -> PlayerIntent:
        """Acceptance / counter-offer / neither. Any failure means neither."""
        prompt = self._prompts.intent.format(
            stage=session.stage.value,
            history=self._history(session, player_label="You"),
            message=message,
        )
        try:
            response = await self._chat.complete(
                [
                    {"role": "system", "content": "You are analyzing an entrepreneur's response in Shark Tank. Return ONLY a JSON object with no additional formatting or text."},
                    {"role": "user", "content": prompt},
                ],
                json_mode=True,
                max_tokens=_JSON_MAX_TOKENS,
                temperature=_ANALYTIC_TEMPERATURE,
            )
        except ProviderError as exc:
            logger.warning("Intent classification failed: %s", exc)
            return PlayerIntent()

        result = decode_model(response.content, IntentPayload)
        if isinstance(result, Err):
            logger.warning("Intent classification unparseable: %s", result.reason)
            return PlayerIntent()

        payload = result.value
        logger.info(
            "Player intent: acceptance=%s counter=%s (%s @ %s%%)",
            payload.is_acceptance,
            payload.is_counter_offer,
            payload.counter_offer_amount,
            payload.counter_offer_equity,
        )
        return PlayerIntent(
            is_acceptance=payload.is_acceptance,
            is_counter_offer=payload.is_counter_offer,
            counter_offer_amount=(
                round_half_up(payload.counter_offer_amount) if payload.counter_offer_amount else None
            ),
            counter_offer_equity=payload.counter_offer_equity or None,
        )

    async def generate_player_reply(self, session: Session) -> str:
        """Answer as the entrepreneur.

        Raises:
            ProviderError: If the model call fails or returns nothing.
        """
        prompt = self._prompts.player.format(
            stage=session.stage.value,
            history=self._history(session, player_label="You"),
        )
        response = await self._chat.complete(
            [
                {"role": "system", "content": self._prompts.player_system},
                {"role": "user", "content": prompt},
            ],
        )
        return response.content

    async def grammar_feedback(self, text: str) -> list[GrammarIssue]:
        if not text.strip():
            return []
        try:
            response = await self._chat.complete(
                [{"role": "user", "content": self._prompts.grammar.format(text=text)}],
                json_mode=True,
                max_tokens=_GRAMMAR_MAX_TOKENS,
                temperature=_ANALYTIC_TEMPERATURE,
            )
        except ProviderError as exc:
            logger.warning("Grammar feedback failed: %s", exc)
            return []

        result = decode_model(response.content, GrammarPayload)
        if isinstance(result, Err):
            logger.warning("Grammar feedback unparseable: %s", result.reason)
            return []
        return [
            GrammarIssue(original=i.original, suggestion=i.suggestion, explanation=i.explanation)
            for i in result.value.issues
        ]
