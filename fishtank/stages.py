"""Stage machine: evaluation -> initial_offers -> negotiation -> closure.

Transitions are monotonic and closure is terminal. Each call advances a
session by exactly one player turn.
"""

import logging
from collections.abc import Awaitable, Callable

from config.config_loader import GameConfig
from fishtank.models import Offer, PlayerIntent, Session, Stage
from fishtank.scoring import initial_offer, lead_judge, qualifying_judges

logger = logging.getLogger(__name__)

Classifier = Callable[[Session, str], Awaitable[PlayerIntent]]


class StageTransitionError(Exception):
    """Raised when a transition would move a session backwards."""


def transition(session: Session, target: Stage) -> None:
    if target.order < session.stage.order:
        raise StageTransitionError(f"{session.id}: {session.stage.value} -> {target.value} is backwards")
    if target is not session.stage:
        logger.info("Session %s: %s -> %s", session.id, session.stage.value, target.value)
    session.stage = target
    session.stage_progress = 0


def _open_offers(session: Session, game: GameConfig) -> None:
    interested = [j for j in session.judges if j.conviction >= game.offer_threshold]
    if not interested:
        logger.info("Session %s: no interested judges", session.id)
        transition(session, Stage.CLOSURE)
        return
    for judge in interested:
        offer = initial_offer(judge)
        judge.current_offer = offer
        session.judge_offers[judge.id] = offer


def _apply_intent(session: Session, intent: PlayerIntent, game: GameConfig) -> None:
    """Record acceptance or a counter-offer against the lead judge."""
    if not (intent.is_acceptance or intent.is_counter_offer):
        return

    lead = lead_judge(session.judges, game.offer_threshold)
    if lead is None:
        # judges can drop out between the offer and the answer
        logger.info("Session %s: no qualifying judge left to deal with", session.id)
        transition(session, Stage.CLOSURE)
        return

    if intent.is_acceptance:
        session.accepted_offer = lead.id
        transition(session, Stage.CLOSURE)
        return

    if intent.counter_offer_amount and intent.counter_offer_equity:
        counter = Offer(amount=intent.counter_offer_amount, equity=intent.counter_offer_equity)
        lead.current_offer = counter
        session.judge_offers[lead.id] = counter


async def _classify_safely(classify: Classifier, session: Session, message: str) -> PlayerIntent:
    """Never raises. A failed classification counts as neither acceptance nor counter."""
    try:
        return await classify(session, message)
    except Exception as exc:
        logger.warning("Session %s: classification failed, treating as neither: %s", session.id, exc)
        return PlayerIntent()


async def advance_stage(
    session: Session,
    message: str,
    classify: Classifier,
    game: GameConfig,
) -> None:
    """Apply one player turn to the session's stage and offer bookkeeping."""
    stage = session.stage

    if stage is Stage.EVALUATION:
        session.stage_progress += 1
        session.player_response_count += 1
        if session.player_response_count >= game.max_evaluation_responses:
            transition(session, Stage.INITIAL_OFFERS)
            session.player_response_count = 0
            _open_offers(session, game)

    elif stage is Stage.INITIAL_OFFERS:
        if not qualifying_judges(session.judges, game.offer_threshold):
            transition(session, Stage.CLOSURE)
            return
        intent = await _classify_safely(classify, session, message)
        _apply_intent(session, intent, game)
        if session.stage is Stage.INITIAL_OFFERS:
            # counter-offers and plain replies both open the negotiation
            transition(session, Stage.NEGOTIATION)
            session.negotiation_round = 0

    elif stage is Stage.NEGOTIATION:
        session.negotiation_round += 1
        session.stage_progress += 1
        if session.negotiation_round >= game.max_negotiation_rounds:
            transition(session, Stage.CLOSURE)
            return
        intent = await _classify_safely(classify, session, message)
        _apply_intent(session, intent, game)

    else:
        logger.debug("Session %s: closure, no transition", session.id)
