"""Pick which judges reply to a turn."""

from config.config_loader import GameConfig
from fishtank.models import Judge, Session, Stage
from fishtank.scoring import qualifying_judges


def select_responders(session: Session, game: GameConfig) -> list[Judge]:
    """Return up to game.max_responders judges, in speaking order.

    During evaluation the first judges in registry order always reply.
    Afterwards only judges still in (conviction >= reply_threshold) reply,
    most convinced first. An empty list means nobody replies this turn.
    """
    if session.stage is Stage.EVALUATION:
        return session.judges[: game.max_responders]
    return qualifying_judges(session.judges, game.reply_threshold)[: game.max_responders]
