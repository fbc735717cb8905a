"""Conviction arithmetic and offer rules. Pure functions over judges."""

import math

from fishtank.models import Judge, Offer

# Weights of the existing conviction and the new score
_KEEP_WEIGHT = 0.7
_SCORE_WEIGHT = 0.3

_OUT_PHRASES = ("i'm out", "im out")


def round_half_up(value: float) -> int:
    # round() is banker's rounding; game arithmetic rounds .5 upwards
    return math.floor(value + 0.5)


def smooth_conviction(old: int, score: int) -> int:
    """Fold a 0-10 score into a 0-100 conviction level.

    new = round(old*0.7 + score*10*0.3), clamped to [0, 100].

    Raises:
        ValueError: If score is outside 0-10.
    """
    if not 0 <= score <= 10:
        raise ValueError(f"score must be within 0-10, got {score}")
    new = round_half_up(old * _KEEP_WEIGHT + score * 10 * _SCORE_WEIGHT)
    return max(0, min(100, new))


def is_out_reply(text: str) -> bool:
    lowered = text.lower()
    return any(phrase in lowered for phrase in _OUT_PHRASES)


def is_out(judge: Judge, reply_threshold: int) -> bool:
    return judge.conviction < reply_threshold


def initial_offer(judge: Judge) -> Offer:
    """Opening offer scaled to conviction: $1,000 and 0.5% equity per point."""
    return Offer(
        amount=round_half_up(judge.conviction * 1000),
        equity=round_half_up(judge.conviction / 2),
    )


def qualifying_judges(judges: list[Judge], threshold: int) -> list[Judge]:
    """Judges at or above threshold, highest conviction first.

    The sort is stable, so ties keep registry order.
    """
    return sorted(
        (j for j in judges if j.conviction >= threshold),
        key=lambda j: j.conviction,
        reverse=True,
    )


def lead_judge(judges: list[Judge], threshold: int) -> Judge | None:
    ranked = qualifying_judges(judges, threshold)
    return ranked[0] if ranked else None
