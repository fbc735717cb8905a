"""Tests for fishtank/models.py dataclasses."""

from fishtank.models import DialogueEntry, Offer, PlayerIntent, Session, Stage


def test_stage_values_match_wire_names():
    assert [s.value for s in Stage] == ["evaluation", "initial_offers", "negotiation", "closure"]


def test_stage_order_is_monotonic():
    assert Stage.EVALUATION.order < Stage.INITIAL_OFFERS.order < Stage.NEGOTIATION.order < Stage.CLOSURE.order


def test_offer_defaults_not_final():
    offer = Offer(amount=500_000, equity=20)
    assert offer.is_final is False


def test_session_defaults(registry):
    session = Session(id="abc", judges=registry.clone())
    assert session.stage is Stage.EVALUATION
    assert session.history == []
    assert session.judge_offers == {}
    assert session.accepted_offer is None
    assert session.negotiation_round == 0


def test_dialogue_entry_optional_fields():
    entry = DialogueEntry(speaker="player", text="Hello sharks")
    assert entry.audio_url is None
    assert entry.judge_id is None


def test_player_intent_defaults_to_neither():
    intent = PlayerIntent()
    assert intent.is_acceptance is False
    assert intent.is_counter_offer is False
    assert intent.counter_offer_amount is None
