"""Tests for fishtank/coach.py and fishtank/cache.py."""

import pytest

from fishtank.cache import TranscriptCache, audio_key
from fishtank.coach import VoiceCoach, analyze_pacing, average_wpm, words_per_minute
from fishtank.models import PacingPoint, Transcript, Word
from fishtank.providers.base import ProviderError
from tests.conftest import FakeTranscriber


def test_words_per_minute_skips_fillers_and_spacing():
    words = [
        Word("Um,", 0.0, 0.2),
        Word(" ", 0.2, 0.3, type="spacing"),
        Word("we", 0.3, 0.5),
        Word("like", 0.6, 0.8),
        Word("grow", 0.9, 1.2),
    ]
    # two real words over five seconds
    assert words_per_minute(words, 5.0) == pytest.approx(24.0)


def test_words_per_minute_all_filler_is_zero():
    assert words_per_minute([Word("um", 0.0, 0.1), Word("uh", 0.2, 0.3)], 5.0) == 0.0


def test_words_per_minute_zero_duration():
    assert words_per_minute([Word("hello", 0.0, 0.1)], 0.0) == 0.0


def test_analyze_pacing_buckets_by_start_time():
    transcript = Transcript(
        text="we sell dog food online",
        words=[
            Word("we", 0.0, 0.4),
            Word("sell", 1.0, 1.4),
            Word("dog", 2.0, 2.4),
            Word("food", 6.0, 6.4),
            Word("online", 7.0, 7.5),
        ],
    )
    points = analyze_pacing(transcript)
    assert [p.time for p in points] == [0.0, 5.0]
    assert points[0].wpm == pytest.approx(36.0)
    assert points[1].wpm == pytest.approx(24.0)


def test_analyze_pacing_ignores_untimed_words():
    transcript = Transcript(text="hi", words=[Word("hi", None, None)])
    assert analyze_pacing(transcript) == []


def test_average_wpm():
    assert average_wpm([]) == 0.0
    assert average_wpm([PacingPoint(0.0, 120.0), PacingPoint(5.0, 60.0)]) == pytest.approx(90.0)


class TestTranscriptCache:
    def test_miss_then_hit(self, tmp_path):
        cache = TranscriptCache(tmp_path / "cache")
        audio = b"RIFF....WAVEfmt "
        transcript = Transcript(text="hello", words=[Word("hello", 0.0, 0.5)], language_code="en")

        assert cache.get(audio) is None
        path = cache.put(audio, transcript)
        assert path.name == f"{audio_key(audio)}.json"
        assert cache.get(audio) == transcript

    def test_corrupt_entry_is_a_miss(self, tmp_path):
        cache = TranscriptCache(tmp_path)
        audio = b"abc"
        (tmp_path / f"{audio_key(audio)}.json").write_text("{broken", encoding="utf-8")
        assert cache.get(audio) is None

    def test_key_is_content_hash(self):
        assert audio_key(b"a") == audio_key(b"a")
        assert audio_key(b"a") != audio_key(b"b")


class TestVoiceCoach:
    async def test_analyze_builds_report(self, analyst, chat, tmp_path):
        chat.grammar = '{"issues": [{"original": "dog food", "suggestion": "dog food products"}]}'
        coach = VoiceCoach(FakeTranscriber(), analyst, TranscriptCache(tmp_path))

        report = await coach.analyze(b"audio-bytes", "pitch.webm")

        assert report.transcript.text == "We sell organic dog food"
        assert report.cached is False
        assert len(report.pacing) == 1
        assert report.average_wpm == pytest.approx(60.0)
        assert report.grammar[0].suggestion == "dog food products"

    async def test_second_analysis_uses_cache(self, analyst, tmp_path):
        transcriber = FakeTranscriber()
        coach = VoiceCoach(transcriber, analyst, TranscriptCache(tmp_path))

        await coach.analyze(b"same-audio", "a.webm")
        report = await coach.analyze(b"same-audio", "b.webm")

        assert transcriber.calls == 1
        assert report.cached is True

    async def test_without_cache_always_transcribes(self, analyst):
        transcriber = FakeTranscriber()
        coach = VoiceCoach(transcriber, analyst)
        await coach.transcribe(b"x", "a.webm")
        await coach.transcribe(b"x", "a.webm")
        assert transcriber.calls == 2

    async def test_transcription_failure_propagates(self, analyst, tmp_path):
        coach = VoiceCoach(FakeTranscriber(error=ProviderError("fake", "quota")), analyst, TranscriptCache(tmp_path))
        with pytest.raises(ProviderError):
            await coach.analyze(b"audio", "a.webm")
        assert list(tmp_path.iterdir()) == []
