"""Voice coach: speaking pace and grammar feedback for a recorded answer."""

import logging
import math

from fishtank.analysis import NegotiationAnalyst
from fishtank.cache import TranscriptCache
from fishtank.models import CoachReport, PacingPoint, Transcript, Word
from fishtank.providers.base import Transcriber

logger = logging.getLogger(__name__)

# Excluded from words-per-minute
FILLER_WORDS = frozenset({
    "uh", "um", "ah", "er", "hm", "hmm", "like", "you know", "so", "well", "actually",
    "basically", "literally", "technically", "honestly", "frankly", "seriously",
})

SEGMENT_SEC = 5.0


def _spoken(words: list[Word]) -> list[Word]:
    return [w for w in words if w.type != "spacing"]


def _normalize(text: str) -> str:
    return text.strip().strip(".,!?;:\"'").lower()


def words_per_minute(words: list[Word], duration: float) -> float:
    valid = [w for w in _spoken(words) if _normalize(w.text) not in FILLER_WORDS]
    # an all-filler or silent stretch is a pause
    if duration <= 0 or not valid:
        return 0.0
    return len(valid) / duration * 60


def analyze_pacing(transcript: Transcript, segment_sec: float = SEGMENT_SEC) -> list[PacingPoint]:
    """Words per minute for each fixed-length segment of the recording.

    A word belongs to the segment its start time falls in. Words without
    timestamps are ignored.
    """
    words = [w for w in _spoken(transcript.words) if w.start is not None and w.end is not None]
    if not words:
        return []

    first = words[0].start
    total = words[-1].end - first
    segments = math.ceil(total / segment_sec)

    points: list[PacingPoint] = []
    for i in range(segments):
        seg_start = first + i * segment_sec
        seg_end = seg_start + segment_sec
        in_segment = [w for w in words if seg_start <= w.start < seg_end]
        points.append(PacingPoint(time=seg_start, wpm=words_per_minute(in_segment, segment_sec)))
    return points


def average_wpm(points: list[PacingPoint]) -> float:
    if not points:
        return 0.0
    return sum(p.wpm for p in points) / len(points)


class VoiceCoach:
    """Transcribe (through the cache), then measure pace and check grammar."""

    def __init__(
        self,
        transcriber: Transcriber,
        analyst: NegotiationAnalyst,
        cache: TranscriptCache | None = None,
    ) -> None:
        self._transcriber = transcriber
        self._analyst = analyst
        self._cache = cache

    async def transcribe(self, audio: bytes, filename: str) -> tuple[Transcript, bool]:
        """Return (transcript, was_cached).

        Raises:
            ProviderError: Transcription failed; no default transcript is substituted.
        """
        if self._cache is not None:
            cached = self._cache.get(audio)
            if cached is not None:
                logger.info("Transcript cache hit for %s", filename)
                return cached, True

        transcript = await self._transcriber.transcribe(audio, filename)
        if self._cache is not None:
            self._cache.put(audio, transcript)
        return transcript, False

    async def analyze(self, audio: bytes, filename: str) -> CoachReport:
        transcript, cached = await self.transcribe(audio, filename)
        pacing = analyze_pacing(transcript)
        grammar = await self._analyst.grammar_feedback(transcript.text)
        return CoachReport(
            transcript=transcript,
            pacing=pacing,
            average_wpm=average_wpm(pacing),
            grammar=grammar,
            cached=cached,
        )
