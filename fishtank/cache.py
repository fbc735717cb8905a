"""Disk cache for transcripts, keyed by the SHA-256 of the audio bytes."""

import hashlib
import json
import logging
from dataclasses import asdict
from pathlib import Path

from fishtank.models import Transcript, Word

logger = logging.getLogger(__name__)


def audio_key(audio: bytes) -> str:
    return hashlib.sha256(audio).hexdigest()


class TranscriptCache:
    """One JSON file per transcript under `directory`."""

    def __init__(self, directory: Path) -> None:
        self._dir = directory

    def _path(self, key: str) -> Path:
        return self._dir / f"{key}.json"

    def get(self, audio: bytes) -> Transcript | None:
        path = self._path(audio_key(audio))
        if not path.exists():
            return None
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return Transcript(
                text=raw["text"],
                words=[Word(**w) for w in raw.get("words", [])],
                language_code=raw.get("language_code"),
            )
        except (OSError, ValueError, KeyError, TypeError) as exc:
            # a corrupt entry is a miss; it is overwritten on the next put
            logger.warning("Ignoring unreadable cache entry %s: %s", path.name, exc)
            return None

    def put(self, audio: bytes, transcript: Transcript) -> Path:
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self._path(audio_key(audio))
        path.write_text(json.dumps(asdict(transcript)), encoding="utf-8")
        logger.debug("Cached transcript: %s", path)
        return path
