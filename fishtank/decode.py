"""Schema-validated decoding of model output.

Every decoder returns Ok(value) or Err(reason) and never raises, so callers
can log the reason and fall back to a safe default.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:json)?\s*|\s*```")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    reason: str


Result = Ok[T] | Err


class OfferFields(BaseModel):
    amount: float = Field(gt=0)
    equity: float = Field(gt=0, le=100)


class OfferEnvelope(BaseModel):
    offer: OfferFields | None = None


class IntentPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_acceptance: StrictBool = Field(alias="isAcceptance")
    is_counter_offer: StrictBool = Field(alias="isCounterOffer")
    counter_offer_amount: float | None = Field(default=None, alias="counterOfferAmount")
    counter_offer_equity: float | None = Field(default=None, alias="counterOfferEquity")


class GrammarIssuePayload(BaseModel):
    original: str
    suggestion: str
    explanation: str = ""


class GrammarPayload(BaseModel):
    issues: list[GrammarIssuePayload] = Field(default_factory=list)


def strip_fences(text: str) -> str:
    """Remove markdown code fences some models wrap JSON in."""
    return _FENCE_RE.sub("", text).strip()


def parse_json(text: str) -> Result[Any]:
    """Parse JSON, retrying on the first {...} block when the whole text fails."""
    cleaned = strip_fences(text or "")
    if not cleaned:
        return Err("empty content")
    try:
        return Ok(json.loads(cleaned))
    except json.JSONDecodeError:
        pass
    match = _OBJECT_RE.search(cleaned)
    if match:
        try:
            return Ok(json.loads(match.group(0)))
        except json.JSONDecodeError:
            pass
    return Err(f"not valid JSON: {cleaned[:120]!r}")


def decode_model(text: str, schema: type[M]) -> Result[M]:
    parsed = parse_json(text)
    if isinstance(parsed, Err):
        return parsed
    try:
        return Ok(schema.model_validate(parsed.value))
    except ValidationError as exc:
        return Err(f"{schema.__name__} schema mismatch: {exc.error_count()} error(s)")


def decode_offer(text: str) -> Result[OfferFields | None]:
    """Accepts {"offer": {...}}, {"offer": null}, bare {"amount", "equity"} or null."""
    parsed = parse_json(text)
    if isinstance(parsed, Err):
        return parsed
    value = parsed.value
    if value is None:
        return Ok(None)
    if not isinstance(value, dict):
        return Err(f"expected an object, got {type(value).__name__}")
    try:
        if "offer" in value:
            return Ok(OfferEnvelope.model_validate(value).offer)
        return Ok(OfferFields.model_validate(value))
    except ValidationError as exc:
        return Err(f"offer schema mismatch: {exc.error_count()} error(s)")


def decode_score(text: str, low: int = 0, high: int = 10) -> Result[int]:
    """Read a leading integer and check it lies in [low, high]."""
    match = _LEADING_INT_RE.match(text or "")
    if not match:
        return Err(f"non-numeric score: {text!r}")
    score = int(match.group(1))
    if not low <= score <= high:
        return Err(f"score {score} outside {low}-{high}")
    return Ok(score)
