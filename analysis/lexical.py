"""Shared lexical helpers — tokenization, keyword matching, lexical sentiment, evidence snippets."""

import re
from collections.abc import Callable, Iterable
from typing import NamedTuple

from config.schemas import EvidenceSnippet, NormalizedUtterance
from analysis.vocab import (
    CERTAINTY_WORDS,
    HEDGE_WORDS,
    NEGATIVE_WORDS,
    POSITIVE_WORDS,
    STOP_WORDS,
)

_NON_WORD_RE = re.compile(r"[^a-z0-9\s']")
_WHITESPACE_RE = re.compile(r"\s+")

EVIDENCE_MAX_CHARS = 280


class LexicalStats(NamedTuple):
    positive_hits: int
    negative_hits: int
    certainty_hits: int
    hedge_hits: int
    valence: float


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return min(hi, max(lo, value))


def normalize_text(text: str) -> str:
    """Collapse runs of whitespace and strip."""
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def to_words(text: str) -> list[str]:
    """Lowercase word tokens; apostrophes kept so "can't" stays one token."""
    cleaned = _NON_WORD_RE.sub(" ", (text or "").lower())
    return [token for token in cleaned.split() if token]


def content_words(text: str) -> list[str]:
    return [t for t in to_words(text) if len(t) > 2 and t not in STOP_WORDS]


def keyword_hits(text: str, keywords: Iterable[str]) -> int:
    """Number of distinct keywords that occur as substrings of text."""
    lowered = (text or "").lower()
    return sum(1 for kw in keywords if kw.lower() in lowered)


def sentiment_stats(text: str) -> LexicalStats:
    """Count positive/negative/certainty/hedge tokens and derive lexical valence.

    valence = (positive - negative) / max(3, positive + negative), so a single
    hit moves valence by at most a third.
    """
    positive = negative = certainty = hedge = 0
    for token in to_words(text):
        if token in POSITIVE_WORDS:
            positive += 1
        if token in NEGATIVE_WORDS:
            negative += 1
        if token in CERTAINTY_WORDS:
            certainty += 1
        if token in HEDGE_WORDS:
            hedge += 1
    valence = (positive - negative) / max(3, positive + negative)
    return LexicalStats(positive, negative, certainty, hedge, valence)


def make_id(prefix: str, seed: str, index: int) -> str:
    """Deterministic id: prefix, first 16 alphanumerics of seed, index."""
    cleaned = re.sub(r"[^a-z0-9]", "", str(seed).lower())[:16]
    return f"{prefix}-{cleaned or 'item'}-{index}"


def build_evidence(
    utterances: list[NormalizedUtterance],
    predicate: Callable[[NormalizedUtterance], bool] = lambda _: True,
    limit: int = 2,
) -> list[EvidenceSnippet]:
    """Most recent `limit` utterances matching predicate, as evidence snippets."""
    matching = [u for u in utterances if predicate(u)]
    recent = matching[-limit:] if limit > 0 else []
    return [
        EvidenceSnippet(
            utterance_id=u.id,
            speaker_role=u.speaker_role,
            ts_start_ms=u.t_start_ms,
            ts_end_ms=u.t_end_ms,
            text=u.text[:EVIDENCE_MAX_CHARS],
        )
        for u in recent
    ]
