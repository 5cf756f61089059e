"""Chunk preparation before analysis — merge, partial-utterance synthesis, budgeting, redaction.

These helpers sit between the transport layer and the pure engine. None of
them mutate their inputs; pydantic chunks are rebuilt with model_copy.
"""

from loguru import logger
from presidio_analyzer import Pattern, PatternRecognizer
from presidio_anonymizer import AnonymizerEngine
from presidio_anonymizer.entities import OperatorConfig

from config import settings
from config.schemas import RawChunk, SpeakerRole

PARTIAL_SEQUENCE_BASE = 10_000_000
PARTIAL_DURATION_MS = 400
PARTIAL_CONFIDENCE = 0.55

REDACTION_LABELS = {
    "EMAIL_ADDRESS": "[redacted-email]",
    "PHONE_NUMBER": "[redacted-phone]",
    "CREDIT_CARD": "[redacted-card]",
}

PROSODY_FIELDS = (
    "prosody_energy",
    "prosody_pause_ratio",
    "prosody_voiced_ms",
    "prosody_snr_db",
    "prosody_quality_pass",
    "prosody_tone_weights_enabled",
    "prosody_confidence_penalty",
)


def chunk_key(chunk: RawChunk) -> str:
    if chunk.id is not None:
        return chunk.id
    sequence = chunk.sequence if chunk.sequence is not None else -1
    return f"{sequence}:{chunk.t_start_ms}:{chunk.t_end_ms}:{chunk.text}"


def merge_chunks(stored: list[RawChunk], fresh: list[RawChunk]) -> list[RawChunk]:
    """Union of two chunk lists keyed by chunk identity; the later occurrence wins.

    Result is sorted by (start, end, sequence) with a missing sequence sorting as 0.
    """
    merged: dict[str, RawChunk] = {}
    for chunk in [*stored, *fresh]:
        merged[chunk_key(chunk)] = chunk
    return sorted(
        merged.values(),
        key=lambda c: (c.t_start_ms, c.t_end_ms, c.sequence if c.sequence is not None else 0),
    )


def partial_chunk(text: str, now_ms: float, existing_count: int = 0) -> RawChunk | None:
    """In-progress utterance ending at now_ms, or None when text is blank."""
    text = (text or "").strip()
    if not text:
        return None
    now_ms = int(now_ms)
    return RawChunk(
        id=f"partial-{now_ms}",
        sequence=PARTIAL_SEQUENCE_BASE + existing_count,
        t_start_ms=max(0, now_ms - PARTIAL_DURATION_MS),
        t_end_ms=now_ms,
        speaker=None,
        speaker_role=SpeakerRole.UNKNOWN,
        text=text,
        confidence=PARTIAL_CONFIDENCE,
    )


def budget_chunks(chunks: list[RawChunk], max_chunks: int = settings.ANALYSIS_CHUNK_BUDGET) -> list[RawChunk]:
    """Keep only the newest max_chunks."""
    if max_chunks <= 0:
        return []
    return chunks[-max_chunks:]


# ── REDACTION RECOGNIZERS ──


def _build_email_recognizer() -> PatternRecognizer:
    return PatternRecognizer(
        supported_entity="EMAIL_ADDRESS",
        name="Email Recognizer",
        patterns=[Pattern(name="email", regex=r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", score=0.9)],
    )


def _build_phone_recognizer() -> PatternRecognizer:
    """Phone: optional +, then a digit run of nine or more characters that may hold spaces, dots, dashes or brackets."""
    return PatternRecognizer(
        supported_entity="PHONE_NUMBER",
        name="Phone Recognizer",
        patterns=[Pattern(name="phone", regex=r"\+?\d[\d\s().-]{7,}\d", score=0.7)],
    )


def _build_card_recognizer() -> PatternRecognizer:
    """Card: 13 to 19 digits, optionally grouped by spaces or dashes."""
    return PatternRecognizer(
        supported_entity="CREDIT_CARD",
        name="Card Number Recognizer",
        patterns=[Pattern(name="card", regex=r"\b(?:\d[ -]*?){13,19}\b", score=0.8)],
    )


_recognizers: list[PatternRecognizer] | None = None
_anonymizer: AnonymizerEngine | None = None


def _get_recognizers() -> list[PatternRecognizer]:
    """Recognizers in redaction order: email, then phone, then card."""
    global _recognizers
    if _recognizers is None:
        _recognizers = [_build_email_recognizer(), _build_phone_recognizer(), _build_card_recognizer()]
        logger.debug(f"Redaction recognizers ready: {[r.supported_entities[0] for r in _recognizers]}")
    return _recognizers


def _get_anonymizer() -> AnonymizerEngine:
    """Initialize Presidio anonymizer."""
    global _anonymizer
    if _anonymizer is None:
        _anonymizer = AnonymizerEngine()
    return _anonymizer


def redact_text(text: str) -> str:
    """Replace emails, phone numbers and card numbers with fixed labels.

    Each recognizer runs on the text left by the one before it, so digits
    inside an email never count as a phone and a digit run already taken as
    a phone is not seen again as a card.
    """
    for recognizer in _get_recognizers():
        entity = recognizer.supported_entities[0]
        results = recognizer.analyze(text=text, entities=[entity], nlp_artifacts=None)
        if not results:
            continue
        text = _get_anonymizer().anonymize(
            text=text,
            analyzer_results=results,
            operators={entity: OperatorConfig("replace", {"new_value": REDACTION_LABELS[entity]})},
        ).text
    return text


def redact_chunks(chunks: list[RawChunk]) -> list[RawChunk]:
    return [c.model_copy(update={"text": redact_text(c.text)}) for c in chunks]


def strip_prosody(chunks: list[RawChunk]) -> list[RawChunk]:
    """Drop every prosody field so tone falls back to lexical estimates."""
    cleared = dict.fromkeys(PROSODY_FIELDS)
    return [c.model_copy(update=cleared) for c in chunks]
