"""Utterance normalization — dedupe, sort, and SALES/CLIENT/UNKNOWN role assignment.

Two explicit passes over the sorted utterance list:
  1. assign: explicit role > audio-source hint > inferred sales speaker >
     any other labelled speaker (client) > keyword-cue margin > UNKNOWN
  2. backfill: UNKNOWN utterances borrow a role from their neighbours
     (turn-taking around questions), then a looser cue margin.

An explicit role supplied by the transcription collaborator is never overridden.
"""

import re

from loguru import logger

from config.schemas import NormalizedUtterance, RawChunk, SpeakerRole
from analysis.lexical import clamp, keyword_hits, normalize_text, to_words
from analysis.vocab import (
    ASSIGN_CUE_MARGINS,
    AUDIO_SOURCE_ROLE_MAP,
    BACKFILL_CUE_MARGINS,
    CLIENT_CUE_PHRASES,
    CLIENT_CUE_WEIGHT,
    INFERRED_SPEAKER_LABELS,
    OFFER_TO_ACT_BONUS,
    OFFER_TO_ACT_PATTERN,
    OWNERSHIP_BONUS,
    OWNERSHIP_PATTERN,
    QUESTION_MARK_WEIGHT,
    RISK_KEYWORD_CUE_WEIGHT,
    RISK_KEYWORDS_FLAT,
    SALES_CUE_PHRASES,
    SALES_CUE_WEIGHT,
    SELF_REFERENCE_LABEL_PATTERN,
    SPEAKER_CLIENT_CUE_DISCOUNT,
    SPEAKER_MIN_MARGIN,
    SPEAKER_MIN_SCORE,
    SPEAKER_SCORE_CLIENT_SOURCE,
    SPEAKER_SCORE_EXPLICIT_CLIENT,
    SPEAKER_SCORE_EXPLICIT_SALES,
    SPEAKER_SCORE_SALES_SOURCE,
)

DEFAULT_ASR_CONFIDENCE = 0.7

_OPPOSITE_ROLE = {
    SpeakerRole.SALES: SpeakerRole.CLIENT,
    SpeakerRole.CLIENT: SpeakerRole.SALES,
}


# ── CUE SCORING ──

def score_sales_signal(text: str) -> float:
    """First-person offers, sales phrases and questions push toward SALES."""
    normalized = (text or "").lower()
    score = keyword_hits(normalized, SALES_CUE_PHRASES) * SALES_CUE_WEIGHT
    score += normalized.count("?") * QUESTION_MARK_WEIGHT
    if re.search(OFFER_TO_ACT_PATTERN, normalized):
        score += OFFER_TO_ACT_BONUS
    return score


def score_client_signal(text: str) -> float:
    """Needs, objections and ownership language push toward CLIENT."""
    normalized = (text or "").lower()
    score = keyword_hits(normalized, CLIENT_CUE_PHRASES) * CLIENT_CUE_WEIGHT
    score += keyword_hits(normalized, RISK_KEYWORDS_FLAT) * RISK_KEYWORD_CUE_WEIGHT
    if re.search(OWNERSHIP_PATTERN, normalized):
        score += OWNERSHIP_BONUS
    return score


def role_from_cue_margin(text: str, sales_margin: float, client_margin: float) -> SpeakerRole:
    sales_score = score_sales_signal(text)
    client_score = score_client_signal(text)
    if sales_score - client_score >= sales_margin:
        return SpeakerRole.SALES
    if client_score - sales_score >= client_margin:
        return SpeakerRole.CLIENT
    return SpeakerRole.UNKNOWN


# ── SALES SPEAKER INFERENCE ──

def infer_sales_speaker(chunks: list[RawChunk]) -> str | None:
    """Pick the speaker label most likely to be the sales rep.

    Tries, in order: an explicitly SALES-tagged speaker, a speaker on the
    local microphone, a self-referencing label ("you", "me", "Speaker 1"),
    then a cumulative cue score that must clear both an absolute floor and a
    margin over the runner-up. Falls back to the first labelled speaker.
    """
    labelled = [c for c in chunks if c.speaker]
    if not labelled:
        return None

    for chunk in labelled:
        if chunk.speaker_role == SpeakerRole.SALES:
            return chunk.speaker

    for chunk in labelled:
        if chunk.audio_source is not None and AUDIO_SOURCE_ROLE_MAP.get(chunk.audio_source) == SpeakerRole.SALES:
            return chunk.speaker

    for chunk in labelled:
        if re.search(SELF_REFERENCE_LABEL_PATTERN, chunk.speaker, re.IGNORECASE):
            return chunk.speaker

    scores: dict[str, float] = {}
    for chunk in labelled:
        score = scores.get(chunk.speaker, 0.0)
        if chunk.speaker_role == SpeakerRole.SALES:
            score += SPEAKER_SCORE_EXPLICIT_SALES
        elif chunk.speaker_role == SpeakerRole.CLIENT:
            score += SPEAKER_SCORE_EXPLICIT_CLIENT
        source_role = AUDIO_SOURCE_ROLE_MAP.get(chunk.audio_source) if chunk.audio_source else None
        if source_role == SpeakerRole.SALES:
            score += SPEAKER_SCORE_SALES_SOURCE
        elif source_role == SpeakerRole.CLIENT:
            score += SPEAKER_SCORE_CLIENT_SOURCE
        score += score_sales_signal(chunk.text) - score_client_signal(chunk.text) * SPEAKER_CLIENT_CUE_DISCOUNT
        scores[chunk.speaker] = score

    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    best_speaker, best_score = ranked[0]
    runner_up = ranked[1][1] if len(ranked) > 1 else float("-inf")
    if best_score > SPEAKER_MIN_SCORE and best_score - runner_up > SPEAKER_MIN_MARGIN:
        return best_speaker

    return labelled[0].speaker


# ── ROLE ASSIGNMENT ──

def assign_role(chunk: RawChunk, sales_speaker: str | None) -> SpeakerRole:
    """First-pass role for one chunk (no neighbour context)."""
    if chunk.speaker_role is not None:
        return chunk.speaker_role

    if chunk.audio_source is not None and chunk.audio_source in AUDIO_SOURCE_ROLE_MAP:
        return AUDIO_SOURCE_ROLE_MAP[chunk.audio_source]

    if chunk.speaker and sales_speaker and chunk.speaker == sales_speaker:
        return SpeakerRole.SALES

    if chunk.speaker:
        return SpeakerRole.CLIENT

    return role_from_cue_margin(chunk.text, *ASSIGN_CUE_MARGINS)


def infer_role_from_context(utterances: list[NormalizedUtterance], index: int) -> SpeakerRole:
    """Second-pass role for an UNKNOWN utterance using its immediate neighbours."""
    if index < 0 or index >= len(utterances):
        return SpeakerRole.UNKNOWN
    current = utterances[index]
    prev = utterances[index - 1] if index > 0 else None
    nxt = utterances[index + 1] if index < len(utterances) - 1 else None

    if (
        prev is not None
        and nxt is not None
        and prev.speaker_role != SpeakerRole.UNKNOWN
        and prev.speaker_role == nxt.speaker_role
    ):
        return prev.speaker_role

    if prev is not None and prev.speaker_role != SpeakerRole.UNKNOWN and "?" in prev.text:
        return _OPPOSITE_ROLE[prev.speaker_role]

    if nxt is not None and nxt.speaker_role != SpeakerRole.UNKNOWN and "?" in current.text:
        return _OPPOSITE_ROLE[nxt.speaker_role]

    return role_from_cue_margin(current.text, *BACKFILL_CUE_MARGINS)


def dedupe_key(chunk: RawChunk, text: str) -> str:
    if chunk.id is not None:
        return chunk.id
    sequence = chunk.sequence if chunk.sequence is not None else -1
    return f"{sequence}:{chunk.t_start_ms}:{chunk.t_end_ms}:{text}"


def dedupe_and_normalize(chunks: list[RawChunk]) -> list[NormalizedUtterance]:
    """Dedupe, role-tag and sort raw chunks; backfill UNKNOWN roles from context."""
    sales_speaker = infer_sales_speaker(chunks)
    if sales_speaker:
        logger.debug(f"Inferred sales speaker: {sales_speaker!r}")

    seen: set[str] = set()
    assigned: list[NormalizedUtterance] = []
    for index, chunk in enumerate(chunks):
        text = normalize_text(chunk.text)
        if not text:
            continue
        key = dedupe_key(chunk, text)
        if key in seen:
            continue
        seen.add(key)

        t_start = max(0, chunk.t_start_ms)
        assigned.append(NormalizedUtterance(
            id=chunk.id if chunk.id is not None else f"utt-{index}",
            t_start_ms=t_start,
            t_end_ms=max(chunk.t_start_ms + 1, chunk.t_end_ms),
            speaker=chunk.speaker,
            speaker_role=assign_role(chunk, sales_speaker),
            audio_source=chunk.audio_source,
            prosody_energy=chunk.prosody_energy,
            prosody_pause_ratio=chunk.prosody_pause_ratio,
            prosody_voiced_ms=chunk.prosody_voiced_ms,
            prosody_snr_db=chunk.prosody_snr_db,
            prosody_quality_pass=chunk.prosody_quality_pass,
            prosody_tone_weights_enabled=chunk.prosody_tone_weights_enabled,
            prosody_confidence_penalty=chunk.prosody_confidence_penalty,
            text=text,
            confidence=clamp(chunk.confidence if chunk.confidence is not None else DEFAULT_ASR_CONFIDENCE),
            words=len(to_words(text)),
        ))

    assigned.sort(key=lambda u: (u.t_start_ms, u.t_end_ms))

    # Backfill reads neighbours from the first-pass list, so one inference
    # never feeds another within the same pass.
    normalized: list[NormalizedUtterance] = []
    backfilled = 0
    for index, utterance in enumerate(assigned):
        if utterance.speaker_role != SpeakerRole.UNKNOWN:
            normalized.append(utterance)
            continue
        inferred = infer_role_from_context(assigned, index)
        if inferred == SpeakerRole.UNKNOWN:
            normalized.append(utterance)
            continue
        backfilled += 1
        normalized.append(utterance.model_copy(update={
            "speaker_role": inferred,
            "speaker": utterance.speaker or INFERRED_SPEAKER_LABELS[inferred],
        }))

    if backfilled:
        logger.debug(f"Backfilled {backfilled} UNKNOWN role(s) from context")
    return normalized
