"""Pipeline Orchestrator — runs the seven heuristic stages over one chunk snapshot.

  Stage 1: Utterance normalization (dedupe, sort, role assignment + backfill)
  Stage 2: Signal extraction (window, lexical sentiment, dynamics, prosody gate)
  Stage 3: Topic coverage + risk flags
  Stage 4: Stakeholder (champion / skeptic) detection
  Stage 5: Question follow-up tracking
  Stage 6: Coaching payload + insights
  Stage 7: Call health + executive summary

analyze_call() is pure: no I/O, no shared state, output depends only on the
options (pass now_ms for byte-identical output). run_live_analysis() wraps it
with the request-level concerns: enable/disable, partial text, chunk budget,
PII redaction and light/deep response shaping.
"""

import json
import time
from pathlib import Path
from typing import Any, Optional

from loguru import logger
from pydantic import ValidationError

from config import settings
from config.schemas import (
    AnalysisMode,
    AnalysisOptions,
    AnalysisResult,
    CoachPayload,
    LiveAnalysisRequest,
    LiveAnalysisResponse,
    MetricsSnapshot,
    RawChunk,
    SpeakerRole,
    StreamStatus,
)
from analysis.call_health import compute_call_health, compute_call_summary
from analysis.coaching import compute_coach, compute_insights
from analysis.coverage import compute_risk_flags, compute_topic_coverage, missing_topics
from analysis.follow_ups import compute_question_follow_ups
from analysis.lexical import build_evidence, sentiment_stats
from analysis.roles import dedupe_and_normalize
from analysis.stakeholders import compute_stakeholder_signals
from analysis.tone import (
    ToneMetrics,
    average_asr_confidence,
    compute_dynamics,
    compute_talk_dynamics,
    compute_tone,
    overall_confidence,
    resolve_now,
    select_window,
    summarize_prosody,
    text_valence,
    window_start,
)
from pipeline.chunk_prep import (
    budget_chunks,
    merge_chunks,
    partial_chunk,
    redact_chunks,
    strip_prosody,
)


class AnalysisInputError(ValueError):
    """A transcript file or payload could not be turned into analysis input."""


def _wall_clock_ms() -> float:
    return time.time() * 1000


def analyze_call(options: AnalysisOptions) -> AnalysisResult:
    """Run every heuristic stage over one chunk snapshot.

    Args:
        options: meeting id, raw chunks and tuning knobs

    Returns:
        AnalysisResult with metrics, coach payload, insights and summary
    """
    meeting_id = options.meeting_id
    stage_times: dict[str, float] = {}
    pipeline_start = time.perf_counter()
    last = pipeline_start

    def _stage_done(name: str) -> None:
        nonlocal last
        now_perf = time.perf_counter()
        stage_times[name] = round((now_perf - last) * 1000, 2)
        last = now_perf

    # ── STAGE 1: NORMALIZE ──
    utterances = dedupe_and_normalize(options.chunks)
    _stage_done("normalize")

    # ── STAGE 2: SIGNALS ──
    now = resolve_now(options.now_ms, utterances, _wall_clock_ms())
    start = window_start(now, utterances, options.window_ms)
    in_window = select_window(utterances, start)
    client = [u for u in in_window if u.speaker_role == SpeakerRole.CLIENT]
    sales = [u for u in in_window if u.speaker_role == SpeakerRole.SALES]

    client_text = " ".join(u.text for u in client)
    client_words = sum(u.words for u in client)
    sales_words = sum(u.words for u in sales)
    question_count = client_text.count("?")
    exclamation_count = client_text.count("!")

    stats = sentiment_stats(client_text)
    dynamics = compute_dynamics(len(client), client_words, sales_words, question_count)
    talk_dynamics = compute_talk_dynamics(in_window, client_words, sales_words)
    prosody = summarize_prosody(client)
    _stage_done("signals")

    # ── STAGE 3: TOPICS & RISKS ──
    coverage = compute_topic_coverage(in_window)
    risk_flags = compute_risk_flags(client_text, dynamics.engagement, has_utterances=bool(in_window))
    missing = missing_topics(coverage)
    _stage_done("coverage")

    if in_window:
        tone = compute_tone(
            stats=stats,
            text_val=text_valence(stats, options.sensitivity),
            dynamics=dynamics,
            prosody=prosody,
            avg_asr_confidence=average_asr_confidence(in_window),
            use_heuristics=options.use_heuristics,
            client_turns=len(client),
            client_words=client_words,
            question_count=question_count,
            exclamation_count=exclamation_count,
            risk_count=len(risk_flags),
        )
    else:
        tone = ToneMetrics(False, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)
    confidence = overall_confidence(in_window, prosody.avg_confidence_penalty)

    # ── STAGE 4: STAKEHOLDERS ──
    stakeholders = compute_stakeholder_signals(client, client_words)
    _stage_done("stakeholders")

    # ── STAGE 5: FOLLOW-UPS ──
    follow_ups = compute_question_follow_ups(
        in_window,
        deadline_ms=options.follow_up_deadline_ms,
        lookahead=options.follow_up_lookahead,
    )
    _stage_done("follow_ups")

    # ── STAGE 6: COACHING & INSIGHTS ──
    evidence = build_evidence(in_window, lambda u: u.speaker_role == SpeakerRole.CLIENT, 2)
    if in_window:
        coach = compute_coach(
            meeting_id, now, risk_flags, missing, evidence, stakeholders,
            options.coaching_aggressiveness,
        )
        insights = compute_insights(
            meeting_id, now, risk_flags, coverage, evidence, stakeholders,
            tone.valence, tone.engagement,
        )
    else:
        coach = CoachPayload(meeting_id=meeting_id, generated_at_ms=now)
        insights = []
    _stage_done("coaching")

    # ── STAGE 7: HEALTH & SUMMARY ──
    call_health = compute_call_health(
        tone.valence, tone.engagement, len(risk_flags), len(coverage.checked_topics)
    )
    metrics = MetricsSnapshot(
        meeting_id=meeting_id,
        window_ts_start_ms=start,
        window_ts_end_ms=now,
        client_valence=round(tone.valence, 2),
        client_valence_confidence=confidence,
        client_engagement=round(tone.engagement, 2),
        client_engagement_confidence=confidence,
        client_energy=round(tone.energy, 2),
        client_stress=round(tone.stress, 2),
        client_certainty=round(tone.certainty, 2),
        tone_confidence=round(tone.tone_confidence, 2),
        call_health=call_health,
        call_health_confidence=confidence,
        risk_flags=risk_flags,
        talk_dynamics=talk_dynamics,
        topic_coverage=coverage,
    )
    summary = compute_call_summary(now, metrics, risk_flags, missing, follow_ups, stakeholders)
    _stage_done("summary")

    timing_str = " | ".join(f"{k}: {v}ms" for k, v in stage_times.items())
    logger.debug(f"[{meeting_id}] Stage timings — {timing_str}")
    logger.info(
        f"[{meeting_id}] Analyzed {len(in_window)}/{len(utterances)} utterances in window: "
        f"health={call_health}, risks={len(risk_flags)}, assessment={summary.overall_assessment.value}"
    )

    return AnalysisResult(metrics=metrics, coach=coach, insights=insights, summary=summary)


def build_live_analysis(
    meeting_id: str,
    chunks: list[RawChunk | dict[str, Any]],
    use_heuristics: bool = True,
    sensitivity: float = settings.DEFAULT_SENSITIVITY,
    coaching_aggressiveness: float = settings.DEFAULT_AGGRESSIVENESS,
    now_ms: Optional[float] = None,
) -> AnalysisResult:
    """Convenience wrapper: accepts raw dicts (camelCase or snake_case) as chunks."""
    options = AnalysisOptions(
        meeting_id=meeting_id,
        chunks=[c if isinstance(c, RawChunk) else RawChunk.model_validate(c) for c in chunks],
        use_heuristics=use_heuristics,
        sensitivity=sensitivity,
        coaching_aggressiveness=coaching_aggressiveness,
        now_ms=now_ms,
    )
    return analyze_call(options)


def run_live_analysis(
    meeting_id: str,
    request: LiveAnalysisRequest,
    stored_chunks: Optional[list[RawChunk]] = None,
) -> LiveAnalysisResponse:
    """Handle one live-analysis request.

    Disabled requests return an idle response without running the engine.
    Light mode returns metrics and summary only; deep mode adds coach and
    insights. Emails, phone and card numbers are always redacted before
    analysis; privacyMode is accepted but changes nothing here. With
    heuristics off, prosody is stripped from every chunk.
    """
    request_start = time.perf_counter()

    def _latency() -> float:
        return round((time.perf_counter() - request_start) * 1000, 1)

    if not request.enabled:
        logger.info(f"[{meeting_id}] Live analysis disabled — returning idle")
        return LiveAnalysisResponse(
            meeting_id=meeting_id,
            stream_status=StreamStatus.IDLE,
            latency_ms=_latency(),
            mode=request.mode,
        )

    fresh = list(request.chunks)
    if request.partial_text:
        partial_now = request.now_ms if request.now_ms is not None else _wall_clock_ms()
        partial = partial_chunk(request.partial_text, partial_now, len(fresh))
        if partial is not None:
            fresh.append(partial)

    chunks = budget_chunks(merge_chunks(stored_chunks or [], fresh), settings.MAX_CHUNKS)
    chunks = redact_chunks(budget_chunks(chunks))
    if not request.use_heuristics:
        chunks = strip_prosody(chunks)

    result = analyze_call(AnalysisOptions(
        meeting_id=meeting_id,
        chunks=chunks,
        use_heuristics=request.use_heuristics,
        sensitivity=request.sensitivity,
        coaching_aggressiveness=request.coaching_aggressiveness,
        now_ms=request.now_ms,
    ))

    deep = request.mode == AnalysisMode.DEEP
    return LiveAnalysisResponse(
        meeting_id=meeting_id,
        stream_status=StreamStatus.LIVE,
        latency_ms=_latency(),
        mode=request.mode,
        metrics=result.metrics,
        coach=result.coach if deep else None,
        insights=result.insights if deep else [],
        summary=result.summary,
    )


def load_transcript(path: str | Path) -> tuple[str, LiveAnalysisRequest, list[RawChunk]]:
    """Read a transcript JSON file into (meeting_id, request, chunks).

    Accepts either a bare list of chunks or an object with a "chunks" list
    plus optional request fields and "meetingId". The meeting id defaults to
    the file stem. Chunks are returned separately (not bounded by the
    per-request chunk limit) so callers pass them as stored chunks.
    """
    path = Path(path)
    try:
        with open(path) as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise AnalysisInputError(f"Cannot read transcript {path}: {e}") from e

    if isinstance(payload, list):
        payload = {"chunks": payload}
    if not isinstance(payload, dict):
        raise AnalysisInputError(f"Transcript {path} must be a JSON list or object")

    meeting_id = str(payload.pop("meetingId", None) or payload.pop("meeting_id", None) or path.stem)
    raw_chunks = payload.pop("chunks", [])
    if not isinstance(raw_chunks, list):
        raise AnalysisInputError(f"Transcript {path}: 'chunks' must be a list")
    try:
        chunks = [RawChunk.model_validate(c) for c in raw_chunks]
        request = LiveAnalysisRequest.model_validate(payload)
    except ValidationError as e:
        raise AnalysisInputError(f"Invalid transcript {path}: {e.error_count()} validation error(s)") from e
    return meeting_id, request, chunks
