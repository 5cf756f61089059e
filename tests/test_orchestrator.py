"""End-to-end tests for the analysis pipeline and the live-analysis wrapper."""

import json

import pytest

from config.schemas import (
    AnalysisMode,
    AnalysisOptions,
    Assessment,
    LiveAnalysisRequest,
    RawChunk,
    RiskFlag,
    StreamStatus,
    Topic,
)
from pipeline.orchestrator import (
    AnalysisInputError,
    analyze_call,
    build_live_analysis,
    load_transcript,
    run_live_analysis,
)

BASELINE_CHUNKS = [
    {
        "id": "1", "sequence": 1, "tStartMs": 0, "tEndMs": 2_000, "speaker": "Speaker 1",
        "text": "Thanks for joining. I want to understand your timeline and budget.", "confidence": 0.9,
    },
    {
        "id": "2", "sequence": 2, "tStartMs": 2_100, "tEndMs": 5_000, "speaker": "Speaker 2",
        "text": "The price seems high and we might wait until next quarter.", "confidence": 0.92,
    },
    {
        "id": "3", "sequence": 3, "tStartMs": 5_100, "tEndMs": 7_000, "speaker": "Speaker 2",
        "text": "Also security and integration are concerns for legal.", "confidence": 0.88,
    },
]

STAKEHOLDER_CHUNKS = [
    {
        "id": "b1", "sequence": 1, "tStartMs": 0, "tEndMs": 1_500, "speaker": "Sales Rep",
        "speakerRole": "SALES", "text": "Thanks both. What matters most for this rollout?", "confidence": 0.95,
    },
    {
        "id": "b2", "sequence": 2, "tStartMs": 1_600, "tEndMs": 4_000, "speaker": "Champion",
        "speakerRole": "CLIENT",
        "text": "This looks great. It would help our team and the workflow is clear.", "confidence": 0.92,
    },
    {
        "id": "b3", "sequence": 3, "tStartMs": 4_100, "tEndMs": 7_000, "speaker": "Skeptic",
        "speakerRole": "CLIENT",
        "text": "The price is expensive and integration risk is a concern for us.", "confidence": 0.9,
    },
]

PROSODY_CHUNKS = [
    {
        "id": "p1", "sequence": 1, "tStartMs": 0, "tEndMs": 1_300, "speaker": "Rep", "speakerRole": "SALES",
        "text": "Could you share how the team feels about current workflows?", "confidence": 0.95,
    },
    {
        "id": "p2", "sequence": 2, "tStartMs": 1_500, "tEndMs": 4_200, "speaker": "Buyer", "speakerRole": "CLIENT",
        "text": "The process is okay and we are exploring options.", "confidence": 0.9,
        "prosodyEnergy": 0.65, "prosodyPauseRatio": 0.2, "prosodyVoicedMs": 1_200, "prosodySnrDb": 16,
    },
    {
        "id": "p3", "sequence": 3, "tStartMs": 4_400, "tEndMs": 6_900, "speaker": "Buyer", "speakerRole": "CLIENT",
        "text": "If rollout is simple we can move quickly.", "confidence": 0.9,
        "prosodyEnergy": 0.7, "prosodyPauseRatio": 0.18, "prosodyVoicedMs": 1_400, "prosodySnrDb": 17,
    },
]


def _with_prosody_quality(chunks, passed: bool, penalty: float):
    return [
        {
            **c,
            "prosodyQualityPass": passed,
            "prosodyToneWeightsEnabled": passed,
            "prosodyConfidencePenalty": penalty,
        }
        if c["speakerRole"] == "CLIENT" else c
        for c in chunks
    ]


def _all_confidences(result):
    metrics = result.metrics
    yield metrics.client_valence_confidence
    yield metrics.client_engagement_confidence
    yield metrics.call_health_confidence
    yield metrics.tone_confidence
    yield from metrics.topic_coverage.confidence_by_topic.values()
    for group in (result.coach.next_best_say, result.coach.next_questions, result.coach.do_dont,
                  result.coach.pain_points, result.insights):
        for item in group:
            yield item.confidence


class TestEngineScenarios:
    def test_baseline_metrics_risks_and_coaching(self):
        result = build_live_analysis("meeting-1", BASELINE_CHUNKS, sensitivity=50, coaching_aggressiveness=40)
        assert result.metrics.client_engagement > 0
        assert 0 <= result.metrics.call_health <= 100
        assert RiskFlag.PRICE_OBJECTION in result.metrics.risk_flags
        assert RiskFlag.TIMING_OBJECTION in result.metrics.risk_flags
        assert result.metrics.topic_coverage.checked_topics
        assert result.coach.next_best_say
        assert result.insights

    def test_roles_from_audio_source(self):
        chunks = [
            {
                "id": "a1", "sequence": 1, "tStartMs": 0, "tEndMs": 2_000, "audioSource": "microphone",
                "text": "Let me walk you through how we reduce onboarding time.", "confidence": 0.9,
            },
            {
                "id": "a2", "sequence": 2, "tStartMs": 2_100, "tEndMs": 4_800, "audioSource": "systemAudio",
                "text": "We are worried about migration risk and implementation effort.", "confidence": 0.9,
            },
        ]
        result = build_live_analysis("meeting-2", chunks, coaching_aggressiveness=50)
        assert result.metrics.talk_dynamics.talk_ratio_sales_pct > 0
        assert result.metrics.talk_dynamics.talk_ratio_client_pct > 0
        assert RiskFlag.INTEGRATION_CONCERN in result.metrics.risk_flags

    def test_champion_and_skeptic_insights(self):
        result = build_live_analysis("meeting-3", STAKEHOLDER_CHUNKS, coaching_aggressiveness=70)
        titles = [i.title for i in result.insights]
        assert "Potential champion identified" in titles
        assert "Potential skeptic identified" in titles
        assert result.coach.next_questions

    def test_prosody_quality_flags(self):
        enabled = build_live_analysis("meeting-4", _with_prosody_quality(PROSODY_CHUNKS, True, 0.0))
        disabled = build_live_analysis("meeting-4", _with_prosody_quality(PROSODY_CHUNKS, False, 0.2))
        assert enabled.metrics.tone_confidence > disabled.metrics.tone_confidence
        assert enabled.metrics.client_engagement > disabled.metrics.client_engagement
        assert disabled.metrics.client_engagement_confidence < enabled.metrics.client_engagement_confidence


class TestEngineProperties:
    def test_deterministic_with_explicit_clock(self):
        first = build_live_analysis("m", BASELINE_CHUNKS, now_ms=9_000)
        second = build_live_analysis("m", BASELINE_CHUNKS, now_ms=9_000)
        assert first.model_dump_json() == second.model_dump_json()

    def test_ranges(self):
        for chunks in (BASELINE_CHUNKS, STAKEHOLDER_CHUNKS, PROSODY_CHUNKS):
            result = build_live_analysis("m", chunks)
            assert 0 <= result.metrics.call_health <= 100
            assert -1 <= result.metrics.client_valence <= 1
            assert all(0 <= c <= 1 for c in _all_confidences(result))

    def test_old_utterances_outside_window(self):
        chunks = [
            {"id": "old", "tStartMs": 0, "tEndMs": 1_000, "speakerRole": "CLIENT",
             "text": "The price is too expensive for our budget."},
            {"id": "s", "tStartMs": 200_000, "tEndMs": 201_000, "speakerRole": "SALES",
             "text": "Hello, how are you?"},
            {"id": "c", "tStartMs": 201_500, "tEndMs": 203_000, "speakerRole": "CLIENT",
             "text": "We are doing well thanks."},
        ]
        result = build_live_analysis("m", chunks, now_ms=210_000)
        assert result.metrics.window_ts_start_ms == 90_000
        assert RiskFlag.PRICE_OBJECTION not in result.metrics.risk_flags
        assert Topic.BUDGET not in result.metrics.topic_coverage.checked_topics

    def test_window_is_configurable(self):
        options = AnalysisOptions(
            meeting_id="m",
            chunks=[RawChunk.model_validate(c) for c in BASELINE_CHUNKS],
            now_ms=7_000,
            window_ms=3_000,
        )
        result = analyze_call(options)
        assert result.metrics.window_ts_start_ms == 4_000
        assert RiskFlag.PRICE_OBJECTION in result.metrics.risk_flags

    def test_sensitivity_lowers_valence(self):
        calm = build_live_analysis("m", BASELINE_CHUNKS, sensitivity=10, now_ms=7_000)
        tense = build_live_analysis("m", BASELINE_CHUNKS, sensitivity=90, now_ms=7_000)
        assert tense.metrics.client_valence < calm.metrics.client_valence

    def test_explicit_role_kept_in_evidence(self):
        chunks = [
            {"id": "x", "tStartMs": 0, "tEndMs": 2_000, "speaker": "Alice", "speakerRole": "CLIENT",
             "audioSource": "microphone", "text": "Let me show you our platform, it is too expensive though."},
        ]
        result = build_live_analysis("m", chunks, now_ms=2_000)
        snippets = [s for i in result.insights for s in i.evidence_snippets]
        assert snippets
        assert all(s.speaker_role == "CLIENT" for s in snippets)

    def test_empty_input(self):
        result = analyze_call(AnalysisOptions(meeting_id="empty", now_ms=1_000))
        assert result.metrics.risk_flags == []
        assert result.insights == []
        assert result.metrics.call_health == 42.5
        assert result.summary.overall_assessment == Assessment.AT_RISK
        assert result.coach.next_best_say == []
        assert result.coach.pain_points == []
        assert result.metrics.tone_confidence == 0
        assert result.summary.immediate_actions

    def test_unlabelled_window_keeps_engagement_floor(self):
        chunks = [
            {"id": "1", "tStartMs": 0, "tEndMs": 1_500, "text": "hello there everyone thanks"},
            {"id": "2", "tStartMs": 2_000, "tEndMs": 4_000, "text": "good morning all of you"},
        ]
        result = build_live_analysis("m", chunks, now_ms=4_000)
        # No client or sales words: only the talk-balance term contributes
        assert result.metrics.client_engagement == pytest.approx(0.06)
        assert result.metrics.call_health == pytest.approx(38.1)
        assert RiskFlag.LOW_ENGAGEMENT in result.metrics.risk_flags


class TestRunLiveAnalysis:
    def _request(self, chunks=BASELINE_CHUNKS, **kwargs) -> LiveAnalysisRequest:
        return LiveAnalysisRequest.model_validate({"chunks": chunks, "nowMs": 7_000, **kwargs})

    def test_disabled_is_idle(self):
        response = run_live_analysis("m", self._request(enabled=False))
        assert response.stream_status == StreamStatus.IDLE
        assert response.metrics is None
        assert response.summary is None

    def test_light_mode_omits_coach(self):
        response = run_live_analysis("m", self._request())
        assert response.stream_status == StreamStatus.LIVE
        assert response.mode == AnalysisMode.LIGHT
        assert response.metrics is not None
        assert response.summary is not None
        assert response.coach is None
        assert response.insights == []
        assert response.latency_ms >= 0

    def test_deep_mode_includes_coach(self):
        response = run_live_analysis("m", self._request(mode="deep"))
        assert response.coach is not None
        assert response.insights

    @pytest.mark.parametrize("privacy_mode", [False, True])
    def test_pii_redacted_regardless_of_privacy_mode(self, privacy_mode):
        chunks = [
            {"id": "1", "tStartMs": 0, "tEndMs": 2_000, "speakerRole": "CLIENT",
             "text": "Email me at jane.doe@example.com, the price is too expensive."},
        ]
        response = run_live_analysis("m", self._request(chunks, mode="deep", privacyMode=privacy_mode))
        dumped = response.model_dump_json()
        assert "jane.doe@example.com" not in dumped
        assert "[redacted-email]" in dumped

    def test_partial_text_included(self):
        response = run_live_analysis("m", self._request([], partialText="Can you share pricing?", nowMs=5_000))
        assert response.metrics.window_ts_start_ms == 4_600
        assert response.metrics.window_ts_end_ms == 5_000

    def test_stored_chunks_merged(self):
        stored = [RawChunk.model_validate(c) for c in BASELINE_CHUNKS]
        response = run_live_analysis("m", self._request([]), stored_chunks=stored)
        assert RiskFlag.PRICE_OBJECTION in response.metrics.risk_flags

    def test_chunk_budget_keeps_newest(self):
        stored = [
            RawChunk(id=str(i), t_start_ms=i * 100, t_end_ms=i * 100 + 50,
                     speaker_role="SALES" if i % 2 else "CLIENT", text=f"point {i}")
            for i in range(200)
        ]
        response = run_live_analysis("m", self._request([], nowMs=20_000), stored_chunks=stored)
        assert response.metrics.window_ts_start_ms == 8_000

    def test_heuristics_off_caps_tone_confidence(self):
        chunks = _with_prosody_quality(PROSODY_CHUNKS, True, 0.0)
        on = run_live_analysis("m", self._request(chunks))
        off = run_live_analysis("m", self._request(chunks, useHeuristics=False))
        assert on.metrics.tone_confidence > 0.5
        assert off.metrics.tone_confidence <= 0.5


class TestLoadTranscript:
    def test_object_form(self, tmp_path):
        path = tmp_path / "call.json"
        path.write_text(json.dumps({"meetingId": "acme-q3", "mode": "deep", "chunks": BASELINE_CHUNKS}))
        meeting_id, request, chunks = load_transcript(path)
        assert meeting_id == "acme-q3"
        assert request.mode == AnalysisMode.DEEP
        assert request.chunks == []
        assert len(chunks) == 3
        assert chunks[0].t_end_ms == 2_000

    def test_list_form_uses_stem(self, tmp_path):
        path = tmp_path / "discovery_call.json"
        path.write_text(json.dumps(BASELINE_CHUNKS))
        meeting_id, request, chunks = load_transcript(path)
        assert meeting_id == "discovery_call"
        assert request.mode == AnalysisMode.LIGHT
        assert len(chunks) == 3

    def test_more_chunks_than_request_limit(self, tmp_path):
        many = [
            {"id": str(i), "tStartMs": i * 100, "tEndMs": i * 100 + 50, "text": f"point {i}"}
            for i in range(250)
        ]
        path = tmp_path / "long.json"
        path.write_text(json.dumps(many))
        assert len(load_transcript(path)[2]) == 250

    @pytest.mark.parametrize("content", ["{not json", '"just a string"', '{"chunks": {"a": 1}}'])
    def test_bad_files(self, tmp_path, content):
        path = tmp_path / "bad.json"
        path.write_text(content)
        with pytest.raises(AnalysisInputError):
            load_transcript(path)

    def test_invalid_chunk(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([{"tStartMs": 0, "tEndMs": 10, "text": "hi", "confidence": 2}]))
        with pytest.raises(AnalysisInputError):
            load_transcript(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(AnalysisInputError):
            load_transcript(tmp_path / "nope.json")
