"""Tests for windowing, talk dynamics and prosody-gated tone fusion."""

import pytest

from config.schemas import NormalizedUtterance, SpeakerRole
from analysis.lexical import LexicalStats, sentiment_stats
from analysis.tone import (
    compute_dynamics,
    compute_talk_dynamics,
    compute_tone,
    overall_confidence,
    prosody_gate_passes,
    resolve_now,
    select_window,
    summarize_prosody,
    text_valence,
    window_start,
)


def _make_utterance(uid: str, start: float, end: float, role: SpeakerRole, text: str = "some words here",
                    confidence: float = 0.9, **prosody) -> NormalizedUtterance:
    return NormalizedUtterance(
        id=uid,
        t_start_ms=start,
        t_end_ms=end,
        speaker_role=role,
        text=text,
        confidence=confidence,
        words=len(text.split()),
        **prosody,
    )


def _good_frame(uid: str, start: float, **overrides) -> NormalizedUtterance:
    prosody = dict(
        prosody_energy=0.7, prosody_pause_ratio=0.2, prosody_voiced_ms=1200, prosody_snr_db=16,
    )
    prosody.update(overrides)
    return _make_utterance(uid, start, start + 2000, SpeakerRole.CLIENT, **prosody)


class TestWindow:
    def test_resolve_now_prefers_explicit(self):
        utts = [_make_utterance("1", 0, 5000, SpeakerRole.SALES)]
        assert resolve_now(1234, utts, 99) == 1234
        assert resolve_now(None, utts, 99) == 5000
        assert resolve_now(None, [], 99) == 99

    def test_window_start_bounds(self):
        utts = [_make_utterance("1", 10_000, 12_000, SpeakerRole.SALES)]
        assert window_start(50_000, utts, 120_000) == 10_000
        assert window_start(300_000, utts, 120_000) == 180_000
        assert window_start(5_000, [], 120_000) == 0

    def test_select_window_keeps_overlapping_utterances(self):
        utts = [
            _make_utterance("old", 0, 1000, SpeakerRole.CLIENT),
            _make_utterance("edge", 500, 2000, SpeakerRole.CLIENT),
            _make_utterance("new", 3000, 4000, SpeakerRole.CLIENT),
        ]
        assert [u.id for u in select_window(utts, 2000)] == ["edge", "new"]


class TestSentiment:
    def test_valence_denominator_floor(self):
        stats = sentiment_stats("this is great")
        assert stats.positive_hits == 1
        assert stats.valence == pytest.approx(1 / 3)

    def test_negative_and_hedges(self):
        stats = sentiment_stats("maybe the problem is a real concern, perhaps")
        assert stats.negative_hits == 2
        assert stats.hedge_hits == 2
        assert stats.valence == pytest.approx(-2 / 3)

    def test_sensitivity_shifts_valence_down(self):
        neutral = LexicalStats(0, 0, 0, 0, 0.0)
        assert text_valence(neutral, 50) == 0
        assert text_valence(neutral, 80) == pytest.approx(-0.1)
        assert text_valence(neutral, 20) == pytest.approx(0.1)


class TestDynamics:
    def test_engagement_formula(self):
        d = compute_dynamics(client_turns=5, client_words=50, sales_words=50, question_count=2)
        assert d.turn_score == pytest.approx(0.5)
        assert d.question_score == pytest.approx(0.5)
        assert d.balance_score == pytest.approx(1.0)
        assert d.engagement == pytest.approx(0.45 * 0.5 + 0.30 * 0.5 + 0.25)

    def test_no_words_keeps_balance_floor(self):
        d = compute_dynamics(0, 0, 0, 0)
        assert d.client_talk_ratio == 0
        assert d.balance_score == pytest.approx(0.25)
        assert d.engagement == pytest.approx(0.0625)

    def test_talk_dynamics(self):
        utts = [
            _make_utterance("1", 0, 20_000, SpeakerRole.SALES),
            _make_utterance("2", 20_100, 45_000, SpeakerRole.CLIENT),
            _make_utterance("3", 46_000, 47_000, SpeakerRole.SALES),
        ]
        td = compute_talk_dynamics(utts, client_words=30, sales_words=70)
        assert td.talk_ratio_sales_pct == 70.0
        assert td.talk_ratio_client_pct == 30.0
        # only the 100ms gap counts; the 1000ms gap does not
        assert td.interruptions_count == 1
        # both sides spoke under 30s, floored to 0.5 min
        assert td.pace_wpm_sales == 140
        assert td.pace_wpm_client == 60

    def test_pace_clamped(self):
        utts = [_make_utterance("1", 0, 1000, SpeakerRole.CLIENT)]
        td = compute_talk_dynamics(utts, client_words=1000, sales_words=0)
        assert td.pace_wpm_client == 300


class TestProsody:
    def test_only_frames_with_energy_and_pause(self):
        utts = [
            _good_frame("1", 0),
            _make_utterance("2", 3000, 4000, SpeakerRole.CLIENT, prosody_energy=0.9),
        ]
        summary = summarize_prosody(utts)
        assert summary.frame_count == 1
        assert summary.avg_energy == pytest.approx(0.7)

    def test_penalty_and_disable_flags(self):
        utts = [
            _good_frame("1", 0, prosody_confidence_penalty=0.2),
            _good_frame("2", 3000, prosody_tone_weights_enabled=False),
        ]
        summary = summarize_prosody(utts)
        assert summary.avg_confidence_penalty == pytest.approx(0.2)
        assert summary.tone_weights_disabled

    def test_gate(self):
        good = summarize_prosody([_good_frame("1", 0), _good_frame("2", 3000)])
        assert prosody_gate_passes(good, 0.9, True)
        assert not prosody_gate_passes(good, 0.9, False)
        assert not prosody_gate_passes(good, 0.5, True)

        one_frame = summarize_prosody([_good_frame("1", 0)])
        assert not prosody_gate_passes(one_frame, 0.9, True)

        noisy = summarize_prosody([_good_frame("1", 0, prosody_snr_db=5), _good_frame("2", 3000, prosody_snr_db=8)])
        assert not prosody_gate_passes(noisy, 0.9, True)

        short = summarize_prosody([_good_frame("1", 0, prosody_voiced_ms=300), _good_frame("2", 3000)])
        assert not prosody_gate_passes(short, 0.9, True)

        failed = summarize_prosody([_good_frame("1", 0, prosody_quality_pass=False), _good_frame("2", 3000)])
        assert not prosody_gate_passes(failed, 0.9, True)


class TestToneFusion:
    def _tone(self, frames, use_heuristics=True, client_turns=2):
        stats = LexicalStats(0, 0, 0, 0, 0.0)
        dynamics = compute_dynamics(client_turns, 20, 20, 0)
        return compute_tone(
            stats=stats,
            text_val=0.0,
            dynamics=dynamics,
            prosody=summarize_prosody(frames),
            avg_asr_confidence=0.9,
            use_heuristics=use_heuristics,
            client_turns=client_turns,
            client_words=20,
            question_count=0,
            exclamation_count=0,
            risk_count=0,
        )

    def test_gate_pass_uses_prosody(self):
        tone = self._tone([_good_frame("1", 0), _good_frame("2", 3000)])
        assert tone.gate_passed
        assert tone.tone_confidence == pytest.approx(0.72)
        assert tone.energy == pytest.approx(0.7)

    def test_gate_fail_caps_confidence(self):
        tone = self._tone([_good_frame("1", 0)], client_turns=20)
        assert not tone.gate_passed
        assert tone.tone_confidence == pytest.approx(0.38)
        assert tone.tone_confidence <= 0.5
        # lexical energy 0.2 + 20/260, discounted by 0.75
        assert tone.energy == pytest.approx(round((0.2 + 20 / 260) * 0.75, 2))
        assert tone.certainty == pytest.approx(0.45)

    def test_heuristics_off_never_fuses(self):
        tone = self._tone([_good_frame("1", 0), _good_frame("2", 3000)], use_heuristics=False)
        assert not tone.gate_passed
        assert tone.tone_confidence < 0.5


class TestOverallConfidence:
    def test_completeness_and_penalty(self):
        utts = [_make_utterance(str(i), i * 1000, i * 1000 + 500, SpeakerRole.CLIENT, confidence=0.8) for i in range(4)]
        assert overall_confidence(utts, 0.0) == pytest.approx(0.65)
        assert overall_confidence(utts, 0.2) == pytest.approx(0.45)

    def test_empty(self):
        assert overall_confidence([], 0.0) == 0
