"""Client tone and talk-dynamics signals — lexical statistics fused with prosody when audio quality allows.

Prosody fusion is gated: audio-derived energy/pause/SNR only influence the
tone estimate when enough client frames carry prosody, the frames are long
and clean enough, and ASR confidence is acceptable. Otherwise every tone
metric falls back to a discounted lexical estimate and tone confidence is
capped at 0.5.
"""

from dataclasses import dataclass

from loguru import logger

from config.schemas import NormalizedUtterance, SpeakerRole, TalkDynamics
from analysis.lexical import LexicalStats, clamp

# Prosody quality gate
MIN_PROSODY_FRAMES = 2
MIN_AVG_VOICED_MS = 800
MIN_AVG_SNR_DB = 10
MIN_AVG_ASR_CONFIDENCE = 0.55

# Engagement-from-dynamics weights
TURN_WEIGHT = 0.45
QUESTION_WEIGHT = 0.30
BALANCE_WEIGHT = 0.25

# Lexical fallback discounts (gate failed)
ENERGY_FALLBACK_DISCOUNT = 0.75
STRESS_FALLBACK_DISCOUNT = 0.85
CERTAINTY_FALLBACK_DISCOUNT = 0.90
FALLBACK_TONE_CONFIDENCE_CAP = 0.5

# Fused valence / engagement weights (gate passed)
TEXT_VALENCE_WEIGHT = 0.75
TONE_VALENCE_WEIGHT = 0.25
DYNAMICS_ENGAGEMENT_WEIGHT = 0.6
ENERGY_ENGAGEMENT_WEIGHT = 0.4

INTERRUPTION_GAP_MS = 450
MIN_TALK_MINUTES = 0.5
MAX_PACE_WPM = 300
COMPLETE_WINDOW_UTTERANCES = 8


@dataclass(frozen=True)
class Dynamics:
    client_talk_ratio: float
    turn_score: float
    question_score: float
    balance_score: float
    engagement: float


@dataclass(frozen=True)
class ProsodySummary:
    frame_count: int
    avg_energy: float
    avg_pause_ratio: float
    avg_voiced_ms: float
    avg_snr_db: float
    avg_confidence_penalty: float
    tone_weights_disabled: bool


@dataclass(frozen=True)
class ToneMetrics:
    gate_passed: bool
    tone_confidence: float
    energy: float
    stress: float
    certainty: float
    valence: float
    engagement: float


def resolve_now(now_ms: float | None, utterances: list[NormalizedUtterance], wall_clock_ms: float) -> float:
    """Analysis clock: caller value, else last utterance end, else wall clock."""
    if now_ms is not None:
        return now_ms
    if utterances:
        return utterances[-1].t_end_ms
    return wall_clock_ms


def window_start(now_ms: float, utterances: list[NormalizedUtterance], window_ms: int) -> float:
    first_start = utterances[0].t_start_ms if utterances else now_ms - window_ms
    return max(0, now_ms - window_ms, first_start)


def select_window(utterances: list[NormalizedUtterance], start_ms: float) -> list[NormalizedUtterance]:
    """Utterances that end at or after the window start."""
    return [u for u in utterances if u.t_end_ms >= start_ms]


def text_valence(stats: LexicalStats, sensitivity: float) -> float:
    """Lexical valence shifted by caller sensitivity (higher sensitivity reads more negative)."""
    return clamp(stats.valence - (sensitivity - 50) / 300, -1, 1)


def compute_dynamics(
    client_turns: int,
    client_words: int,
    sales_words: int,
    question_count: int,
) -> Dynamics:
    total_words = max(1, client_words + sales_words)
    talk_ratio = client_words / total_words
    turn_score = clamp(client_turns / 10)
    question_score = clamp(question_count / 4)
    balance_score = 1 - abs(0.5 - talk_ratio) * 1.5
    engagement = clamp(
        TURN_WEIGHT * turn_score
        + QUESTION_WEIGHT * question_score
        + BALANCE_WEIGHT * balance_score
    )
    return Dynamics(talk_ratio, turn_score, question_score, balance_score, engagement)


def compute_talk_dynamics(
    in_window: list[NormalizedUtterance],
    client_words: int,
    sales_words: int,
) -> TalkDynamics:
    """Talk ratios, role-switch interruptions and per-side pace."""
    total_words = max(1, client_words + sales_words)

    def _minutes(role: SpeakerRole) -> float:
        spoken_ms = sum(u.t_end_ms - u.t_start_ms for u in in_window if u.speaker_role == role)
        return max(MIN_TALK_MINUTES, spoken_ms / 60_000)

    interruptions = 0
    for previous, current in zip(in_window, in_window[1:]):
        if current.speaker_role == previous.speaker_role:
            continue
        if current.t_start_ms - previous.t_end_ms < INTERRUPTION_GAP_MS:
            interruptions += 1

    return TalkDynamics(
        talk_ratio_sales_pct=round(clamp(sales_words / total_words * 100, 0, 100), 1),
        talk_ratio_client_pct=round(clamp(client_words / total_words * 100, 0, 100), 1),
        interruptions_count=interruptions,
        pace_wpm_sales=round(clamp(sales_words / _minutes(SpeakerRole.SALES), 0, MAX_PACE_WPM)),
        pace_wpm_client=round(clamp(client_words / _minutes(SpeakerRole.CLIENT), 0, MAX_PACE_WPM)),
    )


def summarize_prosody(client_utterances: list[NormalizedUtterance]) -> ProsodySummary:
    """Average prosody over client frames that carry both energy and pause ratio."""
    frames = [
        u for u in client_utterances
        if u.prosody_energy is not None and u.prosody_pause_ratio is not None
    ]
    n = max(1, len(frames))
    penalties = [u.prosody_confidence_penalty for u in frames if u.prosody_confidence_penalty is not None]
    disabled = any(
        u.prosody_tone_weights_enabled is False or u.prosody_quality_pass is False
        for u in frames
    )
    return ProsodySummary(
        frame_count=len(frames),
        avg_energy=sum(u.prosody_energy or 0 for u in frames) / n,
        avg_pause_ratio=sum(
            u.prosody_pause_ratio if u.prosody_pause_ratio is not None else 0.5 for u in frames
        ) / n,
        avg_voiced_ms=sum(u.prosody_voiced_ms or 0 for u in frames) / n,
        avg_snr_db=sum(u.prosody_snr_db or 0 for u in frames) / n,
        avg_confidence_penalty=sum(penalties) / len(penalties) if penalties else 0.0,
        tone_weights_disabled=disabled,
    )


def prosody_gate_passes(prosody: ProsodySummary, avg_asr_confidence: float, use_heuristics: bool) -> bool:
    return (
        use_heuristics
        and not prosody.tone_weights_disabled
        and prosody.frame_count >= MIN_PROSODY_FRAMES
        and prosody.avg_voiced_ms >= MIN_AVG_VOICED_MS
        and prosody.avg_snr_db >= MIN_AVG_SNR_DB
        and avg_asr_confidence >= MIN_AVG_ASR_CONFIDENCE
    )


def compute_tone(
    *,
    stats: LexicalStats,
    text_val: float,
    dynamics: Dynamics,
    prosody: ProsodySummary,
    avg_asr_confidence: float,
    use_heuristics: bool,
    client_turns: int,
    client_words: int,
    question_count: int,
    exclamation_count: int,
    risk_count: int,
) -> ToneMetrics:
    """Fuse lexical and prosodic client signals into tone metrics.

    Args:
        stats: lexical hit counts over the concatenated client text
        text_val: sensitivity-shifted lexical valence
        dynamics: turn/question/balance engagement
        prosody: averaged client prosody frames
        avg_asr_confidence: mean ASR confidence over the whole window
        risk_count: number of active risk flags (feeds lexical stress)
    """
    lexical_energy = clamp(0.2 + question_count * 0.08 + exclamation_count * 0.1 + client_words / 260)
    lexical_stress = clamp(stats.negative_hits * 0.1 + risk_count * 0.08)
    lexical_certainty = clamp(
        (stats.certainty_hits + 1) / max(2, stats.certainty_hits + stats.hedge_hits + 2)
    )

    gate = prosody_gate_passes(prosody, avg_asr_confidence, use_heuristics)
    if gate:
        tone_confidence = clamp(0.62 + min(0.30, prosody.frame_count * 0.05))
        energy = clamp(prosody.avg_energy)
        stress = clamp(
            prosody.avg_pause_ratio * 0.45
            + prosody.avg_energy * 0.35
            + clamp((20 - prosody.avg_snr_db) / 20) * 0.20
        )
        certainty = clamp(
            (1 - prosody.avg_pause_ratio) * 0.55
            + prosody.avg_energy * 0.25
            + lexical_certainty * 0.20
        )
        tone_valence = clamp(certainty - stress - 0.1, -1, 1)
        valence = clamp(text_val * TEXT_VALENCE_WEIGHT + tone_valence * TONE_VALENCE_WEIGHT, -1, 1)
        engagement = clamp(
            dynamics.engagement * DYNAMICS_ENGAGEMENT_WEIGHT + energy * ENERGY_ENGAGEMENT_WEIGHT
        )
    else:
        tone_confidence = clamp(0.2 + min(0.18, client_turns * 0.02), 0, FALLBACK_TONE_CONFIDENCE_CAP)
        energy = round(lexical_energy * ENERGY_FALLBACK_DISCOUNT, 2)
        stress = round(lexical_stress * STRESS_FALLBACK_DISCOUNT, 2)
        certainty = round(lexical_certainty * CERTAINTY_FALLBACK_DISCOUNT, 2)
        valence = clamp(text_val, -1, 1)
        engagement = clamp(dynamics.engagement)

    logger.debug(
        f"Prosody gate {'passed' if gate else 'failed'}: frames={prosody.frame_count}, "
        f"voiced={prosody.avg_voiced_ms:.0f}ms, snr={prosody.avg_snr_db:.1f}dB, "
        f"asr={avg_asr_confidence:.2f}"
    )
    return ToneMetrics(gate, tone_confidence, energy, stress, certainty, valence, engagement)


def overall_confidence(in_window: list[NormalizedUtterance], confidence_penalty: float) -> float:
    """Blend of ASR confidence and window completeness, less any upstream prosody penalty."""
    avg_asr = average_asr_confidence(in_window)
    completeness = clamp(len(in_window) / COMPLETE_WINDOW_UTTERANCES)
    return round(clamp((avg_asr + completeness) / 2 - confidence_penalty), 2)


def average_asr_confidence(in_window: list[NormalizedUtterance]) -> float:
    return sum(u.confidence for u in in_window) / max(1, len(in_window))
