"""Call health score and the executive call summary."""

from config.schemas import (
    Assessment,
    CallSummary,
    FollowUpStatus,
    MetricsSnapshot,
    QuestionFollowUp,
    RiskFlag,
    StakeholderSignals,
    Topic,
)
from analysis.lexical import clamp
from analysis.vocab import (
    DEFAULT_NEXT_ACTION,
    HEADLINES,
    RISK_LABELS,
    RISK_TOPIC,
    TOPIC_LABELS,
    TOPIC_RECOVERY_PROMPTS,
)

# Health weights
VALENCE_WEIGHT = 0.25
ENGAGEMENT_WEIGHT = 0.25
RISK_WEIGHT = 0.30
COVERAGE_WEIGHT = 0.20
RISK_SATURATION = 5

# Summary score adjustments
RISK_PENALTY = 6
MISSED_PENALTY = 15
WEAK_PENALTY = 8
CHAMPION_BONUS = 4
STRONG_THRESHOLD = 70
MIXED_THRESHOLD = 50

MAX_STRENGTHS = 4
MAX_MISSES = 5
MAX_ACTIONS = 4


def compute_call_health(valence: float, engagement: float, risk_count: int, checked_topics: int) -> float:
    """0–100 health: valence, engagement, absence of risk and topic coverage."""
    risk_severity = clamp(risk_count / RISK_SATURATION)
    health = clamp(
        (valence + 1) / 2 * VALENCE_WEIGHT
        + engagement * ENGAGEMENT_WEIGHT
        + (1 - risk_severity) * RISK_WEIGHT
        + checked_topics / len(Topic) * COVERAGE_WEIGHT
    )
    return round(health * 100, 1)


def assess(score: float) -> Assessment:
    if score >= STRONG_THRESHOLD:
        return Assessment.STRONG
    if score >= MIXED_THRESHOLD:
        return Assessment.MIXED
    return Assessment.AT_RISK


def compute_call_summary(
    now_ms: float,
    metrics: MetricsSnapshot,
    risk_flags: list[RiskFlag],
    missing: list[Topic],
    follow_ups: list[QuestionFollowUp],
    stakeholders: StakeholderSignals,
) -> CallSummary:
    missed = [f for f in follow_ups if f.status == FollowUpStatus.MISSED]
    weak = [f for f in follow_ups if f.status == FollowUpStatus.WEAK]
    champion = stakeholders.champion

    strengths = []
    if metrics.call_health >= 72:
        strengths.append("Overall call health stayed in a strong range.")
    if metrics.client_engagement >= 0.58:
        strengths.append("Client engagement was solid through most of the call.")
    if len(risk_flags) <= 1:
        strengths.append("Few critical objections surfaced.")
    if champion is not None:
        strengths.append(f"{champion.speaker} appears supportive and can help internal buy-in.")

    misses = [f"Objection detected: {RISK_LABELS[flag]}." for flag in risk_flags[:3]]
    if missed:
        misses.append(f"{len(missed)} client question(s) were not answered directly.")
    if weak:
        misses.append(f"{len(weak)} client question(s) received weak/indirect answers.")
    if missing:
        labels = ", ".join(TOPIC_LABELS[t] for t in missing[:3])
        misses.append(f"Critical discovery gaps: {labels}.")

    actions = []
    top_risk_topic = RISK_TOPIC[risk_flags[0]] if risk_flags else None
    if top_risk_topic is not None:
        actions.append(TOPIC_RECOVERY_PROMPTS[top_risk_topic])
    for question in missed[:2]:
        actions.append(f'Close the loop on: "{question.question_text}"')
    if not actions:
        actions.append(TOPIC_RECOVERY_PROMPTS[missing[0]] if missing else DEFAULT_NEXT_ACTION)

    score = clamp(
        metrics.call_health
        - len(risk_flags) * RISK_PENALTY
        - len(missed) * MISSED_PENALTY
        - len(weak) * WEAK_PENALTY
        + (CHAMPION_BONUS if champion is not None else 0),
        0,
        100,
    )
    assessment = assess(score)

    return CallSummary(
        updated_at_ms=now_ms,
        overall_assessment=assessment,
        headline=HEADLINES[assessment],
        strengths=strengths[:MAX_STRENGTHS],
        misses=misses[:MAX_MISSES],
        immediate_actions=actions[:MAX_ACTIONS],
        question_follow_ups=follow_ups,
    )
