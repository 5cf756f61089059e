"""Coaching payload and insight generation from risk flags, topic gaps and stakeholder signals."""

from typing import NamedTuple

from config.schemas import (
    CoachDoDont,
    CoachPayload,
    CoachQuestion,
    CoachSuggestion,
    EvidenceSnippet,
    Insight,
    InsightType,
    PainPoint,
    QuestionIntent,
    RiskFlag,
    Severity,
    StakeholderSignals,
    SuggestionIntent,
    Topic,
    TopicCoverage,
)
from analysis.lexical import clamp, make_id
from analysis.vocab import (
    CRITICAL_TOPICS,
    OBJECTION_FLAGS,
    PAIN_POINT_CATEGORY,
    PAIN_POINT_DETAIL,
    RISK_LABELS,
    RISK_SEVERITY,
)

MAX_SUGGESTIONS = 3
MAX_QUESTIONS = 3
MAX_DO_DONT = 4
MAX_PAIN_POINTS = 5
MAX_PAIN_POINT_EVIDENCE = 4
MAX_INSIGHTS = 10
EVIDENCE_TEXT_MAX_CHARS = 120


class CoachingRule(NamedTuple):
    """One suggestion + one question fired when any of `flags` is present."""
    flags: frozenset[RiskFlag]
    seed: str
    say_text: str
    say_intent: SuggestionIntent
    say_confidence: float
    say_aggressiveness_gain: float
    ask_text: str
    ask_intent: QuestionIntent
    ask_confidence: float


COACHING_RULES = [
    CoachingRule(
        flags=frozenset({RiskFlag.PRICE_OBJECTION}),
        seed="price",
        say_text="Acknowledge price, then anchor to one measurable outcome and payback timing.",
        say_intent=SuggestionIntent.ADDRESS_OBJECTION,
        say_confidence=0.7,
        say_aggressiveness_gain=0.15,
        ask_text="What budget range did you already allocate for solving this problem?",
        ask_intent=QuestionIntent.BUDGET,
        ask_confidence=0.7,
    ),
    CoachingRule(
        flags=frozenset({RiskFlag.TIMING_OBJECTION}),
        seed="timing",
        say_text="Lower perceived effort: suggest a small pilot with clear success criteria.",
        say_intent=SuggestionIntent.CLARIFY,
        say_confidence=0.68,
        say_aggressiveness_gain=0.18,
        ask_text="What milestone has to happen before this becomes a priority?",
        ask_intent=QuestionIntent.TIMELINE,
        ask_confidence=0.71,
    ),
    CoachingRule(
        flags=frozenset({RiskFlag.TRUST_CONCERN, RiskFlag.SECURITY_CONCERN}),
        seed="trust",
        say_text="Rebuild trust with proof: similar customer result, security posture, rollout plan.",
        say_intent=SuggestionIntent.VALUE_REINFORCE,
        say_confidence=0.75,
        say_aggressiveness_gain=0.0,
        ask_text="Which risk would you need us to de-risk first to move forward?",
        ask_intent=QuestionIntent.RISK,
        ask_confidence=0.74,
    ),
]

GENERIC_SUGGESTION = "Mirror the client goal in one sentence, then confirm before pitching further."

# Discovery question for the first missing topic when no rule fired
DISCOVERY_QUESTIONS: dict[Topic, tuple[str, QuestionIntent]] = {
    Topic.BUDGET: ("How are you currently budgeting for this initiative?", QuestionIntent.BUDGET),
    Topic.TIMELINE: ("What timeline are you targeting for a decision?", QuestionIntent.TIMELINE),
    Topic.DECISION_MAKER: ("Who else will be involved in the final decision?", QuestionIntent.DM),
}
GENERIC_DISCOVERY_QUESTION = "What outcome matters most for this conversation today?"

DO_TEXT = "Do confirm understanding after each objection before responding."
DONT_TEXT = "Don't stack multiple claims without tying them to the client's stated need."


def _round_confidence(value: float) -> float:
    return round(clamp(value), 2)


def build_pain_points(risk_flags: list[RiskFlag], evidence: list[EvidenceSnippet]) -> list[PainPoint]:
    """One pain point per leading risk flag, confidence decaying with rank."""
    evidence_ids = [e.utterance_id for e in evidence][:MAX_PAIN_POINT_EVIDENCE]
    return [
        PainPoint(
            title=RISK_LABELS[flag],
            detail=PAIN_POINT_DETAIL.get(flag, f"{RISK_LABELS[flag]} in current conversation window."),
            category=PAIN_POINT_CATEGORY[flag],
            confidence=round(clamp(0.62 - rank * 0.03, 0.45, 0.8), 2),
            evidence_utterance_ids=evidence_ids,
        )
        for rank, flag in enumerate(risk_flags[:MAX_PAIN_POINTS])
    ]


def compute_coach(
    meeting_id: str,
    now_ms: float,
    risk_flags: list[RiskFlag],
    missing: list[Topic],
    evidence: list[EvidenceSnippet],
    stakeholders: StakeholderSignals,
    coaching_aggressiveness: float,
) -> CoachPayload:
    """Next-best-say suggestions, next questions, do/don't items and pain points.

    Higher coaching aggressiveness raises the confidence of the pushier
    suggestions (price, timing, skeptic, alignment).
    """
    evidence_texts = [e.text[:EVIDENCE_TEXT_MAX_CHARS] for e in evidence]
    weight = clamp(coaching_aggressiveness / 100)
    active = set(risk_flags)

    suggestions: list[CoachSuggestion] = []
    questions: list[CoachQuestion] = []

    for rule in COACHING_RULES:
        if not rule.flags & active:
            continue
        suggestions.append(CoachSuggestion(
            suggestion_id=make_id("say", rule.seed, 1),
            text=rule.say_text,
            intent=rule.say_intent,
            confidence=_round_confidence(rule.say_confidence + weight * rule.say_aggressiveness_gain),
            evidence_snippets=evidence_texts,
        ))
        questions.append(CoachQuestion(
            question_id=make_id("ask", rule.seed, 1),
            text=rule.ask_text,
            intent=rule.ask_intent,
            confidence=_round_confidence(rule.ask_confidence),
            evidence_snippets=evidence_texts,
        ))

    if not suggestions:
        suggestions.append(CoachSuggestion(
            suggestion_id=make_id("say", "generic", 1),
            text=GENERIC_SUGGESTION,
            intent=SuggestionIntent.CLARIFY,
            confidence=0.66,
            evidence_snippets=evidence_texts,
        ))

    if not questions:
        first_missing = missing[0] if missing else None
        text, intent = DISCOVERY_QUESTIONS.get(
            first_missing, (GENERIC_DISCOVERY_QUESTION, QuestionIntent.DISCOVERY)
        )
        questions.append(CoachQuestion(
            question_id=make_id("ask", first_missing.value if first_missing else "discovery", 1),
            text=text,
            intent=intent,
            confidence=0.64,
            evidence_snippets=evidence_texts,
        ))

    champion, skeptic = stakeholders.champion, stakeholders.skeptic
    if skeptic is not None:
        questions.insert(0, CoachQuestion(
            question_id=make_id("ask", "skeptic-risk", 1),
            text=f"What must be true for {skeptic.speaker} to feel safe moving forward?",
            intent=QuestionIntent.RISK,
            confidence=_round_confidence(0.69 + weight * 0.1),
            evidence_snippets=[e.text[:EVIDENCE_TEXT_MAX_CHARS] for e in skeptic.evidence_snippets],
        ))

    if champion is not None and skeptic is not None:
        shared = (champion.evidence_snippets + skeptic.evidence_snippets)[:3]
        suggestions.insert(0, CoachSuggestion(
            suggestion_id=make_id("say", "champion-skeptic", 1),
            text=f"Align {champion.speaker} and {skeptic.speaker} on one shared success metric.",
            intent=SuggestionIntent.RAPPORT,
            confidence=_round_confidence(0.7 + weight * 0.12),
            evidence_snippets=[e.text[:EVIDENCE_TEXT_MAX_CHARS] for e in shared],
        ))

    do_dont = [
        CoachDoDont(
            id=make_id("dodont", "do-confirm", 1),
            type="do",
            text=DO_TEXT,
            confidence=0.77,
            evidence_snippets=evidence_texts,
        ),
        CoachDoDont(
            id=make_id("dodont", "dont-overload", 1),
            type="dont",
            text=DONT_TEXT,
            confidence=0.75,
            evidence_snippets=evidence_texts,
        ),
    ]

    return CoachPayload(
        meeting_id=meeting_id,
        generated_at_ms=now_ms,
        next_best_say=suggestions[:MAX_SUGGESTIONS],
        next_questions=questions[:MAX_QUESTIONS],
        do_dont=do_dont[:MAX_DO_DONT],
        pain_points=build_pain_points(risk_flags, evidence),
    )


def compute_insights(
    meeting_id: str,
    now_ms: float,
    risk_flags: list[RiskFlag],
    coverage: TopicCoverage,
    evidence: list[EvidenceSnippet],
    stakeholders: StakeholderSignals,
    valence: float,
    engagement: float,
) -> list[Insight]:
    """Discrete findings: one per risk flag, then momentum, coverage gap and stakeholders."""
    insights: list[Insight] = []

    def _add(insight_id: str, type_: InsightType, severity: Severity, title: str,
             detail: str, confidence: float, snippets: list[EvidenceSnippet]) -> None:
        insights.append(Insight(
            meeting_id=meeting_id,
            insight_id=insight_id,
            timestamp_ms=now_ms,
            type=type_,
            severity=severity,
            title=title,
            detail=detail,
            confidence=_round_confidence(confidence),
            evidence_snippets=snippets,
        ))

    for index, flag in enumerate(risk_flags, start=1):
        _add(
            make_id("risk", flag.value, index),
            InsightType.OBJECTION if flag in OBJECTION_FLAGS else InsightType.RISK,
            RISK_SEVERITY[flag],
            RISK_LABELS[flag],
            f"Signal from recent client language indicates {flag.value}.",
            0.7,
            evidence,
        )

    if valence > 0.25 and engagement > 0.55:
        _add(
            make_id("positive", "engagement", 1),
            InsightType.POSITIVE_SIGNAL,
            Severity.LOW,
            "Positive momentum",
            "Client sentiment and engagement are currently favorable.",
            0.68,
            evidence,
        )

    missing_critical = [t.value for t in CRITICAL_TOPICS if t not in coverage.checked_topics]
    if missing_critical:
        _add(
            make_id("topic-gap", "-".join(missing_critical), 1),
            InsightType.TOPIC,
            Severity.MEDIUM,
            "Coverage gap",
            f"Key topics still open: {', '.join(missing_critical)}.",
            0.66,
            evidence,
        )

    champion, skeptic = stakeholders.champion, stakeholders.skeptic
    if champion is not None:
        _add(
            make_id("champion", champion.speaker, 1),
            InsightType.POSITIVE_SIGNAL,
            Severity.LOW,
            "Potential champion identified",
            f"{champion.speaker} shows supportive language and active participation.",
            champion.confidence,
            champion.evidence_snippets,
        )

    if skeptic is not None:
        _add(
            make_id("skeptic", skeptic.speaker, 1),
            InsightType.RISK,
            Severity.HIGH if skeptic.valence < -0.3 or skeptic.risk_hits >= 3 else Severity.MEDIUM,
            "Potential skeptic identified",
            f"{skeptic.speaker} is signaling objections that could stall buying momentum.",
            skeptic.confidence,
            skeptic.evidence_snippets,
        )

    return insights[:MAX_INSIGHTS]
