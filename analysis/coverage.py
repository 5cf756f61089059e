"""Topic coverage and risk-flag classification over the analysis window."""

from config.schemas import NormalizedUtterance, RiskFlag, Topic, TopicCoverage
from analysis.lexical import clamp, keyword_hits
from analysis.vocab import RISK_KEYWORDS, TOPIC_KEYWORDS

TOPIC_CHECKED_THRESHOLD = 0.45
LOW_ENGAGEMENT_THRESHOLD = 0.35


def compute_topic_coverage(utterances: list[NormalizedUtterance]) -> TopicCoverage:
    """Per-topic confidence from keyword hits over every in-window utterance.

    Two distinct keyword hits saturate a topic; a topic counts as checked once
    its confidence reaches 0.45 (in practice: one hit).
    """
    full_text = " ".join(u.text for u in utterances).lower()
    checked: list[Topic] = []
    confidence_by_topic: dict[Topic, float] = {}
    for topic in Topic:
        confidence = clamp(keyword_hits(full_text, TOPIC_KEYWORDS[topic]) / 2)
        confidence_by_topic[topic] = round(confidence, 2)
        if confidence >= TOPIC_CHECKED_THRESHOLD:
            checked.append(topic)
    return TopicCoverage(checked_topics=checked, confidence_by_topic=confidence_by_topic)


def compute_risk_flags(client_text: str, engagement: float, has_utterances: bool = True) -> list[RiskFlag]:
    """Risk flags raised by client language, in RiskFlag declaration order.

    lowEngagement is also forced when engagement drops below 0.35, but only
    when there is at least one utterance in the window to judge.
    """
    text = (client_text or "").lower()
    flags = [flag for flag in RiskFlag if keyword_hits(text, RISK_KEYWORDS[flag]) > 0]
    if has_utterances and engagement < LOW_ENGAGEMENT_THRESHOLD and RiskFlag.LOW_ENGAGEMENT not in flags:
        flags.append(RiskFlag.LOW_ENGAGEMENT)
        flags.sort(key=list(RiskFlag).index)
    return flags


def missing_topics(coverage: TopicCoverage) -> list[Topic]:
    return [topic for topic in Topic if topic not in coverage.checked_topics]
