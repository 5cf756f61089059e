"""Fixed lexicons, keyword tables and weights used by the heuristic call-analysis stages.

Every table is keyed by the closed enumerations in config.schemas so a missing
entry shows up as a KeyError in tests rather than a silently-unhandled case.
"""

from config.schemas import (
    Assessment,
    AudioSource,
    FollowUpStatus,
    PainPointCategory,
    RiskFlag,
    Severity,
    SpeakerRole,
    Topic,
)


# ── TOPIC & RISK KEYWORDS ──

TOPIC_KEYWORDS: dict[Topic, list[str]] = {
    Topic.NEED_PROBLEM: ["problem", "pain", "challenge", "issue", "need"],
    Topic.BUDGET: ["budget", "cost", "price", "pricing", "spend", "roi"],
    Topic.TIMELINE: ["timeline", "quarter", "month", "deadline", "by when"],
    Topic.DECISION_MAKER: ["decision maker", "approver", "sign off", "stakeholder"],
    Topic.ALTERNATIVES_COMPETITORS: ["competitor", "alternative", "other vendor", "compare"],
    Topic.TECHNICAL_FIT: ["integration", "api", "technical", "implementation", "fit"],
    Topic.SECURITY_COMPLIANCE: ["security", "compliance", "soc2", "gdpr", "privacy"],
    Topic.PROCUREMENT: ["procurement", "legal", "msa", "purchase order", "vendor form"],
    Topic.NEXT_STEPS: ["next step", "follow up", "pilot", "trial", "schedule"],
}

RISK_KEYWORDS: dict[RiskFlag, list[str]] = {
    RiskFlag.PRICE_OBJECTION: ["too expensive", "price", "cost", "budget", "cheap"],
    RiskFlag.TIMING_OBJECTION: ["not now", "later", "next quarter", "timing", "wait"],
    RiskFlag.TRUST_CONCERN: ["trust", "reliable", "proven", "reference", "risk"],
    RiskFlag.FEATURE_GAP: ["missing", "doesn't support", "feature gap", "lack"],
    RiskFlag.SECURITY_CONCERN: ["security", "compliance", "soc2", "data breach"],
    RiskFlag.INTEGRATION_CONCERN: ["integration", "api", "migration", "compatibility"],
    RiskFlag.COMPETITOR_MENTION: ["competitor", "alternative", "vs", "already using"],
    RiskFlag.CONFUSION: ["confused", "not clear", "unclear", "don't understand"],
    RiskFlag.FRUSTRATION: ["frustrated", "annoyed", "not happy", "painful"],
    RiskFlag.LOW_ENGAGEMENT: ["maybe", "not sure", "fine", "okay", "whatever"],
    RiskFlag.SCOPE_MISMATCH: ["not relevant", "different use case", "out of scope"],
}

# Deduplicated union of all risk phrases, first-seen order
RISK_KEYWORDS_FLAT: list[str] = list(dict.fromkeys(
    kw for keywords in RISK_KEYWORDS.values() for kw in keywords
))


# ── LEXICAL SENTIMENT ──

POSITIVE_WORDS = {
    "good", "great", "excellent", "love", "helpful", "useful",
    "clear", "yes", "works", "perfect", "valuable", "happy",
}

NEGATIVE_WORDS = {
    "bad", "issue", "problem", "expensive", "difficult", "hard", "confused",
    "frustrated", "no", "can't", "cannot", "risk", "concern",
}

CERTAINTY_WORDS = {"definitely", "certainly", "exactly", "clear", "sure", "will"}

# Multi-word entries never match single tokens; kept for parity with the phrase list
HEDGE_WORDS = {"maybe", "perhaps", "might", "possibly", "kind of", "sort of", "not sure"}


# ── SPEAKER-ROLE CUES ──

SALES_CUE_PHRASES = [
    "let me", "we help", "our platform", "our product", "we can",
    "next step", "timeline", "budget", "how are you", "what would",
]

CLIENT_CUE_PHRASES = [
    "we need", "our team", "we use", "we are using", "concern",
    "too expensive", "not now", "not sure", "doesn't support", "issue",
]

SALES_CUE_WEIGHT = 0.8
CLIENT_CUE_WEIGHT = 0.7
QUESTION_MARK_WEIGHT = 0.35
RISK_KEYWORD_CUE_WEIGHT = 0.35
OFFER_TO_ACT_BONUS = 0.5
OWNERSHIP_BONUS = 0.45

OFFER_TO_ACT_PATTERN = r"\b(let me|we can|i can|i'll|i will)\b"
OWNERSHIP_PATTERN = r"\bwe need|our team|our process|our budget\b"
SELF_REFERENCE_LABEL_PATTERN = r"(speaker\s*1|you|sales|me)"

AUDIO_SOURCE_ROLE_MAP: dict[AudioSource, SpeakerRole] = {
    AudioSource.MICROPHONE: SpeakerRole.SALES,
    AudioSource.SYSTEM_AUDIO: SpeakerRole.CLIENT,
    AudioSource.TAB_AUDIO: SpeakerRole.CLIENT,
}

INFERRED_SPEAKER_LABELS: dict[SpeakerRole, str] = {
    SpeakerRole.SALES: "Sales (inferred)",
    SpeakerRole.CLIENT: "Client (inferred)",
}

# Cumulative sales-speaker ranking, used when no label or source decides
SPEAKER_SCORE_EXPLICIT_SALES = 2.0
SPEAKER_SCORE_EXPLICIT_CLIENT = -1.0
SPEAKER_SCORE_SALES_SOURCE = 1.8
SPEAKER_SCORE_CLIENT_SOURCE = -1.2
SPEAKER_CLIENT_CUE_DISCOUNT = 0.65
SPEAKER_MIN_SCORE = 0.75
SPEAKER_MIN_MARGIN = 0.35

# Per-utterance cue margins: (sales margin, client margin)
ASSIGN_CUE_MARGINS = (0.9, 0.6)
BACKFILL_CUE_MARGINS = (0.7, 0.5)


# ── QUESTION FOLLOW-UPS ──

STOP_WORDS = {
    "the", "a", "an", "and", "or", "to", "of", "in", "on", "for", "with",
    "is", "are", "was", "were", "it", "this", "that", "we", "you", "our",
    "your", "do", "does", "did", "can", "could", "would", "should", "i",
    "me", "my", "us",
}

DEFLECTION_PATTERN = r"(later|circle back|offline|after this|not sure)"

MIN_REPLY_CONTENT_WORDS = 6
MIN_REPLY_OVERLAP = 0.15
MAX_FOLLOW_UPS = 8

FOLLOW_UP_RECOVERY = {
    FollowUpStatus.ANSWERED: "Restate the question directly, then answer with one clear business outcome.",
    FollowUpStatus.WEAK: "Give a direct answer first, then offer one proof point and ask for confirmation.",
    FollowUpStatus.MISSED: (
        "Acknowledge you missed the question, answer it directly, "
        "and confirm if that resolves the concern."
    ),
}


# ── LABELS ──

RISK_LABELS: dict[RiskFlag, str] = {
    RiskFlag.PRICE_OBJECTION: "Price objection detected",
    RiskFlag.TIMING_OBJECTION: "Timing objection detected",
    RiskFlag.TRUST_CONCERN: "Trust concern detected",
    RiskFlag.FEATURE_GAP: "Feature gap concern detected",
    RiskFlag.SECURITY_CONCERN: "Security concern detected",
    RiskFlag.INTEGRATION_CONCERN: "Integration concern detected",
    RiskFlag.COMPETITOR_MENTION: "Competitor mention detected",
    RiskFlag.CONFUSION: "Client confusion signal",
    RiskFlag.FRUSTRATION: "Client frustration signal",
    RiskFlag.LOW_ENGAGEMENT: "Low engagement risk",
    RiskFlag.SCOPE_MISMATCH: "Scope mismatch risk",
}

TOPIC_LABELS: dict[Topic, str] = {
    Topic.NEED_PROBLEM: "Need / Problem",
    Topic.BUDGET: "Budget",
    Topic.TIMELINE: "Timeline",
    Topic.DECISION_MAKER: "Decision Maker",
    Topic.ALTERNATIVES_COMPETITORS: "Alternatives / Competitors",
    Topic.TECHNICAL_FIT: "Technical Fit",
    Topic.SECURITY_COMPLIANCE: "Security / Compliance",
    Topic.PROCUREMENT: "Procurement",
    Topic.NEXT_STEPS: "Next Steps",
}

TOPIC_RECOVERY_PROMPTS: dict[Topic, str] = {
    Topic.NEED_PROBLEM: "Reconfirm the core business problem and impact in client terms.",
    Topic.BUDGET: "Align budget expectations to concrete ROI and rollout scope.",
    Topic.TIMELINE: "Pin down timeline blockers and propose a phased start date.",
    Topic.DECISION_MAKER: "Confirm decision owners and sign-off path before ending the call.",
    Topic.ALTERNATIVES_COMPETITORS: (
        "Ask how alternatives are being scored and position your differentiator."
    ),
    Topic.TECHNICAL_FIT: "Clarify integration and technical fit with one concrete example.",
    Topic.SECURITY_COMPLIANCE: "Address security/compliance concerns with proof and process.",
    Topic.PROCUREMENT: "Surface procurement/legal steps and next ownership.",
    Topic.NEXT_STEPS: "Lock clear next steps with owner and date.",
}


# ── RISK CLASSIFICATION TABLES ──

RISK_SEVERITY: dict[RiskFlag, Severity] = {
    RiskFlag.PRICE_OBJECTION: Severity.MEDIUM,
    RiskFlag.TIMING_OBJECTION: Severity.LOW,
    RiskFlag.TRUST_CONCERN: Severity.HIGH,
    RiskFlag.FEATURE_GAP: Severity.MEDIUM,
    RiskFlag.SECURITY_CONCERN: Severity.HIGH,
    RiskFlag.INTEGRATION_CONCERN: Severity.MEDIUM,
    RiskFlag.COMPETITOR_MENTION: Severity.LOW,
    RiskFlag.CONFUSION: Severity.LOW,
    RiskFlag.FRUSTRATION: Severity.LOW,
    RiskFlag.LOW_ENGAGEMENT: Severity.LOW,
    RiskFlag.SCOPE_MISMATCH: Severity.HIGH,
}

# Flags reported as "objection" insights; every other flag is a "risk"
OBJECTION_FLAGS = {
    RiskFlag.PRICE_OBJECTION,
    RiskFlag.TIMING_OBJECTION,
    RiskFlag.TRUST_CONCERN,
    RiskFlag.FEATURE_GAP,
    RiskFlag.SECURITY_CONCERN,
    RiskFlag.INTEGRATION_CONCERN,
    RiskFlag.COMPETITOR_MENTION,
}

RISK_TOPIC: dict[RiskFlag, Topic | None] = {
    RiskFlag.PRICE_OBJECTION: Topic.BUDGET,
    RiskFlag.TIMING_OBJECTION: Topic.TIMELINE,
    RiskFlag.TRUST_CONCERN: Topic.SECURITY_COMPLIANCE,
    RiskFlag.FEATURE_GAP: Topic.TECHNICAL_FIT,
    RiskFlag.SECURITY_CONCERN: Topic.SECURITY_COMPLIANCE,
    RiskFlag.INTEGRATION_CONCERN: Topic.TECHNICAL_FIT,
    RiskFlag.COMPETITOR_MENTION: Topic.ALTERNATIVES_COMPETITORS,
    RiskFlag.CONFUSION: None,
    RiskFlag.FRUSTRATION: None,
    RiskFlag.LOW_ENGAGEMENT: None,
    RiskFlag.SCOPE_MISMATCH: Topic.NEED_PROBLEM,
}

PAIN_POINT_CATEGORY: dict[RiskFlag, PainPointCategory] = {
    RiskFlag.PRICE_OBJECTION: PainPointCategory.COST,
    RiskFlag.TIMING_OBJECTION: PainPointCategory.TIME,
    RiskFlag.TRUST_CONCERN: PainPointCategory.TRUST,
    RiskFlag.FEATURE_GAP: PainPointCategory.USABILITY,
    RiskFlag.SECURITY_CONCERN: PainPointCategory.COMPLIANCE,
    RiskFlag.INTEGRATION_CONCERN: PainPointCategory.INTEGRATION,
    RiskFlag.COMPETITOR_MENTION: PainPointCategory.SUPPORT,
    RiskFlag.CONFUSION: PainPointCategory.USABILITY,
    RiskFlag.FRUSTRATION: PainPointCategory.RISK,
    RiskFlag.LOW_ENGAGEMENT: PainPointCategory.OTHER,
    RiskFlag.SCOPE_MISMATCH: PainPointCategory.RISK,
}

PAIN_POINT_DETAIL: dict[RiskFlag, str] = {
    RiskFlag.PRICE_OBJECTION: "Client is signaling pricing pressure and budget concern.",
    RiskFlag.TIMING_OBJECTION: "Client is delaying urgency or timeline commitment.",
    RiskFlag.INTEGRATION_CONCERN: "Integration complexity is blocking confidence.",
    RiskFlag.SECURITY_CONCERN: "Security/compliance concerns need concrete proof.",
    RiskFlag.TRUST_CONCERN: "Trust signals are weak and require validation.",
    RiskFlag.FEATURE_GAP: "Perceived product capability gap is reducing fit confidence.",
    RiskFlag.SCOPE_MISMATCH: "Use case appears misaligned with current value framing.",
    RiskFlag.LOW_ENGAGEMENT: "Client participation dropped and buying intent is unclear.",
}

# Topics whose absence raises a coverage-gap insight
CRITICAL_TOPICS = [Topic.BUDGET, Topic.TIMELINE, Topic.DECISION_MAKER]


# ── SUMMARY ──

HEADLINES = {
    Assessment.STRONG: "Call is trending well. Keep momentum and secure next steps.",
    Assessment.MIXED: "Mixed outcome. Resolve objections and close open client questions.",
    Assessment.AT_RISK: "At risk. Key concerns were unresolved and buying signals weakened.",
}

DEFAULT_NEXT_ACTION = "Summarize agreed value and lock a concrete next step with owner/date."
