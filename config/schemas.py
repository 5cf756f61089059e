"""CallPulse Pydantic schemas — structured input/output definitions for every pipeline stage.

Field names are snake_case in Python and camelCase on the wire
(``model_dump(by_alias=True)``), matching the live-analysis JSON contract.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from config import settings


class WireModel(BaseModel):
    """Base for every schema: camelCase aliases, immutable after construction."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ── ENUMERATIONS ──

class SpeakerRole(str, Enum):
    SALES = "SALES"
    CLIENT = "CLIENT"
    UNKNOWN = "UNKNOWN"


class AudioSource(str, Enum):
    MICROPHONE = "microphone"
    SYSTEM_AUDIO = "systemAudio"
    TAB_AUDIO = "tabAudio"


class Topic(str, Enum):
    NEED_PROBLEM = "needProblem"
    BUDGET = "budget"
    TIMELINE = "timeline"
    DECISION_MAKER = "decisionMaker"
    ALTERNATIVES_COMPETITORS = "alternativesCompetitors"
    TECHNICAL_FIT = "technicalFit"
    SECURITY_COMPLIANCE = "securityCompliance"
    PROCUREMENT = "procurement"
    NEXT_STEPS = "nextSteps"


class RiskFlag(str, Enum):
    PRICE_OBJECTION = "priceObjection"
    TIMING_OBJECTION = "timingObjection"
    TRUST_CONCERN = "trustConcern"
    FEATURE_GAP = "featureGap"
    SECURITY_CONCERN = "securityConcern"
    INTEGRATION_CONCERN = "integrationConcern"
    COMPETITOR_MENTION = "competitorMention"
    CONFUSION = "confusion"
    FRUSTRATION = "frustration"
    LOW_ENGAGEMENT = "lowEngagement"
    SCOPE_MISMATCH = "scopeMismatch"


class InsightType(str, Enum):
    OBJECTION = "objection"
    RISK = "risk"
    POSITIVE_SIGNAL = "positiveSignal"
    TOPIC = "topic"
    COACH = "coach"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SuggestionIntent(str, Enum):
    ADDRESS_OBJECTION = "addressObjection"
    CLARIFY = "clarify"
    VALUE_REINFORCE = "valueReinforce"
    CLOSE = "close"
    DISCOVERY = "discovery"
    RAPPORT = "rapport"


class QuestionIntent(str, Enum):
    DISCOVERY = "discovery"
    BUDGET = "budget"
    TIMELINE = "timeline"
    DM = "dm"
    RISK = "risk"
    CLOSE = "close"


class PainPointCategory(str, Enum):
    COST = "cost"
    TIME = "time"
    INTEGRATION = "integration"
    COMPLIANCE = "compliance"
    TRUST = "trust"
    USABILITY = "usability"
    SUPPORT = "support"
    RISK = "risk"
    OTHER = "other"


class FollowUpStatus(str, Enum):
    ANSWERED = "answered"
    WEAK = "weak"
    MISSED = "missed"


class Assessment(str, Enum):
    STRONG = "strong"
    MIXED = "mixed"
    AT_RISK = "atRisk"


class AnalysisMode(str, Enum):
    LIGHT = "light"
    DEEP = "deep"


class StreamStatus(str, Enum):
    IDLE = "idle"
    LIVE = "live"


# ── INPUT ──

class RawChunk(WireModel):
    """One ASR utterance as delivered by the transcription collaborator."""
    id: Optional[str] = None
    sequence: Optional[int] = None
    t_start_ms: float = Field(ge=0, description="Utterance start (ms from call start)")
    t_end_ms: float = Field(ge=0, description="Utterance end (ms from call start)")
    speaker: Optional[str] = Field(None, description="Diarization label, e.g. 'Speaker 1'")
    speaker_role: Optional[SpeakerRole] = Field(
        None, description="Explicit role — never overridden by inference"
    )
    audio_source: Optional[AudioSource] = None
    prosody_energy: Optional[float] = Field(None, ge=0, le=1)
    prosody_pause_ratio: Optional[float] = Field(None, ge=0, le=1)
    prosody_voiced_ms: Optional[float] = Field(None, ge=0)
    prosody_snr_db: Optional[float] = None
    prosody_quality_pass: Optional[bool] = Field(
        None, description="Upstream prosody analyzer quality verdict for this frame"
    )
    prosody_tone_weights_enabled: Optional[bool] = Field(
        None, description="False when the upstream analyzer disabled tone weighting"
    )
    prosody_confidence_penalty: Optional[float] = Field(None, ge=0, le=1)
    text: str = Field(min_length=1)
    confidence: Optional[float] = Field(None, ge=0, le=1, description="ASR confidence")


class NormalizedUtterance(WireModel):
    """RawChunk after dedupe + sort + role assignment."""
    id: str
    t_start_ms: float
    t_end_ms: float
    speaker: Optional[str] = None
    speaker_role: SpeakerRole
    audio_source: Optional[AudioSource] = None
    prosody_energy: Optional[float] = None
    prosody_pause_ratio: Optional[float] = None
    prosody_voiced_ms: Optional[float] = None
    prosody_snr_db: Optional[float] = None
    prosody_quality_pass: Optional[bool] = None
    prosody_tone_weights_enabled: Optional[bool] = None
    prosody_confidence_penalty: Optional[float] = None
    text: str
    confidence: float = Field(ge=0, le=1)
    words: int = Field(ge=0)


class AnalysisOptions(WireModel):
    """One engine invocation: the chunk snapshot plus tuning knobs."""
    meeting_id: str
    chunks: list[RawChunk] = Field(default_factory=list)
    use_heuristics: bool = True
    sensitivity: float = Field(default=settings.DEFAULT_SENSITIVITY, ge=0, le=100)
    coaching_aggressiveness: float = Field(default=settings.DEFAULT_AGGRESSIVENESS, ge=0, le=100)
    now_ms: Optional[float] = Field(
        None, description="Analysis clock; pass explicitly for deterministic output"
    )
    window_ms: int = Field(default=settings.WINDOW_MS, gt=0)
    follow_up_deadline_ms: int = Field(default=settings.FOLLOW_UP_DEADLINE_MS, ge=0)
    follow_up_lookahead: int = Field(default=settings.FOLLOW_UP_LOOKAHEAD, ge=1)


# ── EVIDENCE & STAKEHOLDERS ──

class EvidenceSnippet(WireModel):
    utterance_id: str
    speaker_role: SpeakerRole
    ts_start_ms: float
    ts_end_ms: float
    text: str


class StakeholderSignal(WireModel):
    """Per-client-speaker aggregate used for champion/skeptic detection."""
    speaker: str
    valence: float = Field(ge=-1, le=1)
    word_share: float = Field(ge=0, le=1)
    risk_hits: int = Field(ge=0)
    confidence: float = Field(ge=0, le=1)
    evidence_snippets: list[EvidenceSnippet] = Field(default_factory=list)


class StakeholderSignals(WireModel):
    champion: Optional[StakeholderSignal] = None
    skeptic: Optional[StakeholderSignal] = None


# ── COACHING ──

class CoachSuggestion(WireModel):
    suggestion_id: str
    text: str
    intent: SuggestionIntent
    confidence: float = Field(ge=0, le=1)
    evidence_snippets: list[str] = Field(default_factory=list)


class CoachQuestion(WireModel):
    question_id: str
    text: str
    intent: QuestionIntent
    confidence: float = Field(ge=0, le=1)
    evidence_snippets: list[str] = Field(default_factory=list)


class CoachDoDont(WireModel):
    id: str
    type: str = Field(description="'do' or 'dont'")
    text: str
    confidence: float = Field(ge=0, le=1)
    evidence_snippets: list[str] = Field(default_factory=list)


class PainPoint(WireModel):
    title: str
    detail: str
    category: PainPointCategory
    confidence: float = Field(ge=0, le=1)
    evidence_utterance_ids: list[str] = Field(default_factory=list)


class CoachPayload(WireModel):
    meeting_id: str
    generated_at_ms: float
    next_best_say: list[CoachSuggestion] = Field(default_factory=list)
    next_questions: list[CoachQuestion] = Field(default_factory=list)
    do_dont: list[CoachDoDont] = Field(default_factory=list)
    pain_points: list[PainPoint] = Field(default_factory=list)


# ── INSIGHTS ──

class Insight(WireModel):
    """A discrete, timestamped, severity-tagged finding."""
    meeting_id: str
    insight_id: str
    timestamp_ms: float
    type: InsightType
    severity: Severity
    title: str
    detail: str
    confidence: float = Field(ge=0, le=1)
    evidence_snippets: list[EvidenceSnippet] = Field(default_factory=list)


# ── FOLLOW-UPS & SUMMARY ──

class QuestionFollowUp(WireModel):
    question_id: str
    question_text: str
    asked_at_ms: float
    status: FollowUpStatus
    response_text: Optional[str] = None
    suggested_recovery: str


class CallSummary(WireModel):
    updated_at_ms: float
    overall_assessment: Assessment
    headline: str
    strengths: list[str] = Field(default_factory=list)
    misses: list[str] = Field(default_factory=list)
    immediate_actions: list[str] = Field(default_factory=list)
    question_follow_ups: list[QuestionFollowUp] = Field(default_factory=list)


# ── METRICS ──

class TalkDynamics(WireModel):
    talk_ratio_sales_pct: float = Field(ge=0, le=100)
    talk_ratio_client_pct: float = Field(ge=0, le=100)
    interruptions_count: int = Field(ge=0)
    pace_wpm_sales: float = Field(ge=0, le=300)
    pace_wpm_client: float = Field(ge=0, le=300)


class TopicCoverage(WireModel):
    checked_topics: list[Topic] = Field(default_factory=list)
    confidence_by_topic: dict[Topic, float] = Field(default_factory=dict)


class MetricsSnapshot(WireModel):
    meeting_id: str
    window_ts_start_ms: float
    window_ts_end_ms: float
    client_valence: float = Field(ge=-1, le=1)
    client_valence_confidence: float = Field(ge=0, le=1)
    client_engagement: float = Field(ge=0, le=1)
    client_engagement_confidence: float = Field(ge=0, le=1)
    client_energy: float = Field(ge=0, le=1)
    client_stress: float = Field(ge=0, le=1)
    client_certainty: float = Field(ge=0, le=1)
    tone_confidence: float = Field(ge=0, le=1)
    call_health: float = Field(ge=0, le=100)
    call_health_confidence: float = Field(ge=0, le=1)
    risk_flags: list[RiskFlag] = Field(default_factory=list)
    talk_dynamics: TalkDynamics
    topic_coverage: TopicCoverage


# ── MASTER OUTPUT ──

class AnalysisResult(WireModel):
    """Complete engine output for one invocation."""
    metrics: MetricsSnapshot
    coach: CoachPayload
    insights: list[Insight] = Field(default_factory=list)
    summary: CallSummary


# ── LIVE-ANALYSIS REQUEST / RESPONSE (HTTP + batch surfaces) ──

class LiveAnalysisRequest(WireModel):
    enabled: bool = True
    mode: AnalysisMode = AnalysisMode.LIGHT
    privacy_mode: bool = False
    use_heuristics: bool = True
    sensitivity: float = Field(default=settings.DEFAULT_SENSITIVITY, ge=0, le=100)
    coaching_aggressiveness: float = Field(default=settings.DEFAULT_AGGRESSIVENESS, ge=0, le=100)
    chunks: list[RawChunk] = Field(default_factory=list, max_length=settings.MAX_CHUNKS)
    partial_text: Optional[str] = None
    now_ms: Optional[float] = None


class LiveAnalysisResponse(WireModel):
    meeting_id: str
    stream_status: StreamStatus
    latency_ms: float
    mode: AnalysisMode
    metrics: Optional[MetricsSnapshot] = None
    coach: Optional[CoachPayload] = None
    insights: list[Insight] = Field(default_factory=list)
    summary: Optional[CallSummary] = None
