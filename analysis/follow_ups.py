"""Client-question follow-up tracking: was each client question answered, weakly answered, or missed?"""

import re

from config import settings
from config.schemas import FollowUpStatus, NormalizedUtterance, QuestionFollowUp, SpeakerRole
from analysis.lexical import content_words, make_id
from analysis.vocab import (
    DEFLECTION_PATTERN,
    FOLLOW_UP_RECOVERY,
    MAX_FOLLOW_UPS,
    MIN_REPLY_CONTENT_WORDS,
    MIN_REPLY_OVERLAP,
)

FOLLOW_UP_TEXT_MAX_CHARS = 220

_DEFLECTION_RE = re.compile(DEFLECTION_PATTERN, re.IGNORECASE)


def keyword_overlap(a: str, b: str) -> float:
    """Shared content words over the smaller content-word set; 0 if either is empty."""
    a_words = set(content_words(a))
    b_words = set(content_words(b))
    if not a_words or not b_words:
        return 0.0
    return len(a_words & b_words) / min(len(a_words), len(b_words))


def classify_reply(question: str, reply: str) -> FollowUpStatus:
    if (
        len(content_words(reply)) < MIN_REPLY_CONTENT_WORDS
        or keyword_overlap(question, reply) < MIN_REPLY_OVERLAP
        or _DEFLECTION_RE.search(reply)
    ):
        return FollowUpStatus.WEAK
    return FollowUpStatus.ANSWERED


def compute_question_follow_ups(
    utterances: list[NormalizedUtterance],
    deadline_ms: int = settings.FOLLOW_UP_DEADLINE_MS,
    lookahead: int = settings.FOLLOW_UP_LOOKAHEAD,
) -> list[QuestionFollowUp]:
    """Track every CLIENT question in the window against the next SALES reply.

    The reply is the first SALES utterance among the next `lookahead` turns
    starting at or after the question ends. No reply, or one later than
    `deadline_ms`, is a miss. Only the most recent records are returned.
    """
    follow_ups: list[QuestionFollowUp] = []
    for i, current in enumerate(utterances):
        if current.speaker_role != SpeakerRole.CLIENT or "?" not in current.text:
            continue

        reply = next(
            (
                turn for turn in utterances[i + 1:i + 1 + lookahead]
                if turn.speaker_role == SpeakerRole.SALES and turn.t_start_ms >= current.t_end_ms
            ),
            None,
        )

        if reply is None or reply.t_start_ms - current.t_end_ms > deadline_ms:
            status = FollowUpStatus.MISSED
            response_text = None
        else:
            status = classify_reply(current.text, reply.text)
            response_text = reply.text[:FOLLOW_UP_TEXT_MAX_CHARS]

        follow_ups.append(QuestionFollowUp(
            question_id=make_id("qfollow", current.id, len(follow_ups) + 1),
            question_text=current.text[:FOLLOW_UP_TEXT_MAX_CHARS],
            asked_at_ms=current.t_start_ms,
            status=status,
            response_text=response_text,
            suggested_recovery=FOLLOW_UP_RECOVERY[status],
        ))

    return follow_ups[-MAX_FOLLOW_UPS:]
