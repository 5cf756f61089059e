"""Champion / skeptic detection across labelled client speakers."""

from loguru import logger

from config.schemas import NormalizedUtterance, StakeholderSignal, StakeholderSignals
from analysis.lexical import build_evidence, clamp, keyword_hits, sentiment_stats
from analysis.vocab import RISK_KEYWORDS_FLAT

MIN_SPEAKER_WORDS = 8
MIN_WORD_SHARE = 0.15
CHAMPION_MIN_VALENCE = 0.18
SKEPTIC_MAX_VALENCE = -0.16
SKEPTIC_MIN_RISK_HITS = 2
MAX_SIGNAL_CONFIDENCE = 0.95


def speaker_signals(client_utterances: list[NormalizedUtterance], total_client_words: int) -> list[StakeholderSignal]:
    """One signal per labelled client speaker with enough words, in first-seen order."""
    by_speaker: dict[str, list[NormalizedUtterance]] = {}
    for utterance in client_utterances:
        if not utterance.speaker:
            continue
        by_speaker.setdefault(utterance.speaker, []).append(utterance)

    signals = []
    for speaker, utterances in by_speaker.items():
        words = sum(u.words for u in utterances)
        if words < MIN_SPEAKER_WORDS:
            continue
        text = " ".join(u.text for u in utterances)
        risk_hits = keyword_hits(text, RISK_KEYWORDS_FLAT)
        word_share = words / max(1, total_client_words)
        confidence = clamp(0.42 + word_share * 0.38 + min(0.15, risk_hits * 0.03), 0, MAX_SIGNAL_CONFIDENCE)
        signals.append(StakeholderSignal(
            speaker=speaker,
            valence=sentiment_stats(text).valence,
            word_share=clamp(word_share),
            risk_hits=risk_hits,
            confidence=round(confidence, 2),
            evidence_snippets=build_evidence(utterances, limit=2),
        ))
    return signals


def compute_stakeholder_signals(
    client_utterances: list[NormalizedUtterance],
    total_client_words: int,
) -> StakeholderSignals:
    """Pick a champion and a skeptic among client speakers.

    Champion: valence >= 0.18 and word share >= 0.15, highest valence then share.
    Skeptic: (valence <= -0.16 or >= 2 risk hits) and word share >= 0.15,
    lowest valence then highest share; prefers someone other than the champion.
    """
    signals = speaker_signals(client_utterances, total_client_words)
    if not signals:
        return StakeholderSignals()

    champions = [
        s for s in signals
        if s.valence >= CHAMPION_MIN_VALENCE and s.word_share >= MIN_WORD_SHARE
    ]
    champion = max(champions, key=lambda s: (s.valence, s.word_share)) if champions else None

    skeptics = sorted(
        (
            s for s in signals
            if (s.valence <= SKEPTIC_MAX_VALENCE or s.risk_hits >= SKEPTIC_MIN_RISK_HITS)
            and s.word_share >= MIN_WORD_SHARE
        ),
        key=lambda s: (s.valence, -s.word_share),
    )
    skeptic = next(
        (s for s in skeptics if champion is None or s.speaker != champion.speaker),
        skeptics[0] if skeptics else None,
    )

    if champion or skeptic:
        logger.debug(
            f"Stakeholders: champion={champion.speaker if champion else None!r}, "
            f"skeptic={skeptic.speaker if skeptic else None!r}"
        )
    return StakeholderSignals(champion=champion, skeptic=skeptic)
