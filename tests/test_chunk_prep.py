"""Tests for chunk merging, partial synthesis, budgeting and redaction."""

from config.schemas import RawChunk, SpeakerRole
from pipeline.chunk_prep import (
    budget_chunks,
    chunk_key,
    merge_chunks,
    partial_chunk,
    redact_chunks,
    redact_text,
    strip_prosody,
)


def _make_chunk(chunk_id, start, text="hello there", **kwargs) -> RawChunk:
    return RawChunk(id=chunk_id, t_start_ms=start, t_end_ms=start + 500, text=text, **kwargs)


class TestMerge:
    def test_later_occurrence_wins(self):
        stored = [_make_chunk("a", 1000, "old text")]
        fresh = [_make_chunk("a", 1000, "new text"), _make_chunk("b", 0)]
        merged = merge_chunks(stored, fresh)
        assert [c.id for c in merged] == ["b", "a"]
        assert merged[1].text == "new text"

    def test_key_without_id(self):
        one = RawChunk(sequence=3, t_start_ms=0, t_end_ms=500, text="hi")
        same = RawChunk(sequence=3, t_start_ms=0, t_end_ms=500, text="hi")
        other = RawChunk(sequence=4, t_start_ms=0, t_end_ms=500, text="hi")
        assert chunk_key(one) == chunk_key(same)
        assert chunk_key(one) != chunk_key(other)
        assert len(merge_chunks([one], [same, other])) == 2

    def test_sequence_breaks_ties(self):
        late = RawChunk(id="x", sequence=2, t_start_ms=0, t_end_ms=500, text="second")
        early = RawChunk(id="y", sequence=1, t_start_ms=0, t_end_ms=500, text="first")
        assert [c.text for c in merge_chunks([late], [early])] == ["first", "second"]


class TestPartialChunk:
    def test_partial_fields(self):
        chunk = partial_chunk("  still talking ", 1000.7, existing_count=3)
        assert chunk.id == "partial-1000"
        assert chunk.sequence == 10_000_003
        assert chunk.t_start_ms == 600
        assert chunk.t_end_ms == 1000
        assert chunk.speaker_role == SpeakerRole.UNKNOWN
        assert chunk.confidence == 0.55
        assert chunk.text == "still talking"

    def test_start_floored_at_zero(self):
        assert partial_chunk("hi", 100).t_start_ms == 0

    def test_blank_is_none(self):
        assert partial_chunk("   ", 1000) is None
        assert partial_chunk(None, 1000) is None


class TestBudget:
    def test_keeps_newest(self):
        chunks = [_make_chunk(str(i), i * 1000) for i in range(5)]
        assert [c.id for c in budget_chunks(chunks, 3)] == ["2", "3", "4"]
        assert budget_chunks(chunks, 0) == []
        assert len(budget_chunks(chunks)) == 5


class TestRedaction:
    def test_email_and_phone(self):
        text = redact_text("mail jane.doe@example.com or call +1 (415) 555-0132 today")
        assert text == "mail [redacted-email] or call [redacted-phone] today"

    def test_grouped_card_taken_by_phone_pass_first(self):
        text = redact_text("my card is 4111 1111 1111 1111 thanks")
        assert text == "my card is [redacted-phone] thanks"

    def test_email_digits_not_redacted_as_phone(self):
        assert redact_text("text 4155550132@sms.example.com") == "text [redacted-email]"

    def test_email_match_ignores_case(self):
        assert redact_text("JANE.DOE@EXAMPLE.COM") == "[redacted-email]"

    def test_plain_text_untouched(self):
        assert redact_text("we need 3 seats") == "we need 3 seats"

    def test_chunks_not_mutated(self):
        chunk = _make_chunk("a", 0, "write to a@b.io")
        redacted = redact_chunks([chunk])
        assert redacted[0].text == "write to [redacted-email]"
        assert chunk.text == "write to a@b.io"


class TestStripProsody:
    def test_clears_prosody_fields(self):
        chunk = _make_chunk(
            "a", 0, prosody_energy=0.7, prosody_pause_ratio=0.2,
            prosody_snr_db=14, prosody_quality_pass=True, confidence=0.9,
        )
        stripped = strip_prosody([chunk])[0]
        assert stripped.prosody_energy is None
        assert stripped.prosody_pause_ratio is None
        assert stripped.prosody_snr_db is None
        assert stripped.prosody_quality_pass is None
        assert stripped.confidence == 0.9
        assert chunk.prosody_energy == 0.7
