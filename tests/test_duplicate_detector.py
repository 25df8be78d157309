"""
Tests for near-duplicate interaction detection.
"""
import pytest

from api.services.crm_models import Interaction
from api.services.duplicate_detector import (
    find_similar_interactions,
    participant_overlap,
    significant_words,
)

pytestmark = pytest.mark.unit

SUMMARY = "Discussed the product roadmap and hiring plans over lunch"


def _existing(contact_ids, date="2026-02-20", summary=SUMMARY):
    return Interaction(contact_ids=contact_ids, date=date, summary=summary)


class TestHelpers:
    def test_significant_words_ignore_short_tokens(self):
        """Only tokens longer than 3 characters count, case-insensitively."""
        assert significant_words("We met at THE Café for lunch") == {"café", "lunch"}

    def test_participant_overlap_uses_larger_set(self):
        assert participant_overlap(["a", "b"], ["a", "b", "c", "d"]) == 0.5
        assert participant_overlap(["a"], ["b"]) == 0.0


class TestFindSimilar:
    """Tests for find_similar_interactions."""

    def test_same_participants_same_words_is_duplicate(self):
        existing = _existing(["c_a"])
        assert find_similar_interactions(["c_a"], "2026-02-21", SUMMARY, [existing]) == [existing]

    def test_window_is_inclusive(self):
        """Three days apart still matches, four does not."""
        existing = _existing(["c_a"], date="2026-02-20")
        assert find_similar_interactions(["c_a"], "2026-02-23", SUMMARY, [existing]) == [existing]
        assert find_similar_interactions(["c_a"], "2026-02-24", SUMMARY, [existing]) == []

    def test_window_crosses_month_boundary(self):
        existing = _existing(["c_a"], date="2026-02-27")
        assert find_similar_interactions(["c_a"], "2026-03-02", SUMMARY, [existing]) == [existing]

    def test_no_shared_participant_is_not_duplicate(self):
        existing = _existing(["c_b"])
        assert find_similar_interactions(["c_a"], "2026-02-20", SUMMARY, [existing]) == []

    def test_low_participant_overlap_is_not_duplicate(self):
        """One shared participant out of three is below 50%."""
        existing = _existing(["c_a", "c_b", "c_c"])
        assert find_similar_interactions(["c_a"], "2026-02-20", SUMMARY, [existing]) == []

    def test_half_participant_overlap_is_enough(self):
        existing = _existing(["c_a", "c_b"])
        assert find_similar_interactions(["c_a"], "2026-02-20", SUMMARY, [existing]) == [existing]

    def test_different_summary_is_not_duplicate(self):
        existing = _existing(["c_a"], summary="Played tennis, talked about holidays abroad")
        assert find_similar_interactions(["c_a"], "2026-02-20", SUMMARY, [existing]) == []

    def test_three_shared_words_are_enough_for_long_summaries(self):
        """min(3, 30% of new words): a long summary needs only three shared words."""
        new_summary = "roadmap hiring lunch alpha bravo charlie delta echo foxtrot golf hotel india"
        existing = _existing(["c_a"], summary="roadmap hiring lunch")
        assert find_similar_interactions(["c_a"], "2026-02-20", new_summary, [existing]) == [existing]

    def test_short_summary_needs_fewer_words(self):
        """Three significant words need only 0.9 shared, so one word matches."""
        existing = _existing(["c_a"], summary="quick roadmap review")
        found = find_similar_interactions(["c_a"], "2026-02-20", "roadmap call today", [existing])
        assert found == [existing]

    def test_empty_summary_matches_any_nearby_interaction(self):
        """No significant words means a threshold of zero."""
        existing = _existing(["c_a"], summary="Something entirely different happened")
        assert find_similar_interactions(["c_a"], "2026-02-20", "hi", [existing]) == [existing]

    def test_unparseable_stored_date_is_skipped(self):
        existing = _existing(["c_a"], date="sometime")
        assert find_similar_interactions(["c_a"], "2026-02-20", SUMMARY, [existing]) == []
