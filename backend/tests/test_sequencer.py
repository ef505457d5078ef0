"""Tests for deterministic sequencing."""

import pytest

from icd_encoder.services.candidates import CandidateSet, candidate
from icd_encoder.services.sequencer import category_bonus, confidence_for, rank_score, sequence_candidates


def codes_of(sequenced) -> list[str]:
    return [item.code for item in sequenced]


class TestConfidence:
    """Test the score-to-confidence mapping."""

    @pytest.mark.parametrize(
        "score,expected",
        [(11.0, 0.99), (10.0, 0.99), (8.5, 0.85), (5.0, 0.5), (0.5, 0.1), (0.0, 0.1)],
    )
    def test_confidence_for(self, score, expected):
        """Test confidence is clamped to [0.1, 0.99]."""
        assert confidence_for(score) == expected


class TestRanking:
    """Test category bonuses and the unspecified penalty."""

    def test_category_bonus(self):
        """Test hypertensive, diabetic and staged CKD bonuses."""
        assert category_bonus("I13.2") == 1.5
        assert category_bonus("E11.22") == 1.25
        assert category_bonus("N18.4") == 0.75
        assert category_bonus("N18.9") == 0.0
        assert category_bonus("E11.9") == 0.0

    def test_unspecified_penalty(self, catalog):
        """Test codes ending in .9 or described as unspecified lose half a point."""
        assert rank_score(candidate("I50.9", "hf", 9), catalog) == 8.5
        assert rank_score(candidate("G93.40", "enc", 6), catalog) == 5.5
        assert rank_score(candidate("I10", "htn", 5), catalog) == 5.0


class TestSequenceCandidates:
    """Test output ordering."""

    def test_hints_first(self, catalog):
        """Test hinted codes lead in hint order."""
        candidates = CandidateSet(
            [candidate("I10", "htn", 5), candidate("N18.4", "ckd", 8), candidate("E11.22", "dm", 11)]
        )
        sequenced = sequence_candidates(candidates, ["E11.22"], catalog)
        assert codes_of(sequenced) == ["E11.22", "N18.4", "I10"]
        assert [item.order for item in sequenced] == [1, 2, 3]

    def test_unknown_hint_ignored(self, catalog):
        """Test hints for absent codes are skipped."""
        candidates = CandidateSet([candidate("I10", "htn", 5)])
        assert codes_of(sequence_candidates(candidates, ["Q99.99", "I10", "I10"], catalog)) == ["I10"]

    def test_bonus_ordering(self, catalog):
        """Test bonuses and penalties decide the unhinted order."""
        candidates = CandidateSet(
            [
                candidate("I50.9", "hf", 9),
                candidate("N18.4", "ckd", 8),
                candidate("I13.2", "htn", 8),
                candidate("E11.22", "dm", 9),
            ]
        )
        assert codes_of(sequence_candidates(candidates, [], catalog)) == ["E11.22", "I13.2", "N18.4", "I50.9"]

    def test_ties_broken_by_code(self, catalog):
        """Test equal rank scores sort by code."""
        candidates = CandidateSet([candidate("Z79.4", "insulin", 5), candidate("K86.1", "pancreatitis", 5)])
        assert codes_of(sequence_candidates(candidates, [], catalog)) == ["K86.1", "Z79.4"]

    def test_low_scores_dropped_unless_hinted(self, catalog):
        """Test the minimum score applies to unhinted codes only."""
        candidates = CandidateSet([candidate("I10", "htn", 2), candidate("N18.9", "ckd", 2)])
        assert codes_of(sequence_candidates(candidates, ["N18.9"], catalog)) == ["N18.9"]

    def test_max_codes(self, catalog):
        """Test the output limit."""
        candidates = CandidateSet(candidate(code, code, 8) for code in ("I10", "N18.4", "E11.22"))
        assert len(sequence_candidates(candidates, [], catalog, max_codes=2)) == 2

    def test_output_fields(self, catalog):
        """Test description, reason, confidence and rule come through."""
        candidates = CandidateSet([candidate("E11.22", "combination", 11, rule="diabetes_primary_manifestation")])
        item = sequence_candidates(candidates, [], catalog)[0]
        assert item.description == "Type 2 diabetes mellitus with diabetic chronic kidney disease"
        assert item.reason == "combination"
        assert item.confidence == 0.99
        assert item.guideline_rule_id == "diabetes_primary_manifestation"

    def test_empty(self, catalog):
        """Test no candidates give no codes."""
        assert sequence_candidates(CandidateSet(), [], catalog) == []

    def test_deterministic(self, catalog):
        """Test insertion order does not affect the output."""
        items = [candidate("I10", "htn", 5), candidate("N18.4", "ckd", 8), candidate("I50.9", "hf", 6)]
        forward = sequence_candidates(CandidateSet(items), [], catalog)
        backward = sequence_candidates(CandidateSet(reversed(items)), [], catalog)
        assert forward == backward
