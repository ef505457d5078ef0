"""Tests for clinical text normalization."""

from icd_encoder.services.normalizer import ABBREVIATIONS, normalize_text


class TestNormalizeText:
    """Test lowercasing, whitespace and abbreviation expansion."""

    def test_empty_input(self):
        """Test empty input gives empty output."""
        assert normalize_text("") == ""

    def test_lowercase_and_whitespace(self):
        """Test text is lowercased and whitespace collapsed."""
        assert normalize_text("  Essential   Hypertension\n") == "essential hypertension"

    def test_abbreviation_expanded(self):
        """Test whole-word abbreviations expand."""
        assert normalize_text("COPD with acute exacerbation") == (
            "chronic obstructive pulmonary disease with acute exacerbation"
        )

    def test_abbreviation_inside_word_untouched(self):
        """Test abbreviations only expand on word boundaries."""
        assert normalize_text("admit") == "admit"
        assert normalize_text("padding") == "padding"

    def test_synonym_expanded(self):
        """Test multi-word synonyms map to the canonical phrase."""
        assert normalize_text("Type 2 diabetes with CKD stage 4") == (
            "type 2 diabetes mellitus with chronic kidney disease stage 4"
        )

    def test_already_canonical_not_doubled(self):
        """Test an already expanded phrase is left alone."""
        assert normalize_text("type 2 diabetes mellitus") == "type 2 diabetes mellitus"
        assert normalize_text("T2DM") == "type 2 diabetes mellitus"

    def test_esrd(self):
        """Test ESRD expands to the hyphenated phrase."""
        assert normalize_text("ESRD on dialysis") == "end-stage renal disease on dialysis"

    def test_idempotent(self):
        """Test normalizing twice changes nothing."""
        for text in ("HTN, CHF and CKD 3b", "DM2 with PAD", "heart attack"):
            once = normalize_text(text)
            assert normalize_text(once) == once

    def test_every_abbreviation_has_expansion(self):
        """Test the abbreviation table has no empty entries."""
        assert all(expansion for expansion in ABBREVIATIONS.values())
