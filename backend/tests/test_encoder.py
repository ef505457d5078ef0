"""End-to-end tests for the encoder service."""

import pytest

from icd_encoder.services.encoder import EncoderService, get_encoder_service


def codes_of(output) -> list[str]:
    return [item.code for item in output.codes]


# ============================================================================
# Free Text Tests
# ============================================================================


class TestEncodeText:
    """Test free-text encoding scenarios."""

    def test_diabetic_ckd(self, encoder):
        """Test diabetes with CKD codes the combination first, then the stage."""
        output = encoder.encode_text("Type 2 diabetes with CKD stage 4")
        assert codes_of(output) == ["E11.22", "N18.4"]
        assert output.errors == []

    def test_hypertensive_heart_and_kidney_disease(self, encoder):
        """Test hypertension with heart failure and CKD uses I13."""
        output = encoder.encode_text("hypertension with heart failure and CKD stage 5")
        assert codes_of(output) == ["I13.2", "N18.5", "I50.9"]

    def test_copd_exacerbation(self, encoder):
        """Test COPD with acute exacerbation."""
        assert codes_of(encoder.encode_text("COPD with acute exacerbation")) == ["J44.1"]

    def test_metastatic_cancer(self, encoder):
        """Test the secondary site is sequenced with its primary."""
        output = encoder.encode_text("metastatic lung cancer from breast primary")
        assert codes_of(output) == ["C78.00", "C50.919"]

    def test_acute_kidney_injury_not_trauma(self, encoder):
        """Test acute kidney injury is not coded as an injury."""
        output = encoder.encode_text("acute kidney injury")
        assert codes_of(output) == ["N17.9"]
        assert not any("injury" in warning.lower() for warning in output.warnings)

    def test_obstetric_code_first(self, encoder):
        """Test the pregnancy code leads the output."""
        output = encoder.encode_text("pregnant in 2nd trimester with asthma")
        assert output.codes[0].code == "O26.92"

    def test_index_fallback(self, encoder):
        """Test text no concept covers falls back to the catalog index."""
        output = encoder.encode_text("migraine", debug=True)
        assert codes_of(output) == ["G43.909"]
        assert output.codes[0].guideline_rule_id == "index_fallback"
        assert output.codes[0].confidence == 0.99
        assert output.debug["index_fallback"] is True

    def test_empty_text(self, encoder):
        """Test empty input yields an empty result."""
        output = encoder.encode_text("")
        assert output.codes == []
        assert output.errors == []

    def test_order_dense_and_codes_unique(self, encoder):
        """Test order runs 1..n and no code repeats."""
        output = encoder.encode_text("hypertension with heart failure and CKD stage 5")
        assert [item.order for item in output.codes] == list(range(1, len(output.codes) + 1))
        assert len(set(codes_of(output))) == len(output.codes)

    @pytest.mark.parametrize(
        "text",
        [
            "Type 2 diabetes with CKD stage 4",
            "hypertension with heart failure and CKD stage 5",
            "metastatic lung cancer from breast primary",
        ],
    )
    def test_deterministic(self, encoder, text):
        """Test repeated encodes give identical output."""
        assert encoder.encode_text(text) == encoder.encode_text(text)

    def test_confidence_bounds(self, encoder):
        """Test every confidence lies within (0, 0.99]."""
        output = encoder.encode_text("Type 2 diabetes with CKD stage 4")
        assert all(0 < item.confidence <= 0.99 for item in output.codes)

    def test_debug_trace(self, encoder):
        """Test the debug trace lists concepts and candidates."""
        output = encoder.encode_text("Type 2 diabetes with CKD stage 4", debug=True)
        concept_types = [concept["type"] for concept in output.debug["concepts"]]
        assert "diabetes" in concept_types
        assert "ckd" in concept_types
        assert "E11.22" in [item["code"] for item in output.debug["candidates"]]
        assert output.debug["final_candidates"]
        assert output.debug["index_fallback"] is False

    def test_no_debug_by_default(self, encoder):
        """Test the trace is omitted unless requested."""
        assert encoder.encode_text("Type 2 diabetes with CKD stage 4").debug is None

    def test_alias_serialization(self, encoder):
        """Test the rule id serializes under its camelCase alias."""
        dumped = encoder.encode_text("Type 2 diabetes with CKD stage 4").model_dump(by_alias=True)
        assert "guidelineRuleId" in dumped["codes"][0]


# ============================================================================
# Structured Input Tests
# ============================================================================


class TestEncodeStructured:
    """Test structured input encoding."""

    def test_septic_shock(self, encoder):
        """Test sepsis with shock codes the infection first, then R65.21."""
        output = encoder.encode_structured("Sepsis: Yes\nSeptic Shock: Yes")
        assert codes_of(output) == ["A41.9", "R65.21"]
        assert output.primary.code == "A41.9"
        assert [item.code for item in output.secondary] == ["R65.21"]
        assert output.validation_errors == []
        assert output.procedures == []

    def test_hard_stop_blocks_encoding(self, encoder):
        """Test a hard stop returns no codes and reports the stop."""
        output = encoder.encode_structured("Septic Shock: Yes")
        assert output.codes == []
        assert output.primary is None
        assert len(output.validation_errors) == 1
        assert output.validation_errors[0].startswith("HARD STOP: Septic shock selected")
        assert output.errors == output.validation_errors

    def test_parse_error_blocks_encoding(self, encoder):
        """Test parse errors return no codes."""
        output = encoder.encode_structured("CKD Stage: 7")
        assert output.codes == []
        assert output.errors == ["Invalid CKD stage: 7"]
        assert output.validation_errors == ["Invalid CKD stage: 7"]

    def test_structured_diabetic_ckd(self, encoder):
        """Test the structured path shares the free-text pipeline."""
        output = encoder.encode_structured("Diabetes Type: Type 2\nDiabetes Complications: CKD\nCKD Stage: 4")
        assert codes_of(output) == ["E11.22", "N18.4"]
        assert output.validation_errors == []

    def test_context_warnings_carried(self, encoder):
        """Test documentation warnings reach the output."""
        output = encoder.encode_structured("Sepsis: Yes")
        assert any(warning.startswith("Sepsis documented without an infection site") for warning in output.warnings)

    def test_missing_organism_reported_once(self, encoder):
        """Test a missing sepsis organism gives a single warning."""
        output = encoder.encode_structured("Sepsis: Yes\nInfection Site: UTI")
        organism_warnings = [warning for warning in output.warnings if "organism" in warning]
        assert organism_warnings == [
            "Sepsis organism not documented; assigned A41.9 (sepsis, unspecified organism)."
        ]

    def test_validation_errors_alias(self, encoder):
        """Test validation errors serialize as validationErrors."""
        dumped = encoder.encode_structured("CKD Stage: 7").model_dump(by_alias=True)
        assert dumped["validationErrors"] == ["Invalid CKD stage: 7"]


# ============================================================================
# Validation Tests
# ============================================================================


class TestValidate:
    """Test the validation entry point."""

    def test_valid_list(self, encoder):
        """Test a compliant list validates."""
        assert encoder.validate(["E11.22", "N18.4"]).valid

    def test_invalid_list(self, encoder):
        """Test a missing stage code is reported."""
        report = encoder.validate(["E11.22"])
        assert not report.valid
        assert report.errors[0].startswith("[DM-004]")

    def test_text_passed_through(self, encoder):
        """Test documentation text reaches text-aware rules."""
        report = encoder.validate(["N39.0"], text="Patient admitted with urosepsis")
        assert "SEP-002" in [issue.rule_id for issue in report.issues]


# ============================================================================
# Singleton Tests
# ============================================================================


class TestSingleton:
    """Test the process-wide encoder."""

    def test_same_instance(self):
        """Test repeated calls return one instance."""
        assert get_encoder_service() is get_encoder_service()

    def test_instance_type(self):
        """Test the singleton is an EncoderService."""
        assert isinstance(get_encoder_service(), EncoderService)
