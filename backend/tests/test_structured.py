"""Tests for the structured "field: value" front-end."""

import pytest

from icd_encoder.schemas.base import (
    Acuity,
    CkdStage,
    ConceptType,
    DiabetesType,
    DialysisStatus,
    Episode,
    Gender,
    HeartFailureType,
    InjuryKind,
    Laterality,
    NeuropathyType,
    Organism,
)
from icd_encoder.schemas.structured import (
    CkdContext,
    DiabetesContext,
    NeoplasmContext,
    PatientContext,
    PregnancyContext,
    SepsisContext,
)
from icd_encoder.services.concepts import find_concept
from icd_encoder.services.structured import context_to_concepts, parse_structured_input, validate_context


def parse(text: str) -> PatientContext:
    context, errors = parse_structured_input(text)
    assert errors == []
    return context


# ============================================================================
# Parser Tests
# ============================================================================


class TestParser:
    """Test parsing of well-formed blocks."""

    def test_full_block(self):
        """Test a multi-section block fills every section."""
        context = parse(
            "Age: 67\n"
            "Gender: Female\n"
            "Diabetes Type: Type 2\n"
            "Diabetes Complications: Neuropathy, CKD\n"
            "Neuropathy Type: Peripheral\n"
            "Insulin Use: Yes\n"
            "CKD Stage: Stage 4\n"
            "Hypertension: Yes\n"
            "Heart Failure Type: Systolic\n"
            "Heart Failure Acuity: Acute on chronic\n"
        )
        assert context.demographics.age == 67
        assert context.demographics.gender == Gender.FEMALE
        assert context.diabetes.diabetes_type == DiabetesType.TYPE_2
        assert context.diabetes.complications == ["neuropathy", "ckd"]
        assert context.diabetes.neuropathy_type == NeuropathyType.POLYNEUROPATHY
        assert context.diabetes.insulin_use is True
        assert context.ckd.stage == CkdStage.STAGE_4
        assert context.hypertension is True
        assert context.heart_failure.heart_failure_type == HeartFailureType.SYSTOLIC
        assert context.heart_failure.acuity == Acuity.ACUTE_ON_CHRONIC

    def test_keys_are_case_and_underscore_insensitive(self):
        """Test keys are lowercased and underscores read as spaces."""
        context = parse("CKD_STAGE: 3a\nDIALYSIS_STATUS: chronic")
        assert context.ckd.stage == CkdStage.STAGE_3A
        assert context.dialysis == DialysisStatus.CHRONIC

    def test_comments_blank_lines_and_unknown_fields_ignored(self):
        """Test comments, blank lines and unknown fields are skipped."""
        context = parse("# intake form\n\nFavorite Color: blue\nHypertension: yes\n")
        assert context.hypertension is True

    def test_ckd_complication_opens_ckd_section(self):
        """Test listing CKD as a diabetes complication creates the CKD section."""
        context = parse("Diabetes: Type 1\nDiabetes Complication: CKD")
        assert context.diabetes.diabetes_type == DiabetesType.TYPE_1
        assert context.ckd is not None
        assert context.ckd.stage is None

    def test_none_complication_skipped(self):
        """Test 'None' in the complication list adds nothing."""
        context = parse("Diabetes Type: 2\nDiabetes Complications: None")
        assert context.diabetes.complications == []

    def test_esrd_and_roman_numeral_stages(self):
        """Test ESRD and roman numeral stage spellings."""
        assert parse("CKD Stage: ESRD").ckd.stage == CkdStage.ESRD
        assert parse("CKD Stage: Stage IV").ckd.stage == CkdStage.STAGE_4

    def test_false_section_flag_removes_section(self):
        """Test a No value drops a section opened earlier."""
        context = parse("CKD Stage: 3\nCKD: No")
        assert context.ckd is None

    def test_neoplasm_sites(self):
        """Test primary site laterality and metastatic site lists."""
        context = parse("Cancer Site: Left breast\nMetastatic Sites: liver, bone")
        assert context.neoplasm.site == "breast"
        assert context.neoplasm.laterality == Laterality.LEFT
        assert context.neoplasm.metastatic_sites == ["liver", "bone"]
        assert context.neoplasm.metastasis is True

    def test_sepsis_section(self):
        """Test sepsis flags, infection site and organism."""
        context = parse("Sepsis: Yes\nSevere Sepsis: Yes\nInfection Site: UTI\nOrganism: E. coli")
        assert context.sepsis.present is True
        assert context.sepsis.severe is True
        assert context.sepsis.shock is False
        assert context.sepsis.infection_site == "urinary"
        assert context.sepsis.organism == Organism.E_COLI

    def test_pregnancy_and_injury(self):
        """Test gestational age, injury type and encounter type."""
        context = parse(
            "Pregnancy: Yes\nGestational Age: 30 weeks\n"
            "Injury Type: Fracture\nInjury Site: Hip\nEncounter Type: Subsequent"
        )
        assert context.pregnancy.gestational_age == 30
        assert context.injury.kind == InjuryKind.FRACTURE
        assert context.injury.site == "hip"
        assert context.encounter_type == Episode.SUBSEQUENT

    def test_empty_input(self):
        """Test empty input parses to an empty context."""
        assert parse("") == PatientContext()


class TestParserErrors:
    """Test parse error messages."""

    @pytest.mark.parametrize(
        "text,message",
        [
            ("Hypertension yes", 'Invalid format (missing colon): "Hypertension yes"'),
            ("CKD Stage:", "Missing value for field: CKD Stage"),
            ("Age: sixty", "Invalid age: sixty"),
            ("CKD Stage: 7", "Invalid CKD stage: 7"),
            ("Hypertension: maybe", "Invalid hypertension: maybe (expected Yes or No)"),
            ("Diabetes Complications: headache", "Unknown diabetes complication: headache"),
            ("Organism: gremlins", "Unknown organism: gremlins"),
            ("Cancer Site: spleen", "Unknown cancer site: spleen"),
            ("Metastatic Sites: liver, spleen", "Unknown metastatic site: spleen"),
            ("Ulcer Site: elbow", "Invalid ulcer site: elbow"),
            ("Gestational Age: late", "Invalid gestational age: late"),
        ],
    )
    def test_error_message(self, text, message):
        """Test each malformed line yields its message."""
        _, errors = parse_structured_input(text)
        assert errors == [message]

    def test_out_of_range_age_reported(self):
        """Test model validation failures become parse errors."""
        context, errors = parse_structured_input("Age: 200")
        assert len(errors) == 1
        assert errors[0].startswith("Invalid demographics.age:")
        assert context == PatientContext()

    def test_errors_collected_across_lines(self):
        """Test every bad line is reported, good lines still parse."""
        context, errors = parse_structured_input("Age: x\nHypertension: yes\nCKD Stage: 9")
        assert errors == ["Invalid age: x", "Invalid CKD stage: 9"]
        assert context.hypertension is True


# ============================================================================
# Validator Tests
# ============================================================================


class TestValidator:
    """Test hard stops and documentation warnings."""

    def test_clean_context(self):
        """Test a complete context has no hard stops."""
        context = parse("Diabetes Type: 2\nDiabetes Complications: CKD\nCKD Stage: 3b")
        assert validate_context(context) == ([], [])

    def test_ckd_without_stage(self):
        """Test CKD needs a stage."""
        errors, _ = validate_context(PatientContext(ckd=CkdContext()))
        assert errors == ["HARD STOP: CKD selected but no stage specified. CKD Stage (1-5 or ESRD) is REQUIRED."]

    def test_esrd_without_dialysis(self):
        """Test ESRD needs a dialysis status."""
        errors, _ = validate_context(PatientContext(ckd=CkdContext(stage=CkdStage.ESRD)))
        assert len(errors) == 1
        assert errors[0].startswith("HARD STOP: ESRD requires dialysis status.")

    def test_dialysis_without_ckd(self):
        """Test dialysis needs CKD unless it is temporary for AKI."""
        errors, _ = validate_context(PatientContext(dialysis=DialysisStatus.CHRONIC))
        assert errors[0].startswith("HARD STOP: Dialysis documented but CKD not selected.")
        errors, _ = validate_context(PatientContext(dialysis=DialysisStatus.TEMPORARY, aki=True))
        assert errors == []

    def test_diabetes_without_type(self):
        """Test diabetes needs a type."""
        errors, _ = validate_context(PatientContext(diabetes=DiabetesContext()))
        assert errors == [
            "HARD STOP: Diabetes selected but no type specified. Type (Type 1 or Type 2) is REQUIRED."
        ]

    def test_presumed_diabetic_ckd_warning(self):
        """Test diabetes and CKD without the complication link warns."""
        context = PatientContext(
            diabetes=DiabetesContext(diabetes_type=DiabetesType.TYPE_2),
            ckd=CkdContext(stage=CkdStage.STAGE_3),
        )
        errors, warnings = validate_context(context)
        assert errors == []
        assert len(warnings) == 1
        assert "the link is presumed" in warnings[0]

    def test_shock_without_sepsis(self):
        """Test septic shock needs sepsis documented."""
        errors, _ = validate_context(parse("Septic Shock: Yes"))
        assert errors == [
            "HARD STOP: Septic shock selected but sepsis not documented. "
            "Sepsis = Yes is REQUIRED for septic shock."
        ]

    def test_sepsis_documentation_warnings(self):
        """Test sepsis without a site only warns; the organism is left to the guideline."""
        errors, warnings = validate_context(PatientContext(sepsis=SepsisContext(present=True)))
        assert errors == []
        assert len(warnings) == 1
        assert warnings[0].startswith("Sepsis documented without an infection site")

    def test_injury_without_encounter_or_type(self):
        """Test injury needs an encounter type and an injury type."""
        errors, _ = validate_context(parse("Injury: Yes"))
        assert len(errors) == 2
        assert all(error.startswith("HARD STOP: Injury selected") for error in errors)

    def test_metastasis_without_sites(self):
        """Test metastasis needs a primary and a metastatic site."""
        errors, _ = validate_context(PatientContext(neoplasm=NeoplasmContext(metastasis=True)))
        assert len(errors) == 2

    def test_cancer_history_needs_no_site(self):
        """Test a history-only cancer has no hard stop."""
        errors, _ = validate_context(PatientContext(neoplasm=NeoplasmContext(history=True)))
        assert errors == []

    def test_pregnancy_checks(self):
        """Test pregnancy needs timing and conflicts with male gender."""
        errors, _ = validate_context(parse("Gender: Male\nPregnancy: Yes"))
        assert len(errors) == 2
        assert errors[1] == "CONFLICT: Pregnancy documented but patient gender is Male. Verify documentation."
        errors, _ = validate_context(PatientContext(pregnancy=PregnancyContext(trimester=2)))
        assert errors == []


# ============================================================================
# Concept Mapping Tests
# ============================================================================


class TestContextToConcepts:
    """Test the structured context maps onto shared concepts."""

    def test_diabetes_and_ckd(self):
        """Test diabetes complications and CKD stage carry through."""
        context = parse(
            "Diabetes Type: 2\nDiabetes Complications: CKD, neuropathy\n"
            "CKD Stage: 5\nDialysis: Chronic\nInsulin: yes"
        )
        concepts = context_to_concepts(context)
        assert [concept.type for concept in concepts] == [ConceptType.DIABETES, ConceptType.CKD]
        diabetes = concepts[0].attributes
        assert diabetes.diabetes_type == DiabetesType.TYPE_2
        assert diabetes.nephropathy is True
        assert diabetes.neuropathy == NeuropathyType.UNSPECIFIED
        assert diabetes.insulin_use is True
        ckd = concepts[1].attributes
        assert ckd.stage == CkdStage.STAGE_5
        assert ckd.dialysis == DialysisStatus.CHRONIC

    def test_sepsis_requires_presence(self):
        """Test a sepsis section without Sepsis = Yes builds no concept."""
        concepts = context_to_concepts(PatientContext(sepsis=SepsisContext(present=False)))
        assert concepts == ()

    def test_shock_implies_severe(self):
        """Test septic shock marks the sepsis concept severe."""
        concepts = context_to_concepts(parse("Sepsis: Yes\nSeptic Shock: Yes"))
        sepsis = find_concept(concepts, ConceptType.SEPSIS).attributes
        assert sepsis.shock is True
        assert sepsis.severe is True

    def test_gestational_age_sets_trimester(self):
        """Test a gestational age implies its trimester."""
        concepts = context_to_concepts(parse("Pregnancy: Yes\nGestational Age: 30"))
        pregnancy = find_concept(concepts, ConceptType.PREGNANCY).attributes
        assert pregnancy.trimester == 3
        assert pregnancy.gestational_weeks == 30

    def test_neoplasm_history(self):
        """Test a history-only cancer maps to a history neoplasm."""
        concepts = context_to_concepts(parse("Cancer Site: breast\nHistory of Cancer: Yes"))
        neoplasm = find_concept(concepts, ConceptType.NEOPLASM).attributes
        assert neoplasm.primary_site == "breast"
        assert neoplasm.history is True
        assert neoplasm.secondary is False

    def test_injury_fall(self):
        """Test an external cause mentioning a fall flags the fall."""
        concepts = context_to_concepts(
            parse("Injury Type: Fracture\nInjury Site: hip\nExternal Cause: fall from bed\nEncounter: initial")
        )
        injury = find_concept(concepts, ConceptType.INJURY).attributes
        assert injury.kind == InjuryKind.FRACTURE
        assert injury.fall is True
        assert injury.episode == Episode.INITIAL

    def test_empty_context(self):
        """Test an empty context yields no concepts."""
        assert context_to_concepts(PatientContext()) == ()
