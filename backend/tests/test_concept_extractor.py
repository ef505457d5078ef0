"""Tests for rule-based concept extraction.

Tests each domain's triggers, attributes and negation handling.
"""

import pytest

from icd_encoder.schemas.base import (
    Acuity,
    CkdStage,
    ConceptType,
    DiabetesType,
    DialysisStatus,
    EncephalopathyType,
    Episode,
    HeartFailureType,
    InjuryKind,
    Laterality,
    NeuropathyType,
    Organism,
    PregnancyComplication,
    UlcerDepth,
    UlcerSite,
)
from icd_encoder.services.concept_extractor import (
    detect_infection_site,
    detect_laterality,
    detect_organism,
    extract_concepts,
    is_negated,
    site_name,
)
from icd_encoder.services.concepts import Concept, DiabetesAttributes, find_concept
from icd_encoder.services.normalizer import normalize_text


def extract(text: str) -> tuple[Concept, ...]:
    return extract_concepts(normalize_text(text))


def attributes(text: str, concept_type: ConceptType):
    concept = find_concept(extract(text), concept_type)
    assert concept is not None, f"{concept_type.value} not extracted from {text!r}"
    return concept.attributes


# ============================================================================
# General Tests
# ============================================================================


class TestExtraction:
    """Test the extraction entry point."""

    def test_empty_text(self):
        """Test empty text yields no concepts."""
        assert extract_concepts("") == ()

    def test_concept_type_order(self):
        """Test concepts come back in concept-type order."""
        concepts = extract("COPD and hypertension with type 2 diabetes")
        types = [concept.type for concept in concepts]
        assert types == [ConceptType.DIABETES, ConceptType.HYPERTENSION, ConceptType.COPD]

    def test_one_concept_per_type(self):
        """Test repeated mentions aggregate into one concept."""
        concepts = extract("Diabetes. Diabetic nephropathy. Diabetic retinopathy.")
        assert [c.type for c in concepts].count(ConceptType.DIABETES) == 1

    def test_wrong_attribute_class_rejected(self):
        """Test a concept refuses attributes of another type."""
        with pytest.raises(TypeError):
            Concept("ckd", "ckd", ConceptType.CKD, DiabetesAttributes())

    def test_deterministic(self):
        """Test extraction is a pure function of the text."""
        text = normalize_text("HTN with acute on chronic systolic CHF and CKD stage 3b")
        assert extract_concepts(text) == extract_concepts(text)


# ============================================================================
# Negation Tests
# ============================================================================


class TestNegation:
    """Test negated mentions are ignored."""

    def test_negated_mention(self):
        """Test 'no' before a mention negates it."""
        text = "patient has no diabetes"
        assert is_negated(text, text.index("diabetes"))

    def test_negation_stops_at_clause_break(self):
        """Test negation does not cross punctuation."""
        text = "no fever. diabetes"
        assert not is_negated(text, text.index("diabetes"))

    def test_negated_condition_not_extracted(self):
        """Test a denied condition produces no concept."""
        assert find_concept(extract("Patient denies hypertension"), ConceptType.HYPERTENSION) is None

    def test_negation_window(self):
        """Test distant negation words do not apply."""
        text = "no fever today but has a long history of diabetes"
        assert not is_negated(text, text.index("diabetes"))


# ============================================================================
# Diabetes Tests
# ============================================================================


class TestDiabetes:
    """Test diabetes type and complication detection."""

    def test_type_2(self):
        """Test type 2 diabetes."""
        assert attributes("Type 2 DM", ConceptType.DIABETES).diabetes_type == DiabetesType.TYPE_2

    def test_type_1(self):
        """Test type 1 diabetes."""
        assert attributes("type 1 diabetes", ConceptType.DIABETES).diabetes_type == DiabetesType.TYPE_1

    def test_type_not_documented(self):
        """Test undocumented type stays None."""
        assert attributes("diabetes mellitus", ConceptType.DIABETES).diabetes_type is None

    def test_drug_induced(self):
        """Test steroid-induced diabetes."""
        attrs = attributes("steroid-induced diabetes", ConceptType.DIABETES)
        assert attrs.diabetes_type == DiabetesType.DRUG_INDUCED

    def test_gestational_diabetes_is_not_diabetes(self):
        """Test gestational diabetes is left to pregnancy."""
        concepts = extract("gestational diabetes at 30 weeks gestation")
        assert find_concept(concepts, ConceptType.DIABETES) is None
        pregnancy = find_concept(concepts, ConceptType.PREGNANCY)
        assert PregnancyComplication.GESTATIONAL_DIABETES in pregnancy.attributes.complications

    def test_diabetes_insipidus_ignored(self):
        """Test diabetes insipidus is not diabetes mellitus."""
        assert find_concept(extract("diabetes insipidus"), ConceptType.DIABETES) is None

    def test_complications(self):
        """Test several complications aggregate."""
        attrs = attributes(
            "Type 2 diabetes with peripheral neuropathy, uncontrolled, with hypoglycemia",
            ConceptType.DIABETES,
        )
        assert attrs.neuropathy == NeuropathyType.POLYNEUROPATHY
        assert attrs.uncontrolled
        assert attrs.hypoglycemia
        assert attrs.has_complication

    def test_no_complication(self):
        """Test plain diabetes has no complication."""
        assert not attributes("type 2 diabetes", ConceptType.DIABETES).has_complication

    def test_foot_ulcer_details(self):
        """Test ulcer site, side and depth come from the ulcer clause."""
        attrs = attributes(
            "Type 2 diabetes. Diabetic ulcer of the left heel with fat layer exposed.",
            ConceptType.DIABETES,
        )
        assert attrs.foot_ulcer
        assert attrs.ulcer_site == UlcerSite.HEEL
        assert attrs.laterality == Laterality.LEFT
        assert attrs.ulcer_depth == UlcerDepth.FAT

    def test_insulin_use(self):
        """Test long-term insulin use."""
        assert attributes("type 2 diabetes on insulin", ConceptType.DIABETES).insulin_use

    def test_neuropathy_not_separate_with_diabetes(self):
        """Test neuropathy with diabetes is a diabetic complication."""
        concepts = extract("diabetes with neuropathy")
        assert find_concept(concepts, ConceptType.NEUROPATHY) is None
        assert find_concept(concepts, ConceptType.DIABETES).attributes.neuropathy == NeuropathyType.UNSPECIFIED


# ============================================================================
# Kidney Tests
# ============================================================================


class TestKidney:
    """Test CKD stage, dialysis and AKI detection."""

    @pytest.mark.parametrize(
        "text,stage",
        [
            ("CKD stage 4", CkdStage.STAGE_4),
            ("chronic kidney disease stage IV", CkdStage.STAGE_4),
            ("CKD 3b", CkdStage.STAGE_3B),
            ("stage 2 chronic kidney disease", CkdStage.STAGE_2),
            ("ESRD", CkdStage.ESRD),
        ],
    )
    def test_stage(self, text, stage):
        """Test stage detection across phrasings."""
        assert attributes(text, ConceptType.CKD).stage == stage

    def test_substage_only_for_stage_3(self):
        """Test a letter after other stages is dropped."""
        assert attributes("CKD stage 4a", ConceptType.CKD).stage == CkdStage.STAGE_4

    def test_unstaged(self):
        """Test CKD without a stage."""
        assert attributes("chronic kidney disease", ConceptType.CKD).stage is None

    def test_chronic_dialysis(self):
        """Test chronic dialysis."""
        assert attributes("ESRD on hemodialysis", ConceptType.CKD).dialysis == DialysisStatus.CHRONIC

    def test_no_dialysis(self):
        """Test explicitly negated dialysis."""
        assert attributes("CKD stage 5, not on dialysis", ConceptType.CKD).dialysis == DialysisStatus.NONE

    def test_temporary_dialysis(self):
        """Test temporary dialysis."""
        attrs = attributes("CKD stage 4 with temporary dialysis", ConceptType.CKD)
        assert attrs.dialysis == DialysisStatus.TEMPORARY

    def test_aki(self):
        """Test acute kidney injury."""
        assert find_concept(extract("AKI"), ConceptType.ACUTE_KIDNEY_INJURY) is not None


# ============================================================================
# Cardiovascular Tests
# ============================================================================


class TestCardiovascular:
    """Test hypertension and heart failure detection."""

    def test_pulmonary_hypertension_excluded(self):
        """Test pulmonary hypertension is not essential hypertension."""
        assert find_concept(extract("pulmonary hypertension"), ConceptType.HYPERTENSION) is None

    def test_heart_failure_type_and_acuity(self):
        """Test type and acuity."""
        attrs = attributes("acute on chronic diastolic heart failure", ConceptType.HEART_FAILURE)
        assert attrs.heart_failure_type == HeartFailureType.DIASTOLIC
        assert attrs.acuity == Acuity.ACUTE_ON_CHRONIC

    def test_combined_heart_failure(self):
        """Test systolic and diastolic together are combined."""
        attrs = attributes("chronic systolic and diastolic heart failure", ConceptType.HEART_FAILURE)
        assert attrs.heart_failure_type == HeartFailureType.COMBINED
        assert attrs.acuity == Acuity.CHRONIC

    def test_unspecified_heart_failure(self):
        """Test bare heart failure."""
        attrs = attributes("CHF", ConceptType.HEART_FAILURE)
        assert attrs.heart_failure_type == HeartFailureType.UNSPECIFIED
        assert attrs.acuity is None

    def test_blood_pressure_not_heart_failure_type(self):
        """Test 'systolic blood pressure' does not type heart failure."""
        attrs = attributes("heart failure, systolic blood pressure 150", ConceptType.HEART_FAILURE)
        assert attrs.heart_failure_type == HeartFailureType.UNSPECIFIED


# ============================================================================
# Respiratory Tests
# ============================================================================


class TestRespiratory:
    """Test COPD, asthma and pneumonia detection."""

    def test_copd_exacerbation(self):
        """Test COPD with exacerbation."""
        attrs = attributes("COPD with acute exacerbation", ConceptType.COPD)
        assert attrs.acute_exacerbation
        assert not attrs.lower_respiratory_infection

    def test_copd_with_pneumonia(self):
        """Test COPD with organism-specific pneumonia."""
        attrs = attributes("COPD with pseudomonas pneumonia", ConceptType.COPD)
        assert attrs.lower_respiratory_infection
        assert attrs.organism == Organism.PSEUDOMONAS

    def test_status_asthmaticus(self):
        """Test asthma status."""
        attrs = attributes("asthma with status asthmaticus", ConceptType.ASTHMA)
        assert attrs.status_asthmaticus

    def test_pneumonia_organism(self):
        """Test pneumonia organism."""
        attrs = attributes("MRSA pneumonia", ConceptType.PNEUMONIA)
        assert attrs.organism == Organism.MRSA


# ============================================================================
# Neoplasm Tests
# ============================================================================


class TestNeoplasm:
    """Test primary and metastatic site detection."""

    def test_metastatic_with_explicit_primary(self):
        """Test 'metastatic lung cancer from breast primary'."""
        attrs = attributes("metastatic lung cancer from breast primary", ConceptType.NEOPLASM)
        assert attrs.primary_site == "breast"
        assert attrs.metastatic_sites == ("lung",)
        assert attrs.secondary
        assert attrs.laterality is None

    def test_metastasis_list(self):
        """Test sites listed after 'metastatic to'."""
        attrs = attributes("colon cancer metastatic to liver and bone", ConceptType.NEOPLASM)
        assert attrs.primary_site == "colon"
        assert attrs.metastatic_sites == ("liver", "bone")

    def test_laterality(self):
        """Test laterality of a paired organ."""
        attrs = attributes("carcinoma of the left breast", ConceptType.NEOPLASM)
        assert attrs.primary_site == "breast"
        assert attrs.laterality == Laterality.LEFT

    def test_history(self):
        """Test personal history without active disease."""
        attrs = attributes("history of prostate cancer", ConceptType.NEOPLASM)
        assert attrs.history
        assert attrs.primary_site == "prostate"

    def test_site_name(self):
        """Test site term canonicalization."""
        assert site_name("renal cell") == "kidney"
        assert site_name("hepatic") == "liver"
        assert site_name("spleen") is None


# ============================================================================
# Other Domain Tests
# ============================================================================


class TestOtherDomains:
    """Test pregnancy, injury, sepsis and the remaining domains."""

    def test_pregnancy_weeks_give_trimester(self):
        """Test gestational weeks imply the trimester."""
        attrs = attributes("pregnant at 20 weeks gestation", ConceptType.PREGNANCY)
        assert attrs.gestational_weeks == 20
        assert attrs.trimester == 2

    def test_pregnancy_explicit_trimester(self):
        """Test an explicit trimester."""
        assert attributes("third trimester pregnancy", ConceptType.PREGNANCY).trimester == 3

    def test_injury(self):
        """Test injury kind, episode and fall."""
        attrs = attributes("fracture of the hip after a fall, initial encounter", ConceptType.INJURY)
        assert attrs.kind == InjuryKind.FRACTURE
        assert attrs.episode == Episode.INITIAL
        assert attrs.fall
        assert attrs.site == "hip"

    @pytest.mark.parametrize(
        "text",
        ["acute kidney injury", "AKI", "anoxic brain injury", "drug-induced liver injury", "reports no injury"],
    )
    def test_non_traumatic_injury_wording(self, text):
        """Test organ injury wording is not a traumatic injury."""
        assert find_concept(extract(text), ConceptType.INJURY) is None

    def test_aki_kept_without_injury(self):
        """Test acute kidney injury still yields its own concept."""
        concepts = extract("acute kidney injury")
        assert [concept.type for concept in concepts] == [ConceptType.ACUTE_KIDNEY_INJURY]

    def test_bare_injury_with_site(self):
        """Test a bare injury counts when a body site is named."""
        attrs = attributes("injury to the right hand", ConceptType.INJURY)
        assert attrs.kind == InjuryKind.UNSPECIFIED
        assert attrs.site == "hand"

    def test_aki_beside_fracture(self):
        """Test a real injury is still found next to acute kidney injury."""
        concepts = extract("acute kidney injury and fracture of the hip")
        assert find_concept(concepts, ConceptType.INJURY).attributes.kind == InjuryKind.FRACTURE
        assert find_concept(concepts, ConceptType.ACUTE_KIDNEY_INJURY) is not None

    def test_sepsis(self):
        """Test sepsis severity, organism and source."""
        attrs = attributes("septic shock due to E. coli urinary tract infection", ConceptType.SEPSIS)
        assert attrs.shock
        assert attrs.severe
        assert attrs.organism == Organism.E_COLI
        assert attrs.infection_site == "urinary"

    def test_encephalopathy_type(self):
        """Test encephalopathy type."""
        attrs = attributes("metabolic encephalopathy", ConceptType.ENCEPHALOPATHY)
        assert attrs.encephalopathy_type == EncephalopathyType.METABOLIC

    def test_old_mi_not_acute(self):
        """Test a history of MI is not an acute MI."""
        assert find_concept(extract("history of myocardial infarction"), ConceptType.OTHER) is None
        assert attributes("acute MI", ConceptType.OTHER).myocardial_infarction


# ============================================================================
# Detector Tests
# ============================================================================


class TestDetectors:
    """Test shared attribute detectors."""

    def test_organism_specific_first(self):
        """Test MRSA wins over staphylococcus."""
        assert detect_organism("methicillin resistant staphylococcus aureus") == Organism.MRSA

    def test_organism_none(self):
        """Test no organism."""
        assert detect_organism("no organism named") is None

    def test_laterality(self):
        """Test laterality detection."""
        assert detect_laterality("left foot") == Laterality.LEFT
        assert detect_laterality("left and right") == Laterality.BILATERAL
        assert detect_laterality("foot") is None

    def test_infection_site(self):
        """Test infection source detection."""
        assert detect_infection_site("uti") == "urinary"
        assert detect_infection_site("pneumonia") == "lung"
        assert detect_infection_site("cellulitis") == "skin"
        assert detect_infection_site("unknown") is None
