"""Pregnancy override: obstetric chapter codes take priority.

Conditions complicating pregnancy are coded from chapter 15 (O codes), so
endocrine and hypertensive candidates are replaced with their obstetric
counterparts and sequenced first.
"""

from icd_encoder.schemas.base import ConceptType, PregnancyComplication
from icd_encoder.services import code_tables as tables
from icd_encoder.services.candidates import candidate
from icd_encoder.services.catalog import Catalog
from icd_encoder.services.concepts import DiabetesAttributes, PregnancyAttributes
from icd_encoder.services.guidelines.state import GuidelineState

RULE_ID = "pregnancy_override"


def apply_pregnancy_rules(state: GuidelineState, catalog: Catalog) -> GuidelineState:
    concept = state.concept(ConceptType.PREGNANCY)
    if concept is None:
        return state
    attrs: PregnancyAttributes = concept.attributes  # type: ignore[assignment]

    diabetes = state.concept(ConceptType.DIABETES)
    if diabetes is not None and PregnancyComplication.GESTATIONAL_DIABETES not in attrs.complications:
        dm: DiabetesAttributes = diabetes.attributes  # type: ignore[assignment]
        prefix = tables.diabetes_prefix(dm.diabetes_type)
        state = state.add(
            candidate(
                tables.preexisting_diabetes_in_pregnancy_code(prefix, attrs.trimester),
                "Pre-existing diabetes mellitus in pregnancy",
                10,
                [concept, diabetes],
                rule=RULE_ID,
            )
        )
    hypertension = state.concept(ConceptType.HYPERTENSION)
    if hypertension is not None and PregnancyComplication.PREECLAMPSIA not in attrs.complications:
        state = state.add(
            candidate(
                tables.preexisting_hypertension_in_pregnancy_code(attrs.trimester),
                "Pre-existing essential hypertension complicating pregnancy",
                10,
                [concept, hypertension],
                rule=RULE_ID,
            )
        )

    if not state.codes_matching(tables.PREGNANCY_CODE_PATTERN):
        state = state.add(
            candidate(
                tables.pregnancy_unspecified_code(attrs.trimester),
                "Pregnancy related condition, unspecified",
                5,
                [concept],
                rule=RULE_ID,
            )
        ).warn("Pregnancy documented without a specific obstetric condition; coded pregnancy related condition, unspecified.")

    overridden = state.codes_matching(tables.ENDOCRINE_HYPERTENSIVE_PATTERN)
    if overridden:
        state = state.remove(*overridden).warn(
            "Removed endocrine/hypertensive codes because pregnancy codes take priority."
        )
    # Chapter 15 codes are sequenced ahead of everything else
    return state.hint_first(*state.codes_matching(tables.PREGNANCY_CODE_PATTERN))
