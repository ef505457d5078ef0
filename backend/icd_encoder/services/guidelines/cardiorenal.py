"""Hypertension, heart failure and CKD combination hierarchy.

I13.- (hypertension + heart failure + CKD) supersedes I12.- (hypertension +
CKD) and I11.0 (hypertension + heart failure), and every combination
supersedes I10. Heart failure type and CKD stage are still coded separately.
"""

import logging
import re

from icd_encoder.schemas.base import ConceptType
from icd_encoder.services import code_tables as tables
from icd_encoder.services.candidates import candidate
from icd_encoder.services.catalog import Catalog
from icd_encoder.services.concepts import CkdAttributes, HeartFailureAttributes
from icd_encoder.services.guidelines.state import GuidelineState

logger = logging.getLogger(__name__)

HYPERTENSIVE_HEART_PATTERN = re.compile(r"^I11\.")
HYPERTENSIVE_CKD_PATTERN = re.compile(r"^I12\.")
HYPERTENSIVE_HEART_CKD_PATTERN = re.compile(r"^I13\.")


def _drop(state: GuidelineState, codes: list[str], winner: str) -> GuidelineState:
    codes = [code for code in codes if code != winner and state.has(code)]
    if not codes:
        return state
    return state.remove(*codes).warn(
        f"Removed {', '.join(codes)} because combination code {winner} captures hypertension with its complications."
    )


def apply_cardiorenal_rules(state: GuidelineState, catalog: Catalog) -> GuidelineState:
    """Select the single hypertensive combination code.

    Args:
        state: Current guideline state.
        catalog: Reference catalog (unused).

    Returns:
        Updated state.
    """
    hypertension = state.concept(ConceptType.HYPERTENSION)
    if hypertension is None:
        return state
    heart_failure = state.concept(ConceptType.HEART_FAILURE)
    ckd = state.concept(ConceptType.CKD)
    if heart_failure is None and ckd is None:
        return state

    stage = None
    if ckd is not None:
        ckd_attrs: CkdAttributes = ckd.attributes  # type: ignore[assignment]
        stage = tables.effective_ckd_stage(ckd_attrs.stage, ckd_attrs.dialysis)
    end_stage = stage is not None and stage.is_end_stage

    if heart_failure is not None and ckd is not None:
        winner = (
            tables.HYPERTENSIVE_HEART_CKD_HF_END_STAGE if end_stage else tables.HYPERTENSIVE_HEART_CKD_HF
        )
        hf_attrs: HeartFailureAttributes = heart_failure.attributes  # type: ignore[assignment]
        state = state.add(
            candidate(
                winner,
                "Hypertensive heart and chronic kidney disease with heart failure"
                + (" and stage 5 CKD or ESRD" if end_stage else " and stage 1-4 CKD"),
                10,
                [hypertension, heart_failure, ckd],
                rule="hypertensive_heart_ckd",
            ),
            candidate(
                tables.heart_failure_code(hf_attrs.heart_failure_type, hf_attrs.acuity),
                "Heart failure type required with hypertensive heart and CKD",
                8,
                [heart_failure],
            ),
            candidate(
                tables.ckd_stage_code(stage),
                "CKD stage required with hypertensive heart and CKD",
                8 if stage is not None else 4,
                [ckd],
            ),
        )
        superseded = (
            [tables.ESSENTIAL_HYPERTENSION]
            + state.codes_matching(HYPERTENSIVE_HEART_PATTERN)
            + state.codes_matching(HYPERTENSIVE_CKD_PATTERN)
            + state.codes_matching(HYPERTENSIVE_HEART_CKD_PATTERN)
        )
        return _drop(state, superseded, winner)

    if ckd is not None:
        winner = tables.HYPERTENSIVE_CKD_END_STAGE if end_stage else tables.HYPERTENSIVE_CKD
        state = state.add(
            candidate(
                winner,
                "Hypertensive chronic kidney disease"
                + (" with stage 5 CKD or ESRD" if end_stage else " with stage 1-4 CKD"),
                9,
                [hypertension, ckd],
                rule="hypertensive_ckd",
            )
        )
        superseded = [tables.ESSENTIAL_HYPERTENSION] + state.codes_matching(HYPERTENSIVE_CKD_PATTERN)
        return _drop(state, superseded, winner)

    winner = tables.HYPERTENSIVE_HEART_WITH_HF
    state = state.add(
        candidate(
            winner,
            "Hypertensive heart disease with heart failure",
            9,
            [hypertension, heart_failure],
            rule="hypertensive_heart_failure",
        )
    )
    return _drop(state, [tables.ESSENTIAL_HYPERTENSION], winner)
