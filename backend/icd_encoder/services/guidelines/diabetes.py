"""Diabetes combination coding.

Selects the primary diabetic manifestation by strict precedence, keeps one
code for every other documented complication, and removes diabetes codes
that belong to no documented complication (including the "without
complications" code once any complication is known).
"""

import logging
import re

from icd_encoder.schemas.base import ConceptType
from icd_encoder.services import code_tables as tables
from icd_encoder.services.candidates import candidate
from icd_encoder.services.catalog import Catalog
from icd_encoder.services.concepts import CkdAttributes, DiabetesAttributes
from icd_encoder.services.guidelines.state import GuidelineState

logger = logging.getLogger(__name__)

RULE_PRIMARY = "diabetes_primary_manifestation"
RULE_ADDITIONAL = "diabetes_additional_manifestation"

PRIMARY_SCORE = 11
ADDITIONAL_SCORE = 9

ATHEROSCLEROSIS_PATTERN = re.compile(r"^I70\.")
RETINAL_DISORDER_PATTERN = re.compile(r"^H3[56]\.")


def apply_diabetes_rules(state: GuidelineState, catalog: Catalog) -> GuidelineState:
    """Apply diabetes primary-manifestation selection.

    Args:
        state: Current guideline state.
        catalog: Reference catalog (unused; modules share one signature).

    Returns:
        Updated state.
    """
    concept = state.concept(ConceptType.DIABETES)
    if concept is None:
        return state
    attrs: DiabetesAttributes = concept.attributes  # type: ignore[assignment]
    prefix = tables.diabetes_prefix(attrs.diabetes_type)
    ckd = state.concept(ConceptType.CKD)

    if attrs.diabetes_type is None:
        state = state.warn(
            "Diabetes type not documented; defaulting to type 2 diabetes mellitus (E11) per ICD-10-CM guidelines."
        )
    if attrs.hyperosmolarity and prefix == "E10":
        state = state.warn(
            "Type 1 diabetes mellitus has no hyperosmolarity subcategory (E10.0-); "
            "hyperosmolar state not coded. Clarify diabetes type."
        )

    complications = tables.diabetes_complication_codes(prefix, attrs, has_ckd=ckd is not None)
    if complications:
        primary_code, primary_reason = complications[0]
    else:
        primary_code, primary_reason = f"{prefix}.9", "Diabetes mellitus without complications"
    keep = {primary_code} | {code for code, _ in complications}

    purged = [
        code
        for code in state.codes_matching(tables.DIABETES_CODE_PATTERN)
        if code not in keep
    ]
    if purged:
        logger.debug(f"Purging diabetes candidates outside the documented complications: {purged}")
        state = state.remove(*purged)

    refs = [concept] + ([ckd] if ckd is not None and primary_code.endswith(".22") else [])
    state = state.add(candidate(primary_code, primary_reason, PRIMARY_SCORE, refs, rule=RULE_PRIMARY))
    for code, reason in complications[1:]:
        state = state.add(candidate(code, reason, ADDITIONAL_SCORE, [concept], rule=RULE_ADDITIONAL))
    state = state.hint(primary_code)

    if attrs.hypoglycemia:
        hypoglycemia_code = f"{prefix}.641" if attrs.with_coma else f"{prefix}.649"
        message = f"Hypoglycemia documented with diabetes; coded as diabetic hypoglycemia ({hypoglycemia_code})."
        if not attrs.with_coma:
            message += " Confirm whether coma was present."
        state = state.warn(message)

    if attrs.foot_ulcer:
        ulcer = tables.lower_limb_ulcer_code(attrs.ulcer_site, attrs.laterality, attrs.ulcer_depth)
        state = state.add(candidate(ulcer, "Site and depth of diabetic foot ulcer", 7, [concept], rule=RULE_ADDITIONAL))

    if attrs.peripheral_angiopathy or attrs.gangrene:
        atherosclerosis = state.codes_matching(ATHEROSCLEROSIS_PATTERN)
        if atherosclerosis:
            state = state.remove(*atherosclerosis).warn(
                f"Removed {', '.join(atherosclerosis)} because diabetic peripheral angiopathy is coded "
                f"with the diabetes combination code."
            )

    if attrs.retinopathy is not None:
        retinal = state.codes_matching(RETINAL_DISORDER_PATTERN)
        if retinal:
            state = state.remove(*retinal).warn(
                f"Removed {', '.join(retinal)} because diabetic retinopathy is coded with the diabetes combination code."
            )

    if ckd is not None:
        ckd_attrs: CkdAttributes = ckd.attributes  # type: ignore[assignment]
        stage = tables.effective_ckd_stage(ckd_attrs.stage, ckd_attrs.dialysis)
        state = state.add(
            candidate(
                tables.ckd_stage_code(stage),
                "CKD stage required with diabetic chronic kidney disease",
                8 if stage is not None else 4,
                [ckd],
            )
        )

    if attrs.pancreatitis:
        state = state.add(candidate(tables.PANCREATITIS, "Chronic pancreatitis", 6, [concept]))
    if attrs.insulin_use and prefix != "E10":
        state = state.add(candidate(tables.LONG_TERM_INSULIN, "Long-term (current) use of insulin", 5, [concept]))
    return state
