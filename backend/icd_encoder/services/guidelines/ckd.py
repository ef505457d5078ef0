"""CKD staging: exactly one N18 code survives."""

from icd_encoder.schemas.base import ConceptType
from icd_encoder.services import code_tables as tables
from icd_encoder.services.candidates import candidate
from icd_encoder.services.catalog import Catalog
from icd_encoder.services.concepts import CkdAttributes
from icd_encoder.services.guidelines.state import GuidelineState


def apply_ckd_rules(state: GuidelineState, catalog: Catalog) -> GuidelineState:
    """Keep the documented stage code and drop every other N18 code.

    Stage 5 on chronic dialysis is coded as end stage renal disease (N18.6).
    Without a documented stage, N18.9 is kept and reported.

    Args:
        state: Current guideline state.
        catalog: Reference catalog (unused).

    Returns:
        Updated state.
    """
    concept = state.concept(ConceptType.CKD)
    if concept is None:
        return state
    attrs: CkdAttributes = concept.attributes  # type: ignore[assignment]
    stage = tables.effective_ckd_stage(attrs.stage, attrs.dialysis)
    code = tables.ckd_stage_code(stage)

    if stage is None:
        state = state.warn("CKD stage not documented; coded N18.9 (unspecified). Document the CKD stage.")
    elif stage != attrs.stage:
        state = state.warn(f"CKD stage 5 with chronic dialysis coded as end stage renal disease ({code}).")
    label = stage.value if stage is not None else "unspecified"
    state = state.add(
        candidate(code, f"Chronic kidney disease, stage {label}", 8 if stage is not None else 4, [concept])
    )

    others = [other for other in state.codes_matching(tables.CKD_CODE_PATTERN) if other != code]
    return state.remove(*others)
