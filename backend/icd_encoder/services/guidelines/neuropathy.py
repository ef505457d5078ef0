"""Neuropathy refinement: diabetic neuropathy codes replace generic ones."""

from icd_encoder.schemas.base import ConceptType
from icd_encoder.services import code_tables as tables
from icd_encoder.services.candidates import candidate
from icd_encoder.services.catalog import Catalog
from icd_encoder.services.concepts import DiabetesAttributes, NeuropathyAttributes
from icd_encoder.services.guidelines.state import GuidelineState


def apply_neuropathy_rules(state: GuidelineState, catalog: Catalog) -> GuidelineState:
    diabetes = state.concept(ConceptType.DIABETES)
    if diabetes is not None:
        attrs: DiabetesAttributes = diabetes.attributes  # type: ignore[assignment]
        generic = state.codes_matching(tables.GENERIC_NEUROPATHY_PATTERN)
        if not generic:
            return state
        if attrs.neuropathy is not None or attrs.charcot_joint:
            return state.remove(*generic).warn(
                f"Removed generic neuropathy code(s) {', '.join(generic)}; "
                "diabetic neuropathy is coded with the diabetes combination code."
            )
        if not state.codes_matching(tables.DIABETIC_NEUROPATHY_PATTERN):
            return state.warn("Neuropathy described with diabetes; consider diabetic neuropathy codes.")
        return state

    concept = state.concept(ConceptType.NEUROPATHY)
    if concept is None:
        return state
    neuropathy: NeuropathyAttributes = concept.attributes  # type: ignore[assignment]
    code = tables.NEUROPATHY_SITE_CODES[neuropathy.site]
    if state.has(code):
        return state
    return state.add(candidate(code, f"{neuropathy.site.value.capitalize()} neuropathy", 7, [concept]))
