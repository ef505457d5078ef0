"""Sepsis sequencing: the systemic infection precedes severe sepsis codes."""

from icd_encoder.schemas.base import ConceptType
from icd_encoder.services import code_tables as tables
from icd_encoder.services.catalog import Catalog
from icd_encoder.services.concepts import SepsisAttributes
from icd_encoder.services.guidelines.state import GuidelineState


def apply_sepsis_rules(state: GuidelineState, catalog: Catalog) -> GuidelineState:
    concept = state.concept(ConceptType.SEPSIS)
    if concept is None:
        return state
    attrs: SepsisAttributes = concept.attributes  # type: ignore[assignment]

    if state.has(tables.SEPTIC_SHOCK) and state.has(tables.SEVERE_SEPSIS):
        state = state.remove(tables.SEVERE_SEPSIS).warn(
            f"Removed {tables.SEVERE_SEPSIS} because septic shock ({tables.SEPTIC_SHOCK}) is coded."
        )
    if attrs.organism is None:
        state = state.warn(
            f"Sepsis organism not documented; assigned {tables.SEPSIS_UNSPECIFIED} (sepsis, unspecified organism)."
        )

    systemic = state.codes_matching(tables.SYSTEMIC_INFECTION_PATTERN)
    severe = state.codes_matching(tables.SEVERE_SEPSIS_PATTERN)
    return state.hint(*systemic, *severe)
