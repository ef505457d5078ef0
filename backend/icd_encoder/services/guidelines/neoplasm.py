"""Neoplasm sequencing.

Secondary (metastatic) site codes are sequenced before the primary site
code. An unspecified secondary code is dropped once a site-specific one
exists.
"""

from icd_encoder.schemas.base import ConceptType
from icd_encoder.services import code_tables as tables
from icd_encoder.services.catalog import Catalog
from icd_encoder.services.concepts import NeoplasmAttributes
from icd_encoder.services.guidelines.state import GuidelineState


def apply_neoplasm_rules(state: GuidelineState, catalog: Catalog) -> GuidelineState:
    """Apply neoplasm data checks and secondary-before-primary sequencing.

    Args:
        state: Current guideline state.
        catalog: Reference catalog (unused).

    Returns:
        Updated state.
    """
    concept = state.concept(ConceptType.NEOPLASM)
    if concept is None:
        return state
    attrs: NeoplasmAttributes = concept.attributes  # type: ignore[assignment]
    if attrs.history:
        return state

    if attrs.primary_site is None:
        state = state.warn("Neoplasm documented without a primary site; specify the primary site of malignancy.")
    elif attrs.primary_site in tables.LATERAL_SITES and attrs.laterality is None:
        state = state.warn(
            f"Laterality not documented for {attrs.primary_site} malignancy; coded as unspecified side."
        )

    if attrs.primary_site is not None and attrs.primary_site in attrs.metastatic_sites:
        state = state.error(
            f"Primary site cannot equal metastatic site: {attrs.primary_site}. Clarify documentation."
        )

    secondaries = state.codes_matching(tables.SECONDARY_NEOPLASM_PATTERN)
    specific = [code for code in secondaries if code != tables.SECONDARY_UNSPECIFIED]
    if specific and tables.SECONDARY_UNSPECIFIED in secondaries:
        state = state.remove(tables.SECONDARY_UNSPECIFIED).warn(
            f"Removed {tables.SECONDARY_UNSPECIFIED} because a site-specific secondary neoplasm code is present."
        )
        secondaries = specific

    if not secondaries:
        return state
    ordered = [
        tables.secondary_neoplasm_code(site)
        for site in attrs.metastatic_sites
        if tables.secondary_neoplasm_code(site) in secondaries
    ]
    ordered += [code for code in secondaries if code not in ordered]
    primaries = state.codes_matching(tables.PRIMARY_NEOPLASM_PATTERN)
    return state.hint(*ordered, *primaries)
