"""COPD, asthma and pneumonia rules."""

import logging
import re

from icd_encoder.schemas.base import ConceptType
from icd_encoder.services import code_tables as tables
from icd_encoder.services.candidates import candidate
from icd_encoder.services.catalog import Catalog
from icd_encoder.services.concepts import AsthmaAttributes, CopdAttributes, PneumoniaAttributes
from icd_encoder.services.guidelines.state import GuidelineState

logger = logging.getLogger(__name__)

ASTHMA_CODE_PATTERN = re.compile(r"^J45\.")


def _copd(state: GuidelineState) -> GuidelineState:
    concept = state.concept(ConceptType.COPD)
    if concept is None:
        return state
    attrs: CopdAttributes = concept.attributes  # type: ignore[assignment]
    pneumonia = state.concept(ConceptType.PNEUMONIA)

    if attrs.lower_respiratory_infection or pneumonia is not None:
        state = state.add(
            candidate(
                tables.COPD_WITH_INFECTION,
                "COPD with acute lower respiratory infection",
                9,
                [concept],
                rule="copd_with_infection",
            )
        )
        organism = attrs.organism
        if organism is None and pneumonia is not None:
            organism = pneumonia.attributes.organism  # type: ignore[union-attr]
        if organism is not None:
            state = state.add(
                candidate(
                    tables.pneumonia_code(organism),
                    f"Pneumonia due to {organism.value} (COPD with infection)",
                    8,
                    [concept],
                )
            )
            if tables.PNEUMONIA_UNSPECIFIED != tables.pneumonia_code(organism):
                state = state.remove(tables.PNEUMONIA_UNSPECIFIED)
        else:
            if not state.codes_matching(tables.PNEUMONIA_CODE_PATTERN):
                state = state.add(
                    candidate(tables.PNEUMONIA_UNSPECIFIED, "Pneumonia, unspecified organism", 6, [concept])
                )
            state = state.warn(
                "COPD with acute infection requires organism-specific pneumonia code (J12-J18); defaulting to J18.9"
            )
        superseded = [code for code in (tables.COPD_UNSPECIFIED, tables.COPD_WITH_EXACERBATION) if state.has(code)]
        if tables.COPD_WITH_EXACERBATION in superseded:
            state = state.warn(
                "COPD with acute exacerbation (J44.1) removed; COPD with acute lower respiratory infection (J44.0) takes priority."
            )
        state = state.remove(*superseded)
    elif attrs.acute_exacerbation:
        state = state.add(
            candidate(tables.COPD_WITH_EXACERBATION, "COPD with acute exacerbation", 8, [concept])
        ).remove(tables.COPD_UNSPECIFIED)
    else:
        state = state.add(candidate(tables.COPD_UNSPECIFIED, "Chronic obstructive pulmonary disease", 6, [concept]))

    if state.has(tables.ASTHMA_UNSPECIFIED):
        state = state.remove(tables.ASTHMA_UNSPECIFIED).warn(
            "Removed unspecified asthma (J45.909); COPD code takes priority when both are documented."
        )
    return state


def _asthma(state: GuidelineState) -> GuidelineState:
    concept = state.concept(ConceptType.ASTHMA)
    if concept is None:
        return state
    attrs: AsthmaAttributes = concept.attributes  # type: ignore[assignment]
    code = tables.asthma_code(attrs.severity, attrs.exacerbation, attrs.status_asthmaticus)
    if state.concept(ConceptType.COPD) is not None and code == tables.ASTHMA_UNSPECIFIED:
        return state
    others = [other for other in state.codes_matching(ASTHMA_CODE_PATTERN) if other != code]
    return state.add(
        candidate(code, "Asthma by severity and status", 8 if attrs.severity is not None else 6, [concept])
    ).remove(*others)


def _pneumonia(state: GuidelineState) -> GuidelineState:
    concept = state.concept(ConceptType.PNEUMONIA)
    if concept is None:
        return state
    attrs: PneumoniaAttributes = concept.attributes  # type: ignore[assignment]
    if attrs.organism is not None and state.has(tables.PNEUMONIA_UNSPECIFIED):
        return state.remove(tables.PNEUMONIA_UNSPECIFIED)
    return state


def apply_respiratory_rules(state: GuidelineState, catalog: Catalog) -> GuidelineState:
    """Apply COPD infection/exacerbation, asthma and pneumonia rules.

    Args:
        state: Current guideline state.
        catalog: Reference catalog (unused).

    Returns:
        Updated state.
    """
    return _pneumonia(_asthma(_copd(state)))
