"""Guideline rule engine.

An ordered reducer over pure modules. Each module takes the current
GuidelineState and the Catalog and returns a new state; none of them
mutates its input.
"""

import logging
from collections.abc import Callable, Iterable
from functools import reduce

from icd_encoder.services.candidates import CandidateSet
from icd_encoder.services.catalog import Catalog
from icd_encoder.services.concepts import Concept
from icd_encoder.services.guidelines.cardiorenal import apply_cardiorenal_rules
from icd_encoder.services.guidelines.ckd import apply_ckd_rules
from icd_encoder.services.guidelines.diabetes import apply_diabetes_rules
from icd_encoder.services.guidelines.guidance import apply_guidance_rules
from icd_encoder.services.guidelines.injury import apply_injury_rules
from icd_encoder.services.guidelines.neoplasm import apply_neoplasm_rules
from icd_encoder.services.guidelines.neuropathy import apply_neuropathy_rules
from icd_encoder.services.guidelines.pregnancy import apply_pregnancy_rules
from icd_encoder.services.guidelines.respiratory import apply_respiratory_rules
from icd_encoder.services.guidelines.sepsis import apply_sepsis_rules
from icd_encoder.services.guidelines.state import GuidelineState

logger = logging.getLogger(__name__)

GuidelineModule = Callable[[GuidelineState, Catalog], GuidelineState]

GUIDELINE_MODULES: tuple[tuple[str, GuidelineModule], ...] = (
    ("diabetes", apply_diabetes_rules),
    ("neuropathy", apply_neuropathy_rules),
    ("cardiorenal", apply_cardiorenal_rules),
    ("ckd", apply_ckd_rules),
    ("neoplasm", apply_neoplasm_rules),
    ("pregnancy", apply_pregnancy_rules),
    ("respiratory", apply_respiratory_rules),
    ("guidance", apply_guidance_rules),
    ("injury", apply_injury_rules),
    ("sepsis", apply_sepsis_rules),
)


def run_guideline_pipeline(
    concepts: Iterable[Concept],
    candidates: CandidateSet,
    catalog: Catalog,
) -> GuidelineState:
    """Run every guideline module in order.

    Args:
        concepts: Extracted concepts.
        candidates: Generated candidates.
        catalog: Reference catalog.

    Returns:
        Final guideline state with reorder hints, warnings and errors.
    """

    def step(state: GuidelineState, module: tuple[str, GuidelineModule]) -> GuidelineState:
        name, apply = module
        updated = apply(state, catalog)
        if updated is not state:
            logger.debug(f"Guideline module '{name}': {len(state.candidates)} -> {len(updated.candidates)} candidates")
        return updated

    initial = GuidelineState(concepts=tuple(concepts), candidates=candidates)
    return reduce(step, GUIDELINE_MODULES, initial)


__all__ = [
    "GUIDELINE_MODULES",
    "GuidelineModule",
    "GuidelineState",
    "run_guideline_pipeline",
]
