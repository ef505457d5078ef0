"""Injury episode characters and external cause requirement."""

import logging

from icd_encoder.schemas.base import ConceptType, Episode
from icd_encoder.services import code_tables as tables
from icd_encoder.services.candidates import candidate
from icd_encoder.services.catalog import Catalog
from icd_encoder.services.concepts import InjuryAttributes
from icd_encoder.services.guidelines.state import GuidelineState

logger = logging.getLogger(__name__)


def _needs_seventh_character(code: str, catalog: Catalog) -> bool:
    if not tables.INJURY_CODE_SHAPE.match(code):
        return False
    entry = catalog.get_code(code)
    return entry is None or not entry.billable


def apply_injury_rules(state: GuidelineState, catalog: Catalog) -> GuidelineState:
    """Attach the episode character and require an external cause code.

    The 7th character is only attached to codes shaped like trauma or
    obstetric codes (``S72.001``) that are not already complete billable
    codes, never to unrelated candidates.

    Args:
        state: Current guideline state.
        catalog: Reference catalog used to tell complete codes from headers.

    Returns:
        Updated state.
    """
    concept = state.concept(ConceptType.INJURY)
    if concept is None:
        return state
    attrs: InjuryAttributes = concept.attributes  # type: ignore[assignment]
    episode = attrs.episode
    if episode is None:
        episode = Episode.INITIAL
        state = state.warn("Injury episode of care not documented; defaulting to initial encounter (A).")

    for code in state.candidates.codes():
        if not _needs_seventh_character(code, catalog):
            continue
        original = state.candidates.get(code)
        extended = tables.with_seventh_character(code, episode)
        logger.debug(f"Attaching episode character: {code} -> {extended}")
        state = state.remove(code).add(
            candidate(
                extended,
                original.reason,
                original.base_score,
                original.concept_refs,
                rule=original.guideline_rule_id,
            )
        )

    if not state.codes_matching(tables.EXTERNAL_CAUSE_PATTERN):
        state = state.add(
            candidate(
                tables.fall_code(episode),
                "External cause required with injury; defaulted to unspecified fall",
                5,
                [concept],
                rule="injury_external_cause",
            )
        ).warn(f"Injury requires external cause code; added {tables.fall_code(episode)}.")
    return state
