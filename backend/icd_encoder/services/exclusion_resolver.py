"""Exclusion and conflict resolution.

Excludes1 pairs are mutually exclusive: one code survives, chosen by a total
order (specificity, domain priority, base score, code). Excludes2 pairs are
advisory only and never remove a code.
"""

import logging

from icd_encoder.schemas.base import ConceptType, ExclusionKind
from icd_encoder.services import code_tables as tables
from icd_encoder.services.candidates import CandidateCode
from icd_encoder.services.catalog import Catalog
from icd_encoder.services.guidelines.state import GuidelineState

logger = logging.getLogger(__name__)


def specificity(code: str) -> int:
    """Number of code characters, ignoring the dot."""
    return len(code.replace(".", ""))


def survivor_key(item: CandidateCode, diabetes_context: bool) -> tuple:
    """Sort key; the smallest key survives an Excludes1 conflict."""
    domain_priority = 1 if diabetes_context and tables.DIABETES_CODE_PATTERN.match(item.code) else 0
    return (-specificity(item.code), -domain_priority, -item.base_score, item.code)


def resolve_exclusions(state: GuidelineState, catalog: Catalog) -> GuidelineState:
    """Remove the losing code of every Excludes1 pair.

    Pairs are resolved one at a time until no Excludes1 conflict remains.
    Excludes2 pairs only add an advisory warning.

    Args:
        state: State after the guideline modules.
        catalog: Reference catalog providing exclusion relations.

    Returns:
        State without Excludes1 conflicts.
    """
    original = state.candidates
    if not original:
        return state
    diabetes_context = state.concept(ConceptType.DIABETES) is not None

    while True:
        relations = catalog.exclusion_relations(state.candidates.codes())
        conflicts = sorted(
            (r for r in relations if r.kind == ExclusionKind.EXCLUDES1),
            key=lambda r: (r.code, r.excluded_code),
        )
        if not conflicts:
            break
        relation = conflicts[0]
        pair = sorted(
            (state.candidates.get(relation.code), state.candidates.get(relation.excluded_code)),
            key=lambda item: survivor_key(item, diabetes_context),
        )
        winner, loser = pair
        logger.debug(f"Excludes1 conflict {relation.code}/{relation.excluded_code}: keeping {winner.code}")
        state = state.remove(loser.code).warn(
            f"Removed {loser.code} because it conflicts with {winner.code} (Excludes1)."
        )

    for relation in catalog.exclusion_relations(state.candidates.codes()):
        if relation.kind == ExclusionKind.EXCLUDES2:
            state = state.warn(
                f"{relation.code} has Excludes2 guidance with {relation.excluded_code}; "
                "ensure conditions are unrelated if both are coded."
            )

    if not state.candidates:
        best = min(original, key=lambda item: survivor_key(item, diabetes_context))
        logger.info(f"Exclusion resolution emptied the candidate set; retaining {best.code}")
        state = state.add(best)
    return state
