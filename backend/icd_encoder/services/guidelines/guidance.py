"""Catalog-driven includes / code-first / use-additional / code-also guidance.

Each candidate's pre-parsed note links are checked against the candidate
set. A link is satisfied when any code in the same category as one of its
targets is present. An unsatisfied link naming exactly one billable code has
that code added; anything else is reported for manual selection.
"""

import logging

from icd_encoder.schemas.base import LinkRelation
from icd_encoder.services.candidates import candidate
from icd_encoder.services.catalog import Catalog, CodeLink
from icd_encoder.services.guidelines.state import GuidelineState

logger = logging.getLogger(__name__)

RULE_ID = "icd_guidance"

# Added codes can carry guidance of their own
MAX_PASSES = 5

_RELATION_LABELS = {
    LinkRelation.INCLUDES: "includes",
    LinkRelation.CODE_FIRST: "code first",
    LinkRelation.USE_ADDITIONAL: "use additional code",
    LinkRelation.CODE_ALSO: "code also",
}


def _is_satisfied(link: CodeLink, roots: set[str]) -> bool:
    return any(target[:3] in roots for target in link.targets)


def _single_pass(state: GuidelineState, catalog: Catalog) -> GuidelineState:
    roots = {code[:3] for code in state.candidates.codes()}
    seen: set[tuple[LinkRelation, tuple[str, ...]]] = set()
    for source in list(state.candidates):
        for link in catalog.guidance_links(source.code):
            key = (link.relation, link.targets)
            if key in seen:
                continue
            seen.add(key)
            if _is_satisfied(link, roots):
                continue

            if len(link.targets) == 1:
                entry = catalog.get_code(link.targets[0])
                if entry is not None and entry.billable:
                    state = state.add(
                        candidate(
                            entry.code,
                            f"{entry.description} ({_RELATION_LABELS[link.relation]} for {source.code})",
                            max(4.0, source.base_score - 1),
                            source.concept_refs,
                            rule=RULE_ID,
                        )
                    ).warn(f"{source.code} requires additional code {entry.code}; added per ICD guidance.")
                    roots.add(entry.code[:3])
                    logger.debug(f"Guidance added {entry.code} for {source.code}")
                    continue

            state = state.warn(
                f"{source.code} has '{_RELATION_LABELS[link.relation]}' guidance naming "
                f"{', '.join(link.targets)}; select the applicable code manually."
            )
    return state


def apply_guidance_rules(state: GuidelineState, catalog: Catalog) -> GuidelineState:
    """Apply catalog note guidance until no further code is added.

    Args:
        state: Current guideline state.
        catalog: Reference catalog providing the parsed note links.

    Returns:
        Updated state.
    """
    for _ in range(MAX_PASSES):
        updated = _single_pass(state, catalog)
        if updated.candidates == state.candidates:
            return updated
        state = updated
    return state
