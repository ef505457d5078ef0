"""Deterministic sequencing of surviving candidates.

Order: reorder hints from the guideline modules in emission order, then the
remaining candidates by base score plus a category bonus (hypertensive
combinations, diabetes combinations, staged CKD) minus a penalty for
unspecified codes, ties broken by code.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from icd_encoder.core.config import settings
from icd_encoder.services import code_tables as tables
from icd_encoder.services.candidates import CandidateCode, CandidateSet
from icd_encoder.services.catalog import Catalog

logger = logging.getLogger(__name__)

CARDIO_COMBINATION_BONUS = 1.5
DIABETES_COMBINATION_BONUS = 1.25
STAGED_CKD_BONUS = 0.75
UNSPECIFIED_PENALTY = 0.5

_CARDIO_COMBINATION_PREFIXES = ("I11", "I12", "I13")


@dataclass(frozen=True)
class SequencedCode:
    """One element of the final ordered code list."""

    code: str
    description: str
    reason: str
    order: int
    confidence: float
    guideline_rule_id: str | None = None
    base_score: float = 0.0


def confidence_for(base_score: float) -> float:
    """Map a base score onto (0, 0.99]."""
    return min(0.99, max(0.1, round(base_score / 10, 2)))


def category_bonus(code: str) -> float:
    if code.startswith(_CARDIO_COMBINATION_PREFIXES):
        return CARDIO_COMBINATION_BONUS
    if tables.DIABETES_COMBINATION_PATTERN.match(code):
        return DIABETES_COMBINATION_BONUS
    if tables.STAGED_CKD_PATTERN.match(code):
        return STAGED_CKD_BONUS
    return 0.0


def rank_score(item: CandidateCode, catalog: Catalog) -> float:
    """Base score plus category bonus, minus the unspecified penalty."""
    score = item.base_score + category_bonus(item.code)
    description = catalog.describe(item.code, default="")
    if item.code.endswith(".9") or "unspecified" in description.lower():
        score -= UNSPECIFIED_PENALTY
    return score


def sequence_candidates(
    candidates: CandidateSet,
    reorder_hints: Iterable[str],
    catalog: Catalog,
    max_codes: int | None = None,
    min_score: float | None = None,
) -> list[SequencedCode]:
    """Produce the ordered output list.

    Args:
        candidates: Surviving candidates.
        reorder_hints: Codes to place first, in emission order.
        catalog: Reference catalog for descriptions.
        max_codes: Output limit (defaults to settings.max_output_codes).
        min_score: Minimum base score for unhinted codes
            (defaults to settings.min_candidate_score).

    Returns:
        Codes with dense ``order`` starting at 1.
    """
    max_codes = settings.max_output_codes if max_codes is None else max_codes
    min_score = settings.min_candidate_score if min_score is None else min_score

    hinted: list[CandidateCode] = []
    for code in dict.fromkeys(reorder_hints):
        item = candidates.get(code)
        if item is not None:
            hinted.append(item)
    hinted_codes = {item.code for item in hinted}

    rest = [item for item in candidates if item.code not in hinted_codes]
    dropped = [item.code for item in rest if item.base_score < min_score]
    if dropped:
        logger.debug(f"Dropping low-scoring candidates: {dropped}")
    rest = [item for item in rest if item.base_score >= min_score]
    rest.sort(key=lambda item: (-rank_score(item, catalog), item.code))

    ordered = (hinted + rest)[:max_codes]
    return [
        SequencedCode(
            code=item.code,
            description=catalog.describe(item.code),
            reason=item.reason,
            order=position,
            confidence=confidence_for(item.base_score),
            guideline_rule_id=item.guideline_rule_id,
            base_score=item.base_score,
        )
        for position, item in enumerate(ordered, start=1)
    ]
