"""Invariant enforcement on the sequenced code list.

Final corrective pass. Certain codes may only appear when their clinical
precondition was documented, whichever module produced them:

- Z99.2 (dialysis dependence) iff dialysis status is chronic
- N17.x (acute kidney failure) requires acute kidney injury
- Encephalopathy codes require an encephalopathy concept
- R65.20 / R65.21 require documented severe sepsis / septic shock

Every correction is reported and ``order`` is renumbered densely.
"""

import logging
import re
from dataclasses import dataclass, replace

from icd_encoder.schemas.base import ConceptType, DialysisStatus
from icd_encoder.services import code_tables as tables
from icd_encoder.services.catalog import Catalog
from icd_encoder.services.concepts import Concept, SepsisAttributes, find_concept
from icd_encoder.services.sequencer import SequencedCode, confidence_for

logger = logging.getLogger(__name__)

AKI_CODE_PATTERN = re.compile(r"^N17")
DIALYSIS_DEPENDENCE_SCORE = 6


@dataclass(frozen=True)
class InvariantResult:
    """Corrected code list plus the correction messages."""

    codes: list[SequencedCode]
    corrections: list[str]


def _renumber(codes: list[SequencedCode]) -> list[SequencedCode]:
    return [replace(item, order=position) for position, item in enumerate(codes, start=1)]


def enforce_invariants(
    codes: list[SequencedCode],
    concepts: tuple[Concept, ...] | list[Concept],
    catalog: Catalog,
) -> InvariantResult:
    """Correct invariant violations in the final list.

    Args:
        codes: Sequenced codes.
        concepts: Concepts the codes were derived from.
        catalog: Reference catalog for descriptions of added codes.

    Returns:
        InvariantResult with dense ordering and one message per correction.
    """
    corrections: list[str] = []
    kept: list[SequencedCode] = []

    ckd = find_concept(concepts, ConceptType.CKD)
    dialysis = ckd.attributes.dialysis if ckd is not None else None  # type: ignore[union-attr]
    chronic_dialysis = dialysis == DialysisStatus.CHRONIC
    has_aki = find_concept(concepts, ConceptType.ACUTE_KIDNEY_INJURY) is not None
    has_encephalopathy = find_concept(concepts, ConceptType.ENCEPHALOPATHY) is not None
    sepsis = find_concept(concepts, ConceptType.SEPSIS)
    sepsis_attrs: SepsisAttributes | None = sepsis.attributes if sepsis is not None else None  # type: ignore[assignment]

    for item in codes:
        code = item.code
        if code == tables.DIALYSIS_DEPENDENCE and not chronic_dialysis:
            corrections.append("Invariant Violation: Z99.2 removed because Dialysis Status is not Chronic")
            continue
        if AKI_CODE_PATTERN.match(code) and not has_aki:
            corrections.append(f"Invariant Violation: {code} removed because Acute Kidney Injury is not documented")
            continue
        if tables.ENCEPHALOPATHY_CODE_PATTERN.match(code) and not has_encephalopathy:
            corrections.append(f"Invariant Violation: {code} removed because Encephalopathy is not documented")
            continue
        if code == tables.SEPTIC_SHOCK and not (sepsis_attrs and sepsis_attrs.shock):
            corrections.append(f"Invariant Violation: {code} removed because Septic Shock is not documented")
            continue
        if code == tables.SEVERE_SEPSIS and not (sepsis_attrs and (sepsis_attrs.severe or sepsis_attrs.shock)):
            corrections.append(f"Invariant Violation: {code} removed because Severe Sepsis is not documented")
            continue
        kept.append(item)

    if chronic_dialysis and not any(item.code == tables.DIALYSIS_DEPENDENCE for item in kept):
        corrections.append("Invariant Violation: Z99.2 added because Dialysis Status is Chronic")
        kept.append(
            SequencedCode(
                code=tables.DIALYSIS_DEPENDENCE,
                description=catalog.describe(tables.DIALYSIS_DEPENDENCE),
                reason="Dependence on renal dialysis (chronic dialysis documented)",
                order=len(kept) + 1,
                confidence=confidence_for(DIALYSIS_DEPENDENCE_SCORE),
                guideline_rule_id="dialysis_dependence",
                base_score=DIALYSIS_DEPENDENCE_SCORE,
            )
        )

    for message in corrections:
        logger.info(message)
    return InvariantResult(codes=_renumber(kept), corrections=corrections)
