"""Candidate code generation.

Maps concepts, singly and in known combinations, to candidate codes with a
base score and provenance. Suppression of overlapping candidates is left to
the guideline rules; the generator proposes everything the concepts support.
"""

import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field

from icd_encoder.schemas.base import ConceptType, DialysisStatus, Episode, HeartFailureType
from icd_encoder.services import code_tables as tables
from icd_encoder.services.concepts import (
    AsthmaAttributes,
    CkdAttributes,
    Concept,
    CopdAttributes,
    DiabetesAttributes,
    EncephalopathyAttributes,
    HeartFailureAttributes,
    InjuryAttributes,
    NeoplasmAttributes,
    NeuropathyAttributes,
    OtherAttributes,
    PneumoniaAttributes,
    PregnancyAttributes,
    SepsisAttributes,
    find_concept,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Candidate model
# ============================================================================


@dataclass(frozen=True)
class CandidateCode:
    """A proposed code with its reason, score and originating concepts."""

    code: str
    reason: str
    base_score: float
    concept_refs: frozenset[str] = field(default_factory=frozenset)
    guideline_rule_id: str | None = None

    def merge(self, other: "CandidateCode") -> "CandidateCode":
        """Combine two candidates for the same code.

        The higher score wins (ties keep this candidate's reason); provenance
        is the union of both.
        """
        winner = other if other.base_score > self.base_score else self
        return CandidateCode(
            code=self.code,
            reason=winner.reason,
            base_score=winner.base_score,
            concept_refs=self.concept_refs | other.concept_refs,
            guideline_rule_id=winner.guideline_rule_id or self.guideline_rule_id or other.guideline_rule_id,
        )


def candidate(
    code: str,
    reason: str,
    base_score: float,
    refs: Iterable[str | Concept] = (),
    rule: str | None = None,
) -> CandidateCode:
    """Build a candidate; concepts in ``refs`` are recorded by reference."""
    concept_refs = frozenset(ref.ref if isinstance(ref, Concept) else ref for ref in refs)
    return CandidateCode(code, reason, float(base_score), concept_refs, rule)


class CandidateSet:
    """Immutable, insertion-ordered collection of candidates keyed by code.

    Adding a code that is already present merges the two candidates. All
    mutators return a new set. Equality ignores insertion order.
    """

    __slots__ = ("_items",)

    def __init__(self, candidates: Iterable[CandidateCode] = ()) -> None:
        items: dict[str, CandidateCode] = {}
        for item in candidates:
            existing = items.get(item.code)
            items[item.code] = existing.merge(item) if existing else item
        self._items = items

    def __iter__(self) -> Iterator[CandidateCode]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, code: object) -> bool:
        return code in self._items

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CandidateSet):
            return NotImplemented
        return self._items == other._items

    def __hash__(self) -> int:
        return hash(frozenset(self._items.items()))

    def __repr__(self) -> str:
        return f"CandidateSet({list(self._items)})"

    def get(self, code: str) -> CandidateCode | None:
        return self._items.get(code)

    def codes(self) -> list[str]:
        return list(self._items)

    def any_code(self, predicate: Callable[[str], bool]) -> bool:
        return any(predicate(code) for code in self._items)

    def add(self, *candidates: CandidateCode) -> "CandidateSet":
        """New set with the candidates merged in."""
        return CandidateSet([*self._items.values(), *candidates])

    def remove(self, *codes: str) -> "CandidateSet":
        """New set without the given codes."""
        dropped = set(codes)
        return CandidateSet(c for c in self._items.values() if c.code not in dropped)

    def filter(self, keep: Callable[[CandidateCode], bool]) -> "CandidateSet":
        return CandidateSet(c for c in self._items.values() if keep(c))

    def replace(self, updated: CandidateCode) -> "CandidateSet":
        """New set with an existing candidate replaced in place (no merge)."""
        return CandidateSet(updated if c.code == updated.code else c for c in self._items.values())


# ============================================================================
# Per-concept generators
# ============================================================================


def _diabetes(concept: Concept, concepts: tuple[Concept, ...]) -> list[CandidateCode]:
    attrs: DiabetesAttributes = concept.attributes  # type: ignore[assignment]
    prefix = tables.diabetes_prefix(attrs.diabetes_type)
    ckd = find_concept(concepts, ConceptType.CKD)

    out = [candidate(f"{prefix}.9", "Diabetes mellitus without documented complication", 5, [concept])]
    for code, reason in tables.diabetes_complication_codes(prefix, attrs, has_ckd=ckd is not None):
        if code == f"{prefix}.22" and ckd is not None:
            out.append(
                candidate(code, reason, 10, [concept, ckd], rule="diabetes_ckd_combination")
            )
        else:
            out.append(candidate(code, reason, 9, [concept]))

    if attrs.foot_ulcer:
        ulcer = tables.lower_limb_ulcer_code(attrs.ulcer_site, attrs.laterality, attrs.ulcer_depth)
        out.append(candidate(ulcer, "Site and depth of diabetic foot ulcer", 7, [concept]))
    if attrs.pancreatitis:
        out.append(candidate(tables.PANCREATITIS, "Chronic pancreatitis", 6, [concept]))
    if attrs.insulin_use and prefix != "E10":
        out.append(candidate(tables.LONG_TERM_INSULIN, "Long-term (current) use of insulin", 5, [concept]))
    return out


def _ckd(concept: Concept) -> list[CandidateCode]:
    attrs: CkdAttributes = concept.attributes  # type: ignore[assignment]
    stage = tables.effective_ckd_stage(attrs.stage, attrs.dialysis)
    code = tables.ckd_stage_code(stage)
    score = 4 if stage is None else 8
    out = [candidate(code, f"Chronic kidney disease, stage {stage.value if stage else 'unspecified'}", score, [concept])]
    if attrs.dialysis == DialysisStatus.CHRONIC:
        out.append(candidate(tables.DIALYSIS_DEPENDENCE, "Dependence on renal dialysis", 6, [concept]))
    return out


def _heart_failure(concept: Concept) -> list[CandidateCode]:
    attrs: HeartFailureAttributes = concept.attributes  # type: ignore[assignment]
    code = tables.heart_failure_code(attrs.heart_failure_type, attrs.acuity)
    score = 6 if attrs.heart_failure_type == HeartFailureType.UNSPECIFIED else 8
    return [candidate(code, "Heart failure type and acuity", score, [concept])]


def _cardiorenal(concepts: tuple[Concept, ...]) -> list[CandidateCode]:
    """Hypertension combination codes with heart failure and/or CKD."""
    hypertension = find_concept(concepts, ConceptType.HYPERTENSION)
    if hypertension is None:
        return []
    heart_failure = find_concept(concepts, ConceptType.HEART_FAILURE)
    ckd = find_concept(concepts, ConceptType.CKD)
    out = [candidate(tables.ESSENTIAL_HYPERTENSION, "Essential (primary) hypertension", 5, [hypertension])]
    end_stage = False
    if ckd is not None:
        ckd_attrs: CkdAttributes = ckd.attributes  # type: ignore[assignment]
        stage = tables.effective_ckd_stage(ckd_attrs.stage, ckd_attrs.dialysis)
        end_stage = stage is not None and stage.is_end_stage
    if heart_failure is not None and ckd is not None:
        code = tables.HYPERTENSIVE_HEART_CKD_HF_END_STAGE if end_stage else tables.HYPERTENSIVE_HEART_CKD_HF
        out.append(
            candidate(
                code,
                "Hypertensive heart and chronic kidney disease with heart failure",
                10,
                [hypertension, heart_failure, ckd],
                rule="hypertensive_heart_ckd",
            )
        )
    if ckd is not None:
        code = tables.HYPERTENSIVE_CKD_END_STAGE if end_stage else tables.HYPERTENSIVE_CKD
        out.append(
            candidate(code, "Hypertensive chronic kidney disease", 9, [hypertension, ckd], rule="hypertensive_ckd")
        )
    if heart_failure is not None:
        out.append(
            candidate(
                tables.HYPERTENSIVE_HEART_WITH_HF,
                "Hypertensive heart disease with heart failure",
                9,
                [hypertension, heart_failure],
                rule="hypertensive_heart_failure",
            )
        )
    return out


def _copd(concept: Concept) -> list[CandidateCode]:
    attrs: CopdAttributes = concept.attributes  # type: ignore[assignment]
    out = [candidate(tables.COPD_UNSPECIFIED, "Chronic obstructive pulmonary disease", 6, [concept])]
    if attrs.acute_exacerbation:
        out.append(candidate(tables.COPD_WITH_EXACERBATION, "COPD with acute exacerbation", 8, [concept]))
    if attrs.lower_respiratory_infection:
        out.append(
            candidate(tables.COPD_WITH_INFECTION, "COPD with acute lower respiratory infection", 9, [concept])
        )
        if attrs.organism is not None:
            out.append(
                candidate(
                    tables.pneumonia_code(attrs.organism),
                    f"Pneumonia due to {attrs.organism.value}",
                    8,
                    [concept],
                )
            )
    return out


def _asthma(concept: Concept) -> list[CandidateCode]:
    attrs: AsthmaAttributes = concept.attributes  # type: ignore[assignment]
    code = tables.asthma_code(attrs.severity, attrs.exacerbation, attrs.status_asthmaticus)
    score = 8 if attrs.severity is not None else 6
    return [candidate(code, "Asthma by severity and status", score, [concept])]


def _pneumonia(concept: Concept) -> list[CandidateCode]:
    attrs: PneumoniaAttributes = concept.attributes  # type: ignore[assignment]
    if attrs.organism is None:
        return [candidate(tables.PNEUMONIA_UNSPECIFIED, "Pneumonia, unspecified organism", 6, [concept])]
    return [
        candidate(tables.pneumonia_code(attrs.organism), f"Pneumonia due to {attrs.organism.value}", 8, [concept])
    ]


def _neoplasm(concept: Concept) -> list[CandidateCode]:
    attrs: NeoplasmAttributes = concept.attributes  # type: ignore[assignment]
    if attrs.history:
        out = [
            candidate(
                tables.history_neoplasm_code(attrs.primary_site),
                "Personal history of malignant neoplasm",
                7,
                [concept],
            )
        ]
        if attrs.follow_up:
            out.append(candidate(tables.FOLLOW_UP_EXAM, "Follow-up after completed cancer treatment", 8, [concept]))
        return out

    out = []
    if attrs.primary_site is not None:
        code = tables.primary_neoplasm_code(attrs.primary_site, attrs.laterality)
        if code is not None:
            out.append(candidate(code, f"Primary malignant neoplasm of {attrs.primary_site}", 8, [concept]))
    for site in attrs.metastatic_sites:
        out.append(
            candidate(tables.secondary_neoplasm_code(site), f"Secondary malignant neoplasm of {site}", 9, [concept])
        )
    if attrs.secondary and not attrs.metastatic_sites:
        out.append(
            candidate(tables.SECONDARY_UNSPECIFIED, "Secondary malignant neoplasm, site unspecified", 6, [concept])
        )
    return out


_PREGNANCY_COMPLICATIONS: dict = {
    "preeclampsia": (tables.preeclampsia_code, "Pre-eclampsia"),
    "gestational_diabetes": (tables.gestational_diabetes_code, "Gestational diabetes mellitus"),
    "placenta_previa": (tables.placenta_previa_code, "Placenta previa"),
    "hyperemesis": (lambda _: tables.HYPEREMESIS, "Hyperemesis gravidarum"),
    "threatened_abortion": (lambda _: tables.THREATENED_ABORTION, "Threatened abortion"),
    "postpartum_hemorrhage": (lambda _: tables.POSTPARTUM_HEMORRHAGE, "Postpartum hemorrhage"),
}


def _pregnancy(concept: Concept) -> list[CandidateCode]:
    attrs: PregnancyAttributes = concept.attributes  # type: ignore[assignment]
    out = []
    for complication in attrs.complications:
        code_for, reason = _PREGNANCY_COMPLICATIONS[complication.value]
        out.append(candidate(code_for(attrs.trimester), reason, 9, [concept]))
    weeks_code = tables.gestational_age_code(attrs.gestational_weeks)
    if weeks_code is not None:
        out.append(candidate(weeks_code, "Weeks of gestation", 4, [concept]))
    return out


def _injury(concept: Concept) -> list[CandidateCode]:
    attrs: InjuryAttributes = concept.attributes  # type: ignore[assignment]
    episode = attrs.episode or Episode.INITIAL
    out = [candidate(tables.injury_code(attrs.kind, episode), f"Injury ({attrs.kind.value}), {episode.value} encounter", 8, [concept])]
    if attrs.fall:
        out.append(candidate(tables.fall_code(episode), "External cause: fall", 6, [concept]))
    return out


def _neuropathy(concept: Concept) -> list[CandidateCode]:
    attrs: NeuropathyAttributes = concept.attributes  # type: ignore[assignment]
    code = tables.NEUROPATHY_SITE_CODES[attrs.site]
    score = 7 if code == "G62.9" else 8
    return [candidate(code, "Neuropathy without diabetic context", score, [concept])]


def _sepsis(concept: Concept, concepts: tuple[Concept, ...]) -> list[CandidateCode]:
    attrs: SepsisAttributes = concept.attributes  # type: ignore[assignment]
    organism = attrs.organism.value if attrs.organism else "unspecified organism"
    out = [candidate(tables.sepsis_code(attrs.organism), f"Sepsis due to {organism}", 9, [concept])]
    if attrs.shock:
        out.append(candidate(tables.SEPTIC_SHOCK, "Severe sepsis with septic shock", 8, [concept]))
    elif attrs.severe:
        out.append(candidate(tables.SEVERE_SEPSIS, "Severe sepsis without septic shock", 7, [concept]))
    site_code = tables.INFECTION_SITE_CODES.get(attrs.infection_site or "")
    if site_code and not (attrs.infection_site == "lung" and find_concept(concepts, ConceptType.PNEUMONIA)):
        out.append(candidate(site_code, f"Localized infection ({attrs.infection_site})", 7, [concept]))
    return out


def _encephalopathy(concept: Concept) -> list[CandidateCode]:
    attrs: EncephalopathyAttributes = concept.attributes  # type: ignore[assignment]
    code = tables.ENCEPHALOPATHY_CODES[attrs.encephalopathy_type]
    score = 6 if code == "G93.40" else 7
    return [candidate(code, f"Encephalopathy ({attrs.encephalopathy_type.value})", score, [concept])]


def _other(concept: Concept) -> list[CandidateCode]:
    attrs: OtherAttributes = concept.attributes  # type: ignore[assignment]
    out = []
    if attrs.myocardial_infarction:
        out.append(candidate(tables.MYOCARDIAL_INFARCTION, "Acute myocardial infarction", 8, [concept]))
    if attrs.depression is not None:
        out.append(
            candidate(tables.DEPRESSION_CODES[attrs.depression], "Major depressive disorder, recurrent", 7, [concept])
        )
    return out


_SINGLE_GENERATORS: dict[ConceptType, Callable[[Concept], list[CandidateCode]]] = {
    ConceptType.CKD: _ckd,
    ConceptType.ACUTE_KIDNEY_INJURY: lambda c: [candidate(tables.AKI_CODE, "Acute kidney failure", 7, [c])],
    ConceptType.HEART_FAILURE: _heart_failure,
    ConceptType.COPD: _copd,
    ConceptType.ASTHMA: _asthma,
    ConceptType.PNEUMONIA: _pneumonia,
    ConceptType.NEOPLASM: _neoplasm,
    ConceptType.PREGNANCY: _pregnancy,
    ConceptType.INJURY: _injury,
    ConceptType.NEUROPATHY: _neuropathy,
    ConceptType.ENCEPHALOPATHY: _encephalopathy,
    ConceptType.OTHER: _other,
}


def generate_candidates(concepts: Iterable[Concept]) -> CandidateSet:
    """Generate candidates for every concept and concept combination.

    Args:
        concepts: Extracted concepts.

    Returns:
        CandidateSet with duplicates merged by max score and unioned provenance.
    """
    concepts = tuple(concepts)
    generated: list[CandidateCode] = []
    for concept in concepts:
        if concept.type == ConceptType.DIABETES:
            generated.extend(_diabetes(concept, concepts))
        elif concept.type == ConceptType.SEPSIS:
            generated.extend(_sepsis(concept, concepts))
        elif concept.type in _SINGLE_GENERATORS:
            generated.extend(_SINGLE_GENERATORS[concept.type](concept))
    generated.extend(_cardiorenal(concepts))

    candidates = CandidateSet(generated)
    logger.debug(f"Generated {len(candidates)} candidates from {len(concepts)} concepts")
    return candidates
