"""Immutable state threaded through the guideline modules."""

from dataclasses import dataclass, replace

from icd_encoder.schemas.base import ConceptType
from icd_encoder.services.candidates import CandidateCode, CandidateSet
from icd_encoder.services.concepts import Concept, find_concept


def _append_unique(existing: tuple[str, ...], *items: str) -> tuple[str, ...]:
    result = list(existing)
    for item in items:
        if item not in result:
            result.append(item)
    return tuple(result)


@dataclass(frozen=True)
class GuidelineState:
    """Concepts and candidates plus everything the modules reported.

    Every helper returns a new state. Reorder hints, warnings and errors are
    de-duplicated on insertion so re-applying a module changes nothing.
    """

    concepts: tuple[Concept, ...]
    candidates: CandidateSet
    reorder_hints: tuple[str, ...] = ()  # Codes to sequence first, in emission order
    warnings: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()

    def concept(self, concept_type: ConceptType) -> Concept | None:
        return find_concept(self.concepts, concept_type)

    def has(self, code: str) -> bool:
        return code in self.candidates

    def codes_matching(self, pattern) -> list[str]:
        """Candidate codes matching a compiled regex, in insertion order."""
        return [code for code in self.candidates.codes() if pattern.match(code)]

    def add(self, *candidates: CandidateCode) -> "GuidelineState":
        return replace(self, candidates=self.candidates.add(*candidates))

    def remove(self, *codes: str) -> "GuidelineState":
        if not any(code in self.candidates for code in codes):
            return self
        return replace(self, candidates=self.candidates.remove(*codes))

    def hint(self, *codes: str) -> "GuidelineState":
        return replace(self, reorder_hints=_append_unique(self.reorder_hints, *codes))

    def hint_first(self, *codes: str) -> "GuidelineState":
        """Put codes ahead of every existing reorder hint."""
        return replace(self, reorder_hints=_append_unique(_append_unique((), *codes), *self.reorder_hints))

    def warn(self, *messages: str) -> "GuidelineState":
        return replace(self, warnings=_append_unique(self.warnings, *messages))

    def error(self, *messages: str) -> "GuidelineState":
        return replace(self, errors=_append_unique(self.errors, *messages))
