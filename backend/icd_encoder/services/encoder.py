"""Encoder service: clinical documentation to sequenced ICD-10-CM codes.

Pipeline:
    normalize -> extract concepts -> generate candidates -> guideline modules
    -> exclusion resolver -> sequencer -> invariant enforcer -> output

Free text and the structured "field: value" front-end share every stage
after concept extraction. All stages are pure functions of their inputs and
the read-only catalog, so one service instance can serve concurrent callers.

Usage:
    encoder = get_encoder_service()
    result = encoder.encode_text("Type 2 diabetes with CKD stage 4")
    for code in result.codes:
        print(code.order, code.code, code.description)
"""

import logging
from dataclasses import asdict
from threading import Lock
from typing import Any

from icd_encoder.core.config import settings
from icd_encoder.schemas.encoding import (
    EncodedCode,
    EncoderOutput,
    StructuredEncoderOutput,
    ValidationReport,
)
from icd_encoder.services.candidates import CandidateCode, CandidateSet, generate_candidates
from icd_encoder.services.catalog import Catalog, get_catalog
from icd_encoder.services.concept_extractor import extract_concepts
from icd_encoder.services.concepts import Concept
from icd_encoder.services.exclusion_resolver import resolve_exclusions
from icd_encoder.services.guidelines import run_guideline_pipeline
from icd_encoder.services.invariants import enforce_invariants
from icd_encoder.services.normalizer import normalize_text
from icd_encoder.services.sequencer import SequencedCode, sequence_candidates
from icd_encoder.services.structured import context_to_concepts, parse_structured_input, validate_context
from icd_encoder.services.validation_rules import run_validation

logger = logging.getLogger(__name__)

# Singleton instance and lock for thread-safe initialization
_encoder_instance: "EncoderService | None" = None
_encoder_lock = Lock()

INDEX_FALLBACK_RULE_ID = "index_fallback"


def _unique(messages) -> list[str]:
    return list(dict.fromkeys(messages))


def _encoded(codes: list[SequencedCode]) -> list[EncodedCode]:
    return [
        EncodedCode(
            code=item.code,
            description=item.description,
            reason=item.reason,
            order=item.order,
            confidence=item.confidence,
            guideline_rule_id=item.guideline_rule_id,
        )
        for item in codes
    ]


class EncoderService:
    """Runs the full encoding pipeline against one reference catalog.

    Usage:
        encoder = EncoderService(catalog)
        output = encoder.encode_text(note)
        structured = encoder.encode_structured("Sepsis: Yes\\nSeptic Shock: Yes")
        report = encoder.validate(["E11.22", "N18.4"])
    """

    def __init__(self, catalog: Catalog | None = None) -> None:
        """Initialize the encoder.

        Args:
            catalog: Reference catalog. Defaults to the shared process-wide
                catalog, loaded on first use.
        """
        self._catalog = catalog

    @property
    def catalog(self) -> Catalog:
        if self._catalog is None:
            self._catalog = get_catalog()
        return self._catalog

    # ------------------------------------------------------------------------
    # Free text
    # ------------------------------------------------------------------------

    def encode_text(self, text: str, debug: bool = False) -> EncoderOutput:
        """Encode free-text clinical documentation.

        Args:
            text: Clinical narrative.
            debug: Include extracted concepts and candidates in the output.

        Returns:
            EncoderOutput with sequenced codes, warnings and errors.
        """
        normalized = normalize_text(text or "")
        concepts = extract_concepts(normalized)
        codes, warnings, errors, trace = self._encode_concepts(concepts, normalized)
        logger.info(f"Encoded free text into {len(codes)} codes ({len(warnings)} warnings, {len(errors)} errors)")
        return EncoderOutput(
            codes=_encoded(codes),
            warnings=warnings,
            errors=errors,
            debug=trace if debug else None,
        )

    # ------------------------------------------------------------------------
    # Structured input
    # ------------------------------------------------------------------------

    def encode_structured(self, text: str, debug: bool = False) -> StructuredEncoderOutput:
        """Encode a structured "field: value" block.

        Parse errors and hard stops block encoding: the output then carries
        no codes and lists every problem in ``validation_errors``.

        Args:
            text: Line-oriented structured input.
            debug: Include extracted concepts and candidates in the output.

        Returns:
            StructuredEncoderOutput with primary and secondary diagnoses.
        """
        context, parse_errors = parse_structured_input(text)
        if parse_errors:
            return StructuredEncoderOutput(errors=parse_errors, validation_errors=parse_errors)

        hard_stops, context_warnings = validate_context(context)
        if hard_stops:
            return StructuredEncoderOutput(
                warnings=context_warnings,
                errors=hard_stops,
                validation_errors=hard_stops,
            )

        concepts = context_to_concepts(context)
        codes, warnings, errors, trace = self._encode_concepts(concepts, "")
        report = run_validation([item.code for item in codes], self.catalog)
        encoded = _encoded(codes)
        logger.info(f"Encoded structured input into {len(encoded)} codes")
        return StructuredEncoderOutput(
            codes=encoded,
            warnings=_unique(context_warnings + warnings + report.warnings),
            errors=errors,
            debug=trace if debug else None,
            primary=encoded[0] if encoded else None,
            secondary=encoded[1:],
            procedures=[],
            validation_errors=report.errors,
        )

    # ------------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------------

    def validate(self, codes: list[str], text: str | None = None) -> ValidationReport:
        """Run the validation rule set over a code list.

        Args:
            codes: ICD-10-CM codes in sequence order (first = principal).
            text: Optional clinical text some rules consult.

        Returns:
            ValidationReport; ``valid`` is False when any error-level rule fires.
        """
        return run_validation(codes, self.catalog, text=text)

    # ------------------------------------------------------------------------
    # Shared pipeline
    # ------------------------------------------------------------------------

    def _encode_concepts(
        self, concepts: tuple[Concept, ...], normalized_text: str
    ) -> tuple[list[SequencedCode], list[str], list[str], dict[str, Any]]:
        """Run every stage after concept extraction.

        Returns:
            Tuple of (codes, warnings, errors, debug trace).
        """
        catalog = self.catalog
        candidates = generate_candidates(concepts)

        state = run_guideline_pipeline(concepts, candidates, catalog)
        state = resolve_exclusions(state, catalog)
        sequenced = sequence_candidates(state.candidates, state.reorder_hints, catalog)
        fallback = not sequenced and not state.errors and bool(normalized_text)
        if fallback:
            sequenced = self._index_fallback(normalized_text)
        result = enforce_invariants(sequenced, concepts, catalog)

        trace = {
            "concepts": [
                {"type": concept.type.value, "text": concept.raw_text, "attributes": asdict(concept.attributes)}
                for concept in concepts
            ],
            "candidates": [
                {
                    "code": item.code,
                    "reason": item.reason,
                    "base_score": item.base_score,
                    "guideline_rule_id": item.guideline_rule_id,
                }
                for item in candidates
            ],
            "final_candidates": state.candidates.codes(),
            "reorder_hints": list(state.reorder_hints),
            "corrections": result.corrections,
            "index_fallback": fallback,
        }
        warnings = _unique(list(state.warnings) + result.corrections)
        return result.codes, warnings, list(state.errors), trace

    def _index_fallback(self, normalized_text: str) -> list[SequencedCode]:
        """Billable catalog index matches for text no concept could code."""
        limit = settings.index_fallback_limit
        matches = []
        for hit in self.catalog.search(normalized_text, limit=limit * 4):
            entry = self.catalog.get_code(hit.code)
            if entry is None or not entry.billable:
                continue
            matches.append(
                CandidateCode(
                    code=hit.code,
                    reason=f"Index match: {hit.matched_term}",
                    base_score=hit.score,
                    guideline_rule_id=INDEX_FALLBACK_RULE_ID,
                )
            )
        if matches:
            logger.debug(f"Index fallback matched {[item.code for item in matches]}")
        return sequence_candidates(CandidateSet(matches), (), self.catalog, max_codes=limit, min_score=0)


def get_encoder_service() -> EncoderService:
    """Get the singleton EncoderService instance.

    The shared catalog is loaded lazily on first encode.

    Returns:
        The singleton EncoderService instance.
    """
    global _encoder_instance

    if _encoder_instance is None:
        with _encoder_lock:
            # Double-check locking pattern
            if _encoder_instance is None:
                logger.info("Creating singleton EncoderService instance")
                _encoder_instance = EncoderService()

    return _encoder_instance


def reset_encoder_service() -> None:
    """Reset the singleton instance (for testing only)."""
    global _encoder_instance
    with _encoder_lock:
        _encoder_instance = None
