"""Services for the ICD-10-CM guideline encoder.

Services implement the encoding pipeline:
- Catalog: reference code catalog, links and search
- normalize_text / extract_concepts: text to typed clinical concepts
- generate_candidates: concepts to candidate codes
- run_guideline_pipeline: ordered guideline modules
- resolve_exclusions / sequence_candidates / enforce_invariants: final list
- run_validation: read-only validation rule set
- EncoderService: the whole pipeline behind one entry point
"""

from icd_encoder.services.candidates import CandidateCode, CandidateSet, generate_candidates
from icd_encoder.services.catalog import (
    Catalog,
    CatalogLoadError,
    get_catalog,
    load_catalog,
    reset_catalog,
)
from icd_encoder.services.concept_extractor import extract_concepts
from icd_encoder.services.concepts import Concept
from icd_encoder.services.encoder import EncoderService, get_encoder_service, reset_encoder_service
from icd_encoder.services.exclusion_resolver import resolve_exclusions
from icd_encoder.services.guidelines import GuidelineState, run_guideline_pipeline
from icd_encoder.services.invariants import InvariantResult, enforce_invariants
from icd_encoder.services.normalizer import normalize_text
from icd_encoder.services.sequencer import SequencedCode, sequence_candidates
from icd_encoder.services.validation_rules import run_validation

__all__ = [
    # Catalog
    "Catalog",
    "CatalogLoadError",
    "get_catalog",
    "load_catalog",
    "reset_catalog",
    # Extraction
    "Concept",
    "extract_concepts",
    "normalize_text",
    # Candidates and guidelines
    "CandidateCode",
    "CandidateSet",
    "GuidelineState",
    "generate_candidates",
    "run_guideline_pipeline",
    # Final list
    "InvariantResult",
    "SequencedCode",
    "enforce_invariants",
    "resolve_exclusions",
    "sequence_candidates",
    # Validation
    "run_validation",
    # Encoder
    "EncoderService",
    "get_encoder_service",
    "reset_encoder_service",
]
