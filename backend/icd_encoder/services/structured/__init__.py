"""Structured "field: value" front-end.

Parses the block into a PatientContext, checks it for hard stops and maps it
onto the same Concept contract the free-text extractor produces.
"""

from icd_encoder.services.structured.concepts import context_to_concepts
from icd_encoder.services.structured.parser import parse_structured_input
from icd_encoder.services.structured.validator import validate_context

__all__ = ["context_to_concepts", "parse_structured_input", "validate_context"]
