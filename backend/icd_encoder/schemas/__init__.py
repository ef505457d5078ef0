"""Pydantic schemas and enums for the ICD-10-CM guideline encoder."""

from icd_encoder.schemas.base import (
    CkdStage,
    ConceptType,
    DiabetesType,
    DialysisStatus,
    Episode,
    ExclusionKind,
    LinkRelation,
    Severity,
)
from icd_encoder.schemas.catalog import CatalogCodeRecord, CatalogFile, CatalogIndexTermRecord
from icd_encoder.schemas.encoding import (
    EncodedCode,
    EncoderOutput,
    StructuredEncoderOutput,
    ValidationIssue,
    ValidationReport,
)
from icd_encoder.schemas.structured import PatientContext

__all__ = [
    # Enums
    "CkdStage",
    "ConceptType",
    "DiabetesType",
    "DialysisStatus",
    "Episode",
    "ExclusionKind",
    "LinkRelation",
    "Severity",
    # Catalog
    "CatalogCodeRecord",
    "CatalogFile",
    "CatalogIndexTermRecord",
    # Encoding
    "EncodedCode",
    "EncoderOutput",
    "StructuredEncoderOutput",
    "ValidationIssue",
    "ValidationReport",
    # Structured input
    "PatientContext",
]
