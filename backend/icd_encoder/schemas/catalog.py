"""Reference catalog file schemas.

These models validate the raw JSON catalog before it is turned into the
immutable in-memory ``Catalog``.
"""

from pydantic import BaseModel, Field, field_validator


class CatalogCodeRecord(BaseModel):
    """One ICD-10-CM code entry in the catalog file."""

    code: str = Field(..., min_length=3, description="ICD-10-CM code with dot")
    description: str = Field(..., min_length=1, description="Long description")
    billable: bool = Field(default=True, description="Valid for claim submission")
    manifestation: bool = Field(default=False, description="Manifestation-only code, never principal")
    chapter: str | None = Field(None, description="Chapter title")
    includes: list[str] = Field(default_factory=list)
    excludes1: list[str] = Field(default_factory=list)
    excludes2: list[str] = Field(default_factory=list)
    code_first: list[str] = Field(default_factory=list)
    use_additional: list[str] = Field(default_factory=list)
    code_also: list[str] = Field(default_factory=list)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        """Store codes upper-case without surrounding whitespace."""
        return v.strip().upper()


class CatalogIndexTermRecord(BaseModel):
    """Alphabetic index term pointing at a code."""

    term: str = Field(..., min_length=1)
    code: str = Field(..., min_length=3)
    weight: float = Field(default=1.0, ge=0.0)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        """Store codes upper-case without surrounding whitespace."""
        return v.strip().upper()


class CatalogFile(BaseModel):
    """Top-level catalog document."""

    version: str = Field(default="unversioned")
    codes: list[CatalogCodeRecord] = Field(..., min_length=1)
    index_terms: list[CatalogIndexTermRecord] = Field(default_factory=list)
