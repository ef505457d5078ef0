"""Encoder output and validation report schemas."""

from typing import Any

from pydantic import BaseModel, Field

from icd_encoder.schemas.base import Severity


class EncodedCode(BaseModel):
    """One code of the sequenced output."""

    code: str = Field(..., description="ICD-10-CM code")
    description: str = Field(..., description="Catalog description")
    reason: str = Field(..., description="Why the code was assigned")
    order: int = Field(..., ge=1, description="Sequence position, 1 = principal")
    confidence: float = Field(..., gt=0, le=0.99, description="Confidence derived from the base score")
    guideline_rule_id: str | None = Field(
        None, alias="guidelineRuleId", description="Guideline rule that produced the code"
    )

    model_config = {"from_attributes": True, "populate_by_name": True}


class EncoderOutput(BaseModel):
    """Result of encoding free text."""

    codes: list[EncodedCode] = Field(default_factory=list, description="Sequenced codes")
    warnings: list[str] = Field(default_factory=list, description="Recoverable guideline issues")
    errors: list[str] = Field(default_factory=list, description="Documentation errors")
    debug: dict[str, Any] | None = Field(None, description="Concepts and candidates, when requested")

    model_config = {"populate_by_name": True}


class StructuredEncoderOutput(EncoderOutput):
    """Result of encoding a structured "field: value" block."""

    primary: EncodedCode | None = Field(None, description="Principal diagnosis")
    secondary: list[EncodedCode] = Field(default_factory=list, description="Secondary diagnoses in order")
    procedures: list[str] = Field(default_factory=list, description="Procedure codes (diagnosis coding only)")
    validation_errors: list[str] = Field(
        default_factory=list, alias="validationErrors", description="Parse and hard-stop validation errors"
    )


class ValidationIssue(BaseModel):
    """A single firing validation rule."""

    rule_id: str = Field(..., alias="ruleId", description="Rule identifier, e.g. DM-001")
    rule_name: str = Field(..., alias="ruleName", description="Short rule name")
    severity: Severity = Field(..., description="error or warning")
    issue: str = Field(..., description="What is wrong")
    rationale: str = Field(..., description="Why the rule exists")
    remediation: list[str] = Field(default_factory=list, description="Suggested actions")
    message: str = Field(..., description="One-line message")
    affected_codes: list[str] = Field(default_factory=list, alias="affectedCodes", description="Codes involved")

    model_config = {"populate_by_name": True}


class ValidationReport(BaseModel):
    """Outcome of running every validation rule."""

    valid: bool = Field(..., description="True when no error-level rule fired")
    errors: list[str] = Field(default_factory=list, description="'[RULE-ID] message' for errors")
    warnings: list[str] = Field(default_factory=list, description="'[RULE-ID] message' for warnings")
    issues: list[ValidationIssue] = Field(default_factory=list, description="Structured results")
