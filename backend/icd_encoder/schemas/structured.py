"""Structured "field: value" input schemas.

The parser fills a PatientContext; the validator checks it for hard stops
before any concept is built from it.
"""

from pydantic import BaseModel, Field

from icd_encoder.schemas.base import (
    Acuity,
    AsthmaSeverity,
    CkdStage,
    DiabetesType,
    DialysisStatus,
    EncephalopathyType,
    Episode,
    Gender,
    HeartFailureType,
    InjuryKind,
    Laterality,
    NeuropathyType,
    Organism,
    UlcerDepth,
    UlcerSite,
)


class Demographics(BaseModel):
    """Patient demographics."""

    age: int | None = Field(None, ge=0, le=150, description="Age in years")
    gender: Gender | None = Field(None, description="Administrative gender")


class DiabetesContext(BaseModel):
    """Diabetes fields."""

    diabetes_type: DiabetesType | None = Field(None, description="Diabetes type; required")
    complications: list[str] = Field(default_factory=list, description="Normalized complication names")
    neuropathy_type: NeuropathyType | None = None
    insulin_use: bool = False
    ulcer_site: UlcerSite | None = None
    ulcer_laterality: Laterality | None = None
    ulcer_depth: UlcerDepth | None = None


class CkdContext(BaseModel):
    """Chronic kidney disease fields."""

    stage: CkdStage | None = Field(None, description="CKD stage; required")


class HeartFailureContext(BaseModel):
    """Heart failure fields."""

    heart_failure_type: HeartFailureType = HeartFailureType.UNSPECIFIED
    acuity: Acuity | None = None


class CopdContext(BaseModel):
    """COPD fields."""

    exacerbation: bool = False
    infection: bool = False


class AsthmaContext(BaseModel):
    """Asthma fields."""

    severity: AsthmaSeverity | None = None
    exacerbation: bool = False
    status_asthmaticus: bool = False


class SepsisContext(BaseModel):
    """Sepsis fields; ``present`` is None when Sepsis was not stated."""

    present: bool | None = None
    severe: bool = False
    shock: bool = False
    infection_site: str | None = None
    organism: Organism | None = None


class EncephalopathyContext(BaseModel):
    """Encephalopathy fields."""

    encephalopathy_type: EncephalopathyType | None = None


class PregnancyContext(BaseModel):
    """Pregnancy fields."""

    trimester: int | None = Field(None, ge=1, le=3)
    gestational_age: int | None = Field(None, ge=1, le=45, description="Weeks of gestation")


class NeoplasmContext(BaseModel):
    """Cancer fields."""

    site: str | None = Field(None, description="Primary site")
    laterality: Laterality | None = None
    metastasis: bool = False
    metastatic_sites: list[str] = Field(default_factory=list)
    history: bool = False


class InjuryContext(BaseModel):
    """Injury fields."""

    kind: InjuryKind | None = None
    site: str | None = None
    external_cause: str | None = None


class PatientContext(BaseModel):
    """Everything the structured parser understood."""

    demographics: Demographics = Field(default_factory=Demographics)
    encounter_type: Episode | None = Field(None, description="Initial, subsequent or sequela")
    diabetes: DiabetesContext | None = None
    ckd: CkdContext | None = None
    dialysis: DialysisStatus | None = Field(None, description="Dialysis status, required with ESRD")
    aki: bool = False
    hypertension: bool = False
    heart_failure: HeartFailureContext | None = None
    copd: CopdContext | None = None
    asthma: AsthmaContext | None = None
    pneumonia_organism: Organism | None = None
    pneumonia: bool = False
    sepsis: SepsisContext | None = None
    encephalopathy: EncephalopathyContext | None = None
    pregnancy: PregnancyContext | None = None
    neoplasm: NeoplasmContext | None = None
    injury: InjuryContext | None = None
    myocardial_infarction: bool = False
