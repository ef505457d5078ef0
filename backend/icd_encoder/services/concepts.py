"""Typed clinical concepts.

A Concept is one clinical fact found in the input. Every concept type has
exactly one attribute class carrying only the fields meaningful to it, so a
rule can never read an attribute that does not belong to the concept.

All classes are frozen: a concept never changes once extraction returns it.
"""

from dataclasses import dataclass

from icd_encoder.schemas.base import (
    Acuity,
    AsthmaSeverity,
    CkdStage,
    ConceptType,
    DepressionSeverity,
    DiabetesType,
    DialysisStatus,
    EncephalopathyType,
    Episode,
    HeartFailureType,
    InjuryKind,
    Laterality,
    NeuropathySite,
    NeuropathyType,
    Organism,
    PregnancyComplication,
    RetinopathySeverity,
    UlcerDepth,
    UlcerSite,
)


# ============================================================================
# Attribute variants
# ============================================================================


@dataclass(frozen=True)
class DiabetesAttributes:
    """Diabetes mellitus and every documented complication."""

    diabetes_type: DiabetesType | None = None  # None = type not documented
    uncontrolled: bool = False  # Poorly controlled / hyperglycemia
    hypoglycemia: bool = False
    ketoacidosis: bool = False
    hyperosmolarity: bool = False
    with_coma: bool = False
    nephropathy: bool = False
    neuropathy: NeuropathyType | None = None
    peripheral_angiopathy: bool = False
    gangrene: bool = False
    retinopathy: RetinopathySeverity | None = None
    macular_edema: bool = False
    traction_detachment_macula: bool = False
    foot_ulcer: bool = False
    ulcer_site: UlcerSite | None = None
    ulcer_depth: UlcerDepth | None = None
    charcot_joint: bool = False
    cataract: bool = False
    laterality: Laterality | None = None
    pancreatitis: bool = False
    insulin_use: bool = False

    @property
    def has_complication(self) -> bool:
        return any(
            (
                self.uncontrolled,
                self.hypoglycemia,
                self.ketoacidosis,
                self.hyperosmolarity,
                self.nephropathy,
                self.neuropathy is not None,
                self.peripheral_angiopathy,
                self.retinopathy is not None,
                self.foot_ulcer,
                self.charcot_joint,
                self.cataract,
            )
        )


@dataclass(frozen=True)
class CkdAttributes:
    """Chronic kidney disease."""

    stage: CkdStage | None = None
    dialysis: DialysisStatus | None = None


@dataclass(frozen=True)
class AcuteKidneyInjuryAttributes:
    """Acute kidney injury carries no further detail."""


@dataclass(frozen=True)
class HypertensionAttributes:
    """Essential hypertension."""


@dataclass(frozen=True)
class HeartFailureAttributes:
    """Heart failure type and acuity."""

    heart_failure_type: HeartFailureType = HeartFailureType.UNSPECIFIED
    acuity: Acuity | None = None


@dataclass(frozen=True)
class CopdAttributes:
    """Chronic obstructive pulmonary disease."""

    acute_exacerbation: bool = False
    lower_respiratory_infection: bool = False
    organism: Organism | None = None


@dataclass(frozen=True)
class AsthmaAttributes:
    """Asthma severity and status."""

    severity: AsthmaSeverity | None = None
    exacerbation: bool = False
    status_asthmaticus: bool = False


@dataclass(frozen=True)
class PneumoniaAttributes:
    """Pneumonia, optionally organism specific."""

    organism: Organism | None = None


@dataclass(frozen=True)
class NeoplasmAttributes:
    """Malignant neoplasm: primary site and every metastatic site."""

    primary_site: str | None = None
    laterality: Laterality | None = None
    metastatic_sites: tuple[str, ...] = ()
    secondary: bool = False  # Metastatic / secondary malignancy documented
    history: bool = False  # Personal history, no active disease
    follow_up: bool = False


@dataclass(frozen=True)
class PregnancyAttributes:
    """Pregnancy and all documented obstetric complications."""

    trimester: int | None = None
    gestational_weeks: int | None = None
    complications: tuple[PregnancyComplication, ...] = ()


@dataclass(frozen=True)
class InjuryAttributes:
    """Injury with episode of care."""

    kind: InjuryKind = InjuryKind.UNSPECIFIED
    site: str | None = None
    episode: Episode | None = None  # None = episode not documented
    fall: bool = False


@dataclass(frozen=True)
class NeuropathyAttributes:
    """Isolated neuropathy without diabetes."""

    site: NeuropathySite = NeuropathySite.UNSPECIFIED


@dataclass(frozen=True)
class SepsisAttributes:
    """Sepsis, severe sepsis and septic shock."""

    severe: bool = False
    shock: bool = False
    organism: Organism | None = None
    infection_site: str | None = None


@dataclass(frozen=True)
class EncephalopathyAttributes:
    """Encephalopathy type."""

    encephalopathy_type: EncephalopathyType = EncephalopathyType.UNSPECIFIED


@dataclass(frozen=True)
class OtherAttributes:
    """Conditions coded directly without combination rules."""

    myocardial_infarction: bool = False
    depression: DepressionSeverity | None = None


ConceptAttributes = (
    DiabetesAttributes
    | CkdAttributes
    | AcuteKidneyInjuryAttributes
    | HypertensionAttributes
    | HeartFailureAttributes
    | CopdAttributes
    | AsthmaAttributes
    | PneumoniaAttributes
    | NeoplasmAttributes
    | PregnancyAttributes
    | InjuryAttributes
    | NeuropathyAttributes
    | SepsisAttributes
    | EncephalopathyAttributes
    | OtherAttributes
)

ATTRIBUTE_TYPES: dict[ConceptType, type] = {
    ConceptType.DIABETES: DiabetesAttributes,
    ConceptType.CKD: CkdAttributes,
    ConceptType.ACUTE_KIDNEY_INJURY: AcuteKidneyInjuryAttributes,
    ConceptType.HYPERTENSION: HypertensionAttributes,
    ConceptType.HEART_FAILURE: HeartFailureAttributes,
    ConceptType.COPD: CopdAttributes,
    ConceptType.ASTHMA: AsthmaAttributes,
    ConceptType.PNEUMONIA: PneumoniaAttributes,
    ConceptType.NEOPLASM: NeoplasmAttributes,
    ConceptType.PREGNANCY: PregnancyAttributes,
    ConceptType.INJURY: InjuryAttributes,
    ConceptType.NEUROPATHY: NeuropathyAttributes,
    ConceptType.SEPSIS: SepsisAttributes,
    ConceptType.ENCEPHALOPATHY: EncephalopathyAttributes,
    ConceptType.OTHER: OtherAttributes,
}


# ============================================================================
# Concept
# ============================================================================


@dataclass(frozen=True)
class Concept:
    """One typed clinical fact."""

    raw_text: str
    normalized_text: str
    type: ConceptType
    attributes: ConceptAttributes

    def __post_init__(self) -> None:
        expected = ATTRIBUTE_TYPES[self.type]
        if not isinstance(self.attributes, expected):
            raise TypeError(
                f"{self.type.value} concept requires {expected.__name__}, "
                f"got {type(self.attributes).__name__}"
            )

    @property
    def ref(self) -> str:
        """Provenance reference used by candidate codes."""
        return self.type.value


def find_concept(concepts: tuple[Concept, ...] | list[Concept], concept_type: ConceptType) -> Concept | None:
    """Return the concept of the given type, if extracted."""
    for concept in concepts:
        if concept.type == concept_type:
            return concept
    return None
