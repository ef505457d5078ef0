"""Base schemas and enums for the ICD guideline encoder."""

from enum import Enum


class ConceptType(str, Enum):
    """Closed set of clinical concept types produced by extraction."""

    DIABETES = "diabetes"
    CKD = "ckd"
    ACUTE_KIDNEY_INJURY = "acute_kidney_injury"
    HYPERTENSION = "hypertension"
    HEART_FAILURE = "heart_failure"
    COPD = "copd"
    ASTHMA = "asthma"
    PNEUMONIA = "pneumonia"
    NEOPLASM = "neoplasm"
    PREGNANCY = "pregnancy"
    INJURY = "injury"
    NEUROPATHY = "neuropathy"  # Isolated, non-diabetic
    SEPSIS = "sepsis"
    ENCEPHALOPATHY = "encephalopathy"
    OTHER = "other"  # Myocardial infarction, depression


class Severity(str, Enum):
    """Severity of a validation finding."""

    ERROR = "error"
    WARNING = "warning"


class LinkRelation(str, Enum):
    """Relationship carried by a catalog note."""

    INCLUDES = "includes"
    CODE_FIRST = "code_first"
    USE_ADDITIONAL = "use_additional"
    CODE_ALSO = "code_also"
    EXCLUDES1 = "excludes1"
    EXCLUDES2 = "excludes2"


class ExclusionKind(str, Enum):
    """Kind of exclusion relationship between two codes."""

    EXCLUDES1 = "Excludes1"  # Mutually exclusive
    EXCLUDES2 = "Excludes2"  # Advisory only


class Laterality(str, Enum):
    """Body side."""

    LEFT = "left"
    RIGHT = "right"
    BILATERAL = "bilateral"


class Gender(str, Enum):
    """Administrative gender."""

    MALE = "male"
    FEMALE = "female"


class DiabetesType(str, Enum):
    """Diabetes mellitus category."""

    TYPE_1 = "type1"
    TYPE_2 = "type2"
    UNDERLYING_CONDITION = "underlying_condition"
    DRUG_INDUCED = "drug_induced"
    OTHER_SPECIFIED = "other_specified"


class CkdStage(str, Enum):
    """Chronic kidney disease stage."""

    STAGE_1 = "1"
    STAGE_2 = "2"
    STAGE_3 = "3"
    STAGE_3A = "3a"
    STAGE_3B = "3b"
    STAGE_4 = "4"
    STAGE_5 = "5"
    ESRD = "esrd"

    @property
    def is_end_stage(self) -> bool:
        """Stage 5 and ESRD share the end-stage combination codes."""
        return self in (CkdStage.STAGE_5, CkdStage.ESRD)


class DialysisStatus(str, Enum):
    """Renal dialysis status."""

    NONE = "none"
    TEMPORARY = "temporary"
    CHRONIC = "chronic"


class HeartFailureType(str, Enum):
    """Heart failure type."""

    SYSTOLIC = "systolic"
    DIASTOLIC = "diastolic"
    COMBINED = "combined"
    UNSPECIFIED = "unspecified"


class Acuity(str, Enum):
    """Acuity of a condition."""

    ACUTE = "acute"
    CHRONIC = "chronic"
    ACUTE_ON_CHRONIC = "acute_on_chronic"


class NeuropathyType(str, Enum):
    """Diabetic neuropathy subtype."""

    MONONEUROPATHY = "mononeuropathy"
    POLYNEUROPATHY = "polyneuropathy"
    AUTONOMIC = "autonomic"
    AMYOTROPHY = "amyotrophy"
    UNSPECIFIED = "unspecified"


class NeuropathySite(str, Enum):
    """Site of an isolated (non-diabetic) neuropathy."""

    INTERCOSTAL = "intercostal"
    OPTIC = "optic"
    UNSPECIFIED = "unspecified"


class RetinopathySeverity(str, Enum):
    """Diabetic retinopathy severity."""

    MILD_NPDR = "mild_npdr"
    MODERATE_NPDR = "moderate_npdr"
    SEVERE_NPDR = "severe_npdr"
    PDR = "pdr"
    UNSPECIFIED = "unspecified"


class UlcerSite(str, Enum):
    """Lower limb ulcer site."""

    CALF = "calf"
    ANKLE = "ankle"
    HEEL = "heel"
    FOOT = "foot"
    TOE = "toe"


class UlcerDepth(str, Enum):
    """Deepest tissue involved by a non-pressure ulcer."""

    SKIN = "skin"
    FAT = "fat"
    MUSCLE = "muscle"
    BONE = "bone"


class AsthmaSeverity(str, Enum):
    """Asthma severity class."""

    MILD_INTERMITTENT = "mild_intermittent"
    MILD_PERSISTENT = "mild_persistent"
    MODERATE_PERSISTENT = "moderate_persistent"
    SEVERE_PERSISTENT = "severe_persistent"


class Organism(str, Enum):
    """Infectious organism named in documentation."""

    STREPTOCOCCUS = "streptococcus"
    HAEMOPHILUS = "haemophilus"
    KLEBSIELLA = "klebsiella"
    PSEUDOMONAS = "pseudomonas"
    MSSA = "mssa"
    MRSA = "mrsa"
    STAPHYLOCOCCUS = "staphylococcus"
    E_COLI = "e_coli"
    SERRATIA = "serratia"
    ENTEROCOCCUS = "enterococcus"
    ANAEROBE = "anaerobe"
    CANDIDA = "candida"
    VIRAL = "viral"


class EncephalopathyType(str, Enum):
    """Encephalopathy type."""

    METABOLIC = "metabolic"
    TOXIC = "toxic"
    HEPATIC = "hepatic"
    HYPOXIC = "hypoxic"
    UNSPECIFIED = "unspecified"


class PregnancyComplication(str, Enum):
    """Obstetric complication."""

    PREECLAMPSIA = "preeclampsia"
    GESTATIONAL_DIABETES = "gestational_diabetes"
    HYPEREMESIS = "hyperemesis"
    PLACENTA_PREVIA = "placenta_previa"
    THREATENED_ABORTION = "threatened_abortion"
    POSTPARTUM_HEMORRHAGE = "postpartum_hemorrhage"


class InjuryKind(str, Enum):
    """Injury type."""

    FRACTURE = "fracture"
    LACERATION = "laceration"
    CONTUSION = "contusion"
    SPRAIN = "sprain"
    UNSPECIFIED = "unspecified"


class Episode(str, Enum):
    """Episode of care for injury and trauma codes."""

    INITIAL = "initial"
    SUBSEQUENT = "subsequent"
    SEQUELA = "sequela"

    @property
    def seventh_character(self) -> str:
        """ICD-10-CM 7th character for this episode."""
        return {"initial": "A", "subsequent": "D", "sequela": "S"}[self.value]


class DepressionSeverity(str, Enum):
    """Recurrent major depressive disorder severity."""

    SEVERE = "severe"
    SEVERE_PSYCHOTIC = "severe_psychotic"
