"""ICD-10-CM lookup tables shared by candidate generation and guideline rules.

Maps structured concept attributes to the codes they select. Functions here
are pure table lookups with no catalog access.
"""

import re

from icd_encoder.schemas.base import (
    Acuity,
    AsthmaSeverity,
    CkdStage,
    DepressionSeverity,
    DialysisStatus,
    DiabetesType,
    EncephalopathyType,
    Episode,
    HeartFailureType,
    InjuryKind,
    Laterality,
    NeuropathySite,
    NeuropathyType,
    Organism,
    RetinopathySeverity,
    UlcerDepth,
    UlcerSite,
)

# ============================================================================
# Kidney
# ============================================================================

CKD_STAGE_CODES: dict[CkdStage, str] = {
    CkdStage.STAGE_1: "N18.1",
    CkdStage.STAGE_2: "N18.2",
    CkdStage.STAGE_3: "N18.30",
    CkdStage.STAGE_3A: "N18.31",
    CkdStage.STAGE_3B: "N18.32",
    CkdStage.STAGE_4: "N18.4",
    CkdStage.STAGE_5: "N18.5",
    CkdStage.ESRD: "N18.6",
}
CKD_UNSPECIFIED = "N18.9"
AKI_CODE = "N17.9"
DIALYSIS_DEPENDENCE = "Z99.2"

CKD_CODE_PATTERN = re.compile(r"^N18\.")
STAGED_CKD_PATTERN = re.compile(r"^N18\.[1-6]")


def effective_ckd_stage(stage: CkdStage | None, dialysis: DialysisStatus | None) -> CkdStage | None:
    """Stage 5 requiring chronic dialysis is coded as end stage renal disease."""
    if stage == CkdStage.STAGE_5 and dialysis == DialysisStatus.CHRONIC:
        return CkdStage.ESRD
    return stage


def ckd_stage_code(stage: CkdStage | None) -> str:
    """N18 code for a CKD stage; unspecified when no stage is documented."""
    if stage is None:
        return CKD_UNSPECIFIED
    return CKD_STAGE_CODES[stage]


# ============================================================================
# Cardiovascular
# ============================================================================

ESSENTIAL_HYPERTENSION = "I10"
HYPERTENSIVE_HEART_WITH_HF = "I11.0"
HYPERTENSIVE_CKD_END_STAGE = "I12.0"
HYPERTENSIVE_CKD = "I12.9"
HYPERTENSIVE_HEART_CKD_HF = "I13.0"
HYPERTENSIVE_HEART_CKD_HF_END_STAGE = "I13.2"
MYOCARDIAL_INFARCTION = "I21.9"

_HF_TYPE_PREFIX = {
    HeartFailureType.SYSTOLIC: "I50.2",
    HeartFailureType.DIASTOLIC: "I50.3",
    HeartFailureType.COMBINED: "I50.4",
}
_ACUITY_DIGIT = {
    None: "0",
    Acuity.ACUTE: "1",
    Acuity.CHRONIC: "2",
    Acuity.ACUTE_ON_CHRONIC: "3",
}


def heart_failure_code(heart_failure_type: HeartFailureType, acuity: Acuity | None) -> str:
    """Heart failure code from type and acuity (I50.9 when the type is unknown)."""
    prefix = _HF_TYPE_PREFIX.get(heart_failure_type)
    if prefix is None:
        return "I50.9"
    return prefix + _ACUITY_DIGIT[acuity]


# ============================================================================
# Diabetes
# ============================================================================

DIABETES_PREFIXES: dict[DiabetesType, str] = {
    DiabetesType.UNDERLYING_CONDITION: "E08",
    DiabetesType.DRUG_INDUCED: "E09",
    DiabetesType.TYPE_1: "E10",
    DiabetesType.TYPE_2: "E11",
    DiabetesType.OTHER_SPECIFIED: "E13",
}
DEFAULT_DIABETES_TYPE = DiabetesType.TYPE_2

DIABETES_CODE_PATTERN = re.compile(r"^E(0[89]|1[013])\.")
DIABETES_COMBINATION_PATTERN = re.compile(r"^E(0[89]|1[013])\.(0|1|2|4)")
DIABETIC_NEUROPATHY_PATTERN = re.compile(r"^E(0[89]|1[013])\.(4|61)")
GENERIC_NEUROPATHY_PATTERN = re.compile(r"^(G5[89]|G6\d|H47\.|M14\.6)")

LONG_TERM_INSULIN = "Z79.4"
PANCREATITIS = "K86.1"

_NEUROPATHY_SUFFIX = {
    NeuropathyType.UNSPECIFIED: "40",
    NeuropathyType.MONONEUROPATHY: "41",
    NeuropathyType.POLYNEUROPATHY: "42",
    NeuropathyType.AUTONOMIC: "43",
    NeuropathyType.AMYOTROPHY: "44",
}

_RETINOPATHY_SUFFIX = {
    RetinopathySeverity.MILD_NPDR: "32",
    RetinopathySeverity.MODERATE_NPDR: "33",
    RetinopathySeverity.SEVERE_NPDR: "34",
    RetinopathySeverity.PDR: "35",
}

_EYE_CHARACTER = {
    Laterality.RIGHT: "1",
    Laterality.LEFT: "2",
    Laterality.BILATERAL: "3",
    None: "9",
}


def diabetes_prefix(diabetes_type: DiabetesType | None) -> str:
    return DIABETES_PREFIXES[diabetes_type or DEFAULT_DIABETES_TYPE]


def diabetic_neuropathy_code(prefix: str, neuropathy: NeuropathyType) -> str:
    return f"{prefix}.{_NEUROPATHY_SUFFIX[neuropathy]}"


def diabetic_retinopathy_code(
    prefix: str,
    severity: RetinopathySeverity,
    macular_edema: bool = False,
    traction_detachment: bool = False,
    laterality: Laterality | None = None,
) -> str:
    """Retinopathy code from severity, macular edema and eye.

    Unspecified retinopathy (.311/.319) carries no eye character; staged
    retinopathy codes end with 1 right, 2 left, 3 bilateral or 9 unspecified.
    """
    if severity == RetinopathySeverity.UNSPECIFIED:
        return f"{prefix}.311" if macular_edema else f"{prefix}.319"
    base = _RETINOPATHY_SUFFIX[severity]
    if severity == RetinopathySeverity.PDR and traction_detachment:
        detail = "2"
    elif macular_edema:
        detail = "1"
    else:
        detail = "9"
    return f"{prefix}.{base}{detail}{_EYE_CHARACTER[laterality]}"


def diabetes_complication_codes(prefix: str, attrs, has_ckd: bool = False) -> list[tuple[str, str]]:
    """Codes for every documented diabetic complication, in precedence order.

    The first entry is the primary manifestation. Precedence: hyperosmolarity,
    ketoacidosis, hypoglycemia, hyperglycemia, foot ulcer, peripheral
    angiopathy, Charcot joint, retinopathy, kidney, neuropathy, cataract.
    Type 1 diabetes has no hyperosmolarity subcategory, so it is skipped there.

    Args:
        prefix: Diabetes category (E08, E09, E10, E11 or E13).
        attrs: DiabetesAttributes of the concept.
        has_ckd: Whether a CKD concept was documented.

    Returns:
        (code, reason) pairs; empty when no complication is documented.
    """
    codes: list[tuple[str, str]] = []
    if attrs.hyperosmolarity and prefix != "E10":
        code = f"{prefix}.01" if attrs.with_coma else f"{prefix}.00"
        codes.append((code, "Diabetes with hyperosmolarity"))
    if attrs.ketoacidosis:
        code = f"{prefix}.11" if attrs.with_coma else f"{prefix}.10"
        codes.append((code, "Diabetes with ketoacidosis"))
    if attrs.hypoglycemia:
        code = f"{prefix}.641" if attrs.with_coma else f"{prefix}.649"
        codes.append((code, "Diabetes with hypoglycemia"))
    if attrs.uncontrolled:
        codes.append((f"{prefix}.65", "Diabetes with hyperglycemia"))
    if attrs.foot_ulcer:
        codes.append((f"{prefix}.621", "Diabetes with foot ulcer"))
    if attrs.peripheral_angiopathy or attrs.gangrene:
        if attrs.gangrene:
            codes.append((f"{prefix}.52", "Diabetes with peripheral angiopathy with gangrene"))
        else:
            codes.append((f"{prefix}.51", "Diabetes with peripheral angiopathy without gangrene"))
    if attrs.charcot_joint:
        codes.append((f"{prefix}.610", "Diabetes with neuropathic (Charcot) arthropathy"))
    if attrs.retinopathy is not None:
        code = diabetic_retinopathy_code(
            prefix,
            attrs.retinopathy,
            attrs.macular_edema,
            attrs.traction_detachment_macula,
            attrs.laterality,
        )
        codes.append((code, f"Diabetes with {attrs.retinopathy.value.replace('_', ' ')} retinopathy"))
    if has_ckd:
        codes.append((f"{prefix}.22", "Diabetes with diabetic chronic kidney disease"))
    elif attrs.nephropathy:
        codes.append((f"{prefix}.21", "Diabetes with diabetic nephropathy"))
    if attrs.neuropathy is not None:
        code = diabetic_neuropathy_code(prefix, attrs.neuropathy)
        codes.append((code, f"Diabetes with {attrs.neuropathy.value} neuropathy"))
    if attrs.cataract:
        codes.append((f"{prefix}.36", "Diabetes with diabetic cataract"))
    return codes


_ULCER_SITE_DIGIT = {
    UlcerSite.CALF: "2",
    UlcerSite.ANKLE: "3",
    UlcerSite.HEEL: "4",
    UlcerSite.FOOT: "5",
    UlcerSite.TOE: "5",
}
_ULCER_SIDE_DIGIT = {Laterality.RIGHT: "1", Laterality.LEFT: "2"}
_ULCER_DEPTH_DIGIT = {
    UlcerDepth.SKIN: "1",
    UlcerDepth.FAT: "2",
    UlcerDepth.MUSCLE: "3",
    UlcerDepth.BONE: "4",
}


def lower_limb_ulcer_code(
    site: UlcerSite | None, laterality: Laterality | None, depth: UlcerDepth | None
) -> str:
    """L97 non-pressure chronic ulcer code: site, side and depth characters."""
    site_digit = _ULCER_SITE_DIGIT.get(site, "9") if site else "9"
    side_digit = _ULCER_SIDE_DIGIT.get(laterality, "0") if laterality else "0"
    depth_digit = _ULCER_DEPTH_DIGIT.get(depth, "9") if depth else "9"
    return f"L97.{site_digit}{side_digit}{depth_digit}"


# ============================================================================
# Respiratory
# ============================================================================

COPD_UNSPECIFIED = "J44.9"
COPD_WITH_INFECTION = "J44.0"
COPD_WITH_EXACERBATION = "J44.1"
ASTHMA_UNSPECIFIED = "J45.909"
PNEUMONIA_UNSPECIFIED = "J18.9"

PNEUMONIA_ORGANISM_CODES: dict[Organism, str] = {
    Organism.STREPTOCOCCUS: "J13",
    Organism.HAEMOPHILUS: "J14",
    Organism.KLEBSIELLA: "J15.0",
    Organism.PSEUDOMONAS: "J15.1",
    Organism.MSSA: "J15.211",
    Organism.MRSA: "J15.212",
    Organism.STAPHYLOCOCCUS: "J15.20",
    Organism.E_COLI: "J15.5",
    Organism.SERRATIA: "J15.6",
    Organism.ENTEROCOCCUS: "J15.8",
    Organism.ANAEROBE: "J15.8",
    Organism.CANDIDA: "B37.1",
    Organism.VIRAL: "J12.9",
}

PNEUMONIA_CODE_PATTERN = re.compile(r"^(J1[2-8]|B37\.1)")

_ASTHMA_SEVERITY_PREFIX = {
    AsthmaSeverity.MILD_INTERMITTENT: "J45.2",
    AsthmaSeverity.MILD_PERSISTENT: "J45.3",
    AsthmaSeverity.MODERATE_PERSISTENT: "J45.4",
    AsthmaSeverity.SEVERE_PERSISTENT: "J45.5",
}


def pneumonia_code(organism: Organism | None) -> str:
    if organism is None:
        return PNEUMONIA_UNSPECIFIED
    return PNEUMONIA_ORGANISM_CODES[organism]


def asthma_code(
    severity: AsthmaSeverity | None, exacerbation: bool = False, status_asthmaticus: bool = False
) -> str:
    """Asthma code from severity and status; status asthmaticus wins over exacerbation."""
    status = "2" if status_asthmaticus else "1" if exacerbation else "0"
    prefix = _ASTHMA_SEVERITY_PREFIX.get(severity) if severity else None
    if prefix is None:
        return {"0": "J45.909", "1": "J45.901", "2": "J45.902"}[status]
    return prefix + status


# ============================================================================
# Neoplasm
# ============================================================================

_PRIMARY_SITE_CODES: dict[str, dict[Laterality | None, str]] = {
    "colon": {None: "C18.9"},
    "lung": {None: "C34.90", Laterality.RIGHT: "C34.91", Laterality.LEFT: "C34.92"},
    "breast": {None: "C50.919", Laterality.RIGHT: "C50.911", Laterality.LEFT: "C50.912"},
    "pancreas": {None: "C25.9"},
    "prostate": {None: "C61"},
    "brain": {None: "C71.9"},
    "kidney": {None: "C64.9", Laterality.RIGHT: "C64.1", Laterality.LEFT: "C64.2"},
    "stomach": {None: "C16.9"},
    "ovary": {None: "C56.9", Laterality.RIGHT: "C56.1", Laterality.LEFT: "C56.2"},
    "liver": {None: "C22.9"},
}

SECONDARY_SITE_CODES: dict[str, str] = {
    "liver": "C78.7",
    "lung": "C78.00",
    "bone": "C79.51",
    "brain": "C79.31",
    "colon": "C78.5",
}
SECONDARY_UNSPECIFIED = "C79.9"

HISTORY_SITE_CODES: dict[str, str] = {
    "colon": "Z85.038",
    "lung": "Z85.118",
    "breast": "Z85.3",
    "prostate": "Z85.46",
    "kidney": "Z85.528",
    "stomach": "Z85.028",
    "ovary": "Z85.43",
    "pancreas": "Z85.07",
    "liver": "Z85.05",
    "brain": "Z85.841",
}
HISTORY_UNSPECIFIED = "Z85.9"
FOLLOW_UP_EXAM = "Z08"

NEOPLASM_SITES = tuple(sorted(set(_PRIMARY_SITE_CODES) | set(SECONDARY_SITE_CODES)))
LATERAL_SITES = frozenset(("breast", "lung", "kidney", "ovary"))

SECONDARY_NEOPLASM_PATTERN = re.compile(r"^C7[89]")
PRIMARY_NEOPLASM_PATTERN = re.compile(r"^C(0\d|[1-6]\d|7[0-6])")


def primary_neoplasm_code(site: str, laterality: Laterality | None = None) -> str | None:
    """Primary malignancy code for a site; laterality applies to paired organs."""
    by_side = _PRIMARY_SITE_CODES.get(site)
    if by_side is None:
        return None
    if laterality == Laterality.BILATERAL:
        laterality = None
    return by_side.get(laterality, by_side[None])


def secondary_neoplasm_code(site: str | None) -> str:
    if site is None:
        return SECONDARY_UNSPECIFIED
    return SECONDARY_SITE_CODES.get(site, SECONDARY_UNSPECIFIED)


def history_neoplasm_code(site: str | None) -> str:
    if site is None:
        return HISTORY_UNSPECIFIED
    return HISTORY_SITE_CODES.get(site, HISTORY_UNSPECIFIED)


# ============================================================================
# Pregnancy
# ============================================================================

PREGNANCY_CODE_PATTERN = re.compile(r"^O")
ENDOCRINE_HYPERTENSIVE_PATTERN = re.compile(r"^(E0[89]|E1[0-3]|I1[0-6])")


def _trimester_digit(trimester: int | None) -> str:
    return str(trimester) if trimester in (1, 2, 3) else "0"


def pregnancy_unspecified_code(trimester: int | None) -> str:
    """O26.9- pregnancy related condition, by trimester."""
    return f"O26.9{_trimester_digit(trimester)}"


def gestational_diabetes_code(trimester: int | None) -> str:
    """O24.41- gestational diabetes in pregnancy, diet controlled."""
    if trimester in (1, 2, 3):
        return {1: "O24.411", 2: "O24.413", 3: "O24.414"}[trimester]
    return "O24.410"


def preeclampsia_code(trimester: int | None) -> str:
    if trimester == 2:
        return "O14.02"
    if trimester == 3:
        return "O14.03"
    return "O14.00"


def placenta_previa_code(trimester: int | None) -> str:
    return f"O44.0{_trimester_digit(trimester)}"


_PREEXISTING_DIABETES_IN_PREGNANCY = {"E10": "O24.01", "E11": "O24.11"}


def preexisting_diabetes_in_pregnancy_code(prefix: str, trimester: int | None) -> str:
    """O24.0-/O24.1-/O24.8- pre-existing diabetes in pregnancy, by trimester."""
    stem = _PREEXISTING_DIABETES_IN_PREGNANCY.get(prefix, "O24.81")
    return stem + (str(trimester) if trimester in (1, 2, 3) else "9")


def preexisting_hypertension_in_pregnancy_code(trimester: int | None) -> str:
    return "O10.01" + (str(trimester) if trimester in (1, 2, 3) else "9")


HYPEREMESIS = "O21.0"
THREATENED_ABORTION = "O20.0"
POSTPARTUM_HEMORRHAGE = "O72.1"


def gestational_age_code(weeks: int | None) -> str | None:
    """Z3A weeks-of-gestation code, when the week count has one."""
    if weeks is None:
        return None
    if weeks < 8:
        return "Z3A.01"
    if weeks > 42:
        return "Z3A.49"
    return f"Z3A.{weeks:02d}"


def trimester_for_weeks(weeks: int) -> int:
    if weeks < 14:
        return 1
    if weeks < 28:
        return 2
    return 3


# ============================================================================
# Injury
# ============================================================================

INJURY_CODE_SHAPE = re.compile(r"^[STO]\d{2}\.[A-Z0-9]{3}$")
EXTERNAL_CAUSE_PATTERN = re.compile(r"^[VWXY]\d")
DEFAULT_EXTERNAL_CAUSE = "W19.XXX"


def injury_code(kind: InjuryKind, episode: Episode) -> str:
    """Injury of unspecified body region with the episode 7th character."""
    base = "T14.90X" if kind == InjuryKind.UNSPECIFIED else "T14.8XX"
    return base + episode.seventh_character


def fall_code(episode: Episode) -> str:
    return DEFAULT_EXTERNAL_CAUSE + episode.seventh_character


def with_seventh_character(code: str, episode: Episode) -> str:
    """Attach an episode character to trauma/obstetric shaped codes only."""
    if INJURY_CODE_SHAPE.match(code):
        return code + episode.seventh_character
    return code


# ============================================================================
# Sepsis, neurology and other
# ============================================================================

SEVERE_SEPSIS = "R65.20"
SEPTIC_SHOCK = "R65.21"
SEVERE_SEPSIS_PATTERN = re.compile(r"^R65\.2")
SYSTEMIC_INFECTION_PATTERN = re.compile(r"^(A4[01]|B37\.7)")

SEPSIS_ORGANISM_CODES: dict[Organism, str] = {
    Organism.E_COLI: "A41.51",
    Organism.PSEUDOMONAS: "A41.52",
    Organism.MRSA: "A41.02",
    Organism.MSSA: "A41.01",
    Organism.STAPHYLOCOCCUS: "A41.2",
    Organism.STREPTOCOCCUS: "A40.9",
    Organism.KLEBSIELLA: "A41.59",
    Organism.SERRATIA: "A41.53",
    Organism.ENTEROCOCCUS: "A41.81",
    Organism.ANAEROBE: "A41.4",
    Organism.CANDIDA: "B37.7",
    Organism.VIRAL: "A41.89",
}
SEPSIS_UNSPECIFIED = "A41.9"

INFECTION_SITE_CODES: dict[str, str] = {
    "lung": "J18.9",
    "urinary": "N39.0",
    "skin": "L03.90",
}


def sepsis_code(organism: Organism | None) -> str:
    if organism is None:
        return SEPSIS_UNSPECIFIED
    return SEPSIS_ORGANISM_CODES[organism]


ENCEPHALOPATHY_CODES: dict[EncephalopathyType, str] = {
    EncephalopathyType.METABOLIC: "G93.41",
    EncephalopathyType.TOXIC: "G92.8",
    EncephalopathyType.HEPATIC: "K72.90",
    EncephalopathyType.HYPOXIC: "G93.1",
    EncephalopathyType.UNSPECIFIED: "G93.40",
}
ENCEPHALOPATHY_CODE_PATTERN = re.compile(r"^(G93\.4|G92\.8|G93\.1$|K72\.90)")

NEUROPATHY_SITE_CODES: dict[NeuropathySite, str] = {
    NeuropathySite.INTERCOSTAL: "G58.0",
    NeuropathySite.OPTIC: "H47.019",
    NeuropathySite.UNSPECIFIED: "G62.9",
}

DEPRESSION_CODES: dict[DepressionSeverity, str] = {
    DepressionSeverity.SEVERE: "F33.2",
    DepressionSeverity.SEVERE_PSYCHOTIC: "F33.3",
}
