"""Rule-based clinical concept extraction.

Turns normalized clinical text into typed Concepts. Each domain runs an
independent set of regex triggers and emits at most one Concept per type,
aggregating every matching mention into that concept's attributes.

Attributes that cannot be determined from the text stay unset (None) so that
the guideline rules can handle "unspecified" explicitly rather than guessing.

Usage:
    text = normalize_text("Type 2 DM with CKD stage 4")
    concepts = extract_concepts(text)
"""

import logging
import re

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
from icd_encoder.services.code_tables import LATERAL_SITES, trimester_for_weeks
from icd_encoder.services.concepts import (
    AcuteKidneyInjuryAttributes,
    AsthmaAttributes,
    CkdAttributes,
    Concept,
    CopdAttributes,
    DiabetesAttributes,
    EncephalopathyAttributes,
    HeartFailureAttributes,
    HypertensionAttributes,
    InjuryAttributes,
    NeoplasmAttributes,
    NeuropathyAttributes,
    OtherAttributes,
    PneumoniaAttributes,
    PregnancyAttributes,
    SepsisAttributes,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Negation
# ============================================================================

# Words that negate a mention when they appear just before it in the same clause
NEGATION_TRIGGERS = [
    re.compile(r"\bno\b"),
    re.compile(r"\bnot\b"),
    re.compile(r"\bdenies\b"),
    re.compile(r"\bdenied\b"),
    re.compile(r"\bwithout\b"),
    re.compile(r"\bnegative for\b"),
    re.compile(r"\bruled out\b"),
    re.compile(r"\bfree of\b"),
]

NEGATION_WINDOW_WORDS = 4
_CLAUSE_BREAK = re.compile(r"[.;,:]")


def is_negated(text: str, start: int) -> bool:
    """Check whether the mention starting at ``start`` is negated.

    Looks at the last few words before the mention, stopping at the nearest
    clause break.

    Args:
        text: Normalized text.
        start: Offset of the mention.

    Returns:
        True when a negation trigger precedes the mention.
    """
    preceding = text[max(0, start - 60) : start]
    breaks = list(_CLAUSE_BREAK.finditer(preceding))
    if breaks:
        preceding = preceding[breaks[-1].end() :]
    window = " ".join(preceding.split()[-NEGATION_WINDOW_WORDS:])
    return any(trigger.search(window) for trigger in NEGATION_TRIGGERS)


def _first(pattern: re.Pattern[str], text: str) -> re.Match[str] | None:
    """First non-negated match of a pattern."""
    for match in pattern.finditer(text):
        if not is_negated(text, match.start()):
            return match
    return None


def _has(pattern: re.Pattern[str], text: str) -> bool:
    return _first(pattern, text) is not None


def _clause_at(text: str, position: int) -> str:
    """The clause (between punctuation breaks) containing ``position``."""
    start = max(text.rfind(mark, 0, position) for mark in ".;,") + 1
    ends = [index for index in (text.find(mark, position) for mark in ".;,") if index != -1]
    return text[start : min(ends) if ends else len(text)]


def _pick(table: list[tuple[re.Pattern[str], object]], text: str) -> object | None:
    """Value of the first table entry whose pattern is mentioned."""
    for pattern, value in table:
        if _has(pattern, text):
            return value
    return None


# ============================================================================
# Shared attribute detectors
# ============================================================================

ORGANISM_PATTERNS: list[tuple[re.Pattern[str], Organism]] = [
    (re.compile(r"\bmrsa\b|methicillin[- ]resistant"), Organism.MRSA),
    (re.compile(r"\bmssa\b|methicillin[- ](?:susceptible|sensitive)"), Organism.MSSA),
    (re.compile(r"\bstaph(?:ylococc(?:us|al|i))?\b(?: aureus)?"), Organism.STAPHYLOCOCCUS),
    (re.compile(r"\bstrep(?:tococc(?:us|al|i))?\b|pneumococc"), Organism.STREPTOCOCCUS),
    (re.compile(r"\bha?emophilus\b|\bh\.? influenzae\b"), Organism.HAEMOPHILUS),
    (re.compile(r"\bklebsiella\b"), Organism.KLEBSIELLA),
    (re.compile(r"\bpseudomonas\b"), Organism.PSEUDOMONAS),
    (re.compile(r"\be\.? coli\b"), Organism.E_COLI),
    (re.compile(r"\bserratia\b"), Organism.SERRATIA),
    (re.compile(r"\benterococc(?:us|al|i)\b"), Organism.ENTEROCOCCUS),
    (re.compile(r"\banaerob(?:e|es|ic)\b|\bbacteroides\b"), Organism.ANAEROBE),
    (re.compile(r"\bcandid(?:a|al|emia)\b|\bfungal\b|\byeast\b"), Organism.CANDIDA),
    (re.compile(r"\bviral\b|\bvirus\b"), Organism.VIRAL),
]


def detect_organism(text: str) -> Organism | None:
    """First named organism, most specific first (MRSA before staphylococcus)."""
    return _pick(ORGANISM_PATTERNS, text)  # type: ignore[return-value]


_LEFT = re.compile(r"\bleft\b")
_RIGHT = re.compile(r"\bright\b")
_BILATERAL = re.compile(r"\bbilateral(?:ly)?\b|\bboth\b")


def detect_laterality(text: str) -> Laterality | None:
    """Side named in a text fragment; left and right together mean bilateral."""
    if _BILATERAL.search(text):
        return Laterality.BILATERAL
    left, right = bool(_LEFT.search(text)), bool(_RIGHT.search(text))
    if left and right:
        return Laterality.BILATERAL
    if left:
        return Laterality.LEFT
    if right:
        return Laterality.RIGHT
    return None


# ============================================================================
# Diabetes
# ============================================================================

GESTATIONAL_DIABETES = re.compile(r"gestational diabetes(?: mellitus)?")
DIABETES_TRIGGER = re.compile(r"\bdiabet(?:es|ic)\b(?! insipidus)")

DIABETES_TYPE_PATTERNS: list[tuple[re.Pattern[str], DiabetesType]] = [
    (
        re.compile(
            r"(?:drug|steroid|chemical|medication)[- ]induced (?:diabetes|hyperglycemia)"
            r"|diabetes(?: mellitus)? (?:due to|secondary to) (?:steroids?|drugs?|medications?|glucocorticoids?)"
        ),
        DiabetesType.DRUG_INDUCED,
    ),
    (
        re.compile(
            r"diabetes(?: mellitus)? (?:due to|secondary to) (?!steroid|drug|medication|glucocorticoid)"
            r"|pancreatogenic diabetes|cystic fibrosis[- ]related diabetes"
        ),
        DiabetesType.UNDERLYING_CONDITION,
    ),
    (
        re.compile(r"other specified diabetes|secondary diabetes|post[- ]?pancreatectomy diabetes"),
        DiabetesType.OTHER_SPECIFIED,
    ),
    (re.compile(r"type (?:1|i) diabetes|juvenile diabetes|\bt1dm\b"), DiabetesType.TYPE_1),
    (
        re.compile(r"type (?:2|ii) diabetes|non[- ]insulin[- ]dependent diabetes|adult[- ]onset diabetes"),
        DiabetesType.TYPE_2,
    ),
]

_POOR_CONTROL = r"(?:uncontrolled|poorly controlled|inadequately controlled|out of control)"
UNCONTROLLED = re.compile(
    rf"\b{_POOR_CONTROL}(?:\s+[\w-]+){{0,3}}\s+diabet"
    rf"|\bdiabet\w*(?:\s+[\w-]+){{0,5}}?,?\s+{_POOR_CONTROL}"
    r"|\bhyperglycemia\b"
)
HYPOGLYCEMIA = re.compile(r"\bhypoglycemi(?:a|c)\b")
KETOACIDOSIS = re.compile(r"ketoacidosis")
HYPEROSMOLAR = re.compile(r"hyperosmola(?:r|rity)")
COMA = re.compile(r"\bcoma\b|\bcomatose\b")
NEPHROPATHY = re.compile(r"nephropathy|diabetic kidney disease|proteinuria|albuminuria")
PERIPHERAL_ANGIOPATHY = re.compile(
    r"peripheral (?:angiopathy|vascular disease|arter(?:y|ial) disease)|diabetic angiopathy"
)
GANGRENE = re.compile(r"gangrene|gangrenous")
CHARCOT = re.compile(r"charcot|neuropathic (?:arthropathy|joint)")
CATARACT = re.compile(r"cataract")
PANCREATITIS = re.compile(r"pancreatitis")
INSULIN_USE = re.compile(
    r"(?<!non-)(?<!non )\b(?:on insulin|uses insulin|using insulin|takes insulin|insulin[- ](?:dependent|requiring|therapy|treated)"
    r"|long[- ]term (?:\(current\) )?(?:use of )?insulin|daily insulin|insulin pump|basal insulin)"
)

NEUROPATHY_TYPE_PATTERNS: list[tuple[re.Pattern[str], NeuropathyType]] = [
    (re.compile(r"autonomic (?:poly)?neuropathy|diabetic gastroparesis"), NeuropathyType.AUTONOMIC),
    (re.compile(r"mononeuropathy"), NeuropathyType.MONONEUROPATHY),
    (re.compile(r"polyneuropathy|peripheral neuropathy"), NeuropathyType.POLYNEUROPATHY),
    (re.compile(r"amyotrophy"), NeuropathyType.AMYOTROPHY),
    (re.compile(r"\bneuropathy\b|\bneuropathic\b(?! arthropathy| joint)"), NeuropathyType.UNSPECIFIED),
]

RETINOPATHY = re.compile(r"retinopathy|\bn?pdr\b")
RETINOPATHY_SEVERITY_PATTERNS: list[tuple[re.Pattern[str], RetinopathySeverity]] = [
    (re.compile(r"severe (?:non-?proliferative|npdr)"), RetinopathySeverity.SEVERE_NPDR),
    (re.compile(r"moderate (?:non-?proliferative|npdr)"), RetinopathySeverity.MODERATE_NPDR),
    (re.compile(r"mild (?:non-?proliferative|npdr)"), RetinopathySeverity.MILD_NPDR),
    (re.compile(r"(?<!non)(?<!non-)(?<!non )proliferative (?:diabetic )?retinopathy|\bpdr\b"), RetinopathySeverity.PDR),
]
MACULAR_EDEMA = re.compile(r"macular edema|\bdme\b")
TRACTION_DETACHMENT = re.compile(r"traction (?:retinal )?detachment")
EYE_SIDE_PATTERNS: list[tuple[re.Pattern[str], Laterality]] = [
    (re.compile(r"both eyes|bilateral|\bou\b"), Laterality.BILATERAL),
    (re.compile(r"right eye|\bod\b"), Laterality.RIGHT),
    (re.compile(r"left eye|\bos\b"), Laterality.LEFT),
]

FOOT_ULCER = re.compile(
    r"(?:foot|toe|heel|ankle|calf|plantar|midfoot|leg) ulcer"
    r"|ulcer(?:ation)? (?:of|on) (?:the )?(?:(?:left|right) )?(?:great )?(?:foot|toe|heel|ankle|calf|midfoot|plantar)"
    r"|diabetic (?:foot )?ulcer"
)
ULCER_SITE_PATTERNS: list[tuple[re.Pattern[str], UlcerSite]] = [
    (re.compile(r"\bheel\b|\bmidfoot\b"), UlcerSite.HEEL),
    (re.compile(r"\bankle\b"), UlcerSite.ANKLE),
    (re.compile(r"\bcalf\b"), UlcerSite.CALF),
    (re.compile(r"\btoe\b"), UlcerSite.TOE),
    (re.compile(r"\bfoot\b|\bplantar\b"), UlcerSite.FOOT),
]
ULCER_DEPTH_PATTERNS: list[tuple[re.Pattern[str], UlcerDepth]] = [
    (re.compile(r"(?:necrosis of|to|exposed|involving) (?:the )?bone|osteomyelitis|bone exposed"), UlcerDepth.BONE),
    (re.compile(r"(?:necrosis of|to|exposed|involving) (?:the )?muscle|muscle exposed"), UlcerDepth.MUSCLE),
    (re.compile(r"fat layer|subcutaneous|fat exposed"), UlcerDepth.FAT),
    (re.compile(r"breakdown of skin|skin breakdown|limited to (?:the )?skin|superficial"), UlcerDepth.SKIN),
]


def _ulcer_context(text: str) -> str:
    """Clause(s) that mention an ulcer, for site, side and depth detection."""
    clauses = [clause for clause in re.split(r"[.;]", text) if "ulcer" in clause]
    return " ".join(clauses)


def _diabetes_type(text: str) -> DiabetesType | None:
    diabetes_type = _pick(DIABETES_TYPE_PATTERNS, text)
    if diabetes_type is None and _has(PANCREATITIS, text) and re.search(r"due to (?:chronic )?pancreatitis", text):
        return DiabetesType.UNDERLYING_CONDITION
    return diabetes_type  # type: ignore[return-value]


def extract_diabetes(text: str) -> Concept | None:
    """Diabetes mellitus with every documented complication."""
    scrubbed = GESTATIONAL_DIABETES.sub(" ", text)
    trigger = _first(DIABETES_TRIGGER, scrubbed)
    if trigger is None:
        return None

    retinopathy = None
    if _has(RETINOPATHY, scrubbed):
        retinopathy = _pick(RETINOPATHY_SEVERITY_PATTERNS, scrubbed) or RetinopathySeverity.UNSPECIFIED

    foot_ulcer = _has(FOOT_ULCER, scrubbed)
    ulcer_text = _ulcer_context(scrubbed) if foot_ulcer else ""

    laterality = None
    if retinopathy is not None or _has(CATARACT, scrubbed):
        laterality = _pick(EYE_SIDE_PATTERNS, scrubbed)
    if laterality is None and foot_ulcer:
        laterality = detect_laterality(ulcer_text)

    neuropathy = _pick(NEUROPATHY_TYPE_PATTERNS, scrubbed)

    attributes = DiabetesAttributes(
        diabetes_type=_diabetes_type(scrubbed),
        uncontrolled=_has(UNCONTROLLED, scrubbed),
        hypoglycemia=_has(HYPOGLYCEMIA, scrubbed),
        ketoacidosis=_has(KETOACIDOSIS, scrubbed),
        hyperosmolarity=_has(HYPEROSMOLAR, scrubbed),
        with_coma=_has(COMA, scrubbed),
        nephropathy=_has(NEPHROPATHY, scrubbed),
        neuropathy=neuropathy,  # type: ignore[arg-type]
        peripheral_angiopathy=_has(PERIPHERAL_ANGIOPATHY, scrubbed),
        gangrene=_has(GANGRENE, scrubbed),
        retinopathy=retinopathy,  # type: ignore[arg-type]
        macular_edema=_has(MACULAR_EDEMA, scrubbed),
        traction_detachment_macula=_has(TRACTION_DETACHMENT, scrubbed),
        foot_ulcer=foot_ulcer,
        ulcer_site=_pick(ULCER_SITE_PATTERNS, ulcer_text) if foot_ulcer else None,  # type: ignore[arg-type]
        ulcer_depth=_pick(ULCER_DEPTH_PATTERNS, ulcer_text) if foot_ulcer else None,  # type: ignore[arg-type]
        charcot_joint=_has(CHARCOT, scrubbed),
        cataract=_has(CATARACT, scrubbed),
        laterality=laterality,  # type: ignore[arg-type]
        pancreatitis=_has(PANCREATITIS, scrubbed),
        insulin_use=_has(INSULIN_USE, scrubbed),
    )
    label = {
        DiabetesType.TYPE_1: "type 1 diabetes mellitus",
        DiabetesType.TYPE_2: "type 2 diabetes mellitus",
        DiabetesType.DRUG_INDUCED: "drug induced diabetes mellitus",
        DiabetesType.UNDERLYING_CONDITION: "diabetes mellitus due to underlying condition",
        DiabetesType.OTHER_SPECIFIED: "other specified diabetes mellitus",
    }.get(attributes.diabetes_type, "diabetes mellitus")
    return Concept(trigger.group(0), label, ConceptType.DIABETES, attributes)


# ============================================================================
# Kidney
# ============================================================================

CKD_TRIGGER = re.compile(
    r"chronic kidney disease|chronic renal (?:disease|failure|insufficiency)"
    r"|end[- ]stage (?:renal|kidney) disease|end[- ]stage renal failure"
)
ESRD = re.compile(r"end[- ]stage (?:renal|kidney) (?:disease|failure)")
_STAGE_VALUE = r"(iii|iv|v|ii|i|[1-5])\s*([ab])?\b"
_KIDNEY_TERM = r"(?:chronic kidney disease|chronic renal (?:disease|failure|insufficiency))"
CKD_STAGE_PATTERNS = [
    re.compile(rf"{_KIDNEY_TERM},?\s*(?:stage|stg)\s*{_STAGE_VALUE}"),
    re.compile(rf"(?:stage|stg)\s*{_STAGE_VALUE}\s*{_KIDNEY_TERM}"),
    re.compile(rf"{_KIDNEY_TERM},?\s*{_STAGE_VALUE}"),
]
_ROMAN = {"i": "1", "ii": "2", "iii": "3", "iv": "4", "v": "5"}

DIALYSIS_PATTERNS: list[tuple[re.Pattern[str], DialysisStatus]] = [
    (
        re.compile(
            r"\b(?:no|not on|not yet on|without|never on|not requiring|does not require) (?:\w+ ){0,2}\w*dialysis"
            r"|dialysis[- ]independent|not (?:a )?dialysis candidate"
        ),
        DialysisStatus.NONE,
    ),
    (
        re.compile(r"(?:temporary|acute|short[- ]term|emergent) (?:hemo)?dialysis|dialysis (?:temporarily|for acute)"),
        DialysisStatus.TEMPORARY,
    ),
    (
        re.compile(
            r"on (?:hemo|peritoneal |chronic )?dialysis|hemodialysis|peritoneal dialysis"
            r"|dialysis[- ]dependent|dependent on (?:renal )?dialysis|dependence on (?:renal )?dialysis"
            r"|chronic (?:hemo)?dialysis|maintenance dialysis"
        ),
        DialysisStatus.CHRONIC,
    ),
]


def _ckd_stage(text: str) -> CkdStage | None:
    if _has(ESRD, text):
        return CkdStage.ESRD
    for pattern in CKD_STAGE_PATTERNS:
        match = _first(pattern, text)
        if match:
            number = _ROMAN.get(match.group(1), match.group(1))
            substage = match.group(2) or ""
            if number != "3":
                substage = ""
            return CkdStage(number + substage)
    return None


def _dialysis_status(text: str) -> DialysisStatus | None:
    # Negated dialysis mentions are matched explicitly, so scan without the negation filter
    for pattern, status in DIALYSIS_PATTERNS:
        if pattern.search(text):
            return status
    return None


def extract_ckd(text: str) -> Concept | None:
    """Chronic kidney disease with stage and dialysis status."""
    trigger = _first(CKD_TRIGGER, text)
    if trigger is None:
        return None
    attributes = CkdAttributes(stage=_ckd_stage(text), dialysis=_dialysis_status(text))
    return Concept(trigger.group(0), "chronic kidney disease", ConceptType.CKD, attributes)


AKI_TRIGGER = re.compile(r"acute kidney (?:injury|failure)|acute renal (?:failure|injury)|acute tubular necrosis")


def extract_aki(text: str) -> Concept | None:
    trigger = _first(AKI_TRIGGER, text)
    if trigger is None:
        return None
    return Concept(trigger.group(0), "acute kidney injury", ConceptType.ACUTE_KIDNEY_INJURY, AcuteKidneyInjuryAttributes())


# ============================================================================
# Cardiovascular
# ============================================================================

HYPERTENSION_TRIGGER = re.compile(
    r"(?<!pulmonary )(?<!portal )(?<!intracranial )(?<!ocular )(?<!gestational )\bhypertension\b"
    r"|\bhypertensive (?:heart|kidney|chronic kidney|renal|disease)"
)
HEART_FAILURE_TRIGGER = re.compile(r"heart failure|cardiac failure")
SYSTOLIC = re.compile(r"\bsystolic\b(?! blood pressure| murmur)|reduced ejection fraction")
DIASTOLIC = re.compile(r"\bdiastolic\b(?! blood pressure| murmur)|preserved ejection fraction")
HF_ACUITY = re.compile(
    r"\b(acute on chronic|acute-on-chronic|acute|chronic|decompensated)\s+"
    r"(?:(?:combined|systolic|diastolic|and|congestive|decompensated)\s+)*(?:heart|cardiac) failure"
)
_ACUITY_VALUES = {
    "acute on chronic": Acuity.ACUTE_ON_CHRONIC,
    "acute-on-chronic": Acuity.ACUTE_ON_CHRONIC,
    "acute": Acuity.ACUTE,
    "decompensated": Acuity.ACUTE,
    "chronic": Acuity.CHRONIC,
}


def extract_hypertension(text: str) -> Concept | None:
    trigger = _first(HYPERTENSION_TRIGGER, text)
    if trigger is None:
        return None
    return Concept(trigger.group(0), "hypertension", ConceptType.HYPERTENSION, HypertensionAttributes())


def extract_heart_failure(text: str) -> Concept | None:
    """Heart failure with type (systolic/diastolic/combined) and acuity."""
    trigger = _first(HEART_FAILURE_TRIGGER, text)
    if trigger is None:
        return None
    systolic, diastolic = _has(SYSTOLIC, text), _has(DIASTOLIC, text)
    if systolic and diastolic:
        heart_failure_type = HeartFailureType.COMBINED
    elif systolic:
        heart_failure_type = HeartFailureType.SYSTOLIC
    elif diastolic:
        heart_failure_type = HeartFailureType.DIASTOLIC
    else:
        heart_failure_type = HeartFailureType.UNSPECIFIED
    acuity_match = _first(HF_ACUITY, text)
    acuity = _ACUITY_VALUES[acuity_match.group(1)] if acuity_match else None
    attributes = HeartFailureAttributes(heart_failure_type=heart_failure_type, acuity=acuity)
    return Concept(trigger.group(0), "heart failure", ConceptType.HEART_FAILURE, attributes)


# ============================================================================
# Respiratory
# ============================================================================

COPD_TRIGGER = re.compile(
    r"chronic obstructive (?:pulmonary|lung|airway) disease|\bemphysema\b|chronic obstructive bronchitis"
)
EXACERBATION = re.compile(r"exacerbation|exacerbated|\bflare\b|acute(?:ly)? worsening|\battack\b")
LOWER_RESPIRATORY_INFECTION = re.compile(
    r"(?:acute )?lower respiratory (?:tract )?infection|acute bronchitis|pneumonia"
)
ASTHMA_TRIGGER = re.compile(r"\basthma")
STATUS_ASTHMATICUS = re.compile(r"status asthmaticus")
ASTHMA_SEVERITY_PATTERNS: list[tuple[re.Pattern[str], AsthmaSeverity]] = [
    (re.compile(r"severe persistent"), AsthmaSeverity.SEVERE_PERSISTENT),
    (re.compile(r"moderate persistent"), AsthmaSeverity.MODERATE_PERSISTENT),
    (re.compile(r"mild persistent"), AsthmaSeverity.MILD_PERSISTENT),
    (re.compile(r"mild intermittent|intermittent asthma"), AsthmaSeverity.MILD_INTERMITTENT),
]
PNEUMONIA_TRIGGER = re.compile(r"pneumonia")


def extract_copd(text: str) -> Concept | None:
    trigger = _first(COPD_TRIGGER, text)
    if trigger is None:
        return None
    infection = _has(LOWER_RESPIRATORY_INFECTION, text)
    attributes = CopdAttributes(
        acute_exacerbation=_has(EXACERBATION, text),
        lower_respiratory_infection=infection,
        organism=detect_organism(text) if infection else None,
    )
    return Concept(trigger.group(0), "chronic obstructive pulmonary disease", ConceptType.COPD, attributes)


def extract_asthma(text: str) -> Concept | None:
    trigger = _first(ASTHMA_TRIGGER, text)
    if trigger is None:
        return None
    attributes = AsthmaAttributes(
        severity=_pick(ASTHMA_SEVERITY_PATTERNS, text),  # type: ignore[arg-type]
        exacerbation=_has(EXACERBATION, text),
        status_asthmaticus=_has(STATUS_ASTHMATICUS, text),
    )
    return Concept(trigger.group(0), "asthma", ConceptType.ASTHMA, attributes)


def extract_pneumonia(text: str) -> Concept | None:
    trigger = _first(PNEUMONIA_TRIGGER, text)
    if trigger is None:
        return None
    attributes = PneumoniaAttributes(organism=detect_organism(text))
    return Concept(trigger.group(0), "pneumonia", ConceptType.PNEUMONIA, attributes)


# ============================================================================
# Neoplasm
# ============================================================================

SITE_TERMS: dict[str, str] = {
    "colon": r"colon(?:ic)?|colorectal|sigmoid|cecal|cecum",
    "lung": r"lungs?|bronchogenic|bronchial",
    "breast": r"breasts?",
    "pancreas": r"pancreas|pancreatic",
    "prostate": r"prostate|prostatic",
    "brain": r"brain|cerebral",
    "kidney": r"kidneys?|renal cell",
    "stomach": r"stomach|gastric",
    "ovary": r"ovary|ovaries|ovarian",
    "liver": r"liver|hepatic|hepatocellular",
    "bone": r"bones?|osseous|skeletal",
}
_SITE_ALT = "|".join(f"(?:{terms})" for terms in SITE_TERMS.values())
_SITE_LOOKUP = [(site, re.compile(rf"^(?:{terms})$")) for site, terms in SITE_TERMS.items()]

CANCER_WORDS = r"cancer|carcinoma|adenocarcinoma|malignancy|malignant neoplasm|neoplasm|tumou?r|metasta\w*"
NEOPLASM_TRIGGER = re.compile(
    r"\bcancer\b|carcinoma|malignan(?:cy|t)|\bmetasta\w*|secondary (?:malignan|neoplasm|cancer)"
)
METASTATIC_TO = re.compile(r"(?:metasta\w*|spread|mets)\s+to\s+")
METASTATIC_LIST_ITEM = re.compile(rf"\s*(?:,|and|&)?\s*(?:the\s+)?(?:(?:left|right)\s+)?({_SITE_ALT})\b")
SITE_METASTASES = re.compile(rf"\b({_SITE_ALT})\s+metastas[ie]s")
METASTATIC_SITE = re.compile(rf"\b(?:metastatic|secondary)\s+(?:(?:left|right)\s+)?({_SITE_ALT})\b")
EXPLICIT_PRIMARY = re.compile(
    rf"\bfrom\s+(?:an?\s+|the\s+)?(?:(?:left|right)\s+)?({_SITE_ALT})\b"
    rf"|\b({_SITE_ALT})\s+primary\b"
    rf"|\bprimary\s+(?:(?:left|right)\s+)?({_SITE_ALT})\b"
)
SITE_CANCER = re.compile(
    rf"\b({_SITE_ALT})(?:\s+\w+)?\s+(?:{CANCER_WORDS})"
    rf"|(?:{CANCER_WORDS})\s+of\s+(?:the\s+)?(?:(?:left|right)\s+)?({_SITE_ALT})\b"
)
NEOPLASM_HISTORY = re.compile(
    rf"(?:history of|hx of|status post|s/p|treated for|survivor of)\s+(?:\w+\s+){{0,3}}(?:{CANCER_WORDS})"
)
ACTIVE_DISEASE = re.compile(r"\bactive\b|\bcurrent(?:ly)?\b|undergoing|on chemotherapy|receiving|recurren")
FOLLOW_UP = re.compile(r"follow[- ]?up|surveillance")


def site_name(term: str) -> str | None:
    """Canonical neoplasm site for a site term ('renal cell' -> 'kidney')."""
    for site, pattern in _SITE_LOOKUP:
        if pattern.match(term):
            return site
    return None


def _metastatic_sites(text: str, has_explicit_origin: bool) -> list[str]:
    """Metastatic sites in order of mention."""
    found: list[tuple[int, str]] = []
    for match in METASTATIC_TO.finditer(text):
        position = match.end()
        while True:
            item = METASTATIC_LIST_ITEM.match(text, position)
            if item is None:
                break
            site = site_name(item.group(1))
            if site:
                found.append((item.start(1), site))
            position = item.end()
    for match in SITE_METASTASES.finditer(text):
        site = site_name(match.group(1))
        if site:
            found.append((match.start(1), site))
    if has_explicit_origin:
        for match in METASTATIC_SITE.finditer(text):
            site = site_name(match.group(1))
            if site:
                found.append((match.start(1), site))
    ordered: list[str] = []
    for _, site in sorted(found):
        if site not in ordered:
            ordered.append(site)
    return ordered


def _primary_site(text: str, metastatic: list[str]) -> tuple[str | None, int | None]:
    """Explicit origin first, then the first cancer site that is not metastatic."""
    explicit = EXPLICIT_PRIMARY.search(text)
    if explicit:
        term = next(group for group in explicit.groups() if group)
        return site_name(term), explicit.start()
    for match in SITE_CANCER.finditer(text):
        term = match.group(1) or match.group(2)
        site = site_name(term)
        if site and site not in metastatic:
            return site, match.start()
    # "metastatic colon cancer" with no stated origin names the primary
    for match in METASTATIC_SITE.finditer(text):
        site = site_name(match.group(1))
        if site:
            return site, match.start()
    return None, None


def _site_laterality(text: str, site: str | None, position: int | None) -> Laterality | None:
    if site not in LATERAL_SITES or position is None:
        return None
    window = text[max(0, position - 25) : position + 40]
    return detect_laterality(window)


def extract_neoplasm(text: str) -> Concept | None:
    """Malignant neoplasm: primary site, metastatic sites and history."""
    trigger = _first(NEOPLASM_TRIGGER, text)
    if trigger is None:
        return None

    has_origin = EXPLICIT_PRIMARY.search(text) is not None
    metastatic = _metastatic_sites(text, has_origin)
    primary, position = _primary_site(text, metastatic)
    secondary = bool(re.search(r"metasta|secondary (?:malignan|neoplasm|cancer)", text))

    history = _has(NEOPLASM_HISTORY, text) and not secondary and not _has(ACTIVE_DISEASE, text)
    attributes = NeoplasmAttributes(
        primary_site=primary,
        laterality=_site_laterality(text, primary, position),
        metastatic_sites=tuple(metastatic),
        secondary=secondary,
        history=history,
        follow_up=history and _has(FOLLOW_UP, text),
    )
    label = f"malignant neoplasm of {primary}" if primary else "malignant neoplasm"
    return Concept(trigger.group(0), label, ConceptType.NEOPLASM, attributes)


# ============================================================================
# Pregnancy
# ============================================================================

PREGNANCY_TRIGGER = re.compile(
    r"pregnan(?:t|cy)|\bgravid|obstetric|\bpostpartum\b|\bgestation(?:al)?\b|\btrimester\b|\bg\d+p\d+\b"
    r"|pre-?eclampsia|hyperemesis|placenta previa|threatened (?:abortion|miscarriage)"
)
TRIMESTER_PATTERNS: list[tuple[re.Pattern[str], int]] = [
    (re.compile(r"(?:first|1st) trimester"), 1),
    (re.compile(r"(?:second|2nd) trimester"), 2),
    (re.compile(r"(?:third|3rd) trimester"), 3),
]
GESTATIONAL_WEEKS = re.compile(
    r"(\d{1,2})\s*(?:weeks?|wks?)(?:\s+and\s+\d\s+days?)?\s*(?:of\s+)?(?:gestation|pregnant|pregnancy|ga\b)"
    r"|(?:gestational age|ga)(?:\s+of)?\s+(\d{1,2})\s*(?:weeks?|wks?)"
)
PREGNANCY_COMPLICATION_PATTERNS: list[tuple[re.Pattern[str], PregnancyComplication]] = [
    (re.compile(r"pre-?eclampsia"), PregnancyComplication.PREECLAMPSIA),
    (re.compile(r"gestational diabetes"), PregnancyComplication.GESTATIONAL_DIABETES),
    (re.compile(r"hyperemesis"), PregnancyComplication.HYPEREMESIS),
    (re.compile(r"placenta previa"), PregnancyComplication.PLACENTA_PREVIA),
    (re.compile(r"threatened (?:abortion|miscarriage)"), PregnancyComplication.THREATENED_ABORTION),
    (re.compile(r"postpartum (?:hemorrhage|haemorrhage)|\bpph\b"), PregnancyComplication.POSTPARTUM_HEMORRHAGE),
]


def extract_pregnancy(text: str) -> Concept | None:
    """Pregnancy with trimester, gestational age and complications."""
    trigger = _first(PREGNANCY_TRIGGER, text)
    if trigger is None:
        return None
    weeks = None
    weeks_match = GESTATIONAL_WEEKS.search(text)
    if weeks_match:
        weeks = int(weeks_match.group(1) or weeks_match.group(2))
    trimester = _pick(TRIMESTER_PATTERNS, text)
    if trimester is None and weeks is not None:
        trimester = trimester_for_weeks(weeks)
    complications = tuple(
        complication for pattern, complication in PREGNANCY_COMPLICATION_PATTERNS if _has(pattern, text)
    )
    attributes = PregnancyAttributes(
        trimester=trimester,  # type: ignore[arg-type]
        gestational_weeks=weeks,
        complications=complications,
    )
    return Concept(trigger.group(0), "pregnancy", ConceptType.PREGNANCY, attributes)


# ============================================================================
# Injury
# ============================================================================

INJURY_KIND_PATTERNS: list[tuple[re.Pattern[str], InjuryKind]] = [
    (re.compile(r"\bfractur(?:e|ed|es)\b"), InjuryKind.FRACTURE),
    (re.compile(r"\blacerat(?:ion|ed)\b"), InjuryKind.LACERATION),
    (re.compile(r"\bcontusion\b|\bbruis(?:e|ing)\b"), InjuryKind.CONTUSION),
    (re.compile(r"\bsprain(?:ed)?\b|\bstrain(?:ed)?\b"), InjuryKind.SPRAIN),
]
INJURY_TRIGGER = re.compile(r"\binjur(?:y|ies|ed)\b|\btrauma(?:tic)?\b|\bfractur|\blacerat|\bcontusion\b|\bsprain")
BARE_INJURY = re.compile(r"injur(?:y|ies|ed)")
# Organ injury that is not trauma (AKI is its own concept)
NON_TRAUMATIC_INJURY = re.compile(
    rf"{AKI_TRIGGER.pattern}"
    r"|\b(?:kidney|renal|liver|hepatic|lung|myocardial)\s+injur(?:y|ies)\b"
    r"|\b(?:anoxic|hypoxic|ischemic|reperfusion|drug induced|drug-induced)\s+(?:\w+\s+)?injur(?:y|ies)\b"
)
TRAUMATIC_CONTEXT = re.compile(r"\baccident\b|\bcollision\b|\bassault(?:ed)?\b|\bstruck\b|\bhit\b")
INJURY_SITE = re.compile(
    r"\b(head|face|neck|chest|rib|back|shoulder|arm|elbow|forearm|wrist|hand|finger|hip|femur|thigh|knee|leg|ankle|foot|toe)s?\b"
)
EPISODE_PATTERNS: list[tuple[re.Pattern[str], Episode]] = [
    (re.compile(r"\bsequela|late effect"), Episode.SEQUELA),
    (
        re.compile(r"subsequent (?:encounter|visit|care)|routine healing|delayed healing|aftercare|cast change"),
        Episode.SUBSEQUENT,
    ),
    (
        re.compile(r"initial (?:encounter|visit|evaluation|treatment)|active treatment|emergency department"),
        Episode.INITIAL,
    ),
]
FALL = re.compile(r"\bfall\b|\bfalls\b|\bfell\b|\bslipped\b|\btripped\b")


def _injury_trigger(text: str) -> re.Match[str] | None:
    """First non-negated injury mention.

    A bare "injury" counts only with a body site or mechanism in its clause.
    """
    for match in INJURY_TRIGGER.finditer(text):
        if is_negated(text, match.start()):
            continue
        if BARE_INJURY.fullmatch(match.group(0)):
            clause = _clause_at(text, match.start())
            if not (INJURY_SITE.search(clause) or FALL.search(clause) or TRAUMATIC_CONTEXT.search(clause)):
                continue
        return match
    return None


def extract_injury(text: str) -> Concept | None:
    """Injury with kind, site, episode of care and fall mechanism."""
    scrubbed = NON_TRAUMATIC_INJURY.sub(lambda match: " " * len(match.group(0)), text)
    trigger = _injury_trigger(scrubbed)
    if trigger is None:
        return None
    site_match = INJURY_SITE.search(scrubbed, trigger.start())
    attributes = InjuryAttributes(
        kind=_pick(INJURY_KIND_PATTERNS, scrubbed) or InjuryKind.UNSPECIFIED,  # type: ignore[arg-type]
        site=site_match.group(1) if site_match else None,
        episode=_pick(EPISODE_PATTERNS, scrubbed),  # type: ignore[arg-type]
        fall=_has(FALL, scrubbed),
    )
    return Concept(trigger.group(0), "injury", ConceptType.INJURY, attributes)


# ============================================================================
# Neuropathy (non-diabetic)
# ============================================================================

NEUROPATHY_TRIGGER = re.compile(r"\bneuropathy\b|\bneuropathic\b|\bneuritis\b")
NEUROPATHY_SITE_PATTERNS: list[tuple[re.Pattern[str], NeuropathySite]] = [
    (re.compile(r"intercostal"), NeuropathySite.INTERCOSTAL),
    (re.compile(r"optic"), NeuropathySite.OPTIC),
]


def extract_neuropathy(text: str) -> Concept | None:
    trigger = _first(NEUROPATHY_TRIGGER, text)
    if trigger is None:
        return None
    site = _pick(NEUROPATHY_SITE_PATTERNS, text) or NeuropathySite.UNSPECIFIED
    return Concept(trigger.group(0), "neuropathy", ConceptType.NEUROPATHY, NeuropathyAttributes(site=site))  # type: ignore[arg-type]


# ============================================================================
# Sepsis and encephalopathy
# ============================================================================

SEPSIS_TRIGGER = re.compile(r"\bsepsis\b|\bseptic\b|\bsepticemia\b")
SEVERE_SEPSIS = re.compile(r"severe sepsis|sepsis with (?:acute )?organ dysfunction|organ failure")
SEPTIC_SHOCK = re.compile(r"septic shock")
INFECTION_SITE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"urinary tract infection|pyelonephritis|urinary source|\burinary\b|\burine\b|\buti\b"), "urinary"),
    (re.compile(r"pneumonia|\blungs?\b|respiratory source|pulmonary source"), "lung"),
    (re.compile(r"cellulitis|\bskin\b|soft tissue|wound infection"), "skin"),
]

ENCEPHALOPATHY_TRIGGER = re.compile(r"encephalopathy")
ENCEPHALOPATHY_TYPE_PATTERNS: list[tuple[re.Pattern[str], EncephalopathyType]] = [
    (re.compile(r"hepatic encephalopathy|portosystemic encephalopathy"), EncephalopathyType.HEPATIC),
    (re.compile(r"(?:hypoxic|anoxic)(?:[- ]ischemic)? encephalopathy"), EncephalopathyType.HYPOXIC),
    (re.compile(r"(?:toxic|drug[- ]induced) encephalopathy"), EncephalopathyType.TOXIC),
    (re.compile(r"(?:metabolic|septic) encephalopathy"), EncephalopathyType.METABOLIC),
]


def detect_infection_site(text: str) -> str | None:
    """Source of infection named in a text fragment: urinary, lung or skin."""
    return _pick(INFECTION_SITE_PATTERNS, text)  # type: ignore[return-value]


def extract_sepsis(text: str) -> Concept | None:
    """Sepsis with severity, organism and source of infection."""
    trigger = _first(SEPSIS_TRIGGER, text)
    if trigger is None:
        return None
    shock = _has(SEPTIC_SHOCK, text)
    attributes = SepsisAttributes(
        severe=shock or _has(SEVERE_SEPSIS, text),
        shock=shock,
        organism=detect_organism(text),
        infection_site=detect_infection_site(text),
    )
    return Concept(trigger.group(0), "sepsis", ConceptType.SEPSIS, attributes)


def extract_encephalopathy(text: str) -> Concept | None:
    trigger = _first(ENCEPHALOPATHY_TRIGGER, text)
    if trigger is None:
        return None
    encephalopathy_type = _pick(ENCEPHALOPATHY_TYPE_PATTERNS, text) or EncephalopathyType.UNSPECIFIED
    attributes = EncephalopathyAttributes(encephalopathy_type=encephalopathy_type)  # type: ignore[arg-type]
    return Concept(trigger.group(0), "encephalopathy", ConceptType.ENCEPHALOPATHY, attributes)


# ============================================================================
# Other
# ============================================================================

MYOCARDIAL_INFARCTION = re.compile(r"myocardial infarction|\bn?stemi\b")
OLD_MYOCARDIAL_INFARCTION = re.compile(r"(?:history of|old|prior|remote|previous) (?:acute )?myocardial infarction")
DEPRESSION = re.compile(r"major depressi(?:ve disorder|on)|\bdepression\b")
DEPRESSION_SEVERITY_PATTERNS: list[tuple[re.Pattern[str], DepressionSeverity]] = [
    (re.compile(r"severe (?:\w+ ){0,3}(?:with psychotic|psychotic)|psychotic (?:features|symptoms)"), DepressionSeverity.SEVERE_PSYCHOTIC),
    (re.compile(r"\bsevere\b"), DepressionSeverity.SEVERE),
]


def extract_other(text: str) -> Concept | None:
    """Myocardial infarction and severe recurrent depression."""
    mi = _first(MYOCARDIAL_INFARCTION, text)
    myocardial_infarction = mi is not None and not OLD_MYOCARDIAL_INFARCTION.search(text)
    depression_match = _first(DEPRESSION, text)
    depression = None
    if depression_match:
        clause = _clause_at(text, depression_match.start())
        depression = _pick(DEPRESSION_SEVERITY_PATTERNS, clause)
    if not myocardial_infarction and depression is None:
        return None
    raw = (mi if myocardial_infarction else depression_match).group(0)  # type: ignore[union-attr]
    attributes = OtherAttributes(
        myocardial_infarction=myocardial_infarction,
        depression=depression,  # type: ignore[arg-type]
    )
    return Concept(raw, "other", ConceptType.OTHER, attributes)


# ============================================================================
# Entry point
# ============================================================================


def extract_concepts(normalized_text: str) -> tuple[Concept, ...]:
    """Extract typed concepts from normalized text.

    Args:
        normalized_text: Output of ``normalize_text``.

    Returns:
        Concepts in concept-type order, at most one per type.
    """
    if not normalized_text:
        return ()
    text = normalized_text
    diabetes = extract_diabetes(text)
    extracted = [
        diabetes,
        extract_ckd(text),
        extract_aki(text),
        extract_hypertension(text),
        extract_heart_failure(text),
        extract_copd(text),
        extract_asthma(text),
        extract_pneumonia(text),
        extract_neoplasm(text),
        extract_pregnancy(text),
        extract_injury(text),
        # Neuropathy with diabetes is a diabetic complication, not a separate concept
        extract_neuropathy(text) if diabetes is None else None,
        extract_sepsis(text),
        extract_encephalopathy(text),
        extract_other(text),
    ]
    concepts = tuple(concept for concept in extracted if concept is not None)
    logger.debug(f"Extracted {len(concepts)} concepts: {[c.type.value for c in concepts]}")
    return concepts
