"""Parser for structured "field: value" clinical input.

Each non-blank line is one ``Field: Value`` pair. Field names are matched
case-insensitively; unknown fields are ignored. Values are checked as they
are read and every problem is reported as a parse error string, never
raised, so that one call reports every malformed line at once.

Example:
    Age: 67
    Diabetes Type: Type 2
    Diabetes Complication: CKD
    CKD Stage: 4
"""

import logging
import re
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

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
    UlcerDepth,
    UlcerSite,
)
from icd_encoder.schemas.structured import PatientContext
from icd_encoder.services.concept_extractor import (
    detect_infection_site,
    detect_laterality,
    detect_organism,
    site_name,
)

logger = logging.getLogger(__name__)


class FieldValueError(ValueError):
    """A field value that cannot be interpreted."""


TRUE_VALUES = frozenset({"yes", "y", "true", "present", "positive"})
FALSE_VALUES = frozenset({"no", "n", "false", "absent", "negative", "none"})

Draft = dict[str, Any]
Handler = Callable[[Draft, str], None]


# ============================================================================
# Value vocabularies
# ============================================================================

GENDERS = {"male": Gender.MALE, "m": Gender.MALE, "female": Gender.FEMALE, "f": Gender.FEMALE}

EPISODES = {
    "initial": Episode.INITIAL,
    "initial encounter": Episode.INITIAL,
    "subsequent": Episode.SUBSEQUENT,
    "subsequent encounter": Episode.SUBSEQUENT,
    "sequela": Episode.SEQUELA,
    "sequelae": Episode.SEQUELA,
}

DIABETES_TYPES = {
    "type 1": DiabetesType.TYPE_1,
    "type1": DiabetesType.TYPE_1,
    "t1": DiabetesType.TYPE_1,
    "1": DiabetesType.TYPE_1,
    "type 2": DiabetesType.TYPE_2,
    "type2": DiabetesType.TYPE_2,
    "t2": DiabetesType.TYPE_2,
    "2": DiabetesType.TYPE_2,
    "drug induced": DiabetesType.DRUG_INDUCED,
    "steroid induced": DiabetesType.DRUG_INDUCED,
    "secondary": DiabetesType.UNDERLYING_CONDITION,
    "underlying condition": DiabetesType.UNDERLYING_CONDITION,
    "other": DiabetesType.OTHER_SPECIFIED,
    "other specified": DiabetesType.OTHER_SPECIFIED,
}

# Ordered: the first matching pattern names the complication
DIABETES_COMPLICATIONS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\bckd\b|chronic kidney|nephropathy|\bkidney\b|\brenal\b"), "ckd"),
    (re.compile(r"ulcer"), "foot_ulcer"),
    (re.compile(r"retinopathy"), "retinopathy"),
    (re.compile(r"charcot"), "charcot_joint"),
    (re.compile(r"neuropathy"), "neuropathy"),
    (re.compile(r"hypoglycemi"), "hypoglycemia"),
    (re.compile(r"hyperglycemi|uncontrolled|poorly controlled"), "hyperglycemia"),
    (re.compile(r"ketoacidosis|\bdka\b"), "ketoacidosis"),
    (re.compile(r"hyperosmolar"), "hyperosmolarity"),
    (re.compile(r"gangrene"), "gangrene"),
    (re.compile(r"angiopathy|peripheral (?:arterial|vascular)|\bpad\b"), "peripheral_angiopathy"),
    (re.compile(r"cataract"), "cataract"),
]

NEUROPATHY_TYPES = {
    "peripheral": NeuropathyType.POLYNEUROPATHY,
    "polyneuropathy": NeuropathyType.POLYNEUROPATHY,
    "peripheral polyneuropathy": NeuropathyType.POLYNEUROPATHY,
    "mononeuropathy": NeuropathyType.MONONEUROPATHY,
    "autonomic": NeuropathyType.AUTONOMIC,
    "amyotrophy": NeuropathyType.AMYOTROPHY,
    "unspecified": NeuropathyType.UNSPECIFIED,
}

ULCER_SITES: list[tuple[re.Pattern[str], UlcerSite]] = [
    (re.compile(r"\btoes?\b"), UlcerSite.TOE),
    (re.compile(r"\bheels?\b"), UlcerSite.HEEL),
    (re.compile(r"\bankles?\b"), UlcerSite.ANKLE),
    (re.compile(r"\bcalf\b|\bcalves\b"), UlcerSite.CALF),
    (re.compile(r"\bfoot\b|\bfeet\b|midfoot|plantar"), UlcerSite.FOOT),
]

ULCER_DEPTHS: list[tuple[re.Pattern[str], UlcerDepth]] = [
    (re.compile(r"\bbone\b"), UlcerDepth.BONE),
    (re.compile(r"\bmuscle\b"), UlcerDepth.MUSCLE),
    (re.compile(r"\bfat\b"), UlcerDepth.FAT),
    (re.compile(r"\bskin\b"), UlcerDepth.SKIN),
]

CKD_STAGES = {
    "1": CkdStage.STAGE_1,
    "2": CkdStage.STAGE_2,
    "3": CkdStage.STAGE_3,
    "3a": CkdStage.STAGE_3A,
    "3b": CkdStage.STAGE_3B,
    "4": CkdStage.STAGE_4,
    "5": CkdStage.STAGE_5,
    "i": CkdStage.STAGE_1,
    "ii": CkdStage.STAGE_2,
    "iii": CkdStage.STAGE_3,
    "iv": CkdStage.STAGE_4,
    "v": CkdStage.STAGE_5,
    "esrd": CkdStage.ESRD,
    "end stage": CkdStage.ESRD,
    "end stage renal disease": CkdStage.ESRD,
}

DIALYSIS_STATUSES = {
    "none": DialysisStatus.NONE,
    "no": DialysisStatus.NONE,
    "temporary": DialysisStatus.TEMPORARY,
    "acute": DialysisStatus.TEMPORARY,
    "chronic": DialysisStatus.CHRONIC,
    "yes": DialysisStatus.CHRONIC,
    "maintenance": DialysisStatus.CHRONIC,
    "hemodialysis": DialysisStatus.CHRONIC,
    "peritoneal": DialysisStatus.CHRONIC,
}

HEART_FAILURE_TYPES = {
    "systolic": HeartFailureType.SYSTOLIC,
    "hfref": HeartFailureType.SYSTOLIC,
    "reduced ejection fraction": HeartFailureType.SYSTOLIC,
    "diastolic": HeartFailureType.DIASTOLIC,
    "hfpef": HeartFailureType.DIASTOLIC,
    "preserved ejection fraction": HeartFailureType.DIASTOLIC,
    "combined": HeartFailureType.COMBINED,
    "combined systolic and diastolic": HeartFailureType.COMBINED,
    "unspecified": HeartFailureType.UNSPECIFIED,
}

ACUITIES = {
    "acute": Acuity.ACUTE,
    "chronic": Acuity.CHRONIC,
    "acute on chronic": Acuity.ACUTE_ON_CHRONIC,
}

ASTHMA_SEVERITIES = {
    "mild intermittent": AsthmaSeverity.MILD_INTERMITTENT,
    "mild persistent": AsthmaSeverity.MILD_PERSISTENT,
    "moderate persistent": AsthmaSeverity.MODERATE_PERSISTENT,
    "severe persistent": AsthmaSeverity.SEVERE_PERSISTENT,
}

ENCEPHALOPATHY_TYPES = {
    "metabolic": EncephalopathyType.METABOLIC,
    "septic": EncephalopathyType.METABOLIC,
    "toxic": EncephalopathyType.TOXIC,
    "drug induced": EncephalopathyType.TOXIC,
    "hepatic": EncephalopathyType.HEPATIC,
    "hypoxic": EncephalopathyType.HYPOXIC,
    "anoxic": EncephalopathyType.HYPOXIC,
    "unspecified": EncephalopathyType.UNSPECIFIED,
}

TRIMESTERS = {
    "1": 1,
    "first": 1,
    "1st": 1,
    "2": 2,
    "second": 2,
    "2nd": 2,
    "3": 3,
    "third": 3,
    "3rd": 3,
}

INJURY_KINDS = {
    "fracture": InjuryKind.FRACTURE,
    "laceration": InjuryKind.LACERATION,
    "contusion": InjuryKind.CONTUSION,
    "bruise": InjuryKind.CONTUSION,
    "sprain": InjuryKind.SPRAIN,
    "strain": InjuryKind.SPRAIN,
    "unspecified": InjuryKind.UNSPECIFIED,
}

LATERALITIES = {
    "left": Laterality.LEFT,
    "right": Laterality.RIGHT,
    "bilateral": Laterality.BILATERAL,
}

_LATERAL_WORDS = re.compile(r"\b(?:left|right|bilateral)\b")
_GESTATIONAL_AGE = re.compile(r"^(\d{1,2})\s*(?:weeks?|wks?|w)?$")
_LIST_SEPARATOR = re.compile(r"\s*(?:[,;/]|\band\b)\s*")


# ============================================================================
# Value helpers
# ============================================================================


def _clean(value: str) -> str:
    """Lowercase with hyphens and repeated spaces collapsed."""
    return re.sub(r"\s+", " ", value.lower().replace("-", " ")).strip()


def _boolean(value: str, label: str) -> bool:
    cleaned = _clean(value)
    if cleaned in TRUE_VALUES:
        return True
    if cleaned in FALSE_VALUES:
        return False
    raise FieldValueError(f"Invalid {label}: {value} (expected Yes or No)")


def _choice(table: dict[str, Any], value: str, label: str) -> Any:
    cleaned = _clean(value)
    if cleaned.startswith("stage "):
        cleaned = cleaned[len("stage ") :]
    if cleaned not in table:
        raise FieldValueError(f"Invalid {label}: {value}")
    return table[cleaned]


def _search(table: list[tuple[re.Pattern[str], Any]], value: str) -> Any | None:
    cleaned = _clean(value)
    for pattern, result in table:
        if pattern.search(cleaned):
            return result
    return None


def _is_boolean(value: str) -> bool:
    cleaned = _clean(value)
    return cleaned in TRUE_VALUES or cleaned in FALSE_VALUES


def _items(value: str) -> list[str]:
    return [item for item in _LIST_SEPARATOR.split(_clean(value)) if item]


def _neoplasm_site(value: str, label: str) -> str:
    term = _LATERAL_WORDS.sub(" ", _clean(value)).strip()
    site = site_name(term)
    if site is None:
        raise FieldValueError(f"Unknown {label}: {value}")
    return site


# ============================================================================
# Field handlers
# ============================================================================


def _section(draft: Draft, name: str) -> Draft:
    """Nested section of the draft, created on first use."""
    return draft.setdefault(name, {})


def _age(draft: Draft, value: str) -> None:
    try:
        age = int(value.strip())
    except ValueError:
        raise FieldValueError(f"Invalid age: {value}") from None
    _section(draft, "demographics")["age"] = age


def _gender(draft: Draft, value: str) -> None:
    _section(draft, "demographics")["gender"] = _choice(GENDERS, value, "gender")


def _encounter_type(draft: Draft, value: str) -> None:
    draft["encounter_type"] = _choice(EPISODES, value, "encounter type")


def _diabetes(draft: Draft, value: str) -> None:
    if _is_boolean(value):
        if _boolean(value, "diabetes"):
            _section(draft, "diabetes")
        else:
            draft.pop("diabetes", None)
        return
    _diabetes_type(draft, value)


def _diabetes_type(draft: Draft, value: str) -> None:
    _section(draft, "diabetes")["diabetes_type"] = _choice(DIABETES_TYPES, value, "diabetes type")


def _diabetes_complications(draft: Draft, value: str) -> None:
    diabetes = _section(draft, "diabetes")
    complications = diabetes.setdefault("complications", [])
    for item in _items(value):
        if item in FALSE_VALUES:
            continue
        complication = _search(DIABETES_COMPLICATIONS, item)
        if complication is None:
            raise FieldValueError(f"Unknown diabetes complication: {item}")
        if complication not in complications:
            complications.append(complication)
        if complication == "ckd":
            _section(draft, "ckd")


def _neuropathy_type(draft: Draft, value: str) -> None:
    diabetes = _section(draft, "diabetes")
    diabetes["neuropathy_type"] = _choice(NEUROPATHY_TYPES, value, "neuropathy type")


def _insulin_use(draft: Draft, value: str) -> None:
    _section(draft, "diabetes")["insulin_use"] = _boolean(value, "insulin use")


def _ulcer_site(draft: Draft, value: str) -> None:
    site = _search(ULCER_SITES, value)
    if site is None:
        raise FieldValueError(f"Invalid ulcer site: {value}")
    diabetes = _section(draft, "diabetes")
    diabetes["ulcer_site"] = site
    laterality = detect_laterality(_clean(value))
    if laterality is not None:
        diabetes["ulcer_laterality"] = laterality


def _ulcer_depth(draft: Draft, value: str) -> None:
    depth = _search(ULCER_DEPTHS, value)
    if depth is None and _clean(value) != "unspecified":
        raise FieldValueError(f"Invalid ulcer severity: {value}")
    _section(draft, "diabetes")["ulcer_depth"] = depth


def _ckd(draft: Draft, value: str) -> None:
    if _is_boolean(value):
        if _boolean(value, "CKD"):
            _section(draft, "ckd")
        else:
            draft.pop("ckd", None)
        return
    _ckd_stage(draft, value)


def _ckd_stage(draft: Draft, value: str) -> None:
    _section(draft, "ckd")["stage"] = _choice(CKD_STAGES, value, "CKD stage")


def _dialysis(draft: Draft, value: str) -> None:
    draft["dialysis"] = _choice(DIALYSIS_STATUSES, value, "dialysis status")


def _flag(name: str, label: str) -> Handler:
    """Handler for a top-level yes/no field."""

    def handler(draft: Draft, value: str) -> None:
        draft[name] = _boolean(value, label)

    return handler


def _heart_failure(draft: Draft, value: str) -> None:
    if _is_boolean(value):
        if _boolean(value, "heart failure"):
            _section(draft, "heart_failure")
        else:
            draft.pop("heart_failure", None)
        return
    _heart_failure_type(draft, value)


def _heart_failure_type(draft: Draft, value: str) -> None:
    heart_failure = _section(draft, "heart_failure")
    heart_failure["heart_failure_type"] = _choice(HEART_FAILURE_TYPES, value, "heart failure type")


def _heart_failure_acuity(draft: Draft, value: str) -> None:
    _section(draft, "heart_failure")["acuity"] = _choice(ACUITIES, value, "heart failure acuity")


def _copd(draft: Draft, value: str) -> None:
    if _boolean(value, "COPD"):
        _section(draft, "copd")
    else:
        draft.pop("copd", None)


def _copd_exacerbation(draft: Draft, value: str) -> None:
    _section(draft, "copd")["exacerbation"] = _boolean(value, "COPD exacerbation")


def _copd_infection(draft: Draft, value: str) -> None:
    _section(draft, "copd")["infection"] = _boolean(value, "COPD infection")


def _asthma(draft: Draft, value: str) -> None:
    if _is_boolean(value):
        if _boolean(value, "asthma"):
            _section(draft, "asthma")
        else:
            draft.pop("asthma", None)
        return
    _asthma_severity(draft, value)


def _asthma_severity(draft: Draft, value: str) -> None:
    _section(draft, "asthma")["severity"] = _choice(ASTHMA_SEVERITIES, value, "asthma severity")


def _asthma_exacerbation(draft: Draft, value: str) -> None:
    _section(draft, "asthma")["exacerbation"] = _boolean(value, "asthma exacerbation")


def _status_asthmaticus(draft: Draft, value: str) -> None:
    _section(draft, "asthma")["status_asthmaticus"] = _boolean(value, "status asthmaticus")


def _pneumonia_organism(draft: Draft, value: str) -> None:
    organism = detect_organism(_clean(value))
    if organism is None:
        raise FieldValueError(f"Unknown organism: {value}")
    draft["pneumonia"] = True
    draft["pneumonia_organism"] = organism


def _sepsis(draft: Draft, value: str) -> None:
    _section(draft, "sepsis")["present"] = _boolean(value, "sepsis")


def _severe_sepsis(draft: Draft, value: str) -> None:
    _section(draft, "sepsis")["severe"] = _boolean(value, "severe sepsis")


def _septic_shock(draft: Draft, value: str) -> None:
    _section(draft, "sepsis")["shock"] = _boolean(value, "septic shock")


def _infection_site(draft: Draft, value: str) -> None:
    cleaned = _clean(value)
    _section(draft, "sepsis")["infection_site"] = detect_infection_site(cleaned) or cleaned


def _organism(draft: Draft, value: str) -> None:
    organism = detect_organism(_clean(value))
    if organism is None:
        raise FieldValueError(f"Unknown organism: {value}")
    _section(draft, "sepsis")["organism"] = organism


def _encephalopathy(draft: Draft, value: str) -> None:
    if _is_boolean(value):
        if _boolean(value, "encephalopathy"):
            _section(draft, "encephalopathy")
        else:
            draft.pop("encephalopathy", None)
        return
    _encephalopathy_type(draft, value)


def _encephalopathy_type(draft: Draft, value: str) -> None:
    encephalopathy = _section(draft, "encephalopathy")
    encephalopathy["encephalopathy_type"] = _choice(ENCEPHALOPATHY_TYPES, value, "encephalopathy type")


def _pregnancy(draft: Draft, value: str) -> None:
    if _boolean(value, "pregnancy"):
        _section(draft, "pregnancy")
    else:
        draft.pop("pregnancy", None)


def _trimester(draft: Draft, value: str) -> None:
    _section(draft, "pregnancy")["trimester"] = _choice(TRIMESTERS, value, "trimester")


def _gestational_age(draft: Draft, value: str) -> None:
    match = _GESTATIONAL_AGE.match(_clean(value))
    if match is None:
        raise FieldValueError(f"Invalid gestational age: {value}")
    _section(draft, "pregnancy")["gestational_age"] = int(match.group(1))


def _cancer(draft: Draft, value: str) -> None:
    if _is_boolean(value):
        if _boolean(value, "cancer"):
            _section(draft, "neoplasm")
        else:
            draft.pop("neoplasm", None)
        return
    _cancer_site(draft, value)


def _cancer_site(draft: Draft, value: str) -> None:
    neoplasm = _section(draft, "neoplasm")
    neoplasm["site"] = _neoplasm_site(value, "cancer site")
    laterality = detect_laterality(_clean(value))
    if laterality is not None:
        neoplasm["laterality"] = laterality


def _laterality(draft: Draft, value: str) -> None:
    _section(draft, "neoplasm")["laterality"] = _choice(LATERALITIES, value, "laterality")


def _metastasis(draft: Draft, value: str) -> None:
    if _is_boolean(value):
        _section(draft, "neoplasm")["metastasis"] = _boolean(value, "metastasis")
        return
    _metastatic_sites(draft, value)


def _metastatic_sites(draft: Draft, value: str) -> None:
    neoplasm = _section(draft, "neoplasm")
    sites = neoplasm.setdefault("metastatic_sites", [])
    for item in _items(value):
        site = _neoplasm_site(item, "metastatic site")
        if site not in sites:
            sites.append(site)
    neoplasm["metastasis"] = True


def _cancer_history(draft: Draft, value: str) -> None:
    _section(draft, "neoplasm")["history"] = _boolean(value, "history of cancer")


def _injury(draft: Draft, value: str) -> None:
    if _is_boolean(value):
        if _boolean(value, "injury"):
            _section(draft, "injury")
        else:
            draft.pop("injury", None)
        return
    _injury_type(draft, value)


def _injury_type(draft: Draft, value: str) -> None:
    _section(draft, "injury")["kind"] = _choice(INJURY_KINDS, value, "injury type")


def _injury_site(draft: Draft, value: str) -> None:
    _section(draft, "injury")["site"] = _clean(value)


def _external_cause(draft: Draft, value: str) -> None:
    _section(draft, "injury")["external_cause"] = _clean(value)


FIELD_HANDLERS: dict[str, Handler] = {
    "age": _age,
    "gender": _gender,
    "sex": _gender,
    "encounter type": _encounter_type,
    "encounter": _encounter_type,
    "diabetes": _diabetes,
    "diabetes type": _diabetes_type,
    "diabetes complication": _diabetes_complications,
    "diabetes complications": _diabetes_complications,
    "neuropathy type": _neuropathy_type,
    "insulin use": _insulin_use,
    "insulin": _insulin_use,
    "ulcer site": _ulcer_site,
    "ulcer severity": _ulcer_depth,
    "ulcer depth": _ulcer_depth,
    "ckd": _ckd,
    "chronic kidney disease": _ckd,
    "ckd stage": _ckd_stage,
    "dialysis": _dialysis,
    "dialysis type": _dialysis,
    "dialysis status": _dialysis,
    "aki": _flag("aki", "AKI"),
    "acute kidney injury": _flag("aki", "acute kidney injury"),
    "hypertension": _flag("hypertension", "hypertension"),
    "heart failure": _heart_failure,
    "heart failure type": _heart_failure_type,
    "heart failure acuity": _heart_failure_acuity,
    "copd": _copd,
    "copd exacerbation": _copd_exacerbation,
    "copd infection": _copd_infection,
    "copd with infection": _copd_infection,
    "asthma": _asthma,
    "asthma severity": _asthma_severity,
    "asthma exacerbation": _asthma_exacerbation,
    "asthma status": _status_asthmaticus,
    "status asthmaticus": _status_asthmaticus,
    "pneumonia": _flag("pneumonia", "pneumonia"),
    "pneumonia organism": _pneumonia_organism,
    "sepsis": _sepsis,
    "severe sepsis": _severe_sepsis,
    "septic shock": _septic_shock,
    "infection site": _infection_site,
    "organism": _organism,
    "sepsis organism": _organism,
    "encephalopathy": _encephalopathy,
    "encephalopathy type": _encephalopathy_type,
    "pregnancy": _pregnancy,
    "pregnant": _pregnancy,
    "trimester": _trimester,
    "gestational age": _gestational_age,
    "cancer": _cancer,
    "cancer site": _cancer_site,
    "primary site": _cancer_site,
    "cancer primary site": _cancer_site,
    "laterality": _laterality,
    "cancer laterality": _laterality,
    "metastasis": _metastasis,
    "metastatic site": _metastatic_sites,
    "metastatic sites": _metastatic_sites,
    "history of cancer": _cancer_history,
    "cancer history": _cancer_history,
    "injury": _injury,
    "injury type": _injury_type,
    "injury site": _injury_site,
    "external cause": _external_cause,
    "myocardial infarction": _flag("myocardial_infarction", "myocardial infarction"),
    "mi": _flag("myocardial_infarction", "myocardial infarction"),
}


# ============================================================================
# Parser
# ============================================================================


def _field_key(raw: str) -> str:
    return re.sub(r"\s+", " ", raw.strip().lower().replace("_", " "))


def _validation_messages(exc: ValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        messages.append(f"Invalid {location}: {error['msg']}")
    return messages


def parse_structured_input(text: str) -> tuple[PatientContext, list[str]]:
    """Parse a "field: value" block into a PatientContext.

    Args:
        text: Line-oriented structured input.

    Returns:
        Tuple of (context, parse errors). When errors is non-empty the
        context must not be encoded.
    """
    draft: Draft = {}
    errors: list[str] = []

    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if ":" not in line:
            errors.append(f'Invalid format (missing colon): "{line}"')
            continue
        raw_key, value = line.split(":", 1)
        key = _field_key(raw_key)
        value = value.strip()
        handler = FIELD_HANDLERS.get(key)
        if handler is None:
            logger.debug(f"Ignoring unknown structured field: {key}")
            continue
        if not value:
            errors.append(f"Missing value for field: {raw_key.strip()}")
            continue
        try:
            handler(draft, value)
        except FieldValueError as e:
            errors.append(str(e))

    try:
        context = PatientContext.model_validate(draft)
    except ValidationError as e:
        errors.extend(_validation_messages(e))
        context = PatientContext()

    if errors:
        logger.info(f"Structured input has {len(errors)} parse errors")
    return context, errors
