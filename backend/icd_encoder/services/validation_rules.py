"""Read-only compliance checks on a final code list.

Each rule is an independent predicate over the sequenced codes (principal
first) and returns at most one ValidationIssue. Rules never modify the list,
and every firing rule is reported.
"""

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from icd_encoder.schemas.base import Severity
from icd_encoder.schemas.encoding import ValidationIssue, ValidationReport
from icd_encoder.services import code_tables as tables
from icd_encoder.services.catalog import Catalog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationContext:
    """What a rule may look at besides the codes."""

    catalog: Catalog
    text: str = ""

    def describe(self, code: str) -> str:
        return self.catalog.describe(code, default="")


ValidationRule = Callable[[list[str], ValidationContext], ValidationIssue | None]

EXTERNAL_CAUSE_PATTERN = re.compile(r"^[V-Y]\d")
INJURY_WITH_EPISODE_PATTERN = re.compile(r"^[ST]\d{2}\.[A-Z0-9]{4}$")
SYSTEMIC_INFECTION_PATTERN = tables.SYSTEMIC_INFECTION_PATTERN
PRIMARY_MALIGNANCY_PATTERN = re.compile(r"^C(0\d|[1-6]\d|7[0-5]|8[1-9]|9[0-6])|^C80\.1")
TRIMESTER_SPECIFIC_PATTERN = re.compile(r"^O\d{2}\.[0-9A-Z]*[123]$")
LATERALITY_CATEGORIES = ("C50", "C34", "S42", "S52", "S72", "S82", "L89")
MANIFESTATION_CATEGORIES = ("F02", "G21", "I32", "N16", "B95", "B96", "B97")
AFTERCARE_TERMS = ("aftercare", "follow-up", "follow up", "cast removal")


def _starts(codes: Iterable[str], *prefixes: str) -> list[str]:
    return [code for code in codes if code.startswith(prefixes)]


def _issue(
    rule_id: str,
    rule_name: str,
    severity: Severity,
    issue: str,
    rationale: str,
    remediation: list[str],
    message: str,
    affected: list[str],
) -> ValidationIssue:
    return ValidationIssue(
        rule_id=rule_id,
        rule_name=rule_name,
        severity=severity,
        issue=issue,
        rationale=rationale,
        remediation=remediation,
        message=message,
        affected_codes=affected,
    )


# ============================================================================
# External cause
# ============================================================================


def external_cause_not_principal(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    if not codes or not EXTERNAL_CAUSE_PATTERN.match(codes[0]):
        return None
    return _issue(
        "EXT-001",
        "External Cause Never Principal",
        Severity.ERROR,
        f"External cause code ({codes[0]}) cannot be principal diagnosis.",
        "External cause codes describe the circumstances of an injury, not the injury itself.",
        ["Sequence the injury code first."],
        f"External cause code ({codes[0]}) cannot be principal diagnosis. Sequence the injury first.",
        [codes[0]],
    )


def place_of_occurrence_initial_only(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    places = _starts(codes, "Y92")
    if not places:
        return None
    if any(INJURY_WITH_EPISODE_PATTERN.match(code) and code.endswith("A") for code in codes):
        return None
    return _issue(
        "EXT-002",
        "Place of Occurrence Frequency Limit",
        Severity.WARNING,
        f"Place of occurrence code ({places[0]}) reported without an initial encounter injury.",
        "Place of occurrence codes are reported once, on the initial encounter (7th character A).",
        ["Verify this is an initial encounter.", "Remove Y92 if the encounter is subsequent."],
        f"Place of occurrence code ({places[0]}) is only reported on the initial encounter (7th character A).",
        places,
    )


def injury_requires_external_cause(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    injuries = [code for code in codes if INJURY_WITH_EPISODE_PATTERN.match(code)]
    if not injuries or any(EXTERNAL_CAUSE_PATTERN.match(code) for code in codes):
        return None
    return _issue(
        "EXT-003",
        "External Cause Missing",
        Severity.WARNING,
        f"Injury code(s) {', '.join(injuries)} reported without an external cause code.",
        "External cause codes describe how the injury happened and are expected with injury codes.",
        ["Add an external cause code (V00-Y99)."],
        f"Injury code(s) {', '.join(injuries)} should be accompanied by an external cause code (V00-Y99).",
        injuries,
    )


# ============================================================================
# Sepsis
# ============================================================================


def severe_sepsis_not_principal(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    if not codes or not tables.SEVERE_SEPSIS_PATTERN.match(codes[0]):
        return None
    return _issue(
        "SEP-001",
        "Severe Sepsis Sequencing Restriction",
        Severity.ERROR,
        f"Severe sepsis ({codes[0]}) cannot be principal diagnosis.",
        "Severe sepsis codes must follow the underlying systemic infection.",
        ["Sequence the underlying infection first."],
        f"Severe sepsis ({codes[0]}) can never be principal diagnosis. Sequence the underlying infection first.",
        [codes[0]],
    )


def urosepsis_ambiguity(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    if "urosepsis" not in ctx.text.lower():
        return None
    if "N39.0" not in codes or _starts(codes, "A40", "A41"):
        return None
    return _issue(
        "SEP-002",
        "Urosepsis Ambiguity",
        Severity.WARNING,
        "Term 'urosepsis' is ambiguous; mapped to urinary tract infection.",
        "Urosepsis has no code; it means either a urinary tract infection or sepsis from one.",
        ["If sepsis is confirmed, add A41.9.", "If only a urinary tract infection, keep N39.0."],
        "Term 'urosepsis' is ambiguous. If sepsis is clinically confirmed, assign A41.9 + N39.0.",
        ["N39.0"],
    )


def severe_sepsis_requires_infection(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    severe = [code for code in codes if tables.SEVERE_SEPSIS_PATTERN.match(code)]
    if not severe or any(SYSTEMIC_INFECTION_PATTERN.match(code) for code in codes):
        return None
    return _issue(
        "SEP-003",
        "Severe Sepsis Without Infection",
        Severity.ERROR,
        f"{severe[0]} reported without a systemic infection code.",
        "R65.2- requires the underlying systemic infection to be coded first.",
        ["Add the sepsis code (A40.-, A41.- or B37.7)."],
        f"{severe[0]} requires a systemic infection code (A40.-, A41.-, B37.7) sequenced first.",
        severe,
    )


def severe_sepsis_single_code(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    if tables.SEVERE_SEPSIS not in codes or tables.SEPTIC_SHOCK not in codes:
        return None
    return _issue(
        "SEP-004",
        "Severe Sepsis Duplicate",
        Severity.ERROR,
        "Both R65.20 and R65.21 are coded.",
        "Severe sepsis with septic shock (R65.21) already includes severe sepsis.",
        ["Remove R65.20."],
        "R65.20 and R65.21 cannot be coded together; keep R65.21 when septic shock is documented.",
        [tables.SEVERE_SEPSIS, tables.SEPTIC_SHOCK],
    )


# ============================================================================
# Diabetes
# ============================================================================


def _uncomplicated_diabetes(codes: list[str]) -> list[str]:
    return [code for code in codes if tables.DIABETES_CODE_PATTERN.match(code) and code.endswith(".9")]


def diabetes_ckd_linked(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    uncomplicated = _uncomplicated_diabetes(codes)
    if not uncomplicated or not _starts(codes, "N18"):
        return None
    code = uncomplicated[0]
    return _issue(
        "DM-001",
        "Diabetes + CKD Combined Logic",
        Severity.ERROR,
        "Diabetes and CKD are present but not linked.",
        "Diabetes and CKD are presumed related unless documentation states otherwise.",
        [f"Use {code[:3]}.22 instead of {code}."],
        f"Link diabetes and CKD. Replace {code} with {code[:3]}.22 when N18.x is present.",
        [code],
    )


def diabetes_type_conflict(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    if not _starts(codes, "E10") or not _starts(codes, "E11"):
        return None
    return _issue(
        "DM-002",
        "Diabetes Type Conflict",
        Severity.ERROR,
        "Both type 1 and type 2 diabetes coded.",
        "A patient cannot have both types simultaneously.",
        ["Remove the incorrect diabetes type."],
        "Cannot code type 1 (E10) and type 2 (E11) diabetes on the same record.",
        _starts(codes, "E10", "E11"),
    )


def diabetes_uncomplicated_with_complication(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    uncomplicated = _uncomplicated_diabetes(codes)
    if not uncomplicated:
        return None
    complicated = [
        code
        for code in codes
        if tables.DIABETES_CODE_PATTERN.match(code) and code not in uncomplicated
    ]
    if not complicated:
        return None
    return _issue(
        "DM-003",
        "Diabetes Without Complication Conflict",
        Severity.ERROR,
        f"{uncomplicated[0]} (without complications) coded with complication code(s) {', '.join(complicated)}.",
        "The 'without complications' code is only valid when no complication is documented.",
        [f"Remove {uncomplicated[0]}."],
        f"{uncomplicated[0]} cannot be coded with diabetic complication codes ({', '.join(complicated)}).",
        uncomplicated + complicated,
    )


def diabetic_ckd_requires_stage(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    diabetic_ckd = [code for code in codes if tables.DIABETES_CODE_PATTERN.match(code) and code.endswith(".22")]
    if not diabetic_ckd or _starts(codes, "N18"):
        return None
    return _issue(
        "DM-004",
        "Diabetic CKD Stage Missing",
        Severity.ERROR,
        f"{diabetic_ckd[0]} reported without a CKD stage code.",
        "Diabetic chronic kidney disease requires an additional code for the CKD stage.",
        ["Add the N18.- stage code."],
        f"{diabetic_ckd[0]} requires an additional N18.- code to identify the CKD stage.",
        diabetic_ckd,
    )


# ============================================================================
# Hypertension, heart failure and CKD
# ============================================================================


def hypertension_ckd_linked(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    if tables.ESSENTIAL_HYPERTENSION not in codes or not _starts(codes, "N18"):
        return None
    return _issue(
        "CKD-001",
        "Hypertension + CKD Linkage",
        Severity.ERROR,
        "Hypertension and CKD present but not linked.",
        "Hypertension and CKD are presumed related.",
        ["Use I12.9 (or I12.0) instead of I10."],
        "Use I12.x for hypertensive CKD. Replace I10 with I12.9 (or I12.0 if stage 5/ESRD).",
        [tables.ESSENTIAL_HYPERTENSION],
    )


def hypertension_heart_ckd_combination(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    if tables.ESSENTIAL_HYPERTENSION not in codes or not _starts(codes, "I50") or not _starts(codes, "N18"):
        return None
    return _issue(
        "CKD-002",
        "Triple Combination (HTN+HF+CKD)",
        Severity.ERROR,
        "Hypertension, heart failure and CKD present individually.",
        "A combination code from I13.- is required.",
        ["Use I13.x instead of I10."],
        "Use I13.x (hypertensive heart and CKD) when hypertension (I10), heart failure (I50) and CKD (N18) are all present.",
        [tables.ESSENTIAL_HYPERTENSION],
    )


def single_ckd_stage(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    stages = _starts(codes, "N18")
    if len(stages) < 2:
        return None
    return _issue(
        "CKD-003",
        "Multiple CKD Stages",
        Severity.ERROR,
        f"More than one CKD stage coded: {', '.join(stages)}.",
        "Only the highest documented stage of chronic kidney disease is reported.",
        ["Keep a single N18.- code."],
        f"Only one CKD stage code may be reported ({', '.join(stages)} found).",
        stages,
    )


def esrd_dialysis_status(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    if "N18.6" not in codes or tables.DIALYSIS_DEPENDENCE in codes:
        return None
    return _issue(
        "CKD-004",
        "ESRD Dialysis Status",
        Severity.WARNING,
        "End stage renal disease coded without dialysis dependence.",
        "Most ESRD encounters involve dialysis; Z99.2 is required when the patient is dialysis dependent.",
        ["Confirm dialysis status.", "Add Z99.2 if on chronic dialysis."],
        "N18.6 coded without Z99.2. Add Z99.2 if the patient is dependent on chronic dialysis.",
        ["N18.6"],
    )


def hypertensive_heart_failure_linked(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    if tables.ESSENTIAL_HYPERTENSION not in codes or not _starts(codes, "I50") or _starts(codes, "N18"):
        return None
    return _issue(
        "HTN-001",
        "Hypertension + Heart Failure Linkage",
        Severity.ERROR,
        "Hypertension and heart failure present but not linked.",
        "Hypertension and heart failure are presumed related.",
        ["Use I11.0 instead of I10."],
        "Use I11.0 for hypertensive heart disease with heart failure. Replace I10 with I11.0.",
        [tables.ESSENTIAL_HYPERTENSION],
    )


def heart_failure_type_required(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    combinations = [code for code in codes if code in ("I11.0", "I13.0", "I13.2")]
    if not combinations or _starts(codes, "I50"):
        return None
    return _issue(
        "HF-001",
        "Heart Failure Type Missing",
        Severity.ERROR,
        f"{combinations[0]} reported without a heart failure type code.",
        "Hypertensive heart disease with heart failure requires an additional I50.- code.",
        ["Add the I50.- code for the documented heart failure type."],
        f"{combinations[0]} requires an additional I50.- code to identify the type of heart failure.",
        combinations,
    )


# ============================================================================
# Pregnancy
# ============================================================================


def pregnancy_gestation_required(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    obstetric = _starts(codes, "O")
    if not obstetric or _starts(codes, "Z3A"):
        return None
    if any(TRIMESTER_SPECIFIC_PATTERN.match(code) for code in obstetric):
        return None
    return _issue(
        "PREG-001",
        "Trimester / GA Required",
        Severity.ERROR,
        "Pregnancy encounter detected but no gestational age or trimester provided.",
        "Obstetric codes require trimester specificity.",
        ["Enter gestational age (weeks)", "or trimester (1st, 2nd, 3rd)"],
        "Pregnancy encounter detected but no gestational age or trimester provided.",
        obstetric,
    )


def normal_delivery_exclusive(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    if "O80" not in codes:
        return None
    others = [code for code in _starts(codes, "O") if code != "O80"]
    if not others:
        return None
    return _issue(
        "PREG-002",
        "Normal Delivery Exclusivity",
        Severity.ERROR,
        f"O80 (normal delivery) cannot be used with other pregnancy complications ({others[0]}).",
        "This combination is mutually exclusive and results in claim rejection.",
        ["Remove O80.", "Retain the specific complication code."],
        f"O80 (normal delivery) cannot be used with other pregnancy complications ({others[0]}). Remove O80.",
        ["O80"] + others,
    )


def delivery_outcome_required(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    deliveries = [code for code in codes if code[:3] in ("O80", "O81", "O82")]
    if not deliveries or _starts(codes, "Z37"):
        return None
    return _issue(
        "OB-001",
        "Outcome of Delivery Missing",
        Severity.ERROR,
        "Delivery encounter missing outcome of delivery code (Z37.-).",
        "All delivery encounters must include an outcome of delivery code.",
        ["Add a Z37.- code."],
        "Delivery encounters require a Z37.- code to indicate the outcome of delivery.",
        deliveries,
    )


# ============================================================================
# Sequencing and laterality
# ============================================================================


def manifestation_not_principal(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    if not codes:
        return None
    principal = codes[0]
    if not (ctx.catalog.is_manifestation(principal) or principal.startswith(MANIFESTATION_CATEGORIES)):
        return None
    return _issue(
        "SEQ-001",
        "Manifestation Code Principal",
        Severity.ERROR,
        f"Manifestation code {principal} cannot be principal.",
        "Manifestation codes describe the result of an underlying disease and cannot be primary.",
        ["Sequence the underlying condition first."],
        f"Code {principal} is a manifestation code and cannot be principal. Sequence the underlying condition first.",
        [principal],
    )


def laterality_required(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    unspecified = []
    for code in _starts(codes, *LATERALITY_CATEGORIES):
        description = ctx.describe(code).lower()
        if "unspecified side" in description or (
            "unspecified" in description and not any(side in description for side in ("left", "right", "bilateral"))
        ):
            unspecified.append(code)
    if not unspecified:
        return None
    return _issue(
        "LAT-001",
        "Laterality Required",
        Severity.WARNING,
        f"Laterality unspecified for: {', '.join(unspecified)}.",
        "Right, left or bilateral is required for these codes.",
        ["Specify right, left or bilateral."],
        f"Laterality unspecified for: {', '.join(unspecified)}. Please specify right, left or bilateral.",
        unspecified,
    )


# ============================================================================
# Injury, neoplasm, respiratory, renal
# ============================================================================


def aftercare_episode(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    text = ctx.text.lower()
    if not any(term in text for term in AFTERCARE_TERMS):
        return None
    initial = [code for code in codes if INJURY_WITH_EPISODE_PATTERN.match(code) and code.endswith("A")]
    if not initial:
        return None
    return _issue(
        "INJ-001",
        "Injury 7th Character Conflict",
        Severity.ERROR,
        "Aftercare encounter used active treatment (A) codes.",
        "Aftercare encounters use the subsequent encounter (D) character.",
        ["Change the 7th character from 'A' to 'D'."],
        f"Encounter is aftercare/follow-up, but {', '.join(initial)} use 7th character 'A'. Use 'D'.",
        initial,
    )


def injury_seventh_character(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    incomplete = [code for code in codes if code[0] in "ST" and tables.INJURY_CODE_SHAPE.match(code)]
    if not incomplete:
        return None
    return _issue(
        "INJ-002",
        "Injury 7th Character Missing",
        Severity.ERROR,
        f"Injury code(s) {', '.join(incomplete)} lack the episode of care character.",
        "Injury codes require a 7th character for the episode of care.",
        ["Append A (initial), D (subsequent) or S (sequela)."],
        f"Injury code(s) {', '.join(incomplete)} require a 7th character (A, D or S).",
        incomplete,
    )


def secondary_requires_primary(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    secondary = [code for code in codes if tables.SECONDARY_NEOPLASM_PATTERN.match(code)]
    if not secondary:
        return None
    if any(PRIMARY_MALIGNANCY_PATTERN.match(code) for code in codes) or _starts(codes, "Z85"):
        return None
    return _issue(
        "NEO-001",
        "Secondary Malignancy Orphan",
        Severity.ERROR,
        f"Secondary malignancy ({secondary[0]}) has no primary.",
        "A secondary malignancy requires a primary site, current or historical.",
        ["Add the primary malignancy code or a Z85 history code."],
        f"Secondary malignancy ({secondary[0]}) requires a primary site code or Z85 personal history code.",
        secondary,
    )


def unspecified_secondary_redundant(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    if tables.SECONDARY_UNSPECIFIED not in codes:
        return None
    specific = [
        code
        for code in codes
        if tables.SECONDARY_NEOPLASM_PATTERN.match(code) and code != tables.SECONDARY_UNSPECIFIED
    ]
    if not specific:
        return None
    return _issue(
        "NEO-002",
        "Unspecified Secondary Redundant",
        Severity.WARNING,
        f"C79.9 coded alongside site-specific secondary code(s) {', '.join(specific)}.",
        "The unspecified secondary site code adds nothing once the site is known.",
        ["Remove C79.9."],
        f"Remove C79.9; site-specific secondary neoplasm code(s) {', '.join(specific)} are present.",
        [tables.SECONDARY_UNSPECIFIED] + specific,
    )


def copd_infection_requires_organism(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    if tables.COPD_WITH_INFECTION not in codes:
        return None
    if any(tables.PNEUMONIA_CODE_PATTERN.match(code) or code.startswith(("J09", "J10", "J11")) for code in codes):
        return None
    return _issue(
        "RESP-001",
        "COPD Infection Code Missing",
        Severity.ERROR,
        "J44.0 reported without a code for the infection.",
        "COPD with acute lower respiratory infection requires the infection to be coded as well.",
        ["Add the pneumonia or influenza code (J09-J18)."],
        "J44.0 requires an additional code to identify the infection (J09-J18).",
        [tables.COPD_WITH_INFECTION],
    )


def dialysis_requires_ckd(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    if tables.DIALYSIS_DEPENDENCE not in codes or _starts(codes, "N18"):
        return None
    return _issue(
        "REN-001",
        "Dialysis Without CKD",
        Severity.ERROR,
        "Dependence on renal dialysis coded without chronic kidney disease.",
        "Chronic dialysis dependence implies a CKD stage code (N18.5 or N18.6).",
        ["Add the N18.- stage code or remove Z99.2."],
        "Z99.2 requires a chronic kidney disease stage code (N18.-).",
        [tables.DIALYSIS_DEPENDENCE],
    )


# ============================================================================
# Catalog
# ============================================================================


def codes_exist(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    unknown = [code for code in codes if code not in ctx.catalog]
    if not unknown:
        return None
    return _issue(
        "CAT-001",
        "Unknown Code",
        Severity.ERROR,
        f"Code(s) not found in the reference catalog: {', '.join(unknown)}.",
        "Only valid ICD-10-CM codes can be reported.",
        ["Correct or remove the code."],
        f"Code(s) not found in the reference catalog: {', '.join(unknown)}.",
        unknown,
    )


def codes_billable(codes: list[str], ctx: ValidationContext) -> ValidationIssue | None:
    headers = []
    for code in codes:
        entry = ctx.catalog.get_code(code)
        if entry is not None and not entry.billable:
            headers.append(code)
    if not headers:
        return None
    return _issue(
        "CAT-002",
        "Non-Billable Code",
        Severity.ERROR,
        f"Header code(s) cannot be reported: {', '.join(headers)}.",
        "Only codes at the highest level of specificity are billable.",
        ["Select a more specific code."],
        f"Code(s) {', '.join(headers)} are category headers; report a more specific code.",
        headers,
    )


VALIDATION_RULES: tuple[ValidationRule, ...] = (
    external_cause_not_principal,
    place_of_occurrence_initial_only,
    injury_requires_external_cause,
    severe_sepsis_not_principal,
    urosepsis_ambiguity,
    severe_sepsis_requires_infection,
    severe_sepsis_single_code,
    diabetes_ckd_linked,
    diabetes_type_conflict,
    diabetes_uncomplicated_with_complication,
    diabetic_ckd_requires_stage,
    hypertension_ckd_linked,
    hypertension_heart_ckd_combination,
    single_ckd_stage,
    esrd_dialysis_status,
    hypertensive_heart_failure_linked,
    heart_failure_type_required,
    pregnancy_gestation_required,
    normal_delivery_exclusive,
    delivery_outcome_required,
    manifestation_not_principal,
    laterality_required,
    aftercare_episode,
    injury_seventh_character,
    secondary_requires_primary,
    unspecified_secondary_redundant,
    copd_infection_requires_organism,
    dialysis_requires_ckd,
    codes_exist,
    codes_billable,
)


def run_validation(codes: Iterable[str], catalog: Catalog, text: str | None = None) -> ValidationReport:
    """Evaluate every rule against a code list.

    Args:
        codes: Codes in sequence order (principal first).
        catalog: Reference catalog for descriptions and billability.
        text: Source documentation, for rules that read it.

    Returns:
        ValidationReport listing every firing rule.
    """
    code_list = [code.strip().upper() for code in codes if code and code.strip()]
    context = ValidationContext(catalog=catalog, text=text or "")
    issues: list[ValidationIssue] = []
    for rule in VALIDATION_RULES:
        issue = rule(code_list, context)
        if issue is not None:
            issues.append(issue)

    errors = [f"[{issue.rule_id}] {issue.message}" for issue in issues if issue.severity == Severity.ERROR]
    warnings = [f"[{issue.rule_id}] {issue.message}" for issue in issues if issue.severity == Severity.WARNING]
    if issues:
        logger.debug(f"Validation: {len(errors)} errors, {len(warnings)} warnings for {code_list}")
    return ValidationReport(valid=not errors, errors=errors, warnings=warnings, issues=issues)
