"""Hard-stop validation of a parsed PatientContext.

A hard stop is a documented condition missing an attribute that its codes
cannot be selected without. Hard stops block encoding; they are never
defaulted. Warnings flag documentation gaps that still allow coding.
"""

import logging

from icd_encoder.schemas.base import CkdStage, DialysisStatus, Gender
from icd_encoder.schemas.structured import PatientContext

logger = logging.getLogger(__name__)


def _renal_stops(ctx: PatientContext) -> list[str]:
    errors: list[str] = []
    if ctx.ckd is not None:
        if ctx.ckd.stage is None:
            errors.append("HARD STOP: CKD selected but no stage specified. CKD Stage (1-5 or ESRD) is REQUIRED.")
        elif ctx.ckd.stage == CkdStage.ESRD and ctx.dialysis is None:
            errors.append(
                "HARD STOP: ESRD requires dialysis status. You must specify Dialysis (None/Temporary/Chronic)."
            )
    elif ctx.dialysis not in (None, DialysisStatus.NONE):
        # Temporary dialysis for acute kidney injury needs no CKD
        if not (ctx.aki and ctx.dialysis == DialysisStatus.TEMPORARY):
            errors.append(
                "HARD STOP: Dialysis documented but CKD not selected. "
                "CKD with a stage is REQUIRED to code dialysis status."
            )
    return errors


def _sepsis_stops(ctx: PatientContext) -> list[str]:
    errors: list[str] = []
    sepsis = ctx.sepsis
    if sepsis is None or sepsis.present:
        return errors
    if sepsis.shock:
        errors.append(
            "HARD STOP: Septic shock selected but sepsis not documented. Sepsis = Yes is REQUIRED for septic shock."
        )
    if sepsis.severe:
        errors.append(
            "HARD STOP: Severe sepsis selected but sepsis not documented. Sepsis = Yes is REQUIRED for severe sepsis."
        )
    return errors


def _neoplasm_stops(ctx: PatientContext) -> list[str]:
    errors: list[str] = []
    neoplasm = ctx.neoplasm
    if neoplasm is None:
        return errors
    if neoplasm.metastasis:
        if neoplasm.site is None:
            errors.append(
                "HARD STOP: Metastasis selected but no primary cancer site specified. "
                "Primary Site is REQUIRED (use Unknown Primary only when documented)."
            )
        if not neoplasm.metastatic_sites:
            errors.append(
                "HARD STOP: Metastasis selected but no metastatic site specified. Metastatic Site is REQUIRED."
            )
    elif neoplasm.site is None and not neoplasm.history:
        errors.append("HARD STOP: Cancer selected but no primary site specified. Primary Site is REQUIRED.")
    return errors


def validate_context(ctx: PatientContext) -> tuple[list[str], list[str]]:
    """Check a parsed context for hard stops and documentation warnings.

    Args:
        ctx: Output of ``parse_structured_input``.

    Returns:
        Tuple of (hard-stop errors, warnings).
    """
    errors: list[str] = []
    warnings: list[str] = []

    errors.extend(_renal_stops(ctx))

    if ctx.diabetes is not None:
        if ctx.diabetes.diabetes_type is None:
            errors.append(
                "HARD STOP: Diabetes selected but no type specified. Type (Type 1 or Type 2) is REQUIRED."
            )
        if ctx.ckd is not None and "ckd" not in ctx.diabetes.complications:
            warnings.append(
                "Diabetes and CKD documented but CKD not listed in Diabetes Complications; "
                "the link is presumed and diabetic CKD is coded."
            )
        ulcer_fields = ctx.diabetes.ulcer_site is not None or ctx.diabetes.ulcer_depth is not None
        if ulcer_fields and "foot_ulcer" not in ctx.diabetes.complications:
            warnings.append("Ulcer site/severity specified but Foot Ulcer not in complications.")

    if ctx.heart_failure is not None and ctx.ckd is not None and not ctx.hypertension:
        warnings.append(
            "Heart failure and CKD documented without hypertension; "
            "verify whether hypertensive heart and kidney disease applies."
        )

    if ctx.injury is not None:
        if ctx.encounter_type is None:
            errors.append(
                "HARD STOP: Injury selected but no encounter type specified. "
                "Encounter Type (Initial, Subsequent, Sequela) is REQUIRED for injury coding."
            )
        if ctx.injury.kind is None:
            errors.append(
                "HARD STOP: Injury selected but no injury type specified. "
                "Injury Type (Fracture, Laceration, Contusion, Sprain) is REQUIRED."
            )

    errors.extend(_sepsis_stops(ctx))
    # A missing organism is reported by the sepsis guideline
    if ctx.sepsis is not None and ctx.sepsis.present and ctx.sepsis.infection_site is None:
        warnings.append(
            "Sepsis documented without an infection site; document the source of infection "
            "so the localized infection can be coded."
        )

    if ctx.encephalopathy is not None and ctx.encephalopathy.encephalopathy_type is None:
        errors.append(
            "HARD STOP: Encephalopathy selected but no type specified. "
            "Type (Metabolic, Toxic, Hepatic, Hypoxic) is REQUIRED."
        )

    errors.extend(_neoplasm_stops(ctx))

    if ctx.pregnancy is not None:
        if ctx.pregnancy.trimester is None and ctx.pregnancy.gestational_age is None:
            errors.append(
                "HARD STOP: Pregnancy selected but no trimester or gestational age specified. "
                "Trimester or Gestational Age is REQUIRED."
            )
        if ctx.demographics.gender == Gender.MALE:
            errors.append("CONFLICT: Pregnancy documented but patient gender is Male. Verify documentation.")

    if errors:
        logger.info(f"Structured context failed validation with {len(errors)} hard stops")
    return errors, warnings
