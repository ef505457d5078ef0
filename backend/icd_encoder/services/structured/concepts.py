"""Map a validated PatientContext onto the shared Concept contract.

The structured front-end produces the same typed concepts as the free-text
extractor, in the same concept-type order, so everything downstream of
extraction is shared.
"""

import logging

from icd_encoder.schemas.base import ConceptType, InjuryKind, NeuropathyType, RetinopathySeverity
from icd_encoder.schemas.structured import PatientContext
from icd_encoder.services import code_tables as tables
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
    OtherAttributes,
    PneumoniaAttributes,
    PregnancyAttributes,
    SepsisAttributes,
)

logger = logging.getLogger(__name__)


def _concept(concept_type: ConceptType, attributes) -> Concept:
    name = concept_type.value.replace("_", " ")
    return Concept(name, name, concept_type, attributes)


def _diabetes(ctx: PatientContext) -> Concept | None:
    diabetes = ctx.diabetes
    if diabetes is None:
        return None
    complications = set(diabetes.complications)
    neuropathy = diabetes.neuropathy_type
    if neuropathy is None and "neuropathy" in complications:
        neuropathy = NeuropathyType.UNSPECIFIED
    attributes = DiabetesAttributes(
        diabetes_type=diabetes.diabetes_type,
        uncontrolled="hyperglycemia" in complications,
        hypoglycemia="hypoglycemia" in complications,
        ketoacidosis="ketoacidosis" in complications,
        hyperosmolarity="hyperosmolarity" in complications,
        nephropathy="ckd" in complications,
        neuropathy=neuropathy,
        peripheral_angiopathy="peripheral_angiopathy" in complications or "gangrene" in complications,
        gangrene="gangrene" in complications,
        retinopathy=RetinopathySeverity.UNSPECIFIED if "retinopathy" in complications else None,
        foot_ulcer="foot_ulcer" in complications,
        ulcer_site=diabetes.ulcer_site,
        ulcer_depth=diabetes.ulcer_depth,
        charcot_joint="charcot_joint" in complications,
        cataract="cataract" in complications,
        laterality=diabetes.ulcer_laterality,
        insulin_use=diabetes.insulin_use,
    )
    return _concept(ConceptType.DIABETES, attributes)


def _neoplasm(ctx: PatientContext) -> Concept | None:
    neoplasm = ctx.neoplasm
    if neoplasm is None:
        return None
    attributes = NeoplasmAttributes(
        primary_site=neoplasm.site,
        laterality=neoplasm.laterality,
        metastatic_sites=tuple(neoplasm.metastatic_sites),
        secondary=neoplasm.metastasis or bool(neoplasm.metastatic_sites),
        history=neoplasm.history and not neoplasm.metastasis,
    )
    return _concept(ConceptType.NEOPLASM, attributes)


def _pregnancy(ctx: PatientContext) -> Concept | None:
    pregnancy = ctx.pregnancy
    if pregnancy is None:
        return None
    trimester = pregnancy.trimester
    if trimester is None and pregnancy.gestational_age is not None:
        trimester = tables.trimester_for_weeks(pregnancy.gestational_age)
    attributes = PregnancyAttributes(trimester=trimester, gestational_weeks=pregnancy.gestational_age)
    return _concept(ConceptType.PREGNANCY, attributes)


def _injury(ctx: PatientContext) -> Concept | None:
    injury = ctx.injury
    if injury is None:
        return None
    attributes = InjuryAttributes(
        kind=injury.kind or InjuryKind.UNSPECIFIED,
        site=injury.site,
        episode=ctx.encounter_type,
        fall="fall" in (injury.external_cause or "") or "fell" in (injury.external_cause or ""),
    )
    return _concept(ConceptType.INJURY, attributes)


def _sepsis(ctx: PatientContext) -> Concept | None:
    sepsis = ctx.sepsis
    if sepsis is None or not sepsis.present:
        return None
    attributes = SepsisAttributes(
        severe=sepsis.severe or sepsis.shock,
        shock=sepsis.shock,
        organism=sepsis.organism,
        infection_site=sepsis.infection_site,
    )
    return _concept(ConceptType.SEPSIS, attributes)


def context_to_concepts(ctx: PatientContext) -> tuple[Concept, ...]:
    """Build typed concepts from a validated structured context.

    Args:
        ctx: Context that passed ``validate_context``.

    Returns:
        Concepts in concept-type order, at most one per type.
    """
    extracted: list[Concept | None] = [
        _diabetes(ctx),
        _concept(ConceptType.CKD, CkdAttributes(stage=ctx.ckd.stage, dialysis=ctx.dialysis)) if ctx.ckd else None,
        _concept(ConceptType.ACUTE_KIDNEY_INJURY, AcuteKidneyInjuryAttributes()) if ctx.aki else None,
        _concept(ConceptType.HYPERTENSION, HypertensionAttributes()) if ctx.hypertension else None,
    ]
    if ctx.heart_failure is not None:
        attributes = HeartFailureAttributes(
            heart_failure_type=ctx.heart_failure.heart_failure_type,
            acuity=ctx.heart_failure.acuity,
        )
        extracted.append(_concept(ConceptType.HEART_FAILURE, attributes))
    if ctx.copd is not None:
        attributes = CopdAttributes(
            acute_exacerbation=ctx.copd.exacerbation,
            lower_respiratory_infection=ctx.copd.infection,
            organism=ctx.pneumonia_organism,
        )
        extracted.append(_concept(ConceptType.COPD, attributes))
    if ctx.asthma is not None:
        attributes = AsthmaAttributes(
            severity=ctx.asthma.severity,
            exacerbation=ctx.asthma.exacerbation,
            status_asthmaticus=ctx.asthma.status_asthmaticus,
        )
        extracted.append(_concept(ConceptType.ASTHMA, attributes))
    if ctx.pneumonia or ctx.pneumonia_organism is not None:
        extracted.append(_concept(ConceptType.PNEUMONIA, PneumoniaAttributes(organism=ctx.pneumonia_organism)))
    extracted.extend([_neoplasm(ctx), _pregnancy(ctx), _injury(ctx), _sepsis(ctx)])
    if ctx.encephalopathy is not None and ctx.encephalopathy.encephalopathy_type is not None:
        attributes = EncephalopathyAttributes(encephalopathy_type=ctx.encephalopathy.encephalopathy_type)
        extracted.append(_concept(ConceptType.ENCEPHALOPATHY, attributes))
    if ctx.myocardial_infarction:
        extracted.append(_concept(ConceptType.OTHER, OtherAttributes(myocardial_infarction=True)))

    concepts = tuple(concept for concept in extracted if concept is not None)
    logger.debug(f"Structured context mapped to {len(concepts)} concepts: {[c.type.value for c in concepts]}")
    return concepts
