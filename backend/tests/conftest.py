"""Pytest configuration and fixtures for encoder tests."""

import pytest

from icd_encoder.services.catalog import Catalog, ICD10Code, IndexTerm, load_catalog, reset_catalog
from icd_encoder.services.encoder import EncoderService, reset_encoder_service


@pytest.fixture(scope="session")
def catalog() -> Catalog:
    """The bundled reference catalog, loaded once for the whole session."""
    return load_catalog()


@pytest.fixture
def encoder(catalog: Catalog) -> EncoderService:
    """Encoder bound to the session catalog."""
    return EncoderService(catalog)


@pytest.fixture
def small_catalog() -> Catalog:
    """A hand-built catalog with a few linked codes.

    Used where a test needs to control the notes exactly rather than rely on
    the bundled fixture.
    """
    codes = [
        ICD10Code(
            "E11",
            "Type 2 diabetes mellitus",
            billable=False,
            excludes1=("type 1 diabetes mellitus (E10.-)",),
        ),
        ICD10Code(
            "E11.22",
            "Type 2 diabetes mellitus with diabetic chronic kidney disease",
            use_additional=("code to identify stage of chronic kidney disease (N18.1-N18.6)",),
        ),
        ICD10Code("E11.9", "Type 2 diabetes mellitus without complications"),
        ICD10Code("E10.9", "Type 1 diabetes mellitus without complications"),
        ICD10Code("N18.4", "Chronic kidney disease, stage 4 (severe)"),
        ICD10Code(
            "N18.5",
            "Chronic kidney disease, stage 5",
            excludes1=("chronic kidney disease, stage 5 requiring chronic dialysis (N18.6)",),
        ),
        ICD10Code("N18.6", "End stage renal disease"),
        ICD10Code("Z99.2", "Dependence on renal dialysis"),
        ICD10Code("F02.80", "Dementia in other diseases classified elsewhere", manifestation=True),
    ]
    terms = [
        IndexTerm("diabetes", "E11.9", 1.0),
        IndexTerm("end stage renal disease", "N18.6", 1.0),
    ]
    return Catalog(codes, terms, version="test")


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset process-wide singletons around every test."""
    reset_catalog()
    reset_encoder_service()
    yield
    reset_catalog()
    reset_encoder_service()
