"""Tests for Excludes1/Excludes2 conflict resolution."""

from icd_encoder.schemas.base import ConceptType, ExclusionKind
from icd_encoder.services.candidates import CandidateSet, candidate
from icd_encoder.services.catalog import Catalog, ICD10Code
from icd_encoder.services.concepts import Concept, DiabetesAttributes
from icd_encoder.services.exclusion_resolver import resolve_exclusions, specificity, survivor_key
from icd_encoder.services.guidelines.state import GuidelineState

DIABETES = Concept("diabetes", "diabetes mellitus", ConceptType.DIABETES, DiabetesAttributes())


def make_state(scored: dict[str, float], concepts: tuple[Concept, ...] = ()) -> GuidelineState:
    return GuidelineState(
        concepts=concepts,
        candidates=CandidateSet(candidate(code, f"seed {code}", score) for code, score in scored.items()),
    )


class TestSurvivorKey:
    """Test the total order used to pick a survivor."""

    def test_specificity_ignores_dot(self):
        """Test specificity counts code characters only."""
        assert specificity("E11.22") == 5
        assert specificity("I10") == 3

    def test_more_specific_wins(self):
        """Test a longer code sorts first."""
        specific = candidate("E11.22", "a", 5)
        general = candidate("E10.9", "b", 9)
        assert survivor_key(specific, False) < survivor_key(general, False)

    def test_code_breaks_ties(self):
        """Test equal keys fall back to the code."""
        assert survivor_key(candidate("N18.5", "a", 8), False) < survivor_key(candidate("N18.6", "a", 8), False)


class TestResolveExclusions:
    """Test Excludes1 removal and Excludes2 advisories."""

    def test_excludes1_higher_score_survives(self, small_catalog):
        """Test the higher-scoring code of an equally specific pair survives."""
        state = resolve_exclusions(make_state({"N18.5": 8, "N18.6": 9}), small_catalog)
        assert state.candidates.codes() == ["N18.6"]
        assert state.warnings == ("Removed N18.5 because it conflicts with N18.6 (Excludes1).",)

    def test_excludes1_tie_broken_by_code(self, small_catalog):
        """Test equal scores keep the lower code."""
        state = resolve_exclusions(make_state({"N18.5": 8, "N18.6": 8}), small_catalog)
        assert state.candidates.codes() == ["N18.5"]

    def test_excludes1_through_category(self, small_catalog):
        """Test an Excludes1 note on a category applies to its codes."""
        state = resolve_exclusions(make_state({"E11.22": 5, "E10.9": 9}, (DIABETES,)), small_catalog)
        assert state.candidates.codes() == ["E11.22"]

    def test_diabetes_domain_priority(self):
        """Test diabetes codes win equally specific conflicts in diabetic context."""
        catalog = Catalog(
            [
                ICD10Code("G62.9", "Polyneuropathy, unspecified", excludes1=("diabetic neuropathy (E11.9)",)),
                ICD10Code("E11.9", "Type 2 diabetes mellitus without complications"),
            ]
        )
        scores = {"G62.9": 8, "E11.9": 5}
        assert resolve_exclusions(make_state(scores, (DIABETES,)), catalog).candidates.codes() == ["E11.9"]
        assert resolve_exclusions(make_state(scores), catalog).candidates.codes() == ["G62.9"]

    def test_excludes2_is_advisory(self):
        """Test Excludes2 keeps both codes and warns."""
        catalog = Catalog(
            [
                ICD10Code("J45.909", "Unspecified asthma", excludes2=("chronic obstructive pulmonary disease (J44.9)",)),
                ICD10Code("J44.9", "Chronic obstructive pulmonary disease, unspecified"),
            ]
        )
        state = resolve_exclusions(make_state({"J45.909": 6, "J44.9": 6}), catalog)
        assert state.candidates.codes() == ["J45.909", "J44.9"]
        assert state.warnings == (
            "J45.909 has Excludes2 guidance with J44.9; ensure conditions are unrelated if both are coded.",
        )

    def test_no_conflict_unchanged(self, small_catalog):
        """Test a conflict-free set is returned as is."""
        state = make_state({"E11.22": 11, "N18.4": 8})
        assert resolve_exclusions(state, small_catalog) == state

    def test_empty_state(self, small_catalog):
        """Test an empty candidate set is returned untouched."""
        state = make_state({})
        assert resolve_exclusions(state, small_catalog) is state

    def test_no_excludes1_pairs_remain(self, catalog):
        """Test the bundled catalog resolves a multi-way conflict completely."""
        state = resolve_exclusions(make_state({"E11.9": 5, "E10.9": 5, "E11.22": 10}, (DIABETES,)), catalog)
        relations = catalog.exclusion_relations(state.candidates.codes())
        assert not [r for r in relations if r.kind == ExclusionKind.EXCLUDES1]
        assert "E11.22" in state.candidates
