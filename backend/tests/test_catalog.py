"""Tests for the ICD-10-CM reference catalog.

Tests loading, note parsing, links, exclusions and search.
"""

import json
import threading
import time

import pytest

from icd_encoder.core.config import settings
from icd_encoder.schemas.base import ExclusionKind, LinkRelation
from icd_encoder.services import catalog as catalog_module
from icd_encoder.services.catalog import (
    FIXTURE_FILE,
    CatalogLoadError,
    extract_codes_from_text,
    get_catalog,
    load_catalog,
    reset_catalog,
    resolve_catalog_path,
)


# ============================================================================
# Loading Tests
# ============================================================================


class TestLoading:
    """Test catalog loading and the load-once singleton."""

    def test_bundled_catalog_loads(self, catalog):
        """Test the bundled fixture loads with codes and index terms."""
        assert len(catalog) > 0
        assert catalog.version == "2025-seed"
        assert catalog.get_stats()["index_terms"] == 36

    def test_singleton_pattern(self):
        """Test get_catalog returns one shared instance."""
        first = get_catalog()
        second = get_catalog()
        assert first is second

    def test_singleton_reset(self):
        """Test the singleton can be reset and reloaded."""
        first = get_catalog()
        reset_catalog()
        second = get_catalog()
        assert first is not second

    def test_concurrent_first_load(self, catalog, monkeypatch):
        """Test concurrent first callers share one completed load."""
        calls = []

        def slow_load():
            calls.append(1)
            time.sleep(0.05)
            return catalog

        monkeypatch.setattr(catalog_module, "load_catalog", slow_load)
        barrier = threading.Barrier(8)
        results = []

        def worker():
            barrier.wait()
            results.append(get_catalog())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(calls) == 1
        assert len(results) == 8
        assert all(result is catalog for result in results)

    def test_missing_file_raises(self, tmp_path):
        """Test a missing catalog file is a load error."""
        with pytest.raises(CatalogLoadError, match="not found"):
            load_catalog(tmp_path / "missing.json")

    def test_malformed_json_raises(self, tmp_path):
        """Test unparseable JSON is a load error."""
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(CatalogLoadError):
            load_catalog(path)

    def test_invalid_records_raise(self, tmp_path):
        """Test a record without a code fails validation."""
        path = tmp_path / "invalid.json"
        path.write_text(json.dumps({"codes": [{"description": "No code"}]}), encoding="utf-8")
        with pytest.raises(CatalogLoadError, match="Invalid ICD data"):
            load_catalog(path)

    def test_custom_file_loads(self, tmp_path):
        """Test a minimal catalog file loads and codes are upper-cased."""
        path = tmp_path / "mini.json"
        path.write_text(
            json.dumps(
                {
                    "version": "mini",
                    "codes": [{"code": "i10", "description": "Essential (primary) hypertension"}],
                    "index_terms": [{"term": "hypertension", "code": "I10"}],
                }
            ),
            encoding="utf-8",
        )
        mini = load_catalog(path)
        assert mini.version == "mini"
        assert "I10" in mini
        assert mini.search("hypertension")[0].code == "I10"

    def test_data_path_setting(self, tmp_path, monkeypatch):
        """Test ICD_DATA_PATH overrides the bundled fixture."""
        path = tmp_path / "override.json"
        monkeypatch.setattr(settings, "icd_data_path", str(path))
        assert resolve_catalog_path() == path
        assert resolve_catalog_path(FIXTURE_FILE) == FIXTURE_FILE


# ============================================================================
# Lookup Tests
# ============================================================================


class TestLookup:
    """Test exact code lookup."""

    def test_get_code(self, catalog):
        """Test lookup by exact code."""
        entry = catalog.get_code("E11.22")
        assert entry is not None
        assert entry.billable
        assert entry.category == "E11"

    def test_lookup_case_insensitive(self, catalog):
        """Test lookup ignores case and whitespace."""
        assert catalog.get_code(" e11.22 ").code == "E11.22"
        assert "e11.22" in catalog

    def test_unknown_code(self, catalog):
        """Test unknown codes return None and describe falls back."""
        assert catalog.get_code("Q99.99") is None
        assert catalog.describe("Q99.99") == "Q99.99"
        assert catalog.describe("Q99.99", default="") == ""

    def test_header_not_billable(self, catalog):
        """Test category headers are flagged non-billable."""
        assert catalog.get_code("E11").billable is False

    def test_manifestation_flag(self, catalog):
        """Test manifestation codes are flagged."""
        assert catalog.is_manifestation("F02.80")
        assert not catalog.is_manifestation("E11.22")


# ============================================================================
# Note Parsing Tests
# ============================================================================


class TestNoteParsing:
    """Test code extraction from tabular notes."""

    def test_small_range_expanded(self):
        """Test N18.1-N18.6 expands to six codes."""
        codes = extract_codes_from_text("code to identify stage (N18.1-N18.6, N18.9)")
        assert codes == ["N18.1", "N18.2", "N18.3", "N18.4", "N18.5", "N18.6", "N18.9"]

    def test_category_range_expanded(self):
        """Test J12-J18 expands over categories."""
        assert extract_codes_from_text("to identify the infection (J12-J18)") == [
            "J12",
            "J13",
            "J14",
            "J15",
            "J16",
            "J17",
            "J18",
        ]

    def test_wide_range_keeps_endpoints(self):
        """Test ranges that cannot be expanded keep both endpoints."""
        assert extract_codes_from_text("(A00-B99)") == ["A00", "B99"]

    def test_dash_suffix_names_category(self):
        """Test 'E10.-' is read as the E10 category."""
        assert extract_codes_from_text("type 1 diabetes mellitus (E10.-)") == ["E10"]

    def test_no_codes(self):
        """Test notes without codes give an empty list."""
        assert extract_codes_from_text("the underlying physiological condition") == []


# ============================================================================
# Link Tests
# ============================================================================


class TestLinks:
    """Test structured note links."""

    def test_use_additional_link(self, catalog):
        """Test E11.22 asks for a CKD stage code."""
        links = catalog.links("E11.22", LinkRelation.USE_ADDITIONAL)
        assert any("N18.4" in link.targets for link in links)

    def test_links_inherited_from_category(self, catalog):
        """Test E11 notes apply to E11.22."""
        links = catalog.links("E11.22", LinkRelation.USE_ADDITIONAL)
        assert any(link.targets == ("Z79.4", "Z79.84") for link in links)

    def test_guidance_links_exclude_exclusions(self, catalog):
        """Test guidance links never include Excludes notes."""
        relations = {link.relation for link in catalog.guidance_links("E11.22")}
        assert LinkRelation.EXCLUDES1 not in relations
        assert LinkRelation.EXCLUDES2 not in relations

    def test_links_for_unknown_code(self, catalog):
        """Test unknown codes have no links."""
        assert catalog.links("Q99.99") == ()

    def test_excludes1_relation(self, catalog):
        """Test N18.5 excludes N18.6."""
        relations = catalog.exclusion_relations(["N18.5", "N18.6"])
        assert len(relations) == 1
        assert relations[0].code == "N18.5"
        assert relations[0].excluded_code == "N18.6"
        assert relations[0].kind == ExclusionKind.EXCLUDES1

    def test_excludes1_through_category(self, catalog):
        """Test category Excludes1 notes match child codes."""
        relations = catalog.exclusion_relations(["E11.9", "E10.9"])
        pairs = {(r.code, r.excluded_code) for r in relations}
        assert ("E11.9", "E10.9") in pairs

    def test_no_relation_without_partner(self, catalog):
        """Test a lone code has no exclusion relations."""
        assert catalog.exclusion_relations(["N18.5"]) == []

    def test_small_catalog_links(self, small_catalog):
        """Test links on a hand-built catalog."""
        links = small_catalog.links("E11.22", LinkRelation.USE_ADDITIONAL)
        assert len(links) == 1
        assert links[0].targets == ("N18.1", "N18.2", "N18.3", "N18.4", "N18.5", "N18.6")


# ============================================================================
# Search Tests
# ============================================================================


class TestSearch:
    """Test ranked free-text search."""

    def test_exact_index_term(self, catalog):
        """Test an exact index term scores 10 plus its weight."""
        results = catalog.search("migraine")
        assert results[0].code == "G43.909"
        assert results[0].score == 12.0
        assert results[0].matched_term == "migraine"

    def test_code_prefix(self, catalog):
        """Test a code prefix finds the codes below it."""
        codes = [result.code for result in catalog.search("E11.2", limit=10)]
        assert "E11.21" in codes
        assert "E11.22" in codes

    def test_exact_code(self, catalog):
        """Test an exact code ranks first."""
        assert catalog.search("N18.4")[0].code == "N18.4"

    def test_empty_query(self, catalog):
        """Test empty and punctuation-only queries return nothing."""
        assert catalog.search("") == []
        assert catalog.search("!!!") == []

    def test_results_ordered(self, catalog):
        """Test results sort by descending score, then code."""
        results = catalog.search("chronic kidney disease", limit=20)
        keys = [(-result.score, result.code) for result in results]
        assert keys == sorted(keys)

    def test_limit(self, catalog):
        """Test the limit caps the result count."""
        assert len(catalog.search("diabetes", limit=3)) == 3

    def test_deterministic(self, catalog):
        """Test repeated searches give identical results."""
        assert catalog.search("heart failure") == catalog.search("heart failure")
