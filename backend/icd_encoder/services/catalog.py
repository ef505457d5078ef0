"""ICD-10-CM Reference Catalog.

Immutable code -> metadata map used by every pipeline stage:
- Exact code lookup (case-insensitive)
- Ranked free-text search over index terms, descriptions and code prefixes
- Structured note links (includes, code first, use additional, code also,
  Excludes1, Excludes2) parsed once at load time

The catalog is loaded once per process through ``get_catalog()`` and is then
shared read-only. Pipeline functions receive it explicitly, so independent
catalogs (tests, reloads) can coexist.
"""

import json
import logging
import re
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from pydantic import ValidationError

from icd_encoder.core.config import settings
from icd_encoder.schemas.base import ExclusionKind, LinkRelation
from icd_encoder.schemas.catalog import CatalogCodeRecord, CatalogFile

logger = logging.getLogger(__name__)

FIXTURE_FILE = Path(__file__).parent.parent / "fixtures" / "icd10_catalog.json"

# Largest numeric span expanded from a range such as N18.1-N18.6
MAX_RANGE_SPAN = 20

GUIDANCE_RELATIONS = (
    LinkRelation.INCLUDES,
    LinkRelation.CODE_FIRST,
    LinkRelation.USE_ADDITIONAL,
    LinkRelation.CODE_ALSO,
)


class CatalogLoadError(RuntimeError):
    """Raised when the reference catalog cannot be loaded."""


# ============================================================================
# Data Classes
# ============================================================================


@dataclass(frozen=True)
class ICD10Code:
    """An ICD-10-CM code with its tabular notes."""

    code: str
    description: str
    billable: bool = True
    manifestation: bool = False
    chapter: str | None = None
    includes: tuple[str, ...] = ()
    excludes1: tuple[str, ...] = ()
    excludes2: tuple[str, ...] = ()
    code_first: tuple[str, ...] = ()
    use_additional: tuple[str, ...] = ()
    code_also: tuple[str, ...] = ()

    @property
    def category(self) -> str:
        """Three-character category (e.g. E11 for E11.22)."""
        return self.code[:3]

    def notes(self, relation: LinkRelation) -> tuple[str, ...]:
        return getattr(self, relation.value)


@dataclass(frozen=True)
class CodeLink:
    """A structured relationship parsed from a catalog note."""

    source: str
    relation: LinkRelation
    targets: tuple[str, ...]  # Alternatives named by one note
    note: str


@dataclass(frozen=True)
class ExclusionRelation:
    """Exclusion between two codes present together."""

    code: str
    excluded_code: str
    kind: ExclusionKind


@dataclass(frozen=True)
class IndexTerm:
    """Alphabetic index entry."""

    term: str
    code: str
    weight: float = 1.0

    @property
    def normalized(self) -> str:
        return normalize_search_term(self.term)


@dataclass(frozen=True)
class SearchResult:
    """A ranked catalog search hit."""

    code: str
    description: str
    score: float
    matched_term: str


# ============================================================================
# Note parsing
# ============================================================================

_CODE_PATTERN = re.compile(r"[A-Z][0-9][A-Z0-9](?:\.[A-Z0-9]{1,4})?")
_RANGE_PATTERN = re.compile(
    r"([A-Z][0-9][A-Z0-9](?:\.[A-Z0-9]{1,4})?)\s*[-–]\s*([A-Z][0-9][A-Z0-9](?:\.[A-Z0-9]{1,4})?)"
)
_CODE_PREFIX_PATTERN = re.compile(r"[A-Z][0-9][A-Z0-9][A-Z0-9.]*$")
_SEARCH_CLEANUP = re.compile(r"[^a-z0-9.\s]+")
_WHITESPACE = re.compile(r"\s+")


def _expand_range(start: str, end: str) -> list[str]:
    """Expand a code range into its member codes when the span is small."""
    limit = min(len(start), len(end)) - 1
    shared = 0
    while shared < limit and start[shared] == end[shared]:
        shared += 1
    prefix = start[:shared]
    start_suffix, end_suffix = start[shared:], end[shared:]
    if (
        start_suffix.isdigit()
        and end_suffix.isdigit()
        and len(start_suffix) == len(end_suffix)
    ):
        first, last = int(start_suffix), int(end_suffix)
        if first <= last and last - first <= MAX_RANGE_SPAN:
            width = len(start_suffix)
            return [f"{prefix}{number:0{width}d}" for number in range(first, last + 1)]
    return [start, end]


def extract_codes_from_text(text: str) -> list[str]:
    """Extract ICD-10-CM codes named in a tabular note.

    Ranges such as ``N18.1-N18.6`` or ``J12-J18`` are expanded when the
    numeric span is small; otherwise both endpoints are kept. Codes are
    returned in order of first appearance without duplicates.

    Args:
        text: Note text, e.g. "Use additional code to identify stage (N18.1-N18.6)"

    Returns:
        List of upper-case codes.
    """
    found: dict[str, None] = {}
    consumed: list[tuple[int, int]] = []
    for match in _RANGE_PATTERN.finditer(text):
        for code in _expand_range(match.group(1), match.group(2)):
            found.setdefault(code, None)
        consumed.append(match.span())
    for match in _CODE_PATTERN.finditer(text):
        if any(start <= match.start() < end for start, end in consumed):
            continue
        found.setdefault(match.group(0), None)
    return list(found)


def normalize_search_term(term: str) -> str:
    """Lowercase a search term and strip punctuation."""
    cleaned = _SEARCH_CLEANUP.sub(" ", term.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def _similarity(search: str, candidate: str) -> float:
    if candidate == search:
        return 10.0
    if candidate.startswith(search):
        return 7.0
    if search in candidate:
        return 5.0
    overlap = set(search.split(" ")) & set(candidate.split(" "))
    return float(len(overlap))


def _ancestors(code: str) -> list[str]:
    """Parent codes from nearest to category: E11.22 -> [E11.2, E11]."""
    parents = []
    current = code
    while len(current) > 3:
        current = current[:-1].rstrip(".")
        parents.append(current)
    return parents


def _same_lineage(code: str, other: str) -> bool:
    return code.startswith(other) or other.startswith(code)


def code_matches(code: str, target: str) -> bool:
    """Whether ``code`` falls under ``target`` (exact code or a parent of it)."""
    return code == target or code.startswith(target)


# ============================================================================
# Catalog
# ============================================================================


class Catalog:
    """Immutable ICD-10-CM reference catalog.

    Usage:
        catalog = get_catalog()
        entry = catalog.get_code("E11.22")
        hits = catalog.search("diabetic kidney disease", limit=5)
    """

    def __init__(
        self,
        codes: Iterable[ICD10Code],
        index_terms: Iterable[IndexTerm] = (),
        version: str = "unversioned",
        source: str = "<memory>",
    ) -> None:
        """Build lookup tables and pre-parse every note into links.

        Args:
            codes: Code entries.
            index_terms: Alphabetic index terms for free-text search.
            version: Catalog version label.
            source: Where the catalog was loaded from (for logging).
        """
        code_map = {entry.code.upper(): entry for entry in codes}
        self._codes = MappingProxyType(code_map)
        self._index_terms: tuple[IndexTerm, ...] = tuple(index_terms)
        self.version = version
        self.source = source

        self._normalized_terms = tuple(
            (term, term.normalized) for term in self._index_terms if term.normalized
        )
        token_index: dict[str, list[int]] = {}
        for position, (_, normalized) in enumerate(self._normalized_terms):
            for token in set(normalized.split(" ")):
                token_index.setdefault(token, []).append(position)
        self._token_index = MappingProxyType({k: tuple(v) for k, v in token_index.items()})

        self._links = MappingProxyType({code: self._build_links(code) for code in code_map})

    def _build_links(self, code: str) -> tuple[CodeLink, ...]:
        """Parse notes for a code and its ancestor categories."""
        links: list[CodeLink] = []
        lineage = [code] + [parent for parent in _ancestors(code) if parent in self._codes]
        for holder in lineage:
            entry = self._codes[holder]
            for relation in LinkRelation:
                for note in entry.notes(relation):
                    targets = tuple(
                        target
                        for target in extract_codes_from_text(note)
                        if not _same_lineage(code, target)
                    )
                    if targets:
                        links.append(CodeLink(code, relation, targets, note))
        return tuple(links)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._codes)

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and code.upper() in self._codes

    def get_code(self, code: str) -> ICD10Code | None:
        """Get a code entry by exact code (case-insensitive)."""
        return self._codes.get(code.strip().upper())

    def describe(self, code: str, default: str | None = None) -> str:
        """Description for a code, or ``default`` (or the code) when unknown."""
        entry = self.get_code(code)
        if entry is not None:
            return entry.description
        return default if default is not None else code

    def is_manifestation(self, code: str) -> bool:
        entry = self.get_code(code)
        return bool(entry and entry.manifestation)

    def links(self, code: str, relation: LinkRelation | None = None) -> tuple[CodeLink, ...]:
        """Structured note links for a code, optionally of one relation."""
        links = self._links.get(code.upper())
        if links is None:
            return ()
        if relation is None:
            return links
        return tuple(link for link in links if link.relation == relation)

    def guidance_links(self, code: str) -> tuple[CodeLink, ...]:
        """Links that ask for another code to be reported alongside."""
        return tuple(link for link in self.links(code) if link.relation in GUIDANCE_RELATIONS)

    def exclusion_relations(self, codes: Iterable[str]) -> list[ExclusionRelation]:
        """Exclusion relations holding between codes of the given set.

        Args:
            codes: Codes currently present.

        Returns:
            One relation per (code, excluded code, kind), in input order.
        """
        present = list(dict.fromkeys(code.upper() for code in codes))
        relations: list[ExclusionRelation] = []
        seen: set[tuple[str, str, ExclusionKind]] = set()
        for code in present:
            for link in self.links(code):
                if link.relation == LinkRelation.EXCLUDES1:
                    kind = ExclusionKind.EXCLUDES1
                elif link.relation == LinkRelation.EXCLUDES2:
                    kind = ExclusionKind.EXCLUDES2
                else:
                    continue
                for other in present:
                    if other == code:
                        continue
                    if any(code_matches(other, target) for target in link.targets):
                        key = (code, other, kind)
                        if key not in seen:
                            seen.add(key)
                            relations.append(ExclusionRelation(code, other, kind))
        return relations

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, term: str, limit: int = 20) -> list[SearchResult]:
        """Ranked free-text search.

        Scores: exact match 10, prefix 7, substring 5, otherwise the number
        of shared tokens; index term weight is added. Descriptions and code
        prefixes are searched as well. Ties are broken by code.

        Args:
            term: Free-text query or code prefix.
            limit: Maximum number of results.

        Returns:
            Results sorted by descending score.
        """
        normalized = normalize_search_term(term)
        if not normalized:
            return []

        best: dict[str, SearchResult] = {}

        def offer(code: str, score: float, matched: str) -> None:
            if score <= 0 or code not in self._codes:
                return
            current = best.get(code)
            if current is None or score > current.score:
                best[code] = SearchResult(code, self._codes[code].description, score, matched)

        positions: set[int] = set()
        for token in normalized.split(" "):
            positions.update(self._token_index.get(token, ()))
        candidates = (
            [self._normalized_terms[p] for p in sorted(positions)]
            if positions
            else list(self._normalized_terms)
        )
        for index_term, normalized_term in candidates:
            score = _similarity(normalized, normalized_term)
            if score > 0:
                offer(index_term.code, score + index_term.weight, index_term.term)

        upper = term.strip().upper()
        for code, entry in self._codes.items():
            if code == upper:
                offer(code, 10.0, code)
            elif _CODE_PREFIX_PATTERN.match(upper) and code.startswith(upper):
                offer(code, 7.0, upper)
            offer(code, _similarity(normalized, normalize_search_term(entry.description)), entry.description)

        ranked = sorted(best.values(), key=lambda result: (-result.score, result.code))
        return ranked[:limit]

    def get_stats(self) -> dict:
        """Get catalog statistics."""
        link_counts: dict[str, int] = {}
        for links in self._links.values():
            for link in links:
                link_counts[link.relation.value] = link_counts.get(link.relation.value, 0) + 1
        return {
            "version": self.version,
            "source": self.source,
            "total_codes": len(self._codes),
            "billable_codes": sum(1 for entry in self._codes.values() if entry.billable),
            "index_terms": len(self._index_terms),
            "links": link_counts,
        }


# ============================================================================
# Loading
# ============================================================================


def _to_code(record: CatalogCodeRecord) -> ICD10Code:
    return ICD10Code(
        code=record.code,
        description=record.description,
        billable=record.billable,
        manifestation=record.manifestation,
        chapter=record.chapter,
        includes=tuple(record.includes),
        excludes1=tuple(record.excludes1),
        excludes2=tuple(record.excludes2),
        code_first=tuple(record.code_first),
        use_additional=tuple(record.use_additional),
        code_also=tuple(record.code_also),
    )


def resolve_catalog_path(path: str | Path | None = None) -> Path:
    """Explicit path, then ICD_DATA_PATH, then the bundled fixture."""
    if path is not None:
        return Path(path)
    if settings.icd_data_path:
        return Path(settings.icd_data_path)
    return FIXTURE_FILE


def load_catalog(path: str | Path | None = None) -> Catalog:
    """Load and validate a catalog file.

    Args:
        path: Catalog JSON path. Defaults to ICD_DATA_PATH or the bundled fixture.

    Returns:
        A new immutable Catalog.

    Raises:
        CatalogLoadError: If the file is missing, unreadable or invalid.
    """
    catalog_path = resolve_catalog_path(path)
    try:
        with open(catalog_path, encoding="utf-8") as f:
            raw = json.load(f)
        data = CatalogFile.model_validate(raw)
    except FileNotFoundError as e:
        logger.error(f"ICD catalog not found: {catalog_path}")
        raise CatalogLoadError(f"ICD catalog not found: {catalog_path}") from e
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to read ICD catalog at {catalog_path}: {e}")
        raise CatalogLoadError(f"Failed to parse ICD data at {catalog_path}: {e}") from e
    except ValidationError as e:
        logger.error(f"Invalid ICD catalog at {catalog_path}: {e.error_count()} errors")
        raise CatalogLoadError(f"Invalid ICD data at {catalog_path}: {e}") from e

    catalog = Catalog(
        codes=(_to_code(record) for record in data.codes),
        index_terms=(IndexTerm(t.term, t.code, t.weight) for t in data.index_terms),
        version=data.version,
        source=str(catalog_path),
    )
    stats = catalog.get_stats()
    logger.info(
        f"Loaded ICD catalog {data.version} from {catalog_path}: "
        f"{stats['total_codes']} codes, {stats['index_terms']} index terms"
    )
    return catalog


# ============================================================================
# Singleton
# ============================================================================

_catalog: Catalog | None = None
_catalog_lock = threading.Lock()


def get_catalog() -> Catalog:
    """Get the process-wide catalog, loading it exactly once."""
    global _catalog
    if _catalog is None:
        with _catalog_lock:
            if _catalog is None:
                logger.info("Creating singleton Catalog instance")
                _catalog = load_catalog()
    return _catalog


def reset_catalog() -> None:
    """Reset the singleton instance (for testing or reload)."""
    global _catalog
    with _catalog_lock:
        _catalog = None
