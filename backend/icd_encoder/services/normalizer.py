"""Clinical text normalization.

Lowercases text, collapses whitespace and expands abbreviations and
synonyms on whole-word boundaries so that concept extraction only has to
recognise one spelling of each term.
"""

import re

# Abbreviation -> expansion (whole word)
ABBREVIATIONS: dict[str, str] = {
    "copd": "chronic obstructive pulmonary disease",
    "mi": "myocardial infarction",
    "htn": "hypertension",
    "ckd": "chronic kidney disease",
    "esrd": "end-stage renal disease",
    "aki": "acute kidney injury",
    "chf": "congestive heart failure",
    "hfref": "heart failure with reduced ejection fraction",
    "hfpef": "heart failure with preserved ejection fraction",
    "dm": "diabetes mellitus",
    "dm1": "type 1 diabetes mellitus",
    "dm2": "type 2 diabetes mellitus",
    "t1dm": "type 1 diabetes mellitus",
    "t2dm": "type 2 diabetes mellitus",
    "dka": "diabetic ketoacidosis",
    "hhs": "hyperosmolar hyperglycemic state",
    "gdm": "gestational diabetes mellitus",
    "pad": "peripheral artery disease",
    "pvd": "peripheral vascular disease",
    "mdd": "major depressive disorder",
    "fx": "fracture",
    "mets": "metastases",
    "uti": "urinary tract infection",
}

# Multi-word synonym -> canonical phrase
SYNONYMS: dict[str, str] = {
    "heart attack": "acute myocardial infarction",
    "type ii diabetes": "type 2 diabetes mellitus",
    "type i diabetes": "type 1 diabetes mellitus",
    "type 2 diabetes": "type 2 diabetes mellitus",
    "type 1 diabetes": "type 1 diabetes mellitus",
    "secondary cancer": "metastatic cancer",
    "high blood pressure": "hypertension",
    "kidney failure": "renal failure",
    "e. coli": "e coli",
    "escherichia coli": "e coli",
}

_WHITESPACE = re.compile(r"\s+")


def _compile(table: dict[str, str]) -> list[tuple[re.Pattern[str], str]]:
    # Longest terms first so "type 2 diabetes" wins over shorter overlaps
    ordered = sorted(table.items(), key=lambda item: (-len(item[0]), item[0]))
    return [(re.compile(rf"(?<![\w-]){re.escape(term)}(?![\w-])"), expansion) for term, expansion in ordered]


_ABBREVIATION_PATTERNS = _compile(ABBREVIATIONS)
_SYNONYM_PATTERNS = _compile(SYNONYMS)


def _expand(text: str, patterns: list[tuple[re.Pattern[str], str]]) -> str:
    for pattern, expansion in patterns:

        def replace(match: re.Match[str], expansion: str = expansion) -> str:
            # Already expanded: leave "type 2 diabetes mellitus" alone
            if text.startswith(expansion, match.start()):
                return match.group(0)
            return expansion

        text = pattern.sub(replace, text)
    return text


def normalize_text(text: str) -> str:
    """Normalize clinical text for concept extraction.

    Args:
        text: Free-text clinical documentation.

    Returns:
        Lowercase text with collapsed whitespace and expanded abbreviations.
        Empty input gives empty output.
    """
    if not text:
        return ""
    normalized = _WHITESPACE.sub(" ", text.lower()).strip()
    normalized = _expand(normalized, _ABBREVIATION_PATTERNS)
    normalized = _expand(normalized, _SYNONYM_PATTERNS)
    return normalized
