# trade_import/header_matcher.py
"""
Fuzzy header matching to identify which CSV columns hold the date, market,
direction, outcome, risk and the optional journal fields, from whatever the
export happens to call them.
"""

import re
from typing import Dict, List, Optional

from fuzzywuzzy import fuzz

from .models import ColumnMatch, SchemaField
from .schema import DB_SCHEMA


DEFAULT_THRESHOLD = 60


def _prepare(text: str) -> str:
    # "%" and "_" carry meaning in journal headers ("Risk %", "trade_date")
    s = str(text).replace("\ufeff", "").replace("%", " pct ").replace("_", " ")
    return re.sub(r"\s+", " ", s).strip()


def _alnum_len(text: str) -> int:
    return len(re.sub(r"[^a-z0-9]", "", text.lower()))


def score_synonym(csv_header: str, synonym: str) -> int:
    """
    Score a header against one synonym, 0-100.

    token_set_ratio gives 100 whenever one side's tokens are a subset of the
    other's, so the raw score is scaled by how much of the longer string the
    shorter one covers: "rr" against "rr potential" no longer ties with an
    exact "rr".
    """
    header = _prepare(csv_header)
    candidate = _prepare(synonym)
    raw = fuzz.token_set_ratio(header, candidate)
    if raw == 0:
        return 0
    h_len = _alnum_len(header)
    s_len = _alnum_len(candidate)
    coverage = min(h_len, s_len) / max(h_len, s_len, 1)
    return int(round(raw * (0.4 + 0.6 * coverage)))


def score_field(csv_header: str, field: SchemaField) -> int:
    """Best score of a header against a field's label and all of its synonyms."""
    candidates = [field.label] + list(field.synonyms)
    return max(score_synonym(csv_header, c) for c in candidates)


def match_headers(
    csv_headers: List[str],
    threshold: int = DEFAULT_THRESHOLD,
    glosses: Optional[Dict[str, str]] = None,
    schema: Optional[List[SchemaField]] = None,
) -> List[ColumnMatch]:
    """
    Greedily match raw CSV headers to schema fields.

    Headers are processed in file order; each header takes the best-scoring
    field still in the pool if that score clears the threshold, and the field
    is then removed from the pool. This is first-match-wins, not a globally
    optimal assignment.

    Args:
        csv_headers: Header strings as they appear in the file
        threshold: Minimum score (0-100) to accept a match
        glosses: Optional header -> English gloss; the gloss is scored in place
                 of the header while csv_header keeps the original text
        schema: Field catalogue, DB_SCHEMA by default

    Returns:
        One ColumnMatch per header, in the same order
    """
    glosses = glosses or {}
    pool = list(schema if schema is not None else DB_SCHEMA)
    matches: List[ColumnMatch] = []

    for header in csv_headers:
        gloss = glosses.get(header)
        text = gloss or header
        best_field: Optional[SchemaField] = None
        best_score = 0
        for field in pool:
            score = score_field(text, field)
            if score > best_score:
                best_field, best_score = field, score

        if best_field is not None and best_score >= threshold:
            pool.remove(best_field)
            matches.append(ColumnMatch(
                csv_header=header,
                db_field=best_field.key,
                score=best_score,
                required=best_field.required,
                value_type=best_field.value_type,
                source="translation" if gloss else "header",
            ))
        else:
            matches.append(ColumnMatch(csv_header=header))

    return matches


def to_field_mapping(matches: List[ColumnMatch]) -> Dict[str, str]:
    """
    Convert matches into a {csv_header: db_field} mapping for row processing.
    Example: {"Symbol": "market", "WIN": "trade_outcome"}
    """
    return {m.csv_header: m.db_field for m in matches if m.db_field}
