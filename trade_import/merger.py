# trade_import/merger.py
"""
Combine header matches and value suggestions into one column mapping in which
no two columns hold the same field.
"""

import logging
from typing import Dict, List, Optional

from .exceptions import MappingConflictError
from .models import ColumnMatch, ImportDefaults, ValueMatchResult
from .schema import DEFAULTABLE_FIELDS, get_schema_field, required_fields
from .value_matcher import FILL_ONLY_FIELDS

logger = logging.getLogger(__name__)


def _cleared(match: ColumnMatch) -> ColumnMatch:
    return ColumnMatch(csv_header=match.csv_header)


def _for_field(csv_header: str, field: str, score: int, source: str) -> ColumnMatch:
    schema_field = get_schema_field(field)
    return ColumnMatch(
        csv_header=csv_header,
        db_field=field,
        score=score,
        required=schema_field.required if schema_field else False,
        value_type=schema_field.value_type if schema_field else None,
        source=source,
    )


def dedupe_matches(matches: List[ColumnMatch]) -> List[ColumnMatch]:
    """Keep the first column (file order) holding each field; clear the rest."""
    seen = set()
    out: List[ColumnMatch] = []
    for m in matches:
        if m.db_field and m.db_field in seen:
            logger.debug("Clearing duplicate mapping %s -> %s", m.csv_header, m.db_field)
            out.append(_cleared(m))
            continue
        if m.db_field:
            seen.add(m.db_field)
        out.append(m)
    return out


def merge_matches(
    header_matches: List[ColumnMatch],
    value_result: ValueMatchResult,
    threshold: int = 60,
) -> List[ColumnMatch]:
    """
    Merge header-based and value-based evidence.

    Suggestions are walked best first. One is applied when its column is
    unassigned or matched below threshold and neither the column nor the
    field has already been settled by a stronger suggestion, including one
    that confirms a column's own header match. Whichever column held the
    field before is cleared, so the most recent assignment wins. Fill-only
    fields (market, risk, ratio) still never displace a confident holder.
    """
    merged = dedupe_matches(header_matches)
    by_header = {m.csv_header: i for i, m in enumerate(merged)}
    placed_columns = set()
    placed_fields = set()

    for suggestion in value_result.suggestions:
        if suggestion.csv_header in placed_columns or suggestion.field in placed_fields:
            continue
        idx = by_header.get(suggestion.csv_header)
        if idx is None:
            continue
        current = merged[idx]
        if current.db_field and current.score >= threshold:
            if current.db_field == suggestion.field:
                # values confirm the header; weaker columns may not take the field
                placed_fields.add(suggestion.field)
            continue
        holder = _holder_index(merged, suggestion.field)
        if holder is not None and holder != idx:
            if suggestion.field in FILL_ONLY_FIELDS and merged[holder].score >= threshold:
                continue
            logger.debug("Moving %s from %s to %s", suggestion.field, merged[holder].csv_header, suggestion.csv_header)
            merged[holder] = _cleared(merged[holder])
        merged[idx] = _for_field(suggestion.csv_header, suggestion.field, suggestion.score, "value")
        placed_columns.add(suggestion.csv_header)
        placed_fields.add(suggestion.field)

    assert_one_to_one(merged)
    return merged


def _holder_index(matches: List[ColumnMatch], field: str) -> Optional[int]:
    for i, m in enumerate(matches):
        if m.db_field == field:
            return i
    return None


def assign_field(
    matches: List[ColumnMatch],
    csv_header: str,
    field: Optional[str],
    score: int = 100,
    source: str = "manual",
) -> List[ColumnMatch]:
    """
    Point csv_header at field (or unmap it with field=None).

    Whichever column held the field before is cleared first, so the most
    recent assignment wins.
    """
    if field is not None and get_schema_field(field) is None:
        raise ValueError(f"Unknown field: {field}")
    if not any(m.csv_header == csv_header for m in matches):
        raise KeyError(csv_header)

    out: List[ColumnMatch] = []
    for m in matches:
        if m.csv_header == csv_header:
            out.append(_for_field(csv_header, field, score, source) if field else _cleared(m))
        elif field and m.db_field == field:
            out.append(_cleared(m))
        else:
            out.append(m)
    return out


def assert_one_to_one(matches: List[ColumnMatch]) -> None:
    fields = [m.db_field for m in matches if m.db_field]
    if len(fields) != len(set(fields)):
        dupes = sorted({f for f in fields if fields.count(f) > 1})
        raise MappingConflictError(f"fields mapped more than once: {', '.join(dupes)}")


def missing_required(matches: List[ColumnMatch], defaults: Optional[ImportDefaults] = None) -> List[str]:
    """Required fields with neither a mapped column nor a configured default."""
    mapped = {m.db_field for m in matches if m.db_field}
    defaults_dict: Dict[str, Optional[float]] = defaults.model_dump() if defaults else {}
    missing = []
    for field in required_fields():
        if field in mapped:
            continue
        if field in DEFAULTABLE_FIELDS and defaults_dict.get(field) is not None:
            continue
        missing.append(field)
    return missing
