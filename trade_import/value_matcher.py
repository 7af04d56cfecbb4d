# trade_import/value_matcher.py
"""
Value-pattern detection: infer what a column holds from its sample values,
independent of what the header says.

Every (column, field) pair whose samples clear the ratio becomes a candidate.
Candidates come back ranked, best first; the merger takes the first one it
can actually apply, so a column already claimed by its header does not hide
a weaker candidate elsewhere in the file.
"""

import re
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .models import ColumnHint, ColumnSamples, RawRow, ValueMatchResult, ValueSuggestion
from .normalizers import (
    BOOL_FALSE,
    BOOL_TRUE,
    DIRECTION_LONG,
    DIRECTION_SHORT,
    MARKET_ALIASES,
    OUTCOME_BE,
    OUTCOME_LOSE,
    OUTCOME_WIN,
    fold,
    normalize_market,
    parse_date,
    parse_number,
    parse_ratio,
    parse_time,
    split_datetime,
)

DEFAULT_MIN_RATIO = 0.8
HEADER_HINT_BONUS = 0.1

_DIRECTION_TOKENS = DIRECTION_LONG | DIRECTION_SHORT
# yes/no columns are far more often booleans than outcomes
_OUTCOME_TOKENS = (OUTCOME_WIN | OUTCOME_LOSE | OUTCOME_BE) - {"yes", "y", "no", "n"}
_VOCABULARY_TOKENS = _DIRECTION_TOKENS | _OUTCOME_TOKENS | BOOL_TRUE | BOOL_FALSE

_TIME_RE = re.compile(r"^(\d{1,2}:\d{2}(:\d{2})?(\.\d+)?|\d{1,2}:\d{2}(:\d{2})?\s*[AaPp][Mm])$")
_BARE_HHMM_RE = re.compile(r"^\d{4}$")

KNOWN_MARKETS = set(MARKET_ALIASES.values()) | {
    "EURUSD", "GBPUSD", "USDJPY", "AUDUSD", "NZDUSD", "USDCAD", "USDCHF",
    "GBPJPY", "EURJPY", "EURGBP", "EURAUD", "GBPAUD", "AUDJPY", "CADJPY",
    "GER30", "JP225", "AU200", "HK50", "DXY", "VIX", "USDX",
}
_PAIR_RE = re.compile(r"^[A-Z]{6}$")
_SPLIT_PAIR_RE = re.compile(r"^[A-Z]{2,6}[/\-][A-Z]{2,4}$")
_INDEX_RE = re.compile(r"^[A-Z]{2,5}\d{2,4}$")
_SYMBOL_RE = re.compile(r"^[A-Z][A-Z0-9]{1,9}$")

# Substrings of a header that back up what its values suggest. Short hints
# must equal a whole header word.
HEADER_HINTS: Dict[str, Tuple[str, ...]] = {
    "trade_date": ("date", "fecha", "datum", "day"),
    "trade_time": ("time", "hour", "heure", "zeit", "hora"),
    "market": ("market", "pair", "symbol", "instrument", "asset", "ticker"),
    "direction": ("direction", "side", "type", "action", "position"),
    "trade_outcome": ("outcome", "result", "win", "loss", "w/l"),
    "risk_per_trade": ("risk", "%"),
    "risk_reward_ratio": ("rr", "r/r", "r:r", "ratio", "reward"),
}


def extract_column_samples(
    raw_rows: Iterable[RawRow],
    headers: List[str],
    max_samples: int = 5,
) -> ColumnSamples:
    """
    Collect up to max_samples distinct non-empty values per column, in the
    order they first appear.
    """
    samples: ColumnSamples = {h: [] for h in headers}
    full = set()
    for row in raw_rows:
        for h in headers:
            if h in full:
                continue
            value = str(row.get(h, "") or "").strip()
            if value and value not in samples[h]:
                samples[h].append(value)
                if len(samples[h]) >= max_samples:
                    full.add(h)
        if len(full) == len(headers):
            break
    return samples


def distinct_values(raw_rows: Iterable[RawRow], header: str, limit: int = 50) -> List[str]:
    """All distinct non-empty values of one column (first-seen order), capped at limit."""
    out: List[str] = []
    seen = set()
    for row in raw_rows:
        value = str(row.get(header, "") or "").strip()
        key = fold(value)
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(value)
        if len(out) >= limit:
            break
    return out


def header_hints(header: str, field: str) -> bool:
    """True when the header names the field, e.g. "Entry Time" for trade_time."""
    lowered = fold(header)
    words = set(re.split(r"[^\w%/:]+", lowered))
    for hint in HEADER_HINTS.get(field, ()):
        if len(hint) >= 4 and hint in lowered:
            return True
        if hint in words:
            return True
    return False


# ---------- Per-value detectors ----------

def is_date_value(value: str) -> bool:
    date_part, time_part = split_datetime(value)
    return time_part is None and parse_date(date_part) is not None


def is_time_value(value: str, allow_bare: bool = False) -> bool:
    """
    HH:MM[:SS] or H:MM AM/PM. A bare 4-digit HHMM only counts when allow_bare
    is set, since ticket numbers and years look the same.
    """
    s = value.strip()
    if _BARE_HHMM_RE.match(s):
        return allow_bare and parse_time(s) is not None
    return bool(_TIME_RE.match(s)) and parse_time(s) is not None


def is_datetime_value(value: str) -> bool:
    date_part, time_part = split_datetime(value)
    return time_part is not None and parse_date(date_part) is not None and parse_time(time_part) is not None


def is_direction_value(value: str) -> bool:
    return fold(value) in _DIRECTION_TOKENS


def is_outcome_value(value: str) -> bool:
    return fold(value) in _OUTCOME_TOKENS


def market_value_score(value: str) -> float:
    """1 for a known or pair-shaped symbol, 0.75 for any other ticker-like word."""
    if fold(value) in _VOCABULARY_TOKENS:
        return 0.0
    canonical = normalize_market(value)
    if not canonical or not 2 <= len(canonical) <= 10:
        return 0.0
    if canonical in KNOWN_MARKETS:
        return 1.0
    upper = value.strip().upper()
    if _PAIR_RE.match(upper) or _SPLIT_PAIR_RE.match(upper) or _INDEX_RE.match(upper):
        return 1.0
    if _SYMBOL_RE.match(upper):
        return 0.75
    return 0.0


# ---------- Column scorers ----------

def _match_ratio(values: List[str], predicate: Callable[[str], bool]) -> float:
    if not values:
        return 0.0
    hits = sum(1 for v in values if predicate(v))
    return hits / len(values)


def _only_digit_codes(values: List[str], predicate: Callable[[str], bool]) -> bool:
    # a column of nothing but "1" is a number column, not a 1/2 direction code
    matched = [fold(v) for v in values if predicate(v)]
    return bool(matched) and all(v.isdigit() for v in matched) and len(set(matched)) < 2


def score_date(values: List[str], header: str = "") -> float:
    return _match_ratio(values, is_date_value)


def score_time(values: List[str], header: str = "") -> float:
    allow_bare = header_hints(header, "trade_time")
    return _match_ratio(values, lambda v: is_time_value(v, allow_bare))


def score_direction(values: List[str], header: str = "") -> float:
    if _only_digit_codes(values, is_direction_value):
        return 0.0
    return _match_ratio(values, is_direction_value)


def score_outcome(values: List[str], header: str = "") -> float:
    if _only_digit_codes(values, is_outcome_value):
        return 0.0
    return _match_ratio(values, is_outcome_value)


def score_market(values: List[str], header: str = "") -> float:
    if not values:
        return 0.0
    return sum(market_value_score(v) for v in values) / len(values)


def score_risk_per_trade(values: List[str], header: str = "") -> float:
    """Percent-of-account risk sits between 0.05 and 20; a % sign adds 0.2."""
    if not values:
        return 0.0
    total = 0.0
    has_percent = False
    for v in values:
        if ":" in v:
            continue
        if "%" in v:
            has_percent = True
        num = parse_number(v)
        if num is not None and 0.05 <= num <= 20:
            total += 1.0 if 0.25 <= num <= 10 else 0.5
    base = total / len(values)
    return min(1.0, base + 0.2) if has_percent and base > 0 else base


def score_risk_reward_ratio(values: List[str], header: str = "") -> float:
    """Reward multiples sit between 0.1 and 20; a 1:3 style value adds 0.2."""
    if not values:
        return 0.0
    total = 0.0
    has_colon = False
    for v in values:
        if "%" in v:
            continue
        if ":" in v:
            has_colon = True
        num = parse_ratio(v)
        if num is not None and 0.1 <= num <= 20:
            total += 1.0 if 0.5 <= num <= 10 else 0.5
    base = total / len(values)
    return min(1.0, base + 0.2) if has_colon and base > 0 else base


# priority order breaks ties between equally strong candidates
DETECTORS: Tuple[Tuple[str, Callable[[List[str], str], float]], ...] = (
    ("trade_date", score_date),
    ("trade_time", score_time),
    ("direction", score_direction),
    ("trade_outcome", score_outcome),
    ("market", score_market),
    ("risk_per_trade", score_risk_per_trade),
    ("risk_reward_ratio", score_risk_reward_ratio),
)

# Content alone is weak evidence for these; they fill gaps but never take the
# field from a column whose header already claims it.
FILL_ONLY_FIELDS = frozenset({"market", "risk_per_trade", "risk_reward_ratio"})


def score_column(values: List[str], header: str = "") -> List[Tuple[str, float, float]]:
    """
    (field, value_score, strength) for every detector with any evidence.
    strength adds the header-hint bonus and orders candidates.
    """
    values = [v for v in values if str(v).strip()]
    if not values:
        return []
    out = []
    for field, scorer in DETECTORS:
        score = scorer(values, header)
        if score <= 0:
            continue
        bonus = HEADER_HINT_BONUS if header_hints(header, field) else 0.0
        out.append((field, score, score + bonus))
    return out


def detect_column(
    values: List[str],
    min_ratio: float = DEFAULT_MIN_RATIO,
    header: str = "",
) -> Optional[Tuple[str, int]]:
    """Return (field, score) for the strongest detector the column qualifies for."""
    qualified = [c for c in score_column(values, header) if c[1] >= min_ratio]
    if not qualified:
        return None
    # max keeps the first of equal strengths, i.e. detector priority
    field, score, _ = max(qualified, key=lambda c: c[2])
    return field, int(round(score * 100))


def _near_miss_hints(
    evidence: Dict[str, List[Tuple[float, int, str]]],
    suggested: set,
) -> List[ColumnHint]:
    hints = []
    for field, _ in DETECTORS:
        if field in suggested:
            continue
        candidates = sorted(evidence.get(field, []), key=lambda c: (-c[0], c[1]))[:3]
        if len(candidates) < 2:
            continue
        headers = [c[2] for c in candidates]
        hints.append(ColumnHint(
            csv_header=" / ".join(headers),
            possible_fields=[field],
            candidate_headers=headers,
            reason=f'Multiple columns are possible matches for "{field}"; select one manually',
        ))
    return hints


def match_column_values(
    column_samples: ColumnSamples,
    min_ratio: float = DEFAULT_MIN_RATIO,
) -> ValueMatchResult:
    """
    Suggest fields for columns from their sample values.

    Suggestions list every qualifying (column, field) pair, strongest first;
    ties go to detector priority, then file order. Columns whose cells carry
    a date and a time together only produce a hint. A field no column
    qualifies for, but which several columns partly resemble, gets a
    near-miss hint naming up to three of them.
    """
    result = ValueMatchResult()
    ranked: List[Tuple[float, int, int, ValueSuggestion]] = []
    evidence: Dict[str, List[Tuple[float, int, str]]] = {}
    priority = {field: i for i, (field, _) in enumerate(DETECTORS)}

    for position, (header, values) in enumerate(column_samples.items()):
        values = [v for v in values if str(v).strip()]
        if not values:
            continue

        combined = _match_ratio(values, is_datetime_value)
        if combined >= min_ratio:
            result.hints.append(ColumnHint(
                csv_header=header,
                possible_fields=["trade_date", "trade_time"],
                candidate_headers=[header],
                reason=f"{int(round(combined * 100))}% of values combine a date and a time",
            ))
            continue

        for field, score, strength in score_column(values, header):
            evidence.setdefault(field, []).append((strength, position, header))
            if score < min_ratio:
                continue
            pct = int(round(score * 100))
            suggestion = ValueSuggestion(
                csv_header=header,
                field=field,
                score=pct,
                reason=f"{pct}% of sampled values look like {field.replace('_', ' ')}",
            )
            ranked.append((-strength, priority[field], position, suggestion))

    ranked.sort(key=lambda r: r[:3])
    result.suggestions = [r[3] for r in ranked]
    result.hints.extend(_near_miss_hints(evidence, {s.field for s in result.suggestions}))
    return result
