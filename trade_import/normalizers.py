# trade_import/normalizers.py
"""
Deterministic value normalizers for imported trade cells.

Categorical values (direction, outcome, booleans) are resolved from built-in
alias tables first; AI translations only ever fill values those tables leave
unresolved. Numbers, ratios, dates and times are parsed with fixed rules.
"""

import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .models import ColumnSamples
from .schema import ENUM_VALUES, fields_of_type

logger = logging.getLogger(__name__)


# ---------- Alias tables ----------

DIRECTION_LONG = {
    "long", "buy", "l", "b", "bto", "bo", "long position", "buy limit",
    "buy stop", "buylimit", "buystop", "bull", "bullish", "call", "up",
    "1", "+", "compra", "achat", "kauf",
}
DIRECTION_SHORT = {
    "short", "sell", "s", "st", "sto", "so", "short position", "sell limit",
    "sell stop", "selllimit", "sellstop", "bear", "bearish", "put", "down",
    "2", "-", "venta", "vente", "verkauf",
}

OUTCOME_WIN = {
    "win", "won", "w", "winner", "profit", "profitable", "tp", "take profit",
    "takeprofit", "green", "1", "✓", "+", "yes", "y", "ganada", "gewinn",
}
OUTCOME_LOSE = {
    "lose", "loss", "l", "lost", "loser", "sl", "stop", "stop loss",
    "stoploss", "stopped", "stopped out", "red", "0", "✗", "-", "no", "n",
    "perdida", "verlust",
}
OUTCOME_BE = {
    "be", "b/e", "break even", "breakeven", "break-even", "be hit",
    "scratch", "empate",
}

BOOL_TRUE = {
    "yes", "y", "true", "t", "1", "x", "✓", "✔", "checked", "check", "on",
    "ok", "+", "positive", "affirmative",
    "oui", "sí", "si", "ja", "да", "da", "sim",
}
BOOL_FALSE = {
    "no", "n", "false", "f", "0", "✗", "✘", "unchecked", "off", "-",
    "negative", "none", "nope",
    "non", "nein", "нет", "niet", "não", "nao",
}

MARKET_ALIASES = {
    "GOLD": "XAUUSD",
    "SILVER": "XAGUSD",
    "OIL": "USOIL",
    "CRUDE": "USOIL",
    "CRUDEOIL": "USOIL",
    "WTI": "USOIL",
    "BRENT": "UKOIL",
    "BITCOIN": "BTCUSD",
    "BTC": "BTCUSD",
    "ETHEREUM": "ETHUSD",
    "ETH": "ETHUSD",
    "DJ30": "US30",
    "DOW": "US30",
    "DOWJONES": "US30",
    "DJIA": "US30",
    "NASDAQ": "NAS100",
    "NDX": "NAS100",
    "US100": "NAS100",
    "SP500": "SPX500",
    "SPX": "SPX500",
    "US500": "SPX500",
    "DAX": "GER40",
    "FTSE": "UK100",
    "FTSE100": "UK100",
}

CATEGORICAL_FIELDS = ("direction", "trade_outcome", "be_final_result")
BOOLEAN_FIELDS = tuple(fields_of_type("boolean"))

_EMPTY_TOKENS = {"", "nan", "none", "null", "n/a", "na", "--"}


def fold(raw: Any) -> str:
    """Case-folded, trimmed lookup key for a raw cell."""
    s = str(raw if raw is not None else "")
    s = s.replace("\ufeff", "").replace("\u00a0", " ")
    return re.sub(r"\s+", " ", s).strip().casefold()


def is_ascii(text: str) -> bool:
    return all(ord(ch) < 128 for ch in text)


# ---------- Categorical ----------

def normalize_direction(raw: Any) -> Optional[str]:
    """Normalise a raw direction value to "Long" | "Short", None if unrecognised."""
    key = fold(raw)
    if key in DIRECTION_LONG:
        return "Long"
    if key in DIRECTION_SHORT:
        return "Short"
    return None


def normalize_outcome(raw: Any) -> Optional[str]:
    """Normalise a raw outcome to "Win" | "Lose" | "BE", None if unrecognised."""
    key = fold(raw)
    if key in OUTCOME_WIN:
        return "Win"
    if key in OUTCOME_LOSE:
        return "Lose"
    if key in OUTCOME_BE:
        return "BE"
    return None


def normalize_be_result(raw: Any) -> Optional[str]:
    outcome = normalize_outcome(raw)
    return outcome if outcome in ("Win", "Lose") else None


def normalize_boolean(raw: Any) -> bool:
    """yes/no, true/false, 1/0, x/blank and friends; anything else is False."""
    key = fold(raw)
    if not key:
        return False
    if key in BOOL_TRUE:
        return True
    return False


def is_boolean_token(raw: Any) -> bool:
    key = fold(raw)
    return key in BOOL_TRUE or key in BOOL_FALSE


_RESOLVERS: Dict[str, Callable[[Any], Optional[str]]] = {
    "direction": normalize_direction,
    "trade_outcome": normalize_outcome,
    "be_final_result": normalize_be_result,
}


# ---------- Market ----------

def normalize_market(raw: Any) -> Optional[str]:
    """
    "EUR/USD" -> "EURUSD", "GBP/USD 🇬🇧" -> "GBPUSD", "Gold" -> "XAUUSD".
    Returns None for an empty cell.
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None
    # drop emoji (flags and anything outside the BMP) and dingbats
    text = "".join(ch for ch in text if ord(ch) <= 0xFFFF and not 0x2600 <= ord(ch) <= 0x27BF)
    cleaned = re.sub(r"[^A-Za-z0-9]", "", text).upper()
    if not cleaned:
        # non-Latin symbol names are kept as written
        cleaned = re.sub(r"\s+", "", text).upper()
    if not cleaned:
        return None
    return MARKET_ALIASES.get(cleaned, cleaned)


# ---------- Numbers ----------

def _normalize_separators(s: str) -> str:
    # EU style: 1.234,56
    if re.fullmatch(r"[+-]?\d{1,3}(\.\d{3})+,\d+", s):
        return s.replace(".", "").replace(",", ".")
    # US style: 1,234.56 / 1,234
    if re.fullmatch(r"[+-]?\d{1,3}(,\d{3})+(\.\d+)?", s):
        return s.replace(",", "")
    # EU thousands only: 1.234.567
    if re.fullmatch(r"[+-]?\d{1,3}(\.\d{3}){2,}", s):
        return s.replace(".", "")
    # decimal comma: 1,5
    if "," in s and "." not in s:
        return s.replace(",", ".")
    return s


def parse_number(raw: Any) -> Optional[float]:
    """
    Coerce strings like '1.5%', '$1,000', '1.234,56', '2R', '10k', '(25)'
    into float. Returns None if empty / invalid.
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        return float(raw)
    if isinstance(raw, (int, float)):
        return float(raw)
    s = str(raw).replace("\ufeff", "").replace("\u00a0", " ").strip()
    if s.lower() in _EMPTY_TOKENS:
        return None

    negative = False
    if s.startswith("(") and s.endswith(")"):
        negative = True
        s = s[1:-1]

    # drop currency symbols, percent signs, spaces and an R-multiple suffix
    s = re.sub(r"[rR]\s*$", "", s.strip())
    s = re.sub(r"[^\d.,\-+kKmM]", "", s)

    m = re.match(r"^([+-]?[\d.,]*\d)([kKmM])?$", s)
    if not m:
        return None
    try:
        num = float(_normalize_separators(m.group(1)))
    except ValueError:
        return None

    suffix = m.group(2)
    if suffix:
        if suffix.lower() == "k":
            num *= 1_000
        elif suffix.lower() == "m":
            num *= 1_000_000
    return -num if negative else num


def parse_ratio(raw: Any) -> Optional[float]:
    """'1:3' -> 3.0, '2:1' -> 0.5, '2.5' -> 2.5."""
    if raw is None:
        return None
    s = str(raw).strip()
    if ":" in s:
        left, _, right = s.partition(":")
        lnum, rnum = parse_number(left), parse_number(right)
        if lnum is None or rnum is None or lnum == 0:
            return None
        return rnum / lnum
    return parse_number(s)


# ---------- Dates / times ----------

# Fixed priority: the first format that parses wins
DATE_FORMATS: Tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y.%m.%d",
    "%d.%m.%Y",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%d-%m-%Y",
    "%m-%d-%Y",
    "%d.%m.%y",
    "%d/%m/%y",
    "%m/%d/%y",
    "%d-%m-%y",
    "%d %b %Y",
    "%d %B %Y",
    "%d-%b-%Y",
    "%b %d %Y",
    "%B %d %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%Y%m%d",
)

TIME_FORMATS: Tuple[str, ...] = (
    "%H:%M:%S",
    "%H:%M",
    "%H:%M:%S.%f",
    "%I:%M %p",
    "%I:%M:%S %p",
    "%I:%M%p",
    "%I:%M:%S%p",
)

_DATETIME_RE = re.compile(
    r"^(?P<date>.+?)[T\s]+"
    r"(?P<time>\d{1,2}:\d{2}(?::\d{2})?(?:\.\d+)?(?:\s*[AaPp][Mm])?)"
    r"(?:Z|[+-]\d{2}:?\d{2})?$"
)
_HHMM_RE = re.compile(r"^\d{4}$")


def split_datetime(raw: Any) -> Tuple[str, Optional[str]]:
    """'2025-01-15 09:30:00' -> ('2025-01-15', '09:30:00'); plain dates -> (date, None)."""
    s = str(raw or "").strip()
    m = _DATETIME_RE.match(s)
    if m:
        return m.group("date").strip(), m.group("time").strip()
    return s, None


def _parse_date_only(s: str) -> Optional[datetime]:
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    return None


def parse_date(raw: Any) -> Optional[str]:
    """
    Parse a date in any supported order and return YYYY-MM-DD.
    A trailing time part is ignored. Returns None if no format matches.
    """
    s = str(raw or "").replace("\ufeff", "").strip()
    if not s:
        return None
    date_part, _ = split_datetime(s)
    parsed = _parse_date_only(date_part)
    if parsed is None:
        return None
    return parsed.date().isoformat()


def parse_time(raw: Any) -> Optional[str]:
    """Parse 09:00, 9:00 AM, 0930 or a combined datetime into HH:MM:SS."""
    s = str(raw or "").replace("\ufeff", "").strip()
    if not s:
        return None
    _, time_part = split_datetime(s)
    if time_part:
        s = time_part
    if _HHMM_RE.match(s):
        hours, minutes = int(s[:2]), int(s[2:])
        if hours < 24 and minutes < 60:
            return f"{hours:02d}:{minutes:02d}:00"
        return None
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(s, fmt).strftime("%H:%M:%S")
        except ValueError:
            continue
    return None


def derive_weekday_and_quarter(iso_date: str) -> Tuple[str, str]:
    parsed = datetime.strptime(iso_date, "%Y-%m-%d")
    return parsed.strftime("%A"), f"Q{(parsed.month - 1) // 3 + 1}"


# ---------- Normalization table ----------

class NormalizationTable:
    """
    Per-field lookup from case-folded raw value to canonical value.

    Deterministic entries always win: a translated entry is only recorded for
    a value the built-in alias tables cannot resolve, and resolve() consults
    the alias tables before any translated entry.
    """

    def __init__(self):
        self._deterministic: Dict[str, Dict[str, Any]] = {}
        self._translated: Dict[str, Dict[str, str]] = {}

    def add_deterministic(self, field: str, raw: Any, canonical: Any) -> None:
        self._deterministic.setdefault(field, {})[fold(raw)] = canonical

    def add_translated(self, field: str, raw: Any, canonical: str) -> bool:
        key = fold(raw)
        allowed = ENUM_VALUES.get(field)
        if not key or allowed is None or canonical not in allowed:
            logger.debug("Ignoring translation %r -> %r for %s", raw, canonical, field)
            return False
        resolver = _RESOLVERS.get(field)
        if key in self._deterministic.get(field, {}) or (resolver and resolver(raw) is not None):
            return False
        self._translated.setdefault(field, {})[key] = canonical
        return True

    def resolve(self, field: str, raw: Any) -> Optional[Any]:
        key = fold(raw)
        if not key:
            return None
        if field in BOOLEAN_FIELDS:
            return normalize_boolean(raw)
        resolver = _RESOLVERS.get(field)
        if resolver is not None:
            value = resolver(raw)
            if value is not None:
                return value
        if key in self._deterministic.get(field, {}):
            return self._deterministic[field][key]
        return self._translated.get(field, {}).get(key)

    def unresolved(self, field: str, values: Iterable[str]) -> List[str]:
        """Distinct values (first-seen order) this table cannot resolve."""
        out: List[str] = []
        seen = set()
        for v in values:
            key = fold(v)
            if not key or key in seen:
                continue
            seen.add(key)
            if self.resolve(field, v) is None:
                out.append(str(v).strip())
        return out

    def translated_entries(self, field: str) -> Dict[str, str]:
        return dict(self._translated.get(field, {}))

    def as_dict(self) -> Dict[str, Dict[str, Any]]:
        merged: Dict[str, Dict[str, Any]] = {}
        for field, entries in self._translated.items():
            merged.setdefault(field, {}).update(entries)
        for field, entries in self._deterministic.items():
            merged.setdefault(field, {}).update(entries)
        return merged


def build_normalization_table(
    field_mapping: Dict[str, str],
    column_samples: ColumnSamples,
    translations: Optional[Dict[str, Dict[str, str]]] = None,
    category_values: Optional[Dict[str, List[str]]] = None,
) -> NormalizationTable:
    """
    Build the per-import lookup table from the final mapping and the observed
    column values.

    Args:
        field_mapping: {csv_header: db_field}
        column_samples: {csv_header: sample values}
        translations: {db_field: {raw: canonical}} accepted from the translator
        category_values: {csv_header: all distinct values}, preferred over samples

    Returns:
        NormalizationTable with deterministic entries for every observed value
        the alias tables know, then translated entries for the rest
    """
    table = NormalizationTable()
    category_values = category_values or {}

    for header, field in field_mapping.items():
        values = category_values.get(header) or column_samples.get(header, [])
        if field in CATEGORICAL_FIELDS:
            resolver = _RESOLVERS[field]
            for raw in values:
                canonical = resolver(raw)
                if canonical is not None:
                    table.add_deterministic(field, raw, canonical)
        elif field in BOOLEAN_FIELDS:
            for raw in values:
                if fold(raw):
                    table.add_deterministic(field, raw, normalize_boolean(raw))

    for field, entries in (translations or {}).items():
        for raw, canonical in entries.items():
            table.add_translated(field, raw, canonical)

    return table
