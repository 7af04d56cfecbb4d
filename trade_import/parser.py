# trade_import/parser.py
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import pandas as pd
from pydantic import ValidationError

from .exceptions import CsvStructureError
from .header_matcher import to_field_mapping
from .models import ColumnMatch, ImportDefaults, ParsedRow, ParseResult, RawRow, RowError
from .normalizers import (
    NormalizationTable,
    derive_weekday_and_quarter,
    normalize_boolean,
    normalize_market,
    parse_date,
    parse_number,
    parse_ratio,
    parse_time,
    split_datetime,
)
from .schema import DEFAULTABLE_FIELDS, RATIO_FIELDS, get_schema_field

logger = logging.getLogger(__name__)

INTEGER_FIELDS = {"confidence_at_entry", "mind_state_at_entry"}
# Fields filled by dedicated steps in parse_row, never copied verbatim
_HANDLED_FIELDS = {
    "trade_date", "trade_time", "day_of_week", "quarter",
    "market", "direction", "trade_outcome",
    "risk_per_trade", "risk_reward_ratio",
}

_FIELD_LABELS = {
    "trade_date": "trade date",
    "market": "market",
    "direction": "direction",
    "trade_outcome": "trade outcome",
    "risk_per_trade": "risk per trade",
    "risk_reward_ratio": "risk/reward ratio",
}


@dataclass
class CsvTable:
    """Structurally parsed CSV: de-duplicated headers and one RawRow per data row."""
    headers: List[str]
    rows: List[RawRow] = field(default_factory=list)
    delimiter: str = ","


# ---------- Structural parsing ----------

def _unique_headers(headers: List[str]) -> List[str]:
    seen: Dict[str, int] = {}
    out: List[str] = []
    for h in headers:
        cnt = seen.get(h, 0) + 1
        seen[h] = cnt
        if cnt == 1:
            out.append(h)
        else:
            out.append(f"{h}[{cnt}]")
    return out


def detect_delimiter(text: str) -> str:
    """Semicolon when the header line has more semicolons than commas, else comma."""
    first_line = next((line for line in text.splitlines() if line.strip()), "")
    return ";" if first_line.count(";") > first_line.count(",") else ","


def read_csv_text(text: str) -> CsvTable:
    """
    Parse CSV text into headers and string rows.

    Quoted fields may contain delimiters and newlines. Short rows are padded
    with empty cells, long rows are truncated to the header width.

    Raises:
        CsvStructureError: no header row could be read
    """
    if text is None:
        raise CsvStructureError("Could not read CSV headers: the file is empty.")
    text = text.lstrip("\ufeff")
    if not text.strip():
        raise CsvStructureError("Could not read CSV headers: the file is empty.")

    delimiter = detect_delimiter(text)
    read_opts = dict(
        sep=delimiter,
        header=None,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        engine="python",
    )
    try:
        head = pd.read_csv(io.StringIO(text), nrows=1, **read_opts)
        width = head.shape[1]
        df = pd.read_csv(
            io.StringIO(text),
            on_bad_lines=lambda bad: bad[:width],
            **read_opts,
        )
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise CsvStructureError(f"Could not read CSV headers: {e}") from e

    if df.empty:
        raise CsvStructureError("Could not read CSV headers: no header row found.")

    df = df.fillna("")
    raw_headers = [str(h).strip() for h in df.iloc[0].tolist()]
    if not any(raw_headers):
        raise CsvStructureError("Could not read CSV headers: the header row is blank.")
    headers = _unique_headers([h or f"Column {i}" for i, h in enumerate(raw_headers, start=1)])

    body = df.iloc[1:].set_axis(headers, axis=1)
    rows: List[RawRow] = [
        {k: str(v).strip() for k, v in rec.items()}
        for rec in body.to_dict(orient="records")
    ]
    logger.debug("Read %d columns, %d data rows (delimiter %r)", len(headers), len(rows), delimiter)
    return CsvTable(headers=headers, rows=rows, delimiter=delimiter)


def read_csv_file(file_path: Union[str, Path]) -> CsvTable:
    """
    Read a .csv (or .txt) export from disk.

    Raises:
        FileNotFoundError: path does not exist
        ValueError: unsupported file type
        CsvStructureError: undecodable or header-less file
    """
    p = Path(file_path)
    if not p.exists():
        raise FileNotFoundError(file_path)
    if p.suffix.lower() not in {".csv", ".txt"}:
        raise ValueError("Unsupported file type. Use .csv")
    try:
        text = p.read_bytes().decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise CsvStructureError("Could not read CSV headers: the file is not valid UTF-8.") from e
    return read_csv_text(text)


# ---------- Row parsing ----------

def _parse_numeric(field_key: str, raw: str) -> Optional[float]:
    if field_key in RATIO_FIELDS:
        return parse_ratio(raw)
    return parse_number(raw)


def parse_row(
    row_index: int,
    mapped: Dict[str, str],
    normalization: NormalizationTable,
    defaults: ImportDefaults,
) -> Tuple[Optional[ParsedRow], List[RowError]]:
    """
    Normalise one row's mapped cells ({db_field: raw string}) into a ParsedRow.

    Returns:
        (row, []) on success, (None, errors) when any field fails
    """
    errors: List[RowError] = []
    values: Dict[str, Any] = {}

    def fail(field_key: str, message: str) -> None:
        errors.append(RowError(row_index=row_index, field=field_key, message=message))

    # date (+ derived weekday / quarter)
    raw_date = mapped.get("trade_date", "")
    if not raw_date:
        fail("trade_date", "Missing trade date")
    else:
        trade_date = parse_date(raw_date)
        if trade_date is None:
            fail("trade_date", f"Unrecognised date: {raw_date!r}")
        else:
            values["trade_date"] = trade_date
            values["day_of_week"], values["quarter"] = derive_weekday_and_quarter(trade_date)

    # time; a combined date cell supplies it when there is no usable time cell
    raw_time = mapped.get("trade_time", "")
    trade_time = parse_time(raw_time) if raw_time else None
    if trade_time is None and raw_date:
        _, embedded = split_datetime(raw_date)
        trade_time = parse_time(embedded) if embedded else None
    values["trade_time"] = trade_time or "00:00:00"

    raw_market = mapped.get("market", "")
    market = normalize_market(raw_market)
    if not market:
        fail("market", "Missing market")
    else:
        values["market"] = market

    for key in ("direction", "trade_outcome"):
        raw = mapped.get(key, "")
        if not raw:
            fail(key, f"Missing {_FIELD_LABELS[key]}")
            continue
        canonical = normalization.resolve(key, raw)
        if canonical is None:
            fail(key, f"Unrecognised {_FIELD_LABELS[key]}: {raw!r}")
        else:
            values[key] = canonical

    # required numerics: bad or missing values fall back to the configured default
    for key in DEFAULTABLE_FIELDS:
        raw = mapped.get(key, "")
        num = _parse_numeric(key, raw) if raw else None
        if num is None:
            default = getattr(defaults, key)
            if default is None:
                if raw:
                    fail(key, f"Invalid {_FIELD_LABELS[key]}: {raw!r}")
                else:
                    fail(key, f"Missing {_FIELD_LABELS[key]} and no default configured")
                continue
            num = default
        values[key] = num

    # optional fields never fail the row
    for key, raw in mapped.items():
        if key in _HANDLED_FIELDS or not raw:
            continue
        schema_field = get_schema_field(key)
        if schema_field is None:
            continue
        vt = schema_field.value_type
        if vt == "boolean":
            values[key] = normalize_boolean(raw)
        elif vt == "number":
            num = _parse_numeric(key, raw)
            if num is None:
                continue
            values[key] = int(round(num)) if key in INTEGER_FIELDS else num
        elif vt == "enum":
            canonical = normalization.resolve(key, raw)
            if canonical is not None:
                values[key] = canonical
        else:
            values[key] = raw

    if "risk_reward_ratio_long" not in values and "risk_reward_ratio" in values:
        values["risk_reward_ratio_long"] = 0.0 if values.get("trade_outcome") == "Lose" else values["risk_reward_ratio"]

    if errors:
        return None, errors

    try:
        return ParsedRow.model_validate(values), []
    except ValidationError as e:
        for err in e.errors():
            loc = err.get("loc") or ("row",)
            fail(str(loc[0]), err.get("msg", "invalid value"))
        return None, errors


def parse_trades(
    table: CsvTable,
    matches: List[ColumnMatch],
    normalization: NormalizationTable,
    defaults: Optional[ImportDefaults] = None,
) -> ParseResult:
    """
    Turn every data row into a ParsedRow or RowErrors.

    Rows whose mapped cells are all empty are skipped without an error and
    counted in skipped_blank. A failing row never stops the pass.
    """
    defaults = defaults or ImportDefaults()
    mapping = to_field_mapping(matches)
    result = ParseResult(total_rows=len(table.rows))

    for idx, raw in enumerate(table.rows, start=1):
        mapped = {db_field: str(raw.get(header, "") or "").strip() for header, db_field in mapping.items()}
        if not any(mapped.values()):
            result.skipped_blank += 1
            continue

        row, errors = parse_row(idx, mapped, normalization, defaults)
        if errors:
            result.errors.extend(errors)
            continue
        result.rows.append(row)
        result.row_numbers.append(idx)

    logger.debug(
        "Parsed %d rows: %d valid, %d failed, %d blank",
        result.total_rows, len(result.rows), len(result.failed_rows), result.skipped_blank,
    )
    return result


def to_records(rows: List[ParsedRow]) -> List[dict]:
    """Convert validated ParsedRow objects into storage payload dicts."""
    return [r.to_record() for r in rows]
