# trade_import/importer.py
"""
TradeImportAgent - end-to-end CSV trade import.

Reads an arbitrary trade-journal CSV, works out which column holds which
trade field (header names, value patterns, optional AI translation), lets the
caller correct the mapping, normalises every row and submits the valid ones.

Usage:
    from trade_import import TradeImportAgent, ImportContext, ImportDefaults
    agent = TradeImportAgent(ImportContext(account_id="acc-1"), ImportDefaults(risk_reward_ratio=2))
    agent.load_file("journal.csv")
    agent.refresh_translations()
    preview = agent.preview()
    report = agent.submit(storage)

    python -m trade_import journal.csv --risk 1 --rr 2 --balance 10000
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, Union

from .config import ImportSettings
from .exceptions import SubmissionError, TradeImportError
from .header_matcher import match_headers, to_field_mapping
from .merger import assign_field, merge_matches
from .merger import missing_required as _missing_required
from .models import (
    ColumnMatch,
    ColumnSamples,
    ImportContext,
    ImportDefaults,
    ImportFailure,
    ImportReport,
    ParseResult,
    ValueMatchResult,
)
from .normalizers import BOOLEAN_FIELDS, CATEGORICAL_FIELDS, NormalizationTable, build_normalization_table
from .parser import CsvTable, parse_trades, read_csv_file, read_csv_text, to_records
from .pnl import apply_derived_fields
from .translator import (
    Translator,
    build_translator,
    enrich_concurrently,
    headers_needing_translation,
    values_needing_translation,
)
from .value_matcher import distinct_values, extract_column_samples, match_column_values

logger = logging.getLogger("TradeImportAgent")
if not logger.handlers:
    ch = logging.StreamHandler()
    ch.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(ch)
logger.setLevel(logging.INFO)


# ---------- Storage ----------

class TradeStorage(Protocol):
    def import_trades(
        self,
        mode: str,
        account_id: str,
        strategy_id: Optional[str],
        trades: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """Insert a batch; return {"inserted": n, "failed": [{"row": 1-based position, "reason": str}]}."""
        ...


class InMemoryTradeStorage:
    """
    Storage that keeps trades in a dict keyed by (mode, account_id).

    reject, if given, is called per trade and returns a reason string for
    trades that should be refused.
    """

    def __init__(self, reject: Optional[Callable[[Dict[str, Any]], Optional[str]]] = None):
        self.reject = reject
        self.trades: Dict[Tuple[str, str], List[Dict[str, Any]]] = {}

    def import_trades(
        self,
        mode: str,
        account_id: str,
        strategy_id: Optional[str],
        trades: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        inserted = 0
        failed: List[Dict[str, Any]] = []
        bucket = self.trades.setdefault((mode, account_id), [])
        for pos, trade in enumerate(trades, start=1):
            reason = self.reject(trade) if self.reject else None
            if reason:
                failed.append({"row": pos, "reason": reason})
                continue
            bucket.append(dict(trade, strategy_id=strategy_id))
            inserted += 1
        return {"inserted": inserted, "failed": failed}


# ---------- Agent ----------

class TradeImportAgent:
    def __init__(
        self,
        context: ImportContext,
        defaults: Optional[ImportDefaults] = None,
        translator: Optional[Translator] = None,
        settings: Optional[ImportSettings] = None,
    ):
        self.context = context
        self.defaults = defaults or ImportDefaults()
        self.settings = settings or ImportSettings.from_env()
        self.translator = translator or build_translator(self.settings)

        self.table: Optional[CsvTable] = None
        self.samples: ColumnSamples = {}
        self.header_matches: List[ColumnMatch] = []
        self.value_result = ValueMatchResult()
        self.matches: List[ColumnMatch] = []
        self.glosses: Dict[str, str] = {}
        self.value_translations: Dict[str, Dict[str, str]] = {}
        # header -> field (None = unmapped), in the order the user set them
        self._manual: Dict[str, Optional[str]] = {}

    # -------------------------
    # loading / matching
    # -------------------------
    def load(self, csv_text: str) -> CsvTable:
        """Parse CSV text and compute the deterministic mapping."""
        return self._set_table(read_csv_text(csv_text))

    def load_file(self, file_path: Union[str, Path]) -> CsvTable:
        return self._set_table(read_csv_file(file_path))

    def _set_table(self, table: CsvTable) -> CsvTable:
        self.table = table
        self.samples = extract_column_samples(table.rows, table.headers, self.settings.sample_size)
        self.glosses = {}
        self.value_translations = {}
        self._manual = {}
        self.analyze()
        logger.info("Loaded %d columns, %d rows", len(table.headers), len(table.rows))
        return table

    def _require_table(self) -> CsvTable:
        if self.table is None:
            raise TradeImportError("No CSV loaded")
        return self.table

    def analyze(self) -> List[ColumnMatch]:
        """Header + value matching, merged; manual assignments re-applied on top."""
        table = self._require_table()
        threshold = self.settings.header_threshold
        self.header_matches = match_headers(table.headers, threshold, glosses=self.glosses)
        self.value_result = match_column_values(self.samples, self.settings.value_match_ratio)
        matches = merge_matches(self.header_matches, self.value_result, threshold)
        for header, db_field in self._manual.items():
            matches = assign_field(matches, header, db_field)
        self.matches = matches
        return self.matches

    def assign(self, csv_header: str, db_field: Optional[str]) -> List[ColumnMatch]:
        """Manually map a column (db_field=None unmaps it). The field's previous column is cleared."""
        self._require_table()
        self.matches = assign_field(self.matches, csv_header, db_field)
        self._manual.pop(csv_header, None)
        self._manual[csv_header] = db_field
        return self.matches

    def field_mapping(self) -> Dict[str, str]:
        return to_field_mapping(self.matches)

    # -------------------------
    # translation
    # -------------------------
    def _category_values(self) -> Dict[str, List[str]]:
        """Distinct values of every column mapped to a categorical or boolean field."""
        table = self._require_table()
        limit = self.settings.category_value_limit
        return {
            header: distinct_values(table.rows, header, limit)
            for header, db_field in self.field_mapping().items()
            if db_field in CATEGORICAL_FIELDS or db_field in BOOLEAN_FIELDS
        }

    def _values_to_translate(self, skip: Optional[set] = None) -> Dict[str, List[str]]:
        category_values = self._category_values()
        table = build_normalization_table(self.field_mapping(), self.samples, self.value_translations, category_values)
        field_values = {
            db_field: category_values[header]
            for header, db_field in self.field_mapping().items()
            if header in category_values and db_field not in (skip or set())
        }
        return values_needing_translation(table, field_values)

    def _merge_value_translations(self, translations: Dict[str, Dict[str, str]]) -> None:
        for db_field, entries in translations.items():
            self.value_translations.setdefault(db_field, {}).update(entries)

    def refresh_translations(self) -> List[ColumnMatch]:
        """
        Ask the translator about non-English headers and categorical values,
        then recompute the mapping. Manual assignments survive. Columns that
        only became mapped through a translated header get their values
        translated in a second pass.
        """
        self._require_table()
        timeout = self.settings.request_timeout_seconds
        headers = headers_needing_translation(self.matches)
        fields = self._values_to_translate()
        if not headers and not fields:
            return self.matches

        logger.info("Translating %d header(s), %d value field(s)", len(headers), len(fields))
        glosses, translations = enrich_concurrently(self.translator, headers, fields, timeout)
        self.glosses.update(glosses)
        self._merge_value_translations(translations)
        self.analyze()

        follow_up = self._values_to_translate(skip=set(fields))
        if follow_up:
            _, translations = enrich_concurrently(self.translator, [], follow_up, timeout)
            self._merge_value_translations(translations)
        return self.matches

    # -------------------------
    # parsing / submission
    # -------------------------
    def normalization_table(self) -> NormalizationTable:
        self._require_table()
        return build_normalization_table(
            self.field_mapping(), self.samples, self.value_translations, self._category_values()
        )

    def missing_required(self) -> List[str]:
        return _missing_required(self.matches, self.defaults)

    def account_balance(self) -> Optional[float]:
        if self.defaults.account_balance is not None:
            return self.defaults.account_balance
        return self.context.account_balance

    def preview(self) -> ParseResult:
        """Normalise every row with the current mapping; nothing is stored."""
        table = self._require_table()
        result = parse_trades(table, self.matches, self.normalization_table(), self.defaults)
        result.rows = apply_derived_fields(result.rows, self.account_balance())
        return result

    def submit(self, storage: TradeStorage) -> ImportReport:
        """
        Validate and insert the trades.

        Nothing reaches storage while a required field has neither a column
        nor a default. Row failures from validation and from storage come back
        together in the report, keyed by source row number.

        Raises:
            SubmissionError: the storage call itself failed
        """
        missing = self.missing_required()
        if missing:
            logger.warning("Import blocked; unmapped required fields: %s", ", ".join(missing))
            return ImportReport(
                blocked=True,
                missing_required=missing,
                message=f"Map a column or set a default for: {', '.join(missing)}",
            )

        result = self.preview()
        failures = [
            ImportFailure(row=e.row_index, field=e.field, reason=e.message, stage="validation")
            for e in result.errors
        ]
        if not result.rows:
            return ImportReport(failed=failures, message="No valid trades to import")

        try:
            response = storage.import_trades(
                mode=self.context.mode,
                account_id=self.context.account_id,
                strategy_id=self.context.strategy_id,
                trades=to_records(result.rows),
            )
        except Exception as e:
            logger.error("Trade import failed: %s", e)
            raise SubmissionError(f"Trade import failed: {e}") from e

        inserted = int((response or {}).get("inserted", 0) or 0)
        for item in (response or {}).get("failed") or []:
            pos = int(item.get("row", 0) or 0)
            source_row = result.row_numbers[pos - 1] if 1 <= pos <= len(result.row_numbers) else pos
            failures.append(ImportFailure(row=source_row, reason=str(item.get("reason", "")), stage="storage"))
        failures.sort(key=lambda f: f.row)

        failed_rows = len({f.row for f in failures})
        message = f"Imported {inserted} trade(s)"
        if failed_rows:
            message += f"; {failed_rows} row(s) failed"
        logger.info(message)
        return ImportReport(inserted=inserted, failed=failures, message=message)


# ---------- CLI ----------

def display_results(agent: TradeImportAgent, result: ParseResult, report: ImportReport, limit: int = 5) -> None:
    print("\n" + "=" * 60)
    print("Column mapping")
    print("=" * 60)
    for m in agent.matches:
        target = m.db_field or "-"
        print(f"  {m.csv_header:<28} -> {target:<24} {m.score:>3} ({m.source})")
    for hint in agent.value_result.hints:
        print(f"  hint: {hint.csv_header}: {hint.reason}")

    if report.blocked:
        print(f"\n✗ {report.message}")
        return

    print(f"\nRows: {result.total_rows}  valid: {len(result.rows)}  "
          f"failed: {len(result.failed_rows)}  blank: {result.skipped_blank}")
    if report.failed:
        print("\nErrors:")
        for f in report.failed[:limit * 2]:
            label = f" [{f.field}]" if f.field else ""
            print(f"  row {f.row}{label}: {f.reason}")

    if result.rows:
        print("\nPreview:")
        for row in result.rows[:limit]:
            print(f"  {row.trade_date} {row.trade_time} {row.market:<8} {row.direction:<5} "
                  f"{row.trade_outcome:<4} risk {row.risk_per_trade:g}% rr {row.risk_reward_ratio:g} "
                  f"pnl {row.pnl_percentage:g}%")
    print(f"\n✓ {report.message}")


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="trade_import", description="Dry-run a trade-journal CSV import")
    ap.add_argument("file", help="CSV file to import")
    ap.add_argument("--risk", type=float, default=None, help="default risk per trade (%%)")
    ap.add_argument("--rr", type=float, default=None, help="default risk/reward ratio")
    ap.add_argument("--balance", type=float, default=None, help="account balance for profit calculation")
    ap.add_argument("--mode", choices=["live", "backtesting", "demo"], default="live")
    ap.add_argument("--account", default="local", help="account id")
    ap.add_argument("--no-translate", action="store_true", help="skip AI translation")
    ap.add_argument("--json", action="store_true", help="print the result as JSON")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    settings = ImportSettings.from_env()
    if args.no_translate:
        settings.translate = False

    agent = TradeImportAgent(
        ImportContext(mode=args.mode, account_id=args.account, account_balance=args.balance),
        ImportDefaults(risk_per_trade=args.risk, risk_reward_ratio=args.rr, account_balance=args.balance),
        settings=settings,
    )
    storage = InMemoryTradeStorage()
    try:
        agent.load_file(args.file)
        agent.refresh_translations()
        result = agent.preview()
        report = agent.submit(storage)
    except (FileNotFoundError, ValueError, TradeImportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        payload = {
            "mapping": [m.model_dump() for m in agent.matches],
            "hints": [h.model_dump() for h in agent.value_result.hints],
            "report": report.model_dump(),
            "trades": to_records(result.rows),
        }
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        display_results(agent, result, report)
    return 0 if report.ok or not result.total_rows else 1


if __name__ == "__main__":
    sys.exit(main())
