# trade_import/__init__.py
from .models import (
    ColumnMatch,
    ImportContext,
    ImportDefaults,
    ImportFailure,
    ImportReport,
    ParsedRow,
    ParseResult,
    RowError,
)
from .exceptions import CsvStructureError, MappingConflictError, SubmissionError, TradeImportError
from .config import ImportSettings
from .header_matcher import match_headers, to_field_mapping
from .value_matcher import extract_column_samples, match_column_values
from .merger import assign_field, merge_matches, missing_required
from .normalizers import NormalizationTable, build_normalization_table
from .translator import GroqTranslator, NullTranslator, Translator, build_translator
from .parser import CsvTable, parse_trades, read_csv_file, read_csv_text, to_records
from .pnl import apply_derived_fields, calculate_trade_pnl
from .importer import InMemoryTradeStorage, TradeImportAgent, TradeStorage

__all__ = [
    "ColumnMatch",
    "ImportContext",
    "ImportDefaults",
    "ImportFailure",
    "ImportReport",
    "ParsedRow",
    "ParseResult",
    "RowError",
    "CsvStructureError",
    "MappingConflictError",
    "SubmissionError",
    "TradeImportError",
    "ImportSettings",
    "match_headers",
    "to_field_mapping",
    "extract_column_samples",
    "match_column_values",
    "assign_field",
    "merge_matches",
    "missing_required",
    "NormalizationTable",
    "build_normalization_table",
    "Translator",
    "NullTranslator",
    "GroqTranslator",
    "build_translator",
    "CsvTable",
    "read_csv_text",
    "read_csv_file",
    "parse_trades",
    "to_records",
    "calculate_trade_pnl",
    "apply_derived_fields",
    "TradeImportAgent",
    "TradeStorage",
    "InMemoryTradeStorage",
]
