# trade_import/exceptions.py


class TradeImportError(Exception):
    """Base class for errors that abort an import attempt."""


class CsvStructureError(TradeImportError, ValueError):
    """The CSV could not be read at all (no headers, no data, bad encoding)."""


class SubmissionError(TradeImportError):
    """The storage call itself failed; nothing is known to be inserted."""


class MappingConflictError(TradeImportError, ValueError):
    """A column mapping holds the same field on more than one column."""
