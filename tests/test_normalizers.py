from datetime import date, datetime

import pytest

from trade_import.normalizers import (
    NormalizationTable,
    build_normalization_table,
    normalize_be_result,
    normalize_boolean,
    normalize_direction,
    normalize_market,
    normalize_outcome,
    parse_date,
    parse_number,
    parse_ratio,
    parse_time,
    split_datetime,
)


@pytest.mark.parametrize("raw", ["Buy", "LONG", " b ", "call", "1", "+", "Buy Limit"])
def test_direction_long(raw):
    assert normalize_direction(raw) == "Long"


@pytest.mark.parametrize("raw", ["Sell", "short", "put", "2", "-", "SELL STOP"])
def test_direction_short(raw):
    assert normalize_direction(raw) == "Short"


def test_direction_unknown():
    assert normalize_direction("sideways") is None
    assert normalize_direction("") is None


@pytest.mark.parametrize("raw,expected", [
    ("TP", "Win"), ("green", "Win"), ("1", "Win"), ("Won", "Win"),
    ("stopped out", "Lose"), ("Loss", "Lose"), ("0", "Lose"), ("red", "Lose"),
    ("B/E", "BE"), ("breakeven", "BE"), ("be", "BE"),
])
def test_outcome(raw, expected):
    assert normalize_outcome(raw) == expected


def test_outcome_unknown_and_be_result():
    assert normalize_outcome("xyz") is None
    assert normalize_be_result("win") == "Win"
    assert normalize_be_result("be") is None


@pytest.mark.parametrize("raw", ["yes", "TRUE", "1", "x", "✓", "Y", "on", "oui", "Ja"])
def test_boolean_true(raw):
    assert normalize_boolean(raw) is True


@pytest.mark.parametrize("raw", ["no", "", "0", "false", "maybe", "nein"])
def test_boolean_false(raw):
    assert normalize_boolean(raw) is False


@pytest.mark.parametrize("raw,expected", [
    ("EUR/USD", "EURUSD"),
    ("GBP/USD 🇬🇧", "GBPUSD"),
    ("gold", "XAUUSD"),
    ("Nasdaq", "NAS100"),
    (" us30 ", "US30"),
])
def test_market(raw, expected):
    assert normalize_market(raw) == expected


def test_market_empty():
    assert normalize_market("") is None
    assert normalize_market(None) is None


@pytest.mark.parametrize("raw,expected", [
    ("1.5%", 1.5),
    ("$1,000", 1000.0),
    ("1.234,56", 1234.56),
    ("1,234.56", 1234.56),
    ("1,5", 1.5),
    ("2R", 2.0),
    ("10k", 10_000.0),
    ("2.5M", 2_500_000.0),
    ("(12.5)", -12.5),
    ("-0.5", -0.5),
    ("€ 250", 250.0),
    ("1.234.567", 1_234_567.0),
])
def test_parse_number(raw, expected):
    assert parse_number(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["", "abc", "n/a", None, "-"])
def test_parse_number_invalid(raw):
    assert parse_number(raw) is None


def test_parse_ratio():
    assert parse_ratio("1:3") == pytest.approx(3.0)
    assert parse_ratio("2:1") == pytest.approx(0.5)
    assert parse_ratio("2.5") == pytest.approx(2.5)
    assert parse_ratio("0:3") is None
    assert parse_ratio("") is None


@pytest.mark.parametrize("raw", [
    "31.12.2023",
    "31/12/2023",
    "12/31/2023",
    "2023-12-31",
    "2023/12/31",
    "31-12-2023",
    "31.12.23",
    "31 Dec 2023",
    "December 31 2023",
    "Dec 31, 2023",
    "2023-12-31 23:15:00",
])
def test_parse_date_formats_round_trip(raw):
    normalized = parse_date(raw)

    assert normalized == "2023-12-31"
    assert datetime.strptime(normalized, "%Y-%m-%d").date() == date(2023, 12, 31)


def test_parse_date_day_first_for_ambiguous_dates():
    assert parse_date("01/02/2024") == "2024-02-01"


def test_parse_date_invalid():
    assert parse_date("not a date") is None
    assert parse_date("") is None
    assert parse_date("32/13/2024") is None


@pytest.mark.parametrize("raw,expected", [
    ("9:00 AM", "09:00:00"),
    ("2:15 pm", "14:15:00"),
    ("14:30", "14:30:00"),
    ("14:30:05", "14:30:05"),
    ("0930", "09:30:00"),
    ("2024-01-15T09:30:00", "09:30:00"),
])
def test_parse_time(raw, expected):
    assert parse_time(raw) == expected


@pytest.mark.parametrize("raw", ["25:00", "2460", "noon", ""])
def test_parse_time_invalid(raw):
    assert parse_time(raw) is None


def test_split_datetime():
    assert split_datetime("2025-01-15 09:30:00") == ("2025-01-15", "09:30:00")
    assert split_datetime("15.01.2025 9:30 PM") == ("15.01.2025", "9:30 PM")
    assert split_datetime("2025-01-15") == ("2025-01-15", None)


class TestNormalizationTable:

    def test_translation_never_overrides_alias(self):
        table = NormalizationTable()

        assert table.add_translated("direction", "Buy", "Short") is False
        assert table.resolve("direction", "Buy") == "Long"

    def test_translation_fills_unknown_value(self):
        table = NormalizationTable()

        assert table.add_translated("trade_outcome", "Gagné", "Win") is True
        assert table.resolve("trade_outcome", "gagné") == "Win"
        assert table.resolve("trade_outcome", " GAGNÉ ") == "Win"

    def test_translation_outside_allowed_set_rejected(self):
        table = NormalizationTable()

        assert table.add_translated("trade_outcome", "Peut-être", "Maybe") is False
        assert table.resolve("trade_outcome", "Peut-être") is None

    def test_unresolved_lists_distinct_unknown_values(self):
        table = NormalizationTable()

        assert table.unresolved("direction", ["Buy", "Achète", "Vend", "achète", ""]) == ["Achète", "Vend"]

    def test_booleans_resolve_leniently(self):
        table = NormalizationTable()

        assert table.resolve("break_even", "yes") is True
        assert table.resolve("break_even", "whatever") is False


def test_build_table_records_deterministic_then_translated():
    mapping = {"Side": "direction", "Résultat": "trade_outcome", "BE": "break_even"}
    samples = {"Side": ["Buy", "Sell"], "Résultat": ["Gagné", "Perdu", "TP"], "BE": ["yes", "no"]}
    translations = {"direction": {"Buy": "Short"}, "trade_outcome": {"Gagné": "Win", "Perdu": "Lose"}}

    table = build_normalization_table(mapping, samples, translations)

    assert table.resolve("direction", "Buy") == "Long"
    assert table.resolve("trade_outcome", "Perdu") == "Lose"
    assert table.resolve("trade_outcome", "TP") == "Win"
    as_dict = table.as_dict()
    assert as_dict["direction"] == {"buy": "Long", "sell": "Short"}
    assert as_dict["trade_outcome"]["gagné"] == "Win"
    assert as_dict["break_even"] == {"yes": True, "no": False}
