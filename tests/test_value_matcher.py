import pytest

from trade_import.value_matcher import (
    detect_column,
    distinct_values,
    extract_column_samples,
    header_hints,
    match_column_values,
    score_market,
    score_risk_per_trade,
    score_risk_reward_ratio,
)


def _suggested(result):
    """Best suggestion per column."""
    best = {}
    for s in result.suggestions:
        best.setdefault(s.csv_header, s.field)
    return best


def _candidates(result, field):
    return [s.csv_header for s in result.suggestions if s.field == field]


@pytest.mark.unit
def test_date_and_time_detected_from_values():
    samples = {
        "Col A": ["31.12.2023", "01.01.2024", "15.03.2024"],
        "Col B": ["9:00 AM", "10:30 AM", "2:15 PM"],
    }

    result = match_column_values(samples)

    assert _suggested(result) == {"Col A": "trade_date", "Col B": "trade_time"}
    assert all(s.score == 100 for s in result.suggestions)
    assert result.hints == []


@pytest.mark.unit
def test_direction_and_outcome_vocabularies():
    samples = {
        "x": ["Buy", "Sell", "buy"],
        "y": ["TP", "SL", "TP", "BE"],
    }

    assert _suggested(match_column_values(samples)) == {"x": "direction", "y": "trade_outcome"}


@pytest.mark.unit
def test_eighty_percent_of_samples_must_match():
    at_threshold = match_column_values({"c": ["Buy", "Sell", "Buy", "??", "Sell"]})
    below = match_column_values({"c": ["Buy", "x1", "y1", "Sell", "Buy"]})

    assert _suggested(at_threshold) == {"c": "direction"}
    assert at_threshold.suggestions[0].score == 80
    assert below.suggestions == []


@pytest.mark.unit
def test_combined_datetime_yields_hint_not_assignment():
    samples = {"Opened": ["2024-01-15 09:30", "2024-01-16 10:00:00", "2024-01-17T11:45"]}

    result = match_column_values(samples)

    assert result.suggestions == []
    assert len(result.hints) == 1
    assert result.hints[0].csv_header == "Opened"
    assert result.hints[0].possible_fields == ["trade_date", "trade_time"]


@pytest.mark.unit
def test_extract_column_samples_keeps_distinct_first_seen():
    rows = [
        {"a": "Buy", "b": ""},
        {"a": "Buy", "b": "x"},
        {"a": "Sell", "b": "y"},
        {"a": "Long", "b": "z"},
    ]

    samples = extract_column_samples(rows, ["a", "b"], max_samples=2)

    assert samples == {"a": ["Buy", "Sell"], "b": ["x", "y"]}


@pytest.mark.unit
def test_distinct_values_is_case_insensitive():
    rows = [{"r": "Win"}, {"r": "win"}, {"r": ""}, {"r": "Perdu"}]

    assert distinct_values(rows, "r") == ["Win", "Perdu"]


@pytest.mark.unit
def test_every_qualifying_column_is_a_candidate():
    samples = {
        "first": ["Long", "Short"],
        "second": ["Buy", "Sell"],
    }

    assert _candidates(match_column_values(samples), "direction") == ["first", "second"]


@pytest.mark.unit
def test_ratio_column_does_not_hide_generic_direction_column():
    samples = {
        "RR": ["2", "1"],
        "Column B": ["buy", "sell"],
    }

    result = match_column_values(samples)

    assert _suggested(result) == {"RR": "risk_reward_ratio", "Column B": "direction"}
    assert _candidates(result, "direction") == ["RR", "Column B"]


@pytest.mark.unit
def test_numeric_codes():
    # a constant 1 is a number column; 1/2 is a direction code
    assert detect_column(["1", "1", "1"]) == ("risk_per_trade", 100)
    assert detect_column(["1", "1", "1"], header="RR") == ("risk_reward_ratio", 100)
    assert detect_column(["1", "2", "1", "2"]) == ("direction", 100)
    assert detect_column(["1", "0", "1"]) == ("trade_outcome", 100)


@pytest.mark.unit
def test_four_digit_times_need_a_time_header():
    assert detect_column(["0930", "1415", "2200"], header="Entry Time") == ("trade_time", 100)
    assert detect_column(["0930", "1415", "2200"]) is None
    assert detect_column(["0960", "2500"], header="Time") is None


@pytest.mark.unit
def test_ticket_numbers_are_not_times():
    result = match_column_values({"Ticket": ["1203", "1204", "1205", "1206", "1207"]})

    assert result.suggestions == []


@pytest.mark.unit
def test_market_symbols_detected():
    assert score_market(["EUR/USD", "Gold", "NAS100", "GBPJPY"]) == 1.0
    assert score_market(["Buy", "Sell"]) == 0.0
    assert _suggested(match_column_values({"Col 2": ["EUR/USD", "GBPUSD", "Gold"]})) == {"Col 2": "market"}


@pytest.mark.unit
def test_risk_and_ratio_scores():
    assert score_risk_per_trade(["1%", "0.5%", "2%"]) == 1.0
    assert score_risk_per_trade(["1:3", "1:2"]) == 0.0
    assert score_risk_reward_ratio(["1:2", "1:3", "2.5"]) == 1.0
    assert score_risk_reward_ratio(["1%", "2%"]) == 0.0


@pytest.mark.unit
def test_header_hints_match_whole_words_for_short_hints():
    assert header_hints("R:R", "risk_reward_ratio")
    assert header_hints("Risk %", "risk_per_trade")
    assert header_hints("Open Time", "trade_time")
    assert not header_hints("Currency", "risk_reward_ratio")


@pytest.mark.unit
def test_near_miss_hint_when_several_columns_partly_fit():
    samples = {
        "Notes": ["EURUSD", "great entry"],
        "Comment": ["GBPUSD", "skip this one"],
    }

    result = match_column_values(samples)
    market_hints = [h for h in result.hints if h.possible_fields == ["market"]]

    assert result.suggestions == []
    assert len(market_hints) == 1
    assert market_hints[0].candidate_headers == ["Notes", "Comment"]
    assert market_hints[0].csv_header == "Notes / Comment"
    assert "Multiple columns" in market_hints[0].reason


@pytest.mark.unit
def test_no_near_miss_hint_for_single_partial_column():
    result = match_column_values({"Notes": ["EURUSD", "great entry"]})

    assert result.hints == []
