import inspect
import json

import pytest

from trade_import.exceptions import SubmissionError, TradeImportError
from trade_import.importer import InMemoryTradeStorage, TradeImportAgent, TradeStorage, main
from trade_import.models import ImportContext, ImportDefaults
from trade_import.translator import NullTranslator

from conftest import ExplodingStorage, StubTranslator


def _agent(settings, defaults=None, translator=None, **context):
    ctx = dict(account_id="acc-1")
    ctx.update(context)
    return TradeImportAgent(
        ImportContext(**ctx),
        defaults or ImportDefaults(),
        translator=translator or NullTranslator(),
        settings=settings,
    )


FRENCH_CSV = (
    "Date,Symbol,Side,Résultat,Risk,RR\n"
    "2024-01-02,EURUSD,Buy,Gagné,1,2\n"
    "2024-01-03,GBPUSD,Sell,Perdu,1,2\n"
    "2024-01-04,EURUSD,Buy,Gagné,1,3\n"
)


def test_translated_outcomes_normalize(offline_settings):
    stub = StubTranslator(
        headers={"Résultat": "result"},
        values={"trade_outcome": {"Gagné": "Win", "Perdu": "Lose"}},
    )
    agent = _agent(offline_settings, translator=stub)
    agent.load(FRENCH_CSV)

    agent.refresh_translations()
    result = agent.preview()

    assert agent.field_mapping()["Résultat"] == "trade_outcome"
    assert [e for e in result.errors if e.field == "trade_outcome"] == []
    assert [r.trade_outcome for r in result.rows] == ["Win", "Lose", "Win"]
    assert stub.value_calls


def test_untranslated_outcomes_are_row_errors(offline_settings):
    agent = _agent(offline_settings)
    agent.load(FRENCH_CSV)

    result = agent.preview()

    assert result.rows == []
    assert {e.field for e in result.errors} == {"trade_outcome"}


def test_header_translation_then_value_translation(offline_settings):
    csv_text = (
        "Date,Symbol,Направление,Result,Risk,RR\n"
        "2024-01-02,EURUSD,Покупка,Win,1,2\n"
        "2024-01-03,EURUSD,Продажа,Loss,1,2\n"
    )
    stub = StubTranslator(
        headers={"Направление": "direction"},
        values={"direction": {"Покупка": "Long", "Продажа": "Short"}},
    )
    agent = _agent(offline_settings, translator=stub)
    agent.load(csv_text)

    assert agent.field_mapping().get("Направление") is None

    agent.refresh_translations()

    match = next(m for m in agent.matches if m.csv_header == "Направление")
    assert match.db_field == "direction"
    assert match.source == "translation"
    assert stub.header_calls == [["Направление"]]
    assert any("direction" in call for call in stub.value_calls)
    assert [r.direction for r in agent.preview().rows] == ["Long", "Short"]


def test_manual_assignment_survives_refresh(offline_settings):
    stub = StubTranslator(values={"trade_outcome": {"Gagné": "Win", "Perdu": "Lose"}})
    agent = _agent(offline_settings, translator=stub)
    agent.load(FRENCH_CSV)

    agent.assign("RR", "risk_reward_ratio_long")
    agent.refresh_translations()

    assert stub.value_calls
    match = next(m for m in agent.matches if m.csv_header == "RR")
    assert match.db_field == "risk_reward_ratio_long"
    assert match.score == 100
    assert match.source == "manual"


def test_generic_direction_column_recovered_from_values(offline_settings):
    agent = _agent(offline_settings)
    agent.load(
        "Date,Symbol,Column B,Result,Risk,RR\n"
        "2024-01-02,EURUSD,buy,Win,1,2\n"
        "2024-01-03,EURUSD,sell,Loss,1,1\n"
    )

    mapping = agent.field_mapping()

    assert mapping["Column B"] == "direction"
    assert mapping["RR"] == "risk_reward_ratio"
    assert agent.missing_required() == []


def test_manual_assignment_moves_field(offline_settings, basic_csv):
    agent = _agent(offline_settings)
    agent.load(basic_csv)

    agent.assign("Notes", "market")

    mapping = agent.field_mapping()
    assert mapping["Notes"] == "market"
    assert "Symbol" not in mapping


def test_submit_blocked_when_required_field_unmapped(offline_settings):
    storage = ExplodingStorage()
    agent = _agent(offline_settings)
    agent.load("Date,Symbol,Side,Result\n2024-01-02,EURUSD,Buy,Win\n")

    report = agent.submit(storage)

    assert report.blocked is True
    assert report.missing_required == ["risk_per_trade", "risk_reward_ratio"]
    assert report.inserted == 0
    assert storage.calls == 0


def test_defaults_unblock_submission(offline_settings):
    storage = InMemoryTradeStorage()
    agent = _agent(offline_settings, ImportDefaults(risk_per_trade=1, risk_reward_ratio=2, account_balance=5_000))
    agent.load("Date,Symbol,Side,Result\n2024-01-02,EURUSD,Buy,Win\n")

    report = agent.submit(storage)

    assert report.ok
    assert report.inserted == 1
    stored = storage.trades[("live", "acc-1")][0]
    assert stored["pnl_percentage"] == pytest.approx(2.0)
    assert stored["calculated_profit"] == pytest.approx(100.0)


def test_partial_storage_failure_reported_by_source_row(offline_settings):
    csv_text = (
        "Date,Symbol,Side,Result,Risk,RR\n"
        "2024-01-02,EURUSD,Buy,Win,1,2\n"
        "2024-01-03,EURUSD,Sideways,Win,1,2\n"
        "2024-01-04,GBPUSD,Sell,Loss,1,2\n"
        "2024-01-05,EURUSD,Sell,Win,1,2\n"
    )
    storage = InMemoryTradeStorage(reject=lambda t: "duplicate trade" if t["market"] == "GBPUSD" else None)
    agent = _agent(offline_settings, mode="backtesting", strategy_id="s-1")
    agent.load(csv_text)

    report = agent.submit(storage)

    assert report.inserted == 2
    assert report.partial_success
    assert [(f.row, f.stage) for f in report.failed] == [(2, "validation"), (3, "storage")]
    assert report.failed[1].reason == "duplicate trade"
    assert all(t["strategy_id"] == "s-1" for t in storage.trades[("backtesting", "acc-1")])


def test_storage_exception_becomes_submission_error(offline_settings, basic_csv):
    class DownStorage:
        def import_trades(self, **kwargs):
            raise ConnectionError("db down")

    agent = _agent(offline_settings)
    agent.load(basic_csv)

    with pytest.raises(SubmissionError):
        agent.submit(DownStorage())


def test_context_balance_used_when_no_default(offline_settings, basic_csv):
    agent = _agent(offline_settings, account_balance=10_000)
    agent.load(basic_csv)

    rows = agent.preview().rows

    assert rows[0].calculated_profit == pytest.approx(300.0)
    assert rows[2].calculated_profit == 0.0


def test_operations_need_a_loaded_file(offline_settings):
    with pytest.raises(TradeImportError):
        _agent(offline_settings).preview()


def test_cli_dry_run_json(tmp_path, capsys):
    path = tmp_path / "journal.csv"
    path.write_text(
        "Date,Symbol,Side,Result,Risk\n2024-01-02,EURUSD,Buy,Win,1\n", encoding="utf-8"
    )

    code = main([str(path), "--rr", "2", "--balance", "1000", "--no-translate", "--json"])

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["report"]["inserted"] == 1
    assert "hints" in payload
    assert payload["trades"][0]["calculated_profit"] == pytest.approx(20.0)


def test_cli_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "nope.csv"), "--no-translate"]) == 1


def test_in_memory_storage_matches_storage_signature():
    expected = inspect.signature(TradeStorage.import_trades)

    assert inspect.signature(InMemoryTradeStorage.import_trades) == expected
