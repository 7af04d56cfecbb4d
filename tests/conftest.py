import threading
from typing import Dict, List, Optional

import pytest

from trade_import.config import ImportSettings
from trade_import.models import ColumnMatch
from trade_import.schema import get_schema_field
from trade_import.translator import Translator


class StubTranslator(Translator):
    """Translator returning canned answers and recording what it was asked."""

    def __init__(self, headers: Optional[Dict[str, str]] = None,
                 values: Optional[Dict[str, Dict[str, str]]] = None):
        self.headers = headers or {}
        self.values = values or {}
        self.header_calls: List[List[str]] = []
        self.value_calls: List[Dict[str, List[str]]] = []
        self._lock = threading.Lock()

    def translate_headers(self, headers):
        with self._lock:
            self.header_calls.append(list(headers))
        return {h: g for h, g in self.headers.items() if h in headers}

    def translate_values(self, fields):
        with self._lock:
            self.value_calls.append({k: list(v) for k, v in fields.items()})
        return {f: dict(v) for f, v in self.values.items() if f in fields}


class ExplodingStorage:
    """Storage that must never be reached."""

    def __init__(self):
        self.calls = 0

    def import_trades(self, mode, account_id, strategy_id, trades):
        self.calls += 1
        raise AssertionError("storage should not have been called")


def make_matches(mapping: Dict[str, Optional[str]]) -> List[ColumnMatch]:
    """Build ColumnMatch objects for {csv_header: db_field}."""
    out = []
    for header, field in mapping.items():
        if field is None:
            out.append(ColumnMatch(csv_header=header))
            continue
        sf = get_schema_field(field)
        out.append(ColumnMatch(
            csv_header=header, db_field=field, score=100,
            required=sf.required, value_type=sf.value_type, source="manual",
        ))
    return out


@pytest.fixture
def offline_settings() -> ImportSettings:
    """Settings with translation switched off and no API key."""
    return ImportSettings(groq_api_key=None, translate=False)


@pytest.fixture
def basic_csv() -> str:
    return (
        "Date,Time,Symbol,Side,Result,Risk,RR,Notes\n"
        "2024-01-15,09:30,EUR/USD,Buy,Win,1,3,first\n"
        "2024-01-16,10:00,GBPUSD,Sell,Loss,1,2,\n"
        "2024-04-02,14:15,Gold,Long,BE,0.5,1:2,moved to be\n"
    )
