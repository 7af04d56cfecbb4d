# trade_import/schema.py
"""
Canonical trade fields the importer can populate, with the header variants
seen in MT4/MT5 history exports, broker statements and hand-made journals.
"""

from typing import Dict, List, Optional

from .models import SchemaField


DATE = "date"
TIME = "time"
TEXT = "text"
NUMBER = "number"
BOOLEAN = "boolean"
ENUM = "enum"


DB_SCHEMA: List[SchemaField] = [
    # Required
    SchemaField(
        key="trade_date", label="Trade Date", required=True, value_type=DATE,
        description="Date the trade was opened (any format)",
        synonyms=[
            "trade_date", "date", "open date", "close date", "deal date",
            "trade day", "entry date", "tradedate", "opendate", "closedate",
            "datetime", "trade datetime", "open datetime", "execution date",
            "filled date", "transaction date", "day traded", "date traded",
        ],
    ),
    SchemaField(
        key="market", label="Market / Symbol", required=True, value_type=TEXT,
        description="Trading symbol e.g. EURUSD, XAUUSD",
        synonyms=[
            "market", "symbol", "pair", "instrument", "asset", "ticker",
            "sym", "currency pair", "security", "product", "contract",
            "currencypair", "ccy", "fx pair", "trade symbol", "trading pair",
            "underlying", "commodity", "index", "stock", "crypto", "coin",
            "pair indices", "symbol pair", "market symbol", "instrument name",
        ],
    ),
    SchemaField(
        key="direction", label="Direction", required=True, value_type=ENUM,
        description="Long or Short (buy/sell)",
        synonyms=[
            "direction", "type", "side", "order type", "trade type", "action",
            "buy sell", "long short", "position", "operation", "buysell",
            "b s", "cmd", "deal type", "pos type", "position type",
            "trade direction", "entry direction", "order side",
            "long or short", "buy or sell",
        ],
    ),
    SchemaField(
        key="trade_outcome", label="Trade Outcome", required=True, value_type=ENUM,
        description="Win, Lose or BE",
        synonyms=[
            "trade_outcome", "outcome", "result", "win loss", "status",
            "trade result", "pnl result", "w l", "tradeoutcome", "winloss",
            "verdict", "trade status", "closed result", "p l result",
            "hit sl", "hit tp",
        ],
    ),
    SchemaField(
        key="risk_per_trade", label="Risk Per Trade (%)", required=True, value_type=NUMBER,
        description="Risk percentage per trade (1 = 1%)",
        synonyms=[
            "risk_per_trade", "risk", "risk percent", "risk pct", "r",
            "risk amount", "position risk", "risk per trade", "riskpct",
            "risk percentage", "account risk", "capital at risk", "risked",
            "max risk", "stake", "risk size",
        ],
    ),
    SchemaField(
        key="risk_reward_ratio", label="Risk/Reward Ratio", required=True, value_type=NUMBER,
        description="Risk to reward ratio (2.0 = 1:2)",
        synonyms=[
            "risk_reward_ratio", "rr", "r r", "rr ratio", "risk reward",
            "reward risk", "risk to reward", "tp sl ratio", "rrr",
            "planned rr", "intended rr", "setup rr", "initial rr",
            "reward to risk", "r2r", "rr setup", "r multiple", "rr multiple",
        ],
    ),

    # Optional, date/time derived
    SchemaField(
        key="trade_time", label="Trade Time", value_type=TIME,
        description="Trade entry time (HH:MM or HH:MM:SS)",
        synonyms=[
            "trade_time", "time", "open time", "entry time", "close time",
            "timestamp", "hour", "tradetime", "opentime", "closetime",
            "fill time", "execution time", "trade timestamp", "time of entry",
            "time entered", "entry hour",
        ],
    ),
    SchemaField(
        key="day_of_week", label="Day of Week", value_type=TEXT,
        description="Weekday name, derived from the date when present",
        synonyms=["day_of_week", "day", "weekday", "day of week", "dow", "week day"],
    ),
    SchemaField(
        key="quarter", label="Quarter", value_type=TEXT,
        description="Calendar quarter, derived from the date when present",
        synonyms=["quarter", "qtr", "q"],
    ),

    # Optional numeric
    SchemaField(
        key="risk_reward_ratio_long", label="Potential R:R", value_type=NUMBER,
        description="Actual or potential risk/reward achieved",
        synonyms=[
            "risk_reward_ratio_long", "actual rr", "achieved rr", "final rr",
            "realised rr", "realized rr", "target rr", "max rr", "result rr",
            "exit rr", "closed rr", "potential rr", "rr potential",
            "potential risk reward",
        ],
    ),
    SchemaField(
        key="sl_size", label="Stop Loss Size", value_type=NUMBER,
        description="Stop loss size in pips",
        synonyms=[
            "sl_size", "sl", "stop loss", "stoploss", "sl pips", "stop pips",
            "sl distance", "slsize", "stop loss pips", "sl points",
            "stop distance", "sl pts", "stop in pips",
        ],
    ),
    SchemaField(
        key="displacement_size", label="Displacement Size", value_type=NUMBER,
        description="Displacement/impulse move size in pips",
        synonyms=[
            "displacement_size", "displacement", "impulse", "impulse size",
            "move size", "displacement pips", "disp", "disp size",
        ],
    ),
    SchemaField(
        key="fvg_size", label="FVG Size", value_type=NUMBER,
        description="Fair Value Gap size in pips",
        synonyms=[
            "fvg_size", "fvg", "fair value gap", "gap size", "imbalance size",
            "imbalance", "fvg pips", "price gap",
        ],
    ),
    SchemaField(
        key="confidence_at_entry", label="Confidence at Entry", value_type=NUMBER,
        description="Confidence level at entry (1-5)",
        synonyms=[
            "confidence_at_entry", "confidence", "conviction",
            "entry confidence", "confidence score", "confidence level",
        ],
    ),
    SchemaField(
        key="mind_state_at_entry", label="Mind State at Entry", value_type=NUMBER,
        description="Mental state at entry (1-5)",
        synonyms=[
            "mind_state_at_entry", "mind state", "psychology", "mental state",
            "emotional state", "mindset", "mood", "state of mind",
        ],
    ),
    SchemaField(
        key="calculated_profit", label="Calculated Profit", value_type=NUMBER,
        description="Profit/loss in account currency",
        synonyms=[
            "calculated_profit", "profit", "pnl", "p l", "net pnl",
            "net profit", "gain loss", "profit loss", "realized pnl",
        ],
    ),
    SchemaField(
        key="pnl_percentage", label="P/L %", value_type=NUMBER,
        description="Profit/loss as a percentage of the account",
        synonyms=[
            "pnl_percentage", "pnl pct", "pnl percent", "profit pct",
            "return pct", "gain pct", "p l pct", "percent gain",
        ],
    ),

    # Optional text
    SchemaField(
        key="setup_type", label="Setup Type", value_type=TEXT,
        description="Trading setup or pattern used",
        synonyms=[
            "setup_type", "setup", "pattern", "strategy", "trade setup",
            "entry model", "model", "setup name", "signal", "entry type",
            "trade model", "entry trigger",
        ],
    ),
    SchemaField(
        key="liquidity", label="Liquidity", value_type=TEXT,
        description="Liquidity level targeted",
        synonyms=[
            "liquidity", "liquidity type", "liq", "liquidity level",
            "liquidity pool", "target liquidity", "liq target",
        ],
    ),
    SchemaField(
        key="liquidity_taken", label="Liquidity Taken", value_type=TEXT,
        description="Which liquidity level was swept",
        synonyms=[
            "liquidity_taken", "liq taken", "taken liquidity", "sweep",
            "liquidity swept", "swept", "liquidity grab", "stop hunt",
        ],
    ),
    SchemaField(
        key="mss", label="MSS", value_type=TEXT,
        description="Market structure shift type",
        synonyms=[
            "mss", "market structure", "structure shift", "choch", "bos",
            "break of structure", "change of character",
            "market structure shift",
        ],
    ),
    SchemaField(
        key="evaluation", label="Evaluation", value_type=TEXT,
        description="Trade quality evaluation (A+, A, B, C)",
        synonyms=[
            "evaluation", "grade", "score", "quality", "trade quality",
            "rating", "review", "trade grade", "trade rating",
        ],
    ),
    SchemaField(
        key="trend", label="Trend", value_type=TEXT,
        description="Overall market trend (Bullish/Bearish)",
        synonyms=[
            "trend", "market trend", "bias", "directional bias", "htf bias",
            "market bias", "daily bias", "trend direction", "htf trend",
        ],
    ),
    SchemaField(
        key="trade_link", label="Trade Link", value_type=TEXT,
        description="URL to chart screenshot",
        synonyms=[
            "trade_link", "link", "chart", "chart link", "screenshot",
            "tradingview", "image", "url", "chart url", "tv link",
        ],
    ),
    SchemaField(
        key="notes", label="Notes", value_type=TEXT,
        description="Trade notes or observations",
        synonyms=[
            "notes", "note", "comment", "comments", "memo", "description",
            "remarks", "observations", "thoughts", "journal", "trade notes",
        ],
    ),
    SchemaField(
        key="be_final_result", label="BE Final Result", value_type=ENUM,
        description="Win or Lose result of a trade moved to break even",
        synonyms=[
            "be_final_result", "be result", "be final result",
            "break even result", "final result", "be outcome",
        ],
    ),

    # Optional boolean
    SchemaField(
        key="break_even", label="Break Even", value_type=BOOLEAN,
        description="Did the trade hit break even?",
        synonyms=[
            "break_even", "be", "breakeven", "moved to be", "be hit",
            "break even hit", "be moved", "sl moved to be", "to breakeven",
        ],
    ),
    SchemaField(
        key="reentry", label="Re-entry", value_type=BOOLEAN,
        description="Was this a re-entry trade?",
        synonyms=["reentry", "re_entry", "re entry", "second entry", "retry", "re trade", "2nd entry"],
    ),
    SchemaField(
        key="news_related", label="News Related", value_type=BOOLEAN,
        description="Was the trade influenced by news?",
        synonyms=[
            "news_related", "news", "fundamental", "event", "catalyst",
            "news trade", "high impact", "news event", "economic news",
        ],
    ),
    SchemaField(
        key="local_high_low", label="Local High/Low", value_type=BOOLEAN,
        description="Did the trade respect a local high/low?",
        synonyms=[
            "local_high_low", "local hl", "swing hl", "local swing",
            "swing point", "local high low", "swing high low",
        ],
    ),
    SchemaField(
        key="partials_taken", label="Partials Taken", value_type=BOOLEAN,
        description="Were partial profits taken?",
        synonyms=[
            "partials_taken", "partials", "partial tp", "partial close",
            "scaled out", "partial exit", "partial profit", "took partials",
        ],
    ),
    SchemaField(
        key="executed", label="Executed", value_type=BOOLEAN,
        description="Was the trade actually executed?",
        synonyms=[
            "executed", "taken", "entered", "traded", "trade taken",
            "is_executed", "filled", "trade executed",
        ],
    ),
    SchemaField(
        key="launch_hour", label="Launch Hour", value_type=BOOLEAN,
        description="Was the trade taken during launch hour/killzone?",
        synonyms=[
            "launch_hour", "launch hour", "killzone", "session open",
            "london open", "ny open", "killzone session",
        ],
    ),
]

_SCHEMA_BY_KEY: Dict[str, SchemaField] = {f.key: f for f in DB_SCHEMA}

# Required numeric fields that ImportDefaults may satisfy
DEFAULTABLE_FIELDS = ("risk_per_trade", "risk_reward_ratio")

# Canonical values accepted for enum fields
ENUM_VALUES: Dict[str, tuple] = {
    "direction": ("Long", "Short"),
    "trade_outcome": ("Win", "Lose", "BE"),
    "be_final_result": ("Win", "Lose"),
}

RATIO_FIELDS = {"risk_reward_ratio", "risk_reward_ratio_long"}


def get_schema_field(key: str) -> Optional[SchemaField]:
    """Look up a SchemaField by its key."""
    return _SCHEMA_BY_KEY.get(key)


def required_fields() -> List[str]:
    return [f.key for f in DB_SCHEMA if f.required]


def fields_of_type(value_type: str) -> List[str]:
    return [f.key for f in DB_SCHEMA if f.value_type == value_type]
