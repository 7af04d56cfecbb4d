# trade_import/models.py
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field


ValueType = Literal["date", "time", "text", "number", "boolean", "enum"]
MatchSource = Literal["header", "value", "translation", "manual", "none"]
TradeMode = Literal["live", "backtesting", "demo"]

# A single CSV row keyed by (de-duplicated) header, every cell a stripped string
RawRow = Dict[str, str]
ColumnSamples = Dict[str, List[str]]


class SchemaField(BaseModel):
    """A canonical trade attribute the importer knows how to store."""
    key: str
    label: str
    required: bool = False
    value_type: ValueType = "text"
    synonyms: List[str] = Field(default_factory=list)
    description: str = ""


class ColumnMatch(BaseModel):
    """
    Mapping state for one CSV column. At most one ColumnMatch in a set may
    hold a given non-null db_field.
    """
    csv_header: str
    db_field: Optional[str] = None
    score: int = Field(0, ge=0, le=100)
    required: bool = False
    value_type: Optional[ValueType] = None
    source: MatchSource = "none"


class ValueSuggestion(BaseModel):
    csv_header: str
    field: str
    score: int = Field(0, ge=0, le=100)
    reason: str = ""


class ColumnHint(BaseModel):
    """Advice for the user; never applied to the mapping automatically."""
    csv_header: str                     # display label, "A / B" when several columns compete
    possible_fields: List[str] = Field(default_factory=list)
    candidate_headers: List[str] = Field(default_factory=list)
    reason: str = ""


class ValueMatchResult(BaseModel):
    # ranked best first; a column or field may appear more than once
    suggestions: List[ValueSuggestion] = Field(default_factory=list)
    hints: List[ColumnHint] = Field(default_factory=list)


class ParsedRow(BaseModel):
    """
    A fully typed trade record as validated/normalized from CSV input,
    ready for persistence.
    """
    trade_date: str                     # YYYY-MM-DD
    trade_time: str = "00:00:00"        # HH:MM:SS
    day_of_week: str = ""
    quarter: str = ""
    market: str = Field(..., min_length=1)
    direction: Literal["Long", "Short"]
    trade_outcome: Literal["Win", "Lose", "BE"]
    risk_per_trade: float
    risk_reward_ratio: float
    risk_reward_ratio_long: float = 0.0
    sl_size: float = 0.0
    displacement_size: float = 0.0
    fvg_size: Optional[float] = None
    confidence_at_entry: Optional[int] = None
    mind_state_at_entry: Optional[int] = None
    calculated_profit: Optional[float] = None
    pnl_percentage: Optional[float] = None
    setup_type: str = ""
    liquidity: str = ""
    liquidity_taken: str = ""
    mss: str = ""
    evaluation: str = ""
    trend: Optional[str] = None
    trade_link: str = ""
    notes: Optional[str] = None
    be_final_result: Optional[Literal["Win", "Lose"]] = None
    break_even: bool = False
    reentry: bool = False
    news_related: bool = False
    local_high_low: bool = False
    partials_taken: bool = False
    executed: bool = True
    launch_hour: bool = False

    def to_record(self) -> dict:
        return self.model_dump()


class RowError(BaseModel):
    row_index: int       # 1-based position among data rows, header excluded
    field: str
    message: str


class ParseResult(BaseModel):
    rows: List[ParsedRow] = Field(default_factory=list)
    errors: List[RowError] = Field(default_factory=list)
    row_numbers: List[int] = Field(default_factory=list)  # source row index of rows[i]
    total_rows: int = 0
    skipped_blank: int = 0

    @property
    def failed_rows(self) -> List[int]:
        return sorted({e.row_index for e in self.errors})


class ImportDefaults(BaseModel):
    """Process-scoped overrides applied to every row missing the CSV value."""
    risk_per_trade: Optional[float] = None
    risk_reward_ratio: Optional[float] = None
    account_balance: Optional[float] = None


class ImportContext(BaseModel):
    """Account/mode selection the import runs against."""
    mode: TradeMode = "live"
    account_id: str
    strategy_id: Optional[str] = None
    account_balance: Optional[float] = None


class ImportFailure(BaseModel):
    row: int
    reason: str
    field: Optional[str] = None
    stage: Literal["validation", "storage"] = "validation"


class ImportReport(BaseModel):
    """
    Final outcome of an import attempt. A report with inserted > 0 and
    failures is a partial success, not a failed import.
    """
    inserted: int = 0
    failed: List[ImportFailure] = Field(default_factory=list)
    blocked: bool = False
    missing_required: List[str] = Field(default_factory=list)
    message: str = ""

    @property
    def partial_success(self) -> bool:
        return self.inserted > 0 and bool(self.failed)

    @property
    def ok(self) -> bool:
        return not self.blocked and self.inserted > 0
