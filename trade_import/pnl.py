# trade_import/pnl.py
"""
Derived P&L fields for imported trades.

pnl_percentage is expressed in percent of the account (risk 1% at 1:3 that
wins -> 3.0); calculated_profit converts it to money at the balance passed in.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from .models import ParsedRow


@dataclass
class PnlResult:
    pnl_percentage: float
    calculated_profit: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def calculate_trade_pnl(
    trade_outcome: str,
    risk_per_trade: Optional[float],
    risk_reward_ratio: Optional[float],
    break_even: bool = False,
    account_balance: Optional[float] = None,
) -> PnlResult:
    """
    Args:
        trade_outcome: "Win" | "Lose" | "BE"
        risk_per_trade: percent of the account risked
        risk_reward_ratio: reward multiple of the risk
        break_even: the trade was closed at entry
        account_balance: balance at calculation time; None/0 gives profit 0

    Returns:
        PnlResult; break-even trades are always 0 / 0
    """
    if break_even or trade_outcome == "BE":
        return PnlResult(pnl_percentage=0.0, calculated_profit=0.0)

    risk = float(risk_per_trade or 0)
    rr = float(risk_reward_ratio or 0)
    pnl_pct = -risk if trade_outcome == "Lose" else risk * rr

    profit = (pnl_pct / 100) * account_balance if account_balance else 0.0
    return PnlResult(pnl_percentage=pnl_pct, calculated_profit=profit)


def apply_derived_fields(rows: List[ParsedRow], account_balance: Optional[float] = None) -> List[ParsedRow]:
    """
    Fill pnl_percentage / calculated_profit on each row where the CSV did not
    supply them. Values read from the file are kept, except on break-even rows.
    """
    out: List[ParsedRow] = []
    for row in rows:
        pnl = calculate_trade_pnl(
            row.trade_outcome,
            row.risk_per_trade,
            row.risk_reward_ratio,
            row.break_even,
            account_balance,
        )
        updates: Dict[str, float] = {}
        # break-even rows are zeroed even when the file says otherwise
        if row.pnl_percentage is None or row.break_even:
            updates["pnl_percentage"] = pnl.pnl_percentage
        if row.calculated_profit is None or row.break_even:
            updates["calculated_profit"] = pnl.calculated_profit
        out.append(row.model_copy(update=updates) if updates else row)
    return out
