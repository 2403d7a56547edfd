from __future__ import annotations

import datetime as dt
import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal

from folioledger.conv import date_key

from .cashflow import total_deposits
from .domain import ClosedPosition, DailyCashFlow, LedgerEvent, Transaction, TransactionType
from .ledger import OpenBookRow, realized_positions
from .portfolio import PortfolioPoint, PositionRecord
from .xirr import XirrResult, rate_or_none

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")

_ACTIVITY_TYPES = {
    TransactionType.INCOME,
    TransactionType.DIVIDEND,
    TransactionType.DISTRIBUTION,
    TransactionType.INTEREST,
    TransactionType.FEE,
    TransactionType.TAX,
}


@dataclass
class ReportBuilder:
    from_date: dt.date | None = None
    to_date: dt.date | None = None

    def __post_init__(self) -> None:
        # collections
        self.realized: list[ClosedPosition] = []
        self.symbol_totals: defaultdict[str, dict[str, Decimal]] = defaultdict(
            lambda: defaultdict(Decimal)
        )
        self.cash_flows: dict[str, DailyCashFlow] = {}
        self.income_activity: list[Transaction] = []
        self.expense_activity: list[Transaction] = []
        self.open_book: list[OpenBookRow] = []
        self.positions: list[PositionRecord] = []
        self.timeline: list[PortfolioPoint] = []
        self.events: list[LedgerEvent] = []
        self.portfolio_xirr: XirrResult | None = None

    def in_window(self, when: dt.date) -> bool:
        if self.from_date is not None and when < self.from_date:
            return False
        if self.to_date is not None and when > self.to_date:
            return False
        return True

    def add_closed_positions(self, closed: Iterable[ClosedPosition]) -> None:
        """Keep the reportable closed positions in the window, newest first."""
        kept = realized_positions(closed, self.from_date, self.to_date)
        for cp in kept:
            t = self.symbol_totals[cp.symbol]
            t["realized"] += cp.realized_pnl
            t["buy_cost"] += cp.buy_cost_base
            t["sell_cost"] += cp.sell_cost_base
            t["closed_shares"] += cp.closed_shares
        self.realized.extend(kept)
        logger.debug("Kept %d realized position(s) in the report window", len(kept))

    def set_cash_flows(self, flows: Mapping[str, DailyCashFlow]) -> None:
        lo = date_key(self.from_date) if self.from_date else None
        hi = date_key(self.to_date) if self.to_date else None
        self.cash_flows = {
            d: f
            for d, f in sorted(flows.items())
            if (lo is None or d >= lo) and (hi is None or d <= hi)
        }

    def set_activity(self, transactions: Iterable[Transaction]) -> None:
        """Income and expense records (cash or security level), split by sign."""
        self.income_activity = []
        self.expense_activity = []
        for t in sorted(transactions, key=lambda t: t.date):
            if t.type not in _ACTIVITY_TYPES or not self.in_window(t.date):
                continue
            if t.base_amount > 0:
                self.income_activity.append(t)
            elif t.base_amount < 0:
                self.expense_activity.append(t)

    def set_open_book(self, rows: list[OpenBookRow]) -> None:
        self.open_book = sorted(rows, key=lambda r: (r.symbol, r.account))

    def set_positions(self, positions: list[PositionRecord]) -> None:
        self.positions = positions

    def set_timeline(self, points: list[PortfolioPoint]) -> None:
        self.timeline = points

    def set_portfolio_xirr(self, result: XirrResult) -> None:
        self.portfolio_xirr = result

    def set_events(self, events: list[LedgerEvent]) -> None:
        self.events = list(events)

    @property
    def total_realized(self) -> Decimal:
        return sum((cp.realized_pnl for cp in self.realized), _ZERO)

    @property
    def total_income(self) -> Decimal:
        return sum((f.income for f in self.cash_flows.values()), _ZERO)

    @property
    def total_expense(self) -> Decimal:
        return sum((f.interest for f in self.cash_flows.values()), _ZERO)

    @property
    def net_deposits(self) -> Decimal:
        return total_deposits(self.cash_flows.values())

    @property
    def xirr_rate(self) -> float | None:
        if self.portfolio_xirr is None:
            return None
        return rate_or_none(self.portfolio_xirr)
