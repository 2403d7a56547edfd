from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal

from .domain import DailyCashFlow, Transaction, TransactionType
from .money import abs_decimal

logger = logging.getLogger(__name__)

# FX conversions and journal moves between the user's own accounts
INTERNAL_TRANSFER_CODES = frozenset({"FXT", "BRW", "ExchTrade"})

_POSITION_TYPES = {
    TransactionType.BUY,
    TransactionType.SELL,
    TransactionType.SPLIT,
    TransactionType.REINVEST,
}
_INCOME_OR_EXPENSE_TYPES = {
    TransactionType.FEE,
    TransactionType.INTEREST,
    TransactionType.TAX,
    TransactionType.INCOME,
    TransactionType.DIVIDEND,
    TransactionType.DISTRIBUTION,
}


class CashFlowAggregator:
    """Fold transactions into per-date deposit/withdrawal/income/interest buckets.

    Amounts are taken in the base currency (``Transaction.base_amount``) and
    stored as non-negative magnitudes. Security trades do not move these
    buckets; their cash effect shows up in the portfolio value instead.
    Dividends and taxes booked against a security count like cash-level ones.
    """

    def __init__(self, internal_transfer_codes: Iterable[str] | None = None) -> None:
        self.internal_transfer_codes = frozenset(
            INTERNAL_TRANSFER_CODES
            if internal_transfer_codes is None
            else internal_transfer_codes
        )
        self._by_date: dict[str, DailyCashFlow] = {}

    @property
    def by_date(self) -> Mapping[str, DailyCashFlow]:
        return self._by_date

    def fold(self, transactions: Iterable[Transaction]) -> dict[str, DailyCashFlow]:
        for t in transactions:
            self.add(t)
        return dict(self._by_date)

    def add(self, t: Transaction) -> None:
        if t.type in _POSITION_TYPES:
            return

        amount = t.base_amount
        if t.type is TransactionType.DEPOSIT:
            self._bucket(t).deposit += amount
        elif t.type is TransactionType.TRANSFER:
            if self.counts_as_deposit(t):
                self._bucket(t).deposit += amount
        elif t.type in _INCOME_OR_EXPENSE_TYPES:
            if amount > 0:
                self._bucket(t).income += amount
            else:
                self._bucket(t).interest += abs_decimal(amount)
        elif t.type is TransactionType.WITHDRAWAL:
            self._bucket(t).withdrawal += abs_decimal(amount)
        else:
            logger.debug("Unhandled cash-flow type %s for %s", t.type.value, t.id)

    def counts_as_deposit(self, t: Transaction) -> bool:
        """Whether a transfer adds new money to the portfolio.

        Cash moved in from outside counts. FX/journal moves between the user's
        own accounts do not, and neither do plain security transfers, whose value
        would otherwise inflate deposits by the book value moved.
        """
        if t.securities_transfer:
            return True
        return t.origin_type not in self.internal_transfer_codes and not t.symbol

    def _bucket(self, t: Transaction) -> DailyCashFlow:
        key = t.date.isoformat()
        flow = self._by_date.get(key)
        if flow is None:
            flow = DailyCashFlow(date=key)
            self._by_date[key] = flow
        return flow


def compute_cash_flow_by_date(
    transactions: Iterable[Transaction],
    internal_transfer_codes: Iterable[str] | None = None,
) -> dict[str, DailyCashFlow]:
    return CashFlowAggregator(internal_transfer_codes).fold(transactions)


def total_deposits(flows: Iterable[DailyCashFlow]) -> Decimal:
    return sum((f.deposit - f.withdrawal for f in flows), Decimal("0"))
