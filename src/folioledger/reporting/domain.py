from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class TransactionType(str, Enum):
    BUY = "buy"
    SELL = "sell"
    SPLIT = "split"
    REINVEST = "reinvest"
    DIVIDEND = "dividend"
    DISTRIBUTION = "distribution"
    INCOME = "income"
    INTEREST = "interest"
    FEE = "fee"
    TAX = "tax"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"


@dataclass(frozen=True)
class Transaction:
    """A normalized feed transaction.

    shares is signed (negative for sells / removals); price is per share in the
    security's currency; base_amount is currency_amount converted to the base
    currency at the transaction date.
    """

    id: str
    date: dt.date
    account: str
    symbol: str | None
    type: TransactionType
    currency: str
    shares: Decimal = Decimal("0")
    price: Decimal = Decimal("0")
    currency_amount: Decimal = Decimal("0")
    base_amount: Decimal = Decimal("0")
    description: str = ""
    fee: Decimal = Decimal("0")
    split_ratio: Decimal | None = None
    origin_type: str = ""
    securities_transfer: bool = False


@dataclass
class OpenLot:
    """Running (shares, average price) cell for one (account, symbol)."""

    account: str
    symbol: str
    currency: str
    shares: Decimal = Decimal("0")  # signed: > 0 long, < 0 short
    avg_price: Decimal | None = None  # undefined while flat
    open_date: dt.date | None = None
    transactions: list[Transaction] = field(default_factory=list)

    @property
    def is_flat(self) -> bool:
        return self.shares == 0


@dataclass(frozen=True)
class ClosedPosition:
    key: str  # id of the closing transaction
    date: dt.date
    account: str
    symbol: str
    currency: str
    closed_shares: Decimal
    buy_date: dt.date
    buy_price: Decimal
    sell_date: dt.date
    sell_price: Decimal
    buy_cost_base: Decimal
    sell_cost_base: Decimal
    realized_pnl: Decimal
    realized_pnl_ratio: Decimal | None  # percent; None when the buy cost is zero
    transactions: tuple[Transaction, ...] = ()


@dataclass
class DailyCashFlow:
    date: str
    deposit: Decimal = Decimal("0")
    withdrawal: Decimal = Decimal("0")
    income: Decimal = Decimal("0")
    interest: Decimal = Decimal("0")

    @property
    def net_external(self) -> Decimal:
        """Withdrawals minus deposits: the investor's view of the day's flow."""
        return self.withdrawal - self.deposit


@dataclass
class LedgerEvent:
    account: str
    symbol: str
    date: dt.date
    kind: str
    message: str
