from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, assert_never

from .domain import ClosedPosition, LedgerEvent, OpenLot, Transaction, TransactionType
from .events import EventRecorder
from .fx import CurrencyTable
from .money import floor_shares, quantize_money, quantize_shares, safe_div
from .positions import LotBook

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def position_type(t: Transaction) -> Optional[TransactionType]:
    """Type as seen by the ledger.

    Securities transfers between accounts act as a buy when the base amount is
    negative and a sell when it is positive; a zero amount gives no direction.
    """
    if t.type is not TransactionType.TRANSFER or not t.securities_transfer:
        return t.type
    if t.base_amount < 0:
        return TransactionType.BUY
    if t.base_amount > 0:
        return TransactionType.SELL
    return None


@dataclass(frozen=True)
class OpenBookRow:
    account: str
    symbol: str
    currency: str
    shares: Decimal
    avg_price: Decimal | None
    open_date: dt.date | None

    @property
    def amount(self) -> Decimal | None:
        if self.avg_price is None:
            return None
        return self.avg_price * self.shares


class PositionLedger:
    """Average-cost ledger that turns buy/sell legs into ClosedPosition records.

    Each (account, symbol) cell is flat, long or short. A buy against a short
    (or a sell against a long) closes min(|open|, |incoming|) shares; anything
    else opens or extends the cell at a share-weighted average price.
    Transactions must be ingested in date order; ``process`` sorts for you.
    """

    def __init__(
        self,
        fx: CurrencyTable,
        *,
        positions: Optional[LotBook] = None,
        recorder: Optional[EventRecorder] = None,
    ) -> None:
        self.fx = fx
        self.positions = positions or LotBook()
        self.recorder = recorder or EventRecorder()
        self.closed_positions: list[ClosedPosition] = []

    @property
    def events(self) -> list[LedgerEvent]:
        return self.recorder.events

    def process(self, transactions: Iterable[Transaction]) -> list[ClosedPosition]:
        """Ingest transactions in date order (feed order within a day)."""
        emitted: list[ClosedPosition] = []
        for t in sorted(transactions, key=lambda t: t.date):
            closed = self.ingest(t)
            if closed is not None:
                emitted.append(closed)
        return emitted

    def ingest(self, t: Transaction) -> Optional[ClosedPosition]:
        if not t.symbol:
            return None

        kind = position_type(t)
        if kind is None:
            self._record(
                t,
                "zero_amount_transfer",
                "Securities transfer with zero amount; direction unknown, skipped.",
            )
            return None
        if (kind is TransactionType.BUY or kind is TransactionType.SELL) and not t.shares:
            self._record(t, "zero_share_trade", "Buy/sell carries no shares; skipped.")
            return None

        lot = self.positions.lot_for(t)
        if kind is TransactionType.BUY:
            if lot.shares < 0:
                return self._close(lot, t, kind)
            self._open(lot, t, t.price)
        elif kind is TransactionType.SELL:
            if lot.shares > 0:
                return self._close(lot, t, kind)
            self._open(lot, t, t.price)
        elif kind is TransactionType.SPLIT:
            self._split(lot, t)
        elif kind is TransactionType.REINVEST or kind is TransactionType.DISTRIBUTION:
            # cash side was already counted as income; the shares come in at no cost
            if t.shares > 0:
                self._open(lot, t, _ZERO)
        elif (
            kind is TransactionType.DIVIDEND
            or kind is TransactionType.INCOME
            or kind is TransactionType.INTEREST
            or kind is TransactionType.FEE
            or kind is TransactionType.TAX
            or kind is TransactionType.DEPOSIT
            or kind is TransactionType.WITHDRAWAL
            or kind is TransactionType.TRANSFER
        ):
            pass
        else:
            assert_never(kind)
        return None

    def _open(self, lot: OpenLot, t: Transaction, price: Decimal) -> None:
        shares = lot.shares + t.shares
        if lot.is_flat:
            lot.open_date = t.date
        held_cost = (lot.avg_price or _ZERO) * lot.shares
        lot.avg_price = safe_div(held_cost + price * t.shares, shares)
        lot.shares = shares
        lot.transactions.append(t)
        if lot.is_flat:
            self._reset(lot)

    def _close(
        self, lot: OpenLot, t: Transaction, kind: TransactionType
    ) -> ClosedPosition:
        lot.transactions.append(t)

        closed_shares = min(abs(lot.shares), abs(t.shares))
        held_price = lot.avg_price if lot.avg_price is not None else _ZERO
        held_date = lot.open_date or t.date
        if kind is TransactionType.BUY:
            buy_price, buy_date = t.price, t.date
            sell_price, sell_date = held_price, held_date
        else:
            buy_price, buy_date = held_price, held_date
            sell_price, sell_date = t.price, t.date

        buy_cost = self.fx.convert(t.currency, closed_shares * buy_price, buy_date)
        sell_cost = self.fx.convert(t.currency, closed_shares * sell_price, sell_date)
        pnl = sell_cost - buy_cost
        ratio = safe_div(pnl, buy_cost)

        closed = ClosedPosition(
            key=t.id,
            date=t.date,
            account=t.account,
            symbol=lot.symbol,
            currency=t.currency,
            closed_shares=closed_shares,
            buy_date=buy_date,
            buy_price=buy_price,
            sell_date=sell_date,
            sell_price=sell_price,
            buy_cost_base=buy_cost,
            sell_cost_base=sell_cost,
            realized_pnl=pnl,
            realized_pnl_ratio=None if ratio is None else ratio * _HUNDRED,
            transactions=tuple(lot.transactions),
        )

        remaining = quantize_shares(lot.shares + t.shares)
        lot.shares = remaining
        if remaining > 0:
            lot.avg_price, lot.open_date = buy_price, buy_date
        elif remaining < 0:
            lot.avg_price, lot.open_date = sell_price, sell_date
        else:
            self._reset(lot)

        self.closed_positions.append(closed)
        return closed

    def _split(self, lot: OpenLot, t: Transaction) -> None:
        # splits arrive as a removal/addition pair; only the removal leg applies
        if t.shares >= 0:
            return
        ratio = t.split_ratio
        if not ratio:
            self._record(t, "split_without_ratio", "Split without a ratio; skipped.")
            return
        lot.shares = floor_shares(lot.shares / ratio)
        if lot.avg_price is not None:
            lot.avg_price = lot.avg_price * ratio
        lot.transactions.append(t)
        if lot.is_flat:
            self._reset(lot)

    @staticmethod
    def _reset(lot: OpenLot) -> None:
        lot.avg_price = None
        lot.open_date = None
        lot.transactions.clear()

    def _record(self, t: Transaction, kind: str, message: str) -> None:
        logger.info("%s %s on %s: %s", t.account, t.symbol, t.date, message)
        self.recorder.record(
            LedgerEvent(
                account=t.account,
                symbol=t.symbol or "",
                date=t.date,
                kind=kind,
                message=message,
            )
        )

    def open_book(self) -> list[OpenBookRow]:
        return [
            OpenBookRow(
                account=lot.account,
                symbol=lot.symbol,
                currency=lot.currency,
                shares=lot.shares,
                avg_price=lot.avg_price,
                open_date=lot.open_date,
            )
            for lot in self.positions.open_lots()
        ]


def run_ledger(
    transactions: Iterable[Transaction], fx: CurrencyTable
) -> PositionLedger:
    """Rebuild a ledger from the full transaction history."""
    ledger = PositionLedger(fx)
    ledger.process(transactions)
    return ledger


def has_economic_gain(position: ClosedPosition) -> bool:
    """False for matches whose buy and sell prices agree to the cent (e.g. wash transfers)."""
    return quantize_money(position.buy_price) != quantize_money(position.sell_price)


def realized_positions(
    closed: Iterable[ClosedPosition],
    from_date: dt.date | None = None,
    to_date: dt.date | None = None,
) -> list[ClosedPosition]:
    """Closed positions worth reporting, newest first, within an inclusive window."""
    out = [
        p
        for p in closed
        if has_economic_gain(p)
        and (from_date is None or p.date >= from_date)
        and (to_date is None or p.date <= to_date)
    ]
    out.reverse()
    return out
