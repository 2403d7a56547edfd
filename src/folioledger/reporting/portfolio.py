from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from folioledger.conv import date_key, parse_date, to_dec

from .domain import DailyCashFlow, Transaction, TransactionType
from .extract import DEFAULT_SECURITY_CURRENCY, security_symbol
from .fx import CurrencyTable
from .ledger import position_type
from .money import abs_decimal, safe_div
from .xirr import CashFlowEvent, XirrNonConvergent, XirrResult, rate_or_none, solve

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")

# share-moving types that can bring a holding back to zero
_SHARE_TYPES = {
    TransactionType.BUY,
    TransactionType.SELL,
    TransactionType.REINVEST,
    TransactionType.SPLIT,
}
_OUTFLOW_TYPES = {
    TransactionType.BUY,
    TransactionType.TAX,
    TransactionType.FEE,
    TransactionType.REINVEST,
}


@dataclass(frozen=True)
class PortfolioPoint:
    date: str
    value: Decimal
    deposits: Decimal  # net deposits to date


@dataclass
class PositionRecord:
    symbol: str
    currency: str
    quantity: Decimal
    market_value: Decimal
    book_value: Decimal | None = None
    gain_amount: Decimal | None = None
    gain_percent: Decimal | None = None
    xirr: float | None = None


def parse_valuations(raw: Mapping[str, Any]) -> dict[str, Decimal]:
    """Daily portfolio values keyed by YYYY-MM-DD; null entries are gaps, not zeros."""
    return {date_key(d): to_dec(v) for d, v in raw.items() if v is not None}


def parse_positions(records: Iterable[Mapping[str, Any]]) -> list[PositionRecord]:
    out: list[PositionRecord] = []
    for r in records:
        symbol = security_symbol(r)
        if not symbol:
            logger.warning("Position without a security symbol skipped: %r", r)
            continue
        security = r.get("security")
        currency = DEFAULT_SECURITY_CURRENCY
        if isinstance(security, Mapping) and security.get("currency"):
            currency = str(security["currency"]).strip().upper()
        book = r.get("book_value")
        out.append(
            PositionRecord(
                symbol=symbol,
                currency=currency,
                quantity=to_dec(r.get("quantity")),
                market_value=to_dec(r.get("market_value")),
                book_value=to_dec(book) if book else None,
            )
        )
    return out


def build_timeline(
    valuations: Mapping[str, Decimal], flows: Mapping[str, DailyCashFlow]
) -> list[PortfolioPoint]:
    """Pair every valuation day with the net deposits made up to that day."""
    flow_dates = sorted(flows)
    deposits = _ZERO
    i = 0
    points: list[PortfolioPoint] = []
    for d in sorted(valuations):
        while i < len(flow_dates) and flow_dates[i] <= d:
            flow = flows[flow_dates[i]]
            deposits += flow.deposit - flow.withdrawal
            i += 1
        points.append(PortfolioPoint(date=d, value=valuations[d], deposits=deposits))
    return points


def portfolio_xirr_events(
    flows: Mapping[str, DailyCashFlow], timeline: Sequence[PortfolioPoint]
) -> list[CashFlowEvent]:
    """Deposits as outflows, withdrawals as inflows, closing value as the last inflow."""
    events = [
        CashFlowEvent(when=parse_date(d), amount=flows[d].net_external)
        for d in sorted(flows)
        if flows[d].net_external != 0
    ]
    if timeline and timeline[-1].value:
        last = timeline[-1]
        events.append(CashFlowEvent(when=parse_date(last.date), amount=last.value))
    return events


def portfolio_xirr(
    flows: Mapping[str, DailyCashFlow], timeline: Sequence[PortfolioPoint]
) -> XirrResult:
    events = portfolio_xirr_events(flows, timeline)
    if not events:
        return XirrNonConvergent("no cash flows")
    result = solve(events)
    if isinstance(result, XirrNonConvergent):
        logger.warning(
            "Unable to compute portfolio XIRR (%s) from %d cash flow(s)",
            result.reason,
            len(events),
        )
    return result


def compute_book_value(
    transactions: Iterable[Transaction], currency: str, fx: CurrencyTable
) -> Decimal | None:
    """Average-cost book value of the shares still held, in the base currency.

    Sells reduce the share count at the running average price and leave it
    unchanged. Returns None when there is nothing to value.
    """
    price = _ZERO
    shares = _ZERO
    value = _ZERO
    seen = False
    for t in sorted(transactions, key=lambda t: t.date):
        kind = position_type(t)
        if kind is TransactionType.BUY:
            value += t.price * t.shares
            shares += t.shares
            price = safe_div(value, shares) or t.price
            seen = True
        elif kind is TransactionType.SELL:
            value += (price or t.price) * t.shares
            shares += t.shares
            seen = True
    if not seen:
        return None
    return shares * fx.convert(currency, price)


def position_cash_flows(
    transactions: Iterable[Transaction],
) -> list[CashFlowEvent]:
    """Per-security money flows since the holding last went to zero.

    A holding that returns to zero across all accounts starts a fresh history,
    unless the zero comes from shares moving between accounts.
    """
    book: dict[str, Decimal] = {}
    events: list[CashFlowEvent] = []
    for t in sorted(transactions, key=lambda t: t.date):
        kind = position_type(t)
        if kind in _SHARE_TYPES:
            book[t.account] = book.get(t.account, _ZERO) + t.shares
        if kind is TransactionType.SPLIT:
            # removal/addition legs pass through zero; never a reset
            continue
        if (
            kind in _SHARE_TYPES
            and sum(book.values(), _ZERO) == 0
            and t.type is not TransactionType.TRANSFER
            and "transfer" not in t.description.lower()
        ):
            events = []
            continue
        amount = abs_decimal(t.base_amount)
        events.append(
            CashFlowEvent(when=t.date, amount=-amount if kind in _OUTFLOW_TYPES else amount)
        )
    return events


def enrich_position(
    position: PositionRecord,
    transactions: Sequence[Transaction],
    fx: CurrencyTable,
    as_of: dt.date,
) -> PositionRecord:
    """Fill book value, gain and XIRR on a held position (in place)."""
    if position.book_value is None:
        position.book_value = compute_book_value(transactions, position.currency, fx)

    if position.book_value is not None:
        position.gain_amount = position.market_value - position.book_value
        position.gain_percent = safe_div(position.gain_amount, position.book_value)

    events = position_cash_flows(transactions)
    if events:
        events.append(CashFlowEvent(when=as_of, amount=position.market_value))
        result = solve(events)
        if isinstance(result, XirrNonConvergent):
            logger.warning(
                "Failed to compute the XIRR for %s (%s)", position.symbol, result.reason
            )
        position.xirr = rate_or_none(result)
    return position


def enrich_positions(
    positions: Iterable[PositionRecord],
    security_transactions: Iterable[Transaction],
    fx: CurrencyTable,
    as_of: dt.date,
) -> list[PositionRecord]:
    by_symbol: dict[str, list[Transaction]] = {}
    for t in security_transactions:
        by_symbol.setdefault(t.symbol or "", []).append(t)
    return [
        enrich_position(p, by_symbol.get(p.symbol, []), fx, as_of) for p in positions
    ]
