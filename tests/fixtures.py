"""Test fixtures for transactions and raw feed records.

Production code builds Transaction objects from feed dicts via extract.py and
never constructs them by hand. Ledger and cash-flow tests need small, explicit
transactions without the extraction machinery; these helpers provide them.
"""

from __future__ import annotations

import datetime as dt
import itertools
from decimal import Decimal
from typing import Any

from folioledger.reporting.domain import Transaction, TransactionType

_ids = itertools.count(1)


def tx(
    kind: TransactionType | str,
    shares: str | Decimal = "0",
    price: str | Decimal = "0",
    *,
    date: dt.date = dt.date(2024, 1, 2),
    symbol: str | None = "ABC",
    account: str = "acct-1",
    currency: str = "CAD",
    base_amount: str | Decimal | None = None,
    description: str = "",
    split_ratio: str | Decimal | None = None,
    origin_type: str = "",
    securities_transfer: bool = False,
) -> Transaction:
    """Build a Transaction; base_amount defaults to -shares * price (cash view)."""
    shares_d = Decimal(shares)
    price_d = Decimal(price)
    amount = (
        Decimal(base_amount) if base_amount is not None else -(shares_d * price_d)
    )
    return Transaction(
        id=f"t{next(_ids)}",
        date=date,
        account=account,
        symbol=symbol,
        type=TransactionType(kind),
        currency=currency,
        shares=shares_d,
        price=price_d,
        currency_amount=amount,
        base_amount=amount,
        description=description,
        split_ratio=None if split_ratio is None else Decimal(split_ratio),
        origin_type=origin_type,
        securities_transfer=securities_transfer,
    )


def cash(
    kind: TransactionType | str,
    amount: str | Decimal,
    *,
    date: dt.date = dt.date(2024, 1, 2),
    **kwargs: Any,
) -> Transaction:
    """Account-level transaction with no security attached."""
    return tx(kind, date=date, symbol=None, base_amount=amount, **kwargs)


def record(**overrides: Any) -> dict[str, Any]:
    """Raw feed record as exported by the aggregation platform."""
    base: dict[str, Any] = {
        "id": "r1",
        "date": "2024-01-02T00:00:00.000Z",
        "type": "buy",
        "investment": "acct-1",
        "security": {"symbol": "ABC", "currency": "CAD", "type": "Stock"},
        "quantity": 10,
        "currency_amount": -100,
        "fee": 0,
        "description": "",
        "note": "",
        "origin_type": "",
        "deleted": False,
    }
    base.update(overrides)
    return base
