from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from folioledger.model import ParseReport

from .domain import Transaction
from .extract import parse_transactions
from .fx import CurrencyTable

logger = logging.getLogger(__name__)

MergeKey = tuple[str, str, str | None, str, str]


def merge_key(t: Transaction) -> MergeKey:
    return (t.date.isoformat(), t.type.value, t.symbol, t.currency, t.account)


def merge_pair(existing: Transaction, incoming: Transaction) -> Transaction:
    """Fold ``incoming`` into ``existing`` (same day, type, symbol, currency, account).

    Shares and amounts add up. The price becomes the share-weighted average when
    both sides carry nonzero shares and price; otherwise the first price stands.
    """
    shares = existing.shares + incoming.shares
    price = existing.price
    if existing.price and existing.shares and incoming.price and incoming.shares:
        if shares:
            price = (
                existing.price * existing.shares + incoming.price * incoming.shares
            ) / shares
    return dataclasses.replace(
        existing,
        shares=shares,
        price=price,
        currency_amount=existing.currency_amount + incoming.currency_amount,
        base_amount=existing.base_amount + incoming.base_amount,
        fee=existing.fee + incoming.fee,
    )


def merge_same_day(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Collapse partial fills reported as several same-day records into one.

    Output keeps the arrival order of each group's first record.
    """
    merged: dict[MergeKey, Transaction] = {}
    collapsed = 0
    for t in transactions:
        key = merge_key(t)
        existing = merged.get(key)
        if existing is None:
            merged[key] = t
        else:
            merged[key] = merge_pair(existing, t)
            collapsed += 1
    if collapsed:
        logger.debug("Merged %d same-day partial transaction(s)", collapsed)
    return list(merged.values())


def normalize_records(
    records: Iterable[Mapping[str, Any]],
    fx: CurrencyTable,
    *,
    report: ParseReport | None = None,
    default_account_currency: str | None = None,
) -> list[Transaction]:
    """Raw feed records -> merged transactions, in arrival order."""
    transactions = parse_transactions(
        records,
        fx,
        report=report,
        default_account_currency=default_account_currency,
    )
    return merge_same_day(transactions)
