from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from folioledger.conv import parse_date, to_dec
from folioledger.model import ParseReport

from .domain import Transaction, TransactionType
from .fx import CurrencyTable
from .money import abs_decimal, quantize_price, safe_div

logger = logging.getLogger(__name__)

DEFAULT_SECURITY_CURRENCY = "USD"

ACCOUNTS_TRANSFER_PREFIX = "[Accounts Transfer]"
ACCOUNTS_TRANSFER_NOTE = "Accounts Transfer"

SECURITY_TYPES = {
    TransactionType.BUY,
    TransactionType.SELL,
    TransactionType.INCOME,
    TransactionType.DIVIDEND,
    TransactionType.DISTRIBUTION,
    TransactionType.TAX,
    TransactionType.FEE,
    TransactionType.SPLIT,
    TransactionType.REINVEST,
}

ACCOUNT_TYPES = {
    TransactionType.INCOME,
    TransactionType.INTEREST,
    TransactionType.DEPOSIT,
    TransactionType.WITHDRAWAL,
    TransactionType.TRANSFER,
    TransactionType.FEE,
}

_SPLIT_RE = re.compile(r"@([0-9]+):([0-9]+)")
_ACCOUNT_CCY_RE = re.compile(r":([A-Za-z]{3})$")


def account_currency(account: str, default: str) -> str:
    """Cash currency of an account, from an id suffix like ``...:usd``."""
    m = _ACCOUNT_CCY_RE.search(account or "")
    return m.group(1).upper() if m else default.upper()


def is_securities_accounts_transfer(record: Mapping[str, Any]) -> bool:
    """Security moves between two of the user's accounts are tagged by hand.

    The tag lives either at the start of the description or in the note.
    """
    rtype = str(record.get("type") or "").lower()
    if rtype != "transfer":
        return False
    description = record.get("description") or ""
    note = record.get("note") or ""
    return description.startswith(ACCOUNTS_TRANSFER_PREFIX) or (
        ACCOUNTS_TRANSFER_NOTE in note
    )


def parse_split_ratio(description: str | None) -> Decimal | None:
    """Old-per-new share ratio from a ``@A:B`` marker (``B / A``)."""
    if not description or "@" not in description:
        return None
    m = _SPLIT_RE.search(description)
    if not m:
        return None
    old, new = Decimal(m.group(1)), Decimal(m.group(2))
    return safe_div(new, old) or None


def security_symbol(record: Mapping[str, Any]) -> str | None:
    security = record.get("security")
    if isinstance(security, Mapping):
        sym = security.get("symbol") or security.get("name")
        if sym:
            return str(sym).strip()
    sym = record.get("symbol")
    return str(sym).strip() if sym else None


def _security_currency(record: Mapping[str, Any]) -> str:
    security = record.get("security")
    if isinstance(security, Mapping) and security.get("currency"):
        return str(security["currency"]).strip().upper()
    return DEFAULT_SECURITY_CURRENCY


def parse_transaction(
    record: Mapping[str, Any],
    fx: CurrencyTable,
    *,
    default_account_currency: str | None = None,
) -> Transaction:
    """Map one raw feed record onto a Transaction.

    Raises ValueError when the record has no usable type or date.
    """
    rtype = str(record.get("type") or "").strip().lower()
    try:
        ttype = TransactionType(rtype)
    except ValueError as exc:
        raise ValueError(f"Unrecognized transaction type {rtype!r}") from exc

    date_s = record.get("date")
    if not date_s:
        raise ValueError("Transaction is missing its date")
    date = parse_date(date_s)

    account = str(record.get("investment") or record.get("account") or "")
    cash_ccy = account_currency(account, default_account_currency or fx.base_currency)
    currency_amount = to_dec(record.get("currency_amount"))
    shares = to_dec(record.get("quantity"))

    price = Decimal("0")
    if currency_amount and shares:
        price = quantize_price(abs_decimal(currency_amount / shares))

    description = str(record.get("description") or "")
    symbol = security_symbol(record)

    return Transaction(
        id=str(record.get("id") or ""),
        date=date,
        account=account,
        symbol=symbol,
        type=ttype,
        currency=_security_currency(record) if symbol else cash_ccy,
        shares=shares,
        price=price,
        currency_amount=currency_amount,
        base_amount=fx.convert(cash_ccy, currency_amount, date),
        description=description,
        fee=to_dec(record.get("fee")),
        split_ratio=(
            parse_split_ratio(description) if ttype is TransactionType.SPLIT else None
        ),
        origin_type=str(record.get("origin_type") or ""),
        securities_transfer=is_securities_accounts_transfer(record),
    )


def parse_transactions(
    records: Iterable[Mapping[str, Any]],
    fx: CurrencyTable,
    *,
    report: ParseReport | None = None,
    default_account_currency: str | None = None,
) -> list[Transaction]:
    """Parse every live, typed record; arrival order is preserved.

    Soft-deleted and typeless records are dropped silently. Records with an
    unknown type or no date are reported and skipped.
    """
    report = report if report is not None else ParseReport()
    out: list[Transaction] = []
    for idx, record in enumerate(records):
        if record.get("deleted") or not record.get("type"):
            continue
        try:
            out.append(
                parse_transaction(
                    record, fx, default_account_currency=default_account_currency
                )
            )
        except ValueError as exc:
            report.warn(idx, f"{exc}; record skipped.", record_id=record.get("id"))
    return out


def select_security_transactions(
    transactions: Iterable[Transaction],
) -> list[Transaction]:
    """Transactions against a security, sorted by date (feed order within a day)."""
    out = [
        t
        for t in transactions
        if t.symbol and (t.type in SECURITY_TYPES or t.securities_transfer)
    ]
    out.sort(key=lambda t: t.date)
    return out


def select_account_transactions(
    transactions: Iterable[Transaction],
) -> list[Transaction]:
    """Cash-level transactions: no security reference, or a securities transfer."""
    return [
        t
        for t in transactions
        if (not t.symbol and t.type in ACCOUNT_TYPES) or t.securities_transfer
    ]
