import datetime as dt
from decimal import Decimal

import pytest
from fixtures import record

from folioledger.model import ParseReport
from folioledger.reporting.domain import TransactionType
from folioledger.reporting.extract import (
    account_currency,
    is_securities_accounts_transfer,
    parse_split_ratio,
    parse_transaction,
    parse_transactions,
    select_account_transactions,
    select_security_transactions,
)
from folioledger.reporting.fx import CurrencyTable


@pytest.fixture
def fx():
    return CurrencyTable("CAD", {"USD": {"2024-01-02": "1.35"}})


def test_parse_buy_record(fx):
    t = parse_transaction(record(), fx)
    assert t.type is TransactionType.BUY
    assert t.date == dt.date(2024, 1, 2)
    assert t.symbol == "ABC"
    assert t.currency == "CAD"
    assert t.shares == Decimal("10")
    assert t.price == Decimal("10.000")
    assert t.base_amount == Decimal("-100")
    assert t.split_ratio is None


def test_usd_account_amount_converted_to_base(fx):
    t = parse_transaction(
        record(
            investment="tfsa:usd",
            security={"symbol": "XYZ", "currency": "USD"},
            quantity=3,
            currency_amount=-30,
        ),
        fx,
    )
    assert t.currency == "USD"
    assert t.base_amount == Decimal("-40.50")
    assert t.price == Decimal("10.000")


def test_cash_record_uses_account_currency(fx):
    t = parse_transaction(
        record(type="Deposit", security=None, quantity=None, currency_amount=500), fx
    )
    assert t.symbol is None
    assert t.type is TransactionType.DEPOSIT
    assert t.currency == "CAD"
    assert t.price == Decimal("0")


def test_unknown_type_and_missing_date_raise(fx):
    with pytest.raises(ValueError, match="Unrecognized transaction type"):
        parse_transaction(record(type="option-exercise"), fx)
    with pytest.raises(ValueError, match="missing its date"):
        parse_transaction(record(date=None), fx)


def test_parse_transactions_drops_and_reports(fx):
    report = ParseReport()
    out = parse_transactions(
        [
            record(id="keep"),
            record(id="gone", deleted=True),
            record(id="typeless", type=""),
            record(id="odd", type="swap"),
        ],
        fx,
        report=report,
    )
    assert [t.id for t in out] == ["keep"]
    assert len(report.issues) == 1
    assert report.issues[0].record_id == "odd"


def test_split_ratio_from_description(fx):
    assert parse_split_ratio("Stock split @2:1") == Decimal("0.5")
    assert parse_split_ratio("Stock split") is None
    assert parse_split_ratio("@0:1") is None
    t = parse_transaction(
        record(type="split", quantity=-100, currency_amount=0, description="split @2:1"),
        fx,
    )
    assert t.split_ratio == Decimal("0.5")


def test_account_currency_suffix():
    assert account_currency("rrsp:usd", "CAD") == "USD"
    assert account_currency("rrsp", "cad") == "CAD"


def test_securities_accounts_transfer_detection():
    assert is_securities_accounts_transfer(
        {"type": "transfer", "description": "[Accounts Transfer] ABC"}
    )
    assert is_securities_accounts_transfer(
        {"type": "transfer", "note": "moved via Accounts Transfer"}
    )
    assert not is_securities_accounts_transfer(
        {"type": "buy", "description": "[Accounts Transfer] ABC"}
    )
    assert not is_securities_accounts_transfer({"type": "transfer", "description": "EFT"})


def test_selection_splits_security_and_account_views(fx):
    txs = parse_transactions(
        [
            record(id="b2", date="2024-01-05"),
            record(id="b1", date="2024-01-02"),
            record(id="dep", type="deposit", security=None, currency_amount=100),
            record(id="int", type="interest", security=None, currency_amount=1),
            record(
                id="xfer",
                type="transfer",
                description="[Accounts Transfer] ABC",
                quantity=10,
                currency_amount=-100,
            ),
        ],
        fx,
    )
    security = select_security_transactions(txs)
    assert [t.id for t in security] == ["b1", "xfer", "b2"]
    account = select_account_transactions(txs)
    assert [t.id for t in account] == ["dep", "int", "xfer"]
