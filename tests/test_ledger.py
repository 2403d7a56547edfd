import datetime as dt
from decimal import Decimal

from fixtures import tx

from folioledger.reporting.events import EventRecorder
from folioledger.reporting.fx import CurrencyTable
from folioledger.reporting.ledger import (
    PositionLedger,
    has_economic_gain,
    position_type,
    realized_positions,
    run_ledger,
)
from folioledger.reporting.domain import TransactionType
from folioledger.reporting.positions import LotBook

D1 = dt.date(2024, 1, 2)
D2 = dt.date(2024, 2, 1)
D3 = dt.date(2024, 3, 1)


def _fx():
    return CurrencyTable("CAD", {"USD": {"2024-01-02": "1.30", "2024-02-01": "1.40"}})


def test_full_close_sums_closed_shares():
    txs = [
        tx("buy", "10", "10", date=D1),
        tx("buy", "5", "12", date=D1),
        tx("sell", "-8", "15", date=D2),
        tx("sell", "-7", "9", date=D3),
    ]
    ledger = run_ledger(txs, _fx())
    closed = ledger.closed_positions
    assert sum(cp.closed_shares for cp in closed) == Decimal("15")
    assert ledger.positions.get("acct-1", "ABC").is_flat
    assert ledger.open_book() == []


def test_sell_against_long_realizes_average_cost_gain():
    ledger = run_ledger(
        [tx("buy", "10", "10", date=D1), tx("sell", "-10", "12", date=D2)], _fx()
    )
    (cp,) = ledger.closed_positions
    assert cp.buy_date == D1 and cp.sell_date == D2
    assert cp.buy_cost_base == Decimal("100")
    assert cp.sell_cost_base == Decimal("120")
    assert cp.realized_pnl == Decimal("20")
    assert cp.realized_pnl_ratio == Decimal("20")
    assert cp.date == D2
    assert len(cp.transactions) == 2


def test_costs_convert_at_each_leg_date():
    ledger = run_ledger(
        [
            tx("buy", "10", "10", date=D1, currency="USD"),
            tx("sell", "-10", "10", date=D2, currency="USD"),
        ],
        _fx(),
    )
    (cp,) = ledger.closed_positions
    assert cp.buy_cost_base == Decimal("130.00")
    assert cp.sell_cost_base == Decimal("140.00")
    assert cp.realized_pnl == Decimal("10.00")


def test_same_price_round_trip_is_filtered():
    ledger = run_ledger(
        [tx("buy", "10", "25", date=D1), tx("sell", "-10", "25", date=D1)], _fx()
    )
    (cp,) = ledger.closed_positions
    assert cp.realized_pnl == 0
    assert not has_economic_gain(cp)
    assert realized_positions(ledger.closed_positions) == []


def test_prices_equal_to_the_cent_count_as_no_gain():
    ledger = run_ledger(
        [tx("buy", "10", "25.001", date=D1), tx("sell", "-10", "24.998", date=D2)],
        _fx(),
    )
    assert realized_positions(ledger.closed_positions) == []


def test_two_for_one_split_doubles_shares_halves_price():
    ledger = run_ledger(
        [
            tx("buy", "100", "10", date=D1),
            tx("split", "-100", date=D2, split_ratio="0.5", base_amount="0"),
            tx("split", "200", date=D2, split_ratio="0.5", base_amount="0"),
        ],
        _fx(),
    )
    lot = ledger.positions.get("acct-1", "ABC")
    assert lot.shares == Decimal("200")
    assert lot.avg_price == Decimal("5.0")
    assert ledger.closed_positions == []


def test_split_without_ratio_is_recorded():
    recorder = EventRecorder()
    ledger = PositionLedger(_fx(), recorder=recorder)
    ledger.process([tx("buy", "10", "10", date=D1), tx("split", "-10", date=D2)])
    assert [e.kind for e in recorder.events] == ["split_without_ratio"]
    assert ledger.positions.get("acct-1", "ABC").shares == Decimal("10")


def test_short_then_flip_long_resets_price_and_date():
    ledger = run_ledger(
        [tx("sell", "-5", "10", date=D1), tx("buy", "8", "8", date=D2)], _fx()
    )
    (cp,) = ledger.closed_positions
    assert cp.closed_shares == Decimal("5")
    assert cp.buy_price == Decimal("8") and cp.sell_price == Decimal("10")
    assert cp.realized_pnl == Decimal("10")

    lot = ledger.positions.get("acct-1", "ABC")
    assert lot.shares == Decimal("3")
    assert lot.avg_price == Decimal("8")
    assert lot.open_date == D2


def test_partial_close_keeps_open_average():
    ledger = run_ledger(
        [tx("buy", "10", "10", date=D1), tx("sell", "-4", "12", date=D2)], _fx()
    )
    lot = ledger.positions.get("acct-1", "ABC")
    assert lot.shares == Decimal("6")
    assert lot.avg_price == Decimal("10")
    assert lot.open_date == D1
    (row,) = ledger.open_book()
    assert row.amount == Decimal("60")


def test_reinvest_opens_at_zero_cost():
    ledger = run_ledger(
        [tx("buy", "10", "10", date=D1), tx("reinvest", "10", "5", date=D2)], _fx()
    )
    lot = ledger.positions.get("acct-1", "ABC")
    assert lot.shares == Decimal("20")
    assert lot.avg_price == Decimal("5")


def test_dividend_does_not_move_the_lot():
    ledger = run_ledger(
        [tx("buy", "10", "10", date=D1), tx("dividend", "0", base_amount="3", date=D2)],
        _fx(),
    )
    assert ledger.positions.get("acct-1", "ABC").shares == Decimal("10")


def test_securities_transfer_moves_lot_between_accounts():
    ledger = run_ledger(
        [
            tx("buy", "10", "10", date=D1, account="cash"),
            tx(
                "transfer",
                "-10",
                "10",
                date=D2,
                account="cash",
                base_amount="100",
                securities_transfer=True,
            ),
            tx(
                "transfer",
                "10",
                "10",
                date=D2,
                account="tfsa",
                base_amount="-100",
                securities_transfer=True,
            ),
        ],
        _fx(),
    )
    assert ledger.positions.get("cash", "ABC").is_flat
    assert ledger.positions.get("tfsa", "ABC").shares == Decimal("10")
    # wash match at the same price; nothing to report
    assert len(ledger.closed_positions) == 1
    assert realized_positions(ledger.closed_positions) == []


def test_position_type_for_transfers():
    assert position_type(tx("buy", "1", "1")) is TransactionType.BUY
    assert (
        position_type(tx("transfer", "1", base_amount="-5", securities_transfer=True))
        is TransactionType.BUY
    )
    assert (
        position_type(tx("transfer", "-1", base_amount="5", securities_transfer=True))
        is TransactionType.SELL
    )
    assert position_type(tx("transfer", base_amount="5")) is TransactionType.TRANSFER


def test_zero_amount_transfer_is_skipped_and_recorded():
    ledger = run_ledger(
        [tx("transfer", "10", "0", base_amount="0", securities_transfer=True)], _fx()
    )
    assert len(ledger.positions) == 0
    assert [e.kind for e in ledger.events] == ["zero_amount_transfer"]


def test_zero_share_buy_is_recorded():
    ledger = run_ledger([tx("buy", "0", "10", base_amount="-5")], _fx())
    assert [e.kind for e in ledger.events] == ["zero_share_trade"]
    assert len(ledger.positions) == 0


def test_zero_share_sell_against_long_does_not_close():
    ledger = run_ledger(
        [
            tx("buy", "10", "10", date=D1),
            tx("sell", "0", "0", date=D2, base_amount="15"),
        ],
        _fx(),
    )
    assert ledger.closed_positions == []
    assert realized_positions(ledger.closed_positions) == []
    assert [e.kind for e in ledger.events] == ["zero_share_trade"]
    lot = ledger.positions.get("acct-1", "ABC")
    assert lot.shares == Decimal("10")
    assert lot.avg_price == Decimal("10")


def test_zero_share_buy_against_short_does_not_close():
    ledger = run_ledger(
        [tx("sell", "-5", "10", date=D1), tx("buy", "0", "0", date=D2)], _fx()
    )
    assert ledger.closed_positions == []
    assert ledger.positions.get("acct-1", "ABC").shares == Decimal("-5")


def test_ledger_uses_injected_lot_book():
    book = LotBook()
    ledger = PositionLedger(_fx(), positions=book)
    ledger.ingest(tx("buy", "3", "10"))
    assert book.get("acct-1", "ABC").shares == Decimal("3")


def test_rerun_is_deterministic():
    txs = [
        tx("buy", "10", "10", date=D1),
        tx("sell", "-4", "12", date=D2),
        tx("sell", "-10", "11", date=D3),
        tx("buy", "4", "9", date=D3, account="other"),
    ]
    first = run_ledger(txs, _fx()).closed_positions
    second = run_ledger(list(reversed(txs[:3])) + txs[3:], _fx()).closed_positions
    assert first == run_ledger(txs, _fx()).closed_positions
    assert [cp.realized_pnl for cp in first] == [cp.realized_pnl for cp in second]


def test_realized_positions_window_and_order():
    ledger = run_ledger(
        [
            tx("buy", "10", "10", date=D1),
            tx("sell", "-5", "12", date=D2),
            tx("sell", "-5", "14", date=D3),
        ],
        _fx(),
    )
    assert [cp.date for cp in realized_positions(ledger.closed_positions)] == [D3, D2]
    assert [
        cp.date for cp in realized_positions(ledger.closed_positions, from_date=D3)
    ] == [D3]
    assert [
        cp.date for cp in realized_positions(ledger.closed_positions, to_date=D2)
    ] == [D2]
