"""
Compute realized P&L, cash flows and money-weighted returns from an exported
account-aggregation feed and write them to an Excel workbook.

This module acts as the CLI orchestrator, delegating responsibilities to:
- Parsing/Model: folioledger.model
- Normalization: folioledger.reporting.extract, folioledger.reporting.normalize
- Cost basis: folioledger.reporting.ledger
- Cash flows and returns: folioledger.reporting.cashflow, .portfolio, .xirr
- Output writing: folioledger.reporting.report_builder, .report_sink

Usage
-----
    folioledger feed.json --output ./report.xlsx

    # Restrict realized P&L and cash flows to one year, override FX history
    folioledger feed.json \
        --from 2024-01-01 --to 2024-12-31 \
        --fx-table ./fx_rates.csv \
        --base-currency CAD

Forex CSV schema (rate = base units per 1 unit of currency):
    date,currency,rate
    2024-01-02,USD,1.3316
    2024-01-02,EUR,1.4601
"""

from __future__ import annotations

import argparse
import datetime as dt
import logging
from decimal import ROUND_HALF_UP, getcontext
from pathlib import Path

from folioledger.conv import parse_date
from folioledger.logging import configure_logging
from folioledger.model import FeedBundle, FeedJsonParser, ParseReport
from folioledger.reporting import (
    DEFAULT_BASE_CURRENCY,
    CurrencyTable,
    ExcelReportSink,
    ReportBuilder,
    build_timeline,
    compute_cash_flow_by_date,
    enrich_positions,
    normalize_records,
    parse_positions,
    parse_valuations,
    portfolio_xirr,
    run_ledger,
    select_account_transactions,
    select_security_transactions,
)

# Monetary precision and rounding
getcontext().prec = 28
getcontext().rounding = ROUND_HALF_UP


def load_inputs(args: argparse.Namespace) -> tuple[FeedBundle, ParseReport, CurrencyTable]:
    """Read the feed and FX history; raises ValueError/OSError on unusable input."""
    bundle, report = FeedJsonParser().parse_file(args.input)

    base = args.base_currency or bundle.base_currency or DEFAULT_BASE_CURRENCY
    fx = CurrencyTable(base, bundle.currencies)
    if args.fx_table:
        fx = fx.merged(CurrencyTable.from_csv(args.fx_table, base).rates)
    return bundle, report, fx


def process_files(args: argparse.Namespace) -> Path:
    logger = logging.getLogger(__name__)

    logger.info("Reading feed %s", args.input)
    try:
        bundle, report, fx = load_inputs(args)
    except (OSError, ValueError) as exc:
        logger.error("Unable to load input: %s", exc)
        raise SystemExit(2) from exc

    transactions = normalize_records(bundle.transactions, fx, report=report)
    report.log_with(logger)

    security = select_security_transactions(transactions)
    account = select_account_transactions(transactions)
    logger.info(
        "Loaded %d transaction(s): %d security, %d account; base currency %s",
        len(transactions),
        len(security),
        len(account),
        fx.base_currency,
    )

    ledger = run_ledger(security, fx)
    flows = compute_cash_flow_by_date(transactions)
    timeline = build_timeline(parse_valuations(bundle.portfolio), flows)

    as_of: dt.date = args.as_of or (
        parse_date(timeline[-1].date) if timeline else dt.date.today()
    )
    positions = enrich_positions(
        parse_positions(bundle.positions), security, fx, as_of
    )

    rb = ReportBuilder(from_date=args.from_date, to_date=args.to_date)
    rb.add_closed_positions(ledger.closed_positions)
    rb.set_cash_flows(flows)
    rb.set_activity(transactions)
    rb.set_open_book(ledger.open_book())
    rb.set_positions(positions)
    rb.set_timeline(timeline)
    rb.set_portfolio_xirr(portfolio_xirr(flows, timeline))
    rb.set_events(ledger.events)

    logger.info(
        "Report built: %d realized position(s), %d open lot(s), %d cash-flow day(s)",
        len(rb.realized),
        len(rb.open_book),
        len(rb.cash_flows),
    )
    if ledger.events:
        logger.warning(
            "Ledger recorded %d data-quality event(s); see the Ledger Events sheet",
            len(ledger.events),
        )

    out_path = Path(args.output) if args.output else Path("folioledger_report.xlsx")
    sink = ExcelReportSink(out_path=out_path, base_currency=fx.base_currency)
    out_path = sink.write(rb)
    logger.info("Wrote workbook to %s", out_path)
    return out_path


def _iso_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from exc


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Cost-basis, realized P&L and XIRR report from a portfolio feed"
    )
    p.add_argument("input", type=str, help="Feed JSON export")
    p.add_argument(
        "--fx-table",
        type=str,
        default=None,
        help=(
            "Forex rates CSV 'date,currency,rate' where 'rate' is base-currency "
            "units per 1 unit of currency; rows override the feed's history"
        ),
    )
    p.add_argument(
        "--base-currency",
        type=str,
        default=None,
        help=f"Base currency (defaults to the feed's, then {DEFAULT_BASE_CURRENCY})",
    )
    p.add_argument(
        "--from",
        dest="from_date",
        type=_iso_date,
        default=None,
        help="First day of the report window (inclusive)",
    )
    p.add_argument(
        "--to",
        dest="to_date",
        type=_iso_date,
        default=None,
        help="Last day of the report window (inclusive)",
    )
    p.add_argument(
        "--as-of",
        dest="as_of",
        type=_iso_date,
        default=None,
        help="Valuation date for position XIRR (defaults to the last valuation day)",
    )
    p.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output filename (e.g., report.xlsx). If omitted, uses folioledger_report.xlsx",
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity: -v (INFO), -vv (DEBUG)",
    )
    return p


def main(argv: list[str] | None = None) -> None:
    parser = build_argparser()
    args = parser.parse_args(argv)

    # Configure logging based on verbosity
    verbosity_map = {
        0: logging.WARNING,  # Default: quiet
        1: logging.INFO,  # -v: informational
        2: logging.DEBUG,  # -vv and above: debug
    }
    level = verbosity_map.get(min(args.verbose, 2), logging.WARNING)
    configure_logging(level=level)

    process_files(args)


if __name__ == "__main__":
    main()
