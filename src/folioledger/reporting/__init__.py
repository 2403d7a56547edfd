from .cashflow import CashFlowAggregator, compute_cash_flow_by_date, total_deposits
from .domain import (
    ClosedPosition,
    DailyCashFlow,
    LedgerEvent,
    OpenLot,
    Transaction,
    TransactionType,
)
from .events import EventRecorder
from .extract import (
    parse_transaction,
    parse_transactions,
    select_account_transactions,
    select_security_transactions,
)
from .fx import DEFAULT_BASE_CURRENCY, CurrencyTable
from .ledger import OpenBookRow, PositionLedger, realized_positions, run_ledger
from .normalize import merge_same_day, normalize_records
from .portfolio import (
    PortfolioPoint,
    PositionRecord,
    build_timeline,
    enrich_positions,
    parse_positions,
    parse_valuations,
    portfolio_xirr,
)
from .report_builder import ReportBuilder
from .report_sink import ExcelReportSink, ReportSink
from .xirr import CashFlowEvent, XirrNonConvergent, XirrRate, solve

__all__ = [
    "CashFlowAggregator",
    "compute_cash_flow_by_date",
    "total_deposits",
    "ClosedPosition",
    "DailyCashFlow",
    "LedgerEvent",
    "OpenLot",
    "Transaction",
    "TransactionType",
    "EventRecorder",
    "parse_transaction",
    "parse_transactions",
    "select_account_transactions",
    "select_security_transactions",
    "DEFAULT_BASE_CURRENCY",
    "CurrencyTable",
    "OpenBookRow",
    "PositionLedger",
    "realized_positions",
    "run_ledger",
    "merge_same_day",
    "normalize_records",
    "PortfolioPoint",
    "PositionRecord",
    "build_timeline",
    "enrich_positions",
    "parse_positions",
    "parse_valuations",
    "portfolio_xirr",
    "ReportBuilder",
    "ExcelReportSink",
    "ReportSink",
    "CashFlowEvent",
    "XirrNonConvergent",
    "XirrRate",
    "solve",
]
