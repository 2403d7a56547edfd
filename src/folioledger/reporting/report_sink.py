from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Protocol

from openpyxl import Workbook
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from .domain import Transaction
from .report_builder import ReportBuilder

DATE_FMT = "YYYY-MM-DD"
QTY_FMT = "0.########"
MONEY_FMT = "#,##0.00"
PRICE_FMT = "#,##0.000"
PCT_FMT = "0.00%"


class ReportSink(Protocol):
    def write(self, report: ReportBuilder) -> Path:  # returns written file path
        ...


def _num(value: Decimal | float | None) -> float | None:
    return None if value is None else float(value)


def _format_row(ws: Worksheet, formats: dict[int, str]) -> None:
    r = ws.max_row
    for col, fmt in formats.items():
        ws.cell(row=r, column=col).number_format = fmt


@dataclass
class ExcelReportSink:
    out_path: Path
    base_currency: str = "CAD"

    def write(self, report: ReportBuilder) -> Path:
        out_path = Path(self.out_path)
        wb = Workbook()

        # Remove the default sheet
        wb.remove(wb.active)

        self._write_summary(wb.create_sheet(title="Summary"), report)
        self._write_realized(wb.create_sheet(title="Realized"), report)
        self._write_per_symbol(wb.create_sheet(title="Per Symbol"), report)
        self._write_cash_flows(wb.create_sheet(title="Cash Flows"), report)
        self._write_activity(
            wb.create_sheet(title="Income"), report.income_activity
        )
        self._write_activity(
            wb.create_sheet(title="Expenses"), report.expense_activity
        )
        self._write_open_book(wb.create_sheet(title="Open Book"), report)
        self._write_portfolio(wb.create_sheet(title="Portfolio"), report)
        if report.positions:
            self._write_positions(wb.create_sheet(title="Positions"), report)
        if report.events:
            self._write_events(wb.create_sheet(title="Ledger Events"), report)

        for ws in wb.worksheets:
            _autosize(ws)

        out_path.parent.mkdir(parents=True, exist_ok=True)
        wb.save(out_path)
        return out_path

    def _write_summary(self, ws: Worksheet, report: ReportBuilder) -> None:
        ccy = self.base_currency
        ws.append(["Metric", "Amount"])
        ws.append(["Window start", report.from_date])
        _format_row(ws, {2: DATE_FMT})
        ws.append(["Window end", report.to_date])
        _format_row(ws, {2: DATE_FMT})

        money_rows: list[tuple[str, Decimal]] = [
            (f"Total Realized P/L ({ccy})", report.total_realized),
            (f"Total Income ({ccy})", report.total_income),
            (f"Total Interest/Fees ({ccy})", report.total_expense),
            (f"Net Deposits ({ccy})", report.net_deposits),
        ]
        if report.timeline:
            money_rows.append(
                (f"Portfolio Value ({ccy})", report.timeline[-1].value)
            )
        for label, amount in money_rows:
            ws.append([label, float(amount)])
            _format_row(ws, {2: MONEY_FMT})

        # blank cell when the rate is unavailable
        ws.append(["Portfolio XIRR", report.xirr_rate])
        _format_row(ws, {2: PCT_FMT})

    def _write_realized(self, ws: Worksheet, report: ReportBuilder) -> None:
        ws.append(
            [
                "Date",
                "Account",
                "Symbol",
                "Currency",
                "Closed Shares",
                "Buy Date",
                "Buy Price",
                "Sell Date",
                "Sell Price",
                f"Buy Cost ({self.base_currency})",
                f"Sell Cost ({self.base_currency})",
                f"Realized P/L ({self.base_currency})",
                "Realized P/L (%)",
            ]
        )
        for cp in report.realized:
            ratio = cp.realized_pnl_ratio
            ws.append(
                [
                    cp.date,
                    cp.account,
                    cp.symbol,
                    cp.currency,
                    float(cp.closed_shares),
                    cp.buy_date,
                    float(cp.buy_price),
                    cp.sell_date,
                    float(cp.sell_price),
                    float(cp.buy_cost_base),
                    float(cp.sell_cost_base),
                    float(cp.realized_pnl),
                    None if ratio is None else float(ratio) / 100.0,
                ]
            )
            _format_row(
                ws,
                {
                    1: DATE_FMT,
                    5: QTY_FMT,
                    6: DATE_FMT,
                    7: PRICE_FMT,
                    8: DATE_FMT,
                    9: PRICE_FMT,
                    10: MONEY_FMT,
                    11: MONEY_FMT,
                    12: MONEY_FMT,
                    13: PCT_FMT,
                },
            )

    def _write_per_symbol(self, ws: Worksheet, report: ReportBuilder) -> None:
        ws.append(
            ["Symbol", "Closed Shares", "Realized P/L", "Buy Cost", "Sell Cost"]
        )
        for symbol, totals in sorted(report.symbol_totals.items()):
            ws.append(
                [
                    symbol,
                    float(totals.get("closed_shares", Decimal("0"))),
                    float(totals.get("realized", Decimal("0"))),
                    float(totals.get("buy_cost", Decimal("0"))),
                    float(totals.get("sell_cost", Decimal("0"))),
                ]
            )
            _format_row(ws, {2: QTY_FMT, 3: MONEY_FMT, 4: MONEY_FMT, 5: MONEY_FMT})

    def _write_cash_flows(self, ws: Worksheet, report: ReportBuilder) -> None:
        ws.append(["Date", "Deposit", "Withdrawal", "Income", "Interest/Fees"])
        for d, flow in report.cash_flows.items():
            ws.append(
                [
                    d,
                    float(flow.deposit),
                    float(flow.withdrawal),
                    float(flow.income),
                    float(flow.interest),
                ]
            )
            _format_row(ws, {c: MONEY_FMT for c in range(2, 6)})

    def _write_activity(self, ws: Worksheet, rows: list[Transaction]) -> None:
        ws.append(
            [
                "Date",
                "Account",
                "Symbol",
                "Type",
                "Description",
                "Currency Amount",
                f"Amount ({self.base_currency})",
            ]
        )
        for t in rows:
            ws.append(
                [
                    t.date,
                    t.account,
                    t.symbol,
                    t.type.value,
                    t.description,
                    float(t.currency_amount),
                    float(t.base_amount),
                ]
            )
            _format_row(ws, {1: DATE_FMT, 6: MONEY_FMT, 7: MONEY_FMT})

    def _write_open_book(self, ws: Worksheet, report: ReportBuilder) -> None:
        ws.append(
            ["Account", "Symbol", "Currency", "Shares", "Avg Price", "Amount", "Open Date"]
        )
        for row in report.open_book:
            ws.append(
                [
                    row.account,
                    row.symbol,
                    row.currency,
                    float(row.shares),
                    _num(row.avg_price),
                    _num(row.amount),
                    row.open_date,
                ]
            )
            _format_row(ws, {4: QTY_FMT, 5: PRICE_FMT, 6: MONEY_FMT, 7: DATE_FMT})

    def _write_portfolio(self, ws: Worksheet, report: ReportBuilder) -> None:
        ws.append(["Date", "Value", "Net Deposits"])
        for p in report.timeline:
            ws.append([p.date, float(p.value), float(p.deposits)])
            _format_row(ws, {2: MONEY_FMT, 3: MONEY_FMT})

    def _write_positions(self, ws: Worksheet, report: ReportBuilder) -> None:
        ws.append(
            [
                "Symbol",
                "Currency",
                "Quantity",
                "Market Value",
                "Book Value",
                "Gain",
                "Gain (%)",
                "XIRR",
            ]
        )
        for p in report.positions:
            ws.append(
                [
                    p.symbol,
                    p.currency,
                    float(p.quantity),
                    float(p.market_value),
                    _num(p.book_value),
                    _num(p.gain_amount),
                    _num(p.gain_percent),
                    p.xirr,
                ]
            )
            _format_row(
                ws,
                {3: QTY_FMT, 4: MONEY_FMT, 5: MONEY_FMT, 6: MONEY_FMT, 7: PCT_FMT, 8: PCT_FMT},
            )

    def _write_events(self, ws: Worksheet, report: ReportBuilder) -> None:
        ws.append(["Date", "Account", "Symbol", "Kind", "Message"])
        for e in report.events:
            ws.append([e.date, e.account, e.symbol, e.kind, e.message])
            _format_row(ws, {1: DATE_FMT})


def _autosize(sheet: Worksheet, max_width: int = 60, min_width: int = 10) -> None:
    for col in range(1, sheet.max_column + 1):
        max_len = 0
        for row in range(1, sheet.max_row + 1):
            v: Any = sheet.cell(row=row, column=col).value
            if v is None:
                continue
            s = v.strftime("%Y-%m-%d") if hasattr(v, "strftime") else str(v)
            max_len = max(max_len, len(s))
        width = min(max_width, max(min_width, max_len + 2))
        sheet.column_dimensions[get_column_letter(col)].width = width
