from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Mapping

RecordDict = dict[str, Any]


@dataclass
class FeedBundle:
    """
    In-memory representation of one export from the aggregation platform.

    transactions: raw transaction records, in arrival order
    currencies[currency][YYYY-MM-DD] -> base units per 1 unit of currency
    portfolio[YYYY-MM-DD] -> total portfolio value on that day
    positions: raw position records (security, quantity, market_value, ...)
    """

    base_currency: str | None = None
    transactions: list[RecordDict] = field(default_factory=list)
    currencies: dict[str, dict[str, Any]] = field(default_factory=dict)
    portfolio: dict[str, Any] = field(default_factory=dict)
    positions: list[RecordDict] = field(default_factory=list)


@dataclass(frozen=True)
class ParseIssue:
    index: int
    severity: Literal["warning", "error"]
    message: str
    record_id: str | None = None


@dataclass
class ParseReport:
    """Non-fatal diagnostics collected during parsing."""

    issues: list[ParseIssue] = field(default_factory=list)

    def warn(self, index: int, msg: str, record_id: str | None = None) -> None:
        self.issues.append(ParseIssue(index, "warning", msg, record_id))

    def error(self, index: int, msg: str, record_id: str | None = None) -> None:
        self.issues.append(ParseIssue(index, "error", msg, record_id))

    @property
    def has_errors(self) -> bool:
        return any(i.severity == "error" for i in self.issues)

    def extend(self, other: ParseReport) -> None:
        self.issues.extend(other.issues)

    def log_with(self, log: logging.Logger) -> None:
        for i in self.issues:
            prefix = "ERROR" if i.severity == "error" else "WARN"
            if i.record_id is not None:
                log.warning(
                    "%s: record %d (%s): %s", prefix, i.index, i.record_id, i.message
                )
            else:
                log.warning("%s: record %d: %s", prefix, i.index, i.message)


class FeedJsonParser:
    """
    Maps a JSON export -> FeedBundle (+ ParseReport).

    Accepted shape:
        {
          "base_currency": "cad",
          "transactions": [{...}, ...],
          "currencies": {"usd": {"2024-01-02": 1.35, ...}},
          "portfolio": {"2024-01-02": 10500.0, ...},
          "positions": [{...}, ...]
        }

    A bare JSON list is read as the transactions array. Entries that are not
    objects are reported and skipped; the top-level structure must be valid.
    """

    def parse_file(
        self, path: str | Path, *, encoding: str = "utf-8"
    ) -> tuple[FeedBundle, ParseReport]:
        with open(path, "r", encoding=encoding) as fp:
            try:
                payload = json.load(fp)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Feed {path} is not valid JSON: {exc}") from exc
        return self.parse_payload(payload)

    def parse_payload(self, payload: Any) -> tuple[FeedBundle, ParseReport]:
        report = ParseReport()

        if isinstance(payload, list):
            payload = {"transactions": payload}
        if not isinstance(payload, Mapping):
            raise ValueError(
                f"Feed must be a JSON object or array, got {type(payload).__name__}"
            )

        base = payload.get("base_currency")
        bundle = FeedBundle(
            base_currency=str(base).strip().upper() if base else None,
            transactions=_records(payload.get("transactions"), "transaction", report),
            currencies=_currencies(payload.get("currencies"), report),
            portfolio=_mapping(payload.get("portfolio"), "portfolio", report),
            positions=_records(payload.get("positions"), "position", report),
        )
        return bundle, report


def _records(raw: Any, kind: str, report: ParseReport) -> list[RecordDict]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        report.warn(0, f"Expected a list of {kind}s; section skipped.")
        return []
    out: list[RecordDict] = []
    for idx, rec in enumerate(raw):
        if not isinstance(rec, Mapping):
            report.warn(idx, f"Malformed {kind} entry (not an object); skipped.")
            continue
        out.append(dict(rec))
    return out


def _mapping(raw: Any, kind: str, report: ParseReport) -> dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        report.warn(0, f"Expected an object for {kind}; section skipped.")
        return {}
    return {str(k): v for k, v in raw.items()}


def _currencies(raw: Any, report: ParseReport) -> dict[str, dict[str, Any]]:
    out: dict[str, dict[str, Any]] = {}
    for ccy, history in _mapping(raw, "currencies", report).items():
        if not isinstance(history, Mapping):
            report.warn(0, f"Currency history for {ccy!r} is not an object; skipped.")
            continue
        out[ccy.strip().upper()] = {str(d): v for d, v in history.items()}
    return out

