from __future__ import annotations

import csv
import datetime as dt
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Mapping

from folioledger.conv import date_key, to_dec, to_dec_strict

logger = logging.getLogger(__name__)

DEFAULT_BASE_CURRENCY = "CAD"

_ONE = Decimal("1")


@dataclass(frozen=True)
class _RateSnapshot:
    rates: dict[str, dict[str, Decimal]] = field(default_factory=dict)
    latest: dict[str, Decimal] = field(default_factory=dict)


class CurrencyTable:
    """Date-indexed FX table: (currency, date) -> base units per 1 unit of currency.

    Lookups never fail. A miss on the exact date falls back to the most recent
    rate known for that currency; a currency that was never loaded converts at
    1.0, which is only an approximation.

    The table is swapped wholesale by ``replace``; readers always see either the
    old or the new snapshot, never a partially built one.

    Accepted CSV schema:
      date,currency,rate    # rate = base units per 1 unit of currency
    """

    def __init__(
        self,
        base_currency: str = DEFAULT_BASE_CURRENCY,
        rates: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> None:
        self.base_currency = base_currency.strip().upper()
        self._snapshot = _RateSnapshot()
        if rates:
            self.replace(rates)

    @classmethod
    def from_csv(
        cls, path: str | Path, base_currency: str = DEFAULT_BASE_CURRENCY
    ) -> CurrencyTable:
        rates: dict[str, dict[str, Decimal]] = {}
        with open(path, encoding="utf-8", newline="") as fp:
            reader = csv.DictReader(fp)
            fields = set(reader.fieldnames or [])
            missing = {"date", "currency", "rate"} - fields
            if missing:
                raise ValueError(f"FX table missing columns: {sorted(missing)}")

            for row in reader:
                d = date_key(row["date"])
                ccy = row["currency"].strip().upper()
                if not ccy:
                    raise ValueError(f"FX row missing currency for date {d}")
                rate = to_dec_strict(row["rate"])
                if rate <= 0:
                    raise ValueError(
                        f"Encountered non-positive FX rate {rate} for {ccy} on {d}"
                    )
                rates.setdefault(ccy, {})[d] = rate

        return cls(base_currency, rates)

    @property
    def rates(self) -> dict[str, dict[str, Decimal]]:
        return self._snapshot.rates

    @property
    def currencies(self) -> list[str]:
        return sorted({self.base_currency, *self._snapshot.rates})

    def replace(self, rates: Mapping[str, Mapping[str, Any]]) -> None:
        """Install a new rate table and recompute the latest rate per currency.

        Zero or unparseable rates are dropped (feeds use them for gaps).
        """
        table: dict[str, dict[str, Decimal]] = {}
        for ccy, history in rates.items():
            c = ccy.strip().upper()
            cleaned: dict[str, Decimal] = {}
            for d, raw in history.items():
                rate = to_dec(raw)
                if rate > 0:
                    cleaned[date_key(d)] = rate
            table[c] = cleaned

        latest: dict[str, Decimal] = {self.base_currency: _ONE}
        for c, history in table.items():
            if history:
                # ISO dates: lexicographic max is the most recent day
                latest[c] = history[max(history)]
        self._snapshot = _RateSnapshot(rates=table, latest=latest)

    def merged(self, rates: Mapping[str, Mapping[str, Any]]) -> CurrencyTable:
        """Return a new table with ``rates`` layered over this one."""
        combined: dict[str, dict[str, Any]] = {
            c: dict(h) for c, h in self._snapshot.rates.items()
        }
        for ccy, history in rates.items():
            combined.setdefault(ccy.strip().upper(), {}).update(history)
        return CurrencyTable(self.base_currency, combined)

    def get_rate(self, currency: str, date: str | dt.date | None = None) -> Decimal:
        """Return base units per 1 unit of currency."""
        c = currency.strip().upper()
        if c == self.base_currency:
            return _ONE
        snapshot = self._snapshot
        history = snapshot.rates.get(c)
        if date is not None and history:
            rate = history.get(date_key(date))
            if rate is not None:
                return rate
        rate = snapshot.latest.get(c)
        if rate is not None:
            if date is not None:
                logger.debug("No %s rate on %s; using latest %s", c, date_key(date), rate)
            return rate
        logger.debug("No %s rates loaded; converting at 1.0", c)
        return _ONE

    def convert(
        self, currency: str, amount: Decimal, date: str | dt.date | None = None
    ) -> Decimal:
        if not amount:
            return amount
        if currency.strip().upper() == self.base_currency:
            return amount
        return amount * self.get_rate(currency, date)
