from __future__ import annotations

from collections.abc import Iterator

from .domain import OpenLot, Transaction

LotKey = tuple[str, str]


class LotBook:
    """One OpenLot per (account, symbol), created on first touch and never removed."""

    def __init__(self) -> None:
        self._lots: dict[LotKey, OpenLot] = {}

    def lot_for(self, t: Transaction) -> OpenLot:
        key = (t.account, t.symbol or "")
        lot = self._lots.get(key)
        if lot is None:
            lot = OpenLot(account=key[0], symbol=key[1], currency=t.currency)
            self._lots[key] = lot
        return lot

    def get(self, account: str, symbol: str) -> OpenLot | None:
        return self._lots.get((account, symbol))

    def __iter__(self) -> Iterator[OpenLot]:
        return iter(self._lots.values())

    def __len__(self) -> int:
        return len(self._lots)

    def open_lots(self) -> list[OpenLot]:
        return [lot for lot in self._lots.values() if not lot.is_flat]
