from __future__ import annotations

from .domain import LedgerEvent


class EventRecorder:
    """Collect ledger data-quality events without side effects."""

    def __init__(self) -> None:
        self._events: list[LedgerEvent] = []

    def record(self, event: LedgerEvent) -> None:
        self._events.append(event)

    @property
    def events(self) -> list[LedgerEvent]:
        return self._events
