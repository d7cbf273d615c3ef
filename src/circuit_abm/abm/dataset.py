"""Per-agent, per-period store of named numeric facts.

Agents ``put`` facts while a period is open.  Closing the period freezes its
values; only closed periods are visible to readers, so reporting never sees
a partially computed period.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


class AgentDataset:
    """Facts recorded by one agent.

    Attributes:
        keys: The declared key vocabulary, or ``None`` to accept any key.
        period: The currently open period, or ``None`` between periods.
    """

    def __init__(self, keys: Iterable[str] | None = None) -> None:
        self.keys: frozenset[str] | None = frozenset(keys) if keys is not None else None
        self.period: int | None = None
        self._current: dict[str, float] = {}
        self._history: dict[int, Mapping[str, float]] = {}

    def open(self, period: int) -> None:
        """Start recording facts for *period*."""
        if self.period is not None:
            msg = f"Period {self.period} is still open"
            raise RuntimeError(msg)
        if period in self._history:
            msg = f"Period {period} is already closed"
            raise RuntimeError(msg)
        self.period = period
        self._current = {}

    def put(self, key: str, value: float) -> None:
        """Record *value* under *key* for the open period."""
        if self.period is None:
            msg = f"Cannot record {key!r}: no open period"
            raise RuntimeError(msg)
        if self.keys is not None and key not in self.keys:
            raise KeyError(key)
        self._current[key] = float(value)

    def close(self) -> None:
        """Freeze the open period."""
        if self.period is None:
            msg = "No open period to close"
            raise RuntimeError(msg)
        self._history[self.period] = MappingProxyType(self._current)
        self._current = {}
        self.period = None

    def get_data(self, key: str, period: int) -> float | None:
        """Return the value of *key* in a closed *period*, or ``None``."""
        values = self._history.get(period)
        if values is None:
            return None
        return values.get(key)

    def get_period(self, period: int) -> Mapping[str, float]:
        """Return every fact of a closed *period* (empty if unknown)."""
        return self._history.get(period, MappingProxyType({}))

    @property
    def closed_periods(self) -> list[int]:
        """Periods whose values are final."""
        return sorted(self._history)
