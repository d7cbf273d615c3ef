"""Goods and the factory turning labour into goods.

Inventories are valued at production cost: the wages paid for the labour
that produced them.  Taking goods out of inventory carries the running cost
per unit with them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from circuit_abm.abm.errors import AccountingError, ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from circuit_abm.abm.config import Parameters
    from circuit_abm.abm.markets.labor import LaborContract


class Goods:
    """A volume of goods and its cost value.

    Attributes:
        volume: Number of units.
        value: Cost value of the units.
        consumed: Whether the goods have been destroyed by consumption.
    """

    def __init__(self, volume: int = 0, value: int = 0) -> None:
        if volume < 0 or value < 0:
            msg = f"Goods cannot have negative volume or value: {volume}, {value}"
            raise AccountingError(msg)
        self.volume = int(volume)
        self.value = int(value)
        self.consumed = False

    def _check_alive(self) -> None:
        if self.consumed:
            msg = "These goods have already been consumed"
            raise AccountingError(msg)

    def add(self, volume: int, value: int) -> None:
        """Add *volume* units valued at *value*."""
        self._check_alive()
        if volume < 0 or value < 0:
            msg = f"Cannot add negative goods: {volume}, {value}"
            raise AccountingError(msg)
        self.volume += int(volume)
        self.value += int(value)

    def take(self, volume: int) -> Goods:
        """Split *volume* units off at the running cost per unit."""
        self._check_alive()
        if volume < 1 or volume > self.volume:
            msg = f"Cannot take {volume} units out of {self.volume}"
            raise AccountingError(msg)
        if volume == self.volume:
            value = self.value
        else:
            value = self.value * volume // self.volume
        self.volume -= volume
        self.value -= value
        return Goods(volume, value)

    def consume(self) -> None:
        """Destroy the goods."""
        self._check_alive()
        self.consumed = True

    @property
    def is_empty(self) -> bool:
        return self.volume == 0

    def __repr__(self) -> str:
        return f"Goods(volume={self.volume}, value={self.value})"


class Factory:
    """The productive capacity of a firm and its inventories.

    Attributes:
        capacity: Maximum number of workers employed in production.
        productivity: Units produced per worker and period.
        inventories: Goods produced and not yet sold.
        production_volume: Units produced in the current period.
        production_value: Cost of the current period's production.
    """

    def __init__(self, params: Parameters) -> None:
        self.capacity = params.get_int("capacity")
        self.productivity = params.get_int("productivity")
        if self.capacity < 0 or self.productivity < 1:
            msg = (
                "Production needs capacity >= 0 and productivity >= 1, got "
                f"{self.capacity} and {self.productivity}"
            )
            raise ConfigurationError(msg)
        self.inventories = Goods()
        self.production_volume = 0
        self.production_value = 0

    @property
    def value(self) -> int:
        """Cost value of the inventories."""
        return self.inventories.value

    @property
    def max_volume(self) -> int:
        """Output at full capacity."""
        return self.capacity * self.productivity

    def open(self) -> None:
        self.production_volume = 0
        self.production_value = 0

    def production(self, payroll: Iterable[LaborContract]) -> Goods:
        """Put the valid contracts of *payroll* to work, up to capacity.

        Returns:
            The goods produced this period (already added to inventories).
        """
        workers = [c for c in payroll if c.is_valid][: self.capacity]
        volume = len(workers) * self.productivity
        value = sum(c.wage for c in workers)
        self.inventories.add(volume, value)
        self.production_volume += volume
        self.production_value += value
        return Goods(volume, value)

    def take(self, volume: int) -> Goods:
        """Remove *volume* units from inventories."""
        return self.inventories.take(volume)
