"""Goods market for the ABM.

Firms post a :class:`Supply` (a unit price and a volume).  Buyers search a
bounded random sample of suppliers, sort it by ascending price and buy from
the cheapest first until their budget runs out.  Each purchase is paid with
exactly one cheque whose amount must equal the value computed by the
supplier's own bookkeeping.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from circuit_abm.abm.errors import AccountingError
from circuit_abm.abm.protocols import Supplier

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any

    from circuit_abm.abm.money import Account, Cheque
    from circuit_abm.abm.production import Goods

logger = logging.getLogger(__name__)


def value_of(volume: int, price: float) -> int:
    """Money value of *volume* units at *price*, rounded down."""
    return math.floor(volume * price)


class Supply:
    """A supplier's standing offer on the goods market.

    Attributes:
        supplier: The selling agent.
        price: Unit price, ``None`` until the first update.
        volume: Units still offered.
        total_value: ``value_of(volume, price)``, kept in step with volume.
        sales_volume: Units sold this period.
        sales_value: Money received this period.
    """

    def __init__(self, supplier: Any) -> None:
        self.supplier = supplier
        self.price: float | None = None
        self.volume = 0
        self.total_value = 0
        self.sales_volume = 0
        self.sales_value = 0

    def open(self) -> None:
        """Withdraw the previous offer; the price is kept as a reference."""
        self.volume = 0
        self.total_value = 0
        self.sales_volume = 0
        self.sales_value = 0

    def update(self, volume: int, price: float) -> None:
        """Offer *volume* units at *price*."""
        if volume < 0:
            msg = f"Supply volume cannot be negative: {volume}"
            raise AccountingError(msg)
        if not price > 0:
            msg = f"Supply price must be positive: {price}"
            raise AccountingError(msg)
        self.price = price
        self.volume = int(volume)
        self.total_value = value_of(self.volume, price)

    @property
    def is_empty(self) -> bool:
        return self.volume == 0 or self.price is None

    def purchase(self, volume: int, cheque: Cheque) -> Goods:
        """Sell *volume* units paid by *cheque*.

        Raises:
            AccountingError: If the volume is not available, if the cheque is
                not payable to the supplier, or if its amount differs from
                the value of the volume.
        """
        if self.price is None or volume < 1 or volume > self.volume:
            msg = f"Cannot sell {volume} units out of {self.volume}"
            raise AccountingError(msg)
        expected = value_of(volume, self.price)
        if cheque.amount != expected:
            msg = (
                f"Payment of {cheque.amount} for {volume} units at {self.price} "
                f"(expected {expected})"
            )
            raise AccountingError(msg)
        if cheque.payee is not self.supplier:
            msg = f"Cheque payable to {cheque.payee!r}, not {self.supplier!r}"
            raise AccountingError(msg)

        self.supplier.accept(cheque)
        goods = self.supplier.supply_goods(volume)
        if goods.volume != volume:
            msg = f"Supplier delivered {goods.volume} units instead of {volume}"
            raise AccountingError(msg)

        self.volume -= volume
        self.total_value = value_of(self.volume, self.price)
        self.sales_volume += volume
        self.sales_value += cheque.amount
        return goods

    def __repr__(self) -> str:
        return f"Supply(price={self.price}, volume={self.volume})"


def available_supply(agent: Any) -> Supply | None:
    """Return the non-empty supply of *agent*, or ``None``."""
    if agent is None or not isinstance(agent, Supplier):
        return None
    supply = agent.get_supply()
    if supply is None or supply.is_empty:
        return None
    return supply


def supplier_order(agent: Any) -> tuple[int, float]:
    """Sort key: available supplies by ascending price, then everything else."""
    supply = available_supply(agent)
    if supply is None:
        return (1, 0.0)
    return (0, float(supply.price))  # type: ignore[arg-type]


@dataclass
class Consumption:
    """Outcome of one buyer's shopping round.

    Attributes:
        budget: Budget available at the start of the round.
        volume: Units bought (and consumed).
        value: Money spent.
        suppliers: Suppliers actually bought from.
        sample: Size of the sampled set of suppliers.
    """

    budget: int = 0
    volume: int = 0
    value: int = 0
    suppliers: int = 0
    sample: int = 0

    @property
    def unspent(self) -> int:
        """Budget left over, kept on the buyer's account."""
        return self.budget - self.value


def consume(account: Account, selection: Iterable[Any], budget: int) -> Consumption:
    """Spend up to *budget* from *account* on the sampled suppliers.

    Suppliers are visited by ascending price.  The round stops at the first
    supplier with nothing to sell or a unit price above the remaining budget;
    since the sample is sorted, no later supplier could be afforded either.
    A leftover worth nothing at its price cannot be paid for and is skipped.

    Returns:
        The quantities bought and spent.
    """
    ordered = sorted(selection, key=supplier_order)
    result = Consumption(budget=budget, sample=len(ordered))
    remaining = budget

    for agent in ordered:
        supply = available_supply(agent)
        if supply is None or supply.price > remaining:  # type: ignore[operator]
            break
        price = float(supply.price)  # type: ignore[arg-type]

        if supply.total_value <= remaining:
            volume = supply.volume
            spending = value_of(volume, price)
            if spending != supply.total_value:
                msg = (
                    f"Spending {spending} differs from total value "
                    f"{supply.total_value} of {supply!r}"
                )
                raise AccountingError(msg)
            if spending == 0:
                continue
        else:
            volume = int(remaining // price)
            spending = value_of(volume, price)
            if volume == 0 or spending == 0:
                break

        goods = supply.purchase(volume, account.issue_cheque(supply.supplier, spending))
        if goods.volume != volume:
            msg = f"Bought {goods.volume} units instead of {volume}"
            raise AccountingError(msg)
        goods.consume()

        remaining -= spending
        result.value += spending
        result.volume += goods.volume
        result.suppliers += 1

    if result.value > budget:
        msg = f"Spent {result.value} out of a budget of {budget}"
        raise AccountingError(msg)
    logger.debug(
        "%r bought %d units for %d (budget %d, %d/%d suppliers)",
        account.owner,
        result.volume,
        result.value,
        budget,
        result.suppliers,
        result.sample,
    )
    return result
