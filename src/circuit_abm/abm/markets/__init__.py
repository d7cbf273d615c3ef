"""Market mechanisms for the ABM."""

from __future__ import annotations

from circuit_abm.abm.markets.goods import Consumption, Supply, consume
from circuit_abm.abm.markets.labor import JobOffer, LaborContract, Payroll

__all__ = [
    "Consumption",
    "JobOffer",
    "LaborContract",
    "Payroll",
    "Supply",
    "consume",
]
