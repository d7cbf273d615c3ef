"""Agent-Based Model (ABM) module for monetary circuit simulation.

Firms, workers, shareholders and banks interact over discrete periods
through a labour market and a goods market.  Every payment is a cheque
drawn on a bank account, and every unit of money in the system is created
by a bank loan, so the books of the economy can be checked after every
period.
"""

from __future__ import annotations

from circuit_abm.abm.config import ModelConfig, Parameters, load_config
from circuit_abm.abm.errors import (
    AccountingError,
    CapabilityError,
    ConfigurationError,
    InsolvencyError,
    SimulationError,
)
from circuit_abm.abm.model import PeriodRecord, Simulation, SimulationResult
from circuit_abm.abm.scheduler import Scheduler
from circuit_abm.abm.sector import Sector

__all__ = [
    "AccountingError",
    "CapabilityError",
    "ConfigurationError",
    "InsolvencyError",
    "ModelConfig",
    "Parameters",
    "PeriodRecord",
    "Scheduler",
    "Sector",
    "Simulation",
    "SimulationError",
    "SimulationResult",
    "agents",
    "load_config",
    "markets",
]
