"""Simulation model orchestrator for the ABM.

The :class:`Simulation` class owns the sectors, the shared random generator
and the scheduler, and drives the period-by-period execution loop.  After
each period it checks the books of every bank and aggregates the facts
recorded by the agents into a :class:`PeriodRecord`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from circuit_abm.abm.agents.bank import Bank
from circuit_abm.abm.agents.base import get_agent_class
from circuit_abm.abm.config import ModelConfig, load_config
from circuit_abm.abm.errors import AccountingError, ConfigurationError
from circuit_abm.abm.scheduler import Scheduler
from circuit_abm.abm.sector import Sector

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path
    from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class PeriodRecord:
    """Sector totals of every recorded key for a single period."""

    period: int = 0
    sectors: dict[str, dict[str, float]] = field(default_factory=dict)

    def get(self, sector: str, key: str) -> float:
        """Total of *key* over *sector*, zero when nothing was recorded."""
        return self.sectors.get(sector, {}).get(key, 0.0)


@dataclass
class SimulationResult:
    """Container for the full simulation output."""

    records: list[PeriodRecord] = field(default_factory=list)

    @property
    def periods(self) -> list[int]:
        return [r.period for r in self.records]

    def series(self, sector: str, key: str) -> list[float]:
        """Values of *key* summed over *sector*, one per recorded period."""
        return [r.get(sector, key) for r in self.records]

    def to_dict(self) -> dict[str, Any]:
        """Aggregate series as plain data, keyed by sector then by key."""
        sectors: dict[str, dict[str, list[float]]] = {}
        for record in self.records:
            for name, totals in record.sectors.items():
                for key in totals:
                    sectors.setdefault(name, {}).setdefault(key, [])
        for name, keys in sectors.items():
            for key in keys:
                keys[key] = self.series(name, key)
        return {"periods": self.periods, "sectors": sectors}


class Simulation:
    """The top-level simulation orchestrator.

    Usage::

        sim = Simulation.from_config()
        result = sim.run()

    Sectors are built in declaration order, then populated in the same order,
    so banks must be declared before the sectors holding accounts with them.

    Attributes:
        config: The model configuration.
        rng: Random generator shared by every agent.
        sectors: Sectors by name, in declaration order.
        scheduler: Drives the agents through each period.
        current_period: Number of the last completed period (0 before the
            first period).
    """

    def __init__(self, config: ModelConfig | None = None) -> None:
        self.config = config or ModelConfig()
        self.rng = np.random.default_rng(self.config.simulation.seed)

        self.sectors: dict[str, Sector] = {}
        for sector_config in self.config.sectors:
            self.sectors[sector_config.name] = Sector(
                sector_config.name,
                get_agent_class(sector_config.agent_type),
                self,
                self.rng,
                sector_config.parameters,
            )
        for sector_config in self.config.sectors:
            self.sectors[sector_config.name].populate(sector_config.count)

        self.scheduler = Scheduler(
            list(self.sectors.values()), self.config.simulation.phases
        )
        self.current_period: int = 0
        logger.info(
            "Simulation built: %s",
            ", ".join(f"{name}={len(s)}" for name, s in self.sectors.items()),
        )

    # ------------------------------------------------------------------
    # Factory methods
    # ------------------------------------------------------------------

    @classmethod
    def from_config(cls, path: Path | None = None) -> Simulation:
        """Create a simulation from a YAML configuration file.

        Args:
            path: Path to configuration YAML.  Uses defaults when *None*.
        """
        return cls(load_config(path))

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_sector(self, name: str) -> Sector:
        """Return the sector called *name*.

        Raises:
            ConfigurationError: If there is no such sector.
        """
        try:
            return self.sectors[name]
        except KeyError:
            available = ", ".join(self.sectors) or "none"
            msg = f"Unknown sector '{name}'. Available sectors: {available}"
            raise ConfigurationError(msg) from None

    def banks(self) -> Iterator[Bank]:
        for sector in self.sectors.values():
            for agent in sector:
                if isinstance(agent, Bank):
                    yield agent

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(self, periods: int | None = None) -> SimulationResult:
        """Run the simulation for the specified number of periods.

        Args:
            periods: Number of periods to run.  Defaults to the value in
                configuration.

        Returns:
            A :class:`SimulationResult` with one record per period run.
        """
        n = self.config.simulation.periods if periods is None else periods
        if n < 0:
            msg = f"Cannot run a negative number of periods: {n}"
            raise ValueError(msg)

        logger.info("Running %d periods from period %d", n, self.current_period + 1)
        result = SimulationResult()
        for _ in range(n):
            result.records.append(self.step())
        logger.info(
            "Run finished at period %d, total money %d",
            self.current_period,
            self.total_money(),
        )
        return result

    def step(self) -> PeriodRecord:
        """Execute a single period of the simulation.

        The books are checked before the agents close, so a period that
        does not balance never becomes readable.

        Returns:
            A :class:`PeriodRecord` for this period, produced once every
            agent has closed.
        """
        period = self.current_period + 1
        check = None
        if self.config.simulation.check_consistency:
            check = self.check_consistency
        self.scheduler.run_period(period, check=check)
        self.current_period = period

        record = PeriodRecord(
            period=period,
            sectors={
                name: {key: sector.sum(key, period) for key in sector.keys()}
                for name, sector in self.sectors.items()
            },
        )
        logger.debug("Period %d closed", period)
        return record

    # ------------------------------------------------------------------
    # Accounting
    # ------------------------------------------------------------------

    def total_money(self) -> int:
        """Money held on accounts or in transit as outstanding cheques."""
        return sum(bank.deposits + bank.outstanding_cheques for bank in self.banks())

    def check_consistency(self) -> None:
        """Check the books of every bank, then the money stock as a whole.

        Raises:
            AccountingError: If any bank's books or the aggregate money stock
                do not balance.
        """
        net_created = 0
        for bank in self.banks():
            bank.check_consistency()
            net_created += bank.money_created - bank.money_destroyed
        total = self.total_money()
        if total != net_created:
            msg = f"Money stock {total} differs from net money created {net_created}"
            raise AccountingError(msg)
