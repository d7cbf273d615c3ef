"""Period scheduling for the ABM.

The period order is data: a sequence of named phases, each executed by a set
of sectors.  The :class:`Scheduler` resolves phase names to agent actions
once, when it is built, so a misconfigured schedule fails before the first
period rather than halfway through a run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from circuit_abm.abm.agents.base import get_agent_class, list_roles
from circuit_abm.abm.errors import ConfigurationError, SimulationError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence
    from typing import Any

    from circuit_abm.abm.config import PhaseConfig
    from circuit_abm.abm.sector import Sector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhaseStep:
    """One resolved phase: the sectors that run it and their actions."""

    name: str
    actions: tuple[tuple[Sector, Callable[..., Any]], ...]

    @property
    def sectors(self) -> tuple[str, ...]:
        return tuple(sector.name for sector, _ in self.actions)


def known_phases() -> set[str]:
    """Names of the phases declared by any registered role."""
    return {
        name for role in list_roles() for name in get_agent_class(role).phase_names()
    }


def build_plan(
    sectors: Sequence[Sector], phases: Iterable[PhaseConfig]
) -> tuple[PhaseStep, ...]:
    """Resolve *phases* against *sectors*.

    A phase with no explicit sector list is run by every sector whose role
    supports it.  Sectors always run in the order they were declared.

    Raises:
        ConfigurationError: If a phase is unknown, if a listed sector does
            not exist, or if a listed sector cannot perform the phase.
    """
    by_name = {sector.name: sector for sector in sectors}
    known = known_phases()
    plan = []
    for phase_config in phases:
        name = phase_config.name
        if name not in known:
            msg = f"Unknown phase '{name}'. Known phases: {', '.join(sorted(known))}"
            raise ConfigurationError(msg, phase=name)

        if phase_config.sectors:
            for sector_name in phase_config.sectors:
                if sector_name not in by_name:
                    msg = f"Phase '{name}' names an unknown sector: {sector_name}"
                    raise ConfigurationError(msg, phase=name)
                if not by_name[sector_name].supports(name):
                    msg = f"Sector '{sector_name}' cannot perform phase '{name}'"
                    raise ConfigurationError(msg, phase=name)
            selected = [s for s in sectors if s.name in phase_config.sectors]
        else:
            selected = [s for s in sectors if s.supports(name)]

        actions = tuple((sector, sector.get_action(name)) for sector in selected)
        plan.append(PhaseStep(name, actions))
    return tuple(plan)


class Scheduler:
    """Drives the agents through one period at a time.

    Attributes:
        sectors: Sectors in declaration order.
        plan: The resolved phase sequence.
    """

    def __init__(
        self, sectors: Sequence[Sector], phases: Iterable[PhaseConfig]
    ) -> None:
        self.sectors = tuple(sectors)
        self.plan = build_plan(self.sectors, phases)
        for step in self.plan:
            if not step.actions:
                logger.debug("Phase %s has no sector to run it", step.name)

    @property
    def phase_names(self) -> list[str]:
        return [step.name for step in self.plan]

    def run_period(self, period: int, check: Callable[[], None] | None = None) -> None:
        """Open every agent, run each phase in turn, then close every agent.

        Args:
            period: Number of the period to run.
            check: Called after the last phase and before any agent closes,
                so a period that fails it is never frozen into a dataset.

        Raises:
            SimulationError: Re-raised from the failing agent or check,
                annotated with the period (and the agent and phase when an
                agent failed).
        """
        try:
            for sector in self.sectors:
                sector.open(period)
            for step in self.plan:
                for sector, action in step.actions:
                    sector.apply(step.name, action)
            if check is not None:
                check()
            for sector in self.sectors:
                sector.close()
        except SimulationError as exc:
            exc.add_context(period=period)
            raise
