"""Sectors: registries of agents sharing a role.

A sector creates its agents, drives their lifecycle and phase actions in a
fixed order, and provides the bounded random search used on markets:
:meth:`Sector.select` returns a fixed number of slots, some of which may be
empty when the sector has fewer agents than requested.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from circuit_abm.abm.config import Parameters
from circuit_abm.abm.errors import SimulationError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from typing import Any

    import numpy as np

    from circuit_abm.abm.agents.base import BaseAgent, PhaseAction
    from circuit_abm.abm.model import Simulation


class Sector:
    """The agents of one role.

    Attributes:
        name: Sector name, used by agents to reach each other.
        agent_class: Class of the agents of this sector.
        simulation: The owning simulation.
        rng: The simulation's random generator.
    """

    def __init__(
        self,
        name: str,
        agent_class: type[BaseAgent],
        simulation: Simulation,
        rng: np.random.Generator,
        parameters: Parameters | None = None,
    ) -> None:
        self.name = name
        self.agent_class = agent_class
        self.simulation = simulation
        self.rng = rng
        self._parameters = parameters or Parameters()
        self._agents: list[BaseAgent] = []

    def get_parameters(self) -> Parameters:
        return self._parameters

    def populate(self, count: int) -> None:
        """Create *count* new agents, appended after the existing ones.

        Agents are named ``<prefix>_<index>`` by their position in the sector.
        """
        start = len(self._agents)
        for index in range(start, start + count):
            agent_id = f"{self.agent_class.prefix}_{index}"
            self._agents.append(self.agent_class(self, agent_id, rng=self.rng))

    @property
    def agents(self) -> list[BaseAgent]:
        return list(self._agents)

    # ------------------------------------------------------------------
    # Market search
    # ------------------------------------------------------------------

    def select(self, n: int) -> tuple[BaseAgent | None, ...]:
        """Sample *n* slots without replacement.

        Returns:
            A tuple of exactly *n* entries: distinct agents drawn at random,
            followed by ``None`` for each slot the sector could not fill.
        """
        if n < 0:
            msg = f"Cannot select a negative number of agents: {n}"
            raise ValueError(msg)
        k = min(n, len(self._agents))
        chosen: list[BaseAgent | None] = []
        if k > 0:
            indices = self.rng.choice(len(self._agents), size=k, replace=False)
            chosen = [self._agents[int(i)] for i in indices]
        return tuple(chosen) + (None,) * (n - k)

    # ------------------------------------------------------------------
    # Lifecycle and phases
    # ------------------------------------------------------------------

    def supports(self, phase: str) -> bool:
        return self.agent_class.supports(phase)

    def get_action(self, phase: str) -> PhaseAction:
        return self.agent_class.get_action(phase)

    def apply(self, phase: str, action: Callable[..., Any] | None = None) -> None:
        """Run the action of *phase* on every agent, in order.

        Raises:
            SimulationError: Re-raised from the failing agent, annotated
                with its id, its open period and the phase.
        """
        if action is None:
            action = self.get_action(phase)
        for agent in list(self._agents):
            try:
                action(agent)
            except SimulationError as exc:
                exc.add_context(agent=agent.agent_id, period=agent.period, phase=phase)
                raise

    def open(self, period: int) -> None:
        self.apply("open", lambda agent: agent.open(period))

    def close(self) -> None:
        self.apply("close", lambda agent: agent.close())

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def sum(self, key: str, period: int) -> float:
        """Sum of *key* over the agents that recorded it in *period*."""
        total = 0.0
        for agent in self._agents:
            value = agent.get_data(key, period)
            if value is not None:
                total += value
        return total

    def keys(self) -> tuple[str, ...]:
        """The data keys recorded by the agents of this sector."""
        return self.agent_class.data_keys or ()

    def __iter__(self) -> Iterator[BaseAgent]:
        return iter(list(self._agents))

    def __len__(self) -> int:
        return len(self._agents)

    def __repr__(self) -> str:
        return f"Sector(name={self.name!r}, agents={len(self._agents)})"
