"""Base agent class for the ABM.

Agent roles declare the phases they can perform by decorating methods with
:func:`phase`.  The decorated methods are collected into a per-class phase
table when the subclass is created, so phase names are resolved once when
the schedule is built rather than on every call.  Concrete roles register
themselves under a role name used by the sector configuration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from circuit_abm.abm.dataset import AgentDataset
from circuit_abm.abm.errors import CapabilityError, ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from typing import Any

    import numpy as np

    from circuit_abm.abm.config import Parameters
    from circuit_abm.abm.sector import Sector

    PhaseAction = Callable[["BaseAgent"], None]

_AGENT_REGISTRY: dict[str, type[BaseAgent]] = {}


def phase(name: str) -> Callable[[Callable[..., None]], Callable[..., None]]:
    """Mark a method as the agent's action for the phase called *name*."""

    def decorator(func: Callable[..., None]) -> Callable[..., None]:
        func._phase_name = name  # type: ignore[attr-defined]
        return func

    return decorator


def get_agent_class(role: str) -> type[BaseAgent]:
    """Return the agent class registered under *role*."""
    if role not in _AGENT_REGISTRY:
        available = ", ".join(sorted(_AGENT_REGISTRY))
        msg = f"Unknown agent role '{role}'. Available roles: {available}"
        raise ConfigurationError(msg)
    return _AGENT_REGISTRY[role]


def list_roles() -> list[str]:
    """Return the sorted names of all registered roles."""
    return sorted(_AGENT_REGISTRY)


class BaseAgent:
    """Base class for all agents in the model.

    An agent lives for the whole simulation.  Each period the scheduler calls
    :meth:`open`, then the agent's phase actions in the configured order, then
    :meth:`close`.  Facts recorded with ``self.dataset.put`` during the period
    become readable through :meth:`get_data` once the period is closed.

    Attributes:
        agent_id: Unique identifier for the agent.
        agent_type: Registered role name.
        sector: Parent sector.
        dataset: Per-period facts.
        period: The current period while the agent is open.
    """

    role: ClassVar[str | None] = None
    prefix: ClassVar[str] = "agent"
    data_keys: ClassVar[tuple[str, ...] | None] = None
    phases: ClassVar[dict[str, Callable[..., None]]] = {}

    def __init_subclass__(cls, role: str | None = None, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        table = dict(cls.phases)
        for attr in vars(cls).values():
            name = getattr(attr, "_phase_name", None)
            if name is not None:
                table[name] = attr
        cls.phases = table
        if role is not None:
            cls.role = role
            _AGENT_REGISTRY[role] = cls

    def __init__(
        self,
        sector: Sector,
        agent_id: str,
        *,
        rng: np.random.Generator,
    ) -> None:
        self.sector = sector
        self.agent_id = agent_id
        self.agent_type = self.role or self.__class__.__name__.lower()
        self.rng = rng
        self.dataset = AgentDataset(self.data_keys)
        self.period: int | None = None

    # ------------------------------------------------------------------
    # Phase resolution
    # ------------------------------------------------------------------

    @classmethod
    def phase_names(cls) -> list[str]:
        """Names of the phases this role can perform, in declaration order."""
        return list(cls.phases)

    @classmethod
    def supports(cls, name: str) -> bool:
        return name in cls.phases

    @classmethod
    def get_action(cls, name: str) -> PhaseAction:
        """Return the action performed by this role in phase *name*.

        Raises:
            ConfigurationError: If the role has no such phase.
        """
        try:
            return cls.phases[name]
        except KeyError:
            msg = f"Role '{cls.role}' has no phase '{name}'"
            raise ConfigurationError(msg) from None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def parameters(self) -> Parameters:
        return self.sector.get_parameters()

    def open(self, period: int) -> None:
        """Prepare the agent for *period*."""
        self.period = period
        self.dataset.open(period)

    def close(self) -> None:
        """Freeze the facts recorded during the period."""
        self.dataset.put("count", 1)
        self.dataset.close()
        self.period = None

    def get_data(self, key: str, period: int) -> float | None:
        return self.dataset.get_data(key, period)

    def select(self, sector_name: str, n: int) -> tuple[Any, ...]:
        """Sample *n* slots from another sector of the simulation."""
        return self.sector.simulation.get_sector(sector_name).select(n)

    # ------------------------------------------------------------------
    # Capabilities not every role supports
    # ------------------------------------------------------------------

    def asset_total_value(self) -> int:
        """Return the total value of the agent's assets."""
        raise CapabilityError(
            f"{self.agent_type} agents do not value their assets", agent=self.agent_id
        )

    def is_solvent(self) -> bool:
        raise CapabilityError(
            f"{self.agent_type} agents have no solvency test", agent=self.agent_id
        )

    def go_bankrupt(self) -> None:
        """Bankruptcy hook; no role implements bankruptcy processing."""
        raise CapabilityError(
            f"{self.agent_type} agents cannot go bankrupt", agent=self.agent_id
        )

    def __repr__(self) -> str:
        """Return string representation of the agent."""
        return f"{self.__class__.__name__}(id={self.agent_id})"


def merge_keys(*groups: Iterable[str]) -> tuple[str, ...]:
    """Merge key vocabularies, keeping first-seen order."""
    merged: dict[str, None] = {"count": None}
    for group in groups:
        merged.update(dict.fromkeys(group))
    return tuple(merged)
