"""Error taxonomy for the ABM.

Every fatal condition raised by the simulation core derives from
:class:`SimulationError`.  The scheduler annotates errors with the agent,
period and phase in which they occurred before letting them propagate, so a
run aborts with a diagnostic that locates the defect.
"""

from __future__ import annotations

from typing import Any


class SimulationError(Exception):
    """Base class for fatal simulation errors.

    Attributes:
        agent: Name of the agent being processed, if known.
        period: Simulation period, if known.
        phase: Phase name (or ``open``/``close``), if known.
    """

    def __init__(
        self,
        message: str,
        *,
        agent: str | None = None,
        period: int | None = None,
        phase: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.agent = agent
        self.period = period
        self.phase = phase

    def add_context(self, **context: Any) -> None:
        """Fill in missing location details without overwriting known ones."""
        for name in ("agent", "period", "phase"):
            if getattr(self, name) is None and context.get(name) is not None:
                setattr(self, name, context[name])

    def __str__(self) -> str:
        where = [
            f"{name}={value}"
            for name, value in (
                ("agent", self.agent),
                ("period", self.period),
                ("phase", self.phase),
            )
            if value is not None
        ]
        if not where:
            return self.message
        return f"{self.message} [{', '.join(where)}]"


class AccountingError(SimulationError):
    """The books do not balance: a defect in payment or matching arithmetic."""


class InsolvencyError(AccountingError):
    """A required payment cannot be financed because borrowing is disabled."""


class ConfigurationError(SimulationError):
    """The economic model is misconfigured."""


class CapabilityError(SimulationError):
    """A role-specific operation was invoked on an agent lacking it."""
