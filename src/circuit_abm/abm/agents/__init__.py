"""Agent classes for the ABM."""

from __future__ import annotations

from circuit_abm.abm.agents.bank import Bank
from circuit_abm.abm.agents.base import BaseAgent, get_agent_class, list_roles, phase
from circuit_abm.abm.agents.firm import Firm
from circuit_abm.abm.agents.household import Household, Shareholder, Worker

__all__ = [
    "Bank",
    "BaseAgent",
    "Firm",
    "Household",
    "Shareholder",
    "Worker",
    "get_agent_class",
    "list_roles",
    "phase",
]
