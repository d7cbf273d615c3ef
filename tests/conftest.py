"""Pytest configuration and fixtures."""

from __future__ import annotations

import copy
import sys
from collections.abc import Callable, Generator
from typing import Any

import pytest

from circuit_abm.abm.config import ModelConfig, config_from_dict
from circuit_abm.abm.model import Simulation

# Small economy: cheap to run, big enough for every market to clear.
BASE_PARAMETERS: dict[str, dict[str, Any]] = {
    "bank": {"lending": {"enabled": True, "amortization": "none"}},
    "firm": {
        "financing": {"bank_sector": "Banks", "loan_term": 12},
        "pricing": {
            "initial_markup": 1.2,
            "markup_flexibility": 0.05,
            "markup_floor": 0.1,
            "price_threshold": 0.05,
        },
        "workforce": {"wage": 10, "job_contracts": {"min": 2, "max": 5}},
        "production": {"capacity": 4, "productivity": 10},
        "inventories": {"normal_volume_ratio": 2.0},
        "ownership": {"shareholder_sector": "Shareholders", "owners": 2},
        "dividends": {"capital_target_ratio": 0.5},
    },
    "worker": {
        "financing": {"bank_sector": "Banks"},
        "labor_market": {"employers": "Firms", "search": 3},
        "good_market": {"suppliers": "Firms", "saving_propensity": 0.0, "search": 3},
    },
    "shareholder": {
        "financing": {"bank_sector": "Banks"},
        "good_market": {"suppliers": "Firms", "saving_propensity": 0.0, "search": 3},
    },
}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@pytest.fixture(autouse=True)
def reset_typer_force_terminal() -> Generator[None]:
    """Reset typer.rich_utils.FORCE_TERMINAL before each test.

    When FORCE_COLOR=1 is set in CI, the first CLI ``--help`` invocation
    imports ``typer.rich_utils`` which sets the module-level constant
    ``FORCE_TERMINAL = True`` at import time.  Because Python caches imported
    modules, this value persists for the rest of the test session and Rich
    keeps injecting ANSI escape codes into later CLI output.
    """
    ru = sys.modules.get("typer.rich_utils")
    old = ru.FORCE_TERMINAL if ru is not None else None
    if ru is not None:
        ru.FORCE_TERMINAL = None
    yield
    if ru is not None:
        ru.FORCE_TERMINAL = old


@pytest.fixture
def raw_config() -> Callable[..., dict[str, Any]]:
    """Build a plain configuration mapping for a small economy.

    Keyword arguments ``bank``, ``firm``, ``worker`` and ``shareholder`` are
    merged into the default parameters of the matching sector.
    """

    def factory(
        *,
        banks: int = 1,
        firms: int = 2,
        workers: int = 6,
        shareholders: int = 2,
        periods: int = 3,
        seed: int = 7,
        phases: list[Any] | None = None,
        check_consistency: bool = True,
        **overrides: dict[str, Any],
    ) -> dict[str, Any]:
        counts = {
            "bank": banks,
            "firm": firms,
            "worker": workers,
            "shareholder": shareholders,
        }
        names = {
            "bank": "Banks",
            "firm": "Firms",
            "worker": "Workers",
            "shareholder": "Shareholders",
        }
        simulation: dict[str, Any] = {
            "periods": periods,
            "seed": seed,
            "check_consistency": check_consistency,
        }
        if phases is not None:
            simulation["phases"] = phases
        return {
            "simulation": simulation,
            "sectors": [
                {
                    "name": names[role],
                    "agent_type": role,
                    "count": counts[role],
                    "parameters": _merge(
                        BASE_PARAMETERS[role], overrides.get(role, {})
                    ),
                }
                for role in ("bank", "firm", "worker", "shareholder")
            ],
        }

    return factory


@pytest.fixture
def make_config(
    raw_config: Callable[..., dict[str, Any]],
) -> Callable[..., ModelConfig]:
    def factory(**kwargs: Any) -> ModelConfig:
        return config_from_dict(raw_config(**kwargs))

    return factory


@pytest.fixture
def make_simulation(
    make_config: Callable[..., ModelConfig],
) -> Callable[..., Simulation]:
    def factory(**kwargs: Any) -> Simulation:
        return Simulation(make_config(**kwargs))

    return factory
