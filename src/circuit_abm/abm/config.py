"""Configuration loading and validation for the ABM."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import yaml

from circuit_abm.abm.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping
    from typing import Any

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[3] / "config"

_MISSING: Any = object()

DEFAULT_PHASES: tuple[str, ...] = (
    "plan_production",
    "job_search",
    "production",
    "pay_wages",
    "pay_dividends",
    "consumption",
    "debt_recovery",
)


class Parameters:
    """A nested, read-only bundle of named parameters.

    Values are looked up by dotted path (``"workforce.job_contracts.min"``).
    Typed accessors raise :class:`ConfigurationError` naming the full path
    when a value is missing or has the wrong type.

    Attributes:
        name: Dotted path of this bundle within the root bundle.
    """

    def __init__(self, data: Mapping[str, Any] | None = None, name: str = "") -> None:
        self._data: dict[str, Any] = dict(data or {})
        self.name = name

    def _path(self, key: str) -> str:
        return f"{self.name}.{key}" if self.name else key

    def _lookup(self, path: str) -> Any:
        node: Any = self._data
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                return _MISSING
            node = node[part]
        return node

    def has(self, path: str) -> bool:
        """Return whether *path* resolves to a value."""
        return self._lookup(path) is not _MISSING

    def get(self, path: str) -> Parameters:
        """Return the nested group at *path*."""
        node = self._lookup(path)
        if node is _MISSING:
            msg = f"Missing parameter group: {self._path(path)}"
            raise ConfigurationError(msg)
        if not isinstance(node, dict):
            msg = f"Parameter {self._path(path)} is not a group"
            raise ConfigurationError(msg)
        return Parameters(node, self._path(path))

    def _typed(self, path: str, default: Any, kinds: tuple[type, ...]) -> Any:
        node = self._lookup(path)
        if node is _MISSING:
            if default is _MISSING:
                msg = f"Missing parameter: {self._path(path)}"
                raise ConfigurationError(msg)
            return default
        # bool is an int subclass; never accept it for a numeric parameter
        if isinstance(node, bool) and bool not in kinds:
            msg = f"Parameter {self._path(path)} must not be a boolean"
            raise ConfigurationError(msg)
        if not isinstance(node, kinds):
            expected = " or ".join(k.__name__ for k in kinds)
            msg = (
                f"Parameter {self._path(path)} must be {expected}, "
                f"got {type(node).__name__}"
            )
            raise ConfigurationError(msg)
        return node

    def get_float(self, path: str, default: Any = _MISSING) -> float:
        """Return the number at *path* as a float."""
        return float(self._typed(path, default, (int, float)))

    def get_int(self, path: str, default: Any = _MISSING) -> int:
        """Return the integer at *path*."""
        return int(self._typed(path, default, (int,)))

    def get_str(self, path: str, default: Any = _MISSING) -> str:
        """Return the string at *path*."""
        return str(self._typed(path, default, (str,)))

    def get_bool(self, path: str, default: Any = _MISSING) -> bool:
        """Return the boolean at *path*."""
        return bool(self._typed(path, default, (bool,)))

    def to_dict(self) -> dict[str, Any]:
        """Return a deep copy of the underlying mapping."""
        return yaml.safe_load(yaml.safe_dump(self._data)) or {}

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Parameters):
            return NotImplemented
        return self._data == other._data

    def __hash__(self) -> int:
        return hash(self.name)

    def __repr__(self) -> str:
        return f"Parameters(name={self.name!r}, keys={sorted(self._data)})"


@dataclass(frozen=True)
class PhaseConfig:
    """A phase of the period and the sectors that execute it.

    An empty ``sectors`` tuple means every sector whose agent role
    supports the phase.
    """

    name: str
    sectors: tuple[str, ...] = ()


def default_phases() -> tuple[PhaseConfig, ...]:
    """The canonical period order, every phase run by every capable sector."""
    return tuple(PhaseConfig(name) for name in DEFAULT_PHASES)


@dataclass(frozen=True)
class SimulationConfig:
    """Top-level simulation settings."""

    periods: int = 60
    seed: int = 42
    phases: tuple[PhaseConfig, ...] = field(default_factory=default_phases)
    check_consistency: bool = True


@dataclass(frozen=True)
class SectorConfig:
    """Configuration for one sector of agents sharing a role."""

    name: str
    agent_type: str
    count: int = 0
    parameters: Parameters = field(default_factory=Parameters)


def default_sectors() -> tuple[SectorConfig, ...]:
    """Return the sectors of the basic model with their default parameters."""
    good_market = {
        "suppliers": "Firms",
        "saving_propensity": 0.0,
        "search": 10,
    }
    return (
        SectorConfig(
            name="Banks",
            agent_type="bank",
            count=1,
            parameters=Parameters(
                {"lending": {"enabled": True, "amortization": "none"}}
            ),
        ),
        SectorConfig(
            name="Firms",
            agent_type="firm",
            count=20,
            parameters=Parameters(
                {
                    "financing": {"bank_sector": "Banks", "loan_term": 12},
                    "pricing": {
                        "initial_markup": 1.2,
                        "markup_flexibility": 0.05,
                        "markup_floor": 0.1,
                        "price_threshold": 0.05,
                    },
                    "workforce": {
                        "wage": 1000,
                        "job_contracts": {"min": 6, "max": 18},
                    },
                    "production": {"capacity": 10, "productivity": 100},
                    "inventories": {"normal_volume_ratio": 2.0},
                    "ownership": {"shareholder_sector": "Shareholders", "owners": 10},
                    "dividends": {"capital_target_ratio": 0.5},
                }
            ),
        ),
        SectorConfig(
            name="Workers",
            agent_type="worker",
            count=200,
            parameters=Parameters(
                {
                    "financing": {"bank_sector": "Banks"},
                    "labor_market": {"employers": "Firms", "search": 10},
                    "good_market": good_market,
                }
            ),
        ),
        SectorConfig(
            name="Shareholders",
            agent_type="shareholder",
            count=20,
            parameters=Parameters(
                {
                    "financing": {"bank_sector": "Banks"},
                    "good_market": good_market,
                }
            ),
        ),
    )


@dataclass(frozen=True)
class ModelConfig:
    """Complete model configuration."""

    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    sectors: tuple[SectorConfig, ...] = field(default_factory=default_sectors)

    def sector(self, name: str) -> SectorConfig:
        """Return the configuration of the sector called *name*."""
        for sector in self.sectors:
            if sector.name == name:
                return sector
        msg = f"Unknown sector: {name}"
        raise ConfigurationError(msg)


def _parse_phase(raw: Any) -> PhaseConfig:
    if isinstance(raw, str):
        return PhaseConfig(raw)
    if isinstance(raw, dict) and isinstance(raw.get("name"), str):
        sectors = raw.get("sectors") or []
        if isinstance(sectors, str):
            sectors = [sectors]
        return PhaseConfig(raw["name"], tuple(sectors))
    msg = f"Invalid phase declaration: {raw!r}"
    raise ConfigurationError(msg)


def _parse_sector(raw: Any) -> SectorConfig:
    if not isinstance(raw, dict) or "name" not in raw or "agent_type" not in raw:
        msg = f"Sector declarations need a name and an agent_type: {raw!r}"
        raise ConfigurationError(msg)
    count = raw.get("count", 0)
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        msg = f"Sector {raw['name']}: count must be a non-negative integer"
        raise ConfigurationError(msg)
    params = raw.get("parameters") or {}
    if not isinstance(params, dict):
        msg = f"Sector {raw['name']}: parameters must be a mapping"
        raise ConfigurationError(msg)
    return SectorConfig(
        name=str(raw["name"]),
        agent_type=str(raw["agent_type"]),
        count=count,
        parameters=Parameters(params),
    )


def config_from_dict(raw: Mapping[str, Any]) -> ModelConfig:
    """Build a :class:`ModelConfig` from a plain mapping.

    Sections that are absent fall back to their defaults.
    """
    sim_raw = dict(raw.get("simulation") or {})
    if "phases" in sim_raw:
        sim_raw["phases"] = tuple(_parse_phase(p) for p in sim_raw["phases"] or [])
    try:
        simulation = SimulationConfig(**sim_raw)
    except TypeError as exc:
        msg = f"Invalid simulation settings: {exc}"
        raise ConfigurationError(msg) from exc

    if "sectors" in raw:
        sectors = tuple(_parse_sector(s) for s in raw["sectors"] or [])
    else:
        sectors = default_sectors()

    names = [s.name for s in sectors]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        msg = f"Duplicate sector names: {', '.join(duplicates)}"
        raise ConfigurationError(msg)

    return ModelConfig(simulation=simulation, sectors=sectors)


def load_config(path: Path | None = None) -> ModelConfig:
    """Load model configuration from a YAML file.

    Args:
        path: Path to a YAML config file.  When *None* the default
              ``config/model_parameters.yml`` shipped with the package is
              used.

    Returns:
        A fully-populated :class:`ModelConfig` instance.
    """
    if path is None:
        path = _DEFAULT_CONFIG_PATH / "model_parameters.yml"

    raw: dict[str, Any] = {}
    if path.exists():
        with path.open() as fh:
            loaded = yaml.safe_load(fh)
            if isinstance(loaded, dict):
                raw = loaded

    return config_from_dict(raw)
