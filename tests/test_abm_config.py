"""Tests for ABM configuration loading and validation."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import yaml

from circuit_abm.abm.config import (
    DEFAULT_PHASES,
    ModelConfig,
    Parameters,
    PhaseConfig,
    SimulationConfig,
    config_from_dict,
    default_phases,
    load_config,
)
from circuit_abm.abm.errors import ConfigurationError

if TYPE_CHECKING:
    from pathlib import Path

# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


class TestParameters:
    def _params(self) -> Parameters:
        return Parameters(
            {
                "workforce": {"wage": 1000, "job_contracts": {"min": 6, "max": 18}},
                "pricing": {"initial_markup": 1.2},
                "lending": {"enabled": True},
                "bank_sector": "Banks",
            }
        )

    def test_dotted_lookup(self):
        params = self._params()
        assert params.get_int("workforce.job_contracts.max") == 18
        assert params.get_float("pricing.initial_markup") == 1.2
        assert params.get_bool("lending.enabled") is True
        assert params.get_str("bank_sector") == "Banks"

    def test_int_accepted_as_float(self):
        assert self._params().get_float("workforce.wage") == 1000.0

    def test_nested_group_keeps_path(self):
        group = self._params().get("workforce").get("job_contracts")
        assert group.name == "workforce.job_contracts"
        assert group.get_int("min") == 6
        with pytest.raises(ConfigurationError, match="workforce.job_contracts.step"):
            group.get_int("step")

    def test_missing_parameter(self):
        msg = "Missing parameter: pricing.floor"
        with pytest.raises(ConfigurationError, match=msg):
            self._params().get_float("pricing.floor")

    def test_default(self):
        assert self._params().get_float("pricing.floor", 0.1) == 0.1
        assert self._params().has("pricing.initial_markup")
        assert not self._params().has("pricing.floor")

    def test_wrong_type(self):
        with pytest.raises(ConfigurationError, match="must be int"):
            self._params().get_int("pricing.initial_markup")
        with pytest.raises(ConfigurationError, match="boolean"):
            self._params().get_int("lending.enabled")

    def test_value_is_not_a_group(self):
        with pytest.raises(ConfigurationError, match="not a group"):
            self._params().get("bank_sector")

    def test_to_dict_is_a_copy(self):
        params = self._params()
        data = params.to_dict()
        data["workforce"]["wage"] = 1
        assert params.get_int("workforce.wage") == 1000


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


class TestDefaults:
    def test_simulation_defaults(self):
        cfg = SimulationConfig()
        assert cfg.periods == 60
        assert cfg.seed == 42
        assert cfg.check_consistency is True
        assert [p.name for p in cfg.phases] == list(DEFAULT_PHASES)
        assert cfg.phases == default_phases()

    def test_default_sectors(self):
        cfg = ModelConfig()
        assert [s.name for s in cfg.sectors] == [
            "Banks",
            "Firms",
            "Workers",
            "Shareholders",
        ]
        firms = cfg.sector("Firms")
        assert firms.agent_type == "firm"
        assert firms.parameters.get_int("workforce.wage") == 1000

    def test_unknown_sector(self):
        with pytest.raises(ConfigurationError, match="Unknown sector"):
            ModelConfig().sector("Government")

    def test_frozen(self):
        cfg = SimulationConfig()
        with pytest.raises(AttributeError):
            cfg.periods = 10  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestConfigFromDict:
    def test_empty_mapping_gives_defaults(self):
        assert config_from_dict({}) == ModelConfig()

    def test_phase_declarations(self):
        cfg = config_from_dict(
            {
                "simulation": {
                    "phases": [
                        "plan_production",
                        {"name": "consumption", "sectors": ["Workers"]},
                        {"name": "debt_recovery", "sectors": "Banks"},
                    ]
                }
            }
        )
        assert cfg.simulation.phases == (
            PhaseConfig("plan_production"),
            PhaseConfig("consumption", ("Workers",)),
            PhaseConfig("debt_recovery", ("Banks",)),
        )

    def test_invalid_phase(self):
        with pytest.raises(ConfigurationError, match="Invalid phase"):
            config_from_dict({"simulation": {"phases": [42]}})

    def test_unknown_simulation_setting(self):
        with pytest.raises(ConfigurationError, match="Invalid simulation settings"):
            config_from_dict({"simulation": {"horizon": 10}})

    def test_sector_needs_agent_type(self):
        with pytest.raises(ConfigurationError, match="agent_type"):
            config_from_dict({"sectors": [{"name": "Firms"}]})

    def test_negative_count(self):
        with pytest.raises(ConfigurationError, match="count"):
            config_from_dict(
                {"sectors": [{"name": "Firms", "agent_type": "firm", "count": -1}]}
            )

    def test_duplicate_sector_names(self):
        sector = {"name": "Banks", "agent_type": "bank", "count": 1}
        with pytest.raises(ConfigurationError, match="Duplicate"):
            config_from_dict({"sectors": [sector, sector]})


# ---------------------------------------------------------------------------
# load_config
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_load_default_file(self):
        cfg = load_config()
        assert cfg.simulation.periods == 60
        assert [s.count for s in cfg.sectors] == [1, 20, 200, 20]
        assert cfg == ModelConfig()

    def test_missing_file_gives_defaults(self, tmp_path: Path):
        assert load_config(tmp_path / "missing.yml") == ModelConfig()

    def test_load_custom_file(self, tmp_path: Path, raw_config):
        path = tmp_path / "model.yml"
        path.write_text(yaml.dump(raw_config(firms=3, periods=9, seed=5)))
        cfg = load_config(path)
        assert cfg.simulation.periods == 9
        assert cfg.simulation.seed == 5
        assert cfg.sector("Firms").count == 3
        assert cfg.sector("Workers").parameters.get_int("labor_market.search") == 3
