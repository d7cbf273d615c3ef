"""Tests for sectors, scheduling and the ABM simulation model."""

from __future__ import annotations

import numpy as np
import pytest
import yaml

from circuit_abm.abm.agents.base import BaseAgent, phase
from circuit_abm.abm.config import (
    ModelConfig,
    PhaseConfig,
    SimulationConfig,
    config_from_dict,
)
from circuit_abm.abm.errors import AccountingError, ConfigurationError, InsolvencyError
from circuit_abm.abm.model import PeriodRecord, Simulation, SimulationResult
from circuit_abm.abm.scheduler import Scheduler, build_plan
from circuit_abm.abm.sector import Sector


class _Recorder(BaseAgent):
    """Unregistered agent logging the calls it receives."""

    data_keys = ("count", "calls")

    def __init__(self, sector, agent_id, *, rng):
        super().__init__(sector, agent_id, rng=rng)
        self.calls: list[str] = []

    def open(self, period):
        super().open(period)
        self.calls.append(f"open:{period}")

    @phase("production")
    def production(self):
        self.calls.append("production")
        self.dataset.put("calls", len(self.calls))

    def close(self):
        self.calls.append("close")
        super().close()


class _Failing(BaseAgent):
    """Unregistered agent whose production always fails."""

    @phase("production")
    def production(self):
        msg = "boom"
        raise AccountingError(msg)


def _sector(agent_class, count: int = 0, name: str = "Test") -> Sector:
    sector = Sector(name, agent_class, None, np.random.default_rng(0))
    sector.populate(count)
    return sector


# ---------------------------------------------------------------------------
# Sector
# ---------------------------------------------------------------------------


class TestSector:
    def test_populate_names_agents(self):
        sector = _sector(_Recorder, 3)
        assert len(sector) == 3
        assert [a.agent_id for a in sector] == ["agent_0", "agent_1", "agent_2"]

    def test_populate_continues_numbering(self):
        sector = _sector(_Recorder, 2)
        sector.populate(2)
        assert [a.agent_id for a in sector] == [f"agent_{i}" for i in range(4)]

    def test_select_distinct_agents(self):
        sector = _sector(_Recorder, 5)
        selection = sector.select(5)
        assert len(selection) == 5
        assert len({id(a) for a in selection}) == 5

    def test_select_pads_with_none(self):
        sector = _sector(_Recorder, 2)
        selection = sector.select(4)
        assert len(selection) == 4
        assert selection[2:] == (None, None)
        assert set(selection[:2]) == set(sector.agents)

    def test_select_from_empty_sector(self):
        assert _sector(_Recorder).select(3) == (None, None, None)

    def test_select_negative(self):
        with pytest.raises(ValueError):
            _sector(_Recorder, 1).select(-1)

    def test_sum_over_closed_period(self):
        sector = _sector(_Recorder, 3)
        sector.open(1)
        for agent in sector:
            agent.production()
        sector.close()
        assert sector.sum("count", 1) == 3
        assert sector.sum("calls", 1) == 6
        assert sector.sum("calls", 2) == 0


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


class TestScheduler:
    def test_runs_open_phases_close_in_order(self):
        sector = _sector(_Recorder, 2)
        scheduler = Scheduler([sector], [PhaseConfig("production")])
        scheduler.run_period(4)
        for agent in sector:
            assert agent.calls == ["open:4", "production", "close"]

    def test_phase_without_capable_sector_is_skipped(self):
        sector = _sector(_Recorder, 1)
        scheduler = Scheduler([sector], [PhaseConfig("consumption")])
        assert scheduler.plan[0].sectors == ()
        scheduler.run_period(1)
        assert sector.agents[0].calls == ["open:1", "close"]

    def test_unknown_phase(self):
        with pytest.raises(ConfigurationError, match="Unknown phase 'harvest'"):
            build_plan([_sector(_Recorder)], [PhaseConfig("harvest")])

    def test_unknown_sector(self):
        with pytest.raises(ConfigurationError, match="unknown sector"):
            build_plan([_sector(_Recorder)], [PhaseConfig("production", ("Nope",))])

    def test_sector_cannot_perform_phase(self):
        with pytest.raises(ConfigurationError, match="cannot perform"):
            build_plan([_sector(_Recorder)], [PhaseConfig("consumption", ("Test",))])

    def test_errors_are_located(self):
        sector = _sector(_Failing, 2)
        scheduler = Scheduler([sector], [PhaseConfig("production")])
        with pytest.raises(AccountingError) as excinfo:
            scheduler.run_period(3)
        exc = excinfo.value
        assert (exc.agent, exc.period, exc.phase) == ("agent_0", 3, "production")
        assert str(exc) == "boom [agent=agent_0, period=3, phase=production]"

    def test_failed_check_keeps_period_closed_to_readers(self):
        sector = _sector(_Recorder, 2)
        scheduler = Scheduler([sector], [PhaseConfig("production")])

        def check():
            msg = "unbalanced"
            raise AccountingError(msg)

        with pytest.raises(AccountingError) as excinfo:
            scheduler.run_period(5, check=check)
        assert excinfo.value.period == 5
        for agent in sector:
            assert agent.calls == ["open:5", "production"]
            assert agent.get_data("calls", 5) is None

    def test_default_plan(self, make_simulation):
        sim = make_simulation()
        plan = {step.name: step.sectors for step in sim.scheduler.plan}
        assert plan == {
            "plan_production": ("Firms",),
            "job_search": ("Workers",),
            "production": ("Firms",),
            "pay_wages": ("Firms",),
            "pay_dividends": ("Firms",),
            "consumption": ("Workers", "Shareholders"),
            "debt_recovery": ("Banks",),
        }

    def test_explicit_sectors(self, make_simulation):
        sim = make_simulation(
            phases=["plan_production", {"name": "consumption", "sectors": ["Workers"]}]
        )
        assert sim.scheduler.phase_names == ["plan_production", "consumption"]
        assert sim.scheduler.plan[1].sectors == ("Workers",)

    def test_misconfigured_schedule_fails_at_build(self, make_config):
        config = make_config(phases=[{"name": "job_search", "sectors": ["Firms"]}])
        with pytest.raises(ConfigurationError):
            Simulation(config)


# ---------------------------------------------------------------------------
# PeriodRecord / SimulationResult
# ---------------------------------------------------------------------------


class TestSimulationResult:
    def _result(self) -> SimulationResult:
        return SimulationResult(
            records=[
                PeriodRecord(1, {"Firms": {"money": 10.0}, "Banks": {"loans": 5.0}}),
                PeriodRecord(2, {"Firms": {"money": 12.0}, "Banks": {"loans": 7.0}}),
            ]
        )

    def test_empty(self):
        result = SimulationResult()
        assert result.series("Firms", "money") == []
        assert result.to_dict() == {"periods": [], "sectors": {}}

    def test_series(self):
        result = self._result()
        assert result.periods == [1, 2]
        assert result.series("Firms", "money") == [10.0, 12.0]
        assert result.series("Firms", "unknown") == [0.0, 0.0]

    def test_to_dict(self):
        assert self._result().to_dict() == {
            "periods": [1, 2],
            "sectors": {
                "Firms": {"money": [10.0, 12.0]},
                "Banks": {"loans": [5.0, 7.0]},
            },
        }


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------


class TestSimulationInit:
    def test_default_init(self):
        sim = Simulation()
        assert sim.current_period == 0
        assert list(sim.sectors) == ["Banks", "Firms", "Workers", "Shareholders"]
        assert len(sim.get_sector("Workers")) == 200

    def test_init_with_config(self):
        cfg = ModelConfig(simulation=SimulationConfig(periods=10, seed=123))
        sim = Simulation(cfg)
        assert sim.config.simulation.periods == 10

    def test_every_holder_has_an_account(self, make_simulation):
        sim = make_simulation()
        (bank,) = sim.get_sector("Banks")
        assert len(bank.accounts) == 2 + 6 + 2

    def test_unknown_sector(self, make_simulation):
        with pytest.raises(ConfigurationError, match="Unknown sector 'Government'"):
            make_simulation().get_sector("Government")

    def test_unknown_role(self, raw_config):
        raw = raw_config()
        raw["sectors"][1]["agent_type"] = "corporation"
        with pytest.raises(ConfigurationError, match="Unknown agent role"):
            Simulation(config_from_dict(raw))

    def test_sector_declared_before_its_bank(self, raw_config):
        raw = raw_config()
        raw["sectors"].append(raw["sectors"].pop(0))
        with pytest.raises(ConfigurationError, match="bank_sector"):
            Simulation(config_from_dict(raw))


class TestSimulationRun:
    def test_run_periods(self, make_simulation):
        sim = make_simulation(periods=4)
        result = sim.run()
        assert result.periods == [1, 2, 3, 4]
        assert sim.current_period == 4
        assert result.series("Workers", "count") == [6.0] * 4
        assert result.series("Firms", "count") == [2.0] * 4

    def test_run_override(self, make_simulation):
        sim = make_simulation(periods=4)
        assert len(sim.run(2).records) == 2
        assert sim.run(0).records == []
        assert sim.current_period == 2

    def test_negative_periods(self, make_simulation):
        with pytest.raises(ValueError):
            make_simulation().run(-1)

    def test_step_continues_numbering(self, make_simulation):
        sim = make_simulation()
        assert sim.step().period == 1
        assert sim.step().period == 2

    def test_deterministic_for_seed(self, make_simulation):
        first = make_simulation(periods=5, seed=11).run().to_dict()
        second = make_simulation(periods=5, seed=11).run().to_dict()
        assert first == second

    def test_from_config(self, tmp_path, raw_config):
        path = tmp_path / "model.yml"
        path.write_text(yaml.dump(raw_config(workers=4)))
        sim = Simulation.from_config(path)
        assert len(sim.get_sector("Workers")) == 4


class TestMoneyCirculation:
    @pytest.fixture
    def result(self, make_simulation):
        sim = make_simulation(periods=8, firms=3, workers=12, shareholders=3)
        return sim, sim.run()

    def test_books_balance_every_period(self, result):
        sim, res = result
        sim.check_consistency()
        for record in res.records:
            held = sum(
                record.get(name, "money")
                for name in ("Firms", "Workers", "Shareholders")
            )
            assert held == record.get("Banks", "deposits")
            assert record.get("Banks", "outstandingCheques") == 0
            created = record.get("Banks", "moneyCreated")
            destroyed = record.get("Banks", "moneyDestroyed")
            assert record.get("Banks", "deposits") == created - destroyed

    def test_total_money_matches_books(self, result):
        sim, _ = result
        (bank,) = sim.get_sector("Banks")
        assert sim.total_money() == bank.money_created - bank.money_destroyed

    def test_wages_paid_are_wages_received(self, result):
        _, res = result
        assert res.series("Firms", "wageBill") == res.series("Workers", "wages")

    def test_dividends_paid_are_dividends_received(self, result):
        _, res = result
        assert res.series("Firms", "dividends") == res.series(
            "Shareholders", "dividends"
        )

    def test_sales_are_consumption(self, result):
        _, res = result
        households = [
            w + s
            for w, s in zip(
                res.series("Workers", "consumptionValue"),
                res.series("Shareholders", "consumptionValue"),
                strict=True,
            )
        ]
        assert res.series("Firms", "salesValue") == households

    def test_loans_are_firm_liabilities(self, result):
        _, res = result
        assert res.series("Banks", "loans") == res.series("Firms", "liabilities")

    def test_tampered_books_detected(self, result):
        sim, _ = result
        (bank,) = sim.get_sector("Banks")
        bank.destroy_money(1)
        with pytest.raises(AccountingError):
            sim.check_consistency()

    def test_consistency_failure_aborts_step(self, make_simulation):
        sim = make_simulation()
        sim.step()
        (bank,) = sim.get_sector("Banks")
        bank.create_money(3)
        with pytest.raises(AccountingError) as excinfo:
            sim.step()
        assert excinfo.value.period == 2
        assert sim.current_period == 1

    def test_unbalanced_period_is_never_readable(self, make_simulation):
        sim = make_simulation()
        sim.step()
        (bank,) = sim.get_sector("Banks")
        firm = sim.get_sector("Firms").agents[0]
        bank.create_money(3)
        with pytest.raises(AccountingError):
            sim.step()
        assert firm.get_data("money", 2) is None
        assert bank.get_data("deposits", 2) is None
        assert sim.get_sector("Firms").sum("count", 2) == 0
        assert firm.get_data("money", 1) is not None


class TestInsolvency:
    def test_wages_without_credit_abort_the_run(self, make_simulation):
        sim = make_simulation(
            firms=1,
            workers=1,
            bank={"lending": {"enabled": False}},
            phases=["pay_wages"],
        )
        (firm,) = sim.get_sector("Firms")
        (worker,) = sim.get_sector("Workers")
        firm.open(0)
        firm.plan_production(target=1)
        worker.contract = firm.get_job_offer().accept(worker)
        firm.close()

        with pytest.raises(InsolvencyError) as excinfo:
            sim.step()
        assert excinfo.value.phase == "pay_wages"
        assert excinfo.value.period == 1
        assert excinfo.value.agent == "firm_0"
        assert sim.current_period == 0
