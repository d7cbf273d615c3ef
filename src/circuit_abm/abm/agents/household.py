"""Household agents for the ABM.

Households hold a bank account and spend part of it on goods each period.
Workers earn wages; shareholders earn dividends.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from circuit_abm.abm.agents.bank import Bank
from circuit_abm.abm.agents.base import BaseAgent, merge_keys, phase
from circuit_abm.abm.errors import ConfigurationError
from circuit_abm.abm.markets.goods import Consumption, consume
from circuit_abm.abm.money import Amount
from circuit_abm.abm.protocols import Employer

if TYPE_CHECKING:
    import numpy as np

    from circuit_abm.abm.markets.labor import LaborContract
    from circuit_abm.abm.money import Cheque
    from circuit_abm.abm.sector import Sector

CONSUMPTION_KEYS = (
    "consumptionBudget",
    "consumptionVolume",
    "consumptionValue",
    "suppliers",
    "supplierSample",
    "savings",
    "money",
)


class Household(BaseAgent):
    """An account holder buying goods.

    Attributes:
        account: The household's bank account.
        supplier_sector: Name of the sector searched for goods.
        saving_propensity: Share of the balance kept out of the budget.
        supply_search: Number of suppliers sampled per period.
    """

    def __init__(
        self,
        sector: Sector,
        agent_id: str,
        *,
        rng: np.random.Generator,
    ) -> None:
        super().__init__(sector, agent_id, rng=rng)
        params = self.parameters

        bank = self.select(params.get_str("financing.bank_sector"), 1)[0]
        if not isinstance(bank, Bank):
            msg = "financing.bank_sector must name a sector of banks"
            raise ConfigurationError(msg, agent=self.agent_id)
        self.account = bank.open_account(self)

        self.supplier_sector = params.get_str("good_market.suppliers")
        self.saving_propensity = params.get_float("good_market.saving_propensity")
        self.supply_search = params.get_int("good_market.search")
        if not 0.0 <= self.saving_propensity <= 1.0:
            msg = (
                "good_market.saving_propensity must lie in [0, 1], got "
                f"{self.saving_propensity}"
            )
            raise ConfigurationError(msg, agent=self.agent_id)
        if self.supply_search < 0:
            msg = f"good_market.search cannot be negative: {self.supply_search}"
            raise ConfigurationError(msg, agent=self.agent_id)

    def consumption_budget(self) -> int:
        """Part of the balance to be spent this period."""
        return math.floor(self.account.amount * (1.0 - self.saving_propensity))

    @phase("consumption")
    def consumption(self, budget: int | None = None) -> Consumption:
        """Buy goods from a sample of suppliers, cheapest first.

        Whatever is left of the budget stays on the account for later
        periods and is recorded as ``savings``.
        """
        if budget is None:
            budget = self.consumption_budget()
        budget = min(budget, self.account.amount)
        self.dataset.put("consumptionBudget", budget)

        result = Consumption(budget=budget)
        if budget > 0:
            selection = self.select(self.supplier_sector, self.supply_search)
            result = consume(self.account, selection, budget)

        self.dataset.put("consumptionVolume", result.volume)
        self.dataset.put("consumptionValue", result.value)
        self.dataset.put("suppliers", result.suppliers)
        self.dataset.put("supplierSample", result.sample)
        self.dataset.put("savings", result.unspent)
        return result

    def close(self) -> None:
        self.dataset.put("money", self.account.amount)
        super().close()


class Worker(Household, role="worker"):
    """A household selling its labour.

    Attributes:
        contract: The current labour contract, if any.  The employer owns the
            contract; the worker only keeps a reference to it.
        employer_sector: Name of the sector searched for jobs.
        job_search_size: Number of employers sampled per search.
    """

    prefix = "worker"
    data_keys = merge_keys(CONSUMPTION_KEYS, ("employed", "wage", "wages"))

    def __init__(
        self,
        sector: Sector,
        agent_id: str,
        *,
        rng: np.random.Generator,
    ) -> None:
        super().__init__(sector, agent_id, rng=rng)
        params = self.parameters
        self.employer_sector = params.get_str("labor_market.employers")
        self.job_search_size = params.get_int("labor_market.search")
        self.contract: LaborContract | None = None
        self._wages = Amount()

    @property
    def employed(self) -> bool:
        return self.contract is not None and self.contract.is_valid

    def open(self, period: int) -> None:
        super().open(period)
        self._wages.cancel()

    @phase("job_search")
    def job_search(self) -> None:
        """Look for a job unless already holding a valid contract.

        The sampled employers are ranked by offered wage, highest first, and
        the worker accepts the best available offer.
        """
        if not self.employed:
            self.contract = None
            selection = self.select(self.employer_sector, self.job_search_size)
            offers = []
            for agent in selection:
                if agent is None or not isinstance(agent, Employer):
                    continue
                offer = agent.get_job_offer()
                if offer is not None and not offer.is_empty:
                    offers.append(offer)
            offers.sort(key=lambda o: o.wage, reverse=True)
            if offers:
                self.contract = offers[0].accept(self)

        contract = self.contract
        employed = contract is not None and contract.is_valid
        self.dataset.put("employed", 1 if employed else 0)
        wage = contract.wage if contract is not None and employed else 0
        self.dataset.put("wage", wage)

    def accept_pay_cheque(self, cheque: Cheque) -> None:
        """Deposit a wage cheque."""
        self.account.deposit(cheque)
        self._wages.plus(cheque.amount)

    def close(self) -> None:
        self.dataset.put("wages", self._wages.value)
        super().close()


class Shareholder(Household, role="shareholder"):
    """A household owning firms."""

    prefix = "shareholder"
    data_keys = merge_keys(CONSUMPTION_KEYS, ("dividends",))

    def __init__(
        self,
        sector: Sector,
        agent_id: str,
        *,
        rng: np.random.Generator,
    ) -> None:
        super().__init__(sector, agent_id, rng=rng)
        self._dividends = Amount()

    def open(self, period: int) -> None:
        super().open(period)
        self._dividends.cancel()

    def accept_dividend_cheque(self, cheque: Cheque) -> None:
        """Deposit a dividend cheque."""
        self.account.deposit(cheque)
        self._dividends.plus(cheque.amount)

    def close(self) -> None:
        self.dataset.put("dividends", self._dividends.value)
        super().close()

    @property
    def dividends(self) -> int:
        """Dividends received this period."""
        return self._dividends.value
