"""Firm agent for the ABM.

Firms hire workers on fixed-term contracts, turn their labour into goods,
sell the goods at a markup over unit cost, pay wages (borrowing the
shortfall) and distribute excess capital to their owners.  The period
sequence is:

1. ``open``: pick owners on first use, adjust the markup.
2. ``plan_production``: purge expired contracts, hire or fire.
3. ``production``: produce and reprice the supply.
4. ``pay_wages``: borrow if needed, then pay every contract.
5. ``pay_dividends``: pay out capital above target.
6. ``close``: contracts elapse, record the balance sheet.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from circuit_abm.abm.agents.bank import Bank
from circuit_abm.abm.agents.base import BaseAgent, merge_keys, phase
from circuit_abm.abm.errors import CapabilityError, ConfigurationError
from circuit_abm.abm.markets.goods import Supply
from circuit_abm.abm.markets.labor import JobOffer, LaborContract, Payroll
from circuit_abm.abm.production import Factory
from circuit_abm.abm.protocols import DividendRecipient, Employee

if TYPE_CHECKING:
    from typing import Any

    import numpy as np

    from circuit_abm.abm.money import Cheque
    from circuit_abm.abm.production import Goods
    from circuit_abm.abm.sector import Sector

logger = logging.getLogger(__name__)

FIRM_KEYS = (
    "jobOffers",
    "workforceTarget",
    "layoffs",
    "production",
    "supplyVolume",
    "supplyValue",
    "supplyCost",
    "price",
    "wageBill",
    "borrowing",
    "dividends",
    "deltaMarkup",
    "workforce",
    "vacancies",
    "inventoriesVolume",
    "inventoriesNormalVolume",
    "inventoriesValue",
    "money",
    "assets",
    "tangibleAssets",
    "liabilities",
    "markup",
    "salesVolume",
    "salesValue",
)


class Firm(BaseAgent, role="firm"):
    """A firm agent.

    Attributes:
        account: The firm's bank account.
        factory: Productive capacity and inventories.
        payroll: Labour contracts in hiring order.
        job_offer: This period's offer on the labour market.
        supply: This period's offer on the goods market.
        owners: Shareholders receiving dividends, fixed after the first period.
        markup: Current markup over unit cost.
        wage: Wage offered to new hires.
        inventories_normal_volume: Inventory level above which the markup falls.
    """

    prefix = "firm"
    data_keys = merge_keys(FIRM_KEYS)

    def __init__(
        self,
        sector: Sector,
        agent_id: str,
        *,
        rng: np.random.Generator,
    ) -> None:
        super().__init__(sector, agent_id, rng=rng)
        params = self.parameters

        self.markup = params.get_float("pricing.initial_markup")
        self.markup_flexibility = params.get_float("pricing.markup_flexibility")
        self.markup_floor = params.get_float("pricing.markup_floor", 0.1)
        self.price_threshold = params.get_float("pricing.price_threshold", 0.05)

        self.wage = params.get_int("workforce.wage")
        self.job_contract_min = params.get_int("workforce.job_contracts.min")
        self.job_contract_max = params.get_int("workforce.job_contracts.max")
        if self.wage < 1:
            msg = f"workforce.wage must be positive, got {self.wage}"
            raise ConfigurationError(msg, agent=self.agent_id)
        if not 1 <= self.job_contract_min < self.job_contract_max:
            msg = (
                "workforce.job_contracts needs 1 <= min < max, got "
                f"[{self.job_contract_min}, {self.job_contract_max})"
            )
            raise ConfigurationError(msg, agent=self.agent_id)

        self.loan_term = params.get_int("financing.loan_term", 12)
        self.shareholder_sector = params.get_str(
            "ownership.shareholder_sector", "Shareholders"
        )
        self.owners_sample = params.get_int("ownership.owners", 10)
        self.capital_target_ratio = params.get_float(
            "dividends.capital_target_ratio", 0.5
        )

        bank = self.select(params.get_str("financing.bank_sector"), 1)[0]
        if not isinstance(bank, Bank):
            msg = "financing.bank_sector must name a sector of banks"
            raise ConfigurationError(msg, agent=self.agent_id)
        self.account = bank.open_account(self)

        self.factory = Factory(params.get("production"))
        self.payroll = Payroll()
        self.job_offer = JobOffer(self)
        self.supply = Supply(self)
        self.owners: list[Any] = []
        self.inventories_normal_volume = self.factory.max_volume * params.get_float(
            "inventories.normal_volume_ratio"
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self, period: int) -> None:
        """Open the firm at the beginning of the period."""
        super().open(period)
        if not self.owners:
            self._init_owners()
        self.job_offer.open()
        self.supply.open()
        self.factory.open()
        self.update_markup()

    def _init_owners(self) -> None:
        """Pick a random sample of shareholders as permanent owners."""
        selection = self.select(self.shareholder_sector, self.owners_sample)
        owners = [agent for agent in selection if agent is not None]
        for owner in owners:
            if not isinstance(owner, DividendRecipient):
                msg = f"{owner!r} cannot receive dividends"
                raise ConfigurationError(msg, agent=self.agent_id)
        self.owners = owners

    def close(self) -> None:
        """Close the firm at the end of the period."""
        self.dataset.put("workforce", len(self.payroll))
        self.dataset.put("vacancies", self.job_offer.vacancies)
        for contract in self.payroll:
            contract.elapse()

        inventories = self.factory.inventories
        self.dataset.put("inventoriesVolume", inventories.volume)
        self.dataset.put("inventoriesNormalVolume", self.inventories_normal_volume)
        self.dataset.put("inventoriesValue", inventories.value)
        self.dataset.put("money", self.account.amount)
        self.dataset.put("assets", self.asset_total_value())
        self.dataset.put("tangibleAssets", self.factory.value)
        self.dataset.put("liabilities", self.account.debt)
        self.dataset.put("markup", self.markup)
        self.dataset.put("salesVolume", self.supply.sales_volume)
        self.dataset.put("salesValue", self.supply.sales_value)
        super().close()

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    @phase("plan_production")
    def plan_production(self, target: int | None = None) -> None:
        """Hire or fire to reach a workforce target.

        Args:
            target: Desired workforce.  Drawn uniformly between zero and the
                factory capacity when omitted.
        """
        self.payroll.purge()
        if target is None:
            target = int(self.rng.random() * self.factory.capacity)
        if target < 0:
            msg = f"Workforce target cannot be negative: {target}"
            raise ValueError(msg)

        layoffs = 0
        if len(self.payroll) > target:
            layoffs = len(self.payroll.lay_off(target))
            logger.debug("%r lays off %d workers", self, layoffs)
        elif len(self.payroll) < target:
            self.job_offer.post(self.wage, target - len(self.payroll))

        self.dataset.put("workforceTarget", target)
        self.dataset.put("layoffs", layoffs)
        self.dataset.put("jobOffers", self.job_offer.vacancies)

    @phase("production")
    def production(self) -> None:
        """Produce, then reprice the inventories offered for sale."""
        self.factory.production(self.payroll)
        self.dataset.put("production", self.factory.production_volume)

        inventories = self.factory.inventories
        if inventories.volume > 0:
            new_price = self.markup * inventories.value / inventories.volume
            old_price = self.supply.price
            price = old_price
            if old_price is None or (
                abs(new_price / old_price - 1.0) > self.price_threshold
            ):
                price = new_price
            self.supply.update(inventories.volume, price)

            self.dataset.put("supplyVolume", inventories.volume)
            self.dataset.put("supplyValue", self.supply.total_value)
            self.dataset.put("supplyCost", inventories.value)
            self.dataset.put("price", price)

    @phase("pay_wages")
    def pay_wages(self) -> None:
        """Pay one wage cheque per contract, borrowing any shortfall first."""
        for contract in self.payroll:
            if not isinstance(contract.worker, Employee):
                msg = f"{contract.worker!r} cannot be paid wages"
                raise CapabilityError(msg, agent=self.agent_id)

        wage_bill = self.payroll.wage_bill
        borrowing = 0
        if wage_bill > self.account.amount:
            borrowing = wage_bill - self.account.amount
            self.account.borrow(borrowing, self.loan_term, collateralized=False)
            logger.debug("%r borrows %d to pay wages", self, borrowing)

        for contract in self.payroll:
            cheque = self.account.issue_cheque(contract.worker, contract.wage)
            contract.worker.accept_pay_cheque(cheque)

        self.dataset.put("wageBill", wage_bill)
        self.dataset.put("borrowing", borrowing)

    @phase("pay_dividends")
    def pay_dividends(self) -> None:
        """Distribute capital in excess of the target evenly among owners."""
        if not self.owners:
            msg = "No owners to pay dividends to"
            raise ConfigurationError(msg, agent=self.agent_id)

        cash = self.account.amount
        assets = cash + self.factory.value
        capital = assets - self.account.debt
        capital_target = int(assets * self.capital_target_ratio)
        capital_excess = max(capital - capital_target, 0)

        paid = 0
        if capital_excess > len(self.owners):
            dividend = min(cash, capital_excess) // len(self.owners)
            if dividend > 0:
                for owner in self.owners:
                    cheque = self.account.issue_cheque(owner, dividend)
                    owner.accept_dividend_cheque(cheque)
                paid = dividend * len(self.owners)
        self.dataset.put("dividends", paid)

    def update_markup(self) -> None:
        """Move the markup by a random step against inventory imbalances."""
        delta = self.markup_flexibility * self.rng.random()
        if self.factory.inventories.volume > self.inventories_normal_volume:
            delta = -delta
        self.markup = max(self.markup + delta, self.markup_floor)
        self.dataset.put("deltaMarkup", delta)

    # ------------------------------------------------------------------
    # Employer interface
    # ------------------------------------------------------------------

    def get_job_offer(self) -> JobOffer | None:
        return None if self.job_offer.is_empty else self.job_offer

    def new_labor_contract(self, worker: Any) -> LaborContract:
        """Hire *worker* at the offered wage for a random term."""
        term = int(self.rng.integers(self.job_contract_min, self.job_contract_max))
        contract = LaborContract(
            self, worker, self.job_offer.wage, term, start=self.period
        )
        self.payroll.add(contract)
        return contract

    # ------------------------------------------------------------------
    # Supplier interface
    # ------------------------------------------------------------------

    def get_supply(self) -> Supply | None:
        return None if self.supply.is_empty else self.supply

    def supply_goods(self, volume: int) -> Goods:
        return self.factory.take(volume)

    def accept(self, cheque: Cheque) -> None:
        """Deposit a payment received for goods."""
        self.account.deposit(cheque)

    # ------------------------------------------------------------------
    # Balance sheet
    # ------------------------------------------------------------------

    def asset_total_value(self) -> int:
        """Cash plus inventories at cost."""
        return self.account.amount + self.factory.value

    def is_solvent(self) -> bool:
        return self.asset_total_value() >= self.account.debt
