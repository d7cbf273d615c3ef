"""Capability protocols implemented selectively by agent roles."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from circuit_abm.abm.markets.goods import Supply
    from circuit_abm.abm.markets.labor import JobOffer, LaborContract
    from circuit_abm.abm.money import Account, Cheque
    from circuit_abm.abm.production import Goods


@runtime_checkable
class AccountHolder(Protocol):
    """Agents holding a bank account."""

    account: Account | None


@runtime_checkable
class Employer(Protocol):
    """Agents hiring workers on the labour market."""

    def get_job_offer(self) -> JobOffer | None: ...

    def new_labor_contract(self, worker: Employee) -> LaborContract: ...


@runtime_checkable
class Employee(Protocol):
    """Agents supplying labour and receiving wages."""

    def accept_pay_cheque(self, cheque: Cheque) -> None: ...


@runtime_checkable
class Supplier(Protocol):
    """Agents selling goods on the goods market."""

    def get_supply(self) -> Supply | None: ...

    def supply_goods(self, volume: int) -> Goods: ...

    def accept(self, cheque: Cheque) -> None: ...


@runtime_checkable
class DividendRecipient(Protocol):
    """Agents owning firms and receiving their dividends."""

    def accept_dividend_cheque(self, cheque: Cheque) -> None: ...
