"""Labor market primitives for the ABM.

Firms post a :class:`JobOffer` each period; workers who accept it obtain a
:class:`LaborContract` whose remaining term runs down by one every period.
The employer keeps its contracts in a :class:`Payroll` ordered by hiring
date, which makes last-in-first-out layoffs a pop from the end.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from circuit_abm.abm.errors import AccountingError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from typing import Any


class LaborContract:
    """An employment relationship with a finite term.

    Attributes:
        employer: The hiring agent.
        worker: The employed agent.
        wage: Wage paid each period.
        term: Contractual duration in periods.
        remaining_term: Periods left; the contract is valid while >= 1.
        start: Period in which the contract was signed.
        breached: Whether the contract was terminated early.
    """

    def __init__(
        self,
        employer: Any,
        worker: Any,
        wage: int,
        term: int,
        start: int | None = None,
    ) -> None:
        if term < 1:
            msg = f"Contract term must be at least one period, got {term}"
            raise AccountingError(msg)
        self.employer = employer
        self.worker = worker
        self.wage = wage
        self.term = term
        self.remaining_term = term
        self.start = start
        self.breached = False

    @property
    def is_valid(self) -> bool:
        return not self.breached and self.remaining_term >= 1

    def elapse(self) -> None:
        """Count one period of the term as served."""
        if self.remaining_term > 0:
            self.remaining_term -= 1

    def breach(self) -> None:
        """Terminate the contract immediately."""
        self.breached = True

    def __repr__(self) -> str:
        return (
            f"LaborContract(worker={self.worker!r}, wage={self.wage}, "
            f"remaining_term={self.remaining_term}, breached={self.breached})"
        )


class Payroll:
    """The contracts of one employer, in hiring order."""

    def __init__(self) -> None:
        self._contracts: list[LaborContract] = []

    def add(self, contract: LaborContract) -> None:
        self._contracts.append(contract)

    def purge(self) -> int:
        """Drop contracts that are no longer valid.

        Returns:
            Number of contracts removed.
        """
        before = len(self._contracts)
        self._contracts = [c for c in self._contracts if c.is_valid]
        return before - len(self._contracts)

    def lay_off(self, target: int) -> list[LaborContract]:
        """Breach the most recent contracts until *target* remain.

        Returns:
            The breached contracts, most recent first.
        """
        target = max(target, 0)
        removed: list[LaborContract] = []
        while len(self._contracts) > target:
            contract = self._contracts.pop()
            contract.breach()
            removed.append(contract)
        return removed

    @property
    def wage_bill(self) -> int:
        return sum(c.wage for c in self._contracts)

    def __iter__(self) -> Iterator[LaborContract]:
        return iter(list(self._contracts))

    def __len__(self) -> int:
        return len(self._contracts)

    def __getitem__(self, index: int) -> LaborContract:
        return self._contracts[index]


class JobOffer:
    """An employer's offer of *vacancies* jobs at *wage*.

    Attributes:
        employer: The agent making the offer.
        wage: Offered wage.
        vacancies: Jobs still open this period.
    """

    def __init__(self, employer: Any) -> None:
        self.employer = employer
        self.wage = 0
        self.vacancies = 0

    def open(self) -> None:
        """Withdraw the offer at the start of a period."""
        self.wage = 0
        self.vacancies = 0

    def post(self, wage: int, vacancies: int) -> None:
        if vacancies < 0:
            msg = f"Vacancies cannot be negative: {vacancies}"
            raise AccountingError(msg)
        self.wage = wage
        self.vacancies = vacancies

    @property
    def is_empty(self) -> bool:
        return self.vacancies == 0

    def accept(self, worker: Any) -> LaborContract:
        """Fill one vacancy with *worker* and return the new contract."""
        if self.vacancies < 1:
            msg = f"No vacancy left at {self.employer!r}"
            raise AccountingError(msg)
        contract = self.employer.new_labor_contract(worker)
        self.vacancies -= 1
        return contract

    def __repr__(self) -> str:
        return f"JobOffer(wage={self.wage}, vacancies={self.vacancies})"
