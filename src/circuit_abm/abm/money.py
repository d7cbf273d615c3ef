"""Monetary primitives: amounts, cheques, loans and bank accounts.

Money only moves through cheques.  Issuing a cheque debits the drawer at
once and registers the cheque as outstanding with the drawer's bank;
depositing it clears the cheque and credits the payee.  The only net
creation of money is :meth:`Account.borrow` and the only net destruction is
:meth:`Account.repay`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from numbers import Integral
from typing import TYPE_CHECKING

from circuit_abm.abm.errors import AccountingError, CapabilityError, InsolvencyError
from circuit_abm.abm.protocols import AccountHolder

if TYPE_CHECKING:
    from typing import Any

    from circuit_abm.abm.agents.bank import Bank


def _check_amount(amount: Any, what: str) -> int:
    if isinstance(amount, bool) or not isinstance(amount, Integral):
        msg = f"{what} must be an integral amount, got {amount!r}"
        raise AccountingError(msg)
    if amount <= 0:
        msg = f"{what} must be positive, got {amount}"
        raise AccountingError(msg)
    return int(amount)


class Amount:
    """A non-negative integral quantity of money."""

    def __init__(self, value: int = 0) -> None:
        if value < 0:
            msg = f"Negative amount: {value}"
            raise AccountingError(msg)
        self._value = int(value)

    @property
    def value(self) -> int:
        return self._value

    def plus(self, n: int) -> None:
        if n < 0:
            msg = f"Cannot add a negative amount: {n}"
            raise AccountingError(msg)
        self._value += int(n)

    def minus(self, n: int) -> None:
        if n < 0:
            msg = f"Cannot subtract a negative amount: {n}"
            raise AccountingError(msg)
        if n > self._value:
            msg = f"Amount would become negative: {self._value} - {n}"
            raise AccountingError(msg)
        self._value -= int(n)

    def cancel(self) -> None:
        """Reset to zero."""
        self._value = 0

    def __int__(self) -> int:
        return self._value

    def __repr__(self) -> str:
        return f"Amount({self._value})"


@dataclass(frozen=True, eq=False)
class Cheque:
    """A single-use order to pay *amount* from *drawer* to *payee*.

    Cheques compare by identity: two cheques with the same fields are still
    two distinct payment orders.
    """

    number: int
    drawer: Account
    payee: Any
    amount: int


@dataclass(eq=False)
class Loan:
    """Debt contracted by an account.

    Attributes:
        principal: Amount originally borrowed.
        term: Contractual duration in periods.
        collateralized: Whether the loan is backed by collateral.
        remaining_term: Periods left before maturity.
        outstanding: Principal not yet repaid.
    """

    principal: int
    term: int
    collateralized: bool = False
    remaining_term: int = field(init=False)
    outstanding: int = field(init=False)

    def __post_init__(self) -> None:
        self.remaining_term = self.term
        self.outstanding = self.principal

    @property
    def is_matured(self) -> bool:
        return self.remaining_term <= 0


class Account:
    """A bank account owned by a single account holder.

    Accounts are created by :meth:`Bank.open_account` only.

    Attributes:
        owner: The account holder.
        bank: The bank managing this account.
        loans: Outstanding loans, oldest first.
    """

    def __init__(self, owner: Any, bank: Bank) -> None:
        self.owner = owner
        self.bank = bank
        self.loans: list[Loan] = []
        self._balance = Amount()
        self._debt = Amount()

    @property
    def amount(self) -> int:
        """Current balance."""
        return self._balance.value

    @property
    def debt(self) -> int:
        """Total outstanding debt."""
        return self._debt.value

    def issue_cheque(self, payee: Any, amount: int) -> Cheque:
        """Debit *amount* and return a cheque payable to *payee*.

        Raises:
            AccountingError: If *amount* is not a positive integer or exceeds
                the balance.
            CapabilityError: If *payee* holds no account to deposit into.
        """
        amount = _check_amount(amount, "Cheque amount")
        if not isinstance(payee, AccountHolder):
            msg = f"Cannot pay {payee!r}: it holds no bank account"
            raise CapabilityError(msg)
        if amount > self._balance.value:
            msg = (
                f"{self.owner!r} cannot issue a cheque of {amount}: "
                f"balance is {self._balance.value}"
            )
            raise AccountingError(msg)
        self._balance.minus(amount)
        return self.bank.register_cheque(self, payee, amount)

    def deposit(self, cheque: Cheque) -> None:
        """Credit the amount of *cheque*, which must be payable to the owner."""
        if cheque.payee is not self.owner:
            msg = f"Cheque payable to {cheque.payee!r} deposited by {self.owner!r}"
            raise AccountingError(msg)
        cheque.drawer.bank.clear_cheque(cheque, self.bank)
        self._balance.plus(cheque.amount)

    def borrow(self, amount: int, term: int, collateralized: bool = False) -> Loan:
        """Credit *amount* and record the same amount as debt.

        Raises:
            InsolvencyError: If the bank does not lend.
        """
        amount = _check_amount(amount, "Loan amount")
        if term < 1:
            msg = f"Loan term must be at least one period, got {term}"
            raise AccountingError(msg)
        if not self.bank.lending_enabled:
            msg = f"{self.owner!r} needs {amount} but {self.bank!r} does not lend"
            raise InsolvencyError(msg)
        loan = Loan(principal=amount, term=term, collateralized=collateralized)
        self.bank.create_money(amount)
        self._balance.plus(amount)
        self._debt.plus(amount)
        self.loans.append(loan)
        return loan

    def repay(self, amount: int, loan: Loan | None = None) -> None:
        """Repay *amount* of debt out of the balance.

        The repayment settles *loan* when given, otherwise the oldest loans
        first.
        """
        amount = _check_amount(amount, "Repayment")
        if amount > self._balance.value:
            msg = f"Repayment of {amount} exceeds balance {self._balance.value}"
            raise AccountingError(msg)
        if amount > self._debt.value:
            msg = f"Repayment of {amount} exceeds debt {self._debt.value}"
            raise AccountingError(msg)
        if loan is not None and amount > loan.outstanding:
            msg = f"Repayment of {amount} exceeds loan outstanding {loan.outstanding}"
            raise AccountingError(msg)

        targets = [loan] if loan is not None else list(self.loans)
        remaining = amount
        for target in targets:
            paid = min(remaining, target.outstanding)
            target.outstanding -= paid
            remaining -= paid
            if remaining == 0:
                break
        self.loans = [ln for ln in self.loans if ln.outstanding > 0]

        self._balance.minus(amount)
        self._debt.minus(amount)
        self.bank.destroy_money(amount)

    def __repr__(self) -> str:
        return f"Account(owner={self.owner!r}, amount={self.amount}, debt={self.debt})"
