"""Bank agent for the ABM.

A bank is the sole creator of accounts.  It keeps the ledger of cheques
drawn on its accounts until they are deposited, and books every unit of
money it creates by lending or destroys through repayments, so that its
balance sheet can be checked at the end of each period.
"""

from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING

from circuit_abm.abm.agents.base import BaseAgent, merge_keys, phase
from circuit_abm.abm.errors import AccountingError, ConfigurationError
from circuit_abm.abm.money import Account, Amount, Cheque

if TYPE_CHECKING:
    from typing import Any

    import numpy as np

    from circuit_abm.abm.sector import Sector

logger = logging.getLogger(__name__)

AMORTIZATION_POLICIES = ("none", "bullet")


class Bank(BaseAgent, role="bank"):
    """A bank agent.

    Attributes:
        account: The bank's own account at a parent bank, or ``None`` when
            the bank is the monetary root.
        lending_enabled: Whether account holders may borrow.
        amortization: Name of the debt recovery policy.
    """

    prefix = "bank"
    data_keys = merge_keys(
        (
            "accounts",
            "deposits",
            "loans",
            "outstandingCheques",
            "moneyCreated",
            "moneyDestroyed",
            "repayments",
        )
    )

    def __init__(
        self,
        sector: Sector,
        agent_id: str,
        *,
        rng: np.random.Generator,
    ) -> None:
        super().__init__(sector, agent_id, rng=rng)
        params = self.parameters
        self.lending_enabled = params.get_bool("lending.enabled", True)
        self.amortization = params.get_str("lending.amortization", "none")
        if self.amortization not in AMORTIZATION_POLICIES:
            msg = (
                f"Unknown amortization policy '{self.amortization}'. "
                f"Available: {', '.join(AMORTIZATION_POLICIES)}"
            )
            raise ConfigurationError(msg, agent=self.agent_id)

        self._accounts: dict[int, Account] = {}
        self._outstanding: dict[int, Cheque] = {}
        self._numbers = itertools.count(1)
        self._created = Amount()
        self._destroyed = Amount()
        self._transfers_in = Amount()
        self._transfers_out = Amount()
        self._repayments = Amount()

        self.account: Account | None = None
        if params.has("financing.bank_sector"):
            parent = self.select(params.get_str("financing.bank_sector"), 1)[0]
            if parent is None or parent is self or not isinstance(parent, Bank):
                msg = "A bank needs another bank as its parent"
                raise ConfigurationError(msg, agent=self.agent_id)
            self.account = parent.open_account(self)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def open_account(self, holder: Any) -> Account:
        """Open a zero-balance account for *holder*.

        Raises:
            AccountingError: If *holder* already has an account here.
        """
        if id(holder) in self._accounts:
            msg = f"{holder!r} already has an account at {self!r}"
            raise AccountingError(msg, agent=self.agent_id)
        account = Account(holder, self)
        self._accounts[id(holder)] = account
        return account

    @property
    def accounts(self) -> list[Account]:
        return list(self._accounts.values())

    # ------------------------------------------------------------------
    # Books
    # ------------------------------------------------------------------

    def register_cheque(self, drawer: Account, payee: Any, amount: int) -> Cheque:
        """Record a cheque drawn on one of this bank's accounts."""
        if drawer.bank is not self:
            msg = f"{drawer!r} is not managed by {self!r}"
            raise AccountingError(msg, agent=self.agent_id)
        cheque = Cheque(next(self._numbers), drawer, payee, amount)
        self._outstanding[cheque.number] = cheque
        return cheque

    def clear_cheque(self, cheque: Cheque, destination: Bank) -> None:
        """Settle an outstanding cheque deposited at *destination*."""
        if self._outstanding.get(cheque.number) is not cheque:
            msg = f"Cheque #{cheque.number} of {cheque.amount} is not outstanding"
            raise AccountingError(msg, agent=self.agent_id)
        del self._outstanding[cheque.number]
        if destination is not self:
            self._transfers_out.plus(cheque.amount)
            destination._transfers_in.plus(cheque.amount)

    def create_money(self, amount: int) -> None:
        self._created.plus(amount)

    def destroy_money(self, amount: int) -> None:
        self._destroyed.plus(amount)
        self._repayments.plus(amount)

    @property
    def deposits(self) -> int:
        return sum(a.amount for a in self._accounts.values())

    @property
    def loans(self) -> int:
        return sum(a.debt for a in self._accounts.values())

    @property
    def outstanding_cheques(self) -> int:
        return sum(c.amount for c in self._outstanding.values())

    @property
    def money_created(self) -> int:
        return self._created.value

    @property
    def money_destroyed(self) -> int:
        return self._destroyed.value

    def check_consistency(self) -> None:
        """Verify that no money appeared or vanished.

        Raises:
            AccountingError: If deposits and outstanding cheques differ from
                the money created by lending net of repayments and transfers.
        """
        held = self.deposits + self.outstanding_cheques
        issued = (
            self._created.value
            - self._destroyed.value
            + self._transfers_in.value
            - self._transfers_out.value
        )
        if held != issued:
            msg = f"Books do not balance: {held} held against {issued} issued"
            raise AccountingError(msg, agent=self.agent_id)
        debt = sum(
            loan.outstanding for a in self._accounts.values() for loan in a.loans
        )
        if debt != self.loans:
            msg = f"Loan ledger {debt} differs from recorded debt {self.loans}"
            raise AccountingError(msg, agent=self.agent_id)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    @phase("debt_recovery")
    def debt_recovery(self) -> None:
        """Apply the amortization policy to every account."""
        if self.amortization == "none":
            return
        for account in self.accounts:
            self._recover_bullet(account)

    def _recover_bullet(self, account: Account) -> None:
        """Age loans; repay matured ones as far as the balance allows."""
        for loan in list(account.loans):
            loan.remaining_term -= 1
            if not loan.is_matured:
                continue
            payment = min(account.amount, loan.outstanding)
            if payment > 0:
                account.repay(payment, loan)
            if loan.outstanding > 0:
                logger.debug(
                    "%r rolls over %d of a matured loan",
                    account.owner,
                    loan.outstanding,
                )
                loan.remaining_term = loan.term

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self, period: int) -> None:
        super().open(period)
        self._repayments.cancel()

    def close(self) -> None:
        self.dataset.put("accounts", len(self._accounts))
        self.dataset.put("deposits", self.deposits)
        self.dataset.put("loans", self.loans)
        self.dataset.put("outstandingCheques", self.outstanding_cheques)
        self.dataset.put("moneyCreated", self._created.value)
        self.dataset.put("moneyDestroyed", self._destroyed.value)
        self.dataset.put("repayments", self._repayments.value)
        super().close()
