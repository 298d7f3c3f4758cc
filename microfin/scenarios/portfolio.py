"""Group lending portfolio scenario."""

from __future__ import annotations

import logging
import random
from collections import Counter
from dataclasses import replace
from datetime import datetime, time
from decimal import Decimal
from typing import Any

from microfin.clock import Clock, SystemClock
from microfin.config import ScheduleConfig
from microfin.engine.amortization import AmortizationEngine
from microfin.generators import GroupGenerator, LoanGenerator, MemberGenerator
from microfin.models import Loan, LoanStatus, Payment
from microfin.store import DataAccess, InMemoryDataStore
from microfin.store.schema import (
    COMMUNICATION_LOGS,
    GROUPS,
    LOAN_PAYMENTS,
    LOANS,
    MEMBERS,
    REALIZABLE_ASSETS,
    TRANSACTIONS,
)

logger = logging.getLogger(__name__)


class PortfolioScenario:
    """Seed a group-lending portfolio into any ``DataAccess``.

    This scenario creates:
    - Lending groups, each with a member designated as contact person
    - Members, a share of whom hold loans
    - Loans with repayments driven by payer behaviour (good, late, defaulter)
    - Communication logs, collateral assets and disbursement transactions
    - Written-off (soft-deleted) loans for some defaulters
    """

    ASSET_KINDS = ["Motorcycle", "Dairy cow", "Sewing machine", "Title deed", "Market stall"]

    def __init__(
        self,
        num_groups: int = 5,
        members_per_group: int = 10,
        loan_penetration: float = 0.6,
        write_off_rate: float = 0.5,
        seed: int | None = None,
        *,
        store: DataAccess | None = None,
        clock: Clock | None = None,
        schedule_config: ScheduleConfig | None = None,
    ) -> None:
        """Initialize the portfolio scenario.

        Parameters
        ----------
        num_groups : int
            Number of lending groups.
        members_per_group : int
            Members generated per group.
        loan_penetration : float
            Share of members holding a loan (0.0 to 1.0).
        write_off_rate : float
            Share of defaulted loans that are written off.
        seed : int | None
            Random seed for reproducibility.
        store : DataAccess | None
            Destination store; an ``InMemoryDataStore`` when omitted.
        clock : Clock | None
            Reference clock for issue dates and overdue status.
        schedule_config : ScheduleConfig | None
            Loan program rules.
        """
        self.num_groups = num_groups
        self.members_per_group = members_per_group
        self.loan_penetration = loan_penetration
        self.write_off_rate = write_off_rate
        self.seed = seed

        if seed is not None:
            random.seed(seed)

        self.store = store if store is not None else InMemoryDataStore()
        self.clock = clock or SystemClock()
        self.engine = AmortizationEngine(clock=self.clock, config=schedule_config)

        self._group_gen = GroupGenerator(seed=seed, clock=self.clock)
        self._member_gen = MemberGenerator(seed=seed, clock=self.clock)
        self._loan_gen = LoanGenerator(seed=seed, engine=self.engine)

        self.loans: list[Loan] = []
        self.payments: list[Payment] = []

    def generate(self) -> DataAccess:
        """Generate and store the whole portfolio.

        Returns
        -------
        DataAccess
            The store the portfolio was written to.
        """
        logger.info(
            "Starting portfolio scenario: %d groups x %d members, %.0f%% with loans",
            self.num_groups,
            self.members_per_group,
            self.loan_penetration * 100,
        )

        member_ids: list[str] = []
        for _ in range(self.num_groups):
            group = self._group_gen.generate(loan_officer_id=f"officer-{random.randint(1, 5)}")
            self.store.insert(GROUPS, group.to_row())

            members = list(self._member_gen.generate_batch(self.members_per_group, group.group_id))
            for member in members:
                self.store.insert(MEMBERS, member.to_row())
                member_ids.append(member.member_id)

            if members:
                self.store.update(
                    GROUPS, {"id": group.group_id}, {"contact_person_id": members[0].member_id}
                )

        logger.info("Generated %d members in %d groups", len(member_ids), self.num_groups)

        borrowers = random.sample(member_ids, int(len(member_ids) * self.loan_penetration))
        for member_id in borrowers:
            self._generate_loan(member_id)

        logger.info(
            "Generated %d loans with %d payments (%d written off)",
            len(self.loans),
            len(self.payments),
            sum(1 for loan in self.loans if loan.is_deleted),
        )
        return self.store

    def _generate_loan(self, member_id: str) -> None:
        loan = self._loan_gen.generate(member_id)
        loan, payments = self._loan_gen.generate_repayments(loan)

        if loan.status == LoanStatus.DEFAULTED.value and random.random() < self.write_off_rate:
            loan = replace(
                loan, is_deleted=True, deleted_at=self.clock.now(), deleted_by="credit-committee"
            )

        self.store.insert(LOANS, loan.to_row())
        for payment in payments:
            self.store.insert(LOAN_PAYMENTS, payment.to_row())

        disbursed_at = datetime.combine(loan.issue_date, time(10, 0))
        self.store.insert(
            TRANSACTIONS,
            {
                "loan_id": loan.loan_id,
                "amount": loan.principal,
                "description": "Loan disbursement",
                "created_at": disbursed_at,
            },
        )
        self.store.insert(
            COMMUNICATION_LOGS,
            {
                "loan_id": loan.loan_id,
                "member_id": member_id,
                "message": f"Your loan of KES {loan.principal} has been disbursed.",
                "created_at": disbursed_at,
            },
        )
        if loan.principal >= Decimal("50000"):
            self.store.insert(
                REALIZABLE_ASSETS,
                {
                    "loan_id": loan.loan_id,
                    "member_id": member_id,
                    "description": random.choice(self.ASSET_KINDS),
                    "value": loan.principal * Decimal("1.5"),
                },
            )

        self.loans.append(loan)
        self.payments.extend(payments)

    def get_portfolio_summary(self) -> dict[str, Any]:
        """Get summary statistics for the generated portfolio.

        Returns
        -------
        dict[str, Any]
            Counts per table and loan status, and money totals.
        """
        live = [loan for loan in self.loans if not loan.is_deleted]
        statuses = Counter(loan.status for loan in self.loans)

        overdue_loans = 0
        for loan in live:
            if self.engine.summarize(loan).overdue:
                overdue_loans += 1

        return {
            "tables": self.store.summary() if hasattr(self.store, "summary") else {},
            "total_loans": len(self.loans),
            "written_off": len(self.loans) - len(live),
            "by_status": dict(statuses),
            "overdue_loans": overdue_loans,
            "total_principal": sum((loan.principal for loan in self.loans), Decimal("0")),
            "total_collected": sum((p.amount for p in self.payments), Decimal("0")),
            "outstanding": sum((loan.outstanding for loan in live), Decimal("0")),
        }
