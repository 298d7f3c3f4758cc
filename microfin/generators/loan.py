"""Loan and repayment generators."""

from __future__ import annotations

import random
from dataclasses import replace
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from microfin.engine.amortization import AmortizationEngine
from microfin.generators.base import BaseGenerator
from microfin.models import Loan, LoanProgram, LoanStatus, Payment


class LoanGenerator(BaseGenerator):
    """Generate synthetic loans and the payments made against them."""

    PROGRAMS = [LoanProgram.SMALL_LOAN, LoanProgram.BIG_LOAN]
    PROGRAM_WEIGHTS = [0.7, 0.3]

    # Principal ranges by program (KES, multiples of 1 000)
    PRINCIPAL_RANGES = {
        LoanProgram.SMALL_LOAN.value: (5, 50),
        LoanProgram.BIG_LOAN.value: (50, 300),
    }

    BEHAVIORS = ["good", "late", "defaulter"]

    def __init__(self, seed: int | None = None, engine: AmortizationEngine | None = None) -> None:
        self.engine = engine or AmortizationEngine()
        super().__init__(seed, clock=self.engine.clock)

    def generate(
        self,
        member_id: str,
        program: LoanProgram | str | None = None,
        issue_date: date | None = None,
    ) -> Loan:
        """Generate a freshly disbursed loan.

        Parameters
        ----------
        member_id : str
            Borrowing member.
        program : LoanProgram | str | None
            Loan program; random when omitted.
        issue_date : date | None
            Disbursement date; within the last 120 days when omitted.

        Returns
        -------
        Loan
            Active loan with nothing paid yet.
        """
        if program is None:
            program = random.choices(self.PROGRAMS, weights=self.PROGRAM_WEIGHTS, k=1)[0]
        code = getattr(program, "value", program)

        low, high = self.PRINCIPAL_RANGES.get(code, self.PRINCIPAL_RANGES[LoanProgram.SMALL_LOAN.value])
        principal = Decimal(random.randint(low, high) * 1000)
        quote = self.engine.quote(principal, code)

        if issue_date is None:
            issue_date = self.clock.now().date() - timedelta(days=random.randint(0, 120))

        return Loan(
            loan_id=self.fake.uuid4(),
            member_id=member_id,
            principal=principal,
            interest_disbursed=quote.interest_amount,
            program=code,
            issue_date=issue_date,
            total_paid=Decimal("0"),
            current_balance=principal + quote.interest_amount,
            status=LoanStatus.ACTIVE.value,
            created_at=datetime.combine(issue_date, time(9, 0)),
        )

    def generate_repayments(
        self,
        loan: Loan,
        behavior: str | None = None,
        reference_date: date | None = None,
    ) -> tuple[Loan, list[Payment]]:
        """Simulate repayments for every installment already due.

        ``good`` payers settle each installment within a few days, ``late``
        payers skip some installments, ``defaulter`` payers stop after the
        first few and end up ``defaulted`` after three misses in a row.

        Returns
        -------
        tuple[Loan, list[Payment]]
            The loan with totals and status updated, and its payments.
        """
        if behavior is None:
            behavior = random.choices(self.BEHAVIORS, weights=[0.75, 0.17, 0.08], k=1)[0]
        if reference_date is None:
            reference_date = self.clock.now().date()

        stop_after = random.randint(1, 4)
        payments: list[Payment] = []
        consecutive_missed = 0

        for inst in self.engine.build_schedule(loan, Decimal("0")):
            if inst.due_date > reference_date:
                break

            if behavior == "good":
                pays = True
            elif behavior == "late":
                pays = random.random() < 0.7
            else:  # defaulter
                pays = inst.installment_number <= stop_after

            if not pays:
                consecutive_missed += 1
                continue

            consecutive_missed = 0
            paid_on = min(inst.due_date + timedelta(days=random.randint(0, 4)), reference_date)
            payment = Payment(
                loan_id=loan.loan_id,
                installment_number=inst.installment_number,
                amount=inst.total_amount,
                payment_date=paid_on,
                payment_reference=f"PAY-{self.fake.uuid4()[:13].upper()}",
                notes=f"Payment for installment #{inst.installment_number}",
                created_at=datetime.combine(paid_on, time(12, 0)),
            )
            loan = self.engine.apply_payment(loan, payment)
            payments.append(payment)

        if consecutive_missed >= 3 and loan.status != LoanStatus.REPAID.value:
            loan = replace(loan, status=LoanStatus.DEFAULTED.value)

        return loan, payments
