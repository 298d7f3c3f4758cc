"""Flat-interest weekly amortization engine."""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from microfin.clock import Clock, SystemClock
from microfin.config import ScheduleConfig
from microfin.exceptions import InvalidAmountError
from microfin.models import (
    Installment,
    InstallmentStatus,
    Loan,
    LoanQuote,
    LoanStatus,
    Payment,
    ScheduleSummary,
)
from microfin.models.base import CENT, enum_value, to_decimal

logger = logging.getLogger(__name__)


def round_cents(value: Decimal) -> Decimal:
    """Round half-up to two decimal places."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def split_evenly(total: Decimal, periods: int) -> list[Decimal]:
    """Split ``total`` into ``periods`` cent-rounded shares that sum exactly to it.

    Every share but the last is ``round(total / periods)``; the last one
    absorbs the rounding drift.
    """
    share = round_cents(total / periods)
    last = total - share * (periods - 1)
    return [share] * (periods - 1) + [last]


class AmortizationEngine:
    """Derive installment schedules and validate payments for weekly loans.

    The engine holds no mutable state: schedules are recomputed from the
    loan and the amount paid so far each time they are requested.

    Parameters
    ----------
    clock : Clock | None
        Source of "today" for overdue classification and payment dates.
    config : ScheduleConfig | None
        Program period counts, interest and fee rates.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        config: ScheduleConfig | None = None,
    ) -> None:
        self.clock = clock or SystemClock()
        self.config = config or ScheduleConfig()

    def period_count(self, program: Any) -> int:
        """Number of weekly periods for a program code.

        Unknown or missing codes fall back to ``config.default_periods`` so a
        schedule can always be rendered.
        """
        code = enum_value(program)
        periods = self.config.program_periods.get(code)
        if periods is None:
            logger.debug("Unknown loan program %r, using %d periods", code, self.config.default_periods)
            return self.config.default_periods
        return periods

    def build_schedule(self, loan: Loan, total_paid: Decimal | None = None) -> list[Installment]:
        """Build the ordered installment schedule of a loan.

        Parameters
        ----------
        loan : Loan
            Loan terms (principal, disbursed interest, program, issue date).
        total_paid : Decimal | None
            Cumulative amount paid; defaults to ``loan.total_paid``.

        Returns
        -------
        list[Installment]
            Exactly N installments whose principal and interest shares sum
            to the loan's principal and interest.

        Notes
        -----
        Settlement status uses the cumulative amount paid against the
        cumulative amount due through each period, not oldest-first
        allocation. A lump payment therefore marks every period it covers
        as paid regardless of which installment it was recorded against.
        """
        paid = to_decimal(loan.total_paid if total_paid is None else total_paid)
        periods = self.period_count(loan.program)
        today = self.clock.now().date()

        principal_shares = split_evenly(loan.principal, periods)
        interest_shares = split_evenly(loan.interest_disbursed, periods)

        schedule: list[Installment] = []
        cumulative_due = Decimal("0")
        for i in range(1, periods + 1):
            principal = principal_shares[i - 1]
            interest = interest_shares[i - 1]
            total = principal + interest
            cumulative_due += total
            due_date = loan.issue_date + timedelta(days=self.config.days_per_period * i)

            if paid >= cumulative_due:
                status = InstallmentStatus.PAID
            elif due_date < today:
                status = InstallmentStatus.OVERDUE
            else:
                status = InstallmentStatus.PENDING

            schedule.append(
                Installment(
                    loan_id=loan.loan_id,
                    installment_number=i,
                    due_date=due_date,
                    principal_amount=principal,
                    interest_amount=interest,
                    total_amount=total,
                    cumulative_due=cumulative_due,
                    status=status,
                )
            )

        return schedule

    def record_payment(
        self,
        loan: Loan,
        installment_number: int,
        amount: Decimal | int | str,
        notes: str | None = None,
    ) -> Payment:
        """Validate and build a payment against one installment.

        The returned ``Payment`` is not persisted; the caller stores it and
        re-derives the schedule.

        Raises
        ------
        InvalidAmountError
            If the amount is not positive, exceeds the installment's total
            due or the loan's outstanding balance, or the installment does
            not exist.
        """
        amount = to_decimal(amount)
        if amount <= 0:
            raise InvalidAmountError(f"Payment amount must be greater than 0, got {amount}")

        schedule = self.build_schedule(loan)
        if not 1 <= installment_number <= len(schedule):
            raise InvalidAmountError(
                f"Loan {loan.loan_id} has no installment #{installment_number} "
                f"(schedule has {len(schedule)})"
            )

        installment = schedule[installment_number - 1]
        if amount > installment.total_amount:
            raise InvalidAmountError(
                f"Payment amount {amount} exceeds the amount owed for installment "
                f"#{installment_number} ({installment.total_amount})"
            )

        if amount > loan.outstanding:
            raise InvalidAmountError(
                f"Payment amount {amount} exceeds the current outstanding balance "
                f"({loan.outstanding})"
            )

        now = self.clock.now()
        return Payment(
            loan_id=loan.loan_id,
            installment_number=installment_number,
            amount=amount,
            payment_date=now.date(),
            payment_reference=f"PAY-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:6].upper()}",
            notes=notes or f"Payment for installment #{installment_number}",
            created_at=now,
        )

    def apply_payment(self, loan: Loan, payment: Payment) -> Loan:
        """Return the loan with a payment folded into its running totals.

        A loan whose balance reaches zero becomes ``repaid``.
        """
        balance = loan.outstanding - payment.amount
        status = LoanStatus.REPAID.value if balance <= 0 else loan.status
        return replace(
            loan,
            total_paid=loan.total_paid + payment.amount,
            current_balance=balance,
            status=status,
        )

    def quote(self, principal: Decimal | int | str, program: Any) -> LoanQuote:
        """Origination terms for a principal under a loan program."""
        principal = to_decimal(principal)
        code = enum_value(program)
        rate = self.config.interest_rates.get(code, self.config.default_interest_rate)

        interest = round_cents(principal * rate)
        fee = round_cents(principal * self.config.processing_fee_rate)
        return LoanQuote(
            program=code,
            principal=principal,
            interest_rate=rate,
            repayment_weeks=self.period_count(code),
            processing_fee=fee,
            interest_amount=interest,
            total_disbursed=round_cents(principal + interest + fee),
        )

    def summarize(self, loan: Loan, schedule: list[Installment] | None = None) -> ScheduleSummary:
        """Aggregate a schedule into counts, overdue amount and next due date."""
        if schedule is None:
            schedule = self.build_schedule(loan)

        paid = [i for i in schedule if i.status == InstallmentStatus.PAID]
        overdue = [i for i in schedule if i.status == InstallmentStatus.OVERDUE]
        pending = [i for i in schedule if i.status == InstallmentStatus.PENDING]

        # Shortfall against what should have been paid by the last overdue period
        if overdue:
            amount_overdue = max(overdue[-1].cumulative_due - loan.total_paid, Decimal("0"))
        else:
            amount_overdue = Decimal("0")

        unpaid = overdue + pending
        next_due = min((i.due_date for i in unpaid), default=None)

        total = sum((i.total_amount for i in schedule), Decimal("0"))
        return ScheduleSummary(
            installments=len(schedule),
            paid=len(paid),
            pending=len(pending),
            overdue=len(overdue),
            amount_overdue=round_cents(amount_overdue),
            total_contractual=total,
            outstanding=max(total - loan.total_paid, Decimal("0")),
            next_due_date=next_due,
        )
