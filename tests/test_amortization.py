"""Tests for the amortization engine."""

import re
from dataclasses import replace
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from microfin.clock import FixedClock
from microfin.config import ScheduleConfig
from microfin.engine import AmortizationEngine, round_cents, split_evenly
from microfin.exceptions import InvalidAmountError, InvalidEntityStateError
from microfin.models import InstallmentStatus, Loan, LoanProgram, LoanStatus, Payment


class TestRounding:
    """Tests for cent rounding and even splits."""

    def test_round_half_up(self) -> None:
        assert round_cents(Decimal("0.125")) == Decimal("0.13")
        assert round_cents(Decimal("0.135")) == Decimal("0.14")
        assert round_cents(Decimal("2.004")) == Decimal("2.00")

    def test_even_split(self) -> None:
        assert split_evenly(Decimal("40000"), 8) == [Decimal("5000")] * 8

    def test_last_share_absorbs_drift(self) -> None:
        shares = split_evenly(Decimal("1000"), 3)
        assert shares == [Decimal("333.33"), Decimal("333.33"), Decimal("333.34")]
        assert sum(shares) == Decimal("1000")

    def test_half_up_share(self) -> None:
        shares = split_evenly(Decimal("1"), 8)
        assert shares[:7] == [Decimal("0.13")] * 7
        assert shares[7] == Decimal("0.09")


class TestBuildSchedule:
    """Tests for AmortizationEngine.build_schedule."""

    def test_standard_small_loan(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        """An unpaid 8-week loan before its first due date is all pending."""
        schedule = engine.build_schedule(small_loan, Decimal("0"))

        assert len(schedule) == 8
        for inst in schedule:
            assert inst.principal_amount == Decimal("5000.00")
            assert inst.interest_amount == Decimal("500.00")
            assert inst.total_amount == Decimal("5500.00")
            assert inst.status == InstallmentStatus.PENDING
        assert schedule[0].due_date == date(2024, 1, 8)
        assert [i.installment_number for i in schedule] == list(range(1, 9))

    def test_due_date_cadence(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        schedule = engine.build_schedule(small_loan)
        for inst in schedule:
            assert inst.due_date == small_loan.issue_date + timedelta(days=7 * inst.installment_number)

    def test_cumulative_due(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        schedule = engine.build_schedule(small_loan)
        assert [i.cumulative_due for i in schedule] == [Decimal("5500") * n for n in range(1, 9)]

    @pytest.mark.parametrize("program", ["small_loan", "big_loan", None])
    @pytest.mark.parametrize(
        "principal,interest",
        [
            ("40000", "4000"),
            ("1000", "150"),
            ("12345.67", "1851.85"),
            ("999.99", "200.01"),
            ("250000", "50000"),
        ],
    )
    def test_totals_are_exact(
        self, engine: AmortizationEngine, small_loan: Loan, program, principal: str, interest: str
    ) -> None:
        loan = replace(
            small_loan,
            principal=Decimal(principal),
            interest_disbursed=Decimal(interest),
            program=program,
        )
        schedule = engine.build_schedule(loan)

        assert sum(i.principal_amount for i in schedule) == Decimal(principal)
        assert sum(i.interest_amount for i in schedule) == Decimal(interest)
        assert schedule[-1].cumulative_due == Decimal(principal) + Decimal(interest)

    def test_rounding_absorbed_by_last_installment(
        self, engine: AmortizationEngine, small_loan: Loan
    ) -> None:
        loan = replace(small_loan, principal=Decimal("1000"), interest_disbursed=Decimal("100"), program="big_loan")
        schedule = engine.build_schedule(loan)

        assert len(schedule) == 12
        assert all(i.principal_amount == Decimal("83.33") for i in schedule[:-1])
        assert schedule[-1].principal_amount == Decimal("1000") - Decimal("83.33") * 11
        assert schedule[-1].interest_amount == Decimal("100") - Decimal("8.33") * 11

    def test_two_periods_paid(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        """Paying exactly two periods' worth settles installments 1 and 2."""
        schedule = engine.build_schedule(small_loan, Decimal("11000"))

        assert [i.status for i in schedule[:2]] == [InstallmentStatus.PAID] * 2
        assert all(i.status == InstallmentStatus.PENDING for i in schedule[2:])

    def test_overdue_after_due_date(self, clock: FixedClock, small_loan: Loan) -> None:
        clock.advance(days=17)  # 2024-01-20
        engine = AmortizationEngine(clock=clock)
        schedule = engine.build_schedule(small_loan, Decimal("5500"))

        assert schedule[0].status == InstallmentStatus.PAID
        assert schedule[1].status == InstallmentStatus.OVERDUE
        assert all(i.status == InstallmentStatus.PENDING for i in schedule[2:])

    def test_due_today_is_not_overdue(self, small_loan: Loan) -> None:
        engine = AmortizationEngine(clock=FixedClock(datetime(2024, 1, 8, 18, 0)))
        schedule = engine.build_schedule(small_loan, Decimal("0"))
        assert schedule[0].status == InstallmentStatus.PENDING

    def test_partial_payment_does_not_settle(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        schedule = engine.build_schedule(small_loan, Decimal("5499.99"))
        assert schedule[0].status == InstallmentStatus.PENDING

    def test_lump_payment_settles_covered_periods(
        self, engine: AmortizationEngine, small_loan: Loan
    ) -> None:
        schedule = engine.build_schedule(small_loan, Decimal("17000"))
        assert [i.status for i in schedule[:4]] == [InstallmentStatus.PAID] * 3 + [InstallmentStatus.PENDING]

    @pytest.mark.parametrize("paid", ["0", "5500", "8000", "16500", "43999.99", "44000", "50000"])
    def test_paid_statuses_are_a_prefix(self, clock: FixedClock, small_loan: Loan, paid: str) -> None:
        clock.advance(days=40)
        engine = AmortizationEngine(clock=clock)
        statuses = [i.status for i in engine.build_schedule(small_loan, Decimal(paid))]

        paid_count = statuses.count(InstallmentStatus.PAID)
        assert statuses[:paid_count] == [InstallmentStatus.PAID] * paid_count
        assert InstallmentStatus.PAID not in statuses[paid_count:]

    def test_defaults_to_loan_total_paid(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        loan = replace(small_loan, total_paid=Decimal("5500"))
        assert engine.build_schedule(loan)[0].status == InstallmentStatus.PAID

    def test_program_period_counts(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        assert len(engine.build_schedule(replace(small_loan, program=LoanProgram.BIG_LOAN))) == 12
        assert len(engine.build_schedule(replace(small_loan, program="microenterprise"))) == 8
        assert len(engine.build_schedule(replace(small_loan, program=None))) == 8

    def test_custom_program_rules(self, clock: FixedClock, small_loan: Loan) -> None:
        engine = AmortizationEngine(clock=clock, config=ScheduleConfig(program_periods={"small_loan": 4}))
        schedule = engine.build_schedule(small_loan)
        assert len(schedule) == 4
        assert schedule[0].principal_amount == Decimal("10000")


class TestRecordPayment:
    """Tests for AmortizationEngine.record_payment."""

    def test_valid_payment(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        payment = engine.record_payment(small_loan, 1, "5500")

        assert isinstance(payment, Payment)
        assert payment.loan_id == "loan-001"
        assert payment.installment_number == 1
        assert payment.amount == Decimal("5500")
        assert payment.payment_date == date(2024, 1, 3)
        assert payment.notes == "Payment for installment #1"
        assert re.fullmatch(r"PAY-\d+-[0-9A-F]{6}", payment.payment_reference)

    def test_partial_payment_allowed(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        payment = engine.record_payment(small_loan, 3, Decimal("100.50"), notes="cash at branch")
        assert payment.amount == Decimal("100.50")
        assert payment.notes == "cash at branch"

    def test_references_are_unique(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        refs = {engine.record_payment(small_loan, 1, 10).payment_reference for _ in range(20)}
        assert len(refs) == 20

    @pytest.mark.parametrize("amount", [0, "-1", Decimal("-0.01")])
    def test_non_positive_amount(self, engine: AmortizationEngine, small_loan: Loan, amount) -> None:
        with pytest.raises(InvalidAmountError, match="greater than 0"):
            engine.record_payment(small_loan, 1, amount)

    def test_exceeds_installment_total(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        with pytest.raises(InvalidAmountError, match="exceeds the amount owed"):
            engine.record_payment(small_loan, 1, "5500.01")

    def test_exceeds_current_balance(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        loan = replace(small_loan, current_balance=Decimal("100"))
        with pytest.raises(InvalidAmountError, match="outstanding balance"):
            engine.record_payment(loan, 8, "200")

    def test_derived_balance_when_column_empty(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        """A NULL balance column falls back to contractual total minus paid."""
        loan = replace(small_loan, total_paid=Decimal("43000"), current_balance=None)
        with pytest.raises(InvalidAmountError, match=r"outstanding balance \(1000\.00\)"):
            engine.record_payment(loan, 8, "1500")

        assert engine.record_payment(loan, 8, "1000").amount == Decimal("1000")

    def test_fully_paid_loan_without_balance_column(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        loan = replace(small_loan, total_paid=Decimal("44000"), current_balance=None)
        with pytest.raises(InvalidAmountError, match="outstanding balance"):
            engine.record_payment(loan, 8, "5500")

    @pytest.mark.parametrize("number", [0, 9, -1])
    def test_unknown_installment(self, engine: AmortizationEngine, small_loan: Loan, number: int) -> None:
        with pytest.raises(InvalidAmountError, match="no installment"):
            engine.record_payment(small_loan, number, "100")

    def test_error_is_invalid_state(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        with pytest.raises(InvalidEntityStateError):
            engine.record_payment(small_loan, 1, 0)


class TestApplyPayment:
    """Tests for AmortizationEngine.apply_payment."""

    def test_reduces_balance(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        payment = engine.record_payment(small_loan, 1, "5500")
        updated = engine.apply_payment(small_loan, payment)

        assert updated.total_paid == Decimal("5500")
        assert updated.current_balance == Decimal("38500.00")
        assert updated.status == LoanStatus.ACTIVE.value
        assert small_loan.total_paid == Decimal("0")

    def test_final_payment_repays_loan(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        loan = replace(small_loan, total_paid=Decimal("38500"), current_balance=Decimal("5500"))
        updated = engine.apply_payment(loan, engine.record_payment(loan, 8, "5500"))

        assert updated.current_balance == Decimal("0")
        assert updated.status == LoanStatus.REPAID.value


class TestQuote:
    """Tests for AmortizationEngine.quote."""

    def test_small_loan(self, engine: AmortizationEngine) -> None:
        quote = engine.quote(10000, "small_loan")

        assert quote.interest_rate == Decimal("0.15")
        assert quote.interest_amount == Decimal("1500.00")
        assert quote.processing_fee == Decimal("600.00")
        assert quote.total_disbursed == Decimal("12100.00")
        assert quote.repayment_weeks == 8

    def test_big_loan(self, engine: AmortizationEngine) -> None:
        quote = engine.quote("100000", LoanProgram.BIG_LOAN)

        assert quote.program == "big_loan"
        assert quote.interest_amount == Decimal("20000.00")
        assert quote.repayment_weeks == 12

    def test_unknown_program_uses_defaults(self, engine: AmortizationEngine) -> None:
        quote = engine.quote("1000", "seasonal")
        assert quote.interest_rate == Decimal("0.15")
        assert quote.repayment_weeks == 8


class TestSummarize:
    """Tests for AmortizationEngine.summarize."""

    def test_with_overdue(self, clock: FixedClock, small_loan: Loan) -> None:
        clock.advance(days=17)  # 2024-01-20
        engine = AmortizationEngine(clock=clock)
        summary = engine.summarize(replace(small_loan, total_paid=Decimal("5500")))

        assert summary.installments == 8
        assert summary.paid == 1
        assert summary.overdue == 1
        assert summary.pending == 6
        assert summary.amount_overdue == Decimal("5500.00")
        assert summary.total_contractual == Decimal("44000.00")
        assert summary.outstanding == Decimal("38500.00")
        assert summary.next_due_date == date(2024, 1, 15)

    def test_nothing_overdue(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        summary = engine.summarize(small_loan)
        assert summary.amount_overdue == Decimal("0")
        assert summary.next_due_date == date(2024, 1, 8)

    def test_fully_paid(self, engine: AmortizationEngine, small_loan: Loan) -> None:
        summary = engine.summarize(replace(small_loan, total_paid=Decimal("44000")))
        assert summary.paid == 8
        assert summary.outstanding == Decimal("0")
        assert summary.next_due_date is None
