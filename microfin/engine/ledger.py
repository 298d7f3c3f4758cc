"""Persist payments and write-offs through a data-access collaborator."""

from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal

from microfin.engine.amortization import AmortizationEngine
from microfin.exceptions import EntityNotFoundError
from microfin.models import Installment, Loan, Payment
from microfin.store.base import DataAccess
from microfin.store.schema import LOAN_PAYMENTS, LOANS

logger = logging.getLogger(__name__)


class LoanLedger:
    """Loan-level actions a back-office operator triggers from a loan screen."""

    def __init__(self, store: DataAccess, engine: AmortizationEngine | None = None) -> None:
        self.store = store
        self.engine = engine or AmortizationEngine()

    def get_loan(self, loan_id: str) -> Loan:
        """Load a loan, including soft-deleted ones."""
        rows = self.store.query(LOANS, {"id": loan_id})
        if not rows:
            raise EntityNotFoundError(f"Loan {loan_id} not found")
        return Loan.from_row(rows[0], clock=self.engine.clock)

    def schedule_for(self, loan_id: str) -> list[Installment]:
        """Derive the current schedule of a stored loan."""
        return self.engine.build_schedule(self.get_loan(loan_id))

    def payments_for(self, loan_id: str) -> list[Payment]:
        """Payments recorded against a loan, oldest first."""
        rows = self.store.query(LOAN_PAYMENTS, {"loan_id": loan_id})
        payments = [Payment.from_row(row) for row in rows]
        return sorted(payments, key=lambda p: (p.payment_date, p.installment_number))

    def post_payment(
        self,
        loan_id: str,
        installment_number: int,
        amount: Decimal | int | str,
        notes: str | None = None,
    ) -> Payment:
        """Validate, store and apply a payment against one installment.

        Raises
        ------
        EntityNotFoundError
            If the loan does not exist.
        InvalidAmountError
            If the engine rejects the amount.
        StorageError
            If the payment or the loan update cannot be written.
        """
        loan = self.get_loan(loan_id)
        payment = self.engine.record_payment(loan, installment_number, amount, notes=notes)

        self.store.insert(LOAN_PAYMENTS, payment.to_row())
        updated = self.engine.apply_payment(loan, payment)
        self.store.update(
            LOANS,
            {"id": loan_id},
            {
                "total_paid": updated.total_paid,
                "current_balance": updated.current_balance,
                "status": updated.status,
            },
        )

        logger.info(
            "Recorded %s against loan %s installment #%d (ref %s, balance %s, status %s)",
            payment.amount,
            loan_id,
            installment_number,
            payment.payment_reference,
            updated.current_balance,
            updated.status,
        )
        return payment

    def write_off(self, loan_id: str, deleted_by: str | None = None) -> Loan:
        """Soft-delete a loan, keeping the row and its dependents in place.

        Raises
        ------
        EntityNotFoundError
            If the loan does not exist or is already soft-deleted.
        """
        loan = self.get_loan(loan_id)
        if loan.is_deleted:
            raise EntityNotFoundError(f"Loan {loan_id} not found or already deleted")

        now = self.engine.clock.now()
        self.store.update(
            LOANS,
            {"id": loan_id},
            {"is_deleted": True, "deleted_at": now, "deleted_by": deleted_by},
        )
        logger.info("Loan %s written off by %s", loan_id, deleted_by or "system")
        return replace(loan, is_deleted=True, deleted_at=now, deleted_by=deleted_by)
