"""Loan models for the microfinance domain."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from microfin.clock import Clock, SystemClock
from microfin.models.base import (
    enum_value,
    is_business_active,
    is_soft_deleted,
    is_terminal_status,
    to_date,
    to_datetime,
    to_decimal,
)
from microfin.models.enums import InstallmentStatus, LoanStatus


@dataclass
class Loan:
    """Disbursed credit line."""

    loan_id: str
    member_id: str
    principal: Decimal
    interest_disbursed: Decimal
    program: str | None  # small_loan, big_loan; anything else uses the default period count
    issue_date: date
    total_paid: Decimal = Decimal("0")
    current_balance: Decimal | None = None
    status: str = LoanStatus.ACTIVE.value
    is_deleted: bool = False
    deleted_at: datetime | None = None
    deleted_by: str | None = None
    created_at: datetime | None = None

    @property
    def total_contractual(self) -> Decimal:
        """Principal plus disbursed interest."""
        return self.principal + self.interest_disbursed

    @property
    def outstanding(self) -> Decimal:
        """Current balance, derived from payments when the column is empty."""
        if self.current_balance is not None:
            return self.current_balance
        return self.total_contractual - self.total_paid

    @property
    def is_terminal(self) -> bool:
        return is_terminal_status(self.status)

    @property
    def is_business_active(self) -> bool:
        return is_business_active({"status": self.status, "is_deleted": self.is_deleted})

    @classmethod
    def from_row(cls, row: dict[str, Any], clock: Clock | None = None) -> "Loan":
        issue_date = to_date(row.get("issue_date"))
        if issue_date is None:
            # Loans created before issue_date existed fall back to their creation day
            created = to_datetime(row.get("created_at")) or (clock or SystemClock()).now()
            issue_date = created.date()

        balance = row.get("current_balance")
        return cls(
            loan_id=row["id"],
            member_id=row.get("member_id"),
            principal=to_decimal(row.get("principal_amount")),
            interest_disbursed=to_decimal(row.get("interest_disbursed")),
            program=enum_value(row.get("loan_program")),
            issue_date=issue_date,
            total_paid=to_decimal(row.get("total_paid")),
            current_balance=to_decimal(balance) if balance is not None else None,
            status=enum_value(row.get("status")) or LoanStatus.ACTIVE.value,
            is_deleted=is_soft_deleted(row.get("is_deleted")),
            deleted_at=to_datetime(row.get("deleted_at")),
            deleted_by=row.get("deleted_by"),
            created_at=to_datetime(row.get("created_at")),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.loan_id,
            "member_id": self.member_id,
            "principal_amount": self.principal,
            "interest_disbursed": self.interest_disbursed,
            "loan_program": enum_value(self.program),
            "issue_date": self.issue_date,
            "total_paid": self.total_paid,
            "current_balance": self.outstanding,
            "status": enum_value(self.status),
            "is_deleted": self.is_deleted,
            "deleted_at": self.deleted_at,
            "deleted_by": self.deleted_by,
            "created_at": self.created_at,
        }


@dataclass
class Installment:
    """One weekly period of a derived repayment schedule (not persisted)."""

    loan_id: str
    installment_number: int  # 1..N
    due_date: date
    principal_amount: Decimal
    interest_amount: Decimal
    total_amount: Decimal
    cumulative_due: Decimal  # Contractual amount owed through this period
    status: InstallmentStatus


@dataclass(frozen=True)
class Payment:
    """Money received against one installment of a loan."""

    loan_id: str
    installment_number: int
    amount: Decimal
    payment_date: date
    payment_reference: str
    notes: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Payment":
        return cls(
            loan_id=row["loan_id"],
            installment_number=int(row["installment_number"]),
            amount=to_decimal(row.get("amount")),
            payment_date=to_date(row.get("payment_date")),
            payment_reference=row["payment_reference"],
            notes=row.get("notes"),
            created_at=to_datetime(row.get("created_at")),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "loan_id": self.loan_id,
            "installment_number": self.installment_number,
            "amount": self.amount,
            "payment_date": self.payment_date,
            "payment_reference": self.payment_reference,
            "notes": self.notes,
            "created_at": self.created_at,
        }


@dataclass
class LoanQuote:
    """Origination terms for a principal under a loan program."""

    program: str
    principal: Decimal
    interest_rate: Decimal
    repayment_weeks: int
    processing_fee: Decimal
    interest_amount: Decimal
    total_disbursed: Decimal


@dataclass
class ScheduleSummary:
    """Aggregate view over a derived schedule."""

    installments: int
    paid: int
    pending: int
    overdue: int
    amount_overdue: Decimal
    total_contractual: Decimal
    outstanding: Decimal
    next_due_date: date | None
