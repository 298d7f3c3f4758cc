"""Domain models for the microfinance back-office."""

from microfin.models.enums import (
    TERMINAL_LOAN_STATUSES,
    InstallmentStatus,
    LoanProgram,
    LoanStatus,
    MemberStatus,
)
from microfin.models.loan import Installment, Loan, LoanQuote, Payment, ScheduleSummary
from microfin.models.member import Group, Member

__all__ = [
    "Group",
    "Installment",
    "InstallmentStatus",
    "Loan",
    "LoanProgram",
    "LoanQuote",
    "LoanStatus",
    "Member",
    "MemberStatus",
    "Payment",
    "ScheduleSummary",
    "TERMINAL_LOAN_STATUSES",
]
