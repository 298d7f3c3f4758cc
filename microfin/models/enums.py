"""Enumeration types for microfinance entities."""

from enum import Enum


class LoanStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    REPAID = "repaid"
    COMPLETED = "completed"
    DEFAULTED = "defaulted"


class LoanProgram(str, Enum):
    SMALL_LOAN = "small_loan"
    BIG_LOAN = "big_loan"


class InstallmentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class MemberStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DORMANT = "dormant"


# Loans in these states no longer block a member deletion.
TERMINAL_LOAN_STATUSES = frozenset({LoanStatus.REPAID.value, LoanStatus.COMPLETED.value})
