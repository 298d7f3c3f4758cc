"""Pytest configuration and fixtures."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from microfin.clock import FixedClock
from microfin.engine import AmortizationEngine
from microfin.models import Loan
from microfin.store import InMemoryDataStore
from microfin.store.schema import GROUPS, LOANS, MEMBERS


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def clock() -> FixedClock:
    """Clock frozen before the first due date of ``small_loan``."""
    return FixedClock(datetime(2024, 1, 3, 12, 0))


@pytest.fixture
def engine(clock: FixedClock) -> AmortizationEngine:
    """Engine with default program rules and a frozen clock."""
    return AmortizationEngine(clock=clock)


@pytest.fixture
def small_loan() -> Loan:
    """Standard 8-week loan: 40 000 principal, 4 000 interest, issued 2024-01-01."""
    return Loan(
        loan_id="loan-001",
        member_id="mem-001",
        principal=Decimal("40000.00"),
        interest_disbursed=Decimal("4000.00"),
        program="small_loan",
        issue_date=date(2024, 1, 1),
    )


@pytest.fixture
def store() -> InMemoryDataStore:
    """Create a fresh store for each test."""
    return InMemoryDataStore()


@pytest.fixture
def member_row(store: InMemoryDataStore) -> dict:
    """A stored member belonging to a stored group."""
    store.insert(GROUPS, {"id": "grp-001", "name": "Kibera Women Group"})
    return store.insert(
        MEMBERS,
        {"id": "mem-001", "full_name": "Grace Wanjiru", "phone_number": "0712000000", "group_id": "grp-001"},
    )


@pytest.fixture
def make_loan(store: InMemoryDataStore, member_row: dict):
    """Factory storing a loan row for ``mem-001``."""

    def _make(loan_id: str = "loan-001", status: str = "active", is_deleted: bool = False, **extra) -> dict:
        row = {
            "id": loan_id,
            "member_id": member_row["id"],
            "principal_amount": Decimal("40000.00"),
            "interest_disbursed": Decimal("4000.00"),
            "loan_program": "small_loan",
            "issue_date": date(2024, 1, 1),
            "total_paid": Decimal("0"),
            "current_balance": Decimal("44000.00"),
            "status": status,
            "is_deleted": is_deleted,
        }
        row.update(extra)
        return store.insert(LOANS, row)

    return _make
