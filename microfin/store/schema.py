"""Table names and the foreign keys every backend must honour."""

from dataclasses import dataclass

MEMBERS = "members"
GROUPS = "groups"
LOANS = "loans"
LOAN_PAYMENTS = "loan_payments"
LOAN_INSTALLMENTS = "loan_installments"
COMMUNICATION_LOGS = "communication_logs"
REALIZABLE_ASSETS = "realizable_assets"
TRANSACTIONS = "transactions"

TABLES = (
    GROUPS,
    MEMBERS,
    LOANS,
    LOAN_PAYMENTS,
    LOAN_INSTALLMENTS,
    COMMUNICATION_LOGS,
    REALIZABLE_ASSETS,
    TRANSACTIONS,
)


@dataclass(frozen=True)
class ForeignKey:
    """``table.column`` references ``ref_table.ref_column``; deletes are restricted."""

    table: str
    column: str
    ref_table: str
    ref_column: str = "id"


# Enforced irrespective of the loans.is_deleted flag.
FOREIGN_KEYS = (
    ForeignKey(MEMBERS, "group_id", GROUPS),
    ForeignKey(GROUPS, "contact_person_id", MEMBERS),
    ForeignKey(LOANS, "member_id", MEMBERS),
    ForeignKey(LOAN_PAYMENTS, "loan_id", LOANS),
    ForeignKey(LOAN_INSTALLMENTS, "loan_id", LOANS),
    ForeignKey(COMMUNICATION_LOGS, "loan_id", LOANS),
    ForeignKey(REALIZABLE_ASSETS, "loan_id", LOANS),
    ForeignKey(TRANSACTIONS, "loan_id", LOANS),
)

UNIQUE_COLUMNS: dict[str, tuple[str, ...]] = {
    LOAN_PAYMENTS: ("payment_reference",),
}
