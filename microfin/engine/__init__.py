"""Loan schedule engine, payment ledger and deletion reconciler."""

from microfin.engine.amortization import AmortizationEngine, round_cents, split_evenly
from microfin.engine.ledger import LoanLedger
from microfin.engine.reconciler import (
    DeletionCheck,
    DeletionOutcome,
    DeletionReport,
    DependentRecordReconciler,
    StepError,
)

__all__ = [
    "AmortizationEngine",
    "DeletionCheck",
    "DeletionOutcome",
    "DeletionReport",
    "DependentRecordReconciler",
    "LoanLedger",
    "StepError",
    "round_cents",
    "split_evenly",
]
