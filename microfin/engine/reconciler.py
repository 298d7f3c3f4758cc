"""Order-sensitive cleanup of members and loans and the records that depend on them."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from microfin.config import ReconcilerConfig
from microfin.exceptions import ForeignKeyViolationError, StorageError
from microfin.models.base import enum_value, is_business_active
from microfin.store.base import DataAccess, Row
from microfin.store.schema import (
    COMMUNICATION_LOGS,
    GROUPS,
    LOAN_INSTALLMENTS,
    LOAN_PAYMENTS,
    LOANS,
    MEMBERS,
    REALIZABLE_ASSETS,
    TRANSACTIONS,
)

logger = logging.getLogger(__name__)

ADMIN_HINT = "Please contact an administrator."


class DeletionOutcome(str, Enum):
    DELETED = "deleted"
    BLOCKED = "blocked"
    FAILED = "failed"


@dataclass
class StepError:
    """A dependent-record step that failed but did not stop the procedure."""

    step: str
    message: str
    loan_id: str | None = None


@dataclass
class DeletionCheck:
    """Whether an entity may be deleted, and what deleting it will touch."""

    allowed: bool
    blocking_reason: str | None = None
    active_loan_count: int = 0
    cascade_loan_ids: list[str] = field(default_factory=list)
    contact_group_ids: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class DeletionReport:
    """Terminal state of one delete invocation."""

    entity: str  # "member" or "loan"
    entity_id: str
    outcome: DeletionOutcome
    reason: str | None = None
    deleted_loan_ids: list[str] = field(default_factory=list)
    detached_group_ids: list[str] = field(default_factory=list)
    step_errors: list[StepError] = field(default_factory=list)
    already_absent: bool = False
    error: str | None = None

    @property
    def deleted(self) -> bool:
        return self.outcome == DeletionOutcome.DELETED


def _active_loans_reason(count: int) -> str:
    return (
        f"This member has {count} active loan(s). "
        "Please delete or close all loans before deleting the member."
    )


def _report_fields(report: DeletionReport) -> dict[str, Any]:
    """Structured fields for the ``JsonFormatter``."""
    return {
        "extra": {
            "entity": report.entity,
            "entity_id": report.entity_id,
            "outcome": report.outcome.value,
            "deleted_loan_ids": list(report.deleted_loan_ids),
            "step_errors": list(report.step_errors),
        }
    }


class DependentRecordReconciler:
    """Delete members and loans after clearing their dependent rows.

    Every step is a separate, idempotent storage call; there is no
    transaction, so a run can stop part-way and simply be repeated.
    Foreign keys bind soft-deleted loans exactly like live ones, so
    soft-delete only matters when deciding whether a loan is still
    business-active.

    Parameters
    ----------
    store : DataAccess
        Data-access collaborator.
    config : ReconcilerConfig | None
        Settle delay before the verification read.
    sleep : Callable[[float], None]
        Used for the single bounded settle wait; injectable for tests.
    """

    def __init__(
        self,
        store: DataAccess,
        config: ReconcilerConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.config = config or ReconcilerConfig()
        self._sleep = sleep

    # Member deletion

    def can_delete_member(self, member_id: str) -> DeletionCheck:
        """Check whether a member may be deleted.

        Soft-deleted loans never block, whatever their status. Groups that
        use the member as contact person are reported as warnings only.
        """
        try:
            loans = self.store.query(LOANS, {"member_id": member_id})
            groups = self.store.query(GROUPS, {"contact_person_id": member_id})
        except StorageError as e:
            logger.warning("Could not check dependents of member %s: %s", member_id, e)
            return DeletionCheck(
                allowed=False,
                blocking_reason=(
                    f"Could not verify the loans and group links of this member ({e}). {ADMIN_HINT}"
                ),
            )

        warnings = []
        if groups:
            names = ", ".join(str(g.get("name") or g["id"]) for g in groups)
            warnings.append(
                f"Member is contact person for {len(groups)} group(s): {names}. "
                "Deleting the member will remove them as contact person."
            )

        active = [row for row in loans if is_business_active(row)]
        if active:
            return DeletionCheck(
                allowed=False,
                blocking_reason=_active_loans_reason(len(active)),
                active_loan_count=len(active),
                contact_group_ids=[g["id"] for g in groups],
                warnings=warnings,
            )

        return DeletionCheck(
            allowed=True,
            cascade_loan_ids=[row["id"] for row in loans],
            contact_group_ids=[g["id"] for g in groups],
            warnings=warnings,
        )

    def delete_member(self, member_id: str) -> DeletionReport:
        """Delete a member after removing its closed loans and group links.

        Returns
        -------
        DeletionReport
            ``DELETED`` (including when the member was already gone),
            ``BLOCKED`` with the reason an operator can act on, or
            ``FAILED`` carrying the storage error of the final delete.
        """
        logger.info("Deleting member %s", member_id)
        report = DeletionReport(entity="member", entity_id=member_id, outcome=DeletionOutcome.DELETED)

        try:
            exists = bool(self.store.query(MEMBERS, {"id": member_id}))
        except StorageError as e:
            return self._fail(report, f"Could not load member {member_id}", e)

        if not exists:
            logger.info("Member %s already absent", member_id)
            report.already_absent = True
            return report

        check = self.can_delete_member(member_id)
        if not check.allowed:
            return self._block(report, check.blocking_reason)

        if check.cascade_loan_ids:
            for loan_id in check.cascade_loan_ids:
                self._delete_loan_dependents(loan_id, report)

            remaining = self._verify_loans_gone(check.cascade_loan_ids, report)
            if remaining is None:
                return report
            report.deleted_loan_ids = [i for i in check.cascade_loan_ids if i not in remaining]
            if remaining:
                return self._block(report, self._residual_reason(len(remaining), report))

        for group_id in check.contact_group_ids:
            detached = self._attempt(
                report,
                "detach group contact person",
                lambda: self.store.update(GROUPS, {"id": group_id}, {"contact_person_id": None}),
            )
            if detached:
                report.detached_group_ids.append(group_id)

        try:
            self.store.delete(MEMBERS, {"id": member_id})
        except ForeignKeyViolationError as e:
            logger.warning("Member %s still referenced: %s", member_id, e)
            return self._block(report, self._member_fk_reason(member_id))
        except StorageError as e:
            return self._fail(report, "Failed to delete member", e)

        logger.info(
            "Member %s deleted (%d loan(s) removed, %d group(s) detached)",
            member_id,
            len(report.deleted_loan_ids),
            len(report.detached_group_ids),
            extra=_report_fields(report),
        )
        return report

    # Loan deletion

    def can_delete_loan(self, loan_id: str) -> DeletionCheck:
        """Check whether a loan may be hard-deleted.

        Only loans that are repaid, completed or soft-deleted qualify.
        """
        try:
            rows = self.store.query(LOANS, {"id": loan_id})
        except StorageError as e:
            logger.warning("Could not load loan %s: %s", loan_id, e)
            return DeletionCheck(
                allowed=False,
                blocking_reason=f"Could not verify loan {loan_id} ({e}). {ADMIN_HINT}",
            )
        return self._loan_check(loan_id, rows)

    def delete_loan(self, loan_id: str) -> DeletionReport:
        """Delete a closed or soft-deleted loan and every row that depends on it."""
        logger.info("Deleting loan %s", loan_id)
        report = DeletionReport(entity="loan", entity_id=loan_id, outcome=DeletionOutcome.DELETED)

        try:
            rows = self.store.query(LOANS, {"id": loan_id})
        except StorageError as e:
            return self._fail(report, f"Could not load loan {loan_id}", e)

        if not rows:
            logger.info("Loan %s already absent", loan_id)
            report.already_absent = True
            return report

        check = self._loan_check(loan_id, rows)
        if not check.allowed:
            return self._block(report, check.blocking_reason)

        error = self._delete_loan_dependents(loan_id, report)
        if error is not None and not isinstance(error, ForeignKeyViolationError):
            return self._fail(report, "Failed to delete loan", error)

        remaining = self._verify_loans_gone([loan_id], report)
        if remaining is None:
            return report
        if remaining:
            return self._block(report, self._residual_reason(len(remaining), report))

        report.deleted_loan_ids = [loan_id]
        logger.info("Loan %s deleted", loan_id, extra=_report_fields(report))
        return report

    # Steps

    def _loan_check(self, loan_id: str, rows: list[Row]) -> DeletionCheck:
        if not rows:
            return DeletionCheck(allowed=True)

        row = rows[0]
        if is_business_active(row):
            status = enum_value(row.get("status")) or "unknown"
            return DeletionCheck(
                allowed=False,
                blocking_reason=(
                    f"Loan {loan_id} is {status}. "
                    "Only repaid, completed or written-off loans can be deleted."
                ),
                active_loan_count=1,
            )
        return DeletionCheck(allowed=True, cascade_loan_ids=[loan_id])

    def _delete_loan_dependents(self, loan_id: str, report: DeletionReport) -> Exception | None:
        """Remove or detach everything that references a loan, then the loan.

        Each step continues on error; failures are collected in the report.
        Returns the error of the final loan delete, if any.
        """
        try:
            self.store.delete(REALIZABLE_ASSETS, {"loan_id": loan_id})
        except StorageError as e:
            logger.warning("Could not delete realizable assets of loan %s, detaching instead: %s", loan_id, e)
            self._attempt(
                report,
                "detach realizable assets",
                lambda: self.store.update(REALIZABLE_ASSETS, {"loan_id": loan_id}, {"loan_id": None}),
                loan_id,
            )

        self._attempt(
            report,
            "delete installments",
            lambda: self.store.delete(LOAN_INSTALLMENTS, {"loan_id": loan_id}),
            loan_id,
        )
        self._attempt(
            report,
            "delete payments",
            lambda: self.store.delete(LOAN_PAYMENTS, {"loan_id": loan_id}),
            loan_id,
        )
        self._attempt(
            report,
            "delete communication logs",
            lambda: self.store.delete(COMMUNICATION_LOGS, {"loan_id": loan_id}),
            loan_id,
        )
        self._attempt(
            report,
            "detach transactions",
            lambda: self.store.update(TRANSACTIONS, {"loan_id": loan_id}, {"loan_id": None}),
            loan_id,
        )

        try:
            self.store.delete(LOANS, {"id": loan_id})
        except StorageError as e:
            logger.warning("Could not delete loan %s: %s", loan_id, e)
            report.step_errors.append(StepError("delete loan", str(e), loan_id))
            return e
        return None

    def _verify_loans_gone(self, loan_ids: list[str], report: DeletionReport) -> set[str] | None:
        """Wait once, then re-read the target loans.

        Returns the ids still present, or ``None`` after marking the report
        failed when the verification read itself fails.
        """
        delay = self.config.settle_delay_seconds
        if delay > 0:
            self._sleep(delay)

        try:
            rows = self.store.query(LOANS, {"id": list(loan_ids)})
        except StorageError as e:
            self._fail(report, "Could not verify loan deletion", e)
            return None

        remaining = {row["id"] for row in rows}
        if remaining:
            logger.warning("%d of %d loan(s) still present after deletion", len(remaining), len(loan_ids))
        return remaining

    def _member_fk_reason(self, member_id: str) -> str:
        """Explain a foreign-key refusal on the member row as precisely as possible."""
        try:
            loans = self.store.query(LOANS, {"member_id": member_id})
        except StorageError as e:
            logger.warning("Could not re-check loans of member %s: %s", member_id, e)
            loans = []

        active = [row for row in loans if is_business_active(row)]
        if active:
            return _active_loans_reason(len(active))
        return (
            "This member has associated records that could not be removed automatically. "
            + ADMIN_HINT
        )

    @staticmethod
    def _residual_reason(count: int, report: DeletionReport) -> str:
        reason = (
            f"{count} loan(s) could not be removed. "
            f"The loans may have dependencies that prevent deletion. {ADMIN_HINT}"
        )
        loan_errors = [e.message for e in report.step_errors if e.step == "delete loan"]
        if loan_errors:
            reason += " Errors: " + "; ".join(loan_errors)
        return reason

    @staticmethod
    def _attempt(
        report: DeletionReport,
        step: str,
        action: Callable[[], Any],
        loan_id: str | None = None,
    ) -> bool:
        try:
            action()
        except StorageError as e:
            logger.warning("Step '%s' failed (loan %s): %s", step, loan_id, e)
            report.step_errors.append(StepError(step, str(e), loan_id))
            return False
        return True

    @staticmethod
    def _block(report: DeletionReport, reason: str | None) -> DeletionReport:
        report.outcome = DeletionOutcome.BLOCKED
        report.reason = reason
        logger.info(
            "Deletion of %s %s blocked: %s",
            report.entity,
            report.entity_id,
            reason,
            extra=_report_fields(report),
        )
        return report

    @staticmethod
    def _fail(report: DeletionReport, context: str, error: Exception) -> DeletionReport:
        report.outcome = DeletionOutcome.FAILED
        report.reason = f"{context}: {error}"
        report.error = str(error)
        logger.error(
            "Deletion of %s %s failed: %s",
            report.entity,
            report.entity_id,
            report.reason,
            extra=_report_fields(report),
        )
        return report
