"""
Recycle Bin Service (``compliance_services.recycle_bin_service``).

Responsibility
--------------
Soft delete, restore, permanent delete, listing and the retention purge
for agreements and installments.  Transition rules come from the pure
``LifecycleManager``; this service loads records, applies the planned
changes through the kernel ``RecordWriter`` and owns the transaction.

Architecture position
---------------------
**Services layer** -- public entry point for recycle-bin operations.

Invariants enforced
-------------------
* An agreement and its cascaded installments change in one transaction;
  a database error mid-cascade rolls everything back and surfaces as
  ``CascadeFailureError``.
* Restoring an agreement restores exactly the installments its delete
  cascaded, never ones that were binned on their own.
* Only binned records can be purged, and only after the retention window
  unless ``force=True``.

Failure modes
-------------
* ``AgreementNotFoundError`` / ``InstallmentNotFoundError`` -- unknown id
  (including ids already purged).
* ``InvalidLifecycleTransitionError`` -- deleting a binned record,
  restoring a live one, purging a live one, or restoring an installment
  whose agreement is still binned.
* ``RetentionWindowError`` -- purge inside the retention window.
* ``CascadeFailureError`` -- storage failure during a cascade.

Audit relevance
---------------
Emits ``record_soft_deleted``, ``record_restored``,
``record_permanently_deleted`` and ``recycle_bin_purged`` with the record
kind, id and cascade counts.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from compliance_config import ComplianceConfig
from compliance_engines import ComplianceStatsAggregator, LifecycleManager
from compliance_kernel.domain.clock import Clock, SystemClock
from compliance_kernel.domain.dtos import (
    Agreement,
    Installment,
    PurgeReport,
    RecycleBinItem,
)
from compliance_kernel.domain.values import RecordKind
from compliance_kernel.exceptions import (
    AgreementNotFoundError,
    CascadeFailureError,
    InstallmentNotFoundError,
)
from compliance_kernel.logging_config import LogContext, get_logger
from compliance_kernel.selectors.compliance_selector import ComplianceSelector
from compliance_kernel.services.record_writer import RecordWriter
from compliance_services.stats_feed import StatsFeed, StatsListener

logger = get_logger("services.recycle_bin")


class RecycleBinService:
    """
    Uniform soft delete / restore / purge over agreements and installments.

    ``kind`` arguments accept a ``RecordKind`` or one of its string aliases
    ("agreement", "tender", "installment", "tax", ...).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ComplianceConfig | None = None,
        stats_feed: StatsFeed | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ComplianceConfig.with_defaults()
        self._feed = stats_feed or StatsFeed()

        self._selector = ComplianceSelector(session)
        self._writer = RecordWriter(session)
        self._lifecycle = LifecycleManager(
            retention_days=self._config.retention_days,
            cascade_paid=self._config.cascade_paid_installments,
        )
        self._aggregator = ComplianceStatsAggregator(self._config.expiry_window_days)

    def subscribe(self, listener: StatsListener) -> Callable[[], None]:
        return self._feed.subscribe(listener)

    # =========================================================================
    # Soft delete
    # =========================================================================

    def soft_delete(self, kind: RecordKind | str, record_id: str) -> int:
        """
        Move a record (and, for an agreement, its installments) to the bin.

        Returns:
            Number of records changed, the target included.
        """
        kind = RecordKind.parse(kind)
        now = self._clock.now()
        if kind == RecordKind.AGREEMENT:
            changed = self._run_cascade(
                record_id, "soft_delete", lambda: self._soft_delete_agreement(record_id, now)
            )
        else:
            changed = self._run_single(
                record_id, lambda: self._soft_delete_installment(record_id, now)
            )

        logger.info(
            "record_soft_deleted",
            extra={
                "record_kind": kind.value,
                "record_id": record_id,
                "records_changed": changed,
                "deleted_at": now,
            },
        )
        self._publish_stats()
        return changed

    def _soft_delete_agreement(self, agreement_id: str, now: datetime) -> int:
        agreement = self._require_agreement(agreement_id)
        plan = self._lifecycle.soft_delete_agreement(
            agreement, self._selector.installments_for(agreement_id), now
        )
        self._writer.set_agreement_lifecycle(agreement_id, plan.agreement.lifecycle)
        return 1 + self._writer.set_installment_lifecycles(plan.installments)

    def _soft_delete_installment(self, installment_id: str, now: datetime) -> int:
        installment = self._require_installment(installment_id)
        deleted = self._lifecycle.soft_delete_installment(installment, now)
        return self._writer.set_installment_lifecycles([deleted])

    # =========================================================================
    # Restore
    # =========================================================================

    def restore(self, kind: RecordKind | str, record_id: str) -> int:
        """
        Bring a binned record back; an agreement brings back its cascade.

        Returns:
            Number of records changed, the target included.
        """
        kind = RecordKind.parse(kind)
        if kind == RecordKind.AGREEMENT:
            changed = self._run_cascade(
                record_id, "restore", lambda: self._restore_agreement(record_id)
            )
        else:
            changed = self._run_single(record_id, lambda: self._restore_installment(record_id))

        logger.info(
            "record_restored",
            extra={"record_kind": kind.value, "record_id": record_id, "records_changed": changed},
        )
        self._publish_stats()
        return changed

    def _restore_agreement(self, agreement_id: str) -> int:
        agreement = self._require_agreement(agreement_id)
        plan = self._lifecycle.restore_agreement(
            agreement, self._selector.installments_for(agreement_id)
        )
        self._writer.set_agreement_lifecycle(agreement_id, plan.agreement.lifecycle)
        return 1 + self._writer.set_installment_lifecycles(plan.installments)

    def _restore_installment(self, installment_id: str) -> int:
        installment = self._require_installment(installment_id)
        parent = self._selector.get_agreement(installment.agreement_id)
        restored = self._lifecycle.restore_installment(installment, parent)
        return self._writer.set_installment_lifecycles([restored])

    # =========================================================================
    # Permanent delete
    # =========================================================================

    def permanently_delete(
        self,
        kind: RecordKind | str,
        record_id: str,
        force: bool = False,
    ) -> PurgeReport:
        """
        Irreversibly remove a binned record.  Purging an agreement removes
        every installment of that agreement as well.

        Args:
            force: Purge even inside the retention window.

        Raises:
            InvalidLifecycleTransitionError: The record is not in the bin.
            RetentionWindowError: Inside the retention window without force.
        """
        kind = RecordKind.parse(kind)
        now = self._clock.now()
        if kind == RecordKind.AGREEMENT:
            report = self._run_cascade(
                record_id,
                "permanent_delete",
                lambda: self._purge_agreement(record_id, now, force),
            )
        else:
            report = self._run_single(
                record_id, lambda: self._purge_installment(record_id, now, force)
            )

        logger.info(
            "record_permanently_deleted",
            extra={
                "record_kind": kind.value,
                "record_id": record_id,
                "forced": force,
                "agreements_purged": report.agreements_purged,
                "installments_purged": report.installments_purged,
            },
        )
        self._publish_stats()
        return report

    def _purge_agreement(self, agreement_id: str, now: datetime, force: bool) -> PurgeReport:
        agreement = self._require_agreement(agreement_id)
        self._lifecycle.check_purgeable(
            RecordKind.AGREEMENT, agreement_id, agreement.lifecycle, now, force
        )
        installment_ids = self._writer.purge_agreement(agreement_id)
        return PurgeReport(agreement_ids=(agreement_id,), installment_ids=tuple(installment_ids))

    def _purge_installment(self, installment_id: str, now: datetime, force: bool) -> PurgeReport:
        installment = self._require_installment(installment_id)
        self._lifecycle.check_purgeable(
            RecordKind.INSTALLMENT, installment_id, installment.lifecycle, now, force
        )
        self._writer.purge_installment(installment_id)
        return PurgeReport(installment_ids=(installment_id,))

    # =========================================================================
    # Retention sweep
    # =========================================================================

    def purge_expired(self) -> PurgeReport:
        """
        Purge every binned record whose retention window has passed.

        Agreements go with all of their installments.  Installments binned on
        their own are purged individually; installments binned by a cascade
        follow their agreement.
        """
        now = self._clock.now()
        cutoff = self._lifecycle.purge_cutoff(now)
        agreement_ids: list[str] = []
        installment_ids: list[str] = []
        try:
            for agreement in self._selector.deleted_agreements(deleted_before=cutoff):
                installment_ids.extend(self._writer.purge_agreement(agreement.id))
                agreement_ids.append(agreement.id)
            for installment in self._selector.deleted_installments(
                deleted_before=cutoff, direct_only=True
            ):
                self._writer.purge_installment(installment.id)
                installment_ids.append(installment.id)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        report = PurgeReport(
            agreement_ids=tuple(agreement_ids), installment_ids=tuple(installment_ids)
        )
        logger.info(
            "recycle_bin_purged",
            extra={
                "cutoff": cutoff,
                "agreements_purged": report.agreements_purged,
                "installments_purged": report.installments_purged,
            },
        )
        if agreement_ids or installment_ids:
            self._publish_stats()
        return report

    # =========================================================================
    # Listing
    # =========================================================================

    def list_deleted(self) -> list[RecycleBinItem]:
        """Everything in the bin, most recently deleted first."""
        items = [self._agreement_item(a) for a in self._selector.deleted_agreements()]
        items.extend(self._installment_item(i) for i in self._selector.deleted_installments())
        items.sort(key=lambda item: (item.deleted_at, item.id), reverse=True)
        return items

    def _agreement_item(self, agreement: Agreement) -> RecycleBinItem:
        return RecycleBinItem(
            id=agreement.id,
            kind=RecordKind.AGREEMENT,
            display_name=agreement.reference_number,
            sub_text=agreement.name,
            deleted_at=agreement.deleted_at,
            purge_after=self._lifecycle.purge_after(agreement.lifecycle),
        )

    def _installment_item(self, installment: Installment) -> RecycleBinItem:
        return RecycleBinItem(
            id=installment.id,
            kind=RecordKind.INSTALLMENT,
            display_name=f"Tax: {installment.reference_number}",
            sub_text=f"Amount: {installment.amount}",
            deleted_at=installment.deleted_at,
            purge_after=self._lifecycle.purge_after(installment.lifecycle),
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _run_cascade(self, agreement_id: str, action: str, work: Callable):
        """Run an agreement-level change atomically; wrap storage errors."""
        with LogContext.bind(agreement_id=agreement_id):
            try:
                result = work()
                self._session.commit()
            except SQLAlchemyError as exc:
                self._session.rollback()
                logger.error(
                    "cascade_failed",
                    exc_info=True,
                    extra={"cascade_action": action},
                )
                raise CascadeFailureError(agreement_id, action, str(exc)) from exc
            except Exception:
                self._session.rollback()
                raise
            return result

    def _run_single(self, installment_id: str, work: Callable):
        with LogContext.bind(installment_id=installment_id):
            try:
                result = work()
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise
            return result

    def _require_agreement(self, agreement_id: str) -> Agreement:
        agreement = self._selector.get_agreement(agreement_id)
        if agreement is None:
            raise AgreementNotFoundError(agreement_id)
        return agreement

    def _require_installment(self, installment_id: str) -> Installment:
        installment = self._selector.get_installment(installment_id)
        if installment is None:
            raise InstallmentNotFoundError(installment_id)
        return installment

    def _publish_stats(self) -> None:
        if self._feed.listener_count:
            self._feed.publish(
                self._aggregator.recompute(
                    agreements=self._selector.active_agreements(),
                    installments=self._selector.active_installments(),
                    today=self._clock.today(),
                )
            )
