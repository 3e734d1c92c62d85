"""
Lifecycle Engine - Recycle-bin transitions for agreements and installments.

Pure transition rules over DTOs; persistence is the caller's job.

State machine per record:

    Active --soft delete--> Deleted --restore--> Active
                               |
                               +--permanent delete / retention sweep--> Purged

No other transitions exist.  Deleted -> Active happens only through an
explicit restore.

Cascade:
    Soft-deleting an agreement bins every installment of that agreement that
    is still active, tagging each with ``cascaded_from=<agreement id>``.
    Paid installments are included unless ``cascade_paid`` is disabled.
    Restoring the agreement restores exactly the installments carrying its
    tag; installments that were binned on their own beforehand stay binned.
    Purging an agreement purges every installment of that agreement.

Retention:
    A binned record may be purged once ``retention_days`` have passed since
    its deletion.  Earlier purges require ``force=True``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Sequence

from compliance_kernel.domain.dtos import Agreement, Installment
from compliance_kernel.domain.values import ACTIVE, Deleted, Lifecycle, RecordKind
from compliance_kernel.exceptions import (
    InvalidLifecycleTransitionError,
    RetentionWindowError,
)
from compliance_kernel.logging_config import get_logger

logger = get_logger("engines.lifecycle")

DEFAULT_RETENTION_DAYS = 30


@dataclass(frozen=True)
class CascadeResult:
    """An agreement and the installments a cascade changed alongside it."""

    agreement: Agreement
    installments: tuple[Installment, ...]


class LifecycleManager:
    """Soft delete, restore and purge rules with agreement cascade."""

    def __init__(
        self,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        cascade_paid: bool = True,
    ):
        if retention_days < 0:
            raise ValueError("retention_days cannot be negative")
        self.retention_days = retention_days
        self.cascade_paid = cascade_paid

    # -------------------------------------------------------------------------
    # Soft delete
    # -------------------------------------------------------------------------

    def soft_delete_agreement(
        self,
        agreement: Agreement,
        installments: Sequence[Installment],
        now: datetime,
    ) -> CascadeResult:
        self._require_active(RecordKind.AGREEMENT, agreement.id, agreement.lifecycle, "delete")
        deleted = Deleted(at=now)
        cascade_mark = Deleted(at=now, cascaded_from=agreement.id)

        changed = tuple(
            replace(i, lifecycle=cascade_mark)
            for i in installments
            if i.agreement_id == agreement.id
            and not i.deleted
            and (self.cascade_paid or not i.is_paid)
        )
        logger.debug(
            "agreement_delete_cascade_planned",
            extra={"agreement_id": agreement.id, "installments_cascaded": len(changed)},
        )
        return CascadeResult(replace(agreement, lifecycle=deleted), changed)

    def soft_delete_installment(self, installment: Installment, now: datetime) -> Installment:
        self._require_active(
            RecordKind.INSTALLMENT, installment.id, installment.lifecycle, "delete"
        )
        return replace(installment, lifecycle=Deleted(at=now))

    # -------------------------------------------------------------------------
    # Restore
    # -------------------------------------------------------------------------

    def restore_agreement(
        self,
        agreement: Agreement,
        installments: Sequence[Installment],
    ) -> CascadeResult:
        self._require_deleted(RecordKind.AGREEMENT, agreement.id, agreement.lifecycle, "restore")
        changed = tuple(
            replace(i, lifecycle=ACTIVE)
            for i in installments
            if isinstance(i.lifecycle, Deleted) and i.lifecycle.cascaded_from == agreement.id
        )
        return CascadeResult(replace(agreement, lifecycle=ACTIVE), changed)

    def restore_installment(
        self,
        installment: Installment,
        parent: Agreement | None = None,
    ) -> Installment:
        """
        Restore one installment.

        An installment cannot come back while its agreement is still binned;
        the agreement must be restored first.
        """
        self._require_deleted(
            RecordKind.INSTALLMENT, installment.id, installment.lifecycle, "restore"
        )
        if parent is not None and parent.deleted:
            raise InvalidLifecycleTransitionError(
                RecordKind.INSTALLMENT.value,
                installment.id,
                "deleted with its agreement",
                "restore",
            )
        return replace(installment, lifecycle=ACTIVE)

    # -------------------------------------------------------------------------
    # Purge
    # -------------------------------------------------------------------------

    def purge_after(self, lifecycle: Lifecycle) -> datetime:
        """Earliest time at which a binned record may be purged."""
        if not isinstance(lifecycle, Deleted):
            raise ValueError("Only deleted records have a retention deadline")
        return lifecycle.at + timedelta(days=self.retention_days)

    def is_expired(self, lifecycle: Lifecycle, now: datetime) -> bool:
        return isinstance(lifecycle, Deleted) and self.purge_after(lifecycle) <= now

    def check_purgeable(
        self,
        kind: RecordKind,
        record_id: str,
        lifecycle: Lifecycle,
        now: datetime,
        force: bool = False,
    ) -> None:
        """
        Raise unless the record may be permanently deleted now.

        Raises:
            InvalidLifecycleTransitionError: The record is not in the bin.
            RetentionWindowError: Inside the retention window without force.
        """
        self._require_deleted(kind, record_id, lifecycle, "permanently delete")
        if force or self.is_expired(lifecycle, now):
            return
        raise RetentionWindowError(
            kind.value, record_id, self.purge_after(lifecycle).isoformat()
        )

    def purge_cutoff(self, now: datetime) -> datetime:
        """Records deleted at or before this instant are past retention."""
        return now - timedelta(days=self.retention_days)

    # -------------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------------

    @staticmethod
    def _require_active(kind: RecordKind, record_id: str, lifecycle: Lifecycle, action: str) -> None:
        if lifecycle.is_deleted:
            raise InvalidLifecycleTransitionError(kind.value, record_id, lifecycle.label, action)

    @staticmethod
    def _require_deleted(kind: RecordKind, record_id: str, lifecycle: Lifecycle, action: str) -> None:
        if not isinstance(lifecycle, Deleted):
            raise InvalidLifecycleTransitionError(kind.value, record_id, lifecycle.label, action)
