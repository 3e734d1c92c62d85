"""
Reconciliation Engine - Rebuild an agreement's schedule after an edit.

Pure function with no I/O.  Given every installment currently known (for
any agreement) and the edited terms of one agreement, produce the new
authoritative installment set without losing payment history.

Algorithm:
    1. Partition the current installments into
         other  -- belonging to a different agreement (passed through),
         paid   -- this agreement, status Paid (preserved),
         binned -- this agreement, not Paid, in the recycle bin (preserved),
         stale  -- this agreement, not Paid, active (discarded).
    2. Generate candidate drafts from the edited terms.
    3. If any installment is paid, drop every candidate due on or before the
       latest paid due date; those periods are treated as settled.
    4. Drop every candidate due on the date of a binned installment.
    5. Result = other + paid + binned (denormalized fields refreshed)
       + candidates.

Paid and binned installments keep their id, amount, due date, payment data
and lifecycle: leaving the recycle bin takes an explicit restore and
leaving storage takes an explicit purge.  Surviving candidates keep their
generated sequence numbers unless one of their ids is already held by a
preserved installment (possible when the start date moves); in that case
the surviving candidates are renumbered consecutively after the highest
preserved sequence.

Known gap:
    When the edit changes the per-period amount, paid plus new installments
    need not add up to the new fee.  The engine reports the difference in
    ``ReconciliationResult.fee_gap`` but never adjusts paid history.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Sequence

from compliance_kernel.domain.dtos import Installment
from compliance_kernel.logging_config import get_logger
from compliance_engines.schedule import ScheduleGenerator, ScheduleRequest, installment_id
from compliance_engines.tracer import traced_engine

logger = get_logger("engines.reconciliation")


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome of reconciling one agreement's installment set."""

    agreement_id: str
    installments: tuple[Installment, ...]
    preserved_paid: tuple[Installment, ...]
    preserved_binned: tuple[Installment, ...]
    added: tuple[Installment, ...]
    discarded: tuple[Installment, ...]
    last_paid_due_date: date | None
    expected_total: int

    @property
    def agreement_installments(self) -> tuple[Installment, ...]:
        """The reconciled set of this agreement only, ordered by due date."""
        return tuple(i for i in self.installments if i.agreement_id == self.agreement_id)

    @property
    def scheduled_total(self) -> int:
        return sum(i.amount for i in self.agreement_installments)

    @property
    def fee_gap(self) -> int:
        """Scheduled total minus what a fresh schedule would total."""
        return self.scheduled_total - self.expected_total


class ReconciliationEngine:
    """Merges paid history with a freshly generated schedule."""

    def __init__(self, generator: ScheduleGenerator | None = None):
        self.generator = generator or ScheduleGenerator()

    @traced_engine("reconciliation", "1.0", fingerprint_fields=("request", "current", "today"))
    def reconcile(
        self,
        *,
        request: ScheduleRequest,
        current: Sequence[Installment],
        today: date,
    ) -> ReconciliationResult:
        """
        Reconcile ``current`` against the edited terms in ``request``.

        Raises:
            InvalidFrequencyError: The edited frequency is not recognised.
        """
        agreement_id = request.agreement_id
        other = [i for i in current if i.agreement_id != agreement_id]
        mine = [i for i in current if i.agreement_id == agreement_id]
        paid = [i for i in mine if i.is_paid]
        binned = [i for i in mine if not i.is_paid and i.deleted]
        stale = [i for i in mine if not i.is_paid and not i.deleted]

        candidates = self.generator.generate(request=request, today=today)
        expected_total = sum(c.amount for c in candidates)

        last_paid_due_date: date | None = None
        if paid:
            last_paid_due_date = max(p.due_date for p in paid)
            candidates = tuple(c for c in candidates if c.due_date > last_paid_due_date)

        binned_due_dates = {b.due_date for b in binned}
        candidates = tuple(c for c in candidates if c.due_date not in binned_due_dates)

        candidates = self._resolve_id_collisions([*paid, *binned], candidates)

        refreshed_paid = [self._refresh(p, request) for p in paid]
        refreshed_binned = [self._refresh(b, request) for b in binned]

        own = sorted(
            [*refreshed_paid, *refreshed_binned, *candidates], key=lambda i: i.due_date
        )
        result = ReconciliationResult(
            agreement_id=agreement_id,
            installments=(*other, *own),
            preserved_paid=tuple(sorted(refreshed_paid, key=lambda i: i.due_date)),
            preserved_binned=tuple(sorted(refreshed_binned, key=lambda i: i.due_date)),
            added=tuple(candidates),
            discarded=tuple(stale),
            last_paid_due_date=last_paid_due_date,
            expected_total=expected_total,
        )

        logger.info(
            "schedule_reconciled",
            extra={
                "agreement_id": agreement_id,
                "paid_preserved": len(paid),
                "binned_preserved": len(binned),
                "installments_added": len(candidates),
                "installments_discarded": len(stale),
                "last_paid_due_date": last_paid_due_date,
                "fee_gap": result.fee_gap,
            },
        )
        return result

    @staticmethod
    def _refresh(installment: Installment, request: ScheduleRequest) -> Installment:
        return replace(
            installment,
            reference_number=request.reference_number,
            district=request.district,
            area=request.area,
        )

    def _resolve_id_collisions(
        self,
        preserved: Sequence[Installment],
        candidates: Sequence[Installment],
    ) -> tuple[Installment, ...]:
        held_ids = {p.id for p in preserved}
        if not any(c.id in held_ids for c in candidates):
            return tuple(candidates)

        next_sequence = max(p.sequence for p in preserved) + 1
        renumbered = []
        for offset, candidate in enumerate(candidates):
            sequence = next_sequence + offset
            renumbered.append(
                replace(
                    candidate,
                    sequence=sequence,
                    id=installment_id(
                        candidate.agreement_id,
                        sequence,
                        self.generator.id_prefix,
                        self.generator.sequence_width,
                    ),
                )
            )
        return tuple(renumbered)
