"""
Stats Engine - Recompute compliance liability and expiry counters.

Pure recomputation over the full agreement and installment sets; deleted
records are ignored.  Invoked explicitly by the write path after every
mutation and by the snapshot read path -- there are no implicit triggers.

Counters (all evaluated against ``today``):
    expiring_tenders      agreements not Expired whose end date is within
                          [0, window] days of today
    total_active_tenders  agreements whose derived status is Active
    pending_taxes         installments whose derived status is Pending
    overdue_taxes         installments stored as Overdue, or not Paid and
                          past due
    total_tax_liability   sum of amounts not Paid
    total_tax_paid        sum of amounts Paid

Installment status is derived at read time, so a record stored as Pending
but past due counts as overdue and not as pending; pending, overdue and
paid therefore partition the live installments.  Dashboards that counted
stored Pending rows showed such a record in both counters; here it appears
only in overdue_taxes, so pending_taxes can read lower for the same data.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable

from compliance_kernel.domain.dtos import Agreement, ComplianceStats, Installment
from compliance_kernel.domain.values import AgreementStatus, InstallmentStatus
from compliance_kernel.logging_config import get_logger
from compliance_engines.status import DEFAULT_EXPIRY_WINDOW_DAYS, StatusClassifier
from compliance_engines.tracer import traced_engine

logger = get_logger("engines.stats")


def _as_date(now: date | datetime) -> date:
    return now.date() if isinstance(now, datetime) else now


def recompute_stats(
    agreements: Iterable[Agreement],
    installments: Iterable[Installment],
    now: date | datetime,
    expiry_window_days: int = DEFAULT_EXPIRY_WINDOW_DAYS,
) -> ComplianceStats:
    """One O(n) pass over each set."""
    today = _as_date(now)
    classifier = StatusClassifier(expiry_window_days)

    expiring = 0
    active = 0
    for agreement in agreements:
        if agreement.deleted:
            continue
        status = classifier.agreement_status(agreement, today)
        if status == AgreementStatus.EXPIRING_SOON:
            expiring += 1
        elif status == AgreementStatus.ACTIVE:
            active += 1

    pending = 0
    overdue = 0
    liability = 0
    paid_total = 0
    for installment in installments:
        if installment.deleted:
            continue
        status = classifier.installment_status(installment, today)
        if status == InstallmentStatus.PAID:
            paid_total += installment.amount
            continue
        liability += installment.amount
        if status == InstallmentStatus.OVERDUE:
            overdue += 1
        else:
            pending += 1

    return ComplianceStats(
        expiring_tenders=expiring,
        pending_taxes=pending,
        overdue_taxes=overdue,
        total_active_tenders=active,
        total_tax_liability=liability,
        total_tax_paid=paid_total,
    )


class ComplianceStatsAggregator:
    """Traced wrapper around ``recompute_stats`` with a configured window."""

    def __init__(self, expiry_window_days: int = DEFAULT_EXPIRY_WINDOW_DAYS):
        self.expiry_window_days = expiry_window_days

    @traced_engine("compliance_stats", "1.0", fingerprint_fields=("today",))
    def recompute(
        self,
        *,
        agreements: Iterable[Agreement],
        installments: Iterable[Installment],
        today: date,
    ) -> ComplianceStats:
        stats = recompute_stats(agreements, installments, today, self.expiry_window_days)
        logger.debug("compliance_stats_recomputed", extra=stats.to_dict())
        return stats
