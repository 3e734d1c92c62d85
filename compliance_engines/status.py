"""
Status Engine - Derive installment and agreement status from "today".

Pure functions with no I/O.  "Today" is always a parameter; callers obtain
it from an injected ``Clock``.

Installment status:
    Paid is authoritative and sticky.  Otherwise an installment is Overdue
    when it is stored as Overdue or its due date has passed, else Pending.
    The result depends only on (due_date, stored status, today), so the
    classification of one installment never depends on its neighbours or on
    iteration order.

Agreement status:
    Expired when the end date has passed; Expiring Soon when the end date is
    within ``expiry_window_days`` of today; otherwise Active.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Iterable

from compliance_kernel.domain.dtos import Agreement, Installment
from compliance_kernel.domain.values import AgreementStatus, InstallmentStatus
from compliance_kernel.logging_config import get_logger

logger = get_logger("engines.status")

DEFAULT_EXPIRY_WINDOW_DAYS = 30


def derive_installment_status(
    due_date: date,
    status: InstallmentStatus,
    today: date,
) -> InstallmentStatus:
    """Effective status of one installment at ``today``."""
    if status == InstallmentStatus.PAID:
        return InstallmentStatus.PAID
    if status == InstallmentStatus.OVERDUE or due_date < today:
        return InstallmentStatus.OVERDUE
    return InstallmentStatus.PENDING


def draft_status(due_date: date, today: date) -> InstallmentStatus:
    """Status assigned to a freshly generated, unpaid installment."""
    return InstallmentStatus.OVERDUE if due_date < today else InstallmentStatus.PENDING


def derive_agreement_status(
    end_date: date,
    today: date,
    expiry_window_days: int = DEFAULT_EXPIRY_WINDOW_DAYS,
) -> AgreementStatus:
    """Effective status of an agreement at ``today``."""
    if end_date < today:
        return AgreementStatus.EXPIRED
    if (end_date - today).days <= expiry_window_days:
        return AgreementStatus.EXPIRING_SOON
    return AgreementStatus.ACTIVE


class StatusClassifier:
    """
    Applies read-time status derivation to DTOs.

    Stateless apart from the expiry window; safe to share.
    """

    def __init__(self, expiry_window_days: int = DEFAULT_EXPIRY_WINDOW_DAYS):
        if expiry_window_days < 0:
            raise ValueError("expiry_window_days cannot be negative")
        self.expiry_window_days = expiry_window_days

    def installment_status(self, installment: Installment, today: date) -> InstallmentStatus:
        return derive_installment_status(installment.due_date, installment.status, today)

    def agreement_status(self, agreement: Agreement, today: date) -> AgreementStatus:
        return derive_agreement_status(agreement.end_date, today, self.expiry_window_days)

    def classify_installment(self, installment: Installment, today: date) -> Installment:
        status = self.installment_status(installment, today)
        if status == installment.status:
            return installment
        return replace(installment, status=status)

    def classify_agreement(self, agreement: Agreement, today: date) -> Agreement:
        status = self.agreement_status(agreement, today)
        if status == agreement.status:
            return agreement
        return replace(agreement, status=status)

    def classify_installments(
        self, installments: Iterable[Installment], today: date
    ) -> list[Installment]:
        return [self.classify_installment(i, today) for i in installments]

    def classify_agreements(
        self, agreements: Iterable[Agreement], today: date
    ) -> list[Agreement]:
        return [self.classify_agreement(a, today) for a in agreements]

    def past_due_pending(
        self, installments: Iterable[Installment], today: date
    ) -> list[Installment]:
        """Installments stored as Pending whose due date has already passed."""
        return [
            i for i in installments
            if i.status == InstallmentStatus.PENDING and i.due_date < today
        ]
