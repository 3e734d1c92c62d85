"""
Module: compliance_kernel.selectors.compliance_selector
Responsibility: Read-only queries over agreements and installments: active
    views for the compliance snapshot, per-agreement installment sets for
    reconciliation, and recycle-bin contents for listing and purging.

Invariants enforced:
    - Active views exclude soft-deleted rows.
    - Stored installment status is returned as-is; derived status is applied
      by the caller (engines classify against an injected clock).
"""

from datetime import datetime

from sqlalchemy import select

from compliance_kernel.domain.dtos import Agreement, Installment
from compliance_kernel.models.compliance import AgreementModel, InstallmentModel
from compliance_kernel.selectors.base import BaseSelector


class ComplianceSelector(BaseSelector[AgreementModel]):
    """Read-side access to agreements and installments."""

    def get_agreement(self, agreement_id: str) -> Agreement | None:
        model = self.session.get(AgreementModel, agreement_id)
        return model.to_dto() if model is not None else None

    def get_installment(self, installment_id: str) -> Installment | None:
        model = self.session.get(InstallmentModel, installment_id)
        return model.to_dto() if model is not None else None

    def active_agreements(self) -> list[Agreement]:
        """Non-deleted agreements ordered by end date."""
        stmt = (
            select(AgreementModel)
            .where(AgreementModel.deleted.is_(False))
            .order_by(AgreementModel.end_date, AgreementModel.id)
        )
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def active_installments(self) -> list[Installment]:
        """Non-deleted installments ordered by due date."""
        stmt = (
            select(InstallmentModel)
            .where(InstallmentModel.deleted.is_(False))
            .order_by(InstallmentModel.due_date, InstallmentModel.id)
        )
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def installments_for(self, agreement_id: str) -> list[Installment]:
        """Every stored installment of one agreement, deleted or not."""
        stmt = (
            select(InstallmentModel)
            .where(InstallmentModel.agreement_id == agreement_id)
            .order_by(InstallmentModel.due_date)
        )
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def deleted_agreements(self, deleted_before: datetime | None = None) -> list[Agreement]:
        """Binned agreements, most recently deleted first."""
        stmt = select(AgreementModel).where(AgreementModel.deleted.is_(True))
        if deleted_before is not None:
            stmt = stmt.where(AgreementModel.deleted_at <= deleted_before)
        stmt = stmt.order_by(AgreementModel.deleted_at.desc(), AgreementModel.id)
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def deleted_installments(
        self,
        deleted_before: datetime | None = None,
        direct_only: bool = False,
    ) -> list[Installment]:
        """
        Binned installments, most recently deleted first.

        ``direct_only`` restricts to installments deleted on their own rather
        than by their agreement's cascade.
        """
        stmt = select(InstallmentModel).where(InstallmentModel.deleted.is_(True))
        if deleted_before is not None:
            stmt = stmt.where(InstallmentModel.deleted_at <= deleted_before)
        if direct_only:
            stmt = stmt.where(InstallmentModel.cascade_parent_id.is_(None))
        stmt = stmt.order_by(InstallmentModel.deleted_at.desc(), InstallmentModel.id)
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]
