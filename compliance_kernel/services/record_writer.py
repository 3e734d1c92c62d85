"""
RecordWriter -- persist agreement and installment DTOs.

Responsibility:
    The only kernel component that mutates the compliance tables.  Services
    above it compute new DTO states with the pure engines and hand them
    here to be written.

Architecture position:
    Kernel > Services.  Flush-only (see ``BaseService``).

Invariants enforced:
    - Writing an installment set for an agreement removes every stored
      installment of that agreement that is not in the new set, and the
      removals are flushed before inserts so a new row may reuse a removed
      id or due date.
    - Lifecycle changes go through ``apply_lifecycle`` so the
      deleted/deleted_at pair is always consistent.
    - ``revision`` increases by exactly one per agreement edit.

Failure modes:
    - AgreementNotFoundError / InstallmentNotFoundError for unknown ids.
    - IntegrityError (SQLAlchemy) on duplicate reference numbers.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import delete, select

from compliance_kernel.domain.dtos import Agreement, Installment
from compliance_kernel.domain.values import Lifecycle
from compliance_kernel.exceptions import (
    AgreementNotFoundError,
    InstallmentNotFoundError,
)
from compliance_kernel.logging_config import get_logger
from compliance_kernel.models.compliance import AgreementModel, InstallmentModel
from compliance_kernel.services.base import BaseService

logger = get_logger("services.record_writer")


class RecordWriter(BaseService[AgreementModel]):
    """Flush-only writes for agreements and installments."""

    # -------------------------------------------------------------------------
    # Agreements
    # -------------------------------------------------------------------------

    def load_agreement(self, agreement_id: str, for_update: bool = False) -> AgreementModel:
        """
        Load an agreement row, optionally locking it for the transaction.

        Raises:
            AgreementNotFoundError: No such row.
        """
        stmt = select(AgreementModel).where(AgreementModel.id == agreement_id)
        if for_update:
            stmt = stmt.with_for_update()
        model = self.session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise AgreementNotFoundError(agreement_id)
        return model

    def add_agreement(self, agreement: Agreement) -> AgreementModel:
        model = AgreementModel.from_dto(agreement)
        self.session.add(model)
        self.session.flush()
        return model

    def update_agreement_terms(self, agreement: Agreement) -> AgreementModel:
        """Overwrite the agreement's terms and bump its revision."""
        model = self.load_agreement(agreement.id)
        model.reference_number = agreement.reference_number
        model.name = agreement.name
        model.district = agreement.district
        model.area = agreement.area
        model.start_date = agreement.start_date
        model.end_date = agreement.end_date
        model.license_fee = agreement.license_fee
        model.frequency = agreement.frequency.value
        model.document_url = agreement.document_url
        model.revision = model.revision + 1
        self.session.flush()
        return model

    def set_document_url(self, agreement_id: str, document_url: str | None) -> AgreementModel:
        model = self.load_agreement(agreement_id)
        model.document_url = document_url
        self.session.flush()
        return model

    # -------------------------------------------------------------------------
    # Installments
    # -------------------------------------------------------------------------

    def load_installment(self, installment_id: str, for_update: bool = False) -> InstallmentModel:
        """
        Raises:
            InstallmentNotFoundError: No such row.
        """
        stmt = select(InstallmentModel).where(InstallmentModel.id == installment_id)
        if for_update:
            stmt = stmt.with_for_update()
        model = self.session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise InstallmentNotFoundError(installment_id)
        return model

    def add_installments(self, installments: Iterable[Installment]) -> int:
        count = 0
        for installment in installments:
            self.session.add(InstallmentModel.from_dto(installment))
            count += 1
        self.session.flush()
        return count

    def replace_installment_set(
        self,
        agreement_id: str,
        installments: Iterable[Installment],
    ) -> tuple[int, int, int]:
        """
        Make the stored installments of ``agreement_id`` equal ``installments``.

        Returns:
            (removed, updated, inserted) row counts.
        """
        wanted = {i.id: i for i in installments if i.agreement_id == agreement_id}
        stmt = select(InstallmentModel).where(InstallmentModel.agreement_id == agreement_id)
        existing = {m.id: m for m in self.session.execute(stmt).scalars()}

        removed = 0
        for installment_id, model in existing.items():
            kept = wanted.get(installment_id)
            if kept is None or kept.due_date != model.due_date:
                self.session.delete(model)
                removed += 1
        self.session.flush()

        updated = 0
        inserted = 0
        for installment_id, dto in wanted.items():
            model = existing.get(installment_id)
            if model is not None and model.due_date == dto.due_date:
                model.update_from_dto(dto)
                updated += 1
            else:
                self.session.add(InstallmentModel.from_dto(dto))
                inserted += 1
        self.session.flush()

        logger.debug(
            "installment_set_replaced",
            extra={
                "agreement_id": agreement_id,
                "rows_removed": removed,
                "rows_updated": updated,
                "rows_inserted": inserted,
            },
        )
        return removed, updated, inserted

    def save_installment(self, installment: Installment) -> InstallmentModel:
        model = self.load_installment(installment.id)
        model.update_from_dto(installment)
        self.session.flush()
        return model

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def set_agreement_lifecycle(self, agreement_id: str, lifecycle: Lifecycle) -> None:
        self.load_agreement(agreement_id).apply_lifecycle(lifecycle)
        self.session.flush()

    def set_installment_lifecycles(self, installments: Iterable[Installment]) -> int:
        count = 0
        for installment in installments:
            self.load_installment(installment.id).apply_lifecycle(installment.lifecycle)
            count += 1
        self.session.flush()
        return count

    def purge_agreement(self, agreement_id: str) -> list[str]:
        """
        Physically delete an agreement and every installment that belongs to it.

        Returns:
            Ids of the installments removed.
        """
        model = self.load_agreement(agreement_id)
        installment_ids = list(
            self.session.execute(
                select(InstallmentModel.id).where(InstallmentModel.agreement_id == agreement_id)
            ).scalars()
        )
        self.session.execute(
            delete(InstallmentModel).where(InstallmentModel.agreement_id == agreement_id)
        )
        self.session.delete(model)
        self.session.flush()
        return installment_ids

    def purge_installment(self, installment_id: str) -> None:
        self.session.delete(self.load_installment(installment_id))
        self.session.flush()
