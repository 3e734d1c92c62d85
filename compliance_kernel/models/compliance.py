"""
Module: compliance_kernel.models.compliance
Responsibility:
    SQLAlchemy ORM persistence models for tender agreements and their tax
    installments.  Maps the frozen DTOs from ``compliance_kernel.domain.dtos``
    to relational tables.

Architecture position:
    Kernel > Models.  May import from db/base.py and domain/ value types.
    MUST NOT import from services/, selectors/, engines or outer layers.

Invariants enforced:
    - ``deleted_at`` is set if and only if ``deleted`` is true (CHECK
      constraint ck_*_deleted_at_iff_deleted).  The boolean/timestamp pair
      never escapes this module: ``lifecycle`` converts to the tagged
      ``Active | Deleted`` variant.
    - One installment per (agreement, due date) (uq_installment_due_date).
    - Installments reference their agreement by id only (no FK, no ORM
      cascade); the recycle-bin service owns cascade semantics.
    - Amounts and fees are integer currency units (BigInteger).

Failure modes:
    - IntegrityError on duplicate reference numbers or due dates.
    - IntegrityError if the deleted/deleted_at pair is written inconsistently.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from compliance_kernel.db.base import TrackedBase
from compliance_kernel.domain.clock import as_utc
from compliance_kernel.domain.dtos import Agreement, Installment
from compliance_kernel.domain.values import (
    ACTIVE,
    Active,
    Deleted,
    InstallmentStatus,
    Lifecycle,
    Purged,
    TaxFrequency,
)


class _SoftDeleteMixin:
    """Columns and conversions shared by both soft-deletable tables."""

    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def lifecycle(self) -> Lifecycle:
        if not self.deleted:
            return ACTIVE
        return Deleted(
            at=as_utc(self.deleted_at),
            cascaded_from=getattr(self, "cascade_parent_id", None),
        )

    def apply_lifecycle(self, lifecycle: Lifecycle) -> None:
        """Write a lifecycle variant back to the flag/timestamp columns."""
        if isinstance(lifecycle, Active):
            self.deleted = False
            self.deleted_at = None
            if hasattr(self, "cascade_parent_id"):
                self.cascade_parent_id = None
        elif isinstance(lifecycle, Deleted):
            self.deleted = True
            self.deleted_at = lifecycle.at
            if hasattr(self, "cascade_parent_id"):
                self.cascade_parent_id = lifecycle.cascaded_from
        elif isinstance(lifecycle, Purged):
            raise ValueError("Purged records are removed, not stored")


# =============================================================================
# Agreement
# =============================================================================


class AgreementModel(_SoftDeleteMixin, TrackedBase):
    """
    A tender/license agreement.

    Guarantees:
        - ``reference_number`` is unique (uq_agreement_reference_number).
        - ``frequency`` holds a ``TaxFrequency`` value.
        - ``revision`` starts at 1 and increases by one on every edit.
    """

    __tablename__ = "compliance_agreements"

    __table_args__ = (
        UniqueConstraint("reference_number", name="uq_agreement_reference_number"),
        CheckConstraint(
            "(deleted AND deleted_at IS NOT NULL) OR "
            "(NOT deleted AND deleted_at IS NULL)",
            name="ck_agreement_deleted_at_iff_deleted",
        ),
        Index("idx_agreement_district", "district"),
        Index("idx_agreement_end_date", "end_date"),
        Index("idx_agreement_deleted", "deleted"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    reference_number: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    district: Mapped[str] = mapped_column(String(100), nullable=False)
    area: Mapped[str | None] = mapped_column(String(100), nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    license_fee: Mapped[int] = mapped_column(nullable=False)
    frequency: Mapped[str] = mapped_column(String(20), nullable=False)
    document_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    revision: Mapped[int] = mapped_column(nullable=False, default=1)

    def to_dto(self) -> Agreement:
        """Convert to DTO.  ``status`` is left for the caller to derive."""
        return Agreement(
            id=self.id,
            reference_number=self.reference_number,
            name=self.name,
            district=self.district,
            area=self.area,
            start_date=self.start_date,
            end_date=self.end_date,
            license_fee=self.license_fee,
            frequency=TaxFrequency(self.frequency),
            document_url=self.document_url,
            revision=self.revision,
            lifecycle=self.lifecycle,
        )

    @classmethod
    def from_dto(cls, dto: Agreement) -> AgreementModel:
        model = cls(
            id=dto.id,
            reference_number=dto.reference_number,
            name=dto.name,
            district=dto.district,
            area=dto.area,
            start_date=dto.start_date,
            end_date=dto.end_date,
            license_fee=dto.license_fee,
            frequency=dto.frequency.value,
            document_url=dto.document_url,
            revision=dto.revision,
        )
        model.apply_lifecycle(dto.lifecycle)
        return model

    def __repr__(self) -> str:
        return f"<AgreementModel {self.reference_number} rev={self.revision}>"


# =============================================================================
# Installment
# =============================================================================


class InstallmentModel(_SoftDeleteMixin, TrackedBase):
    """
    One tax installment owed under an agreement.

    Guarantees:
        - ``id`` is derived from ``agreement_id`` and ``sequence``.
        - ``reference_number``/``district``/``area`` are denormalized copies
          of the agreement's values, refreshed on every agreement edit.
        - ``cascade_parent_id`` is set only while the installment sits in the
          recycle bin because its agreement was deleted.
    """

    __tablename__ = "compliance_installments"

    __table_args__ = (
        UniqueConstraint("agreement_id", "due_date", name="uq_installment_due_date"),
        CheckConstraint(
            "(deleted AND deleted_at IS NOT NULL) OR "
            "(NOT deleted AND deleted_at IS NULL AND cascade_parent_id IS NULL)",
            name="ck_installment_deleted_at_iff_deleted",
        ),
        Index("idx_installment_agreement", "agreement_id"),
        Index("idx_installment_status", "status"),
        Index("idx_installment_due_date", "due_date"),
        Index("idx_installment_deleted", "deleted"),
    )

    id: Mapped[str] = mapped_column(String(96), primary_key=True)
    agreement_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sequence: Mapped[int] = mapped_column(nullable=False)
    reference_number: Mapped[str] = mapped_column(String(100), nullable=False)
    district: Mapped[str] = mapped_column(String(100), nullable=False)
    area: Mapped[str | None] = mapped_column(String(100), nullable=True)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InstallmentStatus.PENDING.value
    )
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    receipt_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    cascade_parent_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def to_dto(self) -> Installment:
        return Installment(
            id=self.id,
            agreement_id=self.agreement_id,
            sequence=self.sequence,
            reference_number=self.reference_number,
            district=self.district,
            area=self.area,
            due_date=self.due_date,
            amount=self.amount,
            status=InstallmentStatus(self.status),
            payment_date=self.payment_date,
            receipt_url=self.receipt_url,
            lifecycle=self.lifecycle,
        )

    @classmethod
    def from_dto(cls, dto: Installment) -> InstallmentModel:
        model = cls(
            id=dto.id,
            agreement_id=dto.agreement_id,
            sequence=dto.sequence,
            reference_number=dto.reference_number,
            district=dto.district,
            area=dto.area,
            due_date=dto.due_date,
            amount=dto.amount,
            status=dto.status.value,
            payment_date=dto.payment_date,
            receipt_url=dto.receipt_url,
        )
        model.apply_lifecycle(dto.lifecycle)
        return model

    def update_from_dto(self, dto: Installment) -> None:
        """Overwrite mutable columns in place (identity is unchanged)."""
        self.sequence = dto.sequence
        self.reference_number = dto.reference_number
        self.district = dto.district
        self.area = dto.area
        self.due_date = dto.due_date
        self.amount = dto.amount
        self.status = dto.status.value
        self.payment_date = dto.payment_date
        self.receipt_url = dto.receipt_url
        self.apply_lifecycle(dto.lifecycle)

    def __repr__(self) -> str:
        return f"<InstallmentModel {self.id} {self.status} due={self.due_date}>"
