"""
ORM round-trip and constraint tests for the compliance tables.

Covers:
- AgreementModel / InstallmentModel <-> DTO conversion
- Lifecycle columns for active, directly deleted and cascade-deleted rows
- Database constraints (deleted_at iff deleted, unique due date per
  agreement, unique reference number)
"""

from datetime import UTC, date, datetime

import pytest
from sqlalchemy.exc import IntegrityError

from compliance_kernel.domain.dtos import Agreement, Installment
from compliance_kernel.domain.values import (
    ACTIVE,
    PURGED,
    Deleted,
    InstallmentStatus,
    TaxFrequency,
)
from compliance_kernel.models.compliance import AgreementModel, InstallmentModel

DELETED_AT = datetime(2024, 2, 1, 8, 30, tzinfo=UTC)


def _agreement(**overrides) -> Agreement:
    fields = {
        "id": "TND-ORM",
        "reference_number": "SRA/T/ORM",
        "name": "Baner Unipole",
        "district": "Pune",
        "area": "Baner",
        "start_date": date(2024, 1, 1),
        "end_date": date(2024, 12, 31),
        "license_fee": 60000,
        "frequency": TaxFrequency.QUARTERLY,
        "document_url": "https://files.example/orm.pdf",
        "revision": 3,
    }
    fields.update(overrides)
    return Agreement(**fields)


def _installment(sequence: int = 1, **overrides) -> Installment:
    fields = {
        "id": f"TX-TND-ORM-{sequence:03d}",
        "agreement_id": "TND-ORM",
        "sequence": sequence,
        "reference_number": "SRA/T/ORM",
        "district": "Pune",
        "area": "Baner",
        "due_date": date(2024, 1 + 3 * (sequence - 1), 1),
        "amount": 15000,
    }
    fields.update(overrides)
    return Installment(**fields)


class TestRoundTrip:
    """DTO -> row -> DTO preserves every field."""

    def test_agreement(self, session):
        dto = _agreement()
        session.add(AgreementModel.from_dto(dto))
        session.flush()
        session.expire_all()

        loaded = session.get(AgreementModel, "TND-ORM").to_dto()

        assert loaded == dto

    def test_paid_installment(self, session):
        dto = _installment(
            status=InstallmentStatus.PAID,
            payment_date=date(2024, 1, 3),
            receipt_url="https://files.example/r1.pdf",
        )
        session.add(InstallmentModel.from_dto(dto))
        session.flush()
        session.expire_all()

        assert session.get(InstallmentModel, dto.id).to_dto() == dto

    def test_cascade_deleted_installment(self, session):
        dto = _installment(2, lifecycle=Deleted(at=DELETED_AT, cascaded_from="TND-ORM"))
        session.add(InstallmentModel.from_dto(dto))
        session.flush()
        session.expire_all()

        model = session.get(InstallmentModel, dto.id)
        assert model.deleted is True
        assert model.cascade_parent_id == "TND-ORM"
        assert model.to_dto().lifecycle == Deleted(at=DELETED_AT, cascaded_from="TND-ORM")

    def test_deleted_at_read_back_as_utc(self, session):
        session.add(AgreementModel.from_dto(_agreement(lifecycle=Deleted(at=DELETED_AT))))
        session.flush()
        session.expire_all()

        deleted_at = session.get(AgreementModel, "TND-ORM").to_dto().deleted_at

        assert deleted_at == DELETED_AT
        assert deleted_at.utcoffset().total_seconds() == 0


class TestLifecycleColumns:
    """apply_lifecycle writes the flag, timestamp and cascade tag together."""

    def test_restore_clears_everything(self):
        model = InstallmentModel.from_dto(
            _installment(lifecycle=Deleted(at=DELETED_AT, cascaded_from="TND-ORM"))
        )

        model.apply_lifecycle(ACTIVE)

        assert model.deleted is False
        assert model.deleted_at is None
        assert model.cascade_parent_id is None

    def test_purged_is_not_storable(self):
        model = AgreementModel.from_dto(_agreement())

        with pytest.raises(ValueError):
            model.apply_lifecycle(PURGED)


class TestConstraints:
    """Database-level guarantees."""

    def test_deleted_without_timestamp_rejected(self, session):
        model = AgreementModel.from_dto(_agreement())
        model.deleted = True
        session.add(model)

        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_timestamp_without_deleted_rejected(self, session):
        model = InstallmentModel.from_dto(_installment())
        model.deleted_at = DELETED_AT
        session.add(model)

        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_duplicate_due_date_rejected(self, session):
        session.add(InstallmentModel.from_dto(_installment(1)))
        session.add(InstallmentModel.from_dto(_installment(1, id="TX-TND-ORM-099")))

        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_duplicate_reference_rejected(self, session):
        session.add(AgreementModel.from_dto(_agreement()))
        session.add(AgreementModel.from_dto(_agreement(id="TND-OTHER")))

        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_same_due_date_across_agreements_allowed(self, session):
        session.add(InstallmentModel.from_dto(_installment(1)))
        session.add(
            InstallmentModel.from_dto(
                _installment(1, id="TX-TND-X-001", agreement_id="TND-X")
            )
        )

        session.flush()
