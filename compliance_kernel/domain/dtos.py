"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable records that flow between the engines and the
    services: agreement terms (input), agreements and installments (the
    persisted nouns), compliance statistics and the compliance snapshot
    (read model), and recycle-bin listing/purge results.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies; ORM models convert to these at the boundary.

Invariants enforced:
    - All models are ``frozen=True`` (immutable after construction).
    - Currency amounts are integer units, never float.
    - ``AgreementTerms.validated()`` rejects missing names, blank location,
      negative fees and unparseable frequencies before any schedule exists.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Mapping

from compliance_kernel.domain.values import (
    ACTIVE,
    AgreementStatus,
    InstallmentStatus,
    Lifecycle,
    RecordKind,
    TaxFrequency,
)
from compliance_kernel.exceptions import ValidationError

_REQUIRED_TERMS = (
    "reference_number",
    "name",
    "district",
    "start_date",
    "end_date",
    "license_fee",
    "frequency",
)


def _parse_date(field_name: str, value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            raise ValidationError(field_name, f"not an ISO date: {value!r}") from None
    raise ValidationError(field_name, f"not a date: {value!r}")


def _parse_fee(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError("license_fee", "must be an integer amount")
    if isinstance(value, int):
        fee = value
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        fee = int(value.strip())
    else:
        raise ValidationError("license_fee", f"must be an integer amount, got {value!r}")
    if fee < 0:
        raise ValidationError("license_fee", "cannot be negative")
    return fee


@dataclass(frozen=True)
class AgreementTerms:
    """Caller-supplied terms of a tender agreement."""

    reference_number: str
    name: str
    district: str
    start_date: date
    end_date: date
    license_fee: int
    frequency: TaxFrequency
    area: str | None = None
    document_url: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> AgreementTerms:
        """
        Build validated terms from a loosely-typed mapping (e.g. a request body).

        Raises:
            ValidationError: A required term is missing or malformed.
            InvalidFrequencyError: The frequency is not recognised.
        """
        for name in _REQUIRED_TERMS:
            value = data.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(name, "is required")

        return cls(
            reference_number=str(data["reference_number"]).strip(),
            name=str(data["name"]).strip(),
            district=str(data["district"]).strip(),
            area=(str(data["area"]).strip() or None) if data.get("area") else None,
            start_date=_parse_date("start_date", data["start_date"]),
            end_date=_parse_date("end_date", data["end_date"]),
            license_fee=_parse_fee(data["license_fee"]),
            frequency=TaxFrequency.parse(data["frequency"]),
            document_url=data.get("document_url"),
        )

    def validated(self) -> AgreementTerms:
        """Re-check an already-typed instance; returns a normalized copy."""
        return AgreementTerms.from_mapping(
            {
                "reference_number": self.reference_number,
                "name": self.name,
                "district": self.district,
                "area": self.area,
                "start_date": self.start_date,
                "end_date": self.end_date,
                "license_fee": self.license_fee,
                "frequency": self.frequency,
                "document_url": self.document_url,
            }
        )


@dataclass(frozen=True)
class Agreement:
    """A tender/license agreement as read from storage."""

    id: str
    reference_number: str
    name: str
    district: str
    start_date: date
    end_date: date
    license_fee: int
    frequency: TaxFrequency
    status: AgreementStatus = AgreementStatus.ACTIVE
    area: str | None = None
    document_url: str | None = None
    revision: int = 1
    lifecycle: Lifecycle = ACTIVE

    @property
    def deleted(self) -> bool:
        return self.lifecycle.is_deleted

    @property
    def deleted_at(self) -> datetime | None:
        return getattr(self.lifecycle, "at", None)

    @property
    def terms(self) -> AgreementTerms:
        return AgreementTerms(
            reference_number=self.reference_number,
            name=self.name,
            district=self.district,
            area=self.area,
            start_date=self.start_date,
            end_date=self.end_date,
            license_fee=self.license_fee,
            frequency=self.frequency,
            document_url=self.document_url,
        )


@dataclass(frozen=True)
class Installment:
    """
    One scheduled tax payment obligation.

    Unsaved instances produced by the schedule generator are the "drafts";
    they have no payment data and an active lifecycle.
    """

    id: str
    agreement_id: str
    sequence: int
    reference_number: str
    district: str
    due_date: date
    amount: int
    status: InstallmentStatus = InstallmentStatus.PENDING
    area: str | None = None
    payment_date: date | None = None
    receipt_url: str | None = None
    lifecycle: Lifecycle = ACTIVE

    @property
    def is_paid(self) -> bool:
        return self.status == InstallmentStatus.PAID

    @property
    def deleted(self) -> bool:
        return self.lifecycle.is_deleted

    @property
    def deleted_at(self) -> datetime | None:
        return getattr(self.lifecycle, "at", None)

    def with_status(self, status: InstallmentStatus) -> Installment:
        return replace(self, status=status)


@dataclass(frozen=True)
class AgreementResult:
    """An agreement together with its authoritative installment set."""

    agreement: Agreement
    installments: tuple[Installment, ...]

    @property
    def scheduled_total(self) -> int:
        return sum(i.amount for i in self.installments)


@dataclass(frozen=True)
class ComplianceStats:
    """Aggregate liability and expiry counters."""

    expiring_tenders: int = 0
    pending_taxes: int = 0
    overdue_taxes: int = 0
    total_active_tenders: int = 0
    total_tax_liability: int = 0
    total_tax_paid: int = 0

    def to_dict(self) -> dict[str, int]:
        """Dashboard payload using the console's field names."""
        return {
            "expiringTenders": self.expiring_tenders,
            "pendingTaxes": self.pending_taxes,
            "overdueTaxes": self.overdue_taxes,
            "totalActiveTenders": self.total_active_tenders,
            "totalTaxLiability": self.total_tax_liability,
            "totalTaxPaid": self.total_tax_paid,
        }


@dataclass(frozen=True)
class ComplianceSnapshot:
    """Read model combining agreements, installments and derived stats."""

    as_of: datetime
    agreements: tuple[Agreement, ...] = field(default_factory=tuple)
    installments: tuple[Installment, ...] = field(default_factory=tuple)
    stats: ComplianceStats = field(default_factory=ComplianceStats)


@dataclass(frozen=True)
class RecycleBinItem:
    """One entry in the recycle-bin listing."""

    id: str
    kind: RecordKind
    display_name: str
    sub_text: str
    deleted_at: datetime
    purge_after: datetime


@dataclass(frozen=True)
class PurgeReport:
    """Outcome of a permanent delete or retention sweep."""

    agreement_ids: tuple[str, ...] = ()
    installment_ids: tuple[str, ...] = ()

    @property
    def agreements_purged(self) -> int:
        return len(self.agreement_ids)

    @property
    def installments_purged(self) -> int:
        return len(self.installment_ids)
