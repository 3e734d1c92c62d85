"""
Values -- Enumerations and the record lifecycle variant.

Responsibility:
    Defines the closed vocabularies of the compliance domain (tax frequency,
    agreement status, installment status, record kind) and the tagged
    lifecycle variant ``Active | Deleted | Purged`` used for soft delete.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Frequencies outside the known set never parse; ``TaxFrequency.parse``
      raises ``InvalidFrequencyError`` instead of defaulting.
    - A deleted record always carries its deletion timestamp: the lifecycle
      is a sum type, so "deleted without timestamp" and "active with
      timestamp" cannot be constructed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Union

from compliance_kernel.exceptions import InvalidFrequencyError, ValidationError


class TaxFrequency(str, Enum):
    """Amortization period of an agreement's license fee."""

    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    HALF_YEARLY = "Half-Yearly"
    YEARLY = "Yearly"
    ONE_TIME = "One-Time"

    @classmethod
    def parse(cls, value: TaxFrequency | str | None) -> TaxFrequency:
        """Parse a frequency by value or member name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if value == member.value or value.upper().replace("-", "_") == member.name:
                    return member
        raise InvalidFrequencyError(value)


class AgreementStatus(str, Enum):
    """Derived agreement status relative to "now"."""

    ACTIVE = "Active"
    EXPIRING_SOON = "Expiring Soon"
    EXPIRED = "Expired"


class InstallmentStatus(str, Enum):
    """Installment payment status."""

    PENDING = "Pending"
    OVERDUE = "Overdue"
    PAID = "Paid"


class RecordKind(str, Enum):
    """Entity kinds handled by the recycle bin."""

    AGREEMENT = "agreement"
    INSTALLMENT = "installment"

    @classmethod
    def parse(cls, value: RecordKind | str) -> RecordKind:
        """Parse a record kind, accepting the legacy route aliases."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized in ("agreement", "agreements", "tender", "tenders"):
            return cls.AGREEMENT
        if normalized in ("installment", "installments", "tax", "taxes"):
            return cls.INSTALLMENT
        raise ValidationError("kind", f"unknown record kind {value!r}")


# ---------------------------------------------------------------------------
# Lifecycle variant
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Active:
    """Record is visible in active views."""

    @property
    def is_deleted(self) -> bool:
        return False

    @property
    def label(self) -> str:
        return "active"


@dataclass(frozen=True, slots=True)
class Deleted:
    """
    Record is in the recycle bin.

    ``cascaded_from`` holds the agreement id when an installment was binned
    by its agreement's cascade, and is None for a direct deletion.
    """

    at: datetime
    cascaded_from: str | None = None

    @property
    def is_deleted(self) -> bool:
        return True

    @property
    def label(self) -> str:
        return "deleted"


@dataclass(frozen=True, slots=True)
class Purged:
    """Record has been permanently removed."""

    @property
    def is_deleted(self) -> bool:
        return True

    @property
    def label(self) -> str:
        return "purged"


Lifecycle = Union[Active, Deleted, Purged]

ACTIVE = Active()
PURGED = Purged()


class RemainderPolicy(str, Enum):
    """
    Where the integer-division remainder of a periodic fee goes.

    ACCEPT_LOSS leaves every installment at ``fee // periods_per_year``;
    FINAL_PERIOD adds ``fee % periods_per_year`` to the last installment.
    """

    ACCEPT_LOSS = "accept_loss"
    FINAL_PERIOD = "final_period"
