"""
Pure compliance domain: value vocabularies, lifecycle variant, DTOs, clock.

Zero I/O.  Engines and services import their nouns from here.
"""

from compliance_kernel.domain.clock import Clock, DeterministicClock, SystemClock, as_utc
from compliance_kernel.domain.dtos import (
    Agreement,
    AgreementResult,
    AgreementTerms,
    ComplianceSnapshot,
    ComplianceStats,
    Installment,
    PurgeReport,
    RecycleBinItem,
)
from compliance_kernel.domain.values import (
    ACTIVE,
    PURGED,
    Active,
    AgreementStatus,
    Deleted,
    InstallmentStatus,
    Lifecycle,
    Purged,
    RecordKind,
    RemainderPolicy,
    TaxFrequency,
)

__all__ = [
    "ACTIVE",
    "PURGED",
    "Active",
    "Agreement",
    "AgreementResult",
    "AgreementStatus",
    "AgreementTerms",
    "Clock",
    "ComplianceSnapshot",
    "ComplianceStats",
    "Deleted",
    "DeterministicClock",
    "Installment",
    "InstallmentStatus",
    "Lifecycle",
    "Purged",
    "PurgeReport",
    "RecordKind",
    "RecycleBinItem",
    "RemainderPolicy",
    "SystemClock",
    "TaxFrequency",
    "as_utc",
]
