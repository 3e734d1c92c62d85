"""
Typed Exception Hierarchy for the Compliance Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the compliance engine (HTTP handlers, dashboards, nightly jobs)
must react to failures precisely: a malformed agreement is the operator's
problem, an optimistic-concurrency conflict means "reload and retry", and a
half-applied cascade is an incident.  Parsing message strings for that is
fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.mark_installment_paid(installment_id, receipt_url, paid_on)
    except AlreadyPaidError as e:
        api_response(code=e.code, installment=e.installment_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ComplianceKernelError:

    ComplianceKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidFrequencyError
    |   +-- InvalidLocationError
    |
    +-- NotFoundError
    |   +-- AgreementNotFoundError
    |   +-- InstallmentNotFoundError
    |
    +-- AlreadyPaidError
    |
    +-- ConcurrencyError
    |   +-- ReconciliationConflictError
    |
    +-- LifecycleError
        +-- InvalidLifecycleTransitionError
        +-- RetentionWindowError
        +-- CascadeFailureError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised
-------------|-------------------------------|----------------------------------
Validation   | VALIDATION_ERROR              | Required term missing/malformed
             | INVALID_FREQUENCY             | Tax frequency not recognised
             | INVALID_LOCATION              | District/area not in directory
-------------|-------------------------------|----------------------------------
Not found    | AGREEMENT_NOT_FOUND           | Agreement absent, purged or binned
             | INSTALLMENT_NOT_FOUND         | Installment absent or purged
-------------|-------------------------------|----------------------------------
Payment      | ALREADY_PAID                  | Mark-paid on a Paid installment
-------------|-------------------------------|----------------------------------
Concurrency  | RECONCILIATION_CONFLICT       | Agreement revision mismatch
-------------|-------------------------------|----------------------------------
Lifecycle    | INVALID_LIFECYCLE_TRANSITION  | e.g. restore of an active record
             | RETENTION_WINDOW_ACTIVE       | Purge inside the retention window
             | CASCADE_FAILURE               | Cascade could not be applied whole

None of these are retried inside the engine: schedule generation is
deterministic, so a retry with unchanged input fails the same way.
"""


class ComplianceKernelError(Exception):
    """
    Base exception for all compliance kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "COMPLIANCE_KERNEL_ERROR"


# Validation exceptions


class ValidationError(ComplianceKernelError):
    """Agreement terms are missing or malformed."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid value for {field}: {reason}")


class InvalidFrequencyError(ValidationError):
    """Tax frequency is not one of the supported values."""

    code: str = "INVALID_FREQUENCY"

    def __init__(self, frequency: object):
        self.frequency = frequency
        super().__init__("frequency", f"unsupported tax frequency {frequency!r}")


class InvalidLocationError(ValidationError):
    """District or area is unknown to the location directory."""

    code: str = "INVALID_LOCATION"

    def __init__(self, district: str, area: str | None):
        self.district = district
        self.area = area
        where = district if area is None else f"{district}/{area}"
        super().__init__("district", f"unknown location {where}")


# Lookup exceptions


class NotFoundError(ComplianceKernelError):
    """Base exception for records that cannot be loaded."""

    code: str = "NOT_FOUND"


class AgreementNotFoundError(NotFoundError):
    """Agreement with given ID was not found."""

    code: str = "AGREEMENT_NOT_FOUND"

    def __init__(self, agreement_id: str):
        self.agreement_id = agreement_id
        super().__init__(f"Agreement not found: {agreement_id}")


class InstallmentNotFoundError(NotFoundError):
    """Installment with given ID was not found."""

    code: str = "INSTALLMENT_NOT_FOUND"

    def __init__(self, installment_id: str):
        self.installment_id = installment_id
        super().__init__(f"Installment not found: {installment_id}")


# Payment exceptions


class AlreadyPaidError(ComplianceKernelError):
    """Installment is already Paid; Paid is sticky."""

    code: str = "ALREADY_PAID"

    def __init__(self, installment_id: str):
        self.installment_id = installment_id
        super().__init__(f"Installment {installment_id} is already paid")


# Concurrency exceptions


class ConcurrencyError(ComplianceKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ReconciliationConflictError(ConcurrencyError):
    """Agreement was edited by another writer since it was read."""

    code: str = "RECONCILIATION_CONFLICT"

    def __init__(self, agreement_id: str, expected_revision: int, actual_revision: int):
        self.agreement_id = agreement_id
        self.expected_revision = expected_revision
        self.actual_revision = actual_revision
        super().__init__(
            f"Agreement {agreement_id} is at revision {actual_revision}, "
            f"expected {expected_revision}"
        )


# Lifecycle (recycle bin) exceptions


class LifecycleError(ComplianceKernelError):
    """Base exception for soft-delete/restore/purge errors."""

    code: str = "LIFECYCLE_ERROR"


class InvalidLifecycleTransitionError(LifecycleError):
    """Requested transition is not allowed from the record's current state."""

    code: str = "INVALID_LIFECYCLE_TRANSITION"

    def __init__(self, kind: str, record_id: str, current_state: str, action: str):
        self.kind = kind
        self.record_id = record_id
        self.current_state = current_state
        self.action = action
        super().__init__(
            f"Cannot {action} {kind} {record_id}: record is {current_state}"
        )


class RetentionWindowError(LifecycleError):
    """Permanent delete attempted inside the retention window without force."""

    code: str = "RETENTION_WINDOW_ACTIVE"

    def __init__(self, kind: str, record_id: str, purge_after: str):
        self.kind = kind
        self.record_id = record_id
        self.purge_after = purge_after
        super().__init__(
            f"{kind} {record_id} is within its retention window "
            f"(purgeable after {purge_after})"
        )


class CascadeFailureError(LifecycleError):
    """A cascading delete/restore/purge could not be applied atomically."""

    code: str = "CASCADE_FAILURE"

    def __init__(self, agreement_id: str, action: str, reason: str):
        self.agreement_id = agreement_id
        self.action = action
        self.reason = reason
        super().__init__(
            f"Cascade {action} failed for agreement {agreement_id}: {reason}"
        )
