"""
Module: compliance_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    compliance engines.  This is the canonical import surface for
    compliance_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import compliance_kernel/domain (and sibling engine modules).
    MUST NOT import compliance_services or compliance_kernel.db.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      "Today" and "now" are explicit parameters supplied by services from
      an injected Clock.
    - Integer money: amounts are whole currency units; floats are never
      produced.
    - Determinism: identical inputs always produce identical outputs.

Failure modes:
    - InvalidFrequencyError from the schedule and reconciliation engines.
    - InvalidLifecycleTransitionError / RetentionWindowError from the
      lifecycle engine.

Audit relevance:
    Schedule, reconciliation and stats invocations are traced via
    ``@traced_engine`` (see ``compliance_engines.tracer``), emitting
    COMPLIANCE_ENGINE_TRACE log records with engine name, version, input
    fingerprint and duration.

Usage:
    from compliance_engines import ScheduleGenerator, ScheduleRequest
    from compliance_engines import ReconciliationEngine, StatusClassifier
    from compliance_engines import ComplianceStatsAggregator, LifecycleManager
"""

from compliance_kernel.logging_config import get_logger

logger = get_logger("engines")

from compliance_engines.lifecycle import (
    DEFAULT_RETENTION_DAYS,
    CascadeResult,
    LifecycleManager,
)
from compliance_engines.reconciliation import (
    ReconciliationEngine,
    ReconciliationResult,
)
from compliance_engines.schedule import (
    INTERVAL_MONTHS,
    PERIODS_PER_YEAR,
    ScheduleGenerator,
    ScheduleRequest,
    installment_id,
    period_amount,
)
from compliance_engines.stats import (
    ComplianceStatsAggregator,
    recompute_stats,
)
from compliance_engines.status import (
    DEFAULT_EXPIRY_WINDOW_DAYS,
    StatusClassifier,
    derive_agreement_status,
    derive_installment_status,
    draft_status,
)
from compliance_engines.tracer import (
    compute_input_fingerprint,
    traced_engine,
)

__all__ = [
    # Lifecycle
    "DEFAULT_RETENTION_DAYS",
    "CascadeResult",
    "LifecycleManager",
    # Reconciliation
    "ReconciliationEngine",
    "ReconciliationResult",
    # Schedule
    "INTERVAL_MONTHS",
    "PERIODS_PER_YEAR",
    "ScheduleGenerator",
    "ScheduleRequest",
    "installment_id",
    "period_amount",
    # Stats
    "ComplianceStatsAggregator",
    "recompute_stats",
    # Status
    "DEFAULT_EXPIRY_WINDOW_DAYS",
    "StatusClassifier",
    "derive_agreement_status",
    "derive_installment_status",
    "draft_status",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
]
