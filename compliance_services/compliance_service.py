"""
Compliance Service (``compliance_services.compliance_service``).

Responsibility
--------------
Orchestrates the agreement side of the compliance engine -- agreement
creation with its installment schedule, agreement edits with schedule
reconciliation, installment payment, document attachment, the overdue
status sweep and the compliance snapshot -- by delegating pure computation
to ``compliance_engines`` and persistence to the kernel ``RecordWriter``.

Architecture position
---------------------
**Services layer** -- the public entry point for agreement operations.
Composes ``ScheduleGenerator``, ``ReconciliationEngine``,
``StatusClassifier`` and ``ComplianceStatsAggregator`` with the kernel
selector and writer.

Invariants enforced
-------------------
* Each public mutating method owns the transaction boundary (``commit`` on
  success, ``rollback`` on any exception, which is then re-raised).
* An agreement and its installment set are written in one transaction, so
  an edit either fully replaces the set or leaves it untouched.
* Edits lock the agreement row and bump its revision; a stale
  ``expected_revision`` raises ``ReconciliationConflictError``.
* Paid installments are never re-amounted or re-dated.
* Stats are recomputed and pushed to subscribers after every committed
  mutation.

Failure modes
-------------
* ``ValidationError`` / ``InvalidFrequencyError`` / ``InvalidLocationError``
  -- bad terms, raised before anything is written.
* ``AgreementNotFoundError`` / ``InstallmentNotFoundError`` -- unknown or
  binned records.
* ``AlreadyPaidError`` -- marking a Paid installment paid again.
* ``ReconciliationConflictError`` -- concurrent edit detected.

Audit relevance
---------------
Structured log events (``agreement_created``, ``agreement_reconciled``,
``installment_paid``, ``agreement_document_attached``,
``overdue_statuses_refreshed``) carry agreement and installment ids; engine
calls additionally emit COMPLIANCE_ENGINE_TRACE records.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Any, Callable, Mapping
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from compliance_config import ComplianceConfig
from compliance_engines import (
    ComplianceStatsAggregator,
    ReconciliationEngine,
    ScheduleGenerator,
    ScheduleRequest,
    StatusClassifier,
)
from compliance_kernel.domain.clock import Clock, SystemClock
from compliance_kernel.domain.dtos import (
    Agreement,
    AgreementResult,
    AgreementTerms,
    ComplianceSnapshot,
    ComplianceStats,
    Installment,
)
from compliance_kernel.domain.values import InstallmentStatus
from compliance_kernel.exceptions import (
    AgreementNotFoundError,
    AlreadyPaidError,
    InstallmentNotFoundError,
    ReconciliationConflictError,
    ValidationError,
)
from compliance_kernel.logging_config import LogContext, get_logger
from compliance_kernel.models.compliance import AgreementModel
from compliance_kernel.selectors.compliance_selector import ComplianceSelector
from compliance_kernel.services.record_writer import RecordWriter
from compliance_services.locations import LocationDirectory
from compliance_services.stats_feed import StatsFeed, StatsListener

logger = get_logger("services.compliance")

AgreementIdFactory = Callable[[], str]


def new_agreement_id() -> str:
    return f"TND-{uuid4().hex[:12].upper()}"


def _coerce_terms(terms: AgreementTerms | Mapping[str, Any]) -> AgreementTerms:
    if isinstance(terms, AgreementTerms):
        return terms.validated()
    return AgreementTerms.from_mapping(terms)


class ComplianceService:
    """
    Agreement lifecycle, payments and the compliance read model.

    Contract
    --------
    * Accepts terms either as ``AgreementTerms`` or as a plain mapping with
      the same keys (dates as ``date`` or ISO strings).
    * Returns DTOs only; ORM rows never leave the service.

    Guarantees
    ----------
    * Clock and configuration are injectable for deterministic testing.
    * No method commits a partial installment set.

    Non-goals
    ---------
    * Does NOT soft-delete or restore records (``RecycleBinService``).
    * Does NOT store documents; URLs are opaque strings.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ComplianceConfig | None = None,
        location_directory: LocationDirectory | None = None,
        stats_feed: StatsFeed | None = None,
        id_factory: AgreementIdFactory = new_agreement_id,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ComplianceConfig.with_defaults()
        self._locations = location_directory
        self._feed = stats_feed or StatsFeed()
        self._id_factory = id_factory

        self._selector = ComplianceSelector(session)
        self._writer = RecordWriter(session)
        self._generator = ScheduleGenerator(
            remainder_policy=self._config.remainder_policy,
            id_prefix=self._config.installment_id_prefix,
            sequence_width=self._config.sequence_width,
        )
        self._reconciler = ReconciliationEngine(self._generator)
        self._classifier = StatusClassifier(self._config.expiry_window_days)
        self._aggregator = ComplianceStatsAggregator(self._config.expiry_window_days)

    @property
    def stats_feed(self) -> StatsFeed:
        return self._feed

    def subscribe(self, listener: StatsListener) -> Callable[[], None]:
        """Receive fresh ``ComplianceStats`` after every committed mutation."""
        return self._feed.subscribe(listener)

    # =========================================================================
    # Create
    # =========================================================================

    def create_agreement(
        self,
        terms: AgreementTerms | Mapping[str, Any],
        agreement_id: str | None = None,
    ) -> AgreementResult:
        """
        Store a new agreement together with its generated schedule.

        Raises:
            ValidationError: Missing or malformed terms, or a duplicate
                reference number / agreement id.
            InvalidFrequencyError: Unrecognised frequency.
            InvalidLocationError: District/area rejected by the directory.
        """
        parsed = _coerce_terms(terms)
        self._validate_location(parsed)
        agreement_id = agreement_id or self._id_factory()
        today = self._clock.today()

        with LogContext.bind(agreement_id=agreement_id):
            try:
                if self._session.get(AgreementModel, agreement_id) is not None:
                    raise ValidationError("agreement_id", f"{agreement_id} already exists")
                self._ensure_reference_available(parsed.reference_number)

                agreement = _agreement_from_terms(agreement_id, parsed)
                drafts = self._generator.generate(
                    request=ScheduleRequest.from_agreement(agreement), today=today
                )
                self._writer.add_agreement(agreement)
                self._writer.add_installments(drafts)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "agreement_created",
                extra={
                    "reference_number": agreement.reference_number,
                    "frequency": agreement.frequency.value,
                    "license_fee": agreement.license_fee,
                    "installment_count": len(drafts),
                },
            )
            self._publish_stats()
            return AgreementResult(
                agreement=self._classifier.classify_agreement(agreement, today),
                installments=tuple(drafts),
            )

    # =========================================================================
    # Update (reconcile)
    # =========================================================================

    def update_agreement(
        self,
        agreement_id: str,
        new_terms: AgreementTerms | Mapping[str, Any],
        expected_revision: int | None = None,
    ) -> AgreementResult:
        """
        Apply edited terms and reconcile the installment schedule.

        Paid installments are preserved; unpaid ones are regenerated after
        the last paid due date.

        Raises:
            AgreementNotFoundError: Unknown or binned agreement.
            ReconciliationConflictError: ``expected_revision`` is stale.
            ValidationError / InvalidFrequencyError / InvalidLocationError:
                Bad terms.
        """
        parsed = _coerce_terms(new_terms)
        self._validate_location(parsed)
        today = self._clock.today()

        with LogContext.bind(agreement_id=agreement_id):
            try:
                model = self._writer.load_agreement(agreement_id, for_update=True)
                if model.deleted:
                    raise AgreementNotFoundError(agreement_id)
                if expected_revision is not None and model.revision != expected_revision:
                    raise ReconciliationConflictError(
                        agreement_id, expected_revision, model.revision
                    )
                if parsed.reference_number != model.reference_number:
                    self._ensure_reference_available(parsed.reference_number)

                updated = _agreement_from_terms(
                    agreement_id,
                    parsed,
                    revision=model.revision + 1,
                    document_url=parsed.document_url or model.document_url,
                )
                current = self._selector.installments_for(agreement_id)
                result = self._reconciler.reconcile(
                    request=ScheduleRequest.from_agreement(updated),
                    current=current,
                    today=today,
                )
                self._writer.update_agreement_terms(updated)
                self._writer.replace_installment_set(
                    agreement_id, result.agreement_installments
                )
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "agreement_reconciled",
                extra={
                    "revision": updated.revision,
                    "paid_preserved": len(result.preserved_paid),
                    "binned_preserved": len(result.preserved_binned),
                    "installments_added": len(result.added),
                    "installments_discarded": len(result.discarded),
                    "fee_gap": result.fee_gap,
                },
            )
            self._publish_stats()
            return AgreementResult(
                agreement=self._classifier.classify_agreement(updated, today),
                installments=result.agreement_installments,
            )

    def attach_agreement_document(self, agreement_id: str, document_url: str) -> Agreement:
        """
        Record the storage URL of an agreement's document.

        Raises:
            AgreementNotFoundError: Unknown or binned agreement.
        """
        with LogContext.bind(agreement_id=agreement_id):
            try:
                model = self._writer.load_agreement(agreement_id)
                if model.deleted:
                    raise AgreementNotFoundError(agreement_id)
                model = self._writer.set_document_url(agreement_id, document_url)
                agreement = model.to_dto()
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info("agreement_document_attached", extra={"document_url": document_url})
            return self._classifier.classify_agreement(agreement, self._clock.today())

    # =========================================================================
    # Payments
    # =========================================================================

    def mark_installment_paid(
        self,
        installment_id: str,
        receipt_url: str | None = None,
        payment_date: date | None = None,
    ) -> Installment:
        """
        Mark an installment Paid.  ``payment_date`` defaults to today.

        Raises:
            InstallmentNotFoundError: Unknown or binned installment.
            AlreadyPaidError: The installment is already Paid.
        """
        with LogContext.bind(installment_id=installment_id):
            try:
                model = self._writer.load_installment(installment_id, for_update=True)
                current = model.to_dto()
                if current.deleted:
                    raise InstallmentNotFoundError(installment_id)
                if current.is_paid:
                    raise AlreadyPaidError(installment_id)

                paid = replace(
                    current,
                    status=InstallmentStatus.PAID,
                    payment_date=payment_date or self._clock.today(),
                    receipt_url=receipt_url,
                )
                self._writer.save_installment(paid)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "installment_paid",
                extra={
                    "agreement_id": paid.agreement_id,
                    "amount": paid.amount,
                    "payment_date": paid.payment_date,
                    "has_receipt": receipt_url is not None,
                },
            )
            self._publish_stats()
            return paid

    # =========================================================================
    # Status sweep
    # =========================================================================

    def refresh_overdue_statuses(self) -> int:
        """
        Rewrite stored Pending to Overdue for past-due live installments.

        Derived status already reads these as Overdue; the sweep only brings
        the stored field in line.  Returns the number of rows changed.
        """
        today = self._clock.today()
        try:
            stale = self._classifier.past_due_pending(
                self._selector.active_installments(), today
            )
            for installment in stale:
                self._writer.save_installment(
                    installment.with_status(InstallmentStatus.OVERDUE)
                )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "overdue_statuses_refreshed",
            extra={"as_of": today, "installments_updated": len(stale)},
        )
        if stale:
            self._publish_stats()
        return len(stale)

    # =========================================================================
    # Read model
    # =========================================================================

    def get_agreement(self, agreement_id: str) -> Agreement:
        """
        Raises:
            AgreementNotFoundError: Unknown or binned agreement.
        """
        agreement = self._selector.get_agreement(agreement_id)
        if agreement is None or agreement.deleted:
            raise AgreementNotFoundError(agreement_id)
        return self._classifier.classify_agreement(agreement, self._clock.today())

    def get_compliance_snapshot(self) -> ComplianceSnapshot:
        """
        Live agreements (by end date) and installments (by due date) with
        derived statuses, plus aggregate stats.  Read-only.
        """
        now = self._clock.now()
        today = now.date()
        agreements = self._selector.active_agreements()
        installments = self._selector.active_installments()
        stats = self._aggregator.recompute(
            agreements=agreements, installments=installments, today=today
        )
        return ComplianceSnapshot(
            as_of=now,
            agreements=tuple(self._classifier.classify_agreements(agreements, today)),
            installments=tuple(self._classifier.classify_installments(installments, today)),
            stats=stats,
        )

    def current_stats(self) -> ComplianceStats:
        return self._aggregator.recompute(
            agreements=self._selector.active_agreements(),
            installments=self._selector.active_installments(),
            today=self._clock.today(),
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _publish_stats(self) -> None:
        if self._feed.listener_count:
            self._feed.publish(self.current_stats())

    def _validate_location(self, terms: AgreementTerms) -> None:
        if self._locations is not None:
            self._locations.validate(terms.district, terms.area)

    def _ensure_reference_available(self, reference_number: str) -> None:
        stmt = select(AgreementModel.id).where(
            AgreementModel.reference_number == reference_number
        )
        if self._session.execute(stmt).first() is not None:
            raise ValidationError(
                "reference_number", f"{reference_number} is already in use"
            )


def _agreement_from_terms(
    agreement_id: str,
    terms: AgreementTerms,
    revision: int = 1,
    document_url: str | None = None,
) -> Agreement:
    return Agreement(
        id=agreement_id,
        reference_number=terms.reference_number,
        name=terms.name,
        district=terms.district,
        area=terms.area,
        start_date=terms.start_date,
        end_date=terms.end_date,
        license_fee=terms.license_fee,
        frequency=terms.frequency,
        document_url=document_url if document_url is not None else terms.document_url,
        revision=revision,
    )

