"""
Tests for the Stats Engine.

Covers:
- Each counter and sum
- The read-time status policy: past-due Pending counts as overdue only
- Deleted records are ignored
- Expiry window boundaries
"""

from dataclasses import replace
from datetime import UTC, date, datetime, timedelta

from compliance_engines.stats import ComplianceStatsAggregator, recompute_stats
from compliance_kernel.domain.dtos import Agreement, ComplianceStats, Installment
from compliance_kernel.domain.values import Deleted, InstallmentStatus, TaxFrequency

TODAY = date(2024, 6, 15)


def _agreement(agreement_id: str, end: date, deleted: bool = False) -> Agreement:
    agreement = Agreement(
        id=agreement_id,
        reference_number=f"REF-{agreement_id}",
        name="Site",
        district="Pune",
        start_date=date(2024, 1, 1),
        end_date=end,
        license_fee=12000,
        frequency=TaxFrequency.MONTHLY,
    )
    if deleted:
        agreement = replace(agreement, lifecycle=Deleted(at=datetime(2024, 6, 1, tzinfo=UTC)))
    return agreement


def _installment(
    n: int,
    due: date,
    status: InstallmentStatus,
    amount: int = 1000,
    deleted: bool = False,
) -> Installment:
    lifecycle = Deleted(at=datetime(2024, 6, 1, tzinfo=UTC)) if deleted else None
    installment = Installment(
        id=f"TX-A-{n:03d}",
        agreement_id="A",
        sequence=n,
        reference_number="REF-A",
        district="Pune",
        due_date=due,
        amount=amount,
        status=status,
    )
    if lifecycle is not None:
        installment = replace(installment, lifecycle=lifecycle)
    return installment


class TestAgreementCounters:
    """expiringTenders and totalActiveTenders."""

    def test_expiring_and_active(self):
        agreements = [
            _agreement("expired", TODAY - timedelta(days=1)),
            _agreement("today", TODAY),
            _agreement("edge", TODAY + timedelta(days=30)),
            _agreement("active", TODAY + timedelta(days=31)),
        ]

        stats = recompute_stats(agreements, [], TODAY)

        assert stats.expiring_tenders == 2
        assert stats.total_active_tenders == 1

    def test_deleted_agreements_ignored(self):
        agreements = [
            _agreement("live", TODAY + timedelta(days=90)),
            _agreement("binned", TODAY + timedelta(days=90), deleted=True),
        ]

        stats = recompute_stats(agreements, [], TODAY)

        assert stats.total_active_tenders == 1

    def test_custom_window(self):
        agreements = [_agreement("a", TODAY + timedelta(days=45))]

        assert recompute_stats(agreements, [], TODAY, expiry_window_days=60).expiring_tenders == 1
        assert recompute_stats(agreements, [], TODAY).expiring_tenders == 0


class TestInstallmentCounters:
    """pendingTaxes, overdueTaxes, liability and paid totals."""

    def setup_method(self):
        self.installments = [
            _installment(1, TODAY - timedelta(days=60), InstallmentStatus.PAID, 1000),
            _installment(2, TODAY - timedelta(days=30), InstallmentStatus.OVERDUE, 2000),
            _installment(3, TODAY - timedelta(days=1), InstallmentStatus.PENDING, 3000),
            _installment(4, TODAY, InstallmentStatus.PENDING, 4000),
            _installment(5, TODAY + timedelta(days=30), InstallmentStatus.PENDING, 5000),
            _installment(6, TODAY + timedelta(days=60), InstallmentStatus.PENDING, 6000, deleted=True),
        ]

    def test_past_due_pending_counts_as_overdue_not_pending(self):
        """Read-time derivation decides: installment 3 is overdue only."""
        stats = recompute_stats([], self.installments, TODAY)

        assert stats.overdue_taxes == 2
        assert stats.pending_taxes == 2

    def test_counts_partition_live_installments(self):
        stats = recompute_stats([], self.installments, TODAY)
        live = [i for i in self.installments if not i.deleted]
        paid = sum(1 for i in live if i.status == InstallmentStatus.PAID)

        assert stats.pending_taxes + stats.overdue_taxes + paid == len(live)

    def test_liability_and_paid_sums(self):
        stats = recompute_stats([], self.installments, TODAY)

        assert stats.total_tax_paid == 1000
        assert stats.total_tax_liability == 2000 + 3000 + 4000 + 5000

    def test_accepts_datetime_now(self):
        now = datetime(2024, 6, 15, 23, 59, tzinfo=UTC)

        assert recompute_stats([], self.installments, now) == recompute_stats(
            [], self.installments, TODAY
        )


class TestAggregator:
    """Traced wrapper."""

    def test_empty_sets(self):
        stats = ComplianceStatsAggregator().recompute(agreements=[], installments=[], today=TODAY)

        assert stats == ComplianceStats()

    def test_to_dict_keys(self):
        stats = ComplianceStats(expiring_tenders=1, total_tax_paid=5)

        assert stats.to_dict() == {
            "expiringTenders": 1,
            "pendingTaxes": 0,
            "overdueTaxes": 0,
            "totalActiveTenders": 0,
            "totalTaxLiability": 0,
            "totalTaxPaid": 5,
        }
