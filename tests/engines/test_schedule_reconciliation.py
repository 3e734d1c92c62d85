"""
Tests for the Reconciliation Engine.

Covers:
- Scenario C: paid history preserved, candidates only after last paid date
- Unchanged edits keep paid installments unmodified
- Pass-through of other agreements' installments
- Denormalized field refresh on paid installments
- Id collision renumbering when the start date moves later
- Fee gap reporting
- Binned installments preserved through edits
"""

from dataclasses import replace
from datetime import UTC, date, datetime

from compliance_engines.reconciliation import ReconciliationEngine
from compliance_engines.schedule import ScheduleGenerator, ScheduleRequest
from compliance_kernel.domain.values import Deleted, InstallmentStatus

TODAY = date(2024, 4, 15)
BINNED_AT = datetime(2024, 4, 10, 12, 0, tzinfo=UTC)


def _request(**overrides) -> ScheduleRequest:
    fields = {
        "agreement_id": "TND-1",
        "reference_number": "SRA/T/001",
        "district": "Pune",
        "area": "Kothrud",
        "start_date": date(2024, 1, 1),
        "end_date": date(2024, 12, 31),
        "license_fee": 120000,
        "frequency": "Monthly",
    }
    fields.update(overrides)
    return ScheduleRequest(**fields)


def _schedule_with_paid(paid_count: int, request: ScheduleRequest | None = None):
    drafts = ScheduleGenerator().generate(request=request or _request(), today=TODAY)
    return [
        replace(
            d,
            status=InstallmentStatus.PAID,
            payment_date=d.due_date,
            receipt_url=f"https://files.example/{d.id}.pdf",
        )
        if d.sequence <= paid_count
        else d
        for d in drafts
    ]


class TestScenarioC:
    """Three paid installments, end date cut back to June."""

    def setup_method(self):
        self.engine = ReconciliationEngine()
        self.current = _schedule_with_paid(3)
        self.result = self.engine.reconcile(
            request=_request(end_date=date(2024, 6, 30)),
            current=self.current,
            today=TODAY,
        )

    def test_six_installments_total(self):
        assert len(self.result.agreement_installments) == 6

    def test_paid_january_to_march_kept(self):
        paid = [i for i in self.result.agreement_installments if i.is_paid]
        assert [i.due_date for i in paid] == [date(2024, m, 1) for m in (1, 2, 3)]
        assert paid == self.current[:3]

    def test_new_candidates_april_to_june(self):
        assert [i.due_date for i in self.result.added] == [
            date(2024, 4, 1),
            date(2024, 5, 1),
            date(2024, 6, 1),
        ]

    def test_no_duplicate_due_dates(self):
        due_dates = [i.due_date for i in self.result.agreement_installments]
        assert len(due_dates) == len(set(due_dates))

    def test_ordered_by_due_date(self):
        due_dates = [i.due_date for i in self.result.agreement_installments]
        assert due_dates == sorted(due_dates)

    def test_stale_drafts_discarded(self):
        assert len(self.result.discarded) == 9
        assert self.result.last_paid_due_date == date(2024, 3, 1)


class TestPreservation:
    """Paid installments survive edits unchanged."""

    def test_unchanged_terms_keep_paid_records(self):
        current = _schedule_with_paid(4)
        result = ReconciliationEngine().reconcile(
            request=_request(), current=current, today=TODAY
        )

        assert result.preserved_paid == tuple(current[:4])
        assert len(result.agreement_installments) == 12

    def test_fee_change_never_touches_paid_amounts(self):
        current = _schedule_with_paid(2)
        result = ReconciliationEngine().reconcile(
            request=_request(license_fee=240000), current=current, today=TODAY
        )

        paid = [i for i in result.agreement_installments if i.is_paid]
        assert all(i.amount == 10000 for i in paid)
        assert all(i.amount == 20000 for i in result.added)

    def test_refreshes_denormalized_fields(self):
        current = _schedule_with_paid(2)
        result = ReconciliationEngine().reconcile(
            request=_request(reference_number="SRA/T/001-A", district="Nashik", area=None),
            current=current,
            today=TODAY,
        )

        for paid in result.preserved_paid:
            assert paid.reference_number == "SRA/T/001-A"
            assert paid.district == "Nashik"
            assert paid.area is None
            assert paid.amount == 10000
            assert paid.receipt_url is not None

    def test_no_paid_history_regenerates_everything(self):
        current = _schedule_with_paid(0)
        result = ReconciliationEngine().reconcile(
            request=_request(frequency="Quarterly"), current=current, today=TODAY
        )

        assert result.last_paid_due_date is None
        assert len(result.agreement_installments) == 4
        assert len(result.discarded) == 12


class TestOtherAgreements:
    """Installments of other agreements pass through untouched."""

    def test_pass_through(self):
        other = ScheduleGenerator().generate(
            request=_request(agreement_id="TND-2", reference_number="SRA/T/002"),
            today=TODAY,
        )
        current = [*other, *_schedule_with_paid(1)]

        result = ReconciliationEngine().reconcile(
            request=_request(end_date=date(2024, 3, 31)), current=current, today=TODAY
        )

        passed = [i for i in result.installments if i.agreement_id == "TND-2"]
        assert passed == list(other)
        assert len(result.agreement_installments) == 3


class TestIdCollisions:
    """Moving the start later can make a candidate reuse a paid id."""

    def test_renumbered_after_highest_paid_sequence(self):
        current = _schedule_with_paid(2)
        result = ReconciliationEngine().reconcile(
            request=_request(start_date=date(2024, 2, 15), end_date=date(2024, 6, 30)),
            current=current,
            today=TODAY,
        )

        ids = [i.id for i in result.agreement_installments]
        assert len(ids) == len(set(ids))
        assert [i.sequence for i in result.added] == [3, 4, 5, 6, 7]
        assert result.added[0].id == "TX-TND-1-003"
        assert result.added[0].due_date == date(2024, 2, 15)


class TestFeeGap:
    """The known reconciliation gap is reported, not corrected."""

    def test_zero_gap_for_unchanged_terms(self):
        result = ReconciliationEngine().reconcile(
            request=_request(), current=_schedule_with_paid(3), today=TODAY
        )
        assert result.fee_gap == 0

    def test_gap_after_fee_increase(self):
        result = ReconciliationEngine().reconcile(
            request=_request(license_fee=240000), current=_schedule_with_paid(3), today=TODAY
        )

        # 3 x 10000 paid + 9 x 20000 new versus 12 x 20000 expected
        assert result.scheduled_total == 210000
        assert result.expected_total == 240000
        assert result.fee_gap == -30000


class TestBinnedInstallments:
    """Recycle-bin state survives an edit untouched."""

    def _current_with_binned(self, sequence: int):
        return [
            replace(d, lifecycle=Deleted(at=BINNED_AT)) if d.sequence == sequence else d
            for d in _schedule_with_paid(2)
        ]

    def test_binned_stays_binned_with_unchanged_terms(self):
        result = ReconciliationEngine().reconcile(
            request=_request(), current=self._current_with_binned(5), today=TODAY
        )

        own = {i.id: i for i in result.agreement_installments}
        assert own["TX-TND-1-005"].lifecycle == Deleted(at=BINNED_AT)
        assert [b.id for b in result.preserved_binned] == ["TX-TND-1-005"]
        assert "TX-TND-1-005" not in {a.id for a in result.added}
        assert len({i.due_date for i in own.values()}) == len(own) == 12

    def test_binned_outside_new_term_kept(self):
        result = ReconciliationEngine().reconcile(
            request=_request(end_date=date(2024, 6, 30)),
            current=self._current_with_binned(10),
            today=TODAY,
        )

        own = {i.id: i for i in result.agreement_installments}
        assert own["TX-TND-1-010"].deleted
        assert own["TX-TND-1-010"].due_date == date(2024, 10, 1)
        assert len([i for i in own.values() if not i.deleted]) == 6

    def test_candidates_never_reuse_binned_id(self):
        result = ReconciliationEngine().reconcile(
            request=_request(start_date=date(2024, 1, 15)),
            current=self._current_with_binned(5),
            today=TODAY,
        )

        ids = [i.id for i in result.agreement_installments]
        assert len(ids) == len(set(ids))
        assert all(a.sequence > 5 for a in result.added)

    def test_binned_reference_refreshed(self):
        result = ReconciliationEngine().reconcile(
            request=_request(reference_number="SRA/T/002"),
            current=self._current_with_binned(5),
            today=TODAY,
        )

        assert result.preserved_binned[0].reference_number == "SRA/T/002"
