"""
Hypothesis-based property tests for the pure compliance engines.

Properties checked over generated agreements:
- Schedule: due dates strictly increasing and inside [start, end), amounts
  equal the floored period amount, remainder handling per policy, One-Time
  always a single installment, identical inputs give identical output
- Reconciliation: paid history survives any edit, due dates stay unique,
  new installments fall after the last paid due date, ids never collide
- Stats: pending + overdue + paid partition the live installments
"""

from dataclasses import replace
from datetime import date, timedelta

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from compliance_engines.reconciliation import ReconciliationEngine
from compliance_engines.schedule import (
    PERIODS_PER_YEAR,
    ScheduleGenerator,
    ScheduleRequest,
    period_amount,
)
from compliance_engines.stats import recompute_stats
from compliance_kernel.domain.values import (
    InstallmentStatus,
    RemainderPolicy,
    TaxFrequency,
)

PERIODIC = [f for f in TaxFrequency if f != TaxFrequency.ONE_TIME]

dates = st.dates(min_value=date(2015, 1, 1), max_value=date(2035, 12, 31))
fees = st.integers(min_value=0, max_value=10_000_000)

FUZZ = settings(
    max_examples=150,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)


@st.composite
def schedule_requests(draw, frequencies=tuple(TaxFrequency)):
    start = draw(dates)
    span = draw(st.integers(min_value=-400, max_value=6 * 366))
    return ScheduleRequest(
        agreement_id="TND-FUZZ",
        reference_number="SRA/T/FUZZ",
        district="Pune",
        area=draw(st.one_of(st.none(), st.just("Kothrud"))),
        start_date=start,
        end_date=start + timedelta(days=span),
        license_fee=draw(fees),
        frequency=draw(st.sampled_from(list(frequencies))),
    )


class TestScheduleProperties:
    @FUZZ
    @given(request=schedule_requests(frequencies=PERIODIC), today=dates)
    def test_due_dates_ordered_and_in_range(self, request, today):
        drafts = ScheduleGenerator().generate(request=request, today=today)
        due = [d.due_date for d in drafts]

        assert due == sorted(set(due))
        assert all(request.start_date <= d < request.end_date for d in due)
        if request.end_date <= request.start_date:
            assert drafts == ()
        else:
            assert due[0] == request.start_date

    @FUZZ
    @given(request=schedule_requests(frequencies=PERIODIC), today=dates)
    def test_amounts_are_floored_period_amount(self, request, today):
        drafts = ScheduleGenerator().generate(request=request, today=today)
        expected = request.license_fee // PERIODS_PER_YEAR[TaxFrequency.parse(request.frequency)]

        assert all(d.amount == expected for d in drafts)
        assert period_amount(request.license_fee, TaxFrequency.parse(request.frequency)) == expected

    @FUZZ
    @given(request=schedule_requests(frequencies=PERIODIC), today=dates)
    def test_final_period_adds_remainder_once(self, request, today):
        accept = ScheduleGenerator().generate(request=request, today=today)
        final = ScheduleGenerator(remainder_policy=RemainderPolicy.FINAL_PERIOD).generate(
            request=request, today=today
        )
        remainder = request.license_fee % PERIODS_PER_YEAR[TaxFrequency.parse(request.frequency)]

        assert len(accept) == len(final)
        if final:
            assert sum(d.amount for d in final) == sum(d.amount for d in accept) + remainder
            assert [d.amount for d in final[:-1]] == [d.amount for d in accept[:-1]]

    @FUZZ
    @given(request=schedule_requests(frequencies=[TaxFrequency.ONE_TIME]), today=dates)
    def test_one_time_single_installment(self, request, today):
        drafts = ScheduleGenerator().generate(request=request, today=today)

        assert len(drafts) == 1
        assert drafts[0].amount == request.license_fee
        assert drafts[0].due_date == request.start_date

    @FUZZ
    @given(request=schedule_requests(), today=dates)
    def test_status_follows_today(self, request, today):
        for draft in ScheduleGenerator().generate(request=request, today=today):
            expected = (
                InstallmentStatus.OVERDUE if draft.due_date < today else InstallmentStatus.PENDING
            )
            assert draft.status == expected

    @FUZZ
    @given(request=schedule_requests(), today=dates)
    def test_deterministic(self, request, today):
        generator = ScheduleGenerator()

        assert generator.generate(request=request, today=today) == generator.generate(
            request=request, today=today
        )


class TestReconciliationProperties:
    @FUZZ
    @given(
        original=schedule_requests(frequencies=PERIODIC),
        edited=schedule_requests(),
        paid_count=st.integers(min_value=0, max_value=30),
        today=dates,
    )
    def test_paid_history_survives_any_edit(self, original, edited, paid_count, today):
        current = [
            replace(d, status=InstallmentStatus.PAID, payment_date=d.due_date)
            if d.sequence <= paid_count
            else d
            for d in ScheduleGenerator().generate(request=original, today=today)
        ]
        paid = [i for i in current if i.is_paid]

        result = ReconciliationEngine().reconcile(request=edited, current=current, today=today)
        own = result.agreement_installments

        kept = {i.id: i for i in own if i.is_paid}
        assert set(kept) == {p.id for p in paid}
        for p in paid:
            assert kept[p.id].amount == p.amount
            assert kept[p.id].due_date == p.due_date
            assert kept[p.id].reference_number == edited.reference_number

        assert len({i.due_date for i in own}) == len(own)
        assert len({i.id for i in own}) == len(own)
        if paid:
            last_paid = max(p.due_date for p in paid)
            assert all(i.due_date > last_paid for i in result.added)
        assert [i.due_date for i in own] == sorted(i.due_date for i in own)


class TestStatsProperties:
    @FUZZ
    @given(
        request=schedule_requests(frequencies=PERIODIC),
        paid_count=st.integers(min_value=0, max_value=30),
        generated_on=dates,
        today=dates,
    )
    def test_counts_partition_live_installments(self, request, paid_count, generated_on, today):
        installments = [
            replace(d, status=InstallmentStatus.PAID) if d.sequence <= paid_count else d
            for d in ScheduleGenerator().generate(request=request, today=generated_on)
        ]

        stats = recompute_stats([], installments, today)
        paid = [i for i in installments if i.is_paid]

        assert stats.pending_taxes + stats.overdue_taxes + len(paid) == len(installments)
        assert stats.total_tax_paid == sum(i.amount for i in paid)
        assert stats.total_tax_liability + stats.total_tax_paid == sum(
            i.amount for i in installments
        )
