"""
Schedule Engine - Generate the tax installment schedule of an agreement.

Pure function of the agreement terms and "today": no I/O, no clock reads,
identical inputs always give identical output.

Usage:
    from datetime import date
    from compliance_engines.schedule import ScheduleGenerator, ScheduleRequest

    request = ScheduleRequest(
        agreement_id="TND-1",
        reference_number="SRA/T/001",
        district="Pune",
        area="Kothrud",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 12, 31),
        license_fee=120000,
        frequency="Monthly",
    )
    drafts = ScheduleGenerator().generate(request=request, today=date(2024, 1, 15))
    # 12 installments of 10000, due on the 1st of each month

Rules:
    One-Time       one installment for the full fee, due on the start date.
    Periodic       due dates start at the start date and step by the
                   frequency interval while strictly before the end date;
                   each installment is ``fee // periods_per_year``.
    Empty range    a periodic agreement whose end date is on or before its
                   start date has an empty schedule.

Due dates are computed as ``start + k * interval`` months (not by stepping
the previous due date), so a schedule that starts on the 31st lands on the
last day of shorter months and returns to the 31st afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import TYPE_CHECKING

from dateutil.relativedelta import relativedelta

from compliance_kernel.domain.dtos import Installment
from compliance_kernel.domain.values import RemainderPolicy, TaxFrequency
from compliance_kernel.logging_config import get_logger
from compliance_engines.status import draft_status
from compliance_engines.tracer import traced_engine

if TYPE_CHECKING:
    from compliance_kernel.domain.dtos import Agreement

logger = get_logger("engines.schedule")

INTERVAL_MONTHS: dict[TaxFrequency, int] = {
    TaxFrequency.MONTHLY: 1,
    TaxFrequency.QUARTERLY: 3,
    TaxFrequency.HALF_YEARLY: 6,
    TaxFrequency.YEARLY: 12,
}

PERIODS_PER_YEAR: dict[TaxFrequency, int] = {
    frequency: 12 // months for frequency, months in INTERVAL_MONTHS.items()
}

DEFAULT_ID_PREFIX = "TX"
DEFAULT_SEQUENCE_WIDTH = 3


def installment_id(
    agreement_id: str,
    sequence: int,
    prefix: str = DEFAULT_ID_PREFIX,
    width: int = DEFAULT_SEQUENCE_WIDTH,
) -> str:
    """Deterministic installment id, e.g. ``TX-TND-1-001``."""
    return f"{prefix}-{agreement_id}-{sequence:0{width}d}"


def period_amount(license_fee: int, frequency: TaxFrequency) -> int:
    """Per-installment amount: the fee floored over the periods in a year."""
    if frequency == TaxFrequency.ONE_TIME:
        return license_fee
    return license_fee // PERIODS_PER_YEAR[frequency]


@dataclass(frozen=True)
class ScheduleRequest:
    """Agreement terms the schedule is derived from."""

    agreement_id: str
    reference_number: str
    district: str
    start_date: date
    end_date: date
    license_fee: int
    frequency: TaxFrequency | str
    area: str | None = None

    @classmethod
    def from_agreement(cls, agreement: Agreement) -> ScheduleRequest:
        return cls(
            agreement_id=agreement.id,
            reference_number=agreement.reference_number,
            district=agreement.district,
            area=agreement.area,
            start_date=agreement.start_date,
            end_date=agreement.end_date,
            license_fee=agreement.license_fee,
            frequency=agreement.frequency,
        )


class ScheduleGenerator:
    """
    Turns agreement terms into an ordered tuple of installment drafts.

    Drafts carry no payment data, an active lifecycle and a status of
    Overdue or Pending depending on whether their due date precedes today.
    """

    def __init__(
        self,
        remainder_policy: RemainderPolicy = RemainderPolicy.ACCEPT_LOSS,
        id_prefix: str = DEFAULT_ID_PREFIX,
        sequence_width: int = DEFAULT_SEQUENCE_WIDTH,
    ):
        self.remainder_policy = remainder_policy
        self.id_prefix = id_prefix
        self.sequence_width = sequence_width

    def due_dates(self, start_date: date, end_date: date, frequency: TaxFrequency) -> list[date]:
        """Due dates of a periodic schedule, strictly before ``end_date``."""
        interval = INTERVAL_MONTHS[frequency]
        dates: list[date] = []
        step = 0
        cursor = start_date
        while cursor < end_date:
            dates.append(cursor)
            step += 1
            cursor = start_date + relativedelta(months=interval * step)
        return dates

    @traced_engine("schedule", "1.0", fingerprint_fields=("request", "today"))
    def generate(self, *, request: ScheduleRequest, today: date) -> tuple[Installment, ...]:
        """
        Generate the installment drafts for ``request``.

        Raises:
            InvalidFrequencyError: The frequency is not a known TaxFrequency.
        """
        frequency = TaxFrequency.parse(request.frequency)

        if frequency == TaxFrequency.ONE_TIME:
            dates = [request.start_date]
        else:
            dates = self.due_dates(request.start_date, request.end_date, frequency)

        amount = period_amount(request.license_fee, frequency)
        drafts = [
            self._draft(request, sequence, due_date, amount, today)
            for sequence, due_date in enumerate(dates, start=1)
        ]

        if (
            drafts
            and frequency != TaxFrequency.ONE_TIME
            and self.remainder_policy == RemainderPolicy.FINAL_PERIOD
        ):
            remainder = request.license_fee % PERIODS_PER_YEAR[frequency]
            if remainder:
                drafts[-1] = replace(drafts[-1], amount=drafts[-1].amount + remainder)

        logger.debug(
            "schedule_generated",
            extra={
                "agreement_id": request.agreement_id,
                "frequency": frequency.value,
                "installment_count": len(drafts),
                "period_amount": amount,
            },
        )
        return tuple(drafts)

    def _draft(
        self,
        request: ScheduleRequest,
        sequence: int,
        due_date: date,
        amount: int,
        today: date,
    ) -> Installment:
        return Installment(
            id=installment_id(
                request.agreement_id, sequence, self.id_prefix, self.sequence_width
            ),
            agreement_id=request.agreement_id,
            sequence=sequence,
            reference_number=request.reference_number,
            district=request.district,
            area=request.area,
            due_date=due_date,
            amount=amount,
            status=draft_status(due_date, today),
        )
