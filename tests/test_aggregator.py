"""Tests for attendance aggregation and the deduction waterfall."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from factories import JANUARY, make_profile
from planilla_engine.calculators.aggregator import (
    CompensationAggregator,
    SalaryRates,
)
from planilla_engine.calculators.types import (
    AbsenceRecord,
    Advance,
    EmployeeSourceRecords,
    FixedDeduction,
    Loan,
    LoanStatus,
    OvertimeCategory,
    OvertimeRecord,
    PayFrequency,
    VacationRecord,
)


def overtime(profile, category, hours, **kwargs):
    values = dict(
        record_id=uuid4(),
        employee_id=profile.employee_id,
        work_date=date(2025, 1, 15),
        category=category,
        hours=Decimal(hours),
    )
    values.update(kwargs)
    return OvertimeRecord(**values)


def fixed(profile, priority=100, **kwargs):
    values = dict(
        deduction_id=uuid4(),
        employee_id=profile.employee_id,
        description="Union dues",
        start_date=date(2024, 1, 1),
        priority=priority,
    )
    values.update(kwargs)
    return FixedDeduction(**values)


def advance(profile, amount, **kwargs):
    values = dict(
        advance_id=uuid4(),
        employee_id=profile.employee_id,
        amount=Decimal(amount),
        discount_date=date(2025, 1, 31),
    )
    values.update(kwargs)
    return Advance(**values)


class TestSalaryRates:
    def test_monthly_profile(self):
        rates = SalaryRates(make_profile())

        assert rates.monthly == Decimal("1000.00")
        assert rates.daily == Decimal("33.33")
        assert rates.hourly == Decimal("4.81")

    def test_biweekly_profile(self):
        rates = SalaryRates(make_profile(pay_frequency=PayFrequency.BIWEEKLY))
        # 1,000 x 26 / 12
        assert rates.daily == Decimal("72.22")


class TestAttendance:
    """Test the gross side of aggregation."""

    def test_overtime_monetized_by_category(self):
        profile = make_profile()
        sources = EmployeeSourceRecords(
            overtime=(
                overtime(profile, OvertimeCategory.DAY, "4"),
                overtime(profile, OvertimeCategory.NIGHT, "2"),
            )
        )

        summary = CompensationAggregator(profile, JANUARY).summarize_attendance(sources)

        # 4.81 x 4 x 1.25 + 4.81 x 2 x 1.50
        assert summary.overtime_pay == Decimal("38.48")
        assert summary.overtime_hours_day == Decimal("4.00")
        assert summary.overtime_hours_night == Decimal("2.00")
        assert len(summary.overtime_ids) == 2

    def test_holiday_hours_include_holiday_night(self):
        profile = make_profile()
        sources = EmployeeSourceRecords(
            overtime=(
                overtime(profile, OvertimeCategory.HOLIDAY, "1"),
                overtime(profile, OvertimeCategory.HOLIDAY_NIGHT, "1"),
            )
        )

        summary = CompensationAggregator(profile, JANUARY).summarize_attendance(sources)

        assert summary.overtime_hours_holiday == Decimal("2.00")
        # 4.81 x 1.50 + 4.81 x 1.75 = 15.6325
        assert summary.overtime_pay == Decimal("15.63")

    def test_premonetized_overtime(self):
        profile = make_profile()
        record = overtime(profile, OvertimeCategory.DAY, "3", amount=Decimal("50.00"))

        summary = CompensationAggregator(profile, JANUARY).summarize_attendance(
            EmployeeSourceRecords(overtime=(record,))
        )

        assert summary.overtime_pay == Decimal("50.00")

    def test_ineligible_overtime_is_skipped(self):
        profile = make_profile()
        sources = EmployeeSourceRecords(
            overtime=(
                overtime(profile, OvertimeCategory.DAY, "1", approved=False),
                overtime(profile, OvertimeCategory.DAY, "1", consumed_by_detail_id=uuid4()),
                overtime(profile, OvertimeCategory.DAY, "1", work_date=date(2025, 2, 1)),
            )
        )

        summary = CompensationAggregator(profile, JANUARY).summarize_attendance(sources)

        assert summary.overtime_pay == Decimal("0.00")
        assert summary.overtime_ids == ()

    def test_absence_clipped_to_period(self):
        profile = make_profile()
        absence = AbsenceRecord(uuid4(), profile.employee_id, date(2025, 1, 30), date(2025, 2, 3))

        summary = CompensationAggregator(profile, JANUARY).summarize_attendance(
            EmployeeSourceRecords(absences=(absence,))
        )

        assert summary.absence_days == Decimal("2.00")
        assert summary.absence_discount == Decimal("66.66")
        assert summary.absence_ids == (absence.record_id,)

    def test_justified_absence_is_ignored(self):
        profile = make_profile()
        absence = AbsenceRecord(
            uuid4(), profile.employee_id, date(2025, 1, 6), date(2025, 1, 7), affects_salary=False
        )

        summary = CompensationAggregator(profile, JANUARY).summarize_attendance(
            EmployeeSourceRecords(absences=(absence,))
        )

        assert summary.absence_discount == Decimal("0.00")
        assert summary.absence_ids == ()

    def test_absence_with_explicit_discount(self):
        profile = make_profile()
        absence = AbsenceRecord(
            uuid4(), profile.employee_id, date(2025, 1, 6), date(2025, 1, 6),
            discount_amount=Decimal("40.00"),
        )

        summary = CompensationAggregator(profile, JANUARY).summarize_attendance(
            EmployeeSourceRecords(absences=(absence,))
        )

        assert summary.absence_discount == Decimal("40.00")

    def test_vacation_payout(self):
        profile = make_profile()
        paid = VacationRecord(uuid4(), profile.employee_id, date(2025, 1, 13), date(2025, 1, 15))
        explicit = VacationRecord(
            uuid4(), profile.employee_id, date(2025, 1, 20), date(2025, 1, 20),
            payout_amount=Decimal("45.00"),
        )
        pending = VacationRecord(
            uuid4(), profile.employee_id, date(2025, 1, 27), date(2025, 1, 28), approved=False
        )

        summary = CompensationAggregator(profile, JANUARY).summarize_attendance(
            EmployeeSourceRecords(vacations=(paid, explicit, pending))
        )

        assert summary.vacation_days == Decimal("4.00")
        assert summary.vacation_pay == Decimal("144.99")
        assert summary.vacation_ids == (paid.record_id, explicit.record_id)


class TestDeductionWaterfall:
    """Test netting of non-statutory deductions."""

    def test_priority_order_and_capping(self):
        profile = make_profile()
        low = fixed(profile, priority=2, amount=Decimal("100.00"))
        high = fixed(profile, priority=1, amount=Decimal("250.00"))

        result = CompensationAggregator(profile, JANUARY).apply_deductions(
            Decimal("300.00"), Decimal("1000.00"), Decimal("0"),
            EmployeeSourceRecords(fixed_deductions=(low, high)),
        )

        assert [line.source_id for line in result.lines] == [high.deduction_id, low.deduction_id]
        assert [line.applied for line in result.lines] == [Decimal("250.00"), Decimal("50.00")]
        assert result.lines[1].was_capped
        assert result.fixed_deductions == Decimal("300.00")
        assert result.remaining == Decimal("0.00")

    def test_oversized_deductions_floor_at_zero(self):
        profile = make_profile()
        garnishment = fixed(profile, priority=1, amount=Decimal("2000.00"))
        half = fixed(profile, priority=2, percentage=Decimal("0.50"))

        result = CompensationAggregator(profile, JANUARY).apply_deductions(
            Decimal("300.00"), Decimal("1000.00"), Decimal("0"),
            EmployeeSourceRecords(fixed_deductions=(garnishment, half)),
        )

        assert [line.requested for line in result.lines] == [Decimal("2000.00"), Decimal("500.00")]
        assert [line.applied for line in result.lines] == [Decimal("300.00"), Decimal("0.00")]
        assert result.other_deductions == Decimal("300.00")
        assert result.remaining == Decimal("0.00")

    def test_absence_discount_goes_first(self):
        profile = make_profile()
        dues = fixed(profile, amount=Decimal("100.00"))

        result = CompensationAggregator(profile, JANUARY).apply_deductions(
            Decimal("120.00"), Decimal("1000.00"), Decimal("66.66"),
            EmployeeSourceRecords(fixed_deductions=(dues,)),
        )

        assert result.absence_deduction == Decimal("66.66")
        assert result.fixed_deductions == Decimal("53.34")

    def test_ineffective_deductions_are_skipped(self):
        profile = make_profile()
        inactive = fixed(profile, amount=Decimal("10.00"), is_active=False)
        expired = fixed(profile, amount=Decimal("10.00"), end_date=date(2024, 12, 31))
        future = fixed(profile, amount=Decimal("10.00"), start_date=date(2025, 2, 1))

        result = CompensationAggregator(profile, JANUARY).apply_deductions(
            Decimal("500.00"), Decimal("1000.00"), Decimal("0"),
            EmployeeSourceRecords(fixed_deductions=(inactive, expired, future)),
        )

        assert result.lines == ()
        assert result.fixed_deductions == Decimal("0")

    def test_final_installment_is_the_pending_balance(self):
        profile = make_profile()
        loan = Loan(uuid4(), profile.employee_id, Decimal("200.00"), Decimal("150.00"), installments_paid=4)

        result = CompensationAggregator(profile, JANUARY).apply_deductions(
            Decimal("800.00"), Decimal("1000.00"), Decimal("0"),
            EmployeeSourceRecords(loans=(loan,)),
        )

        assert result.loan_installments == Decimal("150.00")
        (claim,) = result.loan_claims
        assert claim.amount == Decimal("150.00")
        assert claim.balance_after == Decimal("0.00")
        assert claim.installment_number == 5
        assert claim.pays_off

    def test_partial_installment_keeps_loan_active(self):
        profile = make_profile()
        loan = Loan(uuid4(), profile.employee_id, Decimal("200.00"), Decimal("600.00"))

        result = CompensationAggregator(profile, JANUARY).apply_deductions(
            Decimal("120.00"), Decimal("1000.00"), Decimal("0"),
            EmployeeSourceRecords(loans=(loan,)),
        )

        (claim,) = result.loan_claims
        assert claim.amount == Decimal("120.00")
        assert claim.balance_after == Decimal("480.00")
        assert not claim.pays_off

    def test_unpaid_loan_is_not_claimed(self):
        profile = make_profile()
        loan = Loan(uuid4(), profile.employee_id, Decimal("200.00"), Decimal("600.00"))
        cancelled = Loan(
            uuid4(), profile.employee_id, Decimal("200.00"), Decimal("600.00"), status=LoanStatus.CANCELLED
        )

        result = CompensationAggregator(profile, JANUARY).apply_deductions(
            Decimal("0.00"), Decimal("1000.00"), Decimal("0"),
            EmployeeSourceRecords(loans=(loan, cancelled)),
        )

        assert result.loan_claims == ()
        assert len(result.lines) == 1
        assert result.lines[0].applied == Decimal("0.00")

    def test_advance_taken_whole_or_deferred(self):
        profile = make_profile()
        large = advance(profile, "150.00")
        small = advance(profile, "50.00")

        result = CompensationAggregator(profile, JANUARY).apply_deductions(
            Decimal("100.00"), Decimal("1000.00"), Decimal("0"),
            EmployeeSourceRecords(advances=(large, small)),
        )

        assert result.advances == Decimal("50.00")
        assert result.advance_ids == (small.advance_id,)
        assert result.remaining == Decimal("50.00")

    def test_advance_outside_period_waits(self):
        profile = make_profile()
        later = advance(profile, "50.00", discount_date=date(2025, 2, 15))
        discounted = advance(profile, "50.00", discounted=True)

        result = CompensationAggregator(profile, JANUARY).apply_deductions(
            Decimal("500.00"), Decimal("1000.00"), Decimal("0"),
            EmployeeSourceRecords(advances=(later, discounted)),
        )

        assert result.advance_ids == ()

    def test_negative_balance_starts_at_zero(self):
        profile = make_profile()
        dues = fixed(profile, amount=Decimal("10.00"))

        result = CompensationAggregator(profile, JANUARY).apply_deductions(
            Decimal("-5.00"), Decimal("1000.00"), Decimal("0"),
            EmployeeSourceRecords(fixed_deductions=(dues,)),
        )

        assert result.fixed_deductions == Decimal("0")
