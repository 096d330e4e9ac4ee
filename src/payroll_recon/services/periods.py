"""Semi-monthly payroll periods.

Work done on days 1-15 is paid on the 15th of the same month; work done
from the 16th to month end is paid on the 1st of the next month. A
period is identified by its pay date, formatted YYYY-MM-DD.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timezone

from payroll_recon.errors import InvalidArgumentError


@dataclass(frozen=True)
class SemiMonthlyPeriod:
    """A semi-monthly work period and its pay date."""

    period_id: str
    work_period_start: datetime
    work_period_end: datetime
    pay_date: datetime


def _start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def _end_of_day(d: date) -> datetime:
    return datetime.combine(d, time.max, tzinfo=timezone.utc)


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def _build(first: date, last: date, pay_date: date) -> SemiMonthlyPeriod:
    return SemiMonthlyPeriod(
        period_id=pay_date.isoformat(),
        work_period_start=_start_of_day(first),
        work_period_end=_end_of_day(last),
        pay_date=_start_of_day(pay_date),
    )


def period_for_work_date(work_date: date | datetime) -> SemiMonthlyPeriod:
    """Period containing a work date."""
    d = _as_date(work_date)
    if d.day <= 15:
        return _build(d.replace(day=1), d.replace(day=15), d.replace(day=15))

    last_day = calendar.monthrange(d.year, d.month)[1]
    if d.month == 12:
        pay_date = date(d.year + 1, 1, 1)
    else:
        pay_date = date(d.year, d.month + 1, 1)
    return _build(d.replace(day=16), d.replace(day=last_day), pay_date)


def period_for_pay_date(pay_date: date | datetime) -> SemiMonthlyPeriod:
    """Period paid on a given pay date.

    Raises:
        InvalidArgumentError: If the pay date is not the 1st or the 15th
    """
    d = _as_date(pay_date)
    if d.day == 15:
        return _build(d.replace(day=1), d, d)
    if d.day == 1:
        if d.month == 1:
            prev_year, prev_month = d.year - 1, 12
        else:
            prev_year, prev_month = d.year, d.month - 1
        last_day = calendar.monthrange(prev_year, prev_month)[1]
        return _build(date(prev_year, prev_month, 16), date(prev_year, prev_month, last_day), d)

    raise InvalidArgumentError(
        f"Invalid pay date {d.isoformat()}: semi-monthly pay dates must be the 1st or 15th"
    )


def previous_period(period: SemiMonthlyPeriod) -> SemiMonthlyPeriod:
    pay = _as_date(period.pay_date)
    if pay.day == 15:
        return period_for_pay_date(pay.replace(day=1))
    if pay.month == 1:
        return period_for_pay_date(date(pay.year - 1, 12, 15))
    return period_for_pay_date(date(pay.year, pay.month - 1, 15))


def next_period(period: SemiMonthlyPeriod) -> SemiMonthlyPeriod:
    pay = _as_date(period.pay_date)
    if pay.day == 1:
        return period_for_pay_date(pay.replace(day=15))
    if pay.month == 12:
        return period_for_pay_date(date(pay.year + 1, 1, 1))
    return period_for_pay_date(date(pay.year, pay.month + 1, 1))
