"""Working-time calculation for leave requests.

``calculate_working_days`` is pure: callers pass the office's working
weekdays and holiday dates, so the same inputs always give the same total.
``compute_working_days`` loads those inputs for an office and delegates.
"""

from __future__ import annotations

import uuid
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.constants import WEEKDAY_CODES, HalfDay
from leaveflow.common.exceptions import (
    EmptyWorkingRangeException,
    NotFoundException,
    ValidationException,
)
from leaveflow.config import settings
from leaveflow.core_hr.models import Office, PublicHoliday

FULL = Decimal("1")
HALF = Decimal("0.5")
ZERO = Decimal("0")


def build_working_weekdays(codes: Iterable[str] | None) -> set[int]:
    """Map ``["MON", "TUE", ...]`` to Python weekday numbers (0=Mon … 6=Sun).

    Unknown codes are ignored; an empty or missing list falls back to the
    configured default week.
    """
    weekdays = {
        WEEKDAY_CODES[code.upper()]
        for code in (codes or [])
        if code.upper() in WEEKDAY_CODES
    }
    if not weekdays:
        weekdays = {WEEKDAY_CODES[code] for code in settings.DEFAULT_WORKING_DAYS}
    return weekdays


def build_holiday_set(dates: Iterable[date]) -> set[date]:
    return set(dates)


def _day_weight(
    current: date,
    start: date,
    end: date,
    start_half_day: HalfDay,
    end_half_day: HalfDay,
) -> Decimal:
    if start == end:
        if start_half_day != HalfDay.full_day or end_half_day != HalfDay.full_day:
            return HALF
        return FULL
    if current == start:
        # Starting in the afternoon leaves only the second half
        return HALF if start_half_day == HalfDay.afternoon else FULL
    if current == end:
        # Ending in the morning covers only the first half
        return HALF if end_half_day == HalfDay.morning else FULL
    return FULL


def calculate_working_days(
    start: date,
    end: date,
    start_half_day: HalfDay,
    end_half_day: HalfDay,
    working_weekdays: set[int],
    holidays: set[date],
) -> Decimal:
    """Count chargeable working days in ``[start, end]``.

    Non-working weekdays and holidays count zero. The first and last days
    may count half depending on the half-day markers; interior days count
    one. Raises ``EmptyWorkingRangeException`` when nothing is chargeable.
    """
    if end < start:
        raise ValidationException(
            {"end_date": ["end_date must be on or after start_date."]}
        )

    total = ZERO
    current = start
    while current <= end:
        if current.weekday() in working_weekdays and current not in holidays:
            total += _day_weight(current, start, end, start_half_day, end_half_day)
        current += timedelta(days=1)

    if total <= ZERO:
        raise EmptyWorkingRangeException()
    return total


async def load_office_calendar(
    db: AsyncSession,
    office_id: uuid.UUID,
    start: date,
    end: date,
) -> tuple[set[int], set[date]]:
    """Return (working weekdays, holiday dates within range) for an office."""
    office = await db.get(Office, office_id)
    if office is None:
        raise NotFoundException("Office", office_id)

    result = await db.execute(
        select(PublicHoliday.holiday_date).where(
            PublicHoliday.office_id == office_id,
            PublicHoliday.holiday_date >= start,
            PublicHoliday.holiday_date <= end,
        )
    )
    return (
        build_working_weekdays(office.working_days),
        build_holiday_set(result.scalars().all()),
    )


async def compute_working_days(
    db: AsyncSession,
    office_id: uuid.UUID,
    start: date,
    end: date,
    start_half_day: HalfDay = HalfDay.full_day,
    end_half_day: HalfDay = HalfDay.full_day,
) -> Decimal:
    if end < start:
        raise ValidationException(
            {"end_date": ["end_date must be on or after start_date."]}
        )
    working_weekdays, holidays = await load_office_calendar(db, office_id, start, end)
    return calculate_working_days(
        start, end, start_half_day, end_half_day, working_weekdays, holidays,
    )
