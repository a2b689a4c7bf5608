"""Recurrence projection for transaction templates.

Everything here is a pure function of a template (anything exposing the
``TransactionTemplate`` attributes), an optional monthly override and the
target month. Nothing reads or writes the database.

Weekly and biweekly templates are treated as firing once in every month from
their origin on. Sub-month granularity is a known approximation, not tracked.
"""

from datetime import date, datetime
from typing import Optional

from config import get_settings
from models import (
    DatePlacement,
    MonthlyStatusOverride,
    Recurrence,
    TransactionStatus,
    TransactionTemplate,
)
from periods import clamp_day, days_in_month, month_index


def local_today() -> date:
    return datetime.now(get_settings().tzinfo).date()


def origin_date(template: TransactionTemplate) -> date:
    return template.original_date or template.baseline_date


def month_diff(template: TransactionTemplate, year: int, month: int) -> int:
    origin = origin_date(template)
    return month_index(year, month) - month_index(origin.year, origin.month)


def is_literal_month(template: TransactionTemplate, year: int, month: int) -> bool:
    baseline = template.baseline_date
    return baseline.year == year and baseline.month == month


def fires(template: TransactionTemplate, year: int, month: int) -> bool:
    """Whether the template has an occurrence in (year, month).

    The origin month counts for every recurring kind; callers that already
    hold the literal record for that month must not project it a second time.
    """
    if template.recurrence == Recurrence.once:
        return is_literal_month(template, year, month)

    diff = month_diff(template, year, month)
    if diff < 0:
        return False
    if template.recurrence in (
        Recurrence.monthly,
        Recurrence.weekly,
        Recurrence.biweekly,
    ):
        return True
    if template.recurrence == Recurrence.quarterly:
        return diff % 3 == 0
    if template.recurrence == Recurrence.yearly:
        return diff % 12 == 0
    return False


def resolve_date(template: TransactionTemplate, year: int, month: int) -> date:
    placement = template.date_placement
    if template.recurrence == Recurrence.once:
        placement = DatePlacement.fixed

    if placement == DatePlacement.first_of_month:
        day = 1
    elif placement == DatePlacement.last_of_month:
        day = days_in_month(year, month)
    elif placement == DatePlacement.custom_day and template.custom_day:
        day = clamp_day(template.custom_day, year, month)
    else:
        day = clamp_day(origin_date(template).day, year, month)
    return date(year, month, day)


def effective_status(
    template: TransactionTemplate,
    override: Optional[MonthlyStatusOverride],
    year: int,
    month: int,
    *,
    today: Optional[date] = None,
) -> tuple[TransactionStatus, bool]:
    if override is not None:
        return override.status, override.cleared

    today = today or local_today()
    in_future = month_index(year, month) > month_index(today.year, today.month)
    anchored = is_literal_month(template, year, month) or month_diff(
        template, year, month
    ) == 0
    if in_future and not anchored:
        return TransactionStatus.pending, False
    return template.status, template.cleared
