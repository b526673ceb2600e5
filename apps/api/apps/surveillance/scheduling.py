"""
Due-date calculation and urgency classification for surveillance plans.

Pure functions: no ORM access, no clock. The caller always passes the
reference date (`as_of_date`), which keeps every result reproducible.

Month arithmetic clamps to the last valid day of the target month
(Jan 31 + 1 month -> Feb 28/29). Every candidate due date is computed as
``anchor + k * frequency`` from the original anchor, never by chaining
already-clamped dates, so a series anchored on the 31st returns to the 31st
whenever the month allows it.
"""
from datetime import date
from typing import Optional

from dateutil.relativedelta import relativedelta
from django.db import models


# Inclusive upper bounds (in days) of the urgency bands
URGENT_MAX_DAYS = 3
UPCOMING_MAX_DAYS = 7


class UrgencyTier(models.TextChoices):
    """
    Urgency of a plan by days remaining until its due date.

    - OVERDUE: due date passed
    - URGENT: due within 0-3 days
    - UPCOMING: due within 4-7 days
    - NORMAL: due in more than 7 days
    """
    OVERDUE = 'overdue', 'Overdue'
    URGENT = 'urgent', 'Urgent'
    UPCOMING = 'upcoming', 'Upcoming'
    NORMAL = 'normal', 'Normal'

    @property
    def rank(self):
        """Sort key: 0 for the most pressing tier."""
        return _TIER_RANK[self.value]


_TIER_RANK = {
    UrgencyTier.OVERDUE.value: 0,
    UrgencyTier.URGENT.value: 1,
    UrgencyTier.UPCOMING.value: 2,
    UrgencyTier.NORMAL.value: 3,
}


def add_months(anchor: date, months: int) -> date:
    """Add calendar months, clamping the day to the end of the target month."""
    return anchor + relativedelta(months=months)


def _first_due_on_or_after(anchor: date, frequency_months: int, as_of_date: date, first_step: int) -> date:
    if frequency_months < 1:
        raise ValueError('frequency_months must be >= 1')

    step = first_step
    due = add_months(anchor, step * frequency_months)
    if due >= as_of_date:
        return due

    # Jump close to as_of_date, then walk the last cycles
    months_behind = (as_of_date.year - anchor.year) * 12 + (as_of_date.month - anchor.month)
    step = max(step, months_behind // frequency_months)
    due = add_months(anchor, step * frequency_months)
    while due < as_of_date:
        step += 1
        due = add_months(anchor, step * frequency_months)
    return due


def compute_next_due_date(anchor_date: date, frequency_months: int, as_of_date: date) -> date:
    """
    Next analysis date after ``anchor_date``.

    The raw next date is ``anchor_date + frequency_months``. When that date
    is already before ``as_of_date`` (the plan fell behind by more than one
    cycle) it keeps advancing by whole cycles until it is on or after
    ``as_of_date``.

    Args:
        anchor_date: last analysis date, or the plan start date if none
        frequency_months: recurrence interval, >= 1
        as_of_date: reference "today"

    Returns:
        The due date, always >= as_of_date.

    Raises:
        ValueError: frequency_months < 1
    """
    return _first_due_on_or_after(anchor_date, frequency_months, as_of_date, first_step=1)


def compute_initial_due_date(
    start_date: date,
    frequency_months: int,
    as_of_date: date,
    first_due_date: Optional[date] = None,
) -> date:
    """
    Due date assigned when a plan is created.

    The first analysis is due at the start date itself; a plan whose start
    date is several cycles in the past is caught up into the current window.
    A ``first_due_date`` chosen by the caller is used as is.
    """
    if first_due_date is not None:
        return first_due_date
    return _first_due_on_or_after(start_date, frequency_months, as_of_date, first_step=0)


def days_until(due_date: date, as_of_date: date) -> int:
    """Whole days from ``as_of_date`` to ``due_date`` (negative when overdue)."""
    return (due_date - as_of_date).days


def classify_urgency(due_date: date, as_of_date: date) -> UrgencyTier:
    """
    Map a due date to its urgency tier.

    < 0 days overdue, 0-3 urgent, 4-7 upcoming, > 7 normal.
    """
    remaining = days_until(due_date, as_of_date)
    if remaining < 0:
        return UrgencyTier.OVERDUE
    if remaining <= URGENT_MAX_DAYS:
        return UrgencyTier.URGENT
    if remaining <= UPCOMING_MAX_DAYS:
        return UrgencyTier.UPCOMING
    return UrgencyTier.NORMAL
