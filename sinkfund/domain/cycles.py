"""Contribution cycle resolution and pay-day boundary math"""

from datetime import date, timedelta
from collections import Counter
from typing import List
from sinkfund.domain.models import CycleConfig, UserSettings, IncomeSource
from sinkfund.utils.date_utils import month_starts, clamp_day

DEFAULT_CYCLE_TYPE = "fortnightly"

# Interval cycles count whole periods from the reference date
INTERVAL_DAYS = {
    "weekly": 7,
    "fortnightly": 14,
}

# Anchored cycles fall back to these pay days when none are configured
DEFAULT_PAY_DAYS = {
    "monthly": [1],
    "twice_monthly": [1, 15],
    "custom": [1],
}

# Income frequencies that determine a cycle; quarterly/annual/custom/irregular don't
INCOME_FREQUENCY_TO_CYCLE = {
    "weekly": "weekly",
    "fortnightly": "fortnightly",
    "twice_monthly": "twice_monthly",
    "monthly": "monthly",
}

# Shorter cycles first, used to break ties between equally common income frequencies
CYCLE_PRECEDENCE = ["weekly", "fortnightly", "twice_monthly", "monthly"]

PERIOD_LABELS = {
    "weekly": "per week",
    "fortnightly": "per fortnight",
    "twice_monthly": "per pay period",
    "monthly": "per month",
    "custom": "per pay period",
}


def resolve_cycle_config(
    user_settings: UserSettings,
    income_sources: List[IncomeSource],
    default_type: str = DEFAULT_CYCLE_TYPE,
) -> CycleConfig:
    """
    Determine the user's contribution cycle.

    Requirements:
    - An explicit contribution_cycle_type wins, returned with its pay days
    - Otherwise the most common cycle among active, non-paused, regular
      income sources; ties go to the shorter cycle
    - No signal: `default_type` (fortnightly) with no pay days
    """
    if user_settings.contribution_cycle_type:
        return CycleConfig(
            type=user_settings.contribution_cycle_type,
            pay_days=list(user_settings.contribution_pay_days),
        )

    votes = Counter(
        INCOME_FREQUENCY_TO_CYCLE[source.frequency]
        for source in income_sources
        if source.is_active
        and not source.is_paused
        and not source.is_irregular
        and source.frequency in INCOME_FREQUENCY_TO_CYCLE
    )

    if not votes:
        return CycleConfig(type=default_type, pay_days=[])

    top = max(votes.values())
    winner = next(cycle for cycle in CYCLE_PRECEDENCE if votes.get(cycle) == top)
    return CycleConfig(type=winner, pay_days=[])


def cycle_boundaries(cycle_config: CycleConfig, start: date, end: date) -> List[date]:
    """
    Contribution dates strictly after `start`, up to and including `end`.

    Weekly/fortnightly step 7/14 days from `start`. Monthly, twice-monthly
    and custom cycles land on each pay day of every month in range; pay days
    past a month's end fall on its last day.
    """
    if end <= start:
        return []

    interval = INTERVAL_DAYS.get(cycle_config.type)
    if interval is not None:
        boundaries = []
        current = start + timedelta(days=interval)
        while current <= end:
            boundaries.append(current)
            current += timedelta(days=interval)
        return boundaries

    pay_days = cycle_config.pay_days or DEFAULT_PAY_DAYS.get(cycle_config.type, [1])

    boundaries = set()
    for month in month_starts(start, end):
        for day in pay_days:
            pay_date = clamp_day(month.year, month.month, day)
            if start < pay_date <= end:
                boundaries.add(pay_date)
    return sorted(boundaries)


def count_cycles(cycle_config: CycleConfig, start: date, end: date) -> int:
    """Number of contribution cycles between `start` and `end`"""
    interval = INTERVAL_DAYS.get(cycle_config.type)
    if interval is not None:
        return max(0, (end - start).days // interval)
    return len(cycle_boundaries(cycle_config, start, end))


def cycle_period_label(cycle_type: str) -> str:
    """Human-readable label for one contribution period, e.g. "per fortnight" """
    return PERIOD_LABELS.get(cycle_type, "per pay period")
