"""Escalation projector - how an obligation's amount changes over time"""

from datetime import date
from itertools import groupby
from typing import List, Optional, Tuple, Iterator
from sinkfund.domain.models import (
    EscalationRule,
    ProjectedAmount,
    CHANGE_ABSOLUTE,
    CHANGE_PERCENTAGE,
    CHANGE_FIXED_INCREASE,
    CHANGE_TYPES,
    OBLIGATION_ONE_OFF,
)
from sinkfund.domain.exceptions import InvalidEscalationRuleError
from sinkfund.utils.date_utils import add_months


def apply_change(current_amount: float, change_type: str, value: float) -> float:
    """Apply a single escalation change to an amount"""
    if change_type == CHANGE_ABSOLUTE:
        return value
    if change_type == CHANGE_PERCENTAGE:
        return current_amount * (1 + value / 100)
    if change_type == CHANGE_FIXED_INCREASE:
        return current_amount + value
    raise ValueError(f"Unknown escalation change type: {change_type}")


def validate_escalation_rule(obligation_type: str, change_type: str, interval_months: Optional[int]) -> None:
    """
    Edit-boundary checks for a new escalation rule.

    Raises:
        InvalidEscalationRuleError: one-off obligation, unknown change type,
            non-positive interval, or an absolute target on a recurring rule
    """
    if obligation_type == OBLIGATION_ONE_OFF:
        raise InvalidEscalationRuleError("One-off obligations cannot have escalation rules")
    if change_type not in CHANGE_TYPES:
        raise InvalidEscalationRuleError(f"Unknown change type: {change_type}")
    if interval_months is not None and interval_months <= 0:
        raise InvalidEscalationRuleError("interval_months must be a positive number of months")
    if interval_months is not None and change_type == CHANGE_ABSOLUTE:
        raise InvalidEscalationRuleError("Absolute escalations cannot recur")


def _occurrences(rule: EscalationRule, until: date) -> Iterator[date]:
    """Dates a recurring rule fires, from its effective date through `until` (inclusive)"""
    k = 0
    current = rule.effective_date
    while current <= until:
        yield current
        k += 1
        # Offset from the effective date each time so month-end clamping never drifts
        current = add_months(rule.effective_date, k * rule.interval_months)


def _replay_past_occurrences(current_amount: float, rules: List[EscalationRule], window_start: date) -> float:
    """
    Fold recurring occurrences strictly before the window into the amount.

    Recurring rules are never persisted as applied, so the amount entering
    the window is rebuilt from the full occurrence history every time.
    """
    past: List[Tuple[date, EscalationRule]] = []
    for rule in rules:
        if not rule.is_recurring:
            continue
        past.extend((when, rule) for when in _occurrences(rule, window_start) if when < window_start)

    amount = current_amount
    for _, rule in sorted(past, key=lambda item: item[0]):
        amount = apply_change(amount, rule.change_type, rule.value)
    return amount


def project_escalated_amounts(
    current_amount: float,
    rules: List[EscalationRule],
    window_start: date,
    months_ahead: int = 12,
) -> List[ProjectedAmount]:
    """
    Project obligation amounts through [window_start, window_start + months_ahead].

    Requirements:
    - Applied one-off rules are skipped (already folded into current_amount)
    - Pending one-off rules emit one event if their date is inside the window
    - Recurring rules replay occurrences before the window, emit the rest
    - On a shared date one-off rules win and recurring events are suppressed;
      the recurring clock still advances and compounds from the new amount

    Returns:
        Chronological (date, amount) pairs, each the post-change amount.
        Empty when no rule fires inside the window.
    """
    window_end = add_months(window_start, months_ahead)
    running_amount = _replay_past_occurrences(current_amount, rules, window_start)

    # (date, is_one_off, rule)
    events: List[Tuple[date, bool, EscalationRule]] = []
    for rule in rules:
        if not rule.is_recurring:
            if rule.is_applied:
                continue
            if window_start <= rule.effective_date <= window_end:
                events.append((rule.effective_date, True, rule))
            continue

        for when in _occurrences(rule, window_end):
            if when >= window_start:
                events.append((when, False, rule))

    events.sort(key=lambda event: event[0])

    projected = []
    for when, same_day in groupby(events, key=lambda event: event[0]):
        same_day = list(same_day)
        one_offs = [rule for _, is_one_off, rule in same_day if is_one_off]
        to_apply = one_offs or [rule for _, _, rule in same_day]

        for rule in to_apply:
            running_amount = apply_change(running_amount, rule.change_type, rule.value)

        projected.append(ProjectedAmount(date=when, amount=running_amount))

    return projected


def get_amount_at_date(
    current_amount: float,
    rules: List[EscalationRule],
    target_date: date,
    window_start: date,
    months_ahead: int = 12,
) -> float:
    """
    Amount in effect on `target_date`.

    The window must cover the target date. With no event on or before the
    target this is the amount entering the window, which equals
    current_amount unless recurring rules fired before the window.
    """
    amount = _replay_past_occurrences(current_amount, rules, window_start)

    for point in project_escalated_amounts(current_amount, rules, window_start, months_ahead):
        if point.date > target_date:
            break
        amount = point.amount

    return amount
