"""Contribution calculator - how much to set aside each cycle, prioritized by due date"""

from datetime import date, timedelta
from dataclasses import replace
from typing import Dict, Iterator, List, Optional, Tuple
from sinkfund.domain.models import (
    EngineInput,
    EngineResult,
    Obligation,
    ObligationContribution,
    ShortfallWarning,
    CustomObligation,
    OneOffObligation,
    RecurringWithEndObligation,
    WhatIfOverrides,
    WhatIfResult,
)
from sinkfund.domain.cycles import count_cycles
from sinkfund.domain.escalation import get_amount_at_date
from sinkfund.domain.whatif import apply_what_if
from sinkfund.utils.date_utils import add_months

# Frequencies expressed in days or calendar months
FREQUENCY_DAYS = {"weekly": 7, "fortnightly": 14}
FREQUENCY_MONTHS = {"monthly": 1, "quarterly": 3, "annual": 12}


def nth_due_date(first_due_date: date, frequency: Optional[str], frequency_days: Optional[int], k: int) -> Optional[date]:
    """
    The k-th occurrence, `first_due_date + k * frequency`.

    Always offset from the first date so month-end due dates stay on the
    month's last day (Jan 31 -> Feb 28 -> Mar 31). Returns None for
    irregular/unknown frequencies, or a custom frequency without a positive
    day count.
    """
    if frequency in FREQUENCY_DAYS:
        return first_due_date + timedelta(days=k * FREQUENCY_DAYS[frequency])
    if frequency in FREQUENCY_MONTHS:
        return add_months(first_due_date, k * FREQUENCY_MONTHS[frequency])
    if frequency == "custom" and frequency_days:
        return first_due_date + timedelta(days=k * frequency_days)
    return None


def due_dates(first_due_date: date, frequency: Optional[str], frequency_days: Optional[int]) -> Iterator[date]:
    """Successive due dates from `first_due_date`; just that date when the frequency doesn't repeat"""
    yield first_due_date

    k = 1
    while True:
        current = nth_due_date(first_due_date, frequency, frequency_days, k)
        if current is None:
            return
        yield current
        k += 1


def next_due_date_after(current_due_date: date, frequency: Optional[str], frequency_days: Optional[int]) -> Optional[date]:
    """Next occurrence after `current_due_date`, or None when the frequency doesn't repeat"""
    return nth_due_date(current_due_date, frequency, frequency_days, 1)


def _effective_amount(obligation: Obligation, now: date) -> float:
    """Stored amount with escalations in effect on `now`"""
    if not obligation.escalation_rules:
        return obligation.amount
    return get_amount_at_date(obligation.amount, obligation.escalation_rules, now, window_start=now, months_ahead=1)


def _custom_due(obligation: CustomObligation, now: date) -> Optional[Tuple[date, float]]:
    """
    Due point and amount for a custom schedule.

    The planning horizon runs through the first unpaid entry due on or after
    `now` (or the last overdue entry when nothing is upcoming); every unpaid
    entry up to it, overdue ones included, is still required.
    """
    unpaid = sorted((entry for entry in obligation.entries if not entry.is_paid), key=lambda entry: entry.due_date)
    if not unpaid:
        return None

    upcoming = [entry for entry in unpaid if entry.due_date >= now]
    horizon = upcoming[0].due_date if upcoming else unpaid[-1].due_date
    amount = sum(entry.amount for entry in unpaid if entry.due_date <= horizon)
    return horizon, amount


def resolve_next_due(obligation: Obligation, now: date) -> Optional[Tuple[date, float]]:
    """
    Next due date and the amount needed by then, or None when nothing is due.

    Recurring obligations whose due date has passed roll forward to the first
    occurrence after `now`; a recurring_with_end obligation rolled past its
    end date has nothing left to fund.
    """
    if isinstance(obligation, CustomObligation):
        return _custom_due(obligation, now)

    if isinstance(obligation, OneOffObligation):
        return obligation.next_due_date, _effective_amount(obligation, now)

    for due_date in due_dates(obligation.next_due_date, obligation.frequency, obligation.frequency_days):
        if due_date > now:
            break

    if isinstance(obligation, RecurringWithEndObligation) and due_date > obligation.end_date:
        return None

    return due_date, _effective_amount(obligation, now)


def _priority(contribution: ObligationContribution) -> Tuple[date, float, str]:
    """
    Funding order: soonest due first.

    Equally urgent obligations go smallest per-cycle need first, so the cap
    fully funds as many of them as possible; id settles exact ties.
    """
    return (contribution.next_due_date, contribution.contribution_per_cycle, contribution.obligation_id)


def _shortfall_warning(contribution: ObligationContribution, allocated: float, original_per_cycle: float) -> ShortfallWarning:
    cycles = max(1, contribution.cycles_until_due)
    amount_can_fund = min(contribution.current_balance + allocated * cycles, contribution.amount_needed)
    shortfall = min((original_per_cycle - allocated) * cycles, contribution.remaining)

    return ShortfallWarning(
        obligation_id=contribution.obligation_id,
        obligation_name=contribution.obligation_name,
        amount_needed=contribution.amount_needed,
        amount_can_fund=amount_can_fund,
        shortfall=shortfall,
        due_date=contribution.next_due_date,
        message=(
            f"You need ${contribution.amount_needed:.2f} for {contribution.obligation_name} "
            f"by {contribution.next_due_date.isoformat()} but can only save "
            f"${amount_can_fund:.2f} at current capacity"
        ),
    )


def calculate_contributions(engine_input: EngineInput) -> EngineResult:
    """
    Core sinking fund calculation.

    Requirements:
    - Only active, non-paused, non-archived obligations take part
    - Remaining = effective amount - saved balance, floored at zero
    - Per-cycle need = remaining / max(1, cycles until due)
    - Over the cap, allocate greedily by urgency; the obligation the cap runs
      out on and every one after it gets a shortfall warning

    Returns:
        EngineResult with contributions sorted by funding priority
    """
    now = engine_input.now
    balances: Dict[str, float] = {fb.obligation_id: fb.current_balance for fb in engine_input.fund_balances}

    contributions: List[ObligationContribution] = []
    for obligation in engine_input.obligations:
        if not obligation.is_eligible:
            continue

        due = resolve_next_due(obligation, now)
        if due is None:
            continue
        next_due_date, amount_needed = due

        current_balance = balances.get(obligation.id, 0.0)
        remaining = max(0.0, amount_needed - current_balance)
        cycles_until_due = count_cycles(engine_input.cycle_config, now, next_due_date)
        is_fully_funded = remaining <= 0

        contributions.append(
            ObligationContribution(
                obligation_id=obligation.id,
                obligation_name=obligation.name,
                fund_group_id=obligation.fund_group_id,
                amount_needed=amount_needed,
                current_balance=current_balance,
                remaining=remaining,
                cycles_until_due=cycles_until_due,
                contribution_per_cycle=0.0 if is_fully_funded else remaining / max(1, cycles_until_due),
                next_due_date=next_due_date,
                is_fully_funded=is_fully_funded,
            )
        )

    contributions.sort(key=_priority)

    total_required = sum(c.amount_needed for c in contributions)
    total_funded = sum(c.current_balance for c in contributions)
    total_per_cycle = sum(c.contribution_per_cycle for c in contributions)
    is_fully_funded = bool(contributions) and all(c.is_fully_funded for c in contributions)

    cap = engine_input.max_contribution_per_cycle
    if cap is None or cap <= 0 or total_per_cycle <= cap:
        return EngineResult(
            contributions=contributions,
            total_required=total_required,
            total_funded=total_funded,
            total_contribution_per_cycle=total_per_cycle,
            shortfall_warnings=[],
            is_fully_funded=is_fully_funded,
            capacity_exceeded=False,
        )

    shortfall_warnings = []
    remaining_capacity = cap
    for contribution in contributions:
        if contribution.is_fully_funded:
            continue

        if remaining_capacity >= contribution.contribution_per_cycle:
            remaining_capacity -= contribution.contribution_per_cycle
            continue

        original_per_cycle = contribution.contribution_per_cycle
        contribution.contribution_per_cycle = remaining_capacity
        contribution.has_shortfall = True
        shortfall_warnings.append(_shortfall_warning(contribution, remaining_capacity, original_per_cycle))
        remaining_capacity = 0.0

    return EngineResult(
        contributions=contributions,
        total_required=total_required,
        total_funded=total_funded,
        total_contribution_per_cycle=cap,
        shortfall_warnings=shortfall_warnings,
        is_fully_funded=is_fully_funded,
        capacity_exceeded=True,
    )


def calculate_with_what_if(engine_input: EngineInput, overrides: WhatIfOverrides) -> WhatIfResult:
    """Run the calculator on the real obligations and on the what-if overlay of them"""
    scenario_input = replace(engine_input, obligations=apply_what_if(engine_input.obligations, overrides))
    return WhatIfResult(
        actual=calculate_contributions(engine_input),
        scenario=calculate_contributions(scenario_input),
    )
