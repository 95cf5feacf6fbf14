"""Timeline simulator - projected fund balance over time with crunch point detection"""

from datetime import date
from typing import List
from sinkfund.domain.models import (
    TimelineInput,
    TimelineResult,
    TimelineDataPoint,
    ExpenseMarker,
    ContributionMarker,
    CrunchPoint,
    Obligation,
    CustomObligation,
    OneOffObligation,
    RecurringWithEndObligation,
)
from sinkfund.domain.contributions import due_dates
from sinkfund.domain.cycles import cycle_boundaries
from sinkfund.domain.escalation import get_amount_at_date
from sinkfund.utils.date_utils import add_months

# Same-day ordering: contributions post before obligations debit
INFLOW, OUTFLOW = 0, 1


def _expense(obligation: Obligation, due_date: date, start: date, months_ahead: int) -> ExpenseMarker:
    if obligation.escalation_rules:
        amount = get_amount_at_date(obligation.amount, obligation.escalation_rules, due_date, start, months_ahead)
    else:
        amount = obligation.amount
    return ExpenseMarker(date=due_date, obligation_id=obligation.id, obligation_name=obligation.name, amount=amount)


def collect_due_dates(obligation: Obligation, start: date, end: date, months_ahead: int) -> List[ExpenseMarker]:
    """
    Outflows for one obligation inside [start, end].

    Custom schedules contribute their unpaid entries. Recurring and one-off
    obligations use the amount escalated to each due date.
    """
    if isinstance(obligation, CustomObligation):
        return [
            ExpenseMarker(date=entry.due_date, obligation_id=obligation.id, obligation_name=obligation.name, amount=entry.amount)
            for entry in obligation.entries
            if not entry.is_paid and start <= entry.due_date <= end
        ]

    if isinstance(obligation, OneOffObligation):
        if start <= obligation.next_due_date <= end:
            return [_expense(obligation, obligation.next_due_date, start, months_ahead)]
        return []

    markers = []
    for current in due_dates(obligation.next_due_date, obligation.frequency, obligation.frequency_days):
        if current > end:
            break
        if isinstance(obligation, RecurringWithEndObligation) and current > obligation.end_date:
            break
        # Stale due dates before the window are skipped, not charged
        if current >= start:
            markers.append(_expense(obligation, current, start, months_ahead))

    return markers


def project_timeline(timeline_input: TimelineInput) -> TimelineResult:
    """
    Walk the fund balance from `now` to `now + months_ahead` months.

    Requirements:
    - One inflow of contribution_per_cycle at every cycle boundary
    - One outflow per due date of every eligible obligation
    - Inflows apply before outflows on the same date
    - A data point after every event, bracketed by start and end points
    - A crunch point for every outflow that leaves the balance negative
    """
    start_date = timeline_input.now
    end_date = add_months(start_date, timeline_input.months_ahead)

    expense_markers: List[ExpenseMarker] = []
    for obligation in timeline_input.obligations:
        if not obligation.is_eligible:
            continue
        expense_markers.extend(collect_due_dates(obligation, start_date, end_date, timeline_input.months_ahead))
    expense_markers.sort(key=lambda marker: marker.date)

    contribution_markers: List[ContributionMarker] = []
    if timeline_input.contribution_per_cycle > 0:
        contribution_markers = [
            ContributionMarker(date=when, amount=timeline_input.contribution_per_cycle)
            for when in cycle_boundaries(timeline_input.cycle_config, start_date, end_date)
        ]

    events = [(marker.date, INFLOW, marker) for marker in contribution_markers]
    events.extend((marker.date, OUTFLOW, marker) for marker in expense_markers)
    events.sort(key=lambda event: (event[0], event[1]))

    balance = timeline_input.current_fund_balance
    data_points = [TimelineDataPoint(date=start_date, projected_balance=balance)]
    crunch_points: List[CrunchPoint] = []

    for when, kind, marker in events:
        if kind == INFLOW:
            balance += marker.amount
        else:
            balance -= marker.amount

        data_points.append(TimelineDataPoint(date=when, projected_balance=balance))

        if kind == OUTFLOW and balance < 0:
            crunch_points.append(
                CrunchPoint(
                    date=when,
                    projected_balance=balance,
                    trigger_obligation_id=marker.obligation_id,
                    trigger_obligation_name=marker.obligation_name,
                )
            )

    if data_points[-1].date != end_date:
        data_points.append(TimelineDataPoint(date=end_date, projected_balance=balance))

    return TimelineResult(
        data_points=data_points,
        expense_markers=expense_markers,
        contribution_markers=contribution_markers,
        crunch_points=crunch_points,
        start_date=start_date,
        end_date=end_date,
    )
