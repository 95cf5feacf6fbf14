"""Snapshot builder - user-facing summary of an engine result"""

from datetime import date
from typing import Optional, Tuple
from sinkfund.domain.models import EngineInput, EngineResult, CycleConfig, Snapshot
from sinkfund.domain.contributions import calculate_contributions
from sinkfund.domain.cycles import cycle_period_label

EMPTY_STATE_MESSAGE = "Add your first obligation to get started"
FULLY_FUNDED_MESSAGE = "You're fully covered!"


def generate_snapshot(engine_result: EngineResult, now: date, cycle_config: Optional[CycleConfig] = None) -> Snapshot:
    """
    Summarize an engine result around the single next action.

    The next action is the soonest-due obligation that still needs money.
    With nothing tracked it prompts to add an obligation; when everything is
    funded it reports a neutral fully-covered state dated at the nearest due date.
    """
    label = cycle_period_label(cycle_config.type) if cycle_config else None
    contributions = engine_result.contributions

    if not contributions:
        return Snapshot(
            total_required=0.0,
            total_funded=0.0,
            total_contribution_per_cycle=0.0,
            cycle_period_label=label,
            next_action_amount=0.0,
            next_action_date=now,
            next_action_description=EMPTY_STATE_MESSAGE,
        )

    under_funded = [c for c in contributions if c.remaining > 0]

    if not under_funded:
        return Snapshot(
            total_required=engine_result.total_required,
            total_funded=engine_result.total_funded,
            total_contribution_per_cycle=engine_result.total_contribution_per_cycle,
            cycle_period_label=label,
            next_action_amount=0.0,
            next_action_date=min(c.next_due_date for c in contributions),
            next_action_description=FULLY_FUNDED_MESSAGE,
        )

    next_action = min(under_funded, key=lambda c: c.next_due_date)
    amount = next_action.contribution_per_cycle

    if label:
        description = f"Set aside ${amount:.2f} {label} for {next_action.obligation_name}"
    else:
        description = (
            f"Set aside ${amount:.2f} for {next_action.obligation_name} "
            f"by {next_action.next_due_date.isoformat()}"
        )

    return Snapshot(
        total_required=engine_result.total_required,
        total_funded=engine_result.total_funded,
        total_contribution_per_cycle=engine_result.total_contribution_per_cycle,
        cycle_period_label=label,
        next_action_amount=amount,
        next_action_date=next_action.next_due_date,
        next_action_description=description,
        next_action_obligation_id=next_action.obligation_id,
    )


def calculate_and_snapshot(engine_input: EngineInput) -> Tuple[EngineResult, Snapshot]:
    """Run the calculator and summarize it in one call"""
    result = calculate_contributions(engine_input)
    return result, generate_snapshot(result, engine_input.now, engine_input.cycle_config)
