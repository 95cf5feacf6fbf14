"""Domain models - pure Python dataclasses for obligations, escalations and engine output"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Dict, Set, Union, ClassVar

# Escalation change types
CHANGE_ABSOLUTE = "absolute"  # value is the new amount
CHANGE_PERCENTAGE = "percentage"  # value is a percent, 3 = 3%
CHANGE_FIXED_INCREASE = "fixed_increase"  # value is a dollar delta
CHANGE_TYPES = (CHANGE_ABSOLUTE, CHANGE_PERCENTAGE, CHANGE_FIXED_INCREASE)

# Obligation types
OBLIGATION_RECURRING = "recurring"
OBLIGATION_RECURRING_WITH_END = "recurring_with_end"
OBLIGATION_ONE_OFF = "one_off"
OBLIGATION_CUSTOM = "custom"


@dataclass
class EscalationRule:
    """Scheduled change to an obligation's amount, one-off or recurring every N months"""

    id: str
    change_type: str
    value: float
    effective_date: date
    interval_months: Optional[int] = None  # None = one-off
    is_applied: bool = False  # only meaningful for one-off rules
    applied_at: Optional[datetime] = None

    @property
    def is_recurring(self) -> bool:
        return self.interval_months is not None


@dataclass
class CustomScheduleEntry:
    """Explicit due date and amount for a custom-schedule obligation"""

    due_date: date
    amount: float
    is_paid: bool = False


@dataclass(kw_only=True)
class ObligationBase:
    """Fields shared by every obligation variant"""

    type: ClassVar[str]

    id: str
    name: str
    amount: float
    is_paused: bool = False
    is_active: bool = True
    is_archived: bool = False
    fund_group_id: Optional[str] = None
    escalation_rules: List[EscalationRule] = field(default_factory=list)

    @property
    def is_eligible(self) -> bool:
        """Active, not paused and not archived"""
        return self.is_active and not self.is_paused and not self.is_archived


@dataclass(kw_only=True)
class RecurringObligation(ObligationBase):
    """Repeats every `frequency` from `next_due_date`, indefinitely"""

    type: ClassVar[str] = OBLIGATION_RECURRING

    next_due_date: date
    frequency: str
    frequency_days: Optional[int] = None  # required when frequency == "custom"


@dataclass(kw_only=True)
class RecurringWithEndObligation(RecurringObligation):
    """Recurring obligation with no occurrences after `end_date`"""

    type: ClassVar[str] = OBLIGATION_RECURRING_WITH_END

    end_date: date


@dataclass(kw_only=True)
class OneOffObligation(ObligationBase):
    """Single payment due on `next_due_date`"""

    type: ClassVar[str] = OBLIGATION_ONE_OFF

    next_due_date: date


@dataclass(kw_only=True)
class CustomObligation(ObligationBase):
    """Obligation driven by an explicit schedule instead of a frequency"""

    type: ClassVar[str] = OBLIGATION_CUSTOM

    entries: List[CustomScheduleEntry] = field(default_factory=list)


Obligation = Union[RecurringObligation, RecurringWithEndObligation, OneOffObligation, CustomObligation]


def make_obligation(
    type: str,
    id: str,
    name: str,
    amount: float,
    next_due_date: Optional[date] = None,
    frequency: Optional[str] = None,
    frequency_days: Optional[int] = None,
    end_date: Optional[date] = None,
    entries: Optional[List[CustomScheduleEntry]] = None,
    **common,
) -> Obligation:
    """
    Build the obligation variant matching `type`.

    Persistence rows and request payloads are flat records with nullable
    fields; this picks the variant and keeps only the fields it carries.
    A recurring_with_end obligation without an end date degrades to recurring.

    Raises:
        ValueError: unknown type, or a dated variant without `next_due_date`
    """
    if type == OBLIGATION_CUSTOM:
        return CustomObligation(id=id, name=name, amount=amount, entries=list(entries or []), **common)

    if next_due_date is None:
        raise ValueError(f"Obligation {id} of type {type} requires next_due_date")

    if type == OBLIGATION_ONE_OFF:
        return OneOffObligation(id=id, name=name, amount=amount, next_due_date=next_due_date, **common)

    if type == OBLIGATION_RECURRING_WITH_END and end_date is not None:
        return RecurringWithEndObligation(
            id=id,
            name=name,
            amount=amount,
            next_due_date=next_due_date,
            frequency=frequency,
            frequency_days=frequency_days,
            end_date=end_date,
            **common,
        )

    if type in (OBLIGATION_RECURRING, OBLIGATION_RECURRING_WITH_END):
        return RecurringObligation(
            id=id,
            name=name,
            amount=amount,
            next_due_date=next_due_date,
            frequency=frequency,
            frequency_days=frequency_days,
            **common,
        )

    raise ValueError(f"Unknown obligation type: {type}")


@dataclass
class FundBalance:
    """Money already set aside toward one obligation"""

    obligation_id: str
    current_balance: float


@dataclass
class CycleConfig:
    """Contribution cycle: interval-based (weekly/fortnightly) or anchored on pay days of the month"""

    type: str
    pay_days: List[int] = field(default_factory=list)


@dataclass
class IncomeSource:
    """Income stream used to infer the contribution cycle"""

    id: str
    frequency: Optional[str]
    is_irregular: bool = False
    is_active: bool = True
    is_paused: bool = False


@dataclass
class UserSettings:
    """Per-user engine settings supplied by persistence"""

    max_contribution_per_cycle: Optional[float] = None
    current_fund_balance: float = 0.0
    contribution_cycle_type: Optional[str] = None
    contribution_pay_days: List[int] = field(default_factory=list)


@dataclass
class WhatIfOverrides:
    """Ephemeral, request-scoped changes layered over the real obligation set"""

    toggled_off_ids: Set[str] = field(default_factory=set)
    amount_overrides: Dict[str, float] = field(default_factory=dict)
    hypotheticals: List[Obligation] = field(default_factory=list)
    escalation_overrides: Dict[str, List[EscalationRule]] = field(default_factory=dict)


@dataclass
class ProjectedAmount:
    """Obligation amount in effect from `date` onward"""

    date: date
    amount: float


@dataclass
class EngineInput:
    """Inputs to the contribution calculator"""

    obligations: List[Obligation]
    fund_balances: List[FundBalance]
    max_contribution_per_cycle: Optional[float]
    cycle_config: CycleConfig
    now: date


@dataclass
class ObligationContribution:
    """Per-obligation contribution breakdown"""

    obligation_id: str
    obligation_name: str
    fund_group_id: Optional[str]
    amount_needed: float
    current_balance: float
    remaining: float  # amount still required, floored at zero
    cycles_until_due: int
    contribution_per_cycle: float
    next_due_date: date
    is_fully_funded: bool
    has_shortfall: bool = False


@dataclass
class ShortfallWarning:
    """Obligation that cannot be fully funded within the per-cycle cap"""

    obligation_id: str
    obligation_name: str
    amount_needed: float
    amount_can_fund: float
    shortfall: float
    due_date: date
    message: str


@dataclass
class EngineResult:
    """Output of the contribution calculator"""

    contributions: List[ObligationContribution]
    total_required: float
    total_funded: float
    total_contribution_per_cycle: float
    shortfall_warnings: List[ShortfallWarning]
    is_fully_funded: bool
    capacity_exceeded: bool


@dataclass
class WhatIfResult:
    """Baseline and scenario results computed by the same code path"""

    actual: EngineResult
    scenario: EngineResult


@dataclass
class TimelineInput:
    """Inputs to the balance simulator"""

    obligations: List[Obligation]
    fund_balances: List[FundBalance]
    current_fund_balance: float
    contribution_per_cycle: float
    cycle_config: CycleConfig
    now: date
    months_ahead: int = 6


@dataclass
class TimelineDataPoint:
    date: date
    projected_balance: float


@dataclass
class ExpenseMarker:
    date: date
    obligation_id: str
    obligation_name: str
    amount: float


@dataclass
class ContributionMarker:
    date: date
    amount: float


@dataclass
class CrunchPoint:
    """Outflow after which the projected balance is negative"""

    date: date
    projected_balance: float
    trigger_obligation_id: str
    trigger_obligation_name: str


@dataclass
class TimelineResult:
    data_points: List[TimelineDataPoint]
    expense_markers: List[ExpenseMarker]
    contribution_markers: List[ContributionMarker]
    crunch_points: List[CrunchPoint]
    start_date: date
    end_date: date


@dataclass
class Snapshot:
    """User-facing summary of an engine result"""

    total_required: float
    total_funded: float
    total_contribution_per_cycle: float
    cycle_period_label: Optional[str]
    next_action_amount: float
    next_action_date: date
    next_action_description: str
    next_action_obligation_id: Optional[str] = None


@dataclass
class ReconcileResult:
    """Outcome of a reconciler run"""

    applied_count: int = 0
    updated_obligation_ids: List[str] = field(default_factory=list)
