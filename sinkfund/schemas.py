"""Pydantic schemas for validating what-if and horizon input from clients"""

from datetime import date
from typing import Annotated, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, model_validator
from sinkfund.config import settings
from sinkfund.domain.models import (
    Obligation,
    EscalationRule,
    CustomScheduleEntry,
    WhatIfOverrides,
    make_obligation,
)

FiniteAmount = Annotated[float, Field(allow_inf_nan=False)]


def clamp_months_ahead(months: Optional[int]) -> int:
    """Projection horizon bounded to [min_months_ahead, max_months_ahead]"""
    if months is None:
        months = settings.default_months_ahead
    return max(settings.min_months_ahead, min(settings.max_months_ahead, months))


class EscalationRuleSchema(BaseModel):
    """Hypothetical escalation layered over an obligation's real rules"""

    change_type: Literal["absolute", "percentage", "fixed_increase"]
    value: FiniteAmount
    effective_date: date
    interval_months: Optional[int] = Field(None, gt=0, description="None for a one-off change")

    @model_validator(mode="after")
    def absolute_cannot_recur(self) -> "EscalationRuleSchema":
        if self.change_type == "absolute" and self.interval_months is not None:
            raise ValueError("absolute escalations cannot recur")
        return self

    def to_domain(self, rule_id: str) -> EscalationRule:
        return EscalationRule(
            id=rule_id,
            change_type=self.change_type,
            value=self.value,
            effective_date=self.effective_date,
            interval_months=self.interval_months,
        )


class CustomEntrySchema(BaseModel):
    due_date: date
    amount: FiniteAmount = Field(..., ge=0)
    is_paid: bool = False


class HypotheticalObligationSchema(BaseModel):
    """Unsaved obligation included only in a what-if scenario"""

    id: Optional[str] = None  # assigned from the request position when omitted
    name: str = Field(..., min_length=1)
    type: Literal["recurring", "recurring_with_end", "one_off", "custom"]
    amount: FiniteAmount = Field(..., ge=0)
    frequency: Optional[Literal["weekly", "fortnightly", "monthly", "quarterly", "annual", "custom"]] = None
    frequency_days: Optional[int] = Field(None, gt=0)
    next_due_date: Optional[date] = None
    end_date: Optional[date] = None
    custom_entries: List[CustomEntrySchema] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_schedule(self) -> "HypotheticalObligationSchema":
        if self.type != "custom" and self.next_due_date is None:
            raise ValueError("next_due_date is required unless type is custom")
        if self.type in ("recurring", "recurring_with_end") and self.frequency is None:
            raise ValueError("frequency is required for recurring obligations")
        if self.frequency == "custom" and self.frequency_days is None:
            raise ValueError("frequency_days is required for a custom frequency")
        if self.type == "recurring_with_end" and self.end_date is None:
            raise ValueError("end_date is required for recurring_with_end")
        return self

    def to_domain(self, position: int = 0) -> Obligation:
        return make_obligation(
            type=self.type,
            id=self.id or f"hypothetical-{position}",
            name=self.name,
            amount=self.amount,
            next_due_date=self.next_due_date,
            frequency=self.frequency,
            frequency_days=self.frequency_days,
            end_date=self.end_date,
            entries=[
                CustomScheduleEntry(due_date=e.due_date, amount=e.amount, is_paid=e.is_paid)
                for e in self.custom_entries
            ],
        )


class WhatIfRequest(BaseModel):
    """Request body for a what-if scenario or timeline"""

    toggled_off_ids: List[str] = Field(default_factory=list)
    amount_overrides: Dict[str, FiniteAmount] = Field(default_factory=dict)
    hypotheticals: List[HypotheticalObligationSchema] = Field(default_factory=list)
    escalation_overrides: Dict[str, List[EscalationRuleSchema]] = Field(default_factory=dict)
    months: Optional[int] = None

    @property
    def months_ahead(self) -> int:
        return clamp_months_ahead(self.months)

    def to_overrides(self) -> WhatIfOverrides:
        return WhatIfOverrides(
            toggled_off_ids=set(self.toggled_off_ids),
            amount_overrides=dict(self.amount_overrides),
            hypotheticals=[h.to_domain(n) for n, h in enumerate(self.hypotheticals)],
            escalation_overrides={
                obligation_id: [rule.to_domain(f"whatif-{obligation_id}-{n}") for n, rule in enumerate(rules)]
                for obligation_id, rules in self.escalation_overrides.items()
            },
        )
