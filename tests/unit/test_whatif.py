"""Unit tests for the what-if overlay"""

from datetime import date
from sinkfund.domain.models import (
    CustomObligation,
    CustomScheduleEntry,
    EscalationRule,
    OneOffObligation,
    WhatIfOverrides,
)
from sinkfund.domain.whatif import apply_what_if


def test_no_overrides_keeps_obligations(rent):
    assert apply_what_if([rent], WhatIfOverrides()) == [rent]


def test_toggle_off_drops_obligation(rent):
    assert apply_what_if([rent], WhatIfOverrides(toggled_off_ids={"rent"})) == []


def test_amount_override_returns_copy(rent):
    """Test the override lands on a copy and the real obligation keeps its amount"""
    scenario = apply_what_if([rent], WhatIfOverrides(amount_overrides={"rent": 1650.0}))

    assert scenario[0].amount == 1650.0
    assert scenario[0] is not rent
    assert rent.amount == 1500.0


def test_amount_override_on_custom_schedule_updates_unpaid_entries():
    """Test paid entries keep their historical amounts"""
    tax = CustomObligation(
        id="tax",
        name="Tax",
        amount=100.0,
        entries=[
            CustomScheduleEntry(date(2025, 4, 1), 100.0, is_paid=True),
            CustomScheduleEntry(date(2025, 7, 1), 100.0),
        ],
    )

    scenario = apply_what_if([tax], WhatIfOverrides(amount_overrides={"tax": 120.0}))

    assert [entry.amount for entry in scenario[0].entries] == [100.0, 120.0]
    assert [entry.amount for entry in tax.entries] == [100.0, 100.0]


def test_escalation_overrides_layer_on_real_rules(rent):
    """Test hypothetical rules are appended after the obligation's own"""
    real = EscalationRule("real", "percentage", 3, date(2026, 1, 1), interval_months=12)
    extra = EscalationRule("whatif-1", "fixed_increase", 100.0, date(2025, 9, 1))
    rent.escalation_rules = [real]

    scenario = apply_what_if([rent], WhatIfOverrides(escalation_overrides={"rent": [extra]}))

    assert scenario[0].escalation_rules == [real, extra]
    assert rent.escalation_rules == [real]


def test_hypotheticals_are_appended(rent):
    laptop = OneOffObligation(id="hypothetical-1", name="Laptop", amount=2000.0, next_due_date=date(2025, 11, 1))

    scenario = apply_what_if([rent], WhatIfOverrides(hypotheticals=[laptop]))

    assert [o.id for o in scenario] == ["rent", "hypothetical-1"]


def test_overrides_for_unknown_ids_are_ignored(rent):
    overrides = WhatIfOverrides(
        toggled_off_ids={"missing"},
        amount_overrides={"missing": 1.0},
        escalation_overrides={"missing": [EscalationRule("x", "fixed_increase", 1.0, date(2025, 6, 1))]},
    )

    assert apply_what_if([rent], overrides) == [rent]
