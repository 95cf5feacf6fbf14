"""What-if overlay - hypothetical changes applied to a copy of the obligation set"""

from dataclasses import replace
from typing import List
from sinkfund.domain.models import Obligation, CustomObligation, WhatIfOverrides


def apply_what_if(obligations: List[Obligation], overrides: WhatIfOverrides) -> List[Obligation]:
    """
    Produce the scenario obligation list. Never mutates the input.

    Order of operations:
    1. Drop toggled-off obligations
    2. Replace amounts from amount_overrides (for custom schedules the
       override also applies to each unpaid entry)
    3. Layer escalation_overrides on top of the obligation's real rules
    4. Append hypothetical obligations
    """
    scenario: List[Obligation] = []

    for obligation in obligations:
        if obligation.id in overrides.toggled_off_ids:
            continue

        changes = {}

        if obligation.id in overrides.amount_overrides:
            amount = overrides.amount_overrides[obligation.id]
            changes["amount"] = amount
            if isinstance(obligation, CustomObligation):
                changes["entries"] = [
                    entry if entry.is_paid else replace(entry, amount=amount) for entry in obligation.entries
                ]

        extra_rules = overrides.escalation_overrides.get(obligation.id)
        if extra_rules:
            changes["escalation_rules"] = [*obligation.escalation_rules, *extra_rules]

        scenario.append(replace(obligation, **changes))

    scenario.extend(overrides.hypotheticals)
    return scenario
