"""Unit tests for contribution cycle resolution and boundaries"""

from datetime import date
from sinkfund.domain.models import CycleConfig, IncomeSource, UserSettings
from sinkfund.domain.cycles import (
    count_cycles,
    cycle_boundaries,
    cycle_period_label,
    resolve_cycle_config,
)


def income(frequency, id="inc", **flags):
    return IncomeSource(id=id, frequency=frequency, **flags)


def test_explicit_settings_win():
    """Test explicit cycle type is returned verbatim with its pay days"""
    user_settings = UserSettings(contribution_cycle_type="twice_monthly", contribution_pay_days=[5, 20])

    config = resolve_cycle_config(user_settings, [income("weekly")])

    assert config == CycleConfig(type="twice_monthly", pay_days=[5, 20])


def test_inferred_from_income():
    """Test dominant income frequency determines the cycle"""
    sources = [
        income("monthly", id="a"),
        income("monthly", id="b"),
        income("weekly", id="c"),
    ]

    assert resolve_cycle_config(UserSettings(), sources) == CycleConfig(type="monthly", pay_days=[])


def test_inference_ignores_irregular_paused_and_non_cycle_income():
    """Test only active, non-paused, regular incomes with a cycle frequency count"""
    sources = [
        income("weekly", id="paused", is_paused=True),
        income("weekly", id="inactive", is_active=False),
        income("weekly", id="irregular", is_irregular=True),
        income("quarterly", id="q"),
        income("annual", id="y"),
        income("monthly", id="salary"),
    ]

    assert resolve_cycle_config(UserSettings(), sources).type == "monthly"


def test_inference_tie_prefers_shorter_cycle():
    """Test equally common frequencies resolve to the shorter cycle"""
    sources = [income("monthly", id="a"), income("weekly", id="b")]

    assert resolve_cycle_config(UserSettings(), sources).type == "weekly"


def test_default_is_fortnightly():
    """Test no signal falls back to fortnightly with no pay days"""
    assert resolve_cycle_config(UserSettings(), []) == CycleConfig(type="fortnightly", pay_days=[])
    assert resolve_cycle_config(UserSettings(), [income("irregular")]).type == "fortnightly"


def test_interval_boundaries():
    """Test fortnightly boundaries step 14 days from the start, end inclusive"""
    config = CycleConfig(type="fortnightly")

    boundaries = cycle_boundaries(config, date(2025, 5, 1), date(2025, 5, 29))

    assert boundaries == [date(2025, 5, 15), date(2025, 5, 29)]
    assert count_cycles(config, date(2025, 5, 1), date(2025, 6, 15)) == 3
    assert count_cycles(CycleConfig(type="weekly"), date(2025, 5, 1), date(2025, 5, 7)) == 0


def test_pay_day_boundaries():
    """Test twice-monthly boundaries fall on pay days, clamped to short months"""
    config = CycleConfig(type="twice_monthly", pay_days=[15, 31])

    boundaries = cycle_boundaries(config, date(2025, 1, 31), date(2025, 3, 15))

    assert boundaries == [date(2025, 2, 15), date(2025, 2, 28), date(2025, 3, 15)]
    assert count_cycles(config, date(2025, 1, 31), date(2025, 3, 15)) == 3


def test_monthly_without_pay_days_uses_first_of_month():
    """Test anchored cycle with no configured pay days defaults to the 1st"""
    config = CycleConfig(type="monthly")

    assert cycle_boundaries(config, date(2025, 5, 1), date(2025, 8, 10)) == [
        date(2025, 6, 1),
        date(2025, 7, 1),
        date(2025, 8, 1),
    ]


def test_due_date_in_past_has_no_cycles():
    """Test no boundaries when the end is not after the start"""
    config = CycleConfig(type="monthly", pay_days=[1])

    assert cycle_boundaries(config, date(2025, 5, 1), date(2025, 4, 1)) == []
    assert count_cycles(CycleConfig(type="fortnightly"), date(2025, 5, 1), date(2025, 4, 1)) == 0


def test_period_labels():
    assert cycle_period_label("fortnightly") == "per fortnight"
    assert cycle_period_label("weekly") == "per week"
    assert cycle_period_label("monthly") == "per month"
    assert cycle_period_label("twice_monthly") == "per pay period"
