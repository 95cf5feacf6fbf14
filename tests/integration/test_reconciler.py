"""Integration tests for escalation reconciliation against the database"""

import pytest
from datetime import date
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sinkfund.infrastructure.database import reconciler
from sinkfund.infrastructure.database.models import EscalationRecord, ObligationRecord
from sinkfund.infrastructure.database.reconciler import apply_pending_escalations
from sinkfund.infrastructure.database.repositories import ObligationRepository


def amount_of(db: Session, obligation_id: str) -> float:
    db.expire_all()
    return db.get(ObligationRecord, obligation_id).amount


@pytest.mark.integration
def test_due_one_off_is_applied_once(db, rent_record, add_escalation, now):
    """Test a passed one-off rule updates the amount and is marked applied"""
    rule = add_escalation("rent", change_type="fixed_increase", value=50.0, effective_date=date(2025, 4, 1))

    result = apply_pending_escalations(db, "user-1", now)

    assert result.applied_count == 1
    assert result.updated_obligation_ids == ["rent"]
    assert amount_of(db, "rent") == 1550.0

    applied = db.get(EscalationRecord, rule.id)
    assert applied.is_applied is True
    assert applied.applied_at is not None

    # Re-running is a no-op
    assert apply_pending_escalations(db, "user-1", now).applied_count == 0
    assert amount_of(db, "rent") == 1550.0


@pytest.mark.integration
def test_rules_apply_in_effective_date_order(db, rent_record, add_escalation, now):
    """Test two due rules compound on the committed amount, oldest first"""
    add_escalation("rent", change_type="fixed_increase", value=50.0, effective_date=date(2025, 4, 1))
    add_escalation("rent", change_type="percentage", value=10.0, effective_date=date(2025, 3, 1))

    result = apply_pending_escalations(db, "user-1", now)

    assert result.applied_count == 2
    assert result.updated_obligation_ids == ["rent"]
    assert amount_of(db, "rent") == pytest.approx(1500.0 * 1.1 + 50.0)


@pytest.mark.integration
def test_future_and_recurring_rules_are_not_applied(db, rent_record, add_escalation, now):
    """Test only one-off rules on or before today are materialized"""
    future = add_escalation("rent", change_type="fixed_increase", value=50.0, effective_date=date(2025, 5, 2))
    recurring = add_escalation(
        "rent", change_type="percentage", value=3.0, effective_date=date(2024, 1, 1), interval_months=12
    )

    assert apply_pending_escalations(db, "user-1", now).applied_count == 0
    assert amount_of(db, "rent") == 1500.0
    assert db.get(EscalationRecord, future.id).is_applied is False
    assert db.get(EscalationRecord, recurring.id).is_applied is False


@pytest.mark.integration
def test_rule_effective_today_is_applied(db, rent_record, add_escalation, now):
    add_escalation("rent", change_type="absolute", value=1600.0, effective_date=now.date())

    assert apply_pending_escalations(db, "user-1", now).applied_count == 1
    assert amount_of(db, "rent") == 1600.0


@pytest.mark.integration
def test_paused_obligation_defers_until_resume(db, rent_record, add_escalation, now):
    """Test escalations wait while paused and catch up on resume"""
    rent_record.is_paused = True
    db.commit()
    rule = add_escalation("rent", change_type="fixed_increase", value=50.0, effective_date=date(2025, 4, 1))

    assert apply_pending_escalations(db, "user-1", now).applied_count == 0
    assert amount_of(db, "rent") == 1500.0

    result = ObligationRepository(db).resume("rent", now)

    assert result.applied_count == 1
    assert amount_of(db, "rent") == 1550.0
    assert db.get(EscalationRecord, rule.id).is_applied is True
    assert db.get(ObligationRecord, "rent").is_paused is False


@pytest.mark.integration
def test_failed_rule_does_not_block_batch(db, rent_record, add_escalation, now, monkeypatch):
    """Test a rule that fails is rolled back and later rules still apply"""
    broken_id = add_escalation("rent", change_type="fixed_increase", value=50.0, effective_date=date(2025, 3, 1)).id
    good_id = add_escalation("rent", change_type="fixed_increase", value=25.0, effective_date=date(2025, 4, 1)).id

    original = reconciler._apply_rule

    def flaky(db, rule_id, now):
        if rule_id == broken_id:
            raise OperationalError("UPDATE obligation", {}, Exception("lock timeout"))
        return original(db, rule_id, now)

    monkeypatch.setattr(reconciler, "_apply_rule", flaky)

    result = apply_pending_escalations(db, "user-1", now)

    assert result.applied_count == 1
    assert amount_of(db, "rent") == 1525.0
    assert db.get(EscalationRecord, broken_id).is_applied is False
    assert db.get(EscalationRecord, good_id).is_applied is True


@pytest.mark.integration
def test_other_users_are_untouched(db, rent_record, add_escalation, now):
    add_escalation("rent", change_type="fixed_increase", value=50.0, effective_date=date(2025, 4, 1))

    assert apply_pending_escalations(db, "someone-else", now).applied_count == 0
    assert amount_of(db, "rent") == 1500.0


@pytest.mark.integration
def test_unknown_change_type_does_not_block_batch(db, rent_record, add_escalation, now):
    """Test a stored rule the engine can't apply is skipped and later rules still apply"""
    bad_id = add_escalation("rent", change_type="doubling", value=2.0, effective_date=date(2025, 3, 1)).id
    good_id = add_escalation("rent", change_type="fixed_increase", value=25.0, effective_date=date(2025, 4, 1)).id

    result = apply_pending_escalations(db, "user-1", now)

    assert result.applied_count == 1
    assert amount_of(db, "rent") == 1525.0
    assert db.get(EscalationRecord, bad_id).is_applied is False
    assert db.get(EscalationRecord, good_id).is_applied is True
