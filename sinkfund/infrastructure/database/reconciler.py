"""Escalation reconciler - materializes due one-off escalations into obligation amounts"""

import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from sinkfund.infrastructure.database.models import ObligationRecord, EscalationRecord
from sinkfund.domain.models import ReconcileResult
from sinkfund.domain.escalation import apply_change
from sinkfund.infrastructure.observability.metrics import escalations_applied_counter, escalation_failures_counter


def _pending_rules_query(db: Session, now: datetime):
    """Unapplied one-off rules whose effective date has passed"""
    return (
        db.query(EscalationRecord.id)
        .join(ObligationRecord, EscalationRecord.obligation_id == ObligationRecord.id)
        .filter(
            EscalationRecord.is_applied.is_(False),
            EscalationRecord.interval_months.is_(None),
            EscalationRecord.effective_date <= now.date(),
        )
        .order_by(EscalationRecord.effective_date, EscalationRecord.created_at, EscalationRecord.id)
    )


def _apply_rule(db: Session, rule_id: str, now: datetime) -> Optional[str]:
    """
    Apply one rule in its own transaction.

    The rule and its obligation are re-read under a row lock, so a rule
    applied concurrently is skipped and a second rule for the same
    obligation compounds on the amount the first one committed.

    Returns:
        The updated obligation id, or None when the rule was already applied
    """
    rule = (
        db.query(EscalationRecord)
        .filter(EscalationRecord.id == rule_id)
        .with_for_update()
        .populate_existing()
        .one()
    )
    if rule.is_applied:
        db.rollback()
        return None

    obligation = (
        db.query(ObligationRecord)
        .filter(ObligationRecord.id == rule.obligation_id)
        .with_for_update()
        .populate_existing()
        .one()
    )

    obligation.amount = apply_change(obligation.amount, rule.change_type, rule.value)
    rule.is_applied = True
    rule.applied_at = now
    db.commit()
    return obligation.id


def _apply_rules(db: Session, rule_ids: List[str], now: datetime) -> ReconcileResult:
    result = ReconcileResult()

    for rule_id in rule_ids:
        try:
            obligation_id = _apply_rule(db, rule_id, now)
        except Exception as e:
            db.rollback()
            escalation_failures_counter.inc()
            logging.error(f"Failed to apply escalation rule: {e}", extra={"escalation_id": rule_id})
            continue

        if obligation_id is None:
            continue

        escalations_applied_counter.inc()
        result.applied_count += 1
        if obligation_id not in result.updated_obligation_ids:
            result.updated_obligation_ids.append(obligation_id)

    return result


def apply_pending_escalations(db: Session, user_id: str, now: datetime) -> ReconcileResult:
    """
    Apply due one-off escalations across a user's active, non-paused obligations.

    Rules are applied oldest first, each in its own transaction. A failed
    rule is logged and skipped; the rest of the batch still runs.
    Rules on paused obligations wait for apply_deferred_escalations.
    """
    rule_ids = [
        rule_id
        for (rule_id,) in _pending_rules_query(db, now)
        .filter(
            ObligationRecord.user_id == user_id,
            ObligationRecord.is_active.is_(True),
            ObligationRecord.is_paused.is_(False),
        )
        .all()
    ]
    result = _apply_rules(db, rule_ids, now)

    if result.applied_count:
        logging.info(
            "Applied pending escalations",
            extra={"user_id": user_id, "applied_count": result.applied_count},
        )
    return result


def apply_deferred_escalations(db: Session, obligation_id: str, now: datetime) -> ReconcileResult:
    """Catch one obligation up on one-off escalations that came due while it was paused"""
    rule_ids = [
        rule_id
        for (rule_id,) in _pending_rules_query(db, now)
        .filter(EscalationRecord.obligation_id == obligation_id)
        .all()
    ]
    result = _apply_rules(db, rule_ids, now)

    if result.applied_count:
        logging.info(
            "Applied deferred escalations",
            extra={"obligation_id": obligation_id, "applied_count": result.applied_count},
        )
    return result
