"""Data access layer: loads engine inputs and persists escalations and snapshots"""

from datetime import date, datetime
from typing import List, Optional
from sqlalchemy.orm import Session, selectinload
from sinkfund.infrastructure.database.models import (
    UserRecord,
    IncomeSourceRecord,
    ObligationRecord,
    EscalationRecord,
    FundBalanceRecord,
    EngineSnapshotRecord,
)
from sinkfund.infrastructure.database.reconciler import apply_deferred_escalations
from sinkfund.domain.models import (
    Obligation,
    EscalationRule,
    CustomScheduleEntry,
    FundBalance,
    IncomeSource,
    UserSettings,
    Snapshot,
    ReconcileResult,
    make_obligation,
)
from sinkfund.domain.escalation import validate_escalation_rule
from sinkfund.domain.exceptions import UserNotFoundError, ObligationNotFoundError


def to_domain_rule(record: EscalationRecord) -> EscalationRule:
    return EscalationRule(
        id=record.id,
        change_type=record.change_type,
        value=record.value,
        effective_date=record.effective_date,
        interval_months=record.interval_months,
        is_applied=record.is_applied,
        applied_at=record.applied_at,
    )


def to_domain_obligation(record: ObligationRecord) -> Obligation:
    """Map a flat obligation row onto its domain variant"""
    return make_obligation(
        type=record.type,
        id=record.id,
        name=record.name,
        amount=record.amount,
        next_due_date=record.next_due_date,
        frequency=record.frequency,
        frequency_days=record.frequency_days,
        end_date=record.end_date,
        entries=[
            CustomScheduleEntry(due_date=entry.due_date, amount=entry.amount, is_paid=entry.is_paid)
            for entry in record.custom_entries
        ],
        is_paused=record.is_paused,
        is_active=record.is_active,
        is_archived=record.is_archived,
        fund_group_id=record.fund_group_id,
        escalation_rules=[to_domain_rule(rule) for rule in record.escalations],
    )


class UserRepository:
    """Repository for user engine settings"""

    def __init__(self, db: Session):
        self.db = db

    def get_settings(self, user_id: str) -> UserSettings:
        user = self.db.get(UserRecord, user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")

        return UserSettings(
            max_contribution_per_cycle=user.max_contribution_per_cycle,
            current_fund_balance=user.current_fund_balance,
            contribution_cycle_type=user.contribution_cycle_type,
            contribution_pay_days=list(user.contribution_pay_days or []),
        )

    def list_user_ids(self) -> List[str]:
        return [user_id for (user_id,) in self.db.query(UserRecord.id).order_by(UserRecord.id).all()]


class IncomeSourceRepository:
    """Repository for income sources"""

    def __init__(self, db: Session):
        self.db = db

    def list_for_user(self, user_id: str) -> List[IncomeSource]:
        records = (
            self.db.query(IncomeSourceRecord)
            .filter(IncomeSourceRecord.user_id == user_id)
            .all()
        )
        return [
            IncomeSource(
                id=record.id,
                frequency=record.frequency,
                is_irregular=record.is_irregular,
                is_active=record.is_active,
                is_paused=record.is_paused,
            )
            for record in records
        ]


class ObligationRepository:
    """Repository for obligations"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, obligation_id: str) -> ObligationRecord:
        obligation = self.db.get(ObligationRecord, obligation_id)
        if obligation is None:
            raise ObligationNotFoundError(f"Obligation {obligation_id} not found")
        return obligation

    def list_engine_obligations(self, user_id: str) -> List[Obligation]:
        """Active, non-archived obligations with schedules and rules, as domain variants"""
        records = (
            self.db.query(ObligationRecord)
            .options(selectinload(ObligationRecord.custom_entries), selectinload(ObligationRecord.escalations))
            .filter(
                ObligationRecord.user_id == user_id,
                ObligationRecord.is_active.is_(True),
                ObligationRecord.is_archived.is_(False),
            )
            .order_by(ObligationRecord.next_due_date, ObligationRecord.id)
            .all()
        )
        return [to_domain_obligation(record) for record in records]

    def pause(self, obligation_id: str) -> None:
        self.get(obligation_id).is_paused = True
        self.db.commit()

    def resume(self, obligation_id: str, now: datetime) -> ReconcileResult:
        """
        Un-pause an obligation and catch up on one-off escalations that
        came due while it was paused.
        """
        obligation = self.get(obligation_id)
        obligation.is_paused = False
        self.db.commit()
        return apply_deferred_escalations(self.db, obligation_id, now)


class FundBalanceRepository:
    """Repository for per-obligation fund balances"""

    def __init__(self, db: Session):
        self.db = db

    def list_for_user(self, user_id: str) -> List[FundBalance]:
        records = (
            self.db.query(FundBalanceRecord)
            .join(ObligationRecord, FundBalanceRecord.obligation_id == ObligationRecord.id)
            .filter(ObligationRecord.user_id == user_id)
            .all()
        )
        return [FundBalance(obligation_id=r.obligation_id, current_balance=r.current_balance) for r in records]


class EscalationRepository:
    """Repository for escalation rules"""

    def __init__(self, db: Session):
        self.db = db

    def add_rule(
        self,
        obligation_id: str,
        change_type: str,
        value: float,
        effective_date: date,
        interval_months: Optional[int] = None,
    ) -> EscalationRecord:
        """
        Validate and create an escalation rule.

        A new recurring rule replaces the obligation's previous recurring rule.

        Raises:
            ObligationNotFoundError: unknown obligation
            InvalidEscalationRuleError: rule rejected for this obligation
        """
        obligation = ObligationRepository(self.db).get(obligation_id)
        validate_escalation_rule(obligation.type, change_type, interval_months)

        if interval_months is not None:
            (
                self.db.query(EscalationRecord)
                .filter(
                    EscalationRecord.obligation_id == obligation_id,
                    EscalationRecord.interval_months.isnot(None),
                )
                .delete(synchronize_session="fetch")
            )
            self.db.flush()  # Free the unique recurring slot before inserting

        rule = EscalationRecord(
            obligation_id=obligation_id,
            change_type=change_type,
            value=value,
            effective_date=effective_date,
            interval_months=interval_months,
        )
        self.db.add(rule)
        self.db.flush()
        return rule

    def list_for_obligation(self, obligation_id: str) -> List[EscalationRecord]:
        return (
            self.db.query(EscalationRecord)
            .filter(EscalationRecord.obligation_id == obligation_id)
            .order_by(EscalationRecord.effective_date, EscalationRecord.id)
            .all()
        )


class SnapshotRepository:
    """Repository for persisted engine snapshots"""

    def __init__(self, db: Session):
        self.db = db

    def create_snapshot(self, user_id: str, snapshot: Snapshot) -> EngineSnapshotRecord:
        """Persist snapshot to database"""
        record = EngineSnapshotRecord(
            user_id=user_id,
            total_required=snapshot.total_required,
            total_funded=snapshot.total_funded,
            total_contribution_per_cycle=snapshot.total_contribution_per_cycle,
            next_action_amount=snapshot.next_action_amount,
            next_action_date=snapshot.next_action_date,
            next_action_description=snapshot.next_action_description,
            next_action_obligation_id=snapshot.next_action_obligation_id,
        )
        self.db.add(record)
        self.db.flush()  # Get ID without committing
        return record

    def get_latest(self, user_id: str) -> Optional[EngineSnapshotRecord]:
        return (
            self.db.query(EngineSnapshotRecord)
            .filter(EngineSnapshotRecord.user_id == user_id)
            .order_by(EngineSnapshotRecord.calculated_at.desc(), EngineSnapshotRecord.id.desc())
            .first()
        )
