"""SQLAlchemy ORM models for users, obligations, escalations and fund balances"""

import uuid
from sqlalchemy import Column, Text, Boolean, Float, Integer, Date, DateTime, ForeignKey, Index, JSON, text
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class UserRecord(Base):
    """User with engine settings"""

    __tablename__ = "app_user"

    id = Column(Text, primary_key=True, default=_new_id)
    email = Column(Text, nullable=False, unique=True)
    max_contribution_per_cycle = Column(Float, nullable=True)
    current_fund_balance = Column(Float, nullable=False, default=0.0)
    contribution_cycle_type = Column(Text, nullable=True)  # None = infer from income
    contribution_pay_days = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    obligations = relationship("ObligationRecord", back_populates="user", cascade="all, delete-orphan")
    income_sources = relationship("IncomeSourceRecord", back_populates="user", cascade="all, delete-orphan")
    snapshots = relationship("EngineSnapshotRecord", back_populates="user", cascade="all, delete-orphan")


class IncomeSourceRecord(Base):
    """Income stream, used to infer the contribution cycle"""

    __tablename__ = "income_source"

    id = Column(Text, primary_key=True, default=_new_id)
    user_id = Column(Text, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    expected_amount = Column(Float, nullable=True)
    frequency = Column(Text, nullable=False)
    is_irregular = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_paused = Column(Boolean, nullable=False, default=False)

    user = relationship("UserRecord", back_populates="income_sources")


class ObligationRecord(Base):
    """Recurring, one-off or custom-schedule payment obligation"""

    __tablename__ = "obligation"

    id = Column(Text, primary_key=True, default=_new_id)
    user_id = Column(Text, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    type = Column(Text, nullable=False)  # recurring | recurring_with_end | one_off | custom
    amount = Column(Float, nullable=False)
    frequency = Column(Text, nullable=True)
    frequency_days = Column(Integer, nullable=True)
    next_due_date = Column(Date, nullable=True)  # None for custom schedules
    end_date = Column(Date, nullable=True)
    is_paused = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_archived = Column(Boolean, nullable=False, default=False)
    fund_group_id = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    user = relationship("UserRecord", back_populates="obligations")
    custom_entries = relationship(
        "CustomEntryRecord",
        back_populates="obligation",
        cascade="all, delete-orphan",
        order_by="CustomEntryRecord.due_date",
    )
    escalations = relationship("EscalationRecord", back_populates="obligation", cascade="all, delete-orphan")
    fund_balance = relationship("FundBalanceRecord", back_populates="obligation", uselist=False, cascade="all, delete-orphan")


class CustomEntryRecord(Base):
    """Due date and amount within a custom schedule"""

    __tablename__ = "custom_schedule_entry"

    id = Column(Text, primary_key=True, default=_new_id)
    obligation_id = Column(Text, ForeignKey("obligation.id", ondelete="CASCADE"), nullable=False, index=True)
    due_date = Column(Date, nullable=False)
    amount = Column(Float, nullable=False)
    is_paid = Column(Boolean, nullable=False, default=False)

    obligation = relationship("ObligationRecord", back_populates="custom_entries")


class EscalationRecord(Base):
    """Escalation rule; one-off rules flip is_applied exactly once"""

    __tablename__ = "escalation"
    __table_args__ = (
        # At most one recurring rule per obligation
        Index(
            "escalation_unique_recurring_per_obligation",
            "obligation_id",
            unique=True,
            postgresql_where=text("interval_months IS NOT NULL"),
            sqlite_where=text("interval_months IS NOT NULL"),
        ),
    )

    id = Column(Text, primary_key=True, default=_new_id)
    obligation_id = Column(Text, ForeignKey("obligation.id", ondelete="CASCADE"), nullable=False, index=True)
    change_type = Column(Text, nullable=False)  # absolute | percentage | fixed_increase
    value = Column(Float, nullable=False)
    effective_date = Column(Date, nullable=False)
    interval_months = Column(Integer, nullable=True)  # None = one-off
    is_applied = Column(Boolean, nullable=False, default=False)
    applied_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    obligation = relationship("ObligationRecord", back_populates="escalations")


class FundBalanceRecord(Base):
    """Money set aside toward one obligation"""

    __tablename__ = "fund_balance"

    id = Column(Text, primary_key=True, default=_new_id)
    obligation_id = Column(Text, ForeignKey("obligation.id", ondelete="CASCADE"), nullable=False, unique=True)
    current_balance = Column(Float, nullable=False, default=0.0)
    last_updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    obligation = relationship("ObligationRecord", back_populates="fund_balance")


class EngineSnapshotRecord(Base):
    """Persisted result of a recalculation"""

    __tablename__ = "engine_snapshot"

    id = Column(Text, primary_key=True, default=_new_id)
    user_id = Column(Text, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False, index=True)
    calculated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    total_required = Column(Float, nullable=False)
    total_funded = Column(Float, nullable=False)
    total_contribution_per_cycle = Column(Float, nullable=False)
    next_action_amount = Column(Float, nullable=False)
    next_action_date = Column(Date, nullable=False)
    next_action_description = Column(Text, nullable=False)
    next_action_obligation_id = Column(Text, nullable=True)

    user = relationship("UserRecord", back_populates="snapshots")
