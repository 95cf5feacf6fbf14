"""Pytest fixtures for testing"""

import pytest
from datetime import date, datetime, timezone
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sinkfund.infrastructure.database.models import (
    Base,
    EscalationRecord,
    FundBalanceRecord,
    IncomeSourceRecord,
    ObligationRecord,
    UserRecord,
)
from sinkfund.domain.models import CycleConfig, FundBalance, RecurringObligation


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fortnightly() -> CycleConfig:
    return CycleConfig(type="fortnightly", pay_days=[])


@pytest.fixture
def rent() -> RecurringObligation:
    """Monthly rent of $1500 due mid-June"""
    return RecurringObligation(
        id="rent",
        name="Rent",
        amount=1500.0,
        next_due_date=date(2025, 6, 15),
        frequency="monthly",
    )


@pytest.fixture
def rent_balance() -> FundBalance:
    return FundBalance(obligation_id="rent", current_balance=300.0)


@pytest.fixture
def user(db: Session) -> UserRecord:
    """User saving up to $500 a fortnight, paid fortnightly"""
    record = UserRecord(
        id="user-1",
        email="saver@example.com",
        max_contribution_per_cycle=500.0,
        current_fund_balance=300.0,
        contribution_cycle_type=None,
        contribution_pay_days=[],
    )
    db.add(record)
    db.add(IncomeSourceRecord(user_id=record.id, name="Salary", frequency="fortnightly", expected_amount=2400.0))
    db.commit()
    return record


@pytest.fixture
def rent_record(db: Session, user: UserRecord) -> ObligationRecord:
    """Persisted rent obligation with $300 already set aside"""
    record = ObligationRecord(
        id="rent",
        user_id=user.id,
        name="Rent",
        type="recurring",
        amount=1500.0,
        frequency="monthly",
        next_due_date=date(2025, 6, 15),
    )
    db.add(record)
    db.add(FundBalanceRecord(obligation_id=record.id, current_balance=300.0))
    db.commit()
    return record


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 5, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def add_escalation(db: Session):
    """Insert escalation rows directly, bypassing edit-boundary validation"""

    def _add(obligation_id: str, **fields) -> EscalationRecord:
        record = EscalationRecord(obligation_id=obligation_id, **fields)
        db.add(record)
        db.commit()
        return record

    return _add
