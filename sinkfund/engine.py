"""Engine entry points: load a user's state, run the projection engine, persist results"""

import time
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.orm import Session

from sinkfund.config import settings
from sinkfund.domain.models import (
    EngineInput,
    EngineResult,
    CycleConfig,
    UserSettings,
    Snapshot,
    TimelineInput,
    TimelineResult,
    WhatIfOverrides,
    ReconcileResult,
)
from sinkfund.domain.cycles import resolve_cycle_config
from sinkfund.domain.contributions import calculate_contributions, calculate_with_what_if
from sinkfund.domain.snapshot import calculate_and_snapshot, generate_snapshot
from sinkfund.domain.whatif import apply_what_if
from sinkfund.domain.timeline import project_timeline
from sinkfund.infrastructure.database.repositories import (
    UserRepository,
    IncomeSourceRepository,
    ObligationRepository,
    FundBalanceRepository,
    SnapshotRepository,
)
from sinkfund.infrastructure.database.reconciler import apply_pending_escalations
from sinkfund.infrastructure.observability.metrics import engine_duration_histogram, record_engine_result, record_timeline
from sinkfund.infrastructure.observability.logging import log_recalculation
from sinkfund.schemas import clamp_months_ahead


@dataclass
class RecalculationOutcome:
    result: EngineResult
    snapshot: Snapshot
    snapshot_id: str
    reconciled: ReconcileResult


@dataclass
class ScenarioOutcome:
    actual: EngineResult
    scenario: EngineResult
    snapshot: Snapshot
    timeline: TimelineResult


@dataclass
class _UserState:
    settings: UserSettings
    engine_input: EngineInput


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _load_state(db: Session, user_id: str, now: datetime) -> _UserState:
    """Fresh snapshot of everything the engine reads for one user"""
    user_settings = UserRepository(db).get_settings(user_id)
    income_sources = IncomeSourceRepository(db).list_for_user(user_id)
    cycle_config: CycleConfig = resolve_cycle_config(user_settings, income_sources, settings.default_cycle_type)

    return _UserState(
        settings=user_settings,
        engine_input=EngineInput(
            obligations=ObligationRepository(db).list_engine_obligations(user_id),
            fund_balances=FundBalanceRepository(db).list_for_user(user_id),
            max_contribution_per_cycle=user_settings.max_contribution_per_cycle,
            cycle_config=cycle_config,
            now=now.date(),
        ),
    )


def recalculate(db: Session, user_id: str, now: Optional[datetime] = None) -> RecalculationOutcome:
    """
    Reconcile, calculate and persist a fresh snapshot for a user.

    Flow:
    1. Apply one-off escalations that have come due
    2. Load obligations, balances, settings and resolve the cycle
    3. Calculate contributions and build the snapshot
    4. Persist the snapshot
    """
    start_time = time.time()
    now = now or _utcnow()

    try:
        reconciled = apply_pending_escalations(db, user_id, now)

        state = _load_state(db, user_id, now)
        result, snapshot = calculate_and_snapshot(state.engine_input)

        record = SnapshotRepository(db).create_snapshot(user_id, snapshot)
        db.commit()

    except Exception as e:
        db.rollback()
        logging.error(f"Recalculation failed: {e}", extra={"user_id": user_id})
        raise

    duration = time.time() - start_time
    engine_duration_histogram.labels(operation="recalculate").observe(duration)
    record_engine_result(result)
    log_recalculation(
        user_id,
        "recalculate",
        result.total_contribution_per_cycle,
        result.capacity_exceeded,
        reconciled.applied_count,
        duration * 1000,
    )

    return RecalculationOutcome(result=result, snapshot=snapshot, snapshot_id=record.id, reconciled=reconciled)


def run_scenario(
    db: Session,
    user_id: str,
    overrides: WhatIfOverrides,
    months_ahead: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ScenarioOutcome:
    """
    Compare the real plan with a what-if scenario. Nothing is persisted.

    The scenario timeline runs on the overlaid obligations and is funded at
    the scenario's per-cycle contribution.
    """
    start_time = time.time()
    now = now or _utcnow()

    state = _load_state(db, user_id, now)
    engine_input = state.engine_input

    what_if = calculate_with_what_if(engine_input, overrides)
    snapshot = generate_snapshot(what_if.scenario, engine_input.now, engine_input.cycle_config)
    timeline = project_timeline(
        TimelineInput(
            obligations=apply_what_if(engine_input.obligations, overrides),
            fund_balances=engine_input.fund_balances,
            current_fund_balance=state.settings.current_fund_balance,
            contribution_per_cycle=what_if.scenario.total_contribution_per_cycle,
            cycle_config=engine_input.cycle_config,
            now=engine_input.now,
            months_ahead=clamp_months_ahead(months_ahead),
        )
    )

    engine_duration_histogram.labels(operation="scenario").observe(time.time() - start_time)
    record_timeline(timeline)

    return ScenarioOutcome(actual=what_if.actual, scenario=what_if.scenario, snapshot=snapshot, timeline=timeline)


def project_user_timeline(
    db: Session,
    user_id: str,
    months_ahead: Optional[int] = None,
    now: Optional[datetime] = None,
) -> TimelineResult:
    """Projected fund balance for a user's real obligations"""
    start_time = time.time()
    now = now or _utcnow()

    state = _load_state(db, user_id, now)
    engine_input = state.engine_input
    result = calculate_contributions(engine_input)

    timeline = project_timeline(
        TimelineInput(
            obligations=engine_input.obligations,
            fund_balances=engine_input.fund_balances,
            current_fund_balance=state.settings.current_fund_balance,
            contribution_per_cycle=result.total_contribution_per_cycle,
            cycle_config=engine_input.cycle_config,
            now=engine_input.now,
            months_ahead=clamp_months_ahead(months_ahead),
        )
    )

    engine_duration_histogram.labels(operation="timeline").observe(time.time() - start_time)
    record_timeline(timeline)
    return timeline

