"""Scheduled escalation reconciliation, run as `sinkfund-reconcile` or `python -m sinkfund.jobs`"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sinkfund.config import settings
from sinkfund.infrastructure.database.session import session_scope
from sinkfund.infrastructure.database.repositories import UserRepository
from sinkfund.infrastructure.database.reconciler import apply_pending_escalations
from sinkfund.infrastructure.observability.logging import setup_logging
from sinkfund.domain.models import ReconcileResult


def run_scheduled_reconciliation(now: Optional[datetime] = None, database_url: Optional[str] = None) -> List[ReconcileResult]:
    """Apply due one-off escalations for every user"""
    now = now or datetime.now(timezone.utc)

    with session_scope(database_url) as db:
        results = [apply_pending_escalations(db, user_id, now) for user_id in UserRepository(db).list_user_ids()]

    logging.info(
        "Scheduled reconciliation completed",
        extra={"applied_count": sum(r.applied_count for r in results), "users": len(results)},
    )
    return results


def main() -> None:
    setup_logging(settings.log_level)
    run_scheduled_reconciliation()


if __name__ == "__main__":
    main()
