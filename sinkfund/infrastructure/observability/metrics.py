"""Prometheus metrics for engine runs, shortfalls and escalation reconciliation"""

from prometheus_client import Counter, Histogram
from sinkfund.domain.models import EngineResult, TimelineResult

# Engine metrics
engine_duration_histogram = Histogram(
    "sinkfund_engine_duration_seconds",
    "Engine run latency",
    ["operation"],  # recalculate | scenario | timeline
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)

capacity_exceeded_counter = Counter(
    "sinkfund_capacity_exceeded_total",
    "Engine runs where required contributions exceeded the per-cycle cap",
)

shortfall_warning_counter = Counter(
    "sinkfund_shortfall_warnings_total",
    "Shortfall warnings issued",
)

crunch_point_counter = Counter(
    "sinkfund_crunch_points_total",
    "Projected dates where the fund balance goes negative",
)

# Reconciler metrics
escalations_applied_counter = Counter(
    "sinkfund_escalations_applied_total",
    "One-off escalation rules materialized into obligation amounts",
)

escalation_failures_counter = Counter(
    "sinkfund_escalation_failures_total",
    "Escalation rule applications that failed and were rolled back",
)


def record_engine_result(result: EngineResult) -> None:
    """Record shortfall metrics for one calculator run"""
    if result.capacity_exceeded:
        capacity_exceeded_counter.inc()
    shortfall_warning_counter.inc(len(result.shortfall_warnings))


def record_timeline(timeline: TimelineResult) -> None:
    """Record crunch points for one timeline projection"""
    crunch_point_counter.inc(len(timeline.crunch_points))
