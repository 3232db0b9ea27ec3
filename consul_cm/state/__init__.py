"""Plan snapshots and drift detection."""

from consul_cm.state.drift import (
    DriftCheck,
    DriftReport,
    DriftStatus,
    check_edge_drift,
    check_group_drift,
    compare_plans,
)
from consul_cm.state.models import PlanSnapshot
from consul_cm.state.store import (
    config_dir,
    latest_plan_snapshot,
    load_plan_snapshot,
    write_plan_snapshot,
)

__all__ = [
    "DriftCheck",
    "DriftReport",
    "DriftStatus",
    "PlanSnapshot",
    "check_edge_drift",
    "check_group_drift",
    "compare_plans",
    "config_dir",
    "latest_plan_snapshot",
    "load_plan_snapshot",
    "write_plan_snapshot",
]
