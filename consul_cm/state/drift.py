"""Plan drift detection.

Compares a persisted :class:`PlanSnapshot` against a freshly built
:class:`RealizationPlan`.  Resolution is deterministic, so any drift means
the parameters (or the platform) changed since the snapshot was taken.

Exit code convention: ``3`` = drift detected (for the CLI ``drift`` command).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from consul_cm.plan.models import RealizationPlan
from consul_cm.state.models import PlanSnapshot

logger = logging.getLogger(__name__)


class DriftStatus(str, Enum):
    """Outcome of a single drift check."""

    OK = "OK"
    DRIFTED = "DRIFTED"


@dataclass
class DriftCheck:
    """Result of one drift check (one group, or the edge set)."""

    id: str
    status: DriftStatus
    expected: str = ""
    actual: str = ""
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DriftReport:
    """Aggregate drift report for a plan."""

    previous_fingerprint: str
    current_fingerprint: str
    checks: List[DriftCheck] = field(default_factory=list)

    @property
    def has_drift(self) -> bool:
        return any(c.status == DriftStatus.DRIFTED for c in self.checks)

    @property
    def drifted_checks(self) -> List[DriftCheck]:
        return [c for c in self.checks if c.status == DriftStatus.DRIFTED]

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to a plain dict (sorted for determinism)."""
        return {
            "previous_fingerprint": self.previous_fingerprint,
            "current_fingerprint": self.current_fingerprint,
            "has_drift": self.has_drift,
            "checks": [
                {
                    "actual": c.actual,
                    "details": c.details,
                    "expected": c.expected,
                    "id": c.id,
                    "status": c.status.value,
                }
                for c in self.checks
            ],
        }


def _requests_by_ref(group: Dict[str, Any]) -> Dict[str, Any]:
    return {
        f"{r['kind']}[{r['name']}]": r
        for r in group.get("requests", [])
    }


def check_group_drift(
    name: str, previous: Dict[str, Any], current: Dict[str, Any],
) -> DriftCheck:
    """Compare one group's requests between two plan dicts."""
    if not previous:
        return DriftCheck(
            id=f"group.{name}", status=DriftStatus.DRIFTED,
            expected="<absent>", actual="present",
        )
    if not current:
        return DriftCheck(
            id=f"group.{name}", status=DriftStatus.DRIFTED,
            expected="present", actual="<absent>",
        )

    before = _requests_by_ref(previous)
    after = _requests_by_ref(current)
    added = sorted(set(after) - set(before))
    removed = sorted(set(before) - set(after))
    changed = sorted(
        ref for ref in set(before) & set(after) if before[ref] != after[ref]
    )
    if added or removed or changed:
        return DriftCheck(
            id=f"group.{name}",
            status=DriftStatus.DRIFTED,
            details={"added": added, "removed": removed, "changed": changed},
        )
    return DriftCheck(id=f"group.{name}", status=DriftStatus.OK)


def check_edge_drift(
    previous: List[Dict[str, str]], current: List[Dict[str, str]],
) -> DriftCheck:
    def _key(e: Dict[str, str]) -> str:
        return f"{e['source']}-{e['kind']}->{e['target']}"

    before = {_key(e) for e in previous}
    after = {_key(e) for e in current}
    if before == after:
        return DriftCheck(id="edges", status=DriftStatus.OK)
    return DriftCheck(
        id="edges",
        status=DriftStatus.DRIFTED,
        details={
            "added": sorted(after - before),
            "removed": sorted(before - after),
        },
    )


def compare_plans(
    previous: PlanSnapshot, current: RealizationPlan,
) -> DriftReport:
    """Diff *current* against the *previous* snapshot, group by group."""
    current_dict = json.loads(current.to_sorted_json())
    prev_groups = {g["name"]: g for g in previous.plan.get("groups", [])}
    cur_groups = {g["name"]: g for g in current_dict["groups"]}

    # previous order first, then groups new in the current plan
    names = list(prev_groups) + [n for n in cur_groups if n not in prev_groups]

    report = DriftReport(
        previous_fingerprint=previous.fingerprint,
        current_fingerprint=current.fingerprint(),
    )
    for name in names:
        report.checks.append(
            check_group_drift(name, prev_groups.get(name, {}), cur_groups.get(name, {}))
        )
    report.checks.append(
        check_edge_drift(previous.plan.get("edges", []), current_dict["edges"])
    )

    if report.has_drift:
        logger.warning(
            "Plan drift: %s",
            ", ".join(c.id for c in report.drifted_checks),
        )
    return report
