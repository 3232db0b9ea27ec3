"""Plan snapshot model.

A snapshot is written after every successful run::

    {
      "run_id": "YYYYMMDDHHMMSS",
      "version": "1.16.3",
      "install_method": "url",
      "config_path": "/etc/consul/config.json",
      "fingerprint": "<sha256 of the plan>",
      "plan": {"groups": [...], "edges": [...]}
    }
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import BaseModel, Field

from consul_cm.plan.models import RealizationPlan


def _utc_run_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")


class PlanSnapshot(BaseModel):
    """Persisted plan of one run, used as the drift baseline."""

    run_id: str = Field(default_factory=_utc_run_id)
    version: str = ""
    install_method: str = ""
    config_path: str = ""
    fingerprint: str = ""
    plan: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_plan(
        cls,
        plan: RealizationPlan,
        *,
        version: str = "",
        install_method: str = "",
        config_path: str = "",
        run_id: str | None = None,
    ) -> "PlanSnapshot":
        kwargs: Dict[str, Any] = {}
        if run_id:
            kwargs["run_id"] = run_id
        return cls(
            version=version,
            install_method=install_method,
            config_path=config_path,
            fingerprint=plan.fingerprint(),
            plan=json.loads(plan.to_sorted_json()),
            **kwargs,
        )

    def to_sorted_json(self, indent: int = 2) -> str:
        """Serialise with sorted keys for deterministic output."""
        return json.dumps(
            self.model_dump(mode="json"),
            indent=indent,
            sort_keys=True,
        )
