"""Persistent storage for plan snapshots.

Writes JSON to ``~/.config/consul-cm/`` (XDG_CONFIG_HOME / consul-cm).

File naming::

    plan_<run_id>.json

All JSON is serialised with **sorted keys** for deterministic, diff-friendly output.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from consul_cm.state.models import PlanSnapshot

logger = logging.getLogger(__name__)

_APP_DIR = "consul-cm"


def config_dir() -> Path:
    """Return the XDG config directory for consul-cm.

    Uses ``XDG_CONFIG_HOME`` if set, otherwise ``~/.config``.
    Creates the directory if it does not exist.
    """
    base = os.environ.get("XDG_CONFIG_HOME", "")
    if not base:
        base = str(Path.home() / ".config")
    path = Path(base) / _APP_DIR
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_plan_snapshot(
    snapshot: PlanSnapshot, dest: Optional[Path] = None,
) -> Path:
    """Persist *snapshot* and return the written path.

    Default path: ``<config_dir>/plan_<run_id>.json``.
    """
    if dest is None:
        dest = config_dir() / f"plan_{snapshot.run_id}.json"
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(snapshot.to_sorted_json() + "\n", encoding="utf-8")
    logger.info("Plan snapshot written to %s", dest)
    return dest


def load_plan_snapshot(path: Path) -> PlanSnapshot:
    """Load a snapshot written by :func:`write_plan_snapshot`.

    Raises :class:`FileNotFoundError` if *path* does not exist.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Snapshot not found: {path}")
    return PlanSnapshot.model_validate_json(path.read_text(encoding="utf-8"))


def latest_plan_snapshot() -> Optional[Path]:
    """Most recent ``plan_*.json`` in :func:`config_dir`, or ``None``."""
    candidates = sorted(config_dir().glob("plan_*.json"))
    return candidates[-1] if candidates else None
