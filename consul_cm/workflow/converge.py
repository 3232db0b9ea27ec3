"""End-to-end run: intake → resolve → render → snapshot.

Execution model::

    1. Intake: load and validate the parameter YAML (fail-fast)
    2. Platform: explicit facts, detected once here or supplied by caller
    3. Resolve: ResolvedState + RealizationPlan (pure)
    4. Render: config JSON and init unit file into the output dir
    5. Snapshot: plan JSON to the XDG state dir; optional drift check

A validation failure stops the run before anything is written.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from consul_cm import ui
from consul_cm.config.loader import ParameterError, load_parameters
from consul_cm.platform.facts import (
    PlatformFacts,
    UnsupportedPlatformError,
    detect_platform,
)
from consul_cm.render.renderer import write_config_file, write_unit_file
from consul_cm.resolve.resolver import ConfigurationResolver, Resolution
from consul_cm.state.drift import DriftReport, compare_plans
from consul_cm.state.models import PlanSnapshot
from consul_cm.state.store import load_plan_snapshot, write_plan_snapshot

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_VALIDATION_FAILURE = 1
EXIT_RENDER_FAILURE = 2
EXIT_DRIFT = 3
EXIT_PLATFORM = 4


def resolve_parameters(
    params_path: str | Path,
    *,
    platform: Optional[PlatformFacts] = None,
) -> Resolution:
    """Load *params_path* and resolve it.

    Raises :class:`ParameterError`, :class:`FileNotFoundError` (intake) or
    :class:`UnsupportedPlatformError` (from the resolver constructor).
    """
    params = load_parameters(params_path)
    facts = platform if platform is not None else detect_platform()
    return ConfigurationResolver(facts).resolve(params)


def check_drift(
    resolution: Resolution, snapshot_path: str | Path,
) -> DriftReport:
    """Compare *resolution*'s plan against the snapshot at *snapshot_path*."""
    previous = load_plan_snapshot(Path(snapshot_path))
    return compare_plans(previous, resolution.plan)


def run_converge(
    params_path: str | Path,
    *,
    output_dir: Optional[str | Path] = None,
    platform: Optional[PlatformFacts] = None,
    snapshot: bool = True,
    snapshot_path: Optional[str | Path] = None,
    previous_snapshot: Optional[str | Path] = None,
    fail_on_drift: bool = False,
) -> int:
    """Resolve, render and snapshot; return one of the ``EXIT_*`` codes.

    Args:
        params_path: Parameter YAML.
        output_dir: Where rendered files go.  Defaults to the resolved
            ``config_dir`` (the real target on a managed host).
        platform: Explicit platform facts; detected when omitted.
        snapshot: Write a plan snapshot after rendering.
        snapshot_path: Override the snapshot destination.
        previous_snapshot: Compare the new plan against this snapshot.
        fail_on_drift: Return ``EXIT_DRIFT`` when drift is found.
    """
    ui.phase("RESOLVE")
    try:
        resolution = resolve_parameters(params_path, platform=platform)
    except FileNotFoundError as exc:
        ui.fail(str(exc))
        return EXIT_VALIDATION_FAILURE
    except ParameterError as exc:
        ui.fail("Parameter validation failed")
        for line in exc.errors or [str(exc)]:
            ui.info(line)
        return EXIT_VALIDATION_FAILURE
    except UnsupportedPlatformError as exc:
        ui.fail(f"Unsupported platform: {exc}")
        return EXIT_PLATFORM

    state = resolution.state
    ui.ok(f"Resolved consul {state.version} ({state.install_method.value})")
    ui.detail("config", state.config_path)
    ui.detail("init style", state.identity.init_style.value)

    drift_report: Optional[DriftReport] = None
    if previous_snapshot is not None:
        try:
            drift_report = check_drift(resolution, previous_snapshot)
        except FileNotFoundError as exc:
            ui.fail(str(exc))
            return EXIT_VALIDATION_FAILURE
        if drift_report.has_drift:
            ui.warn(
                "Plan drift: "
                + ", ".join(c.id for c in drift_report.drifted_checks)
            )
            if fail_on_drift:
                return EXIT_DRIFT
        else:
            ui.ok("No plan drift")

    ui.phase("RENDER")
    out_dir = Path(output_dir) if output_dir is not None else None
    try:
        config_file = write_config_file(state, out_dir)
        ui.ok(f"Config written: {config_file}")
        unit_dir = out_dir if out_dir is not None else Path(state.config_dir)
        unit_file = write_unit_file(state, unit_dir)
        if unit_file is not None:
            ui.ok(f"Unit file written: {unit_file}")
    except (OSError, ValueError) as exc:
        logger.error("Render failed: %s", exc)
        ui.fail(f"Render failed: {exc}")
        return EXIT_RENDER_FAILURE

    if snapshot:
        snap = PlanSnapshot.from_plan(
            resolution.plan,
            version=state.version,
            install_method=state.install_method.value,
            config_path=state.config_path,
        )
        try:
            path = write_plan_snapshot(
                snap, Path(snapshot_path) if snapshot_path is not None else None,
            )
        except OSError as exc:
            logger.error("Snapshot write failed: %s", exc)
            ui.fail(f"Snapshot write failed: {exc}")
            return EXIT_RENDER_FAILURE
        ui.ok(f"Plan snapshot: {path}")

    return EXIT_SUCCESS
