"""CLI entry point for consul-cm, built on typer.

Provides ``resolve``, ``plan``, ``render``, and ``drift`` commands.

Usage::

    python -m consul_cm --help
    python -m consul_cm resolve --params consul.yaml
    python -m consul_cm plan --params consul.yaml --kernel Linux --arch x86_64
    python -m consul_cm render --params consul.yaml --output-dir ./out
    python -m consul_cm drift --params consul.yaml --snapshot ~/.config/consul-cm/plan_*.json
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Optional

import typer

from consul_cm import __version__, ui
from consul_cm.config.loader import ParameterError
from consul_cm.platform.facts import (
    PlatformFacts,
    UnsupportedPlatformError,
    detect_platform,
)
from consul_cm.workflow.converge import (
    EXIT_DRIFT,
    EXIT_PLATFORM,
    EXIT_SUCCESS,
    EXIT_VALIDATION_FAILURE,
    check_drift,
    resolve_parameters,
    run_converge,
)

app = typer.Typer(
    name="consul-cm",
    help="Resolve Consul parameters into config files and a realization plan.",
    no_args_is_help=True,
    add_completion=False,
)


# ── Root callback (global options) ───────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"consul-cm {__version__}")
        raise typer.Exit()


@app.callback()
def _root_callback(
    debug: bool = typer.Option(
        False, "--debug", help="Enable debug logging."
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """consul-cm control plane."""
    if debug:
        logging.basicConfig(level=logging.DEBUG)


# ── Shared option helpers ────────────────────────────────────────────────────


_PARAMS_OPTION = typer.Option(
    ..., "--params", "-p", help="Path to the parameter YAML file.",
)
_KERNEL_OPTION = typer.Option(
    None, "--kernel", help="Override detected kernel (Linux, Darwin, FreeBSD, Windows).",
)
_ARCH_OPTION = typer.Option(
    None, "--arch", help="Override detected machine architecture (x86_64, aarch64).",
)


def _platform(kernel: Optional[str], arch: Optional[str]) -> PlatformFacts:
    detected = detect_platform()
    return PlatformFacts(
        kernel=kernel or detected.kernel,
        architecture=arch or detected.architecture,
    )


def _resolve_or_exit(params: str, kernel: Optional[str], arch: Optional[str]):
    try:
        return resolve_parameters(params, platform=_platform(kernel, arch))
    except FileNotFoundError as exc:
        ui.fail(str(exc))
        raise typer.Exit(EXIT_VALIDATION_FAILURE) from exc
    except ParameterError as exc:
        ui.fail("Parameter validation failed")
        for line in exc.errors or [str(exc)]:
            ui.info(line)
        raise typer.Exit(EXIT_VALIDATION_FAILURE) from exc
    except UnsupportedPlatformError as exc:
        ui.fail(f"Unsupported platform: {exc}")
        raise typer.Exit(EXIT_PLATFORM) from exc


# ── resolve command ──────────────────────────────────────────────────────────


@app.command()
def resolve(
    params: str = _PARAMS_OPTION,
    kernel: Optional[str] = _KERNEL_OPTION,
    arch: Optional[str] = _ARCH_OPTION,
) -> None:
    """Print the resolved state as JSON (sensitive config redacted)."""
    resolution = _resolve_or_exit(params, kernel, arch)
    ui.print_json(json.dumps(resolution.state.to_dict(), indent=2, sort_keys=True))
    raise typer.Exit(EXIT_SUCCESS)


# ── plan command ─────────────────────────────────────────────────────────────


@app.command()
def plan(
    params: str = _PARAMS_OPTION,
    kernel: Optional[str] = _KERNEL_OPTION,
    arch: Optional[str] = _ARCH_OPTION,
) -> None:
    """Print the realization plan as sorted-key JSON."""
    resolution = _resolve_or_exit(params, kernel, arch)
    ui.print_json(resolution.plan.to_sorted_json())
    raise typer.Exit(EXIT_SUCCESS)


# ── render command ───────────────────────────────────────────────────────────


@app.command()
def render(
    params: str = _PARAMS_OPTION,
    output_dir: Optional[str] = typer.Option(
        None,
        "--output-dir",
        "-o",
        help="Directory for rendered files. Defaults to the resolved config_dir.",
    ),
    snapshot: bool = typer.Option(
        True, "--snapshot/--no-snapshot", help="Write a plan snapshot.",
    ),
    snapshot_path: Optional[str] = typer.Option(
        None, "--snapshot-path", help="Override the snapshot file path.",
    ),
    previous: Optional[str] = typer.Option(
        None, "--previous", help="Compare against a previous plan snapshot.",
    ),
    fail_on_drift: bool = typer.Option(
        False, "--fail-on-drift", help="Exit 3 without rendering when drift is found.",
    ),
    kernel: Optional[str] = _KERNEL_OPTION,
    arch: Optional[str] = _ARCH_OPTION,
) -> None:
    """Write the config file (and unit file) and snapshot the plan."""
    rc = run_converge(
        params,
        output_dir=output_dir,
        platform=_platform(kernel, arch),
        snapshot=snapshot,
        snapshot_path=snapshot_path,
        previous_snapshot=previous,
        fail_on_drift=fail_on_drift,
    )
    raise typer.Exit(rc)


# ── drift command ────────────────────────────────────────────────────────────


@app.command()
def drift(
    params: str = _PARAMS_OPTION,
    snapshot: str = typer.Option(
        ..., "--snapshot", help="Path to a plan snapshot from a previous run.",
    ),
    kernel: Optional[str] = _KERNEL_OPTION,
    arch: Optional[str] = _ARCH_OPTION,
) -> None:
    """Check the current plan against a snapshot.

    Exit codes: 0 = no drift, 3 = drift detected, 1 = bad input.
    """
    resolution = _resolve_or_exit(params, kernel, arch)
    try:
        report = check_drift(resolution, snapshot)
    except FileNotFoundError as exc:
        ui.fail(str(exc))
        raise typer.Exit(EXIT_VALIDATION_FAILURE) from exc

    ui.print_json(json.dumps(report.to_dict(), indent=2, sort_keys=True))

    if report.has_drift:
        ui.drift_panel(c.id for c in report.drifted_checks)
        raise typer.Exit(EXIT_DRIFT)

    ui.ok("No drift detected.")
    raise typer.Exit(EXIT_SUCCESS)


# ── Entry point ──────────────────────────────────────────────────────────────


def main() -> int:
    """Run the CLI and return an exit code."""
    try:
        app()
        return 0
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 0


if __name__ == "__main__":
    sys.exit(main())
