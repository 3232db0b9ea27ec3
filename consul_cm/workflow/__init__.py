"""Orchestration workflows (resolve, render, snapshot, drift)."""

from consul_cm.workflow.converge import (
    EXIT_DRIFT,
    EXIT_PLATFORM,
    EXIT_RENDER_FAILURE,
    EXIT_SUCCESS,
    EXIT_VALIDATION_FAILURE,
    check_drift,
    resolve_parameters,
    run_converge,
)

__all__ = [
    "EXIT_DRIFT",
    "EXIT_PLATFORM",
    "EXIT_RENDER_FAILURE",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_FAILURE",
    "check_drift",
    "resolve_parameters",
    "run_converge",
]
