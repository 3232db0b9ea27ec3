"""Parameter loading and validation at intake.

This module is the only place where raw user input becomes a
:class:`ParameterSet`.  It provides:

- :func:`load_parameters`: parse a parameter YAML file
- :func:`parse_parameters`: validate an in-memory mapping
- :class:`ParameterError`: every intake failure, fail-fast

YAML files may tag secret values with ``!sensitive``::

    consul:
      version: "1.16.3"
      config_hash: !sensitive
        encrypt: "pUqJrVyVRj5jsiYEkM/tFQ=="
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml
from pydantic import ValidationError

from consul_cm.config.models import ParameterSet
from consul_cm.config.sensitive import Sensitive

logger = logging.getLogger(__name__)

#: Top-level key under which parameters live in a YAML file.
ROOT_KEY = "consul"


class ParameterError(ValueError):
    """Raised when the parameter record fails validation.

    Attributes:
        errors: One ``"<field path>: <message>"`` string per failure.
    """

    def __init__(self, message: str, errors: List[str] | None = None) -> None:
        super().__init__(message)
        self.errors: List[str] = list(errors or [])


# ---------------------------------------------------------------------------
# YAML with !sensitive
# ---------------------------------------------------------------------------


class _SensitiveLoader(yaml.SafeLoader):
    """SafeLoader that understands the ``!sensitive`` tag."""


def _construct_sensitive(loader: yaml.SafeLoader, node: yaml.Node) -> Sensitive:
    if isinstance(node, yaml.MappingNode):
        return Sensitive(loader.construct_mapping(node, deep=True))
    if isinstance(node, yaml.SequenceNode):
        return Sensitive(loader.construct_sequence(node, deep=True))
    return Sensitive(loader.construct_scalar(node))


_SensitiveLoader.add_constructor("!sensitive", _construct_sensitive)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _format_errors(exc: ValidationError) -> List[str]:
    lines: List[str] = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "<root>"
        lines.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return lines


def parse_parameters(data: Mapping[str, Any] | None) -> ParameterSet:
    """Validate *data* and return a frozen :class:`ParameterSet`.

    Raises :class:`ParameterError` listing every invalid field.
    """
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ParameterError(
            f"Parameters must be a mapping, got {type(data).__name__}"
        )
    try:
        params = ParameterSet.model_validate(dict(data))
    except ValidationError as exc:
        errors = _format_errors(exc)
        raise ParameterError(
            f"Invalid parameters ({len(errors)} error(s)): " + "; ".join(errors),
            errors,
        ) from exc

    logger.debug(
        "Parameters accepted: install_method=%s version=%s",
        params.install_method.value,
        params.version,
    )
    return params


def load_parameters(path: str | Path) -> ParameterSet:
    """Load and validate a parameter YAML file.

    Parameters live under a top-level ``consul:`` key; a bare mapping is
    accepted too.  Raises :class:`FileNotFoundError` when *path* is missing
    and :class:`ParameterError` for YAML or validation errors.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Parameter file not found: {path}")

    try:
        with open(path, encoding="utf-8") as fh:
            raw: Any = yaml.load(fh, Loader=_SensitiveLoader)  # noqa: S506
    except yaml.YAMLError as exc:
        raise ParameterError(f"Cannot parse {path}: {exc}") from exc

    raw = raw or {}
    if isinstance(raw, Mapping) and ROOT_KEY in raw:
        body: Dict[str, Any] = raw.get(ROOT_KEY) or {}
    else:
        body = raw

    logger.info("Loaded parameters from %s", path)
    return parse_parameters(body)
