"""Wrapper type for secret parameter values.

A :class:`Sensitive` value can only be unwrapped with :meth:`Sensitive.reveal`.
Its ``repr``/``str`` are redacted so the wrapped value never reaches logs,
and equality comparison is refused outright.
"""

from __future__ import annotations

from typing import Any, Mapping

REDACTED = "Sensitive [value redacted]"


class Sensitive:
    """Opaque holder for a secret value."""

    __slots__ = ("_value",)

    def __init__(self, value: Any) -> None:
        if isinstance(value, Sensitive):
            value = value.reveal()
        self._value = value

    def reveal(self) -> Any:
        """Return the wrapped value."""
        return self._value

    def __repr__(self) -> str:
        return REDACTED

    __str__ = __repr__

    def __format__(self, format_spec: str) -> str:
        return REDACTED

    def __eq__(self, other: object) -> bool:
        raise TypeError("Sensitive values cannot be compared")

    __hash__ = None  # type: ignore[assignment]

    def __bool__(self) -> bool:
        return True


def reveal(value: Any) -> Any:
    """Unwrap *value* if it is :class:`Sensitive`, else return it unchanged."""
    if isinstance(value, Sensitive):
        return value.reveal()
    return value


def is_sensitive(value: Any) -> bool:
    return isinstance(value, Sensitive)


def contains_sensitive(value: Any) -> bool:
    """True when *value* is, or nests, a :class:`Sensitive` at any depth."""
    if isinstance(value, Sensitive):
        return True
    if isinstance(value, Mapping):
        return any(contains_sensitive(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(contains_sensitive(v) for v in value)
    return False


def reveal_all(value: Any) -> Any:
    """Copy of *value* with every nested :class:`Sensitive` unwrapped.

    Mappings come back as ``dict`` and sequences as ``list``.
    """
    value = reveal(value)
    if isinstance(value, Mapping):
        return {k: reveal_all(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [reveal_all(v) for v in value]
    return value


def redact(value: Any) -> Any:
    """Copy of *value* with every nested :class:`Sensitive` replaced by
    :data:`REDACTED`."""
    if isinstance(value, Sensitive):
        return REDACTED
    if isinstance(value, Mapping):
        return {k: redact(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value
