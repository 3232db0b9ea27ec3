"""Config map merging.

- :func:`deep_merge`: recursive merge where the override side always wins
- :func:`merge_acl_defaults`: global ACL API settings under per-item specs

Both functions are pure: inputs are never mutated and the result shares no
mutable containers with them.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Union

from pydantic import BaseModel

from consul_cm.config.models import GlobalAclConfig


def _copy_value(value: Any) -> Any:
    """Deep-copy the JSON-like container shapes; scalars pass through."""
    if isinstance(value, Mapping):
        return {k: _copy_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_copy_value(v) for v in value]
    return value


def deep_merge(
    defaults: Mapping[str, Any], overrides: Mapping[str, Any],
) -> Dict[str, Any]:
    """Merge *overrides* into *defaults* key by key.

    When a key holds a mapping on both sides the two mappings are merged
    recursively.  In every other case (scalar vs scalar, mapping vs
    scalar, lists) the *overrides* value replaces the default outright.
    Result key order is the defaults' keys followed by keys only present
    in *overrides*.

    >>> deep_merge({"ports": {"http": 8500, "https": 8501}}, {"ports": {"https": 9501}})
    {'ports': {'http': 8500, 'https': 9501}}
    """
    merged: Dict[str, Any] = {}
    for key, value in defaults.items():
        if key not in overrides:
            merged[key] = _copy_value(value)
            continue
        override = overrides[key]
        if isinstance(value, Mapping) and isinstance(override, Mapping):
            merged[key] = deep_merge(value, override)
        else:
            merged[key] = _copy_value(override)
    for key, override in overrides.items():
        if key not in defaults:
            merged[key] = _copy_value(override)
    return merged


def _spec_dict(spec: Union[Mapping[str, Any], BaseModel]) -> Dict[str, Any]:
    # Unset optional fields must not shadow the global settings.
    if isinstance(spec, BaseModel):
        return spec.model_dump(exclude_none=True)
    return {k: v for k, v in spec.items() if v is not None}


def merge_acl_defaults(
    global_acl: Union[GlobalAclConfig, Mapping[str, Any]],
    per_item: Mapping[str, Union[Mapping[str, Any], BaseModel]],
) -> Dict[str, Dict[str, Any]]:
    """Return ``{name: global ∪ spec}`` for every named policy/token spec.

    Keys set on the per-item spec override the global keys of the same
    name; unrelated keys from both sides are kept.
    """
    if isinstance(global_acl, GlobalAclConfig):
        base = global_acl.as_dict()
    else:
        base = dict(global_acl)

    merged: Dict[str, Dict[str, Any]] = {}
    for name, spec in per_item.items():
        item = dict(_copy_value(base))
        item.update(_copy_value(_spec_dict(spec)))
        merged[name] = item
    return merged
