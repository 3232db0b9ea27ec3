"""Configuration Resolver: merge, derive, and resolve a ParameterSet."""

from consul_cm.resolve.derive import DerivedValues, extract_derived
from consul_cm.resolve.merge import deep_merge, merge_acl_defaults
from consul_cm.resolve.resolver import (
    ConfigurationResolver,
    IdentityContext,
    Resolution,
    ResolvedState,
    build_reload_command,
    resolve_download_source,
    select_identity_context,
)

__all__ = [
    "ConfigurationResolver",
    "DerivedValues",
    "IdentityContext",
    "Resolution",
    "ResolvedState",
    "build_reload_command",
    "deep_merge",
    "extract_derived",
    "merge_acl_defaults",
    "resolve_download_source",
    "select_identity_context",
]
