"""Parameter intake: loading, validation, and sensitive values."""

from consul_cm.config.loader import (
    ParameterError,
    load_parameters,
    parse_parameters,
)
from consul_cm.config.models import (
    AclSpec,
    CheckSpec,
    GlobalAclConfig,
    InitStyle,
    InstallMethod,
    ParameterSet,
    PolicySpec,
    ServiceEnsure,
    ServiceSpec,
    TokenSpec,
    WatchSpec,
)
from consul_cm.config.sensitive import (
    Sensitive,
    contains_sensitive,
    is_sensitive,
    redact,
    reveal,
    reveal_all,
)

__all__ = [
    "AclSpec",
    "CheckSpec",
    "GlobalAclConfig",
    "InitStyle",
    "InstallMethod",
    "ParameterError",
    "ParameterSet",
    "PolicySpec",
    "Sensitive",
    "ServiceEnsure",
    "ServiceSpec",
    "TokenSpec",
    "WatchSpec",
    "contains_sensitive",
    "is_sensitive",
    "load_parameters",
    "parse_parameters",
    "redact",
    "reveal",
    "reveal_all",
]
