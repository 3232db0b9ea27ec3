"""Pydantic models for the consul-cm parameter record.

Defines the data structures for:
- The full :class:`ParameterSet` supplied once per convergence run
- Sub-resource specifications (services, watches, checks, ACLs, policies, tokens)
- The global ACL API coordinates merged into every policy/token
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from consul_cm.config.sensitive import Sensitive


class InstallMethod(str, Enum):
    """How the Consul binary reaches the host."""

    URL = "url"
    PACKAGE = "package"
    DOCKER = "docker"
    NONE = "none"


class InitStyle(str, Enum):
    """Service supervisor flavour used to run the agent."""

    SYSTEMD = "systemd"
    SYSV = "sysv"
    LAUNCHD = "launchd"
    FREEBSD = "freebsd"
    UNMANAGED = "unmanaged"


class ServiceEnsure(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"


# ---------------------------------------------------------------------------
# Sub-resource specifications
# ---------------------------------------------------------------------------

_SPEC_CONFIG = ConfigDict(extra="allow", frozen=True, arbitrary_types_allowed=True)

#: Consul tokens and ACL secrets may be tagged ``!sensitive``.
Secret = Union[str, Sensitive]


class ServiceSpec(BaseModel):
    """A service definition file dropped into the agent's config dir.

    Unknown keys are kept and written verbatim into the definition.
    """

    model_config = _SPEC_CONFIG

    service_name: Optional[str] = None
    id: Optional[str] = None
    address: Optional[str] = None
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    tags: List[str] = Field(default_factory=list)
    checks: List[Dict[str, Any]] = Field(default_factory=list)
    meta: Dict[str, str] = Field(default_factory=dict)
    token: Optional[Secret] = None
    enable_tag_override: bool = False


#: Watch types and the attribute each one requires.
WATCH_REQUIRED_ATTRIBUTE: Dict[str, Optional[str]] = {
    "key": "key",
    "keyprefix": "prefix",
    "service": "service",
    "services": None,
    "nodes": None,
    "checks": None,
    "event": None,
}


class WatchSpec(BaseModel):
    """A watch definition (key, keyprefix, service, nodes, checks, event)."""

    model_config = _SPEC_CONFIG

    type: str
    handler: Optional[str] = None
    args: List[str] = Field(default_factory=list)
    key: Optional[str] = None
    prefix: Optional[str] = None
    service: Optional[str] = None
    tag: Optional[str] = None
    passingonly: Optional[bool] = None
    state: Optional[str] = None
    event_name: Optional[str] = None
    datacenter: Optional[str] = None
    token: Optional[Secret] = None

    @model_validator(mode="after")
    def _check_type_attributes(self) -> "WatchSpec":
        if self.type not in WATCH_REQUIRED_ATTRIBUTE:
            raise ValueError(
                f"watch type must be one of {sorted(WATCH_REQUIRED_ATTRIBUTE)}, "
                f"got {self.type!r}"
            )
        required = WATCH_REQUIRED_ATTRIBUTE[self.type]
        if required and not getattr(self, required):
            raise ValueError(f"watch type {self.type!r} requires {required!r}")
        if not self.handler and not self.args:
            raise ValueError("watch requires either 'handler' or 'args'")
        return self


class CheckSpec(BaseModel):
    """A health check definition.

    Exactly as Consul expects: an ``args``/``http``/``tcp``/``grpc`` probe
    needs an ``interval``; otherwise the check must be a ``ttl`` check.
    """

    model_config = _SPEC_CONFIG

    id: Optional[str] = None
    args: List[str] = Field(default_factory=list)
    http: Optional[str] = None
    tcp: Optional[str] = None
    grpc: Optional[str] = None
    ttl: Optional[str] = None
    interval: Optional[str] = None
    timeout: Optional[str] = None
    notes: Optional[str] = None
    service_id: Optional[str] = None
    status: Optional[str] = None
    token: Optional[Secret] = None

    @model_validator(mode="after")
    def _check_probe(self) -> "CheckSpec":
        probes = [p for p in ("http", "tcp", "grpc") if getattr(self, p)]
        if self.args:
            probes.append("args")
        if probes:
            if self.ttl:
                raise ValueError(f"check cannot combine ttl with {probes[0]!r}")
            if not self.interval:
                raise ValueError(f"{probes[0]!r} check requires 'interval'")
        elif not self.ttl:
            raise ValueError("check requires one of args, http, tcp, grpc or ttl")
        return self


class AclApiSpec(BaseModel):
    """Base for specs realized through the ACL HTTP API.

    The connection fields default to ``None`` and fall back to the global
    ACL settings when the spec is merged.
    """

    model_config = _SPEC_CONFIG

    hostname: Optional[str] = None
    protocol: Optional[str] = None
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    api_tries: Optional[int] = Field(default=None, ge=1)
    acl_api_token: Optional[Secret] = None
    ensure: str = "present"

    @field_validator("ensure")
    @classmethod
    def _check_ensure(cls, value: str) -> str:
        if value not in ("present", "absent"):
            raise ValueError("ensure must be 'present' or 'absent'")
        return value


class AclSpec(AclApiSpec):
    """Legacy ACL token."""

    id: Optional[str] = None
    type: str = "client"
    rules: Union[str, Dict[str, Any]] = ""


class PolicySpec(AclApiSpec):
    id: Optional[str] = None
    description: str = ""
    rules: List[Dict[str, Any]] = Field(default_factory=list)
    datacenters: List[str] = Field(default_factory=list)


class TokenSpec(AclApiSpec):
    accessor_id: Optional[str] = None
    secret_id: Optional[Secret] = None
    description: str = ""
    policies_by_name: List[str] = Field(default_factory=list)
    policies_by_id: List[str] = Field(default_factory=list)
    local: bool = False


class GlobalAclConfig(BaseModel):
    """Coordinates of the ACL HTTP API shared by every policy and token."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    hostname: str = "localhost"
    protocol: str = "http"
    port: int = 8500
    api_tries: int = 3
    acl_api_token: Secret = Field(default="", repr=False)

    def as_dict(self) -> Dict[str, Any]:
        return self.model_dump()


# ---------------------------------------------------------------------------
# ParameterSet
# ---------------------------------------------------------------------------

#: Config maps are either plain mappings or a Sensitive-wrapped mapping.
ConfigSource = Union[Dict[str, Any], Sensitive]

_MODE_RE = re.compile(r"^[0-7]{4}$")


class ParameterSet(BaseModel):
    """Every named input of a convergence run.

    Optional fields left at ``None`` are filled from the platform table by
    the resolver; they are never read from ambient host state here.
    """

    model_config = ConfigDict(
        extra="forbid", frozen=True, arbitrary_types_allowed=True,
    )

    # -- installation --------------------------------------------------------
    install_method: InstallMethod = InstallMethod.URL
    version: str = "1.16.3"
    package_name: str = "consul"
    package_ensure: str = "latest"
    manage_repo: bool = False
    docker_image: str = "consul"
    download_url: Optional[str] = None
    download_url_base: str = "https://releases.hashicorp.com/consul/"
    download_extension: str = "zip"
    os: Optional[str] = None
    arch: Optional[str] = None
    archive_path: str = "/opt/consul/archives"
    bin_dir: Optional[str] = None

    # -- files and ownership --------------------------------------------------
    config_dir: Optional[str] = None
    config_name: str = "config.json"
    config_mode: str = "0664"
    data_dir_mode: str = "0755"
    purge_config_dir: bool = True
    manage_user: Optional[bool] = None
    manage_group: bool = True
    user: Optional[str] = None
    group: Optional[str] = None
    extra_groups: List[str] = Field(default_factory=list)
    config_owner: Optional[str] = None

    # -- service --------------------------------------------------------------
    manage_service: bool = True
    service_enable: bool = True
    service_ensure: ServiceEnsure = ServiceEnsure.RUNNING
    restart_on_change: bool = True
    init_style: Optional[InitStyle] = None
    join_wan: Optional[str] = None

    # -- config file ----------------------------------------------------------
    pretty_config: bool = False
    pretty_config_indent: int = Field(default=4, ge=0, le=16)
    config_defaults: Dict[str, Any] = Field(default_factory=dict)
    config_hash: Any = Field(default_factory=dict)

    # -- ACL API --------------------------------------------------------------
    acl_api_hostname: str = "localhost"
    acl_api_protocol: str = "http"
    acl_api_port: int = Field(default=8500, ge=1, le=65535)
    acl_api_tries: int = Field(default=3, ge=1)
    acl_api_token: Secret = Field(default="", repr=False)

    # -- sub-resources --------------------------------------------------------
    services: Dict[str, ServiceSpec] = Field(default_factory=dict)
    watches: Dict[str, WatchSpec] = Field(default_factory=dict)
    checks: Dict[str, CheckSpec] = Field(default_factory=dict)
    acls: Dict[str, AclSpec] = Field(default_factory=dict)
    policies: Dict[str, PolicySpec] = Field(default_factory=dict)
    tokens: Dict[str, TokenSpec] = Field(default_factory=dict)

    @field_validator(
        "version",
        "package_name",
        "package_ensure",
        "docker_image",
        "download_url_base",
        "download_extension",
        "archive_path",
        "config_name",
        "acl_api_hostname",
    )
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must be a non-empty string")
        return value

    @field_validator(
        "download_url",
        "os",
        "arch",
        "bin_dir",
        "config_dir",
        "user",
        "group",
        "config_owner",
        "join_wan",
    )
    @classmethod
    def _non_empty_when_given(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("must be a non-empty string when given")
        return value

    @field_validator("config_mode", "data_dir_mode")
    @classmethod
    def _octal_mode(cls, value: str) -> str:
        if not _MODE_RE.match(value):
            raise ValueError(f"must be four octal digits (e.g. '0664'), got {value!r}")
        return value

    @field_validator("acl_api_protocol")
    @classmethod
    def _protocol(cls, value: str) -> str:
        if value not in ("http", "https"):
            raise ValueError("must be 'http' or 'https'")
        return value

    @field_validator("config_defaults", mode="before")
    @classmethod
    def _plain_mapping(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, Sensitive):
            raise ValueError("config_defaults cannot be sensitive; use config_hash")
        return value

    @field_validator("config_hash", mode="before")
    @classmethod
    def _config_source(cls, value: Any) -> ConfigSource:
        if value is None:
            return {}
        inner = value.reveal() if isinstance(value, Sensitive) else value
        if not isinstance(inner, Mapping):
            raise ValueError("config_hash must be a mapping")
        if isinstance(value, Sensitive):
            return Sensitive(dict(inner))
        return dict(inner)

    # -- convenience ----------------------------------------------------------

    @property
    def config_hash_sensitive(self) -> bool:
        return isinstance(self.config_hash, Sensitive)

    def global_acl(self) -> GlobalAclConfig:
        """Build the :class:`GlobalAclConfig` from the ``acl_api_*`` fields."""
        return GlobalAclConfig(
            hostname=self.acl_api_hostname,
            protocol=self.acl_api_protocol,
            port=self.acl_api_port,
            api_tries=self.acl_api_tries,
            acl_api_token=self.acl_api_token,
        )
