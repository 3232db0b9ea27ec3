"""Configuration Resolver: ParameterSet → ResolvedState + RealizationPlan.

Single pass, no I/O.  Platform facts arrive through the constructor; the
resolver never inspects the host.  Resolution order::

    1. Platform table row   (os, arch, paths, identity, init style)
    2. Identity context     (docker suppresses every identity field)
    3. Download source      (explicit URL or release-URL template)
    4. Config map           (deep merge config_defaults ← config_hash)
    5. Derived values       (data_dir, ports, http_addr, TLS)
    6. Sub-resources        (ACL defaults merged into policies/tokens/acls)
    7. Reload command
    8. Realization plan
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple, Union

from consul_cm.config.models import (
    GlobalAclConfig,
    InitStyle,
    InstallMethod,
    ParameterSet,
    ServiceEnsure,
)
from consul_cm.config.sensitive import (
    REDACTED,
    Sensitive,
    contains_sensitive,
    reveal,
    reveal_all,
)
from consul_cm.platform.facts import PlatformFacts, platform_defaults
from consul_cm.resolve.derive import DerivedValues, extract_derived
from consul_cm.resolve.merge import deep_merge, merge_acl_defaults

if TYPE_CHECKING:
    from consul_cm.plan.models import RealizationPlan

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Download source
# ---------------------------------------------------------------------------


def resolve_download_source(
    url: Optional[str],
    url_base: str,
    version: str,
    package_name: str,
    os: str,
    arch: str,
    extension: str,
) -> str:
    """Return *url* verbatim if given, else the release archive URL.

    ``"{url_base}{version}/{package_name}_{version}_{os}_{arch}.{extension}"``
    Components are not validated; malformed pieces pass through untouched.
    """
    if url:
        return url
    return f"{url_base}{version}/{package_name}_{version}_{os}_{arch}.{extension}"


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IdentityContext:
    """Who owns the agent's files and how it is supervised.

    ``None`` user/group/owner means identity is unmanaged.
    """

    user: Optional[str]
    group: Optional[str]
    owner: Optional[str]
    init_style: InitStyle

    @property
    def managed(self) -> bool:
        return self.user is not None


def select_identity_context(
    install_method: InstallMethod,
    user: Optional[str],
    group: Optional[str],
    config_owner: Optional[str],
    init_style: InitStyle,
) -> IdentityContext:
    """Pick the identity fields for *install_method*.

    Container installs suppress identity management entirely, whatever
    was supplied.  Otherwise user/group pass through and the config owner
    defaults to the user.
    """
    if install_method is InstallMethod.DOCKER:
        return IdentityContext(
            user=None, group=None, owner=None, init_style=InitStyle.UNMANAGED,
        )
    owner = config_owner if config_owner is not None else user
    return IdentityContext(
        user=user, group=group, owner=owner, init_style=init_style,
    )


# ---------------------------------------------------------------------------
# Reload command
# ---------------------------------------------------------------------------


def binary_path(bin_dir: str, os: str) -> str:
    name = "consul.exe" if os == "windows" else "consul"
    return f"{bin_dir.rstrip('/')}/{name}"


def build_reload_command(
    binary: str, derived: DerivedValues, *, docker: bool = False,
) -> List[str]:
    """argv for ``consul reload`` against the agent's own HTTP(S) API.

    Container installs run the same command inside the ``consul`` container.
    """
    if docker:
        return ["docker", "exec", "consul", *build_reload_command("consul", derived)]
    if derived.https_port is not None:
        cmd = [
            binary,
            "reload",
            f"-http-addr=https://{derived.http_addr}:{derived.https_port}",
        ]
        if derived.verify_incoming and derived.cert_file and derived.key_file:
            cmd.append(f"-client-cert={derived.cert_file}")
            cmd.append(f"-client-key={derived.key_file}")
        return cmd
    return [
        binary,
        "reload",
        f"-http-addr=http://{derived.http_addr}:{derived.http_port}",
    ]


# ---------------------------------------------------------------------------
# ResolvedState
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResolvedState:
    """The single, final configuration state of a run.

    ``config`` is a plain mapping, or :class:`Sensitive` when the input
    ``config_hash`` was sensitive or nests a sensitive value anywhere.
    Non-empty Consul tokens and ACL secrets in the sub-resource maps are held
    as :class:`Sensitive`.  Comparing two states holding either raises
    :class:`TypeError`.

    Immutability is shallow: fields cannot be reassigned and the sequence
    fields are tuples, but the mapping fields are plain dicts shared with
    the plan builder.  Treat them as read-only.
    """

    version: str
    install_method: InstallMethod
    os: str
    arch: str
    download_url: str
    package_name: str
    package_ensure: str
    manage_repo: bool
    docker_image: str
    archive_path: str
    bin_dir: str
    binary: str
    config_dir: str
    config_name: str
    config_mode: str
    data_dir_mode: str
    purge_config_dir: bool
    identity: IdentityContext
    manage_user: bool
    manage_group: bool
    extra_groups: Tuple[str, ...]
    manage_service: bool
    service_enable: bool
    service_ensure: ServiceEnsure
    restart_on_change: bool
    join_wan: Optional[str]
    pretty_config: bool
    pretty_config_indent: int
    config: Union[Dict[str, Any], Sensitive]
    derived: DerivedValues
    reload_command: Tuple[str, ...]
    services: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    watches: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    checks: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    acls: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    policies: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    tokens: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def config_sensitive(self) -> bool:
        return isinstance(self.config, Sensitive)

    @property
    def config_path(self) -> str:
        return f"{self.config_dir.rstrip('/')}/{self.config_name}"

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict view for display; a sensitive config is redacted."""
        return {
            "version": self.version,
            "install_method": self.install_method.value,
            "os": self.os,
            "arch": self.arch,
            "download_url": self.download_url,
            "bin_dir": self.bin_dir,
            "binary": self.binary,
            "config_dir": self.config_dir,
            "config_path": self.config_path,
            "identity": {
                "user": self.identity.user,
                "group": self.identity.group,
                "owner": self.identity.owner,
                "init_style": self.identity.init_style.value,
            },
            "config": REDACTED if self.config_sensitive else self.config,
            "derived": {
                "data_dir": self.derived.data_dir,
                "http_port": self.derived.http_port,
                "https_port": self.derived.https_port,
                "http_addr": self.derived.http_addr,
                "verify_incoming": self.derived.verify_incoming,
                "cert_file": self.derived.cert_file,
                "key_file": self.derived.key_file,
            },
            "reload_command": list(self.reload_command),
            "restart_on_change": self.restart_on_change,
        }


@dataclass(frozen=True)
class Resolution:
    """Output of :meth:`ConfigurationResolver.resolve`."""

    state: ResolvedState
    plan: "RealizationPlan"


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


#: Keys whose values are Consul secrets wherever they appear.
DEFINITION_SECRET_KEYS = ("token",)
ACL_SECRET_KEYS = ("acl_api_token", "secret_id")


def _guard_secrets(spec: Dict[str, Any], keys: Iterable[str]) -> Dict[str, Any]:
    """Wrap non-empty plain-text secrets in *spec* as :class:`Sensitive`."""
    for key in keys:
        value = spec.get(key)
        if isinstance(value, str) and value:
            spec[key] = Sensitive(value)
    return spec


def _dump_specs(specs: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    # Only keys the user gave: Consul rejects e.g. a watch carrying both
    # ``handler`` and an empty ``args``.
    out: Dict[str, Dict[str, Any]] = {}
    for name, spec in sorted(specs.items()):
        given = spec.model_fields_set | set(spec.model_extra or ())
        data = {
            key: value
            for key, value in spec.model_dump(exclude_none=True).items()
            if key in given
        }
        out[name] = _guard_secrets(data, DEFINITION_SECRET_KEYS)
    return out


def _acl_specs(
    global_acl: GlobalAclConfig, specs: Dict[str, Any]
) -> Dict[str, Dict[str, Any]]:
    merged = merge_acl_defaults(global_acl, specs)
    return {
        name: _guard_secrets(merged[name], ACL_SECRET_KEYS) for name in sorted(merged)
    }


class ConfigurationResolver:
    """Turn a :class:`ParameterSet` into a :class:`Resolution`.

    Args:
        platform: Explicit platform detection result (see
            :func:`consul_cm.platform.detect_platform`).

    Raises:
        UnsupportedPlatformError: From the constructor when the platform is
            unsupported.
    """

    def __init__(self, platform: PlatformFacts) -> None:
        self.platform = platform
        self.defaults = platform_defaults(platform)

    def resolve_state(self, params: ParameterSet) -> ResolvedState:
        d = self.defaults

        os_name = params.os or d.os
        arch = params.arch or d.arch
        bin_dir = params.bin_dir or d.bin_dir
        binary = binary_path(bin_dir, os_name)
        config_dir = params.config_dir or d.config_dir
        init_style = params.init_style or d.init_style
        if params.init_style is None:
            logger.debug("init_style from platform table: %s", init_style.value)

        identity = select_identity_context(
            params.install_method,
            params.user or d.user,
            params.group or d.group,
            params.config_owner,
            init_style,
        )

        download_url = resolve_download_source(
            params.download_url,
            params.download_url_base,
            params.version,
            params.package_name,
            os_name,
            arch,
            params.download_extension,
        )

        merged = deep_merge(params.config_defaults, reveal(params.config_hash))
        plain = reveal_all(merged)
        derived = extract_derived(plain)
        config: Union[Dict[str, Any], Sensitive] = merged
        if params.config_hash_sensitive or contains_sensitive(merged):
            config = Sensitive(plain)

        global_acl = params.global_acl()
        manage_user = d.manage_user if params.manage_user is None else params.manage_user

        state = ResolvedState(
            version=params.version,
            install_method=params.install_method,
            os=os_name,
            arch=arch,
            download_url=download_url,
            package_name=params.package_name,
            package_ensure=params.package_ensure,
            manage_repo=params.manage_repo,
            docker_image=params.docker_image,
            archive_path=params.archive_path,
            bin_dir=bin_dir,
            binary=binary,
            config_dir=config_dir,
            config_name=params.config_name,
            config_mode=params.config_mode,
            data_dir_mode=params.data_dir_mode,
            purge_config_dir=params.purge_config_dir,
            identity=identity,
            manage_user=manage_user and identity.managed,
            manage_group=params.manage_group and identity.managed,
            extra_groups=tuple(params.extra_groups),
            manage_service=params.manage_service,
            service_enable=params.service_enable,
            service_ensure=params.service_ensure,
            restart_on_change=params.restart_on_change,
            join_wan=params.join_wan,
            pretty_config=params.pretty_config,
            pretty_config_indent=params.pretty_config_indent,
            config=config,
            derived=derived,
            reload_command=tuple(
                build_reload_command(
                    binary,
                    derived,
                    docker=params.install_method is InstallMethod.DOCKER,
                )
            ),
            services=_dump_specs(params.services),
            watches=_dump_specs(params.watches),
            checks=_dump_specs(params.checks),
            acls=_acl_specs(global_acl, params.acls),
            policies=_acl_specs(global_acl, params.policies),
            tokens=_acl_specs(global_acl, params.tokens),
        )

        logger.info(
            "Resolved consul %s: install_method=%s init_style=%s config=%s",
            state.version,
            state.install_method.value,
            identity.init_style.value,
            state.config_path,
        )
        return state

    def resolve(self, params: ParameterSet) -> Resolution:
        """Resolve *params* into the final state and its realization plan."""
        from consul_cm.plan.builder import build_realization_plan

        state = self.resolve_state(params)
        return Resolution(state=state, plan=build_realization_plan(state))
