"""Build the :class:`RealizationPlan` for a :class:`ResolvedState`.

Group layout::

    install ──before──> configure ──before──> run_service ──before──> reload_service
                            │   └──notify (restart_on_change)──┘          ▲
                            ├──before──> services / watches / checks ─notify┘
                            │
    run_service ──before──> policies ──before──> tokens
    run_service ──before──> acls

The four stage groups are always present, possibly empty, so their edges
are unconditional.  Collection groups appear only when non-empty; their
requests are sorted by name and named by the map key.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from consul_cm.config.models import InstallMethod, ServiceEnsure
from consul_cm.config.sensitive import contains_sensitive
from consul_cm.plan.models import (
    Collaborator,
    Edge,
    EdgeKind,
    RealizationPlan,
    ResourceGroup,
    ResourceRequest,
    Stage,
    STAGE_ORDER,
)
from consul_cm.render.renderer import (
    content_digest,
    render_config,
    render_state_config,
    render_unit_file,
    unit_file_path,
)
from consul_cm.resolve.resolver import ResolvedState

logger = logging.getLogger(__name__)

#: Collection group names, in plan order.
DEFINITION_GROUPS = ("services", "watches", "checks")
ACL_GROUPS = ("policies", "tokens", "acls")


def _join(directory: str, name: str) -> str:
    return f"{directory.rstrip('/')}/{name}"


def _ownership(state: ResolvedState) -> Dict[str, Any]:
    return {"owner": state.identity.owner, "group": state.identity.group}


# ---------------------------------------------------------------------------
# Stage requests
# ---------------------------------------------------------------------------


def _identity_requests(state: ResolvedState) -> List[ResourceRequest]:
    requests: List[ResourceRequest] = []
    identity = state.identity
    if state.manage_group and identity.group:
        requests.append(ResourceRequest(
            kind="group",
            name=identity.group,
            collaborator=Collaborator.IDENTITY,
            attributes={"ensure": "present", "system": True},
        ))
    if state.manage_user and identity.user:
        requests.append(ResourceRequest(
            kind="user",
            name=identity.user,
            collaborator=Collaborator.IDENTITY,
            attributes={
                "ensure": "present",
                "system": True,
                "gid": identity.group,
                "groups": list(state.extra_groups),
                "home": state.derived.data_dir,
                "shell": "/bin/false",
            },
        ))
    return requests


def _install_requests(state: ResolvedState) -> List[ResourceRequest]:
    requests = _identity_requests(state)
    method = state.install_method

    if method is InstallMethod.URL:
        extract_dir = _join(state.archive_path, f"consul-{state.version}")
        binary_name = state.binary.rsplit("/", 1)[-1]
        requests.extend([
            ResourceRequest(
                kind="file",
                name=extract_dir,
                collaborator=Collaborator.FILESYSTEM,
                attributes={"ensure": "directory", "mode": "0755"},
            ),
            ResourceRequest(
                kind="archive",
                name=_join(state.archive_path, state.download_url.rsplit("/", 1)[-1]),
                collaborator=Collaborator.INSTALLER,
                attributes={
                    "source": state.download_url,
                    "extract": True,
                    "extract_path": extract_dir,
                    "creates": _join(extract_dir, binary_name),
                    "cleanup": True,
                },
            ),
            ResourceRequest(
                kind="file",
                name=state.binary,
                collaborator=Collaborator.FILESYSTEM,
                attributes={
                    "ensure": "link",
                    "target": _join(extract_dir, binary_name),
                },
            ),
        ])
    elif method is InstallMethod.PACKAGE:
        package_attrs: Dict[str, Any] = {"ensure": state.package_ensure}
        if state.manage_repo:
            requests.append(ResourceRequest(
                kind="package_repository",
                name="hashicorp",
                collaborator=Collaborator.INSTALLER,
                attributes={"ensure": "present"},
            ))
            package_attrs["require"] = ["package_repository[hashicorp]"]
        requests.append(ResourceRequest(
            kind="package",
            name=state.package_name,
            collaborator=Collaborator.INSTALLER,
            attributes=package_attrs,
        ))
    elif method is InstallMethod.DOCKER:
        requests.append(ResourceRequest(
            kind="docker_image",
            name=f"{state.docker_image}:{state.version}",
            collaborator=Collaborator.INSTALLER,
            attributes={"ensure": "present"},
        ))
    return requests


def _configure_requests(state: ResolvedState) -> List[ResourceRequest]:
    owner = _ownership(state)
    requests = [
        ResourceRequest(
            kind="file",
            name=state.config_dir,
            collaborator=Collaborator.FILESYSTEM,
            attributes={
                "ensure": "directory",
                "mode": "0755",
                "purge": state.purge_config_dir,
                "recurse": state.purge_config_dir,
                **owner,
            },
        ),
    ]

    if state.derived.data_dir is not None:
        requests.append(ResourceRequest(
            kind="file",
            name=state.derived.data_dir,
            collaborator=Collaborator.FILESYSTEM,
            attributes={"ensure": "directory", "mode": state.data_dir_mode, **owner},
        ))

    config_attrs: Dict[str, Any] = {
        "ensure": "file",
        "mode": state.config_mode,
        "format": "json",
        "pretty": state.pretty_config,
        "sensitive": state.config_sensitive,
        **owner,
    }
    if not state.config_sensitive:
        config_attrs["content_sha256"] = content_digest(render_state_config(state))
    requests.append(ResourceRequest(
        kind="file",
        name=state.config_path,
        collaborator=Collaborator.FILESYSTEM,
        attributes=config_attrs,
    ))

    unit_text = render_unit_file(state)
    unit_path = unit_file_path(state.identity.init_style)
    if unit_text is not None and unit_path is not None:
        requests.append(ResourceRequest(
            kind="file",
            name=unit_path,
            collaborator=Collaborator.FILESYSTEM,
            attributes={
                "ensure": "file",
                "mode": "0644",
                "owner": "root",
                "content_sha256": content_digest(unit_text),
            },
        ))
    return requests


def _run_service_requests(state: ResolvedState) -> List[ResourceRequest]:
    if not state.manage_service:
        return []

    requests: List[ResourceRequest] = []
    if state.install_method is InstallMethod.DOCKER:
        volumes = [f"{state.config_dir}:/consul/config"]
        if state.derived.data_dir is not None:
            volumes.append(f"{state.derived.data_dir}:/consul/data")
        service = ResourceRequest(
            kind="docker_container",
            name="consul",
            collaborator=Collaborator.SUPERVISOR,
            attributes={
                "ensure": state.service_ensure.value,
                "image": f"{state.docker_image}:{state.version}",
                "net": "host",
                "volumes": volumes,
                "command": "agent",
            },
        )
    else:
        service = ResourceRequest(
            kind="service",
            name="consul",
            collaborator=Collaborator.SUPERVISOR,
            attributes={
                "ensure": state.service_ensure.value,
                "enable": state.service_enable,
                "provider": state.identity.init_style.value,
            },
        )
    requests.append(service)

    if state.join_wan and state.service_ensure is ServiceEnsure.RUNNING:
        binary = "consul" if state.install_method is InstallMethod.DOCKER else state.binary
        requests.append(ResourceRequest(
            kind="exec",
            name="join consul wan",
            collaborator=Collaborator.EXEC,
            attributes={
                "command": [binary, "join", "-wan", state.join_wan],
                "require": [service.ref],
            },
        ))
    return requests


def _reload_requests(state: ResolvedState) -> List[ResourceRequest]:
    if not state.manage_service or state.service_ensure is not ServiceEnsure.RUNNING:
        return []
    return [
        ResourceRequest(
            kind="exec",
            name="reload consul",
            collaborator=Collaborator.EXEC,
            attributes={
                "command": list(state.reload_command),
                "refreshonly": True,
            },
        ),
    ]


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


def _definition_file(
    state: ResolvedState, prefix: str, name: str, content: Dict[str, Any],
) -> ResourceRequest:
    sensitive = contains_sensitive(content)
    attrs: Dict[str, Any] = {
        "ensure": "file",
        "mode": state.config_mode,
        "content": content,
        "sensitive": sensitive,
        **_ownership(state),
    }
    if not sensitive:
        attrs["content_sha256"] = content_digest(
            render_config(content, pretty=state.pretty_config,
                          indent=state.pretty_config_indent)
        )
    return ResourceRequest(
        kind="file",
        name=_join(state.config_dir, f"{prefix}_{name}.json"),
        collaborator=Collaborator.FILESYSTEM,
        attributes=attrs,
    )


def _service_definition(name: str, spec: Dict[str, Any]) -> Dict[str, Any]:
    definition = {k: v for k, v in spec.items() if k != "service_name"}
    definition["name"] = spec.get("service_name") or name
    return {"service": definition}


def _check_definition(name: str, spec: Dict[str, Any]) -> Dict[str, Any]:
    definition = dict(spec)
    definition.setdefault("id", name)
    definition.setdefault("name", name)
    return {"check": definition}


def _watch_definition(name: str, spec: Dict[str, Any]) -> Dict[str, Any]:
    return {"watches": [dict(spec)]}


def _collection_groups(state: ResolvedState) -> List[ResourceGroup]:
    groups: List[ResourceGroup] = []

    builders = {
        "services": ("service", _service_definition, state.services),
        "watches": ("watch", _watch_definition, state.watches),
        "checks": ("check", _check_definition, state.checks),
    }
    for group_name in DEFINITION_GROUPS:
        prefix, build, specs = builders[group_name]
        if not specs:
            continue
        groups.append(ResourceGroup(
            name=group_name,
            requests=[
                _definition_file(state, prefix, name, build(name, specs[name]))
                for name in sorted(specs)
            ],
        ))

    acl_kinds = {
        "policies": ("consul_policy", state.policies),
        "tokens": ("consul_token", state.tokens),
        "acls": ("consul_acl", state.acls),
    }
    for group_name in ACL_GROUPS:
        kind, specs = acl_kinds[group_name]
        if not specs:
            continue
        groups.append(ResourceGroup(
            name=group_name,
            requests=[
                ResourceRequest(
                    kind=kind,
                    name=name,
                    collaborator=Collaborator.ACL_API,
                    attributes=dict(specs[name]),
                )
                for name in sorted(specs)
            ],
        ))
    return groups


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_realization_plan(state: ResolvedState) -> RealizationPlan:
    """Emit the ordered resource groups and edges for *state*."""
    stage_builders = {
        Stage.INSTALL: _install_requests,
        Stage.CONFIGURE: _configure_requests,
        Stage.RUN_SERVICE: _run_service_requests,
        Stage.RELOAD_SERVICE: _reload_requests,
    }
    groups = [
        ResourceGroup(name=stage.value, requests=stage_builders[stage](state))
        for stage in STAGE_ORDER
    ]

    edges: List[Edge] = [
        Edge(a.value, b.value, EdgeKind.BEFORE)
        for a, b in zip(STAGE_ORDER, STAGE_ORDER[1:])
    ]
    if state.restart_on_change:
        edges.append(Edge(
            Stage.CONFIGURE.value, Stage.RUN_SERVICE.value, EdgeKind.NOTIFY,
        ))

    collections = _collection_groups(state)
    present = {g.name for g in collections}
    for group in collections:
        if group.name in DEFINITION_GROUPS:
            edges.append(Edge(Stage.CONFIGURE.value, group.name, EdgeKind.BEFORE))
            edges.append(Edge(group.name, Stage.RELOAD_SERVICE.value, EdgeKind.NOTIFY))
        else:
            edges.append(Edge(Stage.RUN_SERVICE.value, group.name, EdgeKind.BEFORE))
    if {"policies", "tokens"} <= present:
        edges.append(Edge("policies", "tokens", EdgeKind.BEFORE))

    plan = RealizationPlan(groups=groups + collections, edges=edges)
    logger.debug(
        "Plan built: %d group(s), %d request(s), %d edge(s)",
        len(plan.groups), len(plan.requests()), len(plan.edges),
    )
    return plan
