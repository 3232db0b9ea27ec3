"""Realization plan data structures.

A :class:`RealizationPlan` is an ordered list of :class:`ResourceGroup`\\ s,
each holding independent :class:`ResourceRequest`\\ s, plus the
:class:`Edge`\\ s between groups.  Two edge kinds exist:

* ``before``: pure ordering: the source group converges first.
* ``notify``: a change in the source group triggers a refresh
  (restart or reload) of the target group, on top of any ordering.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from consul_cm.config.sensitive import redact


class Stage(str, Enum):
    """The four fixed stages, in dependency order."""

    INSTALL = "install"
    CONFIGURE = "configure"
    RUN_SERVICE = "run_service"
    RELOAD_SERVICE = "reload_service"


#: Stages in the order they converge.
STAGE_ORDER: List[Stage] = [
    Stage.INSTALL,
    Stage.CONFIGURE,
    Stage.RUN_SERVICE,
    Stage.RELOAD_SERVICE,
]


class EdgeKind(str, Enum):
    BEFORE = "before"
    NOTIFY = "notify"


class Collaborator(str, Enum):
    """External component that realizes a request."""

    INSTALLER = "installer"
    FILESYSTEM = "filesystem"
    IDENTITY = "identity"
    SUPERVISOR = "supervisor"
    EXEC = "exec"
    ACL_API = "acl_api"


@dataclass(frozen=True)
class ResourceRequest:
    """One resource instance for an external collaborator to realize.

    Attribute values may be :class:`Sensitive`; the collaborator reveals
    them.  :meth:`to_dict` (and so plan JSON, fingerprints and snapshots)
    shows them redacted.
    """

    kind: str
    name: str
    collaborator: Collaborator
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def ref(self) -> str:
        """Stable reference, e.g. ``file[/etc/consul/config.json]``."""
        return f"{self.kind}[{self.name}]"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "collaborator": self.collaborator.value,
            "attributes": redact(self.attributes),
        }


@dataclass(frozen=True)
class ResourceGroup:
    """Named batch of requests with no ordering among themselves."""

    name: str
    requests: List[ResourceRequest] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "requests": [r.to_dict() for r in self.requests],
        }


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    kind: EdgeKind = EdgeKind.BEFORE

    def to_dict(self) -> Dict[str, str]:
        return {"source": self.source, "target": self.target, "kind": self.kind.value}


@dataclass(frozen=True)
class RealizationPlan:
    """Ordered resource groups and the edges between them."""

    groups: List[ResourceGroup] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)

    # -- lookup -------------------------------------------------------------

    def group(self, name: str) -> Optional[ResourceGroup]:
        for g in self.groups:
            if g.name == name:
                return g
        return None

    @property
    def group_names(self) -> List[str]:
        return [g.name for g in self.groups]

    def edges_from(self, source: str, kind: Optional[EdgeKind] = None) -> List[Edge]:
        return [
            e for e in self.edges
            if e.source == source and (kind is None or e.kind == kind)
        ]

    def has_edge(self, source: str, target: str, kind: EdgeKind) -> bool:
        return any(
            e.source == source and e.target == target and e.kind == kind
            for e in self.edges
        )

    def requests(self) -> List[ResourceRequest]:
        """Every request, in group order."""
        return [r for g in self.groups for r in g.requests]

    # -- serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "groups": [g.to_dict() for g in self.groups],
            "edges": [e.to_dict() for e in self.edges],
        }

    def to_sorted_json(self, indent: int = 2) -> str:
        """Serialise with sorted keys for deterministic output."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    def fingerprint(self) -> str:
        """sha256 of the compact sorted-key JSON form."""
        payload = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()
