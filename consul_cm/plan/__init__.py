"""Resource realization plan: stage groups, requests, and edges."""

from consul_cm.plan.builder import build_realization_plan
from consul_cm.plan.models import (
    STAGE_ORDER,
    Collaborator,
    Edge,
    EdgeKind,
    RealizationPlan,
    ResourceGroup,
    ResourceRequest,
    Stage,
)

__all__ = [
    "STAGE_ORDER",
    "Collaborator",
    "Edge",
    "EdgeKind",
    "RealizationPlan",
    "ResourceGroup",
    "ResourceRequest",
    "Stage",
    "build_realization_plan",
]
