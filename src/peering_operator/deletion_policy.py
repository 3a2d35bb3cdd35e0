"""Per-resource deletion and reconciliation policies.

Policies are plain annotations on the resource metadata:

    peering.operator/resource-policy: keep | delete
    peering.operator/reconciliation-policy: skip
"""

from __future__ import annotations

import logging
from enum import Enum

from .models import NetworkPeering

logger = logging.getLogger(__name__)

RESOURCE_POLICY_ANNOTATION = "peering.operator/resource-policy"
RECONCILIATION_POLICY_ANNOTATION = "peering.operator/reconciliation-policy"
RECONCILIATION_POLICY_SKIP = "skip"


class ResourcePolicy(str, Enum):
    KEEP = "keep"
    DELETE = "delete"


def resource_policy(resource: NetworkPeering) -> ResourcePolicy | None:
    """Return the explicit resource policy, or None when unset or unknown."""
    value = resource.metadata.annotations.get(RESOURCE_POLICY_ANNOTATION, "").strip().lower()
    if not value:
        return None
    try:
        return ResourcePolicy(value)
    except ValueError:
        logger.warning(
            "Ignoring unknown resource policy",
            extra={"resource": resource.metadata.key, "policy": value},
        )
        return None


def is_policy_keep_or_default(resource: NetworkPeering, deletion_protection: bool) -> bool:
    """Report whether remote objects must be left behind on deletion.

    An explicit ``keep`` always keeps and an explicit ``delete`` always
    deletes. Without either, the global deletion protection setting decides.
    """
    policy = resource_policy(resource)
    if policy == ResourcePolicy.KEEP:
        return True
    if policy == ResourcePolicy.DELETE:
        return False
    return deletion_protection


def reconciliation_should_be_skipped(resource: NetworkPeering) -> bool:
    value = resource.metadata.annotations.get(RECONCILIATION_POLICY_ANNOTATION, "")
    return value.strip().lower() == RECONCILIATION_POLICY_SKIP
