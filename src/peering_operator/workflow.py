"""Reconcile outcomes, condition reasons and the per-invocation request.

A reconcile never persists anything itself. It returns a ReconcileResult
carrying the complete new status, the lifecycle marker and the requeue
decision, and the caller decides when to write them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from .models import Condition, ConditionType, NetworkPeering, PeeringStatus
from .service import NetworkContainerService, NetworkPeeringService


class ConditionReason(str, Enum):
    """Reason codes reported on not-ready conditions."""

    CREATING = "NetworkPeeringConnectionCreating"
    UPDATING = "NetworkPeeringConnectionUpdating"
    PENDING = "NetworkPeeringConnectionPending"
    CLOSING = "NetworkPeeringConnectionClosing"
    NOT_CONFIGURED = "NetworkPeeringNotConfigured"
    API_ACCESS_NOT_CONFIGURED = "APIAccessNotConfigured"
    INTERNAL = "Internal"


class Outcome(str, Enum):
    """What a reconcile concluded, independent of how it got there."""

    IN_PROGRESS = "InProgress"
    TERMINATE = "Terminate"
    READY = "Ready"
    DELETED = "Deleted"
    SKIPPED = "Skipped"


@dataclass(frozen=True)
class ReconcileRequest:
    """Everything one reconcile invocation works with.

    Created once per invocation and discarded afterwards.
    """

    peering_service: NetworkPeeringService
    container_service: NetworkContainerService
    project_id: str
    resource: NetworkPeering
    lifecycle_marker: bool = False

    @property
    def status(self) -> PeeringStatus:
        return self.resource.status


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of a single reconcile.

    ``requeue_after`` is None for terminal outcomes. ``lifecycle_marker``
    records whether a remote object may exist and must be cleaned up
    before the local record is dropped.
    """

    outcome: Outcome
    status: PeeringStatus
    lifecycle_marker: bool
    requeue_after: float | None = None
    reason: str = ""
    message: str = ""
    transition: str = ""

    @property
    def terminal(self) -> bool:
        return self.requeue_after is None

    @property
    def deleted(self) -> bool:
        return self.outcome == Outcome.DELETED

    @property
    def failed(self) -> bool:
        return self.outcome == Outcome.TERMINATE


def set_condition(
    conditions: tuple[Condition, ...],
    condition_type: ConditionType,
    status: bool,
    reason: str = "",
    message: str = "",
) -> tuple[Condition, ...]:
    """Return conditions with one condition replaced or added.

    The transition time only moves when the boolean status flips.
    """
    previous = next((c for c in conditions if c.type == condition_type), None)
    if previous is not None and previous.status == status:
        transition_time = previous.last_transition_time
    else:
        transition_time = datetime.now(UTC)

    updated = Condition(
        type=condition_type,
        status=status,
        reason=reason,
        message=message,
        last_transition_time=transition_time,
    )
    others = tuple(c for c in conditions if c.type != condition_type)
    return tuple(sorted((*others, updated), key=lambda c: c.type.value))
