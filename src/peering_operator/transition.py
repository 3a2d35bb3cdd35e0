"""Transition executor for network peerings.

Performs at most one remote mutation per invocation for the branch chosen by
the state machine and turns the observation into a ReconcileResult. Every
error raised by the remote layer is caught here and reported as a not-ready
condition with a requeue; nothing escapes to the caller.
"""

from __future__ import annotations

import logging

from azure.core.exceptions import AzureError

from .container import (
    ContainerResolutionError,
    lookup_container,
    release_container,
    resolve_container,
)
from .deletion_policy import is_policy_keep_or_default
from .models import Condition, ConditionType, NetworkPeering, PeeringStatus
from .service import ContainerInUseError, NotFoundError, ServiceError
from .state import SyncOutcome, Transition, assess_sync, plan
from .status import (
    apply_container_status,
    apply_peering_status,
    clear_container_status,
    clear_peering_status,
)
from .translation import NetworkContainer, NetworkPeer, TranslationError
from .workflow import (
    ConditionReason,
    Outcome,
    ReconcileRequest,
    ReconcileResult,
    set_condition,
)

logger = logging.getLogger(__name__)

# Failures a single reconcile reports instead of raising
RECONCILE_ERRORS = (AzureError, ServiceError, TranslationError, ContainerResolutionError)


class TransitionExecutor:
    """Executes the selected transition for one reconcile request.

    Args:
        retry_interval_seconds: Requeue delay for in-progress and failed outcomes.
        independent_sync_period_seconds: Requeue delay for ready resources whose
            project is referenced by ID.
        deletion_protection: Global default when no resource policy is set.
    """

    def __init__(
        self,
        retry_interval_seconds: float,
        independent_sync_period_seconds: float,
        deletion_protection: bool,
    ) -> None:
        self._retry_interval = retry_interval_seconds
        self._sync_period = independent_sync_period_seconds
        self._deletion_protection = deletion_protection

    def handle(self, req: ReconcileRequest) -> ReconcileResult:
        """Observe remote state, select a transition and execute it."""
        peer: NetworkPeer | None = None
        peer_id = req.status.id
        if peer_id:
            try:
                peer = req.peering_service.get_peer(req.project_id, peer_id)
            except NotFoundError:
                peer = None
            except RECONCILE_ERRORS as e:
                return self.terminate(req, ConditionReason.INTERNAL, e)

        transition = plan(req.resource.deletion_requested, peer, req.resource.spec)
        logger.info(
            "Handling network peering",
            extra={
                "resource": req.resource.metadata.key,
                "project_id": req.project_id,
                "peer_id": peer_id,
                "transition": transition.value,
            },
        )

        match transition:
            case Transition.CREATE:
                return self.create(req)
            case Transition.SYNC | Transition.UPDATE:
                assert peer is not None
                return self.sync(req, peer)
            case Transition.DELETE:
                assert peer is not None
                return self.delete(req, peer)
            case Transition.UNMANAGE:
                return self.unmanage(req)
            case _:
                raise ValueError(f"unexpected transition {transition}")

    # =========================================================================
    # Branches
    # =========================================================================

    def create(self, req: ReconcileRequest) -> ReconcileResult:
        try:
            container = resolve_container(req)
        except RECONCILE_ERRORS as e:
            return self.terminate(
                req, ConditionReason.INTERNAL, f"failed to resolve container: {e}"
            )
        status = apply_container_status(req.status, container)

        try:
            new_peer = req.peering_service.create_peer(
                req.project_id, container.id, req.resource.spec.peering_config()
            )
        except RECONCILE_ERRORS as e:
            return self.terminate(
                req,
                ConditionReason.NOT_CONFIGURED,
                f"failed to create peering connection: {e}",
                status=status,
            )
        return self.in_progress(
            req,
            ConditionReason.CREATING,
            new_peer,
            container,
            status=status,
            lifecycle_marker=True,
            transition=Transition.CREATE,
        )

    def sync(self, req: ReconcileRequest, peer: NetworkPeer) -> ReconcileResult:
        try:
            container = resolve_container(req)
        except RECONCILE_ERRORS as e:
            return self.terminate(
                req, ConditionReason.INTERNAL, f"failed to resolve container: {e}"
            )
        status = apply_container_status(req.status, container)

        match assess_sync(peer, req.resource.spec):
            case SyncOutcome.FAILED:
                return self.terminate(
                    req,
                    ConditionReason.INTERNAL,
                    f"peering connection failed: {peer.error_message}",
                    status=apply_peering_status(status, peer, container),
                )
            case SyncOutcome.PENDING:
                return self.in_progress(
                    req, ConditionReason.PENDING, peer, container, status=status
                )
            case SyncOutcome.UPDATE:
                return self.update(req, container, status)
            case _:
                return self.ready(req, peer, container, status)

    def update(
        self, req: ReconcileRequest, container: NetworkContainer, status: PeeringStatus
    ) -> ReconcileResult:
        try:
            updated = req.peering_service.update_peer(
                req.project_id, req.status.id, container.id, req.resource.spec.peering_config()
            )
        except RECONCILE_ERRORS as e:
            return self.terminate(
                req,
                ConditionReason.INTERNAL,
                f"failed to update peering connection: {e}",
                status=status,
            )
        return self.in_progress(
            req,
            ConditionReason.UPDATING,
            updated,
            container,
            status=status,
            transition=Transition.UPDATE,
        )

    def delete(self, req: ReconcileRequest, peer: NetworkPeer) -> ReconcileResult:
        if is_policy_keep_or_default(req.resource, self._deletion_protection):
            logger.info(
                "Deletion protection active, leaving peering connection in place",
                extra={"resource": req.resource.metadata.key, "peer_id": peer.id},
            )
            return self.unmanage(req, transition=Transition.DELETE)

        try:
            container = lookup_container(req)
        except RECONCILE_ERRORS as e:
            return self.terminate(
                req, ConditionReason.INTERNAL, f"failed to look up container: {e}"
            )

        peer_id = req.status.id
        closing: NetworkPeer | None = peer
        if peer_id and not peer.closing:
            try:
                req.peering_service.delete_peer(req.project_id, peer_id)
            except RECONCILE_ERRORS as e:
                return self.terminate(
                    req,
                    ConditionReason.INTERNAL,
                    f"failed to delete peer connection {peer_id}: {e}",
                )
            try:
                closing = req.peering_service.get_peer(req.project_id, peer_id)
            except NotFoundError:
                closing = None
            except RECONCILE_ERRORS as e:
                return self.terminate(
                    req,
                    ConditionReason.INTERNAL,
                    f"failed to get closing peer connection {peer_id}: {e}",
                )

        if closing is None:
            return self.unmanage(req, transition=Transition.DELETE)
        return self.in_progress(
            req, ConditionReason.CLOSING, closing, container, transition=Transition.DELETE
        )

    def unmanage(
        self, req: ReconcileRequest, transition: Transition = Transition.UNMANAGE
    ) -> ReconcileResult:
        status = clear_peering_status(req.status)

        if is_policy_keep_or_default(req.resource, self._deletion_protection):
            logger.info(
                "Deletion protection active, leaving container in place",
                extra={"resource": req.resource.metadata.key},
            )
        else:
            try:
                release_container(req)
            except ContainerInUseError as e:
                logger.warning(
                    "Container not released, still in use",
                    extra={"resource": req.resource.metadata.key, "error": str(e)},
                )
            except RECONCILE_ERRORS as e:
                container_id = req.resource.spec.container_ref.id or req.status.container_id
                return self.terminate(
                    req,
                    ConditionReason.INTERNAL,
                    f"failed to clear container {container_id}: {e}",
                    status=status,
                )

        status = clear_container_status(status)
        logger.info(
            "Network peering unmanaged",
            extra={"resource": req.resource.metadata.key, "transition": transition.value},
        )
        return ReconcileResult(
            outcome=Outcome.DELETED,
            status=status,
            lifecycle_marker=False,
            transition=transition.value,
        )

    # =========================================================================
    # Outcomes
    # =========================================================================

    def in_progress(
        self,
        req: ReconcileRequest,
        reason: ConditionReason,
        peer: NetworkPeer,
        container: NetworkContainer | None,
        *,
        status: PeeringStatus | None = None,
        lifecycle_marker: bool | None = None,
        transition: Transition = Transition.SYNC,
    ) -> ReconcileResult:
        message = f"Network Peering Connection {peer.id} is {peer.status}"
        status = apply_peering_status(status or req.status, peer, container)
        conditions = set_condition(
            status.conditions, ConditionType.PEERING_READY, False, reason.value, message
        )
        conditions = set_condition(conditions, ConditionType.READY, False, reason.value, message)
        return ReconcileResult(
            outcome=Outcome.IN_PROGRESS,
            status=self._observed(req, status, conditions),
            lifecycle_marker=req.lifecycle_marker if lifecycle_marker is None else lifecycle_marker,
            requeue_after=self._retry_interval,
            reason=reason.value,
            message=message,
            transition=transition.value,
        )

    def ready(
        self,
        req: ReconcileRequest,
        peer: NetworkPeer,
        container: NetworkContainer,
        status: PeeringStatus,
    ) -> ReconcileResult:
        status = apply_peering_status(status, peer, container)
        conditions = set_condition(status.conditions, ConditionType.PEERING_READY, True)
        conditions = set_condition(conditions, ConditionType.READY, True)

        requeue_after = None
        if req.resource.spec.project_ref.is_external:
            requeue_after = self._sync_period
        return ReconcileResult(
            outcome=Outcome.READY,
            status=self._observed(req, status, conditions),
            lifecycle_marker=True,
            requeue_after=requeue_after,
            transition=Transition.SYNC.value,
        )

    def release(self, resource: NetworkPeering, error: Exception) -> ReconcileResult:
        """Give up on a resource whose project no longer exists.

        There is nothing left remotely to clean up, so the lifecycle marker
        is cleared and the resource terminates as not configured.
        """
        message = str(error)
        logger.error(
            "Releasing network peering",
            extra={"resource": resource.metadata.key, "error": message},
        )
        return failure_result(
            resource.status,
            ConditionReason.NOT_CONFIGURED,
            message,
            lifecycle_marker=False,
            requeue_after=self._retry_interval,
            generation=resource.metadata.generation,
        )

    def terminate(
        self,
        req: ReconcileRequest,
        reason: ConditionReason,
        error: Exception | str,
        *,
        status: PeeringStatus | None = None,
    ) -> ReconcileResult:
        """Report a failure as a not-ready condition and schedule a retry.

        The lifecycle marker is carried over unchanged so that a failed
        delete never orphans a remote object.
        """
        message = str(error)
        logger.error(
            "Network peering reconcile failed",
            extra={
                "resource": req.resource.metadata.key,
                "reason": reason.value,
                "error": message,
            },
        )
        return failure_result(
            status or req.status,
            reason,
            message,
            lifecycle_marker=req.lifecycle_marker,
            requeue_after=self._retry_interval,
            generation=req.resource.metadata.generation,
        )

    def _observed(
        self,
        req: ReconcileRequest,
        status: PeeringStatus,
        conditions: tuple[Condition, ...],
    ) -> PeeringStatus:
        return status.model_copy(
            update={
                "conditions": conditions,
                "observed_generation": req.resource.metadata.generation,
            }
        )


def failure_result(
    status: PeeringStatus,
    reason: ConditionReason,
    message: str,
    *,
    lifecycle_marker: bool,
    requeue_after: float,
    generation: int,
) -> ReconcileResult:
    """Build a terminate result with a not-ready Ready condition."""
    conditions = set_condition(status.conditions, ConditionType.READY, False, reason.value, message)
    return ReconcileResult(
        outcome=Outcome.TERMINATE,
        status=status.model_copy(
            update={"conditions": conditions, "observed_generation": generation}
        ),
        lifecycle_marker=lifecycle_marker,
        requeue_after=requeue_after,
        reason=reason.value,
        message=message,
    )
