"""Per-resource reconcile entry point.

Each call handles exactly one NetworkPeering:
1. Honor the skip annotation
2. Resolve the owning project (by ID or by name)
3. Build a fresh ReconcileRequest
4. Hand it to the transition executor

The call is synchronous and blocking; the manager runs it in an executor
thread. It never raises for remote failures, which are reported in the
returned ReconcileResult instead.
"""

from __future__ import annotations

import logging

from .client import ApiClient
from .config import Config
from .deletion_policy import reconciliation_should_be_skipped
from .models import NetworkPeering
from .service import (
    HttpNetworkContainerService,
    HttpNetworkPeeringService,
    HttpProjectService,
    MissingProjectError,
    NetworkContainerService,
    NetworkPeeringService,
    ProjectService,
)
from .transition import RECONCILE_ERRORS, TransitionExecutor, failure_result
from .workflow import ConditionReason, Outcome, ReconcileRequest, ReconcileResult

logger = logging.getLogger(__name__)


class PeeringReconciler:
    """Reconciles NetworkPeering resources against the remote API.

    Holds no per-resource state, so a single instance serves any number of
    resources concurrently.
    """

    def __init__(
        self,
        config: Config,
        project_service: ProjectService,
        peering_service: NetworkPeeringService,
        container_service: NetworkContainerService,
    ) -> None:
        self._config = config
        self._projects = project_service
        self._peerings = peering_service
        self._containers = container_service
        self._executor = TransitionExecutor(
            retry_interval_seconds=config.retry_interval_seconds,
            independent_sync_period_seconds=config.independent_sync_period_seconds,
            deletion_protection=config.deletion_protection,
        )

    @classmethod
    def from_config(cls, config: Config, api: ApiClient | None = None) -> PeeringReconciler:
        """Wire the HTTP services for a configuration."""
        api = api or ApiClient.from_config(config)
        return cls(
            config,
            HttpProjectService(api),
            HttpNetworkPeeringService(api),
            HttpNetworkContainerService(api),
        )

    def resolve_project(self, resource: NetworkPeering) -> str:
        """Return the remote ID of the resource's project.

        Raises:
            MissingProjectError: If the referenced project does not exist.
        """
        ref = resource.spec.project_ref
        try:
            if ref.id:
                return self._projects.get_project(ref.id).id
            return self._projects.get_project_by_name(ref.name).id
        except MissingProjectError as e:
            raise MissingProjectError(f"project {ref.id or ref.name!r} not found: {e}") from e

    def reconcile(self, resource: NetworkPeering, lifecycle_marker: bool = False) -> ReconcileResult:
        """Run one reconcile for a resource.

        Args:
            resource: Desired state with the last persisted status.
            lifecycle_marker: Whether a remote object may exist for it.

        Returns:
            The result to persist and the requeue decision.
        """
        key = resource.metadata.key

        if reconciliation_should_be_skipped(resource):
            logger.info("Reconciliation skipped by annotation", extra={"resource": key})
            return ReconcileResult(
                outcome=Outcome.SKIPPED,
                status=resource.status,
                lifecycle_marker=lifecycle_marker,
            )

        logger.info(
            "Starting network peering reconciliation",
            extra={"resource": key, "deletion_requested": resource.deletion_requested},
        )

        try:
            project_id = self.resolve_project(resource)
        except MissingProjectError as e:
            return self._executor.release(resource, e)
        except RECONCILE_ERRORS as e:
            logger.error(
                "Failed to resolve project",
                extra={"resource": key, "error": str(e)},
            )
            return failure_result(
                resource.status,
                ConditionReason.API_ACCESS_NOT_CONFIGURED,
                str(e),
                lifecycle_marker=lifecycle_marker,
                requeue_after=self._config.retry_interval_seconds,
                generation=resource.metadata.generation,
            )

        request = ReconcileRequest(
            peering_service=self._peerings,
            container_service=self._containers,
            project_id=project_id,
            resource=resource,
            lifecycle_marker=lifecycle_marker,
        )
        result = self._executor.handle(request)

        logger.info(
            "Network peering reconciliation finished",
            extra={
                "resource": key,
                "outcome": result.outcome.value,
                "transition": result.transition,
                "reason": result.reason,
                "requeue_after": result.requeue_after,
                "lifecycle_marker": result.lifecycle_marker,
            },
        )
        return result
