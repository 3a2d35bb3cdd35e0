"""Trigger loop that schedules reconciles per resource.

The manager:
1. Scans the specs directory for NetworkPeering files
2. Schedules each resource when it appears, changes, or its requeue is due
3. Runs at most one reconcile per resource at a time, bounded overall by a
   semaphore, each in an executor thread under a timeout
4. Persists the returned status only after the reconcile completed

A resource whose file disappears while its lifecycle marker is set is
reconciled as a deletion from its persisted snapshot, so the remote peering
is cleaned up (or deliberately left behind) before the record is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from .config import Config
from .models import NetworkPeering
from .spec_loader import discover_resources
from .status_store import StatusRecord, StatusStore, StatusStoreError
from .workflow import Outcome, ReconcileResult

logger = logging.getLogger(__name__)

# Lower bound on the scheduler's sleep to avoid busy looping
MIN_TICK_SECONDS = 0.05


class Reconciler(Protocol):
    def reconcile(
        self, resource: NetworkPeering, lifecycle_marker: bool = False
    ) -> ReconcileResult: ...


@dataclass
class TrackedResource:
    """Scheduling state of one resource.

    ``path`` is None for deletions synthesized from a persisted snapshot.
    ``due_at`` is a loop timestamp, or None when nothing is scheduled.
    ``removed`` is set when the file disappeared while a reconcile was running.
    """

    resource: NetworkPeering
    path: Path | None
    signature: tuple[int, int] | None
    due_at: float | None
    removed: bool = False


def with_deletion_requested(resource: NetworkPeering) -> NetworkPeering:
    """Mark a resource snapshot as being deleted now."""
    if resource.deletion_requested:
        return resource
    metadata = resource.metadata.model_copy(update={"deletion_timestamp": datetime.now(UTC)})
    return resource.model_copy(update={"metadata": metadata})


def persist_result(store: StatusStore, resource: NetworkPeering, result: ReconcileResult) -> bool:
    """Write a reconcile result to the store.

    A deleted resource without a lifecycle marker has nothing left remotely,
    so its record is dropped instead of saved.

    Returns:
        True if the record was removed.

    Raises:
        StatusStoreError: If the store cannot be updated.
    """
    if result.outcome == Outcome.SKIPPED:
        return False
    if resource.deletion_requested and not result.lifecycle_marker:
        store.delete(resource.metadata.key)
        return True
    store.save(StatusRecord.from_result(resource, result))
    return False


class PeeringManager:
    """Schedules and runs reconciles for every declared resource.

    Args:
        config: Operator configuration.
        reconciler: Object performing one blocking reconcile.
        store: Persistence for status records.
        reconcile_timeout: Overrides the configured reconcile timeout.
    """

    def __init__(
        self,
        config: Config,
        reconciler: Reconciler,
        store: StatusStore,
        *,
        reconcile_timeout: float | None = None,
    ) -> None:
        self._config = config
        self._reconciler = reconciler
        self._store = store
        self._timeout = (
            reconcile_timeout
            if reconcile_timeout is not None
            else config.reconcile_timeout_seconds
        )
        self._tracked: dict[str, TrackedResource] = {}
        self._in_flight: set[str] = set()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._semaphore = asyncio.Semaphore(config.max_concurrent_reconciles)
        self._wake = asyncio.Event()
        self._stopping = False
        self._restored = False

    @property
    def tracked(self) -> dict[str, TrackedResource]:
        return self._tracked

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    def _now(self) -> float:
        return asyncio.get_running_loop().time()

    # =========================================================================
    # Discovery
    # =========================================================================

    def discover(self) -> None:
        """Reconcile the tracked set with the specs directory and the store."""
        now = self._now()
        resources, errors = discover_resources(self._config.specs_dir)

        for key, loaded in resources.items():
            tracked = self._tracked.get(key)
            if tracked is not None and tracked.signature == loaded.signature:
                tracked.removed = False
                continue
            logger.info(
                "Resource scheduled",
                extra={"resource": key, "path": str(loaded.path), "new": tracked is None},
            )
            self._tracked[key] = TrackedResource(
                resource=loaded.resource,
                path=loaded.path,
                signature=loaded.signature,
                due_at=now,
            )

        for key, tracked in list(self._tracked.items()):
            if key in resources or tracked.path is None:
                continue
            if tracked.path in errors:
                # The file is still there but currently invalid; keep the last good version
                continue
            self._forget_or_delete(key, now)

        if not self._restored:
            self._restore_orphans(resources, now)
            self._restored = True

    def _restore_orphans(self, resources: dict[str, Any], now: float) -> None:
        """Pick up records left behind by a previous run whose files are gone."""
        for record in self._store.records():
            if record.key in resources or record.key in self._tracked:
                continue
            self._forget_or_delete(record.key, now)

    def _forget_or_delete(self, key: str, now: float) -> None:
        tracked = self._tracked.get(key)
        if tracked is not None and key in self._in_flight:
            # Decided once the running reconcile has persisted its result
            tracked.removed = True
            return

        try:
            record = self._store.get(key)
            if record is not None and not record.lifecycle_marker:
                self._store.delete(key)
        except StatusStoreError as e:
            logger.error("Status store failure", extra={"resource": key, "error": str(e)})
            return

        if record is not None and record.lifecycle_marker:
            logger.info("Resource removed, scheduling deletion", extra={"resource": key})
            self._tracked[key] = TrackedResource(
                resource=with_deletion_requested(record.resource),
                path=None,
                signature=None,
                due_at=now,
            )
            return

        logger.info("Resource removed", extra={"resource": key})
        self._tracked.pop(key, None)

    # =========================================================================
    # Reconcile
    # =========================================================================

    async def reconcile_key(self, key: str) -> ReconcileResult | None:
        """Run one reconcile for a tracked resource.

        Returns:
            The result, or None if the resource is unknown, already being
            reconciled, or the reconcile did not complete.
        """
        tracked = self._tracked.get(key)
        if tracked is None or key in self._in_flight:
            return None

        self._in_flight.add(key)
        tracked.due_at = None
        future: asyncio.Future[ReconcileResult] | None = None
        try:
            async with self._semaphore:
                record = self._store.get(key)
                resource = tracked.resource
                marker = False
                if record is not None:
                    resource = resource.model_copy(update={"status": record.resource.status})
                    marker = record.lifecycle_marker

                loop = asyncio.get_running_loop()
                future = loop.run_in_executor(None, self._reconciler.reconcile, resource, marker)
                result = await asyncio.wait_for(asyncio.shield(future), timeout=self._timeout)

            removed = persist_result(self._store, resource, result)
            self._schedule(key, tracked, result, removed)
            return result

        except TimeoutError:
            logger.error(
                "Reconcile timed out, status left untouched",
                extra={"resource": key, "timeout_seconds": self._timeout},
            )
        except StatusStoreError as e:
            logger.error("Status store failure", extra={"resource": key, "error": str(e)})
        except Exception as e:
            logger.exception("Reconcile failed unexpectedly", extra={"resource": key, "error": str(e)})
        finally:
            if future is None or future.done():
                self._in_flight.discard(key)
                self._settle_removed(key)
            else:
                future.add_done_callback(lambda f: self._release(key, f))

        self._requeue(key, tracked, self._config.retry_interval_seconds)
        return None

    def _release(self, key: str, future: asyncio.Future[Any]) -> None:
        """Free a key once an abandoned reconcile thread has finished."""
        self._in_flight.discard(key)
        if not future.cancelled() and future.exception() is not None:
            logger.error(
                "Abandoned reconcile raised",
                extra={"resource": key, "error": str(future.exception())},
            )
        self._settle_removed(key)
        self._wake.set()

    def _settle_removed(self, key: str) -> None:
        """Delete or forget a resource whose file went away mid-reconcile."""
        tracked = self._tracked.get(key)
        if tracked is None or not tracked.removed:
            return
        self._forget_or_delete(key, self._now())
        self._wake.set()

    def _schedule(
        self, key: str, tracked: TrackedResource, result: ReconcileResult, removed: bool
    ) -> None:
        if removed and tracked.path is None:
            if self._tracked.get(key) is tracked:
                del self._tracked[key]
            return
        if result.requeue_after is None:
            tracked.due_at = None
            return
        self._requeue(key, tracked, result.requeue_after)

    def _requeue(self, key: str, tracked: TrackedResource, delay: float) -> None:
        if self._tracked.get(key) is tracked:
            tracked.due_at = self._now() + delay
            self._wake.set()

    # =========================================================================
    # Loop
    # =========================================================================

    def _dispatch_due(self, now: float) -> None:
        for key, tracked in self._tracked.items():
            if tracked.due_at is None or tracked.due_at > now or key in self._in_flight:
                continue
            tracked.due_at = None
            task = asyncio.create_task(self.reconcile_key(key))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def _next_wakeup(self, now: float, next_discovery: float) -> float:
        due = [t.due_at for t in self._tracked.values() if t.due_at is not None]
        target = min([next_discovery, *due])
        return max(target - now, MIN_TICK_SECONDS)

    async def run(self) -> None:
        """Run discovery and reconciles until shutdown."""
        logger.info(
            "Starting peering manager",
            extra={
                "specs_dir": str(self._config.specs_dir),
                "state_dir": str(self._config.state_dir),
                "max_concurrent_reconciles": self._config.max_concurrent_reconciles,
                "discovery_interval_seconds": self._config.discovery_interval_seconds,
            },
        )
        next_discovery = self._now()

        while not self._stopping:
            now = self._now()
            if now >= next_discovery:
                self.discover()
                next_discovery = now + self._config.discovery_interval_seconds
            self._dispatch_due(now)

            try:
                await asyncio.wait_for(
                    self._wake.wait(), timeout=self._next_wakeup(now, next_discovery)
                )
            except TimeoutError:
                pass
            self._wake.clear()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info("Peering manager stopped")

    def shutdown(self) -> None:
        """Signal the manager to stop after in-flight reconciles finish."""
        logger.info("Shutdown requested")
        self._stopping = True
        self._wake.set()
