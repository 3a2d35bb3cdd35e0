"""Peering state machine.

State is never stored. Every reconcile derives it from two observations,
whether deletion was requested and whether the peer exists remotely, plus
the remote peer itself when it exists. All functions here are pure.
"""

from __future__ import annotations

from enum import Enum

from .models import NetworkPeeringConfig
from .translation import NetworkPeer, compare_configs, new_spec_peer


class Transition(str, Enum):
    CREATE = "create"
    SYNC = "sync"
    UPDATE = "update"
    DELETE = "delete"
    UNMANAGE = "unmanage"


class SyncOutcome(str, Enum):
    """Refinement of the sync branch for a peer that exists remotely."""

    FAILED = "failed"
    PENDING = "pending"
    UPDATE = "update"
    READY = "ready"


def select_transition(deletion_requested: bool, exists_remotely: bool) -> Transition:
    """Pick the branch for the observed (deletion, existence) pair.

    | deletion | exists | transition |
    |----------|--------|------------|
    | no       | no     | create     |
    | no       | yes    | sync       |
    | yes      | yes    | delete     |
    | yes      | no     | unmanage   |
    """
    match (deletion_requested, exists_remotely):
        case (False, False):
            return Transition.CREATE
        case (False, True):
            return Transition.SYNC
        case (True, True):
            return Transition.DELETE
        case _:
            return Transition.UNMANAGE


def assess_sync(remote: NetworkPeer, desired: NetworkPeeringConfig) -> SyncOutcome:
    """Classify an existing remote peer against the desired configuration.

    A reported error wins over everything, then anything short of AVAILABLE
    is still pending. Only an available peer is compared for drift.
    """
    if remote.failed:
        return SyncOutcome.FAILED
    if not remote.available:
        return SyncOutcome.PENDING
    if not compare_configs(remote, new_spec_peer(desired)):
        return SyncOutcome.UPDATE
    return SyncOutcome.READY


def plan(
    deletion_requested: bool,
    remote: NetworkPeer | None,
    desired: NetworkPeeringConfig,
) -> Transition:
    """Select exactly one transition for this reconcile."""
    transition = select_transition(deletion_requested, remote is not None)
    if (
        transition == Transition.SYNC
        and remote is not None
        and assess_sync(remote, desired) == SyncOutcome.UPDATE
    ):
        return Transition.UPDATE
    return transition
