"""In-memory networking API.

Implements the project, peering and container service protocols over plain
dicts so the reconcile core can be exercised end to end. Payloads go through
the real translator, so an unsupported provider fails as it would over HTTP.
Remote-assigned identifiers are deterministic to keep assertions readable.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field, replace
from typing import Any

from peering_operator.models import NetworkPeeringConfig, ProviderName
from peering_operator.service import (
    ContainerInUseError,
    MissingProjectError,
    NotFoundError,
    Project,
)
from peering_operator.translation import (
    AWSContainerStatus,
    AWSPeerStatus,
    AzureContainerStatus,
    GCPContainerStatus,
    NetworkContainer,
    NetworkPeer,
    container_to_remote,
    new_spec_peer,
    peer_to_remote,
)

from .transport import api_error

MUTATIONS = frozenset(
    {"create_peer", "update_peer", "delete_peer", "create_container", "delete_container"}
)


@dataclass
class MockProjectState:
    """Remote objects of a single project."""

    project: Project
    peers: dict[str, NetworkPeer] = field(default_factory=dict)
    containers: dict[str, NetworkContainer] = field(default_factory=dict)


class MockNetworkingAPI:
    """Mock implementation of every remote service protocol.

    Args:
        created_status: Status reported by a freshly created or updated peer.
        immediate_delete: Whether deleting a peer removes it at once instead
            of leaving it DELETING until finish_deletion() is called.
    """

    def __init__(
        self,
        *,
        created_status: str = "INITIATING",
        immediate_delete: bool = False,
    ) -> None:
        self.created_status = created_status
        self.immediate_delete = immediate_delete
        self.projects: dict[str, MockProjectState] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self._failures: dict[str, list[Exception]] = {}
        self._ids = itertools.count(1)

    # =========================================================================
    # Test helpers
    # =========================================================================

    def add_project(self, project_id: str, name: str = "") -> MockProjectState:
        state = MockProjectState(project=Project(id=project_id, name=name))
        self.projects[project_id] = state
        return state

    def add_container(self, project_id: str, container: NetworkContainer) -> NetworkContainer:
        if not container.id:
            container = replace(container, id=self._next_id("container"))
        container = self._with_remote_status(container)
        self._project(project_id).containers[container.id] = container
        return container

    def add_peer(self, project_id: str, peer: NetworkPeer) -> NetworkPeer:
        self._project(project_id).peers[peer.id] = peer
        return peer

    def set_peer_status(
        self, project_id: str, peer_id: str, status: str, error_message: str = ""
    ) -> None:
        peers = self._project(project_id).peers
        peers[peer_id] = replace(peers[peer_id], status=status, error_message=error_message)

    def finish_deletion(self, project_id: str, peer_id: str) -> None:
        self._project(project_id).peers.pop(peer_id, None)

    def fail_next(self, operation: str, error: Exception) -> None:
        """Make the next call of an operation raise an error."""
        self._failures.setdefault(operation, []).append(error)

    def fail_with_code(self, operation: str, status_code: int, error_code: str = "") -> None:
        self.fail_next(operation, api_error(status_code, error_code))

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    @property
    def mutation_count(self) -> int:
        return sum(1 for name, _ in self.calls if name in MUTATIONS)

    def peers_of(self, project_id: str) -> list[NetworkPeer]:
        return list(self._project(project_id).peers.values())

    def containers_of(self, project_id: str) -> list[NetworkContainer]:
        return list(self._project(project_id).containers.values())

    # =========================================================================
    # ProjectService
    # =========================================================================

    def get_project(self, project_id: str) -> Project:
        self._record("get_project", project_id)
        if project_id not in self.projects:
            raise MissingProjectError(f"project {project_id} does not exist")
        return self.projects[project_id].project

    def get_project_by_name(self, name: str) -> Project:
        self._record("get_project_by_name", name)
        for state in self.projects.values():
            if state.project.name == name:
                return state.project
        raise MissingProjectError(f"no project named {name}")

    # =========================================================================
    # NetworkPeeringService
    # =========================================================================

    def get_peer(self, project_id: str, peer_id: str) -> NetworkPeer:
        self._record("get_peer", project_id, peer_id)
        peer = self._project(project_id).peers.get(peer_id)
        if peer is None:
            raise NotFoundError(f"peer {peer_id} not found")
        return peer

    def create_peer(
        self, project_id: str, container_id: str, config: NetworkPeeringConfig
    ) -> NetworkPeer:
        self._record("create_peer", project_id, container_id, config)
        peer_to_remote(new_spec_peer(config, container_id))
        peer_id = self._next_id("peer")
        aws_status = None
        if config.provider == ProviderName.AWS.value:
            aws_status = AWSPeerStatus(connection_id=f"pcx-{peer_id}")
        peer = NetworkPeer(
            config=config.peering_config().model_copy(update={"id": peer_id}),
            container_id=container_id,
            status=self.created_status,
            aws_status=aws_status,
        )
        self._project(project_id).peers[peer_id] = peer
        return peer

    def update_peer(
        self, project_id: str, peer_id: str, container_id: str, config: NetworkPeeringConfig
    ) -> NetworkPeer:
        self._record("update_peer", project_id, peer_id, container_id, config)
        peer_to_remote(new_spec_peer(config, container_id))
        peers = self._project(project_id).peers
        if peer_id not in peers:
            raise NotFoundError(f"peer {peer_id} not found")
        peer = replace(
            peers[peer_id],
            config=config.peering_config().model_copy(update={"id": peer_id}),
            container_id=container_id,
            status=self.created_status,
            error_message="",
        )
        peers[peer_id] = peer
        return peer

    def delete_peer(self, project_id: str, peer_id: str) -> None:
        self._record("delete_peer", project_id, peer_id)
        peers = self._project(project_id).peers
        if peer_id not in peers:
            raise NotFoundError(f"peer {peer_id} not found")
        if self.immediate_delete:
            del peers[peer_id]
        else:
            peers[peer_id] = replace(peers[peer_id], status="DELETING")

    def list_peers(self, project_id: str, provider: str) -> list[NetworkPeer]:
        self._record("list_peers", project_id, provider)
        return [p for p in self._project(project_id).peers.values() if p.provider == provider]

    # =========================================================================
    # NetworkContainerService
    # =========================================================================

    def get_container(self, project_id: str, container_id: str) -> NetworkContainer:
        self._record("get_container", project_id, container_id)
        container = self._project(project_id).containers.get(container_id)
        if container is None:
            raise NotFoundError(f"container {container_id} not found")
        return container

    def find_container(
        self, project_id: str, provider: str, cidr_block: str, region: str = ""
    ) -> NetworkContainer:
        self._record("find_container", project_id, provider, cidr_block, region)
        for container in self._project(project_id).containers.values():
            if container.provider != provider or container.cidr_block != cidr_block:
                continue
            if region and container.region and container.region != region:
                continue
            return container
        raise NotFoundError(f"no {provider} container with CIDR block {cidr_block}")

    def create_container(self, project_id: str, container: NetworkContainer) -> NetworkContainer:
        self._record("create_container", project_id, container)
        container_to_remote(container)
        created = self._with_remote_status(replace(container, id=self._next_id("container")))
        self._project(project_id).containers[created.id] = created
        return created

    def delete_container(self, project_id: str, container_id: str) -> None:
        self._record("delete_container", project_id, container_id)
        state = self._project(project_id)
        if container_id not in state.containers:
            raise NotFoundError(f"container {container_id} not found")
        if any(p.container_id == container_id for p in state.peers.values()):
            raise ContainerInUseError(f"container {container_id} is in use")
        del state.containers[container_id]

    def list_containers(self, project_id: str, provider: str) -> list[NetworkContainer]:
        self._record("list_containers", project_id, provider)
        return [
            c for c in self._project(project_id).containers.values() if c.provider == provider
        ]

    # =========================================================================
    # Internals
    # =========================================================================

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        pending = self._failures.get(name)
        if pending:
            raise pending.pop(0)

    def _project(self, project_id: str) -> MockProjectState:
        if project_id not in self.projects:
            raise NotFoundError(f"project {project_id} not found")
        return self.projects[project_id]

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def _with_remote_status(self, container: NetworkContainer) -> NetworkContainer:
        """Fill in the provider status the remote reports for a container."""
        match container.provider:
            case ProviderName.AWS.value:
                return replace(
                    container,
                    provisioned=True,
                    aws_status=container.aws_status or AWSContainerStatus(f"vpc-{container.id}"),
                )
            case ProviderName.AZURE.value:
                return replace(
                    container,
                    provisioned=True,
                    azure_status=container.azure_status
                    or AzureContainerStatus("sub-remote", f"vnet-{container.id}"),
                )
            case ProviderName.GCP.value:
                return replace(
                    container,
                    provisioned=True,
                    gcp_status=container.gcp_status
                    or GCPContainerStatus("gcp-remote", f"network-{container.id}"),
                )
            case _:
                return container
