"""Remote service clients for peerings, containers and projects.

The protocols are the seam between the reconcile core and the remote API.
The HTTP implementations are the only place where API error codes are
inspected; everything above this module sees the NotFoundError and
ContainerInUseError sentinels instead.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Protocol
from urllib.parse import quote

from .client import ApiClient, NetworkingAPIError
from .models import NetworkPeeringConfig
from .translation import (
    NetworkContainer,
    NetworkPeer,
    container_from_remote,
    container_list_from_remote,
    container_to_remote,
    new_spec_peer,
    peer_from_remote,
    peer_list_from_remote,
    peer_to_remote,
)

logger = logging.getLogger(__name__)

# API error codes that mean "the object is not there"
NOT_FOUND_CODES = frozenset(
    {
        "PEER_NOT_FOUND",
        "PEER_ALREADY_REQUESTED_DELETION",
        "CLOUD_PROVIDER_CONTAINER_NOT_FOUND",
        "GROUP_NOT_FOUND",
        "GROUP_NAME_NOT_FOUND",
        "NOT_IN_GROUP",
    }
)
CONTAINER_IN_USE_CODE = "CONTAINERS_IN_USE"


class ServiceError(Exception):
    """Base class for remote outcomes the reconcile core acts upon."""

    pass


class NotFoundError(ServiceError):
    """The remote object does not exist."""

    pass


class ContainerInUseError(ServiceError):
    """A container deletion was refused because peerings still use it."""

    pass


class MissingProjectError(NotFoundError):
    """The project a peering refers to does not exist."""

    pass


@contextmanager
def _sentinel_errors(
    not_found: type[NotFoundError] = NotFoundError,
) -> Iterator[None]:
    """Map API error codes onto the sentinel exceptions."""
    try:
        yield
    except NetworkingAPIError as e:
        if e.error_code in NOT_FOUND_CODES or (not e.error_code and e.status_code == 404):
            raise not_found(e.message) from e
        if e.error_code == CONTAINER_IN_USE_CODE:
            raise ContainerInUseError(e.message) from e
        raise


# =============================================================================
# Protocols
# =============================================================================


@dataclass(frozen=True)
class Project:
    id: str
    name: str = ""


class ProjectService(Protocol):
    def get_project(self, project_id: str) -> Project: ...

    def get_project_by_name(self, name: str) -> Project: ...


class NetworkPeeringService(Protocol):
    def get_peer(self, project_id: str, peer_id: str) -> NetworkPeer: ...

    def create_peer(
        self, project_id: str, container_id: str, config: NetworkPeeringConfig
    ) -> NetworkPeer: ...

    def update_peer(
        self, project_id: str, peer_id: str, container_id: str, config: NetworkPeeringConfig
    ) -> NetworkPeer: ...

    def delete_peer(self, project_id: str, peer_id: str) -> None: ...

    def list_peers(self, project_id: str, provider: str) -> list[NetworkPeer]: ...


class NetworkContainerService(Protocol):
    def get_container(self, project_id: str, container_id: str) -> NetworkContainer: ...

    def find_container(
        self, project_id: str, provider: str, cidr_block: str, region: str = ""
    ) -> NetworkContainer: ...

    def create_container(
        self, project_id: str, container: NetworkContainer
    ) -> NetworkContainer: ...

    def delete_container(self, project_id: str, container_id: str) -> None: ...

    def list_containers(self, project_id: str, provider: str) -> list[NetworkContainer]: ...


# =============================================================================
# HTTP implementations
# =============================================================================


def _group_path(project_id: str, *parts: str) -> str:
    segments = [quote(project_id, safe="")] + [quote(p, safe="") for p in parts]
    return "/groups/" + "/".join(segments)


class HttpProjectService:
    def __init__(self, api: ApiClient) -> None:
        self._api = api

    def get_project(self, project_id: str) -> Project:
        with _sentinel_errors(MissingProjectError):
            body = self._api.request("GET", _group_path(project_id))
        return Project(id=str(body.get("id", project_id)), name=str(body.get("name", "")))

    def get_project_by_name(self, name: str) -> Project:
        with _sentinel_errors(MissingProjectError):
            body = self._api.request("GET", f"/groups/byName/{quote(name, safe='')}")
        return Project(id=str(body["id"]), name=str(body.get("name", name)))


class HttpNetworkPeeringService:
    """Peering connections under ``/groups/{projectId}/peers``."""

    def __init__(self, api: ApiClient) -> None:
        self._api = api

    def get_peer(self, project_id: str, peer_id: str) -> NetworkPeer:
        with _sentinel_errors():
            body = self._api.request("GET", _group_path(project_id, "peers", peer_id))
        return peer_from_remote(body)

    def create_peer(
        self, project_id: str, container_id: str, config: NetworkPeeringConfig
    ) -> NetworkPeer:
        payload = peer_to_remote(new_spec_peer(config, container_id))
        payload.pop("id", None)
        with _sentinel_errors():
            body = self._api.request("POST", _group_path(project_id, "peers"), json=payload)
        peer = peer_from_remote(body)
        logger.info(
            "Created peering connection",
            extra={"project_id": project_id, "peer_id": peer.id, "provider": peer.provider},
        )
        return peer

    def update_peer(
        self, project_id: str, peer_id: str, container_id: str, config: NetworkPeeringConfig
    ) -> NetworkPeer:
        payload = peer_to_remote(new_spec_peer(config, container_id))
        payload.pop("id", None)
        with _sentinel_errors():
            body = self._api.request(
                "PATCH", _group_path(project_id, "peers", peer_id), json=payload
            )
        logger.info(
            "Updated peering connection",
            extra={"project_id": project_id, "peer_id": peer_id},
        )
        return peer_from_remote(body)

    def delete_peer(self, project_id: str, peer_id: str) -> None:
        with _sentinel_errors():
            self._api.request("DELETE", _group_path(project_id, "peers", peer_id))
        logger.info(
            "Requested peering connection deletion",
            extra={"project_id": project_id, "peer_id": peer_id},
        )

    def list_peers(self, project_id: str, provider: str) -> list[NetworkPeer]:
        with _sentinel_errors():
            items = list(
                self._api.paginate(
                    _group_path(project_id, "peers"), params={"providerName": provider}
                )
            )
        return peer_list_from_remote(items)


class HttpNetworkContainerService:
    """Network containers under ``/groups/{projectId}/containers``."""

    def __init__(self, api: ApiClient) -> None:
        self._api = api

    def get_container(self, project_id: str, container_id: str) -> NetworkContainer:
        with _sentinel_errors():
            body = self._api.request(
                "GET", _group_path(project_id, "containers", container_id)
            )
        return container_from_remote(body)

    def find_container(
        self, project_id: str, provider: str, cidr_block: str, region: str = ""
    ) -> NetworkContainer:
        """Find a container by provider and CIDR block.

        When ``region`` is given it must match too. GCP containers are global
        and never filtered by region.

        Raises:
            NotFoundError: If no container matches.
        """
        for container in self.list_containers(project_id, provider):
            if container.cidr_block != cidr_block:
                continue
            if region and container.region and container.region != region:
                continue
            return container
        raise NotFoundError(
            f"no {provider} container with CIDR block {cidr_block} in project {project_id}"
        )

    def create_container(self, project_id: str, container: NetworkContainer) -> NetworkContainer:
        payload = container_to_remote(replace(container, id=""))
        with _sentinel_errors():
            body = self._api.request(
                "POST", _group_path(project_id, "containers"), json=payload
            )
        created = container_from_remote(body)
        logger.info(
            "Created network container",
            extra={
                "project_id": project_id,
                "container_id": created.id,
                "provider": created.provider,
                "cidr_block": created.cidr_block,
            },
        )
        return created

    def delete_container(self, project_id: str, container_id: str) -> None:
        with _sentinel_errors():
            self._api.request("DELETE", _group_path(project_id, "containers", container_id))
        logger.info(
            "Deleted network container",
            extra={"project_id": project_id, "container_id": container_id},
        )

    def list_containers(self, project_id: str, provider: str) -> list[NetworkContainer]:
        with _sentinel_errors():
            items = list(
                self._api.paginate(
                    _group_path(project_id, "containers"), params={"providerName": provider}
                )
            )
        return container_list_from_remote(items)
