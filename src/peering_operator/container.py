"""Resolution of the network container a peering depends on.

A container referenced by ID must already exist. A container referenced by
name is described by its CIDR block (and optional region) and is found or
created on demand. The container is always resolved to a remote ID before
any peer call is made.
"""

from __future__ import annotations

import logging

from azure.core.exceptions import HttpResponseError

from .models import ProviderName
from .service import NotFoundError
from .translation import NetworkContainer
from .workflow import ReconcileRequest

logger = logging.getLogger(__name__)

HTTP_CONFLICT = 409


class ContainerResolutionError(Exception):
    """Raised when the referenced container cannot be resolved."""

    pass


def normalize_aws_region(region: str) -> str:
    """Convert an AWS region name to the remote form (us-east-1 -> US_EAST_1)."""
    return region.strip().upper().replace("-", "_")


def desired_container(request: ReconcileRequest) -> NetworkContainer:
    """Describe the container the resource asks for, without defaults.

    An AWS region is always given in the remote form so that it matches
    existing containers.
    """
    spec = request.resource.spec
    region = spec.container_ref.region
    if region and spec.provider == ProviderName.AWS.value:
        region = normalize_aws_region(region)
    return NetworkContainer(
        provider=spec.provider,
        cidr_block=spec.container_ref.cidr_block,
        id=spec.container_ref.id,
        region=region,
    )


def with_region_default(container: NetworkContainer, request: ReconcileRequest) -> NetworkContainer:
    """Default an AWS container region from the peering's accepter region.

    Only applies to AWS and only when no container region was given. Azure
    and GCP containers are never defaulted.
    """
    if container.provider != ProviderName.AWS.value or container.region:
        return container
    aws = request.resource.spec.aws_configuration
    if aws is None or not aws.accepter_region_name:
        return container
    return NetworkContainer(
        provider=container.provider,
        cidr_block=container.cidr_block,
        id=container.id,
        region=normalize_aws_region(aws.accepter_region_name),
    )


def resolve_container(request: ReconcileRequest) -> NetworkContainer:
    """Find or create the container for a resource.

    Returns:
        The remote container, always carrying a remote ID.

    Raises:
        ContainerResolutionError: If a container referenced by ID is gone.
        NotFoundError, NetworkingAPIError, AzureError: On remote failures.
    """
    wanted = desired_container(request)
    service = request.container_service

    if wanted.id:
        try:
            return service.get_container(request.project_id, wanted.id)
        except NotFoundError as e:
            raise ContainerResolutionError(
                f"container {wanted.id} referenced by containerRef.id was not found"
            ) from e

    try:
        return service.find_container(
            request.project_id, wanted.provider, wanted.cidr_block, wanted.region
        )
    except NotFoundError:
        pass

    to_create = with_region_default(wanted, request)
    try:
        return service.create_container(request.project_id, to_create)
    except HttpResponseError as e:
        if e.status_code != HTTP_CONFLICT:
            raise
        # Created concurrently or by an earlier attempt
        logger.info(
            "Container already exists, looking it up",
            extra={
                "resource": request.resource.metadata.key,
                "provider": to_create.provider,
                "cidr_block": to_create.cidr_block,
            },
        )
        return service.find_container(
            request.project_id, to_create.provider, to_create.cidr_block, to_create.region
        )


def lookup_container(request: ReconcileRequest) -> NetworkContainer | None:
    """Look up the container without creating it.

    Returns:
        The remote container, or None when it does not exist.
    """
    wanted = desired_container(request)
    service = request.container_service
    try:
        if wanted.id:
            return service.get_container(request.project_id, wanted.id)
        return service.find_container(
            request.project_id, wanted.provider, wanted.cidr_block, wanted.region
        )
    except NotFoundError:
        return None


def release_container(request: ReconcileRequest) -> NetworkContainer | None:
    """Delete the container of a resource being torn down.

    Returns:
        The container that was deleted, or None if it was already gone.

    Raises:
        ContainerInUseError: If other peerings still use the container.
        NetworkingAPIError, AzureError: On other remote failures.
    """
    container = lookup_container(request)
    if container is None:
        return None
    try:
        request.container_service.delete_container(request.project_id, container.id)
    except NotFoundError:
        return None
    return container
