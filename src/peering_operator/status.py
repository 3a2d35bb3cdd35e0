"""Status reduction from remote peer and container state.

Each function takes a status value and returns a new one; nothing is mutated
in place. Network identity fields come from the container's remote status,
which is authoritative for them. The AWS connection ID is only known to the
peer.
"""

from __future__ import annotations

from .models import (
    AWSPeeringStatus,
    AzurePeeringStatus,
    GCPPeeringStatus,
    PeeringStatus,
    ProviderName,
)
from .translation import NetworkContainer, NetworkPeer


def apply_peering_status(
    status: PeeringStatus,
    peer: NetworkPeer,
    container: NetworkContainer | None,
) -> PeeringStatus:
    """Fold a remote peer (and its container) into the status.

    An unsupported provider is a data-quality signal rather than an error:
    the status string reports it and no provider sub-status is populated.
    """
    update: dict[str, object] = {
        "id": peer.id,
        "status": peer.status,
        "error": peer.error_message,
    }

    match peer.provider:
        case ProviderName.AWS.value:
            container_status = container.aws_status if container else None
            if container_status is not None or peer.aws_status is not None:
                current = status.aws_status or AWSPeeringStatus()
                update["aws_status"] = AWSPeeringStatus(
                    vpc_id=container_status.vpc_id if container_status else current.vpc_id,
                    connection_id=(
                        peer.aws_status.connection_id
                        if peer.aws_status
                        else current.connection_id
                    ),
                )
        case ProviderName.AZURE.value:
            if container is not None and container.azure_status is not None:
                update["azure_status"] = AzurePeeringStatus(
                    azure_subscription_id=container.azure_status.azure_subscription_id,
                    vnet_name=container.azure_status.vnet_name,
                )
        case ProviderName.GCP.value:
            if container is not None and container.gcp_status is not None:
                update["gcp_status"] = GCPPeeringStatus(
                    gcp_project_id=container.gcp_status.gcp_project_id,
                    network_name=container.gcp_status.network_name,
                )
        case _:
            update["status"] = f'unsupported provider: "{peer.provider}"'

    return status.model_copy(update=update)


def clear_peering_status(status: PeeringStatus) -> PeeringStatus:
    return status.model_copy(
        update={
            "id": "",
            "status": "",
            "error": "",
            "aws_status": None,
            "azure_status": None,
            "gcp_status": None,
        }
    )


def apply_container_status(status: PeeringStatus, container: NetworkContainer) -> PeeringStatus:
    """Echo the resolved container back into the status."""
    return status.model_copy(
        update={
            "container_id": container.id,
            "container_region": container.region,
            "container_cidr_block": container.cidr_block,
            "container_provisioned": container.provisioned,
        }
    )


def clear_container_status(status: PeeringStatus) -> PeeringStatus:
    return status.model_copy(
        update={
            "container_id": "",
            "container_region": "",
            "container_cidr_block": "",
            "container_provisioned": False,
        }
    )
