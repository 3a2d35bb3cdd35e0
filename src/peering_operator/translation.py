"""Translation between peering models and the remote wire format.

Every function here is pure: no I/O, no logging. Dispatch is an exhaustive
``match`` on the provider name; an unknown provider is always an
UnsupportedProviderError and is never silently dropped.

Wire objects are plain dicts as returned by the JSON API. Empty strings are
omitted on the way out, and status sub-objects are only rebuilt on the way in
when their defining fields are present, so that round-trips stay lossless.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .models import (
    AWSPeeringConfiguration,
    AzurePeeringConfiguration,
    GCPPeeringConfiguration,
    NetworkPeeringConfig,
    ProviderName,
)

# Remote peer lifecycle strings
STATUS_AVAILABLE = "AVAILABLE"
CLOSING_STATUSES = frozenset({"DELETING", "TERMINATING"})


class TranslationError(ValueError):
    """Raised when a model cannot be mapped to or from the wire format."""

    pass


class UnsupportedProviderError(TranslationError):
    """Raised when the provider name is not AWS, AZURE or GCP."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f'unsupported provider "{provider}"')


# =============================================================================
# Remote projections
# =============================================================================


@dataclass(frozen=True)
class AWSPeerStatus:
    connection_id: str


@dataclass(frozen=True)
class NetworkPeer:
    """A peering connection as seen by the remote API.

    Built fresh from every remote read and never cached across reconciles.
    ``container_id`` is always a remote container ID.
    """

    config: NetworkPeeringConfig
    container_id: str = ""
    status: str = ""
    error_message: str = ""
    aws_status: AWSPeerStatus | None = None

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def provider(self) -> str:
        return self.config.provider

    @property
    def failed(self) -> bool:
        return self.error_message != ""

    @property
    def available(self) -> bool:
        return self.status == STATUS_AVAILABLE

    @property
    def closing(self) -> bool:
        return self.status in CLOSING_STATUSES

    @property
    def aws_connection_id(self) -> str:
        if self.aws_status is None:
            return ""
        return self.aws_status.connection_id


@dataclass(frozen=True)
class AWSContainerStatus:
    vpc_id: str


@dataclass(frozen=True)
class AzureContainerStatus:
    azure_subscription_id: str
    vnet_name: str


@dataclass(frozen=True)
class GCPContainerStatus:
    gcp_project_id: str
    network_name: str


@dataclass(frozen=True)
class NetworkContainer:
    """A provider network container as seen by the remote API.

    At most one of the provider status objects is set, and only when the
    remote actually returned its identifying fields.
    """

    provider: str
    cidr_block: str
    id: str = ""
    region: str = ""
    provisioned: bool = False
    aws_status: AWSContainerStatus | None = None
    azure_status: AzureContainerStatus | None = None
    gcp_status: GCPContainerStatus | None = None


# =============================================================================
# Helpers
# =============================================================================


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    """Drop empty string values from a wire object."""
    return {k: v for k, v in data.items() if v != ""}


def _text(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


def _require_mapping(data: Any, entity: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise TranslationError(f"{entity} must be a JSON object, got {type(data).__name__}")
    return data


# =============================================================================
# Peers
# =============================================================================


def peer_to_remote(peer: NetworkPeer) -> dict[str, Any]:
    """Convert a peer into the remote peering connection payload.

    Raises:
        UnsupportedProviderError: If the provider is not recognized.
        TranslationError: If the provider's configuration variant is missing.
    """
    cfg = peer.config
    match cfg.provider:
        case ProviderName.AWS.value:
            if cfg.aws_configuration is None:
                raise TranslationError("unsupported AWS peer with awsConfiguration unset")
            aws = cfg.aws_configuration
            return _compact(
                {
                    "id": cfg.id,
                    "containerId": peer.container_id,
                    "providerName": cfg.provider,
                    "accepterRegionName": aws.accepter_region_name,
                    "awsAccountId": aws.aws_account_id,
                    "routeTableCidrBlock": aws.route_table_cidr_block,
                    "vpcId": aws.vpc_id,
                }
            )
        case ProviderName.AZURE.value:
            if cfg.azure_configuration is None:
                raise TranslationError("unsupported Azure peer with azureConfiguration unset")
            azure = cfg.azure_configuration
            return _compact(
                {
                    "id": cfg.id,
                    "containerId": peer.container_id,
                    "providerName": cfg.provider,
                    "azureDirectoryId": azure.azure_directory_id,
                    "azureSubscriptionId": azure.azure_subscription_id,
                    "resourceGroupName": azure.resource_group_name,
                    "vnetName": azure.vnet_name,
                }
            )
        case ProviderName.GCP.value:
            if cfg.gcp_configuration is None:
                raise TranslationError("unsupported Google peer with gcpConfiguration unset")
            gcp = cfg.gcp_configuration
            return _compact(
                {
                    "id": cfg.id,
                    "containerId": peer.container_id,
                    "providerName": cfg.provider,
                    "gcpProjectId": gcp.gcp_project_id,
                    "networkName": gcp.network_name,
                }
            )
        case _:
            raise UnsupportedProviderError(cfg.provider)


def peer_from_remote(data: dict[str, Any]) -> NetworkPeer:
    """Convert a remote peering connection payload into a peer.

    Each provider reports its lifecycle under different keys: AWS uses
    ``statusName``/``errorStateName``, Azure ``status``/``errorState`` and
    GCP ``status``/``errorMessage``.

    Raises:
        UnsupportedProviderError: If the provider is not recognized.
    """
    data = _require_mapping(data, "peering connection")
    provider = _text(data, "providerName")
    peer_id = _text(data, "id")
    container_id = _text(data, "containerId")

    match provider:
        case ProviderName.AWS.value:
            config = NetworkPeeringConfig(
                provider=provider,
                id=peer_id,
                aws_configuration=AWSPeeringConfiguration(
                    accepter_region_name=_text(data, "accepterRegionName"),
                    aws_account_id=_text(data, "awsAccountId"),
                    route_table_cidr_block=_text(data, "routeTableCidrBlock"),
                    vpc_id=_text(data, "vpcId"),
                ),
            )
            aws_status = None
            if data.get("connectionId") is not None:
                aws_status = AWSPeerStatus(connection_id=_text(data, "connectionId"))
            return NetworkPeer(
                config=config,
                container_id=container_id,
                status=_text(data, "statusName"),
                error_message=_text(data, "errorStateName"),
                aws_status=aws_status,
            )
        case ProviderName.AZURE.value:
            config = NetworkPeeringConfig(
                provider=provider,
                id=peer_id,
                azure_configuration=AzurePeeringConfiguration(
                    azure_directory_id=_text(data, "azureDirectoryId"),
                    azure_subscription_id=_text(data, "azureSubscriptionId"),
                    resource_group_name=_text(data, "resourceGroupName"),
                    vnet_name=_text(data, "vnetName"),
                ),
            )
            return NetworkPeer(
                config=config,
                container_id=container_id,
                status=_text(data, "status"),
                error_message=_text(data, "errorState"),
            )
        case ProviderName.GCP.value:
            config = NetworkPeeringConfig(
                provider=provider,
                id=peer_id,
                gcp_configuration=GCPPeeringConfiguration(
                    gcp_project_id=_text(data, "gcpProjectId"),
                    network_name=_text(data, "networkName"),
                ),
            )
            return NetworkPeer(
                config=config,
                container_id=container_id,
                status=_text(data, "status"),
                error_message=_text(data, "errorMessage"),
            )
        case _:
            raise UnsupportedProviderError(provider)


def peer_list_from_remote(items: list[dict[str, Any]] | None) -> list[NetworkPeer]:
    """Convert a page of remote peering connections.

    Raises:
        TranslationError: Naming the index of the first item that fails.
    """
    if not items:
        return []
    peers = []
    for i, item in enumerate(items):
        try:
            peers.append(peer_from_remote(item))
        except TranslationError as e:
            raise TranslationError(f"failed to convert connection list item {i}: {e}") from e
    return peers


def new_spec_peer(config: NetworkPeeringConfig, container_id: str = "") -> NetworkPeer:
    """Build a status-free peer from the desired configuration."""
    return NetworkPeer(config=config.peering_config(), container_id=container_id)


def compare_configs(a: NetworkPeer, b: NetworkPeer) -> bool:
    """Report whether two peers carry the same provider configuration.

    The AWS accepter region cannot be updated remotely and may be reported
    empty when it matches the container region, so it is not compared.
    """
    if a.provider != b.provider:
        return False
    return _comparable(a.config) == _comparable(b.config)


def _comparable(
    cfg: NetworkPeeringConfig,
) -> tuple[
    AWSPeeringConfiguration | None,
    AzurePeeringConfiguration | None,
    GCPPeeringConfiguration | None,
]:
    aws = cfg.aws_configuration
    if aws is not None:
        aws = aws.model_copy(update={"accepter_region_name": ""})
    return aws, cfg.azure_configuration, cfg.gcp_configuration


# =============================================================================
# Containers
# =============================================================================


def container_to_remote(container: NetworkContainer) -> dict[str, Any]:
    """Convert a container into the remote container payload.

    AWS carries its region as ``regionName``, Azure as ``region`` and GCP
    containers are global.

    Raises:
        UnsupportedProviderError: If the provider is not recognized.
    """
    base = {
        "id": container.id,
        "providerName": container.provider,
        "atlasCidrBlock": container.cidr_block,
    }
    match container.provider:
        case ProviderName.AWS.value:
            return _compact({**base, "regionName": container.region})
        case ProviderName.AZURE.value:
            return _compact({**base, "region": container.region})
        case ProviderName.GCP.value:
            return _compact(base)
        case _:
            raise UnsupportedProviderError(container.provider)


def container_from_remote(data: dict[str, Any]) -> NetworkContainer:
    """Convert a remote container payload into a container.

    Raises:
        UnsupportedProviderError: If the provider is not recognized.
    """
    data = _require_mapping(data, "container")
    provider = _text(data, "providerName")
    common = {
        "id": _text(data, "id"),
        "provider": provider,
        "cidr_block": _text(data, "atlasCidrBlock"),
        "provisioned": bool(data.get("provisioned", False)),
    }
    match provider:
        case ProviderName.AWS.value:
            aws_status = None
            if data.get("vpcId"):
                aws_status = AWSContainerStatus(vpc_id=_text(data, "vpcId"))
            return NetworkContainer(
                **common, region=_text(data, "regionName"), aws_status=aws_status
            )
        case ProviderName.AZURE.value:
            azure_status = None
            if data.get("azureSubscriptionId") or data.get("vnetName"):
                azure_status = AzureContainerStatus(
                    azure_subscription_id=_text(data, "azureSubscriptionId"),
                    vnet_name=_text(data, "vnetName"),
                )
            return NetworkContainer(
                **common, region=_text(data, "region"), azure_status=azure_status
            )
        case ProviderName.GCP.value:
            gcp_status = None
            if data.get("gcpProjectId") or data.get("networkName"):
                gcp_status = GCPContainerStatus(
                    gcp_project_id=_text(data, "gcpProjectId"),
                    network_name=_text(data, "networkName"),
                )
            return NetworkContainer(**common, gcp_status=gcp_status)
        case _:
            raise UnsupportedProviderError(provider)


def container_list_from_remote(items: list[dict[str, Any]] | None) -> list[NetworkContainer]:
    """Convert a page of remote containers.

    Raises:
        TranslationError: Naming the index of the first item that fails.
    """
    if not items:
        return []
    containers = []
    for i, item in enumerate(items):
        try:
            containers.append(container_from_remote(item))
        except TranslationError as e:
            raise TranslationError(f"failed to convert container list item {i}: {e}") from e
    return containers
