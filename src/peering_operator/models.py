"""Pydantic models for NetworkPeering resources.

These models provide:
1. Type-safe YAML parsing of the desired state
2. Validation at the boundary (fail fast, fail loudly)
3. An immutable, serializable status shape written back after each reconcile
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, Field, field_validator, model_validator

API_VERSION = "peering.operator/v1"
KIND_NETWORK_PEERING = "NetworkPeering"

# Shared model configuration: camelCase on the wire, snake_case in code
_CONFIG = {"extra": "ignore", "populate_by_name": True, "frozen": True}


class ProviderName(str, Enum):
    """Cloud providers a peering can target."""

    AWS = "AWS"
    AZURE = "AZURE"
    GCP = "GCP"


# =============================================================================
# Provider configuration variants
# =============================================================================


class AWSPeeringConfiguration(BaseModel):
    """AWS side of a VPC peering connection."""

    model_config = _CONFIG

    accepter_region_name: str = Field("", alias="accepterRegionName")
    aws_account_id: str = Field("", alias="awsAccountId")
    route_table_cidr_block: str = Field("", alias="routeTableCidrBlock")
    vpc_id: str = Field("", alias="vpcId")


class AzurePeeringConfiguration(BaseModel):
    """Azure side of a VNet peering connection."""

    model_config = _CONFIG

    azure_directory_id: str = Field("", alias="azureDirectoryId")
    azure_subscription_id: str = Field("", alias="azureSubscriptionId")
    resource_group_name: str = Field("", alias="resourceGroupName")
    vnet_name: str = Field("", alias="vNetName")


class GCPPeeringConfiguration(BaseModel):
    """Google Cloud side of a VPC network peering."""

    model_config = _CONFIG

    gcp_project_id: str = Field("", alias="gcpProjectId")
    network_name: str = Field("", alias="networkName")


class NetworkPeeringConfig(BaseModel):
    """Provider-agnostic peering configuration.

    The provider is kept as a raw string: an unknown value is reported at
    translation time as an unsupported provider instead of being rejected
    when the YAML is loaded.
    """

    model_config = _CONFIG

    provider: Annotated[str, Field(min_length=1)]
    id: str = ""
    aws_configuration: AWSPeeringConfiguration | None = Field(None, alias="awsConfiguration")
    azure_configuration: AzurePeeringConfiguration | None = Field(
        None, alias="azureConfiguration"
    )
    gcp_configuration: GCPPeeringConfiguration | None = Field(None, alias="gcpConfiguration")

    @model_validator(mode="after")
    def validate_single_provider_config(self) -> NetworkPeeringConfig:
        configured = [
            cfg
            for cfg in (self.aws_configuration, self.azure_configuration, self.gcp_configuration)
            if cfg is not None
        ]
        if len(configured) != 1:
            raise ValueError(
                "exactly one of awsConfiguration, azureConfiguration or gcpConfiguration "
                "must be set"
            )
        return self

    def peering_config(self) -> NetworkPeeringConfig:
        """Return only the peering configuration fields of this model."""
        return NetworkPeeringConfig(
            provider=self.provider,
            id=self.id,
            aws_configuration=self.aws_configuration,
            azure_configuration=self.azure_configuration,
            gcp_configuration=self.gcp_configuration,
        )


# =============================================================================
# References
# =============================================================================


class ContainerReference(BaseModel):
    """Reference to the network container a peering attaches to.

    Either an existing remote container ID, or a local name together with the
    CIDR block (and optionally region) of the container to find or create.
    """

    model_config = _CONFIG

    id: str = ""
    name: str = ""
    cidr_block: str = Field("", alias="cidrBlock")
    region: str = ""

    @field_validator("cidr_block")
    @classmethod
    def validate_cidr(cls, v: str) -> str:
        if v and "/" not in v:
            raise ValueError("cidrBlock must be in CIDR notation (e.g., 192.168.0.0/21)")
        return v

    @model_validator(mode="after")
    def validate_id_or_name(self) -> ContainerReference:
        if bool(self.id) == bool(self.name):
            raise ValueError(
                "must either have a container remote id or local name, but not both (or neither)"
            )
        if self.name and not self.cidr_block:
            raise ValueError("cidrBlock is required when the container is referenced by name")
        return self


class ProjectReference(BaseModel):
    """Reference to the owning project, by remote ID or by name."""

    model_config = _CONFIG

    id: str = ""
    name: str = ""
    connection_secret: str = Field("", alias="connectionSecret")

    @model_validator(mode="after")
    def validate_id_or_name(self) -> ProjectReference:
        if bool(self.id) == bool(self.name):
            raise ValueError("must either have a project id or name, but not both (or neither)")
        return self

    @property
    def is_external(self) -> bool:
        """Projects referenced by ID are not owned locally and need re-validation."""
        return bool(self.id)


class NetworkPeeringSpec(NetworkPeeringConfig):
    """Desired state of a network peering."""

    container_ref: ContainerReference = Field(alias="containerRef")
    project_ref: ProjectReference = Field(alias="projectRef")


# =============================================================================
# Status
# =============================================================================


class ConditionType(str, Enum):
    """Conditions reported on a NetworkPeering."""

    PEERING_READY = "PeeringReady"
    READY = "Ready"


class Condition(BaseModel):
    """A single status condition."""

    model_config = _CONFIG

    type: ConditionType
    status: bool = False
    reason: str = ""
    message: str = ""
    last_transition_time: datetime = Field(
        default_factory=lambda: datetime.now(UTC), alias="lastTransitionTime"
    )


class AWSPeeringStatus(BaseModel):
    model_config = _CONFIG

    connection_id: str = Field("", alias="connectionId")
    vpc_id: str = Field("", alias="vpcId")


class AzurePeeringStatus(BaseModel):
    model_config = _CONFIG

    azure_subscription_id: str = Field("", alias="azureSubscriptionId")
    vnet_name: str = Field("", alias="vnetName")


class GCPPeeringStatus(BaseModel):
    model_config = _CONFIG

    gcp_project_id: str = Field("", alias="gcpProjectId")
    network_name: str = Field("", alias="networkName")


class PeeringStatus(BaseModel):
    """Observed state of a network peering.

    Produced only from remote reads and replaced wholesale by every reconcile.
    """

    model_config = _CONFIG

    id: str = ""
    status: str = ""
    error: str = ""
    aws_status: AWSPeeringStatus | None = Field(None, alias="awsStatus")
    azure_status: AzurePeeringStatus | None = Field(None, alias="azureStatus")
    gcp_status: GCPPeeringStatus | None = Field(None, alias="gcpStatus")
    container_id: str = Field("", alias="containerId")
    container_region: str = Field("", alias="containerRegion")
    container_cidr_block: str = Field("", alias="containerCidrBlock")
    container_provisioned: bool = Field(False, alias="containerProvisioned")
    conditions: tuple[Condition, ...] = ()
    observed_generation: int = Field(0, alias="observedGeneration")

    def get_condition(self, condition_type: ConditionType) -> Condition | None:
        for condition in self.conditions:
            if condition.type == condition_type:
                return condition
        return None


# =============================================================================
# Resource
# =============================================================================


class ResourceMetadata(BaseModel):
    """Identity and lifecycle signals of a resource."""

    model_config = _CONFIG

    name: Annotated[str, Field(min_length=1, max_length=253)]
    namespace: Annotated[str, Field(min_length=1, max_length=63)] = "default"
    annotations: dict[str, str] = Field(default_factory=dict)
    generation: int = 0
    deletion_timestamp: datetime | None = Field(None, alias="deletionTimestamp")

    @field_validator("name", "namespace")
    @classmethod
    def validate_dns_label(cls, v: str) -> str:
        if not all(c.isalnum() or c in "-." for c in v) or v[0] in "-." or v[-1] in "-.":
            raise ValueError(f"must be a DNS subdomain name: {v!r}")
        return v.lower()

    @property
    def key(self) -> str:
        """Unique identity of the resource, used for serialization of reconciles."""
        return f"{self.namespace}/{self.name}"


class NetworkPeering(BaseModel):
    """A declared network peering resource."""

    model_config = _CONFIG

    api_version: str = Field(API_VERSION, alias="apiVersion")
    kind: str = KIND_NETWORK_PEERING
    metadata: ResourceMetadata
    spec: NetworkPeeringSpec
    status: PeeringStatus = Field(default_factory=PeeringStatus)

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, v: str) -> str:
        if v != KIND_NETWORK_PEERING:
            raise ValueError(f"kind must be {KIND_NETWORK_PEERING}")
        return v

    @property
    def deletion_requested(self) -> bool:
        return self.metadata.deletion_timestamp is not None
