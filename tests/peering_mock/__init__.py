"""Networking API Mock for Integration Testing.

This module provides an in-memory implementation of the project, peering and
container services that enables reconcile testing without a remote API.

Key Features:
- In-memory state for projects, peering connections and containers
- Peer lifecycle simulation (initiating → available, deletion → deleting)
- Error injection for testing failure scenarios
- Call recording for asserting on remote mutations
- Fake HTTP pipeline for exercising the API client and HTTP services

Usage:
    from peering_mock import MockNetworkingAPI

    api = MockNetworkingAPI()
    api.add_project("proj-1", "my-project")
    reconciler = PeeringReconciler(config, api, api, api)
    result = reconciler.reconcile(resource)

    assert api.mutation_count == 2
"""

from .api import MockNetworkingAPI
from .resources import make_peering, peering_manifest
from .transport import FakePipelineClient, FakeResponse, api_error

__all__ = [
    "FakePipelineClient",
    "FakeResponse",
    "MockNetworkingAPI",
    "api_error",
    "make_peering",
    "peering_manifest",
]
