"""HTTP session for the networking API.

Built on the azure-core pipeline: authentication, retries and the user agent
are pipeline policies, and every request carries explicit connection and read
timeouts so that a hung remote cannot stall a reconcile indefinitely.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from azure.core import PipelineClient
from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import HttpResponseError
from azure.core.pipeline.policies import (
    AzureKeyCredentialPolicy,
    HeadersPolicy,
    RetryPolicy,
    UserAgentPolicy,
)
from azure.core.rest import HttpRequest

from .config import MAX_LIST_PAGES, Config

logger = logging.getLogger(__name__)

API_PREFIX = "/api/atlas/v2"
API_MEDIA_TYPE = "application/vnd.atlas.2023-01-01+json"
USER_AGENT = "peering-operator/0.1.0"

DEFAULT_PAGE_SIZE = 500
MAX_RETRIES = 3

# Connection establishment gets a fraction of the request budget
CONNECT_TIMEOUT_SECONDS = 10


class NetworkingAPIError(HttpResponseError):
    """An error response from the networking API.

    ``error_code`` carries the API's symbolic error code (e.g.
    ``PEER_NOT_FOUND``) when the response body provided one.
    """

    def __init__(
        self,
        message: str | None = None,
        response: Any = None,
        *,
        error_code: str = "",
        **kwargs: Any,
    ) -> None:
        self.error_code = error_code
        super().__init__(message=message, response=response, **kwargs)


def _error_from_response(response: Any, method: str, path: str) -> NetworkingAPIError:
    error_code = ""
    detail = ""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error_code = str(body.get("errorCode") or "")
        detail = str(body.get("detail") or body.get("reason") or "")
    message = f"{method} {path} returned {response.status_code}"
    if error_code:
        message += f" {error_code}"
    if detail:
        message += f": {detail}"
    return NetworkingAPIError(message=message, response=response, error_code=error_code)


class ApiClient:
    """Thin JSON client over an azure-core PipelineClient.

    Args:
        base_url: API origin, e.g. https://cloud.mongodb.com.
        access_token: Bearer token; omitted from requests when empty.
        request_timeout: Read timeout in seconds for each request.
        pipeline_client: Pre-built client, used by tests to fake transport.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str = "",
        *,
        request_timeout: int = 30,
        pipeline_client: Any = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._request_timeout = request_timeout
        if pipeline_client is None:
            policies: list[Any] = [
                HeadersPolicy({"Accept": API_MEDIA_TYPE, "Content-Type": API_MEDIA_TYPE}),
                UserAgentPolicy(base_user_agent=USER_AGENT),
                RetryPolicy(retry_total=MAX_RETRIES),
            ]
            if access_token:
                policies.append(
                    AzureKeyCredentialPolicy(
                        AzureKeyCredential(access_token), "Authorization", prefix="Bearer"
                    )
                )
            pipeline_client = PipelineClient(base_url=self._base_url, policies=policies)
        self._client = pipeline_client

    @classmethod
    def from_config(cls, config: Config) -> ApiClient:
        return cls(
            config.api_base_url,
            config.api_access_token,
            request_timeout=config.request_timeout_seconds,
        )

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Args:
            method: HTTP method.
            path: Path below the API prefix, e.g. ``/groups/{id}/peers``.
            params: Query parameters.
            json: Request body.

        Returns:
            Decoded JSON body, or None for empty responses.

        Raises:
            NetworkingAPIError: For any non-2xx response.
            azure.core.exceptions.AzureError: For transport failures.
        """
        url = f"{self._base_url}{API_PREFIX}{path}"
        request = HttpRequest(method, url, params=params, json=json)
        logger.debug("API request", extra={"method": method, "path": path})

        response = self._client.send_request(
            request,
            connection_timeout=min(CONNECT_TIMEOUT_SECONDS, self._request_timeout),
            read_timeout=self._request_timeout,
        )
        if not 200 <= response.status_code < 300:
            raise _error_from_response(response, method, path)
        if response.status_code == 204 or not response.text():
            return None
        return response.json()

    def paginate(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Iterator[dict[str, Any]]:
        """Iterate over every item of a paged list endpoint.

        Stops at the reported total, on a short page, or after MAX_LIST_PAGES.
        """
        seen = 0
        for page_num in range(1, MAX_LIST_PAGES + 1):
            query = {**(params or {}), "itemsPerPage": page_size, "pageNum": page_num}
            body = self.request("GET", path, params=query) or {}
            results = body.get("results") or []
            yield from results
            seen += len(results)
            total = body.get("totalCount")
            if len(results) < page_size or (total is not None and seen >= total):
                return
        logger.warning(
            "List truncated at page limit",
            extra={"path": path, "max_pages": MAX_LIST_PAGES, "items": seen},
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ApiClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
