"""Fake HTTP transport for the API client.

Stands in for azure-core's PipelineClient: responses are queued up front and
every request sent is recorded for assertions.
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import parse_qs, urlsplit

from peering_operator.client import NetworkingAPIError


class FakeResponse:
    """Minimal HTTP response with the surface the client reads."""

    def __init__(self, status_code: int = 200, body: Any = None, reason: str = "") -> None:
        self.status_code = status_code
        self.reason = reason or ("OK" if status_code < 400 else "Error")
        self._body = body
        self.headers: dict[str, str] = {}

    def text(self) -> str:
        if self._body is None:
            return ""
        if isinstance(self._body, str):
            return self._body
        return json.dumps(self._body)

    def json(self) -> Any:
        return json.loads(self.text())


class FakePipelineClient:
    """Queue-driven replacement for PipelineClient.send_request."""

    def __init__(self, responses: list[FakeResponse] | None = None) -> None:
        self._responses = list(responses or [])
        self.requests: list[Any] = []
        self.send_kwargs: list[dict[str, Any]] = []
        self.closed = False

    def queue(self, *responses: FakeResponse) -> None:
        self._responses.extend(responses)

    def send_request(self, request: Any, **kwargs: Any) -> FakeResponse:
        self.requests.append(request)
        self.send_kwargs.append(kwargs)
        if not self._responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        return self._responses.pop(0)

    def close(self) -> None:
        self.closed = True

    # Helpers for assertions

    @property
    def last_request(self) -> Any:
        return self.requests[-1]

    def path_of(self, index: int = -1) -> str:
        return urlsplit(self.requests[index].url).path

    def query_of(self, index: int = -1) -> dict[str, str]:
        query = parse_qs(urlsplit(self.requests[index].url).query)
        return {k: v[0] for k, v in query.items()}

    def body_of(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


def api_error(status_code: int, error_code: str = "", detail: str = "") -> NetworkingAPIError:
    """Build the error the client raises for an error response."""
    body: dict[str, Any] = {}
    if error_code:
        body["errorCode"] = error_code
    if detail:
        body["detail"] = detail
    response = FakeResponse(status_code, body or None)
    message = f"request returned {status_code}"
    if error_code:
        message += f" {error_code}"
    return NetworkingAPIError(message=message, response=response, error_code=error_code)
