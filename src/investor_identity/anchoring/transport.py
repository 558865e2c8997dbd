"""HTTP transport seam for the anchoring network.

The ION client depends on :class:`AnchorTransport`, not on httpx directly,
so tests can plug in a fake that returns canned responses.

Concrete implementations:
    - HttpxTransport (default, uses httpx.AsyncClient)
    - fakes in the test suite

Transport failures surface as :class:`~investor_identity.errors.SubmissionError`;
``unreachable`` is True for connection and timeout failures and False when
the node answered with a non-2xx status.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from investor_identity.errors import SubmissionError

logger = logging.getLogger(__name__)


@runtime_checkable
class AnchorTransport(Protocol):
    """Async transport for the ION node's REST endpoints."""

    async def get_json(self, url: str) -> dict[str, Any]:
        """GET *url* and return the parsed JSON body."""
        ...

    async def post(
        self, url: str, body: bytes, headers: dict[str, str] | None = None
    ) -> dict[str, Any]:
        """POST raw *body* bytes and return the parsed JSON body ({} if empty)."""
        ...


class HttpxTransport:
    """Default transport using httpx.AsyncClient.

    Parameters
    ----------
    timeout:
        Per-request timeout in seconds.
    """

    def __init__(self, timeout: float = 30.0) -> None:
        self._timeout = timeout

    async def get_json(self, url: str) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await self._send(client.get(url), url)
        return _parse(response)

    async def post(
        self, url: str, body: bytes, headers: dict[str, str] | None = None
    ) -> dict[str, Any]:
        request_headers = {"Content-Type": "application/json"}
        request_headers.update(headers or {})
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await self._send(
                client.post(url, content=body, headers=request_headers), url
            )
        return _parse(response)

    @staticmethod
    async def _send(pending: Any, url: str) -> httpx.Response:
        try:
            response: httpx.Response = await pending
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SubmissionError(
                f"{url} answered HTTP {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except httpx.TransportError as exc:
            raise SubmissionError(f"{url} is unreachable: {exc}", unreachable=True) from exc
        return response


def _parse(response: httpx.Response) -> dict[str, Any]:
    if not response.content:
        return {}
    try:
        parsed = response.json()
    except json.JSONDecodeError as exc:
        raise SubmissionError(f"Response from {response.url} is not JSON.") from exc
    if not isinstance(parsed, dict):
        return {"result": parsed}
    return parsed


__all__ = ["AnchorTransport", "HttpxTransport"]
