"""IonAnchorClient — submit Sidetree operations to an ION node.

Two submission paths are exposed:

* :meth:`IonAnchorClient.anchor` — the proof-of-work gated path: fetch a
  challenge, solve it, then POST the operation with ``Challenge-Nonce`` and
  ``Answer-Nonce`` headers.
* :meth:`IonAnchorClient.post_operation` — a raw POST of the serialized
  operation to the same solution endpoint, without proof of work.

The acknowledgment returned by the node is passed back unverified.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Callable, Protocol, runtime_checkable

from investor_identity.anchoring.pow import Challenge, solve
from investor_identity.anchoring.transport import AnchorTransport, HttpxTransport

logger = logging.getLogger(__name__)


@runtime_checkable
class AnchorNetwork(Protocol):
    """The anchoring-network capability consumed by the submitter."""

    async def anchor(self, operation: dict[str, Any]) -> dict[str, Any]:
        """Submit *operation* through the challenge/solution flow."""
        ...

    async def post_operation(self, operation: dict[str, Any]) -> dict[str, Any]:
        """POST *operation* directly to the solution endpoint."""
        ...


def serialize_operation(operation: dict[str, Any]) -> bytes:
    """Return the exact request body sent to the node."""
    return json.dumps(operation, separators=(",", ":")).encode("utf-8")


class IonAnchorClient:
    """Client for one ION node's challenge and solution endpoints.

    Parameters
    ----------
    challenge_endpoint:
        URL of the proof-of-work challenge endpoint.
    solution_endpoint:
        URL of the operation submission endpoint.
    transport:
        HTTP transport. Defaults to :class:`HttpxTransport`.
    clock:
        Monotonic clock used to bound the proof-of-work search.
    """

    def __init__(
        self,
        challenge_endpoint: str,
        solution_endpoint: str,
        transport: AnchorTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.challenge_endpoint = challenge_endpoint
        self.solution_endpoint = solution_endpoint
        self._transport: AnchorTransport = transport or HttpxTransport()
        self._clock = clock

    async def anchor(self, operation: dict[str, Any]) -> dict[str, Any]:
        body = serialize_operation(operation)
        challenge = Challenge.from_response(
            await self._transport.get_json(self.challenge_endpoint)
        )
        logger.debug(
            "Solving proof-of-work challenge (valid %.0f min)",
            challenge.valid_duration_minutes,
        )
        answer_nonce = await asyncio.to_thread(solve, challenge, body, self._clock)
        return await self._transport.post(
            self.solution_endpoint,
            body,
            headers={
                "Challenge-Nonce": challenge.challenge_nonce,
                "Answer-Nonce": answer_nonce,
            },
        )

    async def post_operation(self, operation: dict[str, Any]) -> dict[str, Any]:
        return await self._transport.post(self.solution_endpoint, serialize_operation(operation))


__all__ = ["AnchorNetwork", "IonAnchorClient", "serialize_operation"]
