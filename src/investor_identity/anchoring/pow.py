"""Proof-of-work solver for ION node submission.

The node hands out a challenge::

    {"challengeNonce": "<hex>", "largestAllowedHash": "<hex>",
     "validDurationInMinutes": 10}

A valid answer is a random hex nonce such that::

    argon2id(secret=answer_nonce_bytes + request_body,
             salt=challenge_nonce_bytes,
             time_cost=1, memory_cost=1000, parallelism=1, hash_len=32)

read as a big-endian integer is no larger than ``largestAllowedHash``.
The search gives up once the challenge's valid duration has elapsed.
"""
from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Callable

from argon2.low_level import Type, hash_secret_raw

from investor_identity.errors import SubmissionError

logger = logging.getLogger(__name__)

ARGON2_TIME_COST = 1
ARGON2_MEMORY_COST = 1000
ARGON2_PARALLELISM = 1
ARGON2_HASH_LEN = 32
ANSWER_NONCE_BYTES = 32


@dataclass(frozen=True)
class Challenge:
    """A proof-of-work challenge issued by the ION node."""

    challenge_nonce: str
    largest_allowed_hash: str
    valid_duration_minutes: float

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> Challenge:
        """Parse the challenge endpoint's JSON body.

        Raises
        ------
        SubmissionError
            If a field is missing or not hex where hex is required.
        """
        try:
            challenge = cls(
                challenge_nonce=str(data["challengeNonce"]),
                largest_allowed_hash=str(data["largestAllowedHash"]),
                valid_duration_minutes=float(data["validDurationInMinutes"]),
            )
            bytes.fromhex(challenge.challenge_nonce)
            int(challenge.largest_allowed_hash, 16)
        except (KeyError, TypeError, ValueError) as exc:
            raise SubmissionError(f"Malformed proof-of-work challenge: {exc}") from exc
        return challenge


def answer_hash(answer_nonce: str, body: bytes, challenge_nonce: str) -> str:
    """Return the hex Argon2id hash of one candidate answer."""
    return hash_secret_raw(
        secret=bytes.fromhex(answer_nonce) + body,
        salt=bytes.fromhex(challenge_nonce),
        time_cost=ARGON2_TIME_COST,
        memory_cost=ARGON2_MEMORY_COST,
        parallelism=ARGON2_PARALLELISM,
        hash_len=ARGON2_HASH_LEN,
        type=Type.ID,
    ).hex()


def solve(
    challenge: Challenge,
    body: bytes,
    clock: Callable[[], float] = time.monotonic,
) -> str:
    """Search for an answer nonce satisfying *challenge*.

    Returns
    -------
    str
        The hex answer nonce.

    Raises
    ------
    SubmissionError
        If no answer is found within the challenge's valid duration.
    """
    target = int(challenge.largest_allowed_hash, 16)
    deadline = clock() + challenge.valid_duration_minutes * 60
    attempts = 0
    while True:
        attempts += 1
        nonce = secrets.token_hex(ANSWER_NONCE_BYTES)
        if int(answer_hash(nonce, body, challenge.challenge_nonce), 16) <= target:
            logger.debug("Proof of work solved after %d attempt(s)", attempts)
            return nonce
        if clock() >= deadline:
            raise SubmissionError(
                f"Proof-of-work challenge expired after {attempts} attempt(s)."
            )


__all__ = ["Challenge", "answer_hash", "solve"]
