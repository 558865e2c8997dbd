"""IonDid — Sidetree create-operation derivation for the ``did:ion`` method.

This is the default identifier-document capability. Given document
content and the update and recovery public keys it derives:

* ``delta``        — ``{"patches": [{"action": "replace", "document": ...}],
  "updateCommitment": ...}``
* ``suffixData``   — ``{"deltaHash": ..., "recoveryCommitment": ...}``
* the DID suffix   — multihash of the canonical ``suffixData``
* the long-form URI::

      did:ion:<suffix>?-ion-initial-state=<base64url(JCS({suffixData, delta}))>

Commitments are computed over the canonical public JWK with a double
SHA-256 (the second wrapped as a multihash). Only the create operation
(index 0) is supported; update, recover and deactivate are out of scope.

Specification reference
-----------------------
https://identity.foundation/sidetree/spec/#create
"""
from __future__ import annotations

import copy
from typing import Protocol, runtime_checkable

from investor_identity.crypto.encoding import (
    base64url_encode,
    canonical_json_bytes,
    canonicalize_then_double_hash_then_encode,
    canonicalize_then_hash_then_encode,
)

ION_METHOD_PREFIX: str = "did:ion:"
INITIAL_STATE_PARAM: str = "-ion-initial-state"
CREATE_OPERATION_INDEX: int = 0


@runtime_checkable
class IdentifierDocumentCapability(Protocol):
    """What the identifier builder needs from a DID-method implementation."""

    def to_uri(self) -> str:
        """Return the long-form identifier."""
        ...

    def generate_operation(self, index: int) -> dict[str, object]:
        """Return operation *index* (0 is the create operation)."""
        ...

    def get_all_operations(self) -> list[dict[str, object]]:
        """Return every operation generated so far."""
        ...


class IonDid:
    """Derive ``did:ion`` identifiers and the create operation.

    Parameters
    ----------
    content:
        Sidetree document content (``publicKeys`` and ``services``).
    update_public_key:
        Public JWK whose commitment authorizes the first update.
    recovery_public_key:
        Public JWK whose commitment authorizes recovery.
    """

    def __init__(
        self,
        content: dict[str, object],
        update_public_key: dict[str, str],
        recovery_public_key: dict[str, str],
    ) -> None:
        self._content = copy.deepcopy(content)
        self._update_public_key = dict(update_public_key)
        self._recovery_public_key = dict(recovery_public_key)
        self._operations: list[dict[str, object]] = []

    # ------------------------------------------------------------------
    # Sidetree pieces
    # ------------------------------------------------------------------

    def delta(self) -> dict[str, object]:
        return {
            "patches": [{"action": "replace", "document": copy.deepcopy(self._content)}],
            "updateCommitment": canonicalize_then_double_hash_then_encode(
                self._update_public_key
            ),
        }

    def suffix_data(self) -> dict[str, str]:
        return {
            "deltaHash": canonicalize_then_hash_then_encode(self.delta()),
            "recoveryCommitment": canonicalize_then_double_hash_then_encode(
                self._recovery_public_key
            ),
        }

    def suffix(self) -> str:
        """Return the unique DID suffix."""
        return canonicalize_then_hash_then_encode(self.suffix_data())

    # ------------------------------------------------------------------
    # Capability interface
    # ------------------------------------------------------------------

    def to_uri(self) -> str:
        initial_state = {"suffixData": self.suffix_data(), "delta": self.delta()}
        encoded = base64url_encode(canonical_json_bytes(initial_state))
        return f"{ION_METHOD_PREFIX}{self.suffix()}?{INITIAL_STATE_PARAM}={encoded}"

    def generate_operation(self, index: int) -> dict[str, object]:
        """Return the operation at *index*.

        Raises
        ------
        IndexError
            For any index other than the create operation.
        """
        if index != CREATE_OPERATION_INDEX:
            raise IndexError(f"Only the create operation (index 0) is supported, got {index}.")
        if not self._operations:
            self._operations.append(
                {"type": "create", "suffixData": self.suffix_data(), "delta": self.delta()}
            )
        return copy.deepcopy(self._operations[index])

    def get_all_operations(self) -> list[dict[str, object]]:
        if not self._operations:
            self.generate_operation(CREATE_OPERATION_INDEX)
        return copy.deepcopy(self._operations)


__all__ = [
    "CREATE_OPERATION_INDEX",
    "INITIAL_STATE_PARAM",
    "ION_METHOD_PREFIX",
    "IdentifierDocumentCapability",
    "IonDid",
]
