"""IdentifierBuilder — assemble the document, identifier and create operation.

The builder checks its inputs, delegates derivation to an
identifier-document capability (by default :class:`~investor_identity.did.ion.IonDid`)
and validates the capability's output. It never touches the network.

Example
-------
::

    provider = KeyMaterialProvider()
    builder = IdentifierBuilder()
    built = builder.build("inv-1", WalletAddresses("tb1q...", "0xab...", "4Nd1..."),
                          provider.generate_all())
    built.identity.short_form   # "did:ion:EiB..."
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable

from investor_identity.crypto.keys import KeySet
from investor_identity.did.document import NETWORK_LABELS, IdentifierDocument, WalletAddresses
from investor_identity.did.ion import (
    CREATE_OPERATION_INDEX,
    IdentifierDocumentCapability,
    IonDid,
)
from investor_identity.errors import MalformedOperationError, ValidationError

logger = logging.getLogger(__name__)

_REQUIRED_OPERATION_FIELDS = ("suffixData", "delta")
_SOLANA_ADDRESS = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")

DocumentFactory = Callable[
    [dict[str, object], dict[str, str], dict[str, str]], IdentifierDocumentCapability
]


# ------------------------------------------------------------------
# Identifier strings
# ------------------------------------------------------------------


def derive_short_form(long_form: str) -> str:
    """Return the part of *long_form* before its first ``?``.

    Raises
    ------
    MalformedOperationError
        If *long_form* has no ``?`` separator or nothing precedes it.
    """
    short_form, separator, _ = long_form.partition("?")
    if not separator:
        raise MalformedOperationError(
            f"Long-form identifier has no '?' separator: {long_form[:64]!r}"
        )
    if not short_form:
        raise MalformedOperationError("Long-form identifier has an empty short form.")
    return short_form


@dataclass(frozen=True)
class DIDIdentity:
    """The long-form and short-form strings of one identifier."""

    long_form: str
    short_form: str

    def __post_init__(self) -> None:
        if not self.short_form:
            raise MalformedOperationError("DIDIdentity.short_form must not be empty.")
        if not self.long_form.startswith(self.short_form):
            raise MalformedOperationError("DIDIdentity.long_form must start with its short form.")

    @classmethod
    def from_long_form(cls, long_form: str) -> DIDIdentity:
        return cls(long_form=long_form, short_form=derive_short_form(long_form))

    @property
    def suffix(self) -> str:
        """The trailing segment of the short form, stable once anchored."""
        return self.short_form.rsplit(":", 1)[-1]

    def to_dict(self) -> dict[str, str]:
        return {"longForm": self.long_form, "shortForm": self.short_form}

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> DIDIdentity:
        return cls(long_form=data["longForm"], short_form=data["shortForm"])


# ------------------------------------------------------------------
# Build result
# ------------------------------------------------------------------


@dataclass(frozen=True)
class BuiltIdentifier:
    """Everything :meth:`IdentifierBuilder.build` produces.

    Attributes
    ----------
    document:
        The initial document content.
    identity:
        Long-form and short-form identifier.
    create_operation:
        The create request; carries ``suffixData`` and ``delta``.
    all_operations:
        Every operation the capability generated.
    warnings:
        Non-blocking wallet format warnings.
    """

    document: IdentifierDocument
    identity: DIDIdentity
    create_operation: dict[str, object]
    all_operations: list[dict[str, object]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def __iter__(self):
        # Allows ``document, identity, operation = builder.build(...)``.
        return iter((self.document, self.identity, self.create_operation))


# ------------------------------------------------------------------
# Input checks
# ------------------------------------------------------------------


def require_wallets(wallets: WalletAddresses) -> None:
    """Raise ValidationError naming every missing network."""
    missing = [
        NETWORK_LABELS[chain]
        for chain, address in wallets.items()
        if not isinstance(address, str) or not address.strip()
    ]
    if missing:
        raise ValidationError(
            f"Missing wallet addresses: {', '.join(missing)}.", missing=missing
        )


def wallet_format_warnings(wallets: WalletAddresses) -> list[str]:
    """Return a warning for each address with an unexpected shape."""
    warnings: list[str] = []
    if wallets.bitcoin and not wallets.bitcoin.startswith("tb1"):
        warnings.append(f"{NETWORK_LABELS['bitcoin']} address does not start with 'tb1'.")
    if wallets.ethereum and not wallets.ethereum.startswith("0x"):
        warnings.append(f"{NETWORK_LABELS['ethereum']} address does not start with '0x'.")
    if wallets.solana and not _SOLANA_ADDRESS.match(wallets.solana):
        warnings.append(
            f"{NETWORK_LABELS['solana']} address is not 32-44 base58 characters."
        )
    return warnings


# ------------------------------------------------------------------
# Builder
# ------------------------------------------------------------------


class IdentifierBuilder:
    """Assemble an investor identifier through an identifier-document capability.

    Parameters
    ----------
    document_factory:
        Called as ``factory(content, update_public_key, recovery_public_key)``
        and returning an object with ``to_uri``, ``generate_operation`` and
        ``get_all_operations``. Defaults to :class:`IonDid`.
    """

    def __init__(self, document_factory: DocumentFactory | None = None) -> None:
        self._document_factory: DocumentFactory = document_factory or IonDid

    def build(
        self,
        investor_id: str,
        wallets: WalletAddresses,
        keys: KeySet,
    ) -> BuiltIdentifier:
        """Build the document, identity and create operation.

        Raises
        ------
        ValidationError
            If the investor id or any wallet address is missing.
        MalformedOperationError
            If the capability returns an operation without ``suffixData``
            or ``delta``, or an identifier without a ``?`` separator.
        """
        if not investor_id or not investor_id.strip():
            raise ValidationError("Investor id is required.", missing=["INVESTOR_ID"])
        require_wallets(wallets)
        warnings = wallet_format_warnings(wallets)
        for warning in warnings:
            logger.warning("Wallet format: %s", warning)

        document = IdentifierDocument.for_investor(
            investor_id, wallets, keys.authentication.public_key
        )
        capability = self._document_factory(
            document.to_content(), keys.update.public_key, keys.recovery.public_key
        )

        create_operation = capability.generate_operation(CREATE_OPERATION_INDEX)
        _check_operation(create_operation)
        identity = DIDIdentity.from_long_form(capability.to_uri())
        all_operations = capability.get_all_operations()

        logger.info("Built identifier %s for investor %r", identity.short_form, investor_id)
        return BuiltIdentifier(
            document=document,
            identity=identity,
            create_operation=create_operation,
            all_operations=all_operations,
            warnings=warnings,
        )


def _check_operation(operation: object) -> None:
    if not isinstance(operation, dict):
        raise MalformedOperationError(
            f"Create operation must be a mapping, got {type(operation).__name__}."
        )
    missing = [name for name in _REQUIRED_OPERATION_FIELDS if operation.get(name) is None]
    if missing:
        raise MalformedOperationError(
            f"Create operation is missing required field(s): {', '.join(missing)}."
        )


__all__ = [
    "BuiltIdentifier",
    "DIDIdentity",
    "DocumentFactory",
    "IdentifierBuilder",
    "derive_short_form",
    "require_wallets",
    "wallet_format_warnings",
]
