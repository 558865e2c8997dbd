"""investor_identity.did — investor ``did:ion`` document and identifier derivation.

Submodules
----------
document
    IdentifierDocument, PublicKeyEntry, ServiceEntry, WalletAddresses.
ion
    IonDid, the Sidetree create-operation capability.
builder
    IdentifierBuilder, DIDIdentity and the short-form derivation.

Quick start
-----------
::

    from investor_identity.crypto import KeyMaterialProvider
    from investor_identity.did import IdentifierBuilder, WalletAddresses

    keys = KeyMaterialProvider().generate_all()
    built = IdentifierBuilder().build(
        "inv-1", WalletAddresses("tb1q...", "0xab...", "4Nd1..."), keys
    )
    print(built.identity.short_form)
"""
from __future__ import annotations

from investor_identity.did.builder import (
    BuiltIdentifier,
    DIDIdentity,
    IdentifierBuilder,
    derive_short_form,
    require_wallets,
    wallet_format_warnings,
)
from investor_identity.did.document import (
    NETWORK_LABELS,
    IdentifierDocument,
    PublicKeyEntry,
    ServiceEntry,
    WalletAddresses,
)
from investor_identity.did.ion import IdentifierDocumentCapability, IonDid

__all__ = [
    "NETWORK_LABELS",
    "BuiltIdentifier",
    "DIDIdentity",
    "IdentifierBuilder",
    "IdentifierDocument",
    "IdentifierDocumentCapability",
    "IonDid",
    "PublicKeyEntry",
    "ServiceEntry",
    "WalletAddresses",
    "derive_short_form",
    "require_wallets",
    "wallet_format_warnings",
]
