"""Convenience API for investor-identity — 3-line quickstart.

Example
-------
::

    from investor_identity import InvestorIdentity
    identity = InvestorIdentity.create("inv-1", btc="tb1q...", eth="0xab...", sol="4Nd1...")
    print(identity.short_form)

"""
from __future__ import annotations

from investor_identity.crypto.keys import KeyMaterialProvider, KeySet
from investor_identity.did.builder import BuiltIdentifier, IdentifierBuilder
from investor_identity.did.document import WalletAddresses


class InvestorIdentity:
    """Offline identifier creation for the common case.

    Generates fresh secp256k1 keys and builds the ``did:ion`` identifier
    without checkpoints, anchoring or settlement. Use
    :class:`~investor_identity.pipeline.DIDLifecyclePipeline` for the full
    lifecycle.
    """

    def __init__(self, investor_id: str, keys: KeySet, built: BuiltIdentifier) -> None:
        self._investor_id = investor_id
        self._keys = keys
        self._built = built

    @classmethod
    def create(cls, investor_id: str, btc: str, eth: str, sol: str) -> InvestorIdentity:
        """Generate keys and build the identifier for *investor_id*.

        Raises
        ------
        ValidationError
            If the investor id or any wallet address is empty.
        """
        keys = KeyMaterialProvider().generate_all()
        built = IdentifierBuilder().build(
            investor_id, WalletAddresses(bitcoin=btc, ethereum=eth, solana=sol), keys
        )
        return cls(investor_id, keys, built)

    @property
    def investor_id(self) -> str:
        return self._investor_id

    @property
    def long_form(self) -> str:
        return self._built.identity.long_form

    @property
    def short_form(self) -> str:
        return self._built.identity.short_form

    @property
    def keys(self) -> KeySet:
        return self._keys

    @property
    def create_operation(self) -> dict[str, object]:
        return self._built.create_operation

    @property
    def warnings(self) -> list[str]:
        """Wallet format warnings raised while building."""
        return list(self._built.warnings)

    def __repr__(self) -> str:
        return f"InvestorIdentity(investor_id={self._investor_id!r}, short_form={self.short_form!r})"


__all__ = ["InvestorIdentity"]
