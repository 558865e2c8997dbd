"""Test that the 3-line quickstart API works for investor-identity."""
from __future__ import annotations

import pytest

BTC = "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx"
ETH = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
SOL = "7EcDhSYGxXyscszYEp35KHN8vvw3svAuLKTzXwCFLtV"


def test_quickstart_import() -> None:
    from investor_identity import InvestorIdentity

    identity = InvestorIdentity.create("inv-1", btc=BTC, eth=ETH, sol=SOL)
    assert identity is not None


def test_quickstart_short_form() -> None:
    from investor_identity import InvestorIdentity

    identity = InvestorIdentity.create("inv-1", btc=BTC, eth=ETH, sol=SOL)
    assert identity.short_form.startswith("did:ion:")
    assert identity.long_form.startswith(identity.short_form + "?-ion-initial-state=")


def test_quickstart_create_operation() -> None:
    from investor_identity import InvestorIdentity

    identity = InvestorIdentity.create("inv-1", btc=BTC, eth=ETH, sol=SOL)
    assert identity.create_operation["type"] == "create"
    assert identity.warnings == []


def test_quickstart_warns_on_unexpected_address() -> None:
    from investor_identity import InvestorIdentity

    identity = InvestorIdentity.create("inv-1", btc="bc1qmainnet", eth=ETH, sol=SOL)
    assert len(identity.warnings) == 1


def test_quickstart_rejects_missing_wallet() -> None:
    from investor_identity import InvestorIdentity, ValidationError

    with pytest.raises(ValidationError):
        InvestorIdentity.create("inv-1", btc=BTC, eth="", sol=SOL)


def test_quickstart_repr() -> None:
    from investor_identity import InvestorIdentity

    identity = InvestorIdentity.create("inv-1", btc=BTC, eth=ETH, sol=SOL)
    assert "inv-1" in repr(identity)
