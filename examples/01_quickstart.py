#!/usr/bin/env python3
"""Example: Quickstart

Demonstrates building an investor's did:ion identifier offline with the
InvestorIdentity convenience class. No anchoring or settlement happens here;
use ``investor-identity run`` for the full lifecycle.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install investor-identity
"""
from __future__ import annotations

import investor_identity
from investor_identity import InvestorIdentity


def main() -> None:
    print(f"investor-identity version: {investor_identity.__version__}")

    # Step 1: Generate keys and build the identifier
    identity = InvestorIdentity.create(
        "quickstart-investor",
        btc="tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx",
        eth="0x742d35Cc6634C0532925a3b844Bc454e4438f44e",
        sol="7EcDhSYGxXyscszYEp35KHN8vvw3svAuLKTzXwCFLtV",
    )
    print(f"Short form: {identity.short_form}")
    print(f"Long form:  {identity.long_form[:60]}...")

    # Step 2: Inspect the create operation that would be anchored
    operation = identity.create_operation
    print(f"Operation type: {operation['type']}")

    for warning in identity.warnings:
        print(f"Warning: {warning}")

    print("\nQuickstart complete.")


if __name__ == "__main__":
    main()
