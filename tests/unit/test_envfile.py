"""Tests for investor_identity.envfile — update_env_file."""
from __future__ import annotations

from pathlib import Path

import pytest
from dotenv import dotenv_values

from investor_identity.envfile import update_env_file
from investor_identity.errors import PersistenceError


class TestUpdateEnvFile:
    def test_creates_missing_file(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / ".env"
        written = update_env_file(path, {"DID_SHORT_FORM": "did:ion:EiA"})
        assert written == ["DID_SHORT_FORM"]
        assert dotenv_values(path)["DID_SHORT_FORM"] == "did:ion:EiA"

    def test_replaces_existing_and_keeps_others(self, tmp_path: Path) -> None:
        path = tmp_path / ".env"
        path.write_text("INVESTOR_ID=inv-1\nDID_ANCHORED=false\n", encoding="utf-8")

        update_env_file(path, {"DID_ANCHORED": "true", "BITCOIN_TX_HASH": "abc"})

        values = dotenv_values(path)
        assert values["INVESTOR_ID"] == "inv-1"
        assert values["DID_ANCHORED"] == "true"
        assert values["BITCOIN_TX_HASH"] == "abc"
        assert path.read_text(encoding="utf-8").count("DID_ANCHORED") == 1

    def test_unwritable_path_is_persistence_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        with pytest.raises(PersistenceError):
            update_env_file(blocker / ".env", {"A": "1"})
