"""Write identifier and anchoring results back to the ``.env`` file.

Other tooling reads these keys (``DID_SHORT_FORM``, ``BITCOIN_TX_HASH`` ...)
from the same file the pipeline reads its configuration from.
"""
from __future__ import annotations

import logging
from pathlib import Path

from dotenv import set_key

from investor_identity.errors import PersistenceError

logger = logging.getLogger(__name__)


def update_env_file(path: Path, values: dict[str, str]) -> list[str]:
    """Set each key in *values* in the env file at *path*.

    Keys already present are replaced in place; new keys are appended.
    The file is created if it does not exist.

    Returns
    -------
    list[str]
        The keys written.

    Raises
    ------
    PersistenceError
        If the file cannot be created or written.
    """
    written: list[str] = []
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch(exist_ok=True)
        for key, value in values.items():
            set_key(str(path), key, value, quote_mode="never")
            written.append(key)
    except OSError as exc:
        raise PersistenceError(f"Could not update {path}: {exc}") from exc
    logger.debug("Updated %d key(s) in %s", len(written), path)
    return written


__all__ = ["update_env_file"]
