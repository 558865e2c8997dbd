"""Checkpoint storage — abstract interface and filesystem implementation.

CheckpointStore defines the storage contract. FilesystemCheckpointStore
persists one JSON file per save under a configurable base directory,
organized by investor and stage::

    <base_dir>/<investor_id>/<stage>/<investor_id>-2026-01-31T12-00-00-000000Z.json

The file name repeats the investor id so a record copied out of its
directory still says whose it is. Saves are append-only. The record with
the greatest timestamp for a stage is authoritative.
"""
from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

from investor_identity.errors import CheckpointNotFoundError, PersistenceError

logger = logging.getLogger(__name__)

STAMP_FORMAT = "%Y-%m-%dT%H-%M-%S-%fZ"


class Stage:
    """Checkpoint stage names."""

    IDENTIFIER = "identifier"
    KEYS = "keys"
    PUBLIC = "public"
    SUBMISSION = "submission"
    TRANSACTION = "transaction"
    CONFIRMATION = "confirmation"
    ANCHORING = "anchoring"


class CheckpointStore(ABC):
    """Abstract base class for checkpoint storage backends."""

    @abstractmethod
    def save(self, stage: str, investor_id: str, payload: dict[str, Any]) -> Path:
        """Append a new checkpoint.

        Parameters
        ----------
        stage:
            Pipeline stage name.
        investor_id:
            The investor the checkpoint belongs to.
        payload:
            JSON-serializable stage output.

        Returns
        -------
        Path
            Where the record was written.

        Raises
        ------
        PersistenceError
            If the record cannot be written.
        """

    @abstractmethod
    def load_latest(self, stage: str, investor_id: str) -> dict[str, Any]:
        """Return the payload of the most recent checkpoint.

        Raises
        ------
        CheckpointNotFoundError
            If nothing was saved for *stage* and *investor_id*.
        """

    @abstractmethod
    def history(self, stage: str, investor_id: str) -> list[Path]:
        """Return every checkpoint for *stage* and *investor_id*, oldest first."""

    def exists(self, stage: str, investor_id: str) -> bool:
        """Return True if at least one checkpoint exists."""
        return bool(self.history(stage, investor_id))


class FilesystemCheckpointStore(CheckpointStore):
    """Filesystem-backed checkpoint storage.

    Parameters
    ----------
    base_dir:
        Root directory for checkpoints.
    now:
        UTC clock used to stamp records.
    """

    def __init__(
        self,
        base_dir: Path,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._base_dir = Path(base_dir)
        self._now = now
        self._lock = threading.Lock()
        self._last_stamp: datetime | None = None

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    # ------------------------------------------------------------------
    # CheckpointStore interface
    # ------------------------------------------------------------------

    def save(self, stage: str, investor_id: str, payload: dict[str, Any]) -> Path:
        """Write a new timestamped record for *stage*."""
        with self._lock:
            saved_at = self._next_stamp()
            stage_dir = self._stage_dir(stage, investor_id)
            name = f"{_safe_name(investor_id)}-{saved_at.strftime(STAMP_FORMAT)}.json"
            path = stage_dir / name
            record = {
                "stage": stage,
                "investor_id": investor_id,
                "saved_at": saved_at.isoformat(),
                "payload": payload,
            }
            try:
                stage_dir.mkdir(parents=True, exist_ok=True)
                path.write_text(json.dumps(record, indent=2), encoding="utf-8")
            except (OSError, TypeError, ValueError) as exc:
                raise PersistenceError(
                    f"Could not write {stage!r} checkpoint for {investor_id!r}: {exc}"
                ) from exc
        logger.debug("Saved %s checkpoint %s", stage, path)
        return path

    def load_latest(self, stage: str, investor_id: str) -> dict[str, Any]:
        records = self.history(stage, investor_id)
        if not records:
            raise CheckpointNotFoundError(stage, investor_id)
        latest = records[-1]
        try:
            record = json.loads(latest.read_text(encoding="utf-8"))
            payload = record["payload"]
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Could not read checkpoint {latest}: {exc}") from exc
        except (KeyError, TypeError) as exc:
            raise PersistenceError(f"Checkpoint {latest} is not a checkpoint record.") from exc
        if not isinstance(payload, dict):
            raise PersistenceError(f"Checkpoint {latest} has no payload object.")
        return payload

    def history(self, stage: str, investor_id: str) -> list[Path]:
        stage_dir = self._stage_dir(stage, investor_id)
        if not stage_dir.is_dir():
            return []
        return sorted(stage_dir.glob("*.json"), key=lambda p: p.name)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _next_stamp(self) -> datetime:
        stamp = self._now()
        if self._last_stamp is not None and stamp <= self._last_stamp:
            stamp = self._last_stamp + timedelta(microseconds=1)
        self._last_stamp = stamp
        return stamp

    def _stage_dir(self, stage: str, investor_id: str) -> Path:
        return self._base_dir / _safe_name(investor_id) / stage


def _safe_name(investor_id: str) -> str:
    return investor_id.replace("/", "_").replace("\\", "_")


__all__ = [
    "STAMP_FORMAT",
    "CheckpointStore",
    "FilesystemCheckpointStore",
    "Stage",
]
