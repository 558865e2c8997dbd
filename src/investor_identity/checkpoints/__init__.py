"""investor_identity.checkpoints — append-only per-stage checkpoint storage."""
from __future__ import annotations

from investor_identity.checkpoints.store import (
    STAMP_FORMAT,
    CheckpointStore,
    FilesystemCheckpointStore,
    Stage,
)

__all__ = ["STAMP_FORMAT", "CheckpointStore", "FilesystemCheckpointStore", "Stage"]
