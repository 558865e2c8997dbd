"""EventLog — structured, leveled pipeline events.

Each stage emits ``stage_start`` and ``stage_result`` events, plus ``error``
and ``advisory`` events as they occur. Events are kept in memory for
inspection, optionally appended as JSON lines to a file, and mirrored to
the standard :mod:`logging` tree at the event's level.
"""
from __future__ import annotations

import datetime
import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

STAGE_START = "stage_start"
STAGE_RESULT = "stage_result"
ERROR = "error"
ADVISORY = "advisory"


@dataclass(frozen=True)
class PipelineEvent:
    """A single pipeline event.

    Parameters
    ----------
    kind:
        One of ``stage_start``, ``stage_result``, ``error``, ``advisory``.
    stage:
        The stage that emitted the event.
    level:
        A :mod:`logging` level.
    details:
        Arbitrary key-value metadata about the event.
    timestamp:
        UTC datetime of the event. Defaults to now.
    """

    kind: str
    stage: str
    level: int = logging.INFO
    details: dict[str, object] = field(default_factory=dict)
    timestamp: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary suitable for JSON encoding."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind,
            "stage": self.stage,
            "level": logging.getLevelName(self.level),
            "details": self.details,
        }


class EventLog:
    """Append-only, thread-safe pipeline event log.

    Parameters
    ----------
    log_path:
        Optional JSONL file every event is appended to. Parent directories
        are created automatically.
    """

    def __init__(self, log_path: Path | None = None) -> None:
        self._log_path = log_path
        self._events: list[PipelineEvent] = []
        self._lock = threading.Lock()

        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    def emit(self, event: PipelineEvent) -> PipelineEvent:
        """Record *event* and mirror it to logging."""
        with self._lock:
            self._events.append(event)
            if self._log_path is not None:
                line = json.dumps(event.to_dict(), separators=(",", ":"), default=str)
                with self._log_path.open("a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
        logger.log(event.level, "[%s] %s %s", event.stage, event.kind, event.details)
        return event

    def stage_start(self, stage: str, **details: object) -> PipelineEvent:
        return self.emit(PipelineEvent(STAGE_START, stage, logging.INFO, dict(details)))

    def stage_result(self, stage: str, **details: object) -> PipelineEvent:
        return self.emit(PipelineEvent(STAGE_RESULT, stage, logging.INFO, dict(details)))

    def error(self, stage: str, message: str, **details: object) -> PipelineEvent:
        return self.emit(
            PipelineEvent(ERROR, stage, logging.ERROR, {"message": message, **details})
        )

    def advisory(self, stage: str, message: str, **details: object) -> PipelineEvent:
        return self.emit(
            PipelineEvent(ADVISORY, stage, logging.WARNING, {"message": message, **details})
        )

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def events(self) -> list[PipelineEvent]:
        """Return every event recorded so far, oldest first."""
        with self._lock:
            return list(self._events)

    def of_kind(self, kind: str, stage: str | None = None) -> list[PipelineEvent]:
        """Return events of *kind*, optionally limited to *stage*."""
        return [
            e for e in self.events() if e.kind == kind and (stage is None or e.stage == stage)
        ]


__all__ = [
    "ADVISORY",
    "ERROR",
    "STAGE_RESULT",
    "STAGE_START",
    "EventLog",
    "PipelineEvent",
]
