"""investor_identity.pipeline — the DID lifecycle orchestrator.

Submodules
----------
context
    PipelineContext, StageError and RunSummary.
events
    PipelineEvent and EventLog.
orchestrator
    DIDLifecyclePipeline.
"""
from __future__ import annotations

from investor_identity.pipeline.context import PipelineContext, RunSummary, StageError
from investor_identity.pipeline.events import EventLog, PipelineEvent
from investor_identity.pipeline.orchestrator import DIDLifecyclePipeline

__all__ = [
    "DIDLifecyclePipeline",
    "EventLog",
    "PipelineContext",
    "PipelineEvent",
    "RunSummary",
    "StageError",
]
