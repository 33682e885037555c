"""Generation orchestration: prompt assembly, scheduling, retry and polling."""

from .engine import GenerationEngine
from .poller import OperationPoller, PollEntry
from .prompts import AssemblyOverrides, assemble, assemble_group_concept, assemble_video
from .references import ResolvedReferences, resolve_references
from .retry import FailureKind, classify_failure, with_retry
from .scheduler import BatchController, BatchReport, BatchState
from .store import SceneStateStore, SceneStatus

__all__ = [
    "GenerationEngine",
    "OperationPoller",
    "PollEntry",
    "AssemblyOverrides",
    "assemble",
    "assemble_group_concept",
    "assemble_video",
    "ResolvedReferences",
    "resolve_references",
    "FailureKind",
    "classify_failure",
    "with_retry",
    "BatchController",
    "BatchReport",
    "BatchState",
    "SceneStateStore",
    "SceneStatus",
]
