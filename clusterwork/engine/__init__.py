"""
Task reconciliation engine.

Declared tasks are linked into a dependency graph, then each one is driven
through Find, Normalize, CheckChanges and Render against the active target.
"""

from .changes import ChangeSet, FieldChange, build_changes
from .context import Context, TagCache, TaskRegistry
from .executor import Executor, RunResult, TaskResult
from .graph import TaskGraph, build_graph
from .lifecycle import TaskState, TaskStatus, run_task
from .target import Target, TargetKind, check_capabilities, dispatch_render
from .task import Lifecycle, Task, TaskRef, renders

__all__ = [
    "ChangeSet",
    "Context",
    "Executor",
    "FieldChange",
    "Lifecycle",
    "RunResult",
    "TagCache",
    "Target",
    "TargetKind",
    "Task",
    "TaskGraph",
    "TaskRef",
    "TaskRegistry",
    "TaskResult",
    "TaskState",
    "TaskStatus",
    "build_changes",
    "build_graph",
    "check_capabilities",
    "dispatch_render",
    "renders",
    "run_task",
]
