"""Per-task reconciliation: Find, Normalize, CheckChanges, Render."""

import logging
from dataclasses import dataclass, field
from enum import Enum

from ..errors import (
    InsufficientAccessError,
    ResourceNotFoundError,
    ValidationFailedError,
)
from .changes import ChangeSet, build_changes
from .context import Context
from .target import TargetKind, dispatch_render
from .task import Lifecycle, Task

logger = logging.getLogger(__name__)

# Lifecycles that compare against the backend but never render
VALIDATING_LIFECYCLES = frozenset({
    Lifecycle.EXISTS_AND_VALIDATES,
    Lifecycle.EXISTS_AND_WARN_IF_CHANGES,
})


class TaskState(str, Enum):
    """Where a task is in its lifecycle."""

    PENDING = "pending"
    FOUND = "found"
    NORMALIZED = "normalized"
    DIFFED = "diffed"
    RENDERED = "rendered"
    SKIPPED = "skipped"
    FAILED = "failed"


class TaskStatus(str, Enum):
    """Terminal outcome of a task in a run."""

    CREATED = "created"
    UPDATED = "updated"
    NO_CHANGE = "no-change"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def succeeded(self) -> bool:
        return self in (TaskStatus.CREATED, TaskStatus.UPDATED, TaskStatus.NO_CHANGE)


@dataclass
class TaskOutcome:
    """What happened to one task during its lifecycle."""

    status: TaskStatus
    state: TaskState
    changes: ChangeSet | None = None
    warnings: list[str] = field(default_factory=list)
    reason: str | None = None


def _advance(e: Task, state: TaskState) -> TaskState:
    logger.debug(f"{e.task_key()} -> {state.value}")
    return state


def run_task(c: Context, e: Task) -> TaskOutcome:
    """Drive one task from Pending to a terminal state.

    Errors raised by the task or its backend propagate to the caller, which
    records the task as failed.
    """
    key = e.task_key()
    lifecycle = e.lifecycle
    state = TaskState.PENDING

    if lifecycle == Lifecycle.IGNORE:
        return TaskOutcome(
            status=TaskStatus.SKIPPED,
            state=_advance(e, TaskState.SKIPPED),
            reason="lifecycle is Ignore",
        )

    if lifecycle in VALIDATING_LIFECYCLES and not c.target.check_existing:
        return TaskOutcome(
            status=TaskStatus.SKIPPED,
            state=_advance(e, TaskState.SKIPPED),
            reason=f"lifecycle {lifecycle.value} is not managed by target "
                   f"'{c.target.kind.value}'",
        )

    a: Task | None = None
    if c.target.check_existing:
        try:
            a = e.find(c)
        except InsufficientAccessError as err:
            if lifecycle != Lifecycle.WARN_IF_INSUFFICIENT_ACCESS:
                raise
            message = f"insufficient access to inspect {key}: {err}"
            logger.warning(f"Skipping {key}: {message}")
            return TaskOutcome(
                status=TaskStatus.SKIPPED,
                state=_advance(e, TaskState.SKIPPED),
                warnings=[message],
                reason="insufficient access",
            )
        state = _advance(e, TaskState.FOUND)
        if a is None:
            logger.debug(f"{key} does not exist yet")

    e.normalize(c)
    state = _advance(e, TaskState.NORMALIZED)

    changes = build_changes(a, e)
    if changes:
        e.check_changes(a, e, changes.task)
    state = _advance(e, TaskState.DIFFED)

    if lifecycle in VALIDATING_LIFECYCLES:
        return _validate_only(e, a, changes, lifecycle, state)

    if a is not None and not changes:
        logger.debug(f"{key} is up to date")
        return TaskOutcome(status=TaskStatus.NO_CHANGE, state=state, changes=changes)

    dispatch_render(c.target, a, e, changes)
    if c.target.kind != TargetKind.DRYRUN:
        c.registry.mark_rendered(key, e)
        state = _advance(e, TaskState.RENDERED)

    status = TaskStatus.CREATED if a is None else TaskStatus.UPDATED
    logger.info(f"{key}: {status.value}")
    return TaskOutcome(status=status, state=state, changes=changes)


def _validate_only(
    e: Task,
    a: Task | None,
    changes: ChangeSet,
    lifecycle: Lifecycle,
    state: TaskState,
) -> TaskOutcome:
    key = e.task_key()

    if lifecycle == Lifecycle.EXISTS_AND_VALIDATES:
        if a is None:
            raise ResourceNotFoundError(
                f"{key} was not found, but its lifecycle requires it to exist"
            )
        if changes:
            raise ValidationFailedError(
                f"{key} does not match its declaration; differing fields: "
                f"{', '.join(changes.names)}"
            )
        return TaskOutcome(status=TaskStatus.NO_CHANGE, state=state, changes=changes)

    warnings = []
    if a is None:
        warnings.append(f"{key} was expected to exist but was not found")
    elif changes:
        for change in changes.fields:
            warnings.append(
                f"{key} field '{change.name}' differs: "
                f"actual {change.old!r}, expected {change.new!r}"
            )
    for message in warnings:
        logger.warning(message)

    return TaskOutcome(
        status=TaskStatus.NO_CHANGE,
        state=state,
        changes=changes,
        warnings=warnings,
    )
