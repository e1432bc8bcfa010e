"""Render targets and the dispatcher that selects a task's renderer."""

import logging
from collections.abc import Iterable
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..errors import CapabilityError

if TYPE_CHECKING:
    from .changes import ChangeSet
    from .context import Context
    from .executor import RunResult
    from .task import Task

logger = logging.getLogger(__name__)


class TargetKind(str, Enum):
    """Backends a task can render to."""

    AWS = "aws"
    TERRAFORM = "terraform"
    LOCAL = "local"
    DRYRUN = "dryrun"


class Target:
    """Base class for render targets.

    Attributes:
        kind: Tag the dispatcher uses to pick a task's renderer
        check_existing: Whether tasks look up their actual state before
            rendering. Targets that describe the whole desired state (such as
            generated configuration) skip Find entirely.
        context: Run context the target was attached to
    """

    kind: TargetKind
    check_existing: bool = True
    context: "Context | None" = None

    def attach(self, context: "Context") -> None:
        """Bind the target to the run context it renders for."""
        self.context = context

    def finish(self, result: "RunResult") -> None:
        """Called once after every task has reached a terminal status."""
        return None

    def describe(self) -> dict[str, Any]:
        return {"kind": self.kind.value}


def check_capabilities(tasks: Iterable["Task"], target: Target) -> None:
    """Fail before the run starts if any task type cannot render to target.

    Raises:
        CapabilityError: Naming every task type without a renderer
    """
    if target.kind == TargetKind.DRYRUN:
        return

    missing = set()
    for task in tasks:
        if type(task).renderer_for(target.kind) is None:
            missing.add(task.type_name())

    if missing:
        raise CapabilityError(target.kind.value, sorted(missing))

    logger.debug(f"All task types can render to '{target.kind.value}'")


def dispatch_render(
    target: Target, a: "Task | None", e: "Task", changes: "ChangeSet"
) -> None:
    """Apply or record a change-set through the active target."""
    if target.kind == TargetKind.DRYRUN:
        target.record(a, e, changes)
        return

    renderer = type(e).renderer_for(target.kind)
    if renderer is None:
        raise CapabilityError(target.kind.value, [e.type_name()])

    logger.debug(f"Rendering {e.task_key()} to {target.kind.value}")
    renderer(e, target, a, e, changes.task)
