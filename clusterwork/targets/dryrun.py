"""Dry-run target: records change-sets instead of applying them."""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from ..engine.changes import ChangeSet, FieldChange
from ..engine.target import Target, TargetKind
from ..engine.task import Task

logger = logging.getLogger(__name__)


@dataclass
class PlannedChange:
    """A change the dry run would have applied."""

    key: str
    task_type: str
    action: str  # "create" or "update"
    fields: list[FieldChange] = field(default_factory=list)

    def get_summary(self) -> str:
        if self.action == "create":
            return f"Create {self.task_type} '{self.key}'"
        names = ", ".join(f.name for f in self.fields)
        return f"Update {self.task_type} '{self.key}' (fields: {names})"


class DryRunTarget(Target):
    """Preview convergence without touching any backend.

    Find still runs against the real backend so the recorded change-sets are
    accurate; no task renderer is ever called.
    """

    kind = TargetKind.DRYRUN

    def __init__(self, check_existing: bool = True):
        self.check_existing = check_existing
        self._lock = threading.Lock()
        self._changes: list[PlannedChange] = []

    def record(self, a: Task | None, e: Task, changes: ChangeSet) -> None:
        planned = PlannedChange(
            key=e.task_key(),
            task_type=e.type_name(),
            action="create" if a is None else "update",
            fields=list(changes.fields),
        )
        with self._lock:
            self._changes.append(planned)
        logger.info(f"Would {planned.action} {planned.key}")

    @property
    def changes(self) -> list[PlannedChange]:
        with self._lock:
            return sorted(self._changes, key=lambda c: c.key)

    def changes_by_action(self) -> dict[str, list[PlannedChange]]:
        grouped: dict[str, list[PlannedChange]] = {"create": [], "update": []}
        for change in self.changes:
            grouped[change.action].append(change)
        return grouped

    def describe(self) -> dict[str, Any]:
        grouped = self.changes_by_action()
        return {
            "kind": self.kind.value,
            "create": len(grouped["create"]),
            "update": len(grouped["update"]),
        }
