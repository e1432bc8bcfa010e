"""
Change-set computation between actual and expected task state.

A change-set is an instance of the task's own type in which every field that
differs holds the expected value and every matching field is None. Tasks can
therefore write immutability checks as ``if changes.name is not None``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from ..content import Content
from .task import Task, TaskRef

logger = logging.getLogger(__name__)

ALWAYS_EXCLUDED = frozenset({"lifecycle"})


@dataclass(frozen=True)
class FieldChange:
    """One differing field."""

    name: str
    old: Any
    new: Any


@dataclass
class ChangeSet:
    """Delta between actual and expected state for one task.

    Attributes:
        task: Instance of the task type with only changed fields set
        fields: Field-level differences with old and new values
        creating: True when the actual object does not exist yet
    """

    task: Task
    fields: list[FieldChange] = field(default_factory=list)
    creating: bool = False

    def __bool__(self) -> bool:
        return bool(self.fields)

    @property
    def names(self) -> list[str]:
        return [f.name for f in self.fields]

    def get(self, name: str) -> FieldChange | None:
        for change in self.fields:
            if change.name == name:
                return change
        return None


def _comparable(value: Any) -> Any:
    if isinstance(value, TaskRef):
        return ("ref", value.compare_id())
    if isinstance(value, Task):
        return ("ref", value.compare_with_id())
    if isinstance(value, Content):
        return ("content", value.as_bytes())
    if isinstance(value, (list, tuple)):
        return [_comparable(v) for v in value]
    if isinstance(value, dict):
        return {k: _comparable(v) for k, v in value.items()}
    return value


def values_equal(a: Any, b: Any) -> bool:
    """Compare two field values the way change detection does."""
    return _comparable(a) == _comparable(b)


def build_changes(a: Task | None, e: Task) -> ChangeSet:
    """Compute the change-set for expected task e against actual task a.

    Expected fields that are None are treated as "don't care". When a is None
    every expected field that is set counts as a change.
    """
    if a is not None and type(a) is not type(e):
        raise TypeError(
            f"Cannot diff {type(a).__name__} against {type(e).__name__}"
        )

    excluded = ALWAYS_EXCLUDED | type(e).diff_excluded
    values: dict[str, Any] = {}
    fields: list[FieldChange] = []

    for name in type(e).model_fields:
        if name in excluded:
            continue
        expected = getattr(e, name)
        if expected is None:
            continue
        actual = getattr(a, name) if a is not None else None
        if a is not None and values_equal(actual, expected):
            continue
        values[name] = expected
        fields.append(FieldChange(name=name, old=actual, new=expected))

    changes = type(e).model_construct(
        **{name: values.get(name) for name in type(e).model_fields}
    )

    if fields:
        logger.debug(f"{e.task_key()} changed fields: {[f.name for f in fields]}")

    return ChangeSet(task=changes, fields=fields, creating=a is None)
