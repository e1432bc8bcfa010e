"""Base task classes for Clusterwork.

A task is the desired state of one infrastructure object. The engine drives
every task through the same lifecycle:

1. ``find(c)`` returns the actual state, or None when the object is absent
2. ``normalize(c)`` fills derived fields on the expected task
3. ``check_changes(a, e, changes)`` rejects changes the object cannot take
4. a renderer for the active target applies (or records) the change-set

Renderers are registered per target kind with the ``@renders`` decorator::

    class SSHKey(Task):
        name: str | None = None

        @renders(TargetKind.AWS)
        def render_aws(self, t, a, e, changes):
            ...

References to other tasks are held in ``TaskRef`` fields. They double as
configuration values and as dependency edges for the graph builder.
"""

import logging
from collections.abc import Callable, Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict

from ..errors import ConfigurationError, DanglingReferenceError
from .target import TargetKind

if TYPE_CHECKING:
    from .context import Context

logger = logging.getLogger(__name__)

Renderer = Callable[..., None]


class Lifecycle(str, Enum):
    """What the engine is allowed to do with a task."""

    SYNC = "Sync"
    EXISTS_AND_VALIDATES = "ExistsAndValidates"
    EXISTS_AND_WARN_IF_CHANGES = "ExistsAndWarnIfChanges"
    WARN_IF_INSUFFICIENT_ACCESS = "WarnIfInsufficientAccess"
    IGNORE = "Ignore"


def renders(kind: TargetKind) -> Callable[[Renderer], Renderer]:
    """Register a method as the task's renderer for one target kind."""

    def decorator(fn: Renderer) -> Renderer:
        fn.__renders__ = kind
        return fn

    return decorator


class TaskRef:
    """Typed reference from one task to another.

    ``TaskRef.to(task)`` points at a task instance; ``TaskRef.named(key)``
    is resolved against the declared task set by the graph builder.
    """

    __slots__ = ("key", "_task")

    def __init__(self, key: str, task: Optional["Task"] = None):
        if "/" not in key:
            raise ValueError(f"Task reference '{key}' must look like 'Type/name'")
        self.key = key
        self._task = task

    @classmethod
    def to(cls, task: "Task") -> "TaskRef":
        return cls(task.task_key(), task)

    @classmethod
    def named(cls, key: str) -> "TaskRef":
        return cls(key)

    @property
    def resolved(self) -> bool:
        return self._task is not None

    @property
    def task(self) -> "Task":
        if self._task is None:
            raise DanglingReferenceError(None, self.key)
        return self._task

    def bind(self, task: "Task") -> None:
        if task.task_key() != self.key:
            raise ConfigurationError(
                f"Cannot bind reference '{self.key}' to task '{task.task_key()}'"
            )
        self._task = task

    def compare_id(self) -> str | None:
        if self._task is not None:
            return self._task.compare_with_id()
        return self.key.split("/", 1)[1]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TaskRef):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        return f"TaskRef({self.key!r})"


class Task(BaseModel):
    """Base task class - all task types inherit from this.

    Subclasses declare their desired-state fields as optional pydantic
    fields. A field left as None means "don't care" and never produces a
    change. Fields listed in ``diff_excluded`` are never compared.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    lifecycle: Lifecycle = Lifecycle.SYNC

    diff_excluded: ClassVar[frozenset[str]] = frozenset()
    __renderers__: ClassVar[dict[TargetKind, Renderer]] = {}

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        table: dict[TargetKind, Renderer] = {}
        for klass in reversed(cls.__mro__):
            for attr in vars(klass).values():
                kind = getattr(attr, "__renders__", None)
                if kind is not None:
                    table[kind] = attr
        cls.__renderers__ = table

    @classmethod
    def renderer_for(cls, kind: TargetKind) -> Renderer | None:
        return cls.__renderers__.get(kind)

    @classmethod
    def type_name(cls) -> str:
        return cls.__name__

    def task_name(self) -> str:
        """Identity of the task within its type."""
        name = getattr(self, "name", None)
        if not name:
            raise ConfigurationError(
                f"{self.type_name()} task has no name; override task_name()"
            )
        return name

    def task_key(self) -> str:
        return f"{self.type_name()}/{self.task_name()}"

    def compare_with_id(self) -> str | None:
        """Value compared when another task's reference to this one is diffed."""
        return self.task_name()

    def ref(self) -> TaskRef:
        return TaskRef.to(self)

    def depends_on(self, tasks: Mapping[str, "Task"]) -> list["Task"]:
        """Explicit dependencies beyond the ones held in TaskRef fields."""
        return []

    def find(self, c: "Context") -> Optional["Task"]:
        raise NotImplementedError(f"{self.type_name()} must implement find()")

    def normalize(self, c: "Context") -> None:
        return None

    def check_changes(
        self, a: Optional["Task"], e: "Task", changes: "Task"
    ) -> None:
        return None

    def __str__(self) -> str:
        try:
            return self.task_key()
        except ConfigurationError:
            return f"{self.type_name()}/<unnamed>"
