"""Dependency graph construction for declared tasks.

Edges come from two places:

1. ``TaskRef`` values (or bare Task instances) held in a task's fields,
   including inside lists, tuples and dicts
2. Tasks returned by a task's ``depends_on()`` hook

The builder rejects duplicate keys, references to undeclared tasks, and
dependency cycles before anything runs.
"""

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from ..errors import ConfigurationError, DanglingReferenceError, DependencyCycleError
from .task import Task, TaskRef

logger = logging.getLogger(__name__)


@dataclass
class TaskGraph:
    """Acyclic graph of declared tasks.

    Attributes:
        tasks: Task key to task, in declaration order
        dependencies: Task key to the keys it depends on
        dependents: Task key to the keys that depend on it
    """

    tasks: dict[str, Task] = field(default_factory=dict)
    dependencies: dict[str, set[str]] = field(default_factory=dict)
    dependents: dict[str, set[str]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.tasks)

    def layers(self) -> list[list[str]]:
        """Group keys into levels; every key's dependencies are in earlier levels.

        Ties within a level are ordered by key so the result is deterministic.
        """
        remaining = {key: len(deps) for key, deps in self.dependencies.items()}
        ready = sorted(key for key, count in remaining.items() if count == 0)
        layers = []

        while ready:
            layers.append(ready)
            next_ready = []
            for key in ready:
                for child in self.dependents[key]:
                    remaining[child] -= 1
                    if remaining[child] == 0:
                        next_ready.append(child)
            ready = sorted(next_ready)

        return layers

    def order(self) -> list[str]:
        """Flattened topological order of task keys."""
        return [key for layer in self.layers() for key in layer]

    def transitive_dependents(self, key: str) -> set[str]:
        seen: set[str] = set()
        stack = list(self.dependents.get(key, ()))
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.dependents.get(current, ()))
        return seen


def _iter_references(value: Any) -> Iterator[TaskRef | Task]:
    if isinstance(value, (TaskRef, Task)):
        yield value
    elif isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            yield from _iter_references(item)
    elif isinstance(value, dict):
        for item in value.values():
            yield from _iter_references(item)


def _field_references(task: Task) -> Iterator[TaskRef | Task]:
    for name in type(task).model_fields:
        yield from _iter_references(getattr(task, name))


def _resolve_reference(
    owner: Task, ref: TaskRef | Task, tasks: dict[str, Task]
) -> str:
    """Return the declared key a reference points at, binding named refs."""
    owner_key = owner.task_key()

    if isinstance(ref, Task):
        key = ref.task_key()
        if key not in tasks or tasks[key] is not ref:
            raise DanglingReferenceError(owner_key, key)
        return key

    declared = tasks.get(ref.key)
    if declared is None:
        raise DanglingReferenceError(owner_key, ref.key)
    if ref.resolved and ref.task is not declared:
        # Point at the declared instance so values assigned during its
        # render (IDs, fingerprints) are visible through the reference.
        logger.debug(f"Rebinding reference {ref.key} from {owner_key}")
    ref.bind(declared)
    return ref.key


def build_graph(tasks: Iterable[Task]) -> TaskGraph:
    """Build the dependency graph for a set of declared tasks.

    Args:
        tasks: Every task declared for this run

    Returns:
        TaskGraph with resolved edges

    Raises:
        ConfigurationError: If two tasks share a key
        DanglingReferenceError: If a task references an undeclared task
        DependencyCycleError: If the references form a cycle
    """
    graph = TaskGraph()

    for task in tasks:
        key = task.task_key()
        if key in graph.tasks:
            raise ConfigurationError(f"Task '{key}' is declared more than once")
        graph.tasks[key] = task
        graph.dependencies[key] = set()
        graph.dependents[key] = set()

    for key, task in graph.tasks.items():
        for ref in _field_references(task):
            dep = _resolve_reference(task, ref, graph.tasks)
            if dep != key:
                graph.dependencies[key].add(dep)

        for explicit in task.depends_on(graph.tasks):
            dep = _resolve_reference(task, explicit, graph.tasks)
            if dep != key:
                graph.dependencies[key].add(dep)

    for key, deps in graph.dependencies.items():
        for dep in deps:
            graph.dependents[dep].add(key)

    _detect_cycles(graph)

    logger.debug(
        f"Built task graph: {len(graph.tasks)} tasks, "
        f"{sum(len(d) for d in graph.dependencies.values())} edges"
    )
    return graph


def _detect_cycles(graph: TaskGraph) -> None:
    """DFS over dependency edges; raises on the first back edge found.

    The reported chain starts and ends at the same task and contains only the
    tasks on the cycle itself.
    """
    visited: set[str] = set()
    on_path: dict[str, int] = {}
    path: list[str] = []

    for root in sorted(graph.tasks):
        if root in visited:
            continue

        visited.add(root)
        on_path[root] = 0
        path.append(root)
        stack = [iter(sorted(graph.dependencies[root]))]

        while stack:
            dep = next(stack[-1], None)
            if dep is None:
                stack.pop()
                del on_path[path.pop()]
                continue
            if dep in on_path:
                cycle = path[on_path[dep]:] + [dep]
                raise DependencyCycleError(cycle)
            if dep not in visited:
                visited.add(dep)
                on_path[dep] = len(path)
                path.append(dep)
                stack.append(iter(sorted(graph.dependencies[dep])))

    logger.debug("No dependency cycles detected")
