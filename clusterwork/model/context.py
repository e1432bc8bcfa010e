"""
Model builders turn a cluster spec into declared tasks.

Builders only declare tasks; they never call a backend. Each builder adds
its tasks to a shared ModelBuilderContext, which is handed to the engine
once every builder has run.
"""

import logging
from typing import Protocol

from ..cluster import ClusterSpec
from ..engine.task import Task
from ..errors import ConfigurationError
from .distributions import Distribution

logger = logging.getLogger(__name__)


class ModelBuilderContext:
    """Collects the tasks declared by model builders, keyed by task key."""

    def __init__(self):
        self.tasks: dict[str, Task] = {}

    def add_task(self, task: Task) -> Task:
        """Declare a task.

        Declaring an equal task twice is a no-op and returns the first one.

        Raises:
            ConfigurationError: If a different task with the same key exists
        """
        key = task.task_key()
        existing = self.tasks.get(key)
        if existing is not None:
            if existing == task:
                return existing
            raise ConfigurationError(f"Found duplicate tasks with name '{key}'")
        self.tasks[key] = task
        logger.debug(f"Declared task {key}")
        return task


class ModelBuilder(Protocol):
    def build(self, c: ModelBuilderContext) -> None: ...


class CloudupModelContext:
    """What cloud-side builders know about the cluster."""

    def __init__(self, cluster: ClusterSpec):
        self.cluster = cluster


class NodeupModelContext:
    """What node-side builders know about the cluster and the node."""

    def __init__(self, cluster: ClusterSpec, distribution: Distribution | None = None):
        self.cluster = cluster
        self.distribution = distribution or cluster.distribution
