"""Per-run context handed to every lifecycle call."""

import logging
import threading
from typing import Any

from ..settings import ClusterworkSettings, get_settings
from .target import Target

logger = logging.getLogger(__name__)


class TaskRegistry:
    """Thread-safe record of the tasks rendered during one run."""

    def __init__(self):
        self._lock = threading.Lock()
        self._rendered: dict[str, Any] = {}

    def mark_rendered(self, key: str, task: Any) -> None:
        with self._lock:
            self._rendered[key] = task

    def is_rendered(self, key: str) -> bool:
        with self._lock:
            return key in self._rendered

    def get(self, key: str) -> Any | None:
        with self._lock:
            return self._rendered.get(key)

    def rendered_keys(self) -> list[str]:
        with self._lock:
            return sorted(self._rendered)


class TagCache:
    """Thread-safe memo of cloud tag lookups, scoped to one run."""

    def __init__(self):
        self._lock = threading.Lock()
        self._tags: dict[str, dict[str, str]] = {}

    def get(self, resource_id: str) -> dict[str, str] | None:
        with self._lock:
            tags = self._tags.get(resource_id)
            return dict(tags) if tags is not None else None

    def put(self, resource_id: str, tags: dict[str, str]) -> None:
        with self._lock:
            self._tags[resource_id] = dict(tags)

    def update(self, resource_id: str, tags: dict[str, str]) -> None:
        with self._lock:
            self._tags.setdefault(resource_id, {}).update(tags)

    def invalidate(self, resource_id: str) -> None:
        with self._lock:
            self._tags.pop(resource_id, None)


class Context:
    """State shared by all tasks of one run.

    Attributes:
        target: Active render target
        cloud: Cluster/session handle for backend calls (None for node runs)
        settings: Clusterwork settings for this run
        registry: Tasks rendered so far in this run
        tags: Tag lookup cache for the cloud handle
    """

    def __init__(
        self,
        target: Target,
        cloud: Any = None,
        settings: ClusterworkSettings | None = None,
    ):
        self.target = target
        self.cloud = cloud
        self.settings = settings or get_settings()
        self.registry = TaskRegistry()
        self.tags = TagCache()
        target.attach(self)

        logger.debug(f"Context created for target '{target.kind.value}'")
