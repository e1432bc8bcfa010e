"""
Task scheduler - runs task lifecycles in dependency order.

Tasks whose dependencies have all succeeded are started on worker threads,
up to ``max_workers`` at a time. A failed task blocks its transitive
dependents but independent branches keep running, so one pass surfaces as
many errors as possible.
"""

import asyncio
import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..errors import ClusterworkError, describe_error
from .changes import ChangeSet
from .context import Context
from .graph import TaskGraph, build_graph
from .lifecycle import TaskOutcome, TaskState, TaskStatus, run_task
from .target import check_capabilities
from .task import Task

logger = logging.getLogger(__name__)


@dataclass
class TaskResult:
    """Terminal status of one task in a run."""

    key: str
    task_type: str
    status: TaskStatus
    state: TaskState
    changes: ChangeSet | None = None
    warnings: list[str] = field(default_factory=list)
    error: BaseException | None = None
    reason: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "key": self.key,
            "type": self.task_type,
            "status": self.status.value,
            "state": self.state.value,
        }
        if self.changes:
            data["changed_fields"] = self.changes.names
        if self.warnings:
            data["warnings"] = list(self.warnings)
        if self.reason:
            data["reason"] = self.reason
        if self.error is not None:
            data["error"] = describe_error(self.error)
        return data


@dataclass
class RunResult:
    """Aggregate result of one engine run."""

    target: str
    results: dict[str, TaskResult] = field(default_factory=dict)
    order: list[str] = field(default_factory=list)
    cancelled: bool = False
    error: BaseException | None = None

    @property
    def failed(self) -> list[TaskResult]:
        return [r for r in self.results.values() if r.status == TaskStatus.FAILED]

    @property
    def success(self) -> bool:
        return not self.failed and not self.cancelled and self.error is None

    def status_of(self, key: str) -> TaskStatus:
        return self.results[key].status

    def counts(self) -> dict[str, int]:
        counts = {status.value: 0 for status in TaskStatus}
        for result in self.results.values():
            counts[result.status.value] += 1
        return counts

    def errors(self) -> dict[str, dict[str, Any]]:
        return {
            r.key: describe_error(r.error)
            for r in self.results.values()
            if r.error is not None
        }

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "target": self.target,
            "success": self.success,
            "cancelled": self.cancelled,
            "counts": self.counts(),
            "tasks": [self.results[key].to_dict() for key in self.order if key in self.results],
        }
        if self.error is not None:
            data["error"] = describe_error(self.error)
        return data


class Executor:
    """Runs every declared task through its lifecycle, respecting dependencies."""

    def __init__(
        self,
        context: Context,
        max_workers: int | None = None,
        fail_fast: bool | None = None,
    ):
        """
        Initialize Executor.

        Args:
            context: Run context shared by every task
            max_workers: Concurrent task limit (overrides settings)
            fail_fast: Stop scheduling after the first failure (overrides settings)
        """
        settings = context.settings
        self.context = context
        self.max_workers = max_workers or settings.max_workers
        self.fail_fast = settings.fail_fast if fail_fast is None else fail_fast
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Stop scheduling new tasks; in-flight tasks are allowed to finish."""
        if not self._cancel.is_set():
            logger.warning("Run cancellation requested")
        self._cancel.set()

    def plan(self, tasks: Iterable[Task]) -> TaskGraph:
        """Pre-flight: build the graph and check render capabilities.

        Raises:
            PreflightError: On duplicate keys, dangling references, cycles or
                task types that cannot render to the active target
        """
        graph = build_graph(tasks)
        check_capabilities(graph.tasks.values(), self.context.target)
        return graph

    async def run(
        self, tasks: Iterable[Task], timeout: float | None = None
    ) -> RunResult:
        """Reconcile every task and return the aggregated result.

        Args:
            tasks: Declared tasks
            timeout: Seconds after which no new tasks are started
                (defaults to settings.run_timeout)

        Returns:
            RunResult with one TaskResult per declared task
        """
        graph = self.plan(tasks)
        if timeout is None:
            timeout = self.context.settings.run_timeout

        result = RunResult(target=self.context.target.kind.value, order=graph.order())
        logger.info(
            f"Reconciling {len(graph)} tasks against '{result.target}' "
            f"with {self.max_workers} workers"
        )

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None

        waiting = {key: set(deps) for key, deps in graph.dependencies.items()}
        ready = sorted(key for key, deps in waiting.items() if not deps)
        running: dict[asyncio.Task, str] = {}
        blocked = False

        while ready or running:
            if deadline is not None and loop.time() >= deadline and not self._cancel.is_set():
                logger.warning(f"Run timeout of {timeout}s reached")
                self.cancel()

            stop_scheduling = self._cancel.is_set() or blocked
            while ready and len(running) < self.max_workers and not stop_scheduling:
                key = ready.pop(0)
                started = datetime.now()
                result.results[key] = TaskResult(
                    key=key,
                    task_type=graph.tasks[key].type_name(),
                    status=TaskStatus.SKIPPED,
                    state=TaskState.PENDING,
                    started_at=started,
                )
                future = asyncio.ensure_future(
                    asyncio.to_thread(run_task, self.context, graph.tasks[key])
                )
                running[future] = key

            if not running:
                break

            wait_timeout = None
            if deadline is not None and not self._cancel.is_set():
                wait_timeout = max(deadline - loop.time(), 0)
            try:
                done, _ = await asyncio.wait(
                    running, timeout=wait_timeout, return_when=asyncio.FIRST_COMPLETED
                )
            except asyncio.CancelledError:
                # In-flight renders keep running on their threads; collect them
                logger.warning(
                    f"Run interrupted; waiting for {len(running)} in-flight tasks"
                )
                self.cancel()
                continue

            for future in done:
                key = running.pop(future)
                task_result = result.results[key]
                task_result.finished_at = datetime.now()

                error = future.exception()
                if error is None:
                    self._record_outcome(task_result, future.result())
                    for child in sorted(graph.dependents[key]):
                        waiting[child].discard(key)
                        if not waiting[child] and child not in result.results:
                            ready.append(child)
                    ready.sort()
                    continue

                task_result.status = TaskStatus.FAILED
                task_result.state = TaskState.FAILED
                task_result.error = error
                logger.error(f"{key}: failed: {error}")

                self._block_dependents(graph, key, result)
                ready = [k for k in ready if k not in result.results]
                if self.fail_fast:
                    logger.warning("Fail-fast enabled; no new tasks will be started")
                    blocked = True

        for key in graph.order():
            if key not in result.results:
                reason = "run cancelled" if self._cancel.is_set() else "not started"
                if blocked:
                    reason = "run stopped after failure"
                result.results[key] = TaskResult(
                    key=key,
                    task_type=graph.tasks[key].type_name(),
                    status=TaskStatus.SKIPPED,
                    state=TaskState.SKIPPED,
                    reason=reason,
                )

        result.cancelled = self._cancel.is_set()
        try:
            self.context.target.finish(result)
        except (ClusterworkError, OSError) as e:
            logger.error(f"Target '{result.target}' failed to finish the run: {e}")
            result.error = e

        counts = result.counts()
        logger.info(
            "Run complete: "
            + ", ".join(f"{name}={count}" for name, count in counts.items())
        )
        return result

    def _record_outcome(self, task_result: TaskResult, outcome: TaskOutcome) -> None:
        task_result.status = outcome.status
        task_result.state = outcome.state
        task_result.changes = outcome.changes
        task_result.warnings = list(outcome.warnings)
        task_result.reason = outcome.reason

    def _block_dependents(self, graph: TaskGraph, key: str, result: RunResult) -> None:
        for dependent in sorted(graph.transitive_dependents(key)):
            if dependent in result.results:
                continue
            logger.warning(f"{dependent}: skipped because {key} failed")
            result.results[dependent] = TaskResult(
                key=dependent,
                task_type=graph.tasks[dependent].type_name(),
                status=TaskStatus.SKIPPED,
                state=TaskState.SKIPPED,
                reason=f"dependency {key} failed",
            )
