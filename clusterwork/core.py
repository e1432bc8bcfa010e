"""
Clusterwork Core - reconcile cluster infrastructure from a cluster spec.

Cloudup Pipeline: Load cluster spec → Build cloud tasks → Reconcile against AWS,
                  Terraform or a dry run
Nodeup Pipeline: Load cluster spec → Build node tasks → Reconcile against the
                 local node or a dry run
"""

import logging
from pathlib import Path
from typing import List, Optional

from .cluster import ClusterSpec, load_cluster_spec
from .engine import Context, Executor, RunResult, Target, TargetKind, Task
from .model.cloudup import InstanceBuilder, SSHKeyBuilder
from .model.context import ModelBuilder, ModelBuilderContext
from .model.distributions import Distribution
from .model.logrotate import LogrotateBuilder
from .settings import get_settings
from .targets import (
    AWSAPITarget,
    AWSCloud,
    CommandRunner,
    DryRunTarget,
    LocalTarget,
    TerraformTarget,
)

logger = logging.getLogger(__name__)


class ClusterworkCore:
    """Main coordinator for the Clusterwork pipelines."""

    def __init__(
        self,
        max_workers: int | None = None,
        fail_fast: bool | None = None,
        timeout: float | None = None,
    ):
        """
        Initialize ClusterworkCore.

        Args:
            max_workers: Concurrent task limit (overrides settings/.env)
            fail_fast: Stop after the first failed task (overrides settings/.env)
            timeout: Seconds before a run stops starting tasks (overrides settings/.env)
        """
        settings = get_settings()
        self.max_workers = max_workers or settings.max_workers
        self.fail_fast = settings.fail_fast if fail_fast is None else fail_fast
        self.timeout = timeout if timeout is not None else settings.run_timeout
        self.executor: Optional[Executor] = None
        self.context: Optional[Context] = None

        logger.info("ClusterworkCore initialized")

    async def cloudup(
        self,
        cluster: ClusterSpec | Path,
        target: str = TargetKind.DRYRUN.value,
        out_dir: Path | None = None,
        cloud: AWSCloud | None = None,
    ) -> RunResult:
        """
        Reconcile the cloud resources of a cluster.

        Args:
            cluster: Cluster spec, or path to an HCL cluster file
            target: "aws", "terraform" or "dryrun"
            out_dir: Terraform output directory (terraform target only)
            cloud: Pre-built AWS handle (built from the cluster region if omitted)

        Returns:
            RunResult for the run
        """
        cluster = self._load(cluster)
        logger.info(f"Starting cloudup for cluster '{cluster.name}' (target: {target})")

        tasks = self.build_tasks([SSHKeyBuilder(cluster), InstanceBuilder(cluster)])

        kind = TargetKind(target)
        if kind == TargetKind.TERRAFORM:
            render_target: Target = TerraformTarget(out_dir=out_dir, region=cluster.region)
        elif kind == TargetKind.AWS:
            cloud = cloud or AWSCloud(region=cluster.region)
            render_target = AWSAPITarget(cloud)
        elif kind == TargetKind.DRYRUN:
            cloud = cloud or AWSCloud(region=cluster.region)
            render_target = DryRunTarget()
        else:
            raise ValueError(f"Target '{target}' is not supported by cloudup")

        return await self._run(tasks, Context(render_target, cloud=cloud))

    async def nodeup(
        self,
        cluster: ClusterSpec | Path,
        root: Path | None = None,
        dry_run: bool = False,
        distribution: Distribution | None = None,
        runner: CommandRunner | None = None,
    ) -> RunResult:
        """
        Configure the local node.

        Args:
            cluster: Cluster spec, or path to an HCL cluster file
            root: Filesystem root node files are written under
            dry_run: Only report what would change
            distribution: Node distribution (defaults to the cluster's)
            runner: Command runner for package and systemd commands

        Returns:
            RunResult for the run
        """
        cluster = self._load(cluster)
        distribution = distribution or cluster.distribution
        logger.info(
            f"Starting nodeup for cluster '{cluster.name}' on {distribution.value}"
        )

        tasks = self.build_tasks([LogrotateBuilder(cluster, distribution)])

        node = LocalTarget(root=root, distribution=distribution, runner=runner)
        render_target: Target = DryRunTarget() if dry_run else node
        return await self._run(tasks, Context(render_target, cloud=node))

    def cancel(self) -> None:
        """Stop the active run from starting further tasks."""
        if self.executor is not None:
            self.executor.cancel()

    def build_tasks(self, builders: List[ModelBuilder]) -> List[Task]:
        """Run model builders and return the declared tasks in order."""
        c = ModelBuilderContext()
        for builder in builders:
            logger.debug(f"Running model builder {type(builder).__name__}")
            builder.build(c)
        logger.info(f"Declared {len(c.tasks)} tasks")
        return list(c.tasks.values())

    async def _run(self, tasks: List[Task], context: Context) -> RunResult:
        self.context = context
        self.executor = Executor(
            context, max_workers=self.max_workers, fail_fast=self.fail_fast
        )
        result = await self.executor.run(tasks, timeout=self.timeout)
        if result.success:
            logger.info("Clusterwork run complete")
        else:
            logger.error(f"Clusterwork run finished with {len(result.failed)} failed tasks")
        return result

    def _load(self, cluster: ClusterSpec | Path) -> ClusterSpec:
        if isinstance(cluster, ClusterSpec):
            return cluster
        return load_cluster_spec(cluster)
