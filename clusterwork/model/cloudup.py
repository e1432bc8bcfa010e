"""Builders for the cloud resources of a cluster."""

import logging

from ..awstasks import Instance, SSHKey
from ..engine.task import TaskRef
from .context import CloudupModelContext, ModelBuilderContext

logger = logging.getLogger(__name__)


class SSHKeyBuilder(CloudupModelContext):
    """Declares the key pair instances are launched with.

    A cluster with only ``ssh_key_name`` uses a key pair that already exists;
    one with ``ssh_public_key`` imports the key under a cluster scoped name.
    A cluster with neither gets no key pair.
    """

    def build(self, c: ModelBuilderContext) -> None:
        name = self.cluster.ssh_key_task_name()
        if name is None:
            logger.info(f"Cluster '{self.cluster.name}' has no SSH key configured")
            return

        c.add_task(
            SSHKey(
                name=name,
                public_key=self.cluster.public_key_content(),
                shared=self.cluster.shared_ssh_key or self.cluster.ssh_key_name is not None,
                tags=self.cluster.cluster_tags(),
            )
        )


class InstanceBuilder(CloudupModelContext):
    """Declares one instance per instance group."""

    def build(self, c: ModelBuilderContext) -> None:
        key_name = self.cluster.ssh_key_task_name()

        for group in self.cluster.instance_groups:
            tags = self.cluster.cluster_tags()
            tags.update(group.tags)
            tags["kubernetes.io/role"] = group.role.lower()

            c.add_task(
                Instance(
                    name=f"{group.name}.{self.cluster.name}",
                    image_id=group.image_id,
                    instance_type=group.instance_type,
                    subnet_id=group.subnet_id,
                    ssh_key=TaskRef.named(f"SSHKey/{key_name}") if key_name else None,
                    tags=tags,
                )
            )
