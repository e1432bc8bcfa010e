"""EC2 instance task."""

import logging
from typing import Optional

from ..engine.context import Context
from ..engine.target import TargetKind
from ..engine.task import Task, TaskRef, renders
from ..errors import AmbiguousMatchError, CannotChangeFieldError, MissingRequiredFieldError
from ..targets.aws import AWSAPITarget, ec2_tags_to_map, tag_specifications
from ..targets.terraform import TerraformTarget, sanitize_name
from .sshkey import SSHKey

logger = logging.getLogger(__name__)

LIVE_STATES = ["pending", "running", "stopping", "stopped"]
IMMUTABLE_FIELDS = ("image_id", "instance_type", "ssh_key", "subnet_id")


class Instance(Task):
    """A single EC2 instance, identified by its Name tag."""

    name: Optional[str] = None
    id: Optional[str] = None
    image_id: Optional[str] = None
    instance_type: Optional[str] = None
    ssh_key: Optional[TaskRef] = None
    subnet_id: Optional[str] = None
    tags: Optional[dict[str, str]] = None

    def find(self, c: Context) -> Optional["Instance"]:
        response = c.cloud.call(
            "describe_instances",
            Filters=[
                {"Name": "tag:Name", "Values": [self.name]},
                {"Name": "instance-state-name", "Values": LIVE_STATES},
            ],
        )

        instances = [
            instance
            for reservation in response.get("Reservations") or []
            for instance in reservation.get("Instances") or []
        ]
        if not instances:
            return None
        if len(instances) > 1:
            raise AmbiguousMatchError(
                f"Found {len(instances)} instances with Name tag '{self.name}'"
            )

        i = instances[0]
        tags = ec2_tags_to_map(i.get("Tags"))
        c.tags.put(i["InstanceId"], tags)

        key_name = i.get("KeyName")
        actual = Instance(
            name=self.name,
            id=i["InstanceId"],
            image_id=i.get("ImageId"),
            instance_type=i.get("InstanceType"),
            ssh_key=TaskRef.to(SSHKey(name=key_name)) if key_name else None,
            subnet_id=i.get("SubnetId"),
            tags=tags,
            lifecycle=self.lifecycle,
        )
        self.id = actual.id
        return actual

    def normalize(self, c: Context) -> None:
        tags = dict(self.tags or {})
        tags.setdefault("Name", self.name)
        self.tags = tags

    def check_changes(self, a, e, changes) -> None:
        if a is None:
            for field in ("image_id", "instance_type"):
                if getattr(e, field) is None:
                    raise MissingRequiredFieldError(field)
            return

        for field in IMMUTABLE_FIELDS:
            if getattr(changes, field) is not None:
                raise CannotChangeFieldError(field, getattr(a, field), getattr(e, field))

    def _key_name(self) -> Optional[str]:
        if self.ssh_key is None:
            return None
        return self.ssh_key.task.name

    @renders(TargetKind.AWS)
    def render_aws(self, t: AWSAPITarget, a, e, changes) -> None:
        if a is not None:
            t.add_aws_tags(t.context, e.id, e.tags)
            return

        logger.info(f"Launching instance '{e.name}' from {e.image_id}")
        params = {
            "ImageId": e.image_id,
            "InstanceType": e.instance_type,
            "MinCount": 1,
            "MaxCount": 1,
            "TagSpecifications": tag_specifications("instance", e.tags),
        }
        key_name = e._key_name()
        if key_name:
            params["KeyName"] = key_name
        if e.subnet_id:
            params["SubnetId"] = e.subnet_id

        response = t.cloud.call("run_instances", **params)
        e.id = response["Instances"][0]["InstanceId"]
        if t.context is not None:
            t.context.tags.put(e.id, e.tags or {})

    @renders(TargetKind.TERRAFORM)
    def render_terraform(self, t: TerraformTarget, a, e, changes) -> None:
        key_name = e.ssh_key.task.terraform_link() if e.ssh_key is not None else None
        t.render_resource(
            "aws_instance",
            sanitize_name(e.name),
            {
                "ami": e.image_id,
                "instance_type": e.instance_type,
                "key_name": key_name,
                "subnet_id": e.subnet_id,
                "tags": e.tags,
            },
        )
