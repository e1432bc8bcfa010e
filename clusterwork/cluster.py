"""
Cluster specification loading.

A cluster is described in an HCL file::

    cluster "demo" {
      region         = "us-east-1"
      distribution   = "ubuntu"
      ssh_public_key = "~/.ssh/id_rsa.pub"
      networking     = "cilium"
      cilium_etcd    = true
      tags = {
        team = "infra"
      }
    }

    instance_group "nodes" {
      image_id      = "ami-0123456789"
      instance_type = "t3.medium"
      subnet_id     = "subnet-0123"
    }
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import hcl2
from pydantic import BaseModel, Field, ValidationError

from .content import Content, FileContent, StringContent
from .errors import ConfigurationError
from .model.distributions import Distribution

logger = logging.getLogger(__name__)


class ParseError(ConfigurationError):
    """Exception raised when a cluster file cannot be parsed."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        self.message = message
        self.file_path = file_path

        error_msg = f"Parse error: {message}"
        if file_path:
            error_msg += f" in file '{file_path}'"

        super().__init__(error_msg)


class InstanceGroupSpec(BaseModel):
    """A group of identically configured instances."""

    name: str
    image_id: str
    instance_type: str
    subnet_id: Optional[str] = None
    role: str = "Node"
    tags: Dict[str, str] = Field(default_factory=dict)


class ClusterSpec(BaseModel):
    """Desired configuration of one cluster."""

    name: str
    region: Optional[str] = None
    distribution: Distribution = Distribution.UBUNTU
    ssh_public_key: Optional[str] = Field(
        None, description="Public key text, or a path to a public key file"
    )
    ssh_key_name: Optional[str] = Field(
        None, description="Name of a key pair that already exists in the account"
    )
    shared_ssh_key: bool = False
    networking: str = "kubenet"
    cilium_etcd: bool = False
    tags: Dict[str, str] = Field(default_factory=dict)
    instance_groups: List[InstanceGroupSpec] = Field(default_factory=list)

    def uses_cilium_etcd(self) -> bool:
        return self.networking == "cilium" and self.cilium_etcd

    def public_key_content(self) -> Optional[Content]:
        """The configured public key, read from disk when given as a path."""
        if not self.ssh_public_key:
            return None
        value = self.ssh_public_key.strip()
        if value.startswith(("ssh-", "ecdsa-")):
            return StringContent(value + "\n")
        return FileContent(value)

    def ssh_key_task_name(self) -> Optional[str]:
        if self.ssh_key_name:
            return self.ssh_key_name
        if self.ssh_public_key:
            return f"kubernetes.{self.name}"
        return None

    def cluster_tags(self) -> Dict[str, str]:
        tags = {"KubernetesCluster": self.name}
        tags.update(self.tags)
        return tags


def _unquote(value: Any) -> Any:
    """Strip the quotes some python-hcl2 releases keep around strings."""
    if isinstance(value, str) and len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    if isinstance(value, dict):
        return {
            _unquote(k): _unquote(v)
            for k, v in value.items()
            if not (isinstance(k, str) and k.startswith("__"))
        }
    if isinstance(value, list):
        return [_unquote(v) for v in value]
    return value


def _labelled_blocks(parsed: Dict[str, Any], block_type: str) -> List[Dict[str, Any]]:
    blocks = []
    for entry in parsed.get(block_type, []):
        for label, body in entry.items():
            blocks.append({"name": label, **body})
    return blocks


def parse_cluster_spec(content: str, file_path: Optional[str] = None) -> ClusterSpec:
    """Parse HCL text into a ClusterSpec.

    Raises:
        ParseError: If the HCL is invalid or does not describe exactly one
            valid cluster
    """
    try:
        parsed = _unquote(hcl2.loads(content))
    except Exception as e:
        raise ParseError(f"Invalid HCL syntax: {e}", file_path) from e

    clusters = _labelled_blocks(parsed, "cluster")
    if len(clusters) != 1:
        raise ParseError(
            f"Expected exactly one cluster block, found {len(clusters)}", file_path
        )

    data = clusters[0]
    data["instance_groups"] = _labelled_blocks(parsed, "instance_group")

    try:
        spec = ClusterSpec(**data)
    except ValidationError as e:
        raise ParseError(f"Invalid cluster definition: {e}", file_path) from e

    logger.debug(
        f"Loaded cluster '{spec.name}' with {len(spec.instance_groups)} instance groups"
    )
    return spec


def load_cluster_spec(file_path: Union[str, Path]) -> ClusterSpec:
    """Load a ClusterSpec from an HCL file.

    Raises:
        FileNotFoundError: If the file does not exist
        ParseError: If the file cannot be parsed
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Cluster file not found: {file_path}")

    try:
        content = file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"File encoding error: {e}", str(file_path)) from e

    return parse_cluster_spec(content, str(file_path))
