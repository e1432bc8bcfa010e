"""
Clusterwork - reconcile the infrastructure underneath a Kubernetes cluster.

Every object (key pairs, instances, node files, packages, systemd units) is a
desired-state task. Tasks form a dependency graph and are converged by one
generic lifecycle against a live cloud API, generated Terraform, the local
node, or a dry run.
"""

from .core import ClusterworkCore
from .settings import ClusterworkSettings, get_settings, reload_settings

__version__ = "0.1.0"
__all__ = [
    "ClusterworkCore",
    "ClusterworkSettings",
    "get_settings",
    "reload_settings",
]
