"""Tasks that manage EC2 resources."""

from .instance import Instance
from .sshkey import SSHKey

__all__ = ["Instance", "SSHKey"]
