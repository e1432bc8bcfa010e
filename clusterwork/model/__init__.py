"""Model builders that declare the tasks for a cluster."""

from .distributions import Distribution
from .systemd import Manifest

__all__ = ["Distribution", "Manifest"]
