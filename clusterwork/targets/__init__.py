"""Render targets: dry run, Terraform, AWS API and the local node."""

from .aws import AWSAPITarget, AWSCloud
from .dryrun import DryRunTarget, PlannedChange
from .local import CommandResult, CommandRunner, LocalTarget
from .terraform import Literal, TerraformDocument, TerraformTarget

__all__ = [
    "AWSAPITarget",
    "AWSCloud",
    "CommandResult",
    "CommandRunner",
    "DryRunTarget",
    "Literal",
    "LocalTarget",
    "PlannedChange",
    "TerraformDocument",
    "TerraformTarget",
]
