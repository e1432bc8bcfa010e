"""
Local target - applies node tasks to the machine Clusterwork runs on.

All paths are re-rooted under ``root`` so a node image can be prepared in a
directory (and tests can run against ``tmp_path``).
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..engine.target import Target, TargetKind
from ..errors import BackendError
from ..model.distributions import Distribution
from ..settings import get_settings

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of one command."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Runs host commands with subprocess."""

    def __init__(self, timeout: float | None = 600):
        self.timeout = timeout

    def run(self, args: list[str], check: bool = False) -> CommandResult:
        logger.debug(f"Running: {' '.join(args)}")
        try:
            completed = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            if check:
                raise BackendError(f"Command not found: {args[0]}") from e
            return CommandResult(returncode=127, stderr=str(e))
        except subprocess.TimeoutExpired as e:
            raise BackendError(f"Command timed out after {self.timeout}s: {' '.join(args)}") from e

        result = CommandResult(completed.returncode, completed.stdout, completed.stderr)
        if check and not result.ok:
            raise BackendError(
                f"Command failed with exit code {result.returncode}: "
                f"{' '.join(args)}: {result.stderr.strip()}",
                code=str(result.returncode),
            )
        return result


class LocalTarget(Target):
    """Node-local target used by nodeup."""

    kind = TargetKind.LOCAL

    def __init__(
        self,
        root: str | Path | None = None,
        distribution: Distribution = Distribution.UBUNTU,
        runner: CommandRunner | None = None,
    ):
        self.root = Path(root or get_settings().nodeup_root)
        self.distribution = distribution
        self.runner = runner or CommandRunner()

    def path(self, path: str | Path) -> Path:
        """Re-root an absolute node path under the target root."""
        return self.root / str(path).lstrip("/")

    def run(self, *args: str, check: bool = False) -> CommandResult:
        return self.runner.run(list(args), check=check)

    def describe(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "root": str(self.root),
            "distribution": self.distribution.value,
        }
