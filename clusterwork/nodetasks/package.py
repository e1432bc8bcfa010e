"""OS packages installed through the distribution's package manager."""

import logging
from typing import Optional

from ..engine.context import Context
from ..engine.target import TargetKind
from ..engine.task import Task, renders
from ..errors import ConfigurationError
from ..model.distributions import Distribution
from ..targets.local import LocalTarget

logger = logging.getLogger(__name__)


def _require_package_manager(distribution: Distribution) -> None:
    if not distribution.has_package_manager:
        raise ConfigurationError(
            f"Distribution '{distribution.value}' has no package manager"
        )


class Package(Task):
    """A package that must be installed, optionally at a given version."""

    name: str
    version: Optional[str] = None

    def find(self, c: Context) -> Optional["Package"]:
        node: LocalTarget = c.cloud
        _require_package_manager(node.distribution)

        if node.distribution.is_debian_family:
            result = node.run("dpkg-query", "-W", "-f=${Status}\t${Version}", self.name)
            if not result.ok:
                return None
            status, _, version = result.stdout.strip().partition("\t")
            if not status.endswith(" installed"):
                return None
        else:
            result = node.run("rpm", "-q", "--queryformat", "%{VERSION}-%{RELEASE}", self.name)
            if not result.ok:
                return None
            version = result.stdout.strip()

        return Package(name=self.name, version=version or None, lifecycle=self.lifecycle)

    @renders(TargetKind.LOCAL)
    def render_local(self, t: LocalTarget, a, e, changes) -> None:
        _require_package_manager(t.distribution)

        if t.distribution.is_debian_family:
            spec = f"{e.name}={e.version}" if e.version else e.name
            args = ["apt-get", "install", "-y", "--no-install-recommends", spec]
        else:
            spec = f"{e.name}-{e.version}" if e.version else e.name
            args = ["dnf", "install", "-y", spec]

        logger.info(f"Installing package {spec}")
        t.run(*args, check=True)
