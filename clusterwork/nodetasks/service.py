"""systemd units on the node."""

import logging
from collections.abc import Mapping
from typing import Optional

from ..engine.context import Context
from ..engine.target import TargetKind
from ..engine.task import Task, renders
from ..errors import MissingRequiredFieldError
from ..targets.local import LocalTarget

logger = logging.getLogger(__name__)

SYSTEMD_UNIT_DIR = "/etc/systemd/system"


class Service(Task):
    """A systemd unit file plus its enabled and running state.

    Services are started last: every non-service task declared in the same
    run is a dependency, so the files and packages a unit needs are in place
    before it starts.
    """

    name: str
    definition: Optional[str] = None
    running: Optional[bool] = None
    enabled: Optional[bool] = None
    manage_state: Optional[bool] = None

    diff_excluded = frozenset({"manage_state"})

    def init_defaults(self) -> "Service":
        if self.running is None:
            self.running = True
        if self.enabled is None:
            self.enabled = True
        if self.manage_state is None:
            self.manage_state = True
        return self

    def depends_on(self, tasks: Mapping[str, Task]) -> list[Task]:
        return [task for task in tasks.values() if not isinstance(task, Service)]

    def unit_path(self) -> str:
        return f"{SYSTEMD_UNIT_DIR}/{self.name}"

    def find(self, c: Context) -> Optional["Service"]:
        node: LocalTarget = c.cloud
        unit_file = node.path(self.unit_path())
        if not unit_file.exists():
            return None

        enabled = node.run("systemctl", "is-enabled", self.name).stdout.strip()
        active = node.run("systemctl", "is-active", self.name).stdout.strip()

        return Service(
            name=self.name,
            definition=unit_file.read_text(encoding="utf-8"),
            enabled=enabled == "enabled",
            running=active == "active",
            manage_state=self.manage_state,
            lifecycle=self.lifecycle,
        )

    def check_changes(self, a, e, changes) -> None:
        if a is None and e.definition is None:
            raise MissingRequiredFieldError("definition")

    @renders(TargetKind.LOCAL)
    def render_local(self, t: LocalTarget, a, e, changes) -> None:
        definition_changed = a is None or changes.definition is not None

        if definition_changed and e.definition is not None:
            unit_file = t.path(e.unit_path())
            logger.info(f"Writing systemd unit {unit_file}")
            unit_file.parent.mkdir(parents=True, exist_ok=True)
            unit_file.write_text(e.definition, encoding="utf-8")
            t.run("systemctl", "daemon-reload", check=True)

        if not e.manage_state:
            logger.debug(f"Not managing state of {e.name}")
            return

        if e.enabled and (a is None or not a.enabled):
            t.run("systemctl", "enable", e.name, check=True)

        was_running = a is not None and a.running
        if e.running:
            if not was_running:
                logger.info(f"Starting {e.name}")
                t.run("systemctl", "start", e.name, check=True)
            elif definition_changed:
                logger.info(f"Restarting {e.name} after unit change")
                t.run("systemctl", "restart", e.name, check=True)
        elif e.running is False and was_running:
            logger.info(f"Stopping {e.name}")
            t.run("systemctl", "stop", e.name, check=True)
