"""Log rotation for Kubernetes component logs."""

import logging
from dataclasses import dataclass

from ..content import StringContent
from ..nodetasks import File, FileType, Package, Service
from .context import ModelBuilderContext, NodeupModelContext
from .distributions import Distribution
from .systemd import Manifest

logger = logging.getLogger(__name__)

ROTATED_LOGS = [
    "docker",
    "kube-addons",
    "kube-apiserver",
    "kube-controller-manager",
    "kube-proxy",
    "kube-scheduler",
    "kubelet",
    "etcd",
    "etcd-events",
]


@dataclass
class LogRotateOptions:
    max_size: str = ""
    date_format: str = ""


class LogrotateBuilder(NodeupModelContext):
    """Installs logrotate and configures rotation of Kubernetes logs."""

    def build(self, c: ModelBuilderContext) -> None:
        if self.distribution == Distribution.CONTAINER_OS:
            logger.info("Detected ContainerOS; won't install logrotate")
            return
        if self.distribution == Distribution.FLATCAR:
            logger.info("Detected Flatcar; won't install logrotate")
        else:
            c.add_task(Package(name="logrotate"))

        for name in ROTATED_LOGS:
            self.add_log_rotate(c, name, f"/var/log/{name}.log", LogRotateOptions())
        if self.cluster.uses_cilium_etcd():
            self.add_log_rotate(c, "etcd-cilium", "/var/log/etcd-cilium.log", LogRotateOptions())

        self.add_logrotate_service(c)

        # Runs hourly; replaces any existing timer of the same name
        unit = Manifest()
        unit.set("Unit", "Description", "Hourly Log Rotation")
        unit.set("Timer", "OnCalendar", "hourly")
        c.add_task(Service(name="logrotate.timer", definition=unit.render()).init_defaults())

    def add_logrotate_service(self, c: ModelBuilderContext) -> None:
        """Add the service the timer triggers, unless the image ships one."""
        if self.distribution in (Distribution.FLATCAR, Distribution.CONTAINER_OS):
            return

        manifest = Manifest()
        manifest.set("Unit", "Description", "Rotate and Compress System Logs")
        manifest.set("Service", "ExecStart", "/usr/sbin/logrotate /etc/logrotate.conf")
        c.add_task(
            Service(name="logrotate.service", definition=manifest.render()).init_defaults()
        )

    def add_log_rotate(
        self, c: ModelBuilderContext, name: str, path: str, options: LogRotateOptions
    ) -> None:
        if not options.max_size:
            options.max_size = "100M"

        # Flatcar sets dateext; maxsize rotation fails if the file was already
        # rotated on the same calendar date
        if self.distribution == Distribution.FLATCAR:
            options.date_format = "-%Y%m%d-%s"

        lines = [
            path + "{",
            "  rotate 5",
            "  copytruncate",
            "  missingok",
            "  notifempty",
            "  delaycompress",
            "  maxsize " + options.max_size,
        ]
        if options.date_format:
            lines.append("  dateformat " + options.date_format)
        lines.extend(
            [
                "  daily",
                "  create 0644 root root",
                "}",
            ]
        )

        c.add_task(
            File(
                path="/etc/logrotate.d/" + name,
                contents=StringContent("\n".join(lines) + "\n"),
                type=FileType.FILE,
                mode="0644",
            )
        )
