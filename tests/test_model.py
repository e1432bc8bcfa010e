"""Tests for model builders and the systemd manifest."""

import pytest

from clusterwork.awstasks import Instance, SSHKey
from clusterwork.cluster import ClusterSpec, InstanceGroupSpec
from clusterwork.content import FileContent, StringContent
from clusterwork.errors import ConfigurationError
from clusterwork.model.cloudup import InstanceBuilder, SSHKeyBuilder
from clusterwork.model.context import ModelBuilderContext
from clusterwork.model.distributions import Distribution
from clusterwork.model.logrotate import LogrotateBuilder
from clusterwork.model.systemd import Manifest
from clusterwork.nodetasks import File, Package, Service


def _build_logrotate(distribution, **cluster_args):
    cluster = ClusterSpec(name="demo", **cluster_args)
    c = ModelBuilderContext()
    LogrotateBuilder(cluster, distribution).build(c)
    return c.tasks


class TestManifest:
    def test_render_sections_in_order(self):
        manifest = Manifest()
        manifest.set("Unit", "Description", "Hourly Log Rotation")
        manifest.set("Timer", "OnCalendar", "hourly")

        assert manifest.render() == (
            "[Unit]\nDescription=Hourly Log Rotation\n\n[Timer]\nOnCalendar=hourly\n"
        )

    def test_repeated_keys_are_kept(self):
        manifest = Manifest()
        manifest.set("Service", "Environment", "A=1")
        manifest.set("Service", "Environment", "B=2")

        assert manifest.render() == "[Service]\nEnvironment=A=1\nEnvironment=B=2\n"


class TestModelBuilderContext:
    def test_equal_duplicate_is_ignored(self):
        c = ModelBuilderContext()
        first = c.add_task(Package(name="logrotate"))

        assert c.add_task(Package(name="logrotate")) is first
        assert list(c.tasks) == ["Package/logrotate"]

    def test_conflicting_duplicate_is_rejected(self):
        c = ModelBuilderContext()
        c.add_task(Package(name="logrotate"))

        with pytest.raises(ConfigurationError, match="Package/logrotate"):
            c.add_task(Package(name="logrotate", version="1.0"))


class TestLogrotateBuilder:
    """Tests for LogrotateBuilder."""

    def test_ubuntu(self):
        tasks = _build_logrotate(Distribution.UBUNTU)

        assert "Package/logrotate" in tasks
        assert "Service/logrotate.service" in tasks
        assert "Service/logrotate.timer" in tasks
        files = [t for t in tasks.values() if isinstance(t, File)]
        assert sorted(f.path for f in files) == sorted(
            f"/etc/logrotate.d/{name}"
            for name in [
                "docker", "kube-addons", "kube-apiserver", "kube-controller-manager",
                "kube-proxy", "kube-scheduler", "kubelet", "etcd", "etcd-events",
            ]
        )

    def test_stanza(self):
        tasks = _build_logrotate(Distribution.DEBIAN)

        kubelet = tasks["File//etc/logrotate.d/kubelet"]
        assert kubelet.mode == "0644"
        assert kubelet.contents.as_string() == (
            "/var/log/kubelet.log{\n"
            "  rotate 5\n"
            "  copytruncate\n"
            "  missingok\n"
            "  notifempty\n"
            "  delaycompress\n"
            "  maxsize 100M\n"
            "  daily\n"
            "  create 0644 root root\n"
            "}\n"
        )

    def test_flatcar_uses_dateformat_and_no_package(self):
        tasks = _build_logrotate(Distribution.FLATCAR)

        assert "Package/logrotate" not in tasks
        assert "Service/logrotate.service" not in tasks
        assert "Service/logrotate.timer" in tasks
        assert "  dateformat -%Y%m%d-%s\n" in tasks["File//etc/logrotate.d/etcd"].contents.as_string()

    def test_container_os_declares_nothing(self):
        assert _build_logrotate(Distribution.CONTAINER_OS) == {}

    def test_cilium_etcd(self):
        with_cilium = _build_logrotate(Distribution.UBUNTU, networking="cilium", cilium_etcd=True)
        without = _build_logrotate(Distribution.UBUNTU, networking="cilium")

        assert "File//etc/logrotate.d/etcd-cilium" in with_cilium
        assert "File//etc/logrotate.d/etcd-cilium" not in without

    def test_timer_unit(self):
        tasks = _build_logrotate(Distribution.UBUNTU)

        timer = tasks["Service/logrotate.timer"]
        assert timer.definition == "[Unit]\nDescription=Hourly Log Rotation\n\n[Timer]\nOnCalendar=hourly\n"
        assert timer.running and timer.enabled and timer.manage_state

        service = tasks["Service/logrotate.service"]
        assert "ExecStart=/usr/sbin/logrotate /etc/logrotate.conf" in service.definition


class TestCloudupBuilders:
    """Tests for SSHKeyBuilder and InstanceBuilder."""

    def _cluster(self, **kwargs):
        return ClusterSpec(
            name="demo",
            instance_groups=[
                InstanceGroupSpec(name="control-plane", image_id="ami-1", instance_type="m5.large", role="Master"),
                InstanceGroupSpec(name="nodes", image_id="ami-1", instance_type="t3.medium"),
            ],
            **kwargs,
        )

    def test_inline_public_key(self, rsa_public_key):
        cluster = self._cluster(ssh_public_key=rsa_public_key)
        c = ModelBuilderContext()

        SSHKeyBuilder(cluster).build(c)
        InstanceBuilder(cluster).build(c)

        key = c.tasks["SSHKey/kubernetes.demo"]
        assert isinstance(key, SSHKey)
        assert isinstance(key.public_key, StringContent)
        assert not key.shared
        assert key.tags == {"KubernetesCluster": "demo"}

        instance = c.tasks["Instance/nodes.demo"]
        assert isinstance(instance, Instance)
        assert instance.ssh_key.key == "SSHKey/kubernetes.demo"
        assert c.tasks["Instance/control-plane.demo"].tags["kubernetes.io/role"] == "master"

    def test_public_key_path(self):
        cluster = self._cluster(ssh_public_key="~/.ssh/id_rsa.pub")

        assert isinstance(cluster.public_key_content(), FileContent)

    def test_existing_key_is_shared(self):
        cluster = self._cluster(ssh_key_name="ops-key")
        c = ModelBuilderContext()

        SSHKeyBuilder(cluster).build(c)

        key = c.tasks["SSHKey/ops-key"]
        assert key.is_existing_key()
        assert key.shared

    def test_no_key(self):
        cluster = self._cluster()
        c = ModelBuilderContext()

        SSHKeyBuilder(cluster).build(c)
        InstanceBuilder(cluster).build(c)

        assert not any(isinstance(t, SSHKey) for t in c.tasks.values())
        assert c.tasks["Instance/nodes.demo"].ssh_key is None
