"""Tests for node tasks applied under a temporary root."""

import pytest

from clusterwork.content import BytesContent, StringContent
from clusterwork.engine import Context, Executor, TaskStatus, run_task
from clusterwork.errors import BackendError, CannotChangeFieldError, ConfigurationError
from clusterwork.model.distributions import Distribution
from clusterwork.nodetasks import File, FileType, Package, Service
from clusterwork.targets import LocalTarget
from clusterwork.targets.local import CommandResult

from tests.fakes import FakeRunner


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def node(temp_dir, runner):
    return LocalTarget(root=temp_dir, distribution=Distribution.UBUNTU, runner=runner)


@pytest.fixture
def node_context(node, settings):
    return Context(node, cloud=node, settings=settings)


class TestFile:
    """Tests for the File task."""

    def test_writes_file_with_mode(self, node_context, temp_dir):
        outcome = run_task(
            node_context,
            File(path="/etc/app/app.conf", contents=StringContent("key=value\n"), mode="0600"),
        )

        written = temp_dir / "etc" / "app" / "app.conf"
        assert outcome.status == TaskStatus.CREATED
        assert written.read_text() == "key=value\n"
        assert oct(written.stat().st_mode & 0o777) == "0o600"

    def test_default_mode(self, node_context, temp_dir):
        run_task(node_context, File(path="/etc/a", contents=StringContent("a")))
        run_task(node_context, File(path="/var/lib/app", type=FileType.DIRECTORY))

        assert (temp_dir / "etc" / "a").stat().st_mode & 0o777 == 0o644
        assert (temp_dir / "var" / "lib" / "app").is_dir()
        assert (temp_dir / "var" / "lib" / "app").stat().st_mode & 0o777 == 0o755

    def test_second_run_is_unchanged(self, node_context):
        run_task(node_context, File(path="/etc/a", contents=StringContent("a")))

        outcome = run_task(node_context, File(path="/etc/a", contents=StringContent("a")))

        assert outcome.status == TaskStatus.NO_CHANGE

    def test_content_drift_is_rewritten(self, node_context, temp_dir):
        target_file = temp_dir / "etc" / "a"
        target_file.parent.mkdir(parents=True)
        target_file.write_text("old")
        target_file.chmod(0o644)

        outcome = run_task(node_context, File(path="/etc/a", contents=StringContent("new")))

        assert outcome.status == TaskStatus.UPDATED
        assert outcome.changes.names == ["contents"]
        assert target_file.read_text() == "new"

    def test_binary_file_is_compared_by_bytes(self, node_context, temp_dir):
        target_file = temp_dir / "etc" / "blob"
        target_file.parent.mkdir(parents=True)
        target_file.write_bytes(b"\xff\xfe\x00binary")
        target_file.chmod(0o644)

        unchanged = run_task(
            node_context, File(path="/etc/blob", contents=BytesContent(b"\xff\xfe\x00binary"))
        )
        replaced = run_task(node_context, File(path="/etc/blob", contents=StringContent("text\n")))

        assert unchanged.status == TaskStatus.NO_CHANGE
        assert replaced.status == TaskStatus.UPDATED
        assert target_file.read_text() == "text\n"

    def test_file_cannot_become_directory(self, node_context, temp_dir):
        (temp_dir / "etc").mkdir()
        (temp_dir / "etc" / "a").write_text("x")

        with pytest.raises(CannotChangeFieldError):
            run_task(node_context, File(path="/etc/a", type=FileType.DIRECTORY))

    def test_identity_is_path(self):
        assert File(path="/etc/a").task_key() == "File//etc/a"


class TestPackage:
    """Tests for the Package task."""

    def test_installs_missing_package(self, node_context, runner):
        runner.responses[("dpkg-query",)] = CommandResult(returncode=1, stderr="no packages found")

        outcome = run_task(node_context, Package(name="logrotate"))

        assert outcome.status == TaskStatus.CREATED
        assert runner.commands[-1] == [
            "apt-get", "install", "-y", "--no-install-recommends", "logrotate"
        ]

    def test_installed_package_is_unchanged(self, node_context, runner):
        runner.responses[("dpkg-query",)] = CommandResult(
            returncode=0, stdout="install ok installed\t3.19.0-1"
        )

        outcome = run_task(node_context, Package(name="logrotate"))

        assert outcome.status == TaskStatus.NO_CHANGE
        assert not any(cmd[0] == "apt-get" for cmd in runner.commands)

    def test_version_drift_installs_requested_version(self, node_context, runner):
        runner.responses[("dpkg-query",)] = CommandResult(
            returncode=0, stdout="install ok installed\t3.19.0-1"
        )

        outcome = run_task(node_context, Package(name="logrotate", version="3.21.0-1"))

        assert outcome.status == TaskStatus.UPDATED
        assert runner.commands[-1][-1] == "logrotate=3.21.0-1"

    def test_rpm_family(self, temp_dir, settings):
        runner = FakeRunner({("rpm",): CommandResult(returncode=1)})
        node = LocalTarget(root=temp_dir, distribution=Distribution.RHEL, runner=runner)

        run_task(Context(node, cloud=node, settings=settings), Package(name="logrotate"))

        assert runner.commands[-1] == ["dnf", "install", "-y", "logrotate"]

    def test_install_failure_is_backend_error(self, node_context, runner):
        runner.responses[("dpkg-query",)] = CommandResult(returncode=1)
        runner.responses[("apt-get",)] = CommandResult(returncode=100, stderr="E: broken")

        with pytest.raises(BackendError):
            run_task(node_context, Package(name="logrotate"))

    def test_no_package_manager(self, temp_dir, settings):
        node = LocalTarget(root=temp_dir, distribution=Distribution.FLATCAR, runner=FakeRunner())

        with pytest.raises(ConfigurationError):
            run_task(Context(node, cloud=node, settings=settings), Package(name="logrotate"))


class TestService:
    """Tests for the Service task."""

    def test_installs_enables_and_starts(self, node_context, runner, temp_dir):
        service = Service(name="logrotate.timer", definition="[Timer]\nOnCalendar=hourly\n").init_defaults()

        outcome = run_task(node_context, service)

        unit = temp_dir / "etc" / "systemd" / "system" / "logrotate.timer"
        assert outcome.status == TaskStatus.CREATED
        assert unit.read_text() == "[Timer]\nOnCalendar=hourly\n"
        assert runner.commands == [
            ["systemctl", "daemon-reload"],
            ["systemctl", "enable", "logrotate.timer"],
            ["systemctl", "start", "logrotate.timer"],
        ]

    def test_running_service_is_unchanged(self, node_context, runner, temp_dir):
        unit = temp_dir / "etc" / "systemd" / "system" / "app.service"
        unit.parent.mkdir(parents=True)
        unit.write_text("[Unit]\n")
        runner.responses[("systemctl", "is-enabled")] = CommandResult(0, "enabled\n")
        runner.responses[("systemctl", "is-active")] = CommandResult(0, "active\n")

        outcome = run_task(node_context, Service(name="app.service", definition="[Unit]\n").init_defaults())

        assert outcome.status == TaskStatus.NO_CHANGE

    def test_changed_unit_restarts(self, node_context, runner, temp_dir):
        unit = temp_dir / "etc" / "systemd" / "system" / "app.service"
        unit.parent.mkdir(parents=True)
        unit.write_text("[Unit]\nDescription=old\n")
        runner.responses[("systemctl", "is-enabled")] = CommandResult(0, "enabled\n")
        runner.responses[("systemctl", "is-active")] = CommandResult(0, "active\n")

        outcome = run_task(
            node_context, Service(name="app.service", definition="[Unit]\nDescription=new\n").init_defaults()
        )

        assert outcome.status == TaskStatus.UPDATED
        assert ["systemctl", "restart", "app.service"] in runner.commands
        assert ["systemctl", "start", "app.service"] not in runner.commands

    def test_unmanaged_state_only_writes_unit(self, node_context, runner):
        service = Service(name="app.service", definition="[Unit]\n", manage_state=False)

        run_task(node_context, service)

        assert runner.commands == [["systemctl", "daemon-reload"]]

    def test_init_defaults_keeps_explicit_values(self):
        service = Service(name="a", running=False).init_defaults()

        assert service.running is False
        assert service.enabled is True
        assert service.manage_state is True


@pytest.mark.asyncio
async def test_services_start_after_files(node_context, runner, temp_dir):
    config = File(path="/etc/app.conf", contents=StringContent("x"))
    service = Service(name="app.service", definition="[Unit]\n").init_defaults()

    result = await Executor(node_context).run([service, config])

    assert result.success
    assert result.order == ["File//etc/app.conf", "Service/app.service"]
