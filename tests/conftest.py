import re
from pathlib import Path

import pytest

from firstboot.bootstrap.toolkit import HostToolkit
from firstboot.config.models import BootstrapSettings, RunContext
from firstboot.execution.runner import CommandResult, CommandRunner
from firstboot.observers.dispatcher import EventBus
from firstboot.salt.cli_runner import SaltCliRunner
from firstboot.storage.filesystems import Filesystems
from firstboot.system.packages import AptManager
from firstboot.system.services import ServiceManager
from firstboot.utils.files import HostFiles


class FakeRunner(CommandRunner):
    """
    Records every argv and answers from a script of (regex, CommandResult)
    pairs; unmatched commands succeed with empty output.
    """

    def __init__(self, dry_run=False):
        super().__init__(dry_run=dry_run)
        self.calls = []
        self.script = []

    def on(self, pattern, rc=0, out="", err=""):
        return self.sequence(pattern, [(rc, out, err)])

    def sequence(self, pattern, answers):
        """Successive (rc, out, err) answers; the last one repeats."""
        self.script.insert(0, (re.compile(pattern), list(answers)))
        return self

    def _execute(self, cmd, *, input=None, env=None, timeout=None):
        argv = [str(c) for c in cmd]
        self.calls.append(argv)
        line = " ".join(argv)
        for rx, answers in self.script:
            if rx.search(line):
                rc, out, err = answers.pop(0) if len(answers) > 1 else answers[0]
                return CommandResult(argv=argv, returncode=rc, stdout=out, stderr=err)
        return CommandResult(argv=argv, returncode=0)

    def ran(self, pattern):
        rx = re.compile(pattern)
        return [c for c in self.calls if rx.search(" ".join(c))]


class FakeMetadata:
    def __init__(self, values=None):
        self.values = dict(values or {})
        self.requests = []

    def get(self, path):
        self.requests.append(path)
        return self.values.get(path, "")

    def listing(self, path):
        return [x for x in self.get(path).splitlines() if x.strip()]

    def local_ipv4(self):
        return self.get("local-ipv4")

    def instance_id(self):
        return self.get("instance-id")

    def availability_zone(self):
        return self.get("placement/availability-zone")


class FakeDevices:
    """DeviceProbe over a set of paths; *appear_after* delays a path by N checks."""

    def __init__(self, present=(), appear_after=None, dev_dir="/dev"):
        self.present = set(present)
        self.appear_after = dict(appear_after or {})
        self.dev_dir = Path(dev_dir)
        self.checks = 0

    def path_for(self, name):
        return str(self.dev_dir / name)

    def is_block_device(self, path):
        self.checks += 1
        if path in self.appear_after:
            self.appear_after[path] -= 1
            if self.appear_after[path] < 0:
                self.present.add(path)
        return path in self.present


class FakePorts:
    def __init__(self, answers=None):
        # list of port lists, one per attempt; the last repeats
        self.answers = list(answers or [[4505, 4506]])
        self.calls = 0

    def open_ports(self, host, ports):
        self.calls += 1
        idx = min(self.calls - 1, len(self.answers) - 1)
        return [p for p in ports if p in self.answers[idx]]


class Capture:
    def __init__(self):
        self.events = []

    def notify(self, ev):
        self.events.append(ev)

    def kinds(self):
        return [e.__class__.__name__ for e in self.events]


@pytest.fixture
def settings(tmp_path: Path) -> BootstrapSettings:
    root = tmp_path / "root"
    root.mkdir()
    return BootstrapSettings(
        lock_file=root / "etc/os-bootstrap",
        os_release_ec2=root / "etc/os-release-ec2",
        hosts_file=root / "etc/hosts",
        hostname_file=root / "etc/hostname",
        kernel_hostname=root / "proc/hostname",
        kernel_domainname=root / "proc/domainname",
        network_interfaces_file=root / "etc/network/interfaces",
        network_interfaces_dir=root / "etc/network/interfaces.d",
        fstab=root / "etc/fstab",
        proc_mounts=root / "proc/mounts",
        sys_block=root / "sys/block",
        scsi_host_glob=str(root / "sys/class/scsi_host/*/scan"),
        service_mount_point=root / "srv",
        scratch_mount_point=root / "mnt",
        data_mount_point=root / "data",
        tmp_dir=root / "tmp",
        var_tmp_dir=root / "var/tmp",
        mdadm_conf=root / "etc/mdadm/mdadm.conf",
        mdadm_defaults=root / "etc/default/mdadm",
        docker_data_dir=root / "var/lib/docker",
        docker_daemon_json=root / "etc/docker/daemon.json",
        docker_unit_files=[root / "etc/init/docker.conf"],
        stale_logs=[root / "var/log/dpkg.log"],
        salt_dir=root / "etc/salt",
        salt_cache_dirs=[root / "var/cache/salt"],
        salt_unit_dirs=[root / "etc/init"],
        salt_repository=None,
        route53_defaults=root / "etc/default/route53",
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def metadata() -> FakeMetadata:
    return FakeMetadata(
        {
            "local-ipv4": "10.0.0.5",
            "instance-id": "i-0abc",
            "ami-id": "ami-123",
            "instance-type": "m5.large",
            "placement/availability-zone": "eu-west-1a",
            "profile": "default-hvm",
            "reservation-id": "r-1",
            "block-device-mapping/": "ami\nroot\n",
        }
    )


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def capture() -> Capture:
    return Capture()


@pytest.fixture
def toolkit(settings, runner, metadata, sleeps, capture) -> HostToolkit:
    files = HostFiles()
    return HostToolkit(
        settings=settings,
        runner=runner,
        files=files,
        metadata=metadata,
        devices=FakeDevices(),
        services=ServiceManager(runner, settings.salt_unit_dirs),
        apt=AptManager(runner),
        salt=SaltCliRunner(runner),
        filesystems=Filesystems(runner, files),
        ports=FakePorts(),
        bus=EventBus([capture]),
        sleep=sleeps.append,
        event_ctx={"run_id": "test-run", "env": "dev", "host": None},
    )


def make_context(**overrides) -> RunContext:
    values = dict(
        hostname="web-01",
        domain="example.net",
        role="web",
        organisation="acme",
        project="shop",
        stackname="blue",
        environment="dev",
        release_stage="beta",
        branch="main",
        coordinator_address="10.0.0.2",
        started_at=1700000000,
    )
    values.update(overrides)
    return RunContext(**values)


@pytest.fixture
def ctx() -> RunContext:
    return make_context()


