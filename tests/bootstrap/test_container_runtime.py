import json

import pytest

from firstboot.bootstrap.models import BootstrapState
from firstboot.bootstrap.steps.container_runtime import (
    ContainerRuntimeDetectionStep,
    ContainerRuntimeIntegrationStep,
)
from firstboot.errors import ConfigurationError

from conftest import make_context


def test_absent_runtime_is_left_alone(toolkit, runner, ctx):
    runner.on(r"^docker --version", rc=127)
    state = BootstrapState()
    ContainerRuntimeDetectionStep().run(ctx, toolkit, state)

    assert state.runtime_present is False
    assert not runner.ran(r"^service docker")


def test_present_runtime_is_stopped_and_versioned(toolkit, runner, ctx):
    runner.on(r"^docker --version", out="Docker version 24.0.5, build ced0996\n")
    runner.on(r"^docker-compose --version", out="docker-compose version 1.29.2, build 5becea4c\n")
    state = BootstrapState()
    ContainerRuntimeDetectionStep().run(ctx, toolkit, state)

    assert state.runtime_present is True
    assert state.runtime_version == "24.0.5"
    assert state.compose_version == "1.29.2"
    assert runner.ran(r"^service docker stop$")


def test_disabled_runtime_is_diverted_and_treated_as_absent(toolkit, runner):
    runner.on(r"^docker --version", out="Docker version 24.0.5, build x\n")
    state = BootstrapState()
    ContainerRuntimeDetectionStep().run(make_context(disable_container_runtime=True), toolkit, state)

    assert state.runtime_present is False
    assert runner.ran(r"^dpkg-divert --rename .*docker\.conf$")
    assert runner.ran(r"^update-rc\.d -f docker disable$")


def test_integration_skips_without_btrfs(ctx):
    step = ContainerRuntimeIntegrationStep()
    assert step.skip_reason(ctx, BootstrapState(runtime_present=False))
    assert step.skip_reason(ctx, BootstrapState(runtime_present=True, service_fstype="ext4"))
    assert step.skip_reason(ctx, BootstrapState(runtime_present=True, service_fstype="btrfs")) is None


def test_integration_switches_storage_driver_keeping_other_keys(toolkit, runner, ctx):
    path = toolkit.settings.docker_daemon_json
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"log-driver": "journald", "storage-driver": "aufs"}))

    ContainerRuntimeIntegrationStep().run(ctx, toolkit, BootstrapState(runtime_present=True, service_fstype="btrfs"))

    data = json.loads(path.read_text())
    assert data == {"log-driver": "journald", "storage-driver": "btrfs", "ipv6": False}
    assert runner.ran(r"^service docker restart$")


def test_integration_refuses_broken_daemon_config(toolkit, ctx):
    path = toolkit.settings.docker_daemon_json
    path.parent.mkdir(parents=True)
    path.write_text("{not json")
    with pytest.raises(ConfigurationError):
        ContainerRuntimeIntegrationStep().run(ctx, toolkit, BootstrapState(runtime_present=True, service_fstype="btrfs"))
