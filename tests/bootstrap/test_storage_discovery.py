from firstboot.bootstrap.models import BootstrapState
from firstboot.bootstrap.steps.storage_discovery import StorageDiscoveryStep
from firstboot.bootstrap.steps.storage_provisioning import StorageProvisioningStep

from conftest import FakeDevices, make_context


def test_without_wait_flag_attached_volume_is_left_alone(toolkit, runner, sleeps):
    toolkit.devices = FakeDevices(present={"/dev/xvdh"})
    state = BootstrapState()
    ctx = make_context(wait_for_volume=False)

    StorageDiscoveryStep().run(ctx, toolkit, state)

    assert state.data_device is None
    assert sleeps == []
    assert toolkit.devices.checks == 0

    step = StorageProvisioningStep()
    assert step.skip_reason(ctx, state)
    assert not runner.ran(r"xvdh")
    assert not runner.ran(r"^mkfs\.xfs")


def test_wait_flag_absent_volume_spends_full_budget_and_continues(toolkit, sleeps, capture):
    toolkit.devices = FakeDevices()
    state = BootstrapState()
    StorageDiscoveryStep().run(make_context(wait_for_volume=True), toolkit, state)

    assert state.data_device is None
    assert len(sleeps) == 59
    assert sum(sleeps) == toolkit.budget(toolkit.settings.volume_wait).total_wait()
    assert max(sleeps) == 5.0
    assert capture.kinds().count("RetryAttempted") == 59


def test_wait_flag_picks_up_late_volume(toolkit, sleeps):
    toolkit.devices = FakeDevices(appear_after={"/dev/xvdh": 1})
    state = BootstrapState()
    StorageDiscoveryStep().run(make_context(wait_for_volume=True), toolkit, state)

    assert state.data_device.path == "/dev/xvdh"
    assert sleeps == [1.0]


def test_ephemeral_devices_are_discovered_and_tuned(toolkit, metadata, runner):
    metadata.values.update(
        {
            "block-device-mapping/": "ami\nephemeral0\nephemeral1\n",
            "block-device-mapping/ephemeral0": "sdb",
            "block-device-mapping/ephemeral1": "sdc",
        }
    )
    toolkit.devices = FakeDevices(present={"/dev/xvdb", "/dev/xvdc"})
    state = BootstrapState()
    StorageDiscoveryStep().run(make_context(), toolkit, state)

    assert [d.path for d in state.ephemeral_devices] == ["/dev/xvdb", "/dev/xvdc"]
    assert runner.ran(r"blockdev --setra 512 /dev/xvdb")
    assert runner.ran(r"blockdev --setra 512 /dev/xvdc")
