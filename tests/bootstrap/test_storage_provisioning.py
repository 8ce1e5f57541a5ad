from firstboot.bootstrap.models import BootstrapState
from firstboot.bootstrap.steps.mount_table import MountTablePersistenceStep
from firstboot.bootstrap.steps.storage_provisioning import StorageProvisioningStep
from firstboot.storage.devices import BlockDevice


def _dev(path, ordinal=0):
    return BlockDevice(path=path, logical_name=f"ephemeral{ordinal}", requested_name=path[-3:], ordinal=ordinal)


def test_no_devices_means_no_mutation(toolkit, runner, ctx):
    step = StorageProvisioningStep()
    state = BootstrapState()

    assert step.skip_reason(ctx, state) == "no ephemeral or data devices"
    step.run(ctx, toolkit, state)

    assert runner.calls == []
    assert len(state.mount_plan) == 0
    assert not toolkit.settings.service_mount_point.exists()


def test_runtime_host_gets_striped_btrfs_with_bind_mounts(toolkit, runner, ctx):
    s = toolkit.settings
    state = BootstrapState(
        runtime_present=True,
        ephemeral_devices=(_dev("/dev/xvdb", 0), _dev("/dev/xvdc", 1)),
    )
    StorageProvisioningStep().run(ctx, toolkit, state)

    assert runner.ran(r"^wipefs -a -f /dev/xvdb$")
    assert runner.ran(r"^mkfs\.btrfs -L /srv -d raid0 -f /dev/xvdb /dev/xvdc$")
    assert runner.ran(r"^btrfs balance start --full-balance ")
    assert runner.ran(r"^rsync -a -T ")
    assert state.service_fstype == "btrfs"

    plan = [(e.source, e.mountpoint, e.fstype) for e in state.mount_plan]
    assert plan == [
        ("/dev/xvdb", str(s.service_mount_point), "btrfs"),
        (str(s.service_mount_point / "tmp"), str(s.tmp_dir), "none"),
        (str(s.service_mount_point / "docker"), str(s.docker_data_dir), "none"),
    ]
    assert "comment=cloudconfig" in state.mount_plan.entries[0].options
    # the comment is an fstab-only option
    mount = runner.ran(r"^mount -t btrfs")[0]
    assert "comment=" not in mount[4]


def test_single_device_btrfs_is_not_balanced(toolkit, runner, ctx):
    state = BootstrapState(runtime_present=True, ephemeral_devices=(_dev("/dev/xvdb"),))
    StorageProvisioningStep().run(ctx, toolkit, state)

    assert runner.ran(r"^mkfs\.btrfs -L /srv -f /dev/xvdb$")
    assert not runner.ran(r"balance")


def test_runtime_less_host_stripes_with_md_and_ext4(toolkit, runner, ctx):
    s = toolkit.settings
    runner.on(r"^mdadm --detail --scan", out="ARRAY /dev/md0 metadata=1.2 UUID=abc\n")
    state = BootstrapState(
        runtime_present=False,
        ephemeral_devices=(_dev("/dev/xvdb", 0), _dev("/dev/xvdc", 1)),
    )
    StorageProvisioningStep().run(ctx, toolkit, state)

    create = runner.ran(r"^mdadm --create")[0]
    assert "--level=stripe" in create and "--chunk=256" in create
    assert "--raid-devices=2" in create and "--run" in create
    assert runner.ran(r"^mkfs\.ext4 -L /srv -m 0 -O dir_index,sparse_super /dev/md0$")
    assert runner.ran(r"^update-initramfs -u -k all$")

    conf = s.mdadm_conf.read_text()
    assert conf.startswith("DEVICE partitions")
    assert "ARRAY /dev/md0" in conf
    defaults = s.mdadm_defaults.read_text()
    assert "AUTOCHECK=false" in defaults and "START_DAEMON=false" in defaults

    assert state.service_fstype == "ext4"
    assert [e.fstype for e in state.mount_plan] == ["ext4", "none"]


def test_data_volume_gets_xfs(toolkit, runner, ctx):
    s = toolkit.settings
    state = BootstrapState(data_device=BlockDevice(path="/dev/xvdh", logical_name="data", requested_name="xvdh"))
    StorageProvisioningStep().run(ctx, toolkit, state)

    assert runner.ran(r"^mkfs\.xfs -q -L /data -f /dev/xvdh$")
    assert runner.ran(r"^xfs_info ")
    assert [(e.source, e.mountpoint) for e in state.mount_plan] == [("/dev/xvdh", str(s.data_mount_point))]
    # no service storage, nothing else touched
    assert not runner.ran(r"mkfs\.(btrfs|ext4)")


def test_mount_table_is_written_once(toolkit, runner, ctx):
    s = toolkit.settings
    s.fstab.parent.mkdir(parents=True, exist_ok=True)
    s.fstab.write_text("LABEL=root\t/\text4\tdefaults\t0\t0\n")

    state = BootstrapState(runtime_present=True, ephemeral_devices=(_dev("/dev/xvdb"),))
    StorageProvisioningStep().run(ctx, toolkit, state)

    step = MountTablePersistenceStep()
    step.run(ctx, toolkit, state)
    step.run(ctx, toolkit, state)

    lines = [ln for ln in s.fstab.read_text().splitlines() if ln.strip()]
    assert len(lines) == 4
    assert len(set(lines)) == 4
    assert len(runner.ran(r"^mount -a$")) == 2
