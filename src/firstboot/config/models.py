# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/config/models.py

from __future__ import annotations

import time
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

COORDINATOR_ROLE = "master"
LOOPBACK = "127.0.0.1"


class RetrySettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    attempts: int = Field(ge=1)
    step_seconds: float = 1.0
    cap_seconds: Optional[float] = None
    trailing_wait: bool = False


class MountOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    btrfs: str = "defaults,noatime,space_cache,compress=lzo,nofail,comment=cloudconfig"
    ext4: str = (
        "defaults,noatime,barrier=0,data=writeback,errors=remount-ro,"
        "nofail,comment=cloudconfig"
    )
    xfs: str = "defaults,noatime,nodiratime,nobarrier,nofail,comment=cloudconfig"
    bind: str = "bind"


class SaltRepository(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source_line: str = (
        "deb [signed-by=/etc/apt/keyrings/salt-archive-keyring.pgp arch=amd64] "
        "https://packages.broadcom.com/artifactory/saltproject-deb/ stable main"
    )
    key_url: str = "https://packages.broadcom.com/artifactory/api/security/keypair/SaltProjectKey/public"
    keyring_path: Path = Path("/etc/apt/keyrings/salt-archive-keyring.pgp")
    sources_list: Path = Path("/etc/apt/sources.list.d/salt.list")


class UserDataSettings(BaseModel):
    """Downloads and package sets of the user-data bootstrap."""

    model_config = ConfigDict(extra="forbid")

    docker_install_url: str = "https://get.docker.com/"
    compose_url: str = (
        "https://github.com/docker/compose/releases/download/{version}/docker-compose-{system}-{machine}"
    )
    compose_binary: Path = Path("/usr/local/bin/docker-compose")
    upstart_url: str = "https://raw.githubusercontent.com/saltstack/salt/develop/pkg/{service}.upstart"
    upstart_dir: Path = Path("/etc/init")
    common_packages: List[str] = Field(
        default_factory=lambda: ["apt-transport-https", "software-properties-common"]
    )
    tool_packages: List[str] = Field(default_factory=lambda: ["joe", "git"])
    build_packages: List[str] = Field(
        default_factory=lambda: [
            "build-essential", "pkg-config", "swig",
            "libyaml-0-2", "libgmp10",
            "python3-dev", "libyaml-dev", "libgmp-dev", "libssl-dev",
            "libzmq3-dev", "procps", "pciutils", "python3-pip",
        ]
    )
    pip_packages: List[str] = Field(
        default_factory=lambda: ["pyzmq", "pycryptodomex", "gitpython", "psutil"]
    )
    download_timeout: float = 60.0


class BootstrapSettings(BaseModel):
    """
    Host layout and tunables. Defaults describe a stock Ubuntu EC2 host;
    tests and unusual images override them from YAML.
    """

    model_config = ConfigDict(extra="forbid")

    # Completion guard
    lock_file: Path = Path("/etc/os-bootstrap")

    # Cloud metadata
    metadata_url: str = "http://169.254.169.254/latest/meta-data"
    metadata_token_url: str = "http://169.254.169.254/latest/api/token"
    metadata_timeout: float = 5.0
    use_imdsv2: bool = True
    os_release_ec2: Path = Path("/etc/os-release-ec2")

    # Network identity
    hosts_file: Path = Path("/etc/hosts")
    hostname_file: Path = Path("/etc/hostname")
    kernel_hostname: Path = Path("/proc/sys/kernel/hostname")
    kernel_domainname: Path = Path("/proc/sys/kernel/domainname")
    network_interface: str = "eth0"
    network_interfaces_file: Path = Path("/etc/network/interfaces")
    network_interfaces_dir: Path = Path("/etc/network/interfaces.d")
    coordinator_alias: str = "salt"

    # Storage
    fstab: Path = Path("/etc/fstab")
    proc_mounts: Path = Path("/proc/mounts")
    sys_block: Path = Path("/sys/block")
    scsi_host_glob: str = "/sys/class/scsi_host/*/scan"
    dev_dir: Path = Path("/dev")
    ephemeral_pattern: str = r"^ephemeral\d+$"
    data_device_candidates: List[str] = Field(default_factory=lambda: ["xvdh", "sdh"])
    io_schedulers: List[str] = Field(default_factory=lambda: ["noop", "none"])
    read_ahead_sectors: int = 512
    raid_read_ahead_sectors: int = 65536
    raid_device: str = "/dev/md0"
    raid_chunk_kb: int = 256
    service_mount_point: Path = Path("/srv")
    scratch_mount_point: Path = Path("/mnt")
    data_mount_point: Path = Path("/data")
    tmp_dir: Path = Path("/tmp")
    var_tmp_dir: Path = Path("/var/tmp")
    mount_options: MountOptions = Field(default_factory=MountOptions)
    mdadm_conf: Path = Path("/etc/mdadm/mdadm.conf")
    mdadm_defaults: Path = Path("/etc/default/mdadm")

    # Container runtime
    docker_data_dir: Path = Path("/var/lib/docker")
    docker_daemon_json: Path = Path("/etc/docker/daemon.json")
    docker_unit_files: List[Path] = Field(
        default_factory=lambda: [Path("/etc/init/docker.conf"), Path("/etc/init.d/docker")]
    )

    # Packages
    btrfs_package: str = "btrfs-progs"
    mdadm_package: str = "mdadm"
    xfs_package: str = "xfsprogs"
    purge_packages: List[str] = Field(
        default_factory=lambda: ["parted", "kpartx", "^ruby*", "^libruby*"]
    )
    stale_logs: List[Path] = Field(
        default_factory=lambda: [Path("/var/log/dpkg.log"), Path("/var/log/dmesg.0"), Path("/var/log/apt")]
    )

    # Configuration-management agent
    salt_dir: Path = Path("/etc/salt")
    salt_cache_dirs: List[Path] = Field(
        default_factory=lambda: [Path("/var/cache/salt"), Path("/var/log/salt"), Path("/var/run/salt")]
    )
    salt_unit_dirs: List[Path] = Field(
        default_factory=lambda: [Path("/etc/init"), Path("/etc/init.d"), Path("/lib/systemd/system")]
    )
    salt_repository: Optional[SaltRepository] = Field(default_factory=SaltRepository)
    coordinator_ports: List[int] = Field(default_factory=lambda: [4505, 4506])
    port_timeout: float = 3.0
    mine_interval: int = 5
    mine_functions: List[str] = Field(
        default_factory=lambda: ["status.uptime", "network.interfaces", "network.ip_addrs"]
    )
    tcp_keepalive_idle: int = 300
    grains_prefix: str = "opg"
    key_cleanup_pattern: str = r"^(ec2|ip|i)-"
    settle_seconds: float = 5.0

    # DNS registration collaborator
    route53_defaults: Path = Path("/etc/default/route53")
    route53_ttl: int = 300

    # Retry budgets
    volume_wait: RetrySettings = Field(
        default_factory=lambda: RetrySettings(attempts=60, step_seconds=1.0, cap_seconds=5.0)
    )
    tag_retry: RetrySettings = Field(default_factory=lambda: RetrySettings(attempts=5, step_seconds=1.0))
    coordinator_retry: RetrySettings = Field(
        default_factory=lambda: RetrySettings(attempts=10, step_seconds=1.0, trailing_wait=True)
    )

    # User-data bootstrap
    userdata: UserDataSettings = Field(default_factory=UserDataSettings)

    # Logging
    log_dir: Path = Path("/var/log/firstboot")

    @property
    def salt_pki_dir(self) -> Path:
        return self.salt_dir / "pki"

    @property
    def minion_id_file(self) -> Path:
        return self.salt_dir / "minion_id"

    @property
    def completion_lock(self) -> Path:
        return self.lock_file.with_name(self.lock_file.name + ".lock")


class RunContext(BaseModel):
    """
    Resolved inputs for one execution. Built once by the loader,
    read by every step, never modified.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    hostname: str
    domain: str
    role: str
    organisation: str
    project: str
    stackname: str
    environment: str
    release_stage: str
    branch: str
    coordinator_address: Optional[str] = None
    hosted_zone_id: Optional[str] = None
    instance_id: Optional[str] = None
    auto_scaling_group: bool = False
    wait_for_volume: bool = False
    disable_container_runtime: bool = False
    started_at: int = Field(default_factory=lambda: int(time.time()))

    @property
    def is_coordinator(self) -> bool:
        return self.role == COORDINATOR_ROLE

    @property
    def full_domain(self) -> str:
        return f"{self.stackname}.{self.domain}"

    @property
    def fqdn(self) -> str:
        return f"{self.hostname}.{self.full_domain}"

    @property
    def coordinator_host(self) -> Optional[str]:
        # The coordinator always talks to itself over loopback.
        if self.is_coordinator:
            return LOOPBACK
        return self.coordinator_address

    def grains_identity(self) -> Dict[str, str]:
        return {
            "role": self.role,
            "organisation": self.organisation,
            "project": self.project,
            "stackname": self.stackname,
            "environment": self.environment,
            "releasestage": self.release_stage,
            "branch": self.branch,
            "domain": self.full_domain,
        }


class UserDataContext(BaseModel):
    """Inputs of the lightweight cloud-init user-data bootstrap."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    role: str
    docker_compose_version: str
    salt_version: str
    is_salt_master: bool = False
