# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/salt/config.py

from __future__ import annotations

import re
import shlex
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict

from firstboot.cloud.metadata import region_from_zone

# metadata path -> grain key
EC2_RESOURCES = {
    "ami-id": "ami_id",
    "instance-id": "instance_id",
    "instance-type": "instance_type",
    "placement/availability-zone": "availability_zone",
    "profile": "profile",
    "reservation-id": "reservation_id",
}

_VERSION_RX = re.compile(r"version\s+v?([0-9][^\s,]*)", re.IGNORECASE)


class Ec2Grains(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ami_id: str = ""
    instance_id: str = ""
    instance_type: str = ""
    availability_zone: str = ""
    region: str = ""
    profile: str = ""
    reservation_id: str = ""
    source_ami_id: Optional[str] = None


class VersionGrain(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: str


class Grains(BaseModel):
    """
    Everything the minion advertises about itself. Closed schema: a typo in
    a key is a validation error, not a silently missing grain.
    """

    model_config = ConfigDict(extra="forbid")

    provider: str = "ec2"
    role: str
    organisation: str
    project: str
    stackname: str
    environment: str
    releasestage: str
    branch: str
    domain: str
    ec2: Ec2Grains
    docker: Optional[VersionGrain] = None
    docker_compose: Optional[VersionGrain] = None

    def to_mapping(self, prefix: str = "opg") -> Dict[str, object]:
        data: Dict[str, object] = {"provider": self.provider, f"{prefix}_provider": self.provider}
        for key in ("role", "organisation", "project", "stackname",
                    "environment", "releasestage", "branch", "domain"):
            data[f"{prefix}_{key}"] = getattr(self, key)
        data["ec2"] = self.ec2.model_dump(exclude_none=True)
        if self.docker:
            data["docker"] = self.docker.model_dump()
        if self.docker_compose:
            data["docker_compose"] = self.docker_compose.model_dump()
        return data

    def render(self, prefix: str = "opg") -> str:
        return yaml.safe_dump(self.to_mapping(prefix), default_flow_style=False, sort_keys=False)


def collect_ec2_grains(metadata, source_ami_id: Optional[str] = None) -> Ec2Grains:
    values = {key: metadata.get(path) for path, key in EC2_RESOURCES.items()}
    values["region"] = region_from_zone(values["availability_zone"])
    return Ec2Grains(**values, source_ami_id=source_ami_id or None)


def parse_os_release(text: str) -> Dict[str, str]:
    """Shell-style KEY=VALUE lines, as in /etc/os-release."""
    out: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, raw = line.partition("=")
        try:
            parts = shlex.split(raw)
        except ValueError:
            parts = [raw]
        out[key.strip()] = parts[0] if parts else ""
    return out


def parse_version(output: str) -> Optional[str]:
    """``Docker version 24.0.5, build ced0996`` -> ``24.0.5``."""
    m = _VERSION_RX.search(output or "")
    return m.group(1) if m else None


def master_config(service_root: str = "/srv") -> Dict[str, object]:
    return {
        "open_mode": True,
        "pillar_opts": True,
        "file_roots": {
            "base": [f"{service_root}/salt", f"{service_root}/salt/_libs", f"{service_root}/salt-formulas"],
        },
        "pillar_roots": {"base": [f"{service_root}/pillar"]},
        "fileserver_backend": ["roots"],
        # Lets every minion ask the master who it is (self-publish probe).
        "peer": {".*": ["grains.get"]},
    }


def mine_config(interval: int, functions: List[str]) -> Dict[str, object]:
    return {"mine_interval": interval, "mine_functions": {f: [] for f in functions}}


def keepalive_settings(idle: int) -> Dict[str, str]:
    return {"tcp_keepalive": "True", "tcp_keepalive_idle": str(idle)}


def dump(data: Dict[str, object]) -> str:
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
