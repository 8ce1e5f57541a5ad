# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/bootstrap/userdata.py

from __future__ import annotations

import logging
import platform
import socket
import time
from typing import Callable, List, Tuple

import requests
import yaml

from firstboot.config.models import UserDataContext
from firstboot.errors import BootstrapError, ConfigurationError
from firstboot.observers.events import StepFailed, StepStarted, StepSucceeded
from firstboot.system.packages import APT_ENV
from firstboot.utils.retry import retry

from .toolkit import HostToolkit

log = logging.getLogger("firstboot")


@retry(retries=3, delay=5, retry_on=(requests.RequestException,))
def download(url: str, timeout: float) -> bytes:
    r = requests.get(url, timeout=timeout)
    r.raise_for_status()
    return r.content


def hosts_line(ip: str, role: str, aws_hostname: str) -> str:
    """``10.0.0.5 web-ip-10-0-0-5 web ip-10-0-0-5``"""
    return f"{ip} {role}-{aws_hostname} {role} {aws_hostname}"


class UserDataBootstrap:
    """
    The cloud-init user-data stage: just enough to get docker and a salt
    minion (and optionally master) onto a bare image. Any failure stops it.
    """

    def __init__(self, tk: HostToolkit, hostname: Callable[[], str] = socket.gethostname):
        self.tk = tk
        self.cfg = tk.settings.userdata
        self.hostname = hostname

    def steps(self, ctx: UserDataContext) -> List[Tuple[str, Callable[[UserDataContext], None]]]:
        steps = [
            ("hosts-entry", self.add_hosts_entry),
            ("common-packages", self.install_common),
            ("container-runtime", self.install_docker),
            ("salt", self.install_salt),
            ("salt-minion", self.configure_minion),
        ]
        if ctx.is_salt_master:
            steps.append(("salt-master", self.configure_master))
        return steps

    def run(self, ctx: UserDataContext) -> None:
        tk = self.tk
        tk.event_ctx.setdefault("env", ctx.role)
        for name, fn in self.steps(ctx):
            tk.bus.emit(StepStarted(step=name, **tk.events()))
            t0 = time.time()
            try:
                fn(ctx)
            except Exception as exc:
                tk.bus.emit(
                    StepFailed(step=name, error=str(exc), duration_ms=int((time.time() - t0) * 1000), **tk.events())
                )
                raise
            tk.bus.emit(StepSucceeded(step=name, duration_ms=int((time.time() - t0) * 1000), **tk.events()))

    # ------------------------- steps ------------------------------

    def add_hosts_entry(self, ctx: UserDataContext) -> None:
        ip = self.tk.metadata.local_ipv4()
        if not ip:
            raise BootstrapError("Unable to determine the local IPv4 address")
        line = hosts_line(ip, ctx.role, self.hostname())
        self.tk.files.append_line(self.tk.settings.hosts_file, line)

    def install_common(self, ctx: UserDataContext) -> None:
        self.tk.apt.install(*self.cfg.common_packages)
        self.tk.apt.update()

    def install_docker(self, ctx: UserDataContext) -> None:
        tk = self.tk
        if tk.files.dry_run:
            log.info("dry-run: docker from %s, compose %s", self.cfg.docker_install_url, ctx.docker_compose_version)
            return

        script = download(self.cfg.docker_install_url, self.cfg.download_timeout).decode("utf-8")
        tk.runner.run(["sh"], input=script, env=APT_ENV)

        url = self.cfg.compose_url.format(
            version=ctx.docker_compose_version,
            system=platform.system(),
            machine=platform.machine(),
        )
        tk.files.write_bytes(self.cfg.compose_binary, download(url, self.cfg.download_timeout), mode=0o755)

    def install_salt(self, ctx: UserDataContext) -> None:
        tk = self.tk
        tk.apt.install(*self.cfg.tool_packages)
        tk.apt.install(*self.cfg.build_packages)
        tk.runner.run(["pip3", "install", *self.cfg.pip_packages])
        tk.runner.run(["pip3", "install", f"salt=={ctx.salt_version}"])

    def configure_minion(self, ctx: UserDataContext) -> None:
        tk = self.tk
        salt_dir = tk.settings.salt_dir
        self._install_unit("salt-minion")
        tk.files.ensure_dir(salt_dir)
        if not (salt_dir / "minion").exists():
            tk.files.write_text(salt_dir / "minion", "", mode=0o644)
        tk.files.append_line(salt_dir / "grains", f"opg-role: {ctx.role}")
        tk.services.start("salt-minion", required=True)

    def configure_master(self, ctx: UserDataContext) -> None:
        tk = self.tk
        self._install_unit("salt-master")

        path = tk.settings.salt_dir / "master"
        try:
            current = yaml.safe_load(tk.files.read_text(path)) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"{path} is not valid YAML: {exc}") from exc
        if not isinstance(current, dict):
            raise ConfigurationError(f"{path} must hold a YAML mapping")
        srv = str(tk.settings.service_mount_point)
        current.update(
            {
                "auto_accept": True,
                "file_roots": {"base": [f"{srv}/salt", f"{srv}/salt/_libs", f"{srv}/salt-formulas"]},
                "state_output": "changes",
            }
        )
        tk.files.write_text(path, yaml.safe_dump(current, default_flow_style=False, sort_keys=False), mode=0o644)
        tk.services.start("salt-master", required=True)

    def _install_unit(self, service: str) -> None:
        tk = self.tk
        target = self.cfg.upstart_dir / f"{service}.conf"
        if target.exists() or tk.files.dry_run:
            return
        body = download(self.cfg.upstart_url.format(service=service), self.cfg.download_timeout)
        tk.files.write_bytes(target, body, mode=0o644)
