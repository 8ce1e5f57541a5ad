# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/system/network.py

from __future__ import annotations

import logging
import socket
from typing import Iterable, List

log = logging.getLogger("firstboot")


class PortProbe:
    """TCP connect check, the `nc -z -w N host port` of this code base."""

    def __init__(self, timeout: float = 3.0):
        self.timeout = timeout

    def is_open(self, host: str, port: int) -> bool:
        try:
            with socket.create_connection((host, port), timeout=self.timeout):
                return True
        except OSError as exc:
            log.debug("port %s:%s closed: %s", host, port, exc)
            return False

    def open_ports(self, host: str, ports: Iterable[int]) -> List[int]:
        return [p for p in ports if self.is_open(host, p)]
