# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/cloud/metadata.py

from __future__ import annotations

import logging
import re
from typing import List, Optional

import requests

log = logging.getLogger("firstboot")

TOKEN_HEADER = "X-aws-ec2-metadata-token"
TOKEN_TTL_HEADER = "X-aws-ec2-metadata-token-ttl-seconds"


class MetadataClient:
    """
    Thin client for the instance metadata service.

    A missing attribute, a non-200 answer or an unreachable endpoint all
    read as "", and callers treat empty as absent. No retries here; callers
    that need them bring their own budget.
    """

    def __init__(
        self,
        *,
        base_url: str = "http://169.254.169.254/latest/meta-data",
        token_url: Optional[str] = "http://169.254.169.254/latest/api/token",
        timeout: float = 5.0,
        token_ttl: int = 21600,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_url = token_url
        self.timeout = timeout
        self.token_ttl = token_ttl
        self._token: Optional[str] = None
        self._token_tried = False

    # -----------------------
    # IMDSv2 session token
    # -----------------------
    def _headers(self) -> dict[str, str]:
        if self.token_url and not self._token_tried:
            self._token_tried = True
            try:
                r = requests.put(
                    self.token_url,
                    headers={TOKEN_TTL_HEADER: str(self.token_ttl)},
                    timeout=self.timeout,
                )
                if r.status_code == 200 and r.text:
                    self._token = r.text.strip()
                else:
                    log.debug("metadata token request returned %s, using IMDSv1", r.status_code)
            except requests.RequestException as exc:
                log.debug("metadata token request failed (%s), using IMDSv1", exc)

        if self._token:
            return {TOKEN_HEADER: self._token}
        return {}

    # -----------------------
    # Attributes
    # -----------------------
    def get(self, path: str) -> str:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            r = requests.get(url, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            log.debug("metadata GET %s failed: %s", url, exc)
            return ""
        if r.status_code != 200:
            log.debug("metadata GET %s -> %s", url, r.status_code)
            return ""
        return r.text.strip()

    def listing(self, path: str) -> List[str]:
        """Directory-style attribute (one name per line)."""
        return [line.strip() for line in self.get(path).splitlines() if line.strip()]

    def local_ipv4(self) -> str:
        return self.get("local-ipv4")

    def instance_id(self) -> str:
        return self.get("instance-id")

    def availability_zone(self) -> str:
        return self.get("placement/availability-zone")

    def region(self) -> str:
        return region_from_zone(self.availability_zone())


def region_from_zone(zone: str) -> str:
    """``eu-west-1a`` -> ``eu-west-1``."""
    return re.sub(r"[a-z]$", "", zone.strip())
