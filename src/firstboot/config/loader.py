# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/config/loader.py

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

import yaml
from pydantic import ValidationError

from firstboot.errors import ConfigurationError
from .models import COORDINATOR_ROLE, BootstrapSettings, RunContext, UserDataContext

log = logging.getLogger("firstboot")

CONFIG_ENV = "FIRSTBOOT_CONFIG"

REQUIRED = (
    ("DOMAIN", "domain"),
    ("ROLE", "role"),
    ("ORGANISATION", "organisation"),
    ("PROJECT", "project"),
    ("STACKNAME", "stackname"),
    ("ENVIRONMENT", "environment"),
    ("RELEASESTAGE", "release_stage"),
    ("BRANCH", "branch"),
)

_TRUE = {"yes", "y", "true", "1", "on"}
_FALSE = {"no", "n", "false", "0", "off", ""}


def parse_flag(name: str, raw: Optional[str]) -> bool:
    """Interpret a yes/no style environment flag; unset means no."""
    value = (raw or "").strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(f"The '{name}' environment variable must be yes or no, got {raw!r}")


def _value(environ: Mapping[str, str], name: str) -> str:
    return (environ.get(name) or "").strip()


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    return yaml.safe_load(expanded) or {}


def load_settings(path: str | Path | None = None, environ: Optional[Mapping[str, str]] = None) -> BootstrapSettings:
    """
    Load host settings.

    Lookup order:
      1. explicit *path* (``--config``)
      2. ``FIRSTBOOT_CONFIG`` environment variable
      3. built-in defaults
    """
    environ = os.environ if environ is None else environ
    if path is None and environ.get(CONFIG_ENV):
        path = environ[CONFIG_ENV]

    if path is None:
        log.debug("No settings file given, using defaults")
        return BootstrapSettings()

    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Settings file {path} does not exist")

    try:
        return BootstrapSettings.model_validate(_load_yaml(path))
    except (yaml.YAMLError, ValidationError) as exc:
        raise ConfigurationError(f"Invalid settings file {path}: {exc}") from exc


def load_run_context(environ: Optional[Mapping[str, str]] = None, *, metadata=None) -> RunContext:
    """
    Gather the required environment variables into a RunContext.

    Every missing key is reported at once. When the instance belongs to an
    auto-scaling group the hostname is derived from the instance id, which
    needs *metadata* (a MetadataClient).
    """
    environ = os.environ if environ is None else environ

    auto_scaling = parse_flag("EC2_AUTO_SCALING_GROUP", environ.get("EC2_AUTO_SCALING_GROUP"))
    wait_for_volume = parse_flag("EC2_WAIT_FOR_VOLUME", environ.get("EC2_WAIT_FOR_VOLUME"))
    disable_docker = parse_flag("DISABLE_DOCKER", environ.get("DISABLE_DOCKER"))

    required = list(REQUIRED)
    if not auto_scaling:
        required.append(("HOSTNAME", "hostname"))

    missing = [var for var, _ in required if not _value(environ, var)]
    if missing:
        raise ConfigurationError(
            "The following environment variables have to be set: " + ", ".join(missing)
        )

    fields = {attr: _value(environ, var) for var, attr in required}
    role = fields["role"]

    coordinator_address = _value(environ, "SALT_MASTER_IP") or None
    if role != COORDINATOR_ROLE and not coordinator_address:
        raise ConfigurationError("The 'SALT_MASTER_IP' environment variable has to be set")

    hosted_zone_id = _value(environ, "HOSTED_ZONE_ID") or None
    instance_id = None
    if auto_scaling:
        if not hosted_zone_id:
            raise ConfigurationError("The 'HOSTED_ZONE_ID' environment variable has to be set")
        if metadata is None:
            raise ConfigurationError("Auto-scaling instances need the metadata service to derive a hostname")
        instance_id = metadata.get("instance-id")
        if not instance_id:
            raise ConfigurationError("Unable to read the instance id from the metadata service")
        fields["hostname"] = f"{role}-{instance_id}"

    try:
        ctx = RunContext(
            **fields,
            coordinator_address=coordinator_address,
            hosted_zone_id=hosted_zone_id,
            instance_id=instance_id,
            auto_scaling_group=auto_scaling,
            wait_for_volume=wait_for_volume,
            disable_container_runtime=disable_docker,
        )
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc

    log.debug("run context: %s", ctx.model_dump())
    return ctx


def load_userdata_context(environ: Optional[Mapping[str, str]] = None) -> UserDataContext:
    environ = os.environ if environ is None else environ
    names = ("ROLE", "DOCKER_COMPOSE_VERSION", "SALT_VERSION")
    missing = [n for n in names if not _value(environ, n)]
    if missing:
        raise ConfigurationError(
            "The following environment variables have to be set: " + ", ".join(missing)
        )
    return UserDataContext(
        role=_value(environ, "ROLE"),
        docker_compose_version=_value(environ, "DOCKER_COMPOSE_VERSION"),
        salt_version=_value(environ, "SALT_VERSION"),
        is_salt_master=parse_flag("IS_SALTMASTER", environ.get("IS_SALTMASTER")),
    )
