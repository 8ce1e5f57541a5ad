# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/errors.py


class BootstrapError(RuntimeError):
    """Base class for first-boot failures."""


class ConfigurationError(BootstrapError):
    """A required input is missing or invalid. Fatal."""


class AlreadyBootstrappedError(BootstrapError):
    """The completion marker (or a concurrent run's lock) is present. Fatal."""


class DeviceNotFoundError(BootstrapError):
    """An expected block device did not appear. The run continues without it."""


class UnreachableCoordinatorError(BootstrapError):
    """The coordinator ports never answered within the retry budget. Fatal."""


class DegenerateProbeResponseError(BootstrapError):
    """The self-publish probe came back empty. Triggers a degraded retry."""


class ServiceControlError(BootstrapError):
    """Stopping or restarting a service failed. Never fatal."""


class CommandError(BootstrapError):
    """A required external command exited non-zero."""

    def __init__(self, argv, returncode: int, stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        msg = f"command failed (rc={returncode}): {' '.join(map(str, self.argv))}"
        if stderr.strip():
            msg += f"\n{stderr.strip()}"
        super().__init__(msg)
